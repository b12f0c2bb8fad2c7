"""B-tree, radix-tree and persistent B+ tree indexes mapping keys to log record positions."""