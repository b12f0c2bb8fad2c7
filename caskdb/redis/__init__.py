"""Redis-like data structures and a RESP server on top of the storage engine."""