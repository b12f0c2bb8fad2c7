import pytest

from caskdb.index.art import RadixTreeIndex
from caskdb.index.bptree import BPTREE_INDEX_FILE_NAME, BPlusTreeIndex
from caskdb.index.btree import BTreeIndex
from caskdb.index.factory import new_indexer
from caskdb.log_record import LogRecordPos
from caskdb.options import IndexType


@pytest.mark.parametrize(
    "index_type, cls",
    [(IndexType.BTREE, BTreeIndex), (IndexType.ART, RadixTreeIndex), (IndexType.BPTREE, BPlusTreeIndex)],
)
def test_new_indexer_builds_working_index(tmp_path, index_type, cls):
    idx = new_indexer(index_type, tmp_path, False)
    try:
        assert isinstance(idx, cls)
        pos = LogRecordPos(fid=10, offset=20)
        assert idx.put(b"key-1", pos) is None
        assert idx.get(b"key-1") == pos
        assert idx.size() == 1
    finally:
        idx.close()


def test_bptree_file_created(tmp_path):
    idx = new_indexer(IndexType.BPTREE, tmp_path, False)
    idx.close()
    assert (tmp_path / BPTREE_INDEX_FILE_NAME).exists()


def test_int_index_type_accepted(tmp_path):
    idx = new_indexer(2, tmp_path, False)
    idx.put(b"a", LogRecordPos(fid=1, offset=1))
    assert [k for k, _ in idx.iterator(False)] == [b"a"]


def test_unknown_index_type(tmp_path):
    with pytest.raises(ValueError, match="unsupported indexer type"):
        new_indexer(99, tmp_path, False)