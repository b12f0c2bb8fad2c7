import os

import pytest

from caskdb.batch import WriteBatch
from caskdb.data_file import HINT_FILE_NAME, MERGE_FINISHED_NAME
from caskdb.db import DB
from caskdb.dirutil import dir_size
from caskdb.errors import KeyNotFoundError, MergeIsProcessingError, MergeRatioUnreachedError
from caskdb.keygen import make_key, random_value
from caskdb.merge import merge
from caskdb.options import IndexType, Options


def _options(db_dir, index_type=IndexType.BTREE, ratio=0.1):
    return Options(
        dir_path=db_dir,
        max_data_file_size=4096,
        index_type=index_type,
        data_file_merge_ratio=ratio,
    )


@pytest.fixture
def db_dir(tmp_path):
    return str(tmp_path / "db")


@pytest.mark.parametrize("index_type", [IndexType.BTREE, IndexType.ART])
def test_merge_keeps_live_data(db_dir, index_type):
    values = {}
    with DB.open(_options(db_dir, index_type)) as db:
        for i in range(200):
            values[make_key(i)] = random_value(100)
            db.put(make_key(i), values[make_key(i)])
        for i in range(150):
            db.delete(make_key(i))
        size_before = dir_size(db_dir)
        merge(db)
        merge_dir = db.merge_path()
        names = os.listdir(merge_dir)
        assert HINT_FILE_NAME in names
        assert MERGE_FINISHED_NAME in names
        assert db.get(make_key(199)) == values[make_key(199)]

    with DB.open(_options(db_dir, index_type)) as db:
        assert not os.path.exists(db.merge_path())
        assert db.size() == 50
        for i in range(150, 200):
            assert db.get(make_key(i)) == values[make_key(i)]
        for i in range(150):
            with pytest.raises(KeyNotFoundError):
                db.get(make_key(i))
    assert dir_size(db_dir) < size_before


def test_writes_after_merge_win(db_dir):
    with DB.open(_options(db_dir)) as db:
        for i in range(100):
            db.put(make_key(i), b"old")
        for i in range(50):
            db.delete(make_key(i))
        merge(db)
        db.put(make_key(60), b"new")
        db.put(b"fresh", b"value")
        db.delete(make_key(70))

    with DB.open(_options(db_dir)) as db:
        assert db.get(make_key(60)) == b"new"
        assert db.get(make_key(61)) == b"old"
        assert db.get(b"fresh") == b"value"
        with pytest.raises(KeyNotFoundError):
            db.get(make_key(70))
        assert db.size() == 50


def test_merge_keeps_batched_records(db_dir):
    with DB.open(_options(db_dir)) as db:
        wb = WriteBatch(db)
        for i in range(20):
            wb.put(make_key(i), b"batched")
        wb.commit()
        for i in range(10):
            db.delete(make_key(i))
        merge(db)

    with DB.open(_options(db_dir)) as db:
        assert sorted(db.list_keys()) == sorted(make_key(i) for i in range(10, 20))
        assert db.get(make_key(15)) == b"batched"


def test_merge_twice_across_reopen(db_dir):
    with DB.open(_options(db_dir)) as db:
        for i in range(60):
            db.put(make_key(i), b"v1")
        for i in range(30):
            db.delete(make_key(i))
        merge(db)
    with DB.open(_options(db_dir)) as db:
        for i in range(30, 45):
            db.delete(make_key(i))
        merge(db)
    with DB.open(_options(db_dir)) as db:
        assert sorted(db.list_keys()) == sorted(make_key(i) for i in range(45, 60))


def test_merge_ratio_unreached(db_dir):
    with DB.open(_options(db_dir, ratio=1.0)) as db:
        db.put(b"k", b"v")
        with pytest.raises(MergeRatioUnreachedError):
            merge(db)
        assert not os.path.exists(db.merge_path())
        assert db.get(b"k") == b"v"


def test_merge_already_running(db_dir):
    with DB.open(_options(db_dir)) as db:
        db.put(b"k", b"v")
        db.is_merging = True
        with pytest.raises(MergeIsProcessingError):
            merge(db)
        db.is_merging = False
        assert db.get(b"k") == b"v"


def test_merge_resets_flag(db_dir):
    with DB.open(_options(db_dir, ratio=0.0)) as db:
        db.put(b"k", b"v")
        merge(db)
        assert db.is_merging is False
        assert db.get(b"k") == b"v"