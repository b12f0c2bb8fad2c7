import pytest

from caskdb.batch import WriteBatch
from caskdb.db import DB
from caskdb.errors import BatchNumExceededError, BitcaskError, KeyIsEmptyError, KeyNotFoundError
from caskdb.keygen import make_key, make_value
from caskdb.log_record import LogRecord, key_with_seq
from caskdb.options import IndexType, Options, WriteBatchOptions


@pytest.fixture
def db_dir(tmp_path):
    return str(tmp_path / "db")


@pytest.fixture
def db(db_dir):
    database = DB.open(Options(dir_path=db_dir, max_data_file_size=5 << 30, index_type=IndexType.ART))
    yield database
    database.close()


def test_new_write_batch_commit(db):
    wb = WriteBatch(db, WriteBatchOptions(max_batch_num=100, sync_writes=True))
    key1, value1 = b"testKey1", b"testValue1"
    wb.put(key1, value1)
    wb.delete(b"abc")
    key2, value2 = make_key(12345), make_value(24)
    wb.put(key2, value2)
    wb.commit()
    assert db.get(key1) == value1
    assert db.get(key2) == value2


def test_uncommitted_writes_are_invisible(db):
    wb = WriteBatch(db)
    wb.put(b"k", b"v")
    with pytest.raises(KeyNotFoundError):
        db.get(b"k")
    wb.commit()
    assert db.get(b"k") == b"v"


def test_empty_key_rejected(db):
    wb = WriteBatch(db)
    with pytest.raises(KeyIsEmptyError):
        wb.put(b"", b"v")
    with pytest.raises(KeyIsEmptyError):
        wb.delete(b"")


def test_batch_num_exceeded(db):
    wb = WriteBatch(db, WriteBatchOptions(max_batch_num=2))
    for i in range(3):
        wb.put(make_key(i), b"v")
    with pytest.raises(BatchNumExceededError):
        wb.commit()
    with pytest.raises(KeyNotFoundError):
        db.get(make_key(0))


def test_delete_existing_key(db):
    db.put(b"gone", b"value")
    wb = WriteBatch(db)
    wb.delete(b"gone")
    assert db.get(b"gone") == b"value"
    wb.commit()
    with pytest.raises(KeyNotFoundError):
        db.get(b"gone")


def test_delete_unknown_key_unstages_put(db):
    wb = WriteBatch(db)
    wb.put(b"staged", b"v")
    wb.delete(b"staged")
    wb.commit()
    with pytest.raises(KeyNotFoundError):
        db.get(b"staged")


def test_commit_increments_sequence(db):
    assert db.seq_num == 0
    wb = WriteBatch(db)
    wb.put(b"a", b"1")
    wb.commit()
    assert db.seq_num == 1
    wb.put(b"b", b"2")
    wb.commit()
    assert db.seq_num == 2


def test_empty_commit_does_nothing(db):
    WriteBatch(db).commit()
    assert db.seq_num == 0
    assert db.size() == 0


def test_batch_survives_reopen(db_dir):
    with DB.open(Options(dir_path=db_dir)) as db:
        db.put(b"old", b"x")
        wb = WriteBatch(db)
        wb.put(b"k1", b"v1")
        wb.put(b"k2", b"v2")
        wb.delete(b"old")
        wb.commit()
    with DB.open(Options(dir_path=db_dir)) as db:
        assert db.get(b"k1") == b"v1"
        assert db.get(b"k2") == b"v2"
        with pytest.raises(KeyNotFoundError):
            db.get(b"old")
        assert db.seq_num == 1


def test_unfinished_transaction_ignored_on_reload(db_dir):
    with DB.open(Options(dir_path=db_dir)) as db:
        db.append_log_record(LogRecord(key=key_with_seq(b"half", 7), value=b"v"))
        db.put(b"plain", b"p")
    with DB.open(Options(dir_path=db_dir)) as db:
        with pytest.raises(KeyNotFoundError):
            db.get(b"half")
        assert db.get(b"plain") == b"p"


def test_bptree_batch_on_fresh_and_reopened_dir(db_dir):
    with DB.open(Options(dir_path=db_dir, index_type=IndexType.BPTREE)) as db:
        wb = WriteBatch(db)
        wb.put(b"k", b"v")
        wb.commit()
    with DB.open(Options(dir_path=db_dir, index_type=IndexType.BPTREE)) as db:
        wb = WriteBatch(db)
        wb.put(b"k2", b"v2")
        wb.commit()
        assert db.get(b"k") == b"v"
        assert db.get(b"k2") == b"v2"


def test_bptree_batch_refused_without_seq_file(tmp_path):
    db_dir = tmp_path / "db"
    db_dir.mkdir()
    (db_dir / "other.txt").write_text("x")
    with DB.open(Options(dir_path=str(db_dir), index_type=IndexType.BPTREE)) as db:
        with pytest.raises(BitcaskError):
            WriteBatch(db)