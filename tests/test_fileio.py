import pytest

from caskdb.fileio import FileIO, IOType, MMapIO, open_io_manager

GREETING = b"Welcome to China!"


def _write_greeting(path):
    fio = open_io_manager(path, IOType.STANDARD)
    written = fio.write(GREETING)
    fio.sync()
    fio.close()
    return written


def test_file_io_write_read(tmp_path):
    fio = open_io_manager(tmp_path / "a.data")
    assert isinstance(fio, FileIO)
    assert fio.write(GREETING) == len(GREETING)
    assert fio.read(8, 2) == b"lcome to"
    assert fio.size() == len(GREETING)
    fio.sync()
    fio.close()


def test_file_io_appends_after_reopen(tmp_path):
    path = tmp_path / "b.data"
    _write_greeting(path)
    fio = FileIO(path)
    fio.write(b"abc")
    assert fio.size() == len(GREETING) + 3
    assert fio.read(3, len(GREETING)) == b"abc"
    fio.close()


def test_file_io_short_read_raises_eof(tmp_path):
    fio = FileIO(tmp_path / "c.data")
    fio.write(b"1234")
    with pytest.raises(EOFError):
        fio.read(8, 0)
    fio.close()


def test_mmap_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        open_io_manager(tmp_path / "missing.data", IOType.MMAP)


def test_mmap_empty_file(tmp_path):
    path = tmp_path / "mmap-a.data"
    path.write_bytes(b"")
    mm = MMapIO(path)
    assert mm.size() == 0
    with pytest.raises(EOFError):
        mm.read(8, 0)
    mm.close()


def test_mmap_reads_existing_content(tmp_path):
    path = tmp_path / "mmap-a.data"
    assert _write_greeting(path) == len(GREETING)
    mm = open_io_manager(path, IOType.MMAP)
    assert isinstance(mm, MMapIO)
    assert mm.read(8, 2) == b"lcome to"
    assert mm.size() == len(GREETING)
    assert mm.write(b"ignored") == 0
    assert mm.size() == len(GREETING)
    mm.close()


def test_mmap_short_read_raises_eof(tmp_path):
    path = tmp_path / "mmap-b.data"
    _write_greeting(path)
    mm = MMapIO(path)
    with pytest.raises(EOFError):
        mm.read(8, len(GREETING) - 2)
    mm.close()