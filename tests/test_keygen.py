import string

from caskdb.keygen import gen_kv, make_key, make_value, random_value

PREFIX = b"caskdb-value"
ALNUM = set((string.ascii_letters + string.digits).encode())


def test_make_key_format():
    assert make_key(3) == b"caskdb-key_{3}"


def test_make_key_distinct():
    keys = {make_key(i) for i in range(10)}
    assert len(keys) == 10


def test_make_value_shape():
    for _ in range(10):
        value = make_value(10)
        assert value.startswith(PREFIX)
        assert len(value) == len(PREFIX) + 10
        assert set(value[len(PREFIX):]) <= ALNUM


def test_random_value_zero_length():
    assert random_value(0) == PREFIX


def test_gen_kv():
    keys, values = gen_kv(5)
    assert keys == [make_key(i) for i in range(5)]
    assert len(values) == 5
    assert all(len(v) == len(PREFIX) + 10 for v in values)