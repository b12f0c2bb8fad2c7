"""Generators of keys and values for tests and benchmarks."""

from __future__ import annotations

import random
import string

_LETTERS = string.ascii_letters + string.digits
_VALUE_PREFIX = "caskdb-value"
_rng = random.Random()


def make_key(i: int) -> bytes:
    """A deterministic key for the integer ``i``."""
    return f"caskdb-key_{{{i}}}".encode()


def random_value(n: int) -> bytes:
    """A fixed prefix followed by ``n`` random alphanumeric characters."""
    return (_VALUE_PREFIX + "".join(_rng.choices(_LETTERS, k=n))).encode()


def make_value(n: int) -> bytes:
    """A random value with ``n`` random characters after the prefix."""
    return random_value(n)


def gen_kv(n: int) -> tuple[list[bytes], list[bytes]]:
    """``n`` keys and ``n`` random values of the same shape."""
    keys = [make_key(i) for i in range(n)]
    values = [make_value(10) for _ in range(n)]
    return keys, values