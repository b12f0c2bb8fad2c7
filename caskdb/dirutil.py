"""Directory helpers: total size, free disk space and recursive copying."""

from __future__ import annotations

import fnmatch
import os
import shutil
import stat
from collections.abc import Iterable


def _tree_size(path: str) -> int:
    total = 0
    with os.scandir(path) as entries:
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                total += _tree_size(entry.path)
            else:
                total += entry.stat(follow_symlinks=False).st_size
    return total


def dir_size(path: str | os.PathLike) -> int:
    """Total size in bytes of all non-directory entries below ``path``."""
    path = os.fspath(path)
    info = os.lstat(path)
    if not stat.S_ISDIR(info.st_mode):
        return info.st_size
    return _tree_size(path)


def available_space(path: str | os.PathLike = ".") -> int:
    """Bytes available to an unprivileged user on the filesystem holding ``path``."""
    return shutil.disk_usage(os.fspath(path)).free


def _excluded(name: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in patterns)


def _copy_tree(src: str, dest: str, patterns: list[str]) -> None:
    with os.scandir(src) as entries:
        for entry in entries:
            if _excluded(entry.name, patterns):
                continue
            target = os.path.join(dest, entry.name)
            if entry.is_dir(follow_symlinks=False):
                mode = entry.stat(follow_symlinks=False).st_mode & 0o777
                os.makedirs(target, mode=mode, exist_ok=True)
                _copy_tree(entry.path, target, patterns)
            else:
                shutil.copy(entry.path, target)


def copy_dir(src: str | os.PathLike, dest: str | os.PathLike, exclude: Iterable[str] = ()) -> None:
    """Copy the tree under ``src`` into ``dest``, skipping names matching ``exclude``."""
    src = os.fspath(src)
    dest = os.fspath(dest)
    patterns = list(exclude)
    os.makedirs(dest, exist_ok=True)
    _copy_tree(src, dest, patterns)