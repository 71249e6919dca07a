"""Filesystem helpers: directory size, free space and directory copies."""

from __future__ import annotations

import fnmatch
import os
import shutil
from collections.abc import Iterable, Iterator


def _iter_tree(path: str) -> Iterator[os.DirEntry]:
    """Yield every entry below a directory, depth first; errors propagate."""
    with os.scandir(path) as entries:
        for entry in entries:
            yield entry
            if entry.is_dir(follow_symlinks=False):
                yield from _iter_tree(entry.path)


def dir_size(dir_path: str) -> int:
    """Total size in bytes of all regular files under a directory."""
    if os.path.isfile(dir_path):
        return os.path.getsize(dir_path)
    return sum(
        entry.stat(follow_symlinks=False).st_size
        for entry in _iter_tree(dir_path)
        if not entry.is_dir(follow_symlinks=False)
    )


def available_disk_size() -> int:
    """Free bytes available on the disk holding the working directory."""
    return shutil.disk_usage(os.getcwd()).free


def _copy_tree(src: str, dest: str, patterns: list[str]) -> None:
    with os.scandir(src) as entries:
        for entry in entries:
            if any(fnmatch.fnmatchcase(entry.name, pattern) for pattern in patterns):
                continue
            target = os.path.join(dest, entry.name)
            if entry.is_dir():
                os.makedirs(target, exist_ok=True)
                shutil.copymode(entry.path, target)
                _copy_tree(entry.path, target, patterns)
            else:
                shutil.copyfile(entry.path, target)
                shutil.copymode(entry.path, target)


def copy_dir(src: str, dest: str, exclude: Iterable[str] = ()) -> None:
    """Copy a directory tree, skipping entries whose name matches a pattern."""
    os.makedirs(dest, exist_ok=True)
    _copy_tree(src, dest, list(exclude))