# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Filesystem paths, globbing and modification times.

Paths are represented as `str` or `os.PathLike` objects; all functions returning paths return `str`.
"""

__all__ = [
    'PathLike',
    'join', 'last_component', 'with_replaced_extension', 'has_extension',
    'is_directory', 'is_regular_file', 'is_empty_directory', 'ensure_directory',
    'expand_glob_patterns', 'list_directory_files',
    'get_mtime_ns', 'find_latest_mtime_ns'
]

import os
import os.path
import glob
import stat
from typing import Iterable, List, Optional, Union

from .manip import *
from .manip import __all__ as _manip_all
__all__ += _manip_all
del _manip_all

PathLike = Union[str, os.PathLike]


def join(*paths: PathLike) -> str:
    return os.path.join(*[os.fspath(p) for p in paths])


def last_component(path: PathLike) -> str:
    # 'a/b/c.c' -> 'c.c', 'a/b/' -> 'b'
    path = os.fspath(path)
    return os.path.basename(path.rstrip('/' + os.sep)) or path


def with_replaced_extension(path: PathLike, extension: str) -> str:
    # Return *path* with its extension suffix replaced by (or extended with) *extension*.
    # *extension* is given without leading '.'; 'x/a.c', 'obj' -> 'x/a.obj'
    extension = str(extension)
    if not extension or extension.startswith('.') or '/' in extension or os.sep in extension:
        raise ValueError(f"not a valid extension: {extension!r}")
    root, _ = os.path.splitext(os.fspath(path))
    return f'{root}.{extension}'


def has_extension(path: PathLike, *extensions: str) -> bool:
    _, ext = os.path.splitext(os.fspath(path))
    return ext[1:] in extensions if ext else False


def is_directory(path: PathLike) -> bool:
    return os.path.isdir(path)


def is_regular_file(path: PathLike) -> bool:
    return os.path.isfile(path)


def is_empty_directory(path: PathLike) -> bool:
    # False if *path* is not an existing directory
    try:
        with os.scandir(path) as it:
            return next(it, None) is None
    except (FileNotFoundError, NotADirectoryError):
        return False


def ensure_directory(path: PathLike):
    # create *path* and all missing parents; existing directories are fine
    os.makedirs(path, exist_ok=True)


def expand_glob_patterns(directory: PathLike, patterns: Iterable[str]) -> List[str]:
    # Return the absolute paths of all regular files in *directory* matching one of the glob patterns *patterns*
    # (relative to *directory*, '**' matches any number of directories).
    #
    # The matches of each pattern are sorted; the matches of an earlier pattern precede the ones of a later pattern.
    # Each path is contained at most once.

    abs_directory = os.path.abspath(os.fspath(directory))
    escaped_directory = glob.escape(abs_directory)

    paths = []
    seen = set()
    for pattern in patterns:
        pattern = str(pattern)
        if not pattern or os.path.isabs(pattern):
            raise ValueError(f"not a relative glob pattern: {pattern!r}")
        for p in sorted(glob.glob(os.path.join(escaped_directory, pattern), recursive=True)):
            p = os.path.normpath(p)
            if p not in seen and os.path.isfile(p):
                seen.add(p)
                paths.append(p)

    return paths


def list_directory_files(directory: PathLike) -> List[str]:
    # Return the sorted paths of all regular files (no symbolic links) directly in *directory*.
    paths = []
    with os.scandir(directory) as it:
        for de in it:
            if de.is_file(follow_symlinks=False):
                paths.append(de.path)
    return sorted(paths)


def get_mtime_ns(path: PathLike) -> Optional[int]:
    # mtime of the filesystem object *path* in nanoseconds, None if it does not exist
    try:
        sr = os.stat(path)
    except FileNotFoundError:
        return None
    return sr.st_mtime_ns


def find_latest_mtime_ns(paths: Iterable[PathLike]) -> Optional[int]:
    # Return the latest mtime of the regular files *paths* in nanoseconds, None if *paths* is empty.
    # Raises FileNotFoundError if one of them does not exist.
    latest_mtime = None
    for p in paths:
        sr = os.stat(p)
        if not stat.S_ISREG(sr.st_mode):
            raise ValueError(f"not a regular file: {os.fspath(p)!r}")
        if latest_mtime is None or sr.st_mtime_ns > latest_mtime:
            latest_mtime = sr.st_mtime_ns
    return latest_mtime
