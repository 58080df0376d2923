# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Filesystem manipulations.
This is an implementation detail - do not import it unless you know what you are doing."""

__all__ = ['remove_file_if_exists', 'read_file', 'write_file', 'replace_in_text_file']

import os
import uuid
from typing import Union


def remove_file_if_exists(path: Union[str, os.PathLike]) -> bool:
    """
    Remove the file (or symbolic link) *path*.

    Returns ``True`` if it was removed and ``False`` if it did not exist.

    :raise IsADirectoryError: if *path* is a directory
    :raise OSError: if an existing *path* was not removed
    """

    if isinstance(path, bytes):
        # prevent special treatment by byte paths
        raise TypeError("'path' must be a str or os.PathLike object, not bytes")

    try:
        os.remove(path)  # does remove symlink, not target
    except FileNotFoundError:
        return False
    return True


def read_file(path: Union[str, os.PathLike]) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


def write_file(path: Union[str, os.PathLike], content: bytes):
    """
    Replace the content of the file *path* by *content*.

    The content is first written to a temporary file in the same directory, which then replaces *path*.
    Therefore *path* never contains a partially written content.
    Afterwards, *path* has the permissions 0o666 restricted by the umask, like a file created by :func:`open()`.
    """

    path = os.fspath(path)
    directory = os.path.dirname(os.path.abspath(path))
    temp_path = os.path.join(directory, f'.t{uuid.uuid4().hex}')

    fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, 'O_BINARY', 0), 0o666)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(content)
        os.replace(temp_path, path)  # POSIX: atomic on same filesystem
    except BaseException:
        try:
            os.remove(temp_path)
        except OSError:
            pass
        raise


def replace_in_text_file(path: Union[str, os.PathLike], pattern: str, replacement: str, *,
                         encoding: str = 'utf-8') -> int:
    """
    Replace each occurrence of the exact substring *pattern* in the text file *path* by *replacement*.

    Returns the number of replaced occurrences.

    :raise ValueError: if *pattern* is empty or does not occur in the file
    """

    if not pattern:
        raise ValueError("'pattern' must not be empty")

    content = read_file(path).decode(encoding)
    n = content.count(pattern)
    if n == 0:
        raise ValueError(f"pattern not found in {os.fspath(path)!r}: {pattern!r}")

    write_file(path, content.replace(pattern, replacement).encode(encoding))
    return n
