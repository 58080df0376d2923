# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Compile cache: compile command and preprocessed content hash by object file.
This is an implementation detail - do not import it unless you know what you are doing."""

__all__ = ['CacheEntry', 'CompileCache', 'hash_file']

import os
import re
import io
import csv
import hashlib
import dataclasses
from typing import Dict, Iterator, List, Optional, Tuple

from .. import ut
from .. import di
from .. import fs
from .. import cf
from . import _error


# Why 'csv'?
#
# The cache file is meant to be inspected with a text editor or a spreadsheet application.
# Every field is quoted; a quote character in a field is represented by two quote characters, a line separator in a
# field is kept as is (inside the quotes). So every string can be represented, and reading what was written
# returns exactly the written strings.

COLUMN_NAMES = ('objPath', 'compileCmd', 'preprocessedHash')

_MAX_HASH = 2 ** 64 - 1
_ENCODED_HASH_REGEX = re.compile(r'0[xX][0-9A-Fa-f]{1,16}')


@dataclasses.dataclass(frozen=True)
class CacheEntry:
    compile_command: str
    preprocessed_hash: int


def hash_file(path: fs.PathLike) -> int:
    # Return a 64 bit hash of the content of the file *path*.
    h = hashlib.blake2b(digest_size=8)
    try:
        with open(path, 'rb') as f:
            for chunk in iter(lambda: f.read(2 ** 16), b''):
                h.update(chunk)
    except OSError as e:
        msg = (
            f"could not hash content of {os.fspath(path)!r}\n"
            f"  | reason: {ut.exception_to_line(e)}"
        )
        raise _error.ArtifactAccessError(msg, oserror=e) from None
    return int.from_bytes(h.digest(), 'big')


def encode_hash(preprocessed_hash: int) -> str:
    return f'0x{preprocessed_hash:X}'


def decode_hash(encoded_hash: str) -> int:
    if not _ENCODED_HASH_REGEX.fullmatch(encoded_hash):
        raise ValueError(f'not a hexadecimal 64 bit integer literal: {encoded_hash!r}')
    return int(encoded_hash[2:], 16)


def _parse(text: str) -> Dict[str, CacheEntry]:
    # Raises ValueError if *text* is not a complete cache file.

    reader = csv.reader(io.StringIO(text, newline=''), strict=True)
    rows = iter(reader)

    try:
        header = next(rows)
    except StopIteration:
        raise ValueError('missing header row') from None
    if tuple(header) != COLUMN_NAMES:
        raise ValueError(f'unexpected header row: {header!r}')

    entries = {}
    for row in rows:
        if len(row) != len(COLUMN_NAMES):
            raise ValueError(f'row {reader.line_num} does not consist of exactly {len(COLUMN_NAMES)} fields')
        object_path, compile_command, encoded_hash = row
        if not object_path:
            raise ValueError(f'row {reader.line_num} has an empty object path')
        entries[object_path] = CacheEntry(compile_command, decode_hash(encoded_hash))

    return entries


def _quote_all_lines(rows: List[Tuple[str, str, str]]) -> str:
    out = io.StringIO(newline='')
    writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerows(rows)
    return out.getvalue()


class CompileCache:
    # Mapping of object file paths to the compile command and the preprocessed content hash that produced it.
    #
    # Not thread-safe: each build job records into its own instance; the instances are merged with update()
    # after all jobs are completed.

    def __init__(self, entries: Optional[Dict[str, CacheEntry]] = None):
        self._entry_by_object_path: Dict[str, CacheEntry] = {}
        if entries is not None:
            for object_path, entry in entries.items():
                if not isinstance(entry, CacheEntry):
                    raise TypeError(f"not a CacheEntry: {entry!r}")
                self._entry_by_object_path[str(object_path)] = entry

    @classmethod
    def load(cls, path: fs.PathLike) -> 'CompileCache':
        # Read the cache file *path*.
        #
        # Returns an empty cache if *path* does not exist or its content is malformed.
        # Raises CacheFileError if *path* exists but cannot be read.

        path = os.fspath(path)
        try:
            content = fs.read_file(path)
        except FileNotFoundError:
            di.inform(f'no compile cache file: {path!r}', level=cf.level.cache_load)
            return cls()
        except OSError as e:
            msg = (
                f"could not read compile cache file: {path!r}\n"
                f"  | reason: {ut.exception_to_line(e)}"
            )
            raise _error.CacheFileError(msg, oserror=e) from None

        try:
            entries = _parse(content.decode('utf-8'))
        except (ValueError, csv.Error) as e:  # UnicodeDecodeError is a ValueError
            msg = (
                f"ignored malformed compile cache file: {path!r}\n"
                f"  | reason: {ut.exception_to_line(e)}\n"
                f"  | every object file is compiled"
            )
            di.inform(msg, level=cf.level.cache_rejection)
            return cls()

        di.inform(f'loaded {len(entries)} entries from compile cache file {path!r}', level=cf.level.cache_load)
        return cls(entries)

    def save(self, path: fs.PathLike):
        # Replace the content of the cache file *path*.
        # Raises CacheFileError if *path* cannot be written.

        path = os.fspath(path)
        rows = [COLUMN_NAMES] + [
            (object_path, entry.compile_command, encode_hash(entry.preprocessed_hash))
            for object_path, entry in sorted(self._entry_by_object_path.items())
        ]
        try:
            fs.write_file(path, _quote_all_lines(rows).encode('utf-8'))
        except (OSError, UnicodeError) as e:
            msg = (
                f"could not write compile cache file: {path!r}\n"
                f"  | reason: {ut.exception_to_line(e)}"
            )
            raise _error.CacheFileError(msg, oserror=e if isinstance(e, OSError) else None) from None

        di.inform(f'wrote {len(self)} entries to compile cache file {path!r}', level=cf.level.cache_serialization)

    def lookup(self, object_path: fs.PathLike) -> Optional[CacheEntry]:
        return self._entry_by_object_path.get(os.fspath(object_path))

    def record(self, object_path: fs.PathLike, compile_command: str, preprocessed_hash: int):
        preprocessed_hash = int(preprocessed_hash)
        if not (0 <= preprocessed_hash <= _MAX_HASH):
            raise ValueError(f"'preprocessed_hash' must be a 64 bit unsigned integer, not {preprocessed_hash!r}")
        object_path = os.fspath(object_path)
        if not object_path:
            raise ValueError("'object_path' must not be empty")
        self._entry_by_object_path[object_path] = CacheEntry(str(compile_command), preprocessed_hash)

    def update(self, other: 'CompileCache'):
        if not isinstance(other, CompileCache):
            raise TypeError(f"'other' must be a CompileCache, not {other!r}")
        self._entry_by_object_path.update(other._entry_by_object_path)

    def compare(self, object_path: fs.PathLike, compile_command: str, preprocessed_hash: int) -> Optional[str]:
        # Returns None if the entry for *object_path* is a cache hit for *compile_command* and *preprocessed_hash*,
        # and a short line describing the reason for a miss otherwise.

        entry = self.lookup(object_path)
        if entry is None:
            return 'no entry in compile cache'
        if entry.preprocessed_hash != preprocessed_hash:
            return 'preprocessed source has changed'
        if entry.compile_command != compile_command:
            return 'compile command has changed'

    def is_hit(self, object_path: fs.PathLike, compile_command: str, preprocessed_hash: int) -> bool:
        return self.compare(object_path, compile_command, preprocessed_hash) is None

    def __len__(self) -> int:
        return len(self._entry_by_object_path)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._entry_by_object_path))

    def __contains__(self, object_path) -> bool:
        return os.fspath(object_path) in self._entry_by_object_path

    def __eq__(self, other) -> bool:
        if not isinstance(other, CompileCache):
            return NotImplemented
        return self._entry_by_object_path == other._entry_by_object_path

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__} with {len(self)} entries>'
