# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Write formatted and indented lines to represent hierarchic diagnostic information to a file.
This module uses levels compatible with the ones of the 'logging' module.

Messages may be written from several threads at the same time (one per build job).
Each line is written as a whole, and each thread has its own stack of clusters."""

__all__ = [
    'DEBUG',
    'INFO',
    'WARNING',
    'ERROR',
    'CRITICAL',
    'format_time_ns',
    'set_threshold_level',
    'is_unsuppressed_level',
    'get_level_indicator',
    'set_output_file',
    'format_message',
    'Cluster',
    'inform'
]

import sys
import threading
import time
from typing import List, Optional

from .. import ut


# these correspond to logging.* but are fixed (see https://docs.python.org/3/library/logging.html#logging-levels)
DEBUG = 10
INFO = 20
WARNING = 30
ERROR = 40
CRITICAL = 50

_CONTINUATION_LINE_PREFIX = '  | '

_output_file = sys.stderr
_output_lock = threading.Lock()

_lowest_unsuppressed_level: int = 1 if sys.flags.verbose else INFO

# time.monotonic_ns() of the first output message with enabled timing information
_first_monotonic_ns: Optional[int] = None

# stack of clusters per thread
_thread_local = threading.local()


def _clusters() -> List['Cluster']:
    clusters = getattr(_thread_local, 'clusters', None)
    if clusters is None:
        clusters = []
        _thread_local.clusters = clusters
    return clusters


def format_time_ns(time_ns: int) -> str:
    return ut.format_time_ns(time_ns, 3)


# these correspond to the first characters of the standard logging.getLevelName[...]
_level_indicator_by_level = {
    DEBUG: 'D',
    INFO: 'I',
    WARNING: 'W',
    ERROR: 'E',
    CRITICAL: 'C'
}


def _normalize_message_lines(message: str, *, name: str) -> List[str]:
    # Return the non-empty lines of *message* without trailing white-space.
    # The first line is stripped; each other line is a continuation line and starts with '  | '.

    if not isinstance(message, str):
        raise TypeError(f"{name!r} must be a str")

    lines = []
    for lineno0, line in enumerate(message.splitlines()):
        line = line.rstrip()
        if any(c < ' ' for c in line):
            raise ValueError(f"{name!r} must not contain ASCII control characters, unlike line {lineno0 + 1}")
        if not line:
            continue

        if not lines:
            line = line.strip()
        else:
            stripped_line = line.lstrip()
            if stripped_line.startswith('|'):
                stripped_line = stripped_line[1:].lstrip()
            line = _CONTINUATION_LINE_PREFIX + stripped_line
        lines.append(line)

    if not lines:
        raise ValueError(f"{name!r} must contain at least one non-empty line")

    return lines


def _checked_level(level):
    try:
        level = int(level)
    except (TypeError, ValueError):
        raise TypeError("'level' must be something convertible to an int")

    if not level > 0:
        raise ValueError(f"'level' must be positive")

    return level


def set_threshold_level(level):
    global _lowest_unsuppressed_level
    _lowest_unsuppressed_level = _checked_level(level)


def is_unsuppressed_level(level):
    return _checked_level(level) >= _lowest_unsuppressed_level


def get_level_indicator(level: int) -> str:
    level = _checked_level(level)
    standard_level = max([DEBUG] + [s for s in _level_indicator_by_level if s <= level])
    return _level_indicator_by_level[standard_level]


def set_output_file(file):
    if not hasattr(file, 'write'):
        raise TypeError(f"'file' does not have a 'write' method: {file!r}")

    global _output_file
    with _output_lock:
        _output_file, f = file, _output_file
    return f


def format_message(message: str, level: int) -> str:
    lines = _normalize_message_lines(message, name='message')
    lines[0] = get_level_indicator(level) + ' ' + lines[0]
    return '\n'.join(lines)


def _append_to_title(formatted_message: str, suffix: str) -> str:
    initial_line, lf, rest = formatted_message.partition('\n')
    return initial_line + suffix + lf + rest


def _indent_message(message: str, nesting: int) -> str:
    indentation = '  ' * max(nesting, 0)
    return '\n'.join(indentation + line for line in message.splitlines())


def _get_relative_time_suffix(monotonic_ns: Optional[int]) -> str:
    global _first_monotonic_ns

    if monotonic_ns is None:
        return ''
    with _output_lock:
        if _first_monotonic_ns is None:
            _first_monotonic_ns = monotonic_ns
        relative_ns = max(0, monotonic_ns - _first_monotonic_ns)
    return f" [+{format_time_ns(relative_ns)}s]"


def _write(text: str):
    with _output_lock:
        _output_file.write(text + '\n')


class Cluster:
    def __init__(self, message: str, *, level: int = INFO, is_progress: bool = False, with_time: bool = False):
        self._level = _checked_level(level)
        self._title = '\n'.join(_normalize_message_lines(message, name='message'))
        self._is_progress = bool(is_progress)
        self._with_time = bool(with_time)
        self._monotonic_ns: Optional[int] = None
        self._did_inform = False
        self._nesting_level: Optional[int] = None  # set in __enter__()

    def inform_title(self):
        if self._did_inform:
            return

        clusters = _clusters()
        for c in clusters:
            if c is self:
                break
            c.inform_title()  # is parent of self

        title = get_level_indicator(self._level) + ' ' + self._title
        suffix = '...' if self._is_progress else ''
        suffix += _get_relative_time_suffix(self._monotonic_ns)
        if suffix:
            title = _append_to_title(title, suffix)

        _write(_indent_message(title, self._nesting_level))
        self._did_inform = True

    def __enter__(self) -> None:
        clusters = _clusters()
        self._nesting_level = len(clusters)
        if self._with_time:
            self._monotonic_ns = time.monotonic_ns()
        if is_unsuppressed_level(self._level):
            self.inform_title()
        clusters.append(self)

    def __exit__(self, exc_type, exc_val, exc_tb):
        nesting = self._nesting_level
        self._nesting_level = None

        clusters = _clusters()
        if clusters and clusters[-1] is self:
            del clusters[-1]

        if self._did_inform and self._is_progress:
            if exc_val is None:
                result = f'{get_level_indicator(min(self._level, INFO))} done.'
            else:
                result = f'{get_level_indicator(max(self._level, ERROR))} failed with {exc_val.__class__.__qualname__}.'

            if self._monotonic_ns is not None:
                result = _append_to_title(result, _get_relative_time_suffix(time.monotonic_ns()))

            _write(_indent_message(result, nesting + 1))


def inform(message, *, level: int = INFO, with_time: bool = False) -> bool:
    level = _checked_level(level)

    formatted_message = format_message(message, level=level)

    if not is_unsuppressed_level(level):
        return False

    if with_time:
        formatted_message = _append_to_title(formatted_message, _get_relative_time_suffix(time.monotonic_ns()))

    clusters = _clusters()
    if clusters:
        clusters[-1].inform_title()

    _write(_indent_message(formatted_message, len(clusters)))
    return True
