# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""(Technical) utilities.
This is an implementation detail - do not import it unless you know what you are doing."""

__all__ = []

from typing import Any, Dict, Iterable


def set_module_name_to_parent_by_name(obj_by_name: Dict[str, Any], names: Iterable):
    # e.g. plb.ex._error.BuildError -> plb.ex.BuildError
    for name in names:
        obj = obj_by_name[name]
        obj.__module__ = obj.__module__.rsplit('.', 1)[0]


def exception_to_line(exc: BaseException, force_classname: bool = False) -> str:
    # One-line description of *exc* for a message line: the stripped first line of its message,
    # preceded by the qualified class name if *force_classname* or if the message is empty.
    lines = str(exc).splitlines()
    message = lines[0].replace('\t', ' ').strip() if lines else ''
    if message and not force_classname:
        return message

    cls = type(exc)
    qualified_name = f'{cls.__module__}.{cls.__qualname__}'
    return f'{qualified_name}: {message}' if message else qualified_name


def format_time_ns(time_ns: int, number_of_decimal_places: int = 9) -> str:
    # Decimal representation of *time_ns* nanoseconds in seconds with *number_of_decimal_places* (at least 1)
    # decimal places. Exact for 9 or more decimal places, truncated (towards 0) for less.
    time_ns = int(time_ns)
    sign = '-' if time_ns < 0 else ''  # also for '-0.000'
    seconds, fraction_ns = divmod(abs(time_ns), 1000_000_000)

    number_of_decimal_places = max(1, int(number_of_decimal_places))
    fraction = f'{fraction_ns:09d}'.ljust(number_of_decimal_places, '0')[:number_of_decimal_places]
    return f'{sign}{seconds}.{fraction}'


def quote_for_message(items: Iterable[str]) -> str:
    return ', '.join(repr(str(s)) for s in items)


def escape_control_characters(text: str) -> str:
    # Replace each ASCII control character in *text* by its escape sequence in a Python str literal
    # (e.g. '\t' by '\\t'), so that *text* can be output as a single message line.
    return ''.join(repr(c)[1:-1] if c < ' ' else c for c in text)
