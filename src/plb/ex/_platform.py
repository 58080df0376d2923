# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Facts about the platform the build runs on.
This is an implementation detail - do not import it unless you know what you are doing."""

__all__ = []

import sys
import os

# 'windows' or 'posix'
PLATFORM_NAME = 'windows' if os.name == 'nt' else 'posix'

# suffix of static libraries (archives) by platform name
ARCHIVE_SUFFIX_BY_PLATFORM_NAME = {
    'posix': '.a',
    'windows': '.lib'
}

# suffix of executables by platform name
EXECUTABLE_SUFFIX_BY_PLATFORM_NAME = {
    'posix': '.bin',
    'windows': '.exe'
}

# names of selectable backends by platform name, default first
BACKEND_NAMES_BY_PLATFORM_NAME = {
    'posix': ('gcc', 'clang'),
    'windows': ('msvc', 'clang')
}


def _tracer_pid_from_proc_status(status_path: str = '/proc/self/status') -> int:
    # Return the value of 'TracerPid' in *status_path* (Linux), 0 if not available.
    try:
        with open(status_path, 'r', encoding='ascii', errors='replace') as f:
            for line in f:
                name, sep, value = line.partition(':')
                if sep and name == 'TracerPid':
                    return int(value.strip() or '0', 10)
    except (OSError, ValueError):
        pass
    return 0


def is_debugger_attached() -> bool:
    # Python-level debugger (pdb, IDE debuggers) or native tracer (gdb, strace)
    if sys.gettrace() is not None:
        return True
    return _tracer_pid_from_proc_status() != 0
