# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Log levels for plb.di by category."""

from .. import di

command: int = di.INFO
helper_execution: int = di.DEBUG + 7

cache_load: int = di.DEBUG + 3
cache_rejection: int = di.WARNING
cache_serialization: int = di.INFO
redo_reason: int = di.DEBUG + 5

skip: int = di.INFO
stale_object_removal: int = di.INFO
fetch: int = di.INFO

job_scheduling: int = di.DEBUG + 3
timing: int = di.INFO

del di
