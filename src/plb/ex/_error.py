# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Exception classes for plb.ex.
This is an implementation detail - do not import it unless you know what you are doing."""

__all__ = [
    'ConfigurationError',
    'UsageError',
    'ToolchainError',
    'BuildError',
    'StateError',
    'CacheFileError',
    'ArtifactAccessError'
]

from typing import Iterable, Optional
from .. import ut


class ConfigurationError(Exception):
    # broken build description: never recoverable
    pass


class UsageError(ConfigurationError):
    pass


class ToolchainError(Exception):
    pass


class BuildError(Exception):
    def __init__(self, *args, failed_target_names: Iterable[str] = ()):
        super().__init__(*args)
        self.failed_target_names = tuple(failed_target_names)


class StateError(RuntimeError):
    pass


class CacheFileError(Exception):
    def __init__(self, *args, oserror: Optional[OSError] = None):
        super().__init__(*args)
        self.oserror = oserror


class ArtifactAccessError(Exception):
    def __init__(self, *args, oserror: Optional[OSError] = None):
        super().__init__(*args)
        self.oserror = oserror


ut.set_module_name_to_parent_by_name(vars(), __all__)
