# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Build static libraries incrementally and in parallel."""

from ._error import *
from ._process import *
from ._backend import *
from ._cache import *
from ._target import *
from ._pipeline import *
from ._scheduler import *
from ._program import *

# inter-dependencies and import order of modules of this package
# (later line may depend on earlier lines, import import in the following order):
#
#                 depends on
#
#     _platform      ->
#     _error         ->
#     _process       ->
#
#     _backend       ->   _platform   _error
#     _cache         ->               _error
#     _target        ->               _error               _backend   _cache
#     _pipeline      ->               _error   _process    _backend   _cache   _target
#     _scheduler     ->   _platform   _error   _process               _cache   _target   _pipeline
#     _program       ->               _error   _process    _backend            _target
