# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Projects and the static library targets they own.
This is an implementation detail - do not import it unless you know what you are doing."""

__all__ = ['Language', 'BuildStatus', 'Project', 'LibraryTarget']

import os
import enum
from typing import List, Optional, Sequence, Tuple, Union

from .. import ut
from .. import fs
from .. import cf
from . import _error
from . import _backend
from . import _cache


@enum.unique
class Language(enum.Enum):
    C = 'c'
    CPLUSPLUS = 'c++'

    @property
    def preprocessed_extension(self) -> str:
        return 'ii' if self is Language.CPLUSPLUS else 'i'


@enum.unique
class BuildStatus(enum.Enum):
    NOT_LAUNCHED = 0
    LAUNCHED = 1
    COMPLETED_SUCCESS = 2
    COMPLETED_FAILED = 3


class Project:
    # A build of all targets with one backend in one build mode.
    #
    # 'previous_cache' is the compile cache of the last run (read-only).
    # 'current_cache' is filled after all build jobs are completed.

    def __init__(self, backend: Union[str, _backend.Backend], mode: Union[str, _backend.BuildMode],
                 root_path: fs.PathLike, *, output_path: Optional[fs.PathLike] = None):
        if isinstance(backend, str):
            backend = _backend.create_backend(backend)
        if not isinstance(backend, _backend.Backend):
            raise TypeError(f"'backend' must be a str or a Backend, not {backend!r}")
        if not isinstance(mode, _backend.BuildMode):
            try:
                mode = _backend.BuildMode(mode)
            except ValueError:
                raise _error.ConfigurationError(f"unsupported build mode: {mode!r}") from None

        self._backend = backend
        self._mode = mode
        self._root_path = os.path.abspath(os.fspath(root_path))

        if output_path is None:
            output_path = fs.join(self._root_path, cf.output_directory_format.format(backend=backend.NAME,
                                                                                    mode=mode.value))
        self._output_path = os.path.abspath(os.fspath(output_path))

        self._previous_cache = _cache.CompileCache()
        self.current_cache = _cache.CompileCache()
        self._targets: List['LibraryTarget'] = []

    @property
    def backend(self) -> _backend.Backend:
        return self._backend

    @property
    def mode(self) -> _backend.BuildMode:
        return self._mode

    @property
    def root_path(self) -> str:
        return self._root_path

    @property
    def output_path(self) -> str:
        return self._output_path

    @property
    def cache_path(self) -> str:
        return fs.join(self._output_path, cf.cache_file_name)

    @property
    def previous_cache(self) -> _cache.CompileCache:
        return self._previous_cache

    @property
    def targets(self) -> Tuple['LibraryTarget', ...]:
        return tuple(self._targets)

    def load_cache(self) -> _cache.CompileCache:
        self._previous_cache = _cache.CompileCache.load(self.cache_path)
        return self._previous_cache

    def save_cache(self):
        fs.ensure_directory(self._output_path)
        self.current_cache.save(self.cache_path)

    def add_library(self, name: str, language: 'Language', include_path: fs.PathLike, flags: str,
                    source_patterns: Sequence[str]) -> 'LibraryTarget':
        target = LibraryTarget(self, name, language, include_path, flags, source_patterns)
        if any(t.name == target.name for t in self._targets):
            raise _error.ConfigurationError(f"library name already used in project: {target.name!r}")
        self._targets.append(target)
        return target

    def __repr__(self) -> str:
        return f'Project({self._backend.NAME!r}, {self._mode.value!r}, {self._root_path!r})'


class LibraryTarget:
    # A static library built from the source files matching glob patterns in the source directory '<root>/<name>'.
    #
    # Do not construct directly; use Project.add_library().

    def __init__(self, project: Project, name: str, language: Language, include_path: fs.PathLike, flags: str,
                 source_patterns: Sequence[str]):
        if not isinstance(project, Project):
            raise TypeError(f"'project' must be a Project, not {project!r}")
        name = str(name)
        if not name or name in (os.curdir, os.pardir) or fs.last_component(name) != name:
            raise _error.ConfigurationError(f"not a library name: {name!r}")
        if not isinstance(language, Language):
            raise TypeError(f"'language' must be a Language, not {language!r}")
        if isinstance(source_patterns, str):
            raise TypeError("'source_patterns' must be a sequence of str, not a str")
        source_patterns = tuple(str(p) for p in source_patterns)
        if not source_patterns:
            raise _error.ConfigurationError(f"no source patterns for library {name!r}")

        self.project = project
        self.name = name
        self.language = language

        self.source_path = fs.join(project.root_path, name)
        self.object_path = fs.join(project.output_path, name)
        self.archive_path = fs.join(project.output_path, name + project.backend.archive_suffix)

        self.include_path = os.path.normpath(fs.join(self.source_path, os.fspath(include_path)))
        self.include_flag = f'-I{self.include_path}'
        self.compile_flags = f'{str(flags).strip()} {self.include_flag}'.strip()

        self.source_patterns = source_patterns

        # True if the source directory has to be fetched in this run
        self.not_downloaded = not fs.is_directory(self.source_path) or fs.is_empty_directory(self.source_path)

        self._status = BuildStatus.NOT_LAUNCHED
        self._input_paths: Optional[Tuple[str, ...]] = None

    @property
    def status(self) -> BuildStatus:
        return self._status

    @property
    def input_paths(self) -> Optional[Tuple[str, ...]]:
        return self._input_paths

    def add_compile_flags(self, flags: str):
        # For libraries that include each other's headers.
        if self._status is not BuildStatus.NOT_LAUNCHED:
            raise _error.StateError(f"compile flags of library {self.name!r} changed after launch")
        flags = str(flags).strip()
        if flags:
            self.compile_flags = f'{self.compile_flags} {flags}'

    def expand_sources(self) -> Tuple[str, ...]:
        # Find all source files matching the source patterns (once).
        # Raises ConfigurationError if no file matches.

        if self._input_paths is not None:
            return self._input_paths

        try:
            paths = fs.expand_glob_patterns(self.source_path, self.source_patterns)
        except ValueError as e:
            raise _error.ConfigurationError(f"invalid source pattern for library {self.name!r}: {e}") from None
        if not paths:
            patterns = ut.quote_for_message(self.source_patterns)
            msg = (
                f"no source file of library {self.name!r} matches\n"
                f"  | directory: {self.source_path!r}\n"
                f"  | patterns: {patterns}"
            )
            raise _error.ConfigurationError(msg)

        path_by_name = {}
        for p in paths:
            name = os.path.splitext(fs.last_component(p))[0]
            other = path_by_name.get(name)
            if other is not None:
                msg = (
                    f"two source files of library {self.name!r} would share one object file\n"
                    f"  | first: {other!r}\n"
                    f"  | second: {p!r}"
                )
                raise _error.ConfigurationError(msg)
            path_by_name[name] = p

        self._input_paths = tuple(paths)
        return self._input_paths

    def get_preprocessed_path(self, input_path: fs.PathLike) -> str:
        name = fs.with_replaced_extension(fs.last_component(input_path), self.language.preprocessed_extension)
        return fs.join(self.object_path, name)

    def get_object_path(self, input_path: fs.PathLike) -> str:
        name = fs.with_replaced_extension(fs.last_component(input_path), _backend.OBJECT_EXTENSION)
        return fs.join(self.object_path, name)

    def mark_launched(self):
        if self._status is not BuildStatus.NOT_LAUNCHED:
            raise _error.StateError(f"library {self.name!r} already launched (status is {self._status.name})")
        self._status = BuildStatus.LAUNCHED

    def mark_completed(self, success: bool):
        if self._status is not BuildStatus.LAUNCHED:
            raise _error.StateError(f"library {self.name!r} not running (status is {self._status.name})")
        self._status = BuildStatus.COMPLETED_SUCCESS if success else BuildStatus.COMPLETED_FAILED

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__} {self.name!r} {self._status.name}>'
