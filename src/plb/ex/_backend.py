# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Command lines for compiler backends.
This is an implementation detail - do not import it unless you know what you are doing."""

# GCC: <https://gcc.gnu.org/onlinedocs/gcc/Invoking-GCC.html>
# Clang: <https://clang.llvm.org/docs/ClangCommandLineReference.html>
# MSVC cl: <https://docs.microsoft.com/en-us/cpp/build/reference/compiler-options-listed-by-category>
#
# Usage example:
#
#   import plb.ex
#
#   backend = plb.ex.create_backend('gcc')
#   command = backend.synthesize(plb.ex.BuildMode.RELEASE, '-DNDEBUG', 'src/a.c', 'build/a.obj')
#   # 'gcc -Ofast -DNDEBUG -c src/a.c -o build/a.obj'

__all__ = [
    'BuildMode',
    'PREPROCESSED_EXTENSIONS', 'OBJECT_EXTENSION',
    'is_preprocessed_path', 'is_object_path',
    'Backend', 'GccBackend', 'ClangBackend', 'MsvcBackend',
    'BACKEND_CLASS_BY_NAME', 'create_backend'
]

import os
import enum
from typing import Dict, Iterable, Optional, Sequence, Type

from .. import ut
from .. import fs
from . import _platform
from . import _error

# extensions (without '.') of preprocessed C and C++ source files
PREPROCESSED_EXTENSIONS = ('i', 'ii')

OBJECT_EXTENSION = 'obj'


@enum.unique
class BuildMode(enum.Enum):
    DEBUG = 'debug'
    RELEASE = 'release'


def is_preprocessed_path(path: fs.PathLike) -> bool:
    return fs.has_extension(path, *PREPROCESSED_EXTENSIONS)


def is_object_path(path: fs.PathLike) -> bool:
    return fs.has_extension(path, OBJECT_EXTENSION)


class Backend:
    # A compiler backend: compiler and archiver with their command-line syntax.
    #
    # A subclass defines a fixed set of flags by overriding the class attributes below and the methods
    # get_*_arguments(). Subclasses can replace the executables, e.g. to use a cross compiler.
    #
    # synthesize() is a pure function of its arguments: for the same arguments it always returns the same string.
    # This is required since the command line is part of the compile cache.

    NAME = ''  # define in subclass

    # Program (with fixed leading arguments) that compiles, preprocesses and links.
    EXECUTABLE = ''  # define in subclass

    # Program (with fixed leading arguments) that creates static libraries.
    ARCHIVER = ''  # define in subclass

    # Argument by build mode.
    OPTIMIZATION_ARGUMENT_BY_MODE: Dict[BuildMode, str] = {}

    # Argument that suppresses linking.
    COMPILE_ONLY_ARGUMENT = ''

    def __init__(self, *, platform_name: Optional[str] = None):
        if not self.NAME or not self.EXECUTABLE:
            raise NotImplementedError(f'{self.__class__.__qualname__!r} is not a complete backend')
        self.platform_name = _platform.PLATFORM_NAME if platform_name is None else str(platform_name)
        if self.platform_name not in _platform.ARCHIVE_SUFFIX_BY_PLATFORM_NAME:
            raise ValueError(f"unknown platform name: {self.platform_name!r}")

    @property
    def archive_suffix(self) -> str:
        return _platform.ARCHIVE_SUFFIX_BY_PLATFORM_NAME[self.platform_name]

    @property
    def executable_suffix(self) -> str:
        return _platform.EXECUTABLE_SUFFIX_BY_PLATFORM_NAME[self.platform_name]

    def get_archiver(self) -> str:
        return self.ARCHIVER

    def get_preprocess_arguments(self, output_path: str) -> Sequence[str]:
        raise NotImplementedError

    def get_preprocessed_input_arguments(self) -> Sequence[str]:
        # arguments that suppress preprocessing of an input which is already preprocessed
        return ()

    def get_output_arguments(self, input_path: str, output_path: str, *,
                             is_preprocess: bool, is_object: bool) -> Sequence[str]:
        raise NotImplementedError

    def get_link_arguments(self, link_flags: str) -> Sequence[str]:
        return (link_flags,)

    def get_archive_arguments(self, archive_path: str, object_paths: Sequence[str]) -> Sequence[str]:
        raise NotImplementedError

    def synthesize(self, mode: BuildMode, flags: str, input_path: fs.PathLike, output_path: fs.PathLike,
                   link_flags: str = '') -> str:
        # Return the command line that produces *output_path* from *input_path*.
        #
        # The kind of the command is determined by the extensions of the paths:
        #
        #   - preprocess if *output_path* is a preprocessed file ('.i', '.ii')
        #   - compile without linking if *output_path* is an object file ('.obj')
        #   - link otherwise
        #
        # If *input_path* is a preprocessed file, the compiler is told not to preprocess it again.
        # *input_path* may also be a space-separated list of paths (e.g. when linking).

        if not isinstance(mode, BuildMode):
            raise TypeError(f"'mode' must be a BuildMode, not {mode!r}")
        input_path = os.fspath(input_path)
        output_path = os.fspath(output_path)
        flags = str(flags).strip()
        link_flags = str(link_flags or '').strip()

        is_preprocess = is_preprocessed_path(output_path)
        input_is_preprocessed = is_preprocessed_path(input_path)
        if is_preprocess and input_is_preprocessed:
            raise ValueError(f"cannot preprocess a preprocessed file: {input_path!r}")
        is_object = is_object_path(output_path)

        arguments = [self.EXECUTABLE, self.OPTIMIZATION_ARGUMENT_BY_MODE[mode]]
        if is_preprocess:
            arguments += self.get_preprocess_arguments(output_path)
        if input_is_preprocessed:
            arguments += self.get_preprocessed_input_arguments()
        if flags:
            arguments.append(flags)
        if is_object:
            arguments.append(self.COMPILE_ONLY_ARGUMENT)
        arguments += self.get_output_arguments(input_path, output_path, is_preprocess=is_preprocess,
                                               is_object=is_object)
        if link_flags:
            arguments += self.get_link_arguments(link_flags)

        return ' '.join(a for a in arguments if a)

    def synthesize_archive(self, archive_path: fs.PathLike, object_paths: Iterable[fs.PathLike]) -> str:
        object_paths = [os.fspath(p) for p in object_paths]
        if not object_paths:
            raise ValueError("'object_paths' must not be empty")
        arguments = [self.get_archiver()] + list(self.get_archive_arguments(os.fspath(archive_path), object_paths))
        return ' '.join(a for a in arguments if a)

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}(platform_name={self.platform_name!r})'


class _GnuLikeBackend(Backend):
    ARCHIVER = 'ar'

    OPTIMIZATION_ARGUMENT_BY_MODE = {
        BuildMode.DEBUG: '-g',
        BuildMode.RELEASE: '-Ofast'
    }

    COMPILE_ONLY_ARGUMENT = '-c'

    def get_preprocess_arguments(self, output_path: str) -> Sequence[str]:
        return '-E',

    def get_output_arguments(self, input_path: str, output_path: str, *,
                             is_preprocess: bool, is_object: bool) -> Sequence[str]:
        return input_path, '-o', output_path

    def get_archive_arguments(self, archive_path: str, object_paths: Sequence[str]) -> Sequence[str]:
        return ['rcs', archive_path] + list(object_paths)


class GccBackend(_GnuLikeBackend):
    NAME = 'gcc'
    EXECUTABLE = 'gcc'

    def get_preprocessed_input_arguments(self) -> Sequence[str]:
        return '-fpreprocessed',


class ClangBackend(_GnuLikeBackend):
    NAME = 'clang'
    EXECUTABLE = 'clang'

    # clang detects preprocessed input by its extension

    def get_archiver(self) -> str:
        if self.platform_name == 'windows' and self.ARCHIVER == _GnuLikeBackend.ARCHIVER:
            return 'llvm-ar'
        return self.ARCHIVER


class MsvcBackend(Backend):
    NAME = 'msvc'
    EXECUTABLE = 'cl /nologo /diagnostics:column /FC'
    ARCHIVER = 'lib /nologo'

    OPTIMIZATION_ARGUMENT_BY_MODE = {
        BuildMode.DEBUG: '/Zi',
        BuildMode.RELEASE: '/O2'
    }

    COMPILE_ONLY_ARGUMENT = '/c'

    def get_preprocess_arguments(self, output_path: str) -> Sequence[str]:
        return '/P', '/Fi' + output_path

    def get_output_arguments(self, input_path: str, output_path: str, *,
                             is_preprocess: bool, is_object: bool) -> Sequence[str]:
        # https://docs.microsoft.com/en-us/cpp/build/reference/output-file-f-options
        arguments = [input_path]
        if is_preprocess:
            return arguments  # /Fi already given
        arguments.append('/Fd' + fs.with_replaced_extension(output_path, 'pdb'))
        object_path = output_path if is_object else fs.with_replaced_extension(output_path, OBJECT_EXTENSION)
        arguments.append('/Fo' + object_path)
        if not is_object:
            arguments.append('/Fe' + output_path)
        return arguments

    def get_link_arguments(self, link_flags: str) -> Sequence[str]:
        return '-link', '-incremental:no', link_flags

    def get_archive_arguments(self, archive_path: str, object_paths: Sequence[str]) -> Sequence[str]:
        return ['-out:' + archive_path] + list(object_paths)


BACKEND_CLASS_BY_NAME: Dict[str, Type[Backend]] = {
    c.NAME: c for c in (GccBackend, ClangBackend, MsvcBackend)
}


def create_backend(name: str, *, platform_name: Optional[str] = None) -> Backend:
    # Return a backend of the class with name *name* that is selectable on the platform *platform_name*
    # (the running platform if None).

    platform_name = _platform.PLATFORM_NAME if platform_name is None else str(platform_name)
    names = _platform.BACKEND_NAMES_BY_PLATFORM_NAME.get(platform_name, ())
    if name not in names:
        names_str = ut.quote_for_message(names)
        raise _error.ConfigurationError(
            f"unsupported backend: {name!r}\n"
            f"  | supported on {platform_name!r}: {names_str}")
    return BACKEND_CLASS_BY_NAME[name](platform_name=platform_name)
