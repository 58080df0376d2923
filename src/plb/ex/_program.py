# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Build of executables: the main program of a project and helper programs that generate source files.
This is an implementation detail - do not import it unless you know what you are doing."""

__all__ = ['build_executable', 'compile_and_run_generator']

import os
from typing import Iterable, Optional, Sequence, Union

from .. import ut
from .. import di
from .. import fs
from .. import cf
from . import _error
from . import _process
from . import _backend
from . import _target


def _run_checked(runner: _process.ProcessRunner, command: str, *, stdout_path: Optional[str] = None):
    di.inform(ut.escape_control_characters(command), level=cf.level.command)
    handle = runner.launch(command, wait=True, stdout_path=stdout_path)
    if handle.status is not _process.ProcessStatus.COMPLETED_SUCCESS:
        msg = f"command failed: {command!r}"
        if handle.returncode is not None:
            msg += f"\n  | exit status: {handle.returncode}"
        raise _error.ToolchainError(msg)


def _archive_path_of(library: Union[str, os.PathLike, _target.LibraryTarget]) -> str:
    if isinstance(library, _target.LibraryTarget):
        return library.archive_path
    return os.fspath(library)


def build_executable(project: _target.Project, source_path: fs.PathLike, flags: str, output_path: fs.PathLike,
                     libraries: Iterable[Union[str, os.PathLike, _target.LibraryTarget]] = (),
                     link_flags: str = '', *, language: _target.Language = _target.Language.C,
                     runner: Optional[_process.ProcessRunner] = None) -> str:
    # Compile the source file *source_path* and link it with the static libraries *libraries* to the
    # executable *output_path*.
    #
    # The preprocessed source file (for inspection) and the object file are placed in the output directory of
    # *project*.
    # Returns the absolute path of the executable.
    # Raises ToolchainError if a command fails.

    if runner is None:
        with _process.ProcessRunner() as runner:
            return build_executable(project, source_path, flags, output_path, libraries, link_flags,
                                    language=language, runner=runner)

    source_path = os.path.abspath(os.fspath(source_path))
    output_path = os.path.abspath(os.fspath(output_path))
    archive_paths = [_archive_path_of(lib) for lib in libraries]

    fs.ensure_directory(project.output_path)
    name = fs.last_component(source_path)
    preprocessed_path = fs.join(project.output_path,
                                fs.with_replaced_extension(name, language.preprocessed_extension))
    object_path = fs.join(project.output_path, fs.with_replaced_extension(name, _backend.OBJECT_EXTENSION))

    backend = project.backend
    preprocess_command = backend.synthesize(project.mode, flags, source_path, preprocessed_path)
    di.inform(ut.escape_control_characters(preprocess_command), level=cf.level.command)
    preprocess_handle = runner.launch(preprocess_command)

    _run_checked(runner, backend.synthesize(project.mode, flags, source_path, object_path))

    link_input = ' '.join([object_path] + archive_paths)
    _run_checked(runner, backend.synthesize(project.mode, flags, link_input, output_path, link_flags))

    if not runner.wait_all([preprocess_handle]):
        raise _error.ToolchainError(f"command failed: {preprocess_command!r}")

    return output_path


def compile_and_run_generator(project: _target.Project, source_paths: Sequence[fs.PathLike], flags: str,
                              arguments: str, output_path: fs.PathLike, *,
                              runner: Optional[_process.ProcessRunner] = None) -> bool:
    # Generate the file *output_path* by a program built from *source_paths* that writes it to its standard
    # output, unless *output_path* already exists.
    #
    # The program is placed next to the last of the *source_paths* with the platform's executable suffix.
    # Returns True if the program was run, False if *output_path* already existed.
    # Raises ToolchainError if a command fails.

    output_path = os.path.abspath(os.fspath(output_path))
    if fs.is_regular_file(output_path):
        di.inform(f'skip generation of {output_path!r}', level=cf.level.skip)
        return False

    source_paths = [os.path.abspath(os.fspath(p)) for p in source_paths]
    if not source_paths:
        raise ValueError("'source_paths' must not be empty")

    if runner is None:
        with _process.ProcessRunner() as runner:
            return compile_and_run_generator(project, source_paths, flags, arguments, output_path, runner=runner)

    executable_path = fs.with_replaced_extension(source_paths[-1], project.backend.executable_suffix[1:])
    _run_checked(runner, project.backend.synthesize(project.mode, flags, ' '.join(source_paths), executable_path))

    run_command = f'{executable_path} {arguments}'.strip()
    try:
        _run_checked(runner, run_command, stdout_path=output_path)
    except _error.ToolchainError:
        fs.remove_file_if_exists(output_path)  # would be skipped next time otherwise
        raise

    return True
