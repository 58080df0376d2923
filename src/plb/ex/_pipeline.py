# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Incremental build of one static library: preprocess, compile what changed, archive.
This is an implementation detail - do not import it unless you know what you are doing."""

# The build of a library 'l' consists of these steps:
#
#   1. Create the object directory of 'l'.
#   2. Find the source files of 'l' (at least one).
#   3. List the object files in the object directory; remove all other files there.
#   4. Preprocess all source files in parallel (always).
#   5. For each source file, compare the hash of its preprocessed output and its compile command with the
#      compile cache of the last run. Compile (in parallel) each source file whose entry differs or whose
#      object file does not exist.
#   6. Remove all object files of step 3 that do not belong to a source file of step 2.
#   7. Create the archive of 'l' if it does not exist or is older than an object file, or if step 6 removed an
#      object file.
#
# Each step is only executed if the previous steps succeeded.
# The compile cache entry of every source file of 'l' is recorded in a cache local to the build of 'l'.

__all__ = ['build_library']

import time
from typing import Dict, List, Optional

from .. import ut
from .. import di
from .. import fs
from .. import cf
from . import _error
from . import _process
from . import _backend
from . import _cache
from . import _target


def _list_existing_objects(target: _target.LibraryTarget) -> Dict[str, bool]:
    # Return the object files in the object directory of *target*, each marked as not claimed.
    # Removes every other file from the object directory (e.g. preprocessed files of the last run).

    is_claimed_by_object_path = {}
    for p in fs.list_directory_files(target.object_path):
        if _backend.is_object_path(p):
            is_claimed_by_object_path[p] = False
        else:
            fs.remove_file_if_exists(p)
    return is_claimed_by_object_path


def _preprocess(target: _target.LibraryTarget, runner: _process.ProcessRunner) -> Optional[List[str]]:
    # Returns the paths of the preprocessed files (in the order of the input paths), None on failure.

    project = target.project
    preprocessed_paths = []
    handles = []
    for input_path in target.input_paths:
        preprocessed_path = target.get_preprocessed_path(input_path)
        command = project.backend.synthesize(project.mode, target.compile_flags, input_path, preprocessed_path)
        handles.append(runner.launch(command))
        preprocessed_paths.append(preprocessed_path)

    if not runner.wait_all(handles):
        failed_count = sum(1 for h in handles if h.status is not _process.ProcessStatus.COMPLETED_SUCCESS)
        di.inform(f'preprocessing of {failed_count} source file(s) of {target.name!r} failed', level=di.ERROR)
        return None
    return preprocessed_paths


def _compile_changed(target: _target.LibraryTarget, runner: _process.ProcessRunner, preprocessed_paths: List[str],
                     is_claimed_by_object_path: Dict[str, bool],
                     local_cache: _cache.CompileCache) -> Optional[List[str]]:
    # Returns the paths of the object files (in the order of the input paths), None on failure.

    project = target.project
    object_paths = []
    handles = []

    for input_path, preprocessed_path in zip(target.input_paths, preprocessed_paths):
        object_path = target.get_object_path(input_path)
        object_paths.append(object_path)
        if object_path in is_claimed_by_object_path:
            is_claimed_by_object_path[object_path] = True

        # compile from the source file (not the preprocessed one): better diagnostics
        command = project.backend.synthesize(project.mode, target.compile_flags, input_path, object_path)
        preprocessed_hash = _cache.hash_file(preprocessed_path)

        redo_reason = project.previous_cache.compare(object_path, command, preprocessed_hash)
        if redo_reason is None and not fs.is_regular_file(object_path):
            redo_reason = 'object file does not exist'

        if redo_reason is not None:
            di.inform(f'compile {object_path!r}\n  | reason: {redo_reason}', level=cf.level.redo_reason)
            di.inform(ut.escape_control_characters(command), level=cf.level.command)
            handles.append(runner.launch(command))

        local_cache.record(object_path, command, preprocessed_hash)

    if not handles:
        di.inform(f'skip compile {target.name}', level=cf.level.skip)

    if not runner.wait_all(handles):
        failed_count = sum(1 for h in handles if h.status is not _process.ProcessStatus.COMPLETED_SUCCESS)
        di.inform(f'compilation of {failed_count} source file(s) of {target.name!r} failed', level=di.ERROR)
        return None
    return object_paths


def _remove_stale_objects(target: _target.LibraryTarget, is_claimed_by_object_path: Dict[str, bool]) -> int:
    removed_count = 0
    for object_path, is_claimed in is_claimed_by_object_path.items():
        if not is_claimed:
            di.inform(f'remove stale object file {object_path!r}', level=cf.level.stale_object_removal)
            fs.remove_file_if_exists(object_path)
            removed_count += 1
    return removed_count


def _archive_if_outdated(target: _target.LibraryTarget, runner: _process.ProcessRunner,
                         object_paths: List[str], *, force: bool = False) -> bool:
    # *force*: archive even if no object file is newer than the archive (e.g. after an object file was removed)
    try:
        latest_object_mtime_ns = fs.find_latest_mtime_ns(object_paths)
    except (OSError, ValueError) as e:
        msg = (
            f"could not determine the mtime of the object files of {target.name!r}\n"
            f"  | reason: {ut.exception_to_line(e)}"
        )
        raise _error.ArtifactAccessError(msg, oserror=e if isinstance(e, OSError) else None) from None

    archive_mtime_ns = fs.get_mtime_ns(target.archive_path)
    if not force and archive_mtime_ns is not None and latest_object_mtime_ns <= archive_mtime_ns:
        di.inform(f'skip archive {target.name}', level=cf.level.skip)
        return True

    command = target.project.backend.synthesize_archive(target.archive_path, object_paths)
    di.inform(ut.escape_control_characters(command), level=cf.level.command)
    fs.remove_file_if_exists(target.archive_path)  # the archiver would add to an existing archive
    handle = runner.launch(command, wait=True)
    if handle.status is not _process.ProcessStatus.COMPLETED_SUCCESS:
        di.inform(f'archiving of {target.name!r} failed', level=di.ERROR)
        return False
    return True


def _build(target: _target.LibraryTarget, runner: _process.ProcessRunner, local_cache: _cache.CompileCache) -> bool:
    fs.ensure_directory(target.object_path)
    target.expand_sources()
    is_claimed_by_object_path = _list_existing_objects(target)

    preprocessed_paths = _preprocess(target, runner)
    if preprocessed_paths is None:
        return False

    object_paths = _compile_changed(target, runner, preprocessed_paths, is_claimed_by_object_path, local_cache)
    if object_paths is None:
        return False

    removed_count = _remove_stale_objects(target, is_claimed_by_object_path)
    return _archive_if_outdated(target, runner, object_paths, force=removed_count > 0)


def build_library(target: _target.LibraryTarget,
                  runner: Optional[_process.ProcessRunner] = None) -> _cache.CompileCache:
    # Build the static library of *target* incrementally with respect to the compile cache of the last run of
    # its project.
    #
    # Returns the compile cache entries of all object files of *target*.
    # The status of *target* is COMPLETED_SUCCESS or COMPLETED_FAILED afterwards, even if an exception is raised.

    if not isinstance(target, _target.LibraryTarget):
        raise TypeError(f"'target' must be a LibraryTarget, not {target!r}")

    if runner is None:
        with _process.ProcessRunner() as runner:
            return build_library(target, runner)

    target.mark_launched()
    start_ns = time.monotonic_ns()
    local_cache = _cache.CompileCache()
    success = False
    try:
        success = _build(target, runner, local_cache)
    finally:
        target.mark_completed(success)
        elapsed_ms = (time.monotonic_ns() - start_ns) / 1e6
        di.inform(f'{target.name} compile step: {elapsed_ms:.2f} ms', level=cf.level.timing)

    return local_cache
