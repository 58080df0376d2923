# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Execution of the builds of independent libraries as jobs, one worker thread per job.
This is an implementation detail - do not import it unless you know what you are doing."""

__all__ = [
    'ThreadMode', 'Job',
    'choose_thread_mode', 'execute_jobs', 'build_libraries'
]

import enum
import time
import concurrent.futures
from typing import Callable, Optional, Sequence

from .. import ut
from .. import di
from .. import cf
from . import _error
from . import _platform
from . import _process
from . import _cache
from . import _target
from . import _pipeline


@enum.unique
class ThreadMode(enum.Enum):
    MULTI = 'multi'
    SINGLE = 'single'


class Job:
    # Build of one library target by *function*, executed exactly once.
    #
    # *function* is called with the target and a ProcessRunner owned by the job and must return the
    # compile cache entries of the target.

    def __init__(self, function: Callable[[_target.LibraryTarget, _process.ProcessRunner], _cache.CompileCache],
                 target: _target.LibraryTarget):
        if not callable(function):
            raise TypeError(f"'function' must be callable, not {function!r}")
        if not isinstance(target, _target.LibraryTarget):
            raise TypeError(f"'target' must be a LibraryTarget, not {target!r}")
        self.function = function
        self.target = target
        self._was_run = False

    @property
    def was_run(self) -> bool:
        return self._was_run

    def run(self) -> _cache.CompileCache:
        if self._was_run:
            raise _error.StateError(f'job for library {self.target.name!r} already run')
        self._was_run = True

        di.inform(f'start job for library {self.target.name!r}', level=cf.level.job_scheduling)
        # each job has its own asyncio event loop in the thread that runs it
        with _process.ProcessRunner() as runner:
            local_cache = self.function(self.target, runner)
        if not isinstance(local_cache, _cache.CompileCache):
            raise TypeError(f'job function must return a CompileCache, not {local_cache!r}')
        return local_cache

    def __repr__(self) -> str:
        return f'Job({getattr(self.function, "__qualname__", self.function)!r}, {self.target!r})'


def choose_thread_mode() -> ThreadMode:
    if cf.thread_mode is not None:
        try:
            return ThreadMode(cf.thread_mode)
        except ValueError:
            raise _error.ConfigurationError(f"invalid value of 'plb.cf.thread_mode': {cf.thread_mode!r}") from None
    # debuggers often do not cope well with threads
    return ThreadMode.SINGLE if _platform.is_debugger_attached() else ThreadMode.MULTI


def _expand_all_sources(jobs: Sequence[Job]):
    for job in jobs:
        job.target.expand_sources()


def execute_jobs(jobs: Sequence[Job], mode: Optional[ThreadMode] = None) -> _cache.CompileCache:
    # Run all *jobs* and wait for all of them to complete, in parallel (one thread per job) if *mode* is MULTI and
    # one after the other in the order of *jobs* if *mode* is SINGLE.
    #
    # Returns the merged compile caches returned by the jobs.
    # Raises the first exception raised by a job, if any. Otherwise, raises BuildError if the build of a target
    # did not complete successfully.

    jobs = list(jobs)
    for job in jobs:
        if not isinstance(job, Job):
            raise TypeError(f"not a Job: {job!r}")
    if len({id(job) for job in jobs}) != len(jobs):
        raise _error.StateError('a job must not be executed more than once')

    if mode is None:
        mode = choose_thread_mode()
    if not isinstance(mode, ThreadMode):
        raise TypeError(f"'mode' must be None or a ThreadMode, not {mode!r}")

    # no process is launched if a target has no source files
    _expand_all_sources(jobs)

    merged_cache = _cache.CompileCache()
    first_exception = None
    if not jobs:
        return merged_cache

    di.inform(f'execute {len(jobs)} job(s) in thread mode {mode.value!r}', level=cf.level.job_scheduling)

    if mode is ThreadMode.SINGLE:
        local_caches = []
        for job in jobs:
            try:
                local_caches.append(job.run())
            except Exception as e:
                if first_exception is None:
                    first_exception = e
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix='plb-job') as executor:
            futures = [executor.submit(job.run) for job in jobs]
            concurrent.futures.wait(futures)
        local_caches = []
        for future in futures:  # in the order of the jobs
            exc = future.exception()
            if exc is None:
                local_caches.append(future.result())
            elif first_exception is None:
                first_exception = exc

    # all workers have been joined
    for local_cache in local_caches:
        merged_cache.update(local_cache)

    if first_exception is not None:
        raise first_exception

    failed_target_names = [job.target.name for job in jobs
                           if job.target.status is not _target.BuildStatus.COMPLETED_SUCCESS]
    if failed_target_names:
        names = ut.quote_for_message(failed_target_names)
        raise _error.BuildError(f'build of {len(failed_target_names)} library(s) failed: {names}',
                                failed_target_names=failed_target_names)

    return merged_cache


def build_libraries(project: _target.Project, targets: Optional[Sequence[_target.LibraryTarget]] = None,
                    mode: Optional[ThreadMode] = None) -> _cache.CompileCache:
    # Build all *targets* (all targets of *project* if None) and merge their compile cache entries into
    # 'project.current_cache'.

    if targets is None:
        targets = project.targets
    targets = list(targets)
    for target in targets:
        if not isinstance(target, _target.LibraryTarget):
            raise TypeError(f"not a LibraryTarget: {target!r}")
        if target.project is not project:
            raise ValueError(f"library {target.name!r} belongs to a different project")

    jobs = [Job(_pipeline.build_library, target) for target in targets]

    start_ns = time.monotonic_ns()
    merged_cache = execute_jobs(jobs, mode)
    project.current_cache.update(merged_cache)

    elapsed_ms = (time.monotonic_ns() - start_ns) / 1e6
    di.inform(f'total libraries compile: {elapsed_ms:.2f} ms', level=cf.level.timing)
    return merged_cache
