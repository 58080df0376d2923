# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Launching of child processes and waiting for batches of them.
This is an implementation detail - do not import it unless you know what you are doing."""

__all__ = ['ProcessStatus', 'ProcessHandle', 'ProcessRunner']

import os
import enum
import asyncio
from typing import Dict, Iterable, Optional, Set, Union

from .. import ut
from .. import di
from .. import cf


@enum.unique
class ProcessStatus(enum.Enum):
    NOT_LAUNCHED = 0
    LAUNCHED = 1
    COMPLETED_SUCCESS = 2
    COMPLETED_FAILED = 3


class ProcessHandle:
    # Do *not* construct ProcessHandle objects manually (except with 'completed()')!
    # ProcessRunner.launch() will construct one.

    def __init__(self, command: str, *, stdout_path: Optional[str] = None, cwd: Optional[str] = None):
        self.command = str(command)
        self.stdout_path = stdout_path
        self.cwd = cwd
        self.status = ProcessStatus.NOT_LAUNCHED
        self.returncode: Optional[int] = None

    @classmethod
    def completed(cls, command: str = '', *, success: bool = True) -> 'ProcessHandle':
        # handle of a process that was never necessary to launch
        handle = cls(command)
        handle.status = ProcessStatus.COMPLETED_SUCCESS if success else ProcessStatus.COMPLETED_FAILED
        return handle

    @property
    def is_completed(self) -> bool:
        return self.status in (ProcessStatus.COMPLETED_SUCCESS, ProcessStatus.COMPLETED_FAILED)

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__} {self.status.name} {self.command!r}>'


class ProcessRunner:
    # Launches commands as child processes in a private 'asyncio' loop and waits for them.
    # All public methods are normal synchronous methods, so this class acts as an intermediary between synchronous
    # code and the coroutines that wait for the child processes.
    #
    # A ProcessRunner must only be used by the thread that constructed it.

    def __init__(self, max_parallel_count: Optional[int] = None):
        if max_parallel_count is None:
            max_parallel_count = cf.max_parallel_process_count
        if max_parallel_count is not None:
            max_parallel_count = int(max_parallel_count)
            if max_parallel_count < 1:
                raise ValueError("'max_parallel_count' must be None or positive")

        self._max_parallel_count = max_parallel_count
        self._asyncio_loop = asyncio.new_event_loop()
        self._handle_by_pending_task: Dict[asyncio.Task, ProcessHandle] = {}

    def __enter__(self) -> 'ProcessRunner':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        if self._asyncio_loop is None:
            return
        try:
            self._wait_for_pending_sync(max_count=0)
        finally:
            self._asyncio_loop.close()
            self._asyncio_loop = None

    def launch(self, command: str, *, wait: bool = False,
               stdout_path: Union[None, str, os.PathLike] = None,
               cwd: Union[None, str, os.PathLike] = None) -> ProcessHandle:
        # Start *command* as a shell command line in a child process.
        #
        # If *stdout_path* is not None, the standard output of the child process is written to the file
        # *stdout_path* (replacing its content).
        #
        # If *wait* is False, returns without waiting for the child process to complete (the handle's status is
        # LAUNCHED unless the child process could not be started).
        # Otherwise, waits for completion.

        if self._asyncio_loop is None:
            raise ValueError('runner is closed')

        handle = ProcessHandle(command,
                               stdout_path=None if stdout_path is None else os.fspath(stdout_path),
                               cwd=None if cwd is None else os.fspath(cwd))

        if self._max_parallel_count is not None:
            self._wait_for_pending_sync(max_count=self._max_parallel_count - 1)

        if di.is_unsuppressed_level(cf.level.helper_execution):
            msg = f'execute {handle.command!r}'
            if handle.cwd is not None:
                msg += f'\n    directory: {handle.cwd!r}'
            if handle.stdout_path is not None:
                msg += f'\n    output: {handle.stdout_path!r}'
            di.inform(msg, level=cf.level.helper_execution)

        proc = self._asyncio_loop.run_until_complete(self._start(handle))
        if proc is not None:
            task = self._asyncio_loop.create_task(self._complete(handle, proc))
            self._handle_by_pending_task[task] = handle

        if wait:
            self.wait_all([handle])

        return handle

    def wait_all(self, handles: Iterable[ProcessHandle]) -> bool:
        # Wait until all *handles* are completed.
        # Returns True if and only if all of them completed successfully.

        handles = list(handles)
        if self._asyncio_loop is not None:
            self._wait_for_pending_sync(max_count=0, handle_filter={id(h) for h in handles})

        if any(not h.is_completed for h in handles):
            raise ValueError('handle of a process not launched by this runner')
        return all(h.status == ProcessStatus.COMPLETED_SUCCESS for h in handles)

    @property
    def pending_count(self) -> int:
        return len(self._handle_by_pending_task)

    @staticmethod
    async def _start(handle: ProcessHandle) -> Optional[asyncio.subprocess.Process]:
        stdout_file = None
        try:
            if handle.stdout_path is not None:
                stdout_file = open(handle.stdout_path, 'wb')
            proc = await asyncio.create_subprocess_shell(handle.command, cwd=handle.cwd, stdin=None,
                                                         stdout=stdout_file, stderr=None)
        except OSError as e:
            handle.status = ProcessStatus.COMPLETED_FAILED
            msg = (
                f'could not launch {handle.command!r}\n'
                f'  | reason: {ut.exception_to_line(e)}'
            )
            di.inform(msg, level=di.ERROR)
            return None
        finally:
            if stdout_file is not None:
                stdout_file.close()  # the child process has its own file descriptor

        handle.status = ProcessStatus.LAUNCHED
        return proc

    @staticmethod
    async def _complete(handle: ProcessHandle, proc: asyncio.subprocess.Process):
        returncode = await proc.wait()
        handle.returncode = returncode
        handle.status = ProcessStatus.COMPLETED_SUCCESS if returncode == 0 else ProcessStatus.COMPLETED_FAILED

    async def _wait_until_number_of_pending(self, *, max_count: int, handle_filter: Optional[Set[int]]):
        max_count = max(0, max_count)

        while True:
            if handle_filter is None:
                tasks_to_wait_for = list(self._handle_by_pending_task)
            else:
                tasks_to_wait_for = [t for t, h in self._handle_by_pending_task.items() if id(h) in handle_filter]
            if len(tasks_to_wait_for) <= max_count:
                break

            done_tasks, _ = await asyncio.wait(tasks_to_wait_for, return_when=asyncio.FIRST_COMPLETED)

            for task in done_tasks:  # "consume" all futures that are done
                handle = self._handle_by_pending_task.pop(task)
                exc = task.exception()
                if exc is not None:
                    # waiting failed: the exit status of the child process is unknown
                    handle.status = ProcessStatus.COMPLETED_FAILED
                    msg = (
                        f'could not wait for {handle.command!r}\n'
                        f'  | reason: {ut.exception_to_line(exc, True)}'
                    )
                    di.inform(msg, level=di.ERROR)

    def _wait_for_pending_sync(self, *, max_count: int, handle_filter: Optional[Set[int]] = None):
        if not self._handle_by_pending_task:
            return
        self._asyncio_loop.run_until_complete(
            self._wait_until_number_of_pending(max_count=max_count, handle_filter=handle_filter))
