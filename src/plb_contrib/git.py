# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Fetch the source directories of libraries with Git - the stupid content tracker."""

# Git: <https://git-scm.com/>
# Tested with: git 2.20.1
# Executable: 'git'
#
# Usage example:
#
#   import plb.ex
#   import plb_contrib.git
#
#   project = plb.ex.Project('gcc', 'release', '.')
#   freetype = project.add_library('freetype', plb.ex.Language.C, 'include', '-DFT2_BUILD_LIBRARY', ['src/base/*.c'])
#   repositories = [
#       plb_contrib.git.GitRepository(freetype, 'https://github.com/freetype/freetype', 'fbbcf50367403a6316a0133',
#                                     patches=[('include/freetype/config/ftoption.h',
#                                               '#define FT_CONFIG_OPTION_USE_ZLIB',
#                                               '/* #undef FT_CONFIG_OPTION_USE_ZLIB */')])
#   ]
#
#   with plb.ex.ProcessRunner() as runner:
#       plb_contrib.git.fetch_all(runner, repositories)
#
# A source directory that exists and is not empty is never touched, so local modifications are kept.
# The patches of a repository are applied once, right after its checkout.

__all__ = ['GitRepository', 'fetch_all']

import sys
import os.path
import re
from typing import Iterable, Tuple

import plb.ut
import plb.di
import plb.fs
import plb.cf
import plb.ex

assert sys.version_info >= (3, 8)


# abbreviated or full commit hash, tag name or branch name (no option)
COMMIT_REGEX = re.compile(r'^[^\s\-][^\s]*$')


class GitRepository:
    EXECUTABLE = 'git'

    def __init__(self, target: plb.ex.LibraryTarget, url: str, commit: str, *,
                 patches: Iterable[Tuple[str, str, str]] = ()):
        # Each member of *patches* is a tuple (path, pattern, replacement): replace the text *pattern* by
        # *replacement* in the text file *path* (relative to the source directory of *target*).

        if not isinstance(target, plb.ex.LibraryTarget):
            raise TypeError(f"'target' must be a LibraryTarget, not {target!r}")
        url = str(url)
        commit = str(commit)
        if not url or any(c.isspace() for c in url):
            raise plb.ex.ConfigurationError(f"not a repository URL: {url!r}")
        if not COMMIT_REGEX.match(commit):
            raise plb.ex.ConfigurationError(f"not a commit: {commit!r}")

        checked_patches = []
        for patch in patches:
            path, pattern, replacement = (str(s) for s in patch)
            if not path or os.path.isabs(path):
                raise plb.ex.ConfigurationError(f"not a relative path of a file to patch: {path!r}")
            if not pattern:
                raise plb.ex.ConfigurationError(f"empty pattern for {path!r}")
            checked_patches.append((path, pattern, replacement))

        self.target = target
        self.url = url
        self.commit = commit
        self.patches = tuple(checked_patches)
        self._clone_handle = None

    def clone(self, runner: plb.ex.ProcessRunner) -> plb.ex.ProcessHandle:
        # Start cloning into the source directory of the target if it was not downloaded, without waiting.

        if not self.target.not_downloaded:
            plb.di.inform(f'skip git clone {self.target.name}', level=plb.cf.level.skip)
            self._clone_handle = plb.ex.ProcessHandle.completed()
            return self._clone_handle

        command = f'{self.EXECUTABLE} clone {self.url} {self.target.source_path}'
        plb.di.inform(plb.ut.escape_control_characters(command), level=plb.cf.level.fetch)
        self._clone_handle = runner.launch(command)
        return self._clone_handle

    def checkout(self, runner: plb.ex.ProcessRunner) -> bool:
        # Check out the commit in the source directory, but only after a fresh clone.
        # Returns True if something was checked out.

        if not self.target.not_downloaded:
            return False
        if self._clone_handle is None or not self._clone_handle.is_completed:
            raise plb.ex.StateError(f'repository of {self.target.name!r} not cloned')
        if self._clone_handle.status is not plb.ex.ProcessStatus.COMPLETED_SUCCESS:
            raise plb.ex.ToolchainError(f'git clone of {self.target.name!r} failed')

        command = f'{self.EXECUTABLE} checkout {self.commit} --'
        plb.di.inform(plb.ut.escape_control_characters(command), level=plb.cf.level.fetch)
        handle = runner.launch(command, wait=True, cwd=self.target.source_path)
        if handle.status is not plb.ex.ProcessStatus.COMPLETED_SUCCESS:
            raise plb.ex.ToolchainError(f'git checkout of {self.commit!r} for {self.target.name!r} failed')

        for path, pattern, replacement in self.patches:
            plb.di.inform(f'patch {path!r} of {self.target.name!r}', level=plb.cf.level.fetch)
            try:
                plb.fs.replace_in_text_file(os.path.join(self.target.source_path, path), pattern, replacement)
            except (OSError, ValueError) as e:
                msg = (
                    f"could not patch {path!r} of {self.target.name!r}\n"
                    f"  | reason: {plb.ut.exception_to_line(e)}"
                )
                raise plb.ex.ConfigurationError(msg) from None
        return True

    def __repr__(self) -> str:
        return f'GitRepository({self.target.name!r}, {self.url!r}, {self.commit!r})'


def fetch_all(runner: plb.ex.ProcessRunner, repositories: Iterable[GitRepository]):
    # Clone all repositories in parallel, then check out the commit in each freshly cloned one.
    # Raises ToolchainError if a clone or checkout fails.

    repositories = list(repositories)
    handles = [r.clone(runner) for r in repositories]
    if not runner.wait_all(handles):
        names = ', '.join(repr(r.target.name) for r, h in zip(repositories, handles)
                          if h.status is not plb.ex.ProcessStatus.COMPLETED_SUCCESS)
        raise plb.ex.ToolchainError(f'git clone failed for {names}')
    for r in repositories:
        r.checkout(runner)
