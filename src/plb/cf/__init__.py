# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Configuration parameters."""

from typing import Optional
from . import level

# Name of the compile cache file in the output directory of a project.
cache_file_name: str = 'log.csv'

# Format of the name of the output directory of a project relative to its root directory.
# '{backend}' and '{mode}' are replaced by the name of the backend and the build mode, respectively.
output_directory_format: str = 'build-{backend}-{mode}'

# Thread mode of the job scheduler.
# None means: 'single' if a debugger is attached to the Python process, 'multi' otherwise.
# 'multi' means: one worker thread per job.
# 'single' means: all jobs are executed one after the other in the calling thread.
thread_mode: Optional[str] = None

# Maximum number of child processes running at the same time per build job.
# None means: unbounded (all preprocess or compile processes of a library are started at once).
max_parallel_process_count: Optional[int] = None

# Remove everyhing that is not an configuration parameter:
del Optional
