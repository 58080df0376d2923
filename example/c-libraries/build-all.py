# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

# Run this script by one of the following shell commands:
#
#    plb build-all.py gcc release                    # with directory of 'plb' in $PATH
#    python3 "$PWD"/build-all.py clang debug          # in the directory of this file.

import sys
import os.path

import plb.di
import plb.ex
import plb.launcher

try:
    backend_name, mode = plb.launcher.parse_arguments(sys.argv[1:])
except plb.ex.UsageError as e:
    print(f'error: {e}', file=sys.stderr)
    sys.exit(2)

project = plb.ex.Project(backend_name, mode, os.path.dirname(os.path.abspath(__file__)))
project.load_cache()

libx = project.add_library('libx', plb.ex.Language.C, 'include', '-Wall', ['src/*.c'])
liby = project.add_library('liby', plb.ex.Language.C, 'include', '-Wall', ['src/*.c'])
liby.add_compile_flags(libx.include_flag)  # liby includes a header of libx

# liby includes a generated table
plb.ex.compile_and_run_generator(
    project,
    [os.path.join(liby.source_path, 'gen', 'gen-table.c')],
    '',
    '16',
    os.path.join(liby.include_path, 'table.inc'))

with plb.di.Cluster('build libraries', is_progress=True, with_time=True):
    plb.ex.build_libraries(project)

with plb.di.Cluster('build application', is_progress=True, with_time=True):
    plb.ex.build_executable(
        project,
        os.path.join(project.root_path, 'main.c'),
        f'{libx.include_flag} {liby.include_flag} -Wall -Wextra -Werror',
        os.path.join(project.output_path, 'main' + project.backend.executable_suffix),
        [liby, libx])

project.save_cache()
