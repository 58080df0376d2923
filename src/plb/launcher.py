# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""Launcher for a plb build script, and parsing of the command-line arguments of build scripts."""

__all__ = ['parse_arguments', 'main']

import sys
import os.path
from typing import Optional, Sequence, Tuple


def parse_arguments(arguments: Sequence[str], platform_name: Optional[str] = None) -> Tuple[str, 'BuildMode']:
    # Return the backend name and the build mode given by the command-line arguments *arguments*
    # (without the name of the script).
    #
    # Raises plb.ex.UsageError if *arguments* are not exactly a backend name selectable on the platform
    # *platform_name* and a build mode.

    import plb.ex
    import plb.ex._platform

    if platform_name is None:
        platform_name = plb.ex._platform.PLATFORM_NAME
    backend_names = plb.ex._platform.BACKEND_NAMES_BY_PLATFORM_NAME.get(platform_name, ())
    mode_names = [m.value for m in plb.ex.BuildMode]

    arguments = list(arguments)
    usage = f"usage: <script> {{{'|'.join(backend_names)}}} {{{'|'.join(mode_names)}}}"
    if len(arguments) != 2:
        raise plb.ex.UsageError(f'expected exactly 2 arguments, got {len(arguments)}\n  | {usage}')

    backend_name, mode_name = arguments
    if backend_name not in backend_names:
        raise plb.ex.UsageError(f'unsupported backend on {platform_name!r}: {backend_name!r}\n  | {usage}')
    if mode_name not in mode_names:
        raise plb.ex.UsageError(f'unsupported build mode: {mode_name!r}\n  | {usage}')

    return backend_name, plb.ex.BuildMode(mode_name)


def find_script(script_name):
    if not script_name or script_name[0] == '-':
        raise Exception(f'not a script name: {script_name!r}')

    script_abs_path = os.path.abspath(script_name)
    if not os.path.isfile(script_abs_path):
        raise Exception(f'not an existing script: {script_name!r}')

    module_name = '__main__'

    import importlib.util
    spec = importlib.util.spec_from_file_location(module_name, script_abs_path)
    module = importlib.util.module_from_spec(spec)

    return script_abs_path, spec, module, module_name


def get_help():
    # 80 characters xxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxx
    help_msg = \
        """
        Run a plb build script that builds static libraries incrementally.

        When called with '--help' as the first parameter, displays this help and exits.

        Otherwise, exactly three parameters are expected: the path of a build script,
        the name of a compiler backend and a build mode. The backend and the build mode
        are forwarded to the build script; the compile cache and all build artifacts
        are placed in 'build-<backend>-<mode>/' next to the build script by default.

        Backends: 'gcc' or 'clang' on POSIX, 'msvc' or 'clang' on Windows.
        Build modes: 'debug' or 'release'.

        Exit status:

           0  if called with '--help'
           1  if the specified build script could not be executed
           2  if the parameters are invalid
           e  otherwise, where e is the exit status of the specified build script
              (0 if it finished successfully)

        Examples:

           plb build-all.py gcc debug
           plb build-all.py clang release
           plb --help
        """
    import textwrap
    help_msg = textwrap.dedent(help_msg).strip()

    try:
        import plb
        help_msg += f"\n\nplb version: {plb.__version__}."
    except (ImportError, AttributeError):
        pass

    return help_msg


def main():
    if sys.argv[1:2] == ['--help']:
        print(get_help())
        return 0

    import plb.ex

    try:
        if not sys.argv[1:]:
            raise plb.ex.UsageError('missing build script')
        script_name, script_arguments = sys.argv[1], sys.argv[2:]
        parse_arguments(script_arguments)
    except plb.ex.UsageError as e:
        print(f'error: {e}', file=sys.stderr)
        return 2

    try:
        script_abs_path, spec, module, module_name = find_script(script_name)
    except Exception as e:
        print(f'error: {e}', file=sys.stderr)
        return 1

    sys.path.insert(0, os.path.dirname(script_abs_path))
    sys.argv = [script_abs_path] + script_arguments
    sys.modules[module_name] = module
    spec.loader.exec_module(module)  # may change the working directory of the process and sys.argv

    return 0
