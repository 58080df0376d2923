# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

import testenv  # also sets up module search paths
import plb.cf
import plb.ex
import plb.ex._platform
import os.path
import threading
import unittest


class ThisIsAUnitTest(unittest.TestCase):
    pass


def build_successfully(target, runner):
    target.mark_launched()
    cache = plb.ex.CompileCache()
    for p in target.expand_sources():
        cache.record(target.get_object_path(p), f'cc {p}', 1)
    target.mark_completed(True)
    return cache


def build_unsuccessfully(target, runner):
    target.mark_launched()
    target.mark_completed(False)
    return plb.ex.CompileCache()


class JobTestCase(testenv.TemporaryDirectoryTestCase, testenv.CapturedDiOutputTestCase):

    def setUp(self):
        super().setUp()
        self.project = plb.ex.Project(plb.ex.GccBackend(platform_name='posix'), 'debug', '.')

    def add_library(self, name: str, source_names=('a.c',)):
        for n in source_names:
            os.makedirs(name, exist_ok=True)
            open(os.path.join(name, n), 'xb').close()
        return self.project.add_library(name, plb.ex.Language.C, '.', '', ['*.c'])


class JobTest(JobTestCase):

    def test_runs_once(self):
        job = plb.ex.Job(build_successfully, self.add_library('x'))
        self.assertFalse(job.was_run)
        cache = job.run()
        self.assertTrue(job.was_run)
        self.assertEqual(1, len(cache))
        with self.assertRaises(plb.ex.StateError) as cm:
            job.run()
        self.assertEqual("job for library 'x' already run", str(cm.exception))

    def test_function_gets_runner(self):
        runners = []

        def build(target, runner):
            runners.append(runner)
            return build_successfully(target, runner)

        plb.ex.Job(build, self.add_library('x')).run()
        self.assertIsInstance(runners[0], plb.ex.ProcessRunner)

    def test_fails_for_other_result(self):
        job = plb.ex.Job(lambda target, runner: {}, self.add_library('x'))
        with self.assertRaises(TypeError):
            job.run()

    def test_fails_for_invalid_arguments(self):
        with self.assertRaises(TypeError):
            # noinspection PyTypeChecker
            plb.ex.Job(None, self.add_library('x'))
        with self.assertRaises(TypeError):
            # noinspection PyTypeChecker
            plb.ex.Job(build_successfully, 'x')


class ThreadModeTest(unittest.TestCase):

    def setUp(self):
        self._original_thread_mode = plb.cf.thread_mode

    def tearDown(self):
        plb.cf.thread_mode = self._original_thread_mode

    def test_configured_mode_is_used(self):
        plb.cf.thread_mode = 'single'
        self.assertEqual(plb.ex.ThreadMode.SINGLE, plb.ex.choose_thread_mode())
        plb.cf.thread_mode = 'multi'
        self.assertEqual(plb.ex.ThreadMode.MULTI, plb.ex.choose_thread_mode())

    def test_default_depends_on_debugger(self):
        plb.cf.thread_mode = None
        expected = plb.ex.ThreadMode.SINGLE if plb.ex._platform.is_debugger_attached() else plb.ex.ThreadMode.MULTI
        self.assertEqual(expected, plb.ex.choose_thread_mode())

    def test_fails_for_invalid_mode(self):
        plb.cf.thread_mode = 'many'
        with self.assertRaises(plb.ex.ConfigurationError) as cm:
            plb.ex.choose_thread_mode()
        self.assertEqual("invalid value of 'plb.cf.thread_mode': 'many'", str(cm.exception))


class ExecuteTest(JobTestCase):

    def test_single_runs_in_order_of_jobs(self):
        names = []

        def build(target, runner):
            names.append((target.name, threading.current_thread() is threading.main_thread()))
            return build_successfully(target, runner)

        jobs = [plb.ex.Job(build, self.add_library(n)) for n in ['c', 'a', 'b']]
        plb.ex.execute_jobs(jobs, plb.ex.ThreadMode.SINGLE)
        self.assertEqual([('c', True), ('a', True), ('b', True)], names)

    def test_multi_runs_jobs_in_parallel(self):
        barrier = threading.Barrier(3, timeout=10.0)
        thread_names = []

        def build(target, runner):
            thread_names.append(threading.current_thread().name)
            barrier.wait()  # fails unless all jobs are running at the same time
            return build_successfully(target, runner)

        jobs = [plb.ex.Job(build, self.add_library(n)) for n in ['a', 'b', 'c']]
        plb.ex.execute_jobs(jobs, plb.ex.ThreadMode.MULTI)
        self.assertEqual(3, len(set(thread_names)))
        self.assertTrue(all(n.startswith('plb-job') for n in thread_names))

    def test_caches_are_merged(self):
        for mode in plb.ex.ThreadMode:
            x = self.add_library(f'x{mode.value}', ['a.c', 'b.c'])
            y = self.add_library(f'y{mode.value}', ['c.c'])
            cache = plb.ex.execute_jobs([plb.ex.Job(build_successfully, x), plb.ex.Job(build_successfully, y)], mode)
            self.assertEqual(3, len(cache))
            self.assertIn(x.get_object_path('b.c'), cache)
            self.assertIn(y.get_object_path('c.c'), cache)

    def test_no_jobs_is_empty(self):
        self.assertEqual(0, len(plb.ex.execute_jobs([], plb.ex.ThreadMode.MULTI)))

    def test_failed_targets_are_reported(self):
        jobs = [
            plb.ex.Job(build_unsuccessfully, self.add_library('a')),
            plb.ex.Job(build_successfully, self.add_library('b')),
            plb.ex.Job(build_unsuccessfully, self.add_library('c'))
        ]
        with self.assertRaises(plb.ex.BuildError) as cm:
            plb.ex.execute_jobs(jobs, plb.ex.ThreadMode.MULTI)
        self.assertEqual("build of 2 library(s) failed: 'a', 'c'", str(cm.exception))
        self.assertEqual(('a', 'c'), cm.exception.failed_target_names)
        self.assertTrue(all(job.was_run for job in jobs))

    def test_first_exception_is_raised_after_all_jobs(self):
        def fail(target, runner):
            raise ValueError(target.name)

        for mode in plb.ex.ThreadMode:
            jobs = [
                plb.ex.Job(build_successfully, self.add_library(f'a{mode.value}')),
                plb.ex.Job(fail, self.add_library(f'b{mode.value}')),
                plb.ex.Job(fail, self.add_library(f'c{mode.value}'))
            ]
            with self.assertRaises(ValueError) as cm:
                plb.ex.execute_jobs(jobs, mode)
            self.assertEqual(f'b{mode.value}', str(cm.exception))
            self.assertTrue(all(job.was_run for job in jobs))

    def test_no_job_runs_if_a_target_has_no_source(self):
        jobs = [
            plb.ex.Job(build_successfully, self.add_library('a')),
            plb.ex.Job(build_successfully, self.add_library('b', ['b.cpp']))
        ]
        with self.assertRaises(plb.ex.ConfigurationError):
            plb.ex.execute_jobs(jobs, plb.ex.ThreadMode.MULTI)
        self.assertFalse(any(job.was_run for job in jobs))

    def test_fails_for_repeated_job(self):
        job = plb.ex.Job(build_successfully, self.add_library('a'))
        with self.assertRaises(plb.ex.StateError):
            plb.ex.execute_jobs([job, job], plb.ex.ThreadMode.SINGLE)
        self.assertFalse(job.was_run)

    def test_fails_for_invalid_mode(self):
        with self.assertRaises(TypeError):
            # noinspection PyTypeChecker
            plb.ex.execute_jobs([], 'multi')


class BuildLibrariesTest(testenv.FakeToolchainTestCase):

    def write_sources(self):
        self.write_text(os.path.join('a', 'src', 'a.c'), 'int a(void) { return 1; }\n')
        self.write_text(os.path.join('b', 'include', 'b.h'), 'int b(void);\n')
        self.write_text(os.path.join('b', 'src', 'b.c'), '#include "b.h"\nint b(void) { return 1; }\n')

    def run_build_script(self, mode=plb.ex.ThreadMode.MULTI):
        project = plb.ex.Project(self.backend, 'release', '.')
        project.load_cache()
        a = project.add_library('a', plb.ex.Language.C, 'include', '-DA', ['src/*.c'])
        b = project.add_library('b', plb.ex.Language.C, 'include', '', ['src/*.c'])
        b.add_compile_flags(a.include_flag)
        plb.ex.build_libraries(project, mode=mode)
        project.save_cache()
        return project, a, b

    def test_two_libraries_are_built_incrementally(self):
        self.write_sources()

        project, a, b = self.run_build_script()
        self.assertEqual(2, len(project.current_cache))
        log = self.read_toolchain_log_by_kind()
        self.assertEqual(sorted([a.get_object_path('a.c'), b.get_object_path('b.c')]), sorted(log['compile']))
        self.assertEqual(sorted([a.archive_path, b.archive_path]), sorted(log['archive']))
        self.assertRegex(self.di_output, r'\nI total libraries compile: [0-9]+\.[0-9]{2} ms\n')

        self.set_mtime_back([a.get_object_path('a.c'), b.get_object_path('b.c')], 100)
        self.set_mtime_back([a.archive_path, b.archive_path], 50)
        self.write_text(os.path.join('b', 'include', 'b.h'), 'int b(void); /* changed */\n')

        project, a, b = self.run_build_script()
        self.assertEqual(2, len(project.current_cache))
        log = self.read_toolchain_log_by_kind()
        self.assertEqual(2, len(log['preprocess']))
        self.assertEqual([b.get_object_path('b.c')], log['compile'])
        self.assertEqual([b.archive_path], log['archive'])
        self.assertIn('I skip compile a\n', self.di_output)
        self.assertIn('I skip archive a\n', self.di_output)

        with open(project.cache_path, 'r') as f:
            self.assertEqual(3, len(f.read().splitlines()))

    def test_single_thread_mode_gives_same_result(self):
        self.write_sources()
        project, a, b = self.run_build_script(plb.ex.ThreadMode.SINGLE)
        self.assertEqual(plb.ex.BuildStatus.COMPLETED_SUCCESS, a.status)
        self.assertEqual(plb.ex.BuildStatus.COMPLETED_SUCCESS, b.status)
        self.assertEqual(2, len(project.current_cache))

    def test_failed_library_does_not_stop_others(self):
        self.write_sources()
        self.write_text(os.path.join('a', 'src', 'a.c'), 'FAKE_COMPILE_FAIL\n')

        project = plb.ex.Project(self.backend, 'release', '.')
        a = project.add_library('a', plb.ex.Language.C, 'include', '', ['src/*.c'])
        b = project.add_library('b', plb.ex.Language.C, 'include', '', ['src/*.c'])
        with self.assertRaises(plb.ex.BuildError) as cm:
            plb.ex.build_libraries(project, mode=plb.ex.ThreadMode.MULTI)
        self.assertEqual(('a',), cm.exception.failed_target_names)
        self.assertEqual(plb.ex.BuildStatus.COMPLETED_FAILED, a.status)
        self.assertEqual(plb.ex.BuildStatus.COMPLETED_SUCCESS, b.status)
        self.assertEqual([b.archive_path], self.read_toolchain_log_by_kind()['archive'])

    def test_subset_of_targets(self):
        self.write_sources()
        project = plb.ex.Project(self.backend, 'release', '.')
        a = project.add_library('a', plb.ex.Language.C, 'include', '', ['src/*.c'])
        b = project.add_library('b', plb.ex.Language.C, 'include', '', ['src/*.c'])
        plb.ex.build_libraries(project, [b], mode=plb.ex.ThreadMode.SINGLE)
        self.assertEqual(plb.ex.BuildStatus.NOT_LAUNCHED, a.status)
        self.assertEqual([b.get_object_path('b.c')], list(project.current_cache))

    def test_fails_for_target_of_other_project(self):
        self.write_sources()
        project = plb.ex.Project(self.backend, 'release', '.')
        other = plb.ex.Project(self.backend, 'debug', '.')
        a = other.add_library('a', plb.ex.Language.C, 'include', '', ['src/*.c'])
        with self.assertRaises(ValueError):
            plb.ex.build_libraries(project, [a])
