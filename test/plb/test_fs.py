# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

import testenv  # also sets up module search paths
import plb.fs
import os.path
import stat
import time
import unittest


class PathManipulationTest(unittest.TestCase):

    def test_last_component(self):
        self.assertEqual('c.c', plb.fs.last_component(os.path.join('a', 'b', 'c.c')))
        self.assertEqual('b', plb.fs.last_component('a/b/'))
        self.assertEqual('/', plb.fs.last_component('/'))

    def test_with_replaced_extension(self):
        self.assertEqual(os.path.join('x', 'a.obj'), plb.fs.with_replaced_extension(os.path.join('x', 'a.c'), 'obj'))
        self.assertEqual('a.b.ii', plb.fs.with_replaced_extension('a.b.cpp', 'ii'))
        self.assertEqual('Makefile.i', plb.fs.with_replaced_extension('Makefile', 'i'))

    def test_with_replaced_extension_fails_for_invalid_extension(self):
        for e in ['', '.obj', 'a/b']:
            with self.assertRaises(ValueError):
                plb.fs.with_replaced_extension('a.c', e)

    def test_has_extension(self):
        self.assertTrue(plb.fs.has_extension('a/b.ii', 'i', 'ii'))
        self.assertFalse(plb.fs.has_extension('a/b.iii', 'i', 'ii'))
        self.assertFalse(plb.fs.has_extension('a/obj', 'obj'))


class DirectoryTest(testenv.TemporaryDirectoryTestCase):

    def test_is_empty_directory(self):
        self.assertFalse(plb.fs.is_empty_directory('d'))
        os.mkdir('d')
        self.assertTrue(plb.fs.is_directory('d'))
        self.assertTrue(plb.fs.is_empty_directory('d'))
        open(os.path.join('d', 'x'), 'xb').close()
        self.assertFalse(plb.fs.is_empty_directory('d'))
        self.assertFalse(plb.fs.is_empty_directory(os.path.join('d', 'x')))

    def test_ensure_directory_creates_parents(self):
        plb.fs.ensure_directory(os.path.join('a', 'b', 'c'))
        plb.fs.ensure_directory(os.path.join('a', 'b', 'c'))
        self.assertTrue(os.path.isdir(os.path.join('a', 'b', 'c')))

    def test_list_directory_files_contains_only_files(self):
        os.mkdir('d')
        os.mkdir(os.path.join('d', 'e'))
        open(os.path.join('d', 'b.obj'), 'xb').close()
        open(os.path.join('d', 'a.i'), 'xb').close()
        self.assertEqual([os.path.join('d', 'a.i'), os.path.join('d', 'b.obj')], plb.fs.list_directory_files('d'))


class ExpandGlobPatternsTest(testenv.TemporaryDirectoryTestCase):

    def setUp(self):
        super().setUp()
        for p in ['src/b.c', 'src/a.c', 'src/a.h', 'src/sub/c.c', 'src/[x].c']:
            os.makedirs(os.path.dirname(p), exist_ok=True)
            open(p, 'xb').close()
        os.mkdir('src/d.c')

    def test_matches_are_sorted_per_pattern_and_deduplicated(self):
        root = os.path.abspath('src')
        paths = plb.fs.expand_glob_patterns('src', ['*.h', '*.c', 'a.*'])
        expected = [os.path.join(root, n) for n in ['a.h', '[x].c', 'a.c', 'b.c']]
        self.assertEqual(expected, paths)

    def test_recursive_pattern(self):
        root = os.path.abspath('src')
        paths = plb.fs.expand_glob_patterns('src', ['**/c.c'])
        self.assertEqual([os.path.join(root, 'sub', 'c.c')], paths)

    def test_directory_is_not_interpreted_as_pattern(self):
        os.mkdir('[x]')
        open(os.path.join('[x]', 'y.c'), 'xb').close()
        self.assertEqual([os.path.abspath(os.path.join('[x]', 'y.c'))], plb.fs.expand_glob_patterns('[x]', ['*.c']))

    def test_no_match_is_empty(self):
        self.assertEqual([], plb.fs.expand_glob_patterns('src', ['*.cpp']))
        self.assertEqual([], plb.fs.expand_glob_patterns('nonexistent', ['*.c']))

    def test_fails_for_absolute_or_empty_pattern(self):
        with self.assertRaises(ValueError):
            plb.fs.expand_glob_patterns('src', [os.path.abspath('src/*.c')])
        with self.assertRaises(ValueError):
            plb.fs.expand_glob_patterns('src', [''])


class MtimeTest(testenv.TemporaryDirectoryTestCase):

    def test_absent_is_none(self):
        self.assertIsNone(plb.fs.get_mtime_ns('a'))

    def test_latest(self):
        for p in ['a', 'b', 'c']:
            open(p, 'xb').close()
        t = time.time_ns()
        os.utime('a', ns=(t, t - 2_000_000_000))
        os.utime('b', ns=(t, t))
        os.utime('c', ns=(t, t - 1_000_000_000))
        self.assertEqual(t, plb.fs.find_latest_mtime_ns(['a', 'b', 'c']))
        self.assertEqual(t - 2_000_000_000, plb.fs.get_mtime_ns('a'))
        self.assertIsNone(plb.fs.find_latest_mtime_ns([]))

    def test_latest_fails_for_absent(self):
        open('a', 'xb').close()
        with self.assertRaises(FileNotFoundError):
            plb.fs.find_latest_mtime_ns(['a', 'b'])


class ManipulationTest(testenv.TemporaryDirectoryTestCase):

    def test_remove_file_if_exists(self):
        open('a', 'xb').close()
        self.assertTrue(plb.fs.remove_file_if_exists('a'))
        self.assertFalse(plb.fs.remove_file_if_exists('a'))

    def test_write_replaces_content(self):
        plb.fs.write_file('a', b'123')
        plb.fs.write_file('a', b'45')
        self.assertEqual(b'45', plb.fs.read_file('a'))
        self.assertEqual(['a'], os.listdir('.'))  # no temporary file left

    @unittest.skipIf(os.name != 'posix', 'requires POSIX permissions')
    def test_write_applies_umask(self):
        original_umask = os.umask(0o027)
        try:
            plb.fs.write_file('a', b'123')
            self.assertEqual(0o640, stat.S_IMODE(os.stat('a').st_mode))

            os.chmod('a', 0o600)
            plb.fs.write_file('a', b'45')
            self.assertEqual(0o640, stat.S_IMODE(os.stat('a').st_mode))
        finally:
            os.umask(original_umask)

    def test_replace_in_text_file(self):
        plb.fs.write_file('a.h', b'#define SDL_DYNAMIC_API 1\n#define X 1\n')
        n = plb.fs.replace_in_text_file('a.h', '#define SDL_DYNAMIC_API 1', '#define SDL_DYNAMIC_API 0')
        self.assertEqual(1, n)
        self.assertEqual(b'#define SDL_DYNAMIC_API 0\n#define X 1\n', plb.fs.read_file('a.h'))

    def test_replace_in_text_file_fails_if_not_found(self):
        plb.fs.write_file('a.h', b'abc')
        with self.assertRaises(ValueError) as cm:
            plb.fs.replace_in_text_file('a.h', 'x', 'y')
        self.assertEqual("pattern not found in 'a.h': 'x'", str(cm.exception))
        self.assertEqual(b'abc', plb.fs.read_file('a.h'))
