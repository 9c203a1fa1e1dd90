import os
import tempfile
import unittest
import zipfile

from zip_fixtures import write_zip, write_bytes

from atmfjstc.lib.zip_vfs.errors import ArchiveFormatError
from atmfjstc.lib.zip_vfs.registry import ArchiveRegistry
from atmfjstc.lib.zip_vfs.vfs import ZipFileSystem
from atmfjstc.lib.zip_vfs.ZipArchive import ZipEntryStat


INDEX_JS = b'module.exports = 42;\n'
README = b'# Mods\n' * 100


class ZipFileSystemTestBase(unittest.TestCase):
    def setUp(self):
        self._tmp_dir = tempfile.TemporaryDirectory()
        self.tmp_dir = os.path.realpath(self._tmp_dir.name)

        self.archive_path = write_zip(os.path.join(self.tmp_dir, 'mods.zip'), [
            ('lib/', b'', zipfile.ZIP_STORED),
            ('lib/index.js', INDEX_JS, zipfile.ZIP_DEFLATED),
            ('lib/util/helpers.js', b'// helpers\n', zipfile.ZIP_STORED),
            ('README.md', README, zipfile.ZIP_DEFLATED),
        ])

        os.mkdir(os.path.join(self.tmp_dir, 'host_dir'))
        self.host_file = write_bytes(os.path.join(self.tmp_dir, 'host_dir', 'plain.txt'), b'plain file')

        self.fs = ZipFileSystem()

    def tearDown(self):
        self.fs.close()
        self._tmp_dir.cleanup()

    def in_zip(self, entry_path: str) -> str:
        return self.archive_path + '/' + entry_path


class ZipFileSystemTest(ZipFileSystemTestBase):
    def test_exists(self):
        self.assertTrue(self.fs.exists(self.in_zip('lib/index.js')))
        self.assertTrue(self.fs.exists(self.in_zip('lib')))
        self.assertTrue(self.fs.exists(self.archive_path))
        self.assertTrue(self.fs.exists(self.host_file))
        self.assertFalse(self.fs.exists(self.in_zip('lib/missing.js')))
        self.assertFalse(self.fs.exists(os.path.join(self.tmp_dir, 'missing.txt')))

    def test_read_file_in_zip(self):
        self.assertEqual(self.fs.read_file(self.in_zip('lib/index.js')), INDEX_JS)
        self.assertEqual(self.fs.read_file(self.in_zip('README.md'), 'utf-8'), README.decode('utf-8'))

    def test_read_file_backslashes(self):
        self.assertEqual(self.fs.read_file(self.in_zip('lib\\util\\helpers.js')), b'// helpers\n')

    def test_read_file_on_host(self):
        self.assertEqual(self.fs.read_file(self.host_file), b'plain file')
        self.assertEqual(self.fs.read_file(self.host_file, 'ascii'), 'plain file')

    def test_read_missing_entry(self):
        with self.assertRaises(OSError):
            self.fs.read_file(self.in_zip('lib/missing.js'))

    def test_read_missing_host_file(self):
        with self.assertRaises(FileNotFoundError):
            self.fs.read_file(os.path.join(self.tmp_dir, 'missing.txt'))

    def test_stat_in_zip(self):
        stat = self.fs.stat(self.in_zip('lib/index.js'))

        self.assertIsInstance(stat, ZipEntryStat)
        self.assertTrue(stat.is_file())
        self.assertEqual(stat.size, len(INDEX_JS))

        self.assertTrue(self.fs.stat(self.in_zip('lib')).is_dir())

    def test_stat_on_host(self):
        stat = self.fs.stat(self.host_file)

        self.assertIsInstance(stat, os.stat_result)
        self.assertEqual(stat.st_size, len(b'plain file'))

    def test_stat_missing(self):
        with self.assertRaises(FileNotFoundError):
            self.fs.stat(os.path.join(self.tmp_dir, 'missing.txt'))

    def test_readdir_in_zip(self):
        self.assertEqual(self.fs.readdir(self.in_zip('lib')), ['index.js', 'util'])
        self.assertEqual(self.fs.readdir(self.in_zip('lib/util')), ['helpers.js'])

    def test_readdir_archive_root(self):
        self.assertEqual(self.fs.readdir(self.archive_path), ['lib', 'README.md'])
        self.assertEqual(self.fs.readdir(self.archive_path + '/'), ['lib', 'README.md'])

    def test_readdir_on_host(self):
        self.assertEqual(self.fs.readdir(os.path.join(self.tmp_dir, 'host_dir')), ['plain.txt'])

    def test_is_dir_and_is_file(self):
        self.assertTrue(self.fs.is_dir(self.in_zip('lib/util')))
        self.assertFalse(self.fs.is_file(self.in_zip('lib/util')))
        self.assertTrue(self.fs.is_file(self.in_zip('lib/index.js')))
        self.assertTrue(self.fs.is_file(self.host_file))
        self.assertTrue(self.fs.is_dir(os.path.join(self.tmp_dir, 'host_dir')))

    def test_realpath(self):
        self.assertEqual(self.fs.realpath(self.in_zip('lib/./index.js')), self.in_zip('lib/index.js'))
        self.assertEqual(self.fs.realpath(self.host_file), self.host_file)

    def test_relative_paths(self):
        cwd = os.getcwd()
        os.chdir(self.tmp_dir)
        try:
            self.assertEqual(self.fs.read_file('mods.zip/lib/index.js'), INDEX_JS)
        finally:
            os.chdir(cwd)

    def test_directory_named_like_archive(self):
        fake_archive_dir = os.path.join(self.tmp_dir, 'fake.zip')
        os.mkdir(fake_archive_dir)
        write_bytes(os.path.join(fake_archive_dir, 'inside.txt'), b'not in an archive')

        self.assertEqual(self.fs.read_file(os.path.join(fake_archive_dir, 'inside.txt')), b'not in an archive')
        self.assertEqual(len(self.fs.registry), 0)

    def test_archive_opened_once(self):
        self.fs.read_file(self.in_zip('lib/index.js'))
        self.fs.read_file(self.in_zip('README.md'))
        self.fs.readdir(self.in_zip('lib'))

        self.assertEqual(len(self.fs.registry), 1)

    def test_unreadable_zip_named_file_served_from_host(self):
        notes_path = write_bytes(os.path.join(self.tmp_dir, 'notes.zip'), b'just some notes here\n')

        self.assertTrue(self.fs.exists(notes_path))
        self.assertTrue(self.fs.is_file(notes_path))
        self.assertFalse(self.fs.is_dir(notes_path))
        self.assertEqual(self.fs.stat(notes_path).st_size, 21)
        self.assertEqual(self.fs.read_file(notes_path), b'just some notes here\n')
        self.assertEqual(self.fs.realpath(notes_path), notes_path)
        self.assertEqual(len(self.fs.registry), 0)

    def test_archive_with_comment_served_from_host(self):
        commented_path = write_zip(os.path.join(self.tmp_dir, 'commented.zip'), [
            ('a.txt', b'a', zipfile.ZIP_STORED),
        ], comment=b'hi')

        with open(commented_path, 'rb') as f:
            raw = f.read()

        self.assertEqual(self.fs.read_file(commented_path), raw)
        self.assertTrue(self.fs.is_file(commented_path))

    def test_entry_in_unreadable_archive(self):
        notes_path = write_bytes(os.path.join(self.tmp_dir, 'notes.zip'), b'just some notes here\n')

        with self.assertRaises(ArchiveFormatError):
            self.fs.read_file(notes_path + '/inside.txt')


class ZipFileSystemRegistryTest(ZipFileSystemTestBase):
    def test_owned_registry_closed(self):
        self.fs.read_file(self.in_zip('lib/index.js'))
        archive = self.fs.registry.get(self.archive_path)

        self.fs.close()

        self.assertTrue(archive.closed)

    def test_shared_registry_not_closed(self):
        registry = ArchiveRegistry()
        self.addCleanup(registry.close)

        with ZipFileSystem(registry) as fs:
            self.assertEqual(fs.read_file(self.in_zip('lib/index.js')), INDEX_JS)

        self.assertFalse(registry.get(self.archive_path).closed)


class ZipFileSystemAsyncTest(unittest.IsolatedAsyncioTestCase, ZipFileSystemTestBase):
    async def test_read_file_async(self):
        self.assertEqual(await self.fs.read_file_async(self.in_zip('lib/index.js')), INDEX_JS)
        self.assertEqual(await self.fs.read_file_async(self.host_file), b'plain file')

    async def test_stat_async(self):
        self.assertTrue((await self.fs.stat_async(self.in_zip('lib'))).is_dir())

    async def test_readdir_async(self):
        self.assertEqual(await self.fs.readdir_async(self.in_zip('lib')), ['index.js', 'util'])


if __name__ == '__main__':
    unittest.main()
