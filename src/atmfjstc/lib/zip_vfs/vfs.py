"""
A filesystem facade that makes the content of ZIP archives visible at paths going "through" the archive file.

For instance, given an archive ``/opt/mods.zip`` containing ``lib/index.js``, the path ``/opt/mods.zip/lib/index.js``
can be read, stat'ed etc. through a `ZipFileSystem` just like an ordinary file. All other paths are served by the host
filesystem, so code using the facade works unchanged whether its files are packed in an archive or not.

Nothing global is patched: only callers going through a `ZipFileSystem` see the archive contents.
"""

import os

from functools import partial
from typing import ContextManager, List, Optional, Tuple, Union

from atmfjstc.lib.async_utils import run_uncancelable_thread

from atmfjstc.lib.zip_vfs.errors import ArchiveFormatError, ShortReadError
from atmfjstc.lib.zip_vfs.paths import PathType, split_zip_path, to_entry_key
from atmfjstc.lib.zip_vfs.registry import ArchiveRegistry
from atmfjstc.lib.zip_vfs.ZipArchive import ZipArchive, ZipEntryStat


class ZipFileSystem(ContextManager['ZipFileSystem']):
    """
    Filesystem facade that serves paths inside ZIP archives from the archives, and all other paths from the host.

    Archives are opened on first use and kept in an `ArchiveRegistry`. Pass your own registry to share archives
    between several facades, or to control when they are released; otherwise the facade creates a private one and
    closes it along with itself.

    For any path that does not designate an entry in an archive, each operation behaves exactly like the
    corresponding host filesystem call, including the errors it raises.
    """

    _registry: ArchiveRegistry
    _owns_registry: bool

    def __init__(self, registry: Optional[ArchiveRegistry] = None):
        self._owns_registry = registry is None
        self._registry = registry if registry is not None else ArchiveRegistry()

    @property
    def registry(self) -> ArchiveRegistry:
        return self._registry

    def exists(self, path: PathType) -> bool:
        archive, entry_path = self._locate(path)
        if (archive is not None) and archive.exists(entry_path):
            return True

        return os.path.exists(path)

    def stat(self, path: PathType) -> Union[ZipEntryStat, os.stat_result]:
        """
        Gets a `ZipEntryStat` for an archive entry, or the host ``os.stat`` result for any other path.
        """

        archive, entry_path = self._locate(path)
        if (archive is not None) and archive.exists(entry_path):
            return archive.stat(entry_path)

        return os.stat(path)

    async def stat_async(self, path: PathType) -> Union[ZipEntryStat, os.stat_result]:
        return await run_uncancelable_thread(partial(self.stat, path))

    def is_dir(self, path: PathType) -> bool:
        archive, entry_path = self._locate(path)
        if archive is not None:
            return archive.is_dir(entry_path)

        return os.path.isdir(path)

    def is_file(self, path: PathType) -> bool:
        archive, entry_path = self._locate(path)
        if (archive is not None) and archive.exists(entry_path):
            return archive.stat(entry_path).is_file()

        return os.path.isfile(path)

    def read_file(self, path: PathType, encoding: Optional[str] = None) -> Union[bytes, str]:
        archive, entry_path = self._locate(path)
        if (archive is not None) and archive.exists(entry_path):
            return archive.read_file(entry_path, encoding)

        with open(path, 'rb') as f:
            data = f.read()

        return data.decode(encoding) if encoding is not None else data

    async def read_file_async(self, path: PathType, encoding: Optional[str] = None) -> Union[bytes, str]:
        return await run_uncancelable_thread(partial(self.read_file, path, encoding))

    def readdir(self, path: PathType) -> List[str]:
        archive, entry_path = self._locate(path)
        if (archive is not None) and archive.is_dir(entry_path):
            return archive.readdir(entry_path)

        return os.listdir(path)

    async def readdir_async(self, path: PathType) -> List[str]:
        return await run_uncancelable_thread(partial(self.readdir, path))

    def realpath(self, path: PathType) -> str:
        archive, entry_path = self._locate(path)
        if (archive is not None) and archive.exists(entry_path):
            return archive.realpath(entry_path)

        return os.path.realpath(path)

    def close(self):
        """
        Closes the facade. If the registry was created by the facade, all the archives it opened are closed too.
        """
        if self._owns_registry:
            self._registry.close()

    def __enter__(self) -> 'ZipFileSystem':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _locate(self, path: PathType) -> Tuple[Optional[ZipArchive], str]:
        zip_path = split_zip_path(os.path.abspath(os.fspath(path)))
        if zip_path is None:
            return None, ''

        if (zip_path.archive_path not in self._registry) and not os.path.isfile(zip_path.archive_path):
            return None, ''

        try:
            archive = self._registry.get(zip_path.archive_path)
        except (ArchiveFormatError, ShortReadError):
            # A host file that merely has a .zip name
            if to_entry_key(zip_path.entry_path) == '':
                return None, ''

            raise

        return archive, zip_path.entry_path
