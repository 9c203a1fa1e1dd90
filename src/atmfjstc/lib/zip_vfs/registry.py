"""
A caller-owned registry of open ZIP archives.
"""

import logging
import os
import threading

from typing import Callable, ContextManager, Dict

from atmfjstc.lib.zip_vfs.paths import PathType, normalize
from atmfjstc.lib.zip_vfs.ZipArchive import ZipArchive


LOG = logging.getLogger(__name__)


class ArchiveRegistry(ContextManager['ArchiveRegistry']):
    """
    Keeps at most one open `ZipArchive` per archive path, so that the same file is not opened and indexed repeatedly.

    There is no eviction policy: an archive stays open until it is explicitly released with `release`, or until the
    whole registry is closed. The registry is owned by whoever creates it; nothing is shared at the process level.

    Paths are made absolute and normalized before being used as keys, so ``mods.zip`` and ``./mods.zip`` refer to the
    same archive.
    """

    _opener: Callable[[str], ZipArchive]
    _archives: Dict[str, ZipArchive]
    _lock: threading.Lock

    def __init__(self, opener: Callable[[str], ZipArchive] = ZipArchive):
        """
        Args:
            opener: The function called to open an archive that is not in the registry yet. It receives the
                normalized absolute path. Defaults to the `ZipArchive` constructor.
        """
        self._opener = opener
        self._archives = dict()
        self._lock = threading.Lock()

    def get(self, path: PathType) -> ZipArchive:
        """
        Gets the open archive for a path, opening it if this is the first request for it.

        If opening the archive fails, the error propagates and nothing is added to the registry.
        """

        key = _registry_key(path)

        with self._lock:
            archive = self._archives.get(key)
            if archive is None:
                archive = self._opener(key)
                self._archives[key] = archive

                LOG.debug("Registered ZIP archive %s", key)

        return archive

    def release(self, path: PathType) -> bool:
        """
        Closes the archive for a path and removes it from the registry.

        Returns:
            True if the archive was open, False if it was not in the registry.
        """

        with self._lock:
            archive = self._archives.pop(_registry_key(path), None)

        if archive is None:
            return False

        archive.close()
        LOG.debug("Released ZIP archive %s", archive.path)

        return True

    def close(self):
        """
        Closes all the archives in the registry and empties it.
        """

        with self._lock:
            archives = list(self._archives.values())
            self._archives.clear()

        for archive in archives:
            archive.close()

    def __contains__(self, path: PathType) -> bool:
        return _registry_key(path) in self._archives

    def __len__(self) -> int:
        return len(self._archives)

    def __enter__(self) -> 'ArchiveRegistry':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _registry_key(path: PathType) -> str:
    return normalize(os.path.abspath(os.fspath(path)))
