"""
This module contains the `ZipArchive` class, a random-access reader for ZIP archives that answers filesystem-like
queries (read, stat, list) about the entries inside.
"""

import errno
import logging
import os
import zlib

from dataclasses import dataclass
from functools import partial
from types import MappingProxyType
from typing import ContextManager, Dict, List, Mapping, Optional, Tuple, Union

from atmfjstc.lib.async_utils import run_uncancelable_thread
from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader, BinaryReaderFormatError
from atmfjstc.lib.error_utils import ignore_errors

from atmfjstc.lib.zip_vfs.errors import ArchiveClosedError, ArchiveFormatError, EntryNotFoundError, ShortReadError, \
    UnsupportedCompressionMethodError
from atmfjstc.lib.zip_vfs.paths import PathType, join, normalize, to_entry_key
from atmfjstc.lib.zip_vfs.records import EOCD_SIZE, LOCAL_FILE_HEADER_SIZE, CentralDirectoryEntry, CompressionKind, \
    EndOfCentralDirectory, LocalFileHeader, ZipCompressionMethod


LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZipEntryStat:
    """
    Status information for an entry in a ZIP archive, as returned by `ZipArchive.stat`.

    It is built purely from the archive index, no I/O is performed.
    """

    entry: CentralDirectoryEntry

    def is_dir(self) -> bool:
        return self.entry.is_dir

    def is_file(self) -> bool:
        return not self.entry.is_dir

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def size(self) -> int:
        return self.entry.uncompressed_size

    @property
    def compressed_size(self) -> int:
        return self.entry.compressed_size

    @property
    def method(self) -> Union[ZipCompressionMethod, int]:
        return self.entry.method

    @property
    def compression_kind(self) -> CompressionKind:
        return self.entry.compression_kind


class ZipArchive(ContextManager['ZipArchive']):
    """
    This class provides random access to the entries of a ZIP archive stored in a file.

    The central directory is read and indexed once, when the archive is opened. Afterwards, entries can be read,
    stat'ed and listed much like files in a filesystem::

        with ZipArchive('path/to/mods.zip') as archive:
            archive.exists('lib/index.js')
            archive.readdir('lib')
            text = archive.read_file('lib/index.js', 'utf-8')

    Paths are relative to the archive root and may use either slashes or backslashes. Directories can be addressed
    both with and without a trailing slash.

    Paths that are not in the archive are passed through to the host filesystem (unless ``fallback_to_host=False``),
    so that callers see the same behavior as for ordinary files: `read_file` reads the host file, `stat` checks
    whether it exists, `readdir` lists the host directory.

    All data is read with positioned reads on a single file descriptor, so the ``*_async`` variants of the operations
    can run concurrently against the same archive. Note that an issued read is never canceled: canceling the awaiting
    task only takes effect once the read is done.

    Limitations: archives with a comment after the EOCD record, ZIP64 archives, multi-disk archives and encrypted
    entries are not supported. Only stored and deflated entries can be read.
    """

    _path: str
    _fallback_to_host: bool = True

    _fd: Optional[int] = None
    _size: int = 0

    _entries: Tuple[CentralDirectoryEntry, ...] = ()
    _index: Mapping[str, CentralDirectoryEntry] = MappingProxyType({})

    def __init__(self, path: PathType, fallback_to_host: bool = True):
        """
        Opens a ZIP archive and indexes its central directory.

        Args:
            path: The path of the ZIP file
            fallback_to_host: Whether operations on paths not found in the archive are passed to the host
                filesystem (the default). If False, they raise `EntryNotFoundError` (or return False, for `stat`).

        Raises:
            ArchiveFormatError: If the file does not have the structure of a ZIP archive
            ShortReadError: If the central directory is truncated
            OSError: If the file cannot be opened
        """

        self._path = normalize(path)
        self._fallback_to_host = fallback_to_host

        fd = os.open(os.fspath(path), os.O_RDONLY | getattr(os, 'O_BINARY', 0))

        try:
            size = os.fstat(fd).st_size
            entries, index = self._load_central_directory(fd, size)
        except BaseException:
            with ignore_errors():
                os.close(fd)

            raise

        self._fd = fd
        self._size = size
        self._entries = entries
        self._index = MappingProxyType(index)

        LOG.debug("Opened ZIP archive %s (%d entries)", self._path, len(entries))

    @property
    def path(self) -> str:
        return self._path

    @property
    def size(self) -> int:
        """
        The total length of the archive file, in bytes.
        """
        return self._size

    @property
    def closed(self) -> bool:
        return self._fd is None

    @property
    def entries(self) -> Tuple[CentralDirectoryEntry, ...]:
        """
        The entries in the archive, in central directory order. Each directory appears only once.
        """
        return self._entries

    @property
    def index(self) -> Mapping[str, CentralDirectoryEntry]:
        """
        A read-only mapping from every index key to its entry. Directories appear under two keys, with and without
        the trailing slash.
        """
        return self._index

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<ZipArchive '{self._path}', {len(self._entries)} entries{', closed' if self.closed else ''}>"

    def exists(self, path: PathType) -> bool:
        """
        Checks whether a path is present in the archive index. The host filesystem is not consulted.
        """
        return self._lookup(path) is not None

    def is_dir(self, path: PathType) -> bool:
        """
        Checks whether a path is a directory in the archive: the root, an entry recorded as a directory, or a directory
        implied by the paths of deeper entries. The host filesystem is not consulted.
        """

        self._require_open()

        key = to_entry_key(path).rstrip('/')
        if key == '':
            return True

        entry = self._index.get(key)
        if entry is not None:
            return entry.is_dir

        prefix = key + '/'

        return any(other_key.startswith(prefix) for other_key in self._index.keys())

    def stat(self, path: PathType) -> Union[ZipEntryStat, bool]:
        """
        Gets status information for an entry.

        Args:
            path: The path of the entry, relative to the archive root

        Returns:
            A `ZipEntryStat` if the entry is in the archive. Otherwise, the result of checking whether `path` exists
            in the host filesystem (a bool). Note that this never raises an error for a missing path.
        """

        entry = self._lookup(path)
        if entry is None:
            return self._host_exists(path)

        return ZipEntryStat(entry)

    async def stat_async(self, path: PathType) -> Union[ZipEntryStat, bool]:
        return await run_uncancelable_thread(partial(self.stat, path))

    def read_file(self, path: PathType, encoding: Optional[str] = None) -> Union[bytes, str]:
        """
        Reads the full content of an entry.

        Args:
            path: The path of the entry, relative to the archive root
            encoding: If specified, the content is decoded to text using this encoding

        Returns:
            The content of the entry, as bytes, or as a str if an `encoding` was given. If the entry is not in the
            archive, the content of the file at `path` in the host filesystem is returned instead.

        Raises:
            ArchiveFormatError: If the entry's local header is corrupt, or its compressed data is invalid
            ShortReadError: If the archive ends before the entry data does
            UnsupportedCompressionMethodError: If the entry uses a compression method other than store or deflate
        """

        entry = self._lookup(path)
        if entry is None:
            return self._host_read_file(path, encoding)

        data = self._read_entry_data(entry)

        return data.decode(encoding) if encoding is not None else data

    async def read_file_async(self, path: PathType, encoding: Optional[str] = None) -> Union[bytes, str]:
        return await run_uncancelable_thread(partial(self.read_file, path, encoding))

    def readdir(self, path: PathType) -> List[str]:
        """
        Lists the direct children of a directory in the archive.

        Directories that have no record of their own, but are implied by the paths of deeper entries, are listed
        too. Use ``''`` or ``'/'`` for the archive root.

        Returns:
            The base names of the children, in central directory order (not sorted). If `path` is not a directory
            in the archive, the listing of `path` in the host filesystem.

        Raises:
            NotADirectoryError: If `path` is a file entry in the archive
        """

        if not self.is_dir(path):
            if self._lookup(path) is not None:
                raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), self.realpath(path))

            return self._host_listdir(path)

        prefix = to_entry_key(path).rstrip('/')
        if prefix != '':
            prefix += '/'

        names = []
        seen = set()

        for key in self._index.keys():
            if (not key.startswith(prefix)) or (key == prefix):
                continue

            child = key[len(prefix):]
            sep_pos = child.find('/')
            if sep_pos != -1:
                child = child[:sep_pos]

            if child not in seen:
                seen.add(child)
                names.append(child)

        return names

    async def readdir_async(self, path: PathType) -> List[str]:
        return await run_uncancelable_thread(partial(self.readdir, path))

    def realpath(self, path: PathType) -> str:
        """
        Gets the full path of an entry, as the archive path followed by the entry path. Existence is not checked.
        """
        self._require_open()

        return join(self._path, to_entry_key(path))

    def close(self):
        """
        Closes the archive file. Calling this more than once has no effect.

        Any other operation on a closed archive raises `ArchiveClosedError`.
        """

        if self._fd is None:
            return

        fd, self._fd = self._fd, None
        os.close(fd)

        LOG.debug("Closed ZIP archive %s", self._path)

    def __enter__(self) -> 'ZipArchive':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _require_open(self) -> int:
        if self._fd is None:
            raise ArchiveClosedError(self._path)

        return self._fd

    def _lookup(self, path: PathType) -> Optional[CentralDirectoryEntry]:
        self._require_open()

        return self._index.get(to_entry_key(path))

    def _load_central_directory(
        self, fd: int, size: int
    ) -> Tuple[Tuple[CentralDirectoryEntry, ...], Dict[str, CentralDirectoryEntry]]:
        if size < EOCD_SIZE:
            raise ArchiveFormatError(self._path, f"File is too short ({size} bytes) to contain an EOCD record")

        try:
            eocd = EndOfCentralDirectory.read_from_binary(self._read_at(fd, size - EOCD_SIZE, EOCD_SIZE))

            reader = BinaryReader(
                self._read_at(fd, eocd.central_directory_offset, eocd.central_directory_size),
                big_endian=False
            )

            entries = []
            index = dict()

            for _ in range(eocd.entry_count):
                entry = CentralDirectoryEntry.read_from_binary(reader)
                entries.append(entry)

                key = to_entry_key(entry.name)
                if entry.is_dir and len(key) > 1:
                    index[key[:-1]] = entry
                index[key] = entry
        except BinaryReaderFormatError as e:
            raise ArchiveFormatError(self._path, str(e)) from e
        except UnicodeDecodeError as e:
            raise ArchiveFormatError(self._path, f"Undecodable entry name: {e}") from e

        return tuple(entries), index

    def _read_entry_data(self, entry: CentralDirectoryEntry) -> bytes:
        fd = self._require_open()

        try:
            header = LocalFileHeader.read_from_binary(
                self._read_at(fd, entry.local_header_offset, LOCAL_FILE_HEADER_SIZE)
            )
        except BinaryReaderFormatError as e:
            raise ArchiveFormatError(self._path, f"Bad local header for entry '{entry.name}': {e}") from e

        data = self._read_at(fd, header.data_offset(entry.local_header_offset), entry.compressed_size)

        kind = entry.compression_kind

        if kind == CompressionKind.STORED:
            return data
        if kind == CompressionKind.DEFLATE:
            try:
                return zlib.decompress(data, -zlib.MAX_WBITS)
            except zlib.error as e:
                raise ArchiveFormatError(self._path, f"Bad compressed data for entry '{entry.name}': {e}") from e

        raise UnsupportedCompressionMethodError(self._path, entry.name, entry.method)

    def _read_at(self, fd: int, offset: int, n_bytes: int) -> bytes:
        if n_bytes == 0:
            return b''

        data = os.pread(fd, n_bytes, offset)

        while len(data) < n_bytes:
            new_data = os.pread(fd, n_bytes - len(data), offset + len(data))

            if len(new_data) == 0:
                break

            data += new_data

        if len(data) < n_bytes:
            raise ShortReadError(self._path, offset, n_bytes, len(data))

        return data

    def _host_exists(self, path: PathType) -> bool:
        if not self._fallback_to_host:
            return False

        LOG.debug("Entry %s not in %s, probing host filesystem", path, self._path)

        return os.path.exists(path)

    def _host_read_file(self, path: PathType, encoding: Optional[str]) -> Union[bytes, str]:
        if not self._fallback_to_host:
            raise EntryNotFoundError(self._path, normalize(path))

        LOG.debug("Entry %s not in %s, reading from host filesystem", path, self._path)

        with open(path, 'rb') as f:
            data = f.read()

        return data.decode(encoding) if encoding is not None else data

    def _host_listdir(self, path: PathType) -> List[str]:
        if not self._fallback_to_host:
            raise EntryNotFoundError(self._path, normalize(path))

        LOG.debug("Directory %s not in %s, listing host filesystem", path, self._path)

        return os.listdir(path)
