"""
Decoders for the binary records that make up a ZIP archive's directory structure.

Only the three records needed for random access are handled:

- the End Of Central Directory (EOCD) record, which locates the central directory
- the Central Directory entries, one for each file or directory in the archive
- the Local File Headers, which immediately precede the data for each entry

All integers in these records are little-endian.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum, IntFlag
from typing import Union, Type, TypeVar

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader


EOCD_MAGIC = b'PK\x05\x06'
EOCD_SIZE = 22

CENTRAL_DIRECTORY_ENTRY_MAGIC = b'PK\x01\x02'
CENTRAL_DIRECTORY_ENTRY_SIZE = 46

LOCAL_FILE_HEADER_MAGIC = b'PK\x03\x04'
LOCAL_FILE_HEADER_SIZE = 30


class ZipEntryFlags(IntFlag):
    ENCRYPTED = 1 << 0
    DEFERRED_CRC32 = 1 << 3
    ENHANCED_DEFLATE = 1 << 4
    PATCHED_DATA = 1 << 5
    STRONG_ENCRYPTION = 1 << 6
    UTF8 = 1 << 11
    ENHANCED_COMPRESSION = 1 << 12
    LOCAL_HEADER_MASKED = 1 << 13


class ZipCompressionMethod(IntEnum):
    STORE = 0
    SHRINK = 1
    REDUCE1 = 2
    REDUCE2 = 3
    REDUCE3 = 4
    REDUCE4 = 5
    IMPLODE = 6
    TOKENIZE = 7
    DEFLATE = 8
    DEFLATE64 = 9
    DCL_IMPLODE = 10
    BZIP2 = 12
    LZMA = 14
    ZSTANDARD = 93
    XZ = 95
    PPMD = 98
    AE_X_ENCRYPTION = 99


class CompressionKind(Enum):
    """
    The compression methods as far as this reader is concerned: the ones it can decode, and everything else.
    """
    STORED = 'stored'
    DEFLATE = 'deflate'
    OTHER = 'other'


@dataclass(frozen=True)
class EndOfCentralDirectory:
    """
    The fields of the EOCD record that are needed for locating the central directory.

    Attributes:
        entry_count: The total number of records in the central directory
        central_directory_size: The size of the central directory, in bytes
        central_directory_offset: The offset of the central directory from the start of the archive
    """

    entry_count: int
    central_directory_size: int
    central_directory_offset: int

    @staticmethod
    def read_from_binary(data: bytes) -> 'EndOfCentralDirectory':
        reader = BinaryReader(data, big_endian=False)

        reader.expect_magic(EOCD_MAGIC, 'EOCD signature')
        _disk_no, _cd_start_disk, _disk_entry_count, entry_count, cd_size, cd_offset, _comment_length = \
            reader.read_struct('HHHHIIH', 'EOCD record')

        return EndOfCentralDirectory(
            entry_count=entry_count,
            central_directory_size=cd_size,
            central_directory_offset=cd_offset,
        )


@dataclass(frozen=True)
class CentralDirectoryEntry:
    """
    The metadata for a file or directory in a ZIP archive, as recorded in the central directory.

    Objects of this type are inert data containers and are never modified once the archive has been indexed.

    Attributes:
        name: The path of the entry relative to the archive root, using forward slashes. Directories end in a slash.
        method: A `ZipCompressionMethod` enum, or an int if the method is not recognized.
        compressed_size: The size of the stored (compressed) data, in bytes
        uncompressed_size: The size of the data after decompression, in bytes
        local_header_offset: The offset of the entry's local file header from the start of the archive
        is_dir: Whether the entry is a directory
        flags: The general purpose flags of the entry
        crc32: The CRC-32 of the uncompressed data, as declared in the central directory
    """

    name: str
    method: Union[ZipCompressionMethod, int]
    compressed_size: int
    uncompressed_size: int
    local_header_offset: int
    is_dir: bool

    flags: ZipEntryFlags = ZipEntryFlags(0)
    crc32: int = 0

    @property
    def compression_kind(self) -> CompressionKind:
        if self.method == ZipCompressionMethod.STORE:
            return CompressionKind.STORED
        if self.method == ZipCompressionMethod.DEFLATE:
            return CompressionKind.DEFLATE

        return CompressionKind.OTHER

    @staticmethod
    def read_from_binary(reader: BinaryReader) -> 'CentralDirectoryEntry':
        """
        Reads a central directory record, leaving the reader positioned right after its variable-length fields.
        """

        reader.expect_magic(CENTRAL_DIRECTORY_ENTRY_MAGIC, 'central directory entry signature')
        _version_made_by, _version_needed, flags, method, _mod_time, _mod_date, crc32, compressed_size, \
            uncompressed_size, name_length, extra_length, comment_length, _disk_start, _internal_attrs, \
            _external_attrs, local_header_offset = reader.read_struct('HHHHHHIIIHHHHHII', 'central directory entry')

        raw_name = reader.read_amount(name_length, 'entry name')
        reader.skip_bytes(extra_length, 'entry extra field')
        reader.skip_bytes(comment_length, 'entry comment')

        flags = ZipEntryFlags(flags)
        name = raw_name.decode('utf-8' if flags & ZipEntryFlags.UTF8 else 'cp437')

        return CentralDirectoryEntry(
            name=name,
            method=_as_enum(method, ZipCompressionMethod),
            compressed_size=compressed_size,
            uncompressed_size=uncompressed_size,
            local_header_offset=local_header_offset,
            is_dir=name.endswith('/'),
            flags=flags,
            crc32=crc32,
        )


@dataclass(frozen=True)
class LocalFileHeader:
    """
    The fields of a local file header that are needed for locating the entry data.

    Note that the name and extra field lengths here need not agree with those in the central directory, and it is
    these that determine where the data starts.
    """

    name_length: int
    extra_length: int

    def data_offset(self, header_offset: int) -> int:
        return header_offset + LOCAL_FILE_HEADER_SIZE + self.name_length + self.extra_length

    @staticmethod
    def read_from_binary(data: bytes) -> 'LocalFileHeader':
        reader = BinaryReader(data, big_endian=False)

        reader.expect_magic(LOCAL_FILE_HEADER_MAGIC, 'local file header signature')
        *_, name_length, extra_length = reader.read_struct('HHHHHIIIHH', 'local file header')

        return LocalFileHeader(name_length=name_length, extra_length=extra_length)


T = TypeVar('T')


def _as_enum(raw_value: int, enum: Type[T]) -> Union[T, int]:
    try:
        return enum(raw_value)
    except Exception:
        return raw_value
