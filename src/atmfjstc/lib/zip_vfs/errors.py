"""
Exceptions raised by the ZIP reader and the filesystem facade built on it.
"""

from typing import Optional


class ZipVfsError(Exception):
    pass


class ArchiveFormatError(ZipVfsError):
    """
    Raised when the archive structure does not match the ZIP format (wrong signature, truncated record, corrupt
    compressed data etc.)
    """

    archive_path: str
    reason: str

    def __init__(self, archive_path: str, reason: str):
        self.archive_path = archive_path
        self.reason = reason

        super().__init__(f"ZIP archive '{archive_path}' is corrupt or malformed: {reason}")


class UnsupportedCompressionMethodError(ZipVfsError):
    archive_path: str
    entry_name: str
    method: int

    def __init__(self, archive_path: str, entry_name: str, method: int):
        self.archive_path = archive_path
        self.entry_name = entry_name
        self.method = method

        super().__init__(
            f"Entry '{entry_name}' in ZIP archive '{archive_path}' uses unsupported compression method {int(method)}"
        )


class ShortReadError(ZipVfsError):
    """
    Raised when a positioned read returns fewer bytes than requested, i.e. the archive was truncated or modified
    behind our back.
    """

    archive_path: str
    offset: int
    expected_length: int
    actual_length: int

    def __init__(self, archive_path: str, offset: int, expected_length: int, actual_length: int):
        self.archive_path = archive_path
        self.offset = offset
        self.expected_length = expected_length
        self.actual_length = actual_length

        super().__init__(
            f"At position {offset} in ZIP archive '{archive_path}', expected {expected_length} bytes, but only "
            f"{actual_length} were found"
        )


class ArchiveClosedError(ZipVfsError, ValueError):
    archive_path: str

    def __init__(self, archive_path: str):
        self.archive_path = archive_path

        super().__init__(f"ZIP archive '{archive_path}' has been closed")


class EntryNotFoundError(ZipVfsError, FileNotFoundError):
    archive_path: str
    entry_name: str

    def __init__(self, archive_path: str, entry_name: str):
        self.archive_path = archive_path
        self.entry_name = entry_name

        super().__init__(f"No entry named '{entry_name}' in ZIP archive '{archive_path}'")

    def __str__(self) -> str:
        return self.args[0]


class PackageManifestError(ZipVfsError):
    """
    Raised when a package descriptor (``package.json``) exists but cannot be parsed.
    """

    path: str
    reason: Optional[str]

    def __init__(self, path: str, reason: Optional[str] = None):
        self.path = path
        self.reason = reason

        super().__init__(f"Error parsing {self.path}{f': {reason}' if reason is not None else ''}")
