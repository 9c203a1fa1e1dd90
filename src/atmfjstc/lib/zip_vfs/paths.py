"""
Path utilities for working with paths inside ZIP archives.

Inside a ZIP archive the separator is always a forward slash, whatever the host convention. All paths used as keys
into an archive index must go through `normalize` first, otherwise lookups will silently miss existing entries.
"""

import os
import re

from dataclasses import dataclass
from typing import Optional, Union
from os import PathLike


PathType = Union[str, PathLike]


def normalize(path: PathType) -> str:
    """
    Replaces every backslash in a path with a forward slash.
    """
    return os.fspath(path).replace('\\', '/')


def join(a: PathType, b: PathType) -> str:
    """
    Joins two paths using the host convention, then normalizes the result.
    """
    return normalize(os.path.join(os.fspath(a), os.fspath(b)))


def to_entry_key(path: PathType) -> str:
    """
    Converts an archive-relative path to the form used as a key in an archive index.

    The path is normalized and any leading separators are removed, so that ``/a/b``, ``a/b`` and ``\\a\\b`` all
    address the same entry.
    """
    return normalize(path).lstrip('/')


@dataclass(frozen=True)
class ZipPath:
    """
    A host path split into the path of a ZIP container and the path of an entry inside it.

    Attributes:
        archive_path: The path of the ``.zip`` file, normalized
        entry_path: The path of the entry relative to the archive root, normalized. Empty if the path designates the
            archive root.
    """
    archive_path: str
    entry_path: str


_ZIP_SUFFIX_RE = re.compile(r'\.zip(?=/|$)')


def split_zip_path(path: PathType) -> Optional[ZipPath]:
    """
    Splits a host path that points inside a ZIP container into the container and the entry parts.

    The container is recognized by the first path component ending in ``.zip``. For instance,
    ``/opt/mods.zip/lib/index.js`` is split into ``/opt/mods.zip`` and ``lib/index.js``.

    Args:
        path: The path to examine

    Returns:
        A `ZipPath`, or None if the path does not go through a ``.zip`` component.
    """

    path = normalize(path)

    match = _ZIP_SUFFIX_RE.search(path)
    if match is None:
        return None

    return ZipPath(archive_path=path[:match.end()], entry_path=path[match.end() + 1:])
