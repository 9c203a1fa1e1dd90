"""
Helpers for resolving the file that a module request refers to, in the manner of a Node-style loader, through a
`ZipFileSystem` (so that packages stored inside ZIP archives are found as well).

Given a request path, the candidates are tried in this order:

- the path itself, if it is a file
- the path with each of the given extensions appended
- the ``main`` file declared in ``<path>/package.json``, as-is, with extensions, or as a directory with an ``index``
- ``<path>/index`` with each of the extensions
"""

import json

from typing import Optional, Sequence

from atmfjstc.lib.zip_vfs.errors import PackageManifestError
from atmfjstc.lib.zip_vfs.paths import PathType, join, normalize
from atmfjstc.lib.zip_vfs.vfs import ZipFileSystem


def read_package_main(fs: ZipFileSystem, directory: PathType) -> Optional[str]:
    """
    Looks up the ``main`` field of the ``package.json`` in a directory.

    Returns:
        The value of the field, or None if there is no readable ``package.json`` or it declares no (string) ``main``.

    Raises:
        PackageManifestError: If the ``package.json`` exists but is not valid JSON
    """

    manifest_path = join(directory, 'package.json')

    try:
        text = fs.read_file(manifest_path, 'utf-8')
    except (OSError, UnicodeDecodeError):
        return None

    try:
        manifest = json.loads(text)
    except ValueError as e:
        raise PackageManifestError(manifest_path, str(e)) from e

    main = manifest.get('main') if isinstance(manifest, dict) else None

    return main if isinstance(main, str) and main != '' else None


def resolve_entry_file(
    fs: ZipFileSystem, path: PathType, extensions: Sequence[str] = ('.js', '.json')
) -> Optional[str]:
    """
    Finds the file that a module request path refers to.

    Args:
        fs: The filesystem facade to search through
        path: The request path (typically absolute)
        extensions: The extensions to try, in order, including the dot

    Returns:
        The real path of the first matching file, or None if nothing matched.

    Raises:
        PackageManifestError: If a ``package.json`` that had to be consulted could not be parsed
    """

    path = normalize(path)

    if not path.endswith('/'):
        found = _try_file(fs, path) or _try_extensions(fs, path, extensions)
        if found is not None:
            return found

    found = _try_package(fs, path, extensions)
    if found is not None:
        return found

    return _try_extensions(fs, join(path, 'index'), extensions)


def _try_file(fs: ZipFileSystem, path: str) -> Optional[str]:
    return fs.realpath(path) if fs.is_file(path) else None


def _try_extensions(fs: ZipFileSystem, path: str, extensions: Sequence[str]) -> Optional[str]:
    for extension in extensions:
        found = _try_file(fs, path + extension)
        if found is not None:
            return found

    return None


def _try_package(fs: ZipFileSystem, path: str, extensions: Sequence[str]) -> Optional[str]:
    main = read_package_main(fs, path)
    if main is None:
        return None

    main_path = join(path, main)

    return _try_file(fs, main_path) or _try_extensions(fs, main_path, extensions) or \
        _try_extensions(fs, join(main_path, 'index'), extensions)
