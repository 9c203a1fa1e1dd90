"""
Random-access reader for ZIP archives, with a filesystem-like interface.

The main class of interest is `ZipArchive`, which indexes the central directory of a ZIP file once and then serves
reads, stat queries and directory listings for the entries inside::

    with ZipArchive('path/to/mods.zip') as archive:
        print(archive.readdir(''))
        data = archive.read_file('lib/index.js')

On top of it, `ZipFileSystem` offers a facade in which paths that go "through" a ``.zip`` file (e.g.
``/opt/mods.zip/lib/index.js``) are served from the archive, and all other paths from the host filesystem. Archives
opened by the facade are kept in an `ArchiveRegistry` owned by the caller.

Only the subset of the ZIP format needed for reading typical archives is supported: no ZIP64, multi-disk archives,
encryption or archive comments, and only stored or deflated entries.
"""

from atmfjstc.lib.zip_vfs.errors import ZipVfsError, ArchiveFormatError, UnsupportedCompressionMethodError, \
    ShortReadError, ArchiveClosedError, EntryNotFoundError, PackageManifestError
from atmfjstc.lib.zip_vfs.paths import normalize, join, split_zip_path, ZipPath
from atmfjstc.lib.zip_vfs.records import CentralDirectoryEntry, CompressionKind, ZipCompressionMethod
from atmfjstc.lib.zip_vfs.ZipArchive import ZipArchive, ZipEntryStat
from atmfjstc.lib.zip_vfs.registry import ArchiveRegistry
from atmfjstc.lib.zip_vfs.vfs import ZipFileSystem
from atmfjstc.lib.zip_vfs.resolve import read_package_main, resolve_entry_file


__version__ = '0.1.0'
