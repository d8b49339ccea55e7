"""Walk a directory tree and fingerprint every SQL file in it.

The fingerprint is a fast, non-cryptographic xxHash3 64-bit digest of the
raw file bytes.  It only has to change whenever a file changes; it does not
have to resist deliberate collisions.

Typical usage::

    files = FileScanner(Path("db/")).scan()
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import xxhash

from template_engine.models.files import ScannedFile, sort_scanned_files

logger = logging.getLogger(__name__)

SQL_SUFFIX = ".sql"


class ScanError(Exception):
    """Raised when the tree cannot be walked or a file cannot be read."""


def hash_bytes(data: bytes) -> str:
    """Return the 16-character lowercase hex fingerprint of *data*."""
    return xxhash.xxh3_64_hexdigest(data)


def is_sql_file(path: Path) -> bool:
    return path.suffix.lower() == SQL_SUFFIX


def _raise_walk_error(exc: OSError) -> None:
    raise exc


class FileScanner:
    """Fingerprint all ``.sql`` files below *root_path*.

    Symlinked directories are not descended into.  A scan is all-or-nothing:
    any error aborts it with :class:`ScanError` and no partial result.
    """

    def __init__(self, root_path: Path | str) -> None:
        self._root_path = Path(root_path)

    @property
    def root_path(self) -> Path:
        return self._root_path

    def scan(self) -> list[ScannedFile]:
        """Return every SQL file under the root, sorted by relative path."""
        root = self._root_path
        if not root.is_dir():
            raise ScanError(f"Scan root does not exist or is not a directory: '{root}'")

        files: list[ScannedFile] = []
        try:
            for dirpath, dirnames, filenames in os.walk(root, followlinks=False, onerror=_raise_walk_error):
                dirnames.sort()
                base = Path(dirpath)
                for filename in sorted(filenames):
                    path = base / filename
                    if not is_sql_file(path):
                        continue
                    files.append(
                        ScannedFile(
                            path=path.relative_to(root).as_posix(),
                            hash=hash_bytes(path.read_bytes()),
                        )
                    )
        except OSError as exc:
            raise ScanError(f"Failed to scan '{root}': {exc}") from exc

        logger.debug("Scanned %d SQL file(s) under '%s'", len(files), root)
        return sort_scanned_files(files)

    async def scan_async(self) -> list[ScannedFile]:
        """Run :meth:`scan` in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.scan)
