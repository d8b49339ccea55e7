"""Decide whether a template database is stale relative to its SQL files.

Each successful template build records the fingerprints of every SQL file
under the repository root in ``<root>/.pgtemplate/<template>.json``.  A later
scan is compared against that record: any added, deleted or modified file
makes the template stale.

INVARIANT: a scanner failure propagates as :class:`ScanError`.  It is never
interpreted as "needs rebuild".  Only a missing record is.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from template_engine.clone.naming import validate_database_name
from template_engine.models.files import (
    ChangeKind,
    ChangeReport,
    FileChange,
    ScannedFile,
    TemplateMetadata,
    TemplateState,
)
from template_engine.scanner.file_scanner import FileScanner

logger = logging.getLogger(__name__)

METADATA_DIRNAME = ".pgtemplate"
_METADATA_SUFFIX = ".json"


class ChangeDetectionError(Exception):
    """Raised when template metadata cannot be read, parsed or written."""


# ---------------------------------------------------------------------------
# Comparison helpers
# ---------------------------------------------------------------------------


def files_differ(current: list[ScannedFile], stored: list[ScannedFile]) -> bool:
    """Return True when *current* and *stored* describe different trees."""
    if len(current) != len(stored):
        return True

    current_map = {f.path: f.hash for f in current}
    stored_map = {f.path: f.hash for f in stored}

    for path, digest in current_map.items():
        if stored_map.get(path) != digest:
            return True

    return any(path not in current_map for path in stored_map)


def diff_files(current: list[ScannedFile], stored: list[ScannedFile]) -> list[FileChange]:
    """List every difference between *current* and *stored*, sorted by path."""
    current_map = {f.path: f.hash for f in current}
    stored_map = {f.path: f.hash for f in stored}

    changes: list[FileChange] = []
    for path, digest in current_map.items():
        stored_digest = stored_map.get(path)
        if stored_digest is None:
            changes.append(FileChange(path=path, kind=ChangeKind.ADDED))
        elif stored_digest != digest:
            changes.append(FileChange(path=path, kind=ChangeKind.MODIFIED))

    for path in stored_map:
        if path not in current_map:
            changes.append(FileChange(path=path, kind=ChangeKind.DELETED))

    changes.sort(key=lambda c: tuple(c.path.split("/")))
    return changes


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------


class ChangeDetector:
    """Track SQL file fingerprints per template name.

    Parameters
    ----------
    root_path:
        Repository root to scan.  The metadata directory is derived from it,
        so detectors for different repositories never share state.
    metadata_dirname:
        Name of the hidden directory below *root_path* holding the records.
    """

    def __init__(self, root_path: Path | str, metadata_dirname: str = METADATA_DIRNAME) -> None:
        self._root_path = Path(root_path)
        self._metadata_dir = self._root_path / metadata_dirname
        self._scanner = FileScanner(self._root_path)

    @property
    def root_path(self) -> Path:
        return self._root_path

    @property
    def metadata_dir(self) -> Path:
        return self._metadata_dir

    def metadata_path(self, template_name: str) -> Path:
        """Return the record location for *template_name* (validated first)."""
        validate_database_name(template_name)
        return self._metadata_dir / f"{template_name}{_METADATA_SUFFIX}"

    # -- Queries -------------------------------------------------------------

    async def scan(self) -> list[ScannedFile]:
        return await self._scanner.scan_async()

    async def needs_rebuild(self, template_name: str) -> bool:
        """Return True if *template_name* was never built or its files changed."""
        stored = await self.get_metadata(template_name)
        if stored is None:
            logger.debug("No metadata for template '%s'; rebuild required", template_name)
            return True

        current = await self.scan()
        return files_differ(current, stored)

    async def detect_changes(self, template_name: str) -> ChangeReport:
        """Like :meth:`needs_rebuild` but report every change with its reason."""
        metadata = await self.load_metadata(template_name)
        if metadata is None:
            return ChangeReport(template_name=template_name, has_metadata=False)

        current = await self.scan()
        return ChangeReport(
            template_name=template_name,
            has_metadata=True,
            created_at=metadata.created_at,
            changes=diff_files(current, metadata.to_scanned_files()),
        )

    async def template_state(self, template_name: str) -> TemplateState:
        report = await self.detect_changes(template_name)
        return report.state

    async def get_metadata(self, template_name: str) -> list[ScannedFile] | None:
        """Return the stored fingerprints sorted by path, or None if absent."""
        metadata = await self.load_metadata(template_name)
        if metadata is None:
            return None
        return metadata.to_scanned_files()

    async def load_metadata(self, template_name: str) -> TemplateMetadata | None:
        path = self.metadata_path(template_name)
        return await asyncio.to_thread(self._read_metadata, path)

    async def list_templates(self) -> list[str]:
        """Return the names of all templates with a stored record."""
        return await asyncio.to_thread(self._list_records)

    # -- Mutations -----------------------------------------------------------

    async def store_metadata(self, template_name: str, files: list[ScannedFile]) -> TemplateMetadata:
        """Persist a fresh record for *template_name*, replacing any previous one."""
        metadata = TemplateMetadata(
            template_name=template_name,
            created_at=datetime.now(UTC),
            file_hashes={f.path: f.hash for f in files},
        )
        path = self.metadata_path(template_name)
        await asyncio.to_thread(self._write_metadata, path, metadata)
        logger.info("Stored metadata for template '%s' (%d files)", template_name, len(files))
        return metadata

    async def clear_metadata(self, template_name: str) -> None:
        """Remove the record for *template_name*; no error if it is absent."""
        path = self.metadata_path(template_name)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            raise ChangeDetectionError(f"Failed to remove metadata '{path}': {exc}") from exc

    # -- File I/O ------------------------------------------------------------

    @staticmethod
    def _read_metadata(path: Path) -> TemplateMetadata | None:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise ChangeDetectionError(f"Failed to read metadata '{path}': {exc}") from exc

        try:
            return TemplateMetadata.model_validate_json(raw)
        except ValidationError as exc:
            raise ChangeDetectionError(f"Corrupt metadata '{path}': {exc}") from exc

    def _write_metadata(self, path: Path, metadata: TemplateMetadata) -> None:
        payload = {
            "template_name": metadata.template_name,
            "created_at": metadata.created_at.isoformat(),
            "file_hashes": dict(sorted(metadata.file_hashes.items())),
        }
        content = json.dumps(payload, indent=2) + "\n"

        try:
            self._metadata_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._metadata_dir,
                prefix=f".{metadata.template_name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(content)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise ChangeDetectionError(f"Failed to write metadata '{path}': {exc}") from exc

    def _list_records(self) -> list[str]:
        if not self._metadata_dir.is_dir():
            return []
        try:
            return sorted(p.stem for p in self._metadata_dir.glob(f"*{_METADATA_SUFFIX}") if p.is_file())
        except OSError as exc:
            raise ChangeDetectionError(f"Failed to list metadata in '{self._metadata_dir}': {exc}") from exc
