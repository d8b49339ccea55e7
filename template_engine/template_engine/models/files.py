"""File fingerprint and template metadata models.

These models describe the on-disk SQL tree as seen by the scanner and the
snapshot of that tree recorded when a template database was last built.
Comparing the two tells the builder whether a template is stale.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ScannedFile(BaseModel):
    """A single SQL file and the fingerprint of its contents."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(
        ...,
        min_length=1,
        description="POSIX-style path relative to the scanned root.",
    )
    hash: str = Field(
        ...,
        min_length=16,
        max_length=16,
        description="xxHash3 64-bit digest of the raw bytes, lowercase hex.",
    )


class TemplateMetadata(BaseModel):
    """Snapshot of the SQL tree a template database was built from.

    One record exists per template name.  A successful rebuild replaces the
    whole record; it is never merged with a previous one.
    """

    template_name: str = Field(
        ...,
        min_length=1,
        description="Name of the template database.",
    )
    created_at: datetime = Field(
        ...,
        description="UTC timestamp of the build that produced this record.",
    )
    file_hashes: dict[str, str] = Field(
        default_factory=dict,
        description="Relative path -> content hash for every scanned file.",
    )

    def to_scanned_files(self) -> list[ScannedFile]:
        """Return the stored fingerprints as scanner records, sorted by path."""
        files = [ScannedFile(path=path, hash=digest) for path, digest in self.file_hashes.items()]
        return sort_scanned_files(files)


class ChangeKind(str, Enum):
    """How a file differs from the recorded template snapshot."""

    MODIFIED = "MODIFIED"
    ADDED = "ADDED"
    DELETED = "DELETED"


_CHANGE_REASONS: dict[ChangeKind, str] = {
    ChangeKind.MODIFIED: "file changed",
    ChangeKind.ADDED: "new file",
    ChangeKind.DELETED: "file missing",
}


class FileChange(BaseModel):
    """One difference between the current tree and the stored snapshot."""

    model_config = ConfigDict(frozen=True)

    path: str
    kind: ChangeKind

    @property
    def reason(self) -> str:
        return _CHANGE_REASONS[self.kind]


class TemplateState(str, Enum):
    """Build state of a template as seen by the change detector."""

    ABSENT = "ABSENT"
    STALE = "STALE"
    CURRENT = "CURRENT"


class ChangeReport(BaseModel):
    """Result of comparing a template snapshot against the current tree."""

    template_name: str
    has_metadata: bool = Field(
        default=False,
        description="False when the template has never been built.",
    )
    created_at: datetime | None = None
    changes: list[FileChange] = Field(default_factory=list)

    @property
    def needs_rebuild(self) -> bool:
        return not self.has_metadata or bool(self.changes)

    @property
    def state(self) -> TemplateState:
        if not self.has_metadata:
            return TemplateState.ABSENT
        if self.changes:
            return TemplateState.STALE
        return TemplateState.CURRENT


def sort_scanned_files(files: list[ScannedFile]) -> list[ScannedFile]:
    """Sort records component-wise by path so ``a/b`` precedes ``a-b``."""
    return sorted(files, key=lambda f: tuple(f.path.split("/")))
