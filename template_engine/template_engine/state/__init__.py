"""Persistent template build state."""

from template_engine.state.change_detector import (
    METADATA_DIRNAME,
    ChangeDetectionError,
    ChangeDetector,
    diff_files,
    files_differ,
)

__all__ = [
    "METADATA_DIRNAME",
    "ChangeDetectionError",
    "ChangeDetector",
    "diff_files",
    "files_differ",
]
