"""Domain models for the pgtemplate core engine."""

from template_engine.models.environment import EnvironmentFilter
from template_engine.models.files import (
    ChangeKind,
    ChangeReport,
    FileChange,
    ScannedFile,
    TemplateMetadata,
    TemplateState,
    sort_scanned_files,
)

__all__ = [
    "ChangeKind",
    "ChangeReport",
    "EnvironmentFilter",
    "FileChange",
    "ScannedFile",
    "TemplateMetadata",
    "TemplateState",
    "sort_scanned_files",
]
