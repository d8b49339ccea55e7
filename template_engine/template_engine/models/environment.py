"""Environment filter model consumed by the SQL repository."""

from __future__ import annotations

from pydantic import BaseModel, Field


class EnvironmentFilter(BaseModel):
    """Directory include/exclude lists for one named environment.

    ``include_directories`` (when non-empty) names exactly which top-level
    directories of a structured repository take part in a build.
    ``exclude_directories`` is always subtracted afterwards.
    """

    name: str = Field(default="", description="Environment name, e.g. ``local``.")
    include_directories: list[str] = Field(default_factory=list)
    exclude_directories: list[str] = Field(default_factory=list)

    def allows(self, directory_name: str, default: bool) -> bool:
        """Decide whether *directory_name* participates in the build.

        *default* is the verdict of the naming-convention rules and is used
        only when no explicit include list is configured.
        """
        if self.include_directories:
            included = directory_name in self.include_directories
        else:
            included = default
        return included and directory_name not in self.exclude_directories
