"""``pgtemplate templates`` -- list templates with a stored build record."""

from __future__ import annotations

from pathlib import Path

from cli.display import display_template_list
from cli.runtime import ENGINE_ERRORS, console, fail, load_project, open_repository, run
from template_engine.models.files import TemplateMetadata
from template_engine.state.change_detector import ChangeDetector


async def _records(repo_path: Path) -> list[TemplateMetadata]:
    detector = ChangeDetector(repo_path)
    records: list[TemplateMetadata] = []
    for name in await detector.list_templates():
        metadata = await detector.load_metadata(name)
        if metadata is not None:
            records.append(metadata)
    return records


def templates_command() -> None:
    """List templates built from this repository."""
    project, base_dir = load_project()
    repository = open_repository(project, base_dir)

    try:
        records = run(_records(repository.path))
    except ENGINE_ERRORS as exc:
        fail(f"Failed to read template metadata: {exc}")

    display_template_list(console, records)
