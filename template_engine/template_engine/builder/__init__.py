"""Template database construction."""

from template_engine.builder.template_manager import (
    SqlExecutionError,
    TemplateBuildError,
    TemplateError,
    TemplateExistsError,
    TemplateManager,
    TemplatePermissionError,
)

__all__ = [
    "SqlExecutionError",
    "TemplateBuildError",
    "TemplateError",
    "TemplateExistsError",
    "TemplateManager",
    "TemplatePermissionError",
]
