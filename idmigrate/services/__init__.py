"""Service layer for the migration application."""

from .translation import (
    TranslationTable,
    TranslationArtifactError,
    write_translation_artifact,
)
from .executor import (
    RateLimitedExecutor,
    ExecutorState,
    MigrationTask,
)

__all__ = [
    "TranslationTable",
    "TranslationArtifactError",
    "write_translation_artifact",
    "RateLimitedExecutor",
    "ExecutorState",
    "MigrationTask",
]
