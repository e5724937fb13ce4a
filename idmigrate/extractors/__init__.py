"""Record sources for snapshot files."""

from .base import BaseExtractor, ExtractedRecord
from .ndjson_extractor import NDJSONExtractor
from .source_api import (
    ClerkClient,
    SnapshotExporter,
    SourceAPIError,
    export_snapshot,
)

__all__ = [
    "BaseExtractor",
    "ExtractedRecord",
    "NDJSONExtractor",
    "ClerkClient",
    "SnapshotExporter",
    "SourceAPIError",
    "export_snapshot",
]
