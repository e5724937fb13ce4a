"""ID translation tables between source and destination identifiers."""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from ..models.record import RecordKind, TranslationEntry

logger = logging.getLogger(__name__)


class TranslationArtifactError(Exception):
    """A translation artifact is missing or malformed."""


class TranslationTable:
    """
    In-memory mapping from source identifiers to destination identifiers
    for one record kind.

    Built once before a dependent job starts and only read while it runs.
    """

    def __init__(self, kind: RecordKind, entries: Optional[Iterable[TranslationEntry]] = None):
        self.kind = kind
        self._mapping: Dict[str, str] = {}
        for entry in entries or []:
            self.add(entry)

    def add(self, entry: TranslationEntry) -> None:
        """
        Add an entry.

        Raises:
            ValueError: If the source id already maps to a different destination id
        """
        existing = self._mapping.get(entry.source_id)
        if existing is not None and existing != entry.destination_id:
            raise ValueError(
                f"{self.kind.label} {entry.source_id} already maps to {existing}, "
                f"not {entry.destination_id}"
            )
        self._mapping[entry.source_id] = entry.destination_id

    def lookup(self, source_id: str) -> Optional[str]:
        """Get the destination id for a source id, or None if it was never migrated."""
        return self._mapping.get(source_id)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._mapping

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:
        return f"TranslationTable(kind={self.kind.value!r}, entries={len(self)})"

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        kind: RecordKind,
        source_field: str = "clerk",
        destination_field: str = "workos"
    ) -> "TranslationTable":
        """
        Load a translation artifact written by a previous job.

        Args:
            path: Path to the JSON array of translation objects
            kind: Record kind the artifact translates
            source_field: Key holding the source identifier
            destination_field: Key holding the destination identifier

        Returns:
            TranslationTable

        Raises:
            TranslationArtifactError: If the artifact is missing or malformed
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise TranslationArtifactError(f"Translation artifact not found: {path}") from e
        except json.JSONDecodeError as e:
            raise TranslationArtifactError(f"Translation artifact {path} is not valid JSON: {e}") from e

        if not isinstance(data, list):
            raise TranslationArtifactError(
                f"Translation artifact {path} must be a JSON array, got {type(data).__name__}"
            )

        table = cls(kind)
        for index, item in enumerate(data):
            source_id = item.get(source_field) if isinstance(item, dict) else None
            destination_id = item.get(destination_field) if isinstance(item, dict) else None
            if not isinstance(source_id, str) or not isinstance(destination_id, str):
                raise TranslationArtifactError(
                    f"Entry {index} of {path} needs string '{source_field}' and "
                    f"'{destination_field}' fields: {item!r}"
                )
            try:
                table.add(TranslationEntry(source_id, destination_id))
            except ValueError as e:
                raise TranslationArtifactError(f"Conflicting entry {index} in {path}: {e}") from e

        logger.info(f"Loaded {len(table)} {kind.label} translations from {path}")
        return table


def write_translation_artifact(
    path: Union[str, Path],
    entries: Iterable[TranslationEntry],
    source_field: str = "clerk",
    destination_field: str = "workos"
) -> Path:
    """Write translation entries as a JSON array."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = [entry.to_dict(source_field, destination_field) for entry in entries]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    logger.info(f"Wrote {len(data)} translations to {path}")
    return path
