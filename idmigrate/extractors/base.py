"""Base extractor interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator, Optional
import logging

from pydantic import ValidationError

from ..models.record import ExportedRecord, RecordKind

logger = logging.getLogger(__name__)


@dataclass
class ExtractedRecord:
    """One line of a snapshot, either parsed or rejected."""
    number: int
    record: Optional[ExportedRecord] = None
    error: Optional[str] = None
    raw_id: Optional[str] = None  # Best-effort identifier of a rejected line

    @property
    def ok(self) -> bool:
        return self.record is not None

    @property
    def record_id(self) -> Optional[str]:
        return self.record.id if self.record is not None else self.raw_id


class BaseExtractor(ABC):
    """
    Base class for record sources.

    Extractors read a snapshot and yield records one at a time, in source order,
    without materializing the whole snapshot.
    """

    def __init__(self, kind: RecordKind):
        """
        Initialize the extractor.

        Args:
            kind: Record kind whose structural schema every record must match
        """
        self.kind = kind

    @abstractmethod
    def stream(self) -> Iterator[ExtractedRecord]:
        """
        Stream records from the source.

        Yields:
            ExtractedRecord per record, numbered from 1
        """
        pass

    def validate(self, data: Any, number: int) -> ExtractedRecord:
        """Check decoded data against the kind's schema."""
        if not isinstance(data, dict):
            return self.reject(f"Expected a JSON object, got {type(data).__name__}", number)

        raw_id = data["id"] if isinstance(data.get("id"), str) else None
        try:
            record = self.kind.schema.model_validate(data)
        except ValidationError as e:
            logger.debug(f"({number}) {e}")
            return self.reject(
                f"Record does not match the {self.kind.label} schema: {e.error_count()} error(s)",
                number,
                record_id=raw_id,
            )

        return ExtractedRecord(number=number, record=record)

    def reject(self, message: str, number: int, record_id: Optional[str] = None) -> ExtractedRecord:
        """Log a record that cannot be processed and return it as rejected."""
        logger.error(f"({number}) Rejected {self.kind.label} record {record_id or ''}: {message}")
        return ExtractedRecord(number=number, error=message, raw_id=record_id)
