"""Newline-delimited JSON snapshot extractor."""

import json
import logging
from pathlib import Path
from typing import Iterator, Union

from .base import BaseExtractor, ExtractedRecord
from ..models.record import RecordKind

logger = logging.getLogger(__name__)


class NDJSONExtractor(BaseExtractor):
    """
    Extractor for snapshot files holding one JSON object per line.

    The file is opened when streaming starts and read line by line. Blank lines
    are ignored. A line that cannot be decoded, is not valid JSON or does not
    match the kind's schema is yielded as a rejected record and streaming
    continues.
    """

    def __init__(
        self,
        file_path: Union[str, Path],
        kind: RecordKind,
        encoding: str = "utf-8"
    ):
        """
        Initialize the NDJSON extractor.

        Args:
            file_path: Path to the snapshot file
            kind: Record kind stored in the file
            encoding: File encoding
        """
        super().__init__(kind)
        self.file_path = Path(file_path)
        self.encoding = encoding

    def stream(self) -> Iterator[ExtractedRecord]:
        """Stream records from the file in line order."""
        number = 0

        logger.info(f"Reading {self.kind.label} records from {self.file_path}")
        # Lines are decoded one at a time so bad bytes only reject their own line
        with open(self.file_path, "rb") as f:
            for raw in f:
                if not raw.strip():
                    continue

                number += 1
                yield self._parse_line(raw, number)

        logger.debug(f"Finished reading {number} lines from {self.file_path}")

    def _parse_line(self, raw: bytes, number: int) -> ExtractedRecord:
        try:
            line = raw.decode(self.encoding)
        except UnicodeDecodeError as e:
            return self.reject(f"Line is not valid {self.encoding}: {e}", number)

        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            return self.reject(f"Invalid JSON: {e}", number)

        return self.validate(data, number)
