"""Outcomes of processing a single record."""

from dataclasses import dataclass
from typing import Optional, Union

from .record import TranslationEntry


@dataclass(frozen=True)
class Success:
    """The record was migrated; `entry` translates its identifier."""
    entry: TranslationEntry


@dataclass(frozen=True)
class SkippedExpected:
    """A business precondition was not met. Counted and logged, not an error."""
    reason: str


@dataclass(frozen=True)
class RateLimited:
    """The destination asked us to slow down. The record must be retried."""
    retry_after: Optional[float] = None


@dataclass(frozen=True)
class Fatal:
    """Anything else. Aborts the job."""
    error: BaseException


Outcome = Union[Success, SkippedExpected, RateLimited, Fatal]
