"""Base loader interface for the destination platform."""

import asyncio
import functools
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from typing import Any, Callable, Mapping, Optional, TypeVar
import logging

from .destination import DestinationError, RateLimitExceededError, WorkOSClient
from ..models.outcome import Fatal, Outcome, RateLimited, SkippedExpected
from ..models.record import ExportedRecord, RecordKind
from ..services.translation import TranslationTable

logger = logging.getLogger(__name__)

T = TypeVar("T")

Tables = Mapping[RecordKind, TranslationTable]


class BaseLoader(ABC):
    """
    Base class for record loaders.

    A loader migrates one record of its kind into the destination platform and
    reports the result as an Outcome. Loaders hold no per-job state, so one
    instance serves every concurrently running task of a job.
    """

    kind: RecordKind
    dependencies: tuple = ()  # Kinds whose translation tables migrate() reads

    def __init__(self, client: WorkOSClient, pool: Optional[Executor] = None):
        """
        Initialize the loader.

        Args:
            client: Destination platform client
            pool: Executor running the blocking client calls (the event
                loop's default executor when omitted)
        """
        self.client = client
        self.pool = pool

    async def process(self, record: ExportedRecord, tables: Tables) -> Outcome:
        """
        Migrate a single record.

        Args:
            record: Record read from the snapshot
            tables: Translation tables for the loader's dependencies

        Returns:
            Success, SkippedExpected, RateLimited or Fatal
        """
        if record.object != self.kind.value:
            return SkippedExpected(f"not a {self.kind.label} record (object={record.object!r})")

        try:
            return await self.migrate(record, tables)
        except RateLimitExceededError as e:
            return RateLimited(e.retry_after)
        except DestinationError as e:
            return Fatal(e)

    @abstractmethod
    async def migrate(self, record: Any, tables: Tables) -> Outcome:
        """Migrate a record already known to be of this loader's kind."""
        pass

    async def call(self, func: Callable[..., T], *args, **kwargs) -> T:
        """Run a blocking client call on the loader's pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.pool, functools.partial(func, *args, **kwargs))
