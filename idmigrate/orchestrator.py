"""Migration orchestrator - drives record sources through loaders."""

import asyncio
import json
import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Union

from .extractors.base import BaseExtractor
from .extractors.ndjson_extractor import NDJSONExtractor
from .loaders import LOADERS
from .loaders.base import BaseLoader
from .loaders.destination import WorkOSClient
from .models.migration import JobResult, MigrationConfig, MigrationStatus
from .models.outcome import Fatal, Outcome, SkippedExpected, Success
from .models.record import RecordKind
from .services.executor import MigrationTask, RateLimitedExecutor
from .services.translation import (
    TranslationArtifactError,
    TranslationTable,
    write_translation_artifact,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Jobs of a full run, in dependency order
MIGRATION_ORDER = [
    RecordKind.USER,
    RecordKind.ORGANIZATION,
    RecordKind.MEMBERSHIP,
]

ARTIFACT_NAMES = {
    RecordKind.USER: "users.json",
    RecordKind.ORGANIZATION: "organizations.json",
    RecordKind.MEMBERSHIP: "organization_memberships.json",
}


class MigrationAbortedError(Exception):
    """A job hit a fatal error. `result` holds the work completed so far."""

    def __init__(self, result: JobResult, cause: BaseException):
        super().__init__(f"{result.kind.label} migration aborted: {cause}")
        self.result = result
        self.cause = cause


class MigrationOrchestrator:
    """
    Orchestrates migration jobs.

    Handles:
    - Loading translation tables of the jobs a job depends on
    - Streaming the snapshot through the rate-limited executor
    - Aggregating per-record outcomes into a JobResult
    - Writing the translation artifact, partial ones included
    - Running users, organizations and memberships in dependency order
    """

    def __init__(
        self,
        config: MigrationConfig,
        client: Optional[WorkOSClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Migration configuration
            client: Destination client (built from config when omitted)
            sleep: Coroutine the executor waits out backoffs with
            clock: Monotonic clock for backoff deadlines
        """
        self.config = config
        self._owns_client = client is None
        self.client = client or WorkOSClient(
            api_key=config.api_key or "",
            base_url=config.api_base_url,
            timeout=config.request_timeout,
        )
        self._sleep = sleep
        self._clock = clock
        self.results: List[JobResult] = []

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def create_loader(self, kind: RecordKind, pool: Optional[Executor] = None) -> BaseLoader:
        """Create the loader for a record kind."""
        return LOADERS[kind](self.client, pool)

    def load_tables(
        self,
        loader: BaseLoader,
        dependencies: Mapping[RecordKind, PathLike]
    ) -> Dict[RecordKind, TranslationTable]:
        """
        Load the translation tables a loader depends on.

        Raises:
            TranslationArtifactError: If an artifact is missing or malformed
        """
        tables = {}
        for kind in loader.dependencies:
            path = dependencies.get(kind)
            if path is None:
                raise TranslationArtifactError(
                    f"Migrating {loader.kind.label} records requires the {kind.label} translation artifact"
                )
            tables[kind] = TranslationTable.load(
                path,
                kind,
                source_field=self.config.source_field,
                destination_field=self.config.destination_field,
            )
        return tables

    async def run_job(
        self,
        kind: RecordKind,
        input_path: PathLike,
        output_path: Optional[PathLike] = None,
        dependencies: Optional[Mapping[RecordKind, PathLike]] = None
    ) -> JobResult:
        """
        Migrate every record of one snapshot file.

        Args:
            kind: Record kind stored in the snapshot
            input_path: Path to the NDJSON snapshot
            output_path: Where to write the translation artifact
            dependencies: Translation artifacts of earlier jobs, by kind

        Returns:
            JobResult with counts and translation entries

        Raises:
            MigrationAbortedError: On a fatal error, after in-flight tasks finished
                and the partial artifact was written
        """
        # One worker per task the executor may run at once
        pool = ThreadPoolExecutor(
            max_workers=self.config.max_concurrency,
            thread_name_prefix=f"migrate-{kind.value}",
        )
        loader = self.create_loader(kind, pool)
        result = JobResult(
            kind=kind,
            input_path=str(input_path),
            output_path=str(output_path) if output_path else None,
        )
        result.status = MigrationStatus.RUNNING
        result.started_at = datetime.utcnow()
        self.results.append(result)

        executor = RateLimitedExecutor(
            work=lambda task: loader.process(task.record, task.tables),
            on_complete=lambda task, outcome: self._record_outcome(result, task, outcome),
            max_concurrency=self.config.max_concurrency,
            default_retry_after=self.config.default_retry_after,
            retry_margin=self.config.retry_margin,
            sleep=self._sleep,
            clock=self._clock,
        )

        logger.info(f"=== MIGRATING {kind.label.upper()} RECORDS ===")
        fatal: Optional[BaseException] = None
        try:
            tables = self.load_tables(loader, dependencies or {})
            await self._feed(NDJSONExtractor(input_path, kind), executor, tables, result)
        except Exception as e:
            fatal = e

        try:
            await executor.join()
        except Exception as e:
            fatal = fatal or e
        finally:
            pool.shutdown(wait=False)

        result.rate_limit_pauses = executor.pause_count
        result.completed_at = datetime.utcnow()
        result.status = MigrationStatus.FAILED if fatal else MigrationStatus.COMPLETED

        if output_path:
            write_translation_artifact(
                output_path,
                result.entries,
                source_field=self.config.source_field,
                destination_field=self.config.destination_field,
            )

        logger.info(f"Done importing. {result.summary}")

        if fatal is not None:
            if result.records_failed == 0:
                result.add_error(None, None, fatal)
            logger.error(f"{kind.label.capitalize()} migration failed: {fatal}")
            raise MigrationAbortedError(result, fatal) from fatal

        return result

    async def _feed(
        self,
        extractor: BaseExtractor,
        executor: RateLimitedExecutor,
        tables: Mapping[RecordKind, TranslationTable],
        result: JobResult
    ) -> None:
        """Submit every record, reading the next one only when there is capacity."""
        for line in extractor.stream():
            result.records_seen += 1

            if not line.ok:
                result.add_skip(line.number, line.record_id, line.error or "malformed record")
                continue

            await executor.wait_for_capacity()
            executor.submit(MigrationTask(number=line.number, record=line.record, tables=tables))

    def _record_outcome(self, result: JobResult, task: MigrationTask, outcome: Outcome) -> None:
        label = result.kind.label
        record_id = task.record.id

        if isinstance(outcome, Success):
            result.records_migrated += 1
            result.entries.append(outcome.entry)
            logger.info(f"({task.number}) Imported {label} {record_id} as {outcome.entry.destination_id}")
        elif isinstance(outcome, SkippedExpected):
            result.add_skip(task.number, record_id, outcome.reason)
            logger.warning(f"({task.number}) Skipping {label} {record_id}: {outcome.reason}")
        elif isinstance(outcome, Fatal):
            result.add_error(task.number, record_id, outcome.error)
            logger.error(f"({task.number}) Could not import {label} {record_id}: {outcome.error}")

    async def run_migration(
        self,
        users_path: Optional[PathLike] = None,
        organizations_path: Optional[PathLike] = None,
        memberships_path: Optional[PathLike] = None,
        output_dir: Optional[PathLike] = None
    ) -> List[JobResult]:
        """
        Run the full cycle: users, then organizations, then memberships.

        Each job's translation artifact is written to the output directory and
        handed to the jobs depending on it. Jobs without an input are skipped.

        Returns:
            JobResults of the jobs that ran

        Raises:
            MigrationAbortedError: If a job hit a fatal error; later jobs do not run
        """
        out = Path(output_dir or self.config.output_dir)
        inputs = {
            RecordKind.USER: users_path,
            RecordKind.ORGANIZATION: organizations_path,
            RecordKind.MEMBERSHIP: memberships_path,
        }
        artifacts: Dict[RecordKind, Path] = {}
        results = []

        try:
            for kind in MIGRATION_ORDER:
                input_path = inputs[kind]
                if input_path is None:
                    logger.info(f"No {kind.label} snapshot given, skipping")
                    continue

                output_path = out / ARTIFACT_NAMES[kind]
                result = await self.run_job(kind, input_path, output_path, dependencies=artifacts)
                artifacts[kind] = output_path
                results.append(result)
        finally:
            if self.config.save_report:
                self.save_report(out)

        return results

    def save_report(self, output_dir: Optional[PathLike] = None) -> Path:
        """Save the migration report."""
        out = Path(output_dir or self.config.output_dir)
        out.mkdir(parents=True, exist_ok=True)
        filepath = out / f"migration_report_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.json"
        report = {
            "config": self.config.to_dict(),
            "jobs": [r.to_dict() for r in self.results],
        }
        with open(filepath, "w") as f:
            json.dump(report, f, indent=2, default=str)
        logger.info(f"Saved migration report to {filepath}")
        return filepath
