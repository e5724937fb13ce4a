"""Migration execution models."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .record import RecordKind, TranslationEntry

DEFAULT_API_BASE_URL = "https://api.workos.com"
LOCAL_API_BASE_URL = "http://localhost:7000"
DEFAULT_SOURCE_API_URL = "https://api.clerk.com/v1"


class MigrationStatus(str, Enum):
    """Status of a migration job."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class MigrationConfig:
    """Configuration for a migration."""
    api_key: Optional[str] = None
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = 30.0

    # Source platform API, used to export a snapshot
    source_api_key: Optional[str] = None
    source_api_url: str = DEFAULT_SOURCE_API_URL

    # Execution options
    max_concurrency: int = 10
    default_retry_after: float = 10.0  # Used when the destination gives no Retry-After
    retry_margin: float = 1.0

    # Translation artifact field names
    source_field: str = "clerk"
    destination_field: str = "workos"

    # Output
    output_dir: str = "./data"
    save_report: bool = True

    def __post_init__(self):
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {self.max_concurrency}")
        if self.default_retry_after < 0 or self.retry_margin < 0:
            raise ValueError("Retry delays must not be negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (without secrets)."""
        return {
            "api_base_url": self.api_base_url,
            "request_timeout": self.request_timeout,
            "source_api_url": self.source_api_url,
            "max_concurrency": self.max_concurrency,
            "default_retry_after": self.default_retry_after,
            "retry_margin": self.retry_margin,
            "source_field": self.source_field,
            "destination_field": self.destination_field,
            "output_dir": self.output_dir,
            "save_report": self.save_report,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        """Create from dictionary representation."""
        return cls(
            api_key=data.get("api_key"),
            api_base_url=data.get("api_base_url", DEFAULT_API_BASE_URL),
            request_timeout=float(data.get("request_timeout", 30.0)),
            source_api_key=data.get("source_api_key"),
            source_api_url=data.get("source_api_url", DEFAULT_SOURCE_API_URL),
            max_concurrency=int(data.get("max_concurrency", 10)),
            default_retry_after=float(data.get("default_retry_after", 10.0)),
            retry_margin=float(data.get("retry_margin", 1.0)),
            source_field=data.get("source_field", "clerk"),
            destination_field=data.get("destination_field", "workos"),
            output_dir=data.get("output_dir", "./data"),
            save_report=data.get("save_report", True),
        )

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides) -> "MigrationConfig":
        """
        Create from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)
            **overrides: Values that take precedence over the environment;
                None values are ignored

        Returns:
            MigrationConfig
        """
        env = os.environ if environ is None else environ

        base_url = env.get("WORKOS_API_URL")
        if not base_url:
            use_local_api = env.get("NODE_ENV", "").startswith("dev")
            base_url = LOCAL_API_BASE_URL if use_local_api else DEFAULT_API_BASE_URL

        data: Dict[str, Any] = {
            "api_key": env.get("WORKOS_SECRET_KEY"),
            "api_base_url": base_url,
            "source_api_key": env.get("CLERK_SECRET_KEY"),
        }
        if env.get("CLERK_API_URL"):
            data["source_api_url"] = env["CLERK_API_URL"]
        if env.get("MIGRATION_MAX_CONCURRENCY"):
            data["max_concurrency"] = env["MIGRATION_MAX_CONCURRENCY"]
        if env.get("MIGRATION_RETRY_AFTER"):
            data["default_retry_after"] = env["MIGRATION_RETRY_AFTER"]
        if env.get("MIGRATION_OUTPUT_DIR"):
            data["output_dir"] = env["MIGRATION_OUTPUT_DIR"]

        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(data)


@dataclass
class JobResult:
    """Aggregate result of migrating one record kind."""
    kind: RecordKind
    status: MigrationStatus = MigrationStatus.PENDING
    input_path: Optional[str] = None
    output_path: Optional[str] = None
    records_seen: int = 0
    records_migrated: int = 0
    records_skipped: int = 0
    records_failed: int = 0
    rate_limit_pauses: int = 0
    entries: List[TranslationEntry] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def summary(self) -> str:
        return f"{self.records_migrated} of {self.records_seen} records imported."

    def add_skip(self, record_number: int, record_id: Optional[str], reason: str) -> None:
        self.records_skipped += 1
        self.skipped.append({
            "record_number": record_number,
            "record_id": record_id,
            "reason": reason,
        })

    def add_error(self, record_number: Optional[int], record_id: Optional[str], error: BaseException) -> None:
        self.records_failed += 1
        self.errors.append({
            "record_number": record_number,
            "record_id": record_id,
            "error": str(error),
            "error_type": type(error).__name__,
        })

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind.value,
            "status": self.status.value,
            "input_path": self.input_path,
            "output_path": self.output_path,
            "records_seen": self.records_seen,
            "records_migrated": self.records_migrated,
            "records_skipped": self.records_skipped,
            "records_failed": self.records_failed,
            "rate_limit_pauses": self.rate_limit_pauses,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "skipped": self.skipped,
            "errors": self.errors,
        }
