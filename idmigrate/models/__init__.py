"""Data models for the migration application."""

from .record import (
    RecordKind,
    ExportedRecord,
    EmailAddress,
    ExportedUser,
    ExportedOrganization,
    ExportedOrgMembership,
    OrganizationReference,
    PublicUserData,
    TranslationEntry,
)
from .outcome import (
    Outcome,
    Success,
    SkippedExpected,
    RateLimited,
    Fatal,
)
from .migration import (
    MigrationConfig,
    MigrationStatus,
    JobResult,
)

__all__ = [
    "RecordKind",
    "ExportedRecord",
    "EmailAddress",
    "ExportedUser",
    "ExportedOrganization",
    "ExportedOrgMembership",
    "OrganizationReference",
    "PublicUserData",
    "TranslationEntry",
    "Outcome",
    "Success",
    "SkippedExpected",
    "RateLimited",
    "Fatal",
    "MigrationConfig",
    "MigrationStatus",
    "JobResult",
]
