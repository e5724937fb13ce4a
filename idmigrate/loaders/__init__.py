"""Loaders migrating records into the destination platform."""

from .base import BaseLoader
from .destination import (
    WorkOSClient,
    DestinationError,
    ConflictError,
    NotFoundError,
    RateLimitExceededError,
)
from .users import UserLoader
from .organizations import OrganizationLoader
from .memberships import MembershipLoader, map_role

LOADERS = {
    UserLoader.kind: UserLoader,
    OrganizationLoader.kind: OrganizationLoader,
    MembershipLoader.kind: MembershipLoader,
}

__all__ = [
    "BaseLoader",
    "WorkOSClient",
    "DestinationError",
    "ConflictError",
    "NotFoundError",
    "RateLimitExceededError",
    "UserLoader",
    "OrganizationLoader",
    "MembershipLoader",
    "map_role",
    "LOADERS",
]
