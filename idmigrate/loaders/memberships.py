"""Organization membership loader."""

import logging
from typing import Dict, Optional

from .base import BaseLoader, Tables
from .destination import ConflictError
from ..models.outcome import Outcome, SkippedExpected, Success
from ..models.record import ExportedOrgMembership, RecordKind, TranslationEntry

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "member"

ROLE_MAPPING: Dict[str, str] = {
    "org:admin": "admin",
    "org:member": "member",
    "org:guest": "guest",
    "admin": "admin",
    "basic_member": "member",
    "guest_member": "guest",
    "member": "member",
    "guest": "guest",
}


def map_role(role: Optional[str]) -> str:
    """Translate a source role to a destination role slug."""
    if not role:
        return DEFAULT_ROLE
    return ROLE_MAPPING.get(role, DEFAULT_ROLE)


class MembershipLoader(BaseLoader):
    """
    Adds migrated users to migrated organizations.

    Both sides are resolved through the translation tables of earlier jobs.
    A reference missing from either table means the user or organization was
    never migrated, and the membership is skipped.
    """

    kind = RecordKind.MEMBERSHIP
    dependencies = (RecordKind.USER, RecordKind.ORGANIZATION)

    async def migrate(self, record: ExportedOrgMembership, tables: Tables) -> Outcome:
        if record.public_user_data is None or record.organization is None:
            return SkippedExpected(f"membership {record.id} has no user or organization")

        source_user_id = record.public_user_data.user_id
        source_org_id = record.organization.id

        user_id = tables[RecordKind.USER].lookup(source_user_id)
        if user_id is None:
            return SkippedExpected(f"user {source_user_id} was not migrated")

        organization_id = tables[RecordKind.ORGANIZATION].lookup(source_org_id)
        if organization_id is None:
            return SkippedExpected(f"organization {source_org_id} was not migrated")

        role_slug = map_role(record.role)

        try:
            membership = await self.call(
                self.client.create_organization_membership,
                organization_id=organization_id,
                user_id=user_id,
                role_slug=role_slug,
            )
        except ConflictError:
            membership = await self.call(
                self.client.find_organization_membership,
                organization_id=organization_id,
                user_id=user_id,
            )
            if membership is None:
                raise
            logger.debug(f"Membership {record.id} already exists as {membership.id}")

        return Success(TranslationEntry(record.id, membership.id))
