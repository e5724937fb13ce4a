"""Organization loader."""

import logging

from .base import BaseLoader, Tables
from .destination import ConflictError
from ..models.outcome import Outcome, SkippedExpected, Success
from ..models.record import ExportedOrganization, RecordKind, TranslationEntry

logger = logging.getLogger(__name__)


class OrganizationLoader(BaseLoader):
    """Finds the organization by external id, creating it when absent."""

    kind = RecordKind.ORGANIZATION

    async def migrate(self, record: ExportedOrganization, tables: Tables) -> Outcome:
        if not record.name:
            return SkippedExpected(f"organization {record.id} has no name")

        existing = await self.call(self.client.get_organization_by_external_id, record.id)
        if existing is not None:
            logger.debug(f"Organization {record.id} already exists as {existing.id}")
            return Success(TranslationEntry(record.id, existing.id))

        try:
            organization = await self.call(
                self.client.create_organization,
                name=record.name,
                external_id=record.id,
            )
        except ConflictError:
            # Created by someone else since the lookup
            organization = await self.call(self.client.get_organization_by_external_id, record.id)
            if organization is None:
                raise

        return Success(TranslationEntry(record.id, organization.id))
