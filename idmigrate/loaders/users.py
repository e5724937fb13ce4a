"""User loader."""

import logging
from typing import Dict, Optional

from .base import BaseLoader, Tables
from .destination import ConflictError
from ..models.outcome import Outcome, SkippedExpected, Success
from ..models.record import ExportedUser, RecordKind, TranslationEntry

logger = logging.getLogger(__name__)

DEFAULT_PASSWORD_HASH_TYPE = "bcrypt"

# Source hashers whose digests the destination can import, and its name for them
PASSWORD_HASHER_MAPPING: Dict[str, str] = {
    "bcrypt": "bcrypt",
    "argon2i": "argon2",
    "argon2id": "argon2",
    "scrypt_firebase": "firebase-scrypt",
}


def map_password_hasher(hasher: Optional[str]) -> Optional[str]:
    """Translate a source hasher to a destination hash type, or None if unsupported."""
    if not hasher:
        return DEFAULT_PASSWORD_HASH_TYPE
    return PASSWORD_HASHER_MAPPING.get(hasher)


class UserLoader(BaseLoader):
    """
    Creates destination users carrying the source id as their external id.

    When the email is already taken, the existing user is looked up by email
    and the external id is attached to it instead. Re-running a job therefore
    never duplicates users.
    """

    kind = RecordKind.USER

    async def migrate(self, record: ExportedUser, tables: Tables) -> Outcome:
        email = record.primary_email()
        if not email:
            return SkippedExpected(f"primary email not found for user {record.id}")

        password_options = {}
        if record.password_digest:
            hash_type = map_password_hasher(record.password_hasher)
            if hash_type is None:
                logger.warning(
                    f"User {record.id} has a {record.password_hasher} password, which cannot be "
                    f"imported. Creating the user without a password."
                )
            else:
                password_options = {
                    "password_hash": record.password_digest,
                    "password_hash_type": hash_type,
                }

        try:
            user = await self.call(
                self.client.create_user,
                email=email,
                first_name=record.first_name,
                last_name=record.last_name,
                external_id=record.id,
                **password_options,
            )
        except ConflictError as e:
            logger.debug(f"User {record.id} conflicts with an existing user: {e}")
            return await self._attach_to_existing(record, email)

        return Success(TranslationEntry(record.id, user.id))

    async def _attach_to_existing(self, record: ExportedUser, email: str) -> Outcome:
        matches = await self.call(self.client.find_users_by_email, email)
        if len(matches) != 1:
            return SkippedExpected(
                f"email {email} is taken but {len(matches)} users match it"
            )

        user = matches[0]
        if user.external_id != record.id:
            user = await self.call(self.client.update_user, user.id, external_id=record.id)
            logger.info(f"Attached user {record.id} to existing user {user.id}")

        return Success(TranslationEntry(record.id, user.id))
