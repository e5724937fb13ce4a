"""Record models for snapshot data."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel


class RecordKind(str, Enum):
    """Kinds of records found in a snapshot, keyed by their `object` tag."""
    USER = "user"
    ORGANIZATION = "organization"
    MEMBERSHIP = "organization_membership"

    @property
    def schema(self) -> Type["ExportedRecord"]:
        """Structural schema for records of this kind."""
        return _SCHEMAS[self]

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class ExportedRecord(BaseModel):
    """Fields shared by every exported record."""
    object: Optional[str] = None
    id: str


class EmailAddress(BaseModel):
    id: str
    email_address: str


class ExportedUser(ExportedRecord):
    """A user as exported by the source platform."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    primary_email_address_id: Optional[str] = None
    email_addresses: List[Optional[EmailAddress]] = []
    totp_secret: Optional[str] = None
    password_digest: Optional[str] = None
    password_hasher: Optional[str] = None
    public_metadata: Optional[Dict[str, Any]] = None
    private_metadata: Optional[Dict[str, Any]] = None
    unsafe_metadata: Optional[Dict[str, Any]] = None

    def primary_email(self) -> Optional[str]:
        """Get the designated primary address, if it is among the listed ones."""
        if not self.primary_email_address_id:
            return None
        for email in self.email_addresses:
            if email is not None and email.id == self.primary_email_address_id:
                return email.email_address
        return None


class ExportedOrganization(ExportedRecord):
    """An organization as exported by the source platform."""
    name: Optional[str] = None
    slug: Optional[str] = None
    image_url: Optional[str] = None
    has_image: Optional[bool] = None
    max_allowed_memberships: Optional[int] = None
    admin_delete_enabled: Optional[bool] = None
    public_metadata: Optional[Dict[str, Any]] = None
    private_metadata: Optional[Dict[str, Any]] = None
    created_by: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    logo_url: Optional[str] = None


class OrganizationReference(BaseModel):
    object: Optional[str] = None
    id: str


class PublicUserData(BaseModel):
    user_id: str
    identifier: str


class ExportedOrgMembership(ExportedRecord):
    """An organization membership as exported by the source platform."""
    role: Optional[str] = None
    organization: Optional[OrganizationReference] = None
    public_user_data: Optional[PublicUserData] = None


_SCHEMAS: Dict[RecordKind, Type[ExportedRecord]] = {
    RecordKind.USER: ExportedUser,
    RecordKind.ORGANIZATION: ExportedOrganization,
    RecordKind.MEMBERSHIP: ExportedOrgMembership,
}


@dataclass(frozen=True)
class TranslationEntry:
    """A source identifier and the destination identifier it migrated to."""
    source_id: str
    destination_id: str

    def to_dict(self, source_field: str = "clerk", destination_field: str = "workos") -> Dict[str, str]:
        """Convert to the translation artifact representation."""
        return {source_field: self.source_id, destination_field: self.destination_id}
