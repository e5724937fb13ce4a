"""Test helpers: in-memory source and destination platforms, a fake clock and snapshot builders."""

import asyncio
import itertools
import json
import threading
from typing import Dict, Iterable, List, Optional

import requests

from idmigrate.loaders.destination import (
    ConflictError,
    DestinationError,
    DestinationMembership,
    DestinationOrganization,
    DestinationUser,
    RateLimitExceededError,
)


SUPPORTED_HASH_TYPES = {None, "bcrypt", "firebase-scrypt", "ssha", "scrypt", "pbkdf2", "argon2"}


class FakeWorkOSClient:
    """
    In-memory stand-in for WorkOSClient.

    `rate_limits` maps an operation name to Retry-After values raised, one per
    call, before the operation starts succeeding. `failures` maps an operation
    name to an error raised on every call.
    """

    def __init__(self):
        self.users: Dict[str, DestinationUser] = {}
        self.organizations: Dict[str, DestinationOrganization] = {}
        self.memberships: Dict[str, DestinationMembership] = {}
        self.calls: List[str] = []
        self.rate_limits: Dict[str, List[Optional[float]]] = {}
        self.failures: Dict[str, DestinationError] = {}
        self.roles: Dict[str, Optional[str]] = {}
        self.last_password = None
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failures:
            raise self.failures[operation]
        pending = self.rate_limits.get(operation)
        if pending:
            raise RateLimitExceededError("Too many requests", retry_after=pending.pop(0), status_code=429)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids):04d}"

    def create_user(self, email, first_name=None, last_name=None, external_id=None,
                    password_hash=None, password_hash_type=None):
        with self._lock:
            self._enter("create_user")
            if password_hash_type not in SUPPORTED_HASH_TYPES:
                raise DestinationError("Invalid password_hash_type", status_code=422, code="invalid_request")
            if any(u.email == email.lower() for u in self.users.values()):
                raise ConflictError("Email not available", status_code=422, code="email_not_available")
            user = DestinationUser(
                id=self._next_id("user"),
                email=email.lower(),
                first_name=first_name,
                last_name=last_name,
                external_id=external_id,
            )
            self.users[user.id] = user
            self.last_password = (password_hash, password_hash_type)
            return user

    def find_users_by_email(self, email):
        with self._lock:
            self._enter("find_users_by_email")
            return [u for u in self.users.values() if u.email == email.lower()]

    def update_user(self, user_id, external_id):
        with self._lock:
            self._enter("update_user")
            user = self.users[user_id].model_copy(update={"external_id": external_id})
            self.users[user_id] = user
            return user

    def create_organization(self, name, external_id=None):
        with self._lock:
            self._enter("create_organization")
            if external_id and any(o.external_id == external_id for o in self.organizations.values()):
                raise ConflictError("Organization exists", status_code=409)
            org = DestinationOrganization(id=self._next_id("org"), name=name, external_id=external_id)
            self.organizations[org.id] = org
            return org

    def get_organization_by_external_id(self, external_id):
        with self._lock:
            self._enter("get_organization_by_external_id")
            for org in self.organizations.values():
                if org.external_id == external_id:
                    return org
            return None

    def create_organization_membership(self, organization_id, user_id, role_slug=None):
        with self._lock:
            self._enter("create_organization_membership")
            if self._find_membership(organization_id, user_id):
                raise ConflictError("Already a member", status_code=409)
            membership = DestinationMembership(
                id=self._next_id("om"),
                user_id=user_id,
                organization_id=organization_id,
                status="active",
            )
            self.memberships[membership.id] = membership
            self.roles[membership.id] = role_slug
            return membership

    def find_organization_membership(self, organization_id, user_id):
        with self._lock:
            self._enter("find_organization_membership")
            return self._find_membership(organization_id, user_id)

    def _find_membership(self, organization_id, user_id):
        for membership in self.memberships.values():
            if membership.organization_id == organization_id and membership.user_id == user_id:
                return membership
        return None

    def close(self):
        pass


class FakeClerkClient:
    """In-memory stand-in for ClerkClient."""

    def __init__(self, users: Iterable[dict] = (), organizations: Iterable[dict] = (),
                 memberships: Optional[Dict[str, List[dict]]] = None):
        self.users = list(users)
        self.organizations = list(organizations)
        self.memberships = memberships or {}
        self.closed = False

    def list_users(self):
        return iter(self.users)

    def list_organizations(self):
        return iter(self.organizations)

    def list_organization_memberships(self, organization_id):
        return iter(self.memberships.get(organization_id, []))

    def close(self):
        self.closed = True


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


def user_line(source_id, email=None, **extra):
    email = email or f"{source_id}@example.com"
    data = {
        "object": "user",
        "id": source_id,
        "first_name": "Test",
        "last_name": source_id,
        "primary_email_address_id": f"idn_{source_id}",
        "email_addresses": [{"id": f"idn_{source_id}", "email_address": email}],
    }
    data.update(extra)
    return data


def org_line(source_id, name="Acme", **extra):
    data = {"object": "organization", "id": source_id, "name": name}
    data.update(extra)
    return data


def membership_line(source_id, user_id, org_id, role="org:member"):
    return {
        "object": "organization_membership",
        "id": source_id,
        "role": role,
        "organization": {"object": "organization", "id": org_id},
        "public_user_data": {"user_id": user_id, "identifier": f"{user_id}@example.com"},
    }


def write_ndjson(path, records):
    with open(path, "w") as f:
        for record in records:
            f.write((record if isinstance(record, str) else json.dumps(record)) + "\n")
    return path



def make_response(status_code, body=None, headers=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode() if body is not None else b""
    response.headers.update(headers or {})
    return response
