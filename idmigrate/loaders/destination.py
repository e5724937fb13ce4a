"""Client for the destination identity platform (WorkOS User Management API)."""

import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

# Error codes the API uses for duplicates that are not reported as 409
CONFLICT_CODE_SUFFIXES = ("_already_exists", "_not_available")


class DestinationError(Exception):
    """A request to the destination platform failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        detail = f"status {self.status_code}"
        if self.code:
            detail += f", code {self.code}"
        return f"{self.message} ({detail})"


class ConflictError(DestinationError):
    """The entity already exists on the destination."""


class NotFoundError(DestinationError):
    """The entity does not exist on the destination."""


class RateLimitExceededError(DestinationError):
    """The destination asked the caller to slow down."""

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class DestinationUser(BaseModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    external_id: Optional[str] = None


class DestinationOrganization(BaseModel):
    id: str
    name: str
    external_id: Optional[str] = None


class DestinationMembership(BaseModel):
    id: str
    user_id: str
    organization_id: str
    status: Optional[str] = None


class WorkOSClient:
    """
    Minimal WorkOS API client covering the operations a migration needs.

    Each instance owns its session and credentials; nothing is configured
    process-wide. Methods are blocking and safe to call from worker threads.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.workos.com",
        timeout: float = 30.0,
        max_retries: int = 3,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            api_key: WorkOS secret key
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            max_retries: Transport retries for idempotent reads
            session: Custom requests session
        """
        if not api_key:
            raise ValueError("A WorkOS API key is required")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or self._create_session(max_retries)

    def _create_session(self, max_retries: int) -> requests.Session:
        """Create a requests session with authentication and retry logic."""
        session = requests.Session()

        # 429 is left to the caller, which pauses the whole job.
        # Writes are never retried here to avoid duplicate side effects.
        retries = Retry(
            total=max_retries,
            backoff_factor=1.0,
            status_forcelist=[502, 503, 504],
            allowed_methods=frozenset({"GET"}),
            respect_retry_after_header=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        session.headers["Authorization"] = f"Bearer {self.api_key}"
        session.headers["Content-Type"] = "application/json"
        return session

    def close(self) -> None:
        self._session.close()

    # Users

    def create_user(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        external_id: Optional[str] = None,
        password_hash: Optional[str] = None,
        password_hash_type: Optional[str] = None
    ) -> DestinationUser:
        """Create a user."""
        payload = _compact({
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "external_id": external_id,
            "password_hash": password_hash,
            "password_hash_type": password_hash_type if password_hash else None,
        })
        data = self._request("POST", "/user_management/users", json=payload)
        return DestinationUser.model_validate(data)

    def find_users_by_email(self, email: str) -> List[DestinationUser]:
        """List users with the given email address."""
        data = self._request("GET", "/user_management/users", params={"email": email.lower()})
        return [DestinationUser.model_validate(item) for item in data.get("data", [])]

    def update_user(self, user_id: str, external_id: str) -> DestinationUser:
        """Attach an external id to an existing user."""
        data = self._request(
            "PUT",
            f"/user_management/users/{user_id}",
            json={"external_id": external_id},
        )
        return DestinationUser.model_validate(data)

    # Organizations

    def create_organization(self, name: str, external_id: Optional[str] = None) -> DestinationOrganization:
        """Create an organization."""
        data = self._request(
            "POST",
            "/organizations",
            json=_compact({"name": name, "external_id": external_id}),
        )
        return DestinationOrganization.model_validate(data)

    def get_organization_by_external_id(self, external_id: str) -> Optional[DestinationOrganization]:
        """Get the organization carrying an external id, or None."""
        try:
            data = self._request("GET", f"/organizations/external_id/{external_id}")
        except NotFoundError:
            return None
        return DestinationOrganization.model_validate(data)

    # Memberships

    def create_organization_membership(
        self,
        organization_id: str,
        user_id: str,
        role_slug: Optional[str] = None
    ) -> DestinationMembership:
        """Add a user to an organization."""
        data = self._request(
            "POST",
            "/user_management/organization_memberships",
            json=_compact({
                "organization_id": organization_id,
                "user_id": user_id,
                "role_slug": role_slug,
            }),
        )
        return DestinationMembership.model_validate(data)

    def find_organization_membership(
        self,
        organization_id: str,
        user_id: str
    ) -> Optional[DestinationMembership]:
        """Get a user's membership in an organization, or None."""
        data = self._request(
            "GET",
            "/user_management/organization_memberships",
            params={"organization_id": organization_id, "user_id": user_id},
        )
        items = data.get("data", [])
        if not items:
            return None
        return DestinationMembership.model_validate(items[0])

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")

        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise DestinationError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(method, path, response)

        return response.json() if response.content else {}

    @staticmethod
    def _error_from_response(method: str, path: str, response: requests.Response) -> DestinationError:
        status = response.status_code
        message = f"{method} {path} returned {status}"
        code = None

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            message = body.get("message") or body.get("error_description") or body.get("error") or message
            code = body.get("code")
            errors = body.get("errors")
            if not code and isinstance(errors, list) and errors and isinstance(errors[0], dict):
                code = errors[0].get("code")

        if status == 429:
            return RateLimitExceededError(
                message,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
                status_code=status,
                code=code,
            )
        if status == 404:
            return NotFoundError(message, status_code=status, code=code)
        if status == 409 or (code and code.endswith(CONFLICT_CODE_SUFFIXES)):
            return ConflictError(message, status_code=status, code=code)
        return DestinationError(message, status_code=status, code=code)


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return max(seconds, 0.0)


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}
