"""Tests for the WorkOS client's request handling and error mapping."""

from unittest.mock import Mock

import pytest
import requests

from idmigrate.loaders.destination import (
    ConflictError,
    DestinationError,
    NotFoundError,
    RateLimitExceededError,
    WorkOSClient,
)

from helpers import make_response


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    return WorkOSClient(api_key="sk_test", base_url="https://api.example.com/", session=session)


def test_requires_api_key():
    with pytest.raises(ValueError):
        WorkOSClient(api_key="")


def test_default_session_is_authenticated():
    client = WorkOSClient(api_key="sk_test")
    assert client._session.headers["Authorization"] == "Bearer sk_test"
    client.close()


def test_create_user_sends_compact_payload(client, session):
    session.request.return_value = make_response(201, {
        "id": "user_01", "email": "ada@example.com", "external_id": "user_a",
    })

    user = client.create_user("ada@example.com", first_name="Ada", external_id="user_a")

    assert user.id == "user_01"
    method, url = session.request.call_args.args
    assert (method, url) == ("POST", "https://api.example.com/user_management/users")
    assert session.request.call_args.kwargs["json"] == {
        "email": "ada@example.com", "first_name": "Ada", "external_id": "user_a",
    }


def test_hash_type_only_sent_with_hash(client, session):
    session.request.return_value = make_response(201, {"id": "user_01", "email": "a@example.com"})

    client.create_user("a@example.com", password_hash_type="bcrypt")
    assert "password_hash_type" not in session.request.call_args.kwargs["json"]

    client.create_user("a@example.com", password_hash="$2a$10$x", password_hash_type="bcrypt")
    assert session.request.call_args.kwargs["json"]["password_hash_type"] == "bcrypt"


def test_find_users_by_email(client, session):
    session.request.return_value = make_response(200, {"data": [
        {"id": "user_01", "email": "ada@example.com"},
    ]})

    users = client.find_users_by_email("Ada@Example.com")

    assert [u.id for u in users] == ["user_01"]
    assert session.request.call_args.kwargs["params"] == {"email": "ada@example.com"}


def test_rate_limit_carries_retry_after(client, session):
    session.request.return_value = make_response(
        429, {"message": "Too many requests"}, headers={"Retry-After": "7"}
    )

    with pytest.raises(RateLimitExceededError) as excinfo:
        client.create_organization("Acme", external_id="org_a")

    assert excinfo.value.retry_after == 7.0
    assert excinfo.value.status_code == 429


def test_rate_limit_without_retry_after(client, session):
    session.request.return_value = make_response(429)

    with pytest.raises(RateLimitExceededError) as excinfo:
        client.create_organization("Acme")

    assert excinfo.value.retry_after is None


@pytest.mark.parametrize("status_code, body", [
    (409, {"message": "Organization exists"}),
    (422, {"message": "Email not available", "code": "email_not_available"}),
    (422, {"message": "Validation failed", "errors": [{"code": "organization_membership_already_exists"}]}),
])
def test_conflicts(client, session, status_code, body):
    session.request.return_value = make_response(status_code, body)

    with pytest.raises(ConflictError):
        client.create_user("ada@example.com")


def test_other_client_errors(client, session):
    session.request.return_value = make_response(422, {"message": "Invalid", "code": "invalid_request"})

    with pytest.raises(DestinationError) as excinfo:
        client.create_user("not-an-email")

    assert not isinstance(excinfo.value, ConflictError)
    assert str(excinfo.value) == "Invalid (status 422, code invalid_request)"


def test_missing_organization_is_none(client, session):
    session.request.return_value = make_response(404, {"message": "Not found"})
    assert client.get_organization_by_external_id("org_a") is None


def test_not_found_elsewhere_raises(client, session):
    session.request.return_value = make_response(404)
    with pytest.raises(NotFoundError):
        client.update_user("user_01", external_id="user_a")


def test_find_membership(client, session):
    session.request.return_value = make_response(200, {"data": []})
    assert client.find_organization_membership("org_01", "user_01") is None

    session.request.return_value = make_response(200, {"data": [
        {"id": "om_01", "user_id": "user_01", "organization_id": "org_01", "status": "active"},
    ]})
    assert client.find_organization_membership("org_01", "user_01").id == "om_01"


def test_transport_errors_are_wrapped(client, session):
    session.request.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(DestinationError, match="refused"):
        client.create_user("ada@example.com")
