"""Token verification and role gating."""

import jwt
import pytest

from payportal.common.auth import decode_token, issue_token
from payportal.common.config import settings
from payportal.common.errors import InvalidToken, TokenExpired


def test_issued_token_round_trips_claims():
    principal = decode_token(issue_token("emp-9", "ops@bank.example", "employee"))
    assert principal.user_id == "emp-9"
    assert principal.email == "ops@bank.example"
    assert principal.role == "employee"
    assert principal.display_name == "ops@bank.example"


def test_expired_token():
    with pytest.raises(TokenExpired):
        decode_token(issue_token("cust-1", "c@example.com", "customer", expires_in_minutes=-1))


def test_token_signed_with_other_secret():
    token = jwt.encode({"userId": "cust-1", "role": "customer"}, "another-secret-of-sufficient-length", "HS256")
    with pytest.raises(InvalidToken):
        decode_token(token)


def test_garbage_token():
    with pytest.raises(InvalidToken):
        decode_token("not.a.jwt")


@pytest.mark.parametrize(
    "claims",
    [
        {"role": "customer"},
        {"userId": "cust-1"},
        {"userId": "cust-1", "role": "admin"},
        {"userId": "", "role": "customer"},
    ],
)
def test_required_claims(claims):
    token = jwt.encode(claims, settings.jwt_secret, settings.jwt_algorithm)
    with pytest.raises(InvalidToken):
        decode_token(token)


def test_unknown_role_cannot_be_issued():
    with pytest.raises(ValueError):
        issue_token("x", "x@example.com", "admin")


def test_missing_header_is_401(payments_client):
    resp = payments_client.get("/api/payments")
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "UNAUTHENTICATED"


def test_expired_token_is_reported(payments_client):
    token = issue_token("cust-1", "c@example.com", "customer", expires_in_minutes=-1)
    resp = payments_client.get("/api/payments", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "TOKEN_EXPIRED"


def test_roles_are_enforced(payments_client, review_client, customer, employee, bearer):
    assert review_client.get("/api/employee/payments", headers=bearer(customer)).status_code == 403
    assert payments_client.get("/api/payments", headers=bearer(employee)).status_code == 403
    assert review_client.get("/api/employee/payments", headers=bearer(employee)).status_code == 200


def test_repeated_auth_failures_are_throttled(payments_client):
    headers = {"Authorization": "Bearer not.a.jwt"}
    statuses = [payments_client.get("/api/payments", headers=headers).status_code for _ in range(6)]
    assert statuses == [401] * 5 + [429]
