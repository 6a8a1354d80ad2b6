from datetime import datetime, timedelta, timezone

import jwt
import pytest

from quizora.core import tokens
from quizora.core.errors import AuthenticationError, TokenExpiredError, TokenInvalidError
from quizora.services import auth_service


def test_issue_then_verify_returns_claims():
    claims = {"id": 7, "email": "t@example.com", "role": "teacher", "type": tokens.ACCESS}
    decoded = tokens.verify(tokens.issue(claims, timedelta(minutes=5)))
    assert {k: decoded[k] for k in claims} == claims
    assert decoded["exp"] - decoded["iat"] == 300


def test_expired_token():
    issued = datetime.now(timezone.utc) - timedelta(hours=1)
    token = tokens.issue({"id": 1}, timedelta(minutes=1), now=issued)
    with pytest.raises(TokenExpiredError):
        tokens.verify(token)


def test_tampered_and_foreign_tokens_are_invalid():
    token = tokens.issue({"id": 1, "role": "student"}, timedelta(minutes=5))
    head, _, sig = token.split(".")
    other_payload = tokens.issue({"id": 1, "role": "admin"}, timedelta(minutes=5)).split(".")[1]
    with pytest.raises(TokenInvalidError):
        tokens.verify(f"{head}.{other_payload}.{sig}")

    forged = jwt.encode({"id": 1, "role": "admin"}, "some-other-secret", algorithm="HS256")
    with pytest.raises(TokenInvalidError):
        tokens.verify(forged)

    with pytest.raises(TokenInvalidError):
        tokens.verify("")


def test_pair_carries_type_markers(student):
    pair = tokens.issue_pair(student)
    assert tokens.verify(pair["accessToken"])["type"] == tokens.ACCESS
    refresh = tokens.verify(pair["refreshToken"])
    assert refresh["type"] == tokens.REFRESH
    assert refresh["id"] == student.id
    assert refresh["email"] == student.email
    assert refresh["role"] == "student"


def test_refresh_issues_new_pair(db, student):
    pair = auth_service.refresh(db, tokens.issue_pair(student)["refreshToken"])
    assert tokens.verify(pair["accessToken"])["id"] == student.id


def test_refresh_rejects_access_token(db, student):
    with pytest.raises(TokenInvalidError):
        auth_service.refresh(db, tokens.issue_pair(student)["accessToken"])


def test_refresh_fails_once_account_is_deactivated(db, student):
    refresh_token = tokens.issue_pair(student)["refreshToken"]
    student.status = "inactive"
    db.commit()
    with pytest.raises(AuthenticationError):
        auth_service.refresh(db, refresh_token)


def test_refresh_fails_once_account_is_deleted(db, student):
    refresh_token = tokens.issue_pair(student)["refreshToken"]
    db.delete(student)
    db.commit()
    with pytest.raises(AuthenticationError):
        auth_service.refresh(db, refresh_token)


def test_refresh_token_cannot_call_the_api(client, student):
    refresh_token = tokens.issue_pair(student)["refreshToken"]
    resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {refresh_token}"})
    assert resp.status_code == 401
    assert resp.json()["success"] is False
