import base64
import json
import time

import jwt
import pytest

from medinova.auth.security import issue_token, verify_token
from medinova.errors import BadRequest, SigningError, Unauthenticated

SECRET = "unit-secret"


def _b64url(obj) -> str:
    raw = json.dumps(obj, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def test_round_trip_returns_identity_unchanged():
    identity = {"email": "a@x.com", "name": "A", "photo": None}
    token = issue_token(identity, secret=SECRET, expires_days=30)
    assert verify_token(token, secret=SECRET) == identity


def test_token_carries_expiry_window():
    token = issue_token({"email": "a@x.com"}, secret=SECRET, expires_days=30)
    claims = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert claims["exp"] - claims["iat"] == 30 * 24 * 60 * 60


def test_caller_supplied_exp_is_ignored():
    token = issue_token({"email": "a@x.com", "exp": 1}, secret=SECRET, expires_days=1)
    assert verify_token(token, secret=SECRET) == {"email": "a@x.com"}


def test_missing_secret_is_a_signing_error():
    with pytest.raises(SigningError):
        issue_token({"email": "a@x.com"}, secret="", expires_days=30)


@pytest.mark.parametrize("identity", [{}, {"email": ""}, {"email": "   "}, {"email": 42}])
def test_identity_needs_an_email(identity):
    with pytest.raises(BadRequest):
        issue_token(identity, secret=SECRET, expires_days=30)


@pytest.mark.parametrize("token", [None, ""])
def test_absent_token_rejected(token):
    with pytest.raises(Unauthenticated):
        verify_token(token, secret=SECRET)


def test_expired_token_rejected():
    token = jwt.encode({"email": "a@x.com", "exp": int(time.time()) - 60}, SECRET, algorithm="HS256")
    with pytest.raises(Unauthenticated):
        verify_token(token, secret=SECRET)


def test_token_signed_with_other_secret_rejected():
    token = issue_token({"email": "a@x.com"}, secret="another-secret", expires_days=30)
    with pytest.raises(Unauthenticated):
        verify_token(token, secret=SECRET)


def test_tampered_payload_rejected():
    token = issue_token({"email": "a@x.com"}, secret=SECRET, expires_days=30)
    header, _, sig = token.split(".")
    forged = ".".join([header, _b64url({"email": "admin@x.com", "exp": int(time.time()) + 3600}), sig])
    with pytest.raises(Unauthenticated):
        verify_token(forged, secret=SECRET)


def test_garbage_rejected():
    with pytest.raises(Unauthenticated):
        verify_token("not-a-jwt", secret=SECRET)
