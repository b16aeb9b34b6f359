from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Mapping

import jwt

from medinova.errors import BadRequest, SigningError, Unauthenticated
from medinova.util.time import utcnow


_JWT_ALG = "HS256"

# Claims added by issue_token; stripped again by verify_token.
_ISSUER_CLAIMS = ("iat", "exp")


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def issue_token(identity: Mapping[str, Any], *, secret: str, expires_days: int) -> str:
    """Sign `identity` into a time-limited access token.

    The identity must carry an email; it is what the admin and ownership
    checks look up later. Any `iat`/`exp` the caller sends is overwritten.
    """
    if not secret:
        raise SigningError("jwt_secret_blank")

    email = identity.get("email") if isinstance(identity, Mapping) else None
    if not isinstance(email, str) or not email.strip():
        raise BadRequest("email_required")

    now = utcnow()
    exp = now + timedelta(days=max(1, int(expires_days)))

    payload: Dict[str, Any] = {k: v for k, v in identity.items() if k not in _ISSUER_CLAIMS}
    payload["iat"] = int(now.timestamp())
    payload["exp"] = int(exp.timestamp())
    try:
        return jwt.encode(payload, secret, algorithm=_JWT_ALG)
    except TypeError as e:
        # Non-JSON-serializable identity fields.
        raise BadRequest("identity_not_serializable") from e


def verify_token(token: str | None, *, secret: str) -> Dict[str, Any]:
    """Return the identity a token was issued for.

    Every failure (absent, malformed, bad signature, expired) is Unauthenticated.
    """
    if not token:
        raise Unauthenticated()
    if not secret:
        # Nothing could have been signed without a secret.
        raise SigningError("jwt_secret_blank")

    try:
        payload = jwt.decode(token, secret, algorithms=[_JWT_ALG])
    except jwt.ExpiredSignatureError:
        _debug("rejected token: expired")
        raise Unauthenticated()
    except jwt.InvalidTokenError as e:
        _debug(f"rejected token: {type(e).__name__}")
        raise Unauthenticated()

    return {k: v for k, v in payload.items() if k not in _ISSUER_CLAIMS}
