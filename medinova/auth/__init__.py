"""Authentication / authorization.

- `security`: issue and verify the signed access token (JWT).
- `guards`: admin and ownership checks as plain allow/deny functions.
- `deps`: the same chain as FastAPI dependencies (verify -> authorize -> handler).

The token travels either in an httpOnly cookie (set by `POST /jwt`) or in
an `Authorization: Bearer` header, depending on `AUTH_TOKEN_TRANSPORT`.
"""

from .deps import get_identity, get_store, require_admin, require_owner
from .guards import GuardResult, authorize, authorize_owner
from .security import issue_token, verify_token

__all__ = [
    "GuardResult",
    "authorize",
    "authorize_owner",
    "get_identity",
    "get_store",
    "issue_token",
    "require_admin",
    "require_owner",
    "verify_token",
]
