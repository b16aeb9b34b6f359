"""Allow/deny checks that run after the token has been verified.

Each guard is a plain function returning a GuardResult so it can be used
(and tested) without a request. `medinova.auth.deps` turns a denial into
a Forbidden response.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from medinova.store import DocumentStore

from .users import get_user_by_email, normalize_email


@dataclass(frozen=True)
class GuardResult:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = GuardResult(True)


def deny(reason: str) -> GuardResult:
    return GuardResult(False, reason)


def authorize(store: DocumentStore, identity: Mapping[str, Any]) -> GuardResult:
    """Admin check against the live user record.

    Re-read on every call so a demotion takes effect on the next request.
    """
    user = get_user_by_email(store, identity.get("email") or "")
    if user is None:
        return deny("user_not_found")
    if user.get("role") != "admin":
        return deny("admin_required")
    return ALLOW


def authorize_owner(identity: Mapping[str, Any], email: Any) -> GuardResult:
    """The identity may only act on resources filed under its own email."""
    mine = normalize_email(identity.get("email"))
    if not mine or mine != normalize_email(email):
        return deny("email_mismatch")
    return ALLOW
