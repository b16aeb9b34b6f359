from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from medinova.store import USERS, DocumentStore, Document
from medinova.util.time import utcnow_iso


ROLES = ("user", "admin")
STATUSES = ("active", "blocked")

# Fields a user may not change on their own profile.
PROTECTED_FIELDS = ("_id", "email", "role", "status")


def _debug(msg: str) -> None:
    print(f"[users] {msg}")


def normalize_email(email: Any) -> str:
    return (email or "").strip().lower() if isinstance(email, str) else ""


def get_user_by_email(store: DocumentStore, email: str) -> Optional[Document]:
    e = normalize_email(email)
    if not e:
        return None
    return store.find_one(USERS, {"email": e})


def get_user_by_id(store: DocumentStore, user_id: str) -> Optional[Document]:
    return store.find_one(USERS, {"_id": user_id})


def insert_user_if_absent(store: DocumentStore, user: Mapping[str, Any]) -> Dict[str, Any]:
    """Insert a user unless one with the same email exists.

    Existing records are never merged or touched. A known email is reported
    with `insertedId: None` instead of an error.
    """
    doc = {k: v for k, v in dict(user).items() if k != "_id"}
    email = normalize_email(doc.get("email"))
    if not email:
        raise ValueError("email_required")
    doc["email"] = email
    # Sign-up never grants privileges; role and status start at their defaults.
    doc["role"] = "user"
    doc["status"] = "active"
    doc.setdefault("created_at", utcnow_iso())

    result = store.insert_unique(USERS, doc)
    if result.get("insertedId") is None:
        return {"message": "user already exist in database", "insertedId": None}
    _debug(f"new user {email}")
    return result


def set_user_role(store: DocumentStore, user_id: str, role: str) -> Dict[str, Any]:
    if role not in ROLES:
        raise ValueError("invalid_role")
    return store.update_one(USERS, {"_id": user_id}, {"role": role})


def set_user_status(store: DocumentStore, user_id: str, status: str) -> Dict[str, Any]:
    if status not in STATUSES:
        raise ValueError("invalid_status")
    return store.update_one(USERS, {"_id": user_id}, {"status": status})


def update_profile(store: DocumentStore, user_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
    changes = {k: v for k, v in dict(fields).items() if k not in PROTECTED_FIELDS}
    changes["updated_at"] = utcnow_iso()
    return store.update_one(USERS, {"_id": user_id}, changes)


def user_status(user: Mapping[str, Any]) -> str:
    status = str(user.get("status") or "active").strip().lower()
    return status if status in STATUSES else "active"


def ensure_admin(store: DocumentStore, email: str) -> Document:
    """Promote `email` to admin, creating the user record if needed.

    Used to bootstrap the first admin; the API itself can only promote
    users when an admin already exists.
    """
    e = normalize_email(email)
    if not e:
        raise ValueError("email_required")
    user = get_user_by_email(store, e)
    if user is None:
        insert_user_if_absent(store, {"email": e})
        user = get_user_by_email(store, e)
        assert user is not None
    set_user_role(store, user["_id"], "admin")
    promoted = get_user_by_id(store, user["_id"])
    assert promoted is not None
    return promoted
