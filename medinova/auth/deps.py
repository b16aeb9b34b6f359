from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from medinova.config import Config
from medinova.errors import Forbidden, Internal, Unauthenticated
from medinova.store import DocumentStore

from .guards import GuardResult, authorize, authorize_owner
from .security import verify_token


_bearer = HTTPBearer(auto_error=False)


def get_cfg(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise Internal("server_config_missing")
    return cfg


def get_store(request: Request) -> DocumentStore:
    store = getattr(request.app.state, "store", None)
    if store is None or not store.is_open:
        raise Internal("store_unavailable")
    return store


def _token_from_request(
    request: Request,
    cfg: Config,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    # Only the configured transport is consulted.
    if cfg.AUTH_TOKEN_TRANSPORT == "bearer":
        if credentials is not None and credentials.credentials:
            return credentials.credentials
        return None
    return request.cookies.get(cfg.AUTH_COOKIE_NAME) or None


def get_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Dict[str, Any]:
    """Verify the request's token and expose the identity it was issued for.

    The identity is also left on `request.state.identity`.
    """
    cfg = get_cfg(request)
    token = _token_from_request(request, cfg, credentials)
    try:
        identity = verify_token(token, secret=cfg.AUTH_JWT_SECRET)
    except Unauthenticated as e:
        if cfg.AUTH_TOKEN_TRANSPORT == "bearer":
            e.headers = {"WWW-Authenticate": "Bearer"}
        raise
    request.state.identity = identity
    return identity


def enforce(result: GuardResult) -> None:
    if not result.allowed:
        raise Forbidden()


def require_admin(
    identity: Dict[str, Any] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    enforce(authorize(store, identity))
    return identity


def require_owner(identity: Dict[str, Any], email: Any) -> None:
    enforce(authorize_owner(identity, email))
