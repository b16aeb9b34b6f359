from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from medinova import __version__
from medinova.auth import get_identity, get_store, issue_token, require_admin, require_owner
from medinova.auth.deps import enforce, get_cfg
from medinova.auth.guards import authorize, authorize_owner
from medinova.auth.users import (
    USERS,
    get_user_by_email,
    get_user_by_id,
    insert_user_if_absent,
    normalize_email,
    set_user_role,
    set_user_status,
    update_profile,
    user_status,
)
from medinova.billing.stripe_payments import create_payment_intent, parse_price
from medinova.config import Config, load_config
from medinova.errors import ApiError, BadRequest, Internal, NotFound, SigningError, StoreClosedError
from medinova.store import BANNERS, BOOKINGS, RECOMMENDATIONS, TESTS, DocumentStore, is_object_id


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def _object_id(raw: str) -> str:
    if not is_object_id(raw):
        raise BadRequest("invalid_id")
    return raw


def _without_id(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if k != "_id"}


def _owner_or_admin(store: DocumentStore, identity: Dict[str, Any], email: Any) -> None:
    if authorize_owner(identity, email):
        return
    enforce(authorize(store, identity))


router = APIRouter()


# -----------------------------
# Health
# -----------------------------


@router.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "Hello MediNova"


@router.get("/health")
def health(store: DocumentStore = Depends(get_store)) -> Dict[str, Any]:
    return {"status": "ok", "db": store.ping()}


# -----------------------------
# Auth
# -----------------------------


def _cookie_secure(cfg: Config) -> bool:
    # Browsers require Secure when SameSite=None
    if cfg.AUTH_COOKIE_SAMESITE == "none":
        return True
    return bool(cfg.AUTH_COOKIE_SECURE)


def _set_token_cookie(response: Response, *, token: str, cfg: Config) -> None:
    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite=cfg.AUTH_COOKIE_SAMESITE,
        secure=_cookie_secure(cfg),
        max_age=int(cfg.AUTH_TOKEN_EXPIRE_DAYS) * 24 * 60 * 60,
        path=cfg.AUTH_COOKIE_PATH,
        domain=cfg.AUTH_COOKIE_DOMAIN,
    )


@router.post("/jwt")
def issue_jwt(
    response: Response,
    payload: Dict[str, Any] = Body(...),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    """Sign the submitted identity (at least `email`) into an access token."""
    token = issue_token(payload, secret=cfg.AUTH_JWT_SECRET, expires_days=cfg.AUTH_TOKEN_EXPIRE_DAYS)
    if cfg.AUTH_TOKEN_TRANSPORT == "bearer":
        return {"token": token}
    _set_token_cookie(response, token=token, cfg=cfg)
    return {"success": True}


@router.get("/logout")
def logout(response: Response, cfg: Config = Depends(get_cfg)) -> Dict[str, Any]:
    response.delete_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        path=cfg.AUTH_COOKIE_PATH,
        domain=cfg.AUTH_COOKIE_DOMAIN,
        secure=_cookie_secure(cfg),
        samesite=cfg.AUTH_COOKIE_SAMESITE,
    )
    return {"success": True}


# -----------------------------
# Users
# -----------------------------


@router.get("/users")
@router.get("/allusers")
def list_users(
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    return store.find(USERS)


@router.post("/users")
def add_user(
    payload: Dict[str, Any] = Body(...),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    """Record a user on first sign-in. Known emails are left untouched."""
    try:
        return insert_user_if_absent(store, payload)
    except ValueError as e:
        raise BadRequest(str(e))


@router.get("/users/admin/{email}")
def is_admin(
    email: str,
    identity: Dict[str, Any] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    require_owner(identity, email)
    user = get_user_by_email(store, email)
    return {"admin": bool(user is not None and user.get("role") == "admin")}


@router.get("/users/status/{email}")
def get_status(
    email: str,
    identity: Dict[str, Any] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    require_owner(identity, email)
    user = get_user_by_email(store, email)
    if user is None:
        raise NotFound("user_not_found")
    return {"status": user_status(user)}


@router.patch("/users/admin/{id}")
def make_admin(
    id: str,
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    result = set_user_role(store, _object_id(id), "admin")
    _debug(f"promote user {id}: matched={result['matchedCount']}")
    return result


@router.patch("/users/block/{id}")
def block_user(
    id: str,
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    return set_user_status(store, _object_id(id), "blocked")


@router.patch("/users/status/{id}")
def change_status(
    id: str,
    payload: Dict[str, Any] = Body(...),
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    status = str(payload.get("status") or "").strip().lower()
    try:
        return set_user_status(store, _object_id(id), status)
    except ValueError as e:
        raise BadRequest(str(e))


@router.patch("/users/{id}")
def update_user(
    id: str,
    payload: Dict[str, Any] = Body(...),
    identity: Dict[str, Any] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    user = get_user_by_id(store, _object_id(id))
    if user is None:
        raise NotFound("user_not_found")
    require_owner(identity, user.get("email"))
    return update_profile(store, id, payload)


@router.get("/user/info/{id}")
def user_info(
    id: str,
    identity: Dict[str, Any] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    user = get_user_by_id(store, _object_id(id))
    if user is None:
        raise NotFound("user_not_found")
    _owner_or_admin(store, identity, user.get("email"))
    return user


# -----------------------------
# Tests (catalog)
# -----------------------------


@router.get("/tests")
def list_tests(store: DocumentStore = Depends(get_store)) -> List[Dict[str, Any]]:
    return store.find(TESTS)


@router.post("/tests")
def add_test(
    payload: Dict[str, Any] = Body(...),
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    return store.insert_one(TESTS, _without_id(payload))


@router.get("/tests/{id}")
def get_test(id: str, store: DocumentStore = Depends(get_store)) -> Dict[str, Any]:
    test = store.find_one(TESTS, {"_id": _object_id(id)})
    if test is None:
        raise NotFound("test_not_found")
    return test


@router.delete("/tests/{id}")
def delete_test(
    id: str,
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    return store.delete_one(TESTS, {"_id": _object_id(id)})


@router.patch("/tests/update/{id}")
def update_test(
    id: str,
    payload: Dict[str, Any] = Body(...),
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    return store.update_one(TESTS, {"_id": _object_id(id)}, _without_id(payload))


# -----------------------------
# Banners
# -----------------------------


@router.get("/banner")
def active_banners(store: DocumentStore = Depends(get_store)) -> List[Dict[str, Any]]:
    return store.find(BANNERS, {"status": True})


@router.post("/banner")
def add_banner(
    payload: Dict[str, Any] = Body(...),
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    doc = _without_id(payload)
    # New banners start hidden; /allbanners/display/{id} is the only way to show one.
    doc["status"] = False
    return store.insert_one(BANNERS, doc)


@router.get("/allbanners")
def all_banners(
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    return store.find(BANNERS)


@router.delete("/allbanners/{id}")
def delete_banner(
    id: str,
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    return store.delete_one(BANNERS, {"_id": _object_id(id)})


@router.patch("/allbanners/display/{id}")
def display_banner(
    id: str,
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    """Make this banner the only active one."""
    result = store.set_exclusive_flag(BANNERS, _object_id(id), "status")
    if result["matchedCount"] == 0:
        raise NotFound("banner_not_found")
    _debug(f"banner {id} is now the active banner")
    return result


# -----------------------------
# Bookings
# -----------------------------


@router.post("/bookings")
def add_booking(
    payload: Dict[str, Any] = Body(...),
    identity: Dict[str, Any] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    doc = _without_id(payload)
    email = normalize_email(doc.get("email"))
    if not email:
        raise BadRequest("email_required")
    test_id = doc.get("test_id")
    if not isinstance(test_id, str) or not test_id.strip():
        raise BadRequest("test_id_required")
    require_owner(identity, email)
    doc["email"] = email
    return store.insert_one(BOOKINGS, doc)


@router.get("/bookings")
def all_bookings(
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    return store.find(BOOKINGS)


@router.get("/bookings/{email}")
def bookings_for_user(
    email: str,
    identity: Dict[str, Any] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    require_owner(identity, email)
    return store.find(BOOKINGS, {"email": normalize_email(email)})


@router.delete("/bookings/{id}")
def cancel_booking(
    id: str,
    identity: Dict[str, Any] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    """Cancel a booking. Only its owner or an admin may do so.

    An unknown id is not an error: the result simply reports zero deletions.
    """
    booking_id = _object_id(id)
    booking = store.find_one(BOOKINGS, {"_id": booking_id})
    if booking is not None:
        _owner_or_admin(store, identity, booking.get("email"))
    return store.delete_one(BOOKINGS, {"_id": booking_id})


@router.get("/reservation/{test_id}")
def reservations_for_test(
    test_id: str,
    _admin: Dict[str, Any] = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    return store.find(BOOKINGS, {"test_id": test_id})


# -----------------------------
# Recommendations
# -----------------------------


@router.get("/recommendations")
def recommendations(store: DocumentStore = Depends(get_store)) -> List[Dict[str, Any]]:
    return store.find(RECOMMENDATIONS)


# -----------------------------
# Payments (Stripe)
# -----------------------------


@router.post("/create-payment-intent")
def payment_intent(
    payload: Dict[str, Any] = Body(...),
    identity: Dict[str, Any] = Depends(get_identity),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    price = parse_price(payload.get("price"))
    try:
        return create_payment_intent(cfg, price=price, email=normalize_email(identity.get("email")) or None)
    except ApiError:
        raise
    except Exception as e:
        # Provider or configuration failure; no retry.
        _debug(f"payment intent failed: {type(e).__name__}: {e}")
        raise Internal("payment_provider_error")


# -----------------------------
# App
# -----------------------------


def _error_response(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message}, headers=headers)


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return _error_response(exc.status_code, exc.message, exc.headers)

    @app.exception_handler(SigningError)
    async def _signing_error(request: Request, exc: SigningError) -> JSONResponse:
        _debug(f"token signing misconfigured: {exc}")
        return _error_response(500, "server_misconfigured")

    @app.exception_handler(StoreClosedError)
    async def _store_closed(request: Request, exc: StoreClosedError) -> JSONResponse:
        return _error_response(500, "store_unavailable")

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(400, "invalid_request")


def create_app(cfg: Optional[Config] = None, store: Optional[DocumentStore] = None) -> FastAPI:
    """Build the API.

    The store is opened on startup and closed on shutdown; pass one in to
    share it with the caller (tests, scripts).
    """
    cfg = cfg or load_config()
    if cfg.AUTH_TOKEN_TRANSPORT not in ("cookie", "bearer"):
        raise ValueError(f"invalid AUTH_TOKEN_TRANSPORT: {cfg.AUTH_TOKEN_TRANSPORT!r}")

    app = FastAPI(title="MediNova API", version=__version__)
    app.state.cfg = cfg
    app.state.store = None

    # The SPA runs on another origin (Vite on :5173) and sends the cookie.
    origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _install_error_handlers(app)
    app.include_router(router)

    @app.on_event("startup")
    def _on_startup() -> None:
        s = store or DocumentStore(cfg.DB_DSN)
        s.open()
        app.state.store = s
        if not cfg.AUTH_JWT_SECRET:
            _debug("WARNING: AUTH_JWT_SECRET is not set; /jwt will fail until it is")
        _debug(f"MediNova API ready (token transport: {cfg.AUTH_TOKEN_TRANSPORT})")

    @app.on_event("shutdown")
    def _on_shutdown() -> None:
        s = app.state.store
        if s is not None:
            s.close()
        app.state.store = None

    return app


app = create_app()
