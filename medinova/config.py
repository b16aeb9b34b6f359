import os
from dataclasses import dataclass
from typing import Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _env_str(*names: str, default: str = "") -> str:
    """Return the first non-empty value among several env var names."""
    for name in names:
        v = os.environ.get(name)
        if v is not None and v.strip():
            return v
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set MEDINOVA_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: MEDINOVA_DB_PATH for SQLite.
    DB_DSN: str = _env_str(
        "MEDINOVA_DATABASE_URL",
        "DATABASE_URL",
        "MEDINOVA_DB_PATH",
        default="./medinova.sqlite",
    )

    # -----------------
    # Auth (JWT)
    # -----------------
    # ACCESS_TOKEN_SECRET is the name older deployments used.
    # An empty secret is allowed at startup; issuing a token then fails with SigningError.
    AUTH_JWT_SECRET: str = _env_str("AUTH_JWT_SECRET", "ACCESS_TOKEN_SECRET", default="")
    AUTH_TOKEN_EXPIRE_DAYS: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_DAYS", "365"))

    # Where clients carry the token: "cookie" (httpOnly cookie set by /jwt)
    # or "bearer" (Authorization header, token returned in the /jwt body).
    AUTH_TOKEN_TRANSPORT: str = os.environ.get("AUTH_TOKEN_TRANSPORT", "cookie").strip().lower()

    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "token")
    AUTH_COOKIE_DOMAIN: str | None = (os.environ.get("AUTH_COOKIE_DOMAIN") or "").strip() or None
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")

    # Production deployments serve the SPA from another origin, so the cookie
    # must be SameSite=None; Secure. Locally "strict" over plain http is enough.
    PRODUCTION: bool = _env_bool("MEDINOVA_PRODUCTION", None) is True or (
        os.environ.get("NODE_ENV", "").strip().lower() == "production"
    )
    AUTH_COOKIE_SAMESITE: str = os.environ.get(
        "AUTH_COOKIE_SAMESITE",
        "none" if PRODUCTION else "strict",
    ).strip().lower()
    AUTH_COOKIE_SECURE: bool = (
        _env_bool("AUTH_COOKIE_SECURE", None)
        if _env_bool("AUTH_COOKIE_SECURE", None) is not None
        else PRODUCTION
    )

    # -----------------
    # CORS
    # -----------------
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:5173,http://localhost:5174",
    )

    # -----------------
    # Payments (Stripe)
    # -----------------
    STRIPE_SECRET_KEY: str | None = os.environ.get("STRIPE_SECRET_KEY") or os.environ.get(
        "STRIPE_SECRET"
    )
    PAYMENT_CURRENCY: str = os.environ.get("PAYMENT_CURRENCY", "usd").strip().lower()


def load_config() -> Config:
    return Config()
