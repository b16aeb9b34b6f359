from __future__ import annotations

import math
from typing import Any, Dict, Optional

from medinova.config import Config
from medinova.errors import BadRequest


def _debug(msg: str) -> None:
    print(f"[billing] {msg}")


def _get_stripe(cfg: Config):
    try:
        import stripe  # type: ignore
    except Exception as e:
        raise RuntimeError(
            "Stripe selected but the 'stripe' package is not installed. Install stripe and try again."
        ) from e

    if not cfg.STRIPE_SECRET_KEY:
        raise RuntimeError("stripe_secret_key_missing")

    stripe.api_key = cfg.STRIPE_SECRET_KEY
    return stripe


def parse_price(raw: Any) -> float:
    """Accept a finite number > 0. Booleans and numeric strings are rejected."""
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise BadRequest("Invalid price")
    price = float(raw)
    if not math.isfinite(price) or price <= 0:
        raise BadRequest("Invalid price")
    return price


def price_to_minor_units(price: float) -> int:
    """Stripe amounts are integers in the currency's smallest unit (cents)."""
    return int(round(price * 100))


def create_payment_intent(
    cfg: Config,
    *,
    price: float,
    email: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a card PaymentIntent and return its client secret.

    No retries; any provider failure propagates to the caller.
    """
    amount = price_to_minor_units(price)
    if amount <= 0:
        # e.g. price=0.001 rounds to zero cents
        raise BadRequest("Invalid price")

    stripe = _get_stripe(cfg)
    params: Dict[str, Any] = {
        "amount": amount,
        "currency": cfg.PAYMENT_CURRENCY,
        "payment_method_types": ["card"],
    }
    if email:
        params["receipt_email"] = email
        params["metadata"] = {"email": email}

    intent = stripe.PaymentIntent.create(**params)
    # StripeObject is not a dict on current SDKs; read the attribute.
    secret = getattr(intent, "client_secret", None)
    if not secret:
        raise RuntimeError("stripe_client_secret_missing")
    _debug(f"payment intent created amount={amount} {cfg.PAYMENT_CURRENCY}")
    return {"clientSecret": str(secret)}
