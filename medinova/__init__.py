"""MediNova - medical-test booking platform backend.

- Users sign in through the frontend, which then calls `POST /users` (first
  sign-in) and `POST /jwt` (access token).
- Admins manage the test catalog, banners, users and see all bookings.
- Users book tests and pay through a Stripe PaymentIntent.

All state lives in the document store (`medinova.store`).
"""

__all__ = ["__version__"]

__version__ = "0.3.0"
