from typing import Any

import stripe

from reconciler.config.settings import Settings
from reconciler.logging.logger import Log

_SESSION_PREFIXES = {
    "cs_live_": "production",
    "cs_test_": "test",
}


def environment_of(session_id: str) -> str | None:
    """Environment a checkout session id belongs to, from its prefix."""
    for prefix, environment in _SESSION_PREFIXES.items():
        if session_id.startswith(prefix):
            return environment
    return None


class PaymentProcessorClient:
    """Read-only Stripe calls, each made with the key of the given environment."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def environment(self) -> str:
        return self._settings.stripe_environment.lower()

    def retrieve_checkout_session(
        self, session_id: str, environment: str | None = None
    ) -> dict[str, Any]:
        """Fetch a checkout session.

        Raises:
            stripe.StripeError: on any API failure; callers decide what to keep.
        """
        api_key = self._settings.stripe_api_key(environment)
        session = stripe.checkout.Session.retrieve(session_id, api_key=api_key)
        return dict(session)

    def find_session_for_payment_intent(
        self, payment_intent_id: str, environment: str | None = None
    ) -> str | None:
        """Checkout session id that created ``payment_intent_id``, if Stripe knows one."""
        api_key = self._settings.stripe_api_key(environment)
        try:
            sessions = stripe.checkout.Session.list(
                payment_intent=payment_intent_id, limit=1, api_key=api_key
            )
        except stripe.StripeError as exc:
            Log.warning(
                f"Could not look up checkout session for payment intent: {exc}",
                payment_intent=payment_intent_id,
            )
            return None
        if not sessions.data:
            return None
        return str(sessions.data[0]["id"])
