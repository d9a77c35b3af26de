"""Webhook signature verification against several candidate secrets.

Test and production Stripe accounts sign with different secrets and both can
post to the same endpoint, so a payload is checked against each configured
secret in turn. The first match decides which environment the event belongs
to, and that environment's API key is used for any follow-up calls.
"""

import json
from dataclasses import dataclass
from typing import Any

import stripe

from reconciler.config.settings import WebhookSecret
from reconciler.exceptions import SignatureVerificationFailed
from reconciler.logging.logger import Log

DEFAULT_TOLERANCE_SECONDS = 300


@dataclass
class VerifiedEvent:
    """A parsed event whose signature matched ``environment``'s secret."""

    environment: str
    event: dict[str, Any]

    @property
    def type(self) -> str:
        return str(self.event.get("type", ""))

    @property
    def id(self) -> str | None:
        return self.event.get("id")

    @property
    def data_object(self) -> dict[str, Any]:
        return self.event.get("data", {}).get("object", {}) or {}


class SignatureVerifier:
    def __init__(
        self,
        secrets: list[WebhookSecret],
        tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    ) -> None:
        self._secrets = secrets
        self._tolerance = tolerance

    @property
    def environments(self) -> list[str]:
        return [candidate.environment for candidate in self._secrets]

    def verify(self, payload: bytes | str, signature: str | None) -> VerifiedEvent:
        """Return the event for the first secret that verifies the payload.

        Raises:
            SignatureVerificationFailed: if the header is missing, no secret
                matches, or the verified body is not a JSON object.
        """
        if not signature:
            Log.warning("Webhook rejected: signature header missing")
            raise SignatureVerificationFailed("Stripe signature missing")

        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as exc:
            Log.warning("Webhook rejected: body is not valid UTF-8")
            raise SignatureVerificationFailed("Webhook body is not valid UTF-8") from exc

        for candidate in self._secrets:
            try:
                stripe.WebhookSignature.verify_header(
                    body, signature, candidate.secret, self._tolerance
                )
            except stripe.SignatureVerificationError:
                Log.debug(f"Signature did not verify for {candidate.environment}")
                continue

            Log.info(f"Webhook signature verified using {candidate.environment} secret")
            try:
                event = json.loads(body)
            except json.JSONDecodeError as exc:
                raise SignatureVerificationFailed(f"Webhook body is not valid JSON: {exc}") from exc
            if not isinstance(event, dict):
                raise SignatureVerificationFailed("Webhook body is not a JSON object")
            return VerifiedEvent(environment=candidate.environment, event=event)

        Log.error(
            "Webhook signature verification failed with all secrets",
            tried=",".join(self.environments) or "none",
        )
        raise SignatureVerificationFailed("Webhook signature verification failed")
