import hashlib
import hmac
import json
import time

import pytest

from reconciler.config.settings import WebhookSecret
from reconciler.exceptions import SignatureVerificationFailed
from reconciler.payments.signature import SignatureVerifier

SECRETS = [
    WebhookSecret("test", "whsec_test_secret"),
    WebhookSecret("production", "whsec_live_secret"),
]


def _sign(payload: str, secret: str, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def _payload() -> str:
    return json.dumps(
        {
            "id": "evt_1",
            "type": "checkout.session.completed",
            "data": {"object": {"id": "cs_test_1"}},
        }
    )


class TestSignatureVerifier:
    def test_verifies_with_first_secret(self) -> None:
        payload = _payload()
        verified = SignatureVerifier(SECRETS).verify(payload, _sign(payload, "whsec_test_secret"))

        assert verified.environment == "test"
        assert verified.type == "checkout.session.completed"
        assert verified.data_object == {"id": "cs_test_1"}

    def test_falls_through_to_second_secret(self) -> None:
        payload = _payload()
        verified = SignatureVerifier(SECRETS).verify(
            payload.encode(), _sign(payload, "whsec_live_secret")
        )
        assert verified.environment == "production"

    def test_rejects_unknown_secret(self) -> None:
        payload = _payload()
        with pytest.raises(SignatureVerificationFailed, match="verification failed"):
            SignatureVerifier(SECRETS).verify(payload, _sign(payload, "whsec_other"))

    def test_rejects_tampered_payload(self) -> None:
        payload = _payload()
        header = _sign(payload, "whsec_test_secret")
        with pytest.raises(SignatureVerificationFailed):
            SignatureVerifier(SECRETS).verify(payload.replace("evt_1", "evt_2"), header)

    def test_rejects_missing_header(self) -> None:
        with pytest.raises(SignatureVerificationFailed, match="missing"):
            SignatureVerifier(SECRETS).verify(_payload(), None)

    def test_rejects_stale_timestamp(self) -> None:
        payload = _payload()
        header = _sign(payload, "whsec_test_secret", timestamp=int(time.time()) - 3600)
        with pytest.raises(SignatureVerificationFailed):
            SignatureVerifier(SECRETS).verify(payload, header)

    def test_no_secrets_configured(self) -> None:
        payload = _payload()
        with pytest.raises(SignatureVerificationFailed):
            SignatureVerifier([]).verify(payload, _sign(payload, "whsec_test_secret"))

    def test_rejects_body_that_is_not_utf8(self) -> None:
        with pytest.raises(SignatureVerificationFailed, match="not valid UTF-8"):
            SignatureVerifier(SECRETS).verify(b"\xff\xfe{}", "t=1,v1=abc")
