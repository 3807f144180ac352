import hashlib
import hmac
import json
import time

import pytest

from tutorhub.app.core.exceptions import PaymentProcessorError
from tutorhub.app.core.settings import get_settings
from tutorhub.app.main import app
from tutorhub.app.services.stripe_gateway import get_payment_gateway

WEBHOOK_SECRET = "whsec_test_secret"


class FakeGateway:
    """In-memory stand-in for StripeGateway; records every call."""

    def __init__(self):
        self.intents = {}
        self.refunds = []
        self.customers = []
        self.methods = {}
        self.fail = False
        self._counter = 0

    def _next_id(self, prefix):
        self._counter += 1
        return f"{prefix}_test_{self._counter}"

    def create_payment_intent(self, amount_cents, metadata, customer_id=None, payment_method_id=None, return_url=None):
        if self.fail:
            raise PaymentProcessorError("Failed to create payment intent")
        intent_id = self._next_id("pi")
        self.intents[intent_id] = {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret",
            "status": "requires_payment_method",
            "amount": amount_cents,
            "metadata": metadata,
            "payment_method": payment_method_id,
        }
        return {key: self.intents[intent_id][key] for key in ("id", "client_secret", "status")}

    def retrieve_payment_intent(self, intent_id):
        intent = self.intents[intent_id]
        return {key: intent[key] for key in ("id", "client_secret", "status")}

    def create_refund(self, payment_intent_id, amount_cents, metadata):
        if self.fail:
            raise PaymentProcessorError("Failed to process refund")
        refund = {"id": self._next_id("re"), "status": "succeeded", "amount": amount_cents}
        self.refunds.append({**refund, "payment_intent": payment_intent_id, "metadata": metadata})
        return refund

    def ensure_customer(self, email, name, user_id, customer_id=None):
        if customer_id:
            return customer_id
        customer_id = self._next_id("cus")
        self.customers.append(customer_id)
        self.methods[customer_id] = []
        return customer_id

    def list_card_methods(self, customer_id):
        return list(self.methods.get(customer_id, []))

    def attach_payment_method(self, payment_method_id, customer_id):
        self.methods.setdefault(customer_id, []).append(
            {
                "id": payment_method_id,
                "type": "card",
                "card": {"brand": "visa", "last4": "4242", "exp_month": 12, "exp_year": 2034},
            }
        )

    def detach_payment_method(self, payment_method_id):
        for methods in self.methods.values():
            methods[:] = [method for method in methods if method["id"] != payment_method_id]


@pytest.fixture
def fake_gateway():
    gateway = FakeGateway()
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield gateway
    app.dependency_overrides.pop(get_payment_gateway, None)


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(get_settings(), "stripe_webhook_secret", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def build_event(event_id: str, event_type: str, data_object: dict) -> str:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": data_object},
        }
    )


@pytest.fixture
def post_webhook(webhook_secret):
    """Return a callable that signs and posts an event through the given client."""

    def _post(client, event_id, event_type, data_object, signature=None):
        payload = build_event(event_id, event_type, data_object)
        headers = {"Content-Type": "application/json", "stripe-signature": signature or sign_payload(payload)}
        return client.post("/api/payments/webhook", content=payload, headers=headers)

    return _post
