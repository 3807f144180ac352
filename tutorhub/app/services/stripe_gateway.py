"""
Thin wrapper around the Stripe SDK.

Every call that leaves the process goes through ``StripeGateway`` so routes
can depend on it (and tests can swap it out). Stripe failures are logged
with their cause and re-raised as PaymentProcessorError carrying a message
that is safe to return to clients.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import stripe

from tutorhub.app.core.exceptions import PaymentProcessorError, WebhookSignatureError
from tutorhub.app.core.settings import get_settings

logger = logging.getLogger(__name__)


class StripeGateway:
    def __init__(self, secret_key: str, currency: str = "usd"):
        self.currency = currency
        if secret_key:
            stripe.api_key = secret_key
        else:
            logger.warning("STRIPE_SECRET_KEY is not set; Stripe calls will fail")

    def create_payment_intent(
        self,
        amount_cents: int,
        metadata: Dict[str, str],
        customer_id: Optional[str] = None,
        payment_method_id: Optional[str] = None,
        return_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "amount": amount_cents,
            "currency": self.currency,
            "metadata": metadata,
        }
        if customer_id:
            kwargs["customer"] = customer_id
        if payment_method_id:
            kwargs["payment_method"] = payment_method_id
            kwargs["confirm"] = True
            if return_url:
                kwargs["return_url"] = return_url
        else:
            kwargs["payment_method_types"] = ["card"]

        try:
            intent = stripe.PaymentIntent.create(**kwargs)
        except stripe.StripeError as exc:
            logger.error("Stripe PaymentIntent.create failed: %s", exc)
            raise PaymentProcessorError("Failed to create payment intent") from exc
        return {"id": intent.id, "client_secret": intent.client_secret, "status": intent.status}

    def retrieve_payment_intent(self, intent_id: str) -> Dict[str, Any]:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id)
        except stripe.StripeError as exc:
            logger.error("Stripe PaymentIntent.retrieve(%s) failed: %s", intent_id, exc)
            raise PaymentProcessorError("Failed to create payment intent") from exc
        return {"id": intent.id, "client_secret": intent.client_secret, "status": intent.status}

    def create_refund(self, payment_intent_id: str, amount_cents: int, metadata: Dict[str, str]) -> Dict[str, Any]:
        try:
            refund = stripe.Refund.create(
                payment_intent=payment_intent_id,
                amount=amount_cents,
                reason="requested_by_customer",
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe Refund.create for %s failed: %s", payment_intent_id, exc)
            raise PaymentProcessorError("Failed to process refund") from exc
        return {"id": refund.id, "status": refund.status, "amount": refund.amount}

    def ensure_customer(self, email: str, name: str, user_id: int, customer_id: Optional[str] = None) -> str:
        """Return a live customer id, creating a customer when the stored one is missing or deleted."""
        try:
            if customer_id:
                try:
                    customer = stripe.Customer.retrieve(customer_id)
                    if not getattr(customer, "deleted", False):
                        return customer.id
                except stripe.InvalidRequestError:
                    logger.info("Stripe customer %s not found; creating a new one", customer_id)
            customer = stripe.Customer.create(email=email, name=name, metadata={"user_id": str(user_id)})
        except stripe.StripeError as exc:
            logger.error("Stripe customer lookup for user %s failed: %s", user_id, exc)
            raise PaymentProcessorError("Failed to fetch payment methods") from exc
        return customer.id

    def list_card_methods(self, customer_id: str) -> List[Dict[str, Any]]:
        try:
            methods = stripe.PaymentMethod.list(customer=customer_id, type="card")
        except stripe.StripeError as exc:
            logger.error("Stripe PaymentMethod.list for %s failed: %s", customer_id, exc)
            raise PaymentProcessorError("Failed to fetch payment methods") from exc
        result = []
        for method in methods.data:
            card = getattr(method, "card", None)
            result.append(
                {
                    "id": method.id,
                    "type": method.type,
                    "card": {
                        "brand": getattr(card, "brand", None),
                        "last4": getattr(card, "last4", None),
                        "exp_month": getattr(card, "exp_month", None),
                        "exp_year": getattr(card, "exp_year", None),
                    },
                }
            )
        return result

    def attach_payment_method(self, payment_method_id: str, customer_id: str) -> None:
        try:
            stripe.PaymentMethod.attach(payment_method_id, customer=customer_id)
            stripe.Customer.modify(
                customer_id,
                invoice_settings={"default_payment_method": payment_method_id},
            )
        except stripe.StripeError as exc:
            logger.error("Stripe attach of %s to %s failed: %s", payment_method_id, customer_id, exc)
            raise PaymentProcessorError("Failed to add payment method") from exc

    def detach_payment_method(self, payment_method_id: str) -> None:
        try:
            stripe.PaymentMethod.detach(payment_method_id)
        except stripe.StripeError as exc:
            logger.error("Stripe detach of %s failed: %s", payment_method_id, exc)
            raise PaymentProcessorError("Failed to remove payment method") from exc


def get_payment_gateway() -> StripeGateway:
    settings = get_settings()
    return StripeGateway(settings.stripe_secret_key, currency=settings.stripe_currency)


def verify_webhook_event(payload: bytes, signature: Optional[str], secret: Optional[str] = None) -> Dict[str, Any]:
    """Verify the ``stripe-signature`` header over the raw body and return the event as a dict.

    Fails closed: a missing header, a missing secret or a bad signature all
    raise WebhookSignatureError.
    """
    if not signature:
        logger.warning("Missing Stripe signature header")
        raise WebhookSignatureError("Missing stripe-signature header")
    webhook_secret = secret if secret is not None else get_settings().stripe_webhook_secret
    if not webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET is not configured; rejecting webhook")
        raise WebhookSignatureError("Invalid signature")
    try:
        stripe.Webhook.construct_event(payload, signature, webhook_secret)
    except stripe.SignatureVerificationError as exc:
        logger.warning("Webhook signature verification failed: %s", exc)
        raise WebhookSignatureError("Invalid signature") from exc
    except ValueError as exc:
        logger.warning("Webhook payload is not valid JSON: %s", exc)
        raise WebhookSignatureError("Invalid payload") from exc
    return json.loads(payload.decode("utf-8") if isinstance(payload, bytes) else payload)
