"""
Billing provider abstraction for Stripe and an in-memory test implementation.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

import stripe


@dataclass
class BillingSubscription:
    """The provider-side view of a subscription."""

    id: str
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    item_id: Optional[str] = None
    price_id: Optional[str] = None
    client_secret: Optional[str] = None


@dataclass
class BillingEvent:
    """A verified webhook envelope: type tag plus the object it describes."""

    id: str
    type: str
    payload: dict
    created: Optional[int] = None


class BillingClient(Protocol):
    """Defines the operations the functions need from the billing provider."""

    def create_customer(self, email: str, user_id: str) -> str:
        ...

    def create_subscription(
        self, customer_id: str, price_id: str
    ) -> BillingSubscription:
        ...

    def retrieve_subscription(self, subscription_id: str) -> BillingSubscription:
        ...

    def update_subscription_price(
        self, subscription_id: str, item_id: str, price_id: str
    ) -> None:
        ...

    def cancel_subscription(self, subscription_id: str) -> None:
        ...

    def construct_event(self, payload: bytes, signature: Optional[str]) -> BillingEvent:
        ...


def timestamp_to_datetime(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _field(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


def verify_and_parse_event(
    payload: bytes, signature: Optional[str], secret: Optional[str]
) -> BillingEvent:
    """
    Checks the Stripe-Signature header against `payload` and parses the event.

    Raises stripe.SignatureVerificationError when the signature is missing or
    does not match, and ValueError when the payload is not a JSON event.
    """
    if not secret:
        raise RuntimeError("Webhook signing secret is not configured.")
    body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    if not signature:
        raise stripe.SignatureVerificationError(
            "Missing Stripe-Signature header", signature, body
        )
    stripe.WebhookSignature.verify_header(
        body, signature, secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
    )

    event = json.loads(body)
    if not isinstance(event, dict) or "type" not in event:
        raise ValueError("Webhook payload is not an event object.")
    data = event.get("data") or {}
    if not isinstance(data, dict) or not isinstance(data.get("object") or {}, dict):
        raise ValueError("Webhook event data is not an object.")
    return BillingEvent(
        id=event.get("id", ""),
        type=event["type"],
        payload=data.get("object") or {},
        created=event.get("created"),
    )


@dataclass
class StripeBillingClient:
    """Stripe-backed billing client pinned to a single API version."""

    api_key: str
    webhook_secret: Optional[str] = None
    api_version: str = "2023-10-16"

    @property
    def _options(self) -> dict:
        return {"api_key": self.api_key, "stripe_version": self.api_version}

    @staticmethod
    def _to_subscription(subscription: Any) -> BillingSubscription:
        items = _field(_field(subscription, "items"), "data") or []
        first_item = items[0] if items else None
        payment_intent = _field(_field(subscription, "latest_invoice"), "payment_intent")
        return BillingSubscription(
            id=subscription["id"],
            status=subscription["status"],
            current_period_start=timestamp_to_datetime(
                _field(subscription, "current_period_start")
            ),
            current_period_end=timestamp_to_datetime(
                _field(subscription, "current_period_end")
            ),
            item_id=_field(first_item, "id"),
            price_id=_field(_field(first_item, "price"), "id"),
            client_secret=_field(payment_intent, "client_secret"),
        )

    def create_customer(self, email: str, user_id: str) -> str:
        customer = stripe.Customer.create(
            email=email, metadata={"userId": user_id}, **self._options
        )
        return customer["id"]

    def create_subscription(
        self, customer_id: str, price_id: str
    ) -> BillingSubscription:
        subscription = stripe.Subscription.create(
            customer=customer_id,
            items=[{"price": price_id}],
            payment_behavior="default_incomplete",
            payment_settings={"save_default_payment_method": "on_subscription"},
            expand=["latest_invoice.payment_intent"],
            **self._options,
        )
        return self._to_subscription(subscription)

    def retrieve_subscription(self, subscription_id: str) -> BillingSubscription:
        subscription = stripe.Subscription.retrieve(subscription_id, **self._options)
        return self._to_subscription(subscription)

    def update_subscription_price(
        self, subscription_id: str, item_id: str, price_id: str
    ) -> None:
        stripe.Subscription.modify(
            subscription_id,
            items=[{"id": item_id, "price": price_id}],
            proration_behavior="create_prorations",
            **self._options,
        )

    def cancel_subscription(self, subscription_id: str) -> None:
        stripe.Subscription.cancel(subscription_id, **self._options)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> BillingEvent:
        return verify_and_parse_event(payload, signature, self.webhook_secret)


@dataclass
class InMemoryBillingClient:
    """Test double for billing interactions. Records every call it receives."""

    webhook_secret: Optional[str] = "whsec_test"
    customers: dict = field(default_factory=dict)
    subscriptions: dict = field(default_factory=dict)
    canceled: list = field(default_factory=list)
    price_changes: list = field(default_factory=list)

    def create_customer(self, email: str, user_id: str) -> str:
        customer_id = f"cus_{uuid.uuid4().hex[:14]}"
        self.customers[customer_id] = {"email": email, "userId": user_id}
        return customer_id

    def create_subscription(
        self, customer_id: str, price_id: str
    ) -> BillingSubscription:
        now = datetime.now(timezone.utc).replace(microsecond=0)
        subscription = BillingSubscription(
            id=f"sub_{uuid.uuid4().hex[:14]}",
            status="incomplete",
            current_period_start=now,
            current_period_end=now + timedelta(days=30),
            item_id=f"si_{uuid.uuid4().hex[:14]}",
            price_id=price_id,
            client_secret=f"pi_{uuid.uuid4().hex[:14]}_secret",
        )
        self.subscriptions[subscription.id] = subscription
        return subscription

    def retrieve_subscription(self, subscription_id: str) -> BillingSubscription:
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            raise stripe.InvalidRequestError(
                f"No such subscription: '{subscription_id}'", "id"
            )
        return subscription

    def update_subscription_price(
        self, subscription_id: str, item_id: str, price_id: str
    ) -> None:
        subscription = self.retrieve_subscription(subscription_id)
        subscription.price_id = price_id
        self.price_changes.append((subscription_id, item_id, price_id))

    def cancel_subscription(self, subscription_id: str) -> None:
        subscription = self.retrieve_subscription(subscription_id)
        subscription.status = "canceled"
        self.canceled.append(subscription_id)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> BillingEvent:
        return verify_and_parse_event(payload, signature, self.webhook_secret)
