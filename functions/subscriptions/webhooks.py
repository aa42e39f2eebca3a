# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
"""
Keeps the local subscription projection in step with billing webhook events.

Events arrive at least once and possibly out of order. Every handler looks
the local record up by the provider's subscription id and overwrites fields
with values taken from the event itself, so applying an event twice leaves
the same state as applying it once. An event for a subscription that is not
tracked locally is a no-op.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import stripe
from google.api_core import exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.billing import BillingEvent, timestamp_to_datetime
from backend.dependencies import Services
from backend.store import DocumentStore, StoredDocument
from shared.firebase_constants import SUBSCRIPTIONS_COLLECTION, USERS_COLLECTION
from shared.types import BillingEventType, SubscriptionStatus, UserSubscriptionStatus
from suggestions.suggestions import add_templated_suggestion
from suggestions.templates import SuggestionTrigger

logger = logging.getLogger(__name__)


@dataclass
class WebhookResponse:
    status_code: int
    body: dict


def _find_subscription(
    store: DocumentStore, provider_subscription_id: Optional[str]
) -> Optional[StoredDocument]:
    if not provider_subscription_id:
        return None
    matches = store.query(
        SUBSCRIPTIONS_COLLECTION,
        [("stripeSubscriptionId", "==", provider_subscription_id)],
        limit=1,
    )
    if not matches:
        logger.info(
            f"No local subscription for {provider_subscription_id}; ignoring event"
        )
        return None
    return matches[0]


def _invoice_subscription_id(invoice: dict) -> Optional[str]:
    subscription = invoice.get("subscription")
    if subscription is None:
        # Newer API versions nest the id under the invoice's parent.
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        subscription = details.get("subscription")
    if isinstance(subscription, dict):
        return subscription.get("id")
    return subscription


def _period(subscription: dict, key: str):
    value = subscription.get(key)
    if value is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            value = items[0].get(key)
    return timestamp_to_datetime(value)


def _set_user_status(
    store: DocumentStore, user_id: Optional[str], status: UserSubscriptionStatus
) -> None:
    if not user_id:
        return
    try:
        store.update(USERS_COLLECTION, user_id, {"subscriptionStatus": status.value})
    except exceptions.NotFound:
        logger.warning(f"User {user_id} no longer exists; status not mirrored")


def handle_payment_succeeded(store: DocumentStore, invoice: dict) -> None:
    doc = _find_subscription(store, _invoice_subscription_id(invoice))
    if doc is None:
        return

    paid_at = (invoice.get("status_transitions") or {}).get("paid_at") or invoice.get(
        "created"
    )
    store.update(
        SUBSCRIPTIONS_COLLECTION,
        doc.id,
        {
            "status": SubscriptionStatus.ACTIVE.value,
            "lastPaymentAt": timestamp_to_datetime(paid_at),
        },
    )
    _set_user_status(store, doc.data.get("userId"), UserSubscriptionStatus.ACTIVE)


def handle_payment_failed(store: DocumentStore, invoice: dict) -> None:
    doc = _find_subscription(store, _invoice_subscription_id(invoice))
    if doc is None:
        return

    user_id = doc.data.get("userId")
    if user_id:
        add_templated_suggestion(store, user_id, SuggestionTrigger.PAYMENT_FAILED)


def handle_subscription_updated(store: DocumentStore, subscription: dict) -> None:
    doc = _find_subscription(store, subscription.get("id"))
    if doc is None:
        return

    update = {
        "currentPeriodStart": _period(subscription, "current_period_start"),
        "currentPeriodEnd": _period(subscription, "current_period_end"),
        "updatedAt": SERVER_TIMESTAMP,
    }
    try:
        update["status"] = SubscriptionStatus(subscription.get("status")).value
    except ValueError:
        logger.warning(
            f"Unknown subscription status {subscription.get('status')!r} "
            f"for {subscription.get('id')}; status left unchanged"
        )
    store.update(SUBSCRIPTIONS_COLLECTION, doc.id, update)


def handle_subscription_deleted(store: DocumentStore, subscription: dict) -> None:
    doc = _find_subscription(store, subscription.get("id"))
    if doc is None:
        return

    canceled_at = subscription.get("canceled_at") or subscription.get("ended_at")
    store.update(
        SUBSCRIPTIONS_COLLECTION,
        doc.id,
        {
            "status": SubscriptionStatus.CANCELED.value,
            "canceledAt": timestamp_to_datetime(canceled_at),
        },
    )
    _set_user_status(store, doc.data.get("userId"), UserSubscriptionStatus.CANCELED)


EVENT_HANDLERS: dict[BillingEventType, Callable[[DocumentStore, dict], None]] = {
    BillingEventType.PAYMENT_SUCCEEDED: handle_payment_succeeded,
    BillingEventType.PAYMENT_FAILED: handle_payment_failed,
    BillingEventType.SUBSCRIPTION_UPDATED: handle_subscription_updated,
    BillingEventType.SUBSCRIPTION_DELETED: handle_subscription_deleted,
}


def apply_billing_event(store: DocumentStore, event: BillingEvent) -> bool:
    """
    Dispatches a verified event to its handler.

    Returns:
        False for event types this projection does not track.
    """
    try:
        event_type = BillingEventType(event.type)
    except ValueError:
        logger.info(f"Unhandled event type: {event.type}")
        return False

    EVENT_HANDLERS[event_type](store, event.payload)
    logger.info(f"Processed {event.type} event {event.id}")
    return True


def process_webhook(
    services: Services, payload: bytes, signature: Optional[str]
) -> WebhookResponse:
    """
    Verifies and applies a billing webhook delivery.

    A bad signature or payload answers 400 so the provider does not retry.
    A failure while applying the event answers 500 so it does.
    """
    try:
        event = services.billing.construct_event(payload, signature)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.error(f"Webhook signature verification failed: {e}")
        return WebhookResponse(400, {"error": "Webhook Error"})
    except Exception as e:
        logger.error(f"Webhook could not be verified: {e}")
        return WebhookResponse(500, {"error": "Webhook processing failed"})

    try:
        apply_billing_event(services.store, event)
    except Exception as e:
        logger.exception(f"Webhook processing error for {event.id}: {e}")
        return WebhookResponse(500, {"error": "Webhook processing failed"})

    return WebhookResponse(200, {"received": True})
