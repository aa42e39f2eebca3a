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
"""Checkout, cancellation and plan changes requested by a signed-in user."""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.dependencies import Services
from backend.store import DocumentStore, StoredDocument
from shared.documents import Subscription, User, from_document, to_document
from shared.errors import internal_errors, invalid_argument, not_found
from shared.firebase_constants import SUBSCRIPTIONS_COLLECTION, USERS_COLLECTION
from shared.json_utils import convert_keys
from shared.types import SubscriptionStatus, UserSubscriptionStatus
from suggestions.suggestions import add_templated_suggestion
from suggestions.templates import SuggestionTrigger

logger = logging.getLogger(__name__)


@dataclass
class CreateSubscriptionResult:
    subscription_id: str
    client_secret: Optional[str]


def _require(value: Optional[str], name: str) -> str:
    if not value or not isinstance(value, str):
        raise invalid_argument(f"Must specify {name} parameter.")
    return value


def _find_owned_subscription(
    store: DocumentStore, user_id: str, provider_subscription_id: str
) -> StoredDocument:
    matches = store.query(
        SUBSCRIPTIONS_COLLECTION,
        [
            ("userId", "==", user_id),
            ("stripeSubscriptionId", "==", provider_subscription_id),
        ],
        limit=1,
    )
    if not matches:
        raise not_found("Subscription not found.")
    return matches[0]


@internal_errors("Failed to create the subscription.")
def create_subscription(services: Services, user_id: str, plan_id: Optional[str]) -> dict:
    """
    Starts a subscription to `plan_id` (a provider price id) for the caller.

    The billing customer is created on first checkout and remembered on the
    user profile. The returned client secret lets the client confirm the
    first payment.
    """
    plan_id = _require(plan_id, "planId")
    store = services.store
    billing = services.billing

    user_data = store.get(USERS_COLLECTION, user_id)
    if user_data is None:
        raise not_found("User not found.")
    user = from_document(User, user_id, user_data)

    customer_id = user.stripe_customer_id
    if not customer_id:
        customer_id = billing.create_customer(user.email, user_id)
        store.update(USERS_COLLECTION, user_id, {"stripeCustomerId": customer_id})

    billing_subscription = billing.create_subscription(customer_id, plan_id)

    subscription = Subscription(
        user_id=user_id,
        plan_id=plan_id,
        status=SubscriptionStatus(billing_subscription.status),
        stripe_subscription_id=billing_subscription.id,
        current_period_start=billing_subscription.current_period_start,
        current_period_end=billing_subscription.current_period_end,
        created_at=SERVER_TIMESTAMP,
    )
    store.add(SUBSCRIPTIONS_COLLECTION, to_document(subscription, drop_none=True))
    store.update(USERS_COLLECTION, user_id, {"subscriptionPlan": plan_id})
    logger.info(f"Created subscription {billing_subscription.id} for {user_id}")

    add_templated_suggestion(store, user_id, SuggestionTrigger.SUBSCRIPTION_STARTED)

    result = CreateSubscriptionResult(
        subscription_id=billing_subscription.id,
        client_secret=billing_subscription.client_secret,
    )
    return convert_keys(asdict(result), "snake_to_camel")


@internal_errors("Failed to cancel the subscription.")
def cancel_subscription(
    services: Services, user_id: str, subscription_id: Optional[str]
) -> dict:
    """
    Cancels one of the caller's subscriptions at the provider and mirrors
    the canceled state onto the subscription and the user profile.

    The two local writes are not atomic; the webhook for the deletion
    overwrites the same fields if the second write is lost.
    """
    subscription_id = _require(subscription_id, "subscriptionId")
    store = services.store
    doc = _find_owned_subscription(store, user_id, subscription_id)

    services.billing.cancel_subscription(subscription_id)

    store.update(
        SUBSCRIPTIONS_COLLECTION,
        doc.id,
        {
            "status": SubscriptionStatus.CANCELED.value,
            "canceledAt": SERVER_TIMESTAMP,
        },
    )
    store.update(
        USERS_COLLECTION,
        user_id,
        {"subscriptionStatus": UserSubscriptionStatus.CANCELED.value},
    )
    logger.info(f"Canceled subscription {subscription_id} for {user_id}")
    return {"success": True}


@internal_errors("Failed to change the subscription plan.")
def update_subscription_plan(
    services: Services,
    user_id: str,
    subscription_id: Optional[str],
    new_plan_id: Optional[str],
) -> dict:
    """Moves one of the caller's subscriptions to a new price, with proration."""
    subscription_id = _require(subscription_id, "subscriptionId")
    new_plan_id = _require(new_plan_id, "newPlanId")
    store = services.store
    doc = _find_owned_subscription(store, user_id, subscription_id)

    billing_subscription = services.billing.retrieve_subscription(subscription_id)
    if not billing_subscription.item_id:
        raise RuntimeError(f"Subscription {subscription_id} has no items")
    services.billing.update_subscription_price(
        subscription_id, billing_subscription.item_id, new_plan_id
    )

    store.update(
        SUBSCRIPTIONS_COLLECTION,
        doc.id,
        {"planId": new_plan_id, "updatedAt": SERVER_TIMESTAMP},
    )
    store.update(USERS_COLLECTION, user_id, {"subscriptionPlan": new_plan_id})
    return {"success": True}
