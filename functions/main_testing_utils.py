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

"""Fixtures shared by the unit tests."""

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from typing import Any, Optional

from backend.billing import InMemoryBillingClient
from backend.config import Settings
from backend.dependencies import Services
from backend.messaging import InMemoryMessenger
from backend.store import InMemoryDocumentStore
from shared.firebase_constants import (
    SUBSCRIPTIONS_COLLECTION,
    TASKS_COLLECTION,
    USERS_COLLECTION,
)

TEST_WEBHOOK_SECRET = "whsec_test_secret"


def create_test_services(**settings_overrides: Any) -> Services:
    """Builds a Services bundle backed entirely by in-memory doubles."""
    settings = Settings(
        _env_file=None,
        stripe_webhook_secret=TEST_WEBHOOK_SECRET,
        **settings_overrides,
    )
    return Services(
        store=InMemoryDocumentStore(),
        billing=InMemoryBillingClient(webhook_secret=TEST_WEBHOOK_SECRET),
        messenger=InMemoryMessenger(),
        settings=settings,
    )


def seed_user(store: InMemoryDocumentStore, uid: str, **fields: Any) -> dict:
    data = {
        "uid": uid,
        "email": f"{uid}@example.com",
        "displayName": uid.title(),
        "role": "user",
        "subscriptionStatus": "none",
        "createdAt": datetime(2025, 1, 1, tzinfo=timezone.utc),
    }
    data.update(fields)
    store.set(USERS_COLLECTION, uid, data)
    return data


def seed_task(store: InMemoryDocumentStore, task_id: str, **fields: Any) -> dict:
    data = {
        "title": "Write the quarterly plan",
        "description": "",
        "assignedTo": "alice",
        "createdBy": "alice",
        "status": "todo",
        "priority": "medium",
        "dueDate": None,
        "createdAt": datetime(2025, 3, 1, tzinfo=timezone.utc),
        "updatedAt": datetime(2025, 3, 1, tzinfo=timezone.utc),
    }
    data.update(fields)
    store.set(TASKS_COLLECTION, task_id, data)
    return data


def seed_subscription(
    store: InMemoryDocumentStore, doc_id: str, user_id: str, provider_id: str, **fields
) -> dict:
    data = {
        "userId": user_id,
        "planId": "price_basic",
        "status": "incomplete",
        "stripeSubscriptionId": provider_id,
        "currentPeriodStart": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "currentPeriodEnd": datetime(2025, 2, 1, tzinfo=timezone.utc),
    }
    data.update(fields)
    store.set(SUBSCRIPTIONS_COLLECTION, doc_id, data)
    return data


def make_event_payload(
    event_type: str, data_object: dict, event_id: str = "evt_test_1"
) -> bytes:
    event = {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": 1735689600,
        "data": {"object": data_object},
    }
    return json.dumps(event).encode("utf-8")


def sign_payload(
    payload: bytes,
    secret: str = TEST_WEBHOOK_SECRET,
    timestamp: Optional[int] = None,
) -> str:
    """Builds a Stripe-Signature header value for `payload`."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed_payload = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(
        secret.encode("utf-8"), signed_payload, hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"
