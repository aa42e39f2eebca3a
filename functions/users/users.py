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
"""User profile lifecycle: sign-up, sign-in and account removal."""

import logging
from typing import Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.store import DocumentStore
from shared.documents import User, to_document
from shared.firebase_constants import (
    NOTIFICATIONS_COLLECTION,
    SUBSCRIPTIONS_COLLECTION,
    SUGGESTIONS_COLLECTION,
    USERS_COLLECTION,
)
from shared.types import UserRole, UserSubscriptionStatus
from suggestions.suggestions import add_templated_suggestion
from suggestions.templates import SuggestionTrigger

logger = logging.getLogger(__name__)

# Collections holding per-user records keyed by a userId field.
DEPENDENT_COLLECTIONS = (
    SUBSCRIPTIONS_COLLECTION,
    SUGGESTIONS_COLLECTION,
    NOTIFICATIONS_COLLECTION,
)


def create_user_profile(
    store: DocumentStore,
    uid: str,
    email: Optional[str] = None,
    display_name: Optional[str] = None,
) -> None:
    """Writes the profile for a new account and greets the user."""
    user = User(
        uid=uid,
        email=email or "",
        display_name=display_name or "",
        role=UserRole.USER,
        subscription_status=UserSubscriptionStatus.NONE,
        created_at=SERVER_TIMESTAMP,
        last_login_at=SERVER_TIMESTAMP,
    )
    store.set(USERS_COLLECTION, uid, to_document(user, drop_none=True))
    logger.info(f"Created profile for {uid}")
    add_templated_suggestion(store, uid, SuggestionTrigger.WELCOME)


def record_login(
    store: DocumentStore,
    uid: str,
    email: Optional[str] = None,
    display_name: Optional[str] = None,
) -> None:
    """
    Stamps lastLoginAt on the profile, creating the profile for accounts that
    predate it.
    """
    if store.get(USERS_COLLECTION, uid) is None:
        create_user_profile(store, uid, email, display_name)
        return
    store.update(USERS_COLLECTION, uid, {"lastLoginAt": SERVER_TIMESTAMP})


def delete_user_data(store: DocumentStore, uid: str) -> int:
    """
    Deletes the profile and every subscription, suggestion and notification
    that belongs to the user. Tasks are kept.

    Returns:
        The number of documents deleted.
    """
    keys = [(USERS_COLLECTION, uid)]
    for collection in DEPENDENT_COLLECTIONS:
        keys.extend(
            (collection, doc.id)
            for doc in store.query(collection, [("userId", "==", uid)])
        )
    deleted = store.delete_many(keys)
    logger.info(f"Deleted {deleted} documents for {uid}")
    return deleted
