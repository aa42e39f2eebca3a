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
"""Templated suggestions driven by changes to user and task documents."""

import logging
from datetime import datetime, timezone
from typing import Optional

from backend.store import DocumentStore
from shared.types import UserSubscriptionStatus
from suggestions.suggestions import add_templated_suggestion
from suggestions.templates import (
    SuggestionTrigger,
    login_trigger,
    subscription_trigger,
)

logger = logging.getLogger(__name__)


def _days_between(earlier: datetime, later: datetime) -> int:
    if earlier.tzinfo is None:
        earlier = earlier.replace(tzinfo=timezone.utc)
    return (later - earlier).days


def suggest_from_user_change(
    store: DocumentStore,
    user_id: str,
    before: dict,
    after: dict,
    now: Optional[datetime] = None,
) -> list[SuggestionTrigger]:
    """
    Adds suggestions for a login or subscription-status change on a profile.

    Login recency is measured from the previous login (the value before the
    update) to now.

    Returns:
        The triggers a suggestion was added for.
    """
    now = now or datetime.now(timezone.utc)
    triggers: list[SuggestionTrigger] = []

    previous_login = before.get("lastLoginAt")
    if after.get("lastLoginAt") != previous_login and isinstance(
        previous_login, datetime
    ):
        trigger = login_trigger(_days_between(previous_login, now))
        if trigger:
            triggers.append(trigger)

    status_value = after.get("subscriptionStatus")
    if before.get("subscriptionStatus") != status_value:
        try:
            trigger = subscription_trigger(UserSubscriptionStatus(status_value))
        except ValueError:
            logger.warning(
                f"User {user_id} has unknown subscription status {status_value!r}"
            )
            trigger = None
        if trigger:
            triggers.append(trigger)

    for trigger in triggers:
        add_templated_suggestion(store, user_id, trigger)
    return triggers


def suggest_for_new_task(store: DocumentStore, task_data: dict) -> int:
    """Adds the break-down and reminder tips for a newly created task's assignee."""
    user_id = task_data.get("assignedTo")
    if not user_id:
        return 0

    added = 0
    for trigger in (
        SuggestionTrigger.TASK_BREAKDOWN,
        SuggestionTrigger.TASK_REMINDER_SETUP,
    ):
        if add_templated_suggestion(store, user_id, trigger):
            added += 1
    return added
