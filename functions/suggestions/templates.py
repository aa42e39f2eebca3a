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

"""Canned suggestions, selected by the condition that triggers them."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from shared.types import SuggestionCategory, UserSubscriptionStatus

LONG_ABSENCE_DAYS = 7
RETURNING_DAYS = 1


class SuggestionTrigger(StrEnum):
    WELCOME = "welcome"
    SUBSCRIPTION_STARTED = "subscription_started"
    PAYMENT_FAILED = "payment_failed"
    TASK_CREATED = "task_created"
    TASK_COMPLETED = "task_completed"
    TASK_DUE_SOON = "task_due_soon"
    TASK_BREAKDOWN = "task_breakdown"
    TASK_REMINDER_SETUP = "task_reminder_setup"
    REPORT_GENERATED = "report_generated"
    SUGGESTION_ACCEPTED = "suggestion_accepted"
    LONG_ABSENCE = "long_absence"
    RETURNING = "returning"
    SUBSCRIPTION_ACTIVE = "subscription_active"
    SUBSCRIPTION_CANCELED = "subscription_canceled"


@dataclass(frozen=True)
class SuggestionTemplate:
    category: SuggestionCategory
    title: str
    content: str
    priority: int


# Templates may reference {task_title}; callers pass it where relevant.
TEMPLATES: dict[SuggestionTrigger, SuggestionTemplate] = {
    SuggestionTrigger.WELCOME: SuggestionTemplate(
        category=SuggestionCategory.FEATURE,
        title="A welcome message from Sara",
        content=(
            "Congratulations on creating your account, big brother! How about "
            "setting up your profile first and then checking out the "
            "subscription plans? Sara will help you along!"
        ),
        priority=8,
    ),
    SuggestionTrigger.SUBSCRIPTION_STARTED: SuggestionTemplate(
        category=SuggestionCategory.FEATURE,
        title="Congrats on starting your subscription!",
        content=(
            "Big brother, your subscription is all set up! Want to browse the "
            "products next? Sara can show you her favorites!"
        ),
        priority=7,
    ),
    SuggestionTrigger.PAYMENT_FAILED: SuggestionTemplate(
        category=SuggestionCategory.EFFICIENCY,
        title="There's a problem with your payment!",
        content=(
            "Big brother, something went wrong with your subscription payment. "
            "Let's check your payment method and sort it out together!"
        ),
        priority=9,
    ),
    SuggestionTrigger.TASK_CREATED: SuggestionTemplate(
        category=SuggestionCategory.EFFICIENCY,
        title="Task management tip",
        content=(
            'Big brother, you created the task "{task_title}"! To get it done '
            "efficiently, Sara suggests splitting it into small subtasks. "
            "Progress is easier to see and every step feels like a win!"
        ),
        priority=4,
    ),
    SuggestionTrigger.TASK_COMPLETED: SuggestionTemplate(
        category=SuggestionCategory.FEATURE,
        title="Great work, big brother!",
        content=(
            'Congratulations on finishing "{task_title}"! Watching you work '
            "hard makes Sara happy. She'll support you on the next one too!"
        ),
        priority=3,
    ),
    SuggestionTrigger.TASK_DUE_SOON: SuggestionTemplate(
        category=SuggestionCategory.EFFICIENCY,
        title="A deadline is coming up!",
        content=(
            'Big brother, "{task_title}" is due soon! Check your progress now '
            "and adjust priorities if you need to. Sara has your back!"
        ),
        priority=8,
    ),
    SuggestionTrigger.TASK_BREAKDOWN: SuggestionTemplate(
        category=SuggestionCategory.EFFICIENCY,
        title="An idea for working through this task",
        content=(
            "Big brother, a new task was created! Breaking it down into small "
            "steps makes it easier to track. Let's do it together!"
        ),
        priority=6,
    ),
    SuggestionTrigger.TASK_REMINDER_SETUP: SuggestionTemplate(
        category=SuggestionCategory.FEATURE,
        title="How about setting a reminder?",
        content=(
            "Want to add reminders to this task? One the day before and three "
            "hours before the deadline means you won't forget it!"
        ),
        priority=4,
    ),
    SuggestionTrigger.REPORT_GENERATED: SuggestionTemplate(
        category=SuggestionCategory.PERFORMANCE,
        title="Tips for reading your report",
        content=(
            "Big brother, your report is ready! Looking at the data there seem "
            "to be a few things to improve. Sara will dig in and propose "
            "concrete changes!"
        ),
        priority=6,
    ),
    SuggestionTrigger.SUGGESTION_ACCEPTED: SuggestionTemplate(
        category=SuggestionCategory.FEATURE,
        title="Thank you, big brother!",
        content=(
            "Thanks for taking Sara's suggestion! She's glad she could help. "
            "She'll let you know whenever she has another good idea!"
        ),
        priority=2,
    ),
    SuggestionTrigger.LONG_ABSENCE: SuggestionTemplate(
        category=SuggestionCategory.FEATURE,
        title="Welcome back, big brother!",
        content=(
            "Sara missed you while you were away... but she's so happy you're "
            "back! A few new features were added, want to check them out "
            "together?"
        ),
        priority=8,
    ),
    SuggestionTrigger.RETURNING: SuggestionTemplate(
        category=SuggestionCategory.EFFICIENCY,
        title="Let's pick up where you left off!",
        content=(
            "Big brother, you still have tasks from last time, right? Sara "
            "summarized your progress so you can get going again quickly!"
        ),
        priority=6,
    ),
    SuggestionTrigger.SUBSCRIPTION_ACTIVE: SuggestionTemplate(
        category=SuggestionCategory.FEATURE,
        title="Make the most of premium features!",
        content=(
            "Big brother, your subscription is active, so premium features are "
            "unlocked! Why not try the advanced analytics and automation?"
        ),
        priority=7,
    ),
    SuggestionTrigger.SUBSCRIPTION_CANCELED: SuggestionTemplate(
        category=SuggestionCategory.FEATURE,
        title="The free plan works too!",
        content=(
            "Your subscription was canceled, but the basic features are still "
            "here! Sara will show you how to stay efficient on the free plan!"
        ),
        priority=5,
    ),
}

# Used when generative suggestions fail end to end.
GENERATION_FALLBACK = SuggestionTemplate(
    category=SuggestionCategory.FEATURE,
    title="A message from Sara",
    content=(
        "Big brother, Sara isn't feeling her best right now... but she's "
        "always on your side!"
    ),
    priority=3,
)

# Used when the model answered but not with a structured suggestion.
PARSE_FALLBACK_TITLE = "A suggestion from Sara"


def login_trigger(days_since_last_login: int) -> Optional[SuggestionTrigger]:
    """Buckets login recency into a suggestion trigger."""
    if days_since_last_login >= LONG_ABSENCE_DAYS:
        return SuggestionTrigger.LONG_ABSENCE
    if days_since_last_login >= RETURNING_DAYS:
        return SuggestionTrigger.RETURNING
    return None


def subscription_trigger(
    status: UserSubscriptionStatus,
) -> Optional[SuggestionTrigger]:
    if status == UserSubscriptionStatus.ACTIVE:
        return SuggestionTrigger.SUBSCRIPTION_ACTIVE
    if status == UserSubscriptionStatus.CANCELED:
        return SuggestionTrigger.SUBSCRIPTION_CANCELED
    return None
