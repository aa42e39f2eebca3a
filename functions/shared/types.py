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

from enum import StrEnum


class UserRole(StrEnum):
    USER = "user"
    ADMIN = "admin"


class UserSubscriptionStatus(StrEnum):
    """Subscription state mirrored onto the user profile."""

    NONE = "none"
    ACTIVE = "active"
    CANCELED = "canceled"
    EXPIRED = "expired"


class SubscriptionStatus(StrEnum):
    """Subscription states as reported by the billing provider."""

    ACTIVE = "active"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAST_DUE = "past_due"
    TRIALING = "trialing"
    UNPAID = "unpaid"
    PAUSED = "paused"


class TaskStatus(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SuggestionCategory(StrEnum):
    EFFICIENCY = "efficiency"
    UI_IMPROVEMENT = "ui_improvement"
    PERFORMANCE = "performance"
    FEATURE = "feature"


class SuggestionStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"


class NotificationType(StrEnum):
    GENERAL = "general"
    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"
    TASK_REMINDER = "task_reminder"


class ReportType(StrEnum):
    TASK_SUMMARY = "task_summary"
    PRODUCTIVITY = "productivity"
    TEAM_PERFORMANCE = "team_performance"


class BillingEventType(StrEnum):
    """Webhook event tags the subscription projection reacts to."""

    PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    PAYMENT_FAILED = "invoice.payment_failed"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
