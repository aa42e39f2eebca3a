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

"""Record schemas for the documents stored in Firestore."""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional, Type, TypeVar

from dacite import Config, from_dict

from shared.json_utils import convert_keys
from shared.types import (
    NotificationType,
    SubscriptionStatus,
    SuggestionCategory,
    SuggestionStatus,
    TaskPriority,
    TaskStatus,
    UserRole,
    UserSubscriptionStatus,
)

T = TypeVar("T")

# Enum fields are cast from their stored string values; an unknown value
# raises ValueError so malformed documents are rejected at read time.
_DACITE_CONFIG = Config(cast=[Enum], check_types=False)


@dataclass
class User:
    uid: str
    email: str = ""
    display_name: str = ""
    role: UserRole = UserRole.USER
    subscription_status: UserSubscriptionStatus = UserSubscriptionStatus.NONE
    subscription_plan: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    fcm_token: Optional[str] = None
    email_notifications: bool = True
    created_at: Any = None
    last_login_at: Any = None
    id: Optional[str] = None


@dataclass
class Task:
    title: str
    assigned_to: str
    created_by: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Any = None
    created_at: Any = None
    updated_at: Any = None
    completed_at: Any = None
    id: Optional[str] = None


@dataclass
class Subscription:
    user_id: str
    plan_id: str
    status: SubscriptionStatus
    stripe_subscription_id: str
    current_period_start: Any = None
    current_period_end: Any = None
    last_payment_at: Any = None
    canceled_at: Any = None
    created_at: Any = None
    updated_at: Any = None
    id: Optional[str] = None


@dataclass
class Suggestion:
    user_id: str
    category: SuggestionCategory
    title: str
    content: str
    priority: int
    status: SuggestionStatus = SuggestionStatus.PENDING
    metadata: dict = field(default_factory=dict)
    created_at: Any = None
    updated_at: Any = None
    accepted_at: Any = None
    dismissed_at: Any = None
    id: Optional[str] = None


@dataclass
class Notification:
    user_id: str
    title: str
    message: str
    type: NotificationType = NotificationType.GENERAL
    sender_id: Optional[str] = None
    read: bool = False
    created_at: Any = None
    id: Optional[str] = None


def from_document(data_class: Type[T], doc_id: str, data: dict) -> T:
    """Builds a record from a stored (camelCase) document."""
    snake = convert_keys(data, "camel_to_snake")
    snake["id"] = doc_id
    return from_dict(data_class=data_class, data=snake, config=_DACITE_CONFIG)


def to_document(record: Any, *, drop_none: bool = False) -> dict:
    """
    Serializes a record to its stored (camelCase) form.

    The `id` field is the document key and is never written into the body.
    Values are copied shallowly so SERVER_TIMESTAMP sentinels keep their
    identity.
    """
    data = {f.name: getattr(record, f.name) for f in fields(record) if f.name != "id"}
    if drop_none:
        data = {k: v for k, v in data.items() if v is not None}
    return convert_keys(data, "snake_to_camel")
