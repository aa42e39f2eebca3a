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
"""Stores notifications and delivers them by push or email."""

import html
import logging
from typing import Any, Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.dependencies import Services
from shared.documents import Notification, User, from_document, to_document
from shared.errors import internal_errors, invalid_argument, not_found, parse_enum
from shared.firebase_constants import NOTIFICATIONS_COLLECTION, USERS_COLLECTION
from shared.types import NotificationType

logger = logging.getLogger(__name__)

TASK_NOTIFICATION_TEXT = {
    NotificationType.TASK_ASSIGNED: (
        "A new task was assigned to you",
        '"{task_title}" was assigned to you.',
    ),
    NotificationType.TASK_COMPLETED: (
        "A task was completed",
        '"{task_title}" was completed.',
    ),
    NotificationType.TASK_REMINDER: (
        "A task deadline is approaching",
        'The deadline for "{task_title}" is approaching.',
    ),
}

EMAIL_TEMPLATE = """<h2>{app_name}</h2>
<p>{message}</p>
<p>Open the app for details.</p>
<p>With love, Sara 💖</p>"""


@internal_errors("Failed to send the notification.")
def send_notification(
    services: Services,
    sender_id: str,
    user_id: Optional[str],
    title: Optional[str],
    message: Optional[str],
    type_value: Optional[Any] = None,
) -> dict:
    """
    Stores a notification for `user_id` and pushes it to their device when
    they have registered an FCM token.
    """
    if not all(isinstance(v, str) and v for v in (user_id, title, message)):
        raise invalid_argument(
            "Must specify userId, title and message as non-empty strings."
        )
    notification_type = (
        parse_enum(NotificationType, type_value, "type")
        if type_value
        else NotificationType.GENERAL
    )

    store = services.store
    user_data = store.get(USERS_COLLECTION, user_id)
    if user_data is None:
        raise not_found("User not found.")
    user = from_document(User, user_id, user_data)

    notification = Notification(
        user_id=user_id,
        sender_id=sender_id,
        title=title,
        message=message,
        type=notification_type,
        created_at=SERVER_TIMESTAMP,
    )
    notification_id = store.add(NOTIFICATIONS_COLLECTION, to_document(notification))

    if user.fcm_token:
        try:
            services.messenger.send_push(
                user.fcm_token,
                title,
                message,
                data={"type": notification_type.value, "senderId": sender_id},
            )
        except Exception as e:
            logger.error(f"Push delivery failed for notification {notification_id}: {e}")

    return {"success": True, "notificationId": notification_id}


def send_task_notification(
    services: Services,
    user_id: str,
    notification_type: NotificationType,
    task_title: str,
) -> bool:
    """
    Notifies a user about a task event, by stored notification and email.

    Email goes out unless the user turned email notifications off. Failures
    are logged and reported as False; they never propagate to the caller.
    """
    try:
        user_data = services.store.get(USERS_COLLECTION, user_id)
        if user_data is None:
            logger.warning(f"Skipping {notification_type} notification: no user {user_id}")
            return False
        user = from_document(User, user_id, user_data)

        title_template, message_template = TASK_NOTIFICATION_TEXT[notification_type]
        title = title_template
        message = message_template.format(task_title=task_title)

        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=notification_type,
            created_at=SERVER_TIMESTAMP,
        )
        services.store.add(NOTIFICATIONS_COLLECTION, to_document(notification))

        if user.email_notifications and user.email:
            services.messenger.send_email(
                user.email,
                title,
                EMAIL_TEMPLATE.format(
                    app_name=html.escape(services.settings.app_name),
                    message=html.escape(message),
                ),
            )
        return True
    except Exception as e:
        logger.error(f"Task notification error for {user_id}: {e}")
        return False
