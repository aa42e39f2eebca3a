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
"""Task creation, status changes and due-date reminders."""

import concurrent.futures
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.dependencies import Services
from backend.store import StoredDocument
from notifications.notifications import send_task_notification
from shared.dates import parse_optional_datetime
from shared.documents import Task, from_document, to_document
from shared.errors import (
    internal_errors,
    invalid_argument,
    not_found,
    parse_enum,
    permission_denied,
)
from shared.firebase_constants import TASKS_COLLECTION
from shared.types import NotificationType, TaskPriority, TaskStatus
from suggestions.suggestions import add_templated_suggestion
from suggestions.templates import SuggestionTrigger

logger = logging.getLogger(__name__)

REMINDER_MAX_WORKERS = 8


@internal_errors("Failed to create the task.")
def create_task(
    services: Services,
    creator_id: str,
    title: Optional[str],
    description: Optional[str] = None,
    assigned_to: Optional[str] = None,
    priority_value: Optional[Any] = None,
    due_date_value: Optional[Any] = None,
) -> dict:
    """
    Creates a task, notifying the assignee when it is someone else.

    The creator always receives a task-management tip.
    """
    if not title or not isinstance(title, str):
        raise invalid_argument("Must specify title parameter.")
    if assigned_to is not None and not isinstance(assigned_to, str):
        raise invalid_argument("assignedTo must be a user id string.")
    if description is not None and not isinstance(description, str):
        raise invalid_argument("description must be a string.")
    priority = (
        parse_enum(TaskPriority, priority_value, "priority")
        if priority_value
        else TaskPriority.MEDIUM
    )
    due_date = parse_optional_datetime(due_date_value, "dueDate")

    task = Task(
        title=title,
        description=description or "",
        assigned_to=assigned_to or creator_id,
        created_by=creator_id,
        status=TaskStatus.TODO,
        priority=priority,
        due_date=due_date,
        created_at=SERVER_TIMESTAMP,
        updated_at=SERVER_TIMESTAMP,
    )
    task_id = services.store.add(TASKS_COLLECTION, to_document(task))
    logger.info(f"Created task {task_id} by {creator_id}")

    if assigned_to and assigned_to != creator_id:
        send_task_notification(
            services, assigned_to, NotificationType.TASK_ASSIGNED, title
        )

    add_templated_suggestion(
        services.store, creator_id, SuggestionTrigger.TASK_CREATED, task_title=title
    )

    return {"taskId": task_id, "success": True}


@internal_errors("Failed to update the task status.")
def update_task_status(
    services: Services,
    user_id: str,
    task_id: Optional[str],
    status_value: Optional[Any],
) -> dict:
    """
    Changes a task's status. Only its assignee or creator may do so.

    Completing a task stamps completedAt, tells the creator when someone else
    finished it, and congratulates the user who completed it.
    """
    if not task_id or not isinstance(task_id, str):
        raise invalid_argument("Must specify taskId parameter.")
    status = parse_enum(TaskStatus, status_value, "status")

    store = services.store
    data = store.get(TASKS_COLLECTION, task_id)
    if data is None:
        raise not_found("Task not found.")
    task = from_document(Task, task_id, data)

    if user_id not in (task.assigned_to, task.created_by):
        raise permission_denied("You do not have permission to update this task.")

    update = {"status": status.value, "updatedAt": SERVER_TIMESTAMP}
    if status == TaskStatus.COMPLETED:
        update["completedAt"] = SERVER_TIMESTAMP
    store.update(TASKS_COLLECTION, task_id, update)

    if status == TaskStatus.COMPLETED:
        if task.created_by != user_id:
            send_task_notification(
                services, task.created_by, NotificationType.TASK_COMPLETED, task.title
            )
        add_templated_suggestion(
            store, user_id, SuggestionTrigger.TASK_COMPLETED, task_title=task.title
        )

    return {"success": True}


def _end_of_tomorrow(now: datetime, tz: ZoneInfo) -> datetime:
    tomorrow = now.astimezone(tz) + timedelta(days=1)
    return tomorrow.replace(hour=23, minute=59, second=59, microsecond=999999)


def _remind(services: Services, doc: StoredDocument) -> bool:
    """Returns whether the reminder notification was delivered."""
    task = from_document(Task, doc.id, doc.data)
    notified = send_task_notification(
        services, task.assigned_to, NotificationType.TASK_REMINDER, task.title
    )
    add_templated_suggestion(
        services.store,
        task.assigned_to,
        SuggestionTrigger.TASK_DUE_SOON,
        task_title=task.title,
    )
    return notified


def send_task_reminders(services: Services, now: Optional[datetime] = None) -> int:
    """
    Reminds assignees of every unfinished task due by the end of tomorrow
    (in the configured reminder time zone), overdue ones included.

    Reminders are independent, so they are sent concurrently.

    Returns:
        The number of reminders that went out.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = _end_of_tomorrow(now, ZoneInfo(services.settings.reminder_timezone))

    docs = services.store.query(
        TASKS_COLLECTION,
        [
            ("dueDate", "<=", cutoff),
            ("status", "!=", TaskStatus.COMPLETED.value),
        ],
    )

    with concurrent.futures.ThreadPoolExecutor(
        max_workers=REMINDER_MAX_WORKERS
    ) as executor:
        futures = {executor.submit(_remind, services, doc): doc.id for doc in docs}
        sent = 0
        for future in concurrent.futures.as_completed(futures):
            try:
                if future.result():
                    sent += 1
            except Exception as e:
                logger.error(f"Reminder for task {futures[future]} failed: {e}")

    logger.info(f"Sent {sent} of {len(docs)} task reminders")
    return sent
