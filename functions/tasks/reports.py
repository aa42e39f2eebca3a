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
"""Task reports for a single user or the whole team."""

import math
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Any, Optional

from backend.dependencies import Services
from backend.store import DocumentStore
from shared.dates import parse_datetime, to_json_value
from shared.documents import User, from_document
from shared.errors import internal_errors, parse_enum, permission_denied
from shared.firebase_constants import TASKS_COLLECTION, USERS_COLLECTION
from shared.types import ReportType, TaskPriority, TaskStatus, UserRole
from suggestions.suggestions import add_templated_suggestion
from suggestions.templates import SuggestionTrigger

RECENT_TASKS_LIMIT = 10
SECONDS_PER_DAY = 60 * 60 * 24


def _as_aware(value: Any) -> Optional[datetime]:
    if not isinstance(value, datetime):
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def task_summary_report(
    store: DocumentStore,
    user_id: str,
    start: datetime,
    end: datetime,
    now: Optional[datetime] = None,
) -> dict:
    now = now or datetime.now(timezone.utc)
    docs = store.query(
        TASKS_COLLECTION,
        [
            ("assignedTo", "==", user_id),
            ("createdAt", ">=", start),
            ("createdAt", "<=", end),
        ],
    )
    statuses = Counter(doc.data.get("status") for doc in docs)
    overdue = 0
    for doc in docs:
        due_date = _as_aware(doc.data.get("dueDate"))
        if due_date and due_date < now and doc.data.get("status") != TaskStatus.COMPLETED:
            overdue += 1

    recent = sorted(
        docs,
        key=lambda doc: _as_aware(doc.data.get("createdAt"))
        or datetime.min.replace(tzinfo=timezone.utc),
        reverse=True,
    )[:RECENT_TASKS_LIMIT]

    return {
        "summary": {
            "totalTasks": len(docs),
            "completedTasks": statuses[TaskStatus.COMPLETED.value],
            "inProgressTasks": statuses[TaskStatus.IN_PROGRESS.value],
            "todoTasks": statuses[TaskStatus.TODO.value],
            "overdueTasks": overdue,
        },
        "tasks": [to_json_value({"id": doc.id, **doc.data}) for doc in recent],
    }


def productivity_report(
    store: DocumentStore, user_id: str, start: datetime, end: datetime
) -> dict:
    docs = store.query(
        TASKS_COLLECTION,
        [
            ("assignedTo", "==", user_id),
            ("completedAt", ">=", start),
            ("completedAt", "<=", end),
        ],
    )

    daily_completion: dict[str, int] = defaultdict(int)
    for doc in docs:
        completed_at = _as_aware(doc.data.get("completedAt"))
        if completed_at:
            day = completed_at.astimezone(timezone.utc).date().isoformat()
            daily_completion[day] += 1

    days = max(1, math.ceil((end - start).total_seconds() / SECONDS_PER_DAY))
    priorities = Counter(doc.data.get("priority") for doc in docs)

    return {
        "totalCompleted": len(docs),
        "averagePerDay": len(docs) / days,
        "dailyCompletion": dict(daily_completion),
        "priorityBreakdown": {
            priority.value: priorities[priority.value] for priority in TaskPriority
        },
    }


def team_performance_report(
    store: DocumentStore, start: datetime, end: datetime
) -> dict:
    docs = store.query(
        TASKS_COLLECTION,
        [("createdAt", ">=", start), ("createdAt", "<=", end)],
    )

    user_stats: dict[str, dict[str, int]] = {}
    for doc in docs:
        assignee = doc.data.get("assignedTo")
        stats = user_stats.setdefault(assignee, {"total": 0, "completed": 0})
        stats["total"] += 1
        if doc.data.get("status") == TaskStatus.COMPLETED:
            stats["completed"] += 1

    rates = [stats["completed"] / stats["total"] for stats in user_stats.values()]
    return {
        "totalTasks": len(docs),
        "totalCompleted": sum(stats["completed"] for stats in user_stats.values()),
        "userStats": user_stats,
        "averageCompletionRate": sum(rates) / len(rates) if rates else 0.0,
    }


def _require_admin(store: DocumentStore, user_id: str) -> None:
    data = store.get(USERS_COLLECTION, user_id)
    user = from_document(User, user_id, data) if data else None
    if user is None or user.role != UserRole.ADMIN:
        raise permission_denied("Only administrators can view this report.")


@internal_errors("Failed to generate the report.")
def generate_report(
    services: Services,
    requester_id: str,
    report_type_value: Any,
    start_date: Any,
    end_date: Any,
    user_id: Optional[str] = None,
) -> dict:
    """
    Builds a task report for [start_date, end_date].

    Reports about another user, and the team report, require the admin role.
    """
    report_type = parse_enum(ReportType, report_type_value, "reportType")
    start = parse_datetime(start_date, "startDate")
    end = parse_datetime(end_date, "endDate")
    target_id = user_id or requester_id
    store = services.store

    if report_type == ReportType.TEAM_PERFORMANCE or target_id != requester_id:
        _require_admin(store, requester_id)

    if report_type == ReportType.TASK_SUMMARY:
        report_data = task_summary_report(store, target_id, start, end)
    elif report_type == ReportType.PRODUCTIVITY:
        report_data = productivity_report(store, target_id, start, end)
    else:
        report_data = team_performance_report(store, start, end)

    add_templated_suggestion(store, requester_id, SuggestionTrigger.REPORT_GENERATED)

    return {
        "reportData": report_data,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "success": True,
    }
