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

import copy
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from firebase_functions import https_fn

from main_testing_utils import create_test_services, seed_task, seed_user
from shared.firebase_constants import (
    NOTIFICATIONS_COLLECTION,
    SUGGESTIONS_COLLECTION,
    TASKS_COLLECTION,
)
from tasks import tasks

# 2025-03-10 10:00 in Tokyo.
NOW = datetime(2025, 3, 10, 1, 0, tzinfo=timezone.utc)


def _docs_for(store, collection, user_id):
    return [
        doc.data for doc in store.all(collection) if doc.data.get("userId") == user_id
    ]


class CreateTaskTest(unittest.TestCase):

    def setUp(self):
        self.services = create_test_services()
        self.store = self.services.store
        seed_user(self.store, "alice")
        seed_user(self.store, "bob")

    def test_create_task_for_self(self):
        result = tasks.create_task(
            self.services, "alice", "Write report", description="Q1 numbers"
        )

        self.assertTrue(result["success"])
        stored = self.store.get(TASKS_COLLECTION, result["taskId"])
        self.assertEqual(stored["title"], "Write report")
        self.assertEqual(stored["description"], "Q1 numbers")
        self.assertEqual(stored["assignedTo"], "alice")
        self.assertEqual(stored["createdBy"], "alice")
        self.assertEqual(stored["status"], "todo")
        self.assertEqual(stored["priority"], "medium")
        self.assertIsNone(stored["dueDate"])
        self.assertEqual(self.store.count(NOTIFICATIONS_COLLECTION), 0)
        self.assertEqual(len(_docs_for(self.store, SUGGESTIONS_COLLECTION, "alice")), 1)

    def test_assigning_to_someone_else_notifies_once(self):
        result = tasks.create_task(
            self.services,
            "alice",
            "Review budget",
            assigned_to="bob",
            priority_value="high",
            due_date_value="2025-03-12T09:00:00+09:00",
        )

        stored = self.store.get(TASKS_COLLECTION, result["taskId"])
        self.assertEqual(stored["priority"], "high")
        self.assertEqual(
            stored["dueDate"], datetime(2025, 3, 12, 0, 0, tzinfo=timezone.utc)
        )

        notifications = _docs_for(self.store, NOTIFICATIONS_COLLECTION, "bob")
        self.assertEqual(len(notifications), 1)
        self.assertEqual(notifications[0]["type"], "task_assigned")
        self.assertIn("Review budget", notifications[0]["message"])
        self.assertEqual(len(self.services.messenger.emails), 1)
        self.assertEqual(self.services.messenger.emails[0]["to"], "bob@example.com")

        creator_suggestions = _docs_for(self.store, SUGGESTIONS_COLLECTION, "alice")
        self.assertEqual(len(creator_suggestions), 1)
        self.assertEqual(_docs_for(self.store, SUGGESTIONS_COLLECTION, "bob"), [])

    def test_email_respects_preference(self):
        seed_user(self.store, "carol", emailNotifications=False)

        tasks.create_task(self.services, "alice", "Quiet task", assigned_to="carol")

        self.assertEqual(
            len(_docs_for(self.store, NOTIFICATIONS_COLLECTION, "carol")), 1
        )
        self.assertEqual(self.services.messenger.emails, [])

    def test_missing_assignee_does_not_fail_creation(self):
        result = tasks.create_task(self.services, "alice", "Orphan", assigned_to="ghost")

        self.assertTrue(result["success"])
        self.assertEqual(self.store.count(NOTIFICATIONS_COLLECTION), 0)

    def test_invalid_arguments(self):
        cases = [
            {"title": None},
            {"title": ""},
            {"title": "T", "priority_value": "urgent"},
            {"title": "T", "due_date_value": "next tuesday"},
            {"title": "T", "assigned_to": 123},
            {"title": "T", "description": {"x": 1}},
        ]
        for kwargs in cases:
            with self.subTest(**kwargs):
                with self.assertRaises(https_fn.HttpsError) as ctx:
                    tasks.create_task(self.services, "alice", **kwargs)
                self.assertEqual(
                    ctx.exception.code, https_fn.FunctionsErrorCode.INVALID_ARGUMENT
                )
        self.assertEqual(self.store.count(TASKS_COLLECTION), 0)


class UpdateTaskStatusTest(unittest.TestCase):

    def setUp(self):
        self.services = create_test_services()
        self.store = self.services.store
        seed_user(self.store, "alice")
        seed_user(self.store, "bob")
        seed_task(self.store, "task_1", assignedTo="bob", createdBy="alice")

    def test_assignee_completes_task(self):
        result = tasks.update_task_status(
            self.services, "bob", "task_1", "completed"
        )

        self.assertEqual(result, {"success": True})
        stored = self.store.get(TASKS_COLLECTION, "task_1")
        self.assertEqual(stored["status"], "completed")
        self.assertIsNotNone(stored["completedAt"])
        self.assertNotEqual(stored["updatedAt"], datetime(2025, 3, 1, tzinfo=timezone.utc))

        creator_notifications = _docs_for(self.store, NOTIFICATIONS_COLLECTION, "alice")
        self.assertEqual(len(creator_notifications), 1)
        self.assertEqual(creator_notifications[0]["type"], "task_completed")
        self.assertEqual(len(_docs_for(self.store, SUGGESTIONS_COLLECTION, "bob")), 1)

    def test_creator_completing_own_task_is_not_notified(self):
        seed_task(self.store, "task_2", assignedTo="alice", createdBy="alice")

        tasks.update_task_status(self.services, "alice", "task_2", "completed")

        self.assertEqual(self.store.count(NOTIFICATIONS_COLLECTION), 0)
        self.assertEqual(len(_docs_for(self.store, SUGGESTIONS_COLLECTION, "alice")), 1)

    def test_progress_update_has_no_side_effects(self):
        tasks.update_task_status(self.services, "alice", "task_1", "in_progress")

        stored = self.store.get(TASKS_COLLECTION, "task_1")
        self.assertEqual(stored["status"], "in_progress")
        self.assertNotIn("completedAt", stored)
        self.assertEqual(self.store.count(NOTIFICATIONS_COLLECTION), 0)
        self.assertEqual(self.store.count(SUGGESTIONS_COLLECTION), 0)

    def test_outsider_is_denied_without_modification(self):
        seed_user(self.store, "mallory")
        before = copy.deepcopy(self.store.get(TASKS_COLLECTION, "task_1"))

        with self.assertRaises(https_fn.HttpsError) as ctx:
            tasks.update_task_status(self.services, "mallory", "task_1", "completed")

        self.assertEqual(
            ctx.exception.code, https_fn.FunctionsErrorCode.PERMISSION_DENIED
        )
        self.assertEqual(self.store.get(TASKS_COLLECTION, "task_1"), before)
        self.assertEqual(self.store.count(NOTIFICATIONS_COLLECTION), 0)

    def test_missing_task_is_not_found(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            tasks.update_task_status(self.services, "mallory", "nope", "completed")

        self.assertEqual(ctx.exception.code, https_fn.FunctionsErrorCode.NOT_FOUND)

    def test_invalid_status_is_rejected(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            tasks.update_task_status(self.services, "bob", "task_1", "finished")

        self.assertEqual(
            ctx.exception.code, https_fn.FunctionsErrorCode.INVALID_ARGUMENT
        )
        self.assertEqual(self.store.get(TASKS_COLLECTION, "task_1")["status"], "todo")


class SendTaskRemindersTest(unittest.TestCase):

    def setUp(self):
        self.services = create_test_services()
        self.store = self.services.store
        seed_user(self.store, "alice")
        seed_user(self.store, "bob")

    def test_reminds_unfinished_tasks_due_by_end_of_tomorrow(self):
        # End of tomorrow in Tokyo is 2025-03-11 14:59:59 UTC.
        seed_task(
            self.store,
            "overdue",
            assignedTo="bob",
            dueDate=datetime(2025, 3, 5, tzinfo=timezone.utc),
        )
        seed_task(
            self.store,
            "tomorrow_night",
            assignedTo="alice",
            dueDate=datetime(2025, 3, 11, 14, 0, tzinfo=timezone.utc),
        )
        seed_task(
            self.store,
            "day_after",
            dueDate=datetime(2025, 3, 11, 15, 30, tzinfo=timezone.utc),
        )
        seed_task(
            self.store,
            "done",
            status="completed",
            dueDate=datetime(2025, 3, 10, tzinfo=timezone.utc),
        )
        seed_task(self.store, "undated")

        reminded = tasks.send_task_reminders(self.services, now=NOW)

        self.assertEqual(reminded, 2)
        notified = sorted(
            doc.data["userId"] for doc in self.store.all(NOTIFICATIONS_COLLECTION)
        )
        self.assertEqual(notified, ["alice", "bob"])
        for doc in self.store.all(NOTIFICATIONS_COLLECTION):
            self.assertEqual(doc.data["type"], "task_reminder")
        self.assertEqual(self.store.count(SUGGESTIONS_COLLECTION), 2)

    def test_no_due_tasks(self):
        self.assertEqual(tasks.send_task_reminders(self.services, now=NOW), 0)
        self.assertEqual(self.services.messenger.emails, [])

    def test_one_failed_reminder_does_not_stop_others(self):
        for task_id in ("a", "b", "c"):
            seed_task(
                self.store, task_id, dueDate=datetime(2025, 3, 9, tzinfo=timezone.utc)
            )
        calls = []

        def flaky_remind(services, doc):
            calls.append(doc.id)
            if doc.id == "b":
                raise RuntimeError("boom")
            return True

        with patch.object(tasks, "_remind", side_effect=flaky_remind):
            with self.assertLogs("tasks.tasks", level="ERROR"):
                sent = tasks.send_task_reminders(self.services, now=NOW)

        self.assertEqual(sorted(calls), ["a", "b", "c"])
        self.assertEqual(sent, 2)

    def test_undelivered_reminder_is_not_counted(self):
        seed_task(
            self.store,
            "ghost_task",
            assignedTo="ghost",
            dueDate=datetime(2025, 3, 9, tzinfo=timezone.utc),
        )
        seed_task(
            self.store,
            "bob_task",
            assignedTo="bob",
            dueDate=datetime(2025, 3, 9, tzinfo=timezone.utc),
        )

        sent = tasks.send_task_reminders(self.services, now=NOW)

        self.assertEqual(sent, 1)
        self.assertEqual(len(self.services.messenger.emails), 1)


if __name__ == "__main__":
    unittest.main()
