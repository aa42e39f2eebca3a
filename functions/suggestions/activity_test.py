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

import unittest
from datetime import datetime, timedelta, timezone

from main_testing_utils import create_test_services
from shared.firebase_constants import SUGGESTIONS_COLLECTION
from suggestions import activity
from suggestions.templates import SuggestionTrigger

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


class SuggestFromUserChangeTest(unittest.TestCase):

    def setUp(self):
        self.store = create_test_services().store

    def _login_after(self, days: float) -> list:
        before = {"lastLoginAt": NOW - timedelta(days=days)}
        after = {"lastLoginAt": NOW}
        return activity.suggest_from_user_change(
            self.store, "alice", before, after, now=NOW
        )

    def test_login_recency_buckets(self):
        cases = [
            (0.5, []),
            (1, [SuggestionTrigger.RETURNING]),
            (6.9, [SuggestionTrigger.RETURNING]),
            (7, [SuggestionTrigger.LONG_ABSENCE]),
            (30, [SuggestionTrigger.LONG_ABSENCE]),
        ]
        for days, expected in cases:
            with self.subTest(days=days):
                self.assertEqual(self._login_after(days), expected)

    def test_first_login_adds_nothing(self):
        triggers = activity.suggest_from_user_change(
            self.store, "alice", {}, {"lastLoginAt": NOW}, now=NOW
        )

        self.assertEqual(triggers, [])
        self.assertEqual(self.store.count(SUGGESTIONS_COLLECTION), 0)

    def test_unchanged_login_adds_nothing(self):
        login = NOW - timedelta(days=10)

        triggers = activity.suggest_from_user_change(
            self.store,
            "alice",
            {"lastLoginAt": login, "displayName": "A"},
            {"lastLoginAt": login, "displayName": "B"},
            now=NOW,
        )

        self.assertEqual(triggers, [])

    def test_subscription_status_changes(self):
        cases = [
            ("none", "active", [SuggestionTrigger.SUBSCRIPTION_ACTIVE]),
            ("active", "canceled", [SuggestionTrigger.SUBSCRIPTION_CANCELED]),
            ("canceled", "expired", []),
            ("active", "active", []),
            ("active", "mystery", []),
        ]
        for old, new, expected in cases:
            with self.subTest(old=old, new=new):
                triggers = activity.suggest_from_user_change(
                    self.store,
                    "alice",
                    {"subscriptionStatus": old},
                    {"subscriptionStatus": new},
                    now=NOW,
                )
                self.assertEqual(triggers, expected)

    def test_login_and_status_change_together(self):
        triggers = activity.suggest_from_user_change(
            self.store,
            "alice",
            {"lastLoginAt": NOW - timedelta(days=8), "subscriptionStatus": "none"},
            {"lastLoginAt": NOW, "subscriptionStatus": "active"},
            now=NOW,
        )

        self.assertEqual(
            triggers,
            [SuggestionTrigger.LONG_ABSENCE, SuggestionTrigger.SUBSCRIPTION_ACTIVE],
        )
        self.assertEqual(self.store.count(SUGGESTIONS_COLLECTION), 2)
        for doc in self.store.all(SUGGESTIONS_COLLECTION):
            self.assertEqual(doc.data["userId"], "alice")


class SuggestForNewTaskTest(unittest.TestCase):

    def setUp(self):
        self.store = create_test_services().store

    def test_adds_tips_for_assignee(self):
        added = activity.suggest_for_new_task(
            self.store, {"title": "Taxes", "assignedTo": "bob", "createdBy": "alice"}
        )

        self.assertEqual(added, 2)
        owners = {doc.data["userId"] for doc in self.store.all(SUGGESTIONS_COLLECTION)}
        self.assertEqual(owners, {"bob"})

    def test_unassigned_task_adds_nothing(self):
        self.assertEqual(activity.suggest_for_new_task(self.store, {"title": "X"}), 0)
        self.assertEqual(self.store.count(SUGGESTIONS_COLLECTION), 0)


if __name__ == "__main__":
    unittest.main()
