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
# Standard library imports
import os
import unittest
from unittest.mock import MagicMock, patch

# Third-party library imports
from functions_framework import create_app

# Local application imports
# This patch must be applied before importing 'main'
with patch("firebase_admin.initialize_app"):
    import main
from main_testing_utils import (
    create_test_services,
    make_event_payload,
    seed_subscription,
    seed_task,
    seed_user,
    sign_payload,
)
from shared.firebase_constants import (
    SUBSCRIPTIONS_COLLECTION,
    SUGGESTIONS_COLLECTION,
    TASKS_COLLECTION,
    USERS_COLLECTION,
)

MAIN_SOURCE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "main.py")


@patch("firebase_admin.initialize_app")
def _client(function_name, initialize_app_mock):
    return create_app(function_name, MAIN_SOURCE).test_client()


class TestMainCallablesRequireAuth(unittest.TestCase):

    def test_unauthenticated_calls_are_rejected(self):
        for function_name in [
            "create_stripe_subscription",
            "cancel_subscription",
            "update_subscription_plan",
            "create_task",
            "update_task_status",
            "generate_report",
            "send_notification",
            "generate_ai_suggestion",
            "update_suggestion_status",
            "delete_account",
        ]:
            with self.subTest(function_name=function_name):
                client = _client(function_name)

                response = client.post("/", json={"data": {}})

                self.assertEqual(response.status_code, 401)
                self.assertEqual(
                    response.get_json()["error"]["status"], "UNAUTHENTICATED"
                )


class TestMainCreateTask(unittest.TestCase):

    def setUp(self):
        self.client = _client("create_task")
        self.services = create_test_services()
        seed_user(self.services.store, "alice")
        seed_user(self.services.store, "bob")

    @patch("main.require_auth", return_value="alice")
    @patch("main.get_services")
    def test_create_task_success(self, mock_get_services, mock_require_auth):
        mock_get_services.return_value = self.services
        payload = {
            "title": "Prepare the demo",
            "assignedTo": "bob",
            "priority": "high",
            "dueDate": "2025-04-01T09:00:00Z",
        }

        response = self.client.post("/", json={"data": payload})

        self.assertEqual(
            response.status_code,
            200,
            f"Request failed with status {response.status_code}. Response: {response.get_data(as_text=True)}",
        )
        result = response.get_json()["result"]
        self.assertTrue(result["success"])
        stored = self.services.store.get(TASKS_COLLECTION, result["taskId"])
        self.assertEqual(stored["assignedTo"], "bob")
        self.assertEqual(stored["createdBy"], "alice")

    @patch("main.require_auth", return_value="alice")
    @patch("main.get_services")
    def test_create_task_missing_title(self, mock_get_services, mock_require_auth):
        mock_get_services.return_value = self.services

        response = self.client.post("/", json={"data": {"description": "no title"}})

        self.assertEqual(response.status_code, 400)
        response_data = response.get_json()
        self.assertEqual(response_data["error"]["status"], "INVALID_ARGUMENT")
        self.assertIn("title", response_data["error"]["message"])


class TestMainUpdateTaskStatus(unittest.TestCase):

    def setUp(self):
        self.client = _client("update_task_status")
        self.services = create_test_services()
        seed_task(self.services.store, "task_1", assignedTo="bob", createdBy="alice")

    @patch("main.require_auth", return_value="mallory")
    @patch("main.get_services")
    def test_permission_denied(self, mock_get_services, mock_require_auth):
        mock_get_services.return_value = self.services

        response = self.client.post(
            "/", json={"data": {"taskId": "task_1", "status": "completed"}}
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["error"]["status"], "PERMISSION_DENIED")
        self.assertEqual(
            self.services.store.get(TASKS_COLLECTION, "task_1")["status"], "todo"
        )

    @patch("main.require_auth", return_value="bob")
    @patch("main.get_services")
    def test_unknown_task(self, mock_get_services, mock_require_auth):
        mock_get_services.return_value = self.services

        response = self.client.post(
            "/", json={"data": {"taskId": "nope", "status": "completed"}}
        )

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"]["status"], "NOT_FOUND")


class TestMainCancelSubscription(unittest.TestCase):

    def setUp(self):
        self.client = _client("cancel_subscription")
        self.services = create_test_services()
        seed_user(self.services.store, "alice")

    @patch("main.require_auth", return_value="alice")
    @patch("main.get_services")
    def test_provider_error_is_internal(self, mock_get_services, mock_require_auth):
        mock_get_services.return_value = self.services
        seed_subscription(self.services.store, "local_sub", "alice", "sub_gone")

        response = self.client.post("/", json={"data": {"subscriptionId": "sub_gone"}})

        self.assertEqual(response.status_code, 500)
        response_data = response.get_json()
        self.assertEqual(response_data["error"]["status"], "INTERNAL")
        self.assertNotIn("sub_gone", response_data["error"]["message"])


class TestMainGenerateAiSuggestion(unittest.TestCase):

    def setUp(self):
        self.client = _client("generate_ai_suggestion")
        self.services = create_test_services()
        seed_user(self.services.store, "alice")

    @patch("suggestions.suggestions.gemini")
    @patch("main.require_auth", return_value="alice")
    @patch("main.get_services")
    def test_generate_ai_suggestion(
        self, mock_get_services, mock_require_auth, mock_gemini
    ):
        mock_get_services.return_value = self.services
        mock_gemini.call_predict.return_value = (
            '{"title": "Tidy up", "content": "Clear your desk.", "priority": 3}'
        )

        response = self.client.post(
            "/", json={"data": {"category": "efficiency", "userContext": "busy"}}
        )

        self.assertEqual(response.status_code, 200)
        result = response.get_json()["result"]
        self.assertEqual(result["title"], "Tidy up")
        self.assertEqual(result["category"], "efficiency")
        self.assertIsNotNone(
            self.services.store.get(SUGGESTIONS_COLLECTION, result["suggestionId"])
        )


class TestMainDeleteAccount(unittest.TestCase):

    def setUp(self):
        self.client = _client("delete_account")
        self.services = create_test_services()
        seed_user(self.services.store, "alice")
        seed_subscription(self.services.store, "s1", "alice", "sub_1")

    @patch("main.auth")
    @patch("main.require_auth", return_value="alice")
    @patch("main.get_services")
    def test_delete_account(self, mock_get_services, mock_require_auth, mock_auth):
        mock_get_services.return_value = self.services

        response = self.client.post("/", json={"data": {}})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["result"]["deletedDocuments"], 2)
        mock_auth.delete_user.assert_called_once_with("alice")
        self.assertIsNone(self.services.store.get(USERS_COLLECTION, "alice"))
        self.assertEqual(self.services.store.count(SUBSCRIPTIONS_COLLECTION), 0)


class TestMainStripeWebhook(unittest.TestCase):

    def setUp(self):
        self.client = _client("handle_stripe_webhook")
        self.services = create_test_services()
        seed_user(self.services.store, "alice")
        seed_subscription(self.services.store, "local_sub", "alice", "sub_123")
        self.payload = make_event_payload(
            "customer.subscription.deleted",
            {"id": "sub_123", "status": "canceled", "canceled_at": 1736500000},
        )

    @patch("main.get_services")
    def test_valid_delivery(self, mock_get_services):
        mock_get_services.return_value = self.services

        response = self.client.post(
            "/",
            data=self.payload,
            headers={"Stripe-Signature": sign_payload(self.payload)},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"received": True})
        self.assertEqual(
            self.services.store.get(SUBSCRIPTIONS_COLLECTION, "local_sub")["status"],
            "canceled",
        )

    @patch("main.get_services")
    def test_bad_signature(self, mock_get_services):
        mock_get_services.return_value = self.services

        response = self.client.post(
            "/",
            data=self.payload,
            headers={
                "Stripe-Signature": sign_payload(self.payload, secret="whsec_other")
            },
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json(), {"error": "Webhook Error"})
        self.assertEqual(
            self.services.store.get(SUBSCRIPTIONS_COLLECTION, "local_sub")["status"],
            "incomplete",
        )

    def test_get_is_not_allowed(self):
        response = self.client.get("/")

        self.assertEqual(response.status_code, 405)


class TestMainHealthCheck(unittest.TestCase):

    def setUp(self):
        self.client = _client("health_check")

    @patch("main.get_services")
    def test_health_check(self, mock_get_services):
        mock_get_services.return_value = create_test_services()

        response = self.client.get("/")

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["status"], "healthy")
        self.assertEqual(body["version"], "1.0.0")


class TestMainActivityTriggers(unittest.TestCase):
    """The Firestore triggers are plain functions once the event is built."""

    # create_app re-executes main.py, so patch the module imported above.
    def setUp(self):
        self.services = create_test_services()

    def _snapshot(self, data):
        snapshot = MagicMock()
        snapshot.to_dict.return_value = data
        return snapshot

    @patch.object(main, "get_services")
    def test_process_task_activity(self, mock_get_services):
        mock_get_services.return_value = self.services
        event = MagicMock()
        event.data = self._snapshot({"title": "New", "assignedTo": "bob"})

        main.process_task_activity.__wrapped__(event)

        self.assertEqual(self.services.store.count(SUGGESTIONS_COLLECTION), 2)

    @patch.object(main, "get_services")
    def test_process_user_activity_ignores_deletes(self, mock_get_services):
        mock_get_services.return_value = self.services
        event = MagicMock()
        event.data.before = self._snapshot({"subscriptionStatus": "none"})
        event.data.after = None
        event.params = {"userId": "alice"}

        main.process_user_activity.__wrapped__(event)

        self.assertEqual(self.services.store.count(SUGGESTIONS_COLLECTION), 0)


if __name__ == "__main__":
    unittest.main()
