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

# Cloud functions for the Sister Dev Playground backend: subscriptions,
# internal task management and Sara's suggestion assistant.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
import json
from datetime import datetime, timezone
from typing import Optional

# Third-party library imports
from firebase_admin import auth, initialize_app
from firebase_functions import https_fn, identity_fn, logger, options, scheduler_fn
from firebase_functions.firestore_fn import (
    on_document_created,
    on_document_updated,
    Event,
    Change,
    DocumentSnapshot,
)

# Local application imports
from backend.dependencies import Services, get_services
from notifications import notifications
from shared.errors import internal_errors, require_auth
from shared.firebase_constants import TASKS_COLLECTION, USERS_COLLECTION
from subscriptions import subscriptions, webhooks
from suggestions import activity, suggestions
from tasks import reports, tasks
from users import users

STRIPE_SECRETS = ["STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET"]
GEMINI_SECRETS = ["GEMINI_API_KEY"]
EMAIL_SECRETS = ["SENDER_EMAIL", "SENDER_PASSWORD"]

SUGGESTION_FUNCTION_TIMEOUT = 120
REMINDER_SCHEDULE = "0 9 * * *"
REMINDER_TIMEZONE = "Asia/Tokyo"

initialize_app()


def _args(req: https_fn.CallableRequest) -> dict:
    """Returns the callable's argument object, treating anything else as empty."""
    return req.data if isinstance(req.data, dict) else {}


def _json_response(body: dict, status: int = 200) -> https_fn.Response:
    return https_fn.Response(
        json.dumps(body), status=status, mimetype="application/json"
    )


# ------------------------------------------------------------------------------
# Account lifecycle
# ------------------------------------------------------------------------------


@identity_fn.before_user_created()
def on_user_created(
    event: identity_fn.AuthBlockingEvent,
) -> Optional[identity_fn.BeforeCreateResponse]:
    """
    Creates the profile and welcome suggestion for a new account.

    Sign-up is never blocked on this; a missing profile is recreated at the
    next sign-in.
    """
    user = event.data
    try:
        users.create_user_profile(
            get_services().store, user.uid, user.email, user.display_name
        )
    except Exception as e:
        logger.error(f"Failed to create profile for {user.uid}: {e}")
    return None


@identity_fn.before_user_signed_in()
def on_user_signed_in(
    event: identity_fn.AuthBlockingEvent,
) -> Optional[identity_fn.BeforeSignInResponse]:
    """Stamps lastLoginAt, which drives the login-based suggestions."""
    user = event.data
    try:
        users.record_login(
            get_services().store, user.uid, user.email, user.display_name
        )
    except Exception as e:
        logger.error(f"Failed to record sign-in for {user.uid}: {e}")
    return None


@internal_errors("Failed to delete the account.")
def _delete_account(services: Services, uid: str) -> dict:
    deleted = users.delete_user_data(services.store, uid)
    auth.delete_user(uid)
    return {"success": True, "deletedDocuments": deleted}


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def delete_account(req: https_fn.CallableRequest) -> dict:
    """
    Deletes the caller's profile, subscriptions, suggestions and
    notifications, then the auth account itself.
    """
    uid = require_auth(req)
    return _delete_account(get_services(), uid)


@https_fn.on_request()
def health_check(req: https_fn.Request) -> https_fn.Response:
    settings = get_services().settings
    return _json_response(
        {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "message": f"{settings.app_name} functions are up and running!",
            "version": settings.app_version,
        }
    )


# ------------------------------------------------------------------------------
# Subscriptions
# ------------------------------------------------------------------------------


@https_fn.on_call(secrets=STRIPE_SECRETS, memory=options.MemoryOption.MB_256)
def create_stripe_subscription(req: https_fn.CallableRequest) -> dict:
    """
    Starts a subscription for the caller.

    Args:
        req (https_fn.CallableRequest): The request, containing the planId.

    Returns:
        A dictionary with the subscriptionId and the payment clientSecret.
    """
    user_id = require_auth(req)
    return subscriptions.create_subscription(
        get_services(), user_id, _args(req).get("planId")
    )


@https_fn.on_request(secrets=STRIPE_SECRETS, memory=options.MemoryOption.MB_256)
def handle_stripe_webhook(req: https_fn.Request) -> https_fn.Response:
    """
    Receives Stripe webhook deliveries.

    Replies 200 once processed (unhandled event types included), 400 when the
    signature does not verify and 500 when processing failed.
    """
    if req.method != "POST":
        return _json_response({"error": "Method Not Allowed"}, status=405)

    result = webhooks.process_webhook(
        get_services(), req.get_data(), req.headers.get("Stripe-Signature")
    )
    return _json_response(result.body, status=result.status_code)


@https_fn.on_call(secrets=STRIPE_SECRETS, memory=options.MemoryOption.MB_256)
def cancel_subscription(req: https_fn.CallableRequest) -> dict:
    user_id = require_auth(req)
    return subscriptions.cancel_subscription(
        get_services(), user_id, _args(req).get("subscriptionId")
    )


@https_fn.on_call(secrets=STRIPE_SECRETS, memory=options.MemoryOption.MB_256)
def update_subscription_plan(req: https_fn.CallableRequest) -> dict:
    user_id = require_auth(req)
    args = _args(req)
    return subscriptions.update_subscription_plan(
        get_services(), user_id, args.get("subscriptionId"), args.get("newPlanId")
    )


# ------------------------------------------------------------------------------
# Internal app: tasks, reports and notifications
# ------------------------------------------------------------------------------


@https_fn.on_call(secrets=EMAIL_SECRETS, memory=options.MemoryOption.MB_256)
def create_task(req: https_fn.CallableRequest) -> dict:
    """
    Creates a task.

    Args:
        req (https_fn.CallableRequest): The request, containing title and the
            optional description, assignedTo, priority and dueDate.

    Returns:
        A dictionary with the new taskId.
    """
    creator_id = require_auth(req)
    args = _args(req)
    return tasks.create_task(
        get_services(),
        creator_id,
        title=args.get("title"),
        description=args.get("description"),
        assigned_to=args.get("assignedTo"),
        priority_value=args.get("priority"),
        due_date_value=args.get("dueDate"),
    )


@https_fn.on_call(secrets=EMAIL_SECRETS, memory=options.MemoryOption.MB_256)
def update_task_status(req: https_fn.CallableRequest) -> dict:
    user_id = require_auth(req)
    args = _args(req)
    return tasks.update_task_status(
        get_services(), user_id, args.get("taskId"), args.get("status")
    )


@https_fn.on_call(memory=options.MemoryOption.MB_512)
def generate_report(req: https_fn.CallableRequest) -> dict:
    """
    Generates a task_summary, productivity or team_performance report.

    Args:
        req (https_fn.CallableRequest): The request, containing reportType,
            startDate, endDate and an optional userId.
    """
    requester_id = require_auth(req)
    args = _args(req)
    return reports.generate_report(
        get_services(),
        requester_id,
        args.get("reportType"),
        args.get("startDate"),
        args.get("endDate"),
        user_id=args.get("userId"),
    )


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def send_notification(req: https_fn.CallableRequest) -> dict:
    sender_id = require_auth(req)
    args = _args(req)
    return notifications.send_notification(
        get_services(),
        sender_id,
        args.get("userId"),
        args.get("title"),
        args.get("message"),
        args.get("type"),
    )


@scheduler_fn.on_schedule(
    schedule=REMINDER_SCHEDULE,
    timezone=scheduler_fn.Timezone(REMINDER_TIMEZONE),
    secrets=EMAIL_SECRETS,
)
def send_task_reminders(event: scheduler_fn.ScheduledEvent) -> None:
    """Reminds assignees of tasks due by the end of tomorrow."""
    tasks.send_task_reminders(get_services())


# ------------------------------------------------------------------------------
# Suggestions
# ------------------------------------------------------------------------------


@https_fn.on_call(
    timeout_sec=SUGGESTION_FUNCTION_TIMEOUT,
    secrets=GEMINI_SECRETS,
    memory=options.MemoryOption.MB_512,
)
def generate_ai_suggestion(req: https_fn.CallableRequest) -> dict:
    """
    Asks Gemini for a suggestion in the requested category.

    Args:
        req (https_fn.CallableRequest): The request, containing an optional
            category and userContext.

    Returns:
        The stored suggestion: suggestionId, category, title, content and
        priority. A fallback suggestion is returned if generation fails.
    """
    user_id = require_auth(req)
    args = _args(req)
    return suggestions.generate_ai_suggestion(
        get_services(), user_id, args.get("category"), args.get("userContext")
    )


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def update_suggestion_status(req: https_fn.CallableRequest) -> dict:
    user_id = require_auth(req)
    args = _args(req)
    return suggestions.update_suggestion_status(
        get_services(), user_id, args.get("suggestionId"), args.get("status")
    )


@on_document_updated(document=USERS_COLLECTION + "/{userId}")
def process_user_activity(event: Event[Change[DocumentSnapshot]]) -> None:
    """Adds suggestions when a user signs in or their subscription changes."""
    if not event.data.before or not event.data.after:
        return
    before = event.data.before.to_dict() or {}
    after = event.data.after.to_dict() or {}
    activity.suggest_from_user_change(
        get_services().store, event.params["userId"], before, after
    )


@on_document_created(document=TASKS_COLLECTION + "/{taskId}")
def process_task_activity(event: Event[DocumentSnapshot]) -> None:
    """Adds task-handling tips for the assignee of a new task."""
    if not event.data:
        return
    activity.suggest_for_new_task(get_services().store, event.data.to_dict() or {})
