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
"""Creates suggestions from templates or from a Gemini completion."""

import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from backend.dependencies import Services
from backend.store import DocumentStore
from models import gemini
from models.gemini import JSON_MIME_TYPE
from models import prompts
from shared.documents import Suggestion, from_document, to_document
from shared.errors import (
    internal_errors,
    invalid_argument,
    not_found,
    parse_enum,
    permission_denied,
)
from shared.firebase_constants import SUGGESTIONS_COLLECTION, USERS_COLLECTION
from shared.json_utils import convert_keys
from shared.types import SuggestionCategory, SuggestionStatus
from suggestions.templates import (
    GENERATION_FALLBACK,
    PARSE_FALLBACK_TITLE,
    TEMPLATES,
    SuggestionTemplate,
    SuggestionTrigger,
)

logger = logging.getLogger(__name__)

MIN_PRIORITY = 1
MAX_PRIORITY = 10
DEFAULT_PRIORITY = 5

# Profile fields that are never sent to the model.
_PRIVATE_USER_FIELDS = ("fcmToken", "stripeCustomerId")

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class SuggestionDraft(BaseModel):
    """Structured output expected from the model."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    priority: int = DEFAULT_PRIORITY

    @field_validator("priority", mode="before")
    @classmethod
    def _clamp_priority(cls, value: Any) -> int:
        try:
            value = int(value)
        except (TypeError, ValueError):
            return DEFAULT_PRIORITY
        return max(MIN_PRIORITY, min(MAX_PRIORITY, value))


@dataclass
class GeneratedSuggestion:
    suggestion_id: Optional[str]
    category: str
    title: str
    content: str
    priority: int


def _store_suggestion(store: DocumentStore, suggestion: Suggestion) -> Optional[str]:
    """Appends a suggestion. A failed write is logged and reported as None."""
    try:
        return store.add(SUGGESTIONS_COLLECTION, to_document(suggestion))
    except Exception as e:
        logger.error(
            f"Failed to store suggestion '{suggestion.title}' for {suggestion.user_id}: {e}"
        )
        return None


def _from_template(
    user_id: str, template: SuggestionTemplate, **fields: Any
) -> Suggestion:
    return Suggestion(
        user_id=user_id,
        category=template.category,
        title=template.title.format(**fields),
        content=template.content.format(**fields),
        priority=template.priority,
        created_at=SERVER_TIMESTAMP,
    )


def add_templated_suggestion(
    store: DocumentStore,
    user_id: str,
    trigger: SuggestionTrigger,
    **fields: Any,
) -> Optional[str]:
    """
    Appends the canned suggestion for `trigger` to the user's suggestions.

    Never raises: suggestions are a side effect and must not fail the
    operation that triggered them.

    Returns:
        The new suggestion id, or None if it could not be stored.
    """
    try:
        suggestion = _from_template(user_id, TEMPLATES[trigger], **fields)
    except (KeyError, IndexError) as e:
        logger.error(f"Could not render suggestion template {trigger}: {e}")
        return None
    return _store_suggestion(store, suggestion)


def parse_suggestion(response_text: str) -> SuggestionDraft:
    """
    Parses the model's text as a structured suggestion.

    Anything that is not a JSON object with a title and content is wrapped
    as the body of a default-priority suggestion instead.
    """
    text = response_text.strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        return SuggestionDraft.model_validate_json(text)
    except ValidationError as e:
        logger.warning(f"Model response was not a structured suggestion: {e}")
        return SuggestionDraft(
            title=PARSE_FALLBACK_TITLE,
            content=response_text.strip() or GENERATION_FALLBACK.content,
            priority=DEFAULT_PRIORITY,
        )


def _serialize_user(user_data: Optional[dict]) -> str:
    public = {
        k: v for k, v in (user_data or {}).items() if k not in _PRIVATE_USER_FIELDS
    }
    return json.dumps(public, default=str, ensure_ascii=False)


def _build_system_prompt(
    category: SuggestionCategory, user_data: Optional[dict], user_context: Optional[str]
) -> str:
    return prompts.SUGGESTION_SYSTEM_PROMPT.format(
        persona=prompts.SUGGESTION_PERSONA_PREAMBLE,
        category=category.value,
        user_data=_serialize_user(user_data),
        user_context=user_context or "none",
    )


def generate_ai_suggestion(
    services: Services,
    user_id: str,
    category_value: Optional[str] = None,
    user_context: Optional[str] = None,
) -> dict:
    """
    Generates a suggestion with Gemini and stores it for the user.

    Any failure after the category is validated (profile read, model call,
    store write) is logged and answered with the fallback suggestion, so the
    caller always receives one.

    Returns:
        A camelCase dict of GeneratedSuggestion.
    """
    category = (
        parse_enum(SuggestionCategory, category_value, "category")
        if category_value
        else SuggestionCategory.FEATURE
    )
    store = services.store
    settings = services.settings

    try:
        user_data = store.get(USERS_COLLECTION, user_id)
        response_text = gemini.call_predict(
            prompts.SUGGESTION_USER_PROMPT.format(category=category.value),
            system_instruction=_build_system_prompt(category, user_data, user_context),
            model=settings.gemini_model,
            api_key=settings.gemini_api_key,
            response_mime_type=JSON_MIME_TYPE,
        )
        draft = parse_suggestion(response_text)
        suggestion = Suggestion(
            user_id=user_id,
            category=category,
            title=draft.title,
            content=draft.content,
            priority=draft.priority,
            created_at=SERVER_TIMESTAMP,
        )
        suggestion_id = store.add(SUGGESTIONS_COLLECTION, to_document(suggestion))
    except Exception as e:
        logger.error(f"AI suggestion generation failed for {user_id}: {e}")
        suggestion = _from_template(user_id, GENERATION_FALLBACK)
        suggestion.category = category
        suggestion_id = _store_suggestion(store, suggestion)

    result = GeneratedSuggestion(
        suggestion_id=suggestion_id,
        category=suggestion.category.value,
        title=suggestion.title,
        content=suggestion.content,
        priority=suggestion.priority,
    )
    return convert_keys(asdict(result), "snake_to_camel")


@internal_errors("Failed to update the suggestion status.")
def update_suggestion_status(
    services: Services, user_id: str, suggestion_id: Any, status_value: Any
) -> dict:
    """
    Accepts or dismisses one of the caller's suggestions.

    Accepting a suggestion adds a thank-you suggestion.
    """
    if not suggestion_id or not isinstance(suggestion_id, str):
        raise invalid_argument("Must specify suggestionId parameter.")
    status = parse_enum(SuggestionStatus, status_value, "status")
    if status == SuggestionStatus.PENDING:
        raise invalid_argument("Status must be accepted or dismissed.")

    store = services.store
    data = store.get(SUGGESTIONS_COLLECTION, suggestion_id)
    if data is None:
        raise not_found("Suggestion not found.")
    suggestion = from_document(Suggestion, suggestion_id, data)
    if suggestion.user_id != user_id:
        raise permission_denied("You do not have access to this suggestion.")

    update = {"status": status.value, "updatedAt": SERVER_TIMESTAMP}
    if status == SuggestionStatus.ACCEPTED:
        update["acceptedAt"] = SERVER_TIMESTAMP
    else:
        update["dismissedAt"] = SERVER_TIMESTAMP
    store.update(SUGGESTIONS_COLLECTION, suggestion_id, update)

    if status == SuggestionStatus.ACCEPTED:
        add_templated_suggestion(store, user_id, SuggestionTrigger.SUGGESTION_ACCEPTED)

    return {"success": True}
