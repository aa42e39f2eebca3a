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

import logging
import time
from typing import Optional

from google import genai
from google.genai import types

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
SUGGESTION_TEMPERATURE = 0.8
SUGGESTION_MAX_OUTPUT_TOKENS = 500
# Thinking tokens count against max_output_tokens; short replies skip thinking.
SUGGESTION_THINKING_BUDGET = 0
JSON_MIME_TYPE = "application/json"


class GeminiInvalidResponseException(Exception):
    pass


def call_predict(
    query: str,
    system_instruction: Optional[str] = None,
    model: str = DEFAULT_MODEL,
    api_key: Optional[str] = None,
    temperature: float = SUGGESTION_TEMPERATURE,
    max_output_tokens: int = SUGGESTION_MAX_OUTPUT_TOKENS,
    thinking_budget: int = SUGGESTION_THINKING_BUDGET,
    response_mime_type: Optional[str] = None,
) -> str:
    """
    Sends a single-turn prompt to Gemini and returns the response text.

    Raises:
        GeminiInvalidResponseException: If the model returned no text.
    """
    client = genai.Client(api_key=api_key) if api_key else genai.Client()

    start_time = time.time()
    response = client.models.generate_content(
        model=model,
        contents=query,
        config=types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            thinking_config=types.ThinkingConfig(thinking_budget=thinking_budget),
            response_mime_type=response_mime_type,
        ),
    )
    logger.info(f"Gemini call took: {time.time() - start_time:.2f}s")

    if not response.text:
        raise GeminiInvalidResponseException()
    return response.text
