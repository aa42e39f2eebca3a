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

"""Categorized failures for callable functions."""

import functools
import logging
from enum import Enum
from typing import Callable, Type, TypeVar

from firebase_functions import https_fn

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)


def require_auth(req: https_fn.CallableRequest) -> str:
    """Returns the caller's uid or raises UNAUTHENTICATED."""
    if req.auth is None or not req.auth.uid:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.UNAUTHENTICATED, "Sign-in is required."
        )
    return req.auth.uid


def not_found(message: str) -> https_fn.HttpsError:
    return https_fn.HttpsError(https_fn.FunctionsErrorCode.NOT_FOUND, message)


def permission_denied(message: str) -> https_fn.HttpsError:
    return https_fn.HttpsError(https_fn.FunctionsErrorCode.PERMISSION_DENIED, message)


def invalid_argument(message: str) -> https_fn.HttpsError:
    return https_fn.HttpsError(https_fn.FunctionsErrorCode.INVALID_ARGUMENT, message)


def internal_errors(message: str) -> Callable[[F], F]:
    """
    Outermost boundary for an operation.

    HttpsError raised inside passes through verbatim. Any other exception is
    logged and replaced by a generic INTERNAL error carrying `message`, so no
    collaborator detail reaches the caller.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except https_fn.HttpsError:
                raise
            except Exception as e:
                logger.exception(f"{func.__name__} failed: {e}")
                raise https_fn.HttpsError(
                    https_fn.FunctionsErrorCode.INTERNAL, message
                ) from e

        return wrapper

    return decorator


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value, field_name: str) -> E:
    """Converts a request value to `enum_cls` or raises INVALID_ARGUMENT."""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise invalid_argument(
            f"Invalid {field_name}: {value!r}. Expected one of: {allowed}."
        ) from None
