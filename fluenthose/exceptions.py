# -*- coding: utf-8 -*-

# Fluenthose
# Copyright (C) 2025 Fluenthose contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
API errors and exception handlers for Fluenthose.

Firehose only understands one response envelope:
    {"requestId": "...", "timestamp": 1578090903599, "errorMessage": "..."}

Architecture:
- FirehoseAPIError: exception carrying status code, message and request id
- ERR_AUTH / ERR_BAD_REQUEST: the two errors callers can ever see
- firehose_error_response(): renders the envelope
- firehose_exception_handler / unhandled_exception_handler: FastAPI handlers
  so every failure path answers with the envelope, never with FastAPI's
  default {"detail": ...} body
"""

import time
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from fluenthose.config import REQUEST_ID_HEADER_NAME
from fluenthose.models import FirehoseResponseBody


INTERNAL_ERROR_MESSAGE = "internal server error"


class FirehoseAPIError(Exception):
    """
    Error that is reported back to Firehose.

    Attributes:
        status_code: HTTP status code of the response
        message: Value of errorMessage in the response body
        request_id: Request id echoed in the response (None when unknown)
    """

    def __init__(self, status_code: int, message: str, request_id: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.request_id = request_id

    def with_request_id(self, request_id: Optional[str]) -> "FirehoseAPIError":
        """Return a copy of this error bound to a request id."""
        return FirehoseAPIError(self.status_code, self.message, request_id)


ERR_AUTH = FirehoseAPIError(401, "unauthorized")
ERR_BAD_REQUEST = FirehoseAPIError(400, "bad request")


def now_millis() -> int:
    """Current wall-clock time in Unix milliseconds."""
    return time.time_ns() // 1_000_000


def firehose_error_response(error: FirehoseAPIError) -> JSONResponse:
    """
    Render a FirehoseAPIError as a Firehose response envelope.

    Args:
        error: Error to render

    Returns:
        JSONResponse with the error status code
    """
    logger.debug(f"Firehose error response: {error.status_code} {error.message}")
    body = FirehoseResponseBody(
        request_id=error.request_id or None,
        timestamp=now_millis(),
        error_message=error.message,
    )
    return JSONResponse(status_code=error.status_code, content=body.to_json_dict())


async def firehose_exception_handler(request: Request, exc: FirehoseAPIError) -> JSONResponse:
    """FastAPI handler for FirehoseAPIError raised anywhere in a route."""
    return firehose_error_response(exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    FastAPI handler for anything unexpected.

    Logs the full traceback and answers with a generic 500 so no internal
    detail leaks to the caller.
    """
    logger.opt(exception=exc).error(
        f"[Firehose] Unhandled error on {request.method} {request.url.path}: {exc}"
    )
    request_id = request.headers.get(REQUEST_ID_HEADER_NAME)
    return firehose_error_response(FirehoseAPIError(500, INTERNAL_ERROR_MESSAGE, request_id))
