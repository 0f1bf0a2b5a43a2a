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
Firehose delivery request handler.

One call of FirehoseHandler.handle() serves one Firehose delivery:

1. Authenticate the access key header (401 unauthorized)
2. Require the request id header (400 bad request)
3. Require POST and a parseable, non-empty body (400 bad request)
4. Classify the batch from the common attributes header
5. For every record, in order: decode -> transform -> forward
6. Answer 200 with {"requestId", "timestamp"}

Step 5 never changes the response. Per-record problems are logged, counted
and returned as RecordOutcome values; Firehose only learns that the batch
was received.
"""

import asyncio
import secrets
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError

from fluenthose.classifier import parse_event_type
from fluenthose.config import (
    ACCESS_KEY_HEADER_NAME,
    COMMON_ATTRIBUTES_HEADER_NAME,
    REQUEST_ID_HEADER_NAME,
    SKIP_CONTROL_MESSAGES,
)
from fluenthose.decoder import RecordDecodeError
from fluenthose.exceptions import ERR_AUTH, ERR_BAD_REQUEST, now_millis
from fluenthose.forwarder import Forwarder
from fluenthose.metrics import record_skip
from fluenthose.models import (
    BatchOutcome,
    EventType,
    FirehoseRequestBody,
    FirehoseResponseBody,
    RecordOutcome,
)
from fluenthose.transformer import SkipRecord, transform_record


def verify_access_key(provided: Optional[str], expected: str) -> bool:
    """
    Compare the access key header against the shared secret.

    Args:
        provided: Header value (None when absent)
        expected: Configured shared secret

    Returns:
        True only for a non-empty exact match
    """
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def parse_request_body(body: bytes, request_id: Optional[str] = None) -> FirehoseRequestBody:
    """
    Parse a delivery request body.

    Args:
        body: Raw request body
        request_id: Request id echoed in the error response

    Raises:
        FirehoseAPIError: 400 if the body is empty or not a delivery batch
    """
    if not body or not body.strip():
        logger.error("[Firehose] Request body is empty")
        raise ERR_BAD_REQUEST.with_request_id(request_id)

    try:
        return FirehoseRequestBody.model_validate_json(body)
    except ValidationError as e:
        logger.error(f"[Firehose] Failed to decode request body: {e.errors()[0]['msg']}")
        raise ERR_BAD_REQUEST.with_request_id(request_id) from e


class FirehoseHandler:
    """
    Handles Firehose delivery requests.

    The forwarder is the one piece of state shared across requests; it is
    handed in at construction and owned by the application lifespan.

    Example:
        >>> handler = FirehoseHandler(forwarder, "secret", "X-EVENT-TYPE")
        >>> response = await handler.handle(request)
    """

    def __init__(
        self,
        forwarder: Forwarder,
        access_key: str,
        event_type_header_name: str,
        skip_control_messages: bool = SKIP_CONTROL_MESSAGES,
    ):
        self.forwarder = forwarder
        self.access_key = access_key
        self.event_type_header_name = event_type_header_name
        self.skip_control_messages = skip_control_messages

    async def handle(self, request: Request) -> JSONResponse:
        """
        Serve one delivery request.

        Raises:
            FirehoseAPIError: For authentication and malformed-request errors
        """
        client = request.client.host if request.client else "unknown"
        logger.debug(f"[Firehose] {request.method} request received from {client}")

        request_id = request.headers.get(REQUEST_ID_HEADER_NAME) or None

        if not verify_access_key(request.headers.get(ACCESS_KEY_HEADER_NAME), self.access_key):
            logger.warning(f"[Firehose] Rejected request from {client}: invalid or missing access key")
            raise ERR_AUTH.with_request_id(request_id)

        if request_id is None:
            logger.debug("[Firehose] Request id header is missing")
            raise ERR_BAD_REQUEST

        if request.method != "POST":
            logger.debug(f"[Firehose] Unsupported method {request.method}")
            raise ERR_BAD_REQUEST.with_request_id(request_id)

        batch = parse_request_body(await request.body(), request_id)

        event_type = parse_event_type(
            request.headers.get(COMMON_ATTRIBUTES_HEADER_NAME),
            self.event_type_header_name,
        )

        outcome = await asyncio.to_thread(self.process_batch, batch, request_id, event_type)
        logger.info(
            f"[Firehose] Request {request_id}: {len(batch.records)} {event_type.value} records, "
            f"{outcome.forwarded} messages forwarded, {outcome.failed} failed, {outcome.skipped} skipped"
        )

        response = FirehoseResponseBody(request_id=request_id, timestamp=now_millis())
        return JSONResponse(status_code=200, content=response.to_json_dict())

    def process_batch(
        self,
        batch: FirehoseRequestBody,
        request_id: str,
        event_type: EventType,
    ) -> BatchOutcome:
        """
        Transform and forward every record of a batch, in order.

        Blocking: runs the forwarder's network writes on the calling thread.
        """
        outcome = BatchOutcome(request_id=request_id, event_type=event_type)
        for index, record in enumerate(batch.records):
            outcome.records.append(self.process_record(index, record.data, request_id, event_type))
        return outcome

    def process_record(
        self,
        index: int,
        data: str,
        request_id: str,
        event_type: EventType,
    ) -> RecordOutcome:
        """
        Transform and forward a single record.

        Decode failures and deliberate skips end up in skip_reason; forward
        failures in the failed count. Neither stops the batch.
        """
        outcome = RecordOutcome(index=index, event_type=event_type)

        try:
            messages = transform_record(
                event_type,
                data,
                request_id,
                skip_control_messages=self.skip_control_messages,
            )
        except SkipRecord as e:
            outcome.skip_reason = e.reason
            if event_type is not EventType.UNKNOWN:
                logger.debug(f"[Firehose] Skipping {event_type.value} record {index}: {e.reason}")
                record_skip(event_type.value, e.reason)
            return outcome
        except RecordDecodeError as e:
            logger.error(f"[Firehose] Failed to decode {event_type.value} record {index}: {e}")
            outcome.skip_reason = e.reason
            record_skip(event_type.value, e.reason)
            return outcome

        for message in messages:
            if self.forwarder.send(message):
                outcome.forwarded += 1
            else:
                outcome.failed += 1
        return outcome
