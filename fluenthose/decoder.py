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
Record payload decoding.

Every Firehose record carries base64 text. Depending on the event type the
decoded bytes are either:
- cloudwatchlogs: a gzip-compressed JSON subscription payload
- cloudfront: an opaque real-time log line, forwarded as text

Failures raise RecordDecodeError with a short machine-readable reason so the
handler can skip the record and report why.
"""

import base64
import binascii
import gzip
import zlib

from loguru import logger
from pydantic import ValidationError

from fluenthose.models import CloudWatchLogsEvent


class RecordDecodeError(Exception):
    """
    A single record could not be decoded.

    Attributes:
        reason: Skip reason (invalid_base64, invalid_gzip, invalid_json)
    """

    def __init__(self, reason: str, detail: str):
        super().__init__(f"{reason}: {detail}")
        self.reason = reason
        self.detail = detail


def decode_record_data(data: str) -> bytes:
    """
    Base64-decode a record's data field.

    Args:
        data: Base64 text as delivered by Firehose

    Returns:
        Decoded bytes

    Raises:
        RecordDecodeError: If the text is not valid base64
    """
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise RecordDecodeError("invalid_base64", str(e)) from e


def decode_cloudwatch_logs(payload: bytes) -> CloudWatchLogsEvent:
    """
    Gunzip and parse a CloudWatch Logs subscription payload.

    Args:
        payload: Base64-decoded record bytes

    Returns:
        Parsed CloudWatchLogsEvent

    Raises:
        RecordDecodeError: If the bytes are not gzip or not a valid payload
    """
    try:
        unzipped = gzip.decompress(payload)
    except (OSError, EOFError, zlib.error) as e:
        raise RecordDecodeError("invalid_gzip", str(e)) from e

    try:
        event = CloudWatchLogsEvent.model_validate_json(unzipped)
    except ValidationError as e:
        raise RecordDecodeError("invalid_json", str(e)) from e

    logger.debug(
        f"[Decoder] CloudWatch logs record: group={event.log_group} "
        f"stream={event.log_stream} type={event.message_type} events={len(event.log_events)}"
    )
    return event


def decode_cloudfront(payload: bytes) -> str:
    """
    Turn a CloudFront real-time log record into text.

    Invalid UTF-8 sequences are replaced rather than rejected; the payload
    is opaque to the gateway.
    """
    return payload.decode("utf-8", errors="replace")
