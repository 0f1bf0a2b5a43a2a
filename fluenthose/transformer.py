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
Record to forward-message transformation.

Mapping per event type:
  - cloudfront: 1 record -> 1 message, event time = now
  - cloudwatchlogs: 1 record -> 1 message per logEvent, in delivered order,
    event time = logEvent.timestamp
  - unknown: nothing is produced

The outer Firehose request id is attached to every CloudWatch message so a
downstream line can be traced back to its delivery.
"""

import time
from typing import Callable, List, Optional

from loguru import logger

from fluenthose.config import SKIP_CONTROL_MESSAGES
from fluenthose.decoder import decode_cloudfront, decode_cloudwatch_logs, decode_record_data
from fluenthose.models import CloudWatchLogsEvent, EventType, OutboundMessage


CONTROL_MESSAGE_TYPE = "CONTROL_MESSAGE"


class SkipRecord(Exception):
    """Raised when a decoded record is deliberately not forwarded."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def build_cloudfront_message(text: str, now: Optional[Callable[[], float]] = None) -> OutboundMessage:
    """
    Build the single message for a CloudFront record.

    Args:
        text: Decoded record text
        now: Clock returning Unix seconds (defaults to time.time)

    Returns:
        OutboundMessage tagged "cloudfront"
    """
    clock = now or time.time
    return OutboundMessage(
        tag=EventType.CLOUDFRONT.value,
        timestamp=int(clock()),
        record={
            "data": text,
            "type": EventType.CLOUDFRONT.value,
        },
    )


def build_cloudwatch_messages(event: CloudWatchLogsEvent, request_id: str) -> List[OutboundMessage]:
    """
    Expand a CloudWatch Logs payload into one message per log event.

    Args:
        event: Decoded subscription payload
        request_id: Firehose request id of the delivery

    Returns:
        Messages in the order of event.log_events
    """
    messages = []
    for log_event in event.log_events:
        messages.append(
            OutboundMessage(
                tag=EventType.CLOUDWATCHLOGS.value,
                # CloudWatch timestamps are epoch milliseconds
                timestamp=log_event.timestamp // 1000,
                record={
                    "owner": event.owner,
                    "logGroupName": event.log_group,
                    "logStreamName": event.log_stream,
                    "message": log_event.message,
                    "timestamp": log_event.timestamp,
                    "requestID": request_id,
                    "type": EventType.CLOUDWATCHLOGS.value,
                },
            )
        )
    return messages


def transform_record(
    event_type: EventType,
    data: str,
    request_id: str,
    skip_control_messages: bool = SKIP_CONTROL_MESSAGES,
) -> List[OutboundMessage]:
    """
    Decode one record and build its outbound messages.

    Args:
        event_type: Event type of the batch
        data: Raw base64 record data
        request_id: Firehose request id of the delivery
        skip_control_messages: Drop CloudWatch CONTROL_MESSAGE payloads

    Returns:
        Messages to forward, in order

    Raises:
        SkipRecord: If the record is intentionally dropped
        RecordDecodeError: If the record cannot be decoded
    """
    if event_type is EventType.UNKNOWN:
        raise SkipRecord("unknown_event_type")

    if event_type is EventType.CLOUDFRONT:
        text = decode_cloudfront(decode_record_data(data))
        logger.debug(f"[Transformer] CloudFront record decoded: {text}")
        return [build_cloudfront_message(text)]

    if event_type is EventType.CLOUDWATCHLOGS:
        event = decode_cloudwatch_logs(decode_record_data(data))
        if skip_control_messages and event.message_type == CONTROL_MESSAGE_TYPE:
            raise SkipRecord("control_message")
        return build_cloudwatch_messages(event, request_id)

    raise ValueError(f"Unhandled event type: {event_type!r}")
