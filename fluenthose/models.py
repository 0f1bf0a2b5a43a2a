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
Data models for Fluenthose.

Pydantic models describe the Firehose HTTP endpoint delivery contract
(request and response bodies) and the CloudWatch Logs subscription payload.
Plain dataclasses describe what the gateway produces internally: outbound
forward messages and per-record processing outcomes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Closed set of event schemas a delivery batch can carry."""

    CLOUDWATCHLOGS = "cloudwatchlogs"
    CLOUDFRONT = "cloudfront"
    UNKNOWN = "unknown"


# ==================================================================================================
# Firehose HTTP endpoint delivery contract
# ==================================================================================================


class FirehoseRecord(BaseModel):
    """A single record of a delivery batch. `data` is base64 text."""

    model_config = ConfigDict(frozen=True)

    data: str


class FirehoseRequestBody(BaseModel):
    """
    Body of a Firehose delivery request.

    Example:
        {"requestId": "ed4acda5-...", "timestamp": 1578090901599,
         "records": [{"data": "aGVsbG8="}]}
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    request_id: Optional[str] = Field(None, alias="requestId")
    timestamp: Optional[int] = None
    records: List[FirehoseRecord] = Field(default_factory=list)


class FirehoseResponseBody(BaseModel):
    """
    Body of every response to Firehose, successful or not.

    Empty fields are left out of the JSON (see `to_json_dict`).
    """

    model_config = ConfigDict(populate_by_name=True)

    request_id: Optional[str] = Field(None, alias="requestId")
    timestamp: int
    error_message: Optional[str] = Field(None, alias="errorMessage")

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize with wire field names, dropping unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CommonAttributes(BaseModel):
    """Value of the X-Amz-Firehose-Common-Attributes header."""

    # Values of other JSON types are dropped by the classifier
    common_attributes: Optional[Dict[str, Any]] = Field(None, alias="commonAttributes")


# ==================================================================================================
# CloudWatch Logs subscription payload
# ==================================================================================================


class CloudWatchLogEvent(BaseModel):
    """One log line inside a CloudWatch Logs subscription payload."""

    id: str = ""
    message: str = ""
    timestamp: int = 0


class CloudWatchLogsEvent(BaseModel):
    """Decoded (gunzipped) CloudWatch Logs subscription payload."""

    model_config = ConfigDict(populate_by_name=True)

    owner: str = ""
    log_group: str = Field("", alias="logGroup")
    log_stream: str = Field("", alias="logStream")
    message_type: str = Field("", alias="messageType")
    subscription_filters: List[str] = Field(default_factory=list, alias="subscriptionFilters")
    log_events: List[CloudWatchLogEvent] = Field(default_factory=list, alias="logEvents")


# ==================================================================================================
# Internal results
# ==================================================================================================


@dataclass(frozen=True)
class OutboundMessage:
    """
    A message sent over the forward protocol.

    Attributes:
        tag: Fluent tag, e.g. "cloudwatchlogs"
        timestamp: Event time in Unix seconds
        record: Flat attribute map
        options: Forward protocol options (always empty)
    """

    tag: str
    timestamp: int
    record: Dict[str, Any]
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RecordOutcome:
    """
    Result of processing one record of a batch.

    Attributes:
        index: Position of the record in the batch
        event_type: Event type the record was processed as
        forwarded: Number of messages sent successfully
        failed: Number of messages the forwarder could not send
        skip_reason: Why the record produced no messages (None if it did)
    """

    index: int
    event_type: EventType
    forwarded: int = 0
    failed: int = 0
    skip_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None


@dataclass
class BatchOutcome:
    """Per-record outcomes of one delivery request."""

    request_id: str
    event_type: EventType
    records: List[RecordOutcome] = field(default_factory=list)

    @property
    def forwarded(self) -> int:
        return sum(outcome.forwarded for outcome in self.records)

    @property
    def failed(self) -> int:
        return sum(outcome.failed for outcome in self.records)

    @property
    def skipped(self) -> int:
        return sum(1 for outcome in self.records if outcome.skipped)
