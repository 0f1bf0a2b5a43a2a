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
Fluenthose - Kinesis Data Firehose to Fluent Bit gateway.

Receives Firehose HTTP endpoint deliveries and forwards every record as a
Fluent forward-protocol message.

Modules:
    - config: Configuration and constants
    - models: Pydantic models for the Firehose contract, internal results
    - exceptions: Firehose error envelope and exception handlers
    - classifier: Event type resolution from common attributes
    - decoder: base64 / gzip / JSON record decoding
    - transformer: Record -> forward message mapping
    - forwarder: Shared forward-protocol client
    - metrics: Prometheus counters
    - handler: Delivery request handling
    - routes: FastAPI routes
    - health: Liveness/readiness checks
"""

# Version is imported from config.py, the single source of truth
from fluenthose.config import APP_VERSION as __version__

# Main components for convenient import
from fluenthose.forwarder import Forwarder, ForwarderConnectionError
from fluenthose.handler import FirehoseHandler
from fluenthose.routes import router

# Models
from fluenthose.models import (
    EventType,
    FirehoseRecord,
    FirehoseRequestBody,
    FirehoseResponseBody,
    CloudWatchLogsEvent,
    OutboundMessage,
    RecordOutcome,
    BatchOutcome,
)

# Pipeline
from fluenthose.classifier import parse_event_type
from fluenthose.decoder import RecordDecodeError, decode_record_data, decode_cloudwatch_logs
from fluenthose.transformer import transform_record

# Exceptions
from fluenthose.exceptions import FirehoseAPIError, ERR_AUTH, ERR_BAD_REQUEST

__all__ = [
    # Version
    "__version__",

    # Main classes
    "Forwarder",
    "ForwarderConnectionError",
    "FirehoseHandler",
    "router",

    # Models
    "EventType",
    "FirehoseRecord",
    "FirehoseRequestBody",
    "FirehoseResponseBody",
    "CloudWatchLogsEvent",
    "OutboundMessage",
    "RecordOutcome",
    "BatchOutcome",

    # Pipeline
    "parse_event_type",
    "RecordDecodeError",
    "decode_record_data",
    "decode_cloudwatch_logs",
    "transform_record",

    # Exceptions
    "FirehoseAPIError",
    "ERR_AUTH",
    "ERR_BAD_REQUEST",
]
