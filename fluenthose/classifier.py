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
Batch classification from Firehose common attributes.

Firehose forwards the delivery stream's "parameters" as a JSON header:
    X-Amz-Firehose-Common-Attributes: {"commonAttributes": {"X-EVENT-TYPE": "cloudfront"}}

The value stored under the configured key decides how every record of the
batch is decoded. Classification never fails: a missing header, malformed
JSON, a missing key or an unrecognized value all resolve to UNKNOWN.
"""

from typing import Dict, Optional

from loguru import logger
from pydantic import ValidationError

from fluenthose.models import CommonAttributes, EventType


def parse_common_attributes(header_value: Optional[str]) -> Dict[str, str]:
    """
    Parse the common attributes header into a flat string map.

    Args:
        header_value: Raw header value (None when the header is absent)

    Returns:
        Attribute map, empty when the header is absent or malformed
    """
    if not header_value:
        logger.debug("[Classifier] Common attributes header is missing")
        return {}

    try:
        attributes = CommonAttributes.model_validate_json(header_value)
    except ValidationError as e:
        logger.error(f"[Classifier] Failed to parse common attributes: {e.errors()[0]['msg']}")
        return {}

    return {k: v for k, v in (attributes.common_attributes or {}).items() if isinstance(v, str)}


def parse_event_type(header_value: Optional[str], event_type_header_name: str) -> EventType:
    """
    Resolve the event type of a batch.

    Pure function of its two arguments: the same header and key always
    yield the same EventType.

    Args:
        header_value: Raw X-Amz-Firehose-Common-Attributes header value
        event_type_header_name: Key to look up inside the attribute map

    Returns:
        The matching EventType, or EventType.UNKNOWN
    """
    attributes = parse_common_attributes(header_value)
    for key, value in attributes.items():
        logger.debug(f"[Classifier] Common attribute: {key}={value}")

    raw_type = attributes.get(event_type_header_name)
    if raw_type is None:
        logger.debug(f"[Classifier] No '{event_type_header_name}' attribute, event type is unknown")
        return EventType.UNKNOWN

    try:
        event_type = EventType(raw_type)
    except ValueError:
        logger.warning(f"[Classifier] Unsupported event type {raw_type!r}, treating as unknown")
        return EventType.UNKNOWN

    logger.debug(f"[Classifier] Event type is: {event_type.value}")
    return event_type
