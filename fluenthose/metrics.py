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
Prometheus metrics for Fluenthose.

Forward outcomes are the only thing callers cannot see in the HTTP
response, so they are exposed here, keyed by event type and status.
"""

from typing import Tuple

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, generate_latest


# Registry served on /metrics
REGISTRY = CollectorRegistry()

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

# Forwarded messages by event type and outcome
events_total = Counter(
    name="fluenthose_events_total",
    documentation="Number of events processed by type",
    labelnames=["type", "status"],  # status: success, error
    registry=REGISTRY,
)

# Records dropped before forwarding (bad base64/gzip/json, control messages)
records_skipped_total = Counter(
    name="fluenthose_records_skipped_total",
    documentation="Number of records skipped before forwarding, by type and reason",
    labelnames=["type", "reason"],
    registry=REGISTRY,
)


def record_forward(event_type: str, success: bool) -> None:
    """Count one forward attempt."""
    events_total.labels(type=event_type, status=STATUS_SUCCESS if success else STATUS_ERROR).inc()


def record_skip(event_type: str, reason: str) -> None:
    """Count one record dropped before forwarding."""
    records_skipped_total.labels(type=event_type, reason=reason).inc()


def get_event_count(event_type: str, status: str) -> float:
    """Current value of fluenthose_events_total for one label pair."""
    value = REGISTRY.get_sample_value(
        "fluenthose_events_total", {"type": event_type, "status": status}
    )
    return value or 0.0


def get_skip_count(event_type: str, reason: str) -> float:
    """Current value of fluenthose_records_skipped_total for one label pair."""
    value = REGISTRY.get_sample_value(
        "fluenthose_records_skipped_total", {"type": event_type, "reason": reason}
    )
    return value or 0.0


def render_metrics() -> Tuple[bytes, str]:
    """
    Render all metrics in the Prometheus text format.

    Returns:
        Tuple of (body, content type)
    """
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
