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
Fluenthose Configuration.

Centralized storage for all settings, constants, and header names.
Loads environment variables and provides typed access to them.
"""

import os
from typing import Tuple
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


_TRUE_VALUES = ("true", "1", "yes", "enabled", "on")


def _env_flag(var_name: str, default: str) -> bool:
    """Read a boolean environment variable (true/1/yes/enabled/on)."""
    return os.getenv(var_name, default).lower() in _TRUE_VALUES


# ==================================================================================================
# Server Settings
# ==================================================================================================

# Server host (default: 0.0.0.0 - listen on all interfaces)
# Can be overridden by CLI: python main.py --host 127.0.0.1
DEFAULT_SERVER_HOST: str = "0.0.0.0"
SERVER_HOST: str = os.getenv("SERVER_HOST", DEFAULT_SERVER_HOST)

# Server port (default: 8080)
# Can be overridden by CLI: python main.py --port 9000
DEFAULT_SERVER_PORT: int = 8080
SERVER_PORT: int = int(os.getenv("SERVER_PORT", str(DEFAULT_SERVER_PORT)))

# Grace period for in-flight requests on shutdown (seconds).
# After it expires the forwarder connection is closed regardless.
SHUTDOWN_GRACE_PERIOD: int = int(os.getenv("SHUTDOWN_GRACE_PERIOD", "5"))

# ==================================================================================================
# Firehose Delivery Settings
# ==================================================================================================

# Shared secret configured on the Firehose HTTP endpoint destination.
# Required: the gateway refuses to start without it.
ACCESS_KEY: str = os.getenv("ACCESS_KEY", "")

# Header names fixed by the Firehose HTTP endpoint delivery contract
ACCESS_KEY_HEADER_NAME: str = "X-Amz-Firehose-Access-Key"
REQUEST_ID_HEADER_NAME: str = "X-Amz-Firehose-Request-Id"
COMMON_ATTRIBUTES_HEADER_NAME: str = "X-Amz-Firehose-Common-Attributes"

# Key looked up inside the common attributes map to classify a batch.
# Example header: {"commonAttributes": {"X-EVENT-TYPE": "cloudwatchlogs"}}
DEFAULT_EVENT_TYPE_HEADER_NAME: str = "X-EVENT-TYPE"
EVENT_TYPE_HEADER_NAME: str = os.getenv(
    "EVENT_TYPE_HEADER_NAME", DEFAULT_EVENT_TYPE_HEADER_NAME
)

# CloudWatch Logs subscriptions periodically deliver CONTROL_MESSAGE records
# to check that the destination is reachable. They are forwarded like any
# other payload unless this is enabled.
SKIP_CONTROL_MESSAGES: bool = _env_flag("SKIP_CONTROL_MESSAGES", "false")

# ==================================================================================================
# Forward Protocol Settings
# ==================================================================================================

# Address of the Fluent Bit / Fluentd forward input (host:port)
DEFAULT_FORWARD_ADDRESS: str = "127.0.0.1:24224"
FORWARD_ADDRESS: str = os.getenv("FORWARD_ADDRESS", DEFAULT_FORWARD_ADDRESS)

# Socket timeout for connecting and writing to the forward target (seconds)
FORWARD_TIMEOUT: float = float(os.getenv("FORWARD_TIMEOUT", "3.0"))

# Timeout of the TCP dial used by /health/live and /health/ready (seconds)
HEALTH_CHECK_TIMEOUT: float = float(os.getenv("HEALTH_CHECK_TIMEOUT", "0.05"))

# ==================================================================================================
# Logging Settings
# ==================================================================================================

# Log level for the application
# Available levels: TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL
# Default: INFO (recommended for production)
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Emit one JSON object per log line (for log shippers). Disable for
# human-readable colored output during local development.
LOG_JSON: bool = _env_flag("LOG_JSON", "true")

# ==================================================================================================
# Application Version
# ==================================================================================================

APP_VERSION: str = "1.0.0"
APP_TITLE: str = "Fluenthose"
APP_DESCRIPTION: str = "Receive Kinesis Data Firehose events over HTTP and forward them to Fluent Bit"


def parse_forward_address(address: str) -> Tuple[str, int]:
    """
    Split a forward address into host and port.

    Args:
        address: Address in "host:port" form. IPv6 hosts may be bracketed
                 ("[::1]:24224").

    Returns:
        Tuple of (host, port)

    Raises:
        ValueError: If the address has no port, an empty host, or a port
                    outside 1-65535
    """
    host, sep, port_text = address.strip().rpartition(":")
    if not sep or not host:
        raise ValueError(f"invalid forward address {address!r}: expected host:port")

    host = host.strip("[]")
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid forward port in {address!r}") from None

    if not 0 < port < 65536:
        raise ValueError(f"forward port out of range in {address!r}")
    return host, port
