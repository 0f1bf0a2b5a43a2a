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
Fluent forward-protocol adapter.

Owns the single outbound connection to Fluent Bit / Fluentd shared by every
request. The transport is fluent-logger's FluentSender; send() may be called
from several worker threads at once.

Failed sends are counted and logged, never retried. FluentSender keeps a
failed payload in its `pendings` buffer and prepends it to the next write;
the forwarder empties that buffer after every failure so the payload is
dropped instead of being replayed in front of the next message.
"""

import socket
import threading
from typing import Any, Callable, Dict, Optional

from fluent.sender import FluentSender
from loguru import logger

from fluenthose.config import FORWARD_TIMEOUT, parse_forward_address
from fluenthose.metrics import record_forward
from fluenthose.models import OutboundMessage


class ForwarderConnectionError(Exception):
    """The forward target could not be reached at startup."""


def tcp_dial(host: str, port: int, timeout: float) -> None:
    """
    Open and immediately close a TCP connection.

    Raises:
        OSError: If the connection cannot be established within timeout
    """
    with socket.create_connection((host, port), timeout=timeout):
        pass


def _drop_pending(pending: bytes) -> None:
    logger.debug(f"[Forwarder] Dropped {len(pending)} unsent bytes")


def _open_session(sender: Any) -> None:
    """Open the sender's socket now instead of on the first emit."""
    with sender.lock:
        sender._reconnect()


def _discard_pending(sender: Any) -> None:
    """Empty the sender's replay buffer."""
    with sender.lock:
        pending = sender.pendings
        sender.pendings = None
    if pending:
        _drop_pending(pending)


class Forwarder:
    """
    Shared forward-protocol client.

    Lifecycle: connect() once at startup, send() from any request,
    disconnect() at shutdown.

    Example:
        >>> forwarder = Forwarder.from_address("127.0.0.1:24224")
        >>> forwarder.connect()
        >>> forwarder.send(OutboundMessage(tag="cloudfront", timestamp=1607374321, record={...}))
        True
        >>> forwarder.disconnect()
    """

    def __init__(
        self,
        host: str,
        port: int,
        timeout: float = FORWARD_TIMEOUT,
        sender_factory: Callable[..., Any] = FluentSender,
    ):
        """
        Args:
            host: Forward target host
            port: Forward target port
            timeout: Socket timeout for connect and write (seconds)
            sender_factory: Builds the underlying sender (FluentSender signature)
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self._sender_factory = sender_factory
        self._sender: Optional[Any] = None
        # Held across a write and the buffer cleanup that follows a failure
        self._send_lock = threading.Lock()

    @classmethod
    def from_address(cls, address: str, timeout: float = FORWARD_TIMEOUT) -> "Forwarder":
        """Create a forwarder from a "host:port" address."""
        host, port = parse_forward_address(address)
        return cls(host, port, timeout=timeout)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def connected(self) -> bool:
        return self._sender is not None

    def connect(self) -> None:
        """
        Establish the shared session.

        The sender's socket is opened here, so the gateway never starts
        serving with a dead forwarder and the first delivery reuses the
        connection checked at startup.

        Raises:
            ForwarderConnectionError: If the target is unreachable
        """
        if self._sender is not None:
            return

        logger.info(f"[Forwarder] Connecting to fluent forwarder at {self.address}")
        sender = self._sender_factory(
            None,
            host=self.host,
            port=self.port,
            timeout=self.timeout,
            bufmax=0,
            buffer_overflow_handler=_drop_pending,
        )
        try:
            _open_session(sender)
        except OSError as e:
            sender.close()
            raise ForwarderConnectionError(
                f"error connecting to fluent forwarder at {self.address}: {e}"
            ) from e

        self._sender = sender
        logger.info(f"[Forwarder] Connected to fluent forwarder at {self.address}")

    def send(self, message: OutboundMessage) -> bool:
        """
        Send one message.

        Args:
            message: Message to forward; message.tag is also the metric type

        Returns:
            True on success, False on failure (already logged and counted)
        """
        sender = self._sender
        if sender is None:
            logger.error(f"[Forwarder] Cannot send {message.tag} message: forwarder is not connected")
            record_forward(message.tag, success=False)
            return False

        with self._send_lock:
            sent = sender.emit_with_time(message.tag, message.timestamp, message.record)
            if not sent:
                error = sender.last_error
                sender.clear_last_error()
                _discard_pending(sender)

        if not sent:
            logger.error(f"[Forwarder] Failed to send {message.tag} message: {error}")
            record_forward(message.tag, success=False)
            return False

        logger.debug(f"[Forwarder] 1 {message.tag} record sent to fluent forwarder")
        record_forward(message.tag, success=True)
        return True

    def disconnect(self) -> None:
        """Close the shared session. Safe to call more than once."""
        if self._sender is None:
            return
        try:
            self._sender.close()
        except OSError as e:
            logger.warning(f"[Forwarder] Error while closing forwarder connection: {e}")
        finally:
            self._sender = None
        logger.info("[Forwarder] Disconnected from fluent forwarder")

    def get_health_status(self) -> Dict[str, Any]:
        """Connection summary for the /health endpoint."""
        return {
            "address": self.address,
            "connected": self.connected,
        }
