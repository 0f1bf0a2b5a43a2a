# -*- coding: utf-8 -*-

"""
Shared fixtures for Fluenthose tests.

The forward-protocol transport is replaced by FakeFluentSender, which keeps
every emitted message in memory and can be told to fail specific attempts.
Only the loopback tests in tests/unit/test_forwarder.py drive the real
FluentSender.
"""

import base64
import gzip
import json
import threading
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from fluenthose.config import (
    ACCESS_KEY_HEADER_NAME,
    COMMON_ATTRIBUTES_HEADER_NAME,
    REQUEST_ID_HEADER_NAME,
)
from fluenthose.forwarder import Forwarder


TEST_ACCESS_KEY = "testToken"
TEST_EVENT_TYPE_HEADER_NAME = "X-EVENT-TYPE"


class FakeFluentSender:
    """
    In-memory stand-in for fluent.sender.FluentSender.

    Mirrors the real sender's replay buffer: a failed message is kept in
    `pendings` and delivered in front of the next one unless it is emptied.
    """

    def __init__(self, tag, host="localhost", port=24224, timeout=3.0, **kwargs):
        self.tag = tag
        self.host = host
        self.port = port
        self.timeout = timeout
        self.kwargs = kwargs
        self.lock = threading.Lock()
        self.emitted: List[tuple] = []
        self.pendings: Optional[List[tuple]] = None
        self.attempts = 0
        self.fail_on_attempts: set = set()
        self.refuse_connect = False
        self.sessions_opened = 0
        self.last_error: Optional[Exception] = None
        self.closed = False

    def _reconnect(self):
        if self.refuse_connect:
            raise ConnectionRefusedError("connection refused")
        self.sessions_opened += 1

    def emit_with_time(self, label, timestamp, data):
        with self.lock:
            attempt = self.attempts
            self.attempts += 1
            packets = (self.pendings or []) + [(label, timestamp, data)]
            if attempt in self.fail_on_attempts:
                self.last_error = ConnectionResetError("connection reset by peer")
                self.pendings = packets
                return False
            self.emitted.extend(packets)
            self.pendings = None
            return True

    def clear_last_error(self):
        self.last_error = None

    def close(self):
        self.closed = True


@pytest.fixture
def fake_sender():
    """FakeFluentSender instance used by the forwarder fixture."""
    return FakeFluentSender(None)


@pytest.fixture
def forwarder(fake_sender):
    """Connected Forwarder backed by fake_sender."""
    fwd = Forwarder("127.0.0.1", 24224, sender_factory=lambda *args, **kwargs: fake_sender)
    fwd.connect()
    yield fwd
    fwd.disconnect()


@pytest.fixture
def app(forwarder):
    """Application wired to the fake forwarder."""
    from main import create_app

    return create_app(forwarder, TEST_ACCESS_KEY, TEST_EVENT_TYPE_HEADER_NAME)


@pytest.fixture
def test_client(app):
    """
    TestClient without the lifespan (the forwarder is already connected).

    Server exceptions are returned as responses so 500 handling can be
    asserted.
    """
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def valid_access_key():
    return TEST_ACCESS_KEY


@pytest.fixture
def firehose_headers():
    """Factory for Firehose delivery headers."""

    def _build(
        request_id: Optional[str] = "test-request-id",
        event_type: Optional[str] = None,
        access_key: Optional[str] = TEST_ACCESS_KEY,
        common_attributes: Optional[str] = None,
    ) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if access_key is not None:
            headers[ACCESS_KEY_HEADER_NAME] = access_key
        if request_id is not None:
            headers[REQUEST_ID_HEADER_NAME] = request_id
        if common_attributes is not None:
            headers[COMMON_ATTRIBUTES_HEADER_NAME] = common_attributes
        elif event_type is not None:
            headers[COMMON_ATTRIBUTES_HEADER_NAME] = json.dumps(
                {"commonAttributes": {TEST_EVENT_TYPE_HEADER_NAME: event_type}}
            )
        return headers

    return _build


@pytest.fixture
def b64():
    """Base64-encode text or bytes into a str."""

    def _encode(value) -> str:
        if isinstance(value, str):
            value = value.encode("utf-8")
        return base64.b64encode(value).decode("ascii")

    return _encode


@pytest.fixture
def cloudwatch_record_data():
    """Factory producing base64(gzip(json)) CloudWatch Logs subscription payloads."""

    def _build(
        log_events: List[Dict[str, Any]],
        message_type: str = "DATA_MESSAGE",
        owner: str = "123456789012",
        log_group: str = "/aws/lambda/orders",
        log_stream: str = "2024/01/01/[$LATEST]abcdef",
    ) -> str:
        payload = {
            "messageType": message_type,
            "owner": owner,
            "logGroup": log_group,
            "logStream": log_stream,
            "subscriptionFilters": ["orders-to-firehose"],
            "logEvents": log_events,
        }
        compressed = gzip.compress(json.dumps(payload).encode("utf-8"))
        return base64.b64encode(compressed).decode("ascii")

    return _build
