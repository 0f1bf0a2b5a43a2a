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

Entry point: parses CLI arguments, sets up logging, connects the forwarder
and serves the FastAPI application with uvicorn.

Usage:
    ACCESS_KEY=secret python main.py
    ACCESS_KEY=secret python main.py --port 9000 --forward fluent-bit:24224
    ACCESS_KEY=secret python main.py -H 127.0.0.1 -p 8080 -e X-EVENT-TYPE --log-level DEBUG
"""

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional, Tuple

import uvicorn
from fastapi import FastAPI
from loguru import logger

from fluenthose.config import (
    ACCESS_KEY,
    APP_DESCRIPTION,
    APP_TITLE,
    APP_VERSION,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    EVENT_TYPE_HEADER_NAME,
    FORWARD_ADDRESS,
    LOG_JSON,
    LOG_LEVEL,
    SERVER_HOST,
    SERVER_PORT,
    SHUTDOWN_GRACE_PERIOD,
    SKIP_CONTROL_MESSAGES,
)
from fluenthose.exceptions import (
    FirehoseAPIError,
    firehose_exception_handler,
    unhandled_exception_handler,
)
from fluenthose.forwarder import Forwarder, ForwarderConnectionError
from fluenthose.handler import FirehoseHandler
from fluenthose.health import router as health_router
from fluenthose.request_logging import RequestLoggingMiddleware
from fluenthose.routes import router


# ==================================================================================================
# Logging
# ==================================================================================================


class InterceptHandler(logging.Handler):
    """Routes stdlib logging (uvicorn, asyncio) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = LOG_LEVEL, json_logs: bool = LOG_JSON) -> None:
    """
    Configure loguru as the only log sink.

    Args:
        level: Minimum log level (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Serialize each record as one JSON line
    """
    logger.remove()
    if json_logs:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=level,
            colorize=True,
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [InterceptHandler()]
        uvicorn_logger.propagate = False


# ==================================================================================================
# Application
# ==================================================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the forwarder before serving and close it on shutdown."""
    forwarder: Forwarder = app.state.forwarder

    logger.info("Starting Fluenthose...")
    try:
        await asyncio.to_thread(forwarder.connect)
    except ForwarderConnectionError as e:
        logger.error(f"{e}")
        raise

    yield

    logger.info("Shutting down Fluenthose...")
    forwarder.disconnect()
    logger.info("Fluenthose exited properly")


def create_app(
    forwarder: Forwarder,
    access_key: str,
    event_type_header_name: str = EVENT_TYPE_HEADER_NAME,
    skip_control_messages: bool = SKIP_CONTROL_MESSAGES,
) -> FastAPI:
    """
    Build the FastAPI application around a forwarder.

    Args:
        forwarder: Shared forward-protocol client (connected by the lifespan)
        access_key: Shared secret expected in X-Amz-Firehose-Access-Key
        event_type_header_name: Common attribute key holding the event type
        skip_control_messages: Drop CloudWatch CONTROL_MESSAGE records

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.state.forwarder = forwarder
    app.state.firehose_handler = FirehoseHandler(
        forwarder,
        access_key,
        event_type_header_name,
        skip_control_messages=skip_control_messages,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(FirehoseAPIError, firehose_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(router)
    app.include_router(health_router)
    return app


# ==================================================================================================
# CLI
# ==================================================================================================


def parse_cli_args() -> argparse.Namespace:
    """
    Parse command line arguments.

    Options left unset are None, meaning "use the environment or default".
    """
    parser = argparse.ArgumentParser(
        prog="fluenthose",
        description="Receive Kinesis Data Firehose events over HTTP and forward them to Fluent Bit",
        epilog="ACCESS_KEY must be set in the environment (or .env file).",
    )
    parser.add_argument(
        "-H", "--host",
        type=str,
        default=None,
        help=f"Listen host (env: SERVER_HOST, default: {DEFAULT_SERVER_HOST})",
    )
    parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help=f"Listen port (env: SERVER_PORT, default: {DEFAULT_SERVER_PORT})",
    )
    parser.add_argument(
        "-f", "--forward",
        type=str,
        default=None,
        help="Forward address host:port (env: FORWARD_ADDRESS, default: 127.0.0.1:24224)",
    )
    parser.add_argument(
        "-e", "--event-type-header-name",
        type=str,
        default=None,
        help="Common attribute holding the event type (env: EVENT_TYPE_HEADER_NAME, default: X-EVENT-TYPE)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (env: LOG_LEVEL, default: INFO)",
    )
    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )
    return parser.parse_args()


def resolve_server_config(args: argparse.Namespace) -> Tuple[str, int]:
    """
    Resolve listen host and port.

    Priority: CLI argument > environment variable > default.
    """
    host = args.host if args.host is not None else (SERVER_HOST or DEFAULT_SERVER_HOST)
    port = args.port if args.port is not None else (SERVER_PORT or DEFAULT_SERVER_PORT)
    return host, port


def resolve_forward_config(args: argparse.Namespace) -> Tuple[str, str]:
    """
    Resolve forward address and event-type attribute name.

    Priority: CLI argument > environment variable > default.
    """
    forward_address = args.forward if args.forward is not None else FORWARD_ADDRESS
    event_type_header_name = (
        args.event_type_header_name
        if args.event_type_header_name is not None
        else EVENT_TYPE_HEADER_NAME
    )
    return forward_address, event_type_header_name


def validate_configuration() -> None:
    """Exit with code 1 when required settings are missing."""
    if not ACCESS_KEY:
        logger.error("ACCESS_KEY environment variable is required")
        sys.exit(1)


def build_forwarder(forward_address: str) -> Forwarder:
    """Create the forwarder, exiting with code 1 on a malformed address."""
    try:
        return Forwarder.from_address(forward_address)
    except ValueError as e:
        logger.error(f"Failed to parse forward address: {e}")
        sys.exit(1)


def print_startup_banner(host: str, port: int, forward_address: Optional[str] = None) -> None:
    """Print listen and forward addresses plus the useful URLs."""
    display_host = "localhost" if host in ("0.0.0.0", "::") else host
    base_url = f"http://{display_host}:{port}"

    print()
    print(f"  {APP_TITLE} v{APP_VERSION}")
    print()
    print(f"  Delivery endpoint: {base_url}/")
    print(f"  Health:            {base_url}/health")
    print(f"  Metrics:           {base_url}/metrics")
    print(f"  API docs:          {base_url}/docs")
    if forward_address:
        print(f"  Forwarding to:     {forward_address}")
    print()


def main() -> None:
    args = parse_cli_args()
    setup_logging(level=(args.log_level or LOG_LEVEL).upper())
    validate_configuration()

    host, port = resolve_server_config(args)
    forward_address, event_type_header_name = resolve_forward_config(args)
    forwarder = build_forwarder(forward_address)

    app = create_app(forwarder, ACCESS_KEY, event_type_header_name)

    print_startup_banner(host, port, forward_address)
    logger.info(f"Fluenthose server listening on {host}:{port}")
    logger.debug(f"Forwarding to {forward_address}, event type attribute: {event_type_header_name}")

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_config=None,
        timeout_graceful_shutdown=SHUTDOWN_GRACE_PERIOD,
    )


if __name__ == "__main__":
    main()
