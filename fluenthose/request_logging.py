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

"""Access logging for the delivery endpoint."""

import time
from typing import Iterable

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and latency of each request.

    Health and scrape paths are excluded to keep the log readable.
    """

    def __init__(self, app, exclude_paths: Iterable[str] = ("/metrics", "/health", "/health/live", "/health/ready")):
        super().__init__(app)
        self.exclude_paths = frozenset(exclude_paths)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in self.exclude_paths:
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        logger.debug(f"[HTTP] Started {request.method} {path} from {client}")
        start_time = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"[HTTP] {request.method} {path} -> {response.status_code} in {elapsed_ms:.2f}ms ({client})"
        )
        return response
