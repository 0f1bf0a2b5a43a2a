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
Health check endpoints.

Liveness and readiness both dial the forward target directly instead of
going through the shared forwarder session, so a health check never competes with
delivery traffic for the connection.
"""

import asyncio
from typing import Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

from fluenthose.config import APP_VERSION, HEALTH_CHECK_TIMEOUT
from fluenthose.forwarder import tcp_dial


router = APIRouter(prefix="/health", tags=["health"])


async def check_forwarder(host: str, port: int, timeout: float = HEALTH_CHECK_TIMEOUT) -> Dict[str, str]:
    """
    Dial the forward target.

    Returns:
        {"forwarder": "OK"} or {"forwarder": "<error>"}
    """
    try:
        await asyncio.to_thread(tcp_dial, host, port, timeout)
    except OSError as e:
        logger.warning(f"[Health] Forwarder {host}:{port} is unreachable: {e}")
        return {"forwarder": str(e) or type(e).__name__}
    return {"forwarder": "OK"}


async def _check_response(request: Request) -> JSONResponse:
    forwarder = request.app.state.forwarder
    checks = await check_forwarder(forwarder.host, forwarder.port)
    healthy = all(result == "OK" for result in checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "ok" if healthy else "unavailable", "checks": checks},
    )


@router.get("")
async def health(request: Request):
    """Summary of the gateway and its forwarder connection."""
    forwarder = request.app.state.forwarder
    return {
        "status": "healthy",
        "version": APP_VERSION,
        "forwarder": forwarder.get_health_status(),
    }


@router.get("/live")
async def liveness(request: Request) -> JSONResponse:
    """Liveness check."""
    return await _check_response(request)


@router.get("/ready")
async def readiness(request: Request) -> JSONResponse:
    """Readiness check."""
    return await _check_response(request)
