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
FastAPI routes for Fluenthose.

Contains:
- / - Firehose HTTP endpoint delivery
- /metrics - Prometheus exposition
"""

from fastapi import APIRouter, Request, Response

from fluenthose.handler import FirehoseHandler
from fluenthose.metrics import render_metrics


router = APIRouter()


# Every method is routed to the handler so that a wrong method is still
# answered with a Firehose envelope (400) instead of a bare 405.
@router.api_route("/", methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def firehose_delivery(request: Request):
    """Receive one Kinesis Data Firehose delivery."""
    handler: FirehoseHandler = request.app.state.firehose_handler
    return await handler.handle(request)


@router.get("/metrics")
async def metrics():
    """Forwarding counters in the Prometheus text format."""
    body, content_type = render_metrics()
    return Response(content=body, media_type=content_type)
