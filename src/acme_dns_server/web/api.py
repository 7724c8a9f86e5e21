"""
Control Plane HTTP API

Provides the HTTP endpoints the reverse proxy calls:
- challenge hooks on any path, parameters from query string, form or JSON body
- a health endpoint with record and query statistics
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from aiohttp import web
from aiohttp.web import Request, Response

from ..control.hooks import ControlPlane
from ..core.responder import QueryResponder
from ..core.store import RecordStore
from ..dns_logging import get_logger

logger = get_logger("control_api")

DEFAULT_BODY_TIMEOUT = 10.0


def setup_api_routes(
    app: web.Application,
    control_plane: ControlPlane,
    responder: Optional[QueryResponder] = None,
    body_timeout: float = DEFAULT_BODY_TIMEOUT,
) -> "APIHandler":
    """Setup API routes."""
    api = APIHandler(control_plane, responder, body_timeout)

    app.router.add_get("/health", api.health_check)
    # Hook calls may arrive on whatever location the proxy forwards
    app.router.add_route("*", "/{path:.*}", api.handle_hook)

    return api


class APIHandler:
    """Handles all API endpoints."""

    def __init__(
        self,
        control_plane: ControlPlane,
        responder: Optional[QueryResponder] = None,
        body_timeout: float = DEFAULT_BODY_TIMEOUT,
    ):
        self.control_plane = control_plane
        self.responder = responder
        self.body_timeout = body_timeout

    @property
    def store(self) -> RecordStore:
        return self.control_plane.store

    async def health_check(self, request: Request) -> Response:
        """Report liveness with record and query statistics."""
        health: Dict[str, Any] = {
            "status": "healthy",
            "records": len(self.store),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if self.responder is not None:
            health["dns"] = self.responder.get_stats()

        return web.json_response(health)

    async def handle_hook(self, request: Request) -> Response:
        """Apply one challenge hook call."""
        try:
            params = await asyncio.wait_for(
                self._collect_params(request), timeout=self.body_timeout
            )
        except asyncio.TimeoutError:
            return web.json_response(
                {"status": "error", "message": "Timed out reading request body"},
                status=408,
            )
        except ValueError as ex:
            return web.json_response(
                {"status": "error", "message": f"Error parsing request: {ex}"},
                status=400,
            )

        result = self.control_plane.handle_params(params)
        return web.json_response(result.to_dict(), status=result.status)

    async def _collect_params(self, request: Request) -> Dict[str, Any]:
        """Merge query string, then form or JSON body, later sources winning.

        Raises:
            ValueError: If the body cannot be parsed
        """
        params: Dict[str, Any] = dict(request.query)

        if not request.body_exists:
            return params

        if request.content_type == "application/json":
            try:
                body = await request.json()
            except json.JSONDecodeError as ex:
                raise ValueError(f"invalid JSON body: {ex}") from ex
            if not isinstance(body, dict):
                raise ValueError("JSON body must be an object")
            params.update(body)
        elif request.content_type in (
            "application/x-www-form-urlencoded",
            "multipart/form-data",
        ):
            form = await request.post()
            params.update(
                (key, value) for key, value in form.items() if isinstance(value, str)
            )

        return params
