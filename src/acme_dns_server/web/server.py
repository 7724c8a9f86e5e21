"""
Control Plane Web Server

This module provides the HTTP server, built on aiohttp, that carries challenge
hook calls from the reverse proxy to the control plane. One application and
runner are shared by every configured control address; each address gets its
own site.
"""

import asyncio
from typing import List, Optional, Tuple

from aiohttp import web
from aiohttp.web import Application

from ..control.hooks import ControlPlane
from ..core.responder import QueryResponder
from ..dns_logging import get_logger
from .api import setup_api_routes

DEFAULT_IO_TIMEOUT = 10.0


class ControlServer:
    """Control plane HTTP server"""

    def __init__(
        self,
        control_plane: ControlPlane,
        responder: Optional[QueryResponder] = None,
        io_timeout: float = DEFAULT_IO_TIMEOUT,
        debug: bool = False,
    ):
        """Initialize control server.

        Args:
            control_plane: Hook handler applying record changes
            responder: DNS responder, only used for health statistics
            io_timeout: Keep-alive and request body read timeout in seconds
            debug: Include exception messages in 500 responses
        """
        self.control_plane = control_plane
        self.responder = responder
        self.io_timeout = io_timeout
        self.debug = debug
        self.logger = get_logger("control_server")

        self.app: Optional[Application] = None
        self.runner: Optional[web.AppRunner] = None
        self.sites: List[web.TCPSite] = []
        self._addresses: List[Tuple[str, int]] = []

    def setup_application(self) -> Application:
        """Setup aiohttp application with routes and middleware."""
        app = web.Application(
            middlewares=[
                self._create_logging_middleware(),
                self._create_error_middleware(),
            ]
        )
        setup_api_routes(app, self.control_plane, self.responder, self.io_timeout)
        return app

    def _create_logging_middleware(self):
        """Create logging middleware."""
        logger = self.logger

        @web.middleware
        async def logging_middleware(request, handler):
            """Log HTTP requests."""
            start_time = asyncio.get_running_loop().time()

            try:
                response = await handler(request)
            except Exception:
                process_time = asyncio.get_running_loop().time() - start_time
                logger.error(
                    "HTTP request failed",
                    method=request.method,
                    path=request.path,
                    remote=request.remote,
                    response_time_ms=round(process_time * 1000, 2),
                )
                raise

            process_time = asyncio.get_running_loop().time() - start_time
            logger.info(
                "HTTP request",
                method=request.method,
                path=request.path,
                remote=request.remote,
                status=response.status,
                response_time_ms=round(process_time * 1000, 2),
            )
            return response

        return logging_middleware

    def _create_error_middleware(self):
        """Create error handling middleware."""
        logger = self.logger
        debug = self.debug

        @web.middleware
        async def error_middleware(request, handler):
            """Handle HTTP errors gracefully."""
            try:
                return await handler(request)
            except web.HTTPException:
                # Re-raise HTTP exceptions as they are handled properly by aiohttp
                raise
            except Exception as ex:
                logger.error(
                    "Unhandled error in control server",
                    method=request.method,
                    path=request.path,
                    error=str(ex),
                )

                return web.json_response(
                    {
                        "status": "error",
                        "message": str(ex)
                        if debug
                        else "An unexpected error occurred",
                    },
                    status=500,
                )

        return error_middleware

    async def _ensure_runner(self) -> web.AppRunner:
        if self.runner is None:
            self.app = self.setup_application()
            self.runner = web.AppRunner(
                self.app,
                handle_signals=False,
                access_log=None,
                keepalive_timeout=self.io_timeout,
            )
            await self.runner.setup()
        return self.runner

    async def start_site(self, host: str, port: int) -> Tuple[str, int]:
        """Bind one control address; returns the bound address.

        Raises:
            OSError: If the address cannot be bound
        """
        runner = await self._ensure_runner()
        known = set(runner.addresses)

        site = web.TCPSite(runner, host=host, port=port)
        await site.start()
        self.sites.append(site)

        bound = [addr for addr in runner.addresses if addr not in known]
        address = tuple(bound[0][:2]) if bound else (host, port)
        self._addresses.append(address)

        self.logger.info("Control server listening", host=address[0], port=address[1])
        return address

    def addresses(self) -> List[Tuple[str, int]]:
        return list(self._addresses)

    async def stop(self) -> None:
        """Stop every site and release the runner."""
        for site in self.sites:
            await site.stop()
        self.sites = []
        self._addresses = []

        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None

        self.app = None
        self.logger.info("Control server stopped")
