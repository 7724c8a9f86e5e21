"""
Listener Supervisor

Binds every configured endpoint, UDP and TCP DNS listeners per DNS address
and an HTTP site per control address, and owns their lifetime.

Startup is all-or-nothing: if any bind fails, everything already started is
stopped again and ListenerStartupError is raised.
"""

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

from .control.hooks import ControlPlane
from .core.responder import QueryResponder
from .core.server import DEFAULT_IO_TIMEOUT, DNSListener
from .dns_logging import get_logger, log_exception
from .exceptions import ListenerStartupError
from .web.server import ControlServer

logger = get_logger("supervisor")

Address = Tuple[str, int]


class ListenerSupervisor:
    """Starts, tracks and stops every network listener"""

    def __init__(
        self,
        responder: QueryResponder,
        control_plane: ControlPlane,
        dns_addresses: Sequence[Address],
        control_addresses: Sequence[Address],
        io_timeout: float = DEFAULT_IO_TIMEOUT,
    ):
        self.responder = responder
        self.control_plane = control_plane
        self.dns_addresses = list(dns_addresses)
        self.control_addresses = list(control_addresses)
        self.io_timeout = io_timeout

        self._dns_listeners: List[DNSListener] = []
        self._control_server: Optional[ControlServer] = None
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self) -> None:
        """Bind every listener or none of them.

        Raises:
            ListenerStartupError: If any listener fails to bind
        """
        if self._is_running:
            logger.warning("Listeners are already running")
            return

        try:
            for host, port in self.dns_addresses:
                await self._start_dns_listener(host, port)

            self._control_server = ControlServer(
                self.control_plane, self.responder, self.io_timeout
            )
            for host, port in self.control_addresses:
                try:
                    await self._control_server.start_site(host, port)
                except OSError as e:
                    raise ListenerStartupError("control", (host, port), e) from e

        except ListenerStartupError as e:
            log_exception(logger, "Listener startup failed", e)
            await self._stop_all()
            raise
        except BaseException:
            await self._stop_all()
            raise

        self._is_running = True
        logger.info(
            "All listeners started",
            dns=[f"{h}:{p}" for h, p in self.dns_addresses],
            control=[f"{h}:{p}" for h, p in self.control_addresses],
        )

    async def _start_dns_listener(self, host: str, port: int) -> None:
        listener = DNSListener(self.responder, host, port, self.io_timeout)
        # Tracked before binding so a half-started listener is still stopped
        self._dns_listeners.append(listener)

        try:
            _, udp_port = await listener.start_udp()
        except OSError as e:
            raise ListenerStartupError("DNS UDP", (host, port), e) from e

        try:
            # Port 0 resolves to the UDP port so both transports share it
            await listener.start_tcp(port or udp_port)
        except OSError as e:
            raise ListenerStartupError("DNS TCP", (host, port or udp_port), e) from e

    async def stop(self) -> None:
        """Gracefully stop every started listener; safe to call repeatedly"""
        if not self._is_running and not self._dns_listeners and not self._control_server:
            return

        logger.info("Stopping listeners")
        await self._stop_all()
        logger.info("All listeners stopped")

    async def _stop_all(self) -> None:
        if self._control_server is not None:
            try:
                await self._control_server.stop()
            except Exception as e:
                log_exception(logger, "Error stopping control server", e)
            self._control_server = None

        for listener in self._dns_listeners:
            try:
                await listener.stop()
            except Exception as e:
                log_exception(logger, "Error stopping DNS listener", e)
        self._dns_listeners = []

        self._is_running = False

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Start, serve until ``shutdown_event`` is set, then stop"""
        await self.start()
        try:
            await shutdown_event.wait()
        finally:
            await self.stop()

    def bound_addresses(self) -> Dict[str, List[Address]]:
        """Actual addresses per listener kind, useful when port 0 was given"""
        result: Dict[str, List[Address]] = {"udp": [], "tcp": [], "control": []}
        for listener in self._dns_listeners:
            udp = listener.udp_address()
            tcp = listener.tcp_address()
            if udp:
                result["udp"].append(tuple(udp))
            if tcp:
                result["tcp"].append(tuple(tcp))
        if self._control_server is not None:
            result["control"] = self._control_server.addresses()
        return result
