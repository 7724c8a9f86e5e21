"""
ACME DNS Server Main Entry Point

Runs the TXT-only authoritative DNS server together with the control plane
that the certificate-issuing reverse proxy calls for dns-01 challenges.
"""

import argparse
import asyncio
import platform
import signal
import sys
from typing import Any, Dict, List, Optional

from .config.loader import ConfigLoader
from .config.schema import ACMEDNSConfig
from .control.hooks import ControlPlane
from .core.responder import QueryResponder
from .core.store import RecordStore
from .dns_logging import get_logger, log_exception, setup_logging
from .exceptions import ConfigError, ListenerStartupError
from .supervisor import ListenerSupervisor


class ACMEDNSApp:
    """ACME DNS Server Application"""

    def __init__(self, config: ACMEDNSConfig):
        self.config = config
        self.store = RecordStore()
        self.responder = QueryResponder(
            self.store,
            ttl=config.dns.ttl,
            max_udp_size=config.dns.max_udp_size,
        )
        self.control_plane = ControlPlane(self.store)
        self.supervisor = ListenerSupervisor(
            self.responder,
            self.control_plane,
            config.server.dns_endpoints(),
            config.server.control_endpoints(),
            io_timeout=config.server.io_timeout,
        )
        self._shutdown_event = asyncio.Event()
        self.logger = get_logger("acme_dns_app")

    async def run(self) -> None:
        """Serve until a shutdown signal or request_shutdown()"""
        self.logger.info(
            "Starting ACME DNS server (TXT only)",
            dns_addresses=self.config.server.dns_addresses,
            control_addresses=self.config.server.control_addresses,
        )

        self._install_signal_handlers()
        try:
            await self.supervisor.run(self._shutdown_event)
        finally:
            self._remove_signal_handlers()

        self.logger.info("ACME DNS server shutdown complete")

    def request_shutdown(self) -> None:
        """Ask run() to stop every listener and return"""
        self._shutdown_event.set()

    def _signal_handler(self):
        """Handle shutdown signals"""
        self.logger.info("Received shutdown signal")
        self.request_shutdown()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._signal_handler)
            except (NotImplementedError, RuntimeError):
                # Windows, or not running in the main thread
                pass

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Authoritative TXT-only DNS server for ACME dns-01 challenges",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--config", "-c", default=None, help="Configuration file path (YAML or JSON)"
    )
    parser.add_argument(
        "--dns-addr",
        default=None,
        help="Comma-separated host:port list for DNS (UDP and TCP) listeners",
    )
    parser.add_argument(
        "--control-addr",
        default=None,
        help="Comma-separated host:port list for control plane listeners",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level",
    )
    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> Dict[str, Dict[str, Any]]:
    """Translate command-line flags into configuration overrides"""
    overrides: Dict[str, Dict[str, Any]] = {}
    if args.dns_addr:
        overrides.setdefault("server", {})["dns_addresses"] = [args.dns_addr]
    if args.control_addr:
        overrides.setdefault("server", {})["control_addresses"] = [args.control_addr]
    if args.log_level:
        overrides.setdefault("logging", {})["level"] = args.log_level
    return overrides


def use_uvloop() -> bool:
    """Try to use uvloop for better performance on Unix systems"""
    if platform.system() == "Windows":
        return False
    try:
        import uvloop
    except ImportError:
        return False

    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    return True


async def serve(config: ACMEDNSConfig) -> None:
    """Run the application until shutdown"""
    app = ACMEDNSApp(config)
    await app.run()


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point"""
    args = parse_args(argv)

    try:
        config = ConfigLoader(args.config, build_overrides(args)).load_config()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.logging)
    logger = get_logger("acme_dns_server")
    if use_uvloop():
        logger.debug("Using uvloop event loop")

    try:
        asyncio.run(serve(config))
    except ListenerStartupError as e:
        logger.critical("Fatal startup error", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception as e:
        log_exception(logger, "ACME DNS server failed", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
