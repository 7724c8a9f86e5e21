"""
DNS Listeners

This module binds the DNS transports for one configured address:
- Async UDP server using asyncio.DatagramProtocol
- Async TCP server using asyncio.StreamReader/StreamWriter (RFC 1035 4.2.2
  two-byte length framing), also the fallback for truncated UDP answers
Both hand every packet to the shared QueryResponder.
"""

import asyncio
import struct
from typing import Optional, Set, Tuple

from ..dns_logging import get_logger, log_exception
from .responder import QueryResponder

logger = get_logger("dns_listener")

DEFAULT_IO_TIMEOUT = 10.0


class DNSUDPProtocol(asyncio.DatagramProtocol):
    """Async UDP protocol handler for DNS queries"""

    def __init__(self, responder: QueryResponder):
        self.responder = responder
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport):
        """Called when UDP socket is ready"""
        self.transport = transport
        logger.info(
            "DNS UDP listener ready", sockname=transport.get_extra_info("sockname")
        )

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        """Answer one datagram; a failed send only drops this exchange"""
        client_ip = addr[0]
        response_data = self.responder.handle_dns_request(data, client_ip, "UDP")
        if response_data is None or self.transport is None:
            return

        try:
            self.transport.sendto(response_data, addr)
        except OSError as e:
            logger.error(
                "Failed to send UDP response", client_ip=client_ip, error=str(e)
            )

    def error_received(self, exc):
        """Handle UDP errors"""
        logger.warning("DNS UDP protocol error", error=str(exc))


class DNSListener:
    """UDP and TCP DNS listeners on a single host:port"""

    def __init__(
        self,
        responder: QueryResponder,
        host: str,
        port: int,
        io_timeout: float = DEFAULT_IO_TIMEOUT,
    ):
        self.responder = responder
        self.host = host
        self.port = port
        self.io_timeout = io_timeout

        self._udp_transport: Optional[asyncio.DatagramTransport] = None
        self._tcp_server: Optional[asyncio.AbstractServer] = None
        self._tcp_writers: Set[asyncio.StreamWriter] = set()

    @property
    def is_running(self) -> bool:
        return self._udp_transport is not None or self._tcp_server is not None

    async def start_udp(self) -> Tuple[str, int]:
        """Bind the UDP socket; returns the bound address"""
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: DNSUDPProtocol(self.responder),
            local_addr=(self.host, self.port),
        )
        self._udp_transport = transport
        return transport.get_extra_info("sockname")[:2]

    async def start_tcp(self, port: Optional[int] = None) -> Tuple[str, int]:
        """Bind the TCP socket; returns the first bound address"""
        self._tcp_server = await asyncio.start_server(
            self._handle_tcp_client,
            host=self.host,
            port=self.port if port is None else port,
        )
        sockname = self._tcp_server.sockets[0].getsockname()
        logger.info("DNS TCP listener ready", sockname=sockname)
        return sockname[:2]

    async def stop(self) -> None:
        """Close both transports and any open TCP connections"""
        if self._udp_transport is not None:
            self._udp_transport.close()
            self._udp_transport = None

        if self._tcp_server is not None:
            self._tcp_server.close()
            for writer in list(self._tcp_writers):
                writer.close()
            await self._tcp_server.wait_closed()
            self._tcp_server = None

        logger.info("DNS listener stopped", host=self.host, port=self.port)

    def udp_address(self) -> Optional[Tuple[str, int]]:
        if self._udp_transport is None:
            return None
        return self._udp_transport.get_extra_info("sockname")[:2]

    def tcp_address(self) -> Optional[Tuple[str, int]]:
        if self._tcp_server is None or not self._tcp_server.sockets:
            return None
        return self._tcp_server.sockets[0].getsockname()[:2]

    async def _handle_tcp_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ):
        """Handle TCP DNS client connection"""
        client_addr = writer.get_extra_info("peername")
        client_ip = client_addr[0] if client_addr else "unknown"
        self._tcp_writers.add(writer)

        try:
            while True:
                length_data = await asyncio.wait_for(
                    reader.readexactly(2), timeout=self.io_timeout
                )
                message_length = struct.unpack("!H", length_data)[0]

                dns_data = await asyncio.wait_for(
                    reader.readexactly(message_length), timeout=self.io_timeout
                )

                response_data = self.responder.handle_dns_request(
                    dns_data, client_ip, "TCP"
                )
                if response_data is None:
                    break

                writer.write(struct.pack("!H", len(response_data)) + response_data)
                await asyncio.wait_for(writer.drain(), timeout=self.io_timeout)

        except asyncio.IncompleteReadError:
            # Client disconnected
            pass
        except asyncio.TimeoutError:
            logger.debug("TCP client timed out", client_ip=client_ip)
        except (ConnectionError, OSError) as e:
            logger.warning("TCP client error", client_ip=client_ip, error=str(e))
        except Exception as e:
            log_exception(logger, "Unexpected TCP client error", e)
        finally:
            self._tcp_writers.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass
