"""
ASCOM Alpaca UDP discovery protocol.

Listens on UDP port 32227 and answers "alpacadiscovery1" packets with
the HTTP port of the Alpaca API.
"""

import json
import logging
import socket
import threading
from typing import Optional


logger = logging.getLogger(__name__)

DISCOVERY_PORT = 32227
DISCOVERY_PREFIX = b"alpacadiscovery"
SUPPORTED_DISCOVERY_VERSION = b"1"


def build_discovery_reply(data: bytes, alpaca_port: int) -> Optional[bytes]:
    """
    Reply for one discovery datagram, or None if it is not a request we answer.

    Requests are "alpacadiscovery" followed by a version digit.
    """
    if not data.startswith(DISCOVERY_PREFIX):
        return None

    version = data[len(DISCOVERY_PREFIX):len(DISCOVERY_PREFIX) + 1]
    if version != SUPPORTED_DISCOVERY_VERSION:
        logger.debug(f"Ignoring discovery request version {version!r}")
        return None

    return json.dumps({"AlpacaPort": alpaca_port}).encode("utf-8")


class DiscoveryServer:
    """UDP discovery responder running in a daemon thread."""

    def __init__(self, alpaca_port: int, bind_address: str = "0.0.0.0", port: int = DISCOVERY_PORT):
        self.alpaca_port = alpaca_port
        self.bind_address = bind_address
        self.port = port
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Bind the socket and start answering.

        Raises:
            OSError: If the UDP port cannot be bound.
        """
        if self.running:
            logger.warning("Discovery server already running")
            return

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.bind_address, self.port))
        except OSError:
            sock.close()
            raise
        # Short timeout so stop() is noticed promptly
        sock.settimeout(1.0)

        self._socket = sock
        self._stop.clear()
        self._thread = threading.Thread(target=self._listen, name="alpaca-discovery", daemon=True)
        self._thread.start()

        logger.info(f"Discovery server started on UDP port {self.port} (AlpacaPort={self.alpaca_port})")

    def stop(self) -> None:
        if self._thread is None:
            return

        self._stop.set()
        self._thread.join(timeout=3.0)
        self._thread = None

        if self._socket:
            self._socket.close()
            self._socket = None

        logger.info("Discovery server stopped")

    def _listen(self) -> None:
        while not self._stop.is_set():
            try:
                data, addr = self._socket.recvfrom(1024)
            except socket.timeout:
                continue
            except OSError as e:
                if not self._stop.is_set():
                    logger.error(f"Discovery socket error: {e}")
                break

            reply = build_discovery_reply(data, self.alpaca_port)
            if reply is None:
                continue

            try:
                self._socket.sendto(reply, addr)
                logger.info(f"Discovery response sent to {addr[0]}:{addr[1]}")
            except OSError as e:
                logger.error(f"Failed to send discovery response to {addr[0]}: {e}")
