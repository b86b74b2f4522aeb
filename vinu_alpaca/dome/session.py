"""
Dome session manager (Layer 2).

Reference-counts logical clients against the one physical serial link:
the link opens when the first client connects and closes when the last
one leaves. Port and timeout can only be changed while nobody is connected.
"""

import logging
import threading
from typing import Hashable, Optional, Set

from vinu_alpaca.config.models import DomeConfig, SerialConfig
from vinu_alpaca.config.user_settings import (
    UserSettingsManager,
    PORT_KEY,
    TIMEOUT_KEY,
    TRACE_KEY,
)
from vinu_alpaca.dome.controller import ShutterController
from vinu_alpaca.dome.state import ShutterStatus
from vinu_alpaca.protocol.encoder import Command, encode_command, is_vinu_handshake
from vinu_alpaca.protocol.interface import TransportInterface
from vinu_alpaca.protocol.logger import get_protocol_logger
from vinu_alpaca.utils.exceptions import (
    HandshakeError,
    InvalidOperationError,
    SerialTimeoutError,
    VinuException,
)


logger = logging.getLogger(__name__)

MIN_TIMEOUT_SECONDS = 1
MAX_TIMEOUT_SECONDS = 300


class DomeSession:
    """
    Owns the transport, the shutter state and the set of connected clients.

    The embedding application creates one instance per physical roof.
    """

    def __init__(
        self,
        transport: TransportInterface,
        serial_config: Optional[SerialConfig] = None,
        config: Optional[DomeConfig] = None,
        settings: Optional[UserSettingsManager] = None,
    ):
        """
        Initialize the session manager.

        Args:
            transport: Serial transport implementation (real or simulator).
            serial_config: Port and baud rate.
            config: Operation timeout, polling and trace settings.
            settings: Persisted profile store. When given, its values
                override the config files and changes are written back.
        """
        self._transport = transport
        self.serial_config = serial_config or SerialConfig()
        self.config = config or DomeConfig()
        self._settings = settings

        self._sessions: Set[Hashable] = set()
        self._lock = threading.RLock()

        self.status = ShutterStatus()
        self.shutter = ShutterController(transport, self.status, self.config, lambda: self.connected)

        if settings is not None:
            self._read_profile()

        get_protocol_logger().enabled = self.config.trace_enabled

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def _read_profile(self) -> None:
        self.serial_config.port = self._settings.get_value(PORT_KEY, self.serial_config.port)

        timeout = int(self._settings.get_value(TIMEOUT_KEY, str(self.config.operation_timeout_seconds)))
        if MIN_TIMEOUT_SECONDS <= timeout <= MAX_TIMEOUT_SECONDS:
            self.config.operation_timeout_seconds = timeout

        trace = self._settings.get_value(TRACE_KEY, "true" if self.config.trace_enabled else "false")
        self.config.trace_enabled = trace == "true"

        logger.info(
            f"Profile: port={self.serial_config.port}, "
            f"timeout={self.config.operation_timeout_seconds}s, trace={self.config.trace_enabled}"
        )

    def _write_profile(self, key: str, value: str) -> None:
        if self._settings is not None:
            self._settings.set_value(key, value)

    def _require_disconnected(self, what: str) -> None:
        if self._sessions:
            raise InvalidOperationError(f"Cannot change {what} while connected. Disconnect first.")

    @property
    def transport(self) -> TransportInterface:
        return self._transport

    def set_transport(self, transport: TransportInterface) -> None:
        """
        Replace the transport (e.g., switch between hardware and simulator).

        Raises:
            InvalidOperationError: If any client is connected.
        """
        with self._lock:
            self._require_disconnected("transport")
            self._transport = transport
            self.shutter.set_transport(transport)
            logger.info(f"Transport changed to {type(transport).__name__}")

    def set_port(self, port: str) -> None:
        """
        Raises:
            InvalidOperationError: If any client is connected.
        """
        with self._lock:
            self._require_disconnected("port")
            self.serial_config.port = port
            self._write_profile(PORT_KEY, port)
            logger.info(f"Port set to {port}")

    def set_timeout(self, seconds: int) -> bool:
        """
        Set the open/close operation timeout.

        Returns:
            False (and nothing changes) if seconds is outside 1..300.

        Raises:
            InvalidOperationError: If any client is connected.
        """
        with self._lock:
            self._require_disconnected("timeout")
            if seconds < MIN_TIMEOUT_SECONDS or seconds > MAX_TIMEOUT_SECONDS:
                logger.warning(f"Timeout {seconds}s rejected, must be {MIN_TIMEOUT_SECONDS}-{MAX_TIMEOUT_SECONDS}")
                return False
            self.config.operation_timeout_seconds = seconds
            self._write_profile(TIMEOUT_KEY, str(seconds))
            logger.info(f"Operation timeout set to {seconds}s")
            return True

    def set_trace_enabled(self, enabled: bool) -> None:
        """
        Raises:
            InvalidOperationError: If any client is connected.
        """
        with self._lock:
            self._require_disconnected("trace setting")
            self.config.trace_enabled = enabled
            get_protocol_logger().enabled = enabled
            self._write_profile(TRACE_KEY, "true" if enabled else "false")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        """True while at least one client is connected."""
        return bool(self._sessions)

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def is_registered(self, session_id: Hashable) -> bool:
        return session_id in self._sessions

    def connect(self, session_id: Hashable) -> None:
        """
        Register a client, opening the link if it is the first one.

        Raises:
            PortNotFoundError, PortInUseError: If the port cannot be opened.
            HandshakeError: If the device does not identify as VINU.
        """
        with self._lock:
            if session_id in self._sessions:
                logger.debug(f"[SetConnected] Client {session_id} already connected")
                return

            first = not self._sessions
            if first:
                self._open_link()

            self._sessions.add(session_id)
            logger.info(f"[SetConnected] Client {session_id} added. Total clients: {len(self._sessions)}")

            if first:
                self.shutter.poll_status()

    def _open_link(self) -> None:
        port = self.serial_config.port
        timeout_ms = self.config.operation_timeout_seconds * 1000

        logger.info(f"[SetConnected] First client connecting on {port}")

        try:
            self._transport.open(port, self.serial_config.baud, timeout_ms)
            self._transport.send(encode_command(Command.INIT))
            try:
                response = self._transport.receive_until("#", timeout_ms)
            except SerialTimeoutError:
                response = ""

            if not is_vinu_handshake(response):
                raise HandshakeError(f"Device on {port} is not a VINU controller (reply {response!r}).")

        except VinuException as e:
            logger.error(f"[SetConnected] Connection failed: {e}")
            self._transport.close()
            raise

        self.shutter.reset()
        logger.info(f"[SetConnected] Connection successful ({response})")

    def disconnect(self, session_id: Hashable) -> None:
        """
        Unregister a client. The last one out stops a moving roof and
        closes the link. Unknown ids are ignored.
        """
        with self._lock:
            if session_id not in self._sessions:
                return

            if len(self._sessions) > 1:
                self._sessions.discard(session_id)
                logger.info(f"[SetConnected] Client {session_id} removed. Total clients: {len(self._sessions)}")
                return

            logger.info(f"[SetConnected] Last client {session_id} disconnecting")
            if self.status.is_moving:
                try:
                    self.shutter.abort()
                except VinuException as e:
                    logger.error(f"[SetConnected] Abort before disconnect failed: {e}")

            self._sessions.discard(session_id)
            self._close_link()

    def disconnect_all(self) -> None:
        """Drop every client (shutdown path)."""
        with self._lock:
            for session_id in list(self._sessions):
                self.disconnect(session_id)

    def _close_link(self) -> None:
        self._transport.close()
        self.shutter.reset()
        # Position unknown until the next connect
        self.status.reset()
        logger.info("[SetConnected] Link closed")
