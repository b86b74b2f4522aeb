"""
Serial transport for VINU roof controllers.

Implements TransportInterface using pyserial for RS-232/USB communication.

- Frames end with '#'; CR/LF are line noise and are dropped
- Reads one byte at a time against an overall deadline
- Anything still buffered after '#' is drained so it cannot prefix the next frame
"""

import logging
import threading
import time
from typing import Optional

import serial
from serial import SerialException

from vinu_alpaca.protocol.interface import TransportInterface
from vinu_alpaca.protocol.logger import get_protocol_logger
from vinu_alpaca.utils.exceptions import (
    NotConnectedError,
    PortNotFoundError,
    PortInUseError,
    SerialTimeoutError,
    TransportError,
)


logger = logging.getLogger(__name__)


class SerialTransport(TransportInterface):
    """
    Real hardware transport.

    One instance owns at most one open pyserial port. Calls are
    serialized with a lock so a send and a read never interleave.
    """

    # Serial port settings (fixed by the VINU firmware)
    DATA_BITS = serial.EIGHTBITS
    PARITY = serial.PARITY_NONE
    STOP_BITS = serial.STOPBITS_ONE

    # Per-byte read slice; the overall deadline is enforced separately
    READ_SLICE_SECONDS = 0.1

    def __init__(self):
        self._port: Optional[serial.Serial] = None
        self._port_name: Optional[str] = None
        self._lock = threading.RLock()

    @property
    def port_name(self) -> Optional[str]:
        """Name of the open port, or None."""
        return self._port_name if self.is_open() else None

    def open(self, port: str, baud: int = 9600, timeout_ms: int = 1000) -> None:
        """Open the serial port (9600 8N1 unless told otherwise)."""
        with self._lock:
            if self.is_open():
                logger.warning(f"Serial port {self._port_name} already open")
                return

            timeout = timeout_ms / 1000.0
            logger.info(f"Opening serial port {port} at {baud} baud")

            try:
                self._port = serial.Serial(
                    port=port,
                    baudrate=baud,
                    bytesize=self.DATA_BITS,
                    parity=self.PARITY,
                    stopbits=self.STOP_BITS,
                    timeout=timeout,
                    write_timeout=timeout,
                )
            except SerialException as e:
                self._port = None
                error_msg = str(e).lower()
                if "filenotfounderror" in error_msg or "no such file" in error_msg:
                    raise PortNotFoundError(f"Failed to open {port}: Port not found")
                elif "access" in error_msg or "permission" in error_msg or "in use" in error_msg:
                    raise PortInUseError(f"{port} is already in use by another application")
                else:
                    raise PortNotFoundError(f"Failed to open {port}: {e}")

            self._port_name = port
            self._port.reset_input_buffer()
            self._port.reset_output_buffer()

    def close(self) -> None:
        """Close the serial port."""
        with self._lock:
            if self._port is not None:
                try:
                    if self._port.is_open:
                        self._port.close()
                        logger.info(f"Serial port {self._port_name} closed")
                except SerialException as e:
                    logger.warning(f"Error closing {self._port_name}: {e}")
            self._port = None

    def is_open(self) -> bool:
        return self._port is not None and self._port.is_open

    def send(self, data: bytes) -> None:
        """Write a command. Fails immediately if the port is not open."""
        with self._lock:
            if not self.is_open():
                logger.debug("Send refused, serial port not open")
                raise NotConnectedError("Serial port not open")

            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"TX: {data!r}")
            get_protocol_logger().log_tx(data)

            try:
                self._port.write(data)
                self._port.flush()
            except SerialException as e:
                get_protocol_logger().log_error(f"Write failed: {e}")
                raise TransportError(f"Write to {self._port_name} failed: {e}") from e

    def receive_until(self, terminator: str = "#", timeout_ms: int = 1000) -> str:
        """Read one frame up to the terminator (see TransportInterface)."""
        protocol_logger = get_protocol_logger()

        with self._lock:
            if not self.is_open():
                raise NotConnectedError("Serial port not open")

            port = self._port
            deadline = time.monotonic() + timeout_ms / 1000.0
            chars = []

            original_timeout = port.timeout
            port.timeout = min(self.READ_SLICE_SECONDS, timeout_ms / 1000.0)

            try:
                while True:
                    if time.monotonic() >= deadline:
                        partial = "".join(chars)
                        protocol_logger.log_error(f"Timeout after {timeout_ms} ms", partial)
                        raise SerialTimeoutError(
                            f"No '{terminator}' within {timeout_ms} ms (partial: {partial!r})"
                        )

                    byte_data = port.read(1)
                    if len(byte_data) == 0:
                        continue

                    char = chr(byte_data[0])

                    if char == terminator:
                        self._drain(port)
                        break

                    if char in ("\r", "\n"):
                        continue

                    chars.append(char)

            except SerialException as e:
                protocol_logger.log_error(f"Read failed: {e}", "".join(chars))
                raise TransportError(f"Read from {self._port_name} failed: {e}") from e

            finally:
                port.timeout = original_timeout

            response = "".join(chars).strip()
            protocol_logger.log_rx(response)
            logger.debug(f"RX: {response!r}")
            return response

    def _drain(self, port: serial.Serial) -> None:
        """Discard whatever is already buffered after a terminator."""
        try:
            pending = port.in_waiting
            if pending:
                leftover = port.read(pending)
                if leftover:
                    logger.debug(f"Discarded after terminator: {leftover!r}")
        except (SerialException, OSError) as e:
            logger.warning(f"Error draining input buffer: {e}")
