"""
Abstract interface for the serial transport.

This interface allows transparent substitution between real hardware and simulator.
"""

from abc import ABC, abstractmethod


class TransportInterface(ABC):
    """Byte-level link to the roof controller."""

    @abstractmethod
    def open(self, port: str, baud: int = 9600, timeout_ms: int = 1000) -> None:
        """
        Open the link.

        Args:
            port: Serial port name (e.g., "COM3").
            baud: Baud rate (VINU controllers use 9600 8N1).
            timeout_ms: Default read/write timeout.

        Raises:
            PortNotFoundError: If the port does not exist.
            PortInUseError: If the port is held by another application.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the link. Safe to call when already closed."""
        pass

    @abstractmethod
    def is_open(self) -> bool:
        """
        Check if the link is open.

        Returns:
            True if open, False otherwise.
        """
        pass

    @abstractmethod
    def send(self, data: bytes) -> None:
        """
        Write bytes to the controller. No retry.

        Raises:
            NotConnectedError: If the link is not open.
            TransportError: If the write fails.
        """
        pass

    @abstractmethod
    def receive_until(self, terminator: str = "#", timeout_ms: int = 1000) -> str:
        """
        Read one frame up to the terminator.

        CR and LF are dropped, the terminator is not included and bytes
        still pending after it are discarded.

        Returns:
            Frame text, stripped of surrounding whitespace.

        Raises:
            NotConnectedError: If the link is not open.
            SerialTimeoutError: If the terminator does not arrive in time.
            TransportError: If the read fails.
        """
        pass
