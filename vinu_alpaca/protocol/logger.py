"""
Protocol trace for debugging serial communication.

Captures TX/RX frames with timestamps. Disabled unless the driver's
trace flag is set.
"""

import threading
from collections import deque
from datetime import datetime
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, asdict

from vinu_alpaca.protocol.encoder import decode_status, is_vinu_handshake
from vinu_alpaca.utils.exceptions import MalformedFrameError


@dataclass
class ProtocolMessage:
    """A single protocol message (TX, RX or ERR)."""
    timestamp: str
    direction: str
    text: str
    decoded: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


class ProtocolLogger:
    """
    Thread-safe trace of protocol messages.

    Maintains a circular buffer of messages with configurable max size.
    """

    DEFAULT_MAX_MESSAGES = 500

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES, enabled: bool = False):
        self._messages: deque = deque(maxlen=max_messages)
        self._lock = threading.Lock()
        self._enabled = enabled
        self._tx_count = 0
        self._rx_count = 0
        self._error_count = 0

    @property
    def enabled(self) -> bool:
        """Check if tracing is enabled."""
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        """Enable or disable tracing."""
        self._enabled = value

    @staticmethod
    def _now() -> str:
        return datetime.now().isoformat(timespec='milliseconds')

    def log_tx(self, data: bytes) -> None:
        """
        Log a transmitted command.

        Args:
            data: Raw bytes sent.
        """
        if not self._enabled:
            return

        with self._lock:
            self._tx_count += 1
            text = data.decode("ascii", errors="replace").strip()
            self._messages.append(ProtocolMessage(
                timestamp=self._now(),
                direction="TX",
                text=text,
                decoded={"command": text},
            ))

    def log_rx(self, text: str) -> None:
        """
        Log a received frame.

        Args:
            text: Frame text without terminator.
        """
        if not self._enabled:
            return

        with self._lock:
            self._rx_count += 1

            decoded = None
            error = None

            if not text:
                error = "Empty response"
                self._error_count += 1
            elif is_vinu_handshake(text):
                decoded = {"type": "handshake", "banner": text}
            else:
                try:
                    frame = decode_status(text)
                    decoded = {
                        "type": "status",
                        "shutter": frame.shutter,
                        "scope": frame.scope,
                        "motion": frame.motion,
                    }
                except MalformedFrameError as e:
                    error = str(e)
                    self._error_count += 1

            self._messages.append(ProtocolMessage(
                timestamp=self._now(),
                direction="RX",
                text=text,
                decoded=decoded,
                error=error,
            ))

    def log_error(self, error_msg: str, text: str = "") -> None:
        """
        Log an error (timeout, I/O failure).

        Args:
            error_msg: Error description.
            text: Optional partial data associated with the error.
        """
        if not self._enabled:
            return

        with self._lock:
            self._error_count += 1
            self._messages.append(ProtocolMessage(
                timestamp=self._now(),
                direction="ERR",
                text=text,
                error=error_msg,
            ))

    def get_messages(self, limit: int = 100) -> List[dict]:
        """
        Get recent messages.

        Returns:
            Up to `limit` most recent messages, oldest first.
        """
        with self._lock:
            messages = list(self._messages)
            if len(messages) > limit:
                messages = messages[-limit:]
            return [m.to_dict() for m in messages]

    def get_stats(self) -> dict:
        """Get trace statistics."""
        with self._lock:
            return {
                "total_messages": len(self._messages),
                "tx_count": self._tx_count,
                "rx_count": self._rx_count,
                "error_count": self._error_count,
                "max_messages": self._messages.maxlen,
                "enabled": self._enabled,
            }

    def clear(self) -> None:
        """Clear all traced messages."""
        with self._lock:
            self._messages.clear()
            self._tx_count = 0
            self._rx_count = 0
            self._error_count = 0


# Global instance
_logger: Optional[ProtocolLogger] = None


def get_protocol_logger() -> ProtocolLogger:
    """Get or create the global protocol trace."""
    global _logger
    if _logger is None:
        _logger = ProtocolLogger()
    return _logger
