"""
Mock roof controller for running without hardware.

Speaks the VINU protocol in-process: Init# returns a banner, get#
returns a status frame, open#/close#/stop# drive a timed roof travel.
Roof position is derived from the clock on demand, so no background
thread is needed.
"""

import logging
import threading
import time
from collections import deque
from typing import Optional

from vinu_alpaca.config.models import SimulatorConfig
from vinu_alpaca.protocol.encoder import Command
from vinu_alpaca.protocol.interface import TransportInterface
from vinu_alpaca.protocol.logger import get_protocol_logger
from vinu_alpaca.utils.exceptions import NotConnectedError, SerialTimeoutError


logger = logging.getLogger(__name__)

SIMULATOR_BANNER = "VINU ROR simulator"

# Fraction of travel: 0.0 fully closed, 1.0 fully open
FULLY_CLOSED = 0.0
FULLY_OPEN = 1.0


class MockRoofTransport(TransportInterface):
    """
    Simulated VINU roll-off-roof controller.

    Args:
        config: Simulator settings (travel time, start position, faults).
    """

    def __init__(self, config: Optional[SimulatorConfig] = None):
        self.config = config or SimulatorConfig()
        self._lock = threading.Lock()
        self._open = False
        self._replies: deque = deque()

        self._position = FULLY_OPEN if self.config.initial_state == "open" else FULLY_CLOSED
        self._direction = 0
        self._move_started: Optional[float] = None
        self._move_origin = self._position
        self.scope_safe = self.config.scope_safe

        logger.info(f"MockRoofTransport initialized (roof {self.config.initial_state})")

    # ------------------------------------------------------------------
    # TransportInterface
    # ------------------------------------------------------------------

    def open(self, port: str, baud: int = 9600, timeout_ms: int = 1000) -> None:
        with self._lock:
            if self._open:
                logger.warning("Simulator link already open")
                return
            self._delay()
            self._open = True
            self._replies.clear()
            logger.info(f"Simulator link opened (port {port} ignored)")

    def close(self) -> None:
        with self._lock:
            if not self._open:
                return
            self._open = False
            self._replies.clear()
            logger.info("Simulator link closed")

    def is_open(self) -> bool:
        return self._open

    def send(self, data: bytes) -> None:
        if not self._open:
            raise NotConnectedError("Simulator not connected")

        get_protocol_logger().log_tx(data)
        command = data.decode("ascii").strip()

        with self._lock:
            self._update_position()

            if command == Command.INIT.value:
                self._replies.append(SIMULATOR_BANNER)
            elif command == Command.GET_STATUS.value:
                self._replies.append(self._status_frame())
            elif command == Command.OPEN.value:
                self._start_travel(+1)
            elif command == Command.CLOSE.value:
                self._start_travel(-1)
            elif command == Command.STOP.value:
                self._stop_travel()
            else:
                logger.warning(f"[SIMULATOR] Unknown command: {command!r}")

    def receive_until(self, terminator: str = "#", timeout_ms: int = 1000) -> str:
        if not self._open:
            raise NotConnectedError("Simulator not connected")

        protocol_logger = get_protocol_logger()

        if self.config.inject_timeout:
            # The reply is lost, not delayed
            with self._lock:
                if self._replies:
                    self._replies.popleft()
            time.sleep(timeout_ms / 1000.0)
            protocol_logger.log_error("Simulated timeout")
            raise SerialTimeoutError(f"No '{terminator}' within {timeout_ms} ms (simulated)")

        self._delay()

        with self._lock:
            if not self._replies:
                reply = None
            else:
                reply = self._replies.popleft()

        if reply is None:
            time.sleep(timeout_ms / 1000.0)
            protocol_logger.log_error(f"Timeout after {timeout_ms} ms")
            raise SerialTimeoutError(f"No '{terminator}' within {timeout_ms} ms (partial: '')")

        protocol_logger.log_rx(reply)
        return reply

    # ------------------------------------------------------------------
    # Roof model
    # ------------------------------------------------------------------

    def _delay(self) -> None:
        if self.config.response_latency_ms > 0:
            time.sleep(self.config.response_latency_ms / 1000.0)

    def _start_travel(self, direction: int) -> None:
        if not self.scope_safe:
            logger.warning("[SIMULATOR] Scope not safe, move refused")
            return

        target = FULLY_OPEN if direction > 0 else FULLY_CLOSED
        if self._position == target:
            return

        self._direction = direction
        self._move_started = time.monotonic()
        self._move_origin = self._position
        logger.info(f"[SIMULATOR] Roof {'opening' if direction > 0 else 'closing'}")

    def _stop_travel(self) -> None:
        if self._direction:
            logger.info(f"[SIMULATOR] Roof stopped at {self._position:.0%}")
        self._direction = 0
        self._move_started = None

    def _update_position(self) -> None:
        if not self._direction:
            return

        elapsed = time.monotonic() - self._move_started
        travelled = elapsed / self.config.travel_seconds
        position = self._move_origin + self._direction * travelled
        self._position = min(FULLY_OPEN, max(FULLY_CLOSED, position))

        if self._position in (FULLY_OPEN, FULLY_CLOSED):
            logger.info(f"[SIMULATOR] Roof {'opened' if self._position == FULLY_OPEN else 'closed'}")
            self._direction = 0
            self._move_started = None

    def _shutter_token(self) -> str:
        if self._direction > 0:
            return "opening"
        if self._direction < 0:
            return "closing"
        if self._position == FULLY_OPEN:
            return "opened"
        if self._position == FULLY_CLOSED:
            return "closed"
        # Stopped part way
        return "stopped"

    def _motion_token(self) -> str:
        if self._direction:
            return "moving"
        if self._position == FULLY_OPEN:
            return "not_moving_o"
        if self._position == FULLY_CLOSED:
            return "not_moving_c"
        return "not_moving"

    def _status_frame(self) -> str:
        scope = "safe" if self.scope_safe else "unsafe"
        return f"{self._shutter_token()},{scope},{self._motion_token()}"

    # ------------------------------------------------------------------
    # Control (simulator GUI and tests)
    # ------------------------------------------------------------------

    def set_scope_safe(self, safe: bool) -> None:
        """Flip the telescope interlock. Going unsafe stops a moving roof."""
        with self._lock:
            self._update_position()
            self.scope_safe = safe
            if not safe:
                self._stop_travel()
        logger.info(f"[SIMULATOR] Scope {'safe' if safe else 'unsafe'}")

    def get_state(self) -> dict:
        with self._lock:
            self._update_position()
            return {
                "connected": self._open,
                "shutter": self._shutter_token(),
                "scope_safe": self.scope_safe,
                "is_moving": self._direction != 0,
                "position_percent": round(self._position * 100, 1),
                "travel_seconds": self.config.travel_seconds,
                "inject_timeout": self.config.inject_timeout,
            }

    def reset(self) -> None:
        """Back to the configured initial state."""
        with self._lock:
            self._position = FULLY_OPEN if self.config.initial_state == "open" else FULLY_CLOSED
            self._direction = 0
            self._move_started = None
            self.scope_safe = self.config.scope_safe
            self._replies.clear()
        logger.info("Simulator reset to initial state")
