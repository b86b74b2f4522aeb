"""
Shutter operation controller.

Runs open/close as blocking, polled operations bounded by the
configured timeout, and abort as stop-then-resync. The protocol is
strictly half-duplex: at most one get# is ever awaiting its reply.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from vinu_alpaca.config.models import DomeConfig
from vinu_alpaca.dome.state import RoofState, ShutterStatus
from vinu_alpaca.protocol.encoder import Command, encode_command
from vinu_alpaca.protocol.interface import TransportInterface
from vinu_alpaca.utils.exceptions import (
    NotConnectedError,
    SerialTimeoutError,
    ShutterError,
    ShutterTimeoutError,
    VinuException,
)


logger = logging.getLogger(__name__)

ALREADY_MOVING = "AlreadyMoving"
SCOPE_UNSAFE = "ScopeUnsafe"
ALREADY_AT_TARGET = "AlreadyAtTarget"
CANCELLED = "Cancelled"
TIMED_OUT = "Timeout"
ERROR_STATE = "ErrorState"


class OperationState(Enum):
    """Lifecycle of one open/close operation."""
    IDLE = "idle"
    REQUESTING = "requesting"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"
    FAILED = "failed"


class OutcomeKind(Enum):
    OK = "ok"
    NOOP = "noop"
    ABORTED = "aborted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class OperationOutcome:
    """
    Result of open()/close().

    Faults (not connected, timeout, error state) are raised instead.
    """
    kind: OutcomeKind
    reason: str = ""
    roof_state: Optional[RoofState] = None

    @property
    def ok(self) -> bool:
        """True when the roof ended where it was asked to be (or was left alone on purpose)."""
        return self.kind in (OutcomeKind.OK, OutcomeKind.NOOP)

    @classmethod
    def succeeded(cls, roof_state: RoofState) -> "OperationOutcome":
        return cls(OutcomeKind.OK, roof_state=roof_state)

    @classmethod
    def noop(cls, reason: str, roof_state: RoofState) -> "OperationOutcome":
        return cls(OutcomeKind.NOOP, reason, roof_state)

    @classmethod
    def aborted(cls, reason: str, roof_state: RoofState) -> "OperationOutcome":
        return cls(OutcomeKind.ABORTED, reason, roof_state)

    @classmethod
    def rejected(cls, reason: str, roof_state: RoofState) -> "OperationOutcome":
        return cls(OutcomeKind.REJECTED, reason, roof_state)


class ShutterController:
    """
    Open/close/abort and status polling on top of a transport.

    Args:
        transport: Open link to the controller (owned by the session).
        status: State machine updated from every status reply.
        config: Timeout and polling settings; read at the start of each call.
        is_connected: Returns True while at least one session is registered.
    """

    def __init__(
        self,
        transport: TransportInterface,
        status: ShutterStatus,
        config: DomeConfig,
        is_connected: Callable[[], bool],
    ):
        self._transport = transport
        self.status = status
        self._config = config
        self._is_connected = is_connected

        # Serializes request/response round trips
        self._io_lock = threading.RLock()
        # Guards the checks that start an operation
        self._operation_lock = threading.Lock()

        self._pending_requests = 0
        self._cancel = threading.Event()
        self.operation_state = OperationState.IDLE

    @property
    def pending_requests(self) -> int:
        return self._pending_requests

    @property
    def operation_in_progress(self) -> bool:
        return self.operation_state in (OperationState.REQUESTING, OperationState.POLLING)

    def set_transport(self, transport: TransportInterface) -> None:
        self._transport = transport

    def reset(self) -> None:
        """Forget request bookkeeping; called whenever the link opens or closes."""
        self._pending_requests = 0
        self._cancel.clear()
        self.operation_state = OperationState.IDLE

    def _require_connected(self) -> None:
        if not self._is_connected():
            raise NotConnectedError("Not connected.")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def open(self) -> OperationOutcome:
        """
        Open the roof and block until it is open.

        Raises:
            NotConnectedError: If no session is registered.
            ShutterTimeoutError: If the roof did not open in time (after abort).
            ShutterError: If the controller reported an error state (after abort).
        """
        return self._run(RoofState.OPEN, Command.OPEN, "OpenShutter")

    def close(self) -> OperationOutcome:
        """Close the roof and block until it is closed. Raises like open()."""
        return self._run(RoofState.CLOSED, Command.CLOSE, "CloseShutter")

    def _run(self, target: RoofState, command: Command, tag: str) -> OperationOutcome:
        self._require_connected()

        with self._operation_lock:
            if self.status.is_moving or self.operation_in_progress:
                logger.warning(f"[{tag}] Roof is already moving")
                return OperationOutcome.rejected(ALREADY_MOVING, self.status.roof_state)

            if self.status.roof_state == target:
                logger.info(f"[{tag}] Roof is already {target.name.lower()}")
                return OperationOutcome.noop(ALREADY_AT_TARGET, target)

            if not self.status.scope_safe:
                logger.info(f"[{tag}] Scope is not safe, roof not moved")
                return OperationOutcome.noop(SCOPE_UNSAFE, self.status.roof_state)

            self._cancel.clear()
            self.operation_state = OperationState.REQUESTING

        logger.info(f"[{tag}] Attempting to {command.name.lower()} shutter")

        try:
            with self._io_lock:
                self._transport.send(encode_command(command))
        except VinuException:
            self.operation_state = OperationState.FAILED
            raise

        self.operation_state = OperationState.POLLING
        result, reason = self._wait_for_completion(target, tag)
        self.operation_state = result

        if result == OperationState.SUCCEEDED:
            return OperationOutcome.succeeded(self.status.roof_state)

        if result == OperationState.ABORTED:
            return OperationOutcome.aborted(reason, self.status.roof_state)

        verb = "opening" if target == RoofState.OPEN else "closing"
        try:
            self.abort()
        except VinuException as e:
            logger.error(f"[{tag}] Abort after failure did not complete: {e}")
        if reason == TIMED_OUT:
            raise ShutterTimeoutError(
                f"Timeout {verb} shutter after {self._config.operation_timeout_seconds} s."
            )
        raise ShutterError(f"Error {verb} shutter: controller reported an error state.")

    def _wait_for_completion(self, target: RoofState, tag: str) -> Tuple[OperationState, str]:
        timeout_s = self._config.operation_timeout_seconds
        interval_s = self._config.poll_interval_ms / 1000.0

        logger.debug(f"[{tag}] Waiting up to {timeout_s} s for {target.name}")

        start = time.monotonic()
        while time.monotonic() - start < timeout_s:
            if self._cancel.wait(interval_s):
                self.status.clear_motion()
                logger.info(f"[{tag}] Operation cancelled by abort")
                return OperationState.ABORTED, CANCELLED

            self.poll_status()

            if not self.status.scope_safe:
                self.status.clear_motion()
                logger.warning(f"[{tag}] Operation aborted: Scope not safe")
                return OperationState.ABORTED, SCOPE_UNSAFE

            if self.status.roof_state == target:
                self.status.clear_motion()
                logger.info(f"[{tag}] Operation successful. Reached target state: {target.name}")
                return OperationState.SUCCEEDED, ""

            if not self.status.is_moving:
                logger.info(
                    f"[{tag}] Roof stopped in state {self.status.roof_state.name}, operation complete"
                )
                return OperationState.SUCCEEDED, ""

            if self.status.roof_state == RoofState.ERROR:
                self.status.clear_motion()
                logger.error(f"[{tag}] Operation failed with error state")
                return OperationState.FAILED, ERROR_STATE

        logger.error(f"[{tag}] Operation timed out after {timeout_s} s")
        return OperationState.FAILED, TIMED_OUT

    def abort(self) -> None:
        """
        Stop the roof if it is moving, then resynchronize with one poll.

        Also wakes an open()/close() that is waiting in another thread.

        Raises:
            NotConnectedError: If no session is registered.
        """
        self._require_connected()
        logger.info("[AbortSlew] Aborting slew")

        self._cancel.set()

        with self._io_lock:
            if self.status.is_moving or self.status.roof_state in (RoofState.OPENING, RoofState.CLOSING):
                self._transport.send(encode_command(Command.STOP))
                self.status.clear_motion()

            self.poll_status()

    def poll_status(self) -> RoofState:
        """
        Request status and merge the reply.

        If an earlier get# is still unanswered its reply is read instead
        of sending another request. A read timeout leaves the state as it
        was; any other I/O failure forces ERROR.

        Returns:
            Roof state after the poll.

        Raises:
            NotConnectedError: If no session is registered.
        """
        self._require_connected()
        timeout_ms = self._config.status_timeout_ms

        with self._io_lock:
            try:
                if self._pending_requests > 0:
                    logger.debug("[PollStatus] Reading reply to earlier get#")
                    try:
                        raw = self._transport.receive_until("#", timeout_ms)
                    finally:
                        self._pending_requests -= 1
                else:
                    self._transport.send(encode_command(Command.GET_STATUS))
                    self._pending_requests += 1
                    raw = self._transport.receive_until("#", timeout_ms)
                    self._pending_requests -= 1
            except SerialTimeoutError:
                logger.debug("[PollStatus] No status reply this poll")
                raw = None
            except VinuException as e:
                logger.error(f"[PollStatus] Error polling status: {e}")
                self.status.force_error()
                return self.status.roof_state

            self.status.apply_response(raw)

        return self.status.roof_state
