"""
Shutter status state machine.

Holds roof position, scope safety and the motion flag, and merges each
status frame into them. Tokens are evaluated shutter, then scope, then
motion; the motion token may override what the shutter token set.
"""

import logging
import threading
from enum import Enum, IntEnum
from typing import Optional

from vinu_alpaca.protocol.encoder import StatusFrame, decode_status
from vinu_alpaca.utils.exceptions import MalformedFrameError


logger = logging.getLogger(__name__)


class RoofState(IntEnum):
    """Roof position/motion. Values match ASCOM ShutterState."""
    OPEN = 0
    CLOSED = 1
    OPENING = 2
    CLOSING = 3
    ERROR = 4


class ScopeSafety(Enum):
    """Telescope interlock reported by the controller."""
    SAFE = "safe"
    UNSAFE = "unsafe"


# Shutter tokens
STATUS_OPEN = "open"
STATUS_OPENED = "opened"
STATUS_CLOSED = "closed"
STATUS_OPENING = "opening"
STATUS_CLOSING = "closing"

# Motion tokens
MOTION_NOT_MOVING = "not_moving"
MOTION_MOVING = "moving"
SUFFIX_AT_OPEN = "_o"
SUFFIX_AT_CLOSED = "_c"


class ShutterStatus:
    """
    Current shutter, scope and motion state.

    Starts with the position unknown (ERROR), the scope unsafe and no
    motion, which is also where reset() puts it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.roof_state = RoofState.ERROR
        self.scope_safety = ScopeSafety.UNSAFE
        self.is_moving = False

    @property
    def scope_safe(self) -> bool:
        return self.scope_safety == ScopeSafety.SAFE

    def apply(self, frame: StatusFrame) -> None:
        """Merge a well-formed frame into the current state."""
        with self._lock:
            self._apply_shutter(frame.shutter)
            self._apply_scope(frame.scope)
            self._apply_motion(frame.motion)

        logger.debug(
            f"[UpdateStatus] Parsed status -> Shutter: {self.roof_state.name}, "
            f"Scope: {self.scope_safety.name}, IsMoving: {self.is_moving}"
        )

    def apply_response(self, raw: Optional[str]) -> None:
        """
        Apply a raw status reply.

        None means nothing arrived (read timeout) and changes nothing.
        An empty reply forces ERROR. A malformed reply is ignored.
        """
        if raw is None:
            return

        if not raw.strip():
            logger.warning("[UpdateStatus] Empty status response, setting error state")
            self.force_error()
            return

        try:
            frame = decode_status(raw)
        except MalformedFrameError as e:
            logger.warning(f"[UpdateStatus] Incomplete status response ignored: {e}")
            return

        self.apply(frame)

    def force_error(self) -> None:
        """Position unknown, nothing moving."""
        with self._lock:
            self.roof_state = RoofState.ERROR
            self.is_moving = False

    def clear_motion(self) -> None:
        with self._lock:
            self.is_moving = False

    def reset(self) -> None:
        """Back to the disconnected state."""
        with self._lock:
            self.roof_state = RoofState.ERROR
            self.scope_safety = ScopeSafety.UNSAFE
            self.is_moving = False

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "roof_state": self.roof_state.name.lower(),
                "shutter_status": int(self.roof_state),
                "scope_safe": self.scope_safety == ScopeSafety.SAFE,
                "is_moving": self.is_moving,
            }

    def _apply_shutter(self, token: str) -> None:
        if not token:
            self.roof_state = RoofState.ERROR
        elif STATUS_OPENING in token:
            self.roof_state = RoofState.OPENING
            self.is_moving = True
        elif STATUS_CLOSING in token:
            self.roof_state = RoofState.CLOSING
            self.is_moving = True
        elif STATUS_OPENED in token or token == STATUS_OPEN:
            self.roof_state = RoofState.OPEN
        elif STATUS_CLOSED in token:
            self.roof_state = RoofState.CLOSED
        else:
            self.roof_state = RoofState.ERROR

    def _apply_scope(self, token: str) -> None:
        if token == ScopeSafety.SAFE.value:
            self.scope_safety = ScopeSafety.SAFE
        else:
            self.scope_safety = ScopeSafety.UNSAFE

    def _apply_motion(self, token: str) -> None:
        if not token:
            return

        if token.startswith(MOTION_NOT_MOVING):
            self.is_moving = False
            # Motion token wins over the shutter token for resting position
            if token.endswith(SUFFIX_AT_OPEN):
                self.roof_state = RoofState.OPEN
            elif token.endswith(SUFFIX_AT_CLOSED):
                self.roof_state = RoofState.CLOSED
        elif token.startswith(MOTION_MOVING):
            self.is_moving = True
        else:
            self.is_moving = False
