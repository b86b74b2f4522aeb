"""
Command encoding and status frame decoding for the VINU protocol.

Commands are ASCII tokens ending in '#', sent with a trailing newline.
Status replies are "<shutter>,<scope>,<motion>" lines ending in '#'.
"""

from dataclasses import dataclass
from enum import Enum

from vinu_alpaca.utils.exceptions import MalformedFrameError


TERMINATOR = "#"
HANDSHAKE_BANNER = "VINU"


class Command(str, Enum):
    """Commands understood by the roof controller firmware."""
    INIT = "Init#"
    GET_STATUS = "get#"
    OPEN = "open#"
    CLOSE = "close#"
    STOP = "stop#"


@dataclass(frozen=True)
class StatusFrame:
    """One decoded status line. Tokens are trimmed and lower-cased."""
    shutter: str
    scope: str
    motion: str


def encode_command(command: Command) -> bytes:
    """
    Encode a command for the wire.

    Example:
        >>> encode_command(Command.OPEN)
        b'open#\\n'
    """
    return (command.value + "\n").encode("ascii")


def decode_status(raw: str) -> StatusFrame:
    """
    Decode a status reply into its three tokens.

    Args:
        raw: Reply text without the '#' terminator.

    Returns:
        StatusFrame with trimmed, lower-cased tokens.

    Raises:
        MalformedFrameError: If the reply does not contain exactly
            three non-empty comma-separated tokens.

    Example:
        >>> decode_status(" Open , SAFE ,not_moving_o")
        StatusFrame(shutter='open', scope='safe', motion='not_moving_o')
    """
    tokens = [t.strip().lower() for t in raw.split(",")]
    tokens = [t for t in tokens if t]

    if len(tokens) != 3:
        raise MalformedFrameError(f"Expected 3 status tokens, got {len(tokens)}: {raw!r}")

    return StatusFrame(shutter=tokens[0], scope=tokens[1], motion=tokens[2])


def is_vinu_handshake(response: str) -> bool:
    """True if an Init# reply identifies a VINU controller."""
    return HANDSHAKE_BANNER.lower() in response.lower()
