"""
Map driver exceptions and operation outcomes to ASCOM Alpaca error codes.
"""

from typing import Tuple

from vinu_alpaca.dome.controller import OperationOutcome, OutcomeKind
from vinu_alpaca.utils.exceptions import (
    NotConnectedError,
    InvalidValueError,
    InvalidOperationError,
    NotImplementedDriverError,
    VinuException,
)


# ASCOM Alpaca Error Codes
ERROR_NOT_IMPLEMENTED = 0x400  # 1024
ERROR_INVALID_VALUE = 0x401  # 1025
ERROR_NOT_CONNECTED = 0x407  # 1031
ERROR_INVALID_OPERATION = 0x40B  # 1035
ERROR_DRIVER_ERROR = 0x500  # 1280


def map_exception_to_alpaca(exception: Exception) -> Tuple[int, str]:
    """
    Map exception to Alpaca error code and message.

    Returns:
        Tuple of (ErrorNumber, ErrorMessage).
    """
    if isinstance(exception, NotConnectedError):
        return (ERROR_NOT_CONNECTED, str(exception))

    if isinstance(exception, InvalidValueError):
        return (ERROR_INVALID_VALUE, str(exception))

    if isinstance(exception, InvalidOperationError):
        return (ERROR_INVALID_OPERATION, str(exception))

    if isinstance(exception, NotImplementedDriverError):
        return (ERROR_NOT_IMPLEMENTED, str(exception))

    if isinstance(exception, VinuException):
        return (ERROR_DRIVER_ERROR, str(exception))

    return (ERROR_DRIVER_ERROR, f"Internal error: {type(exception).__name__}: {exception}")


def map_outcome_to_alpaca(outcome: OperationOutcome) -> Tuple[int, str]:
    """
    Map an open/close outcome to (ErrorNumber, ErrorMessage).

    Only a rejected request is an error for the client; a no-op or an
    aborted wait completed the call as far as ASCOM is concerned.
    """
    if outcome.kind == OutcomeKind.REJECTED:
        return (ERROR_INVALID_OPERATION, f"Request rejected: {outcome.reason}")
    return (0, "")
