"""
Custom exception classes for the VINU roll-off roof driver.
"""


class VinuException(Exception):
    """Base exception for all VINU driver errors."""
    pass


class NotConnectedError(VinuException):
    """Raised when operation requires a session but none is registered."""
    pass


class DriverError(VinuException):
    """General driver error (maps to Alpaca ErrorNumber 1280)."""
    pass


class InvalidValueError(VinuException):
    """Invalid parameter value (maps to Alpaca ErrorNumber 1026)."""
    pass


class InvalidOperationError(VinuException):
    """Operation not allowed in the current state (maps to Alpaca ErrorNumber 1035)."""
    pass


class NotImplementedDriverError(VinuException):
    """Capability not supported by a roll-off roof (maps to Alpaca ErrorNumber 1024)."""
    pass


class ProtocolError(VinuException):
    """VINU protocol error (unexpected or unusable response)."""
    pass


class MalformedFrameError(ProtocolError):
    """Status frame does not split into exactly three non-empty tokens."""
    pass


class SerialTimeoutError(VinuException):
    """No '#' terminator received before the read deadline."""
    pass


class TransportError(VinuException):
    """I/O failure on an open serial port."""
    pass


class PortNotFoundError(DriverError):
    """Serial port does not exist."""
    pass


class PortInUseError(DriverError):
    """Serial port is already open by another application."""
    pass


class HandshakeError(DriverError):
    """Device did not answer Init# with a VINU banner."""
    pass


class ShutterError(DriverError):
    """Shutter operation ended with the roof in error state."""
    pass


class ShutterTimeoutError(ShutterError):
    """Shutter did not reach its target within the operation timeout."""
    pass
