"""
Configuration models using Pydantic for validation.

All configuration is loaded from config.json and validated at startup.
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    ip: str = Field(default="0.0.0.0", description="IP address to bind to")
    port: int = Field(default=5000, ge=1, le=65535, description="HTTP port")
    discovery_enabled: bool = Field(
        default=True, description="Enable UDP discovery protocol"
    )


class SerialConfig(BaseModel):
    """Serial port configuration."""

    port: str = Field(default="COM3", description="Serial port name (e.g., COM3, /dev/ttyUSB0)")
    baud: int = Field(default=9600, description="Baud rate")
    scan_timeout_seconds: float = Field(
        default=2.0, ge=0.5, le=10.0, description="Timeout per port during discovery scan"
    )


class DomeConfig(BaseModel):
    """Roof operation configuration."""

    operation_timeout_seconds: int = Field(
        default=30, ge=1, le=300, description="Maximum open/close duration (seconds)"
    )
    poll_interval_ms: int = Field(
        default=500, ge=1, le=5000, description="Status polling interval during open/close (ms)"
    )
    status_timeout_ms: int = Field(
        default=1000, ge=50, le=10000, description="Read timeout for a single get# reply (ms)"
    )
    trace_enabled: bool = Field(
        default=False, description="Record TX/RX frames in the protocol trace buffer"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    file: Optional[str] = Field(
        default="vinu_alpaca.log",
        description="Log file path (None for console only)"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class SimulatorConfig(BaseModel):
    """Roof controller simulator configuration."""

    enabled: bool = Field(default=False, description="Use simulator instead of real hardware")
    initial_state: str = Field(default="closed", description="Starting roof position: open or closed")
    travel_seconds: float = Field(
        default=10.0, gt=0, le=300, description="Simulated full travel time"
    )
    scope_safe: bool = Field(default=True, description="Initial scope safety interlock")
    response_latency_ms: int = Field(
        default=0, ge=0, le=5000, description="Artificial response delay (ms)"
    )
    inject_timeout: bool = Field(default=False, description="Never answer (every read times out)")

    @field_validator("initial_state")
    @classmethod
    def validate_initial_state(cls, v):
        """Only resting positions are valid start states."""
        if v.lower() not in ("open", "closed"):
            raise ValueError(f"initial_state must be 'open' or 'closed', got: {v}")
        return v.lower()


class AppConfig(BaseModel):
    """Root configuration model."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    serial: SerialConfig = Field(default_factory=SerialConfig)
    dome: DomeConfig = Field(default_factory=DomeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)

    class Config:
        """Pydantic config."""
        extra = "forbid"  # Raise error on unknown fields


class UserSettings(BaseModel):
    """
    Driver settings that persist locally between sessions.

    This is the profile store: the port, operation timeout and trace
    flag chosen by the operator survive restarts here.
    """

    port: Optional[str] = Field(
        default=None,
        description="Serial port of the roof controller"
    )
    timeout: Optional[int] = Field(
        default=None,
        ge=1,
        le=300,
        description="Open/close operation timeout in seconds. None = use config.json"
    )
    trace_enabled: Optional[bool] = Field(
        default=None,
        description="Protocol trace enabled. None = use config.json"
    )
    use_simulator: Optional[bool] = Field(
        default=None,
        description="Use simulator mode instead of real hardware. None = use config.json"
    )

    class Config:
        """Pydantic config."""
        extra = "ignore"  # Ignore unknown fields for forward compatibility
