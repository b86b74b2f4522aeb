"""
Protocol package for VINU roof controller serial communication.
"""

from vinu_alpaca.protocol.interface import TransportInterface
from vinu_alpaca.protocol.vinu_serial import SerialTransport
from vinu_alpaca.protocol.port_scanner import (
    PortInfo,
    DiscoveredDevice,
    list_available_ports,
    probe_port,
    scan_for_vinu,
)
from vinu_alpaca.protocol.encoder import (
    Command,
    StatusFrame,
    encode_command,
    decode_status,
    is_vinu_handshake,
)

__all__ = [
    "TransportInterface",
    "SerialTransport",
    "PortInfo",
    "DiscoveredDevice",
    "list_available_ports",
    "probe_port",
    "scan_for_vinu",
    "Command",
    "StatusFrame",
    "encode_command",
    "decode_status",
    "is_vinu_handshake",
]
