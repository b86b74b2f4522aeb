"""
Serial port enumeration and VINU controller discovery.

Lists the serial ports on the system and finds roof controllers by
sending Init# and looking for the VINU banner in the reply.
"""

import logging
import time
from dataclasses import dataclass, asdict
from typing import List, Optional

import serial.tools.list_ports

from vinu_alpaca.protocol.encoder import Command, encode_command, is_vinu_handshake
from vinu_alpaca.protocol.vinu_serial import SerialTransport
from vinu_alpaca.utils.exceptions import VinuException


logger = logging.getLogger(__name__)


@dataclass
class PortInfo:
    """Information about an available serial port."""

    name: str
    description: str
    hardware_id: str
    is_bluetooth: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DiscoveredDevice:
    """A port that answered the VINU handshake."""

    port: str
    banner: str
    description: str

    def to_dict(self) -> dict:
        return asdict(self)


def list_available_ports(include_bluetooth: bool = True) -> List[PortInfo]:
    """
    List all serial ports on the system, sorted by name.

    Args:
        include_bluetooth: If False, filter out Bluetooth virtual ports.
    """
    ports = []

    for port in serial.tools.list_ports.comports():
        desc_lower = (port.description or "").lower()
        is_bluetooth = "bluetooth" in desc_lower or "bth" in desc_lower

        if is_bluetooth and not include_bluetooth:
            continue

        ports.append(
            PortInfo(
                name=port.device,
                description=port.description or "Unknown",
                hardware_id=port.hwid or "",
                is_bluetooth=is_bluetooth,
            )
        )

    ports.sort(key=lambda p: p.name)

    logger.debug(f"Found {len(ports)} serial ports")
    return ports


def probe_port(port_name: str, description: str = "", timeout_seconds: float = 2.0) -> Optional[DiscoveredDevice]:
    """
    Check whether a VINU controller answers on a port.

    Returns:
        DiscoveredDevice if the Init# reply carries the VINU banner, None otherwise.
    """
    logger.debug(f"Probing {port_name} ({description})...")

    timeout_ms = int(timeout_seconds * 1000)
    transport = SerialTransport()
    try:
        transport.open(port_name, timeout_ms=timeout_ms)
        transport.send(encode_command(Command.INIT))
        banner = transport.receive_until("#", timeout_ms)
    except VinuException as e:
        logger.debug(f"Skipping {port_name}: {e}")
        return None
    finally:
        transport.close()

    if not is_vinu_handshake(banner):
        logger.debug(f"{port_name}: not a VINU controller (reply {banner!r})")
        return None

    logger.info(f"Found VINU controller on {port_name} ({banner})")
    return DiscoveredDevice(port=port_name, banner=banner, description=description)


def scan_for_vinu(
    timeout_seconds: float = 2.0,
    skip_ports: Optional[List[str]] = None,
    include_bluetooth: bool = False,
) -> List[DiscoveredDevice]:
    """
    Probe every serial port for a VINU roof controller.

    Args:
        timeout_seconds: Handshake timeout per port.
        skip_ports: Port names to leave alone (e.g., the one already in use).
        include_bluetooth: If True, also probe Bluetooth ports.
    """
    skip_ports = skip_ports or []
    discovered = []

    ports = list_available_ports(include_bluetooth=include_bluetooth)
    logger.info(f"Scanning {len(ports)} ports for VINU controllers...")

    start_time = time.time()

    for port_info in ports:
        if port_info.name in skip_ports:
            logger.debug(f"Skipping {port_info.name}: in skip list")
            continue

        device = probe_port(port_info.name, port_info.description, timeout_seconds)
        if device:
            discovered.append(device)

    elapsed_ms = int((time.time() - start_time) * 1000)
    logger.info(f"Scan complete: found {len(discovered)} VINU controller(s) in {elapsed_ms}ms")

    return discovered
