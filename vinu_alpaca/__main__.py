"""
Main entry point for the VINU ASCOM Alpaca Driver.

Usage:
    python -m vinu_alpaca [--config CONFIG_PATH] [--settings SETTINGS_PATH]
"""

import argparse
import sys
import logging
import signal

import uvicorn

from vinu_alpaca import __version__
from vinu_alpaca.api.app import create_app
from vinu_alpaca.api.discovery import DiscoveryServer
from vinu_alpaca.config.loader import load_config, ConfigurationError
from vinu_alpaca.config.user_settings import UserSettingsManager, DEFAULT_SETTINGS_FILE
from vinu_alpaca.dome.session import DomeSession
from vinu_alpaca.protocol.port_scanner import list_available_ports
from vinu_alpaca.protocol.vinu_serial import SerialTransport
from vinu_alpaca.simulator.mock_roof import MockRoofTransport
from vinu_alpaca.utils.logging_setup import setup_logging


logger = logging.getLogger(__name__)


# Global resources for cleanup
discovery_server = None
dome_session = None


def shutdown() -> None:
    """Stop discovery and drop every client (closes the serial link)."""
    if discovery_server:
        discovery_server.stop()
    if dome_session:
        dome_session.disconnect_all()


def signal_handler(signum, frame):
    """Handle shutdown signals (SIGINT, SIGTERM)."""
    logger.info(f"Received signal {signum}, shutting down...")
    shutdown()
    sys.exit(0)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="VINU roll-off roof ASCOM Alpaca Driver")
    parser.add_argument(
        "--config",
        type=str,
        default="config.json",
        help="Path to configuration file (default: config.json)"
    )
    parser.add_argument(
        "--settings",
        type=str,
        default=DEFAULT_SETTINGS_FILE,
        help=f"Path to persisted user settings (default: {DEFAULT_SETTINGS_FILE})"
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main application entry point."""
    global discovery_server, dome_session

    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.logging)

    logger.info("=" * 60)
    logger.info(f"VINU ASCOM Alpaca Driver v{__version__}")
    logger.info("=" * 60)

    user_settings = UserSettingsManager(args.settings)

    # User preference overrides config.json so the GUI mode switch survives restarts
    use_simulator = config.simulator.enabled
    if user_settings.use_simulator is not None:
        if user_settings.use_simulator != use_simulator:
            logger.info(f"User preference overrides config: use_simulator={user_settings.use_simulator}")
        use_simulator = user_settings.use_simulator

    if use_simulator:
        logger.info("Using SIMULATOR mode")
        transport = MockRoofTransport(config.simulator)
    else:
        logger.info("Using REAL HARDWARE mode")
        available_ports = list_available_ports()
        if available_ports:
            logger.info(f"Available serial ports: {', '.join(p.name for p in available_ports)}")
        else:
            logger.warning("No serial ports found on system")
        transport = SerialTransport()

    dome_session = DomeSession(transport, config.serial, config.dome, user_settings)

    app = create_app(
        config,
        dome_session,
        simulator=transport if use_simulator else None,
        user_settings=user_settings,
    )

    server_port = config.server.port

    if config.server.discovery_enabled:
        discovery_server = DiscoveryServer(server_port)
        try:
            discovery_server.start()
        except OSError as e:
            logger.error(f"Failed to start discovery server: {e}")
            logger.warning("Continuing without discovery (clients must be pointed at the port)")
            discovery_server = None

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(f"Starting Alpaca API server on {config.server.ip}:{server_port}")
    logger.info("Press Ctrl+C to stop")

    try:
        uvicorn.run(
            app,
            host=config.server.ip,
            port=server_port,
            log_level=config.logging.level.lower(),
            access_log=False
        )
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        shutdown()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
