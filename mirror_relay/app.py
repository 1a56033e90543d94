# app.py
import logging

from mirror_relay.services.logging_utils import setup_logging  # logging config must precede other imports
setup_logging()
logger = logging.getLogger(__name__)

import asyncio
import signal

from mirror_relay.config import RelaySettings
from mirror_relay.relay import SignalingRelay


def main():
    """
    Entry point for starting the signaling relay.

    Reads settings from the environment (see ``RelaySettings.from_env``) and
    runs the relay until SIGINT or SIGTERM.

    Parameters:
        None

    Returns:
        None
    """
    logger.info("Starting signaling relay...")
    settings = RelaySettings.from_env()
    try:
        asyncio.run(start_server(settings))
    except KeyboardInterrupt:
        pass


async def start_server(settings):
    """
    Asynchronously run the relay.

    Installs signal handlers that resolve a stop future, so shutdown cancels
    the sweeper and closes every connection cleanly.

    Parameters:
        settings (RelaySettings): Relay configuration.

    Returns:
        None
    """
    loop = asyncio.get_running_loop()
    stop = loop.create_future()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: stop.done() or stop.set_result(None))
        except NotImplementedError:
            # Windows event loops lack add_signal_handler
            pass

    relay = SignalingRelay(settings)
    await relay.start()
    logger.info("═══════════════════════════════════════════")
    logger.info(f"Relay address: {relay.generator.address}")
    logger.info(f"Descriptors:   http{'s' if settings.tls_enabled else ''}://"
                f"{relay.generator.address.split('://', 1)[1]}/generate-session")
    logger.info("═══════════════════════════════════════════")
    try:
        await stop
    finally:
        await relay.stop()


if __name__ == "__main__":
    main()
