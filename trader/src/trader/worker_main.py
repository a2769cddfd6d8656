"""
Entry point for the account worker.

Loads credentials through the configured secrets manager, starts the
Prometheus metrics endpoint and runs the account poller until
interrupted.  Configuration comes from the environment; see
``settings.py`` for the recognised variables.
"""

import asyncio
import logging
import os

from .clients import SignedRequestClient
from .secrets_manager import load_credentials
from .services import AccountPoller
from .settings import ClientSettings
from .telemetry import start_metrics_server


async def main() -> None:
    """Run the account poller with metrics exposed."""
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    logger = logging.getLogger(__name__)

    settings = ClientSettings.from_env()
    client = SignedRequestClient(load_credentials(), settings=settings)
    start_metrics_server()
    poller = AccountPoller(client)
    logger.info("Account worker started against %s", client.base_url)
    try:
        await poller.run()
    finally:
        poller.stop()
        logger.info("Account worker exiting")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
