"""Main entry point - runs the swap quote API."""

import asyncio
import logging
import signal
import sys

import uvicorn

from lzswap.api.app import create_app
from lzswap.config import get_settings
from lzswap.errors import ConfigurationError
from lzswap.routing.factory import create_remote_gateway

logger = logging.getLogger(__name__)


class Application:
    """Serves the quote proxy until a shutdown signal arrives."""

    def __init__(self):
        self.settings = get_settings()
        self.gateway = None
        self.server = None

    async def start(self):
        """Start all services."""
        # Configure logging
        log_level = logging.DEBUG if self.settings.debug else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        logger.info("Starting lzswap...")
        logger.info(f"Environment: {self.settings.environment}")

        # The proxy cannot serve a single quote without its upstream
        self.gateway = create_remote_gateway()
        logger.info(f"Quote gateway ready: {self.gateway.name}")

        app = create_app(gateway=self.gateway)
        config = uvicorn.Config(
            app,
            host=self.settings.api_host,
            port=self.settings.api_port,
            log_level="debug" if self.settings.debug else "info",
        )
        self.server = uvicorn.Server(config)
        logger.info(f"Starting API server on {self.settings.api_host}:{self.settings.api_port}")
        try:
            await self.server.serve()
        finally:
            await self._cleanup()

    async def _cleanup(self):
        """Cleanup resources."""
        logger.info("Cleaning up...")
        if self.gateway:
            await self.gateway.aclose()
        logger.info("Cleanup complete")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        if self.server:
            self.server.should_exit = True


def main():
    """Main entry point."""
    app = Application()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
