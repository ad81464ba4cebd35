"""Control plane machine set controller entry point."""

import asyncio
import logging
import signal
from typing import Optional

from .cluster import ClusterConnection
from .config import Settings, get_settings
from .watch import ReconciliationLoop

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for the controller process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class Application:
    """Main application orchestrator."""

    def __init__(self, settings: Settings):
        """
        Initialize application.

        Args:
            settings: Controller settings
        """
        self.settings = settings
        self.cluster: Optional[ClusterConnection] = None
        self.loop: Optional[ReconciliationLoop] = None
        self._shutdown = False

    async def start(self) -> None:
        """Start the application."""
        logger.info(f"Starting {self.settings.service_name}...")
        logger.info(f"   Version: {self.settings.version}")
        logger.info(f"   Namespace: {self.settings.namespace}")
        logger.info(f"   Machine set: {self.settings.machine_set_name}")

        self.cluster = ClusterConnection(
            kubeconfig_path=self.settings.kubeconfig_path,
            context=self.settings.kube_context,
        )
        self.loop = ReconciliationLoop(self.cluster, self.settings)
        await self.loop.start()

        logger.info("Controller started successfully")

        try:
            while not self._shutdown:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass

    async def stop(self) -> None:
        """Stop the application."""
        logger.info("Shutting down controller...")
        self._shutdown = True

        if self.loop:
            await self.loop.stop()
        if self.cluster:
            self.cluster.close()

        logger.info("Controller stopped")

    def handle_signal(self, sig: int) -> None:
        """
        Handle shutdown signals.

        Args:
            sig: Signal number
        """
        logger.info(f"Received signal {sig}, initiating shutdown...")
        self._shutdown = True


async def main() -> None:
    """Main entry point."""
    settings = get_settings()
    configure_logging(settings.log_level)
    app = Application(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, app.handle_signal, sig)

    try:
        await app.start()
    finally:
        await app.stop()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
