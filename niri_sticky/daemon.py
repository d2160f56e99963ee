"""Main daemon entry point with systemd integration.

Owns the sticky state and runs the control server and the event reconciler
as independent asyncio tasks sharing it. The process stays up until SIGTERM
or SIGINT, even if the event reconciler stops.
"""

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

try:
    from systemd import journal, daemon as sd_daemon
    SYSTEMD_AVAILABLE = True
except ImportError:
    SYSTEMD_AVAILABLE = False

from .config import DaemonConfig
from .constants import EnvVars, SYSLOG_IDENTIFIER
from .control_server import ControlServer
from .errors import StartupFailed
from .niri import NiriClient
from .reconciler import EventReconciler
from .state import StickyState

logger = logging.getLogger(__name__)


class DaemonHealthMonitor:
    """Sends systemd readiness notifications when running under systemd."""

    def notify_ready(self) -> None:
        """Send READY=1 signal to systemd."""
        if SYSTEMD_AVAILABLE:
            sd_daemon.notify("READY=1")
            logger.info("Sent READY=1 to systemd")
        else:
            logger.debug("Systemd not available, skipping READY notification")

    def notify_stopping(self) -> None:
        """Send STOPPING=1 signal to systemd."""
        if SYSTEMD_AVAILABLE:
            sd_daemon.notify("STOPPING=1")
            logger.info("Sent STOPPING=1 to systemd")


class StickyDaemon:
    """Main daemon class."""

    def __init__(self, config: DaemonConfig) -> None:
        """Initialize daemon components.

        Args:
            config: Validated daemon configuration
        """
        self.config = config
        self.state = StickyState()
        self.niri = NiriClient(config.niri_socket, timeout=config.query_timeout)
        self.control_server = ControlServer(
            self.state,
            self.niri,
            socket_path=config.control_socket,
            max_connections=config.max_connections,
        )
        self.reconciler = EventReconciler(
            self.state,
            self.niri,
            reconnect=config.reconnect,
            max_reconnect_attempts=config.max_reconnect_attempts,
        )
        self.health_monitor = DaemonHealthMonitor()
        self.shutdown_event = asyncio.Event()
        self.reconciler_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Bind the control socket and start the reconciler task.

        Raises:
            StartupFailed: If the control socket cannot be bound
        """
        if not os.path.exists(self.config.niri_socket):
            logger.warning(f"niri socket {self.config.niri_socket} does not exist yet")

        await self.control_server.start()

        self.reconciler_task = asyncio.create_task(self.reconciler.run(), name="event-reconciler")
        self.reconciler_task.add_done_callback(self._on_reconciler_done)

        self.health_monitor.notify_ready()
        logger.info("nsticky daemon started.")

    def _on_reconciler_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error("Event reconciler crashed", exc_info=exc)
        else:
            logger.warning("Event reconciler stopped; control server keeps running")

    async def shutdown(self) -> None:
        """Stop the reconciler and the control server."""
        logger.info("Shutting down daemon...")
        self.health_monitor.notify_stopping()

        if self.reconciler_task and not self.reconciler_task.done():
            self.reconciler_task.cancel()
            try:
                await self.reconciler_task
            except asyncio.CancelledError:
                pass

        try:
            await asyncio.wait_for(self.control_server.stop(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Control server shutdown timed out after 5s (continuing)")

        logger.info("Daemon shutdown complete")

    def setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def shutdown_handler(signum: int) -> None:
            logger.info(f"Received signal {signum}, initiating shutdown...")
            self.shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, shutdown_handler, sig)


def setup_logging() -> None:
    """Setup logging to systemd journal or stderr."""
    log_level = os.environ.get(EnvVars.LOG_LEVEL, "INFO").upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if SYSTEMD_AVAILABLE and os.environ.get("JOURNAL_STREAM"):
        handler = journal.JournalHandler(SYSLOG_IDENTIFIER=SYSLOG_IDENTIFIER)
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(logging.Formatter("%(levelname)s [%(name)s] %(message)s"))
    root_logger.addHandler(handler)

    logger.debug(f"Logging configured: level={log_level}")


async def main_async() -> int:
    """Async main function.

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    try:
        config = DaemonConfig.from_env()
        daemon = StickyDaemon(config)
        daemon.setup_signal_handlers()
        await daemon.start()
    except StartupFailed as e:
        logger.error(e.message)
        return 1

    try:
        await daemon.shutdown_event.wait()
    finally:
        await daemon.shutdown()

    return 0


def main() -> None:
    """Daemon entry point."""
    setup_logging()
    logger.info(f"nsticky daemon starting (PID {os.getpid()})")

    try:
        sys.exit(asyncio.run(main_async()))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
