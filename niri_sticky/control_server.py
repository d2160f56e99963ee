"""
Control server for the nsticky daemon.

Line-oriented server on a local unix socket. Each connection carries exactly
one request line and gets exactly one reply line, then the connection is
closed. Requests are validated against niri before the sticky state is
touched.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

from .constants import ConfigPaths
from .errors import MalformedRequest, NoFocus, NotFound, QueryFailed, StartupFailed
from .niri import NiriClient
from .protocol import (
    AddCommand,
    Command,
    ListCommand,
    RemoveCommand,
    Reply,
    ToggleActiveCommand,
    format_window_list,
    parse_command,
)
from .state import AddResult, RemoveResult, StickyState, ToggleResult

logger = logging.getLogger(__name__)


class ControlServer:
    """Unix socket server translating control requests into state mutations."""

    def __init__(
        self,
        state: StickyState,
        niri: NiriClient,
        socket_path: Union[str, Path] = ConfigPaths.CONTROL_SOCKET_PATH,
        max_connections: Optional[int] = None,
    ) -> None:
        """
        Initialize control server.

        Args:
            state: Shared sticky state
            niri: Client used to validate window ids
            socket_path: Where to create the control socket
            max_connections: Optional cap on concurrently handled connections
        """
        self.state = state
        self.niri = niri
        self.socket_path = Path(socket_path)
        self.server: Optional[asyncio.AbstractServer] = None
        self.clients: set[asyncio.StreamWriter] = set()
        self._slots = asyncio.Semaphore(max_connections) if max_connections else None

    async def start(self) -> None:
        """Bind the control socket, replacing a stale one.

        Raises:
            StartupFailed: If the socket cannot be created
        """
        try:
            self.socket_path.parent.mkdir(parents=True, exist_ok=True)

            # Remove socket left over from a previous run
            if self.socket_path.exists() or self.socket_path.is_symlink():
                self.socket_path.unlink()

            self.server = await asyncio.start_unix_server(
                self._handle_client, path=str(self.socket_path)
            )

            # User-only access; the socket permissions are the only access control
            self.socket_path.chmod(0o600)

        except OSError as e:
            raise StartupFailed(
                f"cannot bind control socket {self.socket_path}: {e}",
                context={"socket_path": str(self.socket_path)},
            ) from e

        logger.info(f"Control server listening on {self.socket_path} (permissions: 0600)")

    async def stop(self) -> None:
        """Stop accepting connections and remove the socket."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        for writer in list(self.clients):
            writer.close()

        self.socket_path.unlink(missing_ok=True)
        logger.info("Control server stopped")

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Handle one control connection: one line in, one line out."""
        self.clients.add(writer)
        try:
            if self._slots:
                async with self._slots:
                    await self._serve_one(reader, writer)
            else:
                await self._serve_one(reader, writer)

        except Exception as e:
            logger.error(f"Error handling control connection: {e}", exc_info=True)

        finally:
            self.clients.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    async def _serve_one(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        data = await reader.readline()
        if not data:
            logger.debug("Control client closed before sending a request")
            return

        reply = await self.handle_line(data.decode(errors="replace"))
        writer.write((reply + "\n").encode())
        await writer.drain()

    async def handle_line(self, line: str) -> str:
        """Parse and execute one request line.

        Args:
            line: Raw request line

        Returns:
            Reply line without the trailing newline
        """
        try:
            command = parse_command(line)
        except MalformedRequest as e:
            logger.debug(f"Malformed request {line.strip()!r}: {e.reply}")
            return e.reply

        logger.debug(f"Received request: {command}")

        try:
            return await self.dispatch(command)
        except NotFound as e:
            logger.debug(f"Rejected {command}: {e.message}")
            return Reply.WINDOW_NOT_FOUND.value
        except QueryFailed as e:
            logger.error(f"Cannot serve {command}: {e.to_dict()}")
            return Reply.QUERY_FAILED.value

    async def dispatch(self, command: Command) -> str:
        """Execute a parsed command and return its reply.

        Raises:
            NotFound: If an add/remove target is not an open window
            QueryFailed: If the niri window list cannot be fetched
        """
        if isinstance(command, AddCommand):
            return await self._handle_add(command.window_id)
        if isinstance(command, RemoveCommand):
            return await self._handle_remove(command.window_id)
        if isinstance(command, ListCommand):
            return await self._handle_list()
        if isinstance(command, ToggleActiveCommand):
            return await self._handle_toggle_active()
        return Reply.UNKNOWN_COMMAND.value

    async def _require_window(self, window_id: int) -> None:
        if window_id not in await self.niri.list_windows():
            raise NotFound(window_id)

    async def _handle_add(self, window_id: int) -> str:
        # Validate before taking the lock; a window closing in between is
        # dropped by the next reconciliation pass
        await self._require_window(window_id)

        if await self.state.add(window_id) is AddResult.INSERTED:
            logger.info(f"Window {window_id} is now sticky")
            return Reply.ADDED.value
        return Reply.ALREADY_STICKY.value

    async def _handle_remove(self, window_id: int) -> str:
        await self._require_window(window_id)

        if await self.state.remove(window_id) is RemoveResult.REMOVED:
            logger.info(f"Window {window_id} is no longer sticky")
            return Reply.REMOVED.value
        return Reply.NOT_STICKY.value

    async def _handle_list(self) -> str:
        snapshot = await self.state.snapshot()
        existing = await self.niri.list_windows()
        return format_window_list(wid for wid in snapshot if wid in existing)

    async def _handle_toggle_active(self) -> str:
        try:
            active_id = await self.niri.focused_window()
        except (QueryFailed, NoFocus) as e:
            logger.warning(f"Failed to get active window: {e.message}")
            return Reply.ACTIVE_FAILED.value

        if active_id not in await self.niri.list_windows():
            return Reply.ACTIVE_NOT_FOUND.value

        if await self.state.toggle(active_id) is ToggleResult.ADDED:
            logger.info(f"Active window {active_id} is now sticky")
            return Reply.ACTIVE_ADDED.value
        logger.info(f"Active window {active_id} is no longer sticky")
        return Reply.ACTIVE_REMOVED.value
