"""niri IPC client.

Talks to niri over the unix socket named by ``$NIRI_SOCKET``. Every request
opens a fresh connection, writes one JSON line and reads one JSON reply line
of the form ``{"Ok": ...}`` or ``{"Err": "..."}``. The event stream is the
exception: after the ``"EventStream"`` request the connection stays open and
niri keeps writing one event per line.
"""

import asyncio
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Optional, Set, Union

from pydantic import ValidationError

from .errors import CommandFailed, NoFocus, QueryFailed
from .models import MoveWindowToWorkspace, NiriWindow

logger = logging.getLogger(__name__)

# Replies and event lines can carry full window/workspace snapshots
STREAM_LIMIT = 4 * 1024 * 1024


class StreamState(Enum):
    """Lifecycle of one event stream session."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    STREAMING = "streaming"


def _unwrap_reply(operation: str, line: bytes) -> Any:
    """Decode a niri reply line and return the Ok payload.

    Raises:
        QueryFailed: On EOF, invalid JSON, an Err reply, or an unknown shape
    """
    if not line:
        raise QueryFailed(operation, "connection closed before reply")

    try:
        reply = json.loads(line.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise QueryFailed(operation, f"invalid reply: {e}") from e

    if isinstance(reply, dict) and "Ok" in reply:
        return reply["Ok"]
    if isinstance(reply, dict) and "Err" in reply:
        raise QueryFailed(operation, str(reply["Err"]))
    raise QueryFailed(operation, f"unexpected reply: {line[:200]!r}")


class NiriClient:
    """Async client for the subset of niri IPC the daemon needs."""

    def __init__(self, socket_path: Union[str, Path], timeout: Optional[float] = None) -> None:
        """Initialize client.

        Args:
            socket_path: Path of niri's IPC socket
            timeout: Optional per-request timeout in seconds
        """
        self.socket_path = str(socket_path)
        self.timeout = timeout

    async def _request(self, operation: str, request: Any) -> Any:
        """Send one request on a fresh connection and return the Ok payload."""
        try:
            return await asyncio.wait_for(self._roundtrip(operation, request), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise QueryFailed(operation, f"timed out after {self.timeout}s") from e
        except OSError as e:
            raise QueryFailed(operation, f"cannot reach niri at {self.socket_path}: {e}") from e
        except ValueError as e:
            # Reply line longer than STREAM_LIMIT
            raise QueryFailed(operation, f"reply too large: {e}") from e

    async def _roundtrip(self, operation: str, request: Any) -> Any:
        reader, writer = await asyncio.open_unix_connection(self.socket_path, limit=STREAM_LIMIT)
        try:
            writer.write((json.dumps(request) + "\n").encode())
            await writer.drain()
            line = await reader.readline()
        finally:
            writer.close()
            await writer.wait_closed()
        return _unwrap_reply(operation, line)

    async def list_windows(self) -> Set[int]:
        """Get the ids of all windows niri currently manages.

        Raises:
            QueryFailed: If niri is unreachable or the reply is malformed
        """
        payload = await self._request("Windows", "Windows")

        if not isinstance(payload, dict) or not isinstance(payload.get("Windows"), list):
            raise QueryFailed("Windows", "reply does not contain a window list")

        try:
            windows = [NiriWindow.model_validate(item) for item in payload["Windows"]]
        except ValidationError as e:
            raise QueryFailed("Windows", f"malformed window entry: {e.errors()[0]['msg']}") from e

        return {window.id for window in windows}

    async def focused_window(self) -> int:
        """Get the id of the focused window.

        Raises:
            QueryFailed: If niri is unreachable or the reply is malformed
            NoFocus: If no window has focus
        """
        payload = await self._request("FocusedWindow", "FocusedWindow")

        if not isinstance(payload, dict) or "FocusedWindow" not in payload:
            raise QueryFailed("FocusedWindow", "reply does not contain a focused window")

        focused = payload["FocusedWindow"]
        if focused is None:
            raise NoFocus()

        try:
            return NiriWindow.model_validate(focused).id
        except ValidationError as e:
            raise QueryFailed("FocusedWindow", f"malformed window: {e.errors()[0]['msg']}") from e

    async def move_window(self, window_id: int, workspace_id: int) -> None:
        """Move a window to a workspace without focusing it.

        Raises:
            CommandFailed: If niri is unreachable or rejects the action
        """
        action = MoveWindowToWorkspace(window_id=window_id, workspace_id=workspace_id)
        try:
            result = await self._request("MoveWindowToWorkspace", action.to_request())
        except QueryFailed as e:
            raise CommandFailed("MoveWindowToWorkspace", e.reason) from e
        logger.debug(f"MoveWindowToWorkspace({window_id} -> {workspace_id}) reply: {result}")

    async def event_stream(
        self,
        on_state: Optional[Callable[[StreamState], None]] = None,
    ) -> AsyncIterator[bytes]:
        """Subscribe to niri's event stream and yield raw event lines.

        The generator ends when niri closes the connection. It cannot be
        restarted; call event_stream() again for a new session.

        Args:
            on_state: Called on every lifecycle transition

        Raises:
            QueryFailed: If connecting or subscribing fails
        """
        def transition(state: StreamState) -> None:
            logger.debug(f"Event stream: {state.value}")
            if on_state:
                on_state(state)

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_unix_connection(self.socket_path, limit=STREAM_LIMIT),
                timeout=self.timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise QueryFailed("EventStream", f"cannot reach niri at {self.socket_path}: {e}") from e

        transition(StreamState.CONNECTED)
        try:
            writer.write(b'"EventStream"\n')
            await writer.drain()
            _unwrap_reply("EventStream", await reader.readline())
            transition(StreamState.SUBSCRIBED)

            transition(StreamState.STREAMING)
            while True:
                line = await reader.readline()
                if not line:
                    logger.info("niri closed the event stream")
                    return
                if line.strip():
                    yield line
        except (OSError, ValueError) as e:
            # ValueError: an event line exceeded STREAM_LIMIT
            raise QueryFailed("EventStream", str(e)) from e
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
            transition(StreamState.DISCONNECTED)
