"""
Pytest configuration and fixtures for nsticky tests.

Provides an in-memory niri client for unit tests and a fake niri unix socket
server for integration tests.
"""

import asyncio
import json
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Set, Union

import pytest

from niri_sticky.errors import CommandFailed, NoFocus, QueryFailed
from niri_sticky.niri import StreamState
from niri_sticky.state import StickyState


class FakeNiriClient:
    """In-memory stand-in for NiriClient.

    Attributes:
        windows: Window ids returned by list_windows()
        focused: Focused window id, None for no focus, or an exception to raise
        list_error: Raised by list_windows() when set
        move_failures: Window ids whose move raises CommandFailed
        moves: Recorded (window_id, workspace_id) pairs
        sessions: One entry per event_stream() call; a list of lines to yield,
            or an exception raised instead of connecting
    """

    def __init__(self, windows: Optional[Set[int]] = None) -> None:
        self.windows: Set[int] = set(windows or ())
        self.focused: Union[int, None, Exception] = None
        self.list_error: Optional[Exception] = None
        self.move_failures: Set[int] = set()
        self.moves: List[tuple] = []
        self.sessions: List[Union[List[Any], Exception]] = []
        self.list_calls = 0
        self.stream_calls = 0

    async def list_windows(self) -> Set[int]:
        self.list_calls += 1
        await asyncio.sleep(0)
        if self.list_error:
            raise self.list_error
        return set(self.windows)

    async def focused_window(self) -> int:
        await asyncio.sleep(0)
        if isinstance(self.focused, Exception):
            raise self.focused
        if self.focused is None:
            raise NoFocus()
        return self.focused

    async def move_window(self, window_id: int, workspace_id: int) -> None:
        await asyncio.sleep(0)
        if window_id in self.move_failures:
            raise CommandFailed("MoveWindowToWorkspace", "window vanished")
        self.moves.append((window_id, workspace_id))

    async def event_stream(self, on_state=None):
        self.stream_calls += 1
        session = self.sessions.pop(0) if self.sessions else QueryFailed("EventStream", "no niri")
        if isinstance(session, Exception):
            raise session

        def transition(state):
            if on_state:
                on_state(state)

        transition(StreamState.CONNECTED)
        transition(StreamState.SUBSCRIBED)
        transition(StreamState.STREAMING)
        try:
            for line in session:
                yield line
        finally:
            transition(StreamState.DISCONNECTED)


class FakeNiriServer:
    """Minimal niri IPC server on a unix socket.

    Serves Windows, FocusedWindow, actions and EventStream. After a client
    subscribes, every line in ``events`` is written and the stream is closed.
    """

    def __init__(self, socket_path: Path) -> None:
        self.socket_path = socket_path
        self.windows: List[Dict[str, Any]] = []
        self.focused: Optional[Dict[str, Any]] = None
        self.events: List[str] = []
        self.actions: List[Dict[str, Any]] = []
        self.requests: List[Any] = []
        self.raw_replies: Dict[str, bytes] = {}
        self.server: Optional[asyncio.AbstractServer] = None

    def set_windows(self, *window_ids: int) -> None:
        self.windows = [{"id": wid, "title": f"window {wid}", "app_id": "test"} for wid in window_ids]

    async def start(self) -> None:
        self.server = await asyncio.start_unix_server(self._handle, path=str(self.socket_path))

    async def stop(self) -> None:
        if self.server:
            self.server.close()
            await self.server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            line = await reader.readline()
            if not line:
                return
            request = json.loads(line)
            self.requests.append(request)
            key = request if isinstance(request, str) else "Action"

            if key in self.raw_replies:
                writer.write(self.raw_replies[key])
            elif request == "Windows":
                writer.write(self._reply({"Ok": {"Windows": self.windows}}))
            elif request == "FocusedWindow":
                writer.write(self._reply({"Ok": {"FocusedWindow": self.focused}}))
            elif request == "EventStream":
                writer.write(self._reply({"Ok": "Handled"}))
                for event in self.events:
                    writer.write((event + "\n").encode())
            elif isinstance(request, dict) and "Action" in request:
                self.actions.append(request["Action"])
                writer.write(self._reply({"Ok": "Handled"}))
            else:
                writer.write(self._reply({"Err": f"unknown request {request!r}"}))
            await writer.drain()
        finally:
            writer.close()

    @staticmethod
    def _reply(payload: Any) -> bytes:
        return (json.dumps(payload) + "\n").encode()


@pytest.fixture
def short_tmp() -> Generator[Path, None, None]:
    """Temporary directory with a short path (unix socket paths max ~108 bytes)."""
    with tempfile.TemporaryDirectory(prefix="nst-") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sticky_state() -> StickyState:
    return StickyState()


@pytest.fixture
def fake_niri() -> FakeNiriClient:
    """Fake niri with windows 1-5 open and window 3 focused."""
    niri = FakeNiriClient(windows={1, 2, 3, 4, 5})
    niri.focused = 3
    return niri


@pytest.fixture
async def niri_server(short_tmp):
    """Running FakeNiriServer on a temporary socket."""
    server = FakeNiriServer(short_tmp / "niri.sock")
    await server.start()
    yield server
    await server.stop()
