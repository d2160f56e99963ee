"""Event reconciler: makes sticky windows follow workspace switches.

Consumes niri's event stream. On every WorkspaceActivated event it prunes
sticky windows that niri no longer knows about and moves the survivors to the
newly active workspace.

niri's event stream cannot be resumed. When it ends (niri restarted, socket
closed) the reconciler opens a new subscription with exponential backoff,
keeping the sticky state. With reconnect disabled a lost stream stops the
reconciler for good and sticky windows stop following workspace switches
until the daemon is restarted; the control server keeps working either way.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from .constants import RECONNECT_INITIAL_DELAY, RECONNECT_MAX_DELAY
from .errors import CommandFailed, DecodeFailed, QueryFailed
from .models import WorkspaceActivated, decode_event
from .niri import NiriClient, StreamState
from .state import StickyState

logger = logging.getLogger(__name__)


class ReconcilerState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    STREAMING = "streaming"
    STOPPED = "stopped"


_STREAM_TO_RECONCILER = {
    StreamState.DISCONNECTED: ReconcilerState.DISCONNECTED,
    StreamState.CONNECTED: ReconcilerState.CONNECTED,
    StreamState.SUBSCRIBED: ReconcilerState.SUBSCRIBED,
    StreamState.STREAMING: ReconcilerState.STREAMING,
}


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    workspace_id: int
    pruned: List[int] = field(default_factory=list)
    moved: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    skipped: bool = False


class EventReconciler:
    """Consumes niri events and replays sticky windows onto the active workspace."""

    def __init__(
        self,
        state: StickyState,
        niri: NiriClient,
        reconnect: bool = True,
        max_reconnect_attempts: Optional[int] = None,
        initial_delay: float = RECONNECT_INITIAL_DELAY,
        max_delay: float = RECONNECT_MAX_DELAY,
    ) -> None:
        """Initialize reconciler.

        Args:
            state: Shared sticky state
            niri: niri IPC client
            reconnect: Resubscribe when the event stream ends
            max_reconnect_attempts: Consecutive failed sessions before giving up
                (None = retry forever)
            initial_delay: First reconnect delay in seconds
            max_delay: Upper bound for the reconnect delay
        """
        self.state = state
        self.niri = niri
        self.reconnect = reconnect
        self.max_reconnect_attempts = max_reconnect_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.status = ReconcilerState.DISCONNECTED
        self._subscribed = False

    def _on_stream_state(self, stream_state: StreamState) -> None:
        self.status = _STREAM_TO_RECONCILER[stream_state]
        if stream_state is StreamState.SUBSCRIBED:
            self._subscribed = True

    async def run(self) -> None:
        """Stream events until the stream is lost for good.

        Returns when reconnect is disabled and the stream ends, or when
        max_reconnect_attempts consecutive sessions failed to subscribe.
        """
        delay = self.initial_delay
        failures = 0

        while True:
            self._subscribed = False
            try:
                await self.stream_once()
                logger.warning("niri event stream ended")
            except QueryFailed as e:
                logger.warning(f"niri event stream unavailable: {e.message}")

            if not self.reconnect:
                logger.error(
                    "Event stream lost and reconnect is disabled; "
                    "sticky windows will no longer follow workspace switches"
                )
                break

            if self._subscribed:
                delay = self.initial_delay
                failures = 0
            else:
                failures += 1
                if self.max_reconnect_attempts and failures >= self.max_reconnect_attempts:
                    logger.error(f"Giving up on niri event stream after {failures} failed attempts")
                    break

            logger.info(f"Reconnecting to niri event stream in {delay:.1f}s")
            await asyncio.sleep(delay)
            if not self._subscribed:
                # Exponential backoff: double delay up to max_delay
                delay = min(delay * 2, self.max_delay)

        self.status = ReconcilerState.STOPPED

    async def stream_once(self) -> None:
        """Run one subscription session until niri closes the stream.

        Raises:
            QueryFailed: If connecting or subscribing fails, or the stream breaks
        """
        events = self.niri.event_stream(on_state=self._on_stream_state)
        async with contextlib.aclosing(events):
            async for line in events:
                await self.handle_line(line)

    async def handle_line(self, line: Union[str, bytes]) -> Optional[ReconcileResult]:
        """Decode one event line and reconcile on workspace activation.

        Undecodable lines and failed reconciliation passes are logged and
        skipped; the stream keeps going.

        Returns:
            ReconcileResult for workspace activations, None otherwise
        """
        try:
            event = decode_event(line)
        except DecodeFailed as e:
            logger.warning(f"Skipping event line: {e.message}")
            return None

        if not isinstance(event, WorkspaceActivated):
            return None

        try:
            return await self.reconcile(event.id)
        except Exception as e:
            logger.error(f"Error reconciling workspace {event.id}: {e}", exc_info=True)
            return None

    async def reconcile(self, workspace_id: int) -> ReconcileResult:
        """Prune stale sticky windows and move the rest to ``workspace_id``.

        Args:
            workspace_id: Workspace that just became active

        Returns:
            ReconcileResult describing what happened
        """
        logger.info(f"Workspace switched to: {workspace_id}")
        result = ReconcileResult(workspace_id=workspace_id)

        try:
            existing = await self.niri.list_windows()
        except QueryFailed as e:
            # Never prune against a window list we failed to get
            logger.error(f"Skipping reconciliation for workspace {workspace_id}: {e.message}")
            result.skipped = True
            return result

        result.pruned, survivors = await self.state.prune_and_snapshot(existing)
        logger.info(f"Updated sticky windows: {survivors}")

        for window_id in survivors:
            try:
                await self.niri.move_window(window_id, workspace_id)
                result.moved.append(window_id)
            except CommandFailed as e:
                logger.error(f"Failed to move window {window_id}: {e.message}")
                result.failed.append(window_id)

        return result
