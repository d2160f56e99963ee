"""
Unit tests for EventReconciler.

Tests cover the reconciliation pass, event decoding and dispatch, and the
event stream lifecycle with and without reconnection.
"""

import json
from unittest.mock import AsyncMock

import pytest

from niri_sticky.errors import QueryFailed
from niri_sticky.reconciler import EventReconciler, ReconcilerState


def activated(workspace_id: int, focused: bool = True) -> str:
    return json.dumps({"WorkspaceActivated": {"id": workspace_id, "focused": focused}}) + "\n"


@pytest.fixture
def reconciler(sticky_state, fake_niri):
    """Create EventReconciler without reconnect and with zero backoff."""
    return EventReconciler(
        sticky_state, fake_niri, reconnect=False, initial_delay=0, max_delay=0
    )


class TestReconcile:
    """Test a single reconciliation pass."""

    @pytest.mark.asyncio
    async def test_prunes_stale_and_moves_survivors(self, reconciler, sticky_state, fake_niri):
        """Test closed windows are pruned and the rest moved in id order."""
        for wid in (1, 2, 3):
            await sticky_state.add(wid)
        fake_niri.windows = {1, 3}

        result = await reconciler.reconcile(7)

        assert result.pruned == [2]
        assert result.moved == [1, 3]
        assert result.failed == []
        assert fake_niri.moves == [(1, 7), (3, 7)]
        assert await sticky_state.snapshot() == [1, 3]

    @pytest.mark.asyncio
    async def test_move_failure_does_not_abort_others(self, reconciler, sticky_state, fake_niri):
        """Test one failed move neither stops the pass nor drops the window."""
        for wid in (1, 2, 3):
            await sticky_state.add(wid)
        fake_niri.move_failures = {2}

        result = await reconciler.reconcile(4)

        assert result.moved == [1, 3]
        assert result.failed == [2]
        assert fake_niri.moves == [(1, 4), (3, 4)]
        assert await sticky_state.snapshot() == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_window_list_failure_skips_pass(self, reconciler, sticky_state, fake_niri):
        """Test a failed window query leaves the sticky set untouched."""
        await sticky_state.add(1)
        fake_niri.list_error = QueryFailed("Windows", "niri restarting")

        result = await reconciler.reconcile(2)

        assert result.skipped is True
        assert fake_niri.moves == []
        assert await sticky_state.snapshot() == [1]

    @pytest.mark.asyncio
    async def test_empty_sticky_set(self, reconciler, fake_niri):
        """Test a pass with nothing sticky moves nothing."""
        result = await reconciler.reconcile(1)

        assert result.moved == []
        assert fake_niri.moves == []


class TestHandleLine:
    """Test event dispatch."""

    @pytest.mark.asyncio
    async def test_workspace_activation_triggers_reconcile(self, reconciler, sticky_state, fake_niri):
        """Test WorkspaceActivated moves sticky windows to that workspace."""
        await sticky_state.add(5)

        result = await reconciler.handle_line(activated(9))

        assert result.workspace_id == 9
        assert fake_niri.moves == [(5, 9)]

    @pytest.mark.asyncio
    async def test_other_events_are_ignored(self, reconciler, sticky_state, fake_niri):
        """Test other events never query niri."""
        await sticky_state.add(5)

        result = await reconciler.handle_line('{"WindowFocusChanged": {"id": 5}}\n')

        assert result is None
        assert fake_niri.list_calls == 0
        assert fake_niri.moves == []

    @pytest.mark.asyncio
    async def test_decode_failure_is_skipped(self, reconciler, fake_niri):
        """Test an undecodable line is skipped."""
        assert await reconciler.handle_line(b"{broken\n") is None
        assert fake_niri.list_calls == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, reconciler, sticky_state, fake_niri):
        """Test an unexpected error during a pass is logged, not raised."""
        await sticky_state.add(5)
        fake_niri.list_windows = AsyncMock(side_effect=RuntimeError("corrupt reply"))

        assert await reconciler.handle_line(activated(2)) is None
        assert fake_niri.moves == []
        assert await sticky_state.snapshot() == [5]


class TestStreamLifecycle:
    """Test subscription sessions and reconnection."""

    @pytest.mark.asyncio
    async def test_stream_processes_events_and_skips_bad_lines(self, reconciler, sticky_state, fake_niri):
        """Test bad lines in a session do not stop later events."""
        await sticky_state.add(1)
        fake_niri.sessions = [[
            '{"WorkspacesChanged": {"workspaces": []}}\n',
            "garbage\n",
            activated(2),
            activated(3, focused=False),
        ]]

        await reconciler.run()

        assert fake_niri.moves == [(1, 2), (1, 3)]
        assert reconciler.status is ReconcilerState.STOPPED

    @pytest.mark.asyncio
    async def test_failed_pass_does_not_end_stream(self, reconciler, sticky_state, fake_niri):
        """Test events after a crashed pass are still reconciled."""
        await sticky_state.add(1)
        fake_niri.list_windows = AsyncMock(side_effect=[RuntimeError("corrupt reply"), {1}])
        fake_niri.sessions = [[activated(2), activated(3)]]

        await reconciler.run()

        assert fake_niri.moves == [(1, 3)]
        assert fake_niri.list_windows.await_count == 2
        assert reconciler.status is ReconcilerState.STOPPED

    @pytest.mark.asyncio
    async def test_stream_end_without_reconnect_stops(self, reconciler, fake_niri):
        """Test a closed stream stops the reconciler when reconnect is off."""
        fake_niri.sessions = [[], [activated(1)]]

        await reconciler.run()

        assert fake_niri.stream_calls == 1
        assert reconciler.status is ReconcilerState.STOPPED

    @pytest.mark.asyncio
    async def test_connection_failure_without_reconnect_stops(self, reconciler, fake_niri):
        """Test an unreachable niri stops the reconciler when reconnect is off."""
        fake_niri.sessions = [QueryFailed("EventStream", "connection refused")]

        await reconciler.run()

        assert reconciler.status is ReconcilerState.STOPPED

    @pytest.mark.asyncio
    async def test_reconnect_resubscribes_and_keeps_state(self, sticky_state, fake_niri):
        """Test reconnect keeps the sticky set and gives up after consecutive failures."""
        await sticky_state.add(1)
        fake_niri.sessions = [
            [activated(2)],
            QueryFailed("EventStream", "niri restarting"),
            [activated(3)],
        ]
        reconciler = EventReconciler(
            sticky_state,
            fake_niri,
            reconnect=True,
            max_reconnect_attempts=2,
            initial_delay=0,
            max_delay=0,
        )

        await reconciler.run()

        # Sessions 4 and 5 find no niri: two consecutive failures
        assert fake_niri.stream_calls == 5
        assert fake_niri.moves == [(1, 2), (1, 3)]
        assert await sticky_state.snapshot() == [1]
        assert reconciler.status is ReconcilerState.STOPPED

    @pytest.mark.asyncio
    async def test_state_transitions(self, reconciler, fake_niri):
        """Test status follows the stream lifecycle."""
        seen = []
        forward = reconciler._on_stream_state

        def record(state):
            forward(state)
            seen.append(reconciler.status)

        reconciler._on_stream_state = record
        fake_niri.sessions = [[]]

        await reconciler.run()

        assert seen == [
            ReconcilerState.CONNECTED,
            ReconcilerState.SUBSCRIBED,
            ReconcilerState.STREAMING,
            ReconcilerState.DISCONNECTED,
        ]
