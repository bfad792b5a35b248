# -*- coding: utf-8 -*-
"""Location: ./tests/unit/volleydash/utils/test_query_state.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Tests for query state tracking.
"""

# Standard
import asyncio

# Third-Party
import pytest

# First-Party
from volleydash.utils.query_state import QueryState, QueryStatus, QueryTracker


class TestQueryState:
    def test_defaults(self):
        state = QueryState()
        assert state.is_idle
        assert not (state.is_loading or state.is_success or state.is_error)
        assert state.data is None


class TestQueryTracker:
    @pytest.mark.asyncio
    async def test_success(self):
        async def loader(team_id):
            return [team_id]

        tracker = QueryTracker("members", loader)
        state = await tracker.run("t-1")

        assert state.is_success
        assert state.data == ["t-1"]
        assert state.generation == tracker.generation == 1

    @pytest.mark.asyncio
    async def test_loading_while_in_flight(self):
        gate = asyncio.Event()

        async def loader():
            await gate.wait()
            return 1

        tracker = QueryTracker("stats", loader)
        task = asyncio.create_task(tracker.run())
        await asyncio.sleep(0)

        assert tracker.state.is_loading
        gate.set()
        assert (await task).data == 1

    @pytest.mark.asyncio
    async def test_error_keeps_previous_data_and_reports(self):
        errors = []
        outcomes = iter([["Thunder"], RuntimeError("database unavailable")])

        async def loader():
            outcome = next(outcomes)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        tracker = QueryTracker("teams", loader, on_error=errors.append)
        await tracker.run()
        state = await tracker.run()

        assert state.status is QueryStatus.ERROR
        assert state.data == ["Thunder"]
        assert str(state.error) == "database unavailable"
        assert [str(e) for e in errors] == ["database unavailable"]

    @pytest.mark.asyncio
    async def test_next_run_clears_error(self):
        calls = []

        async def loader():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("down")
            return "ok"

        tracker = QueryTracker("users", loader)
        await tracker.run()
        state = await tracker.run()

        assert state.is_success
        assert state.error is None

    @pytest.mark.asyncio
    async def test_stale_response_is_discarded(self):
        gates = {"A": asyncio.Event(), "B": asyncio.Event()}

        async def loader(team_id):
            await gates[team_id].wait()
            return f"activity of {team_id}"

        tracker = QueryTracker("activity", loader)
        first = asyncio.create_task(tracker.run("A"))
        await asyncio.sleep(0)
        second = asyncio.create_task(tracker.run("B"))
        await asyncio.sleep(0)

        gates["B"].set()
        await second
        gates["A"].set()
        await first

        assert tracker.state.data == "activity of B"
        assert tracker.state.generation == 2

    @pytest.mark.asyncio
    async def test_stale_error_is_not_reported(self):
        errors = []
        gate = asyncio.Event()

        async def loader(fail):
            if fail:
                await gate.wait()
                raise RuntimeError("late failure")
            return "fresh"

        tracker = QueryTracker("overview", loader, on_error=errors.append)
        stale = asyncio.create_task(tracker.run(True))
        await asyncio.sleep(0)
        await tracker.run(False)
        gate.set()
        await stale

        assert tracker.state.is_success
        assert tracker.state.data == "fresh"
        assert errors == []

    @pytest.mark.asyncio
    async def test_reset_invalidates_in_flight_run(self):
        gate = asyncio.Event()

        async def loader():
            await gate.wait()
            return "late"

        tracker = QueryTracker("members", loader)
        task = asyncio.create_task(tracker.run())
        await asyncio.sleep(0)
        tracker.reset()
        gate.set()
        await task

        assert tracker.state.is_idle
        assert tracker.data is None

    @pytest.mark.asyncio
    async def test_failing_error_callback_is_contained(self):
        def callback(_):
            raise RuntimeError("toast renderer gone")

        async def loader():
            raise ValueError("bad")

        state = await QueryTracker("x", loader, on_error=callback).run()

        assert state.is_error
