"""Tests for the scan session controller."""

from __future__ import annotations

import asyncio
import dataclasses

import pytest

from reclaim.core.session import can_transition
from reclaim.models.scan_result import EngineStatus, ScanMode, ScanOptions
from reclaim.models.session import SessionStatus


@pytest.fixture
def statuses(workspace):
    """Every status the store goes through, in order."""
    seen = [workspace.state.status]

    def _record(state):
        if state.status != seen[-1]:
            seen.append(state.status)

    workspace.store.subscribe(_record)
    return seen


def _assert_legal(statuses):
    for current, new in zip(statuses, statuses[1:]):
        assert can_transition(current, new), f"{current.value} -> {new.value}"


class TestStartScan:
    async def test_start_stores_session(self, workspace, engine):
        assert await workspace.controller.start_scan()
        state = workspace.state
        assert state.status == SessionStatus.SCANNING
        assert state.session_id == "scan-1"
        assert state.error is None

    async def test_quick_scan_sends_no_paths(self, workspace, engine):
        await workspace.controller.start_scan(ScanMode.QUICK, ["/home"])
        options = engine.called("start")[0][1]
        assert options.paths == ()
        assert options.mode == ScanMode.QUICK

    async def test_deep_scan_sends_targets_and_flags(self, workspace, engine):
        await workspace.controller.start_scan(
            ScanMode.DEEP, ["/data"], ScanOptions(include_hidden=True, exclude_paths=("/data/keep",))
        )
        options = engine.called("start")[0][1]
        assert options.paths == ("/data",)
        assert options.mode == ScanMode.DEEP
        assert options.include_hidden
        assert options.exclude_paths == ("/data/keep",)
        assert workspace.state.session.target_paths == ("/data",)

    async def test_start_clears_previous_state(self, completed, engine):
        completed.selection.select_all()
        completed.expansion.expand_all()
        engine.session_id = "scan-2"
        await completed.controller.start_scan()
        state = completed.state
        assert state.result is None
        assert state.clean_result is None
        assert state.selection == frozenset()
        assert state.expanded == frozenset()
        assert state.session_id == "scan-2"

    async def test_start_failure_marks_failed(self, workspace, engine, statuses):
        engine.failing.add("start")
        assert not await workspace.controller.start_scan()
        state = workspace.state
        assert state.status == SessionStatus.FAILED
        assert state.error == "start failed"
        assert state.session_id is None
        assert state.progress is None
        _assert_legal(statuses)

    async def test_cannot_start_while_scanning(self, workspace, engine):
        await workspace.controller.start_scan()
        assert not await workspace.controller.start_scan()
        assert len(engine.called("start")) == 1
        assert workspace.state.error == "A scan is already running"
        assert workspace.state.status == SessionStatus.SCANNING

    async def test_set_mode_only_when_not_scanning(self, workspace):
        workspace.controller.set_mode(ScanMode.DEEP)
        assert workspace.state.session.mode == ScanMode.DEEP
        await workspace.controller.start_scan()
        workspace.controller.set_mode(ScanMode.QUICK)
        assert workspace.state.session.mode == ScanMode.DEEP


class TestPauseResume:
    async def test_pause_and_resume(self, workspace, engine, statuses):
        await workspace.controller.start_scan()
        assert await workspace.controller.pause()
        assert workspace.state.status == SessionStatus.PAUSED
        assert await workspace.controller.resume()
        assert workspace.state.status == SessionStatus.SCANNING
        assert engine.called("pause") == [("pause", "scan-1")]
        assert engine.called("resume") == [("resume", "scan-1")]
        _assert_legal(statuses)

    async def test_pause_without_session_is_noop(self, workspace, engine):
        assert not await workspace.controller.pause()
        assert not engine.called("pause")
        assert workspace.state.error == "No active scan session"
        assert workspace.state.status == SessionStatus.IDLE

    async def test_resume_when_not_paused(self, workspace, engine):
        await workspace.controller.start_scan()
        assert not await workspace.controller.resume()
        assert not engine.called("resume")

    async def test_pause_failure_keeps_status(self, workspace, engine):
        await workspace.controller.start_scan()
        engine.failing.add("pause")
        assert not await workspace.controller.pause()
        assert workspace.state.status == SessionStatus.SCANNING
        assert workspace.state.error == "pause failed"


class TestCancel:
    @pytest.mark.parametrize("failing", [False, True])
    async def test_cancel_always_ends_cancelled(self, workspace, engine, statuses, failing):
        await workspace.controller.start_scan()
        if failing:
            engine.failing.add("cancel")
        await workspace.controller.cancel()
        state = workspace.state
        assert state.status == SessionStatus.CANCELLED
        assert state.session_id is None
        assert state.progress is None
        assert engine.called("cancel") == [("cancel", "scan-1")]
        _assert_legal(statuses)

    async def test_cancel_from_paused(self, workspace):
        await workspace.controller.start_scan()
        await workspace.controller.pause()
        await workspace.controller.cancel()
        assert workspace.state.status == SessionStatus.CANCELLED

    async def test_cancel_when_idle(self, workspace, engine):
        await workspace.controller.cancel()
        assert workspace.state.status == SessionStatus.IDLE
        assert not engine.called("cancel")

    async def test_events_after_cancel_are_discarded(self, workspace, engine, sample_result):
        await workspace.controller.start_scan()
        await workspace.controller.cancel()
        engine.emit_progress("scan-1", percent=80.0)
        engine.emit_complete(sample_result)
        assert workspace.state.status == SessionStatus.CANCELLED
        assert workspace.state.progress is None
        assert workspace.state.result is None

    async def test_cancel_before_start_returns_abandons_session(self, workspace, engine):
        engine.start_gate = asyncio.Event()
        starting = asyncio.create_task(workspace.controller.start_scan())
        await asyncio.sleep(0)
        await workspace.controller.cancel()
        assert workspace.state.status == SessionStatus.CANCELLED

        engine.start_gate.set()
        assert not await starting
        assert workspace.state.session_id is None
        assert workspace.state.status == SessionStatus.CANCELLED
        assert engine.called("cancel") == [("cancel", "scan-1")]
        assert engine.called("clear_result") == [("clear_result", "scan-1")]

    async def test_completion_during_cancel_is_discarded(self, workspace, engine, sample_result, statuses):
        await workspace.controller.start_scan()
        gate = engine.hold("cancel")
        cancelling = asyncio.create_task(workspace.controller.cancel())
        await asyncio.sleep(0)

        engine.emit_progress("scan-1", percent=90.0)
        engine.emit_complete(sample_result)
        gate.set()
        await cancelling

        state = workspace.state
        assert state.status == SessionStatus.CANCELLED
        assert state.result is None
        assert state.progress is None
        assert statuses == [SessionStatus.IDLE, SessionStatus.SCANNING, SessionStatus.CANCELLED]
        assert engine.called("cancel") == [("cancel", "scan-1")]

    async def test_cancel_failure_after_new_scan_is_not_reported(self, workspace, engine):
        await workspace.controller.start_scan()
        gate = engine.hold("cancel")
        engine.failing.add("cancel")
        cancelling = asyncio.create_task(workspace.controller.cancel())
        await asyncio.sleep(0)

        engine.session_id = "scan-2"
        await workspace.controller.start_scan()
        gate.set()
        await cancelling

        assert workspace.state.session_id == "scan-2"
        assert workspace.state.error is None


class TestReset:
    async def test_reset_clears_everything(self, completed, engine, statuses):
        completed.selection.select_all()
        completed.expansion.expand_all()
        await completed.controller.reset()
        state = completed.state
        assert state.status == SessionStatus.IDLE
        assert state.session_id is None
        assert state.result is None
        assert state.clean_result is None
        assert state.selection == frozenset()
        assert state.expanded == frozenset()
        assert state.delete_progress is None
        assert engine.called("clear_result") == [("clear_result", "scan-1")]
        _assert_legal(statuses)

    async def test_reset_survives_clear_failure(self, completed, engine):
        engine.failing.add("clear_result")
        await completed.controller.reset()
        assert completed.state.status == SessionStatus.IDLE
        assert completed.state.error is None

    async def test_reset_keeps_mode(self, workspace):
        await workspace.controller.start_scan(ScanMode.DEEP, ["/data"])
        await workspace.controller.cancel()
        await workspace.controller.reset()
        assert workspace.state.session.mode == ScanMode.DEEP

    async def test_cannot_reset_while_scanning(self, workspace, engine):
        await workspace.controller.start_scan()
        await workspace.controller.reset()
        assert workspace.state.status == SessionStatus.SCANNING
        assert not engine.called("clear_result")


class TestNotifications:
    async def test_subscribe_is_idempotent(self, workspace, engine):
        workspace.controller.subscribe()
        workspace.controller.subscribe()
        assert engine.listener_count == 2
        workspace.controller.unsubscribe()
        assert engine.listener_count == 0

    async def test_progress_for_current_session(self, workspace, engine):
        await workspace.controller.start_scan()
        engine.emit_progress("scan-1", percent=25.0, current_path="/tmp/x")
        assert workspace.state.progress.percent == 25.0
        assert workspace.state.progress.current_path == "/tmp/x"

    async def test_progress_for_other_session_ignored(self, workspace, engine):
        await workspace.controller.start_scan()
        engine.emit_progress("scan-0", percent=99.0)
        assert workspace.state.progress.percent == 0.0

    async def test_idle_progress_ignored(self, workspace, engine):
        await workspace.controller.start_scan()
        engine.emit_progress("scan-1", status=EngineStatus.IDLE, percent=5.0)
        assert workspace.state.status == SessionStatus.SCANNING
        assert workspace.state.progress.percent == 0.0

    async def test_previous_session_events_ignored_while_starting(self, workspace, engine, sample_result):
        await workspace.controller.start_scan()
        await workspace.controller.cancel()
        engine.session_id = "scan-2"
        engine.start_gate = asyncio.Event()
        starting = asyncio.create_task(workspace.controller.start_scan())
        await asyncio.sleep(0)

        engine.emit_progress("scan-1", percent=90.0)
        engine.emit_complete(sample_result)
        assert workspace.state.status == SessionStatus.SCANNING
        assert workspace.state.result is None
        assert workspace.state.progress.percent == 0.0

        engine.emit_progress(None, percent=5.0)
        assert workspace.state.progress.percent == 5.0
        engine.start_gate.set()
        assert await starting
        assert workspace.state.session_id == "scan-2"

    async def test_completed_session_events_ignored_after_new_start(self, completed, engine, sample_result):
        engine.session_id = "scan-2"
        await completed.controller.start_scan()
        engine.emit_complete(sample_result)
        assert completed.state.status == SessionStatus.SCANNING
        assert completed.state.result is None

    async def test_progress_before_start_returns(self, workspace, engine):
        engine.start_gate = asyncio.Event()
        starting = asyncio.create_task(workspace.controller.start_scan())
        await asyncio.sleep(0)
        engine.emit_progress("scan-1", percent=3.0)
        assert workspace.state.progress.percent == 3.0
        engine.start_gate.set()
        assert await starting
        assert workspace.state.session_id == "scan-1"

    async def test_completion_before_start_returns(self, workspace, engine, sample_result, statuses):
        engine.start_gate = asyncio.Event()
        starting = asyncio.create_task(workspace.controller.start_scan())
        await asyncio.sleep(0)
        engine.emit_complete(sample_result)
        engine.start_gate.set()
        assert await starting
        assert workspace.state.status == SessionStatus.COMPLETED
        assert workspace.state.result == sample_result
        _assert_legal(statuses)

    async def test_engine_paused_status_is_applied(self, workspace, engine, statuses):
        await workspace.controller.start_scan()
        engine.emit_progress("scan-1", status=EngineStatus.PAUSED)
        assert workspace.state.status == SessionStatus.PAUSED
        engine.emit_progress("scan-1", status=EngineStatus.SCANNING)
        assert workspace.state.status == SessionStatus.SCANNING
        _assert_legal(statuses)

    async def test_engine_error_fails_session(self, workspace, engine):
        await workspace.controller.start_scan()
        engine.emit_progress("scan-1", status=EngineStatus.ERROR)
        assert workspace.state.status == SessionStatus.FAILED
        assert workspace.state.error

    async def test_completion_replaces_result(self, workspace, engine, sample_result, statuses):
        await workspace.controller.start_scan()
        engine.emit_complete(sample_result)
        assert workspace.state.status == SessionStatus.COMPLETED
        assert workspace.state.result == sample_result
        _assert_legal(statuses)

    async def test_completion_totals_are_rederived(self, workspace, engine, sample_result):
        await workspace.controller.start_scan()
        engine.emit_complete(dataclasses.replace(sample_result, total_files=999, total_size=1))
        assert workspace.state.result.total_files == 3
        assert workspace.state.result.total_size == 60

    async def test_completion_while_paused(self, workspace, engine, sample_result, statuses):
        await workspace.controller.start_scan()
        await workspace.controller.pause()
        engine.emit_complete(sample_result)
        assert workspace.state.status == SessionStatus.COMPLETED
        assert statuses[-3:] == [SessionStatus.PAUSED, SessionStatus.SCANNING, SessionStatus.COMPLETED]
        _assert_legal(statuses)

    async def test_progress_after_completion_ignored(self, completed, engine):
        engine.emit_progress("scan-1", percent=10.0)
        assert completed.state.status == SessionStatus.COMPLETED


class TestPolling:
    async def test_refresh_progress(self, workspace, engine):
        await workspace.controller.start_scan()
        progress = await workspace.controller.refresh_progress()
        assert progress.percent == 42.0
        assert workspace.state.progress.percent == 42.0

    async def test_fetch_result_applies_completion(self, workspace, engine, sample_result, monkeypatch):
        await workspace.controller.start_scan()

        async def _get_result(session_id):
            return sample_result

        monkeypatch.setattr(engine, "get_result", _get_result)
        assert await workspace.controller.fetch_result() == sample_result
        assert workspace.state.status == SessionStatus.COMPLETED

    async def test_polling_without_session(self, workspace, engine):
        assert await workspace.controller.refresh_progress() is None
        assert await workspace.controller.fetch_result() is None
        assert not engine.calls

    async def test_wait_returns_terminal_status(self, workspace, engine, sample_result):
        await workspace.controller.start_scan()
        waiter = asyncio.create_task(workspace.controller.wait())
        await asyncio.sleep(0)
        assert not waiter.done()
        engine.emit_complete(sample_result)
        assert await waiter == SessionStatus.COMPLETED


class TestTransitions:
    def test_terminal_states_only_leave_through_reset_or_new_scan(self):
        terminal = [SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.FAILED]
        for current in terminal:
            for new in terminal:
                assert not can_transition(current, new)
            assert can_transition(current, SessionStatus.IDLE)

    def test_paused_cannot_complete_directly(self):
        assert not can_transition(SessionStatus.PAUSED, SessionStatus.COMPLETED)
        assert can_transition(SessionStatus.PAUSED, SessionStatus.CANCELLED)
