"""Tests for the session lifecycle state machine."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from worktracker.domain.errors import AlreadyRunningError, ConflictError, InvalidStateError
from worktracker.domain.models import SessionStatus, StateChanged
from worktracker.session.state import SessionStateMachine
from worktracker.storage.base import StorageError


def _scheduler(running: bool = True) -> MagicMock:
    scheduler = MagicMock()
    scheduler.is_running = running
    return scheduler


@pytest.fixture
def machine(storage, events) -> SessionStateMachine:
    return SessionStateMachine(storage, owner="alice", events=events)


class TestTransitions:
    @pytest.mark.asyncio
    async def test_start_creates_active_session(self, machine, storage) -> None:
        session = await machine.start()
        assert session.status is SessionStatus.ACTIVE
        assert session.owner == "alice"
        assert machine.is_active()
        assert machine.is_active(session.id)
        assert (await storage.get_session(session.id)).status is SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_pause_resume_complete(self, machine, storage) -> None:
        session = await machine.start()
        assert (await machine.pause()).status is SessionStatus.PAUSED
        assert not machine.is_active()
        assert (await machine.resume()).status is SessionStatus.ACTIVE
        completed = await machine.complete()
        assert completed.status is SessionStatus.COMPLETED
        assert completed.ended_at is not None
        assert completed.ended_at >= completed.started_at
        stored = await storage.get_session(session.id)
        assert stored.status is SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_complete_from_paused(self, machine) -> None:
        await machine.start()
        await machine.pause()
        assert (await machine.complete()).status is SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_start_twice_conflicts(self, machine) -> None:
        first = await machine.start()
        with pytest.raises(ConflictError):
            await machine.start()
        assert machine.session.id == first.id

    @pytest.mark.asyncio
    async def test_conflict_with_active_session_in_storage(self, storage) -> None:
        await storage.create_session("alice")
        machine = SessionStateMachine(storage, owner="alice")
        with pytest.raises(ConflictError):
            await machine.start()

    @pytest.mark.asyncio
    async def test_other_owner_does_not_conflict(self, storage) -> None:
        await storage.create_session("bob")
        machine = SessionStateMachine(storage, owner="alice")
        assert (await machine.start()).owner == "alice"

    @pytest.mark.asyncio
    async def test_start_after_pause_completes_previous(self, machine, storage) -> None:
        first = await machine.start()
        await machine.pause()
        second = await machine.start()
        assert second.id != first.id
        assert (await storage.get_session(first.id)).status is SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_start_after_complete(self, machine) -> None:
        first = await machine.start()
        await machine.complete()
        assert (await machine.start()).id != first.id

    @pytest.mark.asyncio
    async def test_events_published(self, machine, events) -> None:
        async with events.subscribe() as queue:
            session = await machine.start()
            await machine.pause()
            started = queue.get_nowait()
            paused = queue.get_nowait()
        assert started == StateChanged(session_id=session.id, status=SessionStatus.ACTIVE)
        assert paused.status is SessionStatus.PAUSED


class TestIllegalTransitions:
    @pytest.mark.asyncio
    async def test_pause_without_session(self, machine) -> None:
        with pytest.raises(InvalidStateError):
            await machine.pause()

    @pytest.mark.asyncio
    async def test_resume_active_session(self, machine) -> None:
        await machine.start()
        with pytest.raises(InvalidStateError) as exc_info:
            await machine.resume()
        assert exc_info.value.current is SessionStatus.ACTIVE
        assert machine.status is SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_completed_is_terminal(self, machine) -> None:
        await machine.start()
        await machine.complete()
        for transition in (machine.pause, machine.resume, machine.complete):
            with pytest.raises(InvalidStateError):
                await transition()
        assert machine.status is SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_storage_failure_leaves_state_unchanged(self, machine, storage) -> None:
        await machine.start()
        storage.update_session_status = AsyncMock(side_effect=StorageError("disk full"))
        with pytest.raises(StorageError):
            await machine.pause()
        assert machine.status is SessionStatus.ACTIVE


class TestRecover:
    @pytest.mark.asyncio
    async def test_recover_nothing(self, machine) -> None:
        assert await machine.recover() is None

    @pytest.mark.asyncio
    async def test_recover_pauses_stale_active_session(self, storage) -> None:
        stale = await storage.create_session("alice")
        machine = SessionStateMachine(storage, owner="alice")
        recovered = await machine.recover()
        assert recovered.id == stale.id
        assert recovered.status is SessionStatus.PAUSED
        assert (await storage.get_session(stale.id)).status is SessionStatus.PAUSED
        assert (await machine.resume()).status is SessionStatus.ACTIVE


class TestSchedulerBookkeeping:
    @pytest.mark.asyncio
    async def test_leaving_active_stops_scheduler(self, machine) -> None:
        session = await machine.start()
        scheduler = _scheduler()
        machine.attach_scheduler(session.id, scheduler)
        await machine.pause()
        scheduler.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_complete_stops_scheduler(self, machine) -> None:
        session = await machine.start()
        scheduler = _scheduler()
        machine.attach_scheduler(session.id, scheduler)
        await machine.complete()
        scheduler.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_attach_requires_active_session(self, machine) -> None:
        await machine.start()
        await machine.pause()
        with pytest.raises(InvalidStateError):
            machine.attach_scheduler(machine.session.id, _scheduler())

    @pytest.mark.asyncio
    async def test_second_running_scheduler_rejected(self, machine) -> None:
        session = await machine.start()
        machine.attach_scheduler(session.id, _scheduler())
        with pytest.raises(AlreadyRunningError):
            machine.attach_scheduler(session.id, _scheduler())

    @pytest.mark.asyncio
    async def test_record_sample_counts_current_session(self, machine) -> None:
        session = await machine.start()
        assert machine.record_sample(session.id) == 1
        assert machine.record_sample(session.id) == 2
        assert machine.record_sample("other") == 0
        assert machine.session.sample_count == 2
