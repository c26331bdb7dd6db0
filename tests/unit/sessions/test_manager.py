"""Tests for the single-slot SessionManager."""

from __future__ import annotations

import asyncio

import pytest

from redline.core.exceptions import SessionAbortedError, SessionError
from redline.models.session import MemoryPressureLevel, SessionState
from redline.sessions.manager import SessionManager
from tests.fakes import DEFAULT_MODEL, OTHER_MODEL, MockEngine


@pytest.fixture
def slow_engine() -> MockEngine:
    return MockEngine(steps=50, step_delay=0.01)


class TestAcquire:
    @pytest.mark.anyio
    async def test_second_acquire_reuses_session(self, engine):
        manager = SessionManager(engine, idle_timeout=0)
        first = await manager.acquire(DEFAULT_MODEL)
        second = await manager.acquire(DEFAULT_MODEL)

        assert first is second
        assert engine.load_calls == [DEFAULT_MODEL]
        assert first.state is SessionState.READY

    @pytest.mark.anyio
    async def test_concurrent_acquires_construct_once(self, engine):
        manager = SessionManager(engine, idle_timeout=0)
        sessions = await asyncio.gather(
            manager.acquire(DEFAULT_MODEL), manager.acquire(DEFAULT_MODEL)
        )

        assert sessions[0] is sessions[1]
        assert len(engine.load_calls) == 1

    @pytest.mark.anyio
    async def test_switch_unloads_previous_model_first(self, engine):
        manager = SessionManager(engine, idle_timeout=0)
        first = await manager.acquire(DEFAULT_MODEL)
        second = await manager.acquire(OTHER_MODEL)

        assert first.state is SessionState.UNINITIALIZED
        assert second.state is SessionState.READY
        assert manager.active_model_id == OTHER_MODEL
        assert engine.max_live_handles == 1
        assert not manager.is_active(first)
        assert manager.is_active(second)

    @pytest.mark.anyio
    async def test_concurrent_switches_never_overlap(self):
        engine = MockEngine(steps=3, step_delay=0.005)
        manager = SessionManager(engine, idle_timeout=0)

        await asyncio.gather(
            manager.acquire(DEFAULT_MODEL),
            manager.acquire(OTHER_MODEL),
            manager.acquire(DEFAULT_MODEL),
            manager.evict_all(),
            manager.acquire(OTHER_MODEL),
        )

        assert engine.max_live_handles == 1
        assert engine.live_handles == 1
        assert engine.load_calls == [DEFAULT_MODEL, OTHER_MODEL, DEFAULT_MODEL, OTHER_MODEL]

    @pytest.mark.anyio
    async def test_failed_load_leaves_manager_usable(self, engine):
        manager = SessionManager(engine, idle_timeout=0)
        engine.fail_next_load(RuntimeError("disk full"))

        with pytest.raises(SessionError):
            await manager.acquire(DEFAULT_MODEL)
        assert manager.active_session is None

        session = await manager.acquire(DEFAULT_MODEL)
        assert session.state is SessionState.READY


class TestEvict:
    @pytest.mark.anyio
    async def test_evict_all_without_session_is_noop(self, engine):
        manager = SessionManager(engine, idle_timeout=0)
        await manager.evict_all()
        assert manager.active_session is None
        assert engine.load_calls == []

    @pytest.mark.anyio
    async def test_evict_all_unloads_active_session(self, engine):
        manager = SessionManager(engine, idle_timeout=0)
        session = await manager.acquire(DEFAULT_MODEL)

        await manager.evict_all()

        assert manager.active_session is None
        assert session.state is SessionState.UNINITIALIZED
        assert engine.live_handles == 0

    @pytest.mark.anyio
    async def test_close_releases_everything(self, engine):
        manager = SessionManager(engine, idle_timeout=60)
        await manager.acquire(DEFAULT_MODEL)
        await manager.close()
        assert manager.active_session is None
        assert manager.idle_deadline is None
        assert engine.live_handles == 0


class TestCancel:
    @pytest.mark.anyio
    async def test_cancel_active_aborts_initialization(self, slow_engine):
        manager = SessionManager(slow_engine, idle_timeout=0)
        task = asyncio.ensure_future(manager.acquire(DEFAULT_MODEL))
        await slow_engine.loading.wait()

        assert await manager.cancel_active() is True
        with pytest.raises(SessionAbortedError):
            await task
        assert manager.active_session is None
        assert not await slow_engine.is_model_cached(DEFAULT_MODEL)

        slow_engine.step_delay = 0.0
        session = await manager.acquire(OTHER_MODEL)
        assert session.state is SessionState.READY

    @pytest.mark.anyio
    async def test_cancel_active_without_initialization(self, engine):
        manager = SessionManager(engine, idle_timeout=0)
        assert await manager.cancel_active() is False
        await manager.acquire(DEFAULT_MODEL)
        assert await manager.cancel_active() is False
        assert manager.active_model_id == DEFAULT_MODEL


class TestIdleTimeout:
    @pytest.mark.anyio
    async def test_idle_session_is_evicted(self, engine):
        manager = SessionManager(engine, idle_timeout=0.05)
        session = await manager.acquire(DEFAULT_MODEL)
        assert manager.idle_deadline is not None

        await asyncio.sleep(0.2)

        assert manager.active_session is None
        assert session.state is SessionState.UNINITIALIZED
        assert engine.live_handles == 0

    @pytest.mark.anyio
    async def test_touch_pushes_back_eviction(self, engine):
        manager = SessionManager(engine, idle_timeout=0.2)
        await manager.acquire(DEFAULT_MODEL)

        await asyncio.sleep(0.12)
        manager.touch()
        await asyncio.sleep(0.12)
        assert manager.active_model_id == DEFAULT_MODEL

        await asyncio.sleep(0.25)
        assert manager.active_session is None

    @pytest.mark.anyio
    async def test_zero_timeout_disables_idle_eviction(self, engine):
        manager = SessionManager(engine, idle_timeout=0)
        await manager.acquire(DEFAULT_MODEL)
        assert manager.idle_deadline is None


class TestMemoryPressure:
    @pytest.mark.anyio
    async def test_critical_pressure_evicts(self, engine):
        manager = SessionManager(engine, idle_timeout=0)
        await manager.acquire(DEFAULT_MODEL)

        assert await manager.handle_memory_pressure(MemoryPressureLevel.CRITICAL) is True
        assert manager.active_session is None

    @pytest.mark.anyio
    async def test_moderate_pressure_is_ignored(self, engine):
        manager = SessionManager(engine, idle_timeout=0)
        await manager.acquire(DEFAULT_MODEL)

        assert await manager.handle_memory_pressure(MemoryPressureLevel.MODERATE) is False
        assert manager.active_model_id == DEFAULT_MODEL

    @pytest.mark.anyio
    async def test_critical_pressure_cancels_initialization(self, slow_engine):
        manager = SessionManager(slow_engine, idle_timeout=0)
        task = asyncio.ensure_future(manager.acquire(DEFAULT_MODEL))
        await slow_engine.loading.wait()

        assert await manager.handle_memory_pressure(MemoryPressureLevel.CRITICAL) is True
        with pytest.raises(SessionAbortedError):
            await task
        assert manager.active_session is None
        assert slow_engine.live_handles == 0

    @pytest.mark.anyio
    async def test_critical_pressure_while_warming_keeps_cached_model(self):
        engine = MockEngine(cached=[DEFAULT_MODEL], steps=50, step_delay=0.01)
        manager = SessionManager(engine, idle_timeout=0)
        task = asyncio.ensure_future(manager.acquire(DEFAULT_MODEL))
        await engine.loading.wait()

        assert await manager.handle_memory_pressure(MemoryPressureLevel.CRITICAL) is True
        with pytest.raises(SessionAbortedError):
            await task
        assert await engine.is_model_cached(DEFAULT_MODEL)
        assert engine.delete_calls == []

    @pytest.mark.anyio
    async def test_critical_pressure_while_downloading_discards_partial(self, slow_engine):
        manager = SessionManager(slow_engine, idle_timeout=0)
        task = asyncio.ensure_future(manager.acquire(DEFAULT_MODEL))
        await slow_engine.loading.wait()

        await manager.handle_memory_pressure(MemoryPressureLevel.CRITICAL)
        with pytest.raises(SessionAbortedError):
            await task
        assert slow_engine.delete_calls == [DEFAULT_MODEL]
        assert DEFAULT_MODEL not in slow_engine.partial


class TestShutdown:
    @pytest.mark.anyio
    async def test_close_while_warming_keeps_cached_model(self):
        engine = MockEngine(cached=[DEFAULT_MODEL], steps=50, step_delay=0.01)
        manager = SessionManager(engine, idle_timeout=0)
        task = asyncio.ensure_future(manager.acquire(DEFAULT_MODEL))
        await engine.loading.wait()

        await manager.close()
        with pytest.raises(SessionAbortedError):
            await task
        assert manager.active_session is None
        assert await engine.is_model_cached(DEFAULT_MODEL)
        assert engine.delete_calls == []

    @pytest.mark.anyio
    async def test_user_cancel_while_warming_deletes_cached_model(self):
        engine = MockEngine(cached=[DEFAULT_MODEL], steps=50, step_delay=0.01)
        manager = SessionManager(engine, idle_timeout=0)
        task = asyncio.ensure_future(manager.acquire(DEFAULT_MODEL))
        await engine.loading.wait()

        assert await manager.cancel_active() is True
        with pytest.raises(SessionAbortedError):
            await task
        assert engine.delete_calls == [DEFAULT_MODEL]
        assert not await engine.is_model_cached(DEFAULT_MODEL)

    @pytest.mark.anyio
    async def test_cancel_active_without_waiting_returns_before_unwind(self, slow_engine):
        manager = SessionManager(slow_engine, idle_timeout=0)
        task = asyncio.ensure_future(manager.acquire(DEFAULT_MODEL))
        await slow_engine.loading.wait()

        assert await manager.cancel_active(wait=False) is True
        assert not task.done()
        assert manager.active_session.cancel_requested

        with pytest.raises(SessionAbortedError):
            await task
        assert slow_engine.delete_calls == [DEFAULT_MODEL]
