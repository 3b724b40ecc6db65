"""
Integration Tests: Expiry

Tests:
    - Default TTL boundaries (half the sweep period)
    - Sweeper evicts idle sessions on its own schedule
    - Expired ids become reusable
    - Period changes apply from the next tick
"""

import asyncio

import pytest

from memsession.core.config import StoreConfig
from memsession.core.errors import ErrorCode
from memsession.core.types import SessionId
from memsession.session.store import SessionStore


def run(coro):
    return asyncio.run(coro)


class TestDefaultTTL:
    """Tests for sessions created with TTL 0."""

    def test_not_evicted_before_half_period(self, clock):
        """Test a TTL 0 session survives sweeps before half the period."""
        async def scenario():
            async with SessionStore(StoreConfig(sweep_period_s=20), clock=clock) as store:
                sid = SessionId.generate()
                await store.create(sid, ttl=0)
                clock.advance(9.9)
                await store.sweep()
                early = await store.restore(sid)
                clock.advance(0.2)
                await store.sweep()
                late = await store.restore(sid)
                return early, late

        early, late = run(scenario())
        assert early.is_ok()
        assert late.is_err()

    def test_evicted_within_one_tick(self):
        """Test the sweeper removes a TTL 0 session by the next tick."""
        async def scenario():
            async with SessionStore(StoreConfig(sweep_period_s=0.2)) as store:
                sid = SessionId.generate()
                await store.create(sid)
                await asyncio.sleep(0.05)
                alive = await store.restore(sid)
                # half period (0.1s) of idleness plus one full tick
                await asyncio.sleep(0.45)
                gone = await store.restore(sid)
                return alive, gone, store.sweeper.ticks

        alive, gone, ticks = run(scenario())
        assert alive.is_ok()
        assert gone.is_err()
        assert gone.error.code == ErrorCode.SESSION_NOT_FOUND
        assert ticks >= 1


class TestSweeper:
    """Tests for the periodic sweeper."""

    def test_expired_value_access_then_reuse(self):
        """Test set, idle past TTL, get fails, id can be created again."""
        async def scenario():
            async with SessionStore(StoreConfig(sweep_period_s=0.1)) as store:
                sid = SessionId.generate()
                session = (await store.create(sid, ttl=0.15)).unwrap()
                set_result = await session.set("x", 1)
                await asyncio.sleep(0.4)
                get_result = await session.get("x")
                recreated = await store.create(sid)
                return set_result, get_result, recreated, store.stats

        set_result, get_result, recreated, stats = run(scenario())
        assert set_result.is_ok()
        assert get_result.is_err()
        assert get_result.error.code == ErrorCode.SESSION_EXPIRED
        assert get_result.error.is_not_found()
        assert recreated.is_ok()
        assert stats.expired == 1

    def test_activity_keeps_session_alive(self):
        """Test regular access outlives several TTLs."""
        async def scenario():
            async with SessionStore(StoreConfig(sweep_period_s=0.05)) as store:
                session = (await store.create(SessionId.generate(), ttl=0.2)).unwrap()
                for i in range(8):
                    await asyncio.sleep(0.05)
                    result = await session.set("i", i)
                    if result.is_err():
                        return result
                return await session.get("i")

        assert run(scenario()).unwrap() == 7

    def test_period_change_applies_next_tick(self):
        """Test a longer period stops further ticks after the current one."""
        async def scenario():
            async with SessionStore(StoreConfig(sweep_period_s=0.05)) as store:
                await store.start()
                await asyncio.sleep(0.2)
                previous = store.set_sweep_period(30)
                # let the sleep already in progress finish
                await asyncio.sleep(0.1)
                settled = store.sweeper.ticks
                await asyncio.sleep(0.3)
                return previous, settled, store.sweeper.ticks

        previous, settled, final = run(scenario())
        assert previous == pytest.approx(0.05)
        assert settled >= 1
        assert final == settled

    def test_close_stops_sweeper(self):
        """Test the sweeper task ends with the store."""
        async def scenario():
            store = SessionStore(StoreConfig(sweep_period_s=0.05))
            await store.start()
            await asyncio.sleep(0.12)
            await store.close()
            return store.sweeper.running

        assert run(scenario()) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
