"""
Integration Tests: Session Store Facade

Tests:
    - Create / restore / destroy round trips
    - Identifier validation
    - Collision handling
    - Index compaction seen through restored snapshots
    - Sweep period configuration
    - Lifecycle (auto start, context manager, close)
"""

import asyncio
import threading
import uuid

import pytest

from memsession.core.config import StoreConfig
from memsession.core.errors import ConfigurationError, ErrorCode
from memsession.core.types import SessionId
from memsession.session.store import SessionStore


def run(coro):
    return asyncio.run(coro)


class TestCreateRestore:
    """Tests for create and restore."""

    def test_create_then_restore_same_data(self):
        """Test a restored session exposes what was stored."""
        async def scenario():
            async with SessionStore() as store:
                sid = SessionId.generate()
                session = (await store.create(sid, ttl=60)).unwrap()
                await session.set("one", 1)
                await session.set("23", 123)
                restored = (await store.restore(sid)).unwrap()
                return session, restored

        session, restored = run(scenario())

        assert restored.id == session.id
        assert dict(restored.data) == {"one": 1, "23": 123}
        assert restored.valid()

    def test_collision(self):
        """Test create on a live id fails without touching its data."""
        async def scenario():
            async with SessionStore() as store:
                sid = SessionId.generate()
                session = (await store.create(sid)).unwrap()
                await session.set("keep", "me")
                second = await store.create(sid, ttl=5)
                restored = (await store.restore(sid)).unwrap()
                return second, restored, store.stats.collisions

        second, restored, collisions = run(scenario())

        assert second.is_err()
        assert second.error.code == ErrorCode.SESSION_COLLISION
        assert dict(restored.data) == {"keep": "me"}
        assert collisions == 1

    def test_restore_not_found(self):
        """Test restore of an unknown id."""
        async def scenario():
            async with SessionStore() as store:
                return await store.restore(SessionId.generate())

        result = run(scenario())
        assert result.is_err()
        assert result.error.code == ErrorCode.SESSION_NOT_FOUND
        assert result.error.is_not_found()

    def test_restore_persists_new_ttl(self):
        """Test a TTL given at restore is kept by the table."""
        async def scenario():
            async with SessionStore() as store:
                sid = SessionId.generate()
                await store.create(sid, ttl=5)
                first = (await store.restore(sid, ttl=90)).unwrap()
                second = (await store.restore(sid)).unwrap()
                return first, second

        first, second = run(scenario())
        assert first.ttl_seconds == pytest.approx(90)
        assert second.ttl_seconds == pytest.approx(90)

    def test_restore_does_not_refresh_touch_does(self, clock):
        """Test only touch moves the modified time."""
        async def scenario():
            async with SessionStore(clock=clock) as store:
                sid = SessionId.generate()
                created = (await store.create(sid)).unwrap()
                clock.advance(5)
                restored = (await store.restore(sid)).unwrap()
                touched = (await store.touch(sid)).unwrap()
                return created, restored, touched

        created, restored, touched = run(scenario())
        assert restored.modified == created.modified
        assert touched.modified == clock()

    @pytest.mark.parametrize("ttl", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_ttl_refused(self, ttl):
        """Test infinite and NaN TTLs come back as Err, not exceptions."""
        async def scenario():
            async with SessionStore() as store:
                sid = SessionId.generate()
                created = await store.create(sid, ttl=ttl)
                await store.create(sid)
                restored = await store.restore(sid, ttl=ttl)
                return created, restored, store.size

        created, restored, size = run(scenario())
        for result in (created, restored):
            assert result.is_err()
            assert result.error.code == ErrorCode.CONFIG_INVALID
        assert size == 1

    def test_string_ids(self):
        """Test ids may be given in string form."""
        async def scenario():
            async with SessionStore() as store:
                sid = SessionId.generate()
                await store.create(str(sid))
                return await store.restore(sid), await store.restore(str(sid))

        by_uuid, by_str = run(scenario())
        assert by_uuid.unwrap().id == by_str.unwrap().id


class TestIdentifierValidation:
    """Tests for malformed identifiers."""

    @pytest.mark.parametrize("sid", [
        uuid.UUID(int=0),
        "not-a-uuid",
        "",
        12345,
        None,
        uuid.UUID("00000000-0000-4000-0000-000000000001"),  # NCS variant
    ])
    def test_malformed_ids_rejected(self, sid):
        """Test every entry point rejects a malformed id."""
        async def scenario():
            async with SessionStore() as store:
                return (
                    await store.create(sid),
                    await store.restore(sid),
                    await store.destroy(sid),
                    await store.touch(sid),
                    store.size,
                )

        *results, size = run(scenario())
        for result in results:
            assert result.is_err()
            assert result.error.code == ErrorCode.SESSION_MALFORMED_ID
        assert size == 0


class TestDestroy:
    """Tests for destroy through the facade."""

    def test_destroy_is_idempotent(self):
        """Test destroying absent or already destroyed ids succeeds."""
        async def scenario():
            async with SessionStore() as store:
                sid = SessionId.generate()
                await store.create(sid)
                return (
                    await store.destroy(sid),
                    await store.destroy(sid),
                    await store.destroy(SessionId.generate()),
                    await store.restore(sid),
                )

        first, second, ghost, restored = run(scenario())
        assert first.is_ok() and second.is_ok() and ghost.is_ok()
        assert restored.is_err()

    def test_destroy_middle_compacts_indices(self):
        """Test later sessions shift down by one after a middle destroy."""
        async def scenario():
            async with SessionStore() as store:
                sids = [SessionId.generate() for _ in range(4)]
                for sid in sids:
                    await store.create(sid)
                await store.destroy(sids[1])
                restored = [(await store.restore(s)).unwrap() for s in sids if s != sids[1]]
                return restored, store.check_invariants()

        restored, invariants = run(scenario())
        assert [s.index for s in restored] == [0, 1, 2]
        assert invariants.is_ok()

    def test_id_reusable_after_destroy(self):
        """Test a recreated session starts empty."""
        async def scenario():
            async with SessionStore() as store:
                sid = SessionId.generate()
                session = (await store.create(sid)).unwrap()
                await session.set("num", 123)
                await store.destroy(sid)
                again = (await store.create(sid)).unwrap()
                return await again.get("num")

        result = run(scenario())
        assert result.is_err()
        assert result.error.code == ErrorCode.SESSION_KEY_NOT_FOUND


class TestSweepPeriod:
    """Tests for sweep period configuration."""

    def test_set_sweep_period_returns_previous(self):
        """Test the previous period is handed back."""
        store = SessionStore(StoreConfig(sweep_period_s=30))

        assert store.set_sweep_period(10) == 30
        assert store.set_sweep_period(30) == 10
        assert store.sweep_period == 30

    def test_default_period_and_ttl(self):
        """Test defaults: 20 minute sweep, half of it as TTL."""
        store = SessionStore()

        assert store.sweep_period == 20 * 60
        assert store.default_ttl == 10 * 60

    def test_default_ttl_follows_period(self):
        """Test sessions created after a change get the new default."""
        async def scenario():
            async with SessionStore(StoreConfig(sweep_period_s=100)) as store:
                before = (await store.create(SessionId.generate())).unwrap()
                store.set_sweep_period(40)
                after = (await store.create(SessionId.generate())).unwrap()
                return before, after

        before, after = run(scenario())
        assert before.ttl_seconds == pytest.approx(50)
        assert after.ttl_seconds == pytest.approx(20)

    @pytest.mark.parametrize("period", [0, -1, float("inf"), float("nan")])
    def test_invalid_period_rejected(self, period):
        """Test non-positive periods are refused."""
        store = SessionStore()
        with pytest.raises(ConfigurationError):
            store.set_sweep_period(period)
        with pytest.raises(ConfigurationError):
            SessionStore(StoreConfig(sweep_period_s=period))


class TestLifecycle:
    """Tests for starting and closing the store."""

    def test_auto_start(self):
        """Test the first call starts the background tasks."""
        async def scenario():
            store = SessionStore()
            assert not store.running
            result = await store.create(SessionId.generate())
            running = store.running
            await store.close()
            return result, running, store.running

        result, running, after_close = run(scenario())
        assert result.is_ok()
        assert running
        assert not after_close

    def test_calls_after_close_fail(self):
        """Test a closed store answers with actor_halted."""
        async def scenario():
            async with SessionStore() as store:
                sid = SessionId.generate()
                session = (await store.create(sid)).unwrap()
            return await store.restore(sid), await session.set("x", 1)

        restored, set_result = run(scenario())
        assert restored.error.code == ErrorCode.INTERNAL_ACTOR_HALTED
        assert set_result.error.code == ErrorCode.INTERNAL_ACTOR_HALTED

    def test_manual_sweep(self, clock):
        """Test an on-demand sweep reports evictions."""
        async def scenario():
            async with SessionStore(clock=clock) as store:
                await store.create(SessionId.generate(), ttl=1)
                await store.create(SessionId.generate(), ttl=100)
                clock.advance(2)
                evicted = await store.sweep()
                return evicted, store.size, store.stats

        evicted, size, stats = run(scenario())
        assert evicted.unwrap() == 1
        assert size == 1
        assert stats.expired == 1


class TestOtherThreadCallers:
    """Tests for callers running their own event loop on another thread."""

    @staticmethod
    def _loop_thread():
        loop = asyncio.new_event_loop()
        thread = threading.Thread(target=loop.run_forever, daemon=True)
        thread.start()
        return loop, thread

    @staticmethod
    def _shutdown(loop, thread):
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=5)
        loop.close()

    def test_calls_forwarded_to_store_loop(self):
        """Test a caller on a second loop gets its replies."""
        loop, thread = self._loop_thread()
        store = SessionStore()
        try:
            asyncio.run_coroutine_threadsafe(store.start(), loop).result(timeout=5)

            async def caller():
                sid = SessionId.generate()
                created = await asyncio.wait_for(store.create(sid), timeout=5)
                session = created.unwrap()
                await asyncio.wait_for(session.set("k", "v"), timeout=5)
                value = await asyncio.wait_for(session.get("k"), timeout=5)
                await store.close()
                return value, store.running

            value, running = asyncio.run(caller())
        finally:
            self._shutdown(loop, thread)

        assert value.unwrap() == "v"
        assert not running

    def test_caller_after_store_loop_gone(self):
        """Test a stopped owning loop yields Err instead of a hang."""
        loop, thread = self._loop_thread()
        store = SessionStore()
        asyncio.run_coroutine_threadsafe(store.start(), loop).result(timeout=5)
        self._shutdown(loop, thread)

        async def caller():
            return await asyncio.wait_for(
                store.create(SessionId.generate()), timeout=5,
            )

        result = asyncio.run(caller())
        assert result.is_err()
        assert result.error.code == ErrorCode.INTERNAL_ACTOR_HALTED


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
