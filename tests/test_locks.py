"""
Aggregate locks serialize mutations of one aggregate only.
"""
import asyncio
import gc

from app.core.locks import AggregateLocks


def test_same_key_runs_one_at_a_time():
    locks = AggregateLocks()
    events = []

    async def mutate(name):
        async with locks.hold("team", "t1"):
            events.append(f"start {name}")
            await asyncio.sleep(0.01)
            events.append(f"end {name}")

    async def main():
        await asyncio.gather(mutate("a"), mutate("b"))

    asyncio.run(main())
    assert events == ["start a", "end a", "start b", "end b"]


def test_different_keys_interleave():
    locks = AggregateLocks()
    events = []

    async def mutate(key):
        async with locks.hold("team", key):
            events.append(f"start {key}")
            await asyncio.sleep(0.01)
            events.append(f"end {key}")

    async def main():
        await asyncio.gather(mutate("t1"), mutate("t2"))

    asyncio.run(main())
    assert events[:2] == ["start t1", "start t2"]


def test_same_key_returns_same_lock_while_referenced():
    locks = AggregateLocks()
    lock = locks.get("department", "d1")
    assert locks.get("department", "d1") is lock
    assert locks.get("team", "d1") is not lock


def test_unused_locks_are_dropped():
    locks = AggregateLocks()

    async def main():
        async with locks.hold("user", "u1"):
            assert len(locks) == 1

    asyncio.run(main())
    gc.collect()
    assert len(locks) == 0
