"""Tests for tableloom.infrastructure.locks: per-key asyncio locks."""

from __future__ import annotations

import asyncio

import pytest

from tableloom.infrastructure.locks import KeyedLock


class TestKeyedLock:
    @pytest.mark.asyncio()
    async def test_same_key_is_serialized(self) -> None:
        locks = KeyedLock()
        active = 0
        max_active = 0

        async def _worker() -> None:
            nonlocal active, max_active
            async with locks.hold("index:dat://a"):
                active += 1
                max_active = max(max_active, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(_worker() for _ in range(5)))
        assert max_active == 1

    @pytest.mark.asyncio()
    async def test_different_keys_run_in_parallel(self) -> None:
        locks = KeyedLock()
        both_inside = asyncio.Event()
        inside: set[str] = set()

        async def _worker(key: str) -> None:
            async with locks.hold(key):
                inside.add(key)
                if len(inside) == 2:
                    both_inside.set()
                await asyncio.wait_for(both_inside.wait(), timeout=1.0)

        await asyncio.gather(_worker("a"), _worker("b"))
        assert inside == {"a", "b"}

    @pytest.mark.asyncio()
    async def test_released_on_exception(self) -> None:
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            async with locks.hold("k"):
                raise RuntimeError("boom")
        assert not locks.locked("k")
        async with locks.hold("k"):
            assert locks.locked("k")

    @pytest.mark.asyncio()
    async def test_idle_locks_are_dropped(self) -> None:
        locks = KeyedLock()
        async with locks.hold("a"):
            assert len(locks) == 1
        assert len(locks) == 0
