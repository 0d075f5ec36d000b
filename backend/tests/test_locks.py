"""Tests for per-cutover lock registries."""

import asyncio

import pytest

from cutover.locks import LocalLockRegistry, LockUnavailable, build_lock_registry


@pytest.mark.asyncio
async def test_same_name_is_serialised():
    locks = LocalLockRegistry()
    events: list[str] = []

    async def _worker(tag: str):
        async with locks.hold("X"):
            events.append(f"{tag}-in")
            await asyncio.sleep(0.01)
            events.append(f"{tag}-out")

    await asyncio.gather(_worker("a"), _worker("b"))

    assert events == ["a-in", "a-out", "b-in", "b-out"]


@pytest.mark.asyncio
async def test_released_locks_are_forgotten():
    locks = LocalLockRegistry()
    for name in ("X", "Y", "Z"):
        async with locks.hold(name):
            pass
    with pytest.raises(LockUnavailable):
        async with locks.hold("X"):
            async with locks.hold("X", blocking=False):
                pass
    assert locks._locks == {}


@pytest.mark.asyncio
async def test_different_names_do_not_contend():
    locks = LocalLockRegistry()
    async with locks.hold("X"):
        async with locks.hold("Y", blocking=False):
            assert locks.is_held("X")
            assert locks.is_held("Y")


@pytest.mark.asyncio
async def test_non_blocking_hold_raises_when_taken():
    locks = LocalLockRegistry()
    async with locks.hold("X"):
        with pytest.raises(LockUnavailable):
            async with locks.hold("X", blocking=False):
                pass
    assert locks.is_held("X") is False


def test_build_lock_registry_local():
    class _Settings:
        lock_backend = "local"

    assert isinstance(build_lock_registry(_Settings()), LocalLockRegistry)
