"""Tests for LockCoordinator against the in-memory store."""

import pytest

from src.models.lock import LockHolder, LockKey

KEY = LockKey(namespace="acme", repository="infra", project="network", workspace="prod")


def _holder(pr: int, user: str = "alice") -> LockHolder:
    return LockHolder(pr_number=pr, requested_by=user)


# ===================================================================
# Acquire
# ===================================================================


class TestAcquire:
    @pytest.mark.anyio
    async def test_free_key_is_acquired(self, coordinator) -> None:
        assert await coordinator.acquire(KEY, _holder(1)) is True
        lock = await coordinator.get_lock(KEY)
        assert lock is not None
        assert lock.holder.pr_number == 1
        assert lock.holder.requested_by == "alice"

    @pytest.mark.anyio
    async def test_other_mr_is_refused(self, coordinator) -> None:
        await coordinator.acquire(KEY, _holder(1))
        assert await coordinator.acquire(KEY, _holder(2, "bob")) is False
        lock = await coordinator.get_lock(KEY)
        assert lock.holder.pr_number == 1

    @pytest.mark.anyio
    async def test_same_mr_reacquire_is_idempotent(self, coordinator) -> None:
        assert await coordinator.acquire(KEY, _holder(1)) is True
        assert await coordinator.acquire(KEY, _holder(1, "carol")) is True
        assert len(await coordinator.list_locks()) == 1

    @pytest.mark.anyio
    async def test_workspaces_lock_independently(self, coordinator) -> None:
        staging = KEY.model_copy(update={"workspace": "staging"})
        assert await coordinator.acquire(KEY, _holder(1)) is True
        assert await coordinator.acquire(staging, _holder(2)) is True
        assert len(await coordinator.list_locks()) == 2

    @pytest.mark.anyio
    async def test_only_first_of_many_contenders_wins(self, coordinator) -> None:
        results = [await coordinator.acquire(KEY, _holder(pr)) for pr in range(1, 6)]
        assert results == [True, False, False, False, False]


# ===================================================================
# Release
# ===================================================================


class TestRelease:
    @pytest.mark.anyio
    async def test_holder_releases(self, coordinator) -> None:
        await coordinator.acquire(KEY, _holder(1))
        assert await coordinator.release(KEY, _holder(1)) is True
        assert await coordinator.get_lock(KEY) is None

    @pytest.mark.anyio
    async def test_non_holder_cannot_release(self, coordinator) -> None:
        await coordinator.acquire(KEY, _holder(1))
        assert await coordinator.release(KEY, _holder(2)) is False
        assert (await coordinator.get_lock(KEY)).holder.pr_number == 1

    @pytest.mark.anyio
    async def test_release_of_free_key_is_false(self, coordinator) -> None:
        assert await coordinator.release(KEY, _holder(1)) is False

    @pytest.mark.anyio
    async def test_released_key_can_be_taken_by_other_mr(self, coordinator) -> None:
        await coordinator.acquire(KEY, _holder(1))
        await coordinator.release(KEY, _holder(1))
        assert await coordinator.acquire(KEY, _holder(2)) is True

    @pytest.mark.anyio
    async def test_force_release_ignores_holder(self, coordinator) -> None:
        await coordinator.acquire(KEY, _holder(1))
        assert await coordinator.force_release(KEY) is True
        assert await coordinator.force_release(KEY) is False
        assert await coordinator.list_locks() == []
