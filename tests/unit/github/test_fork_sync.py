"""Unit tests for ForkSynchronizer."""

import pytest

from manifest_publisher.github.errors import UnsafeSyncDivergenceError
from manifest_publisher.github.fork_sync import ForkSynchronizer
from manifest_publisher.github.models import SyncStatus

UPSTREAM = "microsoft/winget-pkgs"


@pytest.fixture
def fork(host):
    return host.seed_fork(UPSTREAM)


def _advance(host, full_name: str, count: int) -> str:
    sha = ""
    for i in range(count):
        sha = host.push(full_name, "master", {f"notes/{full_name}/{i}.txt": str(i)})
    return sha


class TestCompare:

    @pytest.mark.asyncio
    async def test_compare_does_not_modify_fork(self, host, fork):
        _advance(host, UPSTREAM, 2)
        before = host.refs[fork.full_name]["master"]

        outcome = await ForkSynchronizer(host).compare(fork)

        assert outcome.status == SyncStatus.FAST_FORWARDED
        assert outcome.behind_by == 2
        assert host.refs[fork.full_name]["master"] == before
        assert host.call_count("update_reference") == 0

    @pytest.mark.asyncio
    async def test_not_a_fork_raises(self, host):
        upstream = host.repos[UPSTREAM]
        with pytest.raises(ValueError, match="not a fork"):
            await ForkSynchronizer(host).compare(upstream)


class TestSync:

    @pytest.mark.asyncio
    async def test_behind_only_fast_forwards(self, host, fork):
        upstream_tip = _advance(host, UPSTREAM, 3)

        outcome = await ForkSynchronizer(host).sync(fork)

        assert outcome.status == SyncStatus.FAST_FORWARDED
        assert (outcome.ahead_by, outcome.behind_by) == (0, 3)
        assert host.refs[fork.full_name]["master"] == upstream_tip

    @pytest.mark.asyncio
    async def test_diverged_fork_is_left_untouched(self, host, fork):
        _advance(host, UPSTREAM, 3)
        fork_tip = _advance(host, fork.full_name, 2)

        with pytest.raises(UnsafeSyncDivergenceError) as exc_info:
            await ForkSynchronizer(host).sync(fork)

        assert exc_info.value.ahead_by == 2
        assert exc_info.value.behind_by == 3
        assert host.refs[fork.full_name]["master"] == fork_tip
        assert host.call_count("update_reference") == 0

    @pytest.mark.asyncio
    async def test_up_to_date_is_noop(self, host, fork):
        outcome = await ForkSynchronizer(host).sync(fork)

        assert outcome.status == SyncStatus.UP_TO_DATE
        assert host.call_count("update_reference") == 0
        assert host.call_count("get_reference") == 0

    @pytest.mark.asyncio
    async def test_fork_ahead_but_not_behind_is_up_to_date(self, host, fork):
        fork_tip = _advance(host, fork.full_name, 1)

        outcome = await ForkSynchronizer(host).sync(fork)

        assert outcome.status == SyncStatus.UP_TO_DATE
        assert outcome.ahead_by == 1
        assert host.refs[fork.full_name]["master"] == fork_tip

    @pytest.mark.asyncio
    async def test_compares_upstream_against_fork_owner(self, host, fork):
        await ForkSynchronizer(host).sync(fork)

        name, args = next(c for c in host.calls if c[0] == "compare")
        assert args == (UPSTREAM, "master", "contributor:master")
