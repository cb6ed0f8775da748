"""Fast-forward a contributor's fork to match upstream.

A fork that lags far behind upstream can make branch creation fail (the
upstream tip is not yet known to the fork), so the publisher brings the fork's
default branch up to date before creating a submission branch. Only pure
fast-forwards are performed; a fork with its own commits is left untouched.

The compare-then-update sequence is not atomic. The fork is assumed to have a
single owner, so a concurrent push between the two calls is accepted.
"""

import logging

from ..metrics import fork_sync_total
from .client import GitHubClient
from .errors import UnsafeSyncDivergenceError
from .models import RepositoryRef, SyncOutcome, SyncStatus

logger = logging.getLogger("manifest_publisher.github.fork_sync")


class ForkSynchronizer:
    """Compares a fork with its parent and fast-forwards it when safe."""

    def __init__(self, client: GitHubClient) -> None:
        self.client = client

    async def compare(self, fork: RepositoryRef) -> SyncOutcome:
        """Classify the fork's default branch against upstream without acting.

        Raises:
            ValueError: If the repository is not a fork
        """
        upstream = self._upstream(fork)
        result = await self.client.compare(
            upstream.full_name,
            upstream.default_branch,
            f"{fork.owner}:{fork.default_branch}",
        )
        if result.behind_by == 0:
            status = SyncStatus.UP_TO_DATE
        elif result.ahead_by == 0:
            status = SyncStatus.FAST_FORWARDED
        else:
            status = SyncStatus.DIVERGED
        return SyncOutcome(status=status, ahead_by=result.ahead_by, behind_by=result.behind_by)

    async def sync(self, fork: RepositoryRef) -> SyncOutcome:
        """Fast-forward the fork's default branch to the upstream tip.

        Returns:
            UP_TO_DATE when nothing was behind, FAST_FORWARDED after updating

        Raises:
            UnsafeSyncDivergenceError: If the fork is behind and also has
                commits upstream lacks
        """
        upstream = self._upstream(fork)
        outcome = await self.compare(fork)

        if outcome.status == SyncStatus.UP_TO_DATE:
            logger.debug("fork_up_to_date", extra={"repo": fork.full_name})
            fork_sync_total.labels(outcome=outcome.status.value).inc()
            return outcome

        if outcome.status == SyncStatus.DIVERGED:
            logger.warning(
                "fork_diverged",
                extra={
                    "repo": fork.full_name,
                    "ahead_by": outcome.ahead_by,
                    "behind_by": outcome.behind_by,
                },
            )
            fork_sync_total.labels(outcome=outcome.status.value).inc()
            raise UnsafeSyncDivergenceError(outcome.ahead_by, outcome.behind_by)

        upstream_tip = await self.client.get_reference(
            upstream.full_name, upstream.default_branch
        )
        await self.client.update_reference(
            fork.full_name, fork.default_branch, upstream_tip.sha
        )
        logger.info(
            "fork_fast_forwarded",
            extra={
                "repo": fork.full_name,
                "behind_by": outcome.behind_by,
                "sha": upstream_tip.sha,
            },
        )
        fork_sync_total.labels(outcome=outcome.status.value).inc()
        return outcome

    @staticmethod
    def _upstream(fork: RepositoryRef) -> RepositoryRef:
        if fork.parent is None:
            raise ValueError(f"{fork.full_name} is not a fork")
        return fork.parent
