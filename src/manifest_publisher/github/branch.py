"""Submission branch lifecycle with retry and guaranteed rollback.

A BranchTransaction is an async context manager. Inside the block the caller
creates the branch, builds on it and opens the pull request. Leaving the block
with any exception (cancellation included) runs the rollback before the
exception continues to propagate:

- a repository freshly forked for this submission is deleted entirely
- otherwise the submission branch is deleted, if it was created

Example:
    >>> async with BranchTransaction(client, fork, name, tip, created_repo=True) as txn:
    ...     await txn.create_branch()
    ...     ...  # build commit, txn.advance(commit_sha), open PR
"""

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from ..metrics import branch_create_retries_total, rollbacks_total
from .client import (
    ForbiddenError,
    GitHubClient,
    GitHubClientError,
    NotFoundError,
    TransientHostError,
    UnprocessableEntityError,
)
from .errors import GenericSyncFailure, NonFastForwardConflict
from .models import BranchReference, RepositoryRef, SubmissionState

logger = logging.getLogger("manifest_publisher.github.branch")

# Retries after the first attempt; waits are 1s, 2s, 3s
DEFAULT_RETRIES = 3


def make_branch_name(package_id: str, version: str) -> str:
    """Unique submission branch name with all whitespace removed."""
    return "".join(f"{package_id}-{version}-{uuid.uuid4()}".split())


class BranchTransaction:
    """Creates one submission branch and cleans up after any failure.

    Attributes:
        repo: Repository the branch lives in (fork or upstream)
        branch_name: Unique branch name for this attempt
        base_sha: Upstream tip the branch starts from
        created_repo: True when repo was forked for this submission
        branch: The created branch, None until create_branch() succeeds
        state: Current SubmissionState
        history: Every state entered, in order
    """

    def __init__(
        self,
        client: GitHubClient,
        repo: RepositoryRef,
        branch_name: str,
        base_sha: str,
        created_repo: bool = False,
        sync_fork: Callable[[], Awaitable[Any]] | None = None,
        retries: int = DEFAULT_RETRIES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Args:
            client: Request-scoped GitHub client
            repo: Repository to create the branch in
            branch_name: Proposed unique branch name
            base_sha: Commit the branch should point at
            created_repo: Whether repo was created by this submission
            sync_fork: Called once before the first creation attempt
            retries: Retries after the first creation attempt
            sleep: Awaitable sleep used for backoff waits
        """
        self.client = client
        self.repo = repo
        self.branch_name = branch_name
        self.base_sha = base_sha
        self.created_repo = created_repo
        self.retries = retries
        self._sync_fork = sync_fork
        self._sleep = sleep

        self.branch: BranchReference | None = None
        self.state = SubmissionState.RESOLVING_REPO
        self.history: list[SubmissionState] = [self.state]

    async def __aenter__(self) -> "BranchTransaction":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is None:
            self.transition(SubmissionState.DONE)
            return False

        self.transition(SubmissionState.ROLLING_BACK)
        logger.warning(
            "submission_failed",
            extra={
                "repo": self.repo.full_name,
                "branch": self.branch_name,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        await self.rollback()
        self.transition(SubmissionState.FAILED)
        # Never suppress the primary error
        return False

    def transition(self, state: SubmissionState) -> None:
        logger.debug(
            "submission_state",
            extra={"branch": self.branch_name, "from": self.state.value, "to": state.value},
        )
        self.state = state
        self.history.append(state)

    async def create_branch(self) -> BranchReference:
        """Create the branch at base_sha, retrying transient failures.

        For a repository forked by this submission, 404 and 409 are retried
        too while the host finishes copying the fork.

        Fork sync (when configured) runs once before the retried block and is
        never repeated. A sync that fails at the host level is logged and
        skipped; an unsafe divergence propagates.

        Raises:
            GenericSyncFailure: If every creation attempt failed with a
                retryable error
            UnsafeSyncDivergenceError: If fork sync refused to act
            GitHubClientError: Non-retryable failures, unchanged
        """
        if self._sync_fork is not None:
            sync_fork, self._sync_fork = self._sync_fork, None
            self.transition(SubmissionState.SYNCING_FORK)
            try:
                await sync_fork()
            except GitHubClientError as e:
                logger.warning(
                    "fork_sync_skipped",
                    extra={"repo": self.repo.full_name, "error": str(e)},
                )

        self.transition(SubmissionState.CREATING_BRANCH)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_incrementing(start=1, increment=1),
            retry=retry_if_exception(self._is_retryable),
            before_sleep=self._log_retry,
            sleep=self._sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    created = await self._create_reference()
        except RetryError as e:
            last_error = e.last_attempt.exception()
            raise GenericSyncFailure(e.last_attempt.attempt_number, self.branch_name) from last_error

        self.branch = created
        logger.info(
            "branch_created",
            extra={"repo": self.repo.full_name, "branch": self.branch_name, "sha": self.base_sha},
        )

        # Pin the new branch to base_sha explicitly
        self.branch = await self.client.update_reference(
            self.repo.full_name, self.branch.ref, self.base_sha
        )
        return self.branch

    async def advance(self, sha: str) -> BranchReference:
        """Move the branch to a new commit, landing the changeset."""
        if self.branch is None:
            raise RuntimeError("Branch has not been created")
        self.transition(SubmissionState.UPDATING_BRANCH)
        self.branch = await self.client.update_reference(
            self.repo.full_name, self.branch.ref, sha
        )
        return self.branch

    async def refresh(self) -> BranchReference:
        """Re-read the branch tip (after contents API commits moved it)."""
        if self.branch is None:
            raise RuntimeError("Branch has not been created")
        self.branch = await self.client.get_reference(self.repo.full_name, self.branch.ref)
        return self.branch

    async def rollback(self) -> None:
        """Delete what this submission created; failures are logged, not raised."""
        if self.created_repo:
            try:
                await self.client.delete_repository(self.repo.full_name)
            except ForbiddenError as e:
                # Token lacks delete_repo; the stale fork is only reported here
                logger.warning(
                    "fork_delete_forbidden",
                    extra={"repo": self.repo.full_name, "error": str(e)},
                )
                rollbacks_total.labels(kind="skipped_forbidden").inc()
                return
            except GitHubClientError as e:
                logger.error(
                    "fork_delete_failed",
                    extra={"repo": self.repo.full_name, "error": str(e)},
                )
                rollbacks_total.labels(kind="failed").inc()
                return
            logger.info("fork_deleted", extra={"repo": self.repo.full_name})
            rollbacks_total.labels(kind="fork").inc()
            return

        if self.branch is None:
            return

        try:
            await self.client.delete_reference(self.repo.full_name, self.branch.ref)
        except GitHubClientError as e:
            logger.error(
                "branch_delete_failed",
                extra={"repo": self.repo.full_name, "branch": self.branch_name, "error": str(e)},
            )
            rollbacks_total.labels(kind="failed").inc()
            return
        logger.info(
            "branch_deleted",
            extra={"repo": self.repo.full_name, "branch": self.branch_name},
        )
        rollbacks_total.labels(kind="branch").inc()

    async def _create_reference(self) -> BranchReference:
        try:
            return await self.client.create_reference(
                self.repo.full_name, f"heads/{self.branch_name}", self.base_sha
            )
        except UnprocessableEntityError as e:
            raise NonFastForwardConflict(str(e), status_code=e.status_code) from e

    def _is_retryable(self, error: BaseException) -> bool:
        if isinstance(error, (TransientHostError, NonFastForwardConflict)):
            return True
        # A fork created moments ago answers 404 or 409 until its git data exists
        if self.created_repo and isinstance(error, GitHubClientError):
            return isinstance(error, NotFoundError) or error.status_code == 409
        return False

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, NonFastForwardConflict):
            kind = "non_fast_forward"
        elif isinstance(error, TransientHostError):
            kind = "transient"
        else:
            kind = "fork_not_ready"
        branch_create_retries_total.labels(error=kind).inc()
        logger.warning(
            "branch_create_retry",
            extra={
                "branch": self.branch_name,
                "attempt": retry_state.attempt_number,
                "max_attempts": self.retries + 1,
                "wait_seconds": retry_state.next_action.sleep if retry_state.next_action else 0,
                "error": str(error),
            },
        )
