"""Publish a manifest changeset as a pull request against the upstream repo.

Orchestrates the pipeline for one submission:

    resolve repo -> sync fork (optional) -> create branch -> build commit
    -> update branch -> open pull request

Every step after the target repository is known runs inside a
BranchTransaction, so a failure anywhere leaves neither a stray branch nor a
half-created fork behind. Concurrent submitters never coordinate: each one
works on its own uniquely named branch and the host's sha-checked reference
updates do the rest.
"""

import asyncio
import logging
import time
from dataclasses import replace
from functools import partial
from typing import Awaitable, Callable

from ..metrics import submission_duration_seconds, submissions_total
from .branch import DEFAULT_RETRIES, BranchTransaction, make_branch_name
from .changeset import ChangesetBuilder
from .client import GitHubClient, NotFoundError
from .fork_sync import ForkSynchronizer
from .locator import PackageLocator
from .models import (
    Changeset,
    ManifestSubmission,
    PullRequestResult,
    RepositoryRef,
    SubmissionState,
)

logger = logging.getLogger("manifest_publisher.github.publisher")

PR_TEMPLATE_PATH = ".github/PULL_REQUEST_TEMPLATE.md"


class PullRequestPublisher:
    """Submits manifest changesets as pull requests.

    Attributes:
        client: Request-scoped GitHub client
        upstream: Upstream repository in owner/name format
        manifest_root: Top-level manifest directory in the repository
        pr_template_path: Path of the PR description template on upstream
        retries: Branch creation retries after the first attempt
    """

    def __init__(
        self,
        client: GitHubClient,
        upstream: str,
        manifest_root: str = "manifests",
        pr_template_path: str = PR_TEMPLATE_PATH,
        retries: int = DEFAULT_RETRIES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.upstream = upstream
        self.manifest_root = manifest_root
        self.pr_template_path = pr_template_path
        self.retries = retries
        self._sleep = sleep

    async def submit(
        self,
        submission: ManifestSubmission,
        submit_to_fork: bool = True,
        title: str | None = None,
        replace_version: str | None = None,
        timeout: float | None = None,
    ) -> PullRequestResult:
        """Publish a submission and open a pull request.

        Args:
            submission: Package id, version and manifest contents
            submit_to_fork: Stage the branch on the caller's fork instead of
                upstream
            title: Pull request title and commit message; defaults to
                "<packageId> version <version>"
            replace_version: Existing version whose files are deleted on the
                new branch before the new files are added
            timeout: Overall deadline in seconds. On expiry the in-flight step
                is cancelled, rollback still runs, and asyncio.TimeoutError
                is raised

        Returns:
            The created pull request

        Raises:
            ManifestNotFoundError: If replace_version does not exist
            UnsafeSyncDivergenceError: If the fork has diverged from upstream
            GenericSyncFailure: If branch creation kept failing
            GitHubClientError: Any other host failure, after rollback
        """
        mode = "fork" if submit_to_fork else "direct"
        started = time.monotonic()
        outcome = "failed"
        try:
            if timeout is None:
                result = await self._submit(submission, submit_to_fork, title, replace_version)
            else:
                result = await asyncio.wait_for(
                    self._submit(submission, submit_to_fork, title, replace_version),
                    timeout,
                )
            outcome = "success"
            return result
        finally:
            submissions_total.labels(outcome=outcome, mode=mode).inc()
            submission_duration_seconds.labels(outcome=outcome).observe(
                time.monotonic() - started
            )

    async def _submit(
        self,
        submission: ManifestSubmission,
        submit_to_fork: bool,
        title: str | None,
        replace_version: str | None,
    ) -> PullRequestResult:
        title = title or submission.default_title()
        files = submission.to_files(self.manifest_root)
        if not files:
            raise ValueError("Submission has no manifest files")

        upstream = await self.client.get_repository(self.upstream)
        repo, created_repo = await self._resolve_target(upstream, submit_to_fork)

        branch_name = make_branch_name(submission.package_id, submission.version)
        # Only a pre-existing personal fork is synced; upstream is never written
        sync_fork = None
        if submit_to_fork and not created_repo:
            sync_fork = partial(ForkSynchronizer(self.client).sync, repo)

        txn = BranchTransaction(
            self.client,
            repo,
            branch_name,
            base_sha="",
            created_repo=created_repo,
            sync_fork=sync_fork,
            retries=self.retries,
            sleep=self._sleep,
        )
        async with txn:
            upstream_tip = await self.client.get_reference(
                upstream.full_name, upstream.default_branch
            )
            txn.base_sha = upstream_tip.sha
            await txn.create_branch()

            txn.transition(SubmissionState.BUILDING_COMMIT)
            builder = ChangesetBuilder(self.client, repo.full_name)
            if replace_version:
                package_id = await self._delete_version(
                    builder, submission.package_id, replace_version, txn
                )
                # New files go under the same directory casing as the old ones
                submission = replace(submission, package_id=package_id)
                files = submission.to_files(self.manifest_root)

            commit_sha = await builder.build(
                Changeset(files=files, base_sha=txn.branch.sha), message=title
            )
            await txn.advance(commit_sha)

            txn.transition(SubmissionState.OPENING_PR)
            body = await self.client.get_file_content(upstream.full_name, self.pr_template_path)
            target_branch = (
                repo.parent.default_branch if submit_to_fork else repo.default_branch
            )
            pull_request = await self.client.create_pull_request(
                upstream.full_name,
                title=title,
                head=f"{repo.owner}:{branch_name}",
                base=target_branch,
                body=body,
            )

        logger.info(
            "pull_request_created",
            extra={
                "number": pull_request.number,
                "branch": branch_name,
                "repo": repo.full_name,
                "package_id": submission.package_id,
                "version": submission.version,
            },
        )
        return pull_request

    async def _resolve_target(
        self, upstream: RepositoryRef, submit_to_fork: bool
    ) -> tuple[RepositoryRef, bool]:
        """Return (repository to push to, whether it was created now)."""
        if not submit_to_fork:
            return upstream, False

        user = await self.client.get_authenticated_user()
        try:
            fork = await self.client.get_repository(f"{user['login']}/{upstream.name}")
        except NotFoundError:
            fork = await self.client.create_fork(upstream.full_name)
            return fork, True

        if fork.parent is None:
            # A same-named repository that is not a fork cannot carry the PR
            raise ValueError(f"{fork.full_name} exists but is not a fork of {upstream.full_name}")
        return fork, False

    async def _delete_version(
        self,
        builder: ChangesetBuilder,
        package_id: str,
        version: str,
        txn: BranchTransaction,
    ) -> str:
        """Delete an existing version's files on the submission branch.

        The version directory is resolved on the branch itself, so the
        deletions apply to exactly what the new commit builds on.

        Returns:
            The package id in its canonical repository casing

        Raises:
            ManifestNotFoundError: If the package or version does not exist
        """
        locator = PackageLocator(
            self.client, txn.repo.full_name, self.manifest_root, ref=txn.branch_name
        )
        package = await locator.locate(package_id)
        location = await locator.resolve_version(package, version)
        await builder.delete_directory(location.path, txn.branch_name)
        await txn.refresh()
        return location.package_id

    # --- Pull request lifecycle ---

    async def close_pull_request(self, number: int) -> None:
        """Close a pull request and delete its branch when not on a fork."""
        await self.client.update_pull_request(self.upstream, number, state="closed")
        await self._delete_pull_request_branch(number)

    async def merge_pull_request(self, number: int) -> None:
        """Merge a pull request and delete its branch when not on a fork.

        Raises:
            MergeConflictError: If the pull request cannot be merged
        """
        await self.client.merge_pull_request(self.upstream, number)
        await self._delete_pull_request_branch(number)

    async def _delete_pull_request_branch(self, number: int) -> None:
        pull_request = await self.client.get_pull_request(self.upstream, number)
        head, base = pull_request["head"], pull_request["base"]
        if head["repo"]["id"] == base["repo"]["id"]:
            await self.client.delete_reference(self.upstream, f"heads/{head['ref']}")
            logger.info(
                "pull_request_branch_deleted",
                extra={"number": number, "branch": head["ref"]},
            )
