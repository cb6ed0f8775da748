"""Error taxonomy for the publishing pipeline.

Client-level failures (NotFoundError, ForbiddenError, TransientHostError...)
live in ``client``; the errors here describe pipeline decisions layered on
top of them.
"""

from .client import GitHubClientError, NotFoundError

__all__ = [
    "AmbiguousPackageError",
    "GenericSyncFailure",
    "ManifestNotFoundError",
    "NonFastForwardConflict",
    "UnsafeSyncDivergenceError",
]


class ManifestNotFoundError(NotFoundError):
    """Package identifier or version directory does not exist."""

    def __init__(self, what: str, value: str):
        self.what = what
        self.value = value
        super().__init__(f"{what} not found: {value}", status_code=404)


class AmbiguousPackageError(Exception):
    """Several directory entries match a path segment case-insensitively."""

    def __init__(self, segment: str, candidates: list[str]):
        self.segment = segment
        self.candidates = candidates
        super().__init__(
            f"Ambiguous match for '{segment}': {', '.join(sorted(candidates))}"
        )


class UnsafeSyncDivergenceError(Exception):
    """Fork has commits upstream lacks; fast-forwarding would discard them."""

    def __init__(self, ahead_by: int, behind_by: int = 0):
        self.ahead_by = ahead_by
        self.behind_by = behind_by
        super().__init__(
            f"Fork cannot be synced safely: {ahead_by} commit(s) ahead, "
            f"{behind_by} behind upstream"
        )


class NonFastForwardConflict(GitHubClientError):
    """Branch creation collided with the repository's reference state."""


class GenericSyncFailure(Exception):
    """Branch creation kept failing after all retries.

    The last underlying error is available as ``__cause__``.
    """

    def __init__(self, attempts: int, branch_name: str):
        self.attempts = attempts
        self.branch_name = branch_name
        super().__init__(
            f"Failed to create branch {branch_name} after {attempts} attempt(s)"
        )
