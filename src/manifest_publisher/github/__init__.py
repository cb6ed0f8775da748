"""GitHub integration package.

Provides the async REST client used as the repository accessor, plus the
components of the publishing pipeline built on it: package lookup, fork
sync, changeset building, the branch transaction and the pull request
publisher.
"""

from .app_auth import build_app_jwt, get_installation_access_token
from .branch import BranchTransaction, make_branch_name
from .catalog import ManifestCatalog
from .changeset import ChangesetBuilder
from .client import (
    ForbiddenError,
    GitHubClient,
    GitHubClientError,
    MergeConflictError,
    NotFoundError,
    RateLimitExceeded,
    TransientHostError,
    UnprocessableEntityError,
)
from .errors import (
    AmbiguousPackageError,
    GenericSyncFailure,
    ManifestNotFoundError,
    NonFastForwardConflict,
    UnsafeSyncDivergenceError,
)
from .fork_sync import ForkSynchronizer
from .locator import PackageLocator
from .models import (
    BranchReference,
    Changeset,
    ManifestSubmission,
    PackageVersionLocation,
    PublisherAppVersion,
    PullRequestResult,
    RepositoryRef,
    SubmissionState,
    SyncOutcome,
    SyncStatus,
)
from .publisher import PullRequestPublisher
from .versions import compare_versions, latest_version

__all__ = [
    "AmbiguousPackageError",
    "BranchReference",
    "BranchTransaction",
    "Changeset",
    "ChangesetBuilder",
    "ForbiddenError",
    "ForkSynchronizer",
    "GenericSyncFailure",
    "GitHubClient",
    "GitHubClientError",
    "ManifestCatalog",
    "ManifestNotFoundError",
    "ManifestSubmission",
    "MergeConflictError",
    "NonFastForwardConflict",
    "NotFoundError",
    "PackageLocator",
    "PackageVersionLocation",
    "PublisherAppVersion",
    "PullRequestPublisher",
    "PullRequestResult",
    "RateLimitExceeded",
    "RepositoryRef",
    "SubmissionState",
    "SyncOutcome",
    "SyncStatus",
    "TransientHostError",
    "UnprocessableEntityError",
    "UnsafeSyncDivergenceError",
    "build_app_jwt",
    "compare_versions",
    "get_installation_access_token",
    "latest_version",
    "make_branch_name",
]
