"""Manifest Publisher - publish package manifests as pull requests.

Takes a locally assembled set of manifest files and publishes it as a pull
request against a shared, git-hosted manifest repository, using a
fork-based contribution workflow:

- Configuration management with environment overrides
- Async GitHub REST client (repository accessor)
- Case-insensitive package lookup and version resolution
- Fork sync, branch transaction with rollback, pull request publishing

Python Version: 3.10+ required
"""

# Logging Configuration - configure before other imports
from .logging_config import StructuredFormatter, configure_logging

# Initialize structured logging on module import
configure_logging()

from .__version__ import __version__
from .config import PublisherConfig, get_config, reset_config
from .github import (
    GitHubClient,
    GitHubClientError,
    ManifestCatalog,
    ManifestNotFoundError,
    ManifestSubmission,
    PullRequestPublisher,
    PullRequestResult,
    UnsafeSyncDivergenceError,
    get_installation_access_token,
)

__all__ = [
    "GitHubClient",
    "GitHubClientError",
    "ManifestCatalog",
    "ManifestNotFoundError",
    "ManifestSubmission",
    "PublisherConfig",
    "PullRequestPublisher",
    "PullRequestResult",
    "StructuredFormatter",
    "UnsafeSyncDivergenceError",
    "__version__",
    "configure_logging",
    "get_config",
    "get_installation_access_token",
    "reset_config",
]
