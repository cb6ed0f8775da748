"""Config-driven entry points for embedding the publisher.

Wires PublisherConfig to a request-scoped GitHubClient and the pipeline
components. Callers that already hold a client can use the components
directly instead.
"""

import logging

from .config import PublisherConfig, get_config
from .github.app_auth import get_installation_access_token
from .github.catalog import ManifestCatalog
from .github.client import GitHubClient
from .github.models import ManifestSubmission, PullRequestResult
from .github.publisher import PullRequestPublisher

logger = logging.getLogger("manifest_publisher.service")


async def create_client(config: PublisherConfig | None = None) -> GitHubClient:
    """Build a GitHub client from config.

    GitHub App credentials, when configured, take precedence over
    github_token and are exchanged for an installation token on upstream.

    Raises:
        ValueError: If no credentials are configured
    """
    config = config or get_config()
    if config.uses_app_auth:
        token = await get_installation_access_token(
            config.github_app_private_key.get_secret_value(),
            config.github_app_id,
            config.upstream,
            base_url=config.github_api_url,
        )
    else:
        token = config.github_token.get_secret_value()
        if not token:
            raise ValueError("No GitHub credentials configured (GITHUB_TOKEN)")
    return GitHubClient(token, base_url=config.github_api_url)


def create_publisher(client: GitHubClient, config: PublisherConfig | None = None) -> PullRequestPublisher:
    config = config or get_config()
    return PullRequestPublisher(
        client,
        config.upstream,
        manifest_root=config.manifest_root,
        pr_template_path=config.pr_template_path,
        retries=config.branch_create_attempts,
    )


def create_catalog(client: GitHubClient, config: PublisherConfig | None = None) -> ManifestCatalog:
    config = config or get_config()
    return ManifestCatalog(client, config.upstream, manifest_root=config.manifest_root)


async def submit_manifests(
    submission: ManifestSubmission,
    config: PublisherConfig | None = None,
    title: str | None = None,
    replace_version: str | None = None,
    timeout: float | None = None,
) -> PullRequestResult:
    """Publish a submission with a client scoped to this call.

    Args:
        submission: Package id, version and manifest contents
        config: Configuration (default: get_config())
        title: Pull request title override
        replace_version: Existing version to delete on the new branch
        timeout: Overall deadline in seconds

    Returns:
        The created pull request
    """
    config = config or get_config()
    async with await create_client(config) as client:
        publisher = create_publisher(client, config)
        result = await publisher.submit(
            submission,
            submit_to_fork=config.submit_to_fork,
            title=title,
            replace_version=replace_version,
            timeout=timeout,
        )
    logger.info(
        "submission_complete",
        extra={"number": result.number, "package_id": submission.package_id},
    )
    return result
