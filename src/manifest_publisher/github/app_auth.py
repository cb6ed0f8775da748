"""GitHub App authentication.

Exchanges an app's long-lived private key for a short-lived installation
access token:

1. Sign a JWT (RS256) with ``iat`` 60 seconds in the past to absorb clock
   drift, ``exp`` at most 10 minutes ahead, and ``iss`` set to the app id.
2. Look up the app's installation on the target repository.
3. Exchange the JWT for an installation-scoped token.

Reference: https://docs.github.com/en/apps/creating-github-apps/authenticating-with-a-github-app
"""

import logging
import time

import jwt

from .client import GitHubClient

logger = logging.getLogger("manifest_publisher.github.app_auth")

CLOCK_DRIFT_SECONDS = 60
JWT_LIFETIME_SECONDS = 600  # GitHub rejects anything over 10 minutes


def build_app_jwt(private_key_pem: str, app_id: int, now: float | None = None) -> str:
    """Sign a GitHub App JWT.

    Args:
        private_key_pem: App private key in PEM format
        app_id: GitHub App identifier
        now: Unix time to sign at (default: current time)

    Returns:
        Encoded JWT

    Raises:
        ValueError: If the key is empty or app_id is not a positive integer
    """
    if not private_key_pem or not private_key_pem.strip():
        raise ValueError("GitHub App private key is empty")
    if isinstance(app_id, bool) or not isinstance(app_id, int) or app_id <= 0:
        raise ValueError(f"Invalid GitHub App id: {app_id!r}")

    issued = int(now if now is not None else time.time())
    payload = {
        "iat": issued - CLOCK_DRIFT_SECONDS,
        "exp": issued + JWT_LIFETIME_SECONDS,
        "iss": str(app_id),
    }
    return jwt.encode(payload, private_key_pem, algorithm="RS256")


async def get_installation_access_token(
    private_key_pem: str,
    app_id: int,
    repo: str,
    base_url: str | None = None,
) -> str:
    """Get an installation access token for the app's install on repo.

    Args:
        private_key_pem: App private key in PEM format
        app_id: GitHub App identifier
        repo: Repository the app is installed on (owner/name)
        base_url: GitHub API base URL

    Returns:
        Installation access token (valid for one hour)
    """
    app_jwt = build_app_jwt(private_key_pem, app_id)
    async with GitHubClient(app_jwt, base_url=base_url) as client:
        installation_id = await client.get_repository_installation(repo)
        token = await client.create_installation_token(installation_id)
    logger.info(
        "installation_token_created",
        extra={"app_id": app_id, "installation_id": installation_id, "repo": repo},
    )
    return token
