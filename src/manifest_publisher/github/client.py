"""GitHub REST API client.

Provides an async httpx-based facade over the parts of the GitHub REST API v3
the publishing pipeline needs: git references, trees and commits, repository
contents, compare, forks, pull requests, and GitHub App installation tokens.

Every call is a single bounded request. The client never retries or sleeps;
retry policy belongs to the caller (see ``branch.BranchTransaction``). HTTP
failures are mapped onto a small exception hierarchy so callers can tell
transient host trouble from permanent errors.

Reference: https://docs.github.com/en/rest
Rate limits: https://docs.github.com/en/rest/using-the-rest-api/rate-limits-for-the-rest-api
"""

import base64
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from .models import (
    FILE_MODE_REGULAR,
    BranchReference,
    CompareResult,
    ContentEntry,
    PullRequestResult,
    RepositoryRef,
)

logger = logging.getLogger("manifest_publisher.github.client")


class GitHubClientError(Exception):
    """Raised when a GitHub API request fails.

    Wraps httpx errors and HTTP errors for consistent error handling.

    Attributes:
        status_code: HTTP status of the failed response, None for transport errors
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(GitHubClientError):
    """Resource does not exist (404)."""


class ForbiddenError(GitHubClientError):
    """Token lacks permission for the operation (403, not rate limiting)."""


class UnprocessableEntityError(GitHubClientError):
    """Request was well-formed but rejected (422)."""


class MergeConflictError(GitHubClientError):
    """Pull request cannot be merged (405/409 on merge)."""


class TransientHostError(GitHubClientError):
    """Server error, timeout or transport failure; safe to retry."""


class RateLimitExceeded(TransientHostError):
    """Raised when GitHub rate limit is exhausted."""

    def __init__(self, reset_at: datetime, message: str = "Rate limit exceeded"):
        self.reset_at = reset_at
        super().__init__(f"{message}. Resets at {reset_at.isoformat()}", status_code=403)


def _ref_path(ref: str) -> str:
    """Normalize a reference to the form used in /git/refs/ URLs (heads/x)."""
    if ref.startswith("refs/"):
        ref = ref[len("refs/") :]
    if not ref.startswith(("heads/", "tags/")):
        ref = f"heads/{ref}"
    return ref


class GitHubClient:
    """GitHub REST API client using httpx with Bearer token auth.

    Uses one long-lived httpx.AsyncClient with connection pooling. One
    instance is scoped to one submission (or one CLI invocation) and passed
    explicitly to the components that use it.

    Attributes:
        base_url: GitHub API base URL (default: https://api.github.com)
        _rate_limit_remaining: Tracked from X-RateLimit-Remaining header
        _rate_limit_reset: Tracked from X-RateLimit-Reset header

    Example:
        >>> async with GitHubClient("ghp_token") as client:
        ...     repo = await client.get_repository("microsoft/winget-pkgs")
        ...     tip = await client.get_reference(repo.full_name, repo.default_branch)
    """

    # GitHub API base URL
    BASE_URL = "https://api.github.com"
    USER_AGENT = "manifest-publisher/1.0"

    # Timeout configuration
    CONNECT_TIMEOUT = 5.0  # seconds
    READ_TIMEOUT = 30.0  # seconds
    WRITE_TIMEOUT = 10.0  # seconds
    POOL_TIMEOUT = 5.0  # seconds

    # Pagination
    DEFAULT_PER_PAGE = 100

    def __init__(
        self,
        token: str | None,
        base_url: str | None = None,
    ) -> None:
        """Initialize GitHub client with token authentication.

        Args:
            token: Personal access token, installation token or app JWT.
                None makes anonymous requests.
            base_url: GitHub API base URL (default: https://api.github.com)
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")

        self._rate_limit_remaining: int | None = None
        self._rate_limit_reset: float | None = None

        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": self.USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(
                connect=self.CONNECT_TIMEOUT,
                read=self.READ_TIMEOUT,
                write=self.WRITE_TIMEOUT,
                pool=self.POOL_TIMEOUT,
            ),
        )

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit -- close httpx client."""
        await self.close()

    async def close(self) -> None:
        """Close the httpx client and release connections."""
        await self._client.aclose()

    # --- Users & Repositories ---

    async def get_authenticated_user(self) -> dict[str, Any]:
        """Return the user the token belongs to."""
        return await self._request("GET", "/user")

    async def get_repository(self, full_name: str) -> RepositoryRef:
        """Get a repository by owner/name.

        Raises:
            NotFoundError: If the repository does not exist or is not visible
        """
        data = await self._request("GET", f"/repos/{full_name}")
        return RepositoryRef.from_api(data)

    async def create_fork(self, full_name: str) -> RepositoryRef:
        """Fork a repository into the authenticated user's account.

        GitHub creates forks asynchronously; the returned payload already
        carries the fork's identity and parent.
        """
        data = await self._request("POST", f"/repos/{full_name}/forks", json_body={})
        logger.info("fork_created", extra={"repo": data.get("full_name", "")})
        return RepositoryRef.from_api(data)

    async def delete_repository(self, full_name: str) -> None:
        """Delete a repository. Requires the delete_repo scope."""
        await self._request("DELETE", f"/repos/{full_name}")

    async def get_latest_release(self, full_name: str) -> str:
        """Return the tag name of the latest published release."""
        data = await self._request("GET", f"/repos/{full_name}/releases/latest")
        return data["tag_name"]

    # --- Git References ---

    async def get_reference(self, full_name: str, ref: str) -> BranchReference:
        """Read a branch reference.

        Args:
            full_name: Repository in owner/name format
            ref: Branch name, heads/<name> or refs/heads/<name>
        """
        path = _ref_path(ref)
        data = await self._request("GET", f"/repos/{full_name}/git/ref/{path}")
        return BranchReference(name=path.split("/", 1)[1], sha=data["object"]["sha"])

    async def create_reference(
        self, full_name: str, ref: str, sha: str
    ) -> BranchReference:
        """Create a branch reference pointing at sha."""
        path = _ref_path(ref)
        data = await self._request(
            "POST",
            f"/repos/{full_name}/git/refs",
            json_body={"ref": f"refs/{path}", "sha": sha},
        )
        return BranchReference(name=path.split("/", 1)[1], sha=data["object"]["sha"])

    async def update_reference(
        self, full_name: str, ref: str, sha: str, force: bool = False
    ) -> BranchReference:
        """Move a branch reference to sha (fast-forward only unless force)."""
        path = _ref_path(ref)
        data = await self._request(
            "PATCH",
            f"/repos/{full_name}/git/refs/{path}",
            json_body={"sha": sha, "force": force},
        )
        return BranchReference(name=path.split("/", 1)[1], sha=data["object"]["sha"])

    async def delete_reference(self, full_name: str, ref: str) -> None:
        """Delete a branch reference."""
        await self._request("DELETE", f"/repos/{full_name}/git/refs/{_ref_path(ref)}")

    # --- Git Objects ---

    async def get_commit_tree_sha(self, full_name: str, commit_sha: str) -> str:
        """Return the tree sha of a commit."""
        data = await self._request("GET", f"/repos/{full_name}/git/commits/{commit_sha}")
        return data["tree"]["sha"]

    async def create_tree(
        self,
        full_name: str,
        base_tree: str,
        files: dict[str, str],
    ) -> str:
        """Create a tree on top of base_tree with one regular blob per file.

        Args:
            full_name: Repository in owner/name format
            base_tree: Sha of the tree the new entries are layered onto
            files: Repository path -> text content

        Returns:
            Sha of the new tree
        """
        entries = [
            {"path": path, "mode": FILE_MODE_REGULAR, "type": "blob", "content": content}
            for path, content in files.items()
        ]
        data = await self._request(
            "POST",
            f"/repos/{full_name}/git/trees",
            json_body={"base_tree": base_tree, "tree": entries},
        )
        return data["sha"]

    async def create_commit(
        self,
        full_name: str,
        message: str,
        tree_sha: str,
        parents: list[str],
    ) -> str:
        """Create a commit object and return its sha. No reference moves."""
        data = await self._request(
            "POST",
            f"/repos/{full_name}/git/commits",
            json_body={"message": message, "tree": tree_sha, "parents": parents},
        )
        return data["sha"]

    async def get_tree(
        self,
        full_name: str,
        tree_sha: str,
        recursive: bool = True,
    ) -> list[dict[str, Any]]:
        """Get repository tree (file listing).

        Args:
            full_name: Repository in owner/name format
            tree_sha: Tree sha, commit sha or branch name
            recursive: Include subdirectories recursively

        Returns:
            List of tree entry dicts with path, type, sha, size
        """
        params: dict[str, str] = {}
        if recursive:
            params["recursive"] = "1"

        response = await self._request(
            "GET",
            f"/repos/{full_name}/git/trees/{tree_sha}",
            params=params,
        )
        if response.get("truncated"):
            logger.warning("tree_listing_truncated", extra={"repo": full_name})
        return response.get("tree", [])

    # --- Contents ---

    async def list_contents(
        self,
        full_name: str,
        path: str,
        ref: str | None = None,
    ) -> list[ContentEntry]:
        """List a directory. A file path yields a single-entry list."""
        data = await self._contents(full_name, path, ref)
        if isinstance(data, list):
            return [ContentEntry.from_api(item) for item in data]
        return [ContentEntry.from_api(data)]

    async def get_content_entry(
        self,
        full_name: str,
        path: str,
        ref: str | None = None,
    ) -> ContentEntry:
        """Look up a single file, including its current blob sha."""
        data = await self._contents(full_name, path, ref)
        if isinstance(data, list):
            raise GitHubClientError(f"Expected a file but {path} is a directory")
        return ContentEntry.from_api(data)

    async def get_file_content(
        self,
        full_name: str,
        path: str,
        ref: str | None = None,
    ) -> str:
        """Read a file's decoded text content."""
        data = await self._contents(full_name, path, ref)
        if isinstance(data, list):
            raise GitHubClientError(f"Expected a file but {path} is a directory")
        if data.get("encoding") == "base64":
            return base64.b64decode(data.get("content", "")).decode("utf-8")
        return data.get("content", "")

    async def delete_file(
        self,
        full_name: str,
        path: str,
        sha: str,
        branch: str,
        message: str | None = None,
    ) -> None:
        """Delete a single file on a branch. Each call makes one commit."""
        await self._request(
            "DELETE",
            f"/repos/{full_name}/contents/{quote(path)}",
            json_body={
                "message": message or f"Delete {path}",
                "sha": sha,
                "branch": branch,
            },
        )

    async def _contents(
        self, full_name: str, path: str, ref: str | None
    ) -> dict[str, Any] | list[dict[str, Any]]:
        params: dict[str, str] = {}
        if ref:
            params["ref"] = ref
        return await self._request(
            "GET",
            f"/repos/{full_name}/contents/{quote(path.strip('/'))}",
            params=params,
        )

    # --- Compare ---

    async def compare(self, full_name: str, base: str, head: str) -> CompareResult:
        """Compare two refs; head may be owner:branch for a fork.

        Returns:
            How far head is ahead of and behind base
        """
        data = await self._request(
            "GET", f"/repos/{full_name}/compare/{quote(base)}...{quote(head)}"
        )
        return CompareResult(
            ahead_by=int(data.get("ahead_by", 0)),
            behind_by=int(data.get("behind_by", 0)),
            status=data.get("status", ""),
        )

    # --- Pull Requests ---

    async def create_pull_request(
        self,
        full_name: str,
        title: str,
        head: str,
        base: str,
        body: str = "",
    ) -> PullRequestResult:
        """Open a pull request from head (owner:branch) into base."""
        data = await self._request(
            "POST",
            f"/repos/{full_name}/pulls",
            json_body={"title": title, "head": head, "base": base, "body": body},
        )
        return PullRequestResult(
            number=int(data["number"]),
            head_branch=data.get("head", {}).get("ref", head.split(":")[-1]),
            target_branch=data.get("base", {}).get("ref", base),
            body=data.get("body") or "",
            html_url=data.get("html_url", ""),
        )

    async def get_pull_request(self, full_name: str, number: int) -> dict[str, Any]:
        """Read a pull request, including head/base refs and repositories."""
        return await self._request("GET", f"/repos/{full_name}/pulls/{number}")

    async def update_pull_request(
        self, full_name: str, number: int, state: str
    ) -> dict[str, Any]:
        """Set a pull request's state (open or closed)."""
        return await self._request(
            "PATCH",
            f"/repos/{full_name}/pulls/{number}",
            json_body={"state": state},
        )

    async def merge_pull_request(self, full_name: str, number: int) -> dict[str, Any]:
        """Merge a pull request.

        Raises:
            MergeConflictError: If GitHub reports the PR is not mergeable
        """
        return await self._request(
            "PUT",
            f"/repos/{full_name}/pulls/{number}/merge",
            json_body={},
            conflict_error=MergeConflictError,
        )

    # --- GitHub Apps ---

    async def get_repository_installation(self, full_name: str) -> int:
        """Return the app installation id for a repository (app JWT auth)."""
        data = await self._request("GET", f"/repos/{full_name}/installation")
        return int(data["id"])

    async def create_installation_token(self, installation_id: int) -> str:
        """Exchange the app JWT for an installation access token."""
        data = await self._request(
            "POST",
            f"/app/installations/{installation_id}/access_tokens",
            json_body={},
        )
        return data["token"]

    # --- Rate Limit Tracking ---

    def _update_rate_limits(self, response: httpx.Response) -> None:
        """Update rate limit tracking from response headers.

        Args:
            response: httpx response with rate limit headers
        """
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                self._rate_limit_remaining = int(remaining)
            except ValueError:
                logger.warning(
                    "Non-numeric X-RateLimit-Remaining header: %r", remaining
                )

        reset = response.headers.get("X-RateLimit-Reset")
        if reset is not None:
            try:
                self._rate_limit_reset = float(reset)
            except ValueError:
                logger.warning("Non-numeric X-RateLimit-Reset header: %r", reset)

        if self._rate_limit_remaining is not None and self._rate_limit_remaining < 100:
            logger.warning(
                "Rate limit low: %d remaining, resets at %s",
                self._rate_limit_remaining,
                (
                    datetime.fromtimestamp(
                        self._rate_limit_reset, tz=timezone.utc
                    ).isoformat()
                    if self._rate_limit_reset
                    else "unknown"
                ),
            )

    # --- Core HTTP Methods ---

    @staticmethod
    def _retry_after_seconds(response: httpx.Response) -> int:
        """Seconds from Retry-After; 60 when absent or given as an HTTP-date."""
        retry_after = response.headers.get("Retry-After", "60")
        try:
            return int(retry_after)
        except ValueError:
            logger.warning("Non-numeric Retry-After header: %r", retry_after)
            return 60

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            error_body = response.json() if response.content else {}
        except (ValueError, UnicodeDecodeError):
            error_body = {}
        if not isinstance(error_body, dict):
            error_body = {}
        return error_body.get("message", response.text)

    async def _raw_request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        conflict_error: type[GitHubClientError] | None = None,
    ) -> httpx.Response:
        """Make one HTTP request and map failures to client exceptions.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API path (e.g., /repos/owner/repo/git/refs)
            params: Query parameters
            json_body: JSON request body
            conflict_error: Exception raised for 405/409 responses

        Returns:
            Raw httpx.Response (status 2xx)

        Raises:
            NotFoundError: 404
            ForbiddenError: 403 that is not rate limiting
            RateLimitExceeded: Primary (403) or secondary (429) rate limit hit
            UnprocessableEntityError: 422
            TransientHostError: 5xx, timeout or transport failure
            GitHubClientError: Any other non-2xx response
        """
        kwargs: dict[str, Any] = {}
        if params:
            kwargs["params"] = params
        if json_body is not None:
            kwargs["json"] = json_body

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientHostError(f"Request timeout: {method} {path}: {e}") from e
        except httpx.HTTPError as e:
            raise TransientHostError(f"HTTP error: {method} {path}: {e}") from e

        self._update_rate_limits(response)
        status = response.status_code

        if status < 400:
            return response

        if status == 403 and response.headers.get("X-RateLimit-Remaining", "") == "0":
            reset = float(response.headers.get("X-RateLimit-Reset", "0"))
            raise RateLimitExceeded(datetime.fromtimestamp(reset, tz=timezone.utc))

        if status == 429:
            retry_after = self._retry_after_seconds(response)
            reset_at = datetime.fromtimestamp(
                datetime.now(timezone.utc).timestamp() + retry_after, tz=timezone.utc
            )
            raise RateLimitExceeded(reset_at, "Secondary rate limit exceeded")

        message = f"GitHub API error {status}: {self._error_message(response)}"
        logger.debug(
            "github_request_failed",
            extra={"method": method, "path": path, "status_code": status},
        )

        if status == 404:
            raise NotFoundError(message, status_code=status)
        if status == 403:
            raise ForbiddenError(message, status_code=status)
        if status == 422:
            raise UnprocessableEntityError(message, status_code=status)
        if status in (405, 409) and conflict_error is not None:
            raise conflict_error(message, status_code=status)
        if status >= 500:
            raise TransientHostError(message, status_code=status)
        raise GitHubClientError(message, status_code=status)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        conflict_error: type[GitHubClientError] | None = None,
    ) -> Any:
        """Make a single API request and parse the JSON response.

        Returns:
            Parsed JSON response, or an empty dict for bodiless responses (204)
        """
        if method == "GET":
            params = dict(params or {})
            params.setdefault("per_page", str(self.DEFAULT_PER_PAGE))

        response = await self._raw_request(
            method,
            path,
            params=params,
            json_body=json_body,
            conflict_error=conflict_error,
        )
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()
