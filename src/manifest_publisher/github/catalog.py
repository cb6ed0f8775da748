"""Read-side queries against the upstream manifest repository."""

import logging
import posixpath

from .client import GitHubClient
from .errors import ManifestNotFoundError
from .locator import PackageLocator
from .models import ContentType, PublisherAppVersion

logger = logging.getLogger("manifest_publisher.github.catalog")


class ManifestCatalog:
    """Looks up packages, versions and manifest files on upstream.

    Attributes:
        client: Request-scoped GitHub client
        upstream: Upstream repository in owner/name format
        manifest_root: Top-level manifest directory
    """

    def __init__(
        self,
        client: GitHubClient,
        upstream: str,
        manifest_root: str = "manifests",
    ) -> None:
        self.client = client
        self.upstream = upstream
        self.manifest_root = manifest_root.strip("/")
        self.locator = PackageLocator(client, upstream, self.manifest_root)

    async def check_access(self) -> None:
        """Raise unless the token can read the upstream repository."""
        await self.client.get_repository(self.upstream)

    async def find_package_id(self, package_id: str) -> str | None:
        """Canonical-case package identifier, or None if it does not exist."""
        location = await self.locator.find(package_id)
        return location.package_id if location else None

    async def get_manifest_content(
        self, package_id: str, version: str | None = None
    ) -> list[str]:
        """Text of every .yaml manifest in a package version directory.

        Args:
            package_id: Package identifier in any casing
            version: Exact version, or None for the latest

        Raises:
            ManifestNotFoundError: If the package or version does not exist,
                or the version directory holds no manifest files
        """
        package = await self.locator.locate(package_id)
        location = await self.locator.resolve_version(package, version)

        entries = await self.client.list_contents(self.upstream, location.path)
        manifests = [
            e
            for e in entries
            if e.type == ContentType.FILE and e.name.lower().endswith(".yaml")
        ]
        # Only subdirectories: the id pointed at a namespace, not a package
        if not manifests:
            raise ManifestNotFoundError("package identifier", package_id)

        return [
            await self.client.get_file_content(self.upstream, entry.path)
            for entry in manifests
        ]

    async def get_app_versions(self) -> list[PublisherAppVersion]:
        """One entry per manifest file under the manifest root on upstream.

        Paths take the form ``<root>/<letter>/<Publisher>/<App...>/<file>``
        for single-file manifests; the app name joins the middle segments
        with dots.
        """
        repo = await self.client.get_repository(self.upstream)
        tip = await self.client.get_reference(self.upstream, repo.default_branch)
        tree = await self.client.get_tree(self.upstream, tip.sha, recursive=True)

        prefix = self.manifest_root + "/"
        versions: list[PublisherAppVersion] = []
        for item in tree:
            path = item.get("path", "")
            if item.get("type") != "blob" or not path.startswith(prefix):
                continue
            tokens = path[len(prefix) :].split("/")[1:]  # drop the letter directory
            if len(tokens) < 3:
                continue
            publisher = tokens[0]
            stem, ext = posixpath.splitext(tokens[-1])
            version = stem if ext.lower() == ".yaml" else tokens[-1]
            app = ".".join(tokens[1:-1])
            versions.append(
                PublisherAppVersion(
                    publisher=publisher,
                    app=app,
                    version=version,
                    package_id=f"{publisher}.{app}",
                    path=path,
                )
            )

        logger.debug("app_versions_listed", extra={"count": len(versions)})
        return versions

    async def get_latest_release(self, repo: str) -> str:
        """Latest release tag of any repository (owner/name)."""
        return await self.client.get_latest_release(repo)
