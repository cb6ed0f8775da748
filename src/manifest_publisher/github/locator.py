"""Case-insensitive package lookup in the manifest tree.

Package identifiers are dotted (``Publisher.App.Sub``) and stored one segment
per directory under ``<root>/<first letter>/``. Users often type them with the
wrong casing; the locator walks the tree one level at a time and returns the
canonical, exactly-cased identifier and path.
"""

import logging

from .client import GitHubClient, NotFoundError
from .errors import AmbiguousPackageError, ManifestNotFoundError
from .models import PackageVersionLocation
from .versions import latest_version

logger = logging.getLogger("manifest_publisher.github.locator")


class PackageLocator:
    """Resolves package identifiers and versions against one repository.

    Attributes:
        client: Request-scoped GitHub client
        repo: Repository in owner/name format (the upstream manifest repo)
        manifest_root: Top-level manifest directory (``manifests``)
        ref: Branch or sha to read, None for the default branch
    """

    def __init__(
        self,
        client: GitHubClient,
        repo: str,
        manifest_root: str = "manifests",
        ref: str | None = None,
    ) -> None:
        self.client = client
        self.repo = repo
        self.manifest_root = manifest_root.strip("/")
        self.ref = ref

    def package_root(self, package_id: str) -> str:
        """Directory the first identifier segment lives in (``manifests/p``)."""
        return f"{self.manifest_root}/{package_id.strip()[0].lower()}"

    async def find(self, package_id: str) -> PackageVersionLocation | None:
        """Locate a package, matching each segment case-insensitively.

        Returns:
            Location of the package directory with the canonical id, or None
            when any segment has no match

        Raises:
            AmbiguousPackageError: If two entries at one level differ only by case
        """
        package_id = package_id.strip()
        if not package_id:
            return None

        segments = package_id.split(".")
        path = self.package_root(package_id)
        matched: list[str] = []

        index = 0
        while index < len(segments):
            segment = segments[index].lower()
            try:
                entries = await self.client.list_contents(self.repo, path, ref=self.ref)
            except NotFoundError:
                return None

            candidates = [e.name for e in entries if e.is_dir and e.name.lower() == segment]
            if not candidates:
                logger.debug(
                    "package_segment_not_found",
                    extra={"package_id": package_id, "segment": segments[index]},
                )
                return None
            if len(candidates) > 1:
                raise AmbiguousPackageError(segments[index], candidates)

            matched.append(candidates[0])
            path = f"{path}/{candidates[0]}"
            index += 1

        return PackageVersionLocation(package_id=".".join(matched), path=path)

    async def locate(self, package_id: str) -> PackageVersionLocation:
        """Like find() but raises when the package does not exist.

        Raises:
            ManifestNotFoundError: If the package identifier does not exist
        """
        location = await self.find(package_id)
        if location is None:
            raise ManifestNotFoundError("package identifier", package_id)
        return location

    async def resolve_version(
        self,
        location: PackageVersionLocation,
        version: str | None = None,
    ) -> PackageVersionLocation:
        """Resolve a version directory inside a located package.

        Args:
            location: Package directory from locate()
            version: Exact version (matched case-insensitively); None or
                "latest" picks the greatest version

        Raises:
            ManifestNotFoundError: If no matching version directory exists
        """
        try:
            entries = await self.client.list_contents(self.repo, location.path, ref=self.ref)
        except NotFoundError as e:
            raise ManifestNotFoundError("package identifier", location.package_id) from e

        directories = {e.name: e.path for e in entries if e.is_dir}

        if not version or version.strip().lower() == "latest":
            name = latest_version(directories)
        else:
            wanted = version.strip().lower()
            name = next((n for n in directories if n.lower() == wanted), None)

        if name is None:
            raise ManifestNotFoundError(
                "version", f"{location.package_id} {version or 'latest'}"
            )
        return PackageVersionLocation(
            package_id=location.package_id,
            path=directories[name],
            version=name,
        )
