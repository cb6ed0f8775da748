"""Data models for the manifest publishing pipeline.

Plain dataclasses shared by the accessor, the locator and the publisher.
The accessor builds them from GitHub REST payloads; nothing here talks to
the network.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

__all__ = [
    "BranchReference",
    "Changeset",
    "CompareResult",
    "ContentEntry",
    "ContentType",
    "ManifestSubmission",
    "PackageVersionLocation",
    "PublisherAppVersion",
    "PullRequestResult",
    "RepositoryRef",
    "SubmissionState",
    "SyncOutcome",
    "SyncStatus",
    "manifest_directory",
]

# Git file mode for a regular, non-executable blob
FILE_MODE_REGULAR = "100644"


@dataclass(frozen=True)
class RepositoryRef:
    """A hosted repository.

    Attributes:
        owner: Owner login
        name: Repository name
        id: Numeric repository id
        default_branch: Name of the default branch
        parent: Upstream repository when this is a fork, else None
    """

    owner: str
    name: str
    id: int
    default_branch: str = "master"
    parent: "RepositoryRef | None" = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def is_fork(self) -> bool:
        return self.parent is not None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RepositoryRef":
        """Build from a GitHub repository payload (parent is followed one level)."""
        parent_data = data.get("parent")
        return cls(
            owner=data["owner"]["login"],
            name=data["name"],
            id=int(data["id"]),
            default_branch=data.get("default_branch") or "master",
            parent=cls.from_api(parent_data) if parent_data else None,
        )


@dataclass(frozen=True)
class BranchReference:
    """A branch name and the commit it points at."""

    name: str
    sha: str

    @property
    def ref(self) -> str:
        """Reference path relative to refs/ (heads/<name>)."""
        return f"heads/{self.name}"


class ContentType(str, Enum):
    """Entry types returned by the contents API."""

    FILE = "file"
    DIR = "dir"
    SYMLINK = "symlink"
    SUBMODULE = "submodule"


@dataclass(frozen=True)
class ContentEntry:
    """One entry of a directory listing (or a single file lookup)."""

    name: str
    path: str
    type: ContentType
    sha: str

    @property
    def is_dir(self) -> bool:
        return self.type == ContentType.DIR

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ContentEntry":
        try:
            entry_type = ContentType(data.get("type", "file"))
        except ValueError:
            entry_type = ContentType.FILE
        return cls(
            name=data["name"],
            path=data["path"],
            type=entry_type,
            sha=data.get("sha", ""),
        )


@dataclass(frozen=True)
class CompareResult:
    """Ahead/behind counts of head relative to base."""

    ahead_by: int
    behind_by: int
    status: str = ""


@dataclass
class Changeset:
    """Files to land as exactly one tree and one commit.

    Attributes:
        files: Ordered mapping of repository path to full text content
        base_sha: Commit the changeset is built on
    """

    files: dict[str, str]
    base_sha: str


@dataclass(frozen=True)
class PackageVersionLocation:
    """Canonical package id plus a directory in the manifest tree.

    ``version`` is None while the location points at the package directory
    itself and set once a version directory has been resolved.
    """

    package_id: str
    path: str
    version: str | None = None


@dataclass(frozen=True)
class PullRequestResult:
    """Pull request created by a submission."""

    number: int
    head_branch: str
    target_branch: str
    body: str
    html_url: str = ""


class SyncStatus(str, Enum):
    """Result of comparing a fork's default branch with upstream."""

    UP_TO_DATE = "up_to_date"
    FAST_FORWARDED = "fast_forwarded"
    DIVERGED = "diverged"


@dataclass(frozen=True)
class SyncOutcome:
    """Tri-state fork sync outcome; ahead_by is the count of fork-only commits."""

    status: SyncStatus
    ahead_by: int = 0
    behind_by: int = 0


class SubmissionState(str, Enum):
    """Stages of one submission attempt."""

    RESOLVING_REPO = "resolving_repo"
    SYNCING_FORK = "syncing_fork"
    CREATING_BRANCH = "creating_branch"
    BUILDING_COMMIT = "building_commit"
    UPDATING_BRANCH = "updating_branch"
    OPENING_PR = "opening_pr"
    DONE = "done"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"


@dataclass(frozen=True)
class PublisherAppVersion:
    """One manifest file in the upstream tree."""

    publisher: str
    app: str
    version: str
    package_id: str
    path: str


def manifest_directory(
    manifest_root: str, package_id: str, version: str | None = None
) -> str:
    """Repository directory for a package (and optionally a version).

    ``Publisher.App`` under ``manifests`` maps to ``manifests/p/Publisher/App``.

    Raises:
        ValueError: If package_id is empty
    """
    package_id = package_id.strip()
    if not package_id:
        raise ValueError("package_id must not be empty")
    parts = [manifest_root.strip("/"), package_id[0].lower(), *package_id.split(".")]
    if version:
        parts.append(version)
    return "/".join(parts)


@dataclass
class ManifestSubmission:
    """A package version and its manifest files keyed by logical name.

    Logical names are file stems such as ``Publisher.App.installer``; each
    one lands at ``<version dir>/<name>.yaml``.
    """

    package_id: str
    version: str
    manifests: dict[str, str] = field(default_factory=dict)

    def default_title(self) -> str:
        return f"{self.package_id} version {self.version}"

    def version_directory(self, manifest_root: str) -> str:
        return manifest_directory(manifest_root, self.package_id, self.version)

    def to_files(self, manifest_root: str) -> dict[str, str]:
        """Map logical names to repository paths, preserving order."""
        directory = self.version_directory(manifest_root)
        return {
            f"{directory}/{name}.yaml": content
            for name, content in self.manifests.items()
        }
