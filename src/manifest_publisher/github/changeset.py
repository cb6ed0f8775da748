"""Build one tree and one commit from a set of file contents.

The builder only creates git objects. Nothing it does is visible to other
actors until the caller moves a branch reference to the returned commit.
"""

import logging

from .client import GitHubClient, NotFoundError
from .models import Changeset, ContentType

logger = logging.getLogger("manifest_publisher.github.changeset")


class ChangesetBuilder:
    """Turns path -> content mappings into commits on a repository."""

    def __init__(self, client: GitHubClient, repo: str) -> None:
        """
        Args:
            client: Request-scoped GitHub client
            repo: Repository the objects are created in (owner/name)
        """
        self.client = client
        self.repo = repo

    async def build(self, changeset: Changeset, message: str) -> str:
        """Create a tree layered on the base commit's tree, then a commit.

        Args:
            changeset: Files plus the commit they are built on
            message: Commit message

        Returns:
            Sha of the new commit (no reference is updated)

        Raises:
            ValueError: If the changeset holds no files
        """
        if not changeset.files:
            raise ValueError("Changeset has no files")

        base_tree = await self.client.get_commit_tree_sha(self.repo, changeset.base_sha)
        tree_sha = await self.client.create_tree(self.repo, base_tree, changeset.files)
        commit_sha = await self.client.create_commit(
            self.repo, message, tree_sha, [changeset.base_sha]
        )
        logger.info(
            "changeset_committed",
            extra={
                "repo": self.repo,
                "commit": commit_sha,
                "parent": changeset.base_sha,
                "files": len(changeset.files),
            },
        )
        return commit_sha

    async def delete_directory(self, directory: str, branch: str) -> list[str]:
        """Delete every file in a directory on a branch, one call per file.

        Each file's blob sha is read from the branch's current state before
        the delete. Subdirectories are left alone.

        Returns:
            Paths that were deleted

        Raises:
            NotFoundError: If the directory does not exist on the branch
        """
        entries = await self.client.list_contents(self.repo, directory, ref=branch)
        deleted: list[str] = []
        for entry in entries:
            if entry.type != ContentType.FILE:
                continue
            try:
                current = await self.client.get_content_entry(self.repo, entry.path, ref=branch)
            except NotFoundError:
                logger.debug("file_already_gone", extra={"path": entry.path})
                continue
            await self.client.delete_file(
                self.repo,
                entry.path,
                sha=current.sha,
                branch=branch,
                message=f"Delete {entry.path}",
            )
            deleted.append(entry.path)

        logger.info(
            "directory_deleted",
            extra={"repo": self.repo, "directory": directory, "files": len(deleted)},
        )
        return deleted
