"""Mock GitHub host for testing.

Provides an in-memory implementation of the GitHubClient interface used by
the publishing pipeline. Models repositories, forks, branch references, flat
tree snapshots, commits, the contents API and pull requests, so tests can
assert on the resulting repository state rather than on call sequences.

Failures are injected per method with ``fail()``; every call is recorded in
``calls``.
"""

import hashlib
import uuid
from typing import Any

from manifest_publisher.github.client import (
    MergeConflictError,
    NotFoundError,
    UnprocessableEntityError,
)
from manifest_publisher.github.models import (
    BranchReference,
    CompareResult,
    ContentEntry,
    ContentType,
    PullRequestResult,
    RepositoryRef,
)


def _blob_sha(content: str) -> str:
    return hashlib.sha1(content.encode()).hexdigest()


def _branch(ref: str) -> str:
    for prefix in ("refs/heads/", "heads/"):
        if ref.startswith(prefix):
            return ref[len(prefix) :]
    return ref


class MockGitHubHost:
    """Mock GitHubClient for testing.

    Trees are stored as flat {path: content} snapshots. Object storage is
    shared by all repositories, like a fork network on the real host.

    Example:
        >>> host = MockGitHubHost(login="contributor")
        >>> host.seed_repository("microsoft/winget-pkgs", {"README.md": "hi"})
        >>> repo = await host.get_repository("microsoft/winget-pkgs")
    """

    def __init__(self, login: str = "contributor"):
        self.login = login
        self.repos: dict[str, RepositoryRef] = {}
        self.refs: dict[str, dict[str, str]] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict[str, Any]] = {}
        self.pulls: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.failures: dict[str, list[Exception]] = {}
        self._next_id = 1000

    # --- Test setup helpers ---

    def seed_repository(
        self,
        full_name: str,
        files: dict[str, str],
        default_branch: str = "master",
    ) -> RepositoryRef:
        owner, name = full_name.split("/")
        repo = RepositoryRef(owner=owner, name=name, id=self._new_id(), default_branch=default_branch)
        self.repos[full_name] = repo
        tree = self._store_tree(dict(files))
        self.refs[full_name] = {default_branch: self._store_commit("initial", tree, [])}
        return repo

    def seed_fork(self, upstream_full_name: str, owner: str | None = None) -> RepositoryRef:
        upstream = self.repos[upstream_full_name]
        fork = RepositoryRef(
            owner=owner or self.login,
            name=upstream.name,
            id=self._new_id(),
            default_branch=upstream.default_branch,
            parent=upstream,
        )
        self.repos[fork.full_name] = fork
        self.refs[fork.full_name] = {
            upstream.default_branch: self.refs[upstream_full_name][upstream.default_branch]
        }
        return fork

    def push(self, full_name: str, branch: str, files: dict[str, str], message: str = "push") -> str:
        """Add a commit on top of a branch, changing the given files."""
        tip = self.refs[full_name][branch]
        tree = dict(self.trees[self.commits[tip]["tree"]])
        tree.update(files)
        sha = self._store_commit(message, self._store_tree(tree), [tip])
        self.refs[full_name][branch] = sha
        return sha

    def fail(self, method: str, *errors: Exception) -> None:
        """Make the next len(errors) calls to method raise, in order."""
        self.failures.setdefault(method, []).extend(errors)

    def snapshot(self, full_name: str, branch: str) -> dict[str, str]:
        tip = self.refs[full_name][branch]
        return dict(self.trees[self.commits[tip]["tree"]])

    def branches(self, full_name: str) -> set[str]:
        return set(self.refs.get(full_name, {}))

    def call_count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    # --- GitHubClient interface ---

    async def __aenter__(self) -> "MockGitHubHost":
        return self

    async def __aexit__(self, *args: Any) -> None:
        return None

    async def close(self) -> None:
        return None

    async def get_authenticated_user(self) -> dict[str, Any]:
        self._record("get_authenticated_user")
        return {"login": self.login}

    async def get_repository(self, full_name: str) -> RepositoryRef:
        self._record("get_repository", full_name)
        return self._repo(full_name)

    async def create_fork(self, full_name: str) -> RepositoryRef:
        self._record("create_fork", full_name)
        self._repo(full_name)
        return self.seed_fork(full_name)

    async def delete_repository(self, full_name: str) -> None:
        self._record("delete_repository", full_name)
        self._repo(full_name)
        del self.repos[full_name]
        self.refs.pop(full_name, None)

    async def get_reference(self, full_name: str, ref: str) -> BranchReference:
        self._record("get_reference", full_name, ref)
        name = _branch(ref)
        refs = self._refs(full_name)
        if name not in refs:
            raise NotFoundError("GitHub API error 404: Not Found", status_code=404)
        return BranchReference(name=name, sha=refs[name])

    async def create_reference(self, full_name: str, ref: str, sha: str) -> BranchReference:
        self._record("create_reference", full_name, ref, sha)
        name = _branch(ref)
        refs = self._refs(full_name)
        if name in refs:
            raise UnprocessableEntityError(
                "GitHub API error 422: Reference already exists", status_code=422
            )
        if sha not in self.commits:
            raise UnprocessableEntityError(
                "GitHub API error 422: Object does not exist", status_code=422
            )
        refs[name] = sha
        return BranchReference(name=name, sha=sha)

    async def update_reference(
        self, full_name: str, ref: str, sha: str, force: bool = False
    ) -> BranchReference:
        self._record("update_reference", full_name, ref, sha)
        name = _branch(ref)
        refs = self._refs(full_name)
        if name not in refs:
            raise UnprocessableEntityError(
                "GitHub API error 422: Reference does not exist", status_code=422
            )
        if not force and refs[name] not in self._ancestors(sha):
            raise UnprocessableEntityError(
                "GitHub API error 422: Update is not a fast forward", status_code=422
            )
        refs[name] = sha
        return BranchReference(name=name, sha=sha)

    async def delete_reference(self, full_name: str, ref: str) -> None:
        self._record("delete_reference", full_name, ref)
        name = _branch(ref)
        refs = self._refs(full_name)
        if name not in refs:
            raise UnprocessableEntityError(
                "GitHub API error 422: Reference does not exist", status_code=422
            )
        del refs[name]

    async def get_commit_tree_sha(self, full_name: str, commit_sha: str) -> str:
        self._record("get_commit_tree_sha", full_name, commit_sha)
        if commit_sha not in self.commits:
            raise NotFoundError("GitHub API error 404: Not Found", status_code=404)
        return self.commits[commit_sha]["tree"]

    async def create_tree(self, full_name: str, base_tree: str, files: dict[str, str]) -> str:
        self._record("create_tree", full_name, base_tree, dict(files))
        tree = dict(self.trees[base_tree])
        tree.update(files)
        return self._store_tree(tree)

    async def create_commit(
        self, full_name: str, message: str, tree_sha: str, parents: list[str]
    ) -> str:
        self._record("create_commit", full_name, message, tree_sha, list(parents))
        return self._store_commit(message, tree_sha, list(parents))

    async def get_tree(
        self, full_name: str, tree_sha: str, recursive: bool = True
    ) -> list[dict[str, Any]]:
        self._record("get_tree", full_name, tree_sha)
        tree_id = self.commits[tree_sha]["tree"] if tree_sha in self.commits else tree_sha
        items: list[dict[str, Any]] = []
        directories: set[str] = set()
        for path, content in sorted(self.trees[tree_id].items()):
            parts = path.split("/")
            for i in range(1, len(parts)):
                directories.add("/".join(parts[:i]))
            items.append({"path": path, "type": "blob", "sha": _blob_sha(content)})
        items.extend({"path": d, "type": "tree", "sha": ""} for d in sorted(directories))
        return items

    async def list_contents(
        self, full_name: str, path: str, ref: str | None = None
    ) -> list[ContentEntry]:
        self._record("list_contents", full_name, path, ref)
        tree = self._tree_for(full_name, ref)
        path = path.strip("/")
        if path in tree:
            return [self._file_entry(path, tree[path])]

        prefix = path + "/"
        entries: dict[str, ContentEntry] = {}
        for file_path, content in tree.items():
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix) :]
            name = rest.split("/", 1)[0]
            if "/" in rest:
                entries[name] = ContentEntry(
                    name=name, path=prefix + name, type=ContentType.DIR, sha=""
                )
            else:
                entries[name] = self._file_entry(file_path, content)
        if not entries:
            raise NotFoundError("GitHub API error 404: Not Found", status_code=404)
        return [entries[name] for name in sorted(entries)]

    async def get_content_entry(
        self, full_name: str, path: str, ref: str | None = None
    ) -> ContentEntry:
        self._record("get_content_entry", full_name, path, ref)
        tree = self._tree_for(full_name, ref)
        if path not in tree:
            raise NotFoundError("GitHub API error 404: Not Found", status_code=404)
        return self._file_entry(path, tree[path])

    async def get_file_content(self, full_name: str, path: str, ref: str | None = None) -> str:
        self._record("get_file_content", full_name, path, ref)
        tree = self._tree_for(full_name, ref)
        if path not in tree:
            raise NotFoundError("GitHub API error 404: Not Found", status_code=404)
        return tree[path]

    async def delete_file(
        self, full_name: str, path: str, sha: str, branch: str, message: str | None = None
    ) -> None:
        self._record("delete_file", full_name, path, sha, branch)
        refs = self._refs(full_name)
        tip = refs[branch]
        tree = dict(self.trees[self.commits[tip]["tree"]])
        if path not in tree:
            raise NotFoundError("GitHub API error 404: Not Found", status_code=404)
        if _blob_sha(tree[path]) != sha:
            raise MergeConflictError("GitHub API error 409: sha does not match", status_code=409)
        del tree[path]
        refs[branch] = self._store_commit(message or f"Delete {path}", self._store_tree(tree), [tip])

    async def compare(self, full_name: str, base: str, head: str) -> CompareResult:
        self._record("compare", full_name, base, head)
        base_sha = self._refs(full_name)[base]
        if ":" in head:
            owner, branch = head.split(":", 1)
            head_repo = f"{owner}/{self.repos[full_name].name}"
            head_sha = self._refs(head_repo)[branch]
        else:
            head_sha = self._refs(full_name)[head]
        base_history = self._ancestors(base_sha)
        head_history = self._ancestors(head_sha)
        return CompareResult(
            ahead_by=len(head_history - base_history),
            behind_by=len(base_history - head_history),
        )

    async def create_pull_request(
        self, full_name: str, title: str, head: str, base: str, body: str = ""
    ) -> PullRequestResult:
        self._record("create_pull_request", full_name, title, head, base)
        owner, branch = head.split(":", 1)
        head_repo = f"{owner}/{self.repos[full_name].name}"
        if branch not in self._refs(head_repo):
            raise UnprocessableEntityError(
                "GitHub API error 422: head branch not found", status_code=422
            )
        number = len(self.pulls) + 1
        self.pulls[number] = {
            "number": number,
            "title": title,
            "state": "open",
            "body": body,
            "head": {"ref": branch, "repo": {"id": self.repos[head_repo].id, "full_name": head_repo}},
            "base": {"ref": base, "repo": {"id": self.repos[full_name].id, "full_name": full_name}},
            "merged": False,
        }
        return PullRequestResult(
            number=number,
            head_branch=branch,
            target_branch=base,
            body=body,
            html_url=f"https://github.com/{full_name}/pull/{number}",
        )

    async def get_pull_request(self, full_name: str, number: int) -> dict[str, Any]:
        self._record("get_pull_request", full_name, number)
        if number not in self.pulls:
            raise NotFoundError("GitHub API error 404: Not Found", status_code=404)
        return self.pulls[number]

    async def update_pull_request(self, full_name: str, number: int, state: str) -> dict[str, Any]:
        self._record("update_pull_request", full_name, number, state)
        self.pulls[number]["state"] = state
        return self.pulls[number]

    async def merge_pull_request(self, full_name: str, number: int) -> dict[str, Any]:
        self._record("merge_pull_request", full_name, number)
        self.pulls[number]["merged"] = True
        self.pulls[number]["state"] = "closed"
        return {"merged": True}

    async def get_latest_release(self, full_name: str) -> str:
        self._record("get_latest_release", full_name)
        return "v1.0.0"

    # --- Internals ---

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def _repo(self, full_name: str) -> RepositoryRef:
        if full_name not in self.repos:
            raise NotFoundError("GitHub API error 404: Not Found", status_code=404)
        return self.repos[full_name]

    def _refs(self, full_name: str) -> dict[str, str]:
        self._repo(full_name)
        return self.refs[full_name]

    def _tree_for(self, full_name: str, ref: str | None) -> dict[str, str]:
        repo = self._repo(full_name)
        branch = _branch(ref) if ref else repo.default_branch
        refs = self.refs[full_name]
        if branch not in refs:
            raise NotFoundError("GitHub API error 404: No commit found for the ref", status_code=404)
        return self.trees[self.commits[refs[branch]]["tree"]]

    def _store_tree(self, tree: dict[str, str]) -> str:
        sha = uuid.uuid4().hex
        self.trees[sha] = tree
        return sha

    def _store_commit(self, message: str, tree: str, parents: list[str]) -> str:
        sha = uuid.uuid4().hex
        self.commits[sha] = {"message": message, "tree": tree, "parents": parents}
        return sha

    def _ancestors(self, sha: str) -> set[str]:
        seen: set[str] = set()
        stack = [sha]
        while stack:
            current = stack.pop()
            if current in seen or current not in self.commits:
                continue
            seen.add(current)
            stack.extend(self.commits[current]["parents"])
        return seen

    @staticmethod
    def _file_entry(path: str, content: str) -> ContentEntry:
        return ContentEntry(
            name=path.rsplit("/", 1)[-1],
            path=path,
            type=ContentType.FILE,
            sha=_blob_sha(content),
        )

