"""
Shared pytest fixtures for the emverify test suite.

Fixture Categories:
- Remotes: in-memory git host and job server
- Workspace: a temporary workspace root with a few files
- Configuration: AppConfig pointed at the temporary workspace
- Output: a sink recording appended text
"""

from __future__ import annotations

import hashlib
import itertools
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from emverify.adapters.workspace import LocalWorkspace
from emverify.core.domain.entities import BlobEntry, BranchHead, RemoteFile
from emverify.core.ports.config_provider import AppConfig, GitHubConfig, JobServerConfig
from emverify.core.ports.git_host import ConflictError, GitHostPort, NotFoundError
from emverify.core.ports.job_server import JobServerError, JobServerPort


# =============================================================================
# Remotes
# =============================================================================


class FakeGitHost(GitHostPort):
    """
    In-memory git host with real fast-forward and delete preconditions.

    ``fail_on`` maps a method name to an exception raised on its next call.
    ``calls`` records (method, args) for every call made.
    """

    WRITE_METHODS = frozenset(
        {"create_ref", "update_ref", "delete_file", "create_blob", "create_tree", "create_commit"}
    )

    def __init__(self, default_branch: str = "main", files: dict[str, bytes] | None = None):
        self.default_branch = default_branch
        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict[str, Any]] = {}
        self.branches: dict[str, str] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_on: dict[str, Exception] = {}
        self.closed = False
        self._ids = itertools.count(1)

        tree = self._store_tree({p: self._store_blob(c) for p, c in (files or {}).items()})
        self.branches[default_branch] = self._store_commit("Initial commit", tree, [])

    # Helpers ---------------------------------------------------------------

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        error = self.fail_on.pop(method, None)
        if error is not None:
            raise error

    def _store_blob(self, content: bytes) -> str:
        sha = hashlib.sha1(b"blob " + content).hexdigest()
        self.blobs[sha] = content
        return sha

    def _store_tree(self, entries: dict[str, str]) -> str:
        sha = f"tree{next(self._ids)}"
        self.trees[sha] = dict(entries)
        return sha

    def _store_commit(self, message: str, tree: str, parents: list[str]) -> str:
        sha = f"commit{next(self._ids):04d}"
        self.commits[sha] = {"message": message, "tree": tree, "parents": parents}
        return sha

    def tree_of(self, branch: str) -> dict[str, str]:
        return self.trees[self.commits[self.branches[branch]]["tree"]]

    def content_of(self, branch: str, path: str) -> bytes | None:
        sha = self.tree_of(branch).get(path)
        return self.blobs[sha] if sha else None

    def writes(self) -> list[str]:
        return [method for method, _ in self.calls if method in self.WRITE_METHODS]

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    def commit_on(self, branch: str, files: dict[str, bytes | None]) -> str:
        """Move a branch as if another client had pushed to it."""
        tree = dict(self.tree_of(branch))
        for path, content in files.items():
            if content is None:
                tree.pop(path, None)
            else:
                tree[path] = self._store_blob(content)
        commit = self._store_commit("Outside change", self._store_tree(tree), [self.branches[branch]])
        self.branches[branch] = commit
        return commit

    # GitHostPort -----------------------------------------------------------

    @property
    def name(self) -> str:
        return "Fake"

    @property
    def repository_url(self) -> str:
        return "https://github.com/owner/repo"

    def get_default_branch(self) -> str:
        self._record("get_default_branch")
        return self.default_branch

    def get_ref(self, branch: str) -> str:
        self._record("get_ref", branch)
        if branch not in self.branches:
            raise NotFoundError(f"Branch not found: {branch}", path=branch)
        return self.branches[branch]

    def create_ref(self, branch: str, sha: str) -> None:
        self._record("create_ref", branch, sha)
        if branch in self.branches:
            raise ConflictError("Reference already exists", path=branch, status_code=422)
        self.branches[branch] = sha

    def get_branch_head(self, branch: str) -> BranchHead:
        self._record("get_branch_head", branch)
        commit = self.branches[branch]
        return BranchHead(commit_sha=commit, tree_sha=self.commits[commit]["tree"])

    def update_ref(self, branch: str, sha: str) -> None:
        self._record("update_ref", branch, sha)
        if self.branches.get(branch) not in self.commits[sha]["parents"]:
            raise ConflictError("Update is not a fast forward", path=branch, status_code=422)
        self.branches[branch] = sha

    def get_file(self, path: str, ref: str) -> RemoteFile | None:
        self._record("get_file", path, ref)
        sha = self.tree_of(ref).get(path)
        if sha is None:
            return None
        return RemoteFile(path=path, sha=sha, content=self.blobs[sha])

    def list_files(self, path: str, ref: str) -> list[str]:
        self._record("list_files", path, ref)
        prefix = path.rstrip("/") + "/"
        return sorted(p for p in self.tree_of(ref) if p.startswith(prefix))

    def delete_file(self, path: str, sha: str, message: str, branch: str) -> None:
        self._record("delete_file", path, sha, message, branch)
        if self.tree_of(branch).get(path) != sha:
            raise ConflictError(f"{path} does not match {sha}", path=path, status_code=409)
        tree = dict(self.tree_of(branch))
        del tree[path]
        self.branches[branch] = self._store_commit(
            message, self._store_tree(tree), [self.branches[branch]]
        )

    def create_blob(self, content: bytes) -> str:
        self._record("create_blob", content)
        return self._store_blob(content)

    def get_blob(self, sha: str) -> bytes:
        self._record("get_blob", sha)
        return self.blobs[sha]

    def create_tree(self, base_tree: str, entries: Sequence[BlobEntry]) -> str:
        self._record("create_tree", base_tree, tuple(entries))
        tree = dict(self.trees[base_tree])
        for entry in entries:
            if entry.sha is None:
                tree.pop(entry.path, None)
            else:
                tree[entry.path] = entry.sha
        return self._store_tree(tree)

    def create_commit(self, message: str, tree: str, parents: Sequence[str]) -> str:
        self._record("create_commit", message, tree, tuple(parents))
        return self._store_commit(message, tree, list(parents))

    def close(self) -> None:
        self.closed = True


class FakeJobServer(JobServerPort):
    """
    Job server answering status polls from a script.

    Each entry of ``statuses`` is a status document or an exception to raise.
    The last entry repeats once the script runs out.
    """

    def __init__(self, statuses: list[Any] | None = None, job_id: str = "job-1"):
        self.statuses = list(statuses or [])
        self.job_id = job_id
        self.submitted: list[tuple[str, str, str]] = []
        self.polled: list[str] = []
        self.cancelled: list[str] = []
        self.lint_errors: list[dict[str, Any]] = []
        self.formatted = ""
        self.linted: list[tuple[str, str, dict[str, Any]]] = []
        self.format_requests: list[tuple[str, str, dict[str, Any]]] = []
        self.closed = False
        self.on_submit: Any = None
        self.on_poll: Any = None

    async def submit(self, command: str, file_name: str, repository_url: str) -> str:
        self.submitted.append((command, file_name, repository_url))
        if self.on_submit is not None:
            self.on_submit()
        return self.job_id

    async def get_status(self, job_id: str) -> dict[str, Any]:
        self.polled.append(job_id)
        if self.on_poll is not None:
            self.on_poll(len(self.polled))
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(status, Exception):
            raise status
        return status

    async def cancel(self, job_id: str) -> None:
        self.cancelled.append(job_id)

    async def lint(
        self, file_name: str, repository_url: str, settings: dict[str, Any]
    ) -> list[dict[str, Any]]:
        self.linted.append((file_name, repository_url, settings))
        return list(self.lint_errors)

    async def format(self, file_name: str, repository_url: str, settings: dict[str, Any]) -> str:
        self.format_requests.append((file_name, repository_url, settings))
        if not self.formatted:
            raise JobServerError("Formatter response has no fileContent")
        return self.formatted

    async def close(self) -> None:
        self.closed = True


class RecordingSink:
    """TextSink keeping everything appended to it."""

    def __init__(self) -> None:
        self.parts: list[str] = []

    def append(self, text: str) -> None:
        self.parts.append(text)

    @property
    def text(self) -> str:
        return "".join(self.parts)


# =============================================================================
# Status documents
# =============================================================================


def status(**fields: Any) -> dict[str, Any]:
    """A job status document with server defaults for anything not given."""
    document = {
        "queueNum": 0,
        "isMakeenvFinish": False,
        "isMakeenvSuccess": False,
        "makeenvText": "",
        "progressPhases": [],
        "progressPercent": 0,
        "numOfErrors": 0,
        "errorList": [],
        "isVerifierFinish": False,
        "isVerifierSuccess": False,
    }
    document.update(fields)
    return document


@pytest.fixture
def make_status():
    """Factory for job status documents."""
    return status


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def git_host() -> FakeGitHost:
    """A git host whose default branch holds mml.ini and one article."""
    return FakeGitHost(
        files={
            "mml.ini": b"[mml]\nversion=1\n",
            "text/article.miz": b"environ begin\n",
        }
    )


@pytest.fixture
def job_server() -> FakeJobServer:
    return FakeJobServer()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """Workspace matching the git host's default branch."""
    root = tmp_path / "workspace"
    (root / "text").mkdir(parents=True)
    (root / "mml.ini").write_bytes(b"[mml]\nversion=1\n")
    (root / "text" / "article.miz").write_bytes(b"environ begin\n")
    return root


@pytest.fixture
def workspace(workspace_root: Path) -> LocalWorkspace:
    return LocalWorkspace(workspace_root)


@pytest.fixture
def app_config(workspace_root: Path, tmp_path: Path) -> AppConfig:
    """Complete configuration pointing at the temporary workspace."""
    config = AppConfig(
        github=GitHubConfig(token="ghp_test", owner="owner", repo="repo"),
        job_server=JobServerConfig(base_url="http://jobs.test/api/v0.1"),
        workspace_root=str(workspace_root),
    )
    config.sync.state_file = str(tmp_path / "state" / "changes.json")
    return config
