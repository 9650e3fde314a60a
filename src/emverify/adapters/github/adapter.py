"""
GitHub Adapter - Implements GitHostPort for GitHub.

Maps the generic git-object primitives onto GitHub's REST API:
- Refs -> git/ref, git/refs
- Branch head -> branches/{branch}
- Blobs, trees, commits -> git/blobs, git/trees, git/commits
- File reads and single-file deletes -> contents/{path}
"""

import base64
import binascii
import logging
from collections.abc import Sequence
from typing import Any

from emverify.core.domain.entities import BlobEntry, BranchHead, RemoteFile
from emverify.core.exceptions import MissingConfigError
from emverify.core.ports.config_provider import GitHubConfig
from emverify.core.ports.git_host import (
    AuthenticationError,
    GitHostError,
    GitHostPort,
    NotFoundError,
)

from .client import GitHubApiClient


class GitHubAdapter(GitHostPort):
    """
    GitHub implementation of the GitHostPort.

    Content crosses this boundary as raw bytes; base64 encoding is an
    implementation detail of the REST API and stays here.
    """

    def __init__(self, config: GitHubConfig, client: GitHubApiClient | None = None):
        """
        Initialize the GitHub adapter.

        Args:
            config: GitHub configuration
            client: Pre-built API client (mainly for tests)

        Raises:
            AuthenticationError: If no token is configured.
        """
        if not config.token:
            raise AuthenticationError(
                "GitHub token is not set. Set EMVERIFY_GITHUB_TOKEN or GITHUB_TOKEN."
            )

        if not config.owner or not config.repo:
            raise MissingConfigError("github.repository", "set EMVERIFY_REPOSITORY to owner/repo")

        self.config = config
        self.logger = logging.getLogger("GitHubAdapter")
        self._client = client or GitHubApiClient(
            token=config.token,
            owner=config.owner,
            repo=config.repo,
            base_url=config.base_url,
        )

    # -------------------------------------------------------------------------
    # GitHostPort Implementation - Properties
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "GitHub"

    @property
    def repository_url(self) -> str:
        return self.config.repository_url

    # -------------------------------------------------------------------------
    # GitHostPort Implementation - Refs
    # -------------------------------------------------------------------------

    def get_default_branch(self) -> str:
        data = self._client.get_repository()
        branch = data.get("default_branch")
        if not branch:
            raise GitHostError(
                f"Repository {self.config.owner}/{self.config.repo} reports no default branch"
            )
        return str(branch)

    def get_ref(self, branch: str) -> str:
        data = self._client.get_ref(f"heads/{branch}")
        # A partial ref name answers with a list of matches
        if not isinstance(data, dict) or "object" not in data:
            raise NotFoundError(f"Branch not found: {branch}", path=branch)
        return str(data["object"]["sha"])

    def create_ref(self, branch: str, sha: str) -> None:
        self.logger.info(f"Creating branch {branch} at {sha[:7]}")
        self._client.create_ref(f"refs/heads/{branch}", sha)

    def get_branch_head(self, branch: str) -> BranchHead:
        data = self._client.get_branch(branch)
        commit = data.get("commit") or {}
        try:
            return BranchHead(
                commit_sha=commit["sha"],
                tree_sha=commit["commit"]["tree"]["sha"],
            )
        except (KeyError, TypeError) as e:
            raise GitHostError(f"Malformed branch response for {branch}", cause=e)

    def update_ref(self, branch: str, sha: str) -> None:
        self.logger.debug(f"Moving {branch} to {sha[:7]}")
        self._client.update_ref(f"heads/{branch}", sha, force=False)

    # -------------------------------------------------------------------------
    # GitHostPort Implementation - Contents
    # -------------------------------------------------------------------------

    def get_file(self, path: str, ref: str) -> RemoteFile | None:
        try:
            data = self._client.get_contents(path, ref=ref)
        except NotFoundError:
            return None

        if isinstance(data, list) or data.get("type", "file") != "file":
            # A directory listing, symlink or submodule
            return None

        sha = str(data.get("sha", ""))
        content = self._decode(data)
        if content is None:
            # Files above 1 MB come back without inline content
            content = self.get_blob(sha)
        return RemoteFile(path=path, sha=sha, content=content)

    def list_files(self, path: str, ref: str) -> list[str]:
        try:
            data = self._client.get_contents(path, ref=ref)
        except NotFoundError:
            return []
        if not isinstance(data, list):
            return []

        files: list[str] = []
        for item in data:
            if item.get("type") == "file":
                files.append(str(item["path"]))
            elif item.get("type") == "dir":
                files.extend(self.list_files(str(item["path"]), ref))
        return sorted(files)

    def delete_file(self, path: str, sha: str, message: str, branch: str) -> None:
        self.logger.info(f"Deleting {path} on {branch}")
        self._client.delete_file(path, message=message, sha=sha, branch=branch)

    # -------------------------------------------------------------------------
    # GitHostPort Implementation - Git objects
    # -------------------------------------------------------------------------

    def create_blob(self, content: bytes) -> str:
        encoded = base64.b64encode(content).decode("ascii")
        data = self._client.create_blob(encoded, encoding="base64")
        return str(data["sha"])

    def get_blob(self, sha: str) -> bytes:
        data = self._client.get_blob(sha)
        content = self._decode(data)
        return content if content is not None else b""

    def create_tree(self, base_tree: str, entries: Sequence[BlobEntry]) -> str:
        tree = [entry.to_tree_entry() for entry in entries]
        data = self._client.create_tree(tree, base_tree=base_tree)
        return str(data["sha"])

    def create_commit(self, message: str, tree: str, parents: Sequence[str]) -> str:
        data = self._client.create_commit(message, tree, list(parents))
        return str(data["sha"])

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _decode(data: dict[str, Any]) -> bytes | None:
        """Decode inline base64 content, or None when the body carries none."""
        encoding = data.get("encoding")
        content = data.get("content")
        if encoding == "none" or content is None:
            return None
        if encoding not in (None, "base64"):
            return str(content).encode("utf-8")
        if content == "" and data.get("size", 0):
            return None
        try:
            return base64.b64decode(str(content).replace("\n", ""))
        except (binascii.Error, ValueError) as e:
            raise GitHostError("Undecodable content from GitHub", cause=e)

    def close(self) -> None:
        self._client.close()
