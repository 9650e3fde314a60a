"""
Git Host Port - Abstract interface for a git-hosting REST service.

The sync engine only needs low-level object primitives (blobs, trees,
commits, refs) plus the contents API for reads and single-file deletes.

Implementations:
- GitHubAdapter: GitHub REST v3
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from emverify.core.domain.entities import BlobEntry, BranchHead, RemoteFile
from emverify.core.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ConflictError,
    GitHostError,
    NetworkError,
    NotFoundError,
    RateLimitError,
)


__all__ = [
    "AccessDeniedError",
    "AuthenticationError",
    "ConflictError",
    "GitHostError",
    "GitHostPort",
    "NetworkError",
    "NotFoundError",
    "RateLimitError",
]


class GitHostPort(ABC):
    """
    Abstract interface for the remote repository the shadow branch lives in.

    All methods raise GitHostError subclasses on failure. ``get_file``
    returns None instead of raising NotFoundError because a missing file is
    an expected answer, not an error.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the host name (e.g., 'GitHub')."""
        ...

    @property
    @abstractmethod
    def repository_url(self) -> str:
        """Browser URL of the repository, as sent to the job server."""
        ...

    # -------------------------------------------------------------------------
    # Refs
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_default_branch(self) -> str:
        """Get the repository's default branch name."""
        ...

    @abstractmethod
    def get_ref(self, branch: str) -> str:
        """
        Resolve a branch to its head commit sha.

        Raises:
            NotFoundError: If the branch does not exist.
        """
        ...

    @abstractmethod
    def create_ref(self, branch: str, sha: str) -> None:
        """
        Create a branch pointing at a commit.

        Raises:
            ConflictError: If the branch already exists.
        """
        ...

    @abstractmethod
    def get_branch_head(self, branch: str) -> BranchHead:
        """Get the latest commit of a branch and its tree."""
        ...

    @abstractmethod
    def update_ref(self, branch: str, sha: str) -> None:
        """
        Fast-forward a branch to a commit. Never forces.

        Raises:
            ConflictError: If the update is not a fast-forward.
        """
        ...

    # -------------------------------------------------------------------------
    # Contents
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_file(self, path: str, ref: str) -> RemoteFile | None:
        """Get a file's content at a ref, or None if there is no file at that path."""
        ...

    @abstractmethod
    def list_files(self, path: str, ref: str) -> list[str]:
        """
        List every file under a directory at a ref, recursively.

        Returns:
            Repository-relative file paths, or an empty list when the path is
            not a directory.
        """
        ...

    @abstractmethod
    def delete_file(self, path: str, sha: str, message: str, branch: str) -> None:
        """
        Delete a single file with a commit on the branch.

        Args:
            path: Repository-relative path
            sha: Current blob sha of the file (precondition)
            message: Commit message
            branch: Branch to commit to
        """
        ...

    # -------------------------------------------------------------------------
    # Git objects
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_blob(self, content: bytes) -> str:
        """Store content as a blob and return its sha."""
        ...

    @abstractmethod
    def get_blob(self, sha: str) -> bytes:
        """Get the raw content of a blob."""
        ...

    @abstractmethod
    def create_tree(self, base_tree: str, entries: Sequence[BlobEntry]) -> str:
        """Create a tree from a base tree plus entries and return its sha."""
        ...

    @abstractmethod
    def create_commit(self, message: str, tree: str, parents: Sequence[str]) -> str:
        """Create a commit and return its sha."""
        ...

    def close(self) -> None:  # noqa: B027
        """Release transport resources."""
