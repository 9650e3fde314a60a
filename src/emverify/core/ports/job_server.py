"""
Job Server Port - Abstract interface for the remote verification service.

The job endpoints are asynchronous (submit, then poll), the lint and format
endpoints answer synchronously in a single request.

Implementations:
- JobServerClient: HTTP/JSON over aiohttp
"""

from abc import ABC, abstractmethod
from typing import Any

from emverify.core.exceptions import JobBusyError, JobServerError, ServerJobError


__all__ = ["JobBusyError", "JobServerError", "JobServerPort", "ServerJobError"]


class JobServerPort(ABC):
    """Abstract interface for the verification job server."""

    @abstractmethod
    async def submit(self, command: str, file_name: str, repository_url: str) -> str:
        """
        Submit a job.

        Args:
            command: Server command name (e.g., 'verifier')
            file_name: Base name of the file to check
            repository_url: Browser URL of the repository holding the branch

        Returns:
            The job id
        """
        ...

    @abstractmethod
    async def get_status(self, job_id: str) -> dict[str, Any]:
        """Poll a job and return the raw status document."""
        ...

    @abstractmethod
    async def cancel(self, job_id: str) -> None:
        """Ask the server to abandon a job. Best effort."""
        ...

    @abstractmethod
    async def lint(
        self, file_name: str, repository_url: str, settings: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Lint a file and return its raw error list."""
        ...

    @abstractmethod
    async def format(
        self, file_name: str, repository_url: str, settings: dict[str, Any]
    ) -> str:
        """Format a file and return the formatted body."""
        ...

    async def close(self) -> None:  # noqa: B027
        """Release transport resources."""
