"""
Job Server Client - async HTTP/JSON client for the verification server.

Endpoints (relative to the configured base URL):
- POST   verifier        submit a job, answers {"ID": ...}
- GET    verifier/{id}   poll a job
- DELETE verifier/{id}   abandon a job
- POST   linter          lint a file, answers {"errorList": [...]}
- POST   formatter       format a file, answers {"fileContent": ...}

The server fetches the file itself from the repository URL, so the shadow
branch must be synced before any of these are called.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import aiohttp

from emverify.adapters.retry import RETRYABLE_STATUS_CODES, calculate_delay, get_retry_after
from emverify.core.exceptions import MissingConfigError
from emverify.core.ports.config_provider import JobServerConfig
from emverify.core.ports.job_server import JobServerError, JobServerPort


# Methods that are safe to repeat after a transient failure
IDEMPOTENT_METHODS = frozenset({"GET", "DELETE"})


class JobServerClient(JobServerPort):
    """
    aiohttp implementation of the JobServerPort.

    The session is created lazily on first use so the client can be built
    outside a running event loop.
    """

    DEFAULT_MAX_RETRIES = 2
    DEFAULT_INITIAL_DELAY = 0.5

    def __init__(
        self,
        config: JobServerConfig,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
    ):
        if not config.base_url:
            raise MissingConfigError("server.url", "set EMVERIFY_SERVER_URL")

        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.logger = logging.getLogger("JobServerClient")

        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Accept": "application/json"},
            )
        return self._session

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def request(
        self,
        method: str,
        endpoint: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Send a request and return the decoded JSON body.

        Raises:
            JobServerError: On transport failures and non-2xx answers.
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        retries = self.max_retries if method in IDEMPOTENT_METHODS else 0
        session = await self._get_session()

        for attempt in range(retries + 1):
            try:
                async with session.request(method, url, json=payload) as response:
                    if response.status in RETRYABLE_STATUS_CODES and attempt < retries:
                        delay = calculate_delay(
                            attempt,
                            initial_delay=self.initial_delay,
                            retry_after=get_retry_after(response),
                        )
                        self.logger.warning(
                            f"Job server answered {response.status} on {method} {endpoint}, "
                            f"retrying in {delay:.2f}s"
                        )
                        await asyncio.sleep(delay)
                        continue
                    return await self._handle_response(response, method, endpoint)
            except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
                if attempt < retries:
                    delay = calculate_delay(attempt, initial_delay=self.initial_delay)
                    self.logger.warning(
                        f"Connection error on {method} {endpoint}, retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise JobServerError(f"Could not reach job server at {self.base_url}", cause=e)
            except aiohttp.ClientError as e:
                raise JobServerError(f"Job server request failed: {method} {endpoint}", cause=e)

        raise JobServerError(f"Job server request failed: {method} {endpoint}")

    async def _handle_response(
        self, response: aiohttp.ClientResponse, method: str, endpoint: str
    ) -> dict[str, Any]:
        """Decode a response, converting failures to JobServerError."""
        text = await response.text()

        if response.status >= 400:
            detail = text[:500]
            try:
                body = json.loads(text) if text else {}
                if isinstance(body, dict) and body.get("message"):
                    detail = str(body["message"])
            except ValueError:
                pass
            raise JobServerError(
                f"Job server error {response.status} on {method} {endpoint}: {detail}",
                status_code=response.status,
            )

        if not text:
            return {}
        try:
            body = json.loads(text)
        except ValueError as e:
            raise JobServerError(
                f"Job server sent invalid JSON for {method} {endpoint}",
                status_code=response.status,
                cause=e,
            )
        return body if isinstance(body, dict) else {"data": body}

    # -------------------------------------------------------------------------
    # JobServerPort Implementation
    # -------------------------------------------------------------------------

    async def submit(self, command: str, file_name: str, repository_url: str) -> str:
        body = await self.request(
            "POST",
            "verifier",
            {"fileName": file_name, "repositoryUrl": repository_url, "command": command},
        )
        job_id = body.get("ID", body.get("id"))
        if job_id is None:
            raise JobServerError("Job server accepted the job but returned no ID")
        self.logger.info(f"Submitted {command} for {file_name} as job {job_id}")
        return str(job_id)

    async def get_status(self, job_id: str) -> dict[str, Any]:
        return await self.request("GET", f"verifier/{job_id}")

    async def cancel(self, job_id: str) -> None:
        self.logger.info(f"Cancelling job {job_id}")
        await self.request("DELETE", f"verifier/{job_id}")

    async def lint(
        self, file_name: str, repository_url: str, settings: dict[str, Any]
    ) -> list[dict[str, Any]]:
        body = await self.request(
            "POST",
            "linter",
            {
                "fileName": file_name,
                "repositoryUrl": repository_url,
                "userSettings": json.dumps(settings),
            },
        )
        return list(body.get("errorList") or [])

    async def format(
        self, file_name: str, repository_url: str, settings: dict[str, Any]
    ) -> str:
        body = await self.request(
            "POST",
            "formatter",
            {
                "fileName": file_name,
                "repositoryUrl": repository_url,
                "userSettings": json.dumps(settings),
            },
        )
        if "fileContent" not in body:
            raise JobServerError("Formatter response has no fileContent")
        return str(body["fileContent"])

    # -------------------------------------------------------------------------
    # Resource Cleanup
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> JobServerClient:
        await self._get_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
