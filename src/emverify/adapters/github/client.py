"""
GitHub API Client - Low-level HTTP client for the GitHub REST API.

This handles the raw HTTP communication with GitHub.
The GitHubAdapter uses this to implement the GitHostPort.

GitHub REST API documentation:
https://docs.github.com/en/rest/git
"""

import logging
import time
from typing import Any
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter

from emverify.adapters.retry import (
    RETRYABLE_STATUS_CODES,
    calculate_delay,
    get_retry_after,
)
from emverify.core.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ConflictError,
    GitHostError,
    NetworkError,
    NotFoundError,
    RateLimitError,
)


class GitHubApiClient:
    """
    Low-level GitHub REST API client.

    Handles authentication, request/response, retries, and error handling.

    Features:
    - Token authentication
    - Automatic retry with exponential backoff for transient failures
    - Typed exceptions for auth, not-found, conflict and network failures
    - Connection pooling for performance
    """

    API_VERSION = "2022-11-28"

    # Default retry configuration
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_INITIAL_DELAY = 1.0
    DEFAULT_MAX_DELAY = 60.0
    DEFAULT_BACKOFF_FACTOR = 2.0
    DEFAULT_JITTER = 0.1

    # Connection pool settings
    DEFAULT_POOL_CONNECTIONS = 10
    DEFAULT_POOL_MAXSIZE = 10
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        base_url: str = "https://api.github.com",
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        jitter: float = DEFAULT_JITTER,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the GitHub client.

        Args:
            token: Personal access token (classic, scope: repo)
            owner: Repository owner (user or organization)
            repo: Repository name
            base_url: API base URL (change for GitHub Enterprise)
            max_retries: Maximum retry attempts for transient failures
            initial_delay: Initial retry delay in seconds
            max_delay: Maximum retry delay in seconds
            backoff_factor: Multiplier for exponential backoff
            jitter: Random jitter factor (0.1 = 10%)
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.owner = owner
        self.repo = repo
        self.timeout = timeout
        self.logger = logging.getLogger("GitHubApiClient")

        # Retry configuration
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter

        self.headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": self.API_VERSION,
            # Contents must always reflect the branch head
            "Cache-Control": "no-cache",
        }

        self._session = requests.Session()
        self._session.headers.update(self.headers)

        adapter = HTTPAdapter(
            pool_connections=self.DEFAULT_POOL_CONNECTIONS,
            pool_maxsize=self.DEFAULT_POOL_MAXSIZE,
        )
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    # -------------------------------------------------------------------------
    # Core Request Methods
    # -------------------------------------------------------------------------

    def request(
        self,
        method: str,
        endpoint: str,
        **kwargs: Any,
    ) -> dict[str, Any] | list[Any]:
        """
        Make an authenticated request to the GitHub API with retry.

        Args:
            method: HTTP method
            endpoint: API endpoint (e.g., 'repos/o/r/git/blobs')
            **kwargs: Additional arguments for requests

        Returns:
            JSON response (dict or list)

        Raises:
            GitHostError: On API errors
        """
        if endpoint.startswith("http"):
            url = endpoint
        else:
            url = f"{self.base_url}/{endpoint.lstrip('/')}"

        last_exception: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                if "timeout" not in kwargs:
                    kwargs["timeout"] = self.timeout

                response = self._session.request(method, url, **kwargs)

                if response.status_code in RETRYABLE_STATUS_CODES:
                    retry_after = get_retry_after(response)
                    delay = calculate_delay(
                        attempt,
                        initial_delay=self.initial_delay,
                        max_delay=self.max_delay,
                        backoff_factor=self.backoff_factor,
                        jitter=self.jitter,
                        retry_after=retry_after,
                    )

                    if attempt < self.max_retries:
                        self.logger.warning(
                            f"Retryable error {response.status_code} on {method} {endpoint}, "
                            f"attempt {attempt + 1}/{self.max_retries + 1}, "
                            f"retrying in {delay:.2f}s"
                        )
                        time.sleep(delay)
                        continue

                    if response.status_code == 429:
                        raise RateLimitError(
                            f"GitHub rate limit exceeded for {endpoint}",
                            retry_after=retry_after,
                            path=endpoint,
                        )
                    raise NetworkError(
                        f"GitHub server error {response.status_code} for {endpoint}",
                        path=endpoint,
                        status_code=response.status_code,
                    )

                return self._handle_response(response, endpoint)

            except requests.exceptions.ConnectionError as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = calculate_delay(
                        attempt,
                        initial_delay=self.initial_delay,
                        max_delay=self.max_delay,
                        backoff_factor=self.backoff_factor,
                        jitter=self.jitter,
                    )
                    self.logger.warning(
                        f"Connection error on {method} {endpoint}, retrying in {delay:.2f}s"
                    )
                    time.sleep(delay)
                    continue
                raise NetworkError(f"Connection failed: {e}", path=endpoint, cause=e)

            except requests.exceptions.Timeout as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = calculate_delay(
                        attempt,
                        initial_delay=self.initial_delay,
                        max_delay=self.max_delay,
                        backoff_factor=self.backoff_factor,
                        jitter=self.jitter,
                    )
                    self.logger.warning(f"Timeout on {method} {endpoint}, retrying in {delay:.2f}s")
                    time.sleep(delay)
                    continue
                raise NetworkError(f"Request timed out: {e}", path=endpoint, cause=e)

        raise NetworkError(
            f"Request failed after {self.max_retries + 1} attempts",
            path=endpoint,
            cause=last_exception,
        )

    def get(self, endpoint: str, **kwargs: Any) -> dict[str, Any] | list[Any]:
        """Perform a GET request."""
        return self.request("GET", endpoint, **kwargs)

    def post(
        self,
        endpoint: str,
        json: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any] | list[Any]:
        """Perform a POST request."""
        return self.request("POST", endpoint, json=json, **kwargs)

    def patch(
        self,
        endpoint: str,
        json: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any] | list[Any]:
        """Perform a PATCH request."""
        return self.request("PATCH", endpoint, json=json, **kwargs)

    def delete(
        self,
        endpoint: str,
        json: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any] | list[Any]:
        """Perform a DELETE request."""
        return self.request("DELETE", endpoint, json=json, **kwargs)

    # -------------------------------------------------------------------------
    # Response Handling
    # -------------------------------------------------------------------------

    def _handle_response(
        self, response: requests.Response, endpoint: str
    ) -> dict[str, Any] | list[Any]:
        """Handle API response and convert errors to typed exceptions."""
        if response.ok:
            if response.text:
                try:
                    json_data = response.json()
                    if isinstance(json_data, (dict, list)):
                        return json_data
                    return {}
                except ValueError:
                    return {}
            return {}

        status = response.status_code
        error_body = response.text[:500] if response.text else ""

        if status == 401:
            raise AuthenticationError(
                "GitHub authentication failed. Check your token.", status_code=status
            )

        if status == 403:
            if response.headers.get("X-RateLimit-Remaining") == "0":
                raise RateLimitError(
                    f"GitHub rate limit exceeded for {endpoint}",
                    retry_after=get_retry_after(response),
                    path=endpoint,
                )
            raise AccessDeniedError(
                f"Permission denied for {endpoint}. Check token scopes.",
                path=endpoint,
                status_code=status,
            )

        if status == 404:
            raise NotFoundError(f"Not found: {endpoint}", path=endpoint, status_code=status)

        if status in (409, 422):
            raise ConflictError(
                f"GitHub rejected {endpoint}: {error_body}", path=endpoint, status_code=status
            )

        raise GitHostError(
            f"GitHub API error {status}: {error_body}", path=endpoint, status_code=status
        )

    # -------------------------------------------------------------------------
    # Repository
    # -------------------------------------------------------------------------

    def repo_endpoint(self, path: str = "") -> str:
        """Build an endpoint under the configured repository."""
        base = f"repos/{self.owner}/{self.repo}"
        return f"{base}/{path}" if path else base

    def get_repository(self) -> dict[str, Any]:
        """Get repository metadata (includes ``default_branch``)."""
        result = self.get(self.repo_endpoint())
        return result if isinstance(result, dict) else {}

    def get_branch(self, branch: str) -> dict[str, Any]:
        """Get a branch with its latest commit."""
        result = self.get(self.repo_endpoint(f"branches/{quote(branch, safe='')}"))
        return result if isinstance(result, dict) else {}

    # -------------------------------------------------------------------------
    # Git References API
    # -------------------------------------------------------------------------

    def get_ref(self, ref: str) -> dict[str, Any]:
        """
        Get a single reference.

        Args:
            ref: Reference without the ``refs/`` prefix (e.g., 'heads/main')
        """
        result = self.get(self.repo_endpoint(f"git/ref/{ref}"))
        return result if isinstance(result, dict) else {}

    def create_ref(self, ref: str, sha: str) -> dict[str, Any]:
        """
        Create a reference.

        Args:
            ref: Fully qualified reference (e.g., 'refs/heads/verifier')
            sha: Commit the reference points at
        """
        result = self.post(self.repo_endpoint("git/refs"), json={"ref": ref, "sha": sha})
        return result if isinstance(result, dict) else {}

    def update_ref(self, ref: str, sha: str, force: bool = False) -> dict[str, Any]:
        """
        Move a reference.

        Args:
            ref: Reference without the ``refs/`` prefix (e.g., 'heads/verifier')
            sha: New target commit
            force: Allow non-fast-forward updates
        """
        result = self.patch(
            self.repo_endpoint(f"git/refs/{ref}"), json={"sha": sha, "force": force}
        )
        return result if isinstance(result, dict) else {}

    # -------------------------------------------------------------------------
    # Git Database API
    # -------------------------------------------------------------------------

    def create_blob(self, content: str, encoding: str = "base64") -> dict[str, Any]:
        """Create a blob from encoded content."""
        result = self.post(
            self.repo_endpoint("git/blobs"), json={"content": content, "encoding": encoding}
        )
        return result if isinstance(result, dict) else {}

    def get_blob(self, sha: str) -> dict[str, Any]:
        """Get a blob (content is base64-encoded)."""
        result = self.get(self.repo_endpoint(f"git/blobs/{sha}"))
        return result if isinstance(result, dict) else {}

    def create_tree(self, tree: list[dict[str, Any]], base_tree: str | None = None) -> dict[str, Any]:
        """
        Create a tree.

        Args:
            tree: Tree entries ({path, mode, type, sha}); a null sha removes the path
            base_tree: Tree to apply the entries on top of
        """
        data: dict[str, Any] = {"tree": tree}
        if base_tree:
            data["base_tree"] = base_tree
        result = self.post(self.repo_endpoint("git/trees"), json=data)
        return result if isinstance(result, dict) else {}

    def create_commit(self, message: str, tree: str, parents: list[str]) -> dict[str, Any]:
        """Create a commit object."""
        result = self.post(
            self.repo_endpoint("git/commits"),
            json={"message": message, "tree": tree, "parents": parents},
        )
        return result if isinstance(result, dict) else {}

    # -------------------------------------------------------------------------
    # Contents API
    # -------------------------------------------------------------------------

    def get_contents(self, path: str, ref: str | None = None) -> dict[str, Any] | list[Any]:
        """
        Get the contents of a file or directory.

        Returns a dict for a file and a list of entries for a directory.
        """
        params = {"ref": ref} if ref else None
        return self.get(self.repo_endpoint(f"contents/{quote(path)}"), params=params)

    def delete_file(self, path: str, message: str, sha: str, branch: str | None = None) -> dict[str, Any]:
        """
        Delete a file with a commit.

        Args:
            path: Repository-relative path
            message: Commit message
            sha: Blob sha of the file being replaced
            branch: Branch to commit to (default branch if omitted)
        """
        data: dict[str, Any] = {"message": message, "sha": sha}
        if branch:
            data["branch"] = branch
        result = self.delete(self.repo_endpoint(f"contents/{quote(path)}"), json=data)
        return result if isinstance(result, dict) else {}

    # -------------------------------------------------------------------------
    # Resource Cleanup
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the client and release connection pool resources."""
        self._session.close()
        self.logger.debug("Closed HTTP session")

    def __enter__(self) -> "GitHubApiClient":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        """Context manager exit."""
        self.close()
