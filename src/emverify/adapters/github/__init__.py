"""
GitHub Adapter - git-object primitives over the GitHub REST API.
"""

from .adapter import GitHubAdapter
from .client import GitHubApiClient


__all__ = ["GitHubAdapter", "GitHubApiClient"]
