"""
Job Server Adapter - async client for the remote verification service.
"""

from .client import JobServerClient


__all__ = ["JobServerClient"]
