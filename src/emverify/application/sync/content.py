"""
Content comparison for the sync diff.

Kept free of I/O so the skip decision can be tested on its own.
"""

from __future__ import annotations


def content_matches(local: bytes | None, remote: bytes | None) -> bool:
    """
    Check whether a local file and its remote counterpart are identical.

    A file missing on either side never matches, so a new file is always
    uploaded and a deleted one is always a deletion candidate.
    """
    if local is None or remote is None:
        return False
    return local == remote

