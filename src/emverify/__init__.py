"""
emverify - Keep a shadow verification branch in sync and drive a remote verifier.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
