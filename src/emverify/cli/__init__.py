"""
CLI module - command line interface for emverify.
"""

from .app import main
from .exit_codes import ExitCode


__all__ = ["ExitCode", "main"]
