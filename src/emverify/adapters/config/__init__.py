"""
Configuration adapters.
"""

from .environment import EnvironmentConfigProvider
from .file_provider import FileConfigProvider


__all__ = ["EnvironmentConfigProvider", "FileConfigProvider"]
