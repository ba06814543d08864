"""
Custom exceptions for the code review bot.

Defines the error hierarchy used across configuration loading,
version-control access and report writing.
"""

from typing import Any, Dict, Optional


class ReviewBotError(Exception):
    """Base exception for all review bot errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ReviewBotError):
    """Raised when configuration is missing, malformed or invalid."""

    pass


class VCSError(ReviewBotError):
    """Raised when a version-control command fails."""

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class ReportWriteError(ReviewBotError):
    """Raised when a rendered report cannot be written to disk."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, {"path": path})
        self.path = path
