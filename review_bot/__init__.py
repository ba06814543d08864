"""Automated code review for commits, branches and staged changes."""

__version__ = "1.0.0"
