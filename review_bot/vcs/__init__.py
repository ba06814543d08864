"""Version control collaborators."""

from review_bot.vcs.git import GitClient, RepositoryStats

__all__ = ["GitClient", "RepositoryStats"]
