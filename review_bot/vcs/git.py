"""
Git collaborator.

Thin wrapper over the ``git`` command line that supplies diffs, file
contents at a revision, repository statistics and hook installation.
Commands go through an injectable runner so callers (and tests) can
replace the subprocess layer.
"""

import logging
import stat
import subprocess
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence, Union

from review_bot.exceptions import VCSError
from review_bot.models import AnalysisContext

logger = logging.getLogger(__name__)

Runner = Callable[[Sequence[str], Path], str]

HOOK_MARKER = "# installed by review-bot"

PRE_COMMIT_HOOK = f"""#!/bin/sh
{HOOK_MARKER}
exec review-bot analyze --staged
"""


@dataclass
class RepositoryStats:
    """Working tree summary shown by ``review-bot stats``."""
    current_branch: str
    total_commits: int
    modified: int
    staged: int
    untracked: int

    def to_dict(self) -> Dict[str, Union[str, int]]:
        return asdict(self)


class GitClient:
    """Runs git commands against one repository."""

    def __init__(
        self,
        repo_path: Union[str, Path] = ".",
        runner: Optional[Runner] = None,
        timeout: Optional[float] = 30,
    ):
        """
        Initialize client.

        Args:
            repo_path: Repository working directory
            runner: Callable ``runner(args, cwd) -> stdout``; raises
                ``VCSError`` on failure. Defaults to a subprocess runner.
            timeout: Per-command timeout in seconds for the default runner;
                None waits indefinitely
        """
        self.repo_path = Path(repo_path)
        self.timeout = timeout
        self._runner = runner or self._default_runner

    def _run(self, *args: str) -> str:
        command = ["git", *args]
        logger.debug("Running git", extra={"command": " ".join(command)})
        return self._runner(command, self.repo_path)

    def _default_runner(self, args: Sequence[str], cwd: Path) -> str:
        command = " ".join(args)
        try:
            completed = subprocess.run(
                list(args),
                cwd=str(cwd),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise VCSError("git executable not found", command=command) from e
        except subprocess.TimeoutExpired as e:
            raise VCSError(f"git timed out after {self.timeout}s", command=command) from e

        if completed.returncode != 0:
            raise VCSError(
                f"git exited with status {completed.returncode}",
                command=command,
                returncode=completed.returncode,
                stderr=completed.stderr.strip(),
            )
        return completed.stdout

    # Diffs

    def get_diff(self, context: AnalysisContext) -> str:
        """
        Unified diff for a change selection.

        Commit, then branch, then staged; with none set, the latest commit.
        """
        if context.commit:
            return self.get_commit_diff(context.commit)
        if context.branch:
            return self.get_branch_diff(context.base_branch, context.branch)
        if context.staged:
            return self.get_staged_diff()
        return self.get_latest_commit_diff()

    def get_commit_diff(self, commit: str) -> str:
        return self._run("show", "--format=", "--no-color", "--no-ext-diff", commit)

    def get_branch_diff(self, base: str, branch: str) -> str:
        """Changes on ``branch`` since it diverged from ``base``."""
        return self._run("diff", "--no-color", "--no-ext-diff", f"{base}...{branch}")

    def get_staged_diff(self) -> str:
        return self._run("diff", "--cached", "--no-color", "--no-ext-diff")

    def get_latest_commit_diff(self) -> str:
        return self.get_commit_diff("HEAD")

    # Contents

    def get_file_content(self, path: str, revision: Optional[str] = None) -> Optional[str]:
        """
        Read a file at a revision.

        Args:
            path: Repository-relative path
            revision: Commit-ish, ``":"`` for the index, or None for the
                working tree

        Returns:
            Optional[str]: File content, or None if it does not exist there
        """
        if revision is None:
            local = self.repo_path / path
            try:
                return local.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except UnicodeDecodeError:
                logger.warning("Skipping non-UTF-8 file", extra={"file": path})
                return None

        object_name = f":{path}" if revision == ":" else f"{revision}:{path}"
        try:
            return self._run("show", object_name)
        except VCSError as e:
            logger.debug(f"File not available at revision: {e.stderr or e.message}", extra={"file": path})
            return None

    # Repository info

    def get_current_branch(self) -> str:
        return self._run("rev-parse", "--abbrev-ref", "HEAD").strip()

    def get_repository_stats(self) -> RepositoryStats:
        """
        Summarize the repository state.

        Raises:
            VCSError: If the directory is not a git repository
        """
        branch = self.get_current_branch()

        try:
            total_commits = int(self._run("rev-list", "--count", "HEAD").strip() or 0)
        except VCSError:
            # No commits yet
            total_commits = 0

        modified = staged = untracked = 0
        for line in self._run("status", "--porcelain").splitlines():
            if len(line) < 2:
                continue
            index_status, worktree_status = line[0], line[1]
            if line.startswith("??"):
                untracked += 1
                continue
            if index_status != " ":
                staged += 1
            if worktree_status != " ":
                modified += 1

        return RepositoryStats(
            current_branch=branch,
            total_commits=total_commits,
            modified=modified,
            staged=staged,
            untracked=untracked,
        )

    def install_pre_commit_hook(self, force: bool = False) -> Path:
        """
        Write a pre-commit hook that analyzes staged changes.

        Args:
            force: Overwrite a hook not installed by this tool

        Returns:
            Path: Installed hook path

        Raises:
            VCSError: If not a repository, or a foreign hook exists and
                ``force`` is not set
        """
        hooks_dir = Path(self._run("rev-parse", "--git-path", "hooks").strip())
        if not hooks_dir.is_absolute():
            hooks_dir = self.repo_path / hooks_dir

        hook_path = hooks_dir / "pre-commit"
        if hook_path.exists() and not force:
            existing = hook_path.read_text(encoding="utf-8", errors="replace")
            if HOOK_MARKER not in existing:
                raise VCSError(
                    "A pre-commit hook already exists; use --force to replace it",
                    command="install-hooks",
                )

        try:
            hooks_dir.mkdir(parents=True, exist_ok=True)
            with open(hook_path, "w", encoding="utf-8") as f:
                f.write(PRE_COMMIT_HOOK)
            mode = hook_path.stat().st_mode
            hook_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as e:
            raise VCSError(f"Failed to install hook: {e}", command="install-hooks") from e

        logger.info("Pre-commit hook installed", extra={"path": str(hook_path)})
        return hook_path
