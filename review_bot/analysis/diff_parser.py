"""
Diff parser module.

Parses unified diff format (git-style or plain ``---``/``+++`` pairs) into
per-file change records:
- File paths and change kind (added, modified, deleted, renamed)
- Hunks with their header ranges
- Line-level changes with old/new line numbers

Parsing never raises on malformed input; unrecoverable paths degrade to
the ``"unknown"`` sentinel, which callers filter out.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set

logger = logging.getLogger(__name__)

UNKNOWN_PATH = "unknown"
DEV_NULL = "/dev/null"


class ChangeKind(Enum):
    """How a file was changed."""
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNKNOWN = "unknown"


class LineMarker(Enum):
    """Role of a line within a hunk."""
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"


@dataclass
class DiffLine:
    """A single line of a hunk."""
    marker: LineMarker
    text: str
    old_lineno: Optional[int] = None
    new_lineno: Optional[int] = None


@dataclass
class Hunk:
    """A contiguous block of changes in a file."""
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: List[DiffLine] = field(default_factory=list)
    header: str = ""

    def reconciles(self) -> bool:
        """Whether line markers agree with the header's line counts."""
        new_count = sum(1 for l in self.lines if l.marker != LineMarker.REMOVED)
        old_count = sum(1 for l in self.lines if l.marker != LineMarker.ADDED)
        return new_count == self.new_lines and old_count == self.old_lines


@dataclass
class FileChange:
    """All changes to a single file."""
    path: str
    change_kind: ChangeKind
    hunks: List[Hunk] = field(default_factory=list)
    old_path: Optional[str] = None
    additions: int = 0
    deletions: int = 0
    language: Optional[str] = None

    @property
    def is_unknown(self) -> bool:
        return self.path == UNKNOWN_PATH


# Language detection by file extension
LANGUAGE_MAP = {
    'py': 'python',
    'js': 'javascript',
    'mjs': 'javascript',
    'cjs': 'javascript',
    'jsx': 'javascript',
    'ts': 'typescript',
    'tsx': 'typescript',
    'java': 'java',
    'go': 'go',
    'rs': 'rust',
    'cpp': 'cpp',
    'c': 'c',
    'h': 'c',
    'hpp': 'cpp',
    'cs': 'csharp',
    'rb': 'ruby',
    'php': 'php',
    'swift': 'swift',
    'kt': 'kotlin',
    'scala': 'scala',
    'sql': 'sql',
    'sh': 'shell',
    'bash': 'shell',
    'yaml': 'yaml',
    'yml': 'yaml',
    'json': 'json',
    'xml': 'xml',
    'html': 'html',
    'css': 'css',
    'md': 'markdown',
    'txt': 'text',
}


def detect_language(path: str) -> Optional[str]:
    """
    Detect programming language from a file path.

    Args:
        path: File name or path

    Returns:
        Optional[str]: Detected language, or None
    """
    name = path.rsplit('/', 1)[-1]
    if '.' not in name:
        return None

    extension = name.rsplit('.', 1)[-1].lower()
    return LANGUAGE_MAP.get(extension)


@dataclass
class _Segment:
    """Header state accumulated for one file while parsing."""
    git_old: Optional[str] = None
    git_new: Optional[str] = None
    minus_path: Optional[str] = None
    plus_path: Optional[str] = None
    rename_from: Optional[str] = None
    rename_to: Optional[str] = None
    is_new: bool = False
    is_deleted: bool = False
    seen_minus: bool = False
    hunks: List[Hunk] = field(default_factory=list)
    additions: int = 0
    deletions: int = 0


class DiffParser:
    """
    Parses unified diff format.

    Extracts structured information from unified diffs, including
    line-by-line changes and file metadata.
    """

    FILE_HEADER_PATTERN = re.compile(r'^diff --git "?a/(.*?)"? "?b/(.*?)"?$')
    HUNK_HEADER_PATTERN = re.compile(r'^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@ ?(.*)$')

    def parse(self, diff_text: str) -> List[FileChange]:
        """
        Parse unified diff into structured format.

        Args:
            diff_text: Unified diff string

        Returns:
            List[FileChange]: Parsed file changes, in diff order
        """
        if not diff_text or not diff_text.strip():
            logger.debug("Empty diff provided")
            return []

        file_changes: List[FileChange] = []
        segment: Optional[_Segment] = None
        hunk: Optional[Hunk] = None
        old_remaining = new_remaining = 0
        old_lineno = new_lineno = 0

        for line in diff_text.splitlines():
            # Hunk body: consumption is driven by the header's line counts
            if hunk is not None and (old_remaining > 0 or new_remaining > 0):
                if line.startswith('\\'):
                    continue

                marker = line[:1]
                if marker == '+' and new_remaining > 0:
                    hunk.lines.append(DiffLine(LineMarker.ADDED, line[1:], new_lineno=new_lineno))
                    new_lineno += 1
                    new_remaining -= 1
                    segment.additions += 1
                    continue
                if marker == '-' and old_remaining > 0:
                    hunk.lines.append(DiffLine(LineMarker.REMOVED, line[1:], old_lineno=old_lineno))
                    old_lineno += 1
                    old_remaining -= 1
                    segment.deletions += 1
                    continue
                if marker in (' ', ''):
                    hunk.lines.append(DiffLine(
                        LineMarker.CONTEXT, line[1:],
                        old_lineno=old_lineno, new_lineno=new_lineno,
                    ))
                    old_lineno += 1
                    new_lineno += 1
                    old_remaining = max(old_remaining - 1, 0)
                    new_remaining = max(new_remaining - 1, 0)
                    continue

                # Truncated hunk: treat the line as a header
                logger.debug("Hunk ended before its declared line count")
                hunk = None

            if line.startswith('\\'):
                continue

            if line.startswith('diff --git '):
                if segment is not None:
                    file_changes.append(self._finish(segment))
                segment = _Segment()
                hunk = None
                old_path, new_path = self._parse_git_header(line)
                segment.git_old, segment.git_new = old_path, new_path

            elif line.startswith('--- '):
                if segment is None or segment.hunks or segment.seen_minus:
                    if segment is not None:
                        file_changes.append(self._finish(segment))
                    segment = _Segment()
                hunk = None
                segment.seen_minus = True
                segment.minus_path = self._strip_path(line[4:], 'a/')

            elif line.startswith('+++ '):
                if segment is None:
                    segment = _Segment()
                segment.plus_path = self._strip_path(line[4:], 'b/')

            elif line.startswith('@@'):
                if segment is None:
                    segment = _Segment()
                match = self.HUNK_HEADER_PATTERN.match(line)
                if not match:
                    logger.debug("Malformed hunk header skipped", extra={"header": line[:80]})
                    hunk = None
                    continue

                old_start = int(match.group(1))
                old_count = int(match.group(2)) if match.group(2) is not None else 1
                new_start = int(match.group(3))
                new_count = int(match.group(4)) if match.group(4) is not None else 1

                hunk = Hunk(
                    old_start=old_start,
                    old_lines=old_count,
                    new_start=new_start,
                    new_lines=new_count,
                    header=match.group(5).strip(),
                )
                segment.hunks.append(hunk)
                old_remaining, new_remaining = old_count, new_count
                old_lineno, new_lineno = old_start, new_start

            elif segment is not None:
                if line.startswith('new file mode'):
                    segment.is_new = True
                elif line.startswith('deleted file mode'):
                    segment.is_deleted = True
                elif line.startswith('rename from '):
                    segment.rename_from = line[len('rename from '):].strip()
                elif line.startswith('rename to '):
                    segment.rename_to = line[len('rename to '):].strip()

        if segment is not None:
            file_changes.append(self._finish(segment))

        logger.debug(
            "Parsed diff",
            extra={
                "files_changed": len(file_changes),
                "total_additions": sum(f.additions for f in file_changes),
                "total_deletions": sum(f.deletions for f in file_changes),
            }
        )

        return file_changes

    def _parse_git_header(self, line: str):
        match = self.FILE_HEADER_PATTERN.match(line)
        if match:
            return match.group(1) or None, match.group(2) or None

        # --no-prefix diffs: "diff --git old new"
        parts = line[len('diff --git '):].split()
        if len(parts) == 2:
            return parts[0], parts[1]
        return None, None

    @staticmethod
    def _strip_path(raw: str, prefix: str) -> Optional[str]:
        # Drop trailing timestamps ("path\t2024-01-01 ...") and quotes
        path = raw.split('\t', 1)[0].strip().strip('"')
        if not path:
            return None
        if path == DEV_NULL:
            return DEV_NULL
        if path.startswith(prefix):
            path = path[len(prefix):]
        return path or None

    def _finish(self, segment: _Segment) -> FileChange:
        """Resolve a segment's paths and change kind."""
        added = segment.is_new or segment.minus_path == DEV_NULL
        deleted = segment.is_deleted or segment.plus_path == DEV_NULL
        renamed = segment.rename_from is not None or segment.rename_to is not None

        candidates = [segment.plus_path, segment.rename_to, segment.git_new,
                      segment.minus_path, segment.rename_from, segment.git_old]
        if deleted:
            candidates = [segment.minus_path, segment.git_old, segment.git_new]
        path = next((p for p in candidates if p and p != DEV_NULL), None)

        old_candidates = [segment.rename_from, segment.minus_path, segment.git_old]
        old_path = next((p for p in old_candidates if p and p != DEV_NULL), None)

        if path is None:
            kind = ChangeKind.UNKNOWN
            path = UNKNOWN_PATH
        elif added:
            kind = ChangeKind.ADDED
        elif deleted:
            kind = ChangeKind.DELETED
        elif renamed:
            kind = ChangeKind.RENAMED
        else:
            kind = ChangeKind.MODIFIED

        return FileChange(
            path=path,
            change_kind=kind,
            hunks=segment.hunks,
            old_path=old_path,
            additions=segment.additions,
            deletions=segment.deletions,
            language=detect_language(path) if path != UNKNOWN_PATH else None,
        )

    def get_added_lines(self, file_change: FileChange) -> List[DiffLine]:
        """
        Get all added lines from a file change.

        Args:
            file_change: Parsed file change

        Returns:
            List[DiffLine]: Added lines
        """
        return [
            line
            for hunk in file_change.hunks
            for line in hunk.lines
            if line.marker == LineMarker.ADDED
        ]

    def get_removed_lines(self, file_change: FileChange) -> List[DiffLine]:
        """
        Get all removed lines from a file change.

        Args:
            file_change: Parsed file change

        Returns:
            List[DiffLine]: Removed lines
        """
        return [
            line
            for hunk in file_change.hunks
            for line in hunk.lines
            if line.marker == LineMarker.REMOVED
        ]

    def get_changed_line_numbers(self, file_change: FileChange) -> Set[int]:
        """New-side line numbers of all added lines."""
        return {
            line.new_lineno
            for line in self.get_added_lines(file_change)
            if line.new_lineno is not None
        }
