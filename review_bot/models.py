"""
Core data models shared by analyzers, the pipeline and the reporters.

Issues are pydantic models so that severities are validated (and coerced)
at the boundary where analyzers hand findings to the pipeline.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from review_bot.analysis.diff_parser import FileChange

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    """Issue severity levels, most severe first."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Position in the severity order (0 is most severe)."""
        return SEVERITY_ORDER.index(self)


SEVERITY_ORDER = [
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.INFO,
]


class Origin(str, Enum):
    """Provenance of an analyzed file's content."""
    COMMIT = "commit"
    BRANCH = "branch"
    STAGED = "staged"
    FILES = "files"


class Issue(BaseModel):
    """A single finding produced by an analyzer."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    id: str = Field(..., description="Identifier, stable within a single run")
    title: str
    message: str
    file: str
    line: int = Field(default=1, ge=0)
    column: Optional[int] = Field(default=None, ge=0)
    type: str = Field(..., description="Analyzer-specific category")
    analyzer: str
    severity: Severity = Severity.INFO
    snippet: Optional[str] = None
    suggestion: Optional[str] = None
    duplicate_count: int = Field(
        default=1,
        ge=1,
        description="Number of identical findings collapsed into this one",
    )

    @field_validator("severity", mode="before")
    @classmethod
    def coerce_severity(cls, v: Any) -> Severity:
        """Map unknown severities to INFO instead of rejecting the issue."""
        if isinstance(v, Severity):
            return v
        try:
            return Severity(str(v).lower())
        except ValueError:
            logger.warning(
                "Unknown severity coerced to info",
                extra={"severity": str(v)},
            )
            return Severity.INFO

    @property
    def location(self) -> str:
        """file:line[:column] string used by the reporters."""
        loc = f"{self.file}:{self.line}"
        if self.column:
            loc += f":{self.column}"
        return loc


@dataclass(frozen=True)
class AnalysisContext:
    """Selection of changes a run operates on."""
    commit: Optional[str] = None
    branch: Optional[str] = None
    staged: bool = False
    base_branch: str = "main"

    @property
    def origin(self) -> Origin:
        if self.commit:
            return Origin.COMMIT
        if self.branch:
            return Origin.BRANCH
        if self.staged:
            return Origin.STAGED
        return Origin.COMMIT

    @property
    def revision(self) -> Optional[str]:
        """Revision to read file contents at (":" is the git index)."""
        if self.commit:
            return self.commit
        if self.branch:
            return self.branch
        if self.staged:
            return ":"
        return "HEAD"

    def to_dict(self) -> dict:
        return {
            "commit": self.commit,
            "branch": self.branch,
            "staged": self.staged,
        }


@dataclass(frozen=True)
class AnalyzableFile:
    """Unit of work handed to analyzers: one file's content at a revision."""
    path: str
    content: str
    origin: Origin = Origin.COMMIT
    change: Optional["FileChange"] = None

    @property
    def size(self) -> int:
        """Content size in bytes (UTF-8)."""
        return len(self.content.encode("utf-8", errors="replace"))

    @property
    def lines(self) -> List[str]:
        return self.content.splitlines()
