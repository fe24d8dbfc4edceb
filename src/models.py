"""Core data models for budgeted diff processing."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional


class DiffTier(IntEnum):
    """Processing tier applied to a diff, in escalation order."""

    NORMAL = 1  # Fits as-is (or could not be parsed and was truncated)
    SMART_PRIORITIZED = 2
    MAP_REDUCE = 3


@dataclass(frozen=True)
class ParsedFileDiff:
    """One file section of a unified diff."""

    file_path: str
    content: str  # Section text, "diff --git" header included
    token_count: int
    is_lock_file: bool = False
    additions: int = 0
    deletions: int = 0
    is_generated: bool = False
    old_path: Optional[str] = None  # Set for renames

    @property
    def is_rename(self) -> bool:
        return self.old_path is not None


@dataclass
class AssemblyResult:
    """Result of Tier 2 prioritized assembly."""

    content: str
    included_count: int
    summary_only_count: int
    # Files with neither full content nor a summary, candidates for Tier 3
    overflow_files: List[ParsedFileDiff] = field(default_factory=list)


@dataclass
class MapReduceResult:
    """Result of Tier 3 chunk summarization."""

    summary: str
    chunks_processed: int
    chunks_failed: int


@dataclass
class DiffProcessResult:
    """Processed diff returned to callers."""

    processed_diff: str
    tier: DiffTier
    total_files: int = 0
    included_files: int = 0
    excluded_files: int = 0
    chunks_processed: int = 0
    chunks_failed: int = 0

    @property
    def was_reduced(self) -> bool:
        """True when the caller should warn that the diff was cut or summarized."""
        return self.tier != DiffTier.NORMAL or self.chunks_failed > 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "tier": int(self.tier),
            "tier_name": self.tier.name.lower(),
            "total_files": self.total_files,
            "included_files": self.included_files,
            "excluded_files": self.excluded_files,
            "chunks_processed": self.chunks_processed,
            "chunks_failed": self.chunks_failed,
        }
