"""Core types for diffkit - Pydantic models for parsed diffs and results.

Everything here is JSON-serializable via ``model_dump()`` / ``model_dump_json()``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

LineKind = Literal["context", "remove", "add"]


# ─────────────────────────────────────────────────────────────
# Parsed diff
# ─────────────────────────────────────────────────────────────


class DiffLine(BaseModel):
    """One body line of a hunk, prefix stripped."""

    model_config = ConfigDict(frozen=True)

    kind: LineKind
    content: str
    old_line_number: int | None = None
    new_line_number: int | None = None


class Hunk(BaseModel):
    """A contiguous block of changes with its declared position."""

    model_config = ConfigDict(frozen=True)

    old_start: int  # 1-based
    old_lines: int
    new_start: int
    new_lines: int
    section: str = ""  # text after the closing @@, e.g. a function name
    lines: tuple[DiffLine, ...] = ()

    @property
    def expected_lines(self) -> list[str]:
        """What the buffer should contain before the hunk (context + remove)."""
        return [line.content for line in self.lines if line.kind != "add"]

    @property
    def replacement_lines(self) -> list[str]:
        """What the buffer should contain after the hunk (context + add)."""
        return [line.content for line in self.lines if line.kind != "remove"]

    @property
    def removed_count(self) -> int:
        return sum(1 for line in self.lines if line.kind == "remove")

    @property
    def added_count(self) -> int:
        return sum(1 for line in self.lines if line.kind == "add")


class ParsedDiff(BaseModel):
    """All hunks for a single file."""

    model_config = ConfigDict(frozen=True)

    old_path: str
    new_path: str
    hunks: tuple[Hunk, ...] = ()

    @property
    def path(self) -> str:
        """Target path, falling back to the old path for deletions."""
        if self.new_path and self.new_path != "/dev/null":
            return self.new_path
        return self.old_path


# ─────────────────────────────────────────────────────────────
# Application results
# ─────────────────────────────────────────────────────────────


class HunkResult(BaseModel):
    """A hunk that was applied."""

    hunk_index: int
    start_line: int  # 1-based line where the hunk matched
    lines_removed: int
    lines_added: int
    offset: int = 0  # matched start minus declared start
    fuzzy: bool = False


class RejectedHunk(BaseModel):
    """A hunk whose context could not be located."""

    hunk_index: int
    reason: str
    expected_context: list[str] = Field(default_factory=list)
    actual_context: list[str] = Field(default_factory=list)
    suggestion: str = ""


class DiffResult(BaseModel):
    """Outcome of applying one file diff."""

    success: bool
    path: str = ""
    hunks_total: int = 0
    hunks_applied: int = 0
    hunks_rejected: int = 0
    applied: list[HunkResult] = Field(default_factory=list)
    rejected: list[RejectedHunk] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ApplyOutcome(BaseModel):
    """New content plus the per-hunk report."""

    content: str
    result: DiffResult


class LineMismatch(BaseModel):
    """Line-level diagnostic for a rejected hunk."""

    hunk_index: int
    line_number: int  # 1-based within the hunk's expected context
    expected: str
    actual: str
    similarity: float
    suggestion: str


class DetailedApplyOutcome(ApplyOutcome):
    detailed_errors: list[LineMismatch] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────────


class DiffValidation(BaseModel):
    """Structural validation of diff text."""

    valid: bool
    errors: list[str] = Field(default_factory=list)


class ConflictInfo(BaseModel):
    hunk_index: int
    line: int
    description: str


class ApplicabilityReport(BaseModel):
    """Whether a diff is well-formed and would apply cleanly to some content."""

    valid: bool
    applicable: bool
    conflicts: list[ConflictInfo] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────
# Multi-file patches
# ─────────────────────────────────────────────────────────────


class PatchFile(BaseModel):
    """The diff for one file of a combined patch."""

    path: str
    diff: str
    priority: int = 0  # smaller is applied first


class PatchResult(BaseModel):
    """Outcome of applying a combined patch to several buffers."""

    success: bool
    files_total: int = 0
    files_processed: int = 0
    files_succeeded: int = 0
    files_failed: int = 0
    results: dict[str, DiffResult] = Field(default_factory=dict)
    contents: dict[str, str] = Field(default_factory=dict)
    rolled_back: bool = False


__all__ = [
    "LineKind",
    "DiffLine",
    "Hunk",
    "ParsedDiff",
    "HunkResult",
    "RejectedHunk",
    "DiffResult",
    "ApplyOutcome",
    "LineMismatch",
    "DetailedApplyOutcome",
    "DiffValidation",
    "ConflictInfo",
    "ApplicabilityReport",
    "PatchFile",
    "PatchResult",
]
