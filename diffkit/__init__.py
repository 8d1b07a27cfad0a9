"""Unified diff parsing, generation, and tolerant application."""

from .applier import (
    apply,
    apply_hunk,
    apply_parsed,
    apply_with_detailed_errors,
    calculate_similarity,
    check,
    exact_match,
    fuzzy_match,
)
from .config import DiffOptions, available_presets, load_options
from .errors import DiffError, DiffErrorCode
from .parser import create_diff, parse, split_patch, validate
from .patch_apply import PatchApplier, apply_patch
from .report import format_detailed_errors, format_diff_result, format_patch_result
from .types import (
    ApplicabilityReport,
    ApplyOutcome,
    ConflictInfo,
    DetailedApplyOutcome,
    DiffLine,
    DiffResult,
    DiffValidation,
    Hunk,
    HunkResult,
    LineMismatch,
    ParsedDiff,
    PatchFile,
    PatchResult,
    RejectedHunk,
)

__all__ = [
    "ApplicabilityReport",
    "ApplyOutcome",
    "ConflictInfo",
    "DetailedApplyOutcome",
    "DiffError",
    "DiffErrorCode",
    "DiffLine",
    "DiffOptions",
    "DiffResult",
    "DiffValidation",
    "Hunk",
    "HunkResult",
    "LineMismatch",
    "ParsedDiff",
    "PatchApplier",
    "PatchFile",
    "PatchResult",
    "RejectedHunk",
    "apply",
    "apply_hunk",
    "apply_parsed",
    "apply_patch",
    "apply_with_detailed_errors",
    "available_presets",
    "calculate_similarity",
    "check",
    "create_diff",
    "exact_match",
    "format_detailed_errors",
    "format_diff_result",
    "format_patch_result",
    "fuzzy_match",
    "load_options",
    "parse",
    "split_patch",
    "validate",
]
