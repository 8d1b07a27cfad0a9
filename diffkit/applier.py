"""Apply unified diffs to in-memory text with exact or fuzzy context matching.

Hunks are applied bottom-up so splicing one never shifts the line numbers the
remaining hunks were written against. A hunk that cannot be located is
reported in the result, not raised; only unusable diff text raises DiffError.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from diffkit.config import DiffOptions, resolve_options
from diffkit.errors import DiffError, DiffErrorCode
from diffkit.parser import parse, validate
from diffkit.textdiff import diff_chars, equal_chars
from diffkit.types import (
    ApplicabilityReport,
    ApplyOutcome,
    ConflictInfo,
    DetailedApplyOutcome,
    DiffResult,
    Hunk,
    HunkResult,
    LineMismatch,
    ParsedDiff,
    RejectedHunk,
)

logger = logging.getLogger(__name__)

BOM = "\ufeff"
MAX_FUZZY_RADIUS = 100
DEFAULT_FUZZY_THRESHOLD = 80

REASON_CONTEXT_MISMATCH = "Context mismatch"
REASON_SKIPPED = "Skipped after earlier rejection"
SUGGEST_ENABLE_FUZZY = "Enable fuzzy matching with --fuzzy option"
SUGGEST_RAISE_FUZZY = "Try increasing fuzzy threshold or check file version"

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class HunkOutcome:
    """Result of trying one hunk against the buffer."""

    applied: bool
    start: int  # 0-based; matched position, or declared position if rejected
    lines_removed: int = 0
    lines_added: int = 0
    offset: int = 0
    fuzzy: bool = False
    expected: list[str] = field(default_factory=list)
    actual: list[str] = field(default_factory=list)


# ─────────────────────────────────────────────────────────────
# Line comparison
# ─────────────────────────────────────────────────────────────


def collapse_whitespace(line: str) -> str:
    return _WHITESPACE_RE.sub(" ", line.strip())


def normalize_line(line: str, options: DiffOptions | None = None) -> str:
    """Apply the whitespace/case folding selected in ``options``."""
    opts = resolve_options(options)
    if opts.ignore_whitespace:
        line = collapse_whitespace(line)
    if opts.ignore_case:
        line = line.lower()
    return line


def exact_match(
    expected: list[str],
    actual: list[str],
    options: DiffOptions | None = None,
) -> bool:
    """True if every line pair is equal after normalization."""
    if len(expected) != len(actual):
        return False
    opts = resolve_options(options)
    return all(
        normalize_line(e, opts) == normalize_line(a, opts)
        for e, a in zip(expected, actual)
    )


def calculate_similarity(a: str, b: str, options: DiffOptions | None = None) -> float:
    """Share of characters two lines have in common, in [0, 1].

    Uses a character-level diff: equal characters / length of the longer line.
    """
    opts = resolve_options(options)
    a = normalize_line(a, opts)
    b = normalize_line(b, opts)
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return equal_chars(diff_chars(a, b, opts)) / longest


def fuzzy_match(
    expected: list[str],
    actual: list[str],
    options: DiffOptions | None = None,
) -> bool:
    """True if every line pair reaches the fuzzy similarity threshold."""
    if len(expected) != len(actual):
        return False
    opts = resolve_options(options)
    percent = opts.fuzzy if opts.fuzzy is not None else DEFAULT_FUZZY_THRESHOLD
    threshold = percent / 100
    return all(calculate_similarity(e, a, opts) >= threshold for e, a in zip(expected, actual))


# ─────────────────────────────────────────────────────────────
# Hunk application
# ─────────────────────────────────────────────────────────────


def candidate_offsets(radius: int) -> Iterator[int]:
    """Offsets to probe: the declared position, then nearest before/after."""
    yield 0
    for r in range(1, radius + 1):
        yield -r
        yield r


def declared_start(hunk: Hunk) -> int:
    """0-based index where the hunk says its expected lines begin.

    Not clamped to the buffer; a hunk declared past the end stays there.
    """
    # "-N,0" hunks insert after line N
    return hunk.old_start if not hunk.expected_lines else hunk.old_start - 1


def _fits(start: int, size: int, line_count: int) -> bool:
    return start >= 0 and start + size <= line_count


def apply_hunk(
    lines: list[str],
    hunk: Hunk,
    options: DiffOptions | None = None,
) -> HunkOutcome:
    """Locate ``hunk`` in ``lines`` and splice in its replacement.

    ``lines`` is modified in place only when the hunk applies.
    """
    opts = resolve_options(options)
    expected = hunk.expected_lines
    replacement = hunk.replacement_lines
    size = len(expected)

    start = declared_start(hunk)
    actual = lines[max(start, 0):max(start + size, 0)]

    matched: int | None = None
    if not opts.fuzzy_enabled:
        if _fits(start, size, len(lines)) and exact_match(expected, actual, opts):
            matched = start
    else:
        radius = min(opts.fuzzy or 0, MAX_FUZZY_RADIUS)
        for offset in candidate_offsets(radius):
            candidate = start + offset
            if not _fits(candidate, size, len(lines)):
                continue
            if fuzzy_match(expected, lines[candidate:candidate + size], opts):
                matched = candidate
                break

    if matched is None:
        logger.debug("Hunk @@ -%d,%d did not match at line %d", hunk.old_start, hunk.old_lines, start + 1)
        return HunkOutcome(applied=False, start=start, expected=expected, actual=actual)

    was_fuzzy = matched != start or not exact_match(expected, lines[matched:matched + size], opts)
    lines[matched:matched + size] = replacement
    logger.debug(
        "Hunk @@ -%d,%d applied at line %d (offset %d%s)",
        hunk.old_start,
        hunk.old_lines,
        matched + 1,
        matched - start,
        ", fuzzy" if was_fuzzy else "",
    )
    return HunkOutcome(
        applied=True,
        start=matched,
        lines_removed=hunk.removed_count,
        lines_added=hunk.added_count,
        offset=matched - start,
        fuzzy=was_fuzzy,
        expected=expected,
        actual=actual,
    )


def _apply_file(content: str, file_diff: ParsedDiff, opts: DiffOptions) -> ApplyOutcome:
    bom = BOM if content.startswith(BOM) else ""
    body = content[len(bom):]
    lines = body.split("\n")

    applied: list[HunkResult] = []
    rejected: list[RejectedHunk] = []
    stopped = False

    # Bottom-up; sorted() is stable so equal starts keep their parsed order
    ordered = sorted(enumerate(file_diff.hunks), key=lambda item: item[1].old_start, reverse=True)
    for index, hunk in ordered:
        if stopped:
            rejected.append(RejectedHunk(
                hunk_index=index,
                reason=REASON_SKIPPED,
                expected_context=hunk.expected_lines,
                suggestion="Fix the earlier rejected hunk or disable stop_on_error",
            ))
            continue

        outcome = apply_hunk(lines, hunk, opts)
        if outcome.applied:
            applied.append(HunkResult(
                hunk_index=index,
                start_line=outcome.start + 1,
                lines_removed=outcome.lines_removed,
                lines_added=outcome.lines_added,
                offset=outcome.offset,
                fuzzy=outcome.fuzzy,
            ))
            continue

        logger.warning(
            "Rejected hunk %d of %s at line %d: %s",
            index,
            file_diff.path,
            outcome.start + 1,
            REASON_CONTEXT_MISMATCH,
        )
        rejected.append(RejectedHunk(
            hunk_index=index,
            reason=REASON_CONTEXT_MISMATCH,
            expected_context=outcome.expected,
            actual_context=outcome.actual,
            suggestion=SUGGEST_RAISE_FUZZY if opts.fuzzy_enabled else SUGGEST_ENABLE_FUZZY,
        ))
        if opts.stop_on_error:
            stopped = True

    applied.sort(key=lambda r: r.hunk_index)
    rejected.sort(key=lambda r: r.hunk_index)

    warnings: list[str] = []
    fuzzy_count = sum(1 for r in applied if r.fuzzy)
    if fuzzy_count:
        warnings.append(f"{fuzzy_count} hunk(s) applied with fuzzy matching")

    result = DiffResult(
        success=not rejected,
        path=file_diff.path,
        hunks_total=len(file_diff.hunks),
        hunks_applied=len(applied),
        hunks_rejected=len(rejected),
        applied=applied,
        rejected=rejected,
        warnings=warnings,
    )
    logger.info(
        "Applied %d/%d hunk(s) to %s",
        result.hunks_applied,
        result.hunks_total,
        result.path or "<content>",
    )
    return ApplyOutcome(content=bom + "\n".join(lines), result=result)


def apply_parsed(
    content: str,
    file_diff: ParsedDiff,
    options: DiffOptions | None = None,
) -> ApplyOutcome:
    """Apply an already-parsed file diff to ``content``.

    Raises:
        DiffError: Unexpected failure while applying (INVALID_DIFF_FORMAT).
    """
    opts = resolve_options(options)
    try:
        return _apply_file(content, file_diff, opts)
    except DiffError:
        raise
    except Exception as exc:
        raise DiffError(
            DiffErrorCode.INVALID_DIFF_FORMAT,
            f"Failed to apply diff: {exc}",
            file=file_diff.path,
        ) from exc


def apply(
    content: str,
    diff_text: str,
    options: DiffOptions | None = None,
) -> ApplyOutcome:
    """Apply the first file diff in ``diff_text`` to ``content``.

    Args:
        content: Current buffer, optionally starting with a BOM
        diff_text: Unified diff text
        options: Matching options; defaults to exact matching

    Returns:
        ApplyOutcome with the new content and a DiffResult. Rejected hunks
        leave their region untouched and are listed in ``result.rejected``.

    Raises:
        DiffError: No file diff could be parsed, or application failed
            unexpectedly (INVALID_DIFF_FORMAT).
    """
    parsed = parse(diff_text)
    if not parsed:
        raise DiffError(DiffErrorCode.INVALID_DIFF_FORMAT, "No valid diff content found")
    if len(parsed) > 1:
        logger.debug("Diff covers %d files; applying only %s", len(parsed), parsed[0].path)
    return apply_parsed(content, parsed[0], options)


# ─────────────────────────────────────────────────────────────
# Diagnostics
# ─────────────────────────────────────────────────────────────


def suggest_fix(similarity: float, expected: str, actual: str) -> str:
    """Human hint for a mismatched line, chosen by similarity bucket."""
    if similarity > 0.9:
        return "Lines are very similar. Minor differences in whitespace or punctuation."
    if similarity > 0.7:
        if collapse_whitespace(expected) == collapse_whitespace(actual):
            return "Difference is only in whitespace/indentation. Enable ignore_whitespace."
        if expected.strip().lower() == actual.strip().lower():
            return "Difference is only in case. Enable ignore_case."
        return "Lines have moderate similarity. Consider fuzzy matching with fuzzy=80."
    if similarity > 0.5:
        return "Lines have some similarity. Consider fuzzy matching with fuzzy=60."
    return "Lines are significantly different. Verify you have the correct file version."


def apply_with_detailed_errors(
    content: str,
    diff_text: str,
    options: DiffOptions | None = None,
) -> DetailedApplyOutcome:
    """Like ``apply``, plus a line-by-line breakdown of every rejected hunk."""
    opts = resolve_options(options)
    outcome = apply(content, diff_text, opts)

    details: list[LineMismatch] = []
    for rejected in outcome.result.rejected:
        for i, expected in enumerate(rejected.expected_context):
            actual = rejected.actual_context[i] if i < len(rejected.actual_context) else ""
            if expected == actual:
                continue
            similarity = calculate_similarity(expected, actual, opts)
            details.append(LineMismatch(
                hunk_index=rejected.hunk_index,
                line_number=i + 1,
                expected=expected,
                actual=actual,
                similarity=similarity,
                suggestion=suggest_fix(similarity, expected, actual),
            ))

    return DetailedApplyOutcome(
        content=outcome.content,
        result=outcome.result,
        detailed_errors=details,
    )


def check(
    content: str,
    diff_text: str,
    options: DiffOptions | None = None,
) -> ApplicabilityReport:
    """Report whether ``diff_text`` is well-formed and applies to ``content``.

    Nothing is modified; the diff is applied to a throwaway copy.
    """
    validation = validate(diff_text)
    if not validation.valid:
        return ApplicabilityReport(valid=False, applicable=False, warnings=validation.errors)

    file_diff = parse(diff_text)[0]
    outcome = apply_parsed(content, file_diff, options)
    conflicts = [
        ConflictInfo(
            hunk_index=r.hunk_index,
            line=file_diff.hunks[r.hunk_index].old_start,
            description=r.reason,
        )
        for r in outcome.result.rejected
    ]
    return ApplicabilityReport(
        valid=True,
        applicable=outcome.result.success,
        conflicts=conflicts,
        warnings=outcome.result.warnings,
    )


__all__ = [
    "BOM",
    "MAX_FUZZY_RADIUS",
    "HunkOutcome",
    "normalize_line",
    "exact_match",
    "calculate_similarity",
    "fuzzy_match",
    "candidate_offsets",
    "declared_start",
    "apply_hunk",
    "apply_parsed",
    "apply",
    "suggest_fix",
    "apply_with_detailed_errors",
    "check",
]
