"""Plain-text summaries of diff results for logs and tool responses."""

from __future__ import annotations

from diffkit.types import DiffResult, LineMismatch, PatchResult


def format_diff_result(
    result: DiffResult,
    preview: str | None = None,
    preview_lines: int = 20,
) -> str:
    """Summarize a single-file result, optionally with a numbered preview."""
    lines = [
        f"Diff {'Preview' if preview is not None else 'Result'}: {result.path}",
        f"Success: {result.success}",
        f"Hunks: {result.hunks_applied}/{result.hunks_total} applied",
    ]

    for applied in result.applied:
        if applied.offset or applied.fuzzy:
            note = "fuzzy" if applied.fuzzy else "exact"
            lines.append(
                f"  + Hunk {applied.hunk_index}: line {applied.start_line} "
                f"(offset {applied.offset:+d}, {note})"
            )

    if result.hunks_rejected:
        lines.append(f"Rejected: {result.hunks_rejected} hunks")
        for rejected in result.rejected:
            lines.append(f"  - Hunk {rejected.hunk_index}: {rejected.reason}")
            if rejected.suggestion:
                lines.append(f"    Suggestion: {rejected.suggestion}")

    if result.warnings:
        lines.append("Warnings:")
        lines.extend(f"  - {w}" for w in result.warnings)

    if preview is not None:
        preview_split = preview.split("\n")
        lines.append("")
        lines.append(f"Preview (first {preview_lines} lines):")
        lines.extend(f"{i + 1}: {line}" for i, line in enumerate(preview_split[:preview_lines]))
        if len(preview_split) > preview_lines:
            lines.append("... (truncated)")

    return "\n".join(lines)


def format_detailed_errors(errors: list[LineMismatch]) -> str:
    """One block per mismatched line, with similarity and a hint."""
    if not errors:
        return "No line mismatches"

    blocks = []
    for err in errors:
        blocks.append("\n".join([
            f"Hunk {err.hunk_index}, line {err.line_number} ({err.similarity:.0%} similar)",
            f"  expected: {err.expected!r}",
            f"  actual:   {err.actual!r}",
            f"  {err.suggestion}",
        ]))
    return "\n".join(blocks)


def format_patch_result(result: PatchResult) -> str:
    """Summarize a multi-file patch result."""
    lines = [
        f"Patch Result: {result.files_succeeded}/{result.files_total} files succeeded",
        f"Success: {result.success}",
        f"Files processed: {result.files_processed}",
        f"Files failed: {result.files_failed}",
    ]
    if result.rolled_back:
        lines.append("Rolled back: all files restored")

    lines.append("")
    lines.append("File Results:")
    for path, file_result in result.results.items():
        lines.append(f"  {path}: {'SUCCESS' if file_result.success else 'FAILED'}")
        lines.append(f"    Hunks: {file_result.hunks_applied}/{file_result.hunks_total}")
        if file_result.warnings:
            lines.append(f"    Warnings: {', '.join(file_result.warnings)}")

    return "\n".join(lines)


__all__ = ["format_diff_result", "format_detailed_errors", "format_patch_result"]
