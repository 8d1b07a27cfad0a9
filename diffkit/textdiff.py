"""Generic sequence diff primitive backed by google-diff-match-patch.

A fresh ``diff_match_patch`` is built for every call from the caller's
options, so concurrent callers never share tunables.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from diff_match_patch import diff_match_patch

from diffkit.config import DiffOptions, resolve_options

DiffOp = Literal["equal", "insert", "delete"]

_OPS: dict[int, DiffOp] = {
    diff_match_patch.DIFF_EQUAL: "equal",
    diff_match_patch.DIFF_INSERT: "insert",
    diff_match_patch.DIFF_DELETE: "delete",
}


@dataclass(frozen=True)
class TextDiff:
    op: DiffOp
    text: str


@dataclass(frozen=True)
class LineRun:
    """A run of whole lines sharing one diff operation."""

    op: DiffOp
    lines: tuple[str, ...]


def make_matcher(options: DiffOptions | None = None) -> diff_match_patch:
    """Return a diff_match_patch configured from ``options``."""

    opts = resolve_options(options)
    dmp = diff_match_patch()
    dmp.Diff_Timeout = opts.diff_timeout
    dmp.Diff_EditCost = opts.diff_edit_cost
    dmp.Match_Threshold = opts.match_threshold
    dmp.Match_Distance = opts.match_distance
    dmp.Patch_DeleteThreshold = opts.patch_delete_threshold
    dmp.Patch_Margin = opts.patch_margin
    return dmp


def diff_chars(a: str, b: str, options: DiffOptions | None = None) -> list[TextDiff]:
    """Character-level diff of ``a`` against ``b``."""

    dmp = make_matcher(options)
    return [TextDiff(_OPS[op], text) for op, text in dmp.diff_main(a, b, False)]


def equal_chars(diffs: list[TextDiff]) -> int:
    """Number of characters the two sides have in common."""
    return sum(len(d.text) for d in diffs if d.op == "equal")


def lines_to_chars(
    old_lines: list[str],
    new_lines: list[str],
) -> tuple[str, str, list[str]]:
    """Encode each distinct line as a single code point.

    The first line seen gets code point 0, the next new line 1, and so on.

    Returns:
        (encoded old, encoded new, table mapping code point -> line)
    """
    table: list[str] = []
    index: dict[str, int] = {}

    def encode(lines: list[str]) -> str:
        chars = []
        for line in lines:
            code = index.get(line)
            if code is None:
                code = len(table)
                index[line] = code
                table.append(line)
            chars.append(chr(code))
        return "".join(chars)

    return encode(old_lines), encode(new_lines), table


def diff_lines(
    old_lines: list[str],
    new_lines: list[str],
    options: DiffOptions | None = None,
) -> list[LineRun]:
    """Line-level diff built on ``diff_chars`` over encoded lines."""

    old_chars, new_chars, table = lines_to_chars(old_lines, new_lines)
    runs = []
    for diff in diff_chars(old_chars, new_chars, options):
        runs.append(LineRun(diff.op, tuple(table[ord(ch)] for ch in diff.text)))
    return runs


__all__ = [
    "DiffOp",
    "TextDiff",
    "LineRun",
    "make_matcher",
    "diff_chars",
    "equal_chars",
    "lines_to_chars",
    "diff_lines",
]
