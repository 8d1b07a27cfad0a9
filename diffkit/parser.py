"""Unified diff parsing, validation, and generation."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from diffkit.config import DiffOptions, resolve_options
from diffkit.errors import DiffError, DiffErrorCode
from diffkit.textdiff import diff_lines
from diffkit.types import DiffLine, DiffValidation, Hunk, ParsedDiff, PatchFile

logger = logging.getLogger(__name__)

HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")
GIT_HEADER_RE = re.compile(r"^diff --git a/(.*) b/(.*)$")
NO_NEWLINE_MARKER = "\\"


@dataclass
class _HunkBuilder:
    """Mutable hunk under construction; frozen into a Hunk when done."""

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    section: str = ""
    lines: list[DiffLine] = field(default_factory=list)
    remaining_old: int = 0
    remaining_new: int = 0
    next_old: int = 0
    next_new: int = 0

    def add(self, kind: str, content: str) -> None:
        if kind == "context":
            line = DiffLine(
                kind="context",
                content=content,
                old_line_number=self.next_old,
                new_line_number=self.next_new,
            )
            self.next_old += 1
            self.next_new += 1
            self.remaining_old -= 1
            self.remaining_new -= 1
        elif kind == "remove":
            line = DiffLine(kind="remove", content=content, old_line_number=self.next_old)
            self.next_old += 1
            self.remaining_old -= 1
        else:
            line = DiffLine(kind="add", content=content, new_line_number=self.next_new)
            self.next_new += 1
            self.remaining_new -= 1
        self.lines.append(line)

    def build(self) -> Hunk:
        return Hunk(
            old_start=self.old_start,
            old_lines=self.old_lines,
            new_start=self.new_start,
            new_lines=self.new_lines,
            section=self.section,
            lines=tuple(self.lines),
        )


@dataclass
class _FileBuilder:
    old_path: str
    new_path: str
    hunks: list[_HunkBuilder] = field(default_factory=list)

    def build(self) -> ParsedDiff:
        return ParsedDiff(
            old_path=self.old_path,
            new_path=self.new_path,
            hunks=tuple(h.build() for h in self.hunks),
        )


def extract_path(header_value: str) -> str:
    """Strip the a/ or b/ prefix and any tab-separated timestamp."""
    path = header_value.split("\t", 1)[0].rstrip()
    if path.startswith(("a/", "b/")):
        return path[2:]
    return path


def parse_hunk_header(line: str) -> tuple[int, int, int, int, str] | None:
    """Parse ``@@ -a,b +c,d @@ section``; omitted counts default to 1."""
    match = HUNK_HEADER_RE.match(line)
    if not match:
        return None
    old_start = int(match.group(1))
    old_lines = int(match.group(2)) if match.group(2) is not None else 1
    new_start = int(match.group(3))
    new_lines = int(match.group(4)) if match.group(4) is not None else 1
    return old_start, old_lines, new_start, new_lines, match.group(5).strip()


def parse(diff_text: str) -> list[ParsedDiff]:
    """Parse unified diff text into per-file diffs.

    Args:
        diff_text: Unified diff, possibly covering several files

    Returns:
        One ParsedDiff per ``---``/``+++`` header pair; empty if none found.

    Raises:
        DiffError: A line starting with ``@@`` is not a valid hunk header.
    """
    lines = diff_text.split("\n")
    files: list[_FileBuilder] = []
    current_file: _FileBuilder | None = None
    current_hunk: _HunkBuilder | None = None

    i = 0
    while i < len(lines):
        line = lines[i]
        # A "---"/"+++" pair is body text only while both sides still expect lines
        in_body = (
            current_hunk is not None
            and current_hunk.remaining_old > 0
            and current_hunk.remaining_new > 0
        )

        if (
            line.startswith("--- ")
            and not in_body
            and i + 1 < len(lines)
            and lines[i + 1].startswith("+++ ")
        ):
            current_file = _FileBuilder(
                old_path=extract_path(line[4:]),
                new_path=extract_path(lines[i + 1][4:]),
            )
            files.append(current_file)
            current_hunk = None
            i += 2
            continue

        if line.startswith("@@"):
            header = parse_hunk_header(line)
            if header is None:
                raise DiffError(
                    DiffErrorCode.INVALID_DIFF_FORMAT,
                    f"Invalid hunk header: {line}",
                    file=current_file.new_path if current_file else None,
                    line=i + 1,
                )
            old_start, old_lines, new_start, new_lines, section = header
            current_hunk = _HunkBuilder(
                old_start=old_start,
                old_lines=old_lines,
                new_start=new_start,
                new_lines=new_lines,
                section=section,
                remaining_old=old_lines,
                remaining_new=new_lines,
                next_old=old_start,
                next_new=new_start,
            )
            # Hunks before any file header have nowhere to go
            if current_file is not None:
                current_file.hunks.append(current_hunk)
            i += 1
            continue

        if current_hunk is not None:
            if not line:
                # Editors often strip the lone space of an empty context line
                if current_hunk.remaining_old > 0 and current_hunk.remaining_new > 0:
                    current_hunk.add("context", "")
            else:
                prefix, content = line[0], line[1:]
                if prefix == " ":
                    current_hunk.add("context", content)
                elif prefix == "-":
                    current_hunk.add("remove", content)
                elif prefix == "+":
                    current_hunk.add("add", content)
                elif prefix == NO_NEWLINE_MARKER:
                    pass
        i += 1

    parsed = [f.build() for f in files]
    logger.debug(
        "Parsed %d file diff(s) with %d hunk(s)",
        len(parsed),
        sum(len(p.hunks) for p in parsed),
    )
    return parsed


def validate(diff_text: str) -> DiffValidation:
    """Check diff structure without looking at any target content."""

    errors: list[str] = []
    try:
        parsed = parse(diff_text)
    except DiffError as exc:
        return DiffValidation(valid=False, errors=[exc.message])

    if not parsed:
        errors.append("No valid diff content found")

    for file_diff in parsed:
        if not file_diff.hunks:
            errors.append(f"No hunks found for {file_diff.path}")

        for i, hunk in enumerate(file_diff.hunks):
            context = sum(1 for line in hunk.lines if line.kind == "context")
            old_found = context + hunk.removed_count
            new_found = context + hunk.added_count
            if old_found != hunk.old_lines:
                errors.append(
                    f"Hunk {i + 1}: Old line count mismatch "
                    f"(header says {hunk.old_lines}, found {old_found})"
                )
            if new_found != hunk.new_lines:
                errors.append(
                    f"Hunk {i + 1}: New line count mismatch "
                    f"(header says {hunk.new_lines}, found {new_found})"
                )

    return DiffValidation(valid=not errors, errors=errors)


def _range(start: int, count: int) -> str:
    # A zero-length range names the line before it, as GNU diff does
    return f"{start + 1 if count else start},{count}"


def create_diff(
    original: str,
    modified: str,
    old_path: str = "original",
    new_path: str = "modified",
    context_lines: int | None = None,
    options: DiffOptions | None = None,
) -> str:
    """Return a unified diff turning ``original`` into ``modified``.

    Args:
        original: Content before the change
        modified: Content after the change
        old_path: Path written on the ``---`` line (``a/`` is prepended)
        new_path: Path written on the ``+++`` line (``b/`` is prepended)
        context_lines: Lines of context around each change; defaults to
            ``options.context_lines``
        options: Diff primitive tunables

    Returns:
        Diff text. Identical inputs produce only the header pair.
    """
    opts = resolve_options(options)
    ctx = opts.context_lines if context_lines is None else max(0, context_lines)

    old_lines = original.split("\n")
    new_lines = modified.split("\n")
    runs = diff_lines(old_lines, new_lines, opts)

    hunks: list[tuple[int, int, list[str]]] = []  # (old_start, new_start, body)
    body: list[str] | None = None
    hunk_old = hunk_new = 0
    old_index = new_index = 0

    for i, run in enumerate(runs):
        count = len(run.lines)
        if run.op == "equal":
            if body is not None:
                is_last = i == len(runs) - 1
                if count <= 2 * ctx and not is_last:
                    body.extend(f" {line}" for line in run.lines)
                else:
                    body.extend(f" {line}" for line in run.lines[:ctx])
                    hunks.append((hunk_old, hunk_new, body))
                    body = None
            old_index += count
            new_index += count
            continue

        if body is None:
            lead: tuple[str, ...] = ()
            if ctx and i > 0 and runs[i - 1].op == "equal":
                lead = runs[i - 1].lines[-ctx:]
            hunk_old = old_index - len(lead)
            hunk_new = new_index - len(lead)
            body = [f" {line}" for line in lead]

        if run.op == "delete":
            body.extend(f"-{line}" for line in run.lines)
            old_index += count
        else:
            body.extend(f"+{line}" for line in run.lines)
            new_index += count

    if body is not None:
        hunks.append((hunk_old, hunk_new, body))

    out = [f"--- a/{old_path}", f"+++ b/{new_path}"]
    for old_start, new_start, hunk_body in hunks:
        old_count = sum(1 for line in hunk_body if line[0] != "+")
        new_count = sum(1 for line in hunk_body if line[0] != "-")
        out.append(f"@@ -{_range(old_start, old_count)} +{_range(new_start, new_count)} @@")
        out.extend(hunk_body)

    logger.debug("Created diff %s -> %s with %d hunk(s)", old_path, new_path, len(hunks))
    return "\n".join(out) + "\n"


def split_patch(patch_text: str) -> list[PatchFile]:
    """Split a combined patch into one PatchFile per target file.

    Uses ``diff --git`` lines when present, otherwise ``---``/``+++`` pairs.
    """
    lines = patch_text.split("\n")
    has_git_headers = any(GIT_HEADER_RE.match(line) for line in lines)

    files: list[PatchFile] = []
    current_path: str | None = None
    current: list[str] = []

    def flush() -> None:
        if current_path is not None and any(line.strip() for line in current):
            files.append(PatchFile(path=current_path, diff="\n".join(current)))

    if has_git_headers:
        for line in lines:
            match = GIT_HEADER_RE.match(line)
            if match:
                flush()
                current_path = match.group(2) or match.group(1)
                current = []
            elif current_path is not None:
                current.append(line)
        flush()
        return files

    starts = _file_header_indices(lines)
    for n, start in enumerate(starts):
        end = starts[n + 1] if n + 1 < len(starts) else len(lines)
        path = extract_path(lines[start + 1][4:])
        if path == "/dev/null":
            path = extract_path(lines[start][4:])
        files.append(PatchFile(path=path, diff="\n".join(lines[start:end])))
    return files


def _file_header_indices(lines: list[str]) -> list[int]:
    """Indices of ``---`` lines that open a file section.

    Tracks declared hunk sizes so a removed ``-- `` line followed by an added
    ``++ `` line is not mistaken for a header.
    """
    starts: list[int] = []
    remaining_old = remaining_new = 0
    i = 0
    while i < len(lines):
        line = lines[i]
        if (
            (remaining_old <= 0 or remaining_new <= 0)
            and line.startswith("--- ")
            and i + 1 < len(lines)
            and lines[i + 1].startswith("+++ ")
        ):
            starts.append(i)
            remaining_old = remaining_new = 0
            i += 2
            continue
        header = parse_hunk_header(line) if line.startswith("@@") else None
        if header is not None:
            remaining_old, remaining_new = header[1], header[3]
        elif line.startswith(" ") or (not line and remaining_old > 0 and remaining_new > 0):
            remaining_old -= 1
            remaining_new -= 1
        elif line.startswith("-"):
            remaining_old -= 1
        elif line.startswith("+"):
            remaining_new -= 1
        i += 1
    return starts


__all__ = [
    "HUNK_HEADER_RE",
    "extract_path",
    "parse_hunk_header",
    "parse",
    "validate",
    "create_diff",
    "split_patch",
]
