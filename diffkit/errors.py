"""Structural failures raised by the diff engine.

Per-hunk rejections are never raised; they are reported in ``DiffResult``.
"""

from __future__ import annotations

from enum import Enum


class DiffErrorCode(str, Enum):
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    INVALID_DIFF_FORMAT = "INVALID_DIFF_FORMAT"
    CONTEXT_MISMATCH = "CONTEXT_MISMATCH"
    PERMISSION_DENIED = "PERMISSION_DENIED"


class DiffError(Exception):
    """A diff could not be processed at all.

    Args:
        code: Machine-readable failure kind
        message: Human-readable explanation
        file: Path the failure relates to, if known
        line: 1-based line in the diff text, if known
        hunk: Hunk index, if known
    """

    def __init__(
        self,
        code: DiffErrorCode,
        message: str,
        file: str | None = None,
        line: int | None = None,
        hunk: int | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.file = file
        self.line = line
        self.hunk = hunk

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> dict:
        """JSON-friendly view for callers that transport errors."""
        data: dict = {"code": self.code.value, "message": self.message}
        if self.file is not None:
            data["file"] = self.file
        if self.line is not None:
            data["line"] = self.line
        if self.hunk is not None:
            data["hunk"] = self.hunk
        return data


__all__ = ["DiffErrorCode", "DiffError"]
