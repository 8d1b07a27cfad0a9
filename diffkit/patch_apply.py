"""Apply a combined patch to several in-memory buffers.

Each file's diff goes through the single-file engine. Callers supply the
current contents keyed by path and persist whatever comes back.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from diffkit.applier import apply
from diffkit.config import DiffOptions
from diffkit.errors import DiffError, DiffErrorCode
from diffkit.parser import split_patch
from diffkit.types import DiffResult, PatchFile, PatchResult

logger = logging.getLogger(__name__)


@dataclass
class PatchApplier:
    """Multi-file patch applier with all-or-nothing semantics by default."""

    options: DiffOptions = field(default_factory=DiffOptions)
    atomic: bool = True
    continue_on_error: bool = False

    def _resolve_files(self, patch: str | Sequence[PatchFile]) -> list[PatchFile]:
        files = split_patch(patch) if isinstance(patch, str) else list(patch)
        # Stable, so equal priorities keep patch order
        return sorted(files, key=lambda f: f.priority)

    def _failed_result(self, path: str, message: str) -> DiffResult:
        return DiffResult(success=False, path=path, warnings=[message])

    def apply_patch(
        self,
        files: Mapping[str, str],
        patch: str | Sequence[PatchFile],
    ) -> PatchResult:
        """Apply ``patch`` to ``files``.

        Args:
            files: Current content keyed by path
            patch: Combined patch text or pre-split PatchFile entries

        Returns:
            PatchResult with per-file results and the resulting contents.

        Raises:
            DiffError: A file is missing or its diff is unusable, and
                ``continue_on_error`` is off.
        """
        patch_files = self._resolve_files(patch)
        if not patch_files:
            raise DiffError(DiffErrorCode.INVALID_DIFF_FORMAT, "No file diffs found in patch")

        contents = dict(files)
        results: dict[str, DiffResult] = {}
        processed = succeeded = failed = 0

        for patch_file in patch_files:
            path = patch_file.path
            try:
                if path not in contents:
                    raise DiffError(
                        DiffErrorCode.FILE_NOT_FOUND,
                        f"File not found: {path}",
                        file=path,
                    )
                outcome = apply(contents[path], patch_file.diff, self.options)
            except DiffError as exc:
                failed += 1
                if not self.continue_on_error:
                    logger.warning("Patch aborted at %s: %s", path, exc)
                    raise
                results[path] = self._failed_result(path, str(exc))
                processed += 1
                continue

            result = outcome.result.model_copy(update={"path": path})
            results[path] = result
            contents[path] = outcome.content
            if result.success:
                succeeded += 1
            else:
                failed += 1
            processed += 1

        rolled_back = False
        if self.atomic and failed:
            logger.warning("Rolling back %d file(s) after %d failure(s)", len(patch_files), failed)
            contents = dict(files)
            rolled_back = True

        return PatchResult(
            success=failed == 0,
            files_total=len(patch_files),
            files_processed=processed,
            files_succeeded=succeeded,
            files_failed=failed,
            results=results,
            contents=contents,
            rolled_back=rolled_back,
        )


def apply_patch(
    files: Mapping[str, str],
    patch: str | Sequence[PatchFile],
    options: DiffOptions | None = None,
    atomic: bool = True,
    continue_on_error: bool = False,
) -> PatchResult:
    """Convenience function to apply a combined patch.

    Args:
        files: Current content keyed by path
        patch: Combined patch text or PatchFile entries
        options: Matching options
        atomic: Restore every input if any file fails
        continue_on_error: Record missing/unusable files instead of raising

    Returns:
        PatchResult
    """
    applier = PatchApplier(
        options=options or DiffOptions(),
        atomic=atomic,
        continue_on_error=continue_on_error,
    )
    return applier.apply_patch(files, patch)


__all__ = ["PatchApplier", "apply_patch"]
