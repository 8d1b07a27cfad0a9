"""Tests for hunk matching and diff application."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from diffkit.applier import (
    BOM,
    SUGGEST_ENABLE_FUZZY,
    SUGGEST_RAISE_FUZZY,
    apply,
    apply_hunk,
    apply_with_detailed_errors,
    calculate_similarity,
    candidate_offsets,
    check,
    exact_match,
    fuzzy_match,
    suggest_fix,
)
from diffkit.config import DiffOptions
from diffkit.errors import DiffError, DiffErrorCode
from diffkit.parser import create_diff, parse


def make_diff(*hunks: str, path: str = "test.txt") -> str:
    return f"--- a/{path}\n+++ b/{path}\n" + "".join(hunks)


FIVE_LINES = "a\nb\nc\nd\ne"


# ─────────────────────────────────────────────────────────────
# Line comparison
# ─────────────────────────────────────────────────────────────


class TestExactMatch:
    """Test exact line matching with normalization."""

    def test_identical(self):
        assert exact_match(["x", "y"], ["x", "y"])

    def test_length_mismatch(self):
        assert not exact_match(["x", "y"], ["x"])

    def test_whitespace_sensitive_by_default(self):
        assert not exact_match(["int  x;"], ["int x;"])

    def test_ignore_whitespace(self):
        opts = DiffOptions(ignore_whitespace=True)
        assert exact_match(["  int \t x;  "], ["int x;"], opts)

    def test_ignore_case(self):
        opts = DiffOptions(ignore_case=True)
        assert exact_match(["Hello"], ["hELLO"], opts)
        assert not exact_match(["Hello"], ["hello"])


class TestSimilarity:
    """Test character-level similarity scoring."""

    def test_equal_strings(self):
        assert calculate_similarity("abc", "abc") == 1.0

    def test_empty_strings(self):
        assert calculate_similarity("", "") == 1.0

    def test_one_char_differs(self):
        assert calculate_similarity("abcd", "abce") == pytest.approx(0.75)

    def test_nothing_in_common(self):
        assert calculate_similarity("abc", "") == 0.0

    def test_normalization_applies(self):
        opts = DiffOptions(ignore_case=True, ignore_whitespace=True)
        assert calculate_similarity("  Hello   World", "hello world", opts) == 1.0

    def test_bounded(self):
        score = calculate_similarity("private int count;", "public long total;")
        assert 0.0 <= score <= 1.0


class TestFuzzyMatch:
    """Test per-line fuzzy threshold."""

    def test_above_threshold(self):
        opts = DiffOptions(fuzzy=80)
        assert fuzzy_match(["int count = 0;"], ["int count = 0,"], opts)

    def test_below_threshold(self):
        opts = DiffOptions(fuzzy=80)
        assert not fuzzy_match(["int count = 0;"], ["string name;"], opts)

    def test_every_line_must_pass(self):
        opts = DiffOptions(fuzzy=80)
        assert not fuzzy_match(["same", "int count = 0;"], ["same", "completely other"], opts)

    def test_default_threshold_is_80(self):
        # 3/4 similar lines fail the default 80% bar
        assert not fuzzy_match(["abcd"], ["abce"])

    def test_length_mismatch(self):
        assert not fuzzy_match(["a"], ["a", "b"], DiffOptions(fuzzy=50))


class TestCandidateOffsets:
    """Search order: declared, then nearest preceding, then nearest following."""

    def test_order(self):
        assert list(candidate_offsets(2)) == [0, -1, 1, -2, 2]

    def test_radius_zero(self):
        assert list(candidate_offsets(0)) == [0]


# ─────────────────────────────────────────────────────────────
# Hunk application
# ─────────────────────────────────────────────────────────────


class TestApplyHunk:
    """Test single hunk application against a line list."""

    def test_splices_in_place(self):
        hunk = parse(make_diff("@@ -2,1 +2,2 @@\n-b\n+B1\n+B2\n"))[0].hunks[0]
        lines = ["a", "b", "c"]
        outcome = apply_hunk(lines, hunk)
        assert outcome.applied
        assert lines == ["a", "B1", "B2", "c"]
        assert (outcome.lines_removed, outcome.lines_added) == (1, 2)

    def test_rejection_leaves_lines_untouched(self):
        hunk = parse(make_diff("@@ -2,1 +2,1 @@\n-zzz\n+B\n"))[0].hunks[0]
        lines = ["a", "b", "c"]
        outcome = apply_hunk(lines, hunk)
        assert not outcome.applied
        assert lines == ["a", "b", "c"]
        assert outcome.actual == ["b"]

    def test_insert_at_top(self):
        hunk = parse(make_diff("@@ -0,0 +1,1 @@\n+header\n"))[0].hunks[0]
        lines = ["a", "b"]
        assert apply_hunk(lines, hunk).applied
        assert lines == ["header", "a", "b"]

    def test_insert_after_line(self):
        hunk = parse(make_diff("@@ -2,0 +3,1 @@\n+after b\n"))[0].hunks[0]
        lines = ["a", "b", "c"]
        assert apply_hunk(lines, hunk).applied
        assert lines == ["a", "b", "after b", "c"]

    def test_hunk_past_end_rejected(self):
        hunk = parse(make_diff("@@ -3,2 +3,2 @@\n c\n-d\n+D\n"))[0].hunks[0]
        lines = ["a", "b", "c"]
        outcome = apply_hunk(lines, hunk)
        assert not outcome.applied
        assert outcome.actual == ["c"]


# ─────────────────────────────────────────────────────────────
# apply()
# ─────────────────────────────────────────────────────────────


class TestApply:
    """Test whole-diff application."""

    def test_simple_replacement(self):
        diff = make_diff("@@ -1,3 +1,3 @@\n line 1\n-line 2\n+line two\n line 3\n")
        outcome = apply("line 1\nline 2\nline 3", diff)
        assert outcome.content == "line 1\nline two\nline 3"
        assert outcome.result.success
        assert outcome.result.path == "test.txt"
        assert outcome.result.applied[0].start_line == 1

    def test_exact_match_rejection(self):
        diff = make_diff("@@ -2,1 +2,1 @@\n-different line\n+new line\n")
        original = "line 1\nline 2\nline 3"
        outcome = apply(original, diff)
        result = outcome.result
        assert not result.success
        assert result.hunks_rejected == 1
        assert result.rejected[0].reason == "Context mismatch"
        assert result.rejected[0].actual_context == ["line 2"]
        assert result.rejected[0].expected_context == ["different line"]
        assert result.rejected[0].suggestion == SUGGEST_ENABLE_FUZZY
        assert outcome.content == original

    def test_whitespace_tolerance(self):
        diff = make_diff("@@ -1,1 +1,1 @@\n-private int count = 0;\n+private int count = 1;\n")
        outcome = apply("private int   count = 0;", diff, DiffOptions(ignore_whitespace=True))
        assert outcome.result.success
        assert outcome.content == "private int count = 1;"

    def test_whitespace_rejected_without_option(self):
        diff = make_diff("@@ -1,1 +1,1 @@\n-private int count = 0;\n+private int count = 1;\n")
        assert not apply("private int   count = 0;", diff).result.success

    def test_no_op_context_only(self):
        diff = make_diff("@@ -2,3 +2,3 @@\n b\n c\n d\n")
        outcome = apply(FIVE_LINES, diff)
        assert outcome.content == FIVE_LINES
        assert outcome.result.hunks_applied == outcome.result.hunks_total == 1
        assert outcome.result.hunks_rejected == 0

    def test_bottom_up_multi_hunk(self):
        diff = make_diff(
            "@@ -1,2 +1,3 @@\n a\n-b\n+b1\n+b2\n",
            "@@ -3,2 +4,1 @@\n c\n-d\n",
        )
        outcome = apply(FIVE_LINES, diff)
        assert outcome.result.hunks_applied == 2
        assert outcome.result.hunks_rejected == 0
        assert outcome.content == "a\nb1\nb2\nc\ne"
        assert [r.hunk_index for r in outcome.result.applied] == [0, 1]
        assert [r.start_line for r in outcome.result.applied] == [1, 3]

    def test_hunk_index_is_parsed_order(self):
        diff = make_diff(
            "@@ -1,1 +1,1 @@\n-nope\n+A\n",
            "@@ -4,1 +4,1 @@\n-d\n+D\n",
        )
        result = apply(FIVE_LINES, diff).result
        assert [r.hunk_index for r in result.rejected] == [0]
        assert [r.hunk_index for r in result.applied] == [1]
        assert result.hunks_applied + result.hunks_rejected == result.hunks_total

    def test_bom_preserved_when_changed(self):
        diff = make_diff("@@ -1,1 +1,1 @@\n-line 1\n+LINE 1\n")
        outcome = apply(BOM + "line 1\nline 2", diff)
        assert outcome.content == BOM + "LINE 1\nline 2"

    def test_bom_preserved_when_rejected(self):
        diff = make_diff("@@ -1,1 +1,1 @@\n-other\n+LINE 1\n")
        outcome = apply(BOM + "line 1", diff)
        assert outcome.content.startswith(BOM)
        assert outcome.result.rejected[0].actual_context == ["line 1"]

    def test_bom_not_matched_as_content(self):
        # A hunk inserting at the top goes after the BOM
        diff = make_diff("@@ -0,0 +1,1 @@\n+first\n")
        assert apply(BOM + "x", diff).content == BOM + "first\nx"

    def test_carriage_returns_are_content(self):
        diff = make_diff("@@ -1,1 +1,1 @@\n-a\n+b\n")
        assert not apply("a\r\nc", diff).result.success
        assert apply("a\r\nc", diff, DiffOptions(ignore_whitespace=True)).result.success

    def test_only_first_file_applied(self):
        diff = make_diff("@@ -1,1 +1,1 @@\n-a\n+A\n", path="one.txt") + make_diff(
            "@@ -1,1 +1,1 @@\n-b\n+B\n", path="two.txt"
        )
        outcome = apply("a\nb", diff)
        assert outcome.content == "A\nb"
        assert outcome.result.path == "one.txt"

    def test_invalid_diff_raises(self):
        with pytest.raises(DiffError) as exc_info:
            apply("content", "not a diff")
        assert exc_info.value.code == DiffErrorCode.INVALID_DIFF_FORMAT
        assert "No valid diff content found" in str(exc_info.value)

    def test_bad_hunk_header_raises(self):
        with pytest.raises(DiffError):
            apply("content", "--- a/f\n+++ b/f\n@@ -1,q +1 @@\n")

    def test_header_only_diff_is_noop(self):
        outcome = apply("x\ny", "--- a/f\n+++ b/f\n")
        assert outcome.content == "x\ny"
        assert outcome.result.success
        assert outcome.result.hunks_total == 0

    def test_stop_on_error_skips_remaining(self):
        diff = make_diff(
            "@@ -1,1 +1,1 @@\n-a\n+A\n",
            "@@ -4,1 +4,1 @@\n-nope\n+D\n",
        )
        outcome = apply(FIVE_LINES, diff, DiffOptions(stop_on_error=True))
        result = outcome.result
        assert outcome.content == FIVE_LINES
        assert result.hunks_applied == 0
        assert result.hunks_rejected == 2
        assert result.rejected[0].reason == "Skipped after earlier rejection"
        assert result.rejected[1].reason == "Context mismatch"

    def test_result_is_json_serializable(self):
        diff = make_diff("@@ -2,1 +2,1 @@\n-zzz\n+B\n")
        payload = apply(FIVE_LINES, diff).result.model_dump()
        assert payload["success"] is False
        assert payload["rejected"][0]["hunk_index"] == 0


class TestFuzzyApply:
    """Test fuzzy position search."""

    DRIFTED = "\n".join([
        "one", "two", "three", "four", "five",
        "alpha beta gamma", "delta epsilon zeta",
        "eight", "nine", "ten",
    ])
    DIFF = make_diff(
        "@@ -3,2 +3,2 @@\n alpha beta gamma\n-delta epsilon zeta\n+DELTA EPSILON ZETA\n"
    )

    def test_drifted_hunk_rejected_without_fuzzy(self):
        result = apply(self.DRIFTED, self.DIFF).result
        assert not result.success
        assert result.rejected[0].actual_context == ["three", "four"]

    def test_drifted_hunk_found_with_fuzzy(self):
        outcome = apply(self.DRIFTED, self.DIFF, DiffOptions(fuzzy=80))
        result = outcome.result
        assert result.success
        assert result.applied[0].start_line == 6
        assert result.applied[0].offset == 3
        assert result.applied[0].fuzzy
        assert result.warnings == ["1 hunk(s) applied with fuzzy matching"]
        assert "DELTA EPSILON ZETA" in outcome.content.split("\n")

    def test_exact_hit_in_fuzzy_mode_not_flagged(self):
        diff = make_diff("@@ -2,1 +2,1 @@\n-b\n+B\n")
        result = apply(FIVE_LINES, diff, DiffOptions(fuzzy=80)).result
        assert result.success
        assert not result.applied[0].fuzzy
        assert result.warnings == []

    def test_near_equal_line_accepted_in_place(self):
        diff = make_diff("@@ -1,1 +1,1 @@\n-private int count = 0;\n+private int count = 1;\n")
        result = apply("private int count = 0; ", diff, DiffOptions(fuzzy=80)).result
        assert result.success
        assert result.applied[0].offset == 0
        assert result.applied[0].fuzzy

    def test_prefers_nearest_preceding_match(self):
        content = "block line\nx1\nx2\nx3\nblock line"
        diff = make_diff("@@ -3,1 +3,1 @@\n-block line\n+replaced\n")
        outcome = apply(content, diff, DiffOptions(fuzzy=80))
        assert outcome.content == "replaced\nx1\nx2\nx3\nblock line"
        assert outcome.result.applied[0].offset == -2

    def test_rejection_suggestion_in_fuzzy_mode(self):
        diff = make_diff("@@ -1,1 +1,1 @@\n-nothing like this\n+x\n")
        result = apply(FIVE_LINES, diff, DiffOptions(fuzzy=90)).result
        assert result.rejected[0].suggestion == SUGGEST_RAISE_FUZZY

    def _far_content(self, target_index: int) -> str:
        lines = [f"filler {i}" for i in range(200)]
        lines[target_index] = "TARGET BLOCK"
        return "\n".join(lines)

    def test_radius_capped_at_100(self):
        content = self._far_content(160)
        diff = make_diff("@@ -11,1 +11,1 @@\n-TARGET BLOCK\n+DONE\n")
        result = apply(content, diff, DiffOptions(fuzzy=100)).result
        assert not result.success

    def test_within_radius_found(self):
        content = self._far_content(60)
        diff = make_diff("@@ -11,1 +11,1 @@\n-TARGET BLOCK\n+DONE\n")
        outcome = apply(content, diff, DiffOptions(fuzzy=100))
        assert outcome.result.success
        assert outcome.result.applied[0].offset == 50
        assert outcome.content.split("\n")[60] == "DONE"

    def test_hunk_declared_past_end_not_pulled_back(self):
        content = "\n".join(f"line {i}" for i in range(1, 11))
        diff = make_diff("@@ -200,2 +200,2 @@\n line 5\n-line 6\n+LINE 6\n")
        outcome = apply(content, diff, DiffOptions(fuzzy=100))
        assert outcome.content == content
        assert outcome.result.hunks_applied == 0
        assert outcome.result.hunks_rejected == 1
        assert outcome.result.rejected[0].actual_context == []

    def test_hunk_declared_past_end_rejected_without_fuzzy(self):
        content = "\n".join(f"line {i}" for i in range(1, 11))
        diff = make_diff("@@ -50,0 +51,1 @@\n+tail\n")
        outcome = apply(content, diff)
        assert outcome.content == content
        assert not outcome.result.success

    def test_fuzzy_zero_means_exact(self):
        result = apply(self.DRIFTED, self.DIFF, DiffOptions(fuzzy=0)).result
        assert not result.success
        assert result.rejected[0].suggestion == SUGGEST_ENABLE_FUZZY


# ─────────────────────────────────────────────────────────────
# Detailed errors
# ─────────────────────────────────────────────────────────────


class TestDetailedErrors:
    """Test line-level diagnostics for rejected hunks."""

    def test_no_errors_when_applied(self):
        diff = make_diff("@@ -2,1 +2,1 @@\n-b\n+B\n")
        outcome = apply_with_detailed_errors(FIVE_LINES, diff)
        assert outcome.detailed_errors == []
        assert outcome.content == "a\nB\nc\nd\ne"

    def test_only_differing_lines_reported(self):
        diff = make_diff("@@ -1,3 +1,3 @@\n line 1\n-line 2\n+new\n line 3\n")
        outcome = apply_with_detailed_errors("line 1\n  line 2\nline 3", diff)
        errors = outcome.detailed_errors
        assert len(errors) == 1
        assert errors[0].hunk_index == 0
        assert errors[0].line_number == 2
        assert errors[0].expected == "line 2"
        assert errors[0].actual == "  line 2"
        assert errors[0].similarity == pytest.approx(0.75)
        assert "whitespace/indentation" in errors[0].suggestion

    def test_missing_actual_lines_treated_as_empty(self):
        diff = make_diff("@@ -2,2 +2,1 @@\n-b\n-extra\n+B\n")
        errors = apply_with_detailed_errors("a\nb", diff).detailed_errors
        # Line 1 matches; only the missing second line is reported
        assert len(errors) == 1
        assert errors[0].actual == ""
        assert errors[0].similarity == 0.0
        assert "significantly different" in errors[0].suggestion

    def test_never_raises_for_rejection(self):
        diff = make_diff("@@ -1,1 +1,1 @@\n-zzz\n+y\n")
        outcome = apply_with_detailed_errors("a", diff)
        assert not outcome.result.success


class TestSuggestFix:
    """Test suggestion buckets."""

    def test_very_similar(self):
        assert "very similar" in suggest_fix(0.95, "int count = 0;", "int count = 0,")

    def test_whitespace_only(self):
        assert "whitespace/indentation" in suggest_fix(0.75, "line 2", "  line 2")

    def test_case_only(self):
        assert "only in case" in suggest_fix(0.77, "Line Two Here", "line two here")

    def test_moderate(self):
        assert "fuzzy=80" in suggest_fix(0.75, "count = 1", "count = 2")

    def test_some(self):
        assert "fuzzy=60" in suggest_fix(0.6, "abc", "abd")

    def test_different(self):
        assert "Verify" in suggest_fix(0.2, "abc", "xyz")


# ─────────────────────────────────────────────────────────────
# check()
# ─────────────────────────────────────────────────────────────


class TestCheck:
    """Test applicability reports."""

    def test_applicable(self):
        report = check(FIVE_LINES, make_diff("@@ -2,1 +2,1 @@\n-b\n+B\n"))
        assert report.valid
        assert report.applicable
        assert report.conflicts == []

    def test_conflict_reported(self):
        report = check(FIVE_LINES, make_diff("@@ -4,1 +4,1 @@\n-nope\n+D\n"))
        assert report.valid
        assert not report.applicable
        assert report.conflicts[0].hunk_index == 0
        assert report.conflicts[0].line == 4
        assert report.conflicts[0].description == "Context mismatch"

    def test_malformed(self):
        report = check(FIVE_LINES, "garbage")
        assert not report.valid
        assert not report.applicable
        assert report.warnings == ["No valid diff content found"]


# ─────────────────────────────────────────────────────────────
# Concurrency
# ─────────────────────────────────────────────────────────────


class TestConcurrentUse:
    """Calls with different options must not interfere."""

    def test_parallel_calls_with_different_options(self):
        lines = [f"{chr(97 + i % 26) * 6} {i * 7919 % 1000:03d}" for i in range(50)]
        original = "\n".join(lines)
        drifted = "inserted\n" * 5 + original
        modified = original.replace(lines[20], "changed line")
        diff = create_diff(original, modified)

        def run(fuzzy):
            return apply(drifted, diff, DiffOptions(fuzzy=fuzzy)).result.success

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(run, [None, 80] * 20))

        assert results == [False, True] * 20
