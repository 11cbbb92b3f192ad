#!/usr/bin/env python3
"""Unit tests for bounded diff collection."""

from unittest.mock import Mock

import pytest

from securereview.budget import ReviewBudget, TimeBudgetExceeded
from securereview.config import parse_extensions
from securereview.constants import DEFAULT_RISKY_EXTENSIONS
from securereview.diff_collector import (
    STOP_EXHAUSTED,
    STOP_FILE_CAP,
    STOP_LINE_CAP,
    DiffLimits,
    collect_changed_files,
    count_lines,
    has_allowed_extension,
    is_reviewable,
    reduce_patch,
    trim_patch_lines,
)

EXTENSIONS = parse_extensions(DEFAULT_RISKY_EXTENSIONS)


class FakeGitHubClient:
    """Serves pre-built pages of the PR file listing."""

    def __init__(self, pages, excluded=()):
        self.pages = pages
        self.excluded = set(excluded)
        self.requested_pages = []

    def list_pr_files(self, repo_name, pr_number, page=1, per_page=100):
        self.requested_pages.append(page)
        if page > len(self.pages):
            return []
        return self.pages[page - 1]

    def is_excluded(self, filepath):
        return filepath in self.excluded


def _file(name, patch, status="modified", additions=1, deletions=0):
    return {"filename": name, "status": status, "additions": additions, "deletions": deletions, "patch": patch}


def _patch_with_lines(n):
    """Hunk header plus n - 1 added lines: n lines after reduction."""
    return "\n".join(["@@ -0,0 +1,%d @@" % (n - 1)] + [f"+line {i}" for i in range(n - 1)])


def _limits(files=30, lines=1200, per_file=300):
    return DiffLimits(max_files=files, max_total_lines=lines, max_lines_per_file=per_file, extensions=EXTENSIONS)


def _collect(pages, limits=None, budget=None, excluded=()):
    client = FakeGitHubClient(pages, excluded)
    result = collect_changed_files(client, "owner/repo", 7, limits or _limits(), budget or ReviewBudget.start(3600))
    return client, result


class TestPatchHelpers:
    def test_reduce_patch_drops_context_lines(self):
        patch = "@@ -1,3 +1,3 @@\n context\n-old\n+new\n\\ No newline at end of file"

        assert reduce_patch(patch) == "@@ -1,3 +1,3 @@\n-old\n+new"

    def test_reduce_patch_only_context_is_blank(self):
        assert reduce_patch(" a\n b\n").strip() == ""

    def test_count_lines_of_empty_patch_is_zero(self):
        assert count_lines("") == 0
        assert count_lines("+a\n-b") == 2

    def test_trim_within_limit_is_unchanged(self):
        patch = "@@ -1 +1 @@\n+a\n-b"
        assert trim_patch_lines(patch, 3) is patch

    def test_trim_keeps_header_and_counts_it(self):
        patch = _patch_with_lines(10)

        trimmed = trim_patch_lines(patch, 4)

        lines = trimmed.split("\n")
        assert len(lines) == 4
        assert lines[0].startswith("@@")
        assert lines[1:] == ["+line 0", "+line 1", "+line 2"]

    def test_trim_without_header_is_plain_head(self):
        assert trim_patch_lines("+a\n+b\n+c", 2) == "+a\n+b"

    def test_trim_to_one_line_keeps_only_header(self):
        assert trim_patch_lines(_patch_with_lines(5), 1) == "@@ -0,0 +1,4 @@"

    def test_extension_matching_is_case_insensitive(self):
        assert has_allowed_extension("src/App.PY", EXTENSIONS)
        assert has_allowed_extension("infra/main.tf", EXTENSIONS)
        assert not has_allowed_extension("README.md", EXTENSIONS)
        assert not has_allowed_extension("archive.tar.gz", EXTENSIONS)

    def test_extension_uses_final_dot(self):
        assert has_allowed_extension("config.local.yaml", EXTENSIONS)
        assert not has_allowed_extension("script.py.bak", EXTENSIONS)

    def test_is_reviewable(self):
        assert is_reviewable(_file("a.py", "+x"))
        assert not is_reviewable(_file("a.py", "+x", status="removed"))
        assert not is_reviewable({"filename": "logo.png", "status": "added"})
        assert not is_reviewable(_file("a.py", None))


class TestCollectChangedFiles:
    def test_single_modified_file(self):
        patch = (
            "@@ -1,8 +1,9 @@\n"
            " ctx 1\n"
            " ctx 2\n"
            "+added 1\n"
            " ctx 3\n"
            "-removed 1\n"
            "+added 2\n"
            " ctx 4\n"
            " ctx 5"
        )
        _, result = _collect([[_file("app.py", patch, additions=2, deletions=1)]])

        assert len(result.files) == 1
        collected = result.files[0]
        body = collected.patch.split("\n")
        assert body[0] == "@@ -1,8 +1,9 @@"
        content = [line for line in body if not line.startswith("@@")]
        assert len(content) == 3
        assert len([line for line in content if line.startswith("+")]) == 2
        assert len([line for line in content if line.startswith("-")]) == 1
        assert result.total_lines == 4
        assert collected.truncated is False
        assert result.stop_reason == STOP_EXHAUSTED

    def test_line_cap_binds_before_file_cap(self):
        files = [_file(f"src/f{i}.py", _patch_with_lines(50)) for i in range(40)]

        _, result = _collect([files], _limits(files=30, lines=1200, per_file=300))

        assert len(result.files) == 24
        assert result.total_lines == 1200
        assert result.stop_reason == STOP_LINE_CAP

    def test_file_cap_stops_collection(self):
        files = [_file(f"src/f{i}.py", _patch_with_lines(50)) for i in range(40)]

        _, result = _collect([files], _limits(files=30, lines=5000, per_file=300))

        assert len(result.files) == 30
        assert result.total_lines == 1500
        assert result.stop_reason == STOP_FILE_CAP
        assert [f.filename for f in result.files] == [f"src/f{i}.py" for i in range(30)]

    def test_ineligible_files_are_skipped(self):
        files = [
            _file("deleted.py", "-gone", status="removed"),
            {"filename": "logo.png", "status": "added", "additions": 0, "deletions": 0},
            _file("docs/guide.md", "+text"),
            _file("context_only.py", " unchanged\n unchanged"),
            _file("node_modules/lib/index.js", "+x"),
            _file("kept.go", "@@ -1 +1 @@\n+ok"),
        ]

        _, result = _collect([files], excluded={"node_modules/lib/index.js"})

        assert [f.filename for f in result.files] == ["kept.go"]

    def test_per_file_cap_truncates_head(self):
        _, result = _collect([[_file("big.ts", _patch_with_lines(400))]], _limits(per_file=300))

        collected = result.files[0]
        assert collected.line_count == 300
        assert collected.truncated is True
        assert collected.patch.split("\n")[1] == "+line 0"

    def test_last_file_fills_remaining_budget(self):
        files = [
            _file("first.py", _patch_with_lines(6)),
            _file("second.py", _patch_with_lines(8)),
            _file("third.py", _patch_with_lines(2)),
        ]

        _, result = _collect([files], _limits(lines=10))

        assert [f.filename for f in result.files] == ["first.py", "second.py"]
        assert result.files[0].truncated is False
        assert result.files[1].line_count == 4
        assert result.files[1].truncated is True
        assert result.total_lines == 10
        assert result.stop_reason == STOP_LINE_CAP

    def test_pagination_continues_on_full_pages(self):
        first_page = [_file(f"img{i}.png", "+binary?") for i in range(100)]
        second_page = [_file("late.py", "+found")]

        client, result = _collect([first_page, second_page])

        assert client.requested_pages == [1, 2]
        assert [f.filename for f in result.files] == ["late.py"]

    def test_short_page_ends_pagination(self):
        client, _ = _collect([[_file("a.py", "+a")], [_file("b.py", "+b")]])

        assert client.requested_pages == [1]

    def test_empty_listing(self):
        client, result = _collect([])

        assert result.files == []
        assert result.total_lines == 0
        assert client.requested_pages == [1]

    def test_expired_budget_stops_before_listing(self):
        client = FakeGitHubClient([[_file("a.py", "+a")]])

        with pytest.raises(TimeBudgetExceeded):
            collect_changed_files(client, "owner/repo", 7, _limits(), ReviewBudget(deadline=0.0))

        assert client.requested_pages == []

    def test_budget_checked_once_per_page(self):
        pages = [[_file(f"m{i}.py", "+a") for i in range(100)], [_file("last.py", "+b")]]
        budget = Mock()

        client = FakeGitHubClient(pages)
        collect_changed_files(client, "owner/repo", 7, _limits(files=500, lines=5000), budget)

        assert client.requested_pages == [1, 2]
        assert budget.check.call_count == 2

    def test_zero_per_file_cap_keeps_no_empty_patches(self):
        _, result = _collect([[_file("a.py", _patch_with_lines(5)), _file("b.py", "+b")]], _limits(per_file=0))

        assert result.files == []
        assert result.total_lines == 0

    @pytest.mark.parametrize("max_files,max_lines,per_file", [
        (30, 1200, 300),
        (5, 37, 9),
        (100, 250, 1),
        (3, 1000, 40),
        (50, 1, 300),
        (30, 1200, 0),
    ])
    def test_caps_are_never_exceeded(self, max_files, max_lines, per_file):
        sizes = [1, 3, 17, 120, 2, 45, 300, 8, 64, 5] * 15
        pages = []
        files = [_file(f"pkg/mod{i}.py", _patch_with_lines(n)) for i, n in enumerate(sizes)]
        for start in range(0, len(files), 100):
            pages.append(files[start:start + 100])

        _, result = _collect(pages, _limits(files=max_files, lines=max_lines, per_file=per_file))

        assert len(result.files) <= max_files
        assert result.total_lines <= max_lines
        assert all(f.line_count <= per_file for f in result.files)
        assert result.total_lines == sum(f.line_count for f in result.files)
