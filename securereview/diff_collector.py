"""Bounded collection of changed-file hunks for review.

Walks the pull request file listing page by page and keeps only the parts of
each patch that matter for a review (hunk headers, added and removed lines).
Three caps bound the result: the number of files, the lines per file and the
total lines across all files. The review budget is checked before every page
request.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List

from securereview.budget import ReviewBudget
from securereview.constants import GITHUB_PAGE_SIZE
from securereview.logger import get_logger

logger = get_logger(__name__)

STOP_EXHAUSTED = "exhausted"
STOP_FILE_CAP = "file_cap"
STOP_LINE_CAP = "line_cap"


@dataclass(frozen=True)
class DiffLimits:
    """Caps applied while collecting diffs."""

    max_files: int
    max_total_lines: int
    max_lines_per_file: int
    extensions: FrozenSet[str]


@dataclass(frozen=True)
class CollectedFile:
    """A changed file retained for review with its reduced patch."""

    filename: str
    status: str
    additions: int
    deletions: int
    patch: str
    truncated: bool = False

    @property
    def line_count(self) -> int:
        return count_lines(self.patch)


@dataclass
class DiffCollection:
    files: List[CollectedFile] = field(default_factory=list)
    total_lines: int = 0
    stop_reason: str = STOP_EXHAUSTED


def count_lines(patch: str) -> int:
    if not patch:
        return 0
    return len(patch.split("\n"))


def has_allowed_extension(filename: str, extensions: FrozenSet[str]) -> bool:
    """Check the text after the final '.' against the allow-list (case-insensitive)."""
    ext = filename.lower().split(".")[-1]
    return ext in extensions


def is_reviewable(file_data: Dict[str, Any]) -> bool:
    """Removed files and files without a patch (binary or oversized) are skipped."""
    if file_data.get("status") == "removed":
        return False
    return bool(file_data.get("patch"))


def reduce_patch(patch: str) -> str:
    """Keep hunk headers plus added and removed lines; drop context lines."""
    kept = [
        line for line in patch.split("\n")
        if line.startswith("@@") or line.startswith("+") or line.startswith("-")
    ]
    return "\n".join(kept)


def trim_patch_lines(patch: str, limit: int) -> str:
    """Head-truncate a patch to at most ``limit`` lines.

    A leading hunk header stays the first line and counts toward the limit.
    """
    lines = patch.split("\n")
    if len(lines) <= limit:
        return patch
    if limit <= 0:
        return ""

    if lines[0].startswith("@@"):
        header, body = lines[0], lines[1:]
        return "\n".join([header] + body[:limit - 1])
    return "\n".join(lines[:limit])


def collect_changed_files(
    github_client: Any,
    repo_name: str,
    pr_number: int,
    limits: DiffLimits,
    budget: ReviewBudget,
) -> DiffCollection:
    """Collect reviewable file patches for a pull request.

    Args:
        github_client: Client exposing list_pr_files() and is_excluded()
        repo_name: Repository name in format "owner/repo"
        pr_number: Pull request number
        limits: File, per-file line and aggregate line caps plus the extension allow-list
        budget: Review budget checked before each page request

    Returns:
        DiffCollection with files in listing order, the realized line total
        and the reason collection stopped
    """
    collection = DiffCollection()
    if limits.max_files <= 0 or limits.max_total_lines <= 0:
        collection.stop_reason = STOP_FILE_CAP if limits.max_files <= 0 else STOP_LINE_CAP
        return collection

    page = 1
    skipped = 0

    while True:
        budget.check()
        files_data = github_client.list_pr_files(repo_name, pr_number, page=page, per_page=GITHUB_PAGE_SIZE)

        if not files_data:
            break

        for file_data in files_data:
            filename = file_data.get("filename", "")

            if not is_reviewable(file_data):
                logger.debug(f"Skipping {filename} (removed or no patch)")
                skipped += 1
                continue
            if not has_allowed_extension(filename, limits.extensions):
                logger.debug(f"Skipping {filename} (extension not in allow-list)")
                skipped += 1
                continue
            if github_client.is_excluded(filename):
                logger.debug(f"Skipping {filename} (excluded path)")
                skipped += 1
                continue

            patch = reduce_patch(file_data["patch"])
            if not patch.strip():
                logger.debug(f"Skipping {filename} (no changed lines)")
                skipped += 1
                continue

            trimmed = trim_patch_lines(patch, limits.max_lines_per_file)
            if not trimmed:
                logger.debug(f"Skipping {filename} (per-file line cap is zero)")
                skipped += 1
                continue
            truncated = trimmed != patch
            patch_lines = count_lines(trimmed)

            remaining = limits.max_total_lines - collection.total_lines
            if patch_lines > remaining:
                if remaining <= 0:
                    collection.stop_reason = STOP_LINE_CAP
                    break
                trimmed = trim_patch_lines(trimmed, remaining)
                truncated = True
                patch_lines = count_lines(trimmed)

            collection.files.append(CollectedFile(
                filename=filename,
                status=file_data.get("status", "modified"),
                additions=file_data.get("additions", 0),
                deletions=file_data.get("deletions", 0),
                patch=trimmed,
                truncated=truncated,
            ))
            collection.total_lines += patch_lines

            if len(collection.files) >= limits.max_files:
                collection.stop_reason = STOP_FILE_CAP
                break
            if collection.total_lines >= limits.max_total_lines:
                collection.stop_reason = STOP_LINE_CAP
                break

        if collection.stop_reason != STOP_EXHAUSTED:
            break
        if len(files_data) < GITHUB_PAGE_SIZE:
            break
        page += 1

    logger.info(
        f"Collected {len(collection.files)} files ({collection.total_lines} lines) for PR #{pr_number}, "
        f"{skipped} skipped, stopped: {collection.stop_reason}"
    )
    return collection
