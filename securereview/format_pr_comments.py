"""Format the review comment and locate the one this action maintains."""

from typing import Any, Dict, List, Optional

from securereview.constants import (
    COMMENT_FOOTER,
    COMMENT_HEADER,
    COMMENT_TAG,
    NO_MODEL_OUTPUT_MESSAGE,
)

QUOTA_EXCEEDED_MESSAGE = (
    "⚠️ Could not complete review: **API quota exceeded**. "
    "Add billing or use another provider."
)


def compose_comment_body(content: str) -> str:
    """Wrap content with the header, hidden marker and disclaimer footer."""
    header = f"{COMMENT_HEADER}\n{COMMENT_TAG}"
    return f"{header}\n\n{content}\n\n---\n{COMMENT_FOOTER}"


def is_review_comment(comment: Dict[str, Any]) -> bool:
    """Check if a comment carries this action's marker."""
    body = comment.get('body') or ''
    return COMMENT_TAG in body


def find_marker_comment(comments: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return the first comment with the marker, or None."""
    for comment in comments:
        if is_review_comment(comment):
            return comment
    return None


def format_review_content(analysis: str, findings_section: str = "") -> str:
    """Combine the model answer with the optional scan findings section."""
    content = analysis.strip() or NO_MODEL_OUTPUT_MESSAGE
    if findings_section:
        content = f"{content}\n\n{findings_section}"
    return content


def format_failure_message(error: BaseException, quota_exceeded: bool = False) -> str:
    """User facing text for a failed run.

    Quota exhaustion gets billing-oriented wording; everything else embeds
    the error text.
    """
    if quota_exceeded:
        return QUOTA_EXCEEDED_MESSAGE
    return f"⚠️ Could not complete review: `{error}`"
