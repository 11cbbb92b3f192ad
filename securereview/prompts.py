"""Prompt assembly for the security review request."""

from pathlib import Path
from typing import Dict, List, Optional, Sequence

from securereview.diff_collector import CollectedFile
from securereview.logger import get_logger

logger = get_logger(__name__)

PROMPT_PATH = Path(__file__).parent / "prompt.txt"

DIFF_PREAMBLE = "Unified diffs (changed hunks only). Each block begins with '=== FILE ==='.\n"


def load_system_prompt(custom_instructions_path: Optional[str] = None) -> str:
    """Load the packaged review policy, optionally extended by a custom file.

    A custom instructions file that is missing or unreadable is logged and
    ignored.
    """
    prompt = PROMPT_PATH.read_text(encoding="utf-8")

    if custom_instructions_path:
        custom_file = Path(custom_instructions_path)
        if custom_file.exists():
            try:
                custom = custom_file.read_text(encoding="utf-8").strip()
            except OSError as e:
                logger.warning(f"Failed to read review instructions file {custom_instructions_path}: {e}")
            else:
                if custom:
                    logger.info(f"Loaded custom review instructions from {custom_instructions_path}")
                    prompt = f"{prompt.rstrip()}\n\nADDITIONAL REVIEW INSTRUCTIONS:\n{custom}\n"
        else:
            logger.warning(f"Custom review instructions file not found: {custom_instructions_path}")

    return prompt


def _file_header(f: CollectedFile) -> str:
    details = f"{f.status}, +{f.additions}/-{f.deletions}"
    if f.truncated:
        details += ", truncated"
    return f"=== FILE: {f.filename} ({details}) ==="


def build_user_message(files: Sequence[CollectedFile]) -> str:
    """Render collected files into one delimited block of diffs."""
    body = DIFF_PREAMBLE
    for f in files:
        body += f"\n{_file_header(f)}\n"
        body += f.patch + "\n"
    return body


def build_messages(system_prompt: str, user_message: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_message},
    ]
