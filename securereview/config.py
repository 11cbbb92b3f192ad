"""Environment-driven configuration for the review action."""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping

from securereview.constants import (
    DEFAULT_FINDINGS_REPORT_PATH,
    DEFAULT_LINE_TRIM_PER_FILE,
    DEFAULT_MAX_FILES,
    DEFAULT_MAX_FINDINGS_DISPLAY,
    DEFAULT_MAX_LINES,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_OPENAI_BASE_URL,
    DEFAULT_RISKY_EXTENSIONS,
    DEFAULT_TIME_BUDGET_SECONDS,
)
from securereview.logger import get_logger

logger = get_logger(__name__)


class ConfigurationError(ValueError):
    """Raised when configuration is invalid or missing."""
    pass


class MissingPullRequestContext(ConfigurationError):
    """Raised when the triggering event carries no pull request number."""
    pass


def parse_extensions(value: str) -> FrozenSet[str]:
    """Parse a comma separated extension list into a lowercase set."""
    return frozenset(ext.strip().lower().lstrip(".") for ext in value.split(",") if ext.strip())


def parse_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class ReviewConfig:
    """Settings for one review run with defaults for every key."""

    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    time_budget_seconds: int = DEFAULT_TIME_BUDGET_SECONDS
    max_files: int = DEFAULT_MAX_FILES
    max_lines: int = DEFAULT_MAX_LINES
    max_lines_per_file: int = DEFAULT_LINE_TRIM_PER_FILE
    extensions: FrozenSet[str] = field(default_factory=lambda: parse_extensions(DEFAULT_RISKY_EXTENSIONS))
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    openai_api_key: str = ""
    openai_org: str = ""
    findings_report_path: str = DEFAULT_FINDINGS_REPORT_PATH
    max_findings_display: int = DEFAULT_MAX_FINDINGS_DISPLAY
    exclude_directories: List[str] = field(default_factory=list)
    custom_review_instructions: str = ""

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "ReviewConfig":
        def resolve(key: str, fallback: str) -> str:
            value = (env.get(key) or "").strip()
            return value or fallback

        def resolve_int(key: str, fallback: int, minimum: int = 0) -> int:
            raw = resolve(key, "")
            if not raw:
                return fallback
            try:
                value = int(raw)
            except ValueError:
                logger.warning(f"Invalid {key}={raw!r}, using default {fallback}")
                return fallback
            if value < minimum:
                logger.warning(f"{key}={value} is below {minimum}, using default {fallback}")
                return fallback
            return value

        return cls(
            model=resolve("MODEL", DEFAULT_MODEL),
            max_tokens=resolve_int("MAX_TOKENS", DEFAULT_MAX_TOKENS),
            time_budget_seconds=resolve_int("TIME_BUDGET_SECONDS", DEFAULT_TIME_BUDGET_SECONDS),
            max_files=resolve_int("MAX_FILES", DEFAULT_MAX_FILES, minimum=1),
            max_lines=resolve_int("MAX_LINES", DEFAULT_MAX_LINES, minimum=1),
            max_lines_per_file=resolve_int("LINE_TRIM_PER_FILE", DEFAULT_LINE_TRIM_PER_FILE, minimum=1),
            extensions=parse_extensions(resolve("RISKY_EXTS", DEFAULT_RISKY_EXTENSIONS)),
            openai_base_url=resolve("OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL).rstrip("/"),
            openai_api_key=resolve("OPENAI_API_KEY", ""),
            openai_org=resolve("OPENAI_ORG", ""),
            findings_report_path=resolve("FINDINGS_REPORT_PATH", DEFAULT_FINDINGS_REPORT_PATH),
            max_findings_display=resolve_int("MAX_FINDINGS_DISPLAY", DEFAULT_MAX_FINDINGS_DISPLAY),
            exclude_directories=parse_csv(resolve("EXCLUDE_DIRECTORIES", "")),
            custom_review_instructions=resolve("CUSTOM_REVIEW_INSTRUCTIONS", ""),
        )

    def summary(self) -> Dict[str, object]:
        """Non-secret settings, for logging."""
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "time_budget_seconds": self.time_budget_seconds,
            "max_files": self.max_files,
            "max_lines": self.max_lines,
            "max_lines_per_file": self.max_lines_per_file,
            "openai_base_url": self.openai_base_url,
        }
