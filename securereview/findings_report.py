"""Best-effort summary of a pre-existing secret scan report."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from securereview.constants import DEFAULT_MAX_FINDINGS_DISPLAY
from securereview.logger import get_logger

logger = get_logger(__name__)

FILE_KEYS = ("File", "file", "Path")
RULE_KEYS = ("RuleID", "ruleID", "Rule")
LINE_KEYS = ("StartLine", "startLine", "Line")


@dataclass(frozen=True)
class SecurityFinding:
    file: str
    rule: str
    line: str


@dataclass
class FindingsReport:
    """Parsed scan report. ``empty()`` stands in for a missing or unreadable one."""

    findings: List[SecurityFinding] = field(default_factory=list)
    source: Optional[str] = None

    @classmethod
    def empty(cls) -> "FindingsReport":
        return cls()

    def __bool__(self) -> bool:
        return bool(self.findings)

    def __len__(self) -> int:
        return len(self.findings)


def _first_value(entry: Dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = entry.get(key)
        if value is not None and value != "":
            return value
    return None


def _normalize_text(value: Any, fallback: str) -> str:
    text = str(value).strip() if value is not None else ""
    return text or fallback


def _parse_finding(entry: Dict[str, Any]) -> SecurityFinding:
    return SecurityFinding(
        file=_normalize_text(_first_value(entry, FILE_KEYS), "unknown"),
        rule=_normalize_text(_first_value(entry, RULE_KEYS), "unknown"),
        line=_normalize_text(_first_value(entry, LINE_KEYS), "?"),
    )


def parse_findings(data: Any) -> List[SecurityFinding]:
    """Parse a report that is either a list of findings or {"findings": [...]}.

    Entries that are not objects are skipped.
    """
    if isinstance(data, dict):
        data = data.get("findings")
    if not isinstance(data, list):
        return []
    return [_parse_finding(entry) for entry in data if isinstance(entry, dict)]


def load_findings_report(path: str) -> FindingsReport:
    """Load a scan report, returning FindingsReport.empty() on any failure."""
    report_file = Path(path)
    if not report_file.is_file():
        logger.debug(f"No findings report at {path}")
        return FindingsReport.empty()

    try:
        with open(report_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable findings report {path}: {e}")
        return FindingsReport.empty()

    findings = parse_findings(data)
    logger.info(f"Loaded {len(findings)} finding(s) from {path}")
    return FindingsReport(findings=findings, source=str(report_file))


def format_findings_section(report: FindingsReport, limit: int = DEFAULT_MAX_FINDINGS_DISPLAY) -> str:
    """Render a short Markdown list of findings, or "" when there are none."""
    if not report.findings:
        return ""

    limit = max(0, limit)
    shown = report.findings[:limit]
    lines = [f"### 🔑 Secret scan findings ({len(report.findings)})", ""]
    for finding in shown:
        lines.append(f"- `{finding.file}` / {finding.rule} / line {finding.line}")

    hidden = len(report.findings) - len(shown)
    if hidden > 0:
        lines.append(f"- …and {hidden} more")

    return "\n".join(lines)
