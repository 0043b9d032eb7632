"""Persistence of verification records and their markdown reports."""

import asyncio
import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...domain.models.verification import VerificationRecord
from ...domain.services.hashing import canonical_json
from .json_claim_storage import write_atomic

logger = logging.getLogger(__name__)

RECORD_FILENAME = "verification-record.json"
REPORT_FILENAME = "verification-report.md"

STATUS_EMOJI = {
    "VERIFIED": "✅",
    "NEEDS_REVIEW": "⚠️",
    "FAILED": "❌",
    "INCOMPLETE": "⏸️",
}

SUMMARY_ROWS = (
    ("Statements", "statements"),
    ("Verified", "verified"),
    ("Unverified", "unverified"),
    ("Source mismatch", "mismatch"),
    ("Source references", "source_references"),
    ("Citations", "citations"),
    ("Sources cited", "sources_cited"),
    ("Blocking issues", "blocking_issues"),
    ("Warnings", "warnings"),
)


def _quote(text: str) -> str:
    return "\n".join(f"> {line}" for line in text.splitlines() or [""])


def _issue_line(issue: Dict[str, Any]) -> str:
    where = f" (line {issue['line']})" if issue.get("line") else ""
    source = f" [{issue['source_id']}]" if issue.get("source_id") else ""
    return f"- **{issue['type']}**{source}{where}: {issue['message']}"


def render_markdown_report(record: Dict[str, Any]) -> str:
    """Render a canonical verification record as a human-readable markdown report.

    Args:
        record: Canonical record, as returned by ``VerificationRecord.canonical_dict``
            or read back from disk

    Returns:
        Markdown text; identical records render identically
    """
    status = record["status"]
    summary = record.get("summary", {})
    results = record.get("match_results", [])
    lines: List[str] = [
        "# Verification Report",
        "",
        f"**Status:** {STATUS_EMOJI.get(status, '❓')} {status}",
        f"**Document:** `{record['document_hash']}`",
        f"**Chain:** `{record['chain_hash']}`",
        "",
        "## Summary",
        "",
        "| Metric | Count |",
        "|--------|-------|",
    ]
    lines += [f"| {label} | {summary.get(key, 0)} |" for label, key in SUMMARY_ROWS]
    lines.append("")

    lines += ["## Stages", "", "| Stage | Status | Issues |", "|-------|--------|--------|"]
    for stage in record.get("stages", []):
        issues = stage["skip_reason"] if stage.get("skip_reason") else len(stage.get("issues", []))
        lines.append(f"| {stage['stage']} | {stage['status'].upper()} | {issues} |")
    lines.append("")

    strategies = Counter(
        result["strategy"] for result in results if result["verdict"] in ("VERIFIED", "MISMATCH")
    )
    if strategies:
        lines += ["### Match Types", ""]
        lines += [f"- {strategy}: {count}" for strategy, count in sorted(strategies.items())]
        lines.append("")

    unverified = [result for result in results if result["verdict"] == "UNVERIFIED"]
    if unverified:
        lines += ["## Unverified Statements", ""]
        for result in unverified:
            cited = ", ".join(result["source_ids"] + result["claim_ids"]) or "none"
            lines += [
                f"### Line {result['line']}",
                "",
                _quote(result["text"]),
                "",
                f"- **Cites:** {cited}",
                f"- **Reason:** {result['reason'] or 'no matching claim'}",
                "",
            ]

    mismatched = [result for result in results if result["verdict"] == "MISMATCH"]
    if mismatched:
        lines += ["## Source Mismatches", ""]
        for result in mismatched:
            lines += [
                f"### Line {result['line']}",
                "",
                _quote(result["text"]),
                "",
                f"- **Document cites:** {', '.join(result['source_ids']) or 'none'}",
                f"- **Registry claim:** {result['claim_id']} from {result['claim_source_id']}",
                "",
            ]

    for title, key in (("Blocking Issues", "blocking_issues"), ("Warnings", "warnings")):
        issues = record.get(key, [])
        if issues:
            lines += [f"## {title}", ""]
            lines += [_issue_line(issue) for issue in issues]
            lines.append("")

    lines += ["---", "", "Safe to publish." if status == "VERIFIED" else "Not safe to publish."]
    return "\n".join(lines) + "\n"


class VerificationRecordStore:
    """Writes the canonical, timing-free form of each completed record.

    A new record supersedes the previous one; records are never edited.
    The markdown report is rewritten with every record.
    """

    def __init__(self, case_dir: str, filename: str = RECORD_FILENAME, report_filename: str = REPORT_FILENAME):
        self._path = Path(case_dir) / filename
        self._report_path = Path(case_dir) / report_filename

    @property
    def path(self) -> Path:
        return self._path

    @property
    def report_path(self) -> Path:
        return self._report_path

    async def write(self, record: VerificationRecord) -> Path:
        """Persist a record returned by a completed pipeline run, with its report."""
        canonical = record.canonical_dict()
        await asyncio.to_thread(write_atomic, self._path, canonical_json(canonical))
        await asyncio.to_thread(write_atomic, self._report_path, render_markdown_report(canonical))
        logger.info(f"💾 Verification record written to {self._path}")
        return self._path

    async def read(self) -> Optional[Dict[str, Any]]:
        """Load the last persisted record, or None."""
        if not self._path.exists():
            return None
        content = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        return json.loads(content)

    async def read_report(self) -> Optional[str]:
        """Load the last written markdown report, or None."""
        if not self._report_path.exists():
            return None
        return await asyncio.to_thread(self._report_path.read_text, encoding="utf-8")
