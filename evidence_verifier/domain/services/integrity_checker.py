"""Integrity stage: evidence hashes and fabrication fingerprints."""

import asyncio
import logging
import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..models.source_record import EvidenceBundle, SourceRecord
from ..models.verification import Issue, IssueType, Severity, StageOutcome
from ..ports.evidence_store import EvidenceStore
from .hashing import compute_hash, hashes_equal
from .url_normalizer import is_homepage, is_valid_url

logger = logging.getLogger(__name__)

COMPILATION_CONTENT = re.compile(
    r"^(?:#+\s*)?(?:research compilation|summary of|synthesis of|overview of|aggregated from"
    r"|combined from|compiled from)",
    re.IGNORECASE,
)
SUSPICIOUS_TITLE = re.compile(r"compilation|synthesis|summary|overview|aggregat|combined", re.IGNORECASE)
SYNTHESIZED_TYPE = re.compile(
    r"^(?:research_synthesis|compilation|aggregate|aggregated|combined|synthesized|synthesis)$",
    re.IGNORECASE,
)
CONTENT_PREFIX_CHARS = 200


def is_round_timestamp(value: Optional[datetime]) -> bool:
    """A capture time exactly on the hour, down to the microsecond."""
    return value is not None and value.minute == 0 and value.second == 0 and value.microsecond == 0


class IntegrityChecker:
    """Recomputes evidence hashes and screens sources for fabrication signatures."""

    def __init__(self, evidence_store: EvidenceStore):
        self._evidence_store = evidence_store

    async def check(self, source_ids: Iterable[str], sources: Dict[str, SourceRecord]) -> StageOutcome:
        """Check every referenced source.

        Sources missing from the registry are left to the binding stage.

        Args:
            source_ids: Sources referenced by the document
            sources: Source registry keyed by id

        Returns:
            Stage outcome with issues and per-source hash results
        """
        ordered = sorted(set(source_ids))
        registered = [source_id for source_id in ordered if source_id in sources]
        bundles = await asyncio.gather(*(self._evidence_store.get_evidence(sid) for sid in registered))

        issues: List[Issue] = []
        report: Dict[str, Dict] = {}
        for source_id, evidence in zip(registered, bundles):
            record = sources[source_id]
            source_issues, report[source_id] = self._check_source(record, evidence)
            issues.extend(source_issues)

        failed = sorted({issue.source_id for issue in issues if issue.blocking})
        if failed:
            logger.warning(f"❌ Integrity issues in {', '.join(failed)}")
        else:
            logger.info(f"✅ Integrity verified for {len(registered)} sources")

        return StageOutcome(
            issues=issues,
            inputs={"source_ids": ordered},
            outputs={
                "sources": report,
                "unregistered": [source_id for source_id in ordered if source_id not in sources],
            },
        )

    def _check_source(self, record: SourceRecord, evidence: Optional[EvidenceBundle]):
        source_id = record.source_id
        issues: List[Issue] = []

        def flag(issue_type: IssueType, message: str, severity: Severity = Severity.BLOCKING, **details) -> None:
            issues.append(Issue(
                type=issue_type,
                severity=severity,
                message=message,
                source_id=source_id,
                details=details,
            ))

        if record.invalid:
            flag(IssueType.INVALID_SOURCE, f"{source_id} is marked invalid", reason=record.invalid_reason)

        if evidence is None:
            flag(IssueType.MISSING_EVIDENCE, f"No captured evidence for {source_id}")
            return issues, {"hash_verified": False, "recorded_hash": None, "computed_hash": None}

        computed = compute_hash(evidence.raw_content) if evidence.raw_content is not None else None
        hash_verified = False
        if computed is None or not evidence.recorded_hash:
            flag(
                IssueType.HASH_UNVERIFIABLE,
                f"Cannot verify the hash of {source_id}: "
                + ("raw content missing" if computed is None else "no recorded hash"),
                raw_location=evidence.raw_location,
            )
        elif not hashes_equal(evidence.recorded_hash, computed):
            flag(
                IssueType.HASH_MISMATCH,
                f"Raw content of {source_id} does not match its recorded hash",
                expected=evidence.recorded_hash,
                found=computed,
                raw_location=evidence.raw_location,
            )
        else:
            hash_verified = True

        captured_at = evidence.retrieved_at or record.retrieved_at
        if is_round_timestamp(captured_at):
            flag(
                IssueType.ROUND_TIMESTAMP,
                f"Capture time of {source_id} is exactly on the hour",
                captured_at=captured_at.isoformat(),
            )

        prefix = evidence.extracted_text.lstrip()[:CONTENT_PREFIX_CHARS]
        if COMPILATION_CONTENT.match(prefix):
            flag(
                IssueType.FABRICATED_CONTENT,
                f"Content of {source_id} reads as a compilation, not a captured document",
                content_start=prefix[:80],
            )

        for url in dict.fromkeys(u for u in (record.url, evidence.recorded_url) if u):
            if not is_valid_url(url):
                flag(IssueType.INVALID_URL, f"{source_id} has an invalid URL", url=url)
            elif is_homepage(url):
                flag(IssueType.HOMEPAGE_URL, f"{source_id} points at a homepage, not a document", url=url)
        if not record.url and not evidence.recorded_url:
            flag(IssueType.INVALID_URL, f"{source_id} has no URL", url=None)

        source_type = record.source_type or evidence.source_type
        if source_type and SYNTHESIZED_TYPE.match(source_type.strip()):
            flag(IssueType.SYNTHESIZED_SOURCE, f"{source_id} is typed as synthesized", source_type=source_type)

        title = record.title or evidence.title
        if title and SUSPICIOUS_TITLE.search(title):
            flag(
                IssueType.SUSPICIOUS_TITLE,
                f"Title of {source_id} suggests aggregated content",
                Severity.WARNING,
                title=title,
            )

        return issues, {
            "hash_verified": hash_verified,
            "recorded_hash": evidence.recorded_hash,
            "computed_hash": computed,
        }
