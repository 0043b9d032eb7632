"""Binding stage: three-way URL agreement between citation, registry and evidence."""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from ..models.document_statement import Citation, CitationKind
from ..models.source_record import SourceRecord
from ..models.verification import Issue, IssueType, Severity, StageOutcome
from ..ports.evidence_store import EvidenceStore
from .claim_registry import ClaimRegistry
from .url_normalizer import extract_domain, normalize_url

logger = logging.getLogger(__name__)


class BindingChecker:
    """Checks that every citation points at the content that was captured.

    Nothing is corrected automatically: a disagreement could be a real
    substitution of evidence.
    """

    def __init__(self, evidence_store: EvidenceStore, registry: ClaimRegistry):
        self._evidence_store = evidence_store
        self._registry = registry

    async def check(self, citations: List[Citation], sources: Dict[str, SourceRecord]) -> StageOutcome:
        """Check every citation of the document.

        Args:
            citations: All citation markers in the document
            sources: Source registry keyed by id

        Returns:
            Stage outcome with issues and the per-source binding map
        """
        issues: List[Issue] = []
        by_source: "OrderedDict[str, List[Citation]]" = OrderedDict()

        for citation in citations:
            source_id = citation.identifier
            if citation.kind is CitationKind.CLAIM:
                claim = self._registry.find_by_id(citation.identifier)
                if claim is None:
                    issues.append(Issue(
                        type=IssueType.ORPHAN_CITATION,
                        severity=Severity.BLOCKING,
                        message=f"Cited claim {citation.identifier} is not in the claim registry",
                        line=citation.line,
                        details={"identifier": citation.identifier},
                    ))
                    continue
                source_id = claim.source_id
            by_source.setdefault(source_id, []).append(citation)

        bindings: Dict[str, Dict] = {}
        for source_id in sorted(by_source):
            source_citations = by_source[source_id]
            lines = sorted({citation.line for citation in source_citations})
            record = sources.get(source_id)
            if record is None:
                issues.append(Issue(
                    type=IssueType.ORPHAN_CITATION,
                    severity=Severity.BLOCKING,
                    message=f"Cited source {source_id} is not in the source registry",
                    source_id=source_id,
                    line=lines[0],
                    details={"identifier": source_id, "lines": lines},
                ))
                continue
            evidence = await self._evidence_store.get_evidence(source_id)
            metadata_url = evidence.recorded_url if evidence is not None else None
            source_issues, bindings[source_id] = self._bind(record, metadata_url, source_citations, lines)
            issues.extend(source_issues)

        mismatched = [issue.source_id for issue in issues if issue.type is IssueType.URL_MISMATCH]
        if mismatched:
            logger.warning(f"❌ URL mismatches for {', '.join(sorted(set(mismatched)))}")
        else:
            logger.info(f"✅ Bindings checked for {len(bindings)} sources")

        return StageOutcome(
            issues=issues,
            inputs={
                "citations": [
                    {"identifier": c.identifier, "url": c.url, "line": c.line} for c in citations
                ],
            },
            outputs={"bindings": bindings},
        )

    def _bind(
        self,
        record: SourceRecord,
        metadata_url: Optional[str],
        citations: List[Citation],
        lines: List[int],
    ):
        source_id = record.source_id
        issues: List[Issue] = []
        registry_url = record.url or None
        if not metadata_url:
            issues.append(Issue(
                type=IssueType.MISSING_METADATA_URL,
                severity=Severity.WARNING,
                message=f"Evidence metadata of {source_id} has no URL",
                source_id=source_id,
                line=lines[0],
            ))

        citation_urls = list(dict.fromkeys(c.url for c in citations if c.url))
        reference = {
            "registry": registry_url,
            "metadata": metadata_url,
        }
        bound = True
        compared = False

        for url in citation_urls or [None]:
            raw = {"citation": url, **reference}
            present = {name: value for name, value in raw.items() if value}
            if len(present) < 2:
                continue
            compared = True
            normalized = {name: normalize_url(value) for name, value in present.items()}
            if len(set(normalized.values())) > 1:
                bound = False
                citation_lines = sorted({c.line for c in citations if c.url == url}) if url else lines
                domains = {extract_domain(value) or "" for value in present.values()}
                issues.append(Issue(
                    type=IssueType.URL_MISMATCH,
                    severity=Severity.BLOCKING,
                    message=(
                        f"URLs for {source_id} disagree after normalization"
                        + ("" if len(domains) == 1 else " and point at different hosts")
                    ),
                    source_id=source_id,
                    line=citation_lines[0],
                    details={"raw": raw, "normalized": normalized, "domains": sorted(domains), "lines": citation_lines},
                ))

        if not compared:
            issues.append(Issue(
                type=IssueType.NO_URLS_TO_VERIFY,
                severity=Severity.WARNING,
                message=f"Not enough URLs to verify the binding of {source_id}",
                source_id=source_id,
                line=lines[0],
            ))

        return issues, {
            "citation_urls": citation_urls,
            "registry_url": registry_url,
            "metadata_url": metadata_url,
            "normalized_url": normalize_url(registry_url) if registry_url else None,
            "bound": bound and compared,
            "lines": lines,
        }
