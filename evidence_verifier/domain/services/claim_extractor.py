"""Service for turning captured source text into registered claims."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import (
    ExcerptNotFoundError,
    OracleContractError,
    OracleUnavailableError,
    VerificationInputError,
)
from ..models.claim import Claim, ClaimCandidate, ClaimKind, NumberKind, NumericValue
from ..ports.evidence_store import EvidenceStore
from .claim_registry import ClaimRegistry
from .numeric_extraction import extract_numbers, relatively_close
from .oracle_gateway import OracleGateway
from .text_matching import locate_excerpt, split_sentences

logger = logging.getLogger(__name__)

_LIST_MARKER = re.compile(r"^\s*(?:>\s*)*(?:[-*+]|\d+[.)])\s+")
_MIN_SENTENCE_CHARS = 10
_MAX_SENTENCE_CHARS = 600

_UNIT_ALIASES = {
    "%": "%", "percent": "%", "percentage": "%",
    "pp": "pp", "percentage points": "pp", "percentage point": "pp",
    "$": "USD", "usd": "USD", "dollars": "USD",
    "€": "EUR", "eur": "EUR", "euros": "EUR",
    "£": "GBP", "gbp": "GBP", "pounds": "GBP",
}
_KIND_FOR_UNIT = {"%": NumberKind.PERCENTAGE, "pp": NumberKind.PERCENTAGE_POINTS, "USD": NumberKind.CURRENCY,
                  "EUR": NumberKind.CURRENCY, "GBP": NumberKind.CURRENCY}


@dataclass
class ExtractionReport:
    """Outcome of processing one source."""

    source_id: str
    registered: List[Claim] = field(default_factory=list)
    duplicates: List[Claim] = field(default_factory=list)
    rejected: List[Dict[str, str]] = field(default_factory=list)
    oracle_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the report to a dictionary for API responses."""
        return {
            "source_id": self.source_id,
            "registered": [claim.model_dump(mode="json") for claim in self.registered],
            "duplicates": [claim.claim_id for claim in self.duplicates],
            "rejected": list(self.rejected),
            "oracle_error": self.oracle_error,
        }


def _claim_kind(numbers: List[NumericValue]) -> ClaimKind:
    if any(number.kind in (NumberKind.MULTIPLE, NumberKind.RANK) for number in numbers):
        return ClaimKind.COMPARISON
    return ClaimKind.STATISTIC


def _normalize_unit(unit: Optional[str]) -> Optional[str]:
    if unit is None:
        return None
    cleaned = unit.strip()
    return _UNIT_ALIASES.get(cleaned.lower(), cleaned.lower()) or None


def merge_numbers(primary: List[NumericValue], extra: List[NumericValue]) -> List[NumericValue]:
    """Append numbers from ``extra`` that ``primary`` does not already carry."""
    merged = list(primary)
    for number in extra:
        if not any(
            existing.unit == number.unit and relatively_close(existing.value, number.value, 1e-9)
            for existing in merged
        ):
            merged.append(number)
    return merged


class ClaimExtractor:
    """Proposes claims from source text and registers the ones that hold up."""

    def __init__(
        self,
        registry: ClaimRegistry,
        evidence_store: EvidenceStore,
        oracle: Optional[OracleGateway] = None,
        max_source_chars: int = 12000,
    ):
        """Initialize the extractor.

        Args:
            registry: Registry that receives accepted claims
            evidence_store: Source of extracted text
            oracle: Gateway for oracle-based extraction (optional)
            max_source_chars: Source text sent to the oracle
        """
        self._registry = registry
        self._evidence_store = evidence_store
        self._oracle = oracle
        self._max_source_chars = max_source_chars

    def extract_with_patterns(self, source_id: str, text: str) -> List[ClaimCandidate]:
        """Turn every number-bearing sentence of the source into a candidate."""
        candidates: List[ClaimCandidate] = []
        seen = set()
        for line in text.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            body = _LIST_MARKER.sub("", stripped)
            for _, sentence in split_sentences(body):
                sentence = sentence.strip()
                if not _MIN_SENTENCE_CHARS <= len(sentence) <= _MAX_SENTENCE_CHARS or sentence in seen:
                    continue
                numbers = extract_numbers(sentence)
                if not numbers:
                    continue
                seen.add(sentence)
                candidates.append(ClaimCandidate(
                    text=sentence,
                    source_id=source_id,
                    supporting_quote=sentence,
                    kind=_claim_kind(numbers),
                    numbers=numbers,
                    extraction_method="pattern",
                ))
        logger.info(f"🔢 Pattern extraction found {len(candidates)} candidates in {source_id}")
        return candidates

    async def extract_with_oracle(
        self,
        source_id: str,
        text: str,
    ) -> Tuple[List[ClaimCandidate], List[Dict[str, str]]]:
        """Ask the oracle for claims and keep those whose quote is verbatim in the source.

        Returns:
            Accepted candidates and the dropped ones with reasons

        Raises:
            OracleContractError: If the output is malformed; nothing is kept
            OracleUnavailableError: If the oracle fails or times out
        """
        if self._oracle is None:
            raise OracleUnavailableError("No semantic oracle configured")
        payload = await self._oracle.extract_claims(source_id, text[:self._max_source_chars])

        candidates: List[ClaimCandidate] = []
        dropped: List[Dict[str, str]] = []
        for extracted in payload.claims:
            if locate_excerpt(text, extracted.supporting_quote) is None:
                dropped.append({"text": extracted.text, "reason": "supporting quote not found in source"})
                continue
            oracle_numbers = []
            for number in extracted.numbers:
                unit = _normalize_unit(number.unit)
                oracle_numbers.append(NumericValue(
                    value=number.value,
                    unit=unit,
                    kind=_KIND_FOR_UNIT.get(unit, NumberKind.COUNT),
                    raw=f"{number.value:g}{' ' + number.unit if number.unit else ''}",
                    context=number.context or "",
                ))
            candidates.append(ClaimCandidate(
                text=extracted.text,
                source_id=source_id,
                supporting_quote=extracted.supporting_quote,
                kind=extracted.type,
                numbers=merge_numbers(extract_numbers(extracted.text), oracle_numbers),
                entities=extracted.entities,
                extraction_method="oracle",
                location_hint=extracted.quote_location,
            ))
        logger.info(
            f"🤖 Oracle extraction for {source_id}: {len(candidates)} accepted, {len(dropped)} dropped"
        )
        return candidates, dropped

    async def process_source(self, source_id: str, use_oracle: bool = False) -> ExtractionReport:
        """Extract and register claims for one source.

        Args:
            source_id: Source to process
            use_oracle: Also run oracle-based extraction

        Returns:
            Registered, duplicate and rejected candidates

        Raises:
            VerificationInputError: If the source has no captured text
        """
        logger.info(f"🔍 Extracting claims from {source_id}")
        evidence = await self._evidence_store.get_evidence(source_id)
        if evidence is None or not evidence.extracted_text.strip():
            raise VerificationInputError(f"No extracted text captured for source {source_id}")

        report = ExtractionReport(source_id=source_id)
        candidates = self.extract_with_patterns(source_id, evidence.extracted_text)
        if use_oracle:
            try:
                oracle_candidates, dropped = await self.extract_with_oracle(source_id, evidence.extracted_text)
                candidates.extend(oracle_candidates)
                report.rejected.extend(dropped)
            except OracleContractError as e:
                logger.warning(f"⚠️ Rejected oracle output for {source_id}: {e}")
                report.oracle_error = str(e)
            except OracleUnavailableError as e:
                logger.warning(f"⚠️ Oracle unavailable for {source_id}: {e}")
                report.oracle_error = str(e)

        for candidate in candidates:
            try:
                result = await self._registry.add_claim(candidate)
            except ExcerptNotFoundError as e:
                report.rejected.append({"text": candidate.text, "reason": e.reason})
                continue
            if result.duplicate:
                report.duplicates.append(result.claim)
            else:
                report.registered.append(result.claim)

        logger.info(
            f"✅ {source_id}: {len(report.registered)} registered, "
            f"{len(report.duplicates)} duplicates, {len(report.rejected)} rejected"
        )
        return report
