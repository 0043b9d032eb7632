"""Numeric stage: check quantitative statements against their cited sources."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import OracleUnavailableError
from ..models.claim import NumericValue
from ..models.document_statement import DocumentStatement
from ..models.policy import NumericTolerancePolicy
from ..models.verification import Issue, IssueType, Severity, StageOutcome
from ..ports.evidence_store import EvidenceStore
from .claim_registry import ClaimRegistry
from .numeric_extraction import comparable_value, extract_numbers, is_significant
from .oracle_gateway import OracleGateway
from .text_matching import content_words, jaccard, split_sentences

logger = logging.getLogger(__name__)

PASS = "pass"
DISCREPANCY = "discrepancy"
NOT_FOUND = "not_found"


@dataclass
class NumericAssertion:
    """A number stated in the document, paired with the sources it cites."""

    statement: DocumentStatement
    number: NumericValue
    source_ids: List[str]


@dataclass
class _SourceCheck:
    source_id: str
    outcome: str
    computed: Optional[float] = None
    relevance: float = 0.0
    method: str = "pattern"


def sentence_numbers(text: str) -> List[NumericValue]:
    """Numbers in source text, each carrying its own sentence as context."""
    numbers: List[NumericValue] = []
    for offset, sentence in split_sentences(text):
        for number in extract_numbers(sentence):
            numbers.append(number.model_copy(update={
                "context": sentence.strip(),
                "position": offset + number.position,
            }))
    return numbers


class NumericVerifier:
    """Verifies numbers in the document against source content with unit-aware tolerance."""

    def __init__(
        self,
        evidence_store: EvidenceStore,
        registry: ClaimRegistry,
        policy: Optional[NumericTolerancePolicy] = None,
        oracle: Optional[OracleGateway] = None,
        max_workers: int = 8,
    ):
        """Initialize the verifier.

        Args:
            evidence_store: Source of extracted text
            registry: Resolves claim citations to their sources
            policy: Tolerance policy
            oracle: Gateway used when patterns find no comparable data (optional)
            max_workers: Concurrent assertion checks
        """
        self._evidence_store = evidence_store
        self._registry = registry
        self._policy = policy or NumericTolerancePolicy()
        self._oracle = oracle
        self._max_workers = max_workers

    def collect_assertions(self, units: List[DocumentStatement]) -> Tuple[List[NumericAssertion], List[Issue]]:
        """Pair document numbers with cited sources; flag significant uncited numbers."""
        assertions: List[NumericAssertion] = []
        issues: List[Issue] = []
        for unit in units:
            if unit.is_source_reference or not unit.numbers:
                continue
            source_ids = list(unit.source_ids)
            for claim_id in unit.claim_ids:
                claim = self._registry.find_by_id(claim_id)
                if claim is not None and claim.source_id not in source_ids:
                    source_ids.append(claim.source_id)
            for number in unit.numbers:
                if source_ids:
                    assertions.append(NumericAssertion(unit, number, source_ids))
                elif is_significant(number):
                    issues.append(Issue(
                        type=IssueType.NUMERIC_NO_CITATION,
                        severity=Severity.WARNING,
                        message=f"Number '{number.raw}' has no citation",
                        statement=unit.text,
                        line=unit.line,
                        details={"claimed": number.value, "unit": number.unit},
                    ))
        return assertions, issues

    async def verify(self, units: List[DocumentStatement]) -> StageOutcome:
        """Verify every numeric assertion in the document.

        Args:
            units: All prose units of the document

        Returns:
            Stage outcome with issues and per-assertion results
        """
        assertions, issues = self.collect_assertions(units)
        cited = sorted({source_id for assertion in assertions for source_id in assertion.source_ids})
        bundles = await asyncio.gather(*(self._evidence_store.get_evidence(sid) for sid in cited))
        texts = {sid: bundle.extracted_text for sid, bundle in zip(cited, bundles) if bundle is not None}
        source_numbers = {sid: sentence_numbers(text) for sid, text in texts.items()}

        semaphore = asyncio.Semaphore(self._max_workers)

        async def bounded(assertion: NumericAssertion):
            async with semaphore:
                return await self.check_assertion(assertion, texts, source_numbers)

        checked = await asyncio.gather(*(bounded(assertion) for assertion in assertions))
        results = []
        for result, assertion_issues in checked:
            results.append(result)
            issues.extend(assertion_issues)

        counts = {
            outcome: sum(1 for result in results if result["result"] == outcome)
            for outcome in (PASS, DISCREPANCY, NOT_FOUND)
        }
        logger.info(
            f"🔢 Numeric checks: {counts[PASS]} passed, {counts[DISCREPANCY]} discrepancies, "
            f"{counts[NOT_FOUND]} without data"
        )
        return StageOutcome(
            issues=issues,
            inputs={
                "assertions": [
                    {
                        "statement_id": a.statement.statement_id,
                        "raw": a.number.raw,
                        "value": a.number.value,
                        "unit": a.number.unit,
                        "source_ids": a.source_ids,
                    }
                    for a in assertions
                ],
                "policy": self._policy.model_dump(mode="json"),
            },
            outputs={"results": results, "counts": counts},
        )

    def _check_pattern(self, assertion: NumericAssertion, source_id: str, numbers: List[NumericValue]) -> _SourceCheck:
        claimed = comparable_value(assertion.number)
        unit = assertion.number.unit
        statement_words = content_words(assertion.statement.text)
        ranked = sorted(
            ((jaccard(statement_words, content_words(number.context)), index, number)
             for index, number in enumerate(numbers) if number.unit == unit),
            key=lambda item: (-item[0], item[1]),
        )
        relevant = [(relevance, number) for relevance, _, number in ranked if relevance >= self._policy.min_relevance]
        if not relevant:
            return _SourceCheck(source_id, NOT_FOUND)

        for relevance, number in relevant:
            if self._policy.within(claimed, comparable_value(number), unit):
                return _SourceCheck(source_id, PASS, comparable_value(number), relevance)
        relevance, best = relevant[0]
        return _SourceCheck(source_id, DISCREPANCY, comparable_value(best), relevance)

    async def _check_oracle(self, assertion: NumericAssertion, source_id: str, text: str) -> _SourceCheck:
        number = assertion.number
        assessment = await self._oracle.verify_numeric(
            assertion.statement.text,
            {"value": number.value, "unit": number.unit, "raw": number.raw, "kind": number.kind.value},
            text[:self._policy.max_source_chars],
        )
        if not assessment.source_data_found or assessment.computed_value is None:
            return _SourceCheck(source_id, NOT_FOUND, method="oracle")
        computed = assessment.computed_value
        claimed = comparable_value(number)
        outcome = PASS if self._policy.within(claimed, computed, number.unit) else DISCREPANCY
        return _SourceCheck(source_id, outcome, computed, assessment.confidence, method="oracle")

    async def check_assertion(
        self,
        assertion: NumericAssertion,
        texts: Dict[str, str],
        source_numbers: Dict[str, List[NumericValue]],
    ) -> Tuple[Dict[str, Any], List[Issue]]:
        """Classify one assertion as pass, discrepancy or no computable data."""
        statement = assertion.statement
        number = assertion.number
        checks = [
            self._check_pattern(assertion, source_id, source_numbers[source_id])
            for source_id in assertion.source_ids if source_id in source_numbers
        ]
        issues: List[Issue] = []
        oracle_error = None

        if not any(check.outcome != NOT_FOUND for check in checks) and self._oracle is not None and self._oracle.enabled:
            for source_id in assertion.source_ids:
                if source_id not in texts:
                    continue
                try:
                    checks.append(await self._check_oracle(assertion, source_id, texts[source_id]))
                except OracleUnavailableError as e:
                    oracle_error = str(e)
                    issues.append(Issue(
                        type=IssueType.ORACLE_UNAVAILABLE,
                        severity=Severity.WARNING,
                        message=f"Oracle unavailable while checking '{number.raw}'",
                        source_id=source_id,
                        statement=statement.text,
                        line=statement.line,
                        details={"error": oracle_error},
                    ))

        passed = [check for check in checks if check.outcome == PASS]
        discrepancies = sorted(
            (check for check in checks if check.outcome == DISCREPANCY),
            key=lambda check: -check.relevance,
        )
        claimed = comparable_value(number)

        if passed:
            chosen, outcome = passed[0], PASS
        elif discrepancies:
            chosen, outcome = discrepancies[0], DISCREPANCY
            details = self._policy.discrepancy(claimed, chosen.computed, number.unit)
            details.update({"raw": number.raw, "method": chosen.method, "cited": assertion.source_ids})
            issues.append(Issue(
                type=IssueType.NUMERIC_DISCREPANCY,
                severity=Severity.BLOCKING,
                message=(
                    f"'{number.raw}' disagrees with {chosen.source_id}: "
                    f"source gives {chosen.computed:g}{number.unit or ''}"
                ),
                source_id=chosen.source_id,
                statement=statement.text,
                line=statement.line,
                details=details,
            ))
        else:
            chosen, outcome = None, NOT_FOUND
            issues.append(Issue(
                type=IssueType.NUMERIC_DATA_NOT_FOUND,
                severity=Severity.WARNING,
                message=f"No computable data for '{number.raw}' in {', '.join(assertion.source_ids)}",
                source_id=assertion.source_ids[0],
                statement=statement.text,
                line=statement.line,
                details={"claimed": claimed, "unit": number.unit, "oracle_error": oracle_error},
            ))

        return {
            "statement_id": statement.statement_id,
            "raw": number.raw,
            "claimed": claimed,
            "unit": number.unit,
            "result": outcome,
            "source_id": chosen.source_id if chosen else None,
            "computed": chosen.computed if chosen else None,
            "method": chosen.method if chosen else None,
        }, issues
