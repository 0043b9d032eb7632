"""Service for resolving document statements against the claim registry."""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from ..exceptions import OracleUnavailableError
from ..models.claim import Claim
from ..models.document_statement import DocumentStatement
from ..models.match_result import MatchResult, MatchStrategy, MatchVerdict
from ..models.policy import MatchPolicy
from .claim_registry import ClaimRegistry
from .numeric_extraction import relatively_close, units_compatible
from .oracle_gateway import OracleGateway
from .text_matching import content_words, jaccard, length_ratio, normalize_text

logger = logging.getLogger(__name__)


@dataclass
class _Candidate:
    claim: Claim
    score: float
    strategy: MatchStrategy
    cited: bool
    tiebreak: float = 0.0


def _ranked(candidates: Iterable[_Candidate]) -> List[_Candidate]:
    return sorted(candidates, key=lambda c: (-c.score, -c.tiebreak, not c.cited, c.claim.claim_id))


def _best(candidates: Iterable[_Candidate]) -> Optional[_Candidate]:
    ranked = _ranked(candidates)
    return ranked[0] if ranked else None


class ClaimMatcher:
    """Resolves a statement to at most one registered claim.

    Strategies run in order and the first one that produces an acceptable
    candidate wins: direct claim reference, exact or contained text, numeric
    agreement, then keyword overlap with a boost for cited sources. A claim
    from a source the statement does not cite is reported as MISMATCH no
    matter how well it scores.
    """

    def __init__(
        self,
        registry: ClaimRegistry,
        policy: Optional[MatchPolicy] = None,
        oracle: Optional[OracleGateway] = None,
    ):
        """Initialize the matcher.

        Args:
            registry: Claim registry, read-only here
            policy: Scoring and acceptance policy
            oracle: Gateway used to adjudicate among cited candidates (optional)
        """
        self._registry = registry
        self._policy = policy or MatchPolicy()
        self._oracle = oracle

    @staticmethod
    def _is_cited(statement: DocumentStatement, claim: Claim) -> bool:
        return claim.source_id in statement.source_ids or claim.claim_id in statement.claim_ids

    def _pools(self, statement: DocumentStatement) -> List[List[Claim]]:
        cited = [claim for source_id in statement.source_ids for claim in self._registry.find_by_source(source_id)]
        everything = self._registry.all_claims()
        return [cited, everything] if cited else [everything]

    def _text_candidates(self, statement: DocumentStatement, pool: Sequence[Claim]) -> List[_Candidate]:
        target = normalize_text(statement.text)
        if not target:
            return []
        candidates = []
        for claim in pool:
            best_score = 0.0
            strategy = MatchStrategy.NONE
            for other in (claim.normalized, normalize_text(claim.supporting_quote)):
                if not other:
                    continue
                if other == target:
                    best_score, strategy = 1.0, MatchStrategy.EXACT_TEXT
                    break
                if other in target or target in other:
                    score = length_ratio(other, target)
                    if score > best_score:
                        best_score, strategy = score, MatchStrategy.CONTAINED_TEXT
            if strategy is not MatchStrategy.NONE:
                candidates.append(_Candidate(claim, best_score, strategy, self._is_cited(statement, claim)))
        return candidates

    def _numeric_candidates(self, statement: DocumentStatement, pool: Sequence[Claim]) -> List[_Candidate]:
        if not statement.numbers:
            return []
        words = content_words(statement.text)
        candidates = []
        for claim in pool:
            if not claim.numbers:
                continue
            matched = sum(
                1 for number in statement.numbers
                if any(
                    units_compatible(number.unit, other.unit)
                    and relatively_close(number.value, other.value, self._policy.numeric_tolerance)
                    for other in claim.numbers
                )
            )
            if not matched:
                continue
            similarity = jaccard(words, content_words(claim.text))
            # Numbers alone, with no shared vocabulary, do not identify a claim.
            if similarity == 0.0:
                continue
            candidates.append(_Candidate(
                claim,
                matched / len(statement.numbers),
                MatchStrategy.NUMERIC,
                self._is_cited(statement, claim),
                tiebreak=similarity,
            ))
        return candidates

    def _keyword_candidates(self, statement: DocumentStatement, pool: Sequence[Claim]) -> List[_Candidate]:
        words = content_words(statement.text)
        candidates = []
        for claim in pool:
            score = jaccard(words, content_words(claim.text))
            cited = self._is_cited(statement, claim)
            if cited:
                score = min(1.0, score * self._policy.source_boost)
            if score > 0:
                candidates.append(_Candidate(claim, score, MatchStrategy.KEYWORD, cited))
        return candidates

    def _accept(self, statement: DocumentStatement, candidate: _Candidate) -> MatchResult:
        claim = candidate.claim
        if candidate.cited:
            return MatchResult(
                statement=statement,
                claim=claim,
                strategy=candidate.strategy,
                confidence=candidate.score,
                verdict=MatchVerdict.VERIFIED,
                reason=f"{candidate.strategy.value} match to {claim.claim_id} from cited source {claim.source_id}",
                supporting_quote=claim.supporting_quote,
            )
        cited = ", ".join(sorted(statement.cited_identifiers)) or "nothing"
        return MatchResult(
            statement=statement,
            claim=claim,
            strategy=candidate.strategy,
            confidence=candidate.score,
            verdict=MatchVerdict.MISMATCH,
            reason=(
                f"{candidate.strategy.value} match to {claim.claim_id} from {claim.source_id}, "
                f"but the statement cites {cited}"
            ),
            supporting_quote=claim.supporting_quote,
        )

    async def match(self, statement: DocumentStatement) -> MatchResult:
        """Resolve one statement against the registry.

        Args:
            statement: Statement scanned from the document

        Returns:
            Match result with verdict, strategy and confidence
        """
        if statement.is_source_reference:
            return MatchResult(
                statement=statement,
                verdict=MatchVerdict.SKIPPED,
                reason=f"source reference: {statement.source_reference_reason}",
            )

        for claim_id in statement.claim_ids:
            claim = self._registry.find_by_id(claim_id)
            if claim is not None:
                return MatchResult(
                    statement=statement,
                    claim=claim,
                    strategy=MatchStrategy.DIRECT_REFERENCE,
                    confidence=1.0,
                    verdict=MatchVerdict.VERIFIED,
                    reason=f"direct reference to {claim_id}",
                    supporting_quote=claim.supporting_quote,
                )

        threshold = self._policy.acceptance_threshold
        pools = self._pools(statement)
        for strategy in (self._text_candidates, self._numeric_candidates):
            for pool in pools:
                best = _best(strategy(statement, pool))
                if best is not None and best.score >= threshold:
                    return self._accept(statement, best)

        best_keyword = _best(self._keyword_candidates(statement, pools[-1]))
        if best_keyword is not None and best_keyword.score >= threshold:
            return self._accept(statement, best_keyword)

        best_score = best_keyword.score if best_keyword else 0.0
        if self._oracle is not None and self._oracle.enabled and len(pools) > 1:
            return await self._adjudicate(statement, pools[0], best_score)

        return MatchResult(
            statement=statement,
            confidence=best_score,
            verdict=MatchVerdict.UNVERIFIED,
            reason=f"no candidate reached the acceptance threshold {threshold} (best {best_score:.2f})",
        )

    async def _adjudicate(self, statement: DocumentStatement, cited_pool: List[Claim], best_score: float) -> MatchResult:
        """Let the oracle pick among claims of the cited sources."""
        ranked = _ranked(self._keyword_candidates(statement, cited_pool))[:self._policy.max_oracle_candidates]
        shortlist = [candidate.claim for candidate in ranked] or cited_pool[:self._policy.max_oracle_candidates]
        payload = [
            {"claim_id": claim.claim_id, "text": claim.text, "supporting_quote": claim.supporting_quote}
            for claim in shortlist
        ]

        try:
            judgment = await self._oracle.judge_support(statement.text, payload)
        except OracleUnavailableError as e:
            return MatchResult(
                statement=statement,
                confidence=best_score,
                verdict=MatchVerdict.UNVERIFIED,
                reason="no textual match and the oracle was unavailable",
                oracle_error=str(e),
            )

        threshold = self._policy.acceptance_threshold
        if not judgment.supported or judgment.confidence < threshold or not judgment.supporting_quote:
            return MatchResult(
                statement=statement,
                strategy=MatchStrategy.ORACLE,
                confidence=min(judgment.confidence, best_score) if judgment.supported else 0.0,
                verdict=MatchVerdict.UNVERIFIED,
                reason=f"oracle did not confirm support: {judgment.reason}",
            )

        quote = normalize_text(judgment.supporting_quote)
        ordered = sorted(shortlist, key=lambda claim: claim.claim_id != judgment.candidate_id)
        for claim in ordered:
            if quote in normalize_text(claim.supporting_quote) or quote in claim.normalized:
                return MatchResult(
                    statement=statement,
                    claim=claim,
                    strategy=MatchStrategy.ORACLE,
                    confidence=judgment.confidence,
                    verdict=MatchVerdict.VERIFIED,
                    reason=f"oracle confirmed support by {claim.claim_id}: {judgment.reason}",
                    supporting_quote=judgment.supporting_quote,
                )

        logger.warning(f"⚠️ Oracle quote for {statement.statement_id} not found in any candidate")
        return MatchResult(
            statement=statement,
            strategy=MatchStrategy.ORACLE,
            verdict=MatchVerdict.UNVERIFIED,
            reason="oracle quote not found in any candidate claim",
        )

