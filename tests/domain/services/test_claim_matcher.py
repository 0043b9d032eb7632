"""Tests for the claim matcher."""

import pytest

from evidence_verifier.domain.models.match_result import MatchStrategy, MatchVerdict
from evidence_verifier.domain.services.claim_matcher import ClaimMatcher
from evidence_verifier.domain.services.document_scanner import DocumentScanner
from evidence_verifier.domain.services.oracle_gateway import OracleGateway

from conftest import FakeOracle

RATE = "The unemployment rate rose to 4.1% in June."
WAGES = "Wage growth slowed over the year."


def statement(text: str):
    return DocumentScanner().scan_units(text)[0]


@pytest.fixture
def sources(case):
    case.add_source("S001", f"{RATE} {WAGES}")
    case.add_source("S002", RATE)
    case.add_source("S003", "Factory orders were flat.")
    return case


@pytest.mark.asyncio
async def test_exact_text_from_cited_source_is_verified(sources, registry, register):
    claim = await register("S001", RATE)

    result = await ClaimMatcher(registry).match(statement("The unemployment rate rose to 4.1% in June [S001]."))

    assert result.verdict is MatchVerdict.VERIFIED
    assert result.strategy is MatchStrategy.EXACT_TEXT
    assert result.confidence == 1.0
    assert result.claim_id == claim.claim_id


@pytest.mark.asyncio
async def test_match_from_uncited_source_is_mismatch(sources, registry, register):
    """Test a statement citing S001 that only matches an S002 claim is a mismatch."""
    await register("S001", WAGES)
    other = await register("S002", RATE)

    result = await ClaimMatcher(registry).match(statement("The unemployment rate rose to 4.1% in June [S001]."))

    assert result.verdict is MatchVerdict.MISMATCH
    assert result.claim_id == other.claim_id
    assert "S002" in result.reason and "S001" in result.reason


@pytest.mark.asyncio
async def test_cited_source_without_claims_still_mismatches(sources, registry, register):
    await register("S002", RATE)

    result = await ClaimMatcher(registry).match(statement("The unemployment rate rose to 4.1% in June [S003]."))

    assert result.verdict is MatchVerdict.MISMATCH


@pytest.mark.asyncio
async def test_direct_claim_reference(sources, registry, register):
    claim = await register("S001", WAGES)

    result = await ClaimMatcher(registry).match(statement(f"Pay momentum faded [{claim.claim_id}]."))

    assert result.verdict is MatchVerdict.VERIFIED
    assert result.strategy is MatchStrategy.DIRECT_REFERENCE
    assert result.confidence == 1.0


@pytest.mark.asyncio
async def test_contained_text(sources, registry, register):
    await register("S001", RATE)

    result = await ClaimMatcher(registry).match(
        statement("Officials said the unemployment rate rose to 4.1% in June [S001].")
    )

    assert result.verdict is MatchVerdict.VERIFIED
    assert result.strategy is MatchStrategy.CONTAINED_TEXT
    assert 0.5 <= result.confidence < 1.0


@pytest.mark.asyncio
async def test_numeric_agreement_needs_shared_vocabulary(sources, registry, register):
    await register("S001", RATE)
    matcher = ClaimMatcher(registry)

    related = await matcher.match(statement("Joblessness climbed to 4.1% in June [S001]."))
    unrelated = await matcher.match(statement("Mortgage approvals reached 4.1% [S001]."))

    assert related.verdict is MatchVerdict.VERIFIED
    assert related.strategy is MatchStrategy.NUMERIC
    assert unrelated.verdict is MatchVerdict.UNVERIFIED


@pytest.mark.asyncio
async def test_keyword_overlap_with_source_boost(sources, registry, register):
    await register("S001", RATE)

    result = await ClaimMatcher(registry).match(statement("Unemployment rate higher during June [S001]."))

    assert result.verdict is MatchVerdict.VERIFIED
    assert result.strategy is MatchStrategy.KEYWORD
    assert result.confidence == pytest.approx(0.75)


@pytest.mark.asyncio
async def test_unmatched_statement_is_unverified(sources, registry, register):
    await register("S001", RATE)

    result = await ClaimMatcher(registry).match(statement("Local officials praised the new transit plan [S001]."))

    assert result.verdict is MatchVerdict.UNVERIFIED
    assert result.claim is None
    assert "acceptance threshold" in result.reason


@pytest.mark.asyncio
async def test_source_reference_is_skipped(sources, registry):
    result = await ClaimMatcher(registry).match(statement("- Bureau of Labor Statistics: Employment Situation [S001]"))

    assert result.verdict is MatchVerdict.SKIPPED


@pytest.mark.asyncio
async def test_oracle_confirms_support_with_a_candidate_quote(sources, registry, register):
    claim = await register("S001", RATE)
    oracle = FakeOracle(judgment={
        "supported": True,
        "confidence": 0.9,
        "supporting_quote": "unemployment rate rose to 4.1%",
        "reason": "same figure",
        "candidate_id": claim.claim_id,
    })
    matcher = ClaimMatcher(registry, oracle=OracleGateway(oracle))

    result = await matcher.match(statement("Joblessness edged higher at midyear [S001]."))

    assert result.verdict is MatchVerdict.VERIFIED
    assert result.strategy is MatchStrategy.ORACLE
    assert result.claim_id == claim.claim_id
    assert oracle.calls[0]["candidates"][0]["claim_id"] == claim.claim_id


@pytest.mark.asyncio
@pytest.mark.parametrize("judgment", [
    {"supported": False, "confidence": 0.9, "supporting_quote": None, "reason": "different topic"},
    {"supported": True, "confidence": 0.2, "supporting_quote": "unemployment rate", "reason": "weak"},
    {"supported": True, "confidence": 0.9, "supporting_quote": "a quote from nowhere", "reason": "made up"},
])
async def test_oracle_without_usable_support_is_unverified(sources, registry, register, judgment):
    await register("S001", RATE)
    matcher = ClaimMatcher(registry, oracle=OracleGateway(FakeOracle(judgment=judgment)))

    result = await matcher.match(statement("Joblessness edged higher at midyear [S001]."))

    assert result.verdict is MatchVerdict.UNVERIFIED
    assert result.oracle_error is None


@pytest.mark.asyncio
@pytest.mark.parametrize("judgment", [
    RuntimeError("connection reset"),
    {"supported": True, "confidence": 0.9, "reason": "quote field missing"},
    ["not", "an", "object"],
])
async def test_oracle_failure_is_never_a_pass(sources, registry, register, judgment):
    """Test oracle errors and contract violations leave the statement unverified."""
    await register("S001", RATE)
    matcher = ClaimMatcher(registry, oracle=OracleGateway(FakeOracle(judgment=judgment)))

    result = await matcher.match(statement("Joblessness edged higher at midyear [S001]."))

    assert result.verdict is MatchVerdict.UNVERIFIED
    assert result.oracle_error
