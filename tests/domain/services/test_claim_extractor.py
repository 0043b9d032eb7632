"""Tests for the claim extractor."""

import pytest

from evidence_verifier.domain.exceptions import VerificationInputError
from evidence_verifier.domain.models.claim import ClaimKind
from evidence_verifier.domain.services.claim_extractor import ClaimExtractor
from evidence_verifier.domain.services.oracle_gateway import OracleGateway

from conftest import FakeOracle

SOURCE_TEXT = (
    "# June 2024 report\n"
    "- Employers added 206,000 jobs in June. Hiring was broad.\n"
    "The unemployment rate rose to 4.1% in June.\n"
    "The unemployment rate rose to 4.1% in June.\n"
)


@pytest.fixture
def s001(case):
    return case.add_source("S001", SOURCE_TEXT)


def _extractor(registry, store, oracle=None):
    return ClaimExtractor(registry, store, OracleGateway(oracle) if oracle else None)


def test_pattern_extraction_keeps_number_bearing_sentences(registry, store):
    candidates = _extractor(registry, store).extract_with_patterns("S001", SOURCE_TEXT)

    assert [c.text for c in candidates] == [
        "Employers added 206,000 jobs in June.",
        "The unemployment rate rose to 4.1% in June.",
    ]
    assert all(c.supporting_quote == c.text for c in candidates)
    assert candidates[0].kind is ClaimKind.STATISTIC
    assert candidates[1].numbers[0].unit == "%"


@pytest.mark.asyncio
async def test_process_source_registers_then_deduplicates(s001, registry, store):
    extractor = _extractor(registry, store)

    first = await extractor.process_source("S001")
    second = await extractor.process_source("S001")

    assert len(first.registered) == 2
    assert second.registered == []
    assert [claim.claim_id for claim in second.duplicates] == ["CL0001", "CL0002"]
    assert len(registry) == 2


@pytest.mark.asyncio
async def test_process_source_requires_text(case, registry, store):
    case.add_source("S002", "", with_evidence=False)

    with pytest.raises(VerificationInputError):
        await _extractor(registry, store).process_source("S002")


@pytest.mark.asyncio
async def test_oracle_claims_need_verbatim_quotes(s001, registry, store):
    """Test oracle claims are kept only when their quote is in the source."""
    oracle = FakeOracle(extraction={
        "claims": [
            {
                "text": "Unemployment reached 4.1 percent in June",
                "type": "statistic",
                "numbers": [{"value": 4.1, "unit": "percent", "context": "unemployment rate"}],
                "entities": ["Bureau of Labor Statistics"],
                "supporting_quote": "The unemployment rate rose to 4.1% in June",
                "quote_location": "paragraph 2",
            },
            {
                "text": "Unemployment hit a record low",
                "type": "fact",
                "supporting_quote": "Unemployment hit a record low in June",
            },
        ]
    })

    report = await _extractor(registry, store, oracle).process_source("S001", use_oracle=True)

    oracle_claims = [claim for claim in report.registered if claim.extraction_method == "oracle"]
    assert len(oracle_claims) == 1
    assert oracle_claims[0].entities == ["Bureau of Labor Statistics"]
    assert [(n.value, n.unit) for n in oracle_claims[0].numbers] == [(4.1, "%")]
    assert report.rejected == [
        {"text": "Unemployment hit a record low", "reason": "supporting quote not found in source"}
    ]
    assert report.oracle_error is None


@pytest.mark.asyncio
@pytest.mark.parametrize("oracle", [
    FakeOracle(extraction={"claims": [{"text": "No quote or type"}]}),
    FakeOracle(extraction=RuntimeError("rate limited")),
    FakeOracle(available=False),
    None,
])
async def test_oracle_problems_keep_pattern_claims(s001, registry, store, oracle):
    """Test malformed or failed oracle output is rejected as a whole without losing pattern claims."""
    extractor = ClaimExtractor(registry, store, OracleGateway(oracle) if oracle is not None else None)

    report = await extractor.process_source("S001", use_oracle=True)

    assert report.oracle_error
    assert len(report.registered) == 2
    assert all(claim.extraction_method == "pattern" for claim in report.registered)


@pytest.mark.asyncio
async def test_report_to_dict(s001, registry, store):
    report = await _extractor(registry, store).process_source("S001")

    data = report.to_dict()
    assert data["source_id"] == "S001"
    assert [claim["claim_id"] for claim in data["registered"]] == ["CL0001", "CL0002"]
    assert data["duplicates"] == []
    assert data["rejected"] == []
