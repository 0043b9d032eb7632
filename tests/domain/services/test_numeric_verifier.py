"""Tests for the numeric stage."""

import pytest

from evidence_verifier.domain.models.verification import IssueType, Severity, StageStatus
from evidence_verifier.domain.services.document_scanner import DocumentScanner
from evidence_verifier.domain.services.numeric_verifier import NumericVerifier, sentence_numbers
from evidence_verifier.domain.services.oracle_gateway import OracleGateway

from conftest import FakeOracle

SURVEY = "Support for the policy reached 58% among voters in the March survey."


@pytest.fixture
def survey(case):
    return case.add_source("S001", SURVEY)


async def verify(document, store, registry, oracle=None):
    gateway = OracleGateway(oracle) if oracle is not None else None
    units = DocumentScanner().scan_units(document)
    return await NumericVerifier(store, registry, oracle=gateway).verify(units)


def issue_types(outcome):
    return [issue.type for issue in outcome.issues]


@pytest.mark.asyncio
async def test_discrepancy_reports_points_and_percent(survey, store, registry):
    outcome = await verify("Support for the policy reached 62% among voters [S001].", store, registry)

    [issue] = outcome.issues
    assert issue.type is IssueType.NUMERIC_DISCREPANCY
    assert issue.severity is Severity.BLOCKING
    assert issue.source_id == "S001"
    assert issue.details["claimed"] == 62.0
    assert issue.details["computed"] == 58.0
    assert issue.details["discrepancy_points"] == 4.0
    assert issue.details["discrepancy_percent"] == pytest.approx(6.9)
    assert outcome.status is StageStatus.FAIL
    assert outcome.outputs["counts"] == {"pass": 0, "discrepancy": 1, "not_found": 0}


@pytest.mark.asyncio
async def test_value_within_tolerance_passes(survey, store, registry):
    outcome = await verify("Support for the policy reached 59% among voters [S001].", store, registry)

    assert outcome.issues == []
    [result] = outcome.outputs["results"]
    assert result["result"] == "pass"
    assert result["computed"] == 58.0
    assert result["method"] == "pattern"


@pytest.mark.asyncio
async def test_claim_citation_checks_the_claims_source(survey, store, registry, register):
    claim = await register("S001", SURVEY)

    outcome = await verify(f"Support for the policy reached 62% among voters [{claim.claim_id}].", store, registry)

    assert issue_types(outcome) == [IssueType.NUMERIC_DISCREPANCY]
    assert outcome.inputs["assertions"][0]["source_ids"] == ["S001"]


@pytest.mark.asyncio
async def test_no_comparable_data_is_a_warning(survey, store, registry):
    outcome = await verify("Payrolls grew by 2,000 jobs over the quarter [S001].", store, registry)

    [issue] = outcome.issues
    assert issue.type is IssueType.NUMERIC_DATA_NOT_FOUND
    assert issue.severity is Severity.WARNING
    assert outcome.status is StageStatus.WARN


@pytest.mark.asyncio
async def test_significant_uncited_number(survey, store, registry):
    outcome = await verify("Turnout reached 62% in the county. About 40 volunteers helped.", store, registry)

    [issue] = outcome.issues
    assert issue.type is IssueType.NUMERIC_NO_CITATION
    assert issue.details == {"claimed": 62.0, "unit": "%"}
    assert outcome.inputs["assertions"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize("computed,expected", [(2050.0, "pass"), (2500.0, "discrepancy")])
async def test_oracle_computes_missing_values(survey, store, registry, computed, expected):
    oracle = FakeOracle(numeric={
        "source_data_found": True,
        "computed_value": computed,
        "confidence": 0.8,
        "explanation": "summed the regional tables",
    })

    outcome = await verify("Payrolls grew by 2,000 jobs over the quarter [S001].", store, registry, oracle)

    [result] = outcome.outputs["results"]
    assert result["result"] == expected
    assert result["method"] == "oracle"
    assert oracle.calls[0]["claimed"]["value"] == 2000.0


@pytest.mark.asyncio
async def test_oracle_failure_is_reported_and_never_a_pass(survey, store, registry):
    oracle = FakeOracle(numeric=ConnectionError("connection reset"))

    outcome = await verify("Payrolls grew by 2,000 jobs over the quarter [S001].", store, registry, oracle)

    assert issue_types(outcome) == [IssueType.ORACLE_UNAVAILABLE, IssueType.NUMERIC_DATA_NOT_FOUND]
    assert outcome.outputs["results"][0]["result"] == "not_found"
    assert outcome.issues[1].details["oracle_error"]


@pytest.mark.asyncio
async def test_unrelated_close_number_does_not_pass(case, store, registry):
    """Test a nearby figure from another sentence cannot vouch for a wrong number."""
    case.add_source(
        "S001",
        "Support for the policy reached 40% among voters. Turnout in the region was 61% overall.",
    )

    outcome = await verify("Support for the policy reached 62% among voters [S001].", store, registry)

    [issue] = outcome.issues
    assert issue.type is IssueType.NUMERIC_DISCREPANCY
    assert issue.details["computed"] == 40.0
    assert outcome.outputs["results"][0]["result"] == "discrepancy"


@pytest.mark.asyncio
async def test_only_irrelevant_numbers_is_no_data(case, store, registry):
    case.add_source("S001", "Turnout in the region was 61% overall.")

    outcome = await verify("Support for the policy reached 62% among voters [S001].", store, registry)

    assert issue_types(outcome) == [IssueType.NUMERIC_DATA_NOT_FOUND]
    assert outcome.outputs["results"][0]["result"] == "not_found"


def test_source_numbers_carry_their_sentence():
    numbers = sentence_numbers("Support reached 40% among voters. Turnout was 61% overall.")

    assert [number.context for number in numbers] == [
        "Support reached 40% among voters.",
        "Turnout was 61% overall.",
    ]
    assert numbers[1].position == len("Support reached 40% among voters. Turnout was ")
