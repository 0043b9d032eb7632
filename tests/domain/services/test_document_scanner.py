"""Tests for the document scanner."""

from evidence_verifier.domain.models.document_statement import CitationKind
from evidence_verifier.domain.services.document_scanner import DocumentScanner, strip_citations

DOCUMENT = """# Jobs report

The unemployment rate rose to 4.1% in June [S001]. Employers added 206,000 jobs [S001](https://www.bls.gov/x). Analysts were surprised.

| Metric | Value [S009] |
|---|---|
> A quote that cites [S008].

```
Code mentioning [S007] is ignored.
```

Wage growth cooled, according to payroll data [CL0003].

## Sources

- Bureau of Labor Statistics: Employment Situation [S001]
"""


def test_document_without_citations_yields_no_statements():
    """Test a document with no citation markers has no statements."""
    scanner = DocumentScanner()
    document = "# Title\n\nThe rate rose to 4.1% in June. Nothing here is cited.\n"
    assert scanner.scan(document) == []
    assert scanner.extract_citations(document) == []


def test_scan_returns_cited_prose_statements():
    statements = DocumentScanner().scan(DOCUMENT)

    assert [s.statement_id for s in statements] == ["L3.1", "L3.2", "L13.1"]
    first, second, third = statements
    assert first.text == "The unemployment rate rose to 4.1% in June."
    assert first.source_ids == ["S001"]
    assert first.numbers[0].value == 4.1
    assert second.citations[0].url == "https://www.bls.gov/x"
    assert third.claim_ids == ["CL0003"]
    assert third.source_ids == []


def test_structural_lines_are_not_prose():
    """Test tables, blockquotes and fenced code never produce statements."""
    units = DocumentScanner().scan_units(DOCUMENT)
    texts = " ".join(unit.text for unit in units)
    assert "Metric" not in texts
    assert "A quote" not in texts
    assert "Code mentioning" not in texts


def test_source_list_entries_are_flagged_and_excluded():
    scanner = DocumentScanner()
    units = scanner.scan_units(DOCUMENT)
    entry = [unit for unit in units if unit.line == 17][0]

    assert entry.is_source_reference
    assert entry.source_reference_reason == "listed under a sources heading"
    assert all(s.line != 17 for s in scanner.scan(DOCUMENT))
    assert any(s.line == 17 for s in scanner.scan(DOCUMENT, include_source_references=True))


def test_classify_source_reference():
    classify = DocumentScanner.classify_source_reference
    assert classify("- Census Bureau: Quick Facts [S002]", "Census Bureau: Quick Facts", False)
    assert classify("[S001], [S002]", "", False) == "bare citation entry"
    assert classify("Household Pulse Survey Data Explorer [S003]", "Household Pulse Survey Data Explorer", False)
    assert classify("Annual Wage Statistics For Retail Workers", "Annual Wage Statistics For Retail Workers", False)
    assert classify(
        "Retail wages grew faster than inflation in 2023 [S004].",
        "Retail wages grew faster than inflation in 2023.",
        False,
    ) is None


def test_extract_citations_covers_all_lines_outside_code():
    citations = DocumentScanner().extract_citations(DOCUMENT)

    identifiers = [citation.identifier for citation in citations]
    assert identifiers == ["S001", "S001", "S009", "S008", "CL0003", "S001"]
    assert citations[4].kind is CitationKind.CLAIM
    assert citations[1].url == "https://www.bls.gov/x"
    assert citations[0].line == 3


def test_strip_citations():
    assert strip_citations("Rates rose [S001](https://a.com/x) .") == "Rates rose."
    assert strip_citations("Rates rose [S001][CL0002].") == "Rates rose."
