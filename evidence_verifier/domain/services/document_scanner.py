"""Scanner that pulls citation-bearing statements out of a markdown document."""

import logging
import re
from typing import Iterator, List, Optional, Tuple

from ..models.document_statement import Citation, CitationKind, DocumentStatement
from .numeric_extraction import extract_numbers

logger = logging.getLogger(__name__)

CITATION_PATTERN = re.compile(r"\[(?P<id>S\d{3,}|CL\d{4,})\](?:\((?P<url>[^)\s]+)\))?")

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")
_HEADING = re.compile(r"^#{1,6}(?:\s|$)")
_SOURCES_HEADING = re.compile(
    r"^(?:#{1,6}\s*|\*\*)\s*(?:sources(?:\s+consulted)?|references|bibliography|works\s+cited|citations)\b",
    re.IGNORECASE,
)
_RULE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})\s*$")
_FENCE = re.compile(r"^(?:```|~~~)")
_LIST_MARKER = re.compile(r"^(?:[-*+]|\d+[.)])\s+")

# Lines that look like entries of a source list rather than assertions.
_SOURCE_LIST_PATTERNS = [
    (re.compile(r"^[-*]\s*[-*]?\s*[A-Z][^:.!?]{0,80}:\s*[A-Z]"), "list entry with a title prefix"),
    (re.compile(r"^[-*+]?\s*(?:\[[^\]]+\](?:\([^)]*\))?[\s,;]*)+$"), "bare citation entry"),
    (
        re.compile(
            r"\b(?:Portal|Index|Methodology|Overview|Quick Facts|Homepage|Database|Dashboard|Data Explorer)"
            r"\s*(?:\[[^\]]+\](?:\([^)]*\))?\s*)*$"
        ),
        "title ending in an index term",
    ),
]

_MIN_STATEMENT_CHARS = 10
_SHORT_TITLE_WORDS = 4
_TITLE_CASE_MAX_WORDS = 10


def _is_title_cased(text: str) -> bool:
    words = [word for word in re.findall(r"[A-Za-z][A-Za-z'\-]*", text) if len(word) > 3]
    if not words or len(text.split()) > _TITLE_CASE_MAX_WORDS or text.rstrip().endswith((".", "!", "?")):
        return False
    return all(word[0].isupper() for word in words)


def strip_citations(text: str) -> str:
    """Remove citation markers and tidy the whitespace they leave behind."""
    stripped = CITATION_PATTERN.sub("", text)
    stripped = re.sub(r"\s+([.,;:!?])", r"\1", stripped)
    return " ".join(stripped.split())


class DocumentScanner:
    """Splits a document into sentence-like units and collects their citations.

    Structural lines (headings, table rows, blockquotes, rules, code fences
    and their contents, empty lines) are never treated as prose.
    """

    def _prose_lines(self, document: str) -> Iterator[Tuple[int, str, bool]]:
        """Yield (line number, line, inside a sources section) for prose lines."""
        in_fence = False
        in_sources = False
        for number, line in enumerate(document.splitlines(), start=1):
            stripped = line.strip()
            if _FENCE.match(stripped):
                in_fence = not in_fence
                continue
            if in_fence or not stripped:
                continue
            if _SOURCES_HEADING.match(stripped):
                in_sources = True
                continue
            if _HEADING.match(stripped):
                in_sources = False
                continue
            if stripped.startswith(("|", ">")) or _RULE.match(stripped):
                continue
            yield number, line, in_sources

    @staticmethod
    def _split_units(line: str) -> List[Tuple[int, str]]:
        units = []
        start = 0
        for boundary in _SENTENCE_BOUNDARY.finditer(line):
            units.append((start, line[start:boundary.start()]))
            start = boundary.end()
        units.append((start, line[start:]))
        return [(offset, unit) for offset, unit in units if unit.strip()]

    @staticmethod
    def _citations(text: str, line: int, offset: int = 0) -> List[Citation]:
        return [
            Citation(
                identifier=match.group("id"),
                kind=CitationKind.CLAIM if match.group("id").startswith("CL") else CitationKind.SOURCE,
                url=match.group("url"),
                line=line,
                column=offset + match.start(),
            )
            for match in CITATION_PATTERN.finditer(text)
        ]

    @staticmethod
    def classify_source_reference(candidate: str, text: str, in_sources: bool) -> Optional[str]:
        """Return why a unit looks like a source list entry, or None for assertions.

        Args:
            candidate: The unit as written, list marker included for single-unit lines
            text: The unit with citations stripped
            in_sources: Whether the unit sits under a sources heading
        """
        if in_sources:
            return "listed under a sources heading"
        candidate = candidate.strip()
        for pattern, reason in _SOURCE_LIST_PATTERNS:
            if pattern.search(candidate):
                return reason
        if len(text) < _MIN_STATEMENT_CHARS:
            return "too short to be an assertion"
        if ":" in text and len(text.split()) <= _SHORT_TITLE_WORDS:
            return "short titled entry"
        if _is_title_cased(text):
            return "title-cased entry"
        return None

    def scan_units(self, document: str) -> List[DocumentStatement]:
        """Every prose unit of the document, cited or not."""
        statements: List[DocumentStatement] = []
        for number, line, in_sources in self._prose_lines(document):
            marker = _LIST_MARKER.match(line.lstrip())
            body_offset = len(line) - len(line.lstrip()) + (marker.end() if marker else 0)
            body = line[body_offset:]
            units = self._split_units(body)
            for index, (offset, unit) in enumerate(units, start=1):
                raw = unit.strip()
                text = strip_citations(raw)
                citations = self._citations(unit, number, body_offset + offset)
                candidate = line if len(units) == 1 else unit
                reason = self.classify_source_reference(candidate, text, in_sources)
                statements.append(DocumentStatement(
                    statement_id=f"L{number}.{index}",
                    text=text,
                    raw=raw,
                    line=number,
                    index=index,
                    source_ids=list(dict.fromkeys(
                        c.identifier for c in citations if c.kind is CitationKind.SOURCE
                    )),
                    claim_ids=list(dict.fromkeys(
                        c.identifier for c in citations if c.kind is CitationKind.CLAIM
                    )),
                    citations=citations,
                    numbers=extract_numbers(text),
                    is_source_reference=reason is not None,
                    source_reference_reason=reason,
                ))
        return statements

    def scan(self, document: str, include_source_references: bool = False) -> List[DocumentStatement]:
        """Extract citation-bearing statements from a document.

        Args:
            document: Markdown or plain text document
            include_source_references: Keep units flagged as source list entries

        Returns:
            Statements carrying at least one citation marker
        """
        statements = [
            statement for statement in self.scan_units(document)
            if statement.has_citations and (include_source_references or not statement.is_source_reference)
        ]
        logger.info(f"📝 Scanned {len(statements)} citation-bearing statements")
        return statements

    def extract_citations(self, document: str) -> List[Citation]:
        """Every citation marker in the document outside code blocks."""
        citations: List[Citation] = []
        in_fence = False
        for number, line in enumerate(document.splitlines(), start=1):
            if _FENCE.match(line.strip()):
                in_fence = not in_fence
                continue
            if not in_fence:
                citations.extend(self._citations(line, number))
        return citations
