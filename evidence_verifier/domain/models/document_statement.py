"""Domain models for statements scanned out of the finished document."""

from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, Field

from .claim import NumericValue


class CitationKind(str, Enum):
    """What a citation marker points at."""

    SOURCE = "source"
    CLAIM = "claim"


class Citation(BaseModel):
    """One citation marker such as ``[S001]`` or ``[S001](https://...)``."""

    identifier: str = Field(..., description="Cited source or claim identifier")
    kind: CitationKind = Field(..., description="Source or direct claim reference")
    url: Optional[str] = Field(None, description="URL attached to the marker")
    line: int = Field(..., description="1-based document line")
    column: int = Field(default=0, description="0-based column of the marker")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class DocumentStatement(BaseModel):
    """A sentence-like unit of the document, with its citations."""

    statement_id: str = Field(..., description="Position based id, e.g. L12.2")
    text: str = Field(..., description="Text with citation markup stripped")
    raw: str = Field(..., description="Unit as it appears in the document")
    line: int = Field(..., description="1-based document line")
    index: int = Field(default=1, description="1-based unit index within the line")
    source_ids: List[str] = Field(default_factory=list, description="Cited source ids")
    claim_ids: List[str] = Field(default_factory=list, description="Directly cited claim ids")
    citations: List[Citation] = Field(default_factory=list, description="Citation markers")
    numbers: List[NumericValue] = Field(default_factory=list, description="Numbers in the text")
    is_source_reference: bool = Field(default=False, description="Looks like a source list entry")
    source_reference_reason: Optional[str] = Field(None, description="Why it was flagged")

    class Config:
        """Pydantic model configuration."""
        frozen = True

    @property
    def has_citations(self) -> bool:
        return bool(self.citations)

    @property
    def cited_identifiers(self) -> Set[str]:
        return set(self.source_ids) | set(self.claim_ids)

    def summary(self) -> dict:
        """Compact, deterministic form used in stage hashes."""
        return {
            "statement_id": self.statement_id,
            "line": self.line,
            "text": self.text,
            "source_ids": list(self.source_ids),
            "claim_ids": list(self.claim_ids),
        }
