"""Domain model for atomic factual claims bound to one source."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ClaimKind(str, Enum):
    """Kinds of claims the extractor produces."""

    STATISTIC = "statistic"
    FACT = "fact"
    ATTRIBUTION = "attribution"
    EVENT = "event"
    COMPARISON = "comparison"


class NumberKind(str, Enum):
    """Categories of quantitative expressions."""

    PERCENTAGE = "percentage"
    PERCENTAGE_POINTS = "percentage_points"
    CURRENCY = "currency"
    RATIO = "ratio"
    RANK = "rank"
    CHANGE = "change"
    MULTIPLE = "multiple"
    COUNT = "count"
    SCALED = "scaled"


class NumericValue(BaseModel):
    """A number found in text, normalized to a plain value and a unit."""

    value: float = Field(..., description="Normalized value, scale words applied")
    unit: Optional[str] = Field(None, description="Unit: %, pp, currency code, noun, ratio, rank or x")
    kind: NumberKind = Field(..., description="Expression category")
    raw: str = Field(..., description="Matched text")
    context: str = Field(default="", description="Surrounding text")
    position: int = Field(default=0, description="Character offset of the match")
    direction: Optional[int] = Field(None, description="+1 or -1 for directional changes")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class QuoteLocation(BaseModel):
    """Where a supporting excerpt was found in the source text."""

    line: int = Field(..., description="1-based line number of the excerpt start")
    start: int = Field(..., description="Character offset of the excerpt start")
    end: int = Field(..., description="Character offset after the excerpt end")
    match_type: str = Field(..., description="exact or normalized")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class ClaimCandidate(BaseModel):
    """A proposed claim that has not passed the registry's excerpt gate yet."""

    text: str = Field(..., min_length=1, description="Claim text")
    source_id: str = Field(..., description="Source the claim was extracted from")
    supporting_quote: str = Field(..., description="Verbatim excerpt from the source")
    kind: ClaimKind = Field(default=ClaimKind.FACT, description="Claim kind")
    numbers: List[NumericValue] = Field(default_factory=list, description="Extracted numbers")
    entities: List[str] = Field(default_factory=list, description="Key entities")
    extraction_method: str = Field(default="pattern", description="pattern or oracle")
    location_hint: Optional[str] = Field(None, description="Approximate location reported by the extractor")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class Claim(BaseModel):
    """An atomic, verifiable statement extracted from exactly one source."""

    claim_id: str = Field(..., description="Sequential identifier, e.g. CL0001")
    content_hash: str = Field(..., description="Deduplication hash over text and source")
    text: str = Field(..., description="Original claim text")
    normalized: str = Field(..., description="Normalized text used for matching")
    kind: ClaimKind = Field(default=ClaimKind.FACT, description="Claim kind")
    numbers: List[NumericValue] = Field(default_factory=list, description="Extracted numbers")
    entities: List[str] = Field(default_factory=list, description="Key entities")
    source_id: str = Field(..., description="Source the claim is bound to")
    source_url: Optional[str] = Field(None, description="URL of the source at extraction time")
    supporting_quote: str = Field(..., description="Verbatim excerpt from the source")
    quote_location: Optional[QuoteLocation] = Field(None, description="Where the excerpt was found")
    extraction_method: str = Field(default="pattern", description="pattern or oracle")
    extracted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the claim was registered",
    )
    corrected_at: Optional[datetime] = Field(None, description="Last administrative correction")

    class Config:
        """Pydantic model configuration."""
        frozen = True  # Immutable model
        json_schema_extra = {
            "example": {
                "claim_id": "CL0001",
                "content_hash": "3f2a9c0d1b7e4a55",
                "text": "The unemployment rate rose to 4.1% in June.",
                "normalized": "the unemployment rate rose to 4.1% in june",
                "kind": "statistic",
                "source_id": "S001",
                "supporting_quote": "The unemployment rate rose to 4.1% in June.",
            }
        }


@dataclass
class RegistrationResult:
    """Outcome of adding a candidate to the claim registry."""

    claim: Claim
    duplicate: bool = False
