"""Semantic oracle interface and its response contracts."""

from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from ..models.claim import ClaimKind


class OracleJudgment(BaseModel):
    """Judgment on whether source material supports a statement.

    Every field is required. ``supporting_quote`` may be null but must be present.
    """

    supported: bool = Field(..., description="Whether the statement is supported")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence (0-1)")
    supporting_quote: Optional[str] = Field(..., description="Quote drawn from the candidate")
    reason: str = Field(..., description="Short explanation")
    candidate_id: Optional[str] = Field(None, description="Candidate claim the quote came from")


class ExtractedNumber(BaseModel):
    """Number reported by the oracle for an extracted claim."""

    value: float
    unit: Optional[str] = None
    context: Optional[str] = None


class ExtractedClaim(BaseModel):
    """Claim proposed by the oracle."""

    text: str = Field(..., min_length=1)
    type: ClaimKind
    numbers: List[ExtractedNumber] = Field(default_factory=list)
    entities: List[str] = Field(default_factory=list)
    supporting_quote: str = Field(..., min_length=1)
    quote_location: Optional[str] = None


class ExtractionPayload(BaseModel):
    """Full oracle extraction output for one source."""

    claims: List[ExtractedClaim]


class NumericAssessment(BaseModel):
    """Oracle answer to a numeric verification request."""

    source_data_found: bool = Field(..., description="Whether the source has data for the claim")
    computed_value: Optional[float] = Field(..., description="Value computed from the source")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence (0-1)")
    explanation: str = Field(default="", description="How the value was computed")


class SemanticOracle(Protocol):
    """Protocol for external semantic judges.

    Methods return the raw decoded response; contract validation happens in
    the oracle gateway so that no adapter output is trusted directly.
    """

    async def initialize(self) -> None:
        """Initialize the oracle and verify connection."""
        ...

    async def shutdown(self) -> None:
        """Clean up resources."""
        ...

    async def judge_support(self, statement: str, candidates: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Judge whether any candidate claim supports the statement."""
        ...

    async def extract_claims(self, source_id: str, text: str) -> Dict[str, Any]:
        """Extract atomic claims from source text."""
        ...

    async def verify_numeric(self, statement: str, claimed: Dict[str, Any], source_text: str) -> Dict[str, Any]:
        """Compute the value a numeric statement refers to from source text."""
        ...

    @property
    def provider_name(self) -> str:
        """Get the oracle name."""
        ...

    @property
    def is_available(self) -> bool:
        """Check if the oracle is ready."""
        ...
