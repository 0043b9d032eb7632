"""Domain model for the outcome of matching a statement to the claim registry."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .claim import Claim
from .document_statement import DocumentStatement


class MatchVerdict(str, Enum):
    """Possible matching outcomes."""

    VERIFIED = "VERIFIED"  # Matched a claim from a cited source
    UNVERIFIED = "UNVERIFIED"  # No candidate met the acceptance threshold
    MISMATCH = "MISMATCH"  # Matched a claim, but from an uncited source
    SKIPPED = "SKIPPED"  # Source list entry, not an assertion


class MatchStrategy(str, Enum):
    """Strategy that produced the match."""

    DIRECT_REFERENCE = "direct_reference"
    EXACT_TEXT = "exact_text"
    CONTAINED_TEXT = "contained_text"
    NUMERIC = "numeric"
    KEYWORD = "keyword"
    ORACLE = "oracle"
    NONE = "none"


class MatchResult(BaseModel):
    """Resolution of one document statement against the claim registry."""

    statement: DocumentStatement = Field(..., description="Statement that was matched")
    claim: Optional[Claim] = Field(None, description="Matched claim, if any")
    strategy: MatchStrategy = Field(default=MatchStrategy.NONE, description="Winning strategy")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Score in [0, 1]")
    verdict: MatchVerdict = Field(..., description="Match verdict")
    reason: str = Field(default="", description="Human readable explanation")
    supporting_quote: Optional[str] = Field(None, description="Quote backing the verdict")
    oracle_error: Optional[str] = Field(None, description="Oracle failure, if one occurred")

    class Config:
        """Pydantic model configuration."""
        frozen = True

    @property
    def claim_id(self) -> Optional[str]:
        return self.claim.claim_id if self.claim else None

    def summary(self) -> Dict[str, Any]:
        """Compact, deterministic form used in stage hashes and records."""
        return {
            **self.statement.summary(),
            "verdict": self.verdict.value,
            "strategy": self.strategy.value,
            "confidence": round(self.confidence, 4),
            "claim_id": self.claim_id,
            "claim_source_id": self.claim.source_id if self.claim else None,
            "reason": self.reason,
            "oracle_error": self.oracle_error,
        }
