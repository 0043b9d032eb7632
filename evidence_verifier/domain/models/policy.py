"""Configurable policies for matching, numeric tolerance and the pipeline."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .verification import StageName


class MatchPolicy(BaseModel):
    """How the matcher scores and accepts candidates."""

    acceptance_threshold: float = Field(default=0.5, ge=0.0, le=1.0, description="Minimum score to accept")
    source_boost: float = Field(default=1.5, ge=1.0, description="Keyword multiplier for cited sources")
    numeric_tolerance: float = Field(default=0.01, ge=0.0, description="Relative tolerance for number agreement")
    mismatch_blocking: bool = Field(default=True, description="Treat MISMATCH as a blocking issue")
    max_oracle_candidates: int = Field(default=10, ge=1, description="Candidates shown to the oracle")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class NumericTolerancePolicy(BaseModel):
    """Tolerance rule for numeric verification.

    Ordinary values, percentages included, are compared relative to the value
    computed from the source. Claims expressed in percentage points are
    compared additively.
    """

    relative_tolerance: float = Field(default=0.05, ge=0.0, description="Relative tolerance")
    percentage_point_tolerance: float = Field(default=0.5, ge=0.0, description="Absolute tolerance in points")
    min_relevance: float = Field(default=0.15, ge=0.0, le=1.0, description="Keyword relevance for a comparison")
    max_source_chars: int = Field(default=12000, ge=1, description="Source text sent to the oracle")

    class Config:
        """Pydantic model configuration."""
        frozen = True

    def within(self, claimed: float, computed: float, unit: Optional[str]) -> bool:
        """Check whether a claimed value agrees with the computed one."""
        if unit == "pp":
            return abs(claimed - computed) <= self.percentage_point_tolerance
        if computed == 0:
            return claimed == 0
        return abs(claimed - computed) / abs(computed) <= self.relative_tolerance

    def discrepancy(self, claimed: float, computed: float, unit: Optional[str]) -> Dict[str, Any]:
        """Describe how far a claimed value is from the computed one."""
        difference = abs(claimed - computed)
        details: Dict[str, Any] = {
            "claimed": claimed,
            "computed": computed,
            "unit": unit,
            "discrepancy": round(difference, 6),
            "discrepancy_percent": round(difference / abs(computed) * 100, 2) if computed else None,
        }
        if unit in ("%", "pp"):
            details["discrepancy_points"] = round(difference, 4)
        return details


class PipelineConfig(BaseModel):
    """Run-time configuration of the verification pipeline."""

    stop_on_fail: bool = Field(default=True, description="Skip later stages after a failure")
    max_workers: int = Field(default=8, ge=1, description="Concurrent matches and numeric checks")
    skip_stages: List[StageName] = Field(default_factory=list, description="Stages disabled for this run")
    match_policy: MatchPolicy = Field(default_factory=MatchPolicy)
    numeric_policy: NumericTolerancePolicy = Field(default_factory=NumericTolerancePolicy)

    class Config:
        """Pydantic model configuration."""
        frozen = True
