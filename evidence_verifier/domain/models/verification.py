"""Domain models for pipeline stage results and the chained verification record."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .match_result import MatchResult


class Severity(str, Enum):
    """Issue severities."""

    BLOCKING = "blocking"  # Halts downstream stages, prevents VERIFIED
    WARNING = "warning"  # Needs human review


class IssueType(str, Enum):
    """Every issue the pipeline can report."""

    # Integrity
    HASH_MISMATCH = "HASH_MISMATCH"
    HASH_UNVERIFIABLE = "HASH_UNVERIFIABLE"
    MISSING_EVIDENCE = "MISSING_EVIDENCE"
    ROUND_TIMESTAMP = "ROUND_TIMESTAMP"
    FABRICATED_CONTENT = "FABRICATED_CONTENT"
    HOMEPAGE_URL = "HOMEPAGE_URL"
    INVALID_URL = "INVALID_URL"
    SYNTHESIZED_SOURCE = "SYNTHESIZED_SOURCE"
    INVALID_SOURCE = "INVALID_SOURCE"
    SUSPICIOUS_TITLE = "SUSPICIOUS_TITLE"
    # Binding
    ORPHAN_CITATION = "ORPHAN_CITATION"
    URL_MISMATCH = "URL_MISMATCH"
    MISSING_METADATA_URL = "MISSING_METADATA_URL"
    NO_URLS_TO_VERIFY = "NO_URLS_TO_VERIFY"
    # Semantic
    UNVERIFIED_CLAIM = "UNVERIFIED_CLAIM"
    CITATION_MISMATCH = "CITATION_MISMATCH"
    ORACLE_UNAVAILABLE = "ORACLE_UNAVAILABLE"
    # Numeric
    NUMERIC_DISCREPANCY = "NUMERIC_DISCREPANCY"
    NUMERIC_DATA_NOT_FOUND = "NUMERIC_DATA_NOT_FOUND"
    NUMERIC_NO_CITATION = "NUMERIC_NO_CITATION"


class Issue(BaseModel):
    """A problem found by a stage, with enough context to fix it."""

    type: IssueType = Field(..., description="Issue type")
    severity: Severity = Field(..., description="blocking or warning")
    message: str = Field(..., description="Human readable description")
    source_id: Optional[str] = Field(None, description="Source the issue concerns")
    statement: Optional[str] = Field(None, description="Document statement text")
    line: Optional[int] = Field(None, description="Document line")
    details: Dict[str, Any] = Field(default_factory=dict, description="Expected vs found values")

    class Config:
        """Pydantic model configuration."""
        frozen = True

    @property
    def blocking(self) -> bool:
        return self.severity is Severity.BLOCKING


class StageName(str, Enum):
    """Pipeline stages, in execution order."""

    INTEGRITY = "integrity"
    BINDING = "binding"
    SEMANTIC = "semantic"
    NUMERIC = "numeric"


STAGE_ORDER = (StageName.INTEGRITY, StageName.BINDING, StageName.SEMANTIC, StageName.NUMERIC)


class StageStatus(str, Enum):
    """Stage outcomes."""

    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    SKIPPED = "skipped"


@dataclass
class StageOutcome:
    """What a stage handler hands back to the pipeline before hashing."""

    issues: List[Issue] = field(default_factory=list)
    inputs: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> StageStatus:
        if any(issue.blocking for issue in self.issues):
            return StageStatus.FAIL
        if self.issues:
            return StageStatus.WARN
        return StageStatus.PASS


class StageResult(BaseModel):
    """Hashed output of one pipeline stage."""

    stage: StageName = Field(..., description="Stage identifier")
    status: StageStatus = Field(..., description="pass, warn, fail or skipped")
    issues: List[Issue] = Field(default_factory=list, description="Issues raised by the stage")
    inputs: Dict[str, Any] = Field(default_factory=dict, description="Serialized stage inputs")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Serialized stage outputs")
    skip_reason: Optional[str] = Field(None, description="Why the stage did not run")
    previous_hash: Optional[str] = Field(None, description="Hash of the preceding stage")
    stage_hash: str = Field(..., description="Hash over name, inputs, outputs and previous hash")
    duration_ms: float = Field(default=0.0, description="Wall time, never hashed")

    class Config:
        """Pydantic model configuration."""
        frozen = True

    def canonical_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"duration_ms"})


class OverallStatus(str, Enum):
    """Exit contract of a verification run."""

    VERIFIED = "VERIFIED"  # Safe to publish
    NEEDS_REVIEW = "NEEDS_REVIEW"  # Warnings only
    FAILED = "FAILED"  # At least one blocking issue
    INCOMPLETE = "INCOMPLETE"  # Stages skipped without a failure


class VerificationRecord(BaseModel):
    """The tamper-evident artifact produced by one verification run."""

    document_hash: str = Field(..., description="Hash of the verified document")
    pipeline_state: str = Field(..., description="Final state of the pipeline state machine")
    stages: List[StageResult] = Field(..., description="Stage results in execution order")
    chain_hash: str = Field(..., description="Hash over the ordered stage hashes")
    status: OverallStatus = Field(..., description="Overall status derived from stage statuses")
    blocking_issues: List[Issue] = Field(default_factory=list, description="All blocking issues")
    warnings: List[Issue] = Field(default_factory=list, description="All warnings")
    match_results: List[MatchResult] = Field(default_factory=list, description="Semantic stage results")
    summary: Dict[str, int] = Field(default_factory=dict, description="Counts for quick inspection")
    duration_ms: float = Field(default=0.0, description="Total wall time, never hashed")

    class Config:
        """Pydantic model configuration."""
        frozen = True

    @property
    def is_publishable(self) -> bool:
        return self.status is OverallStatus.VERIFIED

    def canonical_dict(self) -> Dict[str, Any]:
        """Timing-free form; identical inputs give an identical dict."""
        return {
            "document_hash": self.document_hash,
            "pipeline_state": self.pipeline_state,
            "status": self.status.value,
            "chain_hash": self.chain_hash,
            "stages": [stage.canonical_dict() for stage in self.stages],
            "blocking_issues": [issue.model_dump(mode="json") for issue in self.blocking_issues],
            "warnings": [issue.model_dump(mode="json") for issue in self.warnings],
            "match_results": [result.summary() for result in self.match_results],
            "summary": dict(self.summary),
        }
