"""Verification settings loaded from the environment."""

import logging
import os
from typing import List, Optional

from pydantic import BaseModel, Field

from ..domain.models.policy import MatchPolicy, NumericTolerancePolicy, PipelineConfig
from ..domain.models.verification import StageName

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


class VerificationSettings(BaseModel):
    """Configuration for verification runs."""

    case_dir: Optional[str] = Field(None, description="Default case directory")
    document_path: Optional[str] = Field(None, description="Document path relative to the case directory")
    stop_on_fail: bool = Field(default=True, description="Skip later stages after a failure")
    max_workers: int = Field(default=8, ge=1, description="Concurrent matches and numeric checks")
    skip_stages: List[StageName] = Field(default_factory=list, description="Stages disabled by default")
    acceptance_threshold: float = Field(default=0.5, description="Matcher acceptance threshold")
    source_boost: float = Field(default=1.5, description="Keyword boost for cited sources")
    mismatch_blocking: bool = Field(default=True, description="Treat MISMATCH as blocking")
    relative_tolerance: float = Field(default=0.05, description="Numeric relative tolerance")
    percentage_point_tolerance: float = Field(default=0.5, description="Tolerance for percentage points")
    oracle_enabled: bool = Field(default=False, description="Use the semantic oracle")
    oracle_provider: str = Field(default="openai", description="Registered oracle provider")
    oracle_model: str = Field(default="gpt-4o-mini", description="Model used by the oracle")
    oracle_timeout: float = Field(default=30.0, description="Per-call oracle timeout in seconds")
    evidence_cache_size: int = Field(default=256, ge=1, description="Evidence bundles kept in memory")
    log_level: str = Field(default="INFO", description="Logging level")

    @classmethod
    def from_env(cls) -> "VerificationSettings":
        """Create settings from environment variables."""
        skip = [
            StageName(name.strip().lower())
            for name in os.getenv("VERIFIER_SKIP_STAGES", "").split(",")
            if name.strip()
        ]
        settings = cls(
            case_dir=os.getenv("VERIFIER_CASE_DIR"),
            document_path=os.getenv("VERIFIER_DOCUMENT_PATH"),
            stop_on_fail=_env_bool("VERIFIER_STOP_ON_FAIL", True),
            max_workers=int(os.getenv("VERIFIER_MAX_WORKERS", "8")),
            skip_stages=skip,
            acceptance_threshold=float(os.getenv("VERIFIER_ACCEPTANCE_THRESHOLD", "0.5")),
            source_boost=float(os.getenv("VERIFIER_SOURCE_BOOST", "1.5")),
            mismatch_blocking=_env_bool("VERIFIER_MISMATCH_BLOCKING", True),
            relative_tolerance=float(os.getenv("VERIFIER_RELATIVE_TOLERANCE", "0.05")),
            percentage_point_tolerance=float(os.getenv("VERIFIER_PERCENTAGE_POINT_TOLERANCE", "0.5")),
            oracle_enabled=_env_bool("VERIFIER_ORACLE_ENABLED", False),
            oracle_provider=os.getenv("VERIFIER_ORACLE_PROVIDER", "openai"),
            oracle_model=os.getenv("VERIFIER_ORACLE_MODEL", "gpt-4o-mini"),
            oracle_timeout=float(os.getenv("VERIFIER_ORACLE_TIMEOUT", "30")),
            evidence_cache_size=int(os.getenv("VERIFIER_EVIDENCE_CACHE_SIZE", "256")),
            log_level=os.getenv("VERIFIER_LOG_LEVEL", "INFO").upper(),
        )
        if settings.oracle_enabled and not os.getenv("OPENAI_API_KEY"):
            logger.warning("⚠️ Oracle enabled but OPENAI_API_KEY is not set")
        return settings

    def match_policy(self) -> MatchPolicy:
        return MatchPolicy(
            acceptance_threshold=self.acceptance_threshold,
            source_boost=self.source_boost,
            mismatch_blocking=self.mismatch_blocking,
        )

    def numeric_policy(self) -> NumericTolerancePolicy:
        return NumericTolerancePolicy(
            relative_tolerance=self.relative_tolerance,
            percentage_point_tolerance=self.percentage_point_tolerance,
        )

    def pipeline_config(self, stop_on_fail: Optional[bool] = None) -> PipelineConfig:
        """Build the pipeline configuration, optionally overriding stop-on-fail."""
        return PipelineConfig(
            stop_on_fail=self.stop_on_fail if stop_on_fail is None else stop_on_fail,
            max_workers=self.max_workers,
            skip_stages=self.skip_stages,
            match_policy=self.match_policy(),
            numeric_policy=self.numeric_policy(),
        )
