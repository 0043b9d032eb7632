"""Dependency injection configuration for hexagonal architecture."""

import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from cachetools import LRUCache
from dotenv import load_dotenv

from ..domain.exceptions import CaseNotFoundError
from ..domain.ports.semantic_oracle import SemanticOracle
from ..domain.services.binding_checker import BindingChecker
from ..domain.services.claim_extractor import ClaimExtractor
from ..domain.services.claim_matcher import ClaimMatcher
from ..domain.services.claim_registry import ClaimRegistry
from ..domain.services.document_scanner import DocumentScanner
from ..domain.services.integrity_checker import IntegrityChecker
from ..domain.services.numeric_verifier import NumericVerifier
from ..domain.services.oracle_gateway import OracleGateway
from ..domain.services.verification_pipeline import VerificationPipeline
from .ai.factory import OracleFactory
from .config import VerificationSettings
from .evidence.filesystem_store import FileSystemEvidenceStore
from .storage.json_claim_storage import JsonClaimStorage
from .storage.record_store import VerificationRecordStore

# Load environment variables from .env file if it exists
load_dotenv()

logger = logging.getLogger(__name__)

CLAIMS_FILENAME = "claims.json"
MAX_CACHED_CASES = 32


@dataclass
class CaseServices:
    """Services bound to one case directory."""

    evidence_store: FileSystemEvidenceStore
    registry: ClaimRegistry
    extractor: ClaimExtractor
    scanner: DocumentScanner
    pipeline: VerificationPipeline
    record_store: VerificationRecordStore
    oracle: OracleGateway
    claims_mtime: Optional[float] = None


def claims_mtime(case_dir: str) -> Optional[float]:
    """Modification time of the case claim registry, or None when absent."""
    try:
        return (Path(case_dir) / CLAIMS_FILENAME).stat().st_mtime
    except FileNotFoundError:
        return None


class ServiceContainer:
    """Service container for dependency injection."""

    def __init__(self, settings: Optional[VerificationSettings] = None):
        """Initialize service container."""
        self._settings = settings or VerificationSettings.from_env()
        self._factory = OracleFactory()
        self._oracle_checked = False
        self._cases: LRUCache = LRUCache(maxsize=MAX_CACHED_CASES)
        self._lock = asyncio.Lock()

    @property
    def settings(self) -> VerificationSettings:
        return self._settings

    @property
    def oracle_factory(self) -> OracleFactory:
        return self._factory

    async def get_oracle(self) -> Optional[SemanticOracle]:
        """Create the configured oracle once; None when disabled or unreachable."""
        if not self._settings.oracle_enabled:
            return None
        name = self._settings.oracle_provider
        if not self._oracle_checked:
            self._oracle_checked = True
            try:
                logger.info(f"🤖 Setting up oracle provider '{name}'...")
                await self._factory.create_provider(
                    name,
                    model=self._settings.oracle_model,
                    timeout=self._settings.oracle_timeout,
                )
            except Exception as e:
                logger.warning(f"⚠️ Failed to set up oracle provider: {e}")
                logger.info("🎭 Verification will run without the semantic oracle")
        return self._factory.get_provider(name)

    async def get_case(self, case_dir: str) -> CaseServices:
        """Get the services for a case directory, building them on first use.

        Services are rebuilt when ``claims.json`` changed on disk since they
        were built, so claims registered by another process become visible.

        Raises:
            CaseNotFoundError: If the directory does not exist
            VerificationInputError: If the claim registry is malformed
        """
        key = str(Path(case_dir).resolve())
        async with self._lock:
            if not Path(key).is_dir():
                self._cases.pop(key, None)
                raise CaseNotFoundError(f"Case directory not found: {case_dir}")
            cached = self._cases.get(key)
            if cached is None or cached.claims_mtime != claims_mtime(key):
                if cached is not None:
                    logger.info(f"🔄 Claim registry of {key} changed on disk, reloading")
                self._cases[key] = await self._build_case(key)
            return self._cases[key]

    async def _build_case(self, case_dir: str) -> CaseServices:
        logger.info(f"🔧 Setting up services for case {case_dir}")
        settings = self._settings
        config = settings.pipeline_config()
        oracle = OracleGateway(await self.get_oracle(), timeout=settings.oracle_timeout)
        mtime = claims_mtime(case_dir)

        evidence_store = FileSystemEvidenceStore(case_dir, cache_size=settings.evidence_cache_size)
        registry = ClaimRegistry(JsonClaimStorage(str(Path(case_dir) / CLAIMS_FILENAME)), evidence_store)
        await registry.load()

        scanner = DocumentScanner()
        pipeline = VerificationPipeline(
            evidence_store=evidence_store,
            registry=registry,
            scanner=scanner,
            matcher=ClaimMatcher(registry, config.match_policy, oracle),
            integrity_checker=IntegrityChecker(evidence_store),
            binding_checker=BindingChecker(evidence_store, registry),
            numeric_verifier=NumericVerifier(
                evidence_store, registry, config.numeric_policy, oracle, config.max_workers
            ),
            config=config,
        )
        extractor = ClaimExtractor(
            registry, evidence_store, oracle, max_source_chars=config.numeric_policy.max_source_chars
        )
        logger.info("✅ Case services ready")
        return CaseServices(
            evidence_store=evidence_store,
            registry=registry,
            extractor=extractor,
            scanner=scanner,
            pipeline=pipeline,
            record_store=VerificationRecordStore(case_dir),
            oracle=oracle,
            claims_mtime=mtime,
        )

    def pipeline_for(self, case: CaseServices, stop_on_fail: Optional[bool] = None) -> VerificationPipeline:
        """The case pipeline, or a copy of it with stop-on-fail overridden."""
        if stop_on_fail is None or stop_on_fail == case.pipeline.config.stop_on_fail:
            return case.pipeline
        return case.pipeline.with_config(self._settings.pipeline_config(stop_on_fail=stop_on_fail))

    async def shutdown(self) -> None:
        """Release oracle connections and forget cached cases."""
        await self._factory.shutdown()
        self._oracle_checked = False
        self._cases.clear()


# Global service container instance
@lru_cache()
def get_service_container() -> ServiceContainer:
    """Get global service container instance.

    Returns:
        Service container instance
    """
    return ServiceContainer()
