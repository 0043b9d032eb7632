"""Test configuration and common fixtures."""

import hashlib
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from evidence_verifier.domain.models.claim import Claim, ClaimCandidate
from evidence_verifier.domain.models.policy import PipelineConfig
from evidence_verifier.domain.services.binding_checker import BindingChecker
from evidence_verifier.domain.services.claim_matcher import ClaimMatcher
from evidence_verifier.domain.services.claim_registry import ClaimRegistry
from evidence_verifier.domain.services.document_scanner import DocumentScanner
from evidence_verifier.domain.services.integrity_checker import IntegrityChecker
from evidence_verifier.domain.services.numeric_verifier import NumericVerifier
from evidence_verifier.domain.services.oracle_gateway import OracleGateway
from evidence_verifier.domain.services.verification_pipeline import VerificationPipeline
from evidence_verifier.infrastructure.evidence.filesystem_store import FileSystemEvidenceStore

_SAME = object()


class CaseBuilder:
    """Writes a case directory: sources.json, evidence folders and the document."""

    def __init__(self, root: Path):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.sources: List[Dict[str, Any]] = []

    def add_source(
        self,
        source_id: str,
        text: str,
        url: Optional[str] = None,
        metadata_url: Any = _SAME,
        raw: Optional[bytes] = None,
        title: Optional[str] = None,
        source_type: str = "news_article",
        captured_at: str = "2024-05-14T09:17:42Z",
        recorded_hash: Optional[str] = None,
        with_evidence: bool = True,
        **extra: Any,
    ) -> "CaseBuilder":
        url = f"https://example.org/reports/{source_id.lower()}" if url is None else url
        title = title or f"Labour market report {source_id}"
        self.sources.append({
            "id": source_id,
            "url": url,
            "title": title,
            "type": source_type,
            "captured_at": captured_at,
            **extra,
        })
        self._write_sources()

        if with_evidence:
            directory = self.root / "evidence" / source_id
            directory.mkdir(parents=True, exist_ok=True)
            raw_bytes = raw if raw is not None else f"<html><body><p>{text}</p></body></html>".encode("utf-8")
            (directory / "raw.html").write_bytes(raw_bytes)
            (directory / "content.md").write_text(text, encoding="utf-8")
            metadata = {
                "url": url if metadata_url is _SAME else metadata_url,
                "title": title,
                "captured_at": captured_at,
                "verification": {
                    "computed_hash": recorded_hash or "sha256:" + hashlib.sha256(raw_bytes).hexdigest(),
                    "raw_file": "raw.html",
                },
            }
            (directory / "metadata.json").write_text(json.dumps(metadata), encoding="utf-8")
        return self

    def tamper(self, source_id: str, raw: bytes = b"<html>altered after capture</html>") -> "CaseBuilder":
        (self.root / "evidence" / source_id / "raw.html").write_bytes(raw)
        return self

    def write_document(self, text: str, path: str = "articles/full.md") -> Path:
        document_path = self.root / path
        document_path.parent.mkdir(parents=True, exist_ok=True)
        document_path.write_text(text, encoding="utf-8")
        return document_path

    def _write_sources(self) -> None:
        (self.root / "sources.json").write_text(json.dumps({"sources": self.sources}), encoding="utf-8")


class InMemoryClaimStorage:
    """Claim storage that keeps the last saved list in memory."""

    def __init__(self, claims: Optional[List[Claim]] = None, fail_on_save: bool = False):
        self.claims: List[Claim] = list(claims or [])
        self.saves = 0
        self.fail_on_save = fail_on_save

    async def load(self) -> List[Claim]:
        return list(self.claims)

    async def save(self, claims: List[Claim]) -> None:
        if self.fail_on_save:
            raise OSError("disk full")
        self.saves += 1
        self.claims = list(claims)


class FakeOracle:
    """Scripted semantic oracle.

    Each response is either a dict, returned as-is, or an exception, raised.
    """

    def __init__(
        self,
        judgment: Any = None,
        extraction: Any = None,
        numeric: Any = None,
        available: bool = True,
    ):
        self.judgment = judgment
        self.extraction = extraction
        self.numeric = numeric
        self.available = available
        self.calls: List[Dict[str, Any]] = []

    @staticmethod
    def _respond(response: Any) -> Any:
        if isinstance(response, BaseException):
            raise response
        return response

    async def initialize(self) -> None:
        self.available = True

    async def shutdown(self) -> None:
        self.available = False

    async def judge_support(self, statement: str, candidates: List[Dict[str, Any]]) -> Dict[str, Any]:
        self.calls.append({"operation": "judge_support", "statement": statement, "candidates": candidates})
        return self._respond(self.judgment)

    async def extract_claims(self, source_id: str, text: str) -> Dict[str, Any]:
        self.calls.append({"operation": "extract_claims", "source_id": source_id, "text": text})
        return self._respond(self.extraction)

    async def verify_numeric(self, statement: str, claimed: Dict[str, Any], source_text: str) -> Dict[str, Any]:
        self.calls.append({"operation": "verify_numeric", "statement": statement, "claimed": claimed})
        return self._respond(self.numeric)

    @property
    def provider_name(self) -> str:
        return "Fake"

    @property
    def is_available(self) -> bool:
        return self.available


@pytest.fixture
def case(tmp_path: Path) -> CaseBuilder:
    """Provide an empty case directory builder."""
    return CaseBuilder(tmp_path / "case")


@pytest.fixture
def store(case: CaseBuilder) -> FileSystemEvidenceStore:
    """Provide an evidence store over the case directory."""
    return FileSystemEvidenceStore(str(case.root))


@pytest.fixture
def storage() -> InMemoryClaimStorage:
    return InMemoryClaimStorage()


@pytest.fixture
def registry(storage: InMemoryClaimStorage, store: FileSystemEvidenceStore) -> ClaimRegistry:
    """Provide an empty claim registry backed by memory."""
    return ClaimRegistry(storage, store)


@pytest.fixture
def register(registry: ClaimRegistry) -> Callable:
    """Register a claim whose text is its own supporting quote."""

    async def _register(source_id: str, text: str, quote: Optional[str] = None) -> Claim:
        result = await registry.add_claim(ClaimCandidate(
            text=text,
            source_id=source_id,
            supporting_quote=quote or text,
        ))
        return result.claim

    return _register


@pytest.fixture
def build_pipeline(store: FileSystemEvidenceStore, registry: ClaimRegistry) -> Callable:
    """Wire a pipeline over the case store and registry."""

    def _build(config: Optional[PipelineConfig] = None, oracle: Optional[FakeOracle] = None) -> VerificationPipeline:
        config = config or PipelineConfig()
        gateway = OracleGateway(oracle, timeout=1.0)
        return VerificationPipeline(
            evidence_store=store,
            registry=registry,
            scanner=DocumentScanner(),
            matcher=ClaimMatcher(registry, config.match_policy, gateway),
            integrity_checker=IntegrityChecker(store),
            binding_checker=BindingChecker(store, registry),
            numeric_verifier=NumericVerifier(store, registry, config.numeric_policy, gateway, config.max_workers),
            config=config,
        )

    return _build
