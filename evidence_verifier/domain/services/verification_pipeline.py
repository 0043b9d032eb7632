"""Pipeline orchestrator: runs the verification stages and chains their hashes."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from ..exceptions import VerificationInputError
from ..models.document_statement import Citation, DocumentStatement
from ..models.match_result import MatchResult, MatchVerdict
from ..models.policy import PipelineConfig
from ..models.source_record import SourceRecord
from ..models.verification import (
    STAGE_ORDER,
    Issue,
    IssueType,
    OverallStatus,
    Severity,
    StageName,
    StageOutcome,
    StageResult,
    StageStatus,
    VerificationRecord,
)
from ..ports.evidence_store import EvidenceStore
from .binding_checker import BindingChecker
from .claim_matcher import ClaimMatcher
from .claim_registry import ClaimRegistry
from .document_scanner import DocumentScanner
from .hashing import chain_hash, compute_hash, stage_hash
from .integrity_checker import IntegrityChecker
from .numeric_verifier import NumericVerifier

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """States of the verification state machine."""

    PENDING = "pending"
    INTEGRITY = "integrity"
    BINDING = "binding"
    SEMANTIC = "semantic"
    NUMERIC = "numeric"
    COMPLETE = "complete"
    HALTED = "halted"


TRANSITIONS: Dict[PipelineState, PipelineState] = {
    PipelineState.PENDING: PipelineState.INTEGRITY,
    PipelineState.INTEGRITY: PipelineState.BINDING,
    PipelineState.BINDING: PipelineState.SEMANTIC,
    PipelineState.SEMANTIC: PipelineState.NUMERIC,
    PipelineState.NUMERIC: PipelineState.COMPLETE,
}

STAGE_FOR_STATE: Dict[PipelineState, StageName] = {
    PipelineState.INTEGRITY: StageName.INTEGRITY,
    PipelineState.BINDING: StageName.BINDING,
    PipelineState.SEMANTIC: StageName.SEMANTIC,
    PipelineState.NUMERIC: StageName.NUMERIC,
}


def derive_overall_status(statuses: List[StageStatus]) -> OverallStatus:
    """Overall status from stage statuses: any failure, then any warning, then all passed."""
    if any(status is StageStatus.FAIL for status in statuses):
        return OverallStatus.FAILED
    if any(status is StageStatus.WARN for status in statuses):
        return OverallStatus.NEEDS_REVIEW
    if statuses and all(status is StageStatus.PASS for status in statuses):
        return OverallStatus.VERIFIED
    return OverallStatus.INCOMPLETE


@dataclass
class _RunContext:
    """Inputs of one run, plus results handed from one stage to the next."""

    document: str
    document_hash: str
    sources: Dict[str, SourceRecord]
    citations: List[Citation]
    statements: List[DocumentStatement]
    units: List[DocumentStatement]
    match_results: List[MatchResult] = field(default_factory=list)


class VerificationPipeline:
    """Runs integrity, binding, semantic and numeric stages in a fixed order.

    The order is an explicit state machine. After a failed stage, with
    stop-on-fail enabled, the machine moves to HALTED and every later stage
    is recorded as skipped. Skipped stages are hashed too, so the chain hash
    reflects them.
    """

    def __init__(
        self,
        evidence_store: EvidenceStore,
        registry: ClaimRegistry,
        scanner: DocumentScanner,
        matcher: ClaimMatcher,
        integrity_checker: IntegrityChecker,
        binding_checker: BindingChecker,
        numeric_verifier: NumericVerifier,
        config: Optional[PipelineConfig] = None,
    ):
        self._evidence_store = evidence_store
        self._registry = registry
        self._scanner = scanner
        self._matcher = matcher
        self._integrity = integrity_checker
        self._binding = binding_checker
        self._numeric = numeric_verifier
        self._config = config or PipelineConfig()
        self._handlers: Dict[StageName, Callable[[_RunContext], Awaitable[StageOutcome]]] = {
            StageName.INTEGRITY: self._run_integrity,
            StageName.BINDING: self._run_binding,
            StageName.SEMANTIC: self._run_semantic,
            StageName.NUMERIC: self._run_numeric,
        }

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def with_config(self, config: PipelineConfig) -> "VerificationPipeline":
        """A pipeline sharing this one's collaborators but running under another config."""
        return VerificationPipeline(
            evidence_store=self._evidence_store,
            registry=self._registry,
            scanner=self._scanner,
            matcher=self._matcher,
            integrity_checker=self._integrity,
            binding_checker=self._binding,
            numeric_verifier=self._numeric,
            config=config,
        )

    def transition(self, state: PipelineState, result: Optional[StageResult]) -> PipelineState:
        """Next state, given the result of the stage just recorded.

        A failed stage halts the machine when stop-on-fail is enabled.
        """
        if state is PipelineState.HALTED:
            return PipelineState.HALTED
        if result is not None and result.status is StageStatus.FAIL and self._config.stop_on_fail:
            return PipelineState.HALTED
        return TRANSITIONS[state]

    async def _prepare(self, document: str) -> _RunContext:
        if not document or not document.strip():
            raise VerificationInputError("Document is empty")
        sources = await self._evidence_store.load_sources()
        return _RunContext(
            document=document,
            document_hash=compute_hash(document),
            sources=sources,
            citations=self._scanner.extract_citations(document),
            statements=self._scanner.scan(document),
            units=self._scanner.scan_units(document),
        )

    async def verify(self, document: Optional[str] = None) -> VerificationRecord:
        """Verify a document and produce the chained verification record.

        Args:
            document: Document text; read from the evidence store when omitted

        Returns:
            Verification record, produced for every run that gets past input validation

        Raises:
            VerificationInputError: If the document or the source registry is missing or malformed
        """
        if document is None:
            document = await self._evidence_store.read_document()
        context = await self._prepare(document)
        logger.info(
            f"🔍 Verifying document {context.document_hash[:19]}: "
            f"{len(context.statements)} statements, {len(context.citations)} citations"
        )

        started = time.perf_counter()
        results: List[StageResult] = []
        previous_hash: Optional[str] = None
        state = self.transition(PipelineState.PENDING, None)
        halted_after: Optional[StageName] = None

        try:
            for stage in STAGE_ORDER:
                if state is PipelineState.HALTED:
                    result = self._skipped(stage, f"halted after {halted_after.value} failure", previous_hash)
                elif stage in self._config.skip_stages:
                    result = self._skipped(stage, "disabled by configuration", previous_hash)
                else:
                    result = await self._run_stage(STAGE_FOR_STATE[state], context, previous_hash)
                results.append(result)
                previous_hash = result.stage_hash
                next_state = self.transition(state, result)
                if next_state is PipelineState.HALTED and state is not PipelineState.HALTED:
                    halted_after = stage
                    logger.warning(f"🛑 Halting after {stage.value} failure")
                state = next_state
        except asyncio.CancelledError:
            logger.warning(f"🚫 Verification cancelled, discarding {len(results)} partial stage results")
            raise

        record = self._build_record(context, results, state, time.perf_counter() - started)
        logger.info(f"{'✅' if record.is_publishable else '⚠️'} Verification finished: {record.status.value}")
        return record

    async def _run_stage(self, stage: StageName, context: _RunContext, previous_hash: Optional[str]) -> StageResult:
        logger.info(f"▶️ Running {stage.value} stage")
        started = time.perf_counter()
        outcome = await self._handlers[stage](context)
        status = outcome.status
        outputs = {
            **outcome.outputs,
            "status": status.value,
            "issues": [issue.model_dump(mode="json") for issue in outcome.issues],
        }
        return StageResult(
            stage=stage,
            status=status,
            issues=outcome.issues,
            inputs=outcome.inputs,
            outputs=outcome.outputs,
            previous_hash=previous_hash,
            stage_hash=stage_hash(stage.value, outcome.inputs, outputs, previous_hash),
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
        )

    @staticmethod
    def _skipped(stage: StageName, reason: str, previous_hash: Optional[str]) -> StageResult:
        outputs = {"status": StageStatus.SKIPPED.value, "reason": reason}
        return StageResult(
            stage=stage,
            status=StageStatus.SKIPPED,
            skip_reason=reason,
            previous_hash=previous_hash,
            stage_hash=stage_hash(stage.value, {}, outputs, previous_hash),
        )

    async def _run_integrity(self, context: _RunContext) -> StageOutcome:
        source_ids = {c.identifier for c in context.citations if c.identifier.startswith("S")}
        for citation in context.citations:
            claim = self._registry.find_by_id(citation.identifier) if citation.identifier.startswith("CL") else None
            if claim is not None:
                source_ids.add(claim.source_id)
        outcome = await self._integrity.check(source_ids, context.sources)
        outcome.inputs["document_hash"] = context.document_hash
        return outcome

    async def _run_binding(self, context: _RunContext) -> StageOutcome:
        return await self._binding.check(context.citations, context.sources)

    async def _run_semantic(self, context: _RunContext) -> StageOutcome:
        semaphore = asyncio.Semaphore(self._config.max_workers)

        async def bounded(statement: DocumentStatement) -> MatchResult:
            async with semaphore:
                return await self._matcher.match(statement)

        results = list(await asyncio.gather(*(bounded(statement) for statement in context.statements)))
        context.match_results = results

        mismatch_severity = (
            Severity.BLOCKING if self._config.match_policy.mismatch_blocking else Severity.WARNING
        )
        issues: List[Issue] = []
        for result in results:
            statement = result.statement
            cited = sorted(statement.cited_identifiers)
            if result.oracle_error:
                issues.append(Issue(
                    type=IssueType.ORACLE_UNAVAILABLE,
                    severity=Severity.WARNING,
                    message="Oracle unavailable while matching statement",
                    statement=statement.text,
                    line=statement.line,
                    details={"error": result.oracle_error, "cited": cited},
                ))
            if result.verdict is MatchVerdict.UNVERIFIED:
                issues.append(Issue(
                    type=IssueType.UNVERIFIED_CLAIM,
                    severity=Severity.WARNING,
                    message=f"No registered claim supports the statement: {result.reason}",
                    source_id=statement.source_ids[0] if statement.source_ids else None,
                    statement=statement.text,
                    line=statement.line,
                    details={"cited": cited, "best_score": round(result.confidence, 4)},
                ))
            elif result.verdict is MatchVerdict.MISMATCH:
                issues.append(Issue(
                    type=IssueType.CITATION_MISMATCH,
                    severity=mismatch_severity,
                    message=f"Statement matches {result.claim_id} from an uncited source",
                    source_id=result.claim.source_id,
                    statement=statement.text,
                    line=statement.line,
                    details={
                        "cited": cited,
                        "expected_source": result.claim.source_id,
                        "claim_id": result.claim_id,
                        "confidence": round(result.confidence, 4),
                    },
                ))

        verdicts = {
            verdict.value: sum(1 for result in results if result.verdict is verdict)
            for verdict in MatchVerdict
        }
        return StageOutcome(
            issues=issues,
            inputs={
                "statements": [statement.summary() for statement in context.statements],
                "registry": self._registry.digest(),
                "policy": self._config.match_policy.model_dump(mode="json"),
            },
            outputs={"matches": [result.summary() for result in results], "verdicts": verdicts},
        )

    async def _run_numeric(self, context: _RunContext) -> StageOutcome:
        return await self._numeric.verify(context.units)

    def _build_record(
        self,
        context: _RunContext,
        results: List[StageResult],
        state: PipelineState,
        elapsed: float,
    ) -> VerificationRecord:
        issues = [issue for result in results for issue in result.issues]
        verdicts = [result.verdict for result in context.match_results]
        summary = {
            "statements": len(context.statements),
            "citations": len(context.citations),
            "sources_cited": len({c.identifier for c in context.citations if c.identifier.startswith("S")}),
            "source_references": sum(1 for unit in context.units if unit.is_source_reference),
            "word_count": len(context.document.split()),
            "verified": verdicts.count(MatchVerdict.VERIFIED),
            "unverified": verdicts.count(MatchVerdict.UNVERIFIED),
            "mismatch": verdicts.count(MatchVerdict.MISMATCH),
            "skipped": verdicts.count(MatchVerdict.SKIPPED),
            "blocking_issues": sum(1 for issue in issues if issue.blocking),
            "warnings": sum(1 for issue in issues if not issue.blocking),
        }
        return VerificationRecord(
            document_hash=context.document_hash,
            pipeline_state=state.value,
            stages=results,
            chain_hash=chain_hash(result.stage_hash for result in results),
            status=derive_overall_status([result.status for result in results]),
            blocking_issues=[issue for issue in issues if issue.blocking],
            warnings=[issue for issue in issues if not issue.blocking],
            match_results=context.match_results,
            summary=summary,
            duration_ms=round(elapsed * 1000, 3),
        )
