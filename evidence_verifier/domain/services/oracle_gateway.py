"""Timeout and contract enforcement around the semantic oracle."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..exceptions import OracleContractError, OracleUnavailableError
from ..ports.semantic_oracle import ExtractionPayload, NumericAssessment, OracleJudgment, SemanticOracle

logger = logging.getLogger(__name__)


class OracleGateway:
    """Single entry point for oracle calls.

    Applies a per-call timeout and validates every response against its
    contract. Failures never turn into a pass: timeouts, transport errors and
    responses missing required fields all raise ``OracleUnavailableError``.
    Nothing is retried.
    """

    def __init__(self, oracle: Optional[SemanticOracle] = None, timeout: float = 30.0):
        """Initialize the gateway.

        Args:
            oracle: Oracle implementation, None to run without one
            timeout: Per-call timeout in seconds
        """
        self._oracle = oracle
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return self._oracle is not None and self._oracle.is_available

    @property
    def provider_name(self) -> Optional[str]:
        return self._oracle.provider_name if self._oracle is not None else None

    async def _call(self, operation: str, call: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        if not self.enabled:
            raise OracleUnavailableError("No semantic oracle configured")
        try:
            raw = await asyncio.wait_for(call(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"⏱️ Oracle {operation} timed out after {self._timeout}s")
            raise OracleUnavailableError(f"Oracle {operation} timed out after {self._timeout}s") from e
        except (OracleUnavailableError, OracleContractError):
            raise
        except Exception as e:
            logger.warning(f"⚠️ Oracle {operation} failed: {e}")
            raise OracleUnavailableError(f"Oracle {operation} failed: {e}") from e
        if not isinstance(raw, dict):
            raise OracleUnavailableError(f"Oracle {operation} returned {type(raw).__name__}, expected an object")
        return raw

    async def judge_support(self, statement: str, candidates: List[Dict[str, Any]]) -> OracleJudgment:
        """Ask the oracle whether any candidate supports the statement.

        Raises:
            OracleUnavailableError: On failure, timeout or missing required fields
        """
        raw = await self._call("judgment", lambda: self._oracle.judge_support(statement, candidates))
        try:
            return OracleJudgment.model_validate(raw)
        except ValidationError as e:
            raise OracleUnavailableError(f"Oracle judgment violated its contract: {e.error_count()} error(s)") from e

    async def extract_claims(self, source_id: str, text: str) -> ExtractionPayload:
        """Ask the oracle to extract claims from source text.

        Raises:
            OracleUnavailableError: On failure or timeout
            OracleContractError: When the output does not conform; the whole output is rejected
        """
        raw = await self._call("extraction", lambda: self._oracle.extract_claims(source_id, text))
        try:
            return ExtractionPayload.model_validate(raw)
        except ValidationError as e:
            raise OracleContractError(f"Oracle extraction output rejected: {e.error_count()} error(s)") from e

    async def verify_numeric(self, statement: str, claimed: Dict[str, Any], source_text: str) -> NumericAssessment:
        """Ask the oracle to compute a claimed value from source text.

        Raises:
            OracleUnavailableError: On failure, timeout or missing required fields
        """
        raw = await self._call(
            "numeric verification",
            lambda: self._oracle.verify_numeric(statement, claimed, source_text),
        )
        try:
            return NumericAssessment.model_validate(raw)
        except ValidationError as e:
            raise OracleUnavailableError(f"Oracle numeric answer violated its contract: {e.error_count()} error(s)") from e
