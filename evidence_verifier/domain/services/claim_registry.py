"""Append-only, deduplicated registry of atomic claims."""

import asyncio
import logging
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import ExcerptNotFoundError
from ..models.claim import Claim, ClaimCandidate, ClaimKind, RegistrationResult
from ..ports.claim_storage import ClaimStorage
from ..ports.evidence_store import EvidenceStore
from .hashing import claim_content_hash
from .numeric_extraction import extract_numbers, relatively_close, units_compatible
from .text_matching import content_words, locate_excerpt, normalize_text

logger = logging.getLogger(__name__)

_CLAIM_ID = re.compile(r"^CL(\d+)$")


class ClaimRegistry:
    """Registry of claims, each bound to one source and one verbatim excerpt.

    ``add_claim`` is the only way claims enter the registry. The whole
    check-then-insert sequence runs under a single lock, and new claims are
    persisted before they become visible.
    """

    def __init__(self, storage: ClaimStorage, evidence_store: EvidenceStore):
        """Initialize the registry.

        Args:
            storage: Durable storage for claims
            evidence_store: Evidence used to verify supporting excerpts
        """
        self._storage = storage
        self._evidence_store = evidence_store
        self._claims: List[Claim] = []
        self._by_id: Dict[str, Claim] = {}
        self._by_hash: Dict[str, Claim] = {}
        self._next_number = 1
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        """Load stored claims, replacing the in-memory state."""
        claims = await self._storage.load()
        async with self._lock:
            self._index(claims)
        logger.info(f"📚 Claim registry loaded with {len(claims)} claims")

    def _index(self, claims: List[Claim]) -> None:
        self._claims = list(claims)
        self._by_id = {claim.claim_id: claim for claim in claims}
        self._by_hash = {claim.content_hash: claim for claim in claims}
        numbers = [int(m.group(1)) for m in (_CLAIM_ID.match(c.claim_id) for c in claims) if m]
        self._next_number = max(numbers, default=0) + 1

    async def _locate(self, source_id: str, excerpt: str):
        evidence = await self._evidence_store.get_evidence(source_id)
        if evidence is None or not evidence.extracted_text:
            raise ExcerptNotFoundError(source_id, excerpt, "no extracted text captured for source")
        location = locate_excerpt(evidence.extracted_text, excerpt)
        if location is None:
            raise ExcerptNotFoundError(source_id, excerpt)
        return evidence, location

    async def add_claim(self, candidate: ClaimCandidate) -> RegistrationResult:
        """Register a candidate claim.

        Args:
            candidate: Proposed claim with its supporting excerpt

        Returns:
            The new claim, or the existing one when the candidate is a duplicate

        Raises:
            ExcerptNotFoundError: If the excerpt is not present in the source text
        """
        evidence, location = await self._locate(candidate.source_id, candidate.supporting_quote)
        content_hash = claim_content_hash(candidate.text, candidate.source_id)

        async with self._lock:
            existing = self._by_hash.get(content_hash)
            if existing is not None:
                logger.debug(f"♻️ Duplicate claim for {candidate.source_id}, returning {existing.claim_id}")
                return RegistrationResult(claim=existing, duplicate=True)

            claim = Claim(
                claim_id=f"CL{self._next_number:04d}",
                content_hash=content_hash,
                text=candidate.text,
                normalized=normalize_text(candidate.text),
                kind=candidate.kind,
                numbers=candidate.numbers or extract_numbers(candidate.text),
                entities=candidate.entities,
                source_id=candidate.source_id,
                source_url=evidence.recorded_url,
                supporting_quote=candidate.supporting_quote,
                quote_location=location,
                extraction_method=candidate.extraction_method,
            )
            await self._storage.save(self._claims + [claim])
            self._claims.append(claim)
            self._by_id[claim.claim_id] = claim
            self._by_hash[content_hash] = claim
            self._next_number += 1

        logger.info(f"✅ Registered {claim.claim_id} from {claim.source_id}")
        return RegistrationResult(claim=claim)

    async def update_claim(
        self,
        claim_id: str,
        text: Optional[str] = None,
        supporting_quote: Optional[str] = None,
        kind: Optional[ClaimKind] = None,
        entities: Optional[List[str]] = None,
    ) -> Claim:
        """Apply an administrative correction to a stored claim.

        The excerpt is re-verified and the content hash recomputed. The claim
        keeps its identifier and source.

        Raises:
            KeyError: If the claim does not exist
            ExcerptNotFoundError: If the corrected excerpt is not in the source
            ValueError: If the correction duplicates another claim
        """
        current = self._by_id.get(claim_id)
        if current is None:
            raise KeyError(f"Claim '{claim_id}' not found")

        new_text = text if text is not None else current.text
        new_quote = supporting_quote if supporting_quote is not None else current.supporting_quote
        _, location = await self._locate(current.source_id, new_quote)
        content_hash = claim_content_hash(new_text, current.source_id)

        async with self._lock:
            clash = self._by_hash.get(content_hash)
            if clash is not None and clash.claim_id != claim_id:
                raise ValueError(f"Correction duplicates existing claim {clash.claim_id}")
            updated = current.model_copy(update={
                "text": new_text,
                "normalized": normalize_text(new_text),
                "content_hash": content_hash,
                "numbers": extract_numbers(new_text) if text is not None else current.numbers,
                "supporting_quote": new_quote,
                "quote_location": location,
                "kind": kind or current.kind,
                "entities": entities if entities is not None else current.entities,
                "corrected_at": datetime.now(timezone.utc),
            })
            claims = [updated if claim.claim_id == claim_id else claim for claim in self._claims]
            await self._storage.save(claims)
            self._index(claims)

        logger.info(f"✏️ Corrected {claim_id}")
        return updated

    def find_by_id(self, claim_id: str) -> Optional[Claim]:
        return self._by_id.get(claim_id)

    def find_by_source(self, source_id: str) -> List[Claim]:
        return [claim for claim in self._claims if claim.source_id == source_id]

    def find_by_numeric_value(
        self,
        value: float,
        tolerance: float = 0.01,
        unit: Optional[str] = None,
    ) -> List[Claim]:
        """Claims carrying a number within a relative tolerance of ``value``."""
        return [
            claim for claim in self._claims
            if any(
                units_compatible(unit, number.unit) and relatively_close(number.value, value, tolerance)
                for number in claim.numbers
            )
        ]

    def rank(self, query: str, min_score: float = 0.3) -> List[Tuple[Claim, float]]:
        """Score claims by the fraction of query words they contain."""
        query_words = content_words(query)
        if not query_words:
            return []
        scored = []
        for claim in self._claims:
            score = len(query_words & content_words(claim.text)) / len(query_words)
            if score > min_score:
                scored.append((claim, score))
        return sorted(scored, key=lambda item: (-item[1], item[0].claim_id))

    def search(self, query: str, limit: Optional[int] = None) -> List[Claim]:
        """Search claims by keyword overlap, best match first."""
        ranked = [claim for claim, _ in self.rank(query)]
        return ranked[:limit] if limit is not None else ranked

    def all_claims(self) -> List[Claim]:
        return list(self._claims)

    def __len__(self) -> int:
        return len(self._claims)

    def stats(self) -> Dict[str, Any]:
        """Counts by kind, source and extraction method."""
        return {
            "total": len(self._claims),
            "by_kind": dict(Counter(claim.kind.value for claim in self._claims)),
            "by_source": dict(Counter(claim.source_id for claim in self._claims)),
            "by_method": dict(Counter(claim.extraction_method for claim in self._claims)),
            "with_numbers": sum(1 for claim in self._claims if claim.numbers),
        }

    def digest(self) -> List[List[str]]:
        """Identity of the registry contents, used as a stage input."""
        return [[claim.claim_id, claim.content_hash, claim.source_id] for claim in self._claims]
