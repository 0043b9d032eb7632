"""Port for reading captured evidence."""

from typing import Dict, Optional, Protocol

from ..models.source_record import EvidenceBundle, SourceRecord


class EvidenceStore(Protocol):
    """Protocol for read-only access to the source registry and captured evidence.

    Implementations must never modify evidence once it has been captured.
    """

    async def load_sources(self) -> Dict[str, SourceRecord]:
        """Load the source registry keyed by source id.

        Raises:
            VerificationInputError: If the registry is missing or malformed
        """
        ...

    async def get_evidence(self, source_id: str) -> Optional[EvidenceBundle]:
        """Load captured evidence for a source, or None when nothing was captured."""
        ...

    async def read_document(self, path: Optional[str] = None) -> str:
        """Read the document under verification.

        Raises:
            VerificationInputError: If the document is missing
        """
        ...
