"""Port for durable claim persistence."""

from typing import List, Protocol

from ..models.claim import Claim


class ClaimStorage(Protocol):
    """Protocol for persisting the claim registry."""

    async def load(self) -> List[Claim]:
        """Load all stored claims in registration order."""
        ...

    async def save(self, claims: List[Claim]) -> None:
        """Durably replace the stored claims."""
        ...
