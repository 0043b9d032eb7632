"""Claim storage backed by a JSON file with atomic replacement."""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, List

from pydantic import ValidationError

from ...domain.exceptions import VerificationInputError
from ...domain.models.claim import Claim

logger = logging.getLogger(__name__)

STORAGE_VERSION = 1


def write_atomic(path: Path, content: str) -> None:
    """Write a file through a temporary sibling and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, path)
    except BaseException:
        if os.path.exists(temp_name):
            os.unlink(temp_name)
        raise


class JsonClaimStorage:
    """Stores the claim registry in ``claims.json``."""

    def __init__(self, path: str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> List[Claim]:
        """Load claims; a missing file is an empty registry.

        Raises:
            VerificationInputError: If the file is malformed
        """
        return await asyncio.to_thread(self._load)

    def _load(self) -> List[Claim]:
        if not self._path.exists():
            return []
        try:
            data: Any = json.loads(self._path.read_text(encoding="utf-8"))
            entries = data.get("claims", []) if isinstance(data, dict) else data
            return [Claim.model_validate(entry) for entry in entries]
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError, TypeError, AttributeError) as e:
            raise VerificationInputError(f"Claim registry is malformed: {self._path}: {e}") from e

    async def save(self, claims: List[Claim]) -> None:
        """Atomically replace the stored claims."""
        payload = {
            "version": STORAGE_VERSION,
            "claims": [claim.model_dump(mode="json") for claim in claims],
        }
        content = json.dumps(payload, indent=2, ensure_ascii=False)
        await asyncio.to_thread(write_atomic, self._path, content)
        logger.debug(f"💾 Saved {len(claims)} claims to {self._path}")
