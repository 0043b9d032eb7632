"""Evidence store backed by a case directory on disk.

Layout::

    <case>/sources.json                 {"sources": [{"id", "url", "title", "type", ...}]}
    <case>/evidence/<id>/metadata.json
    <case>/evidence/<id>/content.md     extracted text
    <case>/evidence/<id>/raw.html       raw capture (or the file named in metadata)
    <case>/articles/full.md             document under verification
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from cachetools import LRUCache

from ...domain.exceptions import VerificationInputError
from ...domain.models.source_record import EvidenceBundle, SourceRecord

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT = Path("articles") / "full.md"
RAW_CANDIDATES = ("raw.html", "raw.pdf", "raw.txt", "raw.md")
TEXT_CANDIDATES = ("content.md", "content.txt")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``; None when unparseable."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def recorded_hash_and_raw_file(metadata: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """Find the recorded hash in any of the supported metadata formats.

    Formats, in order: a ``verification`` block with ``computed_hash`` and
    ``raw_file``; ``files.raw_html.hash`` with an optional ``path``; a root
    ``sha256`` field.
    """
    verification = metadata.get("verification") or {}
    if isinstance(verification, dict) and verification.get("computed_hash"):
        return verification["computed_hash"], verification.get("raw_file")
    files = metadata.get("files") or {}
    raw_html = files.get("raw_html") if isinstance(files, dict) else None
    if isinstance(raw_html, dict) and raw_html.get("hash"):
        return raw_html["hash"], raw_html.get("path")
    if metadata.get("sha256"):
        return metadata["sha256"], None
    return None, None


class FileSystemEvidenceStore:
    """Read-only evidence store over a case directory.

    Evidence is immutable after capture, so loaded bundles are cached.
    """

    def __init__(self, case_dir: str, cache_size: int = 256):
        """Initialize the store.

        Args:
            case_dir: Case directory
            cache_size: Evidence bundles kept in memory
        """
        self._case_dir = Path(case_dir)
        self._cache: LRUCache = LRUCache(maxsize=cache_size)

    @property
    def case_dir(self) -> Path:
        return self._case_dir

    async def load_sources(self) -> Dict[str, SourceRecord]:
        """Load ``sources.json``.

        Raises:
            VerificationInputError: If the file is missing, malformed or has duplicate ids
        """
        return await asyncio.to_thread(self._load_sources)

    def _load_sources(self) -> Dict[str, SourceRecord]:
        path = self._case_dir / "sources.json"
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise VerificationInputError(f"Source registry not found: {path}") from e
        except json.JSONDecodeError as e:
            raise VerificationInputError(f"Source registry is not valid JSON: {path}: {e}") from e
        except UnicodeDecodeError as e:
            raise VerificationInputError(f"Source registry is not valid UTF-8: {path}: {e}") from e

        entries = data.get("sources") if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise VerificationInputError(f"Source registry has no sources list: {path}")

        sources: Dict[str, SourceRecord] = {}
        for entry in entries:
            source_id = (entry.get("id") or entry.get("source_id")) if isinstance(entry, dict) else None
            if not source_id:
                raise VerificationInputError(f"Source registry entry without id: {entry!r}")
            if source_id in sources:
                raise VerificationInputError(f"Duplicate source id in registry: {source_id}")
            status = str(entry.get("status", "")).lower()
            sources[source_id] = SourceRecord(
                source_id=source_id,
                url=entry.get("url") or "",
                title=entry.get("title"),
                source_type=entry.get("type") or entry.get("source_type"),
                retrieved_at=parse_timestamp(
                    entry.get("captured_at") or entry.get("retrieved_at") or entry.get("accessed")
                ),
                invalid=bool(entry.get("invalid")) or status == "invalid",
                invalid_reason=entry.get("invalid_reason"),
            )
        logger.info(f"📚 Loaded {len(sources)} sources from {path}")
        return sources

    async def get_evidence(self, source_id: str) -> Optional[EvidenceBundle]:
        """Load evidence for a source, or None when no metadata was captured."""
        if source_id in self._cache:
            return self._cache[source_id]
        bundle = await asyncio.to_thread(self._load_evidence, source_id)
        if bundle is not None:
            self._cache[source_id] = bundle
        return bundle

    def _load_evidence(self, source_id: str) -> Optional[EvidenceBundle]:
        directory = self._case_dir / "evidence" / source_id
        metadata_path = directory / "metadata.json"
        if not metadata_path.is_file():
            return None
        try:
            metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"⚠️ Unreadable evidence metadata for {source_id}: {e}")
            return None
        if not isinstance(metadata, dict):
            logger.warning(f"⚠️ Evidence metadata for {source_id} is not an object")
            return None

        recorded_hash, raw_name = recorded_hash_and_raw_file(metadata)
        raw_path = None
        if raw_name:
            # Only the file name is trusted; evidence never points outside its directory.
            raw_path = directory / Path(raw_name).name
        else:
            raw_path = next((directory / name for name in RAW_CANDIDATES if (directory / name).is_file()), None)
        raw_content = raw_path.read_bytes() if raw_path is not None and raw_path.is_file() else None

        text_path = next((directory / name for name in TEXT_CANDIDATES if (directory / name).is_file()), None)
        try:
            extracted_text = text_path.read_text(encoding="utf-8") if text_path is not None else ""
        except UnicodeDecodeError as e:
            logger.warning(f"⚠️ Unreadable extracted text for {source_id}: {e}")
            return None

        return EvidenceBundle(
            source_id=source_id,
            raw_content=raw_content,
            recorded_hash=recorded_hash,
            recorded_url=metadata.get("url") or metadata.get("source_url") or metadata.get("original_url"),
            retrieved_at=parse_timestamp(
                metadata.get("captured_at") or metadata.get("retrieved_at") or metadata.get("timestamp")
            ),
            extracted_text=extracted_text,
            title=metadata.get("title"),
            source_type=metadata.get("type") or metadata.get("source_type"),
            raw_location=str(raw_path) if raw_path is not None else None,
            text_location=str(text_path) if text_path is not None else None,
        )

    async def read_document(self, path: Optional[str] = None) -> str:
        """Read the document, by default ``articles/full.md`` in the case directory.

        Raises:
            VerificationInputError: If the document does not exist or is not UTF-8
        """
        document_path = Path(path) if path else DEFAULT_DOCUMENT
        if not document_path.is_absolute():
            document_path = self._case_dir / document_path
        try:
            return await asyncio.to_thread(document_path.read_text, encoding="utf-8")
        except FileNotFoundError as e:
            raise VerificationInputError(f"Document not found: {document_path}") from e
        except UnicodeDecodeError as e:
            raise VerificationInputError(f"Document is not valid UTF-8: {document_path}: {e}") from e
