"""Domain models for captured sources and their evidence."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SourceRecord(BaseModel):
    """An entry of the source registry (``sources.json``)."""

    source_id: str = Field(..., description="Sequential source identifier, e.g. S001")
    url: str = Field(default="", description="URL recorded in the source registry")
    title: Optional[str] = Field(None, description="Human readable title")
    source_type: Optional[str] = Field(None, description="Registry source type")
    retrieved_at: Optional[datetime] = Field(None, description="When the source was captured")
    invalid: bool = Field(default=False, description="Marked invalid instead of being removed")
    invalid_reason: Optional[str] = Field(None, description="Why the source was marked invalid")

    class Config:
        """Pydantic model configuration."""
        frozen = True  # Immutable model
        json_schema_extra = {
            "example": {
                "source_id": "S001",
                "url": "https://www.bls.gov/news.release/empsit.nr0.htm",
                "title": "Employment Situation Summary",
                "source_type": "government_report",
            }
        }


class EvidenceBundle(BaseModel):
    """Everything the evidence store captured for one source."""

    source_id: str = Field(..., description="Source identifier")
    raw_content: Optional[bytes] = Field(None, description="Raw captured bytes")
    recorded_hash: Optional[str] = Field(None, description="Hash recorded at capture time")
    recorded_url: Optional[str] = Field(None, description="URL stored in the evidence metadata")
    retrieved_at: Optional[datetime] = Field(None, description="Capture timestamp from metadata")
    extracted_text: str = Field(default="", description="Text extracted from the raw content")
    title: Optional[str] = Field(None, description="Title stored in the evidence metadata")
    source_type: Optional[str] = Field(None, description="Type stored in the evidence metadata")
    raw_location: Optional[str] = Field(None, description="Where the raw content lives")
    text_location: Optional[str] = Field(None, description="Where the extracted text lives")

    class Config:
        """Pydantic model configuration."""
        frozen = True
