"""Claim registry API endpoints."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ...domain.exceptions import CaseNotFoundError, VerificationInputError
from ...infrastructure.dependencies import CaseServices, ServiceContainer, get_service_container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/claims", tags=["claims"])


class ClaimExtractionRequest(BaseModel):
    """Request model for claim extraction."""

    case_dir: str = Field(..., description="Case directory")
    source_id: str = Field(..., description="Source to extract claims from")
    use_oracle: bool = Field(default=False, description="Also ask the semantic oracle for claims")


async def _case(container: ServiceContainer, case_dir: str) -> CaseServices:
    try:
        return await container.get_case(case_dir)
    except CaseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except VerificationInputError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/extract")
async def extract_claims(
    request: ClaimExtractionRequest,
    container: ServiceContainer = Depends(get_service_container),
) -> Dict[str, Any]:
    """Extract claims from a captured source and register them.

    Returns:
        Registered, duplicate and rejected candidates
    """
    case = await _case(container, request.case_dir)
    try:
        report = await case.extractor.process_source(request.source_id, use_oracle=request.use_oracle)
    except VerificationInputError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"❌ Extraction failed for {request.source_id}: {e}")
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {str(e)}")
    return report.to_dict()


@router.get("")
async def list_claims(
    case_dir: str = Query(..., description="Case directory"),
    source_id: Optional[str] = Query(None, description="Only claims from this source"),
    container: ServiceContainer = Depends(get_service_container),
) -> Dict[str, Any]:
    """List registered claims, optionally for one source."""
    case = await _case(container, case_dir)
    registry = case.registry
    claims = registry.find_by_source(source_id) if source_id else registry.all_claims()
    return {
        "claims": [claim.model_dump(mode="json") for claim in claims],
        "stats": registry.stats(),
    }


@router.get("/search")
async def search_claims(
    case_dir: str = Query(..., description="Case directory"),
    q: str = Query(..., min_length=1, description="Search text"),
    limit: int = Query(10, ge=1, le=100, description="Maximum results"),
    container: ServiceContainer = Depends(get_service_container),
) -> List[Dict[str, Any]]:
    """Search registered claims by keyword overlap."""
    case = await _case(container, case_dir)
    return [
        {"claim": claim.model_dump(mode="json"), "score": round(score, 4)}
        for claim, score in case.registry.rank(q)[:limit]
    ]
