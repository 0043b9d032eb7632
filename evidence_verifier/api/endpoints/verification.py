"""Verification API endpoints."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from ...domain.exceptions import CaseNotFoundError, VerificationInputError
from ...infrastructure.dependencies import ServiceContainer, get_service_container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verification", tags=["verification"])


class VerificationRunRequest(BaseModel):
    """Request model for a verification run."""

    case_dir: str = Field(..., description="Case directory holding sources, evidence and the document")
    document_path: Optional[str] = Field(None, description="Document path, relative to the case directory")
    stop_on_fail: Optional[bool] = Field(None, description="Override the configured stop-on-fail")
    persist: bool = Field(default=True, description="Write the record to the case directory")


class VerificationRunResponse(BaseModel):
    """Response model for a verification run."""

    status: str = Field(..., description="Overall status")
    publishable: bool = Field(..., description="Whether the document may be published")
    record: Dict[str, Any] = Field(..., description="Canonical verification record")
    record_path: Optional[str] = Field(None, description="Where the record was written")
    report_path: Optional[str] = Field(None, description="Where the markdown report was written")
    duration_ms: float = Field(..., description="Wall-clock duration of the run")


@router.post("/run", response_model=VerificationRunResponse)
async def run_verification(
    request: VerificationRunRequest,
    container: ServiceContainer = Depends(get_service_container),
) -> VerificationRunResponse:
    """Run the verification pipeline over a case document.

    Args:
        request: Verification run request

    Returns:
        The verification record and overall status

    Raises:
        HTTPException: 404 for an unknown case, 422 for invalid inputs
    """
    logger.info(f"🔍 Verification requested for {request.case_dir}")
    try:
        case = await container.get_case(request.case_dir)
        pipeline = container.pipeline_for(case, request.stop_on_fail)
        document_path = request.document_path or container.settings.document_path
        document = await case.evidence_store.read_document(document_path)
        record = await pipeline.verify(document)

        record_path = report_path = None
        if request.persist:
            record_path = str(await case.record_store.write(record))
            report_path = str(case.record_store.report_path)

        return VerificationRunResponse(
            status=record.status.value,
            publishable=record.is_publishable,
            record=record.canonical_dict(),
            record_path=record_path,
            report_path=report_path,
            duration_ms=record.duration_ms,
        )
    except CaseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except VerificationInputError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"❌ Verification failed: {e}")
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {str(e)}")


@router.get("/record")
async def get_record(
    case_dir: str = Query(..., description="Case directory"),
    container: ServiceContainer = Depends(get_service_container),
) -> Dict[str, Any]:
    """Return the last persisted verification record of a case."""
    try:
        case = await container.get_case(case_dir)
    except CaseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except VerificationInputError as e:
        raise HTTPException(status_code=422, detail=str(e))

    record = await case.record_store.read()
    if record is None:
        raise HTTPException(status_code=404, detail=f"No verification record for {case_dir}")
    return record


@router.get("/report", response_class=PlainTextResponse)
async def get_report(
    case_dir: str = Query(..., description="Case directory"),
    container: ServiceContainer = Depends(get_service_container),
) -> PlainTextResponse:
    """Return the markdown report of the last persisted verification run."""
    try:
        case = await container.get_case(case_dir)
    except CaseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except VerificationInputError as e:
        raise HTTPException(status_code=422, detail=str(e))

    report = await case.record_store.read_report()
    if report is None:
        raise HTTPException(status_code=404, detail=f"No verification report for {case_dir}")
    return PlainTextResponse(report, media_type="text/markdown")
