"""API routes for the global analyzer pattern set.

Endpoints
---------
POST /v1/analyzers
    Add a pattern.  Idempotent.  ``422`` when the pattern is not a valid
    regular expression or cannot be encoded as UTF-8, ``503`` when the
    snapshot write-through fails.

GET  /v1/analyzers
    List all patterns, sorted.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from watson.api.dependencies import get_service
from watson.core.analyzer import InvalidPatternError
from watson.core.state import InvalidTextError
from watson.schemas.document import AckResponse, AnalyzerCreate, AnalyzerListResponse
from watson.services.snapshot import SnapshotIOError
from watson.services.watson import WatsonService

router = APIRouter(prefix="/v1/analyzers", tags=["analyzers"])


@router.post("", response_model=AckResponse, status_code=201)
def add_analyzer(
    body: AnalyzerCreate,
    service: WatsonService = Depends(get_service),
) -> AckResponse:
    try:
        service.add_analyzer_pattern(body.pattern)
    except (InvalidPatternError, InvalidTextError) as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except SnapshotIOError as exc:
        raise HTTPException(status_code=503, detail=f"Pattern added but not persisted: {exc}")
    return AckResponse()


@router.get("", response_model=AnalyzerListResponse)
def list_analyzers(
    service: WatsonService = Depends(get_service),
) -> AnalyzerListResponse:
    return AnalyzerListResponse(patterns=service.list_analyzer_patterns())
