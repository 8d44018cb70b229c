"""API routes for document upload and analysis.

Endpoints
---------
POST /v1/documents
    Store a document.  Returns ``201 Created`` with ``{"id": "<uuid>"}``.

GET  /v1/documents
    List ``{id, name}`` for every stored document, in creation order.

GET  /v1/documents/{document_id}
    Return the document together with its findings, computed against the
    current analyzer pattern set.  ``404 Not Found`` when the identifier is
    unknown or is not a UUID.

Text that cannot be encoded as UTF-8 is rejected with ``422``.  A failed
snapshot write-through on upload is reported as ``503 Service Unavailable``.
The document is still held in memory and will be included in the next
successful snapshot.

Handlers are plain functions so the blocking service calls run in the
threadpool rather than on the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from watson.api.dependencies import get_service
from watson.core.state import InvalidTextError
from watson.schemas.document import (
    CreatedResponse,
    DocumentCreate,
    DocumentMetadataOut,
    DocumentOut,
    DocumentReportOut,
    FindingOut,
)
from watson.services.snapshot import SnapshotIOError
from watson.services.watson import WatsonService

router = APIRouter(prefix="/v1/documents", tags=["documents"])


@router.post("", response_model=CreatedResponse, status_code=201)
def create_document(
    body: DocumentCreate,
    service: WatsonService = Depends(get_service),
) -> CreatedResponse:
    try:
        doc_id = service.create_document(body.name, body.content)
    except InvalidTextError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except SnapshotIOError as exc:
        raise HTTPException(status_code=503, detail=f"Document stored but not persisted: {exc}")
    return CreatedResponse(id=doc_id)


@router.get("", response_model=list[DocumentMetadataOut])
def list_documents(
    service: WatsonService = Depends(get_service),
) -> list[DocumentMetadataOut]:
    return [
        DocumentMetadataOut(id=str(meta.id), name=meta.name)
        for meta in service.list_documents()
    ]


@router.get("/{document_id}", response_model=DocumentReportOut)
def get_document(
    document_id: str,
    service: WatsonService = Depends(get_service),
) -> DocumentReportOut:
    """Return a stored document and the lines matched by the analyzer patterns."""
    report = service.get_document(document_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Document not found")

    return DocumentReportOut(
        id=str(report.id),
        document=DocumentOut(name=report.document.name, content=report.document.content),
        findings=[FindingOut.model_validate(f) for f in report.findings],
    )
