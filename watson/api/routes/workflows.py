"""API routes for stored workflow definitions.

Workflows are configuration only: nothing in the service evaluates them.

Endpoints
---------
POST /v1/workflows
    Store a workflow.  Returns ``201 Created`` with ``{"id": "<uuid>"}``, or
    ``422`` when the name or a step pattern cannot be encoded as UTF-8.

GET  /v1/workflows
    List stored workflows in creation order.

GET  /v1/workflows/{workflow_id}
    Return one workflow, or ``404 Not Found``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from watson.api.dependencies import get_service
from watson.core.state import InvalidTextError, WorkflowStep
from watson.schemas.document import CreatedResponse
from watson.schemas.workflow import (
    WorkflowCreate,
    WorkflowListResponse,
    WorkflowOut,
    WorkflowStepIn,
)
from watson.services.snapshot import SnapshotIOError
from watson.services.watson import StoredWorkflow, WatsonService

router = APIRouter(prefix="/v1/workflows", tags=["workflows"])


def _to_out(stored: StoredWorkflow) -> WorkflowOut:
    return WorkflowOut(
        id=str(stored.id),
        name=stored.workflow.name,
        steps=[WorkflowStepIn.model_validate(step) for step in stored.workflow.steps],
    )


@router.post("", response_model=CreatedResponse, status_code=201)
def create_workflow(
    body: WorkflowCreate,
    service: WatsonService = Depends(get_service),
) -> CreatedResponse:
    steps = [
        WorkflowStep(
            step_id=step.step_id,
            pattern=step.pattern,
            context_pattern=step.context_pattern,
        )
        for step in body.steps
    ]
    try:
        workflow_id = service.create_workflow(body.name, steps)
    except InvalidTextError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except SnapshotIOError as exc:
        raise HTTPException(status_code=503, detail=f"Workflow stored but not persisted: {exc}")
    return CreatedResponse(id=workflow_id)


@router.get("", response_model=WorkflowListResponse)
def list_workflows(
    service: WatsonService = Depends(get_service),
) -> WorkflowListResponse:
    return WorkflowListResponse(workflows=[_to_out(w) for w in service.list_workflows()])


@router.get("/{workflow_id}", response_model=WorkflowOut)
def get_workflow(
    workflow_id: str,
    service: WatsonService = Depends(get_service),
) -> WorkflowOut:
    stored = service.get_workflow(workflow_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return _to_out(stored)
