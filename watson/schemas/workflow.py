"""Pydantic schemas for the workflow API.

Workflows are stored configuration only; the pattern fields are accepted
verbatim and are not validated as regular expressions.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class WorkflowStepIn(BaseModel):
    model_config = {"from_attributes": True}

    step_id: int
    pattern: str = Field(..., description="Regular expression selecting matching lines")
    context_pattern: str = Field(
        ..., description="Regular expression extracting context from a matching line"
    )


class WorkflowCreate(BaseModel):
    name: str
    steps: list[WorkflowStepIn] = Field(default_factory=list)


class WorkflowOut(BaseModel):
    id: str
    name: str
    steps: list[WorkflowStepIn]


class WorkflowListResponse(BaseModel):
    workflows: list[WorkflowOut]
