"""Pydantic schemas for the document and analyzer API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class DocumentCreate(BaseModel):
    """Input schema for uploading a document."""

    name: str = Field(..., description="Free-form label, typically a file path")
    content: str = Field(..., description="Full text body; may contain line breaks")


class CreatedResponse(BaseModel):
    """Identifier of a newly created document or workflow."""

    id: str


class DocumentMetadataOut(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    name: str


class DocumentOut(BaseModel):
    name: str
    content: str


class FindingOut(BaseModel):
    """A document line matched by at least one analyzer pattern."""

    model_config = {"from_attributes": True}

    line_number: int = Field(..., ge=1, description="1-based line position")
    line: str


class DocumentReportOut(BaseModel):
    id: str
    document: DocumentOut
    findings: list[FindingOut]


class AnalyzerCreate(BaseModel):
    pattern: str = Field(..., description="Regular expression searched for in each line")


class AnalyzerListResponse(BaseModel):
    patterns: list[str]


class AckResponse(BaseModel):
    status: str = "ok"
