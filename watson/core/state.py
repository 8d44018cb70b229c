"""In-memory state store for documents, analyzer patterns and workflows.

:class:`StateStore` is a plain container: it owns every entity and issues
identifiers, but it performs no locking, no persistence and no pattern
compilation.  Those concerns belong to
:class:`~watson.services.watson.WatsonService`, which serialises access to a
single store instance and writes a snapshot after every mutation.

Entities are immutable once stored and are only ever referenced by their
:class:`uuid.UUID` identifier.  Nothing is ever deleted, so an identifier
present in either map has been issued exactly once.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterable

logger = logging.getLogger(__name__)


class InvalidTextError(ValueError):
    """Raised when a text field cannot be stored because it is not valid Unicode.

    Snapshots are UTF-8, so text carrying an unpaired surrogate (which JSON can
    smuggle in as ``"\\ud800"``) would make every later snapshot write fail.
    """

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"{field_name} contains characters that cannot be encoded as UTF-8")


def ensure_storable(field_name: str, value: str) -> None:
    """Raise :class:`InvalidTextError` if *value* cannot be written to a snapshot."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidTextError(field_name) from exc


@dataclass(frozen=True)
class Document:
    name: str
    content: str


@dataclass(frozen=True)
class DocumentMetadata:
    """Listing projection of a :class:`Document` (content omitted)."""

    id: uuid.UUID
    name: str


@dataclass(frozen=True)
class WorkflowStep:
    """One stored rule of a workflow.

    Attributes:
        step_id: Caller-supplied step number; not required to be unique or
            contiguous.
        pattern: Regular expression selecting the lines this step applies to.
            Stored verbatim and never compiled.
        context_pattern: Regular expression used to extract context from a
            selected line.  Stored verbatim and never compiled.
    """

    step_id: int
    pattern: str
    context_pattern: str


@dataclass(frozen=True)
class WorkflowDefinition:
    name: str
    steps: tuple[WorkflowStep, ...] = ()


@dataclass
class StateStore:
    """Owning container for all persistent entities.

    Attributes:
        documents: Documents keyed by identifier, in creation order.
        analyzer_patterns: The global, de-duplicated analyzer pattern set.
        workflows: Workflow definitions keyed by identifier, in creation order.
    """

    documents: dict[uuid.UUID, Document] = field(default_factory=dict)
    analyzer_patterns: set[str] = field(default_factory=set)
    workflows: dict[uuid.UUID, WorkflowDefinition] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def create_document(self, name: str, content: str) -> uuid.UUID:
        doc_id = self._issue_id()
        self.documents[doc_id] = Document(name=name, content=content)
        logger.debug(
            "StateStore: created document id=%s name=%r chars=%d",
            doc_id,
            name,
            len(content),
        )
        return doc_id

    def get_document(self, doc_id: uuid.UUID) -> Document | None:
        return self.documents.get(doc_id)

    def list_document_metadata(self) -> list[DocumentMetadata]:
        return [
            DocumentMetadata(id=doc_id, name=doc.name)
            for doc_id, doc in self.documents.items()
        ]

    # ------------------------------------------------------------------
    # Analyzer patterns
    # ------------------------------------------------------------------

    def add_analyzer_pattern(self, pattern: str) -> bool:
        """Add *pattern* to the set; return ``False`` if it was already present.

        The caller is responsible for validating the pattern first.
        """
        if pattern in self.analyzer_patterns:
            return False
        self.analyzer_patterns.add(pattern)
        return True

    def list_analyzer_patterns(self) -> frozenset[str]:
        return frozenset(self.analyzer_patterns)

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def create_workflow(self, name: str, steps: Iterable[WorkflowStep]) -> uuid.UUID:
        workflow_id = self._issue_id()
        self.workflows[workflow_id] = WorkflowDefinition(name=name, steps=tuple(steps))
        logger.debug(
            "StateStore: created workflow id=%s name=%r steps=%d",
            workflow_id,
            name,
            len(self.workflows[workflow_id].steps),
        )
        return workflow_id

    def get_workflow(self, workflow_id: uuid.UUID) -> WorkflowDefinition | None:
        return self.workflows.get(workflow_id)

    def list_workflows(self) -> list[tuple[uuid.UUID, WorkflowDefinition]]:
        return list(self.workflows.items())

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _issue_id(self) -> uuid.UUID:
        """Return a UUID4 not used by any document or workflow."""
        while True:
            candidate = uuid.uuid4()
            if candidate not in self.documents and candidate not in self.workflows:
                return candidate
