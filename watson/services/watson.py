"""WatsonService — thread-safe facade over the state store.

:class:`WatsonService` is the only object the HTTP layer talks to.  It owns a
single :class:`~watson.core.state.StateStore`, a single
:class:`threading.Lock`, and a :class:`~watson.services.snapshot.SnapshotStorage`.

Every operation, read or write, holds the lock for its whole duration.
Mutations additionally write a full snapshot *while still holding the lock*,
so two mutations are never interleaved and the snapshot on disk always
reflects a state that existed in memory.  Requests are therefore serialised
behind snapshot I/O.

If the snapshot write fails, the mutation has already been applied and stays
visible in memory; :class:`~watson.services.snapshot.SnapshotIOError` is raised
to the caller, who decides whether to retry or alert.  Nothing is retried here.

Usage::

    from watson.services.snapshot import FileSnapshotStorage
    from watson.services.watson import WatsonService

    service = WatsonService(FileSnapshotStorage("watson_state.bin"))
    service.add_analyzer_pattern("ERROR")
    doc_id = service.create_document("app.log", "INFO: up\\nERROR: down")
    report = service.get_document(doc_id)
    print(report.findings)  # [Finding(line_number=2, line='ERROR: down')]
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Iterable

from watson.core.analyzer import Finding, analyze, validate_pattern
from watson.core.state import (
    Document,
    DocumentMetadata,
    StateStore,
    WorkflowDefinition,
    WorkflowStep,
    ensure_storable,
)
from watson.services.snapshot import (
    FileSnapshotStorage,
    SnapshotIOError,
    SnapshotStorage,
    load_state,
    save_state,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentReport:
    """A stored document together with its freshly computed findings."""

    id: uuid.UUID
    document: Document
    findings: list[Finding]


@dataclass(frozen=True)
class StoredWorkflow:
    id: uuid.UUID
    workflow: WorkflowDefinition


def parse_id(value: str) -> uuid.UUID | None:
    """Parse an external identifier, returning ``None`` if it is not a UUID."""
    try:
        return uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return None


class WatsonService:
    """Serialised access to documents, analyzer patterns and workflows.

    Args:
        storage: Snapshot storage used for write-through and, when *store* is
            not given, for the initial load.  Defaults to a
            :class:`~watson.services.snapshot.FileSnapshotStorage` at
            ``settings.STATE_FILE``.
        store: Pre-built state store.  When ``None`` the store is loaded from
            *storage*, falling back to an empty store.
    """

    def __init__(
        self,
        storage: SnapshotStorage | None = None,
        store: StateStore | None = None,
    ) -> None:
        self._storage = storage if storage is not None else FileSnapshotStorage()
        self._store = store if store is not None else load_state(self._storage)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def create_document(self, name: str, content: str) -> str:
        """Store a new document and return its identifier.

        Raises:
            InvalidTextError: If *name* or *content* cannot be encoded as
                UTF-8.  Nothing is stored.
            SnapshotIOError: If the write-through fails.  The document is
                stored in memory regardless.
        """
        ensure_storable("name", name)
        ensure_storable("content", content)
        with self._lock:
            doc_id = self._store.create_document(name, content)
            logger.info("Created document id=%s name=%r", doc_id, name)
            self._persist()
        return str(doc_id)

    def list_documents(self) -> list[DocumentMetadata]:
        with self._lock:
            return self._store.list_document_metadata()

    def get_document(self, doc_id: str) -> DocumentReport | None:
        """Return the document and its findings, or ``None`` if not found.

        Findings are recomputed on every call against the current analyzer
        pattern set.  An identifier that is not a valid UUID is treated the
        same as an unknown one.
        """
        parsed = parse_id(doc_id)
        if parsed is None:
            return None

        with self._lock:
            document = self._store.get_document(parsed)
            if document is None:
                return None
            findings = analyze(document.content, self._store.analyzer_patterns)

        return DocumentReport(id=parsed, document=document, findings=findings)

    # ------------------------------------------------------------------
    # Analyzer patterns
    # ------------------------------------------------------------------

    def add_analyzer_pattern(self, pattern: str) -> None:
        """Add *pattern* to the analyzer set.  Adding a known pattern is a no-op.

        Raises:
            InvalidPatternError: If *pattern* does not compile.  The pattern
                set is left unchanged.
            InvalidTextError: If *pattern* cannot be encoded as UTF-8.
            SnapshotIOError: If the write-through fails.
        """
        ensure_storable("pattern", pattern)
        validate_pattern(pattern)
        with self._lock:
            added = self._store.add_analyzer_pattern(pattern)
            if added:
                logger.info("Added analyzer pattern %r", pattern)
            self._persist()

    def list_analyzer_patterns(self) -> list[str]:
        with self._lock:
            return sorted(self._store.list_analyzer_patterns())

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def create_workflow(self, name: str, steps: Iterable[WorkflowStep]) -> str:
        """Store a workflow definition and return its identifier.

        Step patterns are stored verbatim; they are neither compiled nor run.

        Raises:
            InvalidTextError: If the name or any step pattern cannot be
                encoded as UTF-8.  Nothing is stored.
            SnapshotIOError: If the write-through fails.
        """
        steps = tuple(steps)
        ensure_storable("name", name)
        for index, step in enumerate(steps):
            ensure_storable(f"steps[{index}].pattern", step.pattern)
            ensure_storable(f"steps[{index}].context_pattern", step.context_pattern)
        with self._lock:
            workflow_id = self._store.create_workflow(name, steps)
            logger.info(
                "Created workflow id=%s name=%r steps=%d", workflow_id, name, len(steps)
            )
            self._persist()
        return str(workflow_id)

    def list_workflows(self) -> list[StoredWorkflow]:
        with self._lock:
            return [
                StoredWorkflow(id=workflow_id, workflow=workflow)
                for workflow_id, workflow in self._store.list_workflows()
            ]

    def get_workflow(self, workflow_id: str) -> StoredWorkflow | None:
        parsed = parse_id(workflow_id)
        if parsed is None:
            return None

        with self._lock:
            workflow = self._store.get_workflow(parsed)
        if workflow is None:
            return None
        return StoredWorkflow(id=parsed, workflow=workflow)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        """Write the full state snapshot.  Must be called with the lock held."""
        try:
            save_state(self._store, self._storage)
        except SnapshotIOError:
            logger.error("Snapshot write-through failed; in-memory state is ahead of storage")
            raise
