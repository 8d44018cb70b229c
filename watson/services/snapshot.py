"""Snapshot codec and storage for the Watson state store.

The whole :class:`~watson.core.state.StateStore` is persisted as a single
snapshot after every mutation and read back once at startup.  This module
provides the three pieces involved:

* **Codec** — :func:`serialize` renders a store as the wire structure
  (:class:`SnapshotModel`) encoded as UTF-8 JSON bytes; :func:`deserialize`
  parses bytes back into the wire structure; :func:`rehydrate` turns the wire
  structure into a live store.
* **Storage** — :class:`SnapshotStorage` is the read/write interface.
  :class:`FileSnapshotStorage` overwrites one file at a fixed path;
  :class:`InMemorySnapshotStorage` keeps the last snapshot in memory for tests.
* **Startup** — :func:`load_state` combines the two and falls back to an empty
  store when no usable snapshot exists.

Wire layout
-----------
::

    {
      "documents": {"<uuid>": {"content": "...", "name": "..."}},
      "workflows": {"<uuid>": {"name": "...",
                               "steps": [{"step_id": 1,
                                          "pattern": "...",
                                          "context_pattern": "..."}]}},
      "analyzer_patterns": ["ERROR", "INFO"]
    }

There is no version tag; a change to this layout is a breaking change.

Failure policy
--------------
* A map entry whose key is not a valid UUID, and an analyzer pattern that no
  longer compiles, are dropped during :func:`rehydrate`; the rest of the
  snapshot still loads.
* Bytes that cannot be decoded at all raise :class:`SnapshotDecodeError`;
  nothing is partially recovered.
* Read and write failures raise :class:`SnapshotIOError`, as does a store
  that cannot be encoded at all.

Known limitation: :class:`FileSnapshotStorage` writes in place rather than
via a temporary file and rename, so a crash mid-write can leave a truncated
snapshot.  It is detected as a :class:`SnapshotDecodeError` on the next load.
"""

from __future__ import annotations

import logging
import os
import uuid
from abc import ABC, abstractmethod

from prometheus_client import Counter
from pydantic import BaseModel, Field
from pydantic_core import PydanticSerializationError

from watson.config import settings
from watson.core.analyzer import InvalidPatternError, validate_pattern
from watson.core.state import Document, StateStore, WorkflowDefinition, WorkflowStep

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------

_SNAPSHOT_OPS = Counter(
    "watson_snapshot_operations_total",
    "Total successful snapshot operations by type",
    ["operation"],  # read | write
)
_SNAPSHOT_ERRORS = Counter(
    "watson_snapshot_errors_total",
    "Total failed snapshot operations by type",
    ["operation"],  # read | write | decode | encode
)


class SnapshotError(Exception):
    """Base class for snapshot persistence failures."""


class SnapshotIOError(SnapshotError):
    """Raised when the snapshot cannot be read from or written to storage."""


class SnapshotDecodeError(SnapshotError):
    """Raised when snapshot bytes cannot be parsed as a snapshot at all."""


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class SerializedDocument(BaseModel):
    content: str
    name: str


class SerializedWorkflowStep(BaseModel):
    step_id: int
    pattern: str
    context_pattern: str


class SerializedWorkflow(BaseModel):
    name: str
    steps: list[SerializedWorkflowStep] = Field(default_factory=list)


class SnapshotModel(BaseModel):
    """The persisted wire structure.  Map keys are identifiers rendered as strings."""

    documents: dict[str, SerializedDocument] = Field(default_factory=dict)
    workflows: dict[str, SerializedWorkflow] = Field(default_factory=dict)
    analyzer_patterns: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


def to_snapshot_model(store: StateStore) -> SnapshotModel:
    return SnapshotModel(
        documents={
            str(doc_id): SerializedDocument(content=doc.content, name=doc.name)
            for doc_id, doc in store.documents.items()
        },
        workflows={
            str(workflow_id): SerializedWorkflow(
                name=workflow.name,
                steps=[
                    SerializedWorkflowStep(
                        step_id=step.step_id,
                        pattern=step.pattern,
                        context_pattern=step.context_pattern,
                    )
                    for step in workflow.steps
                ],
            )
            for workflow_id, workflow in store.workflows.items()
        },
        analyzer_patterns=sorted(store.analyzer_patterns),
    )


def serialize(store: StateStore) -> bytes:
    """Encode *store* as snapshot bytes."""
    return to_snapshot_model(store).model_dump_json().encode("utf-8")


def deserialize(data: bytes) -> SnapshotModel:
    """Parse snapshot bytes into the wire structure.

    Raises:
        SnapshotDecodeError: If *data* is not a well-formed snapshot, e.g. a
            truncated file or one written by something else.
    """
    try:
        return SnapshotModel.model_validate_json(data)
    except ValueError as exc:
        _SNAPSHOT_ERRORS.labels(operation="decode").inc()
        raise SnapshotDecodeError(f"snapshot could not be decoded: {exc}") from exc


def _parse_id(key: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(key)
    except ValueError:
        return None


def rehydrate(snapshot: SnapshotModel) -> StateStore:
    """Build a live :class:`StateStore` from the wire structure.

    Entries whose key does not parse as a UUID are skipped, as are analyzer
    patterns that do not compile.
    """
    store = StateStore()

    for pattern in snapshot.analyzer_patterns:
        try:
            validate_pattern(pattern)
        except InvalidPatternError as exc:
            logger.warning("rehydrate: dropping analyzer pattern: %s", exc)
            continue
        store.analyzer_patterns.add(pattern)

    for key, doc in snapshot.documents.items():
        doc_id = _parse_id(key)
        if doc_id is None:
            logger.debug("rehydrate: dropping document with unparsable id %r", key)
            continue
        store.documents[doc_id] = Document(name=doc.name, content=doc.content)

    for key, workflow in snapshot.workflows.items():
        workflow_id = _parse_id(key)
        if workflow_id is None:
            logger.debug("rehydrate: dropping workflow with unparsable id %r", key)
            continue
        store.workflows[workflow_id] = WorkflowDefinition(
            name=workflow.name,
            steps=tuple(
                WorkflowStep(
                    step_id=step.step_id,
                    pattern=step.pattern,
                    context_pattern=step.context_pattern,
                )
                for step in workflow.steps
            ),
        )

    return store


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class SnapshotStorage(ABC):
    """Abstract read/write interface for a single snapshot blob.

    Implementations are called with the service lock held, so they need no
    synchronisation of their own.
    """

    @abstractmethod
    def read(self) -> bytes:
        """Return the stored snapshot bytes.

        Raises:
            SnapshotIOError: If no snapshot exists or it cannot be read.
        """

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Replace the stored snapshot with *data*.

        Raises:
            SnapshotIOError: If the snapshot cannot be written.
        """


class FileSnapshotStorage(SnapshotStorage):
    """Snapshot storage backed by one file, overwritten in full on each write.

    Args:
        path: Snapshot file path.  Defaults to ``settings.STATE_FILE``.
    """

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self._path = os.fspath(path if path is not None else settings.STATE_FILE)

    @property
    def path(self) -> str:
        return self._path

    def read(self) -> bytes:
        try:
            with open(self._path, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            _SNAPSHOT_ERRORS.labels(operation="read").inc()
            raise SnapshotIOError(f"cannot read snapshot {self._path}: {exc}") from exc

        _SNAPSHOT_OPS.labels(operation="read").inc()
        logger.debug("FileSnapshotStorage.read: path=%s bytes=%d", self._path, len(data))
        return data

    def write(self, data: bytes) -> None:
        try:
            with open(self._path, "wb") as fh:
                fh.write(data)
        except OSError as exc:
            _SNAPSHOT_ERRORS.labels(operation="write").inc()
            raise SnapshotIOError(f"cannot write snapshot {self._path}: {exc}") from exc

        _SNAPSHOT_OPS.labels(operation="write").inc()
        logger.debug("FileSnapshotStorage.write: path=%s bytes=%d", self._path, len(data))


class InMemorySnapshotStorage(SnapshotStorage):
    """Keeps the latest snapshot in memory.  Used by tests and ephemeral runs.

    Args:
        data: Initial snapshot bytes, or ``None`` for "no snapshot yet".
    """

    def __init__(self, data: bytes | None = None) -> None:
        self.data = data
        self.writes = 0

    def read(self) -> bytes:
        if self.data is None:
            raise SnapshotIOError("no snapshot has been written")
        return self.data

    def write(self, data: bytes) -> None:
        self.data = data
        self.writes += 1


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def save_state(store: StateStore, storage: SnapshotStorage) -> None:
    """Serialise *store* and write it to *storage*.

    Raises:
        SnapshotIOError: Propagated from :meth:`SnapshotStorage.write`, or
            raised when *store* holds text that cannot be encoded.
    """
    try:
        data = serialize(store)
    except (PydanticSerializationError, UnicodeEncodeError) as exc:
        _SNAPSHOT_ERRORS.labels(operation="encode").inc()
        raise SnapshotIOError(f"snapshot could not be encoded: {exc}") from exc
    storage.write(data)


def load_state(storage: SnapshotStorage) -> StateStore:
    """Load the state store from *storage*, or return an empty one.

    A missing, unreadable or undecodable snapshot is not fatal: a warning is
    logged and a fresh, empty store is returned.
    """
    try:
        store = rehydrate(deserialize(storage.read()))
    except SnapshotError as exc:
        logger.warning("Starting with empty state: %s", exc)
        return StateStore()

    logger.info(
        "Loaded state snapshot: documents=%d workflows=%d analyzer_patterns=%d",
        len(store.documents),
        len(store.workflows),
        len(store.analyzer_patterns),
    )
    return store
