"""Unit tests for watson/services/snapshot.py.

Coverage targets
----------------
* ``serialize`` renders identifiers as strings and patterns as a sorted list.
* ``serialize`` → ``deserialize`` → ``rehydrate`` reproduces documents,
  workflows and the analyzer pattern set.
* ``rehydrate`` silently drops entries whose key is not a UUID, and drops
  analyzer patterns that do not compile with a warning.
* ``save_state`` reports a store that cannot be encoded as ``SnapshotIOError``.
* ``deserialize`` raises ``SnapshotDecodeError`` for garbage, truncated, or
  wrongly shaped input.
* ``FileSnapshotStorage`` overwrites the file in full and raises
  ``SnapshotIOError`` for missing files and unwritable paths.
* ``load_state`` falls back to an empty store on read and decode failures.
* Prometheus counters are incremented on write success and failure.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

import pytest
from prometheus_client import REGISTRY

from watson.core.state import Document, StateStore, WorkflowDefinition, WorkflowStep
from watson.services.snapshot import (
    FileSnapshotStorage,
    InMemorySnapshotStorage,
    SnapshotDecodeError,
    SnapshotIOError,
    SnapshotModel,
    deserialize,
    load_state,
    rehydrate,
    save_state,
    serialize,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_STEPS = (
    WorkflowStep(step_id=1, pattern="run:received event", context_pattern=r"repo=([\w\-/]+)"),
    WorkflowStep(
        step_id=2, pattern="notifier=github_status build=", context_pattern=r"repo=([\w\-/]+)"
    ),
)


def _populated_store() -> StateStore:
    store = StateStore()
    store.create_document("app.log", "INFO: started\nERROR: failed\n")
    store.create_document("empty.log", "")
    store.add_analyzer_pattern("ERROR")
    store.add_analyzer_pattern("INFO")
    store.create_workflow("Default", _STEPS)
    return store


def _sample(name: str, operation: str) -> float:
    return REGISTRY.get_sample_value(name, {"operation": operation}) or 0.0


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class TestSerialize:
    def test_wire_layout(self) -> None:
        store = _populated_store()
        wire = json.loads(serialize(store))

        assert set(wire) == {"documents", "workflows", "analyzer_patterns"}
        assert wire["analyzer_patterns"] == ["ERROR", "INFO"]
        for key, doc in wire["documents"].items():
            assert uuid.UUID(key) in store.documents
            assert set(doc) == {"content", "name"}
        (workflow,) = wire["workflows"].values()
        assert workflow["name"] == "Default"
        assert workflow["steps"][0] == {
            "step_id": 1,
            "pattern": "run:received event",
            "context_pattern": r"repo=([\w\-/]+)",
        }

    def test_empty_store(self) -> None:
        assert json.loads(serialize(StateStore())) == {
            "documents": {},
            "workflows": {},
            "analyzer_patterns": [],
        }

    def test_returns_bytes(self) -> None:
        assert isinstance(serialize(StateStore()), bytes)


class TestRoundTrip:
    def test_round_trip_reproduces_state(self) -> None:
        original = _populated_store()
        restored = rehydrate(deserialize(serialize(original)))

        assert restored.documents == original.documents
        assert restored.workflows == original.workflows
        assert restored.analyzer_patterns == original.analyzer_patterns

    def test_round_trip_preserves_unicode_and_newlines(self) -> None:
        store = StateStore()
        doc_id = store.create_document("ünïcode.log", "é\n\t\"quoted\"\r\n✓")
        restored = rehydrate(deserialize(serialize(store)))
        assert restored.get_document(doc_id) == store.get_document(doc_id)

    def test_rehydrated_store_issues_fresh_ids(self) -> None:
        original = _populated_store()
        restored = rehydrate(deserialize(serialize(original)))
        new_id = restored.create_document("new", "")
        assert new_id not in original.documents


class TestRehydrate:
    def test_drops_unparsable_document_keys(self) -> None:
        good = uuid.uuid4()
        snapshot = SnapshotModel.model_validate(
            {
                "documents": {
                    str(good): {"content": "kept", "name": "good"},
                    "not-a-uuid": {"content": "lost", "name": "bad"},
                },
                "workflows": {},
                "analyzer_patterns": [],
            }
        )
        store = rehydrate(snapshot)
        assert store.documents == {good: Document(name="good", content="kept")}

    def test_drops_unparsable_workflow_keys(self) -> None:
        good = uuid.uuid4()
        snapshot = SnapshotModel.model_validate(
            {
                "documents": {},
                "workflows": {
                    str(good): {"name": "kept", "steps": []},
                    "": {"name": "lost", "steps": []},
                },
                "analyzer_patterns": ["ERROR"],
            }
        )
        store = rehydrate(snapshot)
        assert store.workflows == {good: WorkflowDefinition(name="kept")}
        assert store.analyzer_patterns == {"ERROR"}

    def test_duplicate_patterns_collapse(self) -> None:
        snapshot = SnapshotModel(analyzer_patterns=["ERROR", "ERROR"])
        assert rehydrate(snapshot).analyzer_patterns == {"ERROR"}

    def test_drops_uncompilable_patterns(self, caplog) -> None:
        snapshot = SnapshotModel(analyzer_patterns=["(", "ERROR", "[a-"])
        with caplog.at_level(logging.WARNING, logger="watson.services.snapshot"):
            store = rehydrate(snapshot)
        assert store.analyzer_patterns == {"ERROR"}
        assert "dropping analyzer pattern" in caplog.text
        assert "'('" in caplog.text


class TestDeserialize:
    @pytest.mark.parametrize(
        "data",
        [
            b"",
            b"\x00\x01\x02garbage",
            b'{"documents": {"',
            b"[]",
            b'{"documents": []}',
            b'{"documents": {"x": {"name": 1}}}',
        ],
    )
    def test_malformed_input_raises_decode_error(self, data: bytes) -> None:
        with pytest.raises(SnapshotDecodeError):
            deserialize(data)

    def test_truncated_snapshot_raises_decode_error(self) -> None:
        data = serialize(_populated_store())
        with pytest.raises(SnapshotDecodeError):
            deserialize(data[: len(data) // 2])


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class TestFileSnapshotStorage:
    def test_write_then_read(self, tmp_path: Path) -> None:
        storage = FileSnapshotStorage(tmp_path / "state.bin")
        storage.write(b"first snapshot, longer")
        storage.write(b"second")
        assert storage.read() == b"second"

    def test_read_missing_file_raises(self, tmp_path: Path) -> None:
        storage = FileSnapshotStorage(tmp_path / "absent.bin")
        with pytest.raises(SnapshotIOError):
            storage.read()

    def test_write_to_missing_directory_raises(self, tmp_path: Path) -> None:
        storage = FileSnapshotStorage(tmp_path / "no-such-dir" / "state.bin")
        with pytest.raises(SnapshotIOError):
            storage.write(b"data")

    def test_default_path_from_settings(self) -> None:
        from watson.config import settings

        assert FileSnapshotStorage().path == settings.STATE_FILE

    def test_write_counters(self, tmp_path: Path) -> None:
        ok_before = _sample("watson_snapshot_operations_total", "write")
        err_before = _sample("watson_snapshot_errors_total", "write")

        FileSnapshotStorage(tmp_path / "state.bin").write(b"x")
        with pytest.raises(SnapshotIOError):
            FileSnapshotStorage(tmp_path / "missing" / "state.bin").write(b"x")

        assert _sample("watson_snapshot_operations_total", "write") == ok_before + 1
        assert _sample("watson_snapshot_errors_total", "write") == err_before + 1


class TestInMemorySnapshotStorage:
    def test_read_before_write_raises(self) -> None:
        with pytest.raises(SnapshotIOError):
            InMemorySnapshotStorage().read()

    def test_counts_writes(self) -> None:
        storage = InMemorySnapshotStorage()
        storage.write(b"a")
        storage.write(b"b")
        assert storage.read() == b"b"
        assert storage.writes == 2


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


class TestLoadState:
    def test_loads_saved_state(self, tmp_path: Path) -> None:
        storage = FileSnapshotStorage(tmp_path / "state.bin")
        original = _populated_store()
        save_state(original, storage)

        loaded = load_state(storage)
        assert loaded.documents == original.documents
        assert loaded.workflows == original.workflows
        assert loaded.analyzer_patterns == original.analyzer_patterns

    def test_missing_snapshot_yields_empty_store(self, tmp_path: Path, caplog) -> None:
        storage = FileSnapshotStorage(tmp_path / "absent.bin")
        with caplog.at_level(logging.WARNING, logger="watson.services.snapshot"):
            store = load_state(storage)
        assert store == StateStore()
        assert "Starting with empty state" in caplog.text

    def test_corrupt_snapshot_yields_empty_store(self, tmp_path: Path) -> None:
        path = tmp_path / "state.bin"
        path.write_bytes(b"\xde\xad\xbe\xef")
        assert load_state(FileSnapshotStorage(path)) == StateStore()

    def test_bad_keys_do_not_prevent_loading(self) -> None:
        good = uuid.uuid4()
        payload = {
            "documents": {
                str(good): {"content": "c", "name": "n"},
                "garbage": {"content": "c", "name": "n"},
            },
            "workflows": {"12345": {"name": "w", "steps": []}},
            "analyzer_patterns": ["ERROR"],
        }
        storage = InMemorySnapshotStorage(json.dumps(payload).encode("utf-8"))
        store = load_state(storage)
        assert list(store.documents) == [good]
        assert store.workflows == {}
        assert store.analyzer_patterns == {"ERROR"}


class TestSaveState:
    def test_unencodable_text_raises_io_error(self) -> None:
        store = StateStore()
        store.create_document("x", "a\ud800b")
        storage = InMemorySnapshotStorage()
        before = _sample("watson_snapshot_errors_total", "encode")

        with pytest.raises(SnapshotIOError):
            save_state(store, storage)

        assert storage.writes == 0
        assert _sample("watson_snapshot_errors_total", "encode") == before + 1
