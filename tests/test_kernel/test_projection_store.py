"""
Tests for SQLite Projection Store

The projection store holds derived documents keyed by name - here, cached
evaluation reports. They can always be recomputed, so the store only needs
save/load/replace semantics.
"""

from tenderflow.kernel.projection_store import SQLiteProjectionStore


def test_save_and_load(projection_store: SQLiteProjectionStore) -> None:
    projection_store.save("evaluation:t-1", {"summary": "ok", "ranking": []}, position=7)

    loaded = projection_store.load("evaluation:t-1")
    assert loaded is not None
    assert loaded.position == 7
    assert loaded.state == {"summary": "ok", "ranking": []}
    assert loaded.updated_at.tzinfo is not None


def test_save_replaces_previous_state(projection_store: SQLiteProjectionStore) -> None:
    projection_store.save("evaluation:t-1", {"summary": "first"}, position=1)
    projection_store.save("evaluation:t-1", {"summary": "second"}, position=2)

    assert projection_store.load_state("evaluation:t-1") == {"summary": "second"}
    assert projection_store.load("evaluation:t-1").position == 2


def test_missing_projection(projection_store: SQLiteProjectionStore) -> None:
    assert projection_store.load("evaluation:nope") is None
    assert projection_store.load_state("evaluation:nope") is None


def test_delete_and_list(projection_store: SQLiteProjectionStore) -> None:
    projection_store.save("evaluation:t-1", {})
    projection_store.save("evaluation:t-2", {})
    projection_store.save("other", {})

    assert projection_store.list_projections("evaluation:") == ["evaluation:t-1", "evaluation:t-2"]

    projection_store.delete("evaluation:t-1")
    assert projection_store.list_projections("evaluation:") == ["evaluation:t-2"]
