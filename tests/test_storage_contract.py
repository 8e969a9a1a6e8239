"""
Behavioural contract shared by every StorageBackend.

Each test runs twice through the parametrized `backend` fixture: once against
a LocalBackend on a temporary SQLite file, once against a RemoteBackend wired
to the in-memory Supabase double. Callers must not be able to tell the two
apart from these observations.
"""

import asyncio
import uuid

import pytest

from ainotes.embedding import EMBEDDING_DIMENSIONS
from ainotes.errors import BackendReselectedError, NoteNotFoundError, NotInitializedError
from ainotes.storage import LocalBackend, RemoteBackend
from ainotes.storage.base import now_ms
from tests.fixtures.fake_supabase import FakeSupabase
from tests.fixtures.notes import angled_vector, make_note, unit_vector


# =====================================================================
# Save / get
# =====================================================================


@pytest.mark.asyncio
async def test_save_then_get_round_trips(backend) -> None:
    """
    A saved note comes back with:

      • a generated id
      • the content, tags and source it was saved with
      • a canonical-width embedding
      • created_at == updated_at
    """
    saved = await backend.save_note(make_note())

    assert saved["id"]
    assert saved["created_at"] == saved["updated_at"]

    fetched = await backend.get_note(saved["id"])

    assert fetched is not None
    assert fetched["id"] == saved["id"]
    assert fetched["content"] == "Python asyncio event loops"
    assert fetched["tags"] == ["python", "asyncio"]
    assert fetched["source"] == {
        "url": "https://example.com/page",
        "title": "Example page",
        "timestamp": 1_700_000_000_000,
    }
    assert fetched["embedding"] == unit_vector(EMBEDDING_DIMENSIONS)
    assert fetched["created_at"] == saved["created_at"]


@pytest.mark.asyncio
async def test_get_missing_note_returns_none(backend) -> None:
    assert await backend.get_note(str(uuid.uuid4())) is None


@pytest.mark.asyncio
async def test_short_embedding_is_stored_padded(backend) -> None:
    saved = await backend.save_note(make_note(embedding=[0.5] * 768))
    fetched = await backend.get_note(saved["id"])

    assert fetched is not None
    assert len(fetched["embedding"]) == EMBEDDING_DIMENSIONS
    assert fetched["embedding"][:768] == [0.5] * 768
    assert fetched["embedding"][768:] == [0.0] * (EMBEDDING_DIMENSIONS - 768)


@pytest.mark.asyncio
async def test_long_embedding_is_stored_truncated(backend) -> None:
    vec = [float(i % 7) for i in range(2000)]
    saved = await backend.save_note(make_note(embedding=vec))

    assert saved["embedding"] == vec[:EMBEDDING_DIMENSIONS]


@pytest.mark.asyncio
async def test_tags_are_normalized_on_save(backend) -> None:
    saved = await backend.save_note(make_note(tags=[" python ", "python", "", "ml"]))
    assert saved["tags"] == ["python", "ml"]


@pytest.mark.asyncio
async def test_missing_source_timestamp_defaults_to_now(backend) -> None:
    note = make_note()
    note["source"]["timestamp"] = None
    before = now_ms()

    saved = await backend.save_note(note)

    assert saved["source"]["timestamp"] >= before


@pytest.mark.asyncio
async def test_invalid_notes_are_rejected(backend) -> None:
    with pytest.raises(ValueError):
        await backend.save_note(make_note(content="   "))

    with pytest.raises(ValueError):
        await backend.save_note(make_note(embedding=[]))

    assert await backend.get_all_notes() == []


@pytest.mark.asyncio
async def test_concurrent_saves_get_distinct_ids_and_timestamps(backend) -> None:
    saved = await asyncio.gather(
        *(backend.save_note(make_note(content=f"note {i}")) for i in range(5))
    )

    assert len({note["id"] for note in saved}) == 5
    assert len({note["created_at"] for note in saved}) == 5
    assert len(await backend.get_all_notes()) == 5


# =====================================================================
# Update / delete
# =====================================================================


@pytest.mark.asyncio
async def test_tags_only_update_leaves_everything_else_alone(backend) -> None:
    saved = await backend.save_note(make_note())

    updated = await backend.update_note(saved["id"], {"tags": ["x", "y"]})

    assert updated["id"] == saved["id"]
    assert updated["tags"] == ["x", "y"]
    assert updated["content"] == saved["content"]
    assert updated["embedding"] == saved["embedding"]
    assert updated["source"] == saved["source"]
    assert updated["created_at"] == saved["created_at"]
    assert updated["updated_at"] > saved["updated_at"]

    fetched = await backend.get_note(saved["id"])
    assert fetched is not None
    assert fetched["tags"] == ["x", "y"]
    assert fetched["updated_at"] == updated["updated_at"]


@pytest.mark.asyncio
async def test_update_normalizes_embedding_and_content(backend) -> None:
    saved = await backend.save_note(make_note())

    updated = await backend.update_note(
        saved["id"], {"content": "rewritten", "embedding": unit_vector(384, 3)}
    )

    assert updated["content"] == "rewritten"
    assert updated["embedding"] == unit_vector(EMBEDDING_DIMENSIONS, 3)
    assert updated["tags"] == saved["tags"]


@pytest.mark.asyncio
async def test_repeated_updates_keep_increasing_updated_at(backend) -> None:
    saved = await backend.save_note(make_note())

    first = await backend.update_note(saved["id"], {"tags": ["a"]})
    second = await backend.update_note(saved["id"], {"tags": ["b"]})

    assert saved["updated_at"] < first["updated_at"] < second["updated_at"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "updates",
    [
        {"source": {"url": "x", "title": "y", "timestamp": 1}},
        {"id": "other"},
        {"created_at": 1},
        {"updated_at": 1},
    ],
)
async def test_immutable_fields_cannot_be_updated(backend, updates) -> None:
    saved = await backend.save_note(make_note())

    with pytest.raises(ValueError):
        await backend.update_note(saved["id"], updates)

    fetched = await backend.get_note(saved["id"])
    assert fetched == saved


@pytest.mark.asyncio
async def test_update_missing_note_raises(backend) -> None:
    with pytest.raises(NoteNotFoundError):
        await backend.update_note(str(uuid.uuid4()), {"tags": ["x"]})


@pytest.mark.asyncio
async def test_delete_removes_note(backend) -> None:
    keep = await backend.save_note(make_note(content="keep"))
    gone = await backend.save_note(make_note(content="gone"))

    await backend.delete_note(gone["id"])

    assert await backend.get_note(gone["id"]) is None
    assert [n["id"] for n in await backend.get_all_notes()] == [keep["id"]]


@pytest.mark.asyncio
async def test_delete_missing_note_raises(backend) -> None:
    with pytest.raises(NoteNotFoundError) as exc_info:
        await backend.delete_note("does-not-exist")

    assert exc_info.value.note_id == "does-not-exist"


@pytest.mark.asyncio
async def test_clear_all_removes_everything(backend) -> None:
    for i in range(3):
        await backend.save_note(make_note(content=f"note {i}"))

    await backend.clear_all()

    assert await backend.get_all_notes() == []
    assert await backend.get_tags() == []


# =====================================================================
# Listing and search
# =====================================================================


@pytest.mark.asyncio
async def test_recent_and_all_notes_are_newest_first(backend) -> None:
    first = await backend.save_note(make_note(content="first"))
    second = await backend.save_note(make_note(content="second"))
    third = await backend.save_note(make_note(content="third"))

    recent = await backend.get_recent_notes(2)
    assert [n["id"] for n in recent] == [third["id"], second["id"]]

    everything = await backend.get_all_notes()
    assert [n["id"] for n in everything] == [third["id"], second["id"], first["id"]]


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [0, -1])
async def test_non_positive_limit_is_rejected(backend, limit) -> None:
    with pytest.raises(ValueError):
        await backend.get_recent_notes(limit)

    with pytest.raises(ValueError):
        await backend.search_by_vector(unit_vector(EMBEDDING_DIMENSIONS), limit)


@pytest.mark.asyncio
async def test_vector_search_applies_threshold_and_order(backend) -> None:
    """
    With the default threshold of 0.3:

      • notes scoring 0.9 and 0.5 are returned, best first
      • the note scoring 0.1 is dropped
    """
    weak = await backend.save_note(make_note(content="weak", embedding=angled_vector(1536, 0.1)))
    medium = await backend.save_note(make_note(content="medium", embedding=angled_vector(1536, 0.5)))
    strong = await backend.save_note(make_note(content="strong", embedding=angled_vector(1536, 0.9)))

    results = await backend.search_by_vector(unit_vector(EMBEDDING_DIMENSIONS))

    ids = [n["id"] for n in results]
    assert ids == [strong["id"], medium["id"]]
    assert weak["id"] not in ids


@pytest.mark.asyncio
async def test_vector_search_respects_limit_and_custom_threshold(backend) -> None:
    for similarity in (0.95, 0.85, 0.75, 0.2):
        await backend.save_note(make_note(embedding=angled_vector(1536, similarity)))

    query = unit_vector(EMBEDDING_DIMENSIONS)

    assert len(await backend.search_by_vector(query, limit=2)) == 2
    assert len(await backend.search_by_vector(query, limit=10, threshold=0.8)) == 2
    assert len(await backend.search_by_vector(query, limit=10, threshold=0.1)) == 4


@pytest.mark.asyncio
async def test_vector_search_with_no_matches_returns_empty_list(backend) -> None:
    await backend.save_note(make_note(embedding=unit_vector(1536, 5)))

    assert await backend.search_by_vector(unit_vector(1536, 0)) == []


@pytest.mark.asyncio
async def test_unrelated_vectors_from_mixed_providers_stay_apart(backend) -> None:
    """
    Notes embedded at 384, 768 and 1536 dimensions live side by side and a
    768-wide query is compared against all of them without error.
    """
    small = await backend.save_note(make_note(content="small", embedding=unit_vector(384, 0)))
    await backend.save_note(make_note(content="medium", embedding=unit_vector(768, 1)))
    await backend.save_note(make_note(content="large", embedding=unit_vector(1536, 2)))

    for note in await backend.get_all_notes():
        assert len(note["embedding"]) == EMBEDDING_DIMENSIONS

    results = await backend.search_by_vector(unit_vector(768, 0))

    assert [n["id"] for n in results] == [small["id"]]


@pytest.mark.asyncio
async def test_near_identical_notes_from_mixed_providers_all_match(backend) -> None:
    """
    The same content embedded by three providers (384, 768 and 1536 wide,
    sharing a dominant prefix) is found in full by a query using any one of
    those embeddings, ranked by similarity.
    """
    small = [1.0] * 384
    medium = [1.0] * 384 + [0.1] * 384
    large = [1.0] * 384 + [0.1] * 1152

    small_note = await backend.save_note(make_note(content="small", embedding=small))
    medium_note = await backend.save_note(make_note(content="medium", embedding=medium))
    large_note = await backend.save_note(make_note(content="large", embedding=large))

    results = await backend.search_by_vector(medium)

    assert [n["id"] for n in results] == [medium_note["id"], small_note["id"], large_note["id"]]


@pytest.mark.asyncio
async def test_keyword_search(backend) -> None:
    match = await backend.save_note(make_note(content="Python asyncio event loops"))
    await backend.save_note(make_note(content="Rust ownership rules"))

    results = await backend.search_notes("asyncio")
    assert [n["id"] for n in results] == [match["id"]]

    assert await backend.search_notes("haskell") == []
    assert await backend.search_notes("   ") == []


@pytest.mark.asyncio
async def test_search_by_tag_is_exact(backend) -> None:
    tagged = await backend.save_note(make_note(tags=["python", "async"]))
    await backend.save_note(make_note(tags=["rust"]))

    assert [n["id"] for n in await backend.search_by_tag("python")] == [tagged["id"]]
    assert await backend.search_by_tag("py") == []


@pytest.mark.asyncio
async def test_get_tags_is_unique_and_sorted(backend) -> None:
    await backend.save_note(make_note(tags=["python", "async"]))
    await backend.save_note(make_note(tags=["rust", "python"]))
    await backend.save_note(make_note(tags=[]))

    assert await backend.get_tags() == ["async", "python", "rust"]


# =====================================================================
# Lifecycle
# =====================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", ["local", "remote"])
async def test_operations_before_initialize_fail(tmp_path, kind) -> None:
    if kind == "local":
        backend = LocalBackend(tmp_path / "notes.db")
    else:
        backend = RemoteBackend("https://example.supabase.co", "key", client=FakeSupabase())

    with pytest.raises(NotInitializedError):
        await backend.save_note(make_note())

    with pytest.raises(NotInitializedError):
        await backend.get_recent_notes()

    assert not backend.initialized


@pytest.mark.asyncio
async def test_initialize_is_idempotent(backend) -> None:
    saved = await backend.save_note(make_note())

    await backend.initialize()

    assert await backend.get_note(saved["id"]) is not None


@pytest.mark.asyncio
async def test_retired_backend_refuses_requests(backend) -> None:
    await backend.retire()

    assert backend.retired
    assert not backend.initialized

    with pytest.raises(BackendReselectedError):
        await backend.get_all_notes()

    with pytest.raises(BackendReselectedError):
        await backend.initialize()
