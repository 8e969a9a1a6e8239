"""
LocalBackend specifics not covered by the shared storage contract:
persistence across restarts, the in-memory path and error translation.
"""

import asyncio

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine

from ainotes.errors import StorageError, WriteRejectedError
from ainotes.storage import local as local_module
from ainotes.storage.local import LocalBackend
from tests.fixtures.notes import make_note


@pytest.mark.asyncio
async def test_notes_survive_a_restart(tmp_path) -> None:
    path = tmp_path / "nested" / "dir" / "notes.db"

    first = LocalBackend(path)
    await first.initialize()
    saved = await first.save_note(make_note())
    await first.close()

    assert path.exists()

    second = LocalBackend(path)
    await second.initialize()
    try:
        fetched = await second.get_note(saved["id"])
        assert fetched == saved
    finally:
        await second.close()


@pytest.mark.asyncio
async def test_clock_continues_after_restart(tmp_path) -> None:
    """The timestamp clock is seeded from the newest stored updated_at."""
    path = tmp_path / "notes.db"

    first = LocalBackend(path)
    await first.initialize()
    saved = await first.save_note(make_note())
    await first.close()

    second = LocalBackend(path)
    await second.initialize()
    try:
        assert second._last_timestamp >= saved["updated_at"]
        later = await second.save_note(make_note(content="later"))
        assert later["created_at"] > saved["created_at"]
    finally:
        await second.close()


@pytest.mark.asyncio
async def test_concurrent_initialize_builds_one_engine(tmp_path, monkeypatch) -> None:
    engines = []

    def counting_engine(*args, **kwargs):
        engine = create_async_engine(*args, **kwargs)
        engines.append(engine)
        return engine

    monkeypatch.setattr(local_module, "create_async_engine", counting_engine)
    backend = LocalBackend(tmp_path / "notes.db")

    await asyncio.gather(backend.initialize(), backend.initialize(), backend.initialize())
    try:
        assert backend.initialized
        assert len(engines) == 1
    finally:
        await backend.close()


@pytest.mark.asyncio
async def test_in_memory_store() -> None:
    backend = LocalBackend(":memory:")
    await backend.initialize()
    try:
        saved = await backend.save_note(make_note())
        assert [n["id"] for n in await backend.get_all_notes()] == [saved["id"]]
    finally:
        await backend.close()


@pytest.mark.asyncio
async def test_keyword_search_is_case_insensitive_and_literal(local_backend) -> None:
    percent = await local_backend.save_note(make_note(content="Growth of 100% in Q3"))
    await local_backend.save_note(make_note(content="Growth of 100 units"))

    assert [n["id"] for n in await local_backend.search_notes("100%")] == [percent["id"]]
    assert len(await local_backend.search_notes("GROWTH")) == 2


@pytest.mark.asyncio
async def test_write_failures_become_write_rejected(local_backend, monkeypatch) -> None:
    async def broken_commit(self):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr("sqlalchemy.ext.asyncio.AsyncSession.commit", broken_commit)

    with pytest.raises(WriteRejectedError):
        await local_backend.save_note(make_note())


@pytest.mark.asyncio
async def test_read_failures_become_storage_error(local_backend, monkeypatch) -> None:
    async def broken_execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr("sqlalchemy.ext.asyncio.AsyncSession.execute", broken_execute)

    with pytest.raises(StorageError) as exc_info:
        await local_backend.get_recent_notes()

    assert not isinstance(exc_info.value, WriteRejectedError)


def test_repr_reflects_lifecycle(tmp_path) -> None:
    backend = LocalBackend(tmp_path / "notes.db")
    assert repr(backend) == "<LocalBackend uninitialized>"
