import pytest

from finch_service.context.sqlite_store import SqliteMemoryStore
from finch_service.core.errors import StoreError


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteMemoryStore(dsn=f"sqlite:///{tmp_path / 'nested' / 'memory.db'}")
    yield store
    store.engine.dispose()


@pytest.mark.anyio
async def test_history_roundtrip_in_order(sqlite_store):
    for i in range(5):
        entry = await sqlite_store.append_history("u1", "user" if i % 2 == 0 else "assistant", f"m{i}")
        assert entry.content == f"m{i}"
    await sqlite_store.append_history("u2", "user", "other")
    history = await sqlite_store.get_history("u1")
    assert [e.content for e in history] == [f"m{i}" for i in range(5)]
    assert [e.role for e in history][:2] == ["user", "assistant"]
    stamps = [e.timestamp for e in history]
    assert stamps == sorted(stamps)


@pytest.mark.anyio
async def test_clear_history_only_affects_one_user(sqlite_store):
    await sqlite_store.append_history("u1", "user", "a")
    await sqlite_store.append_history("u2", "user", "b")
    await sqlite_store.clear_history("u1")
    assert await sqlite_store.get_history("u1") == []
    assert len(await sqlite_store.get_history("u2")) == 1


@pytest.mark.anyio
async def test_preferences_overwrite_and_json_values(sqlite_store):
    await sqlite_store.set_preference("u1", "tone", "formal")
    await sqlite_store.set_preference("u1", "topics", ["ai", "music"])
    await sqlite_store.set_preference("u1", "tone", "casual")
    assert await sqlite_store.get_preferences("u1") == {"tone": "casual", "topics": ["ai", "music"]}
    assert await sqlite_store.get_preferences("nobody") == {}


@pytest.mark.anyio
async def test_list_user_ids(sqlite_store):
    await sqlite_store.append_history("b", "user", "x")
    await sqlite_store.append_history("b", "user", "y")
    await sqlite_store.set_preference("a", "tone", "warm")
    assert await sqlite_store.list_user_ids() == ["a", "b"]


@pytest.mark.anyio
async def test_persists_across_instances(tmp_path):
    dsn = f"sqlite:///{tmp_path / 'memory.db'}"
    first = SqliteMemoryStore(dsn=dsn)
    await first.append_history("u1", "user", "remember me")
    await first.close()
    second = SqliteMemoryStore(dsn=dsn)
    assert [e.content for e in await second.get_history("u1")] == ["remember me"]
    await second.close()


@pytest.mark.anyio
async def test_in_memory_dsn():
    store = SqliteMemoryStore()
    await store.append_history("u1", "user", "hi")
    assert len(await store.get_history("u1")) == 1


@pytest.mark.anyio
async def test_database_errors_become_store_errors(sqlite_store):
    with sqlite_store.engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE history")
    with pytest.raises(StoreError):
        await sqlite_store.get_history("u1")
