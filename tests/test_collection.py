from __future__ import annotations

from pathlib import Path

import orjson
import pytest
from pydantic import BaseModel, Field

from docdantic import Database, Document, DocumentNotFoundError, DocumentValidationError


class User(BaseModel):
    name: str
    active: bool = True
    age: int = 0


def count_flushes(db: Database, monkeypatch: pytest.MonkeyPatch) -> list[int]:
    calls: list[int] = []
    original = db.flush

    async def counting() -> None:
        calls.append(1)
        await original()

    monkeypatch.setattr(db, "flush", counting)
    return calls


def read_tree(path: Path) -> dict:
    return orjson.loads(path.read_bytes())


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "store.json"


@pytest.fixture
def db(db_path: Path) -> Database:
    return Database(db_path)


@pytest.mark.asyncio
async def test_create_save_select_with_declarative_spec(db: Database) -> None:
    users = db.collect("users", {"name": str})

    document = users.create({"name": "a"})
    assert users.select(document.id) is None

    saved = await users.save(document)
    assert saved.name == "a"

    selected = users.select(document.id)
    assert selected is not None
    assert selected.id == document.id
    assert selected.data.model_dump() == {"name": "a"}


@pytest.mark.asyncio
async def test_create_rejects_invalid_payload(db: Database) -> None:
    users = db.collect("users", {"name": str})

    with pytest.raises(DocumentValidationError):
        users.create({"name": 1})
    assert len(users) == 0


@pytest.mark.asyncio
async def test_save_writes_whole_tree(db: Database, db_path: Path) -> None:
    users = db.collect("users", User)
    teams = db.collect("teams", {"title": str})

    user = users.create({"name": "a"})
    await users.save(user)
    team = teams.create({"title": "core"})
    await teams.save(team)

    assert read_tree(db_path) == {
        "users": {user.id: {"id": user.id, "data": {"name": "a", "active": True, "age": 0}}},
        "teams": {team.id: {"id": team.id, "data": {"title": "core"}}},
    }


@pytest.mark.asyncio
async def test_delete_flushes_only_when_removed(
    db: Database, monkeypatch: pytest.MonkeyPatch
) -> None:
    users = db.collect("users", User)
    document = users.create({"name": "a"})
    await users.save(document)

    flushes = count_flushes(db, monkeypatch)
    assert await users.delete(document) is True
    assert await users.delete(document) is False
    assert await users.remove(document.id) is False
    assert len(flushes) == 1
    assert users.select(document.id) is None


@pytest.mark.asyncio
async def test_remove_by_id(db: Database, db_path: Path) -> None:
    users = db.collect("users", User)
    document = users.create({"name": "a"})
    await users.save(document)

    assert await users.remove(document.id) is True
    assert read_tree(db_path) == {"users": {}}


@pytest.mark.asyncio
async def test_set_value_revalidates_and_saves(db: Database, db_path: Path) -> None:
    users = db.collect("users", User)
    document = users.create({"name": "a"})
    await users.save(document)

    await users.set_value(document, {"name": "b", "age": 3})
    assert users.select(document.id).data == User(name="b", age=3)
    assert read_tree(db_path)["users"][document.id]["data"]["name"] == "b"

    with pytest.raises(DocumentValidationError):
        await users.set_value(document, {"age": 4})
    assert users.select(document.id).data.name == "b"


@pytest.mark.asyncio
async def test_find_respects_insertion_order_and_limit(db: Database) -> None:
    users = db.collect("users", User)
    names = ["a", "b", "c"]
    for name in names:
        await users.save(users.create({"name": name, "active": name != "b"}))

    assert [doc.data.name for doc in users.find({})] == names
    assert [doc.data.name for doc in users.find({"active": True})] == ["a", "c"]
    assert len(users.find({}, 2)) == 2
    assert len(users.find({"active": False}, 5)) == 1
    assert users.find({}, 0) == []

    first = users.find_one({"active": True})
    assert first is not None and first.data.name == "a"
    assert users.find_one({"name": "zzz"}) is None


@pytest.mark.asyncio
async def test_remove_all_with_limit(db: Database, monkeypatch: pytest.MonkeyPatch) -> None:
    users = db.collect("users", User)
    for name in ("a", "b", "c", "d"):
        await users.save(users.create({"name": name, "active": name == "d"}))

    flushes = count_flushes(db, monkeypatch)
    assert await users.remove_all({"active": False}, 2) is True
    assert len(flushes) == 1
    assert [doc.data.name for doc in users] == ["c", "d"]

    assert await users.remove_all({"active": False}) is True
    assert [doc.data.name for doc in users] == ["d"]

    assert await users.remove_all({"name": "missing"}) is True
    assert len(flushes) == 3


@pytest.mark.asyncio
async def test_update_merges_by_default(db: Database) -> None:
    users = db.collect("users", User)
    document = users.create({"name": "a", "age": 3})
    await users.save(document)

    updated = await users.update({"name": "a"}, {"active": False})
    assert updated == User(name="a", active=False, age=3)
    assert users.select(document.id).data == updated


@pytest.mark.asyncio
async def test_update_rewrite_discards_prior_fields(db: Database) -> None:
    scores = db.collect("scores", dict[str, int])
    document = scores.create({"a": 1, "b": 2})
    await scores.save(document)

    await scores.update_id(document.id, {"c": 3})
    assert scores.select(document.id).data == {"a": 1, "b": 2, "c": 3}

    await scores.update_id(document.id, {"z": 9}, rewrite=True)
    assert scores.select(document.id).data == {"z": 9}


@pytest.mark.asyncio
async def test_update_scalar_payload_is_replaced(db: Database) -> None:
    counters = db.collect("counters", int)
    document = counters.create(1)
    await counters.save(document)

    assert await counters.update_id(document.id, 5) == 5
    assert await counters.update(5, "6") == 6
    assert counters.find(6)[0].id == document.id


@pytest.mark.asyncio
async def test_update_missing_raises_without_flush(
    db: Database, monkeypatch: pytest.MonkeyPatch
) -> None:
    users = db.collect("users", User)
    flushes = count_flushes(db, monkeypatch)

    with pytest.raises(DocumentNotFoundError):
        await users.update_id("missing", {"name": "x"})
    with pytest.raises(DocumentNotFoundError):
        await users.update({"name": "nobody"}, {"age": 1})
    assert flushes == []


@pytest.mark.asyncio
async def test_invalid_update_leaves_document_untouched(
    db: Database, monkeypatch: pytest.MonkeyPatch
) -> None:
    users = db.collect("users", User)
    document = users.create({"name": "a", "age": 3})
    await users.save(document)
    flushes = count_flushes(db, monkeypatch)

    with pytest.raises(DocumentValidationError):
        await users.update_id(document.id, {"age": "many"})
    assert users.select(document.id).data.age == 3
    assert flushes == []


@pytest.mark.asyncio
async def test_clear_empties_collection(db: Database, db_path: Path) -> None:
    users = db.collect("users", User)
    teams = db.collect("teams", {"title": str})
    for name in ("a", "b"):
        await users.save(users.create({"name": name}))
    await teams.save(teams.create({"title": "core"}))

    await users.clear()
    assert users.find({}) == []
    assert read_tree(db_path)["users"] == {}
    assert len(read_tree(db_path)["teams"]) == 1


@pytest.mark.asyncio
async def test_read_helpers(db: Database) -> None:
    users = db.collect("users", User)
    assert not users.exists()
    document = users.create({"name": "a"})
    await users.save(document)
    await users.save(users.create({"name": "b", "active": False}))

    assert users.count() == 2
    assert users.count({"active": False}) == 1
    assert users.exists({"name": "a"})
    assert not users.exists({"name": "c"})
    assert document.id in users
    assert users.ids()[0] == document.id


@pytest.mark.asyncio
async def test_handles_share_the_tree(db: Database) -> None:
    first = db.collect("users", User)
    second = db.collect("users", {"name": str})

    document = first.create({"name": "a"})
    await first.save(document)

    assert second.select(document.id) is not None
    assert await second.remove(document.id) is True
    assert first.select(document.id) is None


class Account(BaseModel):
    user_name: str = Field(alias="userName")
    active: bool = True


@pytest.mark.asyncio
async def test_update_merges_aliased_models(db: Database, db_path: Path) -> None:
    accounts = db.collect("accounts", Account)
    document = accounts.create({"userName": "a"})
    await accounts.save(document)

    updated = await accounts.update({"user_name": "a"}, {"active": False})
    assert updated.user_name == "a"
    assert updated.active is False

    await accounts.update_id(document.id, {"user_name": "b"})
    assert accounts.select(document.id).data.user_name == "b"
    assert accounts.find_one({"userName": "b"}) is not None
    assert read_tree(db_path)["accounts"][document.id]["data"] == {"userName": "b", "active": False}


@pytest.mark.asyncio
async def test_save_validates_hand_built_documents(db: Database) -> None:
    users = db.collect("users", {"name": str})

    with pytest.raises(DocumentValidationError):
        await users.save(Document(id="x", data={"name": 1}))
    assert users.select("x") is None

    await users.save(Document(id="y", data={"name": "a"}))
    assert users.select("y").data.name == "a"


@pytest.mark.asyncio
async def test_failed_write_keeps_memory_change(
    db: Database, monkeypatch: pytest.MonkeyPatch
) -> None:
    users = db.collect("users", User)
    document = users.create({"name": "a"})

    def failing_write(path: Path, payload: bytes) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(db.handler, "write", failing_write)
    with pytest.raises(OSError, match="disk full"):
        await users.save(document)
    assert users.select(document.id) is not None
