"""Unit tests for store helpers."""

from bson import ObjectId
from pymongo.database import Database

from database import create_document, ensure_indexes, get_documents, parse_object_id, to_str_id
from schemas import User


def test_to_str_id_converts_nested_ids_and_drops_password() -> None:
    user_id, task_id = ObjectId(), ObjectId()
    doc = {
        "_id": task_id,
        "createdBy": {"_id": user_id, "username": "alice", "password": "$2b$12$x"},
        "team": [user_id],
        "password": "$2b$12$y",
    }

    assert to_str_id(doc) == {
        "_id": str(task_id),
        "createdBy": {"_id": str(user_id), "username": "alice"},
        "team": [str(user_id)],
    }


def test_parse_object_id() -> None:
    oid = ObjectId()

    assert parse_object_id(str(oid)) == oid
    assert parse_object_id(oid) is oid
    assert parse_object_id("short") is None
    assert parse_object_id("twelve-bytes") is None
    assert parse_object_id(None) is None


def test_create_document_stamps_times(db: Database) -> None:
    user = User(username="alice", email="a@acme.io", password="hash", first_name="A", last_name="B")

    user_id = create_document(db, "users", user)

    stored = db["users"].find_one({"_id": ObjectId(user_id)})
    assert stored["firstName"] == "A"
    assert stored["isActive"] is True
    assert stored["createdAt"] is not None
    assert stored["updatedAt"] is not None


def test_get_documents_sort_skip_limit(db: Database) -> None:
    for n in range(5):
        create_document(db, "things", {"n": n})

    docs = get_documents(db, "things", {"n": {"$gte": 1}}, projection={"n": 1}, sort=[("n", -1)], skip=1, limit=2)

    assert [d["n"] for d in docs] == [3, 2]


def test_ensure_indexes_enforces_unique_usernames(db: Database) -> None:
    ensure_indexes(db)

    info = db["users"].index_information()
    assert info["username_1"]["unique"] is True
    assert info["email_1"]["unique"] is True
