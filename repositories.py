"""
Collection-level data access for users, tasks and projects.

Every read that leaves a repository goes through ``present``: references to
users are expanded to display fields and the result is made JSON-safe with
sensitive fields removed.
"""
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, parse_object_id, to_str_id
from errors import DuplicateEntry, NotFound, ValidationFailed
from schemas import (
    Attachment,
    Comment,
    Project,
    ProjectCreate,
    ProjectUpdate,
    RegisterRequest,
    Task,
    TaskCreate,
    TaskUpdate,
    User,
    UserUpdate,
    as_utc,
    utcnow,
)

USER_DISPLAY_FIELDS = {"firstName": 1, "lastName": 1, "username": 1}
USER_NAME_FIELDS = {"firstName": 1, "lastName": 1}
NEWEST_FIRST = [("createdAt", DESCENDING), ("_id", DESCENDING)]


@dataclass
class Page:
    items: List[dict]
    total: int
    page: int
    page_size: Optional[int]

    @property
    def total_pages(self) -> int:
        if not self.page_size:
            return 1 if self.total else 0
        return math.ceil(self.total / self.page_size)


def resolve_users(db: Database, ids: Iterable[ObjectId], fields: dict) -> dict:
    """Fetch display projections for a batch of user ids in one query."""
    wanted = list({oid for oid in ids if isinstance(oid, ObjectId)})
    if not wanted:
        return {}
    return {u["_id"]: u for u in db["users"].find({"_id": {"$in": wanted}}, fields)}


class Repository:
    collection_name = ""
    resource = ""

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    def _oid(self, id_) -> ObjectId:
        oid = parse_object_id(id_)
        if oid is None:
            raise NotFound(self.resource)
        return oid

    def _find_raw(self, id_) -> dict:
        doc = self.collection.find_one({"_id": self._oid(id_)})
        if doc is None:
            raise NotFound(self.resource)
        return doc

    def expand(self, docs: List[dict]) -> List[dict]:
        return docs

    def present(self, docs: List[dict]) -> List[dict]:
        return [to_str_id(doc) for doc in self.expand(docs)]

    def list(self, filter_dict: Optional[dict] = None, page: int = 1, page_size: Optional[int] = None) -> Page:
        filter_dict = filter_dict or {}
        skip = (page - 1) * page_size if page_size else 0
        docs = get_documents(
            self.db,
            self.collection_name,
            filter_dict,
            sort=NEWEST_FIRST,
            skip=skip,
            limit=page_size,
        )
        total = self.collection.count_documents(filter_dict)
        return Page(items=self.present(docs), total=total, page=page, page_size=page_size)

    def get_by_id(self, id_) -> dict:
        return self.present([self._find_raw(id_)])[0]

    def count(self, filter_dict: Optional[dict] = None) -> int:
        return self.collection.count_documents(filter_dict or {})

    def _apply(self, id_, update: dict) -> dict:
        update.setdefault("$set", {})["updatedAt"] = utcnow()
        doc = self.collection.find_one_and_update(
            {"_id": self._oid(id_)},
            update,
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFound(self.resource)
        return self.present([doc])[0]

    def delete(self, id_) -> None:
        result = self.collection.delete_one({"_id": self._oid(id_)})
        if result.deleted_count == 0:
            raise NotFound(self.resource)


class UserRepository(Repository):
    collection_name = "users"
    resource = "User"

    def _find_raw(self, id_) -> dict:
        doc = self.collection.find_one({"_id": self._oid(id_)}, {"password": 0})
        if doc is None:
            raise NotFound(self.resource)
        return doc

    def register(self, payload: RegisterRequest, password_hash: str) -> dict:
        """Insert a new user. Raises DuplicateEntry naming the clashing field;
        the unique indexes still catch races between the check and insert."""
        existing = self.collection.find_one(
            {"$or": [{"username": payload.username}, {"email": payload.email}]},
            {"username": 1, "email": 1},
        )
        if existing:
            field = "username" if existing.get("username") == payload.username else "email"
            raise DuplicateEntry(field)
        user = User(
            username=payload.username,
            email=payload.email,
            password=password_hash,
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
        user_id = create_document(self.db, self.collection_name, user)
        return self.collection.find_one({"_id": ObjectId(user_id)})

    def find_by_login(self, identifier: str) -> Optional[dict]:
        """Raw record (hash included) for a username or email. For credential
        checks only; never return it to a client."""
        return self.collection.find_one(
            {"$or": [{"username": identifier}, {"email": identifier.lower()}]}
        )

    def touch_login(self, id_) -> dict:
        return self._apply(id_, {"$set": {"lastLogin": utcnow()}})

    def list_active(self) -> List[dict]:
        docs = get_documents(
            self.db,
            self.collection_name,
            {"isActive": True},
            projection={"password": 0},
            sort=[("firstName", ASCENDING)],
        )
        return self.present(docs)

    def update(self, id_, payload: UserUpdate) -> dict:
        return self._apply(id_, {"$set": payload.changes()})

    def role_of(self, id_) -> Optional[str]:
        oid = parse_object_id(id_)
        doc = self.collection.find_one({"_id": oid}, {"role": 1}) if oid else None
        return doc.get("role") if doc else None


def account_summary(user: dict) -> dict:
    """The user fields echoed by register and login."""
    summary = {
        "id": str(user["_id"]),
        "username": user["username"],
        "email": user["email"],
        "firstName": user["firstName"],
        "lastName": user["lastName"],
        "role": user.get("role"),
    }
    if user.get("lastLogin"):
        summary["lastLogin"] = user["lastLogin"]
    return summary


class TaskRepository(Repository):
    collection_name = "tasks"
    resource = "Task"

    @staticmethod
    def build_filter(
        status: Optional[str] = None,
        priority: Optional[str] = None,
        project: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> dict:
        filter_dict = {}
        if status:
            filter_dict["status"] = status
        if priority:
            filter_dict["priority"] = priority
        if project:
            filter_dict["project"] = project
        if assigned_to:
            filter_dict["assignedTo"] = parse_object_id(assigned_to) or assigned_to
        return filter_dict

    def expand(self, docs: List[dict], fields: dict = USER_DISPLAY_FIELDS) -> List[dict]:
        ids = []
        for task in docs:
            ids.extend([task.get("assignedTo"), task.get("createdBy")])
            ids.extend(c.get("user") for c in task.get("comments", []))
        users = resolve_users(self.db, ids, fields)
        for task in docs:
            task["assignedTo"] = users.get(task.get("assignedTo"))
            task["createdBy"] = users.get(task.get("createdBy"))
            for comment in task.get("comments", []):
                comment["user"] = users.get(comment.get("user"))
        return docs

    def create(self, payload: TaskCreate, actor_id: str) -> dict:
        # creator comes from the authenticated caller only
        task = Task(
            **payload.model_dump(exclude={"assigned_to", "attachments"}),
            assigned_to=parse_object_id(payload.assigned_to),
            created_by=ObjectId(actor_id),
            attachments=[Attachment(**a.model_dump()) for a in payload.attachments],
        )
        task_id = create_document(self.db, self.collection_name, task)
        return self.get_by_id(task_id)

    def update(self, id_, payload: TaskUpdate) -> dict:
        changes = payload.changes()
        if "assignedTo" in changes:
            changes["assignedTo"] = parse_object_id(changes["assignedTo"])
        return self._apply(id_, {"$set": changes})

    def add_comment(self, id_, text: str, author_id: str) -> dict:
        comment = Comment(user=ObjectId(author_id), text=text)
        return self._apply(id_, {"$push": {"comments": comment.model_dump(by_alias=True)}})

    def add_attachment(self, id_, filename: str, url: str) -> dict:
        attachment = Attachment(filename=filename, url=url)
        return self._apply(id_, {"$push": {"attachments": attachment.model_dump(by_alias=True)}})

    def count_by(self, field: str) -> List[dict]:
        pipeline = [
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
            {"$sort": {"_id": 1}},
        ]
        return list(self.collection.aggregate(pipeline))

    def recent(self, limit: int = 5) -> List[dict]:
        docs = get_documents(self.db, self.collection_name, sort=NEWEST_FIRST, limit=limit)
        return [to_str_id(doc) for doc in self.expand(docs, USER_NAME_FIELDS)]


class ProjectRepository(Repository):
    collection_name = "projects"
    resource = "Project"

    def expand(self, docs: List[dict]) -> List[dict]:
        ids = []
        for project in docs:
            ids.append(project.get("owner"))
            ids.extend(project.get("team", []))
        users = resolve_users(self.db, ids, USER_DISPLAY_FIELDS)
        for project in docs:
            project["owner"] = users.get(project.get("owner"))
            project["team"] = [users[m] for m in project.get("team", []) if m in users]
        return docs

    def create(self, payload: ProjectCreate, actor_id: str) -> dict:
        # owner comes from the authenticated caller only
        project = Project(
            **payload.model_dump(exclude={"team"}),
            owner=ObjectId(actor_id),
            team=[ObjectId(member) for member in payload.team],
        )
        project_id = create_document(self.db, self.collection_name, project)
        return self.get_by_id(project_id)

    def update(self, id_, payload: ProjectUpdate) -> dict:
        changes = payload.changes()
        if ("startDate" in changes) != ("endDate" in changes):
            self._check_dates(id_, changes)
        if "team" in changes:
            changes["team"] = [ObjectId(member) for member in changes["team"]]
        return self._apply(id_, {"$set": changes})

    def _check_dates(self, id_, changes: dict) -> None:
        """Keep endDate on or after startDate when only one of them changes."""
        stored = self._find_raw(id_)
        start = changes.get("startDate", stored.get("startDate"))
        end = changes.get("endDate", stored.get("endDate"))
        if start and end and as_utc(end) < as_utc(start):
            raise ValidationFailed([{"field": "endDate", "message": "endDate must not be before startDate"}])

    def owner_id(self, id_) -> Optional[str]:
        owner = self._find_raw(id_).get("owner")
        return str(owner) if owner else None
