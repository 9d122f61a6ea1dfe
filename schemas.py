"""
Database Schemas for the Task Management API

The document models map to MongoDB collections (User -> "users",
Task -> "tasks", Project -> "projects"). Field names are snake_case in Python
and camelCase on the wire and in the store.

The request models are the validation layer: they check structure, enums and
ranges without touching the database, so create and update share the same
rules.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, ClassVar, List, Optional

from bson import ObjectId
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_object_id(value: str) -> str:
    if len(value) != 24 or not ObjectId.is_valid(value):
        raise ValueError("must be a valid id")
    return value


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


ObjectIdStr = Annotated[str, AfterValidator(_check_object_id)]
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
Trimmed = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Text = Annotated[str, StringConstraints(min_length=1)]
Hours = Annotated[float, Field(ge=0)]
Budget = Annotated[float, Field(ge=0)]
Progress = Annotated[float, Field(ge=0, le=100)]


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    MANAGER = "manager"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        extra="ignore",
    )


class DocumentModel(ApiModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class PartialUpdate(ApiModel):
    """Base for update payloads: only supplied fields count, and fields that
    are required on create may not be cleared with null."""

    non_nullable: ClassVar[tuple] = ()

    @model_validator(mode="after")
    def reject_nulls(self):
        for name in self.model_fields_set:
            if name in self.non_nullable and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


def _unique(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


# Auth/User
class User(DocumentModel):
    username: str
    email: str
    password: str = Field(..., description="bcrypt hash, never the plaintext")
    first_name: str
    last_name: str
    role: UserRole = UserRole.USER
    avatar: str = ""
    is_active: bool = True
    last_login: Optional[datetime] = None


class RegisterRequest(ApiModel):
    username: Trimmed
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: Trimmed
    last_name: Trimmed

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class LoginRequest(ApiModel):
    username: Optional[Trimmed] = None
    email: Optional[Trimmed] = None
    password: Text

    @model_validator(mode="after")
    def needs_identifier(self):
        if not (self.username or self.email):
            raise ValueError("username or email is required")
        return self

    @property
    def identifier(self) -> str:
        return self.username or self.email


class RefreshRequest(ApiModel):
    refresh_token: Text


class UserUpdate(PartialUpdate):
    non_nullable: ClassVar[tuple] = ("first_name", "last_name", "role", "is_active")

    first_name: Optional[Trimmed] = None
    last_name: Optional[Trimmed] = None
    avatar: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


# Tasks
class Attachment(DocumentModel):
    filename: str
    url: str
    uploaded_at: datetime = Field(default_factory=utcnow)


class Comment(DocumentModel):
    user: ObjectId
    text: str
    created_at: datetime = Field(default_factory=utcnow)


class Task(DocumentModel):
    title: str
    description: str
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: Optional[ObjectId] = None
    created_by: ObjectId
    project: str
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    estimated_hours: Optional[Hours] = None
    actual_hours: Hours = 0
    attachments: List[Attachment] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)


class AttachmentIn(ApiModel):
    filename: Trimmed
    url: Trimmed


class CommentCreate(ApiModel):
    text: Trimmed


class TaskCreate(ApiModel):
    title: Trimmed
    description: Text
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: Optional[ObjectIdStr] = None
    project: Trimmed
    tags: List[Trimmed] = Field(default_factory=list)
    due_date: Optional[UtcDatetime] = None
    estimated_hours: Optional[Hours] = None
    actual_hours: Hours = 0
    attachments: List[AttachmentIn] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, value: List[str]) -> List[str]:
        return _unique(value)


class TaskUpdate(PartialUpdate):
    non_nullable: ClassVar[tuple] = ("title", "description", "status", "priority", "project", "tags", "actual_hours")

    title: Optional[Trimmed] = None
    description: Optional[Text] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[ObjectIdStr] = None
    project: Optional[Trimmed] = None
    tags: Optional[List[Trimmed]] = None
    due_date: Optional[UtcDatetime] = None
    estimated_hours: Optional[Hours] = None
    actual_hours: Optional[Hours] = None

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _unique(value) if value is not None else value


# Projects
class Project(DocumentModel):
    name: str
    description: str
    status: ProjectStatus = ProjectStatus.PLANNING
    owner: ObjectId
    team: List[ObjectId] = Field(default_factory=list)
    start_date: datetime
    end_date: Optional[datetime] = None
    budget: Optional[Budget] = None
    progress: Progress = 0


class ProjectCreate(ApiModel):
    name: Trimmed
    description: Text
    status: ProjectStatus = ProjectStatus.PLANNING
    team: List[ObjectIdStr] = Field(default_factory=list)
    start_date: UtcDatetime
    end_date: Optional[UtcDatetime] = None
    budget: Optional[Budget] = None
    progress: Progress = 0

    @field_validator("team")
    @classmethod
    def unique_team(cls, value: List[str]) -> List[str]:
        return _unique(value)

    @model_validator(mode="after")
    def dates_in_order(self):
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class ProjectUpdate(PartialUpdate):
    non_nullable: ClassVar[tuple] = ("name", "description", "status", "team", "start_date", "progress")

    name: Optional[Trimmed] = None
    description: Optional[Text] = None
    status: Optional[ProjectStatus] = None
    team: Optional[List[ObjectIdStr]] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    budget: Optional[Budget] = None
    progress: Optional[Progress] = None

    @field_validator("team")
    @classmethod
    def unique_team(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _unique(value) if value is not None else value

    @model_validator(mode="after")
    def dates_in_order(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self
