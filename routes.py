"""
HTTP routes. Routers are built at startup from an explicit ``Services``
bundle, so every handler works against the instances it was given.
"""
from dataclasses import dataclass
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query

from analytics import AnalyticsAggregator
from config import Settings
from errors import Forbidden, InvalidCredentials, InvalidToken, NotFound
from logging_setup import get_logger
from repositories import ProjectRepository, TaskRepository, UserRepository, account_summary
from schemas import (
    AttachmentIn,
    CommentCreate,
    LoginRequest,
    ObjectIdStr,
    ProjectCreate,
    ProjectStatus,
    ProjectUpdate,
    RefreshRequest,
    RegisterRequest,
    TaskCreate,
    TaskPriority,
    TaskStatus,
    TaskUpdate,
    UserRole,
    UserUpdate,
    utcnow,
)
from security import REFRESH, BearerAuth, Identity, PasswordHasher, TokenService, require_roles

logger = get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    hasher: PasswordHasher
    tokens: TokenService
    auth: BearerAuth
    users: UserRepository
    tasks: TaskRepository
    projects: ProjectRepository
    analytics: AnalyticsAggregator


def health_router(s: Services) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["health"])

    @router.get("/health")
    def health():
        return {
            "status": "OK",
            "timestamp": utcnow().isoformat(),
            "service": s.settings.service_name,
            "version": s.settings.service_version,
        }

    return router


def auth_router(s: Services) -> APIRouter:
    router = APIRouter(prefix="/api/auth", tags=["auth"])

    @router.post("/register", status_code=201)
    def register(data: RegisterRequest):
        user = s.users.register(data, s.hasher.hash(data.password))
        identity = Identity(user_id=str(user["_id"]), username=user["username"])
        logger.info("user_registered", user_id=identity.user_id, username=identity.username)
        return {
            "message": "User created successfully",
            **s.tokens.issue_pair(identity),
            "user": account_summary(user),
        }

    @router.post("/login")
    def login(data: LoginRequest):
        user = s.users.find_by_login(data.identifier)
        if not user or not user.get("isActive", True):
            raise InvalidCredentials()
        if not s.hasher.verify(data.password, user.get("password", "")):
            logger.info("login_failed", user_id=str(user["_id"]))
            raise InvalidCredentials()
        user = s.users.touch_login(user["_id"])
        identity = Identity(user_id=user["_id"], username=user["username"])
        logger.info("login_succeeded", user_id=identity.user_id)
        return {
            "message": "Login successful",
            **s.tokens.issue_pair(identity),
            "user": account_summary(user),
        }

    @router.post("/refresh")
    def refresh(data: RefreshRequest):
        claims = s.tokens.verify(data.refresh_token, expected_type=REFRESH)
        try:
            user = s.users.get_by_id(claims.user_id)
        except NotFound:
            raise InvalidToken() from None
        if not user.get("isActive", True):
            raise InvalidToken()
        return s.tokens.issue_pair(Identity(user_id=user["_id"], username=user["username"]))

    return router


def user_router(s: Services) -> APIRouter:
    router = APIRouter(prefix="/api/users", tags=["users"])
    admin_only = require_roles(s.auth, s.users, UserRole.ADMIN.value)

    @router.get("/profile")
    def profile(identity: Identity = Depends(s.auth)):
        return s.users.get_by_id(identity.user_id)

    @router.get("")
    def list_users(identity: Identity = Depends(s.auth)):
        return s.users.list_active()

    @router.patch("/{user_id}")
    def update_user(user_id: str, payload: UserUpdate, identity: Identity = Depends(admin_only)):
        user = s.users.update(user_id, payload)
        logger.info("user_updated", target=user_id, fields=sorted(payload.changes()))
        return user

    @router.delete("/{user_id}")
    def delete_user(user_id: str, identity: Identity = Depends(admin_only)):
        # referencing tasks and projects are left as they are
        s.users.delete(user_id)
        logger.info("user_deleted", target=user_id)
        return {"message": "User deleted successfully"}

    return router


def task_router(s: Services) -> APIRouter:
    router = APIRouter(prefix="/api/tasks", tags=["tasks"])

    @router.get("")
    def list_tasks(
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        project: Optional[str] = None,
        assigned_to: Annotated[Optional[ObjectIdStr], Query(alias="assignedTo")] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        identity: Identity = Depends(s.auth),
    ):
        filter_dict = s.tasks.build_filter(
            status=status.value if status else None,
            priority=priority.value if priority else None,
            project=project,
            assigned_to=assigned_to,
        )
        result = s.tasks.list(filter_dict, page=page, page_size=limit)
        return {
            "tasks": result.items,
            "totalPages": result.total_pages,
            "currentPage": result.page,
            "total": result.total,
        }

    @router.get("/{task_id}")
    def get_task(task_id: str, identity: Identity = Depends(s.auth)):
        return s.tasks.get_by_id(task_id)

    @router.post("", status_code=201)
    def create_task(payload: TaskCreate, identity: Identity = Depends(s.auth)):
        task = s.tasks.create(payload, identity.user_id)
        logger.info("task_created", task_id=task["_id"])
        return task

    @router.put("/{task_id}")
    def update_task(task_id: str, payload: TaskUpdate, identity: Identity = Depends(s.auth)):
        return s.tasks.update(task_id, payload)

    @router.delete("/{task_id}")
    def delete_task(task_id: str, identity: Identity = Depends(s.auth)):
        s.tasks.delete(task_id)
        logger.info("task_deleted", task_id=task_id)
        return {"message": "Task deleted successfully"}

    @router.post("/{task_id}/comments", status_code=201)
    def add_comment(task_id: str, payload: CommentCreate, identity: Identity = Depends(s.auth)):
        return s.tasks.add_comment(task_id, payload.text, identity.user_id)

    @router.post("/{task_id}/attachments", status_code=201)
    def add_attachment(task_id: str, payload: AttachmentIn, identity: Identity = Depends(s.auth)):
        return s.tasks.add_attachment(task_id, payload.filename, payload.url)

    return router


def project_router(s: Services) -> APIRouter:
    router = APIRouter(prefix="/api/projects", tags=["projects"])

    @router.get("")
    def list_projects(status: Optional[ProjectStatus] = None, identity: Identity = Depends(s.auth)):
        filter_dict = {"status": status.value} if status else {}
        return s.projects.list(filter_dict).items

    @router.get("/{project_id}")
    def get_project(project_id: str, identity: Identity = Depends(s.auth)):
        return s.projects.get_by_id(project_id)

    @router.post("", status_code=201)
    def create_project(payload: ProjectCreate, identity: Identity = Depends(s.auth)):
        project = s.projects.create(payload, identity.user_id)
        logger.info("project_created", project_id=project["_id"])
        return project

    @router.put("/{project_id}")
    def update_project(project_id: str, payload: ProjectUpdate, identity: Identity = Depends(s.auth)):
        return s.projects.update(project_id, payload)

    @router.delete("/{project_id}")
    def delete_project(project_id: str, identity: Identity = Depends(s.auth)):
        owner = s.projects.owner_id(project_id)
        if owner != identity.user_id and s.users.role_of(identity.user_id) not in (
            UserRole.ADMIN.value,
            UserRole.MANAGER.value,
        ):
            raise Forbidden()
        s.projects.delete(project_id)
        logger.info("project_deleted", project_id=project_id)
        return {"message": "Project deleted successfully"}

    return router


def analytics_router(s: Services) -> APIRouter:
    router = APIRouter(prefix="/api/analytics", tags=["analytics"])

    @router.get("/dashboard")
    async def dashboard(identity: Identity = Depends(s.auth)):
        return await s.analytics.dashboard()

    return router


def build_routers(s: Services) -> List[APIRouter]:
    return [
        health_router(s),
        auth_router(s),
        user_router(s),
        task_router(s),
        project_router(s),
        analytics_router(s),
    ]
