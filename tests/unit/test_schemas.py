"""Unit tests for the request validation layer."""

import pytest
from pydantic import ValidationError

from schemas import (
    LoginRequest,
    ProjectCreate,
    ProjectUpdate,
    RegisterRequest,
    TaskCreate,
    TaskUpdate,
    UserUpdate,
)

VALID_ID = "65f1c0ffee0000000000a11c"


def task_payload(**overrides) -> dict:
    return {"title": "Write docs", "description": "API reference", "project": "apollo", **overrides}


class TestTaskCreate:
    def test_defaults(self) -> None:
        task = TaskCreate.model_validate(task_payload())

        assert task.status == "todo"
        assert task.priority == "medium"
        assert task.actual_hours == 0
        assert task.tags == []

    def test_reads_camel_case(self) -> None:
        task = TaskCreate.model_validate(
            task_payload(assignedTo=VALID_ID, estimatedHours=3.5, dueDate="2025-03-01T12:00:00Z")
        )

        assert task.assigned_to == VALID_ID
        assert task.estimated_hours == 3.5
        assert task.due_date.year == 2025

    def test_ignores_client_sent_creator(self) -> None:
        task = TaskCreate.model_validate(task_payload(createdBy=VALID_ID))

        assert "created_by" not in task.model_dump()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"status": "done"},
            {"priority": "critical"},
            {"estimatedHours": -1},
            {"actualHours": -0.5},
            {"assignedTo": "not-an-id"},
            {"title": "   "},
            {"description": ""},
        ],
    )
    def test_rejects_invalid_values(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            TaskCreate.model_validate(task_payload(**overrides))

    @pytest.mark.parametrize("missing", ["title", "description", "project"])
    def test_requires_fields(self, missing: str) -> None:
        payload = task_payload()
        del payload[missing]

        with pytest.raises(ValidationError):
            TaskCreate.model_validate(payload)

    def test_tags_are_a_set(self) -> None:
        task = TaskCreate.model_validate(task_payload(tags=["api", " docs ", "api"]))

        assert task.tags == ["api", "docs"]


class TestTaskUpdate:
    def test_only_supplied_fields_change(self) -> None:
        update = TaskUpdate.model_validate({"status": "review"})

        assert update.changes() == {"status": "review"}

    def test_uses_camel_case_keys(self) -> None:
        update = TaskUpdate.model_validate({"actualHours": 4, "assignedTo": VALID_ID})

        assert update.changes() == {"actualHours": 4.0, "assignedTo": VALID_ID}

    def test_optional_fields_may_be_cleared(self) -> None:
        update = TaskUpdate.model_validate({"dueDate": None, "assignedTo": None})

        assert update.changes() == {"dueDate": None, "assignedTo": None}

    @pytest.mark.parametrize("field", ["title", "status", "priority", "project"])
    def test_required_fields_cannot_be_nulled(self, field: str) -> None:
        with pytest.raises(ValidationError):
            TaskUpdate.model_validate({field: None})

    @pytest.mark.parametrize(
        "payload",
        [{"status": "archived"}, {"priority": "whenever"}, {"estimatedHours": -2}],
    )
    def test_same_constraints_as_create(self, payload: dict) -> None:
        with pytest.raises(ValidationError):
            TaskUpdate.model_validate(payload)


class TestProjectSchemas:
    def test_create_defaults(self) -> None:
        project = ProjectCreate.model_validate(
            {"name": "Apollo", "description": "Moonshot", "startDate": "2025-01-01T00:00:00Z"}
        )

        assert project.status == "planning"
        assert project.progress == 0
        assert project.team == []

    @pytest.mark.parametrize(
        "overrides",
        [
            {"progress": 101},
            {"progress": -1},
            {"budget": -10},
            {"status": "paused"},
            {"team": ["bogus"]},
            {"endDate": "2024-12-31T00:00:00Z"},
        ],
    )
    def test_create_rejects(self, overrides: dict) -> None:
        payload = {"name": "Apollo", "description": "Moonshot", "startDate": "2025-01-01T00:00:00Z", **overrides}

        with pytest.raises(ValidationError):
            ProjectCreate.model_validate(payload)

    def test_start_date_required(self) -> None:
        with pytest.raises(ValidationError):
            ProjectCreate.model_validate({"name": "Apollo", "description": "Moonshot"})

    def test_update_range_checked(self) -> None:
        assert ProjectUpdate.model_validate({"progress": 50}).changes() == {"progress": 50.0}
        with pytest.raises(ValidationError):
            ProjectUpdate.model_validate({"progress": 150})

    def test_update_dates_in_order(self) -> None:
        with pytest.raises(ValidationError):
            ProjectUpdate.model_validate({"startDate": "2025-06-01T00:00:00Z", "endDate": "2024-01-01T00:00:00Z"})
        assert set(ProjectUpdate.model_validate({"endDate": "2024-01-01T00:00:00Z"}).changes()) == {"endDate"}


class TestAccountSchemas:
    def test_register_normalises_input(self) -> None:
        data = RegisterRequest.model_validate(
            {
                "username": "  alice ",
                "email": "Alice@Acme.IO",
                "password": "secret123",
                "firstName": "Alice",
                "lastName": "Liddell",
            }
        )

        assert data.username == "alice"
        assert data.email == "alice@acme.io"

    def test_register_password_minimum(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest.model_validate(
                {"username": "a", "email": "a@acme.io", "password": "12345", "firstName": "A", "lastName": "B"}
            )

    def test_login_accepts_username_or_email(self) -> None:
        assert LoginRequest.model_validate({"username": "alice", "password": "x"}).identifier == "alice"
        assert LoginRequest.model_validate({"email": "a@acme.io", "password": "x"}).identifier == "a@acme.io"
        with pytest.raises(ValidationError):
            LoginRequest.model_validate({"password": "x"})

    def test_user_update_role_enum(self) -> None:
        assert UserUpdate.model_validate({"role": "manager"}).changes() == {"role": "manager"}
        with pytest.raises(ValidationError):
            UserUpdate.model_validate({"role": "superuser"})
