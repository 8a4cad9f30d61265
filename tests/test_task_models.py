from __future__ import annotations

import pytest
from pydantic import ValidationError

from sessiontodo.tasks.models import Task, TaskCreate, TaskUpdate


def test_task_defaults_and_wire_shape() -> None:
    t = Task(description="buy milk", session_id="abc")
    assert t.id
    assert t.completed is False
    assert t.model_dump(mode="json", by_alias=True) == {
        "id": t.id,
        "description": "buy milk",
        "completed": False,
        "sessionId": "abc",
    }


def test_task_ids_are_unique() -> None:
    ids = {Task(description="x", session_id="s").id for _ in range(50)}
    assert len(ids) == 50


def test_task_accepts_wire_name_on_input() -> None:
    t = Task.model_validate({"id": "t1", "description": "d", "sessionId": "s"})
    assert t.session_id == "s"


def test_task_rejects_empty_session() -> None:
    with pytest.raises(ValidationError):
        Task(description="d", session_id="")


@pytest.mark.parametrize(
    "payload,err",
    [
        ({"description": "", "sessionId": "s"}, "description"),
        ({"description": "   ", "sessionId": "s"}, "description"),
        ({"description": "d", "sessionId": ""}, "sessionId"),
        ({"description": "d"}, "sessionId"),
    ],
)
def test_create_validation(payload: dict, err: str) -> None:
    with pytest.raises(ValidationError) as ei:
        TaskCreate.model_validate(payload)
    assert err in str(ei.value)


def test_update_requires_a_field() -> None:
    with pytest.raises(ValidationError) as ei:
        TaskUpdate.model_validate({"sessionId": "s"})
    assert "no fields to update" in str(ei.value)


def test_update_partial_fields() -> None:
    u = TaskUpdate.model_validate({"sessionId": "s", "completed": True})
    assert u.completed is True
    assert u.description is None

    u = TaskUpdate.model_validate({"sessionId": "s", "description": " new "})
    assert u.completed is None
    assert u.description == "new"
