from datetime import UTC, datetime

from plan_tracker.storage.memory import InMemoryTaskStore
from plan_tracker.storage.models import TaskUpsert

SESSION_ID = "chat-42"
PRINCIPAL_ID = "user-7"


def test_status_only_upsert_keeps_other_fields(make_task) -> None:
    store = InMemoryTaskStore()
    first = make_task("a", title="Draft outline", dependencies=[])
    second = make_task("b", title="Write chapter", dependencies=["a"])
    store.upsert_tasks(
        SESSION_ID,
        PRINCIPAL_ID,
        [TaskUpsert.from_task(first), TaskUpsert.from_task(second)],
    )

    store.upsert_tasks(SESSION_ID, PRINCIPAL_ID, [TaskUpsert(id="b", status="in_progress")])

    tasks = store.get_tasks(SESSION_ID, PRINCIPAL_ID)
    assert [task.id for task in tasks] == ["a", "b"]
    assert tasks[0] == first
    assert tasks[1].status == "in_progress"
    assert tasks[1].title == "Write chapter"
    assert tasks[1].dependencies == ["a"]
    assert tasks[1].created_at == second.created_at


def test_upsert_inserts_new_rows_in_order(make_task) -> None:
    store = InMemoryTaskStore()
    store.upsert_tasks(SESSION_ID, PRINCIPAL_ID, [TaskUpsert.from_task(make_task("a"))])
    store.upsert_tasks(
        SESSION_ID,
        PRINCIPAL_ID,
        [TaskUpsert.from_task(make_task("b")), TaskUpsert.from_task(make_task("c"))],
    )

    assert [task.id for task in store.get_tasks(SESSION_ID, PRINCIPAL_ID)] == ["a", "b", "c"]


def test_completed_at_survives_status_change(make_task) -> None:
    store = InMemoryTaskStore()
    done_at = datetime(2026, 3, 1, tzinfo=UTC)
    store.upsert_tasks(SESSION_ID, PRINCIPAL_ID, [TaskUpsert.from_task(make_task("a"))])
    store.upsert_tasks(
        SESSION_ID,
        PRINCIPAL_ID,
        [TaskUpsert(id="a", status="completed", completed_at=done_at)],
    )

    store.upsert_tasks(SESSION_ID, PRINCIPAL_ID, [TaskUpsert(id="a", status="in_progress")])

    task = store.get_tasks(SESSION_ID, PRINCIPAL_ID)[0]
    assert task.status == "in_progress"
    assert task.completed_at == done_at


def test_plans_are_scoped_by_session_and_principal(make_task) -> None:
    store = InMemoryTaskStore()
    store.upsert_tasks(SESSION_ID, PRINCIPAL_ID, [TaskUpsert.from_task(make_task("a"))])

    assert store.get_tasks(SESSION_ID, "someone-else") == []
    assert store.get_tasks("other-chat", PRINCIPAL_ID) == []


def test_returned_tasks_are_copies(make_task) -> None:
    store = InMemoryTaskStore()
    store.upsert_tasks(SESSION_ID, PRINCIPAL_ID, [TaskUpsert.from_task(make_task("a"))])

    store.get_tasks(SESSION_ID, PRINCIPAL_ID)[0].dependencies.append("mutated")

    assert store.get_tasks(SESSION_ID, PRINCIPAL_ID)[0].dependencies == []
