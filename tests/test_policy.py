import pytest

from auth_service.errors import Forbidden, NotFound
from auth_service.models import Role
from auth_service.security import Identity
from task_service.policy import Action, authorize, is_allowed, list_scope, load_authorized_task

OWNER = Identity(id="user-a", role=Role.USER)
STRANGER = Identity(id="user-b", role=Role.USER)
ADMIN = Identity(id="admin-1", role=Role.ADMIN)


@pytest.mark.parametrize(
    "identity, action, allowed",
    [
        (OWNER, Action.UPDATE, True),
        (OWNER, Action.TOGGLE_STATUS, True),
        (OWNER, Action.DELETE, False),
        (STRANGER, Action.UPDATE, False),
        (STRANGER, Action.TOGGLE_STATUS, False),
        (STRANGER, Action.DELETE, False),
        (ADMIN, Action.UPDATE, True),
        (ADMIN, Action.TOGGLE_STATUS, True),
        (ADMIN, Action.DELETE, True),
    ],
)
def test_task_actions_on_owned_task(identity, action, allowed):
    assert is_allowed(identity, action, owner_id="user-a") is allowed


@pytest.mark.parametrize("identity", [OWNER, STRANGER, ADMIN])
def test_anyone_may_create_and_list(identity):
    assert is_allowed(identity, Action.CREATE)
    assert is_allowed(identity, Action.LIST)


def test_authorize_raises_forbidden_with_action_message():
    with pytest.raises(Forbidden) as exc:
        authorize(OWNER, Action.DELETE, owner_id="user-a")
    assert exc.value.message == "Access denied"
    assert exc.value.status_code == 403

    with pytest.raises(Forbidden) as exc:
        authorize(STRANGER, Action.UPDATE, owner_id="user-a")
    assert exc.value.message == "You don't have permission to update this task"


def test_list_scope():
    assert list_scope(ADMIN) is None
    assert list_scope(OWNER) == "user-a"


class _Task:
    def __init__(self, created_by):
        self.created_by = created_by


class FakeRepo:
    def __init__(self, tasks):
        self.tasks = tasks

    def find_by_id(self, task_id):
        return self.tasks.get(task_id)


def test_missing_task_is_not_found_before_authorization():
    repo = FakeRepo({})
    for identity in (OWNER, STRANGER, ADMIN):
        with pytest.raises(NotFound):
            load_authorized_task(repo, identity, "nope", Action.DELETE)


def test_load_authorized_task_checks_owner():
    task = _Task(created_by="user-a")
    repo = FakeRepo({"t1": task})

    assert load_authorized_task(repo, OWNER, "t1", Action.UPDATE) is task
    with pytest.raises(Forbidden):
        load_authorized_task(repo, STRANGER, "t1", Action.TOGGLE_STATUS)
