# task_service/policy.py
"""
Who may do what to a task.

    create          any authenticated identity
    list            Admin sees every task, everyone else only their own
    update, toggle  the task's owner or an Admin
    delete          Admin only
"""
import enum
from typing import Optional

from auth_service.errors import Forbidden, NotFound
from auth_service.security import Identity


class Action(str, enum.Enum):
    CREATE = "create"
    LIST = "list"
    UPDATE = "update"
    TOGGLE_STATUS = "toggle_status"
    DELETE = "delete"


DENIED_MESSAGES = {
    Action.UPDATE: "You don't have permission to update this task",
    Action.TOGGLE_STATUS: "You don't have permission to update this task",
    Action.DELETE: "Access denied",
}


def is_allowed(identity: Identity, action: Action, owner_id: Optional[str] = None) -> bool:
    if action in (Action.CREATE, Action.LIST):
        return True
    if identity.is_admin:
        return True
    if action == Action.DELETE:
        return False
    return owner_id is not None and owner_id == identity.id


def authorize(identity: Identity, action: Action, owner_id: Optional[str] = None) -> None:
    if not is_allowed(identity, action, owner_id):
        raise Forbidden(DENIED_MESSAGES.get(action))


def list_scope(identity: Identity) -> Optional[str]:
    """Owner id to filter listings by, or None for an unrestricted listing."""
    return None if identity.is_admin else identity.id


def load_authorized_task(repo, identity: Identity, task_id: str, action: Action):
    task = repo.find_by_id(task_id)
    if task is None:
        raise NotFound("Task not found")
    authorize(identity, action, task.created_by)
    return task
