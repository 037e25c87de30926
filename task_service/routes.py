# task_service/routes.py
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from auth_service.database import get_db
from auth_service.errors import NotFound
from auth_service.guard import require_identity
from auth_service.models import TaskStatus
from auth_service.security import Identity

from .policy import Action, authorize, load_authorized_task
from .repository import TaskRepository, parse_page_params, total_pages
from .schemas import TaskCreate, TaskOut, TaskUpdate

logger = structlog.get_logger(__name__)

tasks_router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


def get_task_repository(request: Request, db: Session = Depends(get_db)) -> TaskRepository:
    return TaskRepository(db, unique_titles=request.app.state.settings.task_unique_titles)


@tasks_router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    identity: Identity = Depends(require_identity),
    repo: TaskRepository = Depends(get_task_repository),
):
    authorize(identity, Action.CREATE)
    task = repo.create(identity.id, payload.model_dump())
    logger.info("task_created", task_id=task.id, user_id=identity.id)
    return {"status": "success", "data": {"task": TaskOut.from_task(task)}}


@tasks_router.get("")
def get_tasks(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    identity: Identity = Depends(require_identity),
    repo: TaskRepository = Depends(get_task_repository),
):
    page_number, page_size = parse_page_params(page, limit)
    authorize(identity, Action.LIST)
    tasks, total = repo.list_by_owner_or_all(identity, page_number, page_size)
    return {
        "status": "success",
        "data": {
            "tasks": [TaskOut.from_task(task) for task in tasks],
            "total": total,
            "currentPage": page_number,
            "totalPages": total_pages(total, page_size),
        },
    }


@tasks_router.put("/{task_id}")
def update_task(
    task_id: str,
    payload: TaskUpdate,
    identity: Identity = Depends(require_identity),
    repo: TaskRepository = Depends(get_task_repository),
):
    load_authorized_task(repo, identity, task_id, Action.UPDATE)
    task = repo.update(task_id, payload.model_dump(exclude_unset=True))
    if task is None:
        raise NotFound("Task not found")
    return {"status": "success", "data": {"task": TaskOut.from_task(task)}}


@tasks_router.patch("/{task_id}/toggle-status")
def toggle_task_status(
    task_id: str,
    identity: Identity = Depends(require_identity),
    repo: TaskRepository = Depends(get_task_repository),
):
    task = load_authorized_task(repo, identity, task_id, Action.TOGGLE_STATUS)
    flipped = (
        TaskStatus.COMPLETED if task.status == TaskStatus.PENDING else TaskStatus.PENDING
    )
    task = repo.set_status(task_id, flipped)
    if task is None:
        raise NotFound("Task not found")
    return {
        "status": "success",
        "message": "Task status updated successfully",
        "data": {"task": TaskOut.from_task(task)},
    }


@tasks_router.delete("/{task_id}")
def delete_task(
    task_id: str,
    identity: Identity = Depends(require_identity),
    repo: TaskRepository = Depends(get_task_repository),
):
    load_authorized_task(repo, identity, task_id, Action.DELETE)
    if not repo.delete(task_id):
        raise NotFound("Task not found")
    logger.info("task_deleted", task_id=task_id, user_id=identity.id)
    return {"status": "success", "message": "Task deleted"}
