# task_service/repository.py
import math
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth_service.errors import DuplicateTitle
from auth_service.models import Task, TaskStatus, utcnow
from auth_service.security import Identity

from .policy import list_scope

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 5

# Fields a caller may set; the owner is fixed at creation.
MUTABLE_FIELDS = ("title", "description", "status")


def _positive_int(value, default):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def parse_page_params(page=None, limit=None) -> Tuple[int, int]:
    return _positive_int(page, DEFAULT_PAGE), _positive_int(limit, DEFAULT_PAGE_SIZE)


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size)


def _clean_fields(fields: dict) -> dict:
    values = {key: fields[key] for key in MUTABLE_FIELDS if key in fields}
    # title and status are required columns, so null means "leave unchanged"
    for key in ("title", "status"):
        if key in values and values[key] is None:
            del values[key]
    if "status" in values:
        values["status"] = TaskStatus(values["status"])
    return values


class TaskRepository:
    def __init__(self, db: Session, unique_titles: bool = False):
        self.db = db
        self.unique_titles = unique_titles

    def _title_taken(self, title: str) -> bool:
        return self.db.execute(
            select(Task.id).where(Task.title == title).limit(1)
        ).first() is not None

    def create(self, owner_id: str, fields: dict) -> Task:
        values = _clean_fields(fields)
        if self.unique_titles and self._title_taken(values.get("title")):
            raise DuplicateTitle()

        task = Task(created_by=owner_id, **values)
        self.db.add(task)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateTitle() from e
        self.db.refresh(task)
        return task

    def find_by_id(self, task_id: str) -> Optional[Task]:
        return self.db.get(Task, task_id)

    def list_by_owner_or_all(
        self, identity: Identity, page: int = DEFAULT_PAGE, page_size: int = DEFAULT_PAGE_SIZE
    ) -> Tuple[List[Task], int]:
        owner_id = list_scope(identity)
        query = select(Task)
        count_query = select(func.count()).select_from(Task)
        if owner_id is not None:
            query = query.where(Task.created_by == owner_id)
            count_query = count_query.where(Task.created_by == owner_id)

        items = (
            self.db.execute(
                query.order_by(Task.created_at.desc(), Task.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            .unique()
            .scalars()
            .all()
        )
        total = self.db.execute(count_query).scalar_one()
        return list(items), total

    def update(self, task_id: str, fields: dict) -> Optional[Task]:
        values = _clean_fields(fields)
        if values:
            result = self.db.execute(
                update(Task)
                .where(Task.id == task_id)
                .values(**values, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            if result.rowcount == 0:
                return None
        return self._reload(task_id)

    def set_status(self, task_id: str, status: TaskStatus) -> Optional[Task]:
        return self.update(task_id, {"status": status})

    def delete(self, task_id: str) -> bool:
        result = self.db.execute(delete(Task).where(Task.id == task_id))
        self.db.commit()
        return result.rowcount > 0

    def _reload(self, task_id: str) -> Optional[Task]:
        task = self.find_by_id(task_id)
        if task is not None:
            self.db.refresh(task)
        return task
