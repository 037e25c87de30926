# task_service/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth_service.models import TaskStatus


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING


class TaskUpdate(BaseModel):
    # Unknown keys (including any attempt to reassign createdBy) are dropped
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )


class TaskOwner(_CamelModel):
    id: str
    name: Optional[str] = None
    email: str


class TaskOut(_CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus
    created_by: TaskOwner
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task) -> dict:
        data = cls.model_validate(
            {
                "id": task.id,
                "title": task.title,
                "description": task.description,
                "status": task.status,
                "created_by": task.owner,
                "created_at": task.created_at,
                "updated_at": task.updated_at,
            },
            from_attributes=True,
        )
        return data.model_dump(by_alias=True, mode="json")
