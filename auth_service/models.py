# auth_service/models.py
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from .database import Base  # Import Base from our database module


def utcnow():
    # Naive UTC, matching what SQLite hands back on read
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return uuid.uuid4().hex


class Role(str, enum.Enum):
    USER = "User"
    ADMIN = "Admin"


class TaskStatus(str, enum.Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# --- Database Model: User ---
class User(Base):
    __tablename__ = "users"
    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(
        Enum(Role, values_callable=_enum_values, name="user_role"),
        default=Role.USER,
        nullable=False,
    )
    password_reset_token = Column(String, nullable=True, index=True)
    password_reset_expires = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    tasks = relationship("Task", back_populates="owner")

    def clear_password_reset(self):
        self.password_reset_token = None
        self.password_reset_expires = None


# --- Database Model: Task ---
class Task(Base):
    __tablename__ = "tasks"
    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    status = Column(
        Enum(TaskStatus, values_callable=_enum_values, name="task_status"),
        default=TaskStatus.PENDING,
        nullable=False,
    )
    created_by = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    owner = relationship("User", back_populates="tasks", lazy="joined")
