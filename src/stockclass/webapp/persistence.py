"""Persistence and SQLModel definitions for the StockClass teacher console."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel, create_engine

from ..models import StudentAccount, TeacherContext
from .config import SQLITE_FILE_NAME

# ---------------------------------------------------------------------------
# Database models
# ---------------------------------------------------------------------------
engine = create_engine(
    f"sqlite:///{SQLITE_FILE_NAME}",
    echo=False,
    connect_args={"check_same_thread": False},
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StudentRecord(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    account: str = Field(index=True, unique=True)
    name: str
    pw: str
    school: str = Field(index=True)
    teacher_display_name: str = ""
    teacher_email: str = Field(index=True)
    # Written by the student game client: a JSON string or a JSON object.
    data: Optional[Any] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def teacher_info(self) -> TeacherContext:
        return TeacherContext(
            school=self.school,
            display_name=self.teacher_display_name,
            email=self.teacher_email,
        )

    def to_account(self) -> StudentAccount:
        return StudentAccount.from_payload(
            self.account, self.name, self.pw, self.data, record_id=self.id
        )


class SchoolInfo(SQLModel, table=True):
    __tablename__ = "schoolinfo"

    teacher_email: str = Field(primary_key=True)
    last_input_school: str
    updated_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Database initialisation
# ---------------------------------------------------------------------------
def create_db_and_tables(bind=None) -> None:
    SQLModel.metadata.create_all(bind or engine)


create_db_and_tables()


__all__ = [
    "SchoolInfo",
    "StudentRecord",
    "create_db_and_tables",
    "engine",
]
