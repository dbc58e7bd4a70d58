"""Teacher-scoped roster operations against the student store.

Every query takes an explicit :class:`~stockclass.models.TeacherContext`;
a teacher only ever sees, changes, or deletes records whose school, display
name and email all match it.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..exceptions import HandleExhaustedError, InvalidPasswordError, StudentNotFoundError
from ..handles import DEFAULT_MAX_ATTEMPTS, RandomSource, generate_password, generate_unique_handle
from ..models import CreationResult, StudentAccount, TeacherContext
from ..names import parse_name_batch
from ..ops import get_logger
from .persistence import SchoolInfo, StudentRecord


def _scoped(teacher: TeacherContext):
    return (
        select(StudentRecord)
        .where(StudentRecord.school == teacher.school)
        .where(StudentRecord.teacher_display_name == teacher.display_name)
        .where(StudentRecord.teacher_email == teacher.email)
    )


def list_student_records(session: Session, teacher: TeacherContext) -> List[StudentRecord]:
    return list(session.exec(_scoped(teacher).order_by(StudentRecord.id)).all())


def list_students(session: Session, teacher: TeacherContext) -> List[StudentAccount]:
    """Fetch and decode the teacher's students in creation order."""

    return [record.to_account() for record in list_student_records(session, teacher)]


def get_student_record(session: Session, teacher: TeacherContext, account: str) -> StudentRecord:
    record = session.exec(_scoped(teacher).where(StudentRecord.account == account)).first()
    if record is None:
        raise StudentNotFoundError(f"Student '{account}' not found.")
    return record


def handle_exists(session: Session, handle: str) -> bool:
    return session.exec(select(StudentRecord.id).where(StudentRecord.account == handle)).first() is not None


def create_student(
    session: Session,
    teacher: TeacherContext,
    name: str,
    *,
    rng: Optional[RandomSource] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> StudentRecord:
    handle = generate_unique_handle(
        name, lambda candidate: handle_exists(session, candidate), rng=rng, max_attempts=max_attempts
    )
    record = StudentRecord(
        account=handle,
        name=name,
        pw=generate_password(rng=rng),
        school=teacher.school,
        teacher_display_name=teacher.display_name,
        teacher_email=teacher.email,
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def create_students(
    session: Session,
    teacher: TeacherContext,
    names_text: str,
    *,
    rng: Optional[RandomSource] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> List[CreationResult]:
    """Create one student per line of ``names_text``.

    The batch is validated up front and rejected as a whole on any invalid
    name.  Creation then proceeds one name at a time; a failure is recorded
    in that name's result and the remaining names are still attempted.
    """

    names = parse_name_batch(names_text)
    logger = get_logger()
    results: List[CreationResult] = []
    for name in names:
        try:
            record = create_student(session, teacher, name, rng=rng, max_attempts=max_attempts)
        except (HandleExhaustedError, SQLAlchemyError) as exc:
            session.rollback()
            logger.log("student_create_failed", school=teacher.school, name=name, error=str(exc))
            results.append(CreationResult(name=name, error=str(exc)))
            continue
        logger.log("student_created", school=teacher.school, account=record.account)
        results.append(CreationResult(name=name, handle=record.account, password=record.pw))
    return results


def update_password(session: Session, teacher: TeacherContext, account: str, new_password: str) -> StudentRecord:
    password = (new_password or "").strip()
    if not password:
        raise InvalidPasswordError("New password must not be empty.")
    record = get_student_record(session, teacher, account)
    record.pw = password
    session.add(record)
    session.commit()
    session.refresh(record)
    get_logger().log("password_updated", school=teacher.school, account=account)
    return record


def delete_student(session: Session, teacher: TeacherContext, account: str) -> Optional[int]:
    record = get_student_record(session, teacher, account)
    record_id = record.id
    session.delete(record)
    session.commit()
    get_logger().log("student_deleted", school=teacher.school, account=account)
    return record_id


def remember_school(session: Session, email: str, school: str) -> None:
    """Store ``school`` as the last school entered by ``email``."""

    row = session.get(SchoolInfo, email)
    if row:
        row.last_input_school = school
        row.updated_at = datetime.now(timezone.utc)
    else:
        row = SchoolInfo(teacher_email=email, last_input_school=school)
    session.add(row)
    session.commit()


def last_school(session: Session, email: str) -> Optional[str]:
    row = session.get(SchoolInfo, email)
    return row.last_input_school if row else None


__all__ = [
    "create_student",
    "create_students",
    "delete_student",
    "get_student_record",
    "handle_exists",
    "last_school",
    "list_student_records",
    "list_students",
    "remember_school",
    "update_password",
]
