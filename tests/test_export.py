import re
from datetime import datetime

from stockclass.export import roster_filename, roster_pdf
from stockclass.models import StudentAccount, TeacherContext


def _students(count: int) -> list[StudentAccount]:
    data = {"portfolio": {"cash": 1000, "stocks": {}}, "stocks": {}}
    return [
        StudentAccount.from_payload(f"학생{index:04d}", f"{index} 학생", "1234", data)
        for index in range(count)
    ]


def test_roster_filename_uses_school_and_teacher() -> None:
    teacher = TeacherContext(school="한빛초", display_name="김선생", email="kim@example.com")
    assert roster_filename(teacher) == "한빛초_김선생_학생명렬표.pdf"


def test_roster_filename_falls_back_to_placeholders() -> None:
    assert roster_filename(TeacherContext(school="", display_name="", email="a@b.c")) == "학교_선생님_학생명렬표.pdf"
    assert roster_filename(None) == "학교_선생님_학생명렬표.pdf"


def test_roster_pdf_renders_document() -> None:
    teacher = TeacherContext(school="한빛초", display_name="김선생", email="kim@example.com")

    pdf = roster_pdf(teacher, _students(3), generated_at=datetime(2024, 3, 4, 9, 0))

    assert pdf.startswith(b"%PDF")
    assert b"HYSMyeongJo-Medium" in pdf


def test_long_roster_spans_several_pages() -> None:
    teacher = TeacherContext(school="한빛초", display_name="김선생", email="kim@example.com")

    short = roster_pdf(teacher, _students(5))
    long = roster_pdf(teacher, _students(80))

    page_pattern = re.compile(rb"/Type\s*/Page(?!s)")
    assert len(page_pattern.findall(short)) == 1
    assert len(page_pattern.findall(long)) >= 2


def test_roster_pdf_handles_students_without_portfolio() -> None:
    teacher = TeacherContext(school="한빛초", display_name="", email="kim@example.com")
    students = [StudentAccount.from_payload("가영1234", "가영", "1111", None)]

    assert roster_pdf(teacher, students).startswith(b"%PDF")
