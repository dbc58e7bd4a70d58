"""Roster PDF export."""

from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Optional, Sequence

from reportlab.lib.pagesizes import A4
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfgen import canvas

from .formatting import format_return, format_won
from .models import StudentAccount, TeacherContext

KOREAN_FONT = "HYSMyeongJo-Medium"
SCHOOL_PLACEHOLDER = "학교"
TEACHER_PLACEHOLDER = "선생님"

# (header, x offset in points)
COLUMNS = (
    ("번호", 50),
    ("이름", 90),
    ("계정", 200),
    ("비밀번호", 320),
    ("총 자산", 390),
    ("수익률", 490),
)
ROW_HEIGHT = 18
BOTTOM_MARGIN = 70


def _ensure_font() -> str:
    if KOREAN_FONT not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(UnicodeCIDFont(KOREAN_FONT))
    return KOREAN_FONT


def roster_filename(teacher: Optional[TeacherContext]) -> str:
    school = (teacher.school if teacher else "").strip() or SCHOOL_PLACEHOLDER
    name = (teacher.display_name if teacher else "").strip() or TEACHER_PLACEHOLDER
    return f"{school}_{name}_학생명렬표.pdf"


def _draw_header(c: canvas.Canvas, font: str, y: float, width: float) -> float:
    c.setFont(font, 10)
    for title, x in COLUMNS:
        c.drawString(x, y, title)
    y -= 8
    c.line(50, y, width - 50, y)
    return y - 14


def roster_pdf(
    teacher: TeacherContext,
    students: Sequence[StudentAccount],
    *,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """Render ``students`` as a paginated roster and return the PDF bytes."""

    font = _ensure_font()
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(roster_filename(teacher)[: -len(".pdf")])
    width, height = A4

    y = height - 60
    c.setFont(font, 16)
    c.drawString(50, y, f"{teacher.school or SCHOOL_PLACEHOLDER} 학생 명렬표")
    y -= 20
    c.setFont(font, 10)
    c.drawString(50, y, f"담당: {teacher.display_name or TEACHER_PLACEHOLDER} ({teacher.email})  학생 수: {len(students)}명")
    y -= 25
    y = _draw_header(c, font, y, width)

    for index, student in enumerate(students, start=1):
        if y < BOTTOM_MARGIN:
            c.showPage()
            y = _draw_header(c, font, height - 60, width)
        valuation = student.valuation()
        cells = (
            str(index),
            student.name[:12],
            student.handle[:18],
            student.password[:10],
            format_won(valuation.total_value) if valuation else "-",
            format_return(valuation.total_return) if valuation else "-",
        )
        c.setFont(font, 10)
        for (_, x), text in zip(COLUMNS, cells):
            c.drawString(x, y, text)
        y -= ROW_HEIGHT

    moment = generated_at or datetime.now()
    c.setFont(font, 8)
    c.drawString(50, 40, f"생성: {moment.strftime('%Y-%m-%d %H:%M')}")
    c.save()
    return buffer.getvalue()


__all__ = ["roster_filename", "roster_pdf"]
