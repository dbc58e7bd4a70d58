"""FastAPI frontend for the StockClass teacher console.

Teachers sign in, load the students registered under their school, rank
them by portfolio metrics, manage passwords, delete students and export
the roster as a PDF.  Student game state is read from the ``data`` column
that the student client writes; this console never modifies it.
"""

from __future__ import annotations

from html import escape as html_escape
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote, urlencode

from fastapi import FastAPI, Form, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from starlette.middleware.sessions import SessionMiddleware

from ..exceptions import InvalidPasswordError, InvalidStudentNameError, StudentNotFoundError
from ..export import roster_filename, roster_pdf
from ..formatting import format_quantity, format_return, format_won, return_tone
from ..models import CreationResult, StudentAccount, TeacherContext
from ..ops import configure_logging, get_logger
from ..ranking import RankingKey, rank_students
from ..security import LoginThrottle, passcode_matches
from .config import (
    APP_TITLE,
    EDUCATION_NOTE,
    EVENT_LOG_PATH,
    HANDLE_MAX_ATTEMPTS,
    LOGIN_LOCKOUT_MINUTES,
    LOGIN_MAX_ATTEMPTS,
    NAV_LINKS,
    SESSION_SECRET,
    TEACHER_ONLY_WARNING,
    TEACHER_PASSCODE,
)
from .persistence import engine
from .roster import (
    create_students,
    delete_student,
    last_school,
    list_students,
    remember_school,
    update_password,
)

# ---------------------------------------------------------------------------
# FastAPI application setup
# ---------------------------------------------------------------------------
app = FastAPI(title="StockClass")
app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET,
    same_site="lax",
    max_age=None,
)

configure_logging(path=EVENT_LOG_PATH)
login_throttle = LoginThrottle(max_attempts=LOGIN_MAX_ATTEMPTS, lockout_minutes=LOGIN_LOCKOUT_MINUTES)

_TEACHER_KEY = "teacher"
_SCHOOL_KEY = "school"
_ORDER_KEY = "student_order"
_NOTICE_KEY = "notice"
_NOTICE_KIND_KEY = "notice_kind"


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------
def current_teacher(request: Request) -> Optional[TeacherContext]:
    """Build the teacher scope from the signed-in identity and chosen school."""

    identity = request.session.get(_TEACHER_KEY)
    if not isinstance(identity, dict) or not identity.get("email"):
        return None
    return TeacherContext(
        school=request.session.get(_SCHOOL_KEY, ""),
        display_name=identity.get("display_name", ""),
        email=identity["email"],
    )


def require_teacher(request: Request) -> Optional[RedirectResponse]:
    if current_teacher(request) is None:
        return RedirectResponse("/login", status_code=302)
    return None


def set_notice(request: Request, message: str, kind: str = "info") -> None:
    request.session[_NOTICE_KEY] = message
    request.session[_NOTICE_KIND_KEY] = kind


def pop_notice(request: Request) -> Tuple[Optional[str], str]:
    message = request.session.pop(_NOTICE_KEY, None)
    kind = request.session.pop(_NOTICE_KIND_KEY, "info")
    return message, kind


def apply_display_order(students: Sequence[StudentAccount], order: Iterable[int]) -> List[StudentAccount]:
    """Arrange freshly fetched ``students`` in the previously displayed order.

    ``order`` holds record ids.  Students missing from it (for example just
    created) follow in fetch order.
    """

    by_id = {student.record_id: student for student in students}
    arranged: List[StudentAccount] = []
    for record_id in order:
        student = by_id.pop(record_id, None)
        if student is not None:
            arranged.append(student)
    arranged.extend(student for student in students if student.record_id in by_id)
    return arranged


def _stored_order(request: Request) -> List[int]:
    # Record ids rather than handles keep the signed cookie small for a full class.
    order = request.session.get(_ORDER_KEY)
    if isinstance(order, list):
        return [record_id for record_id in order if isinstance(record_id, int)]
    return []


def _fetch_displayed_students(request: Request, teacher: TeacherContext) -> Optional[List[StudentAccount]]:
    """Return the teacher's students in displayed order, ``None`` on store failure."""

    try:
        with Session(engine) as session:
            students = list_students(session, teacher)
    except SQLAlchemyError as exc:
        get_logger().log("students_fetch_failed", school=teacher.school, error=str(exc))
        return None
    return apply_display_order(students, _stored_order(request))


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
def base_styles() -> str:
    return """
<style>
body{font-family:'Noto Sans KR',Roboto,Arial,sans-serif;background:#f3f4f6;color:#1f2937;margin:0;}
.layout{display:flex;min-height:100vh;}
.sidebar{width:200px;background:#1f2937;color:#f9fafb;padding:24px 16px;}
.sidebar a{color:#f9fafb;text-decoration:none;display:block;padding:8px 10px;border-radius:8px;}
.sidebar a:hover{background:#374151;}
.content{flex:1;padding:32px;}
.card{background:#fff;border-radius:12px;box-shadow:0 1px 3px rgba(0,0,0,0.12);padding:16px;margin-bottom:16px;}
.students{display:flex;flex-wrap:nowrap;gap:16px;overflow-x:auto;padding-bottom:16px;}
.student{flex:none;width:320px;}
.muted{color:#4b5563;font-size:14px;}
.gain{color:#ef4444;}
.loss{color:#3b82f6;}
.even{color:#4b5563;}
.notice{padding:12px 16px;border-radius:10px;margin-bottom:16px;}
.notice--info{background:#eff6ff;}
.notice--success{background:#ecfdf5;}
.notice--error{background:#fef2f2;color:#991b1b;}
.sort-buttons{display:flex;flex-wrap:wrap;gap:8px;}
button{cursor:pointer;border:none;border-radius:8px;padding:8px 14px;background:#3b82f6;color:#fff;}
button.secondary{background:#e5e7eb;color:#374151;}
button.danger{background:#dc2626;}
input,textarea{padding:8px 12px;border:1px solid #d1d5db;border-radius:8px;}
.inline-form{display:inline-flex;gap:6px;align-items:center;}
table{border-collapse:collapse;}
td,th{padding:6px 10px;border-bottom:1px solid #e5e7eb;text-align:left;}
</style>
"""


def frame(title: str, inner: str) -> str:
    return (
        "<html><head><meta charset='utf-8'><meta name='viewport' "
        f"content='width=device-width,initial-scale=1'><title>{html_escape(title)}</title>"
        f"{base_styles()}</head><body>{inner}</body></html>"
    )


def _notice_html(request: Request) -> str:
    message, kind = pop_notice(request)
    if not message:
        return ""
    return f"<div class='notice notice--{html_escape(kind)}' role='alert'>{html_escape(message)}</div>"


def render_page(request: Request, title: str, inner: str, *, status_code: int = 200) -> HTMLResponse:
    teacher = current_teacher(request)
    if teacher is None:
        body = f"<div class='content'>{_notice_html(request)}{inner}</div>"
    else:
        links = "".join(f"<a href='{href}'>{html_escape(label)}</a>" for href, label in NAV_LINKS)
        who = html_escape(teacher.display_name or teacher.email)
        sidebar = (
            f"<nav class='sidebar'><p><a href='/'>{html_escape(APP_TITLE)}</a></p>{links}"
            f"<p class='muted' style='color:#d1d5db;'>{who}</p>"
            "<form method='post' action='/logout'><button type='submit' class='secondary'>로그아웃</button></form></nav>"
        )
        body = f"<div class='layout'>{sidebar}<main class='content'>{_notice_html(request)}{inner}</main></div>"
    return HTMLResponse(frame(title, body), status_code=status_code)


def _school_form(action: str, school: str, button: str) -> str:
    return (
        f"<form method='post' action='{action}' class='inline-form'>"
        f"<input name='school' value='{html_escape(school)}' placeholder='학교 이름을 입력하세요' required>"
        f"<button type='submit'>{html_escape(button)}</button></form>"
    )


def _sort_buttons() -> str:
    buttons = "".join(
        "<form method='post' action='/students/sort'>"
        f"<input type='hidden' name='key' value='{key.value}'>"
        f"<button type='submit' class='secondary'>{html_escape(key.label)}</button></form>"
        for key in RankingKey
    )
    return f"<div class='card'><p><strong>정렬</strong></p><div class='sort-buttons'>{buttons}</div></div>"


def _password_line(student: StudentAccount, revealed: bool) -> str:
    shown = html_escape(student.password) if revealed else "••••••"
    toggle_query = "" if revealed else "?" + urlencode({"reveal": student.handle})
    toggle_label = "숨기기" if revealed else "보기"
    handle = html_escape(student.handle)
    return (
        f"<p class='muted'>비밀번호: {shown} <a href='/students{toggle_query}'>{toggle_label}</a></p>"
        "<form method='post' action='/students/password' class='inline-form'>"
        f"<input type='hidden' name='account' value='{handle}'>"
        "<input type='password' name='new_password' placeholder='새 비밀번호' required>"
        "<button type='submit' class='secondary'>수정</button></form>"
    )


def _portfolio_html(student: StudentAccount) -> str:
    portfolio = student.portfolio
    valuation = student.valuation()
    if portfolio is None or valuation is None:
        return "<p class='muted'>포트폴리오 정보 없음</p>"
    tone = return_tone(valuation.total_return)
    rows = []
    for holding in student.holdings():
        # Unresolved holdings carry a NaN return and render as no data.
        line = (
            f"{html_escape(holding.name)}: {format_quantity(holding.quantity)}주, "
            f"{format_won(holding.purchase_price)} "
            f"<span class='{return_tone(holding.return_pct)}'>({format_return(holding.return_pct)})</span>"
        )
        rows.append(f"<li class='muted'>{line}</li>")
    holdings = "".join(rows) or "<li class='muted'>보유 주식 없음</li>"
    return (
        f"<p class='muted'>현금: {format_won(portfolio.cash)}</p>"
        f"<p class='muted'>총 자산: {format_won(valuation.total_value)} "
        f"<span class='{tone}'>({format_return(valuation.total_return)})</span></p>"
        f"<h3>주식 포트폴리오</h3><ul>{holdings}</ul>"
    )


def _student_card(student: StudentAccount, revealed: bool) -> str:
    delete_href = "/students/delete?" + urlencode({"account": student.handle})
    return (
        "<div class='card student'>"
        f"<h2>{html_escape(student.name)}</h2>"
        f"<p class='muted'>계정: {html_escape(student.handle)}</p>"
        f"{_password_line(student, revealed)}"
        f"{_portfolio_html(student)}"
        f"<p><a href='{delete_href}' class='muted'>학생 삭제</a></p>"
        "</div>"
    )


def _creation_results_html(results: Sequence[CreationResult]) -> str:
    if not results:
        return ""
    rows = []
    for result in results:
        name = html_escape(result.name)
        if result.error:
            rows.append(f"<tr><td>{name}</td><td colspan='2' class='notice--error'>{html_escape(result.error)}</td></tr>")
        else:
            rows.append(
                f"<tr><td>{name}</td><td>{html_escape(result.handle or '')}</td><td>{html_escape(result.password or '')}</td></tr>"
            )
    return (
        "<div class='card'><h2>생성 결과</h2><table><thead><tr><th>이름</th><th>계정</th><th>비밀번호</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table></div>"
    )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------
@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request):
    body = (
        f"<div class='card' style='max-width:420px;margin:40px auto;'><h1>{html_escape(APP_TITLE)}</h1>"
        f"<p class='notice notice--error'>{html_escape(TEACHER_ONLY_WARNING)}</p>"
        "<form method='post' action='/login'>"
        "<p><input name='display_name' placeholder='선생님 이름'></p>"
        "<p><input name='email' type='email' placeholder='이메일' required></p>"
        "<p><input name='passcode' type='password' placeholder='교사 인증 코드' required></p>"
        "<button type='submit'>로그인</button></form></div>"
    )
    return render_page(request, "로그인", body)


@app.post("/login")
def login(
    request: Request,
    email: str = Form(...),
    passcode: str = Form(...),
    display_name: str = Form(""),
):
    email = email.strip()
    logger = get_logger()
    if login_throttle.is_locked(email):
        logger.log("login_locked", email=email)
        set_notice(request, "로그인 시도가 너무 많습니다. 잠시 후 다시 시도해주세요.", "error")
        return RedirectResponse("/login", status_code=302)
    if not email or not passcode_matches(TEACHER_PASSCODE, passcode):
        login_throttle.record_attempt(email, success=False)
        logger.log("login_failed", email=email)
        set_notice(request, "인증 코드가 올바르지 않습니다.", "error")
        return RedirectResponse("/login", status_code=302)
    login_throttle.record_attempt(email, success=True)
    request.session.clear()
    request.session[_TEACHER_KEY] = {"display_name": display_name.strip(), "email": email}
    try:
        with Session(engine) as session:
            remembered = last_school(session, email)
    except SQLAlchemyError as exc:
        logger.log("school_lookup_failed", email=email, error=str(exc))
        remembered = None
    if remembered:
        request.session[_SCHOOL_KEY] = remembered
    logger.log("login", email=email)
    return RedirectResponse("/", status_code=302)


@app.post("/logout")
def logout(request: Request):
    request.session.clear()
    set_notice(request, "로그아웃 되었습니다. 선생님의 열정을 응원합니다.", "success")
    return RedirectResponse("/login", status_code=302)


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------
@app.get("/", response_class=HTMLResponse)
def home(request: Request):
    if (redirect := require_teacher(request)) is not None:
        return redirect
    links = "".join(
        f"<a href='{href}'><button type='button'>{html_escape(label)}</button></a> " for href, label in NAV_LINKS
    )
    body = (
        f"<div class='card'><h1>{html_escape(APP_TITLE)}</h1>"
        f"<p class='notice notice--error'>{html_escape(TEACHER_ONLY_WARNING)}</p>"
        f"<p class='muted'>{html_escape(EDUCATION_NOTE)}</p><p>{links}</p></div>"
    )
    return render_page(request, APP_TITLE, body)


@app.get("/students", response_class=HTMLResponse)
def students_page(request: Request, reveal: str = Query("")):
    teacher = current_teacher(request)
    if teacher is None:
        return RedirectResponse("/login", status_code=302)
    parts = [
        "<h1>학생 현황</h1>",
        f"<div class='card'>{_school_form('/students/load', teacher.school, '불러오기')}</div>",
    ]
    if teacher.school:
        students = _fetch_displayed_students(request, teacher)
        if students is None:
            parts.append("<div class='notice notice--error'>학생 목록을 불러오는 중 오류가 발생했습니다.</div>")
        elif students:
            export_link = "<p><a href='/students/export.pdf'><button type='button'>명렬표 PDF 저장</button></a></p>"
            cards = "".join(_student_card(student, student.handle == reveal) for student in students)
            parts.extend([_sort_buttons(), export_link, f"<div class='students'>{cards}</div>"])
        else:
            parts.append("<p class='muted'>등록된 학생이 없습니다.</p>")
    return render_page(request, "학생 현황", "".join(parts))


@app.post("/students/load")
def load_students(request: Request, school: str = Form(...)):
    teacher = current_teacher(request)
    if teacher is None:
        return RedirectResponse("/login", status_code=302)
    school = school.strip()
    request.session[_SCHOOL_KEY] = school
    request.session[_ORDER_KEY] = []
    try:
        with Session(engine) as session:
            remember_school(session, teacher.email, school)
    except SQLAlchemyError as exc:
        get_logger().log("school_remember_failed", email=teacher.email, error=str(exc))
    return RedirectResponse("/students", status_code=302)


@app.post("/students/sort")
def sort_students(request: Request, key: str = Form(...)):
    teacher = current_teacher(request)
    if teacher is None:
        return RedirectResponse("/login", status_code=302)
    try:
        ranking_key = RankingKey(key)
    except ValueError:
        set_notice(request, "알 수 없는 정렬 기준입니다.", "error")
        return RedirectResponse("/students", status_code=302)
    students = _fetch_displayed_students(request, teacher)
    if students is None:
        set_notice(request, "학생 목록을 불러오는 중 오류가 발생했습니다.", "error")
        return RedirectResponse("/students", status_code=302)
    ranked = rank_students(students, ranking_key)
    request.session[_ORDER_KEY] = [student.record_id for student in ranked]
    return RedirectResponse("/students", status_code=302)


@app.post("/students/password")
def change_password(request: Request, account: str = Form(...), new_password: str = Form("")):
    teacher = current_teacher(request)
    if teacher is None:
        return RedirectResponse("/login", status_code=302)
    try:
        with Session(engine) as session:
            record = update_password(session, teacher, account, new_password)
            name = record.name
    except InvalidPasswordError:
        set_notice(request, "새 비밀번호를 입력해주세요.", "error")
    except StudentNotFoundError:
        set_notice(request, "학생을 찾을 수 없습니다.", "error")
    except SQLAlchemyError as exc:
        get_logger().log("password_update_failed", account=account, error=str(exc))
        set_notice(request, "비밀번호 변경 중 오류가 발생했습니다.", "error")
    else:
        set_notice(request, f"{name} ({account}) 학생의 비밀번호가 성공적으로 변경되었습니다.", "success")
    return RedirectResponse("/students", status_code=302)


@app.get("/students/delete", response_class=HTMLResponse)
def confirm_delete_page(request: Request, account: str = Query(...)):
    if (redirect := require_teacher(request)) is not None:
        return redirect
    handle = html_escape(account)
    body = (
        "<div class='card' style='max-width:480px;'><h1>학생 삭제</h1>"
        f"<p><strong>{handle}</strong> 학생 계정을 삭제합니다.</p>"
        "<p class='notice notice--error'>삭제된 학생 계정과 게임 기록은 복구할 수 없습니다.</p>"
        "<form method='post' action='/students/delete' onsubmit='return confirm(\"정말 삭제하시겠습니까?\");'>"
        f"<input type='hidden' name='account' value='{handle}'>"
        "<input type='hidden' name='confirm' value='yes'>"
        "<button type='submit' class='danger'>삭제</button> <a href='/students'>취소</a></form></div>"
    )
    return render_page(request, "학생 삭제", body)


@app.post("/students/delete")
def remove_student(request: Request, account: str = Form(...), confirm: str = Form("")):
    teacher = current_teacher(request)
    if teacher is None:
        return RedirectResponse("/login", status_code=302)
    if confirm != "yes":
        set_notice(request, "삭제를 확인해주세요.", "error")
        return RedirectResponse("/students/delete?" + urlencode({"account": account}), status_code=302)
    try:
        with Session(engine) as session:
            removed_id = delete_student(session, teacher, account)
    except StudentNotFoundError:
        set_notice(request, "학생을 찾을 수 없습니다.", "error")
    except SQLAlchemyError as exc:
        get_logger().log("student_delete_failed", account=account, error=str(exc))
        set_notice(request, "학생 삭제 중 오류가 발생했습니다.", "error")
    else:
        request.session[_ORDER_KEY] = [record_id for record_id in _stored_order(request) if record_id != removed_id]
        set_notice(request, f"{account} 학생이 삭제되었습니다.", "success")
    return RedirectResponse("/students", status_code=302)


@app.get("/students/export.pdf")
def export_roster(request: Request):
    teacher = current_teacher(request)
    if teacher is None:
        return RedirectResponse("/login", status_code=302)
    if not teacher.school:
        set_notice(request, "먼저 학교 이름을 입력해주세요.", "error")
        return RedirectResponse("/students", status_code=302)
    students = _fetch_displayed_students(request, teacher)
    if students is None:
        set_notice(request, "학생 목록을 불러오는 중 오류가 발생했습니다.", "error")
        return RedirectResponse("/students", status_code=302)
    pdf = roster_pdf(teacher, students)
    filename = roster_filename(teacher)
    get_logger().log("roster_exported", school=teacher.school, students=len(students))
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@app.get("/create", response_class=HTMLResponse)
def create_page(request: Request):
    teacher = current_teacher(request)
    if teacher is None:
        return RedirectResponse("/login", status_code=302)
    return _render_create_page(request, teacher)


def _render_create_page(
    request: Request, teacher: TeacherContext, results: Sequence[CreationResult] = ()
) -> HTMLResponse:
    parts = [
        "<h1>학생 생성</h1>",
        "<div class='card'><p class='muted'>아래에 학교 이름을 입력하시면 학생 계정을 생성할 수 있습니다.</p>"
        f"{_school_form('/create/school', teacher.school, '확인')}</div>",
    ]
    if teacher.school:
        parts.append(
            "<div class='card'><h2>현재 교사 정보</h2>"
            f"<p class='muted'>학교: {html_escape(teacher.school)}</p>"
            f"<p class='muted'>이름: {html_escape(teacher.display_name)}</p>"
            f"<p class='muted'>이메일: {html_escape(teacher.email)}</p></div>"
            "<div class='card'><form method='post' action='/create'>"
            "<p><label>학생 이름 (엔터로 구분)</label></p>"
            "<p class='muted'>tip! 학생 이름 앞에 번호를 붙이면 학생 번호 순서대로 정렬할 수 있습니다.</p>"
            "<p><textarea name='names' rows='6' cols='40' placeholder='학생 이름을 입력하세요 (엔터로 구분)'></textarea></p>"
            "<button type='submit'>학생 생성</button></form></div>"
        )
    parts.append(_creation_results_html(results))
    return render_page(request, "학생 생성", "".join(parts))


@app.post("/create/school")
def choose_school(request: Request, school: str = Form(...)):
    teacher = current_teacher(request)
    if teacher is None:
        return RedirectResponse("/login", status_code=302)
    school = school.strip()
    request.session[_SCHOOL_KEY] = school
    request.session[_ORDER_KEY] = []
    try:
        with Session(engine) as session:
            remember_school(session, teacher.email, school)
    except SQLAlchemyError as exc:
        get_logger().log("school_remember_failed", email=teacher.email, error=str(exc))
    return RedirectResponse("/create", status_code=302)


def _summarise(results: Sequence[CreationResult]) -> Tuple[str, str]:
    failed = [result.name for result in results if not result.ok]
    created = len(results) - len(failed)
    if not failed:
        return f"학생 {created}명이 성공적으로 생성되었습니다.", "success"
    return (
        f"학생 {created}명 생성, {len(failed)}명 실패: {', '.join(failed)}",
        "error",
    )


@app.post("/create")
def create_students_route(request: Request, names: str = Form("")):
    teacher = current_teacher(request)
    if teacher is None:
        return RedirectResponse("/login", status_code=302)
    if not teacher.school:
        set_notice(request, "먼저 학교 정보를 입력하고 확인해주세요.", "error")
        return RedirectResponse("/create", status_code=302)
    try:
        with Session(engine) as session:
            results = create_students(session, teacher, names, max_attempts=HANDLE_MAX_ATTEMPTS)
    except InvalidStudentNameError as exc:
        message = str(exc)
        if exc.invalid:
            message += " (" + ", ".join(exc.invalid) + ")"
        set_notice(request, message, "error")
        return RedirectResponse("/create", status_code=302)
    except SQLAlchemyError as exc:
        get_logger().log("student_batch_failed", school=teacher.school, error=str(exc))
        set_notice(request, "학생 생성 중 오류가 발생했습니다.", "error")
        return RedirectResponse("/create", status_code=302)
    # New passwords are shown once, in this response only; the cookie session
    # never holds per-student results.
    message, kind = _summarise(results)
    set_notice(request, message, kind)
    return _render_create_page(request, teacher, results)


@app.get("/healthz")
def healthz():
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return JSONResponse({"status": "degraded", "database": "down"}, status_code=503)
    return JSONResponse({"status": "ok", "database": "ok"})


__all__ = [
    "app",
    "apply_display_order",
    "current_teacher",
    "login_throttle",
    "pop_notice",
    "require_teacher",
    "set_notice",
]
