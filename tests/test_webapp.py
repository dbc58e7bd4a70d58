import re
from urllib.parse import unquote

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, delete, select

from stockclass.models import StudentAccount
from stockclass.webapp import SchoolInfo, StudentRecord, engine
from stockclass.webapp.application import app, apply_display_order, login_throttle

PASSCODE = "2468"


@pytest.fixture(autouse=True)
def clean_database() -> None:
    with Session(engine) as session:
        for model in (StudentRecord, SchoolInfo):
            session.exec(delete(model))
        session.commit()
    login_throttle.reset()


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def _login(client: TestClient, email: str = "kim@example.com", name: str = "김선생") -> None:
    response = client.post(
        "/login",
        data={"email": email, "display_name": name, "passcode": PASSCODE},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["location"] == "/"


def _load_school(client: TestClient, school: str = "한빛초") -> None:
    response = client.post("/students/load", data={"school": school}, follow_redirects=False)
    assert response.status_code == 302


def _seed(*students: tuple, email: str = "kim@example.com", teacher: str = "김선생") -> None:
    with Session(engine) as session:
        for account, name, data in students:
            session.add(
                StudentRecord(
                    account=account,
                    name=name,
                    pw="1234",
                    school="한빛초",
                    teacher_display_name=teacher,
                    teacher_email=email,
                    data=data,
                )
            )
        session.commit()


def _cash(amount: int) -> dict:
    return {"portfolio": {"cash": amount, "stocks": {}}, "stocks": {}}


def _order(html: str, names: list) -> list:
    positions = {name: html.index(f"<h2>{name}</h2>") for name in names}
    return sorted(names, key=positions.__getitem__)


def test_pages_require_login(client: TestClient) -> None:
    for path in ("/", "/students", "/create", "/students/export.pdf"):
        response = client.get(path, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/login"


def test_wrong_passcode_is_rejected_and_throttled(client: TestClient) -> None:
    for _ in range(5):
        response = client.post(
            "/login", data={"email": "kim@example.com", "passcode": "nope"}, follow_redirects=False
        )
        assert response.headers["location"] == "/login"
    page = client.get("/login")
    assert "인증 코드가 올바르지 않습니다." in page.text

    locked = client.post(
        "/login", data={"email": "kim@example.com", "passcode": PASSCODE}, follow_redirects=False
    )
    assert locked.headers["location"] == "/login"
    assert "로그인 시도가 너무 많습니다" in client.get("/login").text


def test_landing_page_after_login(client: TestClient) -> None:
    _login(client)
    page = client.get("/")
    assert page.status_code == 200
    assert "교사용" in page.text
    assert "학생 현황" in page.text


def test_students_only_visible_to_matching_teacher(client: TestClient) -> None:
    _seed(("가영1000", "가영", _cash(500)))
    _seed(("나정2000", "나정", _cash(500)), email="lee@example.com", teacher="이선생")
    _login(client)
    _load_school(client)

    page = client.get("/students")

    assert "<h2>가영</h2>" in page.text
    assert "나정" not in page.text


def test_student_cards_show_valuation_and_missing_portfolio(client: TestClient) -> None:
    data = {
        "portfolio": {"cash": 1000, "stocks": {"삼성전자": {"quantity": 2, "purchase_price": 100}}},
        "stocks": {"전자": {"삼성전자": {"current_price": 120}}},
    }
    _seed(("가영1000", "가영", data), ("나정2000", "나정", "{not json"))
    _login(client)
    _load_school(client)

    html = client.get("/students").text

    assert "현금: 1,000원" in html
    assert "총 자산: 1,240원" in html
    assert "(20.00%)" in html
    assert "포트폴리오 정보 없음" in html


def test_sorting_compounds_on_displayed_order(client: TestClient) -> None:
    _seed(
        ("다희1000", "다희", _cash(500)),
        ("가영2000", "가영", _cash(1000)),
        ("나정3000", "나정", _cash(500)),
    )
    _login(client)
    _load_school(client)
    names = ["가영", "나정", "다희"]

    client.post("/students/sort", data={"key": "cash"})
    assert _order(client.get("/students").text, names) == ["가영", "다희", "나정"]

    _load_school(client)
    client.post("/students/sort", data={"key": "name"})
    assert _order(client.get("/students").text, names) == ["가영", "나정", "다희"]
    client.post("/students/sort", data={"key": "cash"})
    assert _order(client.get("/students").text, names) == ["가영", "나정", "다희"]


def test_unknown_sort_key_sets_notice(client: TestClient) -> None:
    _login(client)
    _load_school(client)
    response = client.post("/students/sort", data={"key": "shoe_size"}, follow_redirects=False)
    assert response.status_code == 302
    assert "알 수 없는 정렬 기준입니다." in client.get("/students").text


def test_password_reveal_and_change(client: TestClient) -> None:
    _seed(("가영1000", "가영", None))
    _login(client)
    _load_school(client)

    hidden = client.get("/students").text
    assert "••••••" in hidden and "비밀번호: 1234" not in hidden
    revealed = client.get("/students", params={"reveal": "가영1000"}).text
    assert "비밀번호: 1234" in revealed

    response = client.post(
        "/students/password", data={"account": "가영1000", "new_password": "5678"}, follow_redirects=False
    )
    assert response.status_code == 302
    assert "비밀번호가 성공적으로 변경되었습니다." in client.get("/students").text
    with Session(engine) as session:
        record = session.exec(select(StudentRecord).where(StudentRecord.account == "가영1000")).one()
    assert record.pw == "5678"


def test_password_change_rejects_blank_value(client: TestClient) -> None:
    _seed(("가영1000", "가영", None))
    _login(client)
    _load_school(client)

    response = client.post(
        "/students/password", data={"account": "가영1000", "new_password": " "}, follow_redirects=False
    )
    assert response.status_code == 302

    assert "새 비밀번호를 입력해주세요." in client.get("/students").text
    with Session(engine) as session:
        record = session.exec(select(StudentRecord).where(StudentRecord.account == "가영1000")).one()
    assert record.pw == "1234"


def test_delete_requires_confirmation(client: TestClient) -> None:
    _seed(("가영1000", "가영", None))
    _login(client)
    _load_school(client)

    confirm_page = client.get("/students/delete", params={"account": "가영1000"})
    assert "복구할 수 없습니다" in confirm_page.text

    unconfirmed = client.post("/students/delete", data={"account": "가영1000"}, follow_redirects=False)
    assert unconfirmed.status_code == 302
    with Session(engine) as session:
        assert session.exec(select(StudentRecord)).first() is not None

    client.post("/students/delete", data={"account": "가영1000", "confirm": "yes"})
    with Session(engine) as session:
        assert session.exec(select(StudentRecord)).first() is None


def test_create_students_flow(client: TestClient) -> None:
    _login(client)
    client.post("/create/school", data={"school": "한빛초"})

    response = client.post("/create", data={"names": "1 가영\n2 나정\n"}, follow_redirects=False)
    assert response.status_code == 200

    page = response.text
    assert "학생 2명이 성공적으로 생성되었습니다." in page
    with Session(engine) as session:
        records = session.exec(select(StudentRecord).order_by(StudentRecord.id)).all()
    assert [record.name for record in records] == ["1 가영", "2 나정"]
    for record in records:
        assert re.fullmatch(r"\d ..\d{4}", record.account)
        assert re.fullmatch(r"\d{4}", record.pw)
        assert record.account in page and record.pw in page
        assert (record.school, record.teacher_display_name, record.teacher_email) == (
            "한빛초",
            "김선생",
            "kim@example.com",
        )

    later = client.get("/create").text
    assert "생성 결과" not in later
    assert "성공적으로 생성되었습니다." not in later


def test_class_sized_batch_keeps_session_cookie_small(client: TestClient) -> None:
    _login(client)
    client.post("/create/school", data={"school": "한빛초등학교"})
    names = "\n".join(f"{number} 김민수" for number in range(1, 41))

    created = client.post("/create", data={"names": names}, follow_redirects=False)
    assert created.status_code == 200
    assert "학생 40명이 성공적으로 생성되었습니다." in created.text
    assert len(created.headers.get("set-cookie", "")) <= 4096

    sorted_response = client.post("/students/sort", data={"key": "name"}, follow_redirects=False)
    assert sorted_response.status_code == 302
    assert len(sorted_response.headers.get("set-cookie", "")) <= 4096
    assert "<h2>40 김민수</h2>" in client.get("/students").text


def test_create_students_rejects_invalid_batch(client: TestClient) -> None:
    _login(client)
    client.post("/create/school", data={"school": "한빛초"})

    response = client.post("/create", data={"names": "가영\nA가"}, follow_redirects=False)
    assert response.status_code == 302

    assert "학생 이름은 한글로 2자 이상 입력해주세요." in client.get("/create").text
    with Session(engine) as session:
        assert session.exec(select(StudentRecord)).first() is None


def test_create_requires_school(client: TestClient) -> None:
    _login(client)
    response = client.post("/create", data={"names": "가영"}, follow_redirects=False)
    assert response.status_code == 302
    assert "먼저 학교 정보를 입력하고 확인해주세요." in client.get("/create").text


def test_last_school_is_remembered_across_logins(client: TestClient) -> None:
    _login(client)
    _load_school(client, "새싹초")
    client.post("/logout")

    _login(client)
    page = client.get("/students").text
    assert "value='새싹초'" in page


def test_export_roster_pdf(client: TestClient) -> None:
    _seed(("가영1000", "가영", _cash(500)))
    _login(client)
    _load_school(client)

    response = client.get("/students/export.pdf")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    disposition = response.headers["content-disposition"]
    assert unquote(disposition.split("''", 1)[1]) == "한빛초_김선생_학생명렬표.pdf"


def test_healthz(client: TestClient) -> None:
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok"}


def test_unresolved_holding_and_bad_quote_render_as_no_data(client: TestClient) -> None:
    data = {
        "portfolio": {
            "cash": 1000,
            "stocks": {
                "삼성전자": {"quantity": 2, "purchase_price": 100},
                "신규종목": {"quantity": 1, "purchase_price": 50},
            },
        },
        "stocks": {"전자": {"삼성전자": {"current_price": 120}, "신규종목": {"name": "신규 상장"}}},
    }
    _seed(("가영1000", "가영", data))
    _login(client)
    _load_school(client)

    html = client.get("/students").text

    assert "포트폴리오 정보 없음" not in html
    assert "현금: 1,000원" in html
    assert "총 자산: 1,240원" in html
    assert "신규종목: 1주, 50원 <span class='even'>(정보 없음)</span>" in html


def test_malformed_market_shows_cash_only_valuation(client: TestClient) -> None:
    data = {
        "portfolio": {"cash": 700, "stocks": {"삼성전자": {"quantity": 2, "purchase_price": 100}}},
        "stocks": "closed",
    }
    _seed(("가영1000", "가영", data))
    _login(client)
    _load_school(client)

    html = client.get("/students").text

    assert "현금: 700원" in html
    assert "총 자산: 700원 <span class='even'>(0.00%)</span>" in html


def test_apply_display_order_appends_new_students() -> None:
    students = [StudentAccount(handle=h, name=h, password="", record_id=i) for i, h in enumerate("abc", 1)]

    arranged = apply_display_order(students, [3, 99, 1])

    assert [s.handle for s in arranged] == ["c", "a", "b"]
