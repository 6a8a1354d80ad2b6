from datetime import timedelta

from quizora.core.clock import utcnow

PASSWORD = "Passw0rd!"
ENVELOPE_KEYS = {"success", "message", "statusCode", "timestamp"}


def _student_payload(**overrides):
    data = {
        "role": "student",
        "name": "Ada Student",
        "email": "Ada@Example.com",
        "password": PASSWORD,
        "student_id": "S9001",
        "enrollment_year": 2024,
        "course": "BSc Computer Science",
        "academic_year": 2,
        "semester": 1,
    }
    data.update(overrides)
    return data


def test_register_and_login(client):
    resp = client.post("/api/v1/auth/register", json=_student_payload())
    assert resp.status_code == 201
    body = resp.json()
    assert ENVELOPE_KEYS | {"data"} <= set(body)
    assert body["success"] is True
    assert body["data"]["user"]["email"] == "ada@example.com"

    resp = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": PASSWORD})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert set(data) == {"user", "accessToken", "refreshToken"}
    for secret in ("password", "password_hash", "password_change_otp", "forgot_password_otp", "password_reset_token"):
        assert secret not in data["user"]


def test_register_rejects_fields_of_other_roles(client):
    resp = client.post("/api/v1/auth/register", json=_student_payload(employee_id="E1"))
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["errors"]


def test_register_rejects_missing_role_fields_and_admin_role(client):
    payload = _student_payload()
    del payload["student_id"]
    assert client.post("/api/v1/auth/register", json=payload).status_code == 422

    admin = {"role": "admin", "name": "Eve", "email": "eve@example.com", "password": PASSWORD}
    assert client.post("/api/v1/auth/register", json=admin).status_code == 422


def test_register_duplicate_email_conflicts(client, student):
    resp = client.post("/api/v1/auth/register", json=_student_payload(email=student.email))
    assert resp.status_code == 409


def test_login_failure_envelope(client, student):
    resp = client.post("/api/v1/auth/login", json={"email": student.email, "password": "nope"})
    assert resp.status_code == 401
    body = resp.json()
    assert ENVELOPE_KEYS | {"errors"} <= set(body)
    assert body["success"] is False
    assert body["statusCode"] == 401


def test_refresh_endpoint(client, student):
    login = client.post("/api/v1/auth/login", json={"email": student.email, "password": PASSWORD}).json()
    resp = client.post("/api/v1/auth/refresh", json={"refreshToken": login["data"]["refreshToken"]})
    assert resp.status_code == 200
    assert set(resp.json()["data"]) == {"accessToken", "refreshToken"}

    bad = client.post("/api/v1/auth/refresh", json={"refreshToken": "garbage"})
    assert bad.status_code == 401


def test_me_requires_token(client, student, auth_headers):
    assert client.get("/api/v1/auth/me").status_code == 401
    resp = client.get("/api/v1/auth/me", headers=auth_headers(student))
    assert resp.json()["data"]["id"] == student.id


def test_locked_account_cannot_use_access_token(client, db, student, auth_headers):
    headers = auth_headers(student)
    student.lock_until = utcnow() + timedelta(hours=1)
    db.commit()
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 401


def test_unknown_route_uses_envelope(client):
    resp = client.get("/api/v1/nowhere")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_forgot_password_does_not_reveal_accounts(client, student):
    known = client.post("/api/v1/auth/forgot-password-otp", json={"email": student.email})
    unknown = client.post("/api/v1/auth/forgot-password-otp", json={"email": "nobody@example.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.json()["message"] == unknown.json()["message"]


def test_reset_link_flow(client, db, student):
    client.post("/api/v1/auth/forgot-password", json={"email": student.email})
    db.refresh(student)
    token = student.password_reset_token
    assert token

    assert client.get(f"/api/v1/auth/verify-reset-token/{token}").status_code == 200
    resp = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "N3w-secret"})
    assert resp.status_code == 200
    # single use
    assert client.post("/api/v1/auth/reset-password", json={"token": token, "password": "Other-1"}).status_code == 400

    login = client.post("/api/v1/auth/login", json={"email": student.email, "password": "N3w-secret"})
    assert login.status_code == 200


def test_password_change_otp_flow(client, db, student, auth_headers, monkeypatch):
    sent = {}

    def capture(email, otp, name=None, purpose=None):
        sent["otp"] = otp

    monkeypatch.setattr("quizora.services.auth_service.send_otp_email", capture)
    headers = auth_headers(student)

    resp = client.post("/api/v1/auth/request-password-change-otp", json={"currentPassword": PASSWORD}, headers=headers)
    assert resp.status_code == 200
    wrong = "000000" if sent["otp"] != "000000" else "111111"
    bad = client.post(
        "/api/v1/auth/verify-otp-and-change-password",
        json={"otp": wrong, "newPassword": "Changed-1"},
        headers=headers,
    )
    assert bad.status_code == 400

    ok = client.post(
        "/api/v1/auth/verify-otp-and-change-password",
        json={"otp": sent["otp"], "newPassword": "Changed-1"},
        headers=headers,
    )
    assert ok.status_code == 200
    db.refresh(student)
    assert student.password_change_otp is None


def test_admin_password_change_is_admin_only(client, admin, student, auth_headers):
    body = {"currentPassword": PASSWORD, "password": "Admin-New-1"}
    assert client.put("/api/v1/auth/change-password", json=body, headers=auth_headers(student)).status_code == 403
    assert client.put("/api/v1/auth/change-password", json=body, headers=auth_headers(admin)).status_code == 200


def test_check_email_and_validate_password(client, student):
    resp = client.get("/api/v1/auth/check-email", params={"email": student.email})
    assert resp.json()["data"]["exists"] is True
    resp = client.post("/api/v1/auth/validate-password", json={"password": "weak"})
    assert resp.json()["data"]["isValid"] is False


# -------------------- admin users --------------------
def test_admin_user_list_filters_and_paginates(client, admin, make_account, auth_headers):
    for _ in range(3):
        make_account("student")
    make_account("teacher", name="Grace Hopper")
    headers = auth_headers(admin)

    resp = client.get("/api/v1/admin/users/", params={"role": "student", "limit": 2}, headers=headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert len(data["items"]) == 2
    assert data["pagination"]["totalItems"] == 3
    assert data["pagination"]["totalPages"] == 2
    assert data["pagination"]["hasNextPage"] is True

    resp = client.get("/api/v1/admin/users/", params={"search": "grace"}, headers=headers)
    assert [u["name"] for u in resp.json()["data"]["items"]] == ["Grace Hopper"]


def test_admin_routes_reject_other_roles(client, student, auth_headers):
    resp = client.get("/api/v1/admin/users/", headers=auth_headers(student))
    assert resp.status_code == 403


def test_admin_create_update_delete(client, db, admin, auth_headers):
    headers = auth_headers(admin)
    payload = {"role": "teacher", "name": "Alan Turing", "email": "alan@example.com",
               "employee_id": "E777", "department": "Computing"}
    resp = client.post("/api/v1/admin/users/", json=payload, headers=headers)
    assert resp.status_code == 201
    user_id = resp.json()["data"]["id"]

    # switching role must supply the new role's fields
    resp = client.put(f"/api/v1/admin/users/{user_id}", json={"role": "student"}, headers=headers)
    assert resp.status_code == 422

    resp = client.put(f"/api/v1/admin/users/{user_id}", json={"department": "Maths"}, headers=headers)
    assert resp.json()["data"]["department"] == "Maths"

    resp = client.delete(f"/api/v1/admin/users/{user_id}", headers=headers)
    assert resp.status_code == 200
    assert client.get(f"/api/v1/admin/users/{user_id}", headers=headers).json()["data"]["status"] == "inactive"

    resp = client.delete(f"/api/v1/admin/users/{user_id}", params={"permanent": "true"}, headers=headers)
    assert resp.status_code == 200
    assert client.get(f"/api/v1/admin/users/{user_id}", headers=headers).status_code == 404


def test_admin_cannot_delete_self(client, admin, auth_headers):
    resp = client.delete(f"/api/v1/admin/users/{admin.id}", headers=auth_headers(admin))
    assert resp.status_code == 400


def test_admin_stats(client, admin, make_account, auth_headers):
    make_account("student")
    make_account("student", status="inactive")
    resp = client.get("/api/v1/admin/users/stats", headers=auth_headers(admin))
    stats = resp.json()["data"]
    assert stats["byRole"]["student"] == {"total": 2, "active": 1}
    assert stats["totalUsers"] == 3


# -------------------- teacher and student flow --------------------
def test_quiz_flow_over_http(client, db, teacher, student, auth_headers):
    t_headers = auth_headers(teacher)
    s_headers = auth_headers(student)

    module = client.post("/api/v1/modules/", json={
        "code": "cs201", "name": "Data Structures", "year": 2, "semester": 1, "credits": 3,
    }, headers=t_headers).json()["data"]
    assert module["code"] == "CS201"

    dup = client.post("/api/v1/modules/", json={
        "code": "CS201", "name": "Again", "year": 2, "semester": 1, "credits": 3,
    }, headers=t_headers)
    assert dup.status_code == 409

    bad_mcq = client.post("/api/v1/questions/", json={
        "module_id": module["id"], "type": "MCQ", "question_text": "Pick one",
        "options": [{"text": "only", "is_correct": True}],
    }, headers=t_headers)
    assert bad_mcq.status_code == 400

    question = client.post("/api/v1/questions/", json={
        "module_id": module["id"], "type": "MCQ", "question_text": "2 + 2?",
        "options": [{"text": "4", "is_correct": True}, {"text": "5", "is_correct": False}],
    }, headers=t_headers).json()["data"]
    assert question["module_code"] == "CS201"

    assert client.delete(f"/api/v1/modules/{module['id']}", headers=t_headers).status_code == 400

    now = utcnow()
    quiz = client.post("/api/v1/quizzes/", json={
        "title": "Week 3", "module_id": module["id"], "duration": 30,
        "start_at": (now + timedelta(minutes=10)).isoformat(),
        "end_at": (now + timedelta(minutes=40)).isoformat(),
        "instructions": "Closed book", "passcode": "ds-2030",
        "eligibility": [{"degree_title": "BSc Computer Science", "year": 2, "semester": 1}],
    }, headers=t_headers)
    assert quiz.status_code == 201
    quiz = quiz.json()["data"]
    assert quiz["status"] == "scheduled"
    assert quiz["question_count"] == 1

    available = client.get("/api/v1/quizzes/student/available", headers=s_headers).json()["data"]
    assert [(q["id"], q["attempted"]) for q in available] == [(quiz["id"], False)]
    assert "passcode" not in available[0]

    # not open yet
    resp = client.post(f"/api/v1/quizzes/{quiz['id']}/verify-passcode", json={"passcode": "ds-2030"}, headers=s_headers)
    assert resp.status_code == 400

    # teachers cannot take quizzes, students cannot manage them
    assert client.get(f"/api/v1/quizzes/{quiz['id']}/questions", headers=t_headers).status_code == 403
    assert client.get(f"/api/v1/quizzes/{quiz['id']}", headers=s_headers).status_code == 403

    cancelled = client.post(f"/api/v1/quizzes/{quiz['id']}/cancel", headers=t_headers).json()["data"]
    assert cancelled["status"] == "cancelled"
    assert client.get("/api/v1/quizzes/student/available", headers=s_headers).json()["data"] == []


def test_student_takes_open_quiz_over_http(client, teacher, student, make_module, make_quiz, auth_headers):
    module = make_module(teacher, mcq=2, essay=0)
    quiz = make_quiz(teacher, module, start_in=-5, end_in=55, show_results_immediately=True)
    headers = auth_headers(student)

    assert client.get(f"/api/v1/quizzes/{quiz.id}/questions", params={"passcode": "wrong"}, headers=headers).status_code == 401
    resp = client.get(f"/api/v1/quizzes/{quiz.id}/questions", params={"passcode": "open-sesame"}, headers=headers)
    assert resp.status_code == 200
    questions = resp.json()["data"]["questions"]
    assert len(questions) == 2
    assert all("is_correct" not in opt for q in questions for opt in q["options"])

    answers = [{"question_id": q["id"], "answer": "right"} for q in questions]
    resp = client.post(f"/api/v1/quizzes/{quiz.id}/submit", json={"answers": answers}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["data"]["grade"] == "A+"

    again = client.post(f"/api/v1/quizzes/{quiz.id}/submit", json={"answers": answers}, headers=headers)
    assert again.status_code == 409

    mine = client.get("/api/v1/results/my", headers=headers).json()["data"]
    assert [r["percentage"] for r in mine] == [100.0]
