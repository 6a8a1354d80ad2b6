import logging
import smtplib

import pytest

from quizora.models import Account
from quizora.utils import email_sender

PASSWORD = "Passw0rd!"


@pytest.fixture
def broken_mail(monkeypatch):
    sent = []

    def refuse(to, subject, body):
        sent.append(to)
        raise smtplib.SMTPException("relay refused")

    monkeypatch.setattr(email_sender, "send_email", refuse)
    return sent


def test_notify_safely_reports_and_logs_failure(broken_mail, caplog):
    with caplog.at_level(logging.ERROR, logger="quizora.utils.email_sender"):
        ok = email_sender.notify_safely(email_sender.send_welcome_email, "a@example.com", "Ada", None, "student")

    assert ok is False
    assert broken_mail == ["a@example.com"]
    assert "send_welcome_email failed" in caplog.text


def test_notify_safely_passes_through_success(monkeypatch):
    monkeypatch.setattr(email_sender, "send_email", lambda to, subject, body: None)
    assert email_sender.notify_safely(email_sender.send_otp_email, "a@example.com", "123456") is True


def test_register_survives_mail_failure(client, db, broken_mail, caplog):
    payload = {
        "role": "student",
        "name": "Ada Student",
        "email": "ada@example.com",
        "password": PASSWORD,
        "student_id": "S9001",
        "enrollment_year": 2024,
        "course": "BSc Computer Science",
        "academic_year": 2,
        "semester": 1,
    }
    with caplog.at_level(logging.ERROR, logger="quizora.utils.email_sender"):
        resp = client.post("/api/v1/auth/register", json=payload)

    assert resp.status_code == 201
    assert broken_mail == ["ada@example.com"]
    assert "notification send_welcome_email failed" in caplog.text
    assert db.query(Account).filter(Account.email == "ada@example.com").count() == 1


def test_admin_create_survives_mail_failure(client, db, admin, auth_headers, broken_mail):
    payload = {"role": "teacher", "name": "Alan Turing", "email": "alan@example.com",
               "employee_id": "E777", "department": "Computing"}
    resp = client.post("/api/v1/admin/users/", json=payload, headers=auth_headers(admin))

    assert resp.status_code == 201
    assert broken_mail == ["alan@example.com"]
    assert db.query(Account).filter(Account.email == "alan@example.com").count() == 1
