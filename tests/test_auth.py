from datetime import timedelta

import pytest

from thesis_eval.errors import ValidationError
from thesis_eval.extensions import db
from thesis_eval.models.audit_log import AuditLog
from thesis_eval.models.base import utcnow
from thesis_eval.models.password_reset import PasswordReset
from thesis_eval.services import accounts


def test_login_me_logout(app, client, make_user):
    user = make_user("staff")
    resp = client.post("/auth/login", json={"email": user.email, "password": "password123"})
    assert resp.status_code == 200
    assert resp.get_json()["user"]["role"] == "staff"

    me = client.get("/auth/me").get_json()
    assert me["user"]["id"] == user.id

    assert client.post("/auth/logout").status_code == 200


def test_login_rejects_bad_password(app, client, make_user):
    user = make_user("student")
    resp = client.post("/auth/login", json={"email": user.email, "password": "wrong-password"})
    assert resp.status_code == 401
    assert resp.get_json()["ok"] is False


def test_login_rejects_disabled_account(app, client, make_user):
    user = make_user("staff", status="disabled")
    resp = client.post("/auth/login", json={"email": user.email, "password": "password123"})
    assert resp.status_code == 403


def test_login_requires_email_and_password(app, client):
    resp = client.post("/auth/login", json={"email": "not-an-email"})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "validation_error"


def test_forgot_password_unknown_email_still_ok(app, client):
    resp = client.post("/auth/forgot-password", json={"email": "nobody@example.edu"})
    assert resp.status_code == 200
    assert resp.get_json()["ok"] is True
    assert PasswordReset.query.count() == 0


def test_forgot_password_issues_token_and_mails(app, client, make_user, monkeypatch):
    sent = []
    monkeypatch.setattr("thesis_eval.jobs.notify.send_mail",
                        lambda to, subject, html: sent.append((to, subject, html)) or (202, {}))
    user = make_user("student")
    resp = client.post("/auth/forgot-password", json={"email": user.email.upper()})
    assert resp.get_json()["ok"] is True

    row = PasswordReset.query.filter_by(user_id=user.id).one()
    assert len(row.token_hash) == 64
    assert row.expires_at - utcnow() <= timedelta(minutes=60)
    assert sent and sent[0][0] == user.email
    assert "/auth/password/reset?token=" in sent[0][2]
    assert AuditLog.query.filter_by(action="password_reset_requested", entity_id=user.id).count() == 1


def test_forgot_password_ok_when_mail_fails(app, client, make_user, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("sendgrid down")

    monkeypatch.setattr("thesis_eval.jobs.notify.send_mail", boom)
    user = make_user("student")
    resp = client.post("/auth/forgot-password", json={"email": user.email})
    assert resp.status_code == 200
    assert resp.get_json()["ok"] is True


def test_reset_password_with_token(app, client, make_user):
    user = make_user("student")
    token = accounts.request_password_reset(user.email)
    resp = client.post("/auth/reset-password", json={"token": token, "password": "new-secret-1"})
    assert resp.status_code == 200
    assert db.session.get(type(user), user.id).check_password("new-secret-1")

    # tokens are single use
    resp = client.post("/auth/reset-password", json={"token": token, "password": "another-secret"})
    assert resp.status_code == 400


def test_reset_password_rejects_expired_token(app, make_user):
    user = make_user("student")
    token = accounts.request_password_reset(user.email)
    row = PasswordReset.query.filter_by(user_id=user.id).one()
    row.expires_at = utcnow() - timedelta(minutes=1)
    db.session.commit()
    with pytest.raises(ValidationError):
        accounts.reset_password(token, "new-secret-1")


def test_reset_password_enforces_length(app, client, make_user):
    user = make_user("student")
    token = accounts.request_password_reset(user.email)
    resp = client.post("/auth/reset-password", json={"token": token, "password": "short"})
    assert resp.status_code == 400
