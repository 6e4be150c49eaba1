import pytest
from sqlalchemy.exc import SQLAlchemyError

from thesis_eval.errors import NotFoundError, ValidationError
from thesis_eval.models.notification import Notification
from thesis_eval.services import evaluations, notifications


def test_submit_and_lock_notify_each_member(defense, score):
    ev = defense.evaluations[0]
    score(ev, 8, 7)
    evaluations.submit_evaluation(ev.id)
    evaluations.lock_evaluation(ev.id)

    for student in defense.students:
        rows = Notification.query.filter_by(user_id=student.id).order_by(Notification.type).all()
        assert [n.type for n in rows] == ["evaluation_locked", "evaluation_submitted"]
        assert rows[0].data == {"evaluationId": ev.id, "scheduleId": defense.schedule.id,
                                "groupId": defense.group.id, "status": "locked"}
        assert "Smart Irrigation Monitor" in rows[1].body
    assert Notification.query.filter(Notification.user_id.in_([p.id for p in defense.panel])).count() == 0


def test_repeated_transitions_do_not_notify_again(defense):
    ev = defense.evaluations[1]
    evaluations.lock_evaluation(ev.id)
    evaluations.lock_evaluation(ev.id)
    assert Notification.query.count() == 2
    assert {n.type for n in Notification.query} == {"evaluation_locked"}


def test_notification_failure_does_not_undo_the_transition(defense, monkeypatch, caplog):
    class Broken:
        def __init__(self, **kwargs):
            raise SQLAlchemyError("notifications table unavailable")

    monkeypatch.setattr(notifications, "Notification", Broken)
    ev = evaluations.lock_evaluation(defense.evaluations[0].id)

    assert evaluations.get_evaluation(ev.id).status == "locked"
    assert Notification.query.count() == 0
    assert "Notification write failed" in caplog.text


def test_list_and_mark_read(defense):
    ana, ben = defense.students
    evaluations.lock_evaluation(defense.evaluations[0].id)
    evaluations.lock_evaluation(defense.evaluations[1].id)

    total, unread, rows = notifications.list_notifications(ana.id)
    assert (total, unread, len(rows)) == (2, 2, 2)

    notifications.mark_read(rows[0].id, ana.id)
    total, unread, rows = notifications.list_notifications(ana.id, unread_only=True)
    assert (total, unread) == (1, 1)

    with pytest.raises(NotFoundError):
        notifications.mark_read(rows[0].id, ben.id)
    with pytest.raises(ValidationError):
        notifications.list_notifications(ana.id, type="bogus")

    assert notifications.mark_all_read(ana.id) == 1
    assert notifications.list_notifications(ana.id)[1] == 0
    assert notifications.list_notifications(ben.id)[1] == 2


def test_notification_endpoints(defense, client, login):
    ana, ben = defense.students
    evaluations.lock_evaluation(defense.evaluations[0].id)
    mine = Notification.query.filter_by(user_id=ana.id).one()
    theirs = Notification.query.filter_by(user_id=ben.id).one()

    login(ana)
    body = client.get("/api/notifications").get_json()
    assert body["ok"] is True
    assert (body["total"], body["unread"]) == (1, 1)
    assert body["notifications"][0]["type"] == "evaluation_locked"

    resp = client.post(f"/api/notifications/{theirs.id}/read")
    assert resp.status_code == 404

    resp = client.post(f"/api/notifications/{mine.id}/read")
    assert resp.status_code == 200
    assert resp.get_json()["notification"]["readAt"] is not None
    assert client.get("/api/notifications?unread=1").get_json()["total"] == 0

    assert client.post("/api/notifications/read-all").get_json()["updated"] == 0


def test_notifications_need_a_login(client):
    resp = client.get("/api/notifications")
    assert resp.status_code == 401
