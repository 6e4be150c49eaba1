import csv
import io
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from thesis_eval.extensions import db
from thesis_eval.models.audit_log import AuditLog
from thesis_eval.models.base import utcnow
from thesis_eval.services import audit, groups, rubrics


def test_mutations_append_one_entry_each(defense):
    actions = [a for (a,) in db.session.query(AuditLog.action).all()]
    assert actions.count("thesis_group_created") == 1
    assert actions.count("thesis_group_member_added") == 2
    assert actions.count("defense_schedule_created") == 1
    assert actions.count("schedule_panelist_added") == 2
    assert actions.count("evaluations_assigned") == 1


def test_audit_failure_does_not_undo_primary_write(app, monkeypatch, caplog):
    class Broken:
        def __init__(self, **kwargs):
            raise SQLAlchemyError("audit table unavailable")

    monkeypatch.setattr(audit, "AuditLog", Broken)
    tpl = rubrics.create_template("Still Saved")

    assert tpl.id
    assert rubrics.get_template(tpl.id).name == "Still Saved"
    assert AuditLog.query.count() == 0
    assert "Audit write failed" in caplog.text


def test_actor_defaults_to_none_outside_requests(app):
    group = groups.create_group("Offline Script Group")
    entry = AuditLog.query.filter_by(entity_id=group.id).one()
    assert entry.actor_id is None
    assert entry.details["title"] == "Offline Script Group"


def test_list_audit_logs_newest_first_with_filters(app, make_user):
    admin = make_user("admin")
    audit.record("first_action", "thing", "1", actor_id=admin.id)
    audit.record("second_action", "thing", "2")
    total, rows = audit.list_audit_logs()
    assert total == 2
    assert [r.action for r in rows] == ["second_action", "first_action"]

    total, rows = audit.list_audit_logs(actor_id=admin.id)
    assert total == 1 and rows[0].action == "first_action"

    old_day = (utcnow() - timedelta(days=90)).date().isoformat()
    total, _ = audit.list_audit_logs(date_from=old_day, date_to=old_day)
    assert total == 0


def test_export_audit_csv(app):
    audit.record("thesis_group_created", "thesis_group", "g-1", {"title": "Kiosk"})
    reader = csv.reader(io.StringIO(audit.export_audit_csv()))
    header, row = next(reader), next(reader)
    assert header == audit.EXPORT_COLUMNS
    assert row[3] == "thesis_group_created"
    assert '"title": "Kiosk"' in row[6]
