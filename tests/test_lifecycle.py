import pytest
from sqlalchemy import text

from thesis_eval.errors import ConflictError, LockedError, ValidationError
from thesis_eval.extensions import db
from thesis_eval.models.audit_log import AuditLog
from thesis_eval.services import evaluations, lifecycle


def test_submit_sets_submitted_at_once(defense, score):
    ev = defense.evaluations[0]
    score(ev, 8, 7)
    ev = evaluations.submit_evaluation(ev.id)
    assert ev.status == "submitted"
    first = ev.submitted_at
    assert first is not None

    ev = evaluations.submit_evaluation(ev.id)
    assert ev.status == "submitted"
    assert ev.submitted_at == first
    assert AuditLog.query.filter_by(action="evaluation_submitted", entity_id=ev.id).count() == 1


def test_lock_from_pending_and_submitted(defense):
    a, b = defense.evaluations
    assert evaluations.lock_evaluation(a.id).status == "locked"
    evaluations.submit_evaluation(b.id)
    b = evaluations.lock_evaluation(b.id)
    assert b.status == "locked"
    assert b.locked_at is not None


def test_lock_on_locked_is_a_noop(defense):
    ev = evaluations.lock_evaluation(defense.evaluations[0].id)
    locked_at = ev.locked_at
    ev = evaluations.lock_evaluation(ev.id)
    assert ev.status == "locked"
    assert ev.locked_at == locked_at
    assert AuditLog.query.filter_by(action="evaluation_locked", entity_id=ev.id).count() == 1


def test_submit_on_locked_raises(defense):
    ev = evaluations.lock_evaluation(defense.evaluations[0].id)
    with pytest.raises(LockedError):
        evaluations.submit_evaluation(ev.id)


def test_status_never_moves_backwards(defense):
    ev = evaluations.submit_evaluation(defense.evaluations[0].id)
    with pytest.raises(ConflictError):
        evaluations.set_status(ev.id, "pending")
    assert evaluations.get_evaluation(ev.id).status == "submitted"

    evaluations.lock_evaluation(ev.id)
    with pytest.raises(LockedError):
        evaluations.set_status(ev.id, "submitted")


def test_set_status_rejects_unknown_value(defense):
    with pytest.raises(ValidationError):
        evaluations.set_status(defense.evaluations[0].id, "archived")


def test_concurrent_transition_is_a_conflict(defense):
    ev = evaluations.get_evaluation(defense.evaluations[0].id)
    assert ev.status == "pending"
    # another writer locks the row; the loaded object still says pending
    db.session.execute(text("UPDATE evaluations SET status = 'locked' WHERE id = :id"), {"id": ev.id})
    with pytest.raises(ConflictError):
        lifecycle.submit(ev, "Evaluation")


def test_edits_blocked_once_locked(defense):
    ev = evaluations.lock_evaluation(defense.evaluations[0].id)
    with pytest.raises(LockedError):
        evaluations.upsert_score(ev.id, defense.content.id, 5)
    with pytest.raises(LockedError):
        evaluations.save_extras(ev.id, {"group": {"score": 90}})


def _lock_behind_session(ev):
    # status is read before the row changes underneath it
    assert ev.status == "pending"
    db.session.execute(text("UPDATE evaluations SET status = 'locked' WHERE id = :id"), {"id": ev.id})


@pytest.mark.parametrize("write", [
    lambda d, ev: evaluations.upsert_score(ev.id, d.content.id, 5),
    lambda d, ev: evaluations.bulk_upsert_scores(ev.id, [{"criterionId": d.content.id, "score": 5},
                                                         {"criterionId": d.delivery.id, "score": 6}]),
    lambda d, ev: evaluations.save_extras(ev.id, {"group": {"score": 90}}),
], ids=["upsert", "bulk", "extras"])
def test_writes_refuse_a_row_locked_after_load(defense, write):
    from thesis_eval.models.evaluation import Evaluation, EvaluationExtras, EvaluationScore
    ev = db.session.get(Evaluation, defense.evaluations[0].id)
    _lock_behind_session(ev)
    with pytest.raises(LockedError):
        write(defense, ev)
    assert EvaluationScore.query.count() == 0
    assert EvaluationExtras.query.count() == 0


def test_module_source_compiles_without_escape_warnings():
    import inspect
    import warnings
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(inspect.getsource(lifecycle), lifecycle.__file__, "exec")
