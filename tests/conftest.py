import os
import sys
from types import SimpleNamespace

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from thesis_eval import create_app
from thesis_eval.extensions import db
from thesis_eval.models.user import User
from thesis_eval.services import evaluations, groups, rubrics, schedules

PASSWORD = "password123"


@pytest.fixture
def app():
    app = create_app('config.TestingConfig')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role="student", name=None, status="active"):
        counter["n"] += 1
        n = counter["n"]
        user = User(name=name or f"{role.title()} {n}", email=f"{role}{n}@example.edu",
                    role=role, status=status)
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def login(client):
    def _login(user, password=PASSWORD):
        resp = client.post("/auth/login", json={"email": user.email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return resp
    return _login


@pytest.fixture
def defense(make_user):
    """A "Defense Rubric" (Content/Delivery, 0..10, weight 1) bound to one
    scheduled defense of a two-student group with two panelists."""
    tpl = rubrics.create_template("Defense Rubric", version=1)
    content = rubrics.add_criterion(tpl.id, "Content", min_score=0, max_score=10, weight=1)
    delivery = rubrics.add_criterion(tpl.id, "Delivery", min_score=0, max_score=10, weight=1)

    students = [make_user("student", name="Ana Cruz"), make_user("student", name="Ben Reyes")]
    panel = [make_user("staff", name="Dr. Alpha"), make_user("panelist", name="Dr. Beta")]
    admin = make_user("admin", name="Registrar")

    group = groups.create_group("Smart Irrigation Monitor", program="BSCS", term="2025-2026 1st",
                                adviser_id=panel[0].id)
    for s in students:
        groups.add_member(group.id, s.id)
    sched = schedules.create_schedule(group.id, "2025-11-03T09:00:00", room="CCS Lab 1",
                                      rubric_template_id=tpl.id)
    for p in panel:
        schedules.add_panelist(sched.id, p.id)
    evs = evaluations.assign_panelists(sched.id)
    by_evaluator = {e.evaluator_id: e for e in evs}

    return SimpleNamespace(
        template=tpl, content=content, delivery=delivery,
        students=students, panel=panel, admin=admin,
        group=group, schedule=sched,
        evaluations=[by_evaluator[p.id] for p in panel],
    )


@pytest.fixture
def score(defense):
    """Score an evaluation of the defense fixture: score(ev, content, delivery)."""
    def _score(evaluation, content, delivery):
        return evaluations.bulk_upsert_scores(evaluation.id, [
            {"criterionId": defense.content.id, "score": content},
            {"criterionId": defense.delivery.id, "score": delivery},
        ])
    return _score
