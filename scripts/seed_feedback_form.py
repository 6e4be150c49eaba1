"""Seed the default student feedback form and make it active.

Usage:
  python scripts/seed_feedback_form.py           # skips if any feedback form exists
  python scripts/seed_feedback_form.py --force   # adds it as a new active version
"""
import argparse
import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from thesis_eval import create_app
from thesis_eval.models.feedback_form import StudentFeedbackForm
from thesis_eval.services import feedback_forms

FORM_KEY = "student-feedback-v1"
FORM_TITLE = "Student Feedback Form"
FORM_DESCRIPTION = "Your feedback helps improve the thesis defense experience. Please answer honestly."


def rating(qid, label, low, high, required=True):
    return {"id": qid, "type": "rating", "label": label, "required": required,
            "scale": {"min": 1, "max": 5, "minLabel": low, "maxLabel": high}}


def text(qid, label):
    return {"id": qid, "type": "text", "label": label, "required": False, "maxLength": 1000}


SCHEMA = {"sections": [
    {"id": "overall", "title": "Overall Experience", "questions": [
        rating("overall_satisfaction", "Overall satisfaction with the defense process", "Poor", "Excellent"),
        rating("schedule_clarity", "Clarity of schedule, venue, and instructions", "Unclear", "Very clear"),
        rating("notification_timeliness", "Timeliness of announcements and schedule updates", "Late", "On time"),
        rating("time_management", "Time management during the defense", "Poor", "Excellent"),
        rating("venue_comfort", "Comfort and suitability of the venue", "Poor", "Excellent", required=False),
    ]},
    {"id": "preparation", "title": "Preparation & Support", "questions": [
        rating("rubric_clarity", "Clarity of the rubric shared before the defense", "Unclear", "Very clear"),
        rating("adviser_support", "Support from adviser prior to the defense", "Low", "High", required=False),
        rating("staff_support", "Support from staff in preparing requirements", "Low", "High", required=False),
    ]},
    {"id": "panel", "title": "Panel & Feedback Quality", "questions": [
        rating("feedback_helpfulness", "Helpfulness of panel feedback", "Not helpful", "Very helpful"),
        rating("feedback_fairness", "Fairness and professionalism of evaluation", "Unfair", "Very fair"),
        rating("feedback_clarity", "Clarity of comments and recommendations", "Unclear", "Very clear"),
        rating("respectful_environment", "Respectful and supportive environment", "Not respectful",
               "Very respectful"),
    ]},
    {"id": "facilities", "title": "Facilities & Logistics", "questions": [
        rating("venue_readiness", "Venue readiness (room, equipment, setup)", "Poor", "Excellent"),
        rating("audio_visual", "Audio/visual support and presentation setup", "Poor", "Excellent"),
    ]},
    {"id": "open_ended", "title": "Suggestions", "questions": [
        text("what_went_well", "What went well during the defense?"),
        text("what_to_improve", "What should be improved?"),
        text("other_comments", "Other comments"),
    ]},
]}


def seed(force=False):
    existing = StudentFeedbackForm.query.first()
    if existing is not None and not force:
        return existing, False
    form = feedback_forms.create_form(FORM_TITLE, SCHEMA, key=FORM_KEY, description=FORM_DESCRIPTION,
                                      active=True)
    return form, True


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--force', action='store_true')
    args = parser.parse_args(argv)

    app = create_app()
    with app.app_context():
        form, created = seed(force=args.force)
        if created:
            app.logger.info('Seeded feedback form %s v%s (%s)', form.key, form.version, form.id)
        else:
            app.logger.info('A feedback form is already present (%s)', form.id)
        print(form.id)


if __name__ == '__main__':
    main()
