"""Seed the CCS Thesis Form 3-C rubric template.

Usage:
  python scripts/seed_rubric.py           # skips if a template with the same name exists
  python scripts/seed_rubric.py --force   # adds another copy as a new version
"""
import argparse
import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from thesis_eval import create_app
from thesis_eval.models.rubric import RubricTemplate
from thesis_eval.services import rubrics

TEMPLATE_NAME = "CCS Thesis Form 3-C"
TEMPLATE_DESCRIPTION = "Oral defense evaluation: four criteria of equal weight, scored 1 to 5."

CRITERIA = [
    ("Presentation", "Organization, clarity and delivery of the oral presentation."),
    ("Content and Mastery", "Command of the study, its methods and its results."),
    ("Responses to Questions", "Accuracy and confidence when answering the panel."),
    ("System / Output", "Completeness and quality of the developed system or output."),
]

SCALE = [
    (5, "Professional / Accomplished"),
    (4, "Competent"),
    (3, "Developing"),
    (2, "Needs Improvement"),
    (1, "Absent / Very Poor"),
]


def seed(force=False):
    existing = (RubricTemplate.query.filter_by(name=TEMPLATE_NAME)
                .order_by(RubricTemplate.version.desc()).first())
    if existing is not None and not force:
        return existing, False
    if existing is not None:
        return rubrics.clone_template(existing.id), True

    tpl = rubrics.create_template(TEMPLATE_NAME, description=TEMPLATE_DESCRIPTION)
    for criterion, description in CRITERIA:
        rubrics.add_criterion(tpl.id, criterion, description=description, weight=25, min_score=1, max_score=5)
    rubrics.set_scale_levels(tpl.id, [{"score": s, "adjectival": label} for s, label in SCALE])
    return tpl, True


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--force', action='store_true')
    args = parser.parse_args(argv)

    app = create_app()
    with app.app_context():
        tpl, created = seed(force=args.force)
        if created:
            app.logger.info('Seeded rubric %s v%s (%s)', tpl.name, tpl.version, tpl.id)
        else:
            app.logger.info('Rubric %s already present (%s)', tpl.name, tpl.id)
        print(tpl.id)


if __name__ == '__main__':
    main()
