"""Create (or reactivate) the first admin account.

Usage:
  python scripts/create_admin.py --email admin@school.edu --name "Registrar" --password '...'

Values fall back to ADMIN_EMAIL / ADMIN_NAME / ADMIN_PASSWORD from the
environment (.env is loaded by config.py).
"""
import argparse
import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from thesis_eval import create_app
from thesis_eval.extensions import db
from thesis_eval.services import accounts


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--email', default=os.getenv('ADMIN_EMAIL'))
    parser.add_argument('--name', default=os.getenv('ADMIN_NAME', 'Administrator'))
    parser.add_argument('--password', default=os.getenv('ADMIN_PASSWORD'))
    args = parser.parse_args(argv)
    if not args.email or not args.password:
        parser.error('--email and --password (or ADMIN_EMAIL / ADMIN_PASSWORD) are required')

    app = create_app()
    with app.app_context():
        user = accounts.find_user_by_email(args.email)
        if user is None:
            user = accounts.create_user(args.name, args.email, args.password, role='admin')
            app.logger.info('Created admin %s (%s)', user.email, user.id)
        else:
            user.role = 'admin'
            user.status = 'active'
            user.set_password(args.password)
            db.session.commit()
            app.logger.info('Updated existing user %s to active admin', user.email)
        print(user.id)


if __name__ == '__main__':
    main()
