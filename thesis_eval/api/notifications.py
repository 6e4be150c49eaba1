# thesis_eval/api/notifications.py
from flask import Blueprint
from flask_login import current_user, login_required

from ..services import notifications
from .common import flag, ok, param

bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@bp.route("", methods=["GET"])
@login_required
def index():
    total, unread, rows = notifications.list_notifications(current_user.id, unread_only=flag("unread"),
                                                           type=param("type"), limit=param("limit"),
                                                           offset=param("offset"))
    return ok(total=total, unread=unread, notifications=[n.to_dict() for n in rows])


@bp.route("/<notification_id>/read", methods=["POST"])
@login_required
def mark_read(notification_id):
    return ok(notification=notifications.mark_read(notification_id, current_user.id).to_dict())


@bp.route("/read-all", methods=["POST"])
@login_required
def mark_all_read():
    return ok(updated=notifications.mark_all_read(current_user.id))
