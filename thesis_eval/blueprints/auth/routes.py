from flask import current_app, request
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError

from . import bp
from ...api.common import ok
from ...errors import ForbiddenError, ValidationError, error_response
from ...extensions import db
from ...services import accounts, audit
from .forms import ForgotPasswordForm, LoginForm, ResetPasswordForm

FORGOT_MESSAGE = "If an account exists for that email, a reset link has been sent."


def _form(cls):
    # JSON clients authenticate with the session cookie only; html forms keep CSRF
    return cls(meta={"csrf": not request.is_json})


def _first_error(form):
    for field, errors in form.errors.items():
        if errors:
            return f"{field}: {errors[0]}"
    return "Invalid request"


@bp.route("/login", methods=["POST"])
def login():
    form = _form(LoginForm)
    if not form.validate_on_submit():
        raise ValidationError(_first_error(form))
    user = accounts.find_user_by_email(form.email.data)
    if user is None or not user.check_password(form.password.data):
        return error_response("Invalid credentials", 401, "invalid_credentials")
    if not user.is_active:
        raise ForbiddenError("Account is disabled")
    login_user(user, remember=bool(form.remember.data))
    audit.record("user_logged_in", "user", user.id, {}, actor_id=user.id)
    return ok(user=user.to_dict())


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    user_id = current_user.id
    logout_user()
    audit.record("user_logged_out", "user", user_id, {}, actor_id=user_id)
    return ok()


@bp.route("/me", methods=["GET"])
@login_required
def me():
    return ok(user=current_user.to_dict())


@bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    form = _form(ForgotPasswordForm)
    if form.validate_on_submit():
        try:
            accounts.request_password_reset(form.email.data)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception('Password reset request failed')
    return ok(message=FORGOT_MESSAGE)


@bp.route("/reset-password", methods=["POST"])
def reset_password():
    form = _form(ResetPasswordForm)
    if not form.validate_on_submit():
        raise ValidationError(_first_error(form))
    accounts.reset_password(form.token.data, form.password.data)
    return ok(message="Password updated. You can now sign in.")
