from html import escape

from flask import current_app

from ..services.mail import send_mail

RESET_SUBJECT = "Reset your password"


def reset_link(token):
    base = (current_app.config.get('APP_BASE_URL') or '').rstrip('/')
    return f"{base}/auth/password/reset?token={token}"


def send_password_reset_email(to_email: str, name: str, token: str, ttl_minutes: int = 60):
    link = reset_link(token)
    html = (
        f"<p>Hello {escape(name or to_email)},</p>"
        f"<p>We received a request to reset your password. The link below is valid for "
        f"{int(ttl_minutes)} minutes and can be used once.</p>"
        f"<p><a href=\"{escape(link, quote=True)}\">Reset password</a></p>"
        f"<p>If you did not request this, you can ignore this email.</p>"
    )
    try:
        status, _ = send_mail(to_email, RESET_SUBJECT, html)
    except Exception:
        current_app.logger.exception('Password reset mail to %s failed', to_email)
        return None
    current_app.logger.info('Password reset mail to %s: status=%s', to_email, status)
    return status
