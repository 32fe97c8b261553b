from datetime import datetime

from ..extensions import db
from ..models.interview import Interview
from ..models.notification import Notification
from ..models.payment import Payment
from ..models.user import User
from ..services import mail
from . import run_in_app_context


def _record(user, kind, subject, result):
    status_code, message_id = result
    n = Notification(user_id=user.id, type=kind, sent_to=user.email, subject=subject,
                     provider_message_id=message_id,
                     status="sent" if status_code else "skipped",
                     sent_at=datetime.utcnow())
    db.session.add(n)
    db.session.commit()
    return n.id


def _welcome(user_id, verification_token=None):
    user = db.session.get(User, user_id)
    if not user:
        return None
    return _record(user, "welcome", "Welcome", mail.send_welcome(user, verification_token))


def _password_reset(user_id, token):
    user = db.session.get(User, user_id)
    if not user:
        return None
    return _record(user, "password_reset", "Password Reset Request", mail.send_password_reset(user, token))


def _interview_scheduled(interview_id):
    interview = db.session.get(Interview, interview_id)
    if not interview:
        return None
    user = interview.candidate
    return _record(user, "interview_scheduled", f"Interview Scheduled: {interview.title}",
                   mail.send_interview_scheduled(user, interview))


def _interview_completed(interview_id):
    interview = db.session.get(Interview, interview_id)
    if not interview or interview.status != "completed":
        return None
    user = interview.candidate
    if not (user.preferences or {}).get("notifications", {}).get("email", True):
        return None
    return _record(user, "interview_completed", f"Interview Completed: {interview.title}",
                   mail.send_interview_completed(user, interview))


def _payment_confirmation(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        return None
    return _record(payment.user, "payment_confirmation", "Payment Confirmation",
                   mail.send_payment_confirmation(payment.user, payment))


def _subscription_expiry(user_id, days_left):
    user = db.session.get(User, user_id)
    if not user:
        return None
    kind = "subscription_expiry" if days_left > 0 else "subscription_expired"
    subject = f"Subscription Expiring in {days_left} Days" if days_left > 0 else "Your Subscription Has Expired"
    return _record(user, kind, subject, mail.send_subscription_expiry(user, days_left))


def notify_welcome(user_id: int, verification_token: str = None):
    return run_in_app_context(_welcome, user_id, verification_token)


def notify_password_reset(user_id: int, token: str):
    return run_in_app_context(_password_reset, user_id, token)


def notify_interview_scheduled(interview_id: int):
    return run_in_app_context(_interview_scheduled, interview_id)


def notify_interview_completed(interview_id: int):
    return run_in_app_context(_interview_completed, interview_id)


def notify_payment_confirmation(payment_id: int):
    return run_in_app_context(_payment_confirmation, payment_id)


def notify_subscription_expiry(user_id: int, days_left: int):
    return run_in_app_context(_subscription_expiry, user_id, days_left)
