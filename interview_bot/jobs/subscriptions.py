import math
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db, rq
from ..models.notification import Notification
from ..models.user import User
from . import notify, run_in_app_context

SWEEP_JOB_ID = "subscription-sweep"


def _reminded(user):
    """True when an expiry reminder already went out for the current subscription period."""
    query = Notification.query.filter(Notification.user_id == user.id,
                                      Notification.type == "subscription_expiry")
    if user.subscription_start:
        query = query.filter(Notification.created_at >= user.subscription_start)
    return db.session.query(query.exists()).scalar()


def _sweep(now=None):
    now = now or datetime.utcnow()
    cutoff = now + timedelta(days=current_app.config["SUBSCRIPTION_REMINDER_DAYS"])
    paid = User.query.filter(User.subscription_plan != "free", User.subscription_status == "active",
                             User.subscription_end.isnot(None))

    expired = paid.filter(User.subscription_end <= now).all()
    for user in expired:
        user.subscription_status = "expired"
    db.session.commit()
    for user in expired:
        rq.enqueue(notify.notify_subscription_expiry, user.id, 0)

    reminded = []
    for user in paid.filter(User.subscription_end > now, User.subscription_end <= cutoff).all():
        if _reminded(user):
            continue
        days_left = max(1, math.ceil((user.subscription_end - now).total_seconds() / 86400))
        rq.enqueue(notify.notify_subscription_expiry, user.id, days_left)
        reminded.append(user.id)

    current_app.logger.info("Subscription sweep: %d expired, %d reminded", len(expired), len(reminded))
    return {"expired": [u.id for u in expired], "reminded": reminded}


def sweep_subscriptions(reschedule: bool = False):
    """Expire lapsed paid subscriptions and remind users whose plan ends soon.

    With ``reschedule`` the job queues its next run after SUBSCRIPTION_SWEEP_INTERVAL,
    which keeps one sweep chain alive on a worker started with the RQ scheduler.
    """
    def _run():
        result = _sweep()
        if reschedule:
            rq.enqueue_in(current_app.config["SUBSCRIPTION_SWEEP_INTERVAL"], sweep_subscriptions,
                          reschedule=True, job_id=SWEEP_JOB_ID)
        return result
    return run_in_app_context(_run)
