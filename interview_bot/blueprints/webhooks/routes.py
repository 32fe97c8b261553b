from flask import current_app, request

from . import bp
from ...extensions import db, limiter, rq
from ...jobs import notify
from ...services import payments
from ...utils.http import success


def _handle(source):
    event = request.get_json(silent=True)
    if not isinstance(event, dict):
        event = {}
    current_app.logger.info("Received %s webhook: %s", source, event.get("event") or event.get("type"))
    payment = payments.handle_webhook_event(event)
    if payment is not None:
        db.session.commit()
        rq.enqueue(notify.notify_payment_confirmation, payment.id)
    return success({"received": True}, f"{source.title()} webhook received")


@bp.post("/stripe")
@limiter.exempt
def stripe_webhook():
    return _handle("stripe")


@bp.post("/razorpay")
@limiter.exempt
def razorpay_webhook():
    return _handle("razorpay")
