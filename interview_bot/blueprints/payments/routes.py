import secrets

from flask import current_app
from flask_login import current_user, login_required

from . import bp
from .forms import CancelForm, OrderForm, RefundForm, VerifyForm
from ...errors import NotFoundError, PermissionDeniedError
from ...extensions import db, rq
from ...jobs import notify
from ...models.payment import Payment
from ...services import payments
from ...utils.http import paginate, success


@bp.get("/plans")
def list_plans():
    return success({"plans": payments.plan_catalogue(), "provider": payments.provider()})


@bp.get("")
@login_required
def payment_history():
    query = Payment.query.filter_by(user_id=current_user.id).order_by(Payment.created_at.desc(), Payment.id.desc())
    items, pagination = paginate(query)
    return success({"payments": [p.to_dict() for p in items], "pagination": pagination})


@bp.post("/create-order")
@login_required
def create_order():
    payments.ensure_enabled()
    form = OrderForm().validate_or_raise()
    payment = payments.create_order(current_user, form.plan.data, form.billingPeriod.data,
                                    form.couponCode.data or None)
    db.session.commit()

    # the mock checkout hands back what a real gateway would collect from the client
    payment_id = f"mock_pay_{secrets.token_hex(8)}"
    return success({
        "payment": payment.to_dict(),
        "order": {
            "id": payment.payment_intent_id,
            "amount": payment.amount,
            "currency": payment.currency,
        },
        "mockCheckout": {
            "paymentId": payment_id,
            "signature": payments.mock_signature(payment.payment_intent_id, payment_id),
        },
    }, "Order created successfully", 201)


@bp.post("/verify")
@login_required
def verify():
    payments.ensure_enabled()
    form = VerifyForm().validate_or_raise()
    payment = payments.verify_payment(current_user, form.orderId.data, form.paymentId.data,
                                      form.signature.data)
    db.session.commit()
    current_app.logger.info("Payment %s verified; user %s now on %s", payment.id, current_user.id, payment.plan)
    rq.enqueue(notify.notify_payment_confirmation, payment.id)
    return success({"payment": payment.to_dict(), "subscription": current_user.subscription_dict()},
                   "Payment verified successfully")


@bp.post("/<int:payment_id>/refund")
@login_required
def refund(payment_id):
    payments.ensure_enabled()
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    if payment.user_id != current_user.id and current_user.role != "admin":
        raise PermissionDeniedError("Access denied")
    form = RefundForm().validate_or_raise()
    payments.refund(payment, form.reason.data or None)
    db.session.commit()
    return success({"payment": payment.to_dict()}, "Payment refunded successfully")


@bp.post("/cancel-subscription")
@login_required
def cancel_subscription():
    payments.ensure_enabled()
    form = CancelForm().validate_or_raise()
    payments.cancel_subscription(current_user, form.reason.data or None)
    db.session.commit()
    return success({"subscription": current_user.subscription_dict(),
                    "isActive": current_user.has_active_subscription()},
                   "Subscription cancelled successfully")
