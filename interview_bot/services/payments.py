"""Subscription pricing and the (mock-only) payment provider.

Real gateways are not wired up. With ``PAYMENT_PROVIDER=disabled`` every
payment operation raises ``ServiceUnavailableError``; with ``mock`` orders
are created and verified locally so the subscription flow can be exercised.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta

from flask import current_app

from ..errors import ConflictError, ServiceUnavailableError, ValidationError
from ..extensions import db
from ..models.payment import BILLING_PERIODS, PAID_PLANS, Payment

# minor units (cents)
PLAN_PRICES = {
    "basic": {"monthly": 999, "yearly": 9999},
    "premium": {"monthly": 1999, "yearly": 19999},
    "enterprise": {"monthly": 4999, "yearly": 49999},
}
COUPON_DISCOUNT = 0.9
PERIOD_LENGTH = {"monthly": timedelta(days=30), "yearly": timedelta(days=365)}


def provider():
    return current_app.config.get("PAYMENT_PROVIDER", "disabled")


def ensure_enabled():
    if provider() != "mock":
        raise ServiceUnavailableError("Payment processing is currently disabled")


def plan_catalogue():
    from ..models.user import PLAN_LIMITS
    return [
        {"plan": plan, "prices": PLAN_PRICES[plan], "currency": "USD", "limits": PLAN_LIMITS[plan]}
        for plan in PAID_PLANS
    ]


def price_for(plan, billing_period, coupon_code=None):
    if plan not in PLAN_PRICES:
        raise ValidationError(f"Unknown plan: {plan}")
    if billing_period not in BILLING_PERIODS:
        raise ValidationError(f"Unknown billing period: {billing_period}")
    amount = PLAN_PRICES[plan][billing_period]
    if coupon_code:
        amount = round(amount * COUPON_DISCOUNT)
    return amount


def mock_signature(order_id, payment_id):
    secret = current_app.config["SECRET_KEY"].encode()
    return hmac.new(secret, f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def create_order(user, plan, billing_period, coupon_code=None):
    ensure_enabled()
    amount = price_for(plan, billing_period, coupon_code)
    order_id = f"mock_order_{secrets.token_hex(8)}"
    payment = Payment(
        user_id=user.id,
        amount=amount,
        currency="USD",
        status="pending",
        payment_method="mock",
        payment_intent_id=order_id,
        plan=plan,
        billing_period=billing_period,
        description=f"{plan} subscription - {billing_period}",
        payment_metadata={"couponCode": coupon_code} if coupon_code else {},
    )
    db.session.add(payment)
    db.session.flush()
    current_app.logger.info("Created mock order %s for user %s (%s/%s)", order_id, user.id, plan, billing_period)
    return payment


def apply_subscription(user, payment):
    now = datetime.utcnow()
    user.subscription_plan = payment.plan
    user.subscription_status = "active"
    user.subscription_start = now
    user.subscription_end = now + PERIOD_LENGTH[payment.billing_period]
    user.billing_subscription_id = payment.payment_intent_id


def complete_payment(payment, provider_payment_id=None):
    if payment.status == "completed":
        return payment
    if payment.status != "pending":
        raise ConflictError(f"Payment is already {payment.status}")
    payment.status = "completed"
    meta = dict(payment.payment_metadata or {})
    if provider_payment_id:
        meta["providerPaymentId"] = provider_payment_id
    payment.payment_metadata = meta
    apply_subscription(payment.user, payment)
    return payment


def verify_payment(user, order_id, payment_id, signature):
    ensure_enabled()
    payment = Payment.query.filter_by(payment_intent_id=order_id, user_id=user.id).first()
    if payment is None:
        raise ValidationError("Unknown order")
    if not hmac.compare_digest(mock_signature(order_id, payment_id), signature or ""):
        # a bad signature never changes the payment: a pending order can still be verified
        current_app.logger.warning("Signature mismatch for order %s (user %s, status %s)",
                                   order_id, user.id, payment.status)
        raise ValidationError("Payment verification failed")
    return complete_payment(payment, payment_id)


def cancel_subscription(user, reason=None):
    """Stop the caller's paid subscription; the plan is kept for the record."""
    ensure_enabled()
    if user.subscription_plan == "free" or user.subscription_status != "active":
        raise ValidationError("No active subscription to cancel")
    current_app.logger.info("User %s cancelled %s subscription %s (%s)", user.id, user.subscription_plan,
                            user.billing_subscription_id, reason or "no reason given")
    user.subscription_status = "cancelled"
    user.billing_subscription_id = None
    return user


def refund(payment, reason=None):
    ensure_enabled()
    if not payment.can_be_refunded():
        raise ValidationError("Payment cannot be refunded")
    payment.refund_reason = reason
    payment.status = "refunded"
    user = payment.user
    if user.billing_subscription_id == payment.payment_intent_id:
        user.subscription_plan = "free"
        user.subscription_status = "cancelled"
    return payment


def handle_webhook_event(event):
    """Apply a provider event and return the completed Payment, if any.

    Only the mock provider acts on events.
    """
    if provider() != "mock":
        return None
    if event.get("event") != "payment.captured":
        return None
    entity = ((event.get("payload") or {}).get("payment") or {}).get("entity") or {}
    order_id = entity.get("order_id")
    payment = Payment.query.filter_by(payment_intent_id=order_id).first() if order_id else None
    if payment is None or payment.status != "pending":
        return None
    return complete_payment(payment, entity.get("id"))
