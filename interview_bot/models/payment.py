from datetime import datetime, timedelta

from sqlalchemy.orm import validates

from ..extensions import db
from .base import (TimestampMixin, check_choice, check_length, check_range,
                   check_required, isoformat)

CURRENCIES = ("USD", "EUR", "GBP", "INR", "CAD", "AUD")
CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "INR": "₹", "CAD": "CA$", "AUD": "A$"}
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")
PAYMENT_METHODS = ("stripe", "razorpay", "paypal", "mock")
PAID_PLANS = ("basic", "premium", "enterprise")
BILLING_PERIODS = ("monthly", "yearly")
REFUND_WINDOW = timedelta(days=30)


class Payment(db.Model, TimestampMixin):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)  # minor units (cents / paise)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(20), nullable=False)
    payment_intent_id = db.Column(db.String(255), unique=True, nullable=False)
    subscription_id = db.Column(db.String(255))
    plan = db.Column(db.String(20))
    billing_period = db.Column(db.String(20))
    description = db.Column(db.String(500), nullable=False)
    payment_metadata = db.Column("metadata", db.JSON)
    refund_reason = db.Column(db.String(500))
    refunded_at = db.Column(db.DateTime)

    user = db.relationship("User")

    @validates("amount")
    def _validate_amount(self, key, value):
        return check_range(key, value, 0)

    @validates("currency")
    def _validate_currency(self, key, value):
        return check_choice(key, (value or "").upper(), CURRENCIES)

    @validates("status")
    def _validate_status(self, key, value):
        check_choice(key, value, PAYMENT_STATUSES)
        if value == "refunded" and self.refunded_at is None:
            self.refunded_at = datetime.utcnow()
        return value

    @validates("payment_method")
    def _validate_method(self, key, value):
        return check_choice(key, value, PAYMENT_METHODS)

    @validates("plan")
    def _validate_plan(self, key, value):
        return check_choice(key, value, PAID_PLANS, allow_none=True)

    @validates("billing_period")
    def _validate_period(self, key, value):
        return check_choice(key, value, BILLING_PERIODS, allow_none=True)

    @validates("description")
    def _validate_description(self, key, value):
        return check_length(key, check_required(key, value), 500)

    @validates("refund_reason")
    def _validate_refund_reason(self, key, value):
        return check_length(key, value, 500)

    @property
    def formatted_amount(self):
        symbol = CURRENCY_SYMBOLS.get(self.currency, self.currency + " ")
        return f"{symbol}{self.amount / 100:,.2f}"

    @property
    def is_successful(self):
        return self.status == "completed"

    def can_be_refunded(self, now=None):
        now = now or datetime.utcnow()
        created = self.created_at or now
        return self.status == "completed" and now - created <= REFUND_WINDOW

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "amount": self.amount,
            "formattedAmount": self.formatted_amount,
            "currency": self.currency,
            "status": self.status,
            "paymentMethod": self.payment_method,
            "paymentIntentId": self.payment_intent_id,
            "subscriptionId": self.subscription_id,
            "plan": self.plan,
            "billingPeriod": self.billing_period,
            "description": self.description,
            "metadata": self.payment_metadata or {},
            "refundReason": self.refund_reason,
            "refundedAt": isoformat(self.refunded_at),
            "canBeRefunded": self.can_be_refunded(),
            "createdAt": isoformat(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Payment id={self.id} user_id={self.user_id} status={self.status}>"
