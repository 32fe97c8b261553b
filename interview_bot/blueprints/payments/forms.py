from wtforms import StringField
from wtforms.validators import AnyOf, DataRequired, Length, Optional

from ...models.payment import BILLING_PERIODS, PAID_PLANS
from ...utils.http import ApiForm


class OrderForm(ApiForm):
    plan = StringField("Plan", validators=[DataRequired(message="Plan is required"), AnyOf(PAID_PLANS)])
    billingPeriod = StringField("Billing period", validators=[
        DataRequired(message="Billing period is required"), AnyOf(BILLING_PERIODS)])
    couponCode = StringField("Coupon", validators=[Optional(), Length(max=50)])


class VerifyForm(ApiForm):
    orderId = StringField("Order", validators=[DataRequired(message="orderId is required")])
    paymentId = StringField("Payment", validators=[DataRequired(message="paymentId is required")])
    signature = StringField("Signature", validators=[DataRequired(message="signature is required")])


class RefundForm(ApiForm):
    reason = StringField("Reason", validators=[Optional(), Length(max=500)])


class CancelForm(ApiForm):
    reason = StringField("Reason", validators=[Optional(), Length(max=500)])
