from datetime import datetime, timedelta
from functools import wraps

from flask import current_app, g
from flask_login import current_user
from jose import ExpiredSignatureError, JWTError

from ..errors import AuthenticationError, PaymentRequiredError, PermissionDeniedError
from ..extensions import db
from .security import decode_token

USAGE_WINDOW = timedelta(days=30)


def token_from_request(req):
    header = req.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return req.args.get("token") or None


def load_user_from_request(req):
    """Flask-Login request loader: resolve the bearer token to a User.

    On failure the reason is left in ``g.auth_error`` for the unauthorized handler.
    """
    from ..models.user import User

    token = token_from_request(req)
    if not token:
        g.auth_error = "Access token required"
        return None
    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        g.auth_error = "Token expired"
        return None
    except JWTError:
        g.auth_error = "Invalid token"
        return None

    user_id = payload.get("userId")
    user = db.session.get(User, user_id) if isinstance(user_id, int) else None
    if user is None:
        g.auth_error = "Invalid token - user not found"
        return None
    if current_app.config.get("REQUIRE_EMAIL_VERIFICATION") and not user.is_email_verified:
        g.auth_error = "Email verification required"
        return None

    user.last_login = datetime.utcnow()
    db.session.commit()
    return user


def unauthorized():
    raise AuthenticationError(g.get("auth_error") or "Access token required")


def _require_login():
    if not current_user.is_authenticated:
        unauthorized()


def roles_required(*roles):
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            _require_login()
            if current_user.role not in roles:
                raise PermissionDeniedError("Insufficient permissions")
            return view(*args, **kwargs)
        return wrapped
    return decorator


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        _require_login()
        if getattr(current_user, "role", None) != "admin":
            raise PermissionDeniedError("Admin access required")
        return view(*args, **kwargs)
    return wrapped


def subscription_required(view):
    """Paid plans need an active, unexpired subscription; admins and free users pass."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        _require_login()
        user = current_user
        if user.role == "admin" or user.subscription_plan == "free":
            return view(*args, **kwargs)
        if not user.has_active_subscription():
            raise PaymentRequiredError("Active subscription required", data={
                "currentPlan": user.subscription_plan,
                "status": user.subscription_status,
                "endDate": user.subscription_end.isoformat() if user.subscription_end else None,
            })
        return view(*args, **kwargs)
    return wrapped


def monthly_usage(user, feature):
    from ..models.interview import Interview
    from ..models.report import Report

    since = datetime.utcnow() - USAGE_WINDOW
    if feature == "interviews":
        return Interview.query.filter(Interview.candidate_id == user.id,
                                      Interview.created_at >= since).count()
    if feature == "reports":
        return Report.query.filter(Report.candidate_id == user.id,
                                   Report.created_at >= since).count()
    raise ValueError(f"unknown feature: {feature}")


def plan_limit(feature):
    label = {"interviews": "interview", "reports": "report"}[feature]

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            _require_login()
            user = current_user
            limit = user.plan_limits()[feature]
            if user.role != "admin" and limit != -1:
                used = monthly_usage(user, feature)
                if used >= limit:
                    raise PaymentRequiredError(f"Monthly {label} limit reached", data={
                        "limit": limit,
                        "used": used,
                        "plan": user.subscription_plan,
                    })
            return view(*args, **kwargs)
        return wrapped
    return decorator
