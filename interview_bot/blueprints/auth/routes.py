from datetime import datetime

from flask import current_app
from flask_login import current_user, login_required
from jose import JWTError

from . import bp
from .forms import (ChangePasswordForm, ForgotPasswordForm, LoginForm, RefreshForm,
                    RegisterForm, ResetPasswordForm, TokenForm)
from ...errors import ApiError, AuthenticationError, ConflictError, ValidationError
from ...extensions import db, limiter, rq
from ...jobs import notify
from ...models.user import User
from ...utils.http import success
from ...utils.security import decode_refresh_token, generate_token, issue_tokens, random_token

AUTH_LIMIT = "20 per 15 minutes"


@bp.post("/register")
@limiter.limit(AUTH_LIMIT)
def register():
    form = RegisterForm().validate_or_raise()
    email = form.email.data.strip().lower()
    if User.query.filter_by(email=email).first():
        raise ConflictError("User already exists with this email")

    # admins are only created by seeding or by another admin
    role = form.role.data or "candidate"
    if role == "admin":
        role = "candidate"

    token = random_token()
    user = User(email=email, first_name=form.firstName.data.strip(),
                last_name=form.lastName.data.strip(), role=role,
                email_verification_token=token)
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("Registered user %s (%s)", user.id, user.role)

    rq.enqueue(notify.notify_welcome, user.id, token)
    return success({"user": user.to_dict(), "tokens": issue_tokens(user)},
                   "User registered successfully", 201)


@bp.post("/login")
@limiter.limit(AUTH_LIMIT)
def login():
    form = LoginForm().validate_or_raise()
    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if not user or not user.check_password(form.password.data):
        raise AuthenticationError("Invalid credentials")
    user.last_login = datetime.utcnow()
    db.session.commit()
    return success({"user": user.to_dict(), "tokens": issue_tokens(user)}, "Login successful")


@bp.post("/refresh")
def refresh():
    form = RefreshForm().validate_or_raise()
    try:
        payload = decode_refresh_token(form.refreshToken.data)
    except JWTError:
        raise AuthenticationError("Invalid refresh token")
    user_id = payload.get("userId")
    user = db.session.get(User, user_id) if isinstance(user_id, int) else None
    if payload.get("type") != "refresh" or user is None:
        raise AuthenticationError("Invalid refresh token")
    return success({"accessToken": generate_token(user.id)}, "Token refreshed successfully")


@bp.post("/verify-email")
def verify_email():
    form = TokenForm().validate_or_raise()
    user = User.query.filter_by(email_verification_token=form.token.data).first()
    if not user:
        raise ValidationError("Invalid or expired verification token")
    user.is_email_verified = True
    user.email_verification_token = None
    db.session.commit()
    return success(message="Email verified successfully")


@bp.post("/forgot-password")
@limiter.limit(AUTH_LIMIT)
def forgot_password():
    form = ForgotPasswordForm().validate_or_raise()
    message = "If an account with that email exists, a password reset link has been sent"
    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if not user:
        return success(message=message)

    token = random_token()
    user.password_reset_token = token
    user.password_reset_expires = datetime.utcnow() + current_app.config["PASSWORD_RESET_EXPIRES"]
    db.session.commit()

    # sent in-request: a failed send must clear the token
    try:
        notify.notify_password_reset(user.id, token)
    except Exception:
        current_app.logger.exception("Password reset email to user %s failed", user.id)
        user.password_reset_token = None
        user.password_reset_expires = None
        db.session.commit()
        raise ApiError("Failed to send password reset email", 500)
    return success(message=message)


@bp.post("/reset-password")
@limiter.limit(AUTH_LIMIT)
def reset_password():
    form = ResetPasswordForm().validate_or_raise()
    user = User.query.filter(User.password_reset_token == form.token.data,
                             User.password_reset_expires > datetime.utcnow()).first()
    if not user:
        raise ValidationError("Invalid or expired reset token")
    user.set_password(form.password.data)
    user.password_reset_token = None
    user.password_reset_expires = None
    db.session.commit()
    return success(message="Password reset successfully")


@bp.post("/change-password")
@login_required
def change_password():
    form = ChangePasswordForm().validate_or_raise()
    if not current_user.check_password(form.currentPassword.data):
        raise ValidationError("Current password is incorrect")
    current_user.set_password(form.newPassword.data)
    db.session.commit()
    return success(message="Password changed successfully")


@bp.get("/me")
@login_required
def me():
    return success({"user": current_user.to_dict()})


@bp.post("/logout")
@login_required
def logout():
    # tokens are stateless; the client discards them
    return success(message="Logout successful")
