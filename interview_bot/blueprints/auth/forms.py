from wtforms import PasswordField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, Length, Optional

from ...utils.http import ApiForm


class RegisterForm(ApiForm):
    email = StringField("Email", validators=[DataRequired(), Email(message="Please provide a valid email")])
    password = PasswordField("Password", validators=[
        DataRequired(), Length(min=8, message="Password must be at least 8 characters long")])
    firstName = StringField("First name", validators=[
        DataRequired(message="First name is required"), Length(max=50)])
    lastName = StringField("Last name", validators=[
        DataRequired(message="Last name is required"), Length(max=50)])
    role = StringField("Role", validators=[Optional(), AnyOf(["candidate", "admin", "recruiter"])])


class LoginForm(ApiForm):
    email = StringField("Email", validators=[DataRequired(), Email(message="Please provide a valid email")])
    password = PasswordField("Password", validators=[DataRequired(message="Password is required")])


class RefreshForm(ApiForm):
    refreshToken = StringField("Refresh token", validators=[DataRequired(message="Refresh token is required")])


class TokenForm(ApiForm):
    token = StringField("Token", validators=[DataRequired(message="Token is required")])


class ForgotPasswordForm(ApiForm):
    email = StringField("Email", validators=[DataRequired(), Email(message="Please provide a valid email")])


class ResetPasswordForm(ApiForm):
    token = StringField("Token", validators=[DataRequired(message="Reset token is required")])
    password = PasswordField("Password", validators=[
        DataRequired(), Length(min=8, message="Password must be at least 8 characters long")])


class ChangePasswordForm(ApiForm):
    currentPassword = PasswordField("Current password", validators=[
        DataRequired(message="Current password is required")])
    newPassword = PasswordField("New password", validators=[
        DataRequired(), Length(min=8, message="New password must be at least 8 characters long")])
