from datetime import datetime, timedelta

from flask_login import UserMixin
from sqlalchemy.orm import validates
from werkzeug.security import check_password_hash, generate_password_hash

from ..errors import ModelValidationError
from ..extensions import db
from .base import (TimestampMixin, check_choice, check_length, check_pattern,
                   check_range, check_required, isoformat)

ROLES = ("candidate", "admin", "recruiter")
PLANS = ("free", "basic", "premium", "enterprise")
SUBSCRIPTION_STATUSES = ("active", "cancelled", "expired")

# per-month allowances; -1 means unlimited, storage is in GB
PLAN_LIMITS = {
    "free": {"interviews": 5, "reports": 5, "storage": 1},
    "basic": {"interviews": 50, "reports": 50, "storage": 5},
    "premium": {"interviews": 200, "reports": 200, "storage": 20},
    "enterprise": {"interviews": -1, "reports": -1, "storage": 100},
}

EMAIL_RE = r"^[^@\s]+@[^@\s]+\.[^@\s]{2,}$"
PHONE_RE = r"^\+?[\d\s\-\(\)]+$"
LINKEDIN_RE = r"^https?://(www\.)?linkedin\.com/in/[\w-]+/?$"
GITHUB_RE = r"^https?://(www\.)?github\.com/[\w-]+/?$"

DEFAULT_PREFERENCES = {
    "language": "en",
    "timezone": "UTC",
    "notifications": {"email": True, "sms": False, "push": True},
}


def _default_subscription_end():
    return datetime.utcnow() + timedelta(days=30)


def _default_preferences():
    return {**DEFAULT_PREFERENCES, "notifications": dict(DEFAULT_PREFERENCES["notifications"])}


class User(db.Model, UserMixin, TimestampMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="candidate", index=True)

    # profile
    avatar = db.Column(db.String(500))
    phone = db.Column(db.String(30))
    date_of_birth = db.Column(db.Date)
    location = db.Column(db.String(100))
    skills = db.Column(db.JSON, default=list)
    experience = db.Column(db.Integer)  # years
    education = db.Column(db.String(500))
    resume = db.Column(db.String(500))
    linkedin_profile = db.Column(db.String(255))
    github_profile = db.Column(db.String(255))

    # verification / reset
    is_email_verified = db.Column(db.Boolean, nullable=False, default=False)
    email_verification_token = db.Column(db.String(128), index=True)
    password_reset_token = db.Column(db.String(128), index=True)
    password_reset_expires = db.Column(db.DateTime)
    last_login = db.Column(db.DateTime)

    # subscription
    subscription_plan = db.Column(db.String(20), nullable=False, default="free")
    subscription_status = db.Column(db.String(20), nullable=False, default="active")
    subscription_start = db.Column(db.DateTime, default=datetime.utcnow)
    subscription_end = db.Column(db.DateTime, default=_default_subscription_end)
    billing_customer_id = db.Column(db.String(255))
    billing_subscription_id = db.Column(db.String(255))

    preferences = db.Column(db.JSON, default=_default_preferences)

    interviews = db.relationship("Interview", foreign_keys="Interview.candidate_id",
                                 back_populates="candidate", lazy="dynamic")

    @validates("email")
    def _validate_email(self, key, value):
        value = check_required(key, value).lower()
        return check_pattern(key, value, EMAIL_RE, "Please enter a valid email")

    @validates("first_name", "last_name")
    def _validate_name(self, key, value):
        return check_length(key, check_required(key, value), 50)

    @validates("role")
    def _validate_role(self, key, value):
        return check_choice(key, value, ROLES)

    @validates("phone")
    def _validate_phone(self, key, value):
        return check_pattern(key, value, PHONE_RE, "Please enter a valid phone number")

    @validates("location")
    def _validate_location(self, key, value):
        return check_length(key, value, 100)

    @validates("education")
    def _validate_education(self, key, value):
        return check_length(key, value, 500)

    @validates("experience")
    def _validate_experience(self, key, value):
        return check_range(key, value, 0, 50)

    @validates("linkedin_profile")
    def _validate_linkedin(self, key, value):
        return check_pattern(key, value, LINKEDIN_RE, "Please enter a valid LinkedIn profile URL")

    @validates("github_profile")
    def _validate_github(self, key, value):
        return check_pattern(key, value, GITHUB_RE, "Please enter a valid GitHub profile URL")

    @validates("subscription_plan")
    def _validate_plan(self, key, value):
        return check_choice(key, value, PLANS)

    @validates("subscription_status")
    def _validate_subscription_status(self, key, value):
        return check_choice(key, value, SUBSCRIPTION_STATUSES)

    @validates("skills")
    def _validate_skills(self, key, value):
        if value is None:
            return []
        if not isinstance(value, list):
            raise ModelValidationError(key, "skills must be a list")
        return [str(s).strip() for s in value if str(s).strip()]

    def set_password(self, raw):
        if not raw or len(raw) < 8:
            raise ModelValidationError("password", "Password must be at least 8 characters")
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw):
        return check_password_hash(self.password_hash, raw or "")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self):
        return self.role == "admin"

    def has_active_subscription(self):
        return (self.subscription_status == "active"
                and self.subscription_end is not None
                and self.subscription_end > datetime.utcnow())

    def plan_limits(self):
        return dict(PLAN_LIMITS.get(self.subscription_plan, PLAN_LIMITS["free"]))

    def subscription_dict(self):
        return {
            "plan": self.subscription_plan,
            "status": self.subscription_status,
            "startDate": isoformat(self.subscription_start),
            "endDate": isoformat(self.subscription_end),
        }

    def to_dict(self):
        """Public representation; never includes the password hash or tokens."""
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "fullName": self.full_name,
            "role": self.role,
            "avatar": self.avatar,
            "phone": self.phone,
            "dateOfBirth": isoformat(self.date_of_birth),
            "location": self.location,
            "skills": self.skills or [],
            "experience": self.experience,
            "education": self.education,
            "resume": self.resume,
            "linkedinProfile": self.linkedin_profile,
            "githubProfile": self.github_profile,
            "isEmailVerified": bool(self.is_email_verified),
            "lastLogin": isoformat(self.last_login),
            "subscription": self.subscription_dict(),
            "preferences": self.preferences or _default_preferences(),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"
