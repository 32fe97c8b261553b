from datetime import datetime

from sqlalchemy import Text, cast, func, or_
from sqlalchemy.orm import validates

from ..errors import ModelValidationError
from ..extensions import db
from .base import (TimestampMixin, check_choice, check_length, check_range,
                   check_required, isoformat)
from .interview import DIFFICULTIES, QUESTION_TYPES


def normalize_tags(tags):
    """Lowercase, trim and de-duplicate tags, keeping first-seen order."""
    seen = []
    for tag in tags or []:
        t = str(tag).strip().lower()
        if t and t not in seen:
            seen.append(t)
    return seen


class QuestionBank(db.Model, TimestampMixin):
    __tablename__ = "question_bank"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(500))
    category = db.Column(db.String(100), nullable=False, index=True)
    difficulty = db.Column(db.String(10), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False, index=True)
    question = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON)
    correct_answer = db.Column(db.Text)
    explanation = db.Column(db.String(1000))
    tags = db.Column(db.JSON, default=list)
    usage = db.Column(db.Integer, nullable=False, default=0)
    rating = db.Column(db.Float, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    last_used = db.Column(db.DateTime)

    @validates("title")
    def _validate_title(self, key, value):
        return check_length(key, check_required(key, value), 200)

    @validates("question")
    def _validate_question(self, key, value):
        return check_required(key, value)

    @validates("category")
    def _validate_category(self, key, value):
        return check_length(key, check_required(key, value), 100)

    @validates("description")
    def _validate_description(self, key, value):
        return check_length(key, value, 500)

    @validates("explanation")
    def _validate_explanation(self, key, value):
        return check_length(key, value, 1000)

    @validates("difficulty")
    def _validate_difficulty(self, key, value):
        return check_choice(key, value, DIFFICULTIES)

    @validates("type")
    def _validate_type(self, key, value):
        return check_choice(key, value, QUESTION_TYPES)

    @validates("usage")
    def _validate_usage(self, key, value):
        return check_range(key, value, 0)

    @validates("rating")
    def _validate_rating(self, key, value):
        return check_range(key, value, 0, 5)

    @validates("tags")
    def _validate_tags(self, key, value):
        if value is not None and not isinstance(value, (list, tuple)):
            raise ModelValidationError(key, "tags must be a list")
        return normalize_tags(value)

    @property
    def display_rating(self):
        return f"{(self.rating or 0):.1f}"

    def increment_usage(self):
        self.usage = (self.usage or 0) + 1
        self.last_used = datetime.utcnow()

    def update_rating(self, new_rating):
        if new_rating < 0 or new_rating > 5:
            raise ModelValidationError("rating", "rating must be between 0 and 5")
        current = self.rating or 0
        self.rating = round(((current + new_rating) / 2) * 10) / 10

    def add_tag(self, tag):
        # reassign so the JSON column is flagged dirty
        self.tags = list(self.tags or []) + [tag]

    def remove_tag(self, tag):
        t = str(tag).strip().lower()
        self.tags = [x for x in (self.tags or []) if x != t]

    # --- queries ---------------------------------------------------------

    @classmethod
    def active(cls):
        return cls.query.filter(cls.is_active.is_(True))

    @classmethod
    def popular(cls, limit=10):
        return cls.active().order_by(cls.usage.desc(), cls.rating.desc()).limit(limit).all()

    @classmethod
    def filtered_query(cls, category=None, difficulty=None, type=None, include_inactive=False):
        q = cls.query if include_inactive else cls.active()
        if category:
            q = q.filter(func.lower(cls.category) == category.lower())
        if difficulty:
            q = q.filter(cls.difficulty == difficulty)
        if type:
            q = q.filter(cls.type == type)
        return q.order_by(cls.rating.desc(), cls.usage.desc(), cls.id.asc())

    @classmethod
    def filtered(cls, category=None, difficulty=None, type=None, tags=None, limit=50):
        q = cls.filtered_query(category, difficulty, type)
        if not tags:
            return q.limit(limit).all()
        # JSON arrays are not portably indexable; match tags in Python
        wanted = set(normalize_tags(tags))
        return [row for row in q.all() if wanted & set(row.tags or [])][:limit]

    @classmethod
    def search_query(cls, term, include_inactive=False):
        pattern = f"%{term.strip()}%"
        q = cls.query if include_inactive else cls.active()
        return q.filter(or_(
            cls.title.ilike(pattern),
            cls.question.ilike(pattern),
            cls.description.ilike(pattern),
            # tags are stored as JSON text, so a substring match covers them too
            func.lower(cast(cls.tags, Text)).like(pattern.lower()),
        ))

    @classmethod
    def search(cls, term, limit=50):
        return cls.search_query(term).order_by(cls.rating.desc(), cls.usage.desc()).limit(limit).all()

    @classmethod
    def random_sample(cls, count=10, category=None, difficulty=None, type=None):
        q = cls.active()
        if category:
            q = q.filter(func.lower(cls.category) == category.lower())
        if difficulty:
            q = q.filter(cls.difficulty == difficulty)
        if type:
            q = q.filter(cls.type == type)
        return q.order_by(func.random()).limit(count).all()

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "difficulty": self.difficulty,
            "type": self.type,
            "question": self.question,
            "options": self.options or [],
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
            "tags": self.tags or [],
            "usage": self.usage,
            "rating": self.rating,
            "displayRating": self.display_rating,
            "isActive": bool(self.is_active),
            "createdBy": self.created_by,
            "lastUsed": isoformat(self.last_used),
            "createdAt": isoformat(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<QuestionBank id={self.id} title={self.title!r}>"
