import math

from flask import request
from flask_login import current_user, login_required

from . import bp
from .forms import QuestionForm, QuestionUpdateForm, RatingForm, TagForm
from ...errors import NotFoundError, PermissionDeniedError, ValidationError
from ...extensions import db
from ...models.question_bank import QuestionBank
from ...utils.decorators import admin_required, roles_required
from ...utils.http import json_body, page_args, paginate, success

STAFF_ROLES = ("admin", "recruiter")

# form field -> QuestionBank attribute
QUESTION_FIELDS = {
    "title": "title",
    "description": "description",
    "category": "category",
    "difficulty": "difficulty",
    "type": "type",
    "question": "question",
    "correctAnswer": "correct_answer",
    "explanation": "explanation",
}


def _is_staff():
    return current_user.role in STAFF_ROLES


def _get_question(question_id):
    question = db.session.get(QuestionBank, question_id)
    if not question or (not question.is_active and not _is_staff()):
        raise NotFoundError("Question not found")
    return question


def _check_editor(question):
    if not _is_staff() and question.created_by != current_user.id:
        raise PermissionDeniedError("Insufficient permissions")


def _list_payload(payload, key):
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationError("Validation failed", errors=[{"field": key, "message": f"{key} must be a list"}])
    return value


@bp.get("")
@login_required
def list_questions():
    include_inactive = _is_staff() and request.args.get("includeInactive") == "true"
    term = (request.args.get("q") or "").strip()
    if term:
        query = QuestionBank.search_query(term, include_inactive=include_inactive).order_by(
            QuestionBank.rating.desc(), QuestionBank.usage.desc(), QuestionBank.id.asc())
    else:
        query = QuestionBank.filtered_query(request.args.get("category"), request.args.get("difficulty"),
                                            request.args.get("type"), include_inactive=include_inactive)

    tags = [t for t in (request.args.get("tags") or "").split(",") if t.strip()]
    if not tags:
        items, pagination = paginate(query)
    else:
        wanted = {t.strip().lower() for t in tags}
        rows = [row for row in query.all() if wanted & set(row.tags or [])]
        page, limit = page_args()
        items = rows[(page - 1) * limit:page * limit]
        pagination = {"page": page, "limit": limit, "total": len(rows),
                      "pages": math.ceil(len(rows) / limit)}
    return success({"questions": [q.to_dict() for q in items], "pagination": pagination})


@bp.get("/popular")
@login_required
def popular_questions():
    limit = min(max(request.args.get("limit", default=10, type=int) or 10, 1), 50)
    return success({"questions": [q.to_dict() for q in QuestionBank.popular(limit)]})


@bp.get("/random")
@login_required
def random_questions():
    count = min(max(request.args.get("count", default=5, type=int) or 5, 1), 50)
    rows = QuestionBank.random_sample(count, category=request.args.get("category"),
                                      difficulty=request.args.get("difficulty"),
                                      type=request.args.get("type"))
    return success({"questions": [q.to_dict() for q in rows]})


@bp.get("/<int:question_id>")
@login_required
def get_question(question_id):
    return success({"question": _get_question(question_id).to_dict()})


@bp.post("")
@roles_required(*STAFF_ROLES)
def create_question():
    payload = json_body()
    form = QuestionForm().validate_or_raise()
    question = QuestionBank(created_by=current_user.id)
    for field, attr in QUESTION_FIELDS.items():
        setattr(question, attr, getattr(form, field).data or None)
    question.tags = _list_payload(payload, "tags") or []
    question.options = _list_payload(payload, "options")
    db.session.add(question)
    db.session.commit()
    return success({"question": question.to_dict()}, "Question created successfully", 201)


@bp.put("/<int:question_id>")
@login_required
def update_question(question_id):
    question = _get_question(question_id)
    _check_editor(question)
    payload = json_body()
    form = QuestionUpdateForm().validate_or_raise()
    for field, attr in QUESTION_FIELDS.items():
        if field in payload:
            setattr(question, attr, getattr(form, field).data or None)
    if "tags" in payload:
        question.tags = _list_payload(payload, "tags") or []
    if "options" in payload:
        question.options = _list_payload(payload, "options")
    if "isActive" in payload and _is_staff():
        question.is_active = bool(payload["isActive"])
    db.session.commit()
    return success({"question": question.to_dict()}, "Question updated successfully")


@bp.delete("/<int:question_id>")
@admin_required
def delete_question(question_id):
    question = _get_question(question_id)
    question.is_active = False
    db.session.commit()
    return success(message="Question deactivated successfully")


@bp.post("/<int:question_id>/rate")
@login_required
def rate_question(question_id):
    question = _get_question(question_id)
    form = RatingForm().validate_or_raise()
    question.update_rating(form.rating.data)
    db.session.commit()
    return success({"rating": question.rating, "displayRating": question.display_rating},
                   "Question rated successfully")


@bp.post("/<int:question_id>/tags")
@login_required
def add_tag(question_id):
    question = _get_question(question_id)
    _check_editor(question)
    form = TagForm().validate_or_raise()
    question.add_tag(form.tag.data)
    db.session.commit()
    return success({"tags": question.tags}, "Tag added successfully")


@bp.delete("/<int:question_id>/tags/<tag>")
@login_required
def remove_tag(question_id, tag):
    question = _get_question(question_id)
    _check_editor(question)
    question.remove_tag(tag)
    db.session.commit()
    return success({"tags": question.tags}, "Tag removed successfully")
