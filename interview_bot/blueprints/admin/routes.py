import csv
import io
from datetime import datetime

from flask import current_app, request
from flask_login import current_user
from sqlalchemy import func, or_

from . import bp
from ...errors import ModelValidationError, NotFoundError, ValidationError
from ...extensions import db, rq
from ...jobs import notify
from ...models.interview import Interview
from ...models.question_bank import QuestionBank
from ...models.report import Report
from ...models.user import ROLES, User
from ...services.interviews import build_interview
from ...utils.decorators import admin_required
from ...utils.http import json_body, paginate, success

BULK_DEFAULT_PASSWORD = "changeme123"
CSV_TYPES = ("text/csv", "application/csv")

# optional profile columns accepted by bulk upload: row key -> User attribute
BULK_FIELDS = {
    "phone": "phone",
    "location": "location",
    "education": "education",
}


@admin_required
def _admin_gate():
    return None


@bp.before_request
def _require_admin():
    # CORS preflights carry no credentials
    if request.method != "OPTIONS":
        _admin_gate()


def _bulk_rows():
    if request.is_json:
        rows = request.get_json(silent=True)
        if not isinstance(rows, list):
            raise ValidationError("Expected a JSON array of users")
        return rows
    try:
        if request.mimetype in CSV_TYPES:
            text = request.get_data().decode("utf-8-sig")
        elif request.files.get("file"):
            text = request.files["file"].read().decode("utf-8-sig")
        else:
            raise ValidationError("Unsupported content type")
        return list(csv.DictReader(io.StringIO(text)))
    except (UnicodeDecodeError, csv.Error) as e:
        current_app.logger.warning("Bulk upload rejected unreadable CSV: %s", e)
        raise ValidationError("Invalid CSV file")


@bp.post("/bulk-upload")
def bulk_upload():
    created, skipped = [], []
    for row in _bulk_rows():
        if not isinstance(row, dict):
            continue
        email = str(row.get("email") or "").strip().lower()
        first_name = str(row.get("firstName") or "").strip()
        last_name = str(row.get("lastName") or "").strip()
        if not (email and first_name and last_name):
            continue
        if email in created or User.query.filter_by(email=email).first():
            skipped.append(email)
            continue
        try:
            user = User(email=email, first_name=first_name, last_name=last_name, role="candidate")
            for key, attr in BULK_FIELDS.items():
                if row.get(key):
                    setattr(user, attr, str(row[key]).strip())
            user.set_password(str(row.get("password") or BULK_DEFAULT_PASSWORD))
        except ModelValidationError as e:
            current_app.logger.warning("Bulk upload skipped %s: %s", email, e.message)
            skipped.append(email)
            continue
        db.session.add(user)
        created.append(email)
    db.session.commit()
    current_app.logger.info("Admin %s bulk-created %d users (%d skipped)", current_user.id, len(created), len(skipped))
    return success({"created": created, "skipped": skipped}, "Users created")


@bp.post("/assign-interview")
def assign_interview():
    payload = json_body()
    candidate_ids = payload.get("candidateIds")
    template = payload.get("interview")
    if not isinstance(candidate_ids, list) or not candidate_ids or not isinstance(template, dict):
        raise ValidationError("candidateIds and interview required")

    interviews, missing = [], []
    for raw_id in candidate_ids:
        if not isinstance(raw_id, int) or isinstance(raw_id, bool):
            raise ValidationError("Invalid ID format")
        candidate = db.session.get(User, raw_id)
        if candidate is None:
            missing.append(raw_id)
            continue
        settings = template.get("settings") if isinstance(template.get("settings"), dict) else {}
        interviews.append(build_interview(
            candidate,
            title=template.get("title"),
            position=template.get("position"),
            difficulty=template.get("difficulty") or "medium",
            type=template.get("type") or "mixed",
            description=template.get("description"),
            company=template.get("company"),
            role_description=template.get("roleDescription"),
            settings=settings,
            recruiter=current_user._get_current_object(),
            use_ai=bool(template.get("useAI")),
        ))
    db.session.commit()

    for interview in interviews:
        rq.enqueue(notify.notify_interview_scheduled, interview.id)
    return success({"created": [i.id for i in interviews], "missing": missing}, "Interviews assigned")


@bp.get("/users")
def list_users():
    query = User.query
    role = request.args.get("role")
    if role:
        if role not in ROLES:
            raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
        query = query.filter(User.role == role)
    term = (request.args.get("search") or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(or_(User.email.ilike(pattern), User.first_name.ilike(pattern),
                                 User.last_name.ilike(pattern)))
    items, pagination = paginate(query.order_by(User.created_at.desc(), User.id.desc()), default_limit=20)
    return success({"users": [u.to_dict() for u in items], "pagination": pagination})


@bp.patch("/users/<int:user_id>")
def update_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    payload = json_body()
    if "role" in payload:
        user.role = payload["role"]
    if "subscriptionPlan" in payload:
        user.subscription_plan = payload["subscriptionPlan"]
    if "subscriptionStatus" in payload:
        user.subscription_status = payload["subscriptionStatus"]
    if "subscriptionEnd" in payload:
        try:
            user.subscription_end = datetime.fromisoformat(str(payload["subscriptionEnd"]).replace("Z", ""))
        except ValueError:
            raise ValidationError("Validation failed",
                                  errors=[{"field": "subscriptionEnd", "message": "subscriptionEnd must be an ISO date"}])
    if "isEmailVerified" in payload:
        user.is_email_verified = bool(payload["isEmailVerified"])
    db.session.commit()
    current_app.logger.info("Admin %s updated user %s", current_user.id, user.id)
    return success({"user": user.to_dict()}, "User updated successfully")


@bp.get("/stats")
def stats():
    by_status = dict(db.session.query(Interview.status, func.count(Interview.id)).group_by(Interview.status).all())
    avg_score = (db.session.query(func.avg(Interview.overall_score))
                 .filter(Interview.status == "completed").scalar())
    by_role = dict(db.session.query(User.role, func.count(User.id)).group_by(User.role).all())
    return success({
        "users": {"total": User.query.count(), "byRole": by_role},
        "interviews": {"total": Interview.query.count(), "byStatus": by_status},
        "reports": {"total": Report.query.count()},
        "questions": {"total": QuestionBank.query.count(), "active": QuestionBank.active().count()},
        "averageScore": round(avg_score) if avg_score is not None else 0,
    })
