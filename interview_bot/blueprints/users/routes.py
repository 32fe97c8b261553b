from flask_login import current_user, login_required

from . import bp
from .forms import ProfileForm, ResumeAnalysisForm
from ...errors import ValidationError
from ...extensions import db
from ...models.interview import Interview
from ...models.user import DEFAULT_PREFERENCES
from ...services import resume
from ...utils.decorators import monthly_usage
from ...utils.http import json_body, paginate, success

# form field -> User attribute
PROFILE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "phone": "phone",
    "dateOfBirth": "date_of_birth",
    "location": "location",
    "experience": "experience",
    "education": "education",
    "linkedinProfile": "linkedin_profile",
    "githubProfile": "github_profile",
}


@bp.get("/profile")
@login_required
def get_profile():
    return success({"user": current_user.to_dict()})


@bp.put("/profile")
@login_required
def update_profile():
    payload = json_body()
    form = ProfileForm().validate_or_raise()
    user = current_user
    for field, attr in PROFILE_FIELDS.items():
        if field in payload:
            setattr(user, attr, getattr(form, field).data)
    if "skills" in payload:
        user.skills = payload["skills"]
    db.session.commit()
    return success({"user": user.to_dict()}, "Profile updated successfully")


@bp.put("/preferences")
@login_required
def update_preferences():
    payload = json_body()
    current = dict(current_user.preferences or DEFAULT_PREFERENCES)
    for key in ("language", "timezone"):
        if key in payload:
            if not isinstance(payload[key], str) or not payload[key].strip():
                raise ValidationError("Validation failed",
                                      errors=[{"field": key, "message": f"{key} must be a string"}])
            current[key] = payload[key].strip()
    if "notifications" in payload:
        if not isinstance(payload["notifications"], dict):
            raise ValidationError("Validation failed",
                                  errors=[{"field": "notifications", "message": "notifications must be an object"}])
        notifications = dict(current.get("notifications") or DEFAULT_PREFERENCES["notifications"])
        for channel in ("email", "sms", "push"):
            if channel in payload["notifications"]:
                notifications[channel] = bool(payload["notifications"][channel])
        current["notifications"] = notifications
    # reassign so the JSON column is flagged dirty
    current_user.preferences = current
    db.session.commit()
    return success({"preferences": current_user.preferences}, "Preferences updated successfully")


@bp.get("/subscription")
@login_required
def subscription():
    user = current_user
    return success({
        "subscription": user.subscription_dict(),
        "isActive": user.has_active_subscription(),
        "limits": user.plan_limits(),
        "usage": {
            "interviews": monthly_usage(user, "interviews"),
            "reports": monthly_usage(user, "reports"),
        },
    })


@bp.get("/assigned-interviews")
@login_required
def assigned_interviews():
    query = (Interview.query
             .filter(Interview.candidate_id == current_user.id, Interview.recruiter_id.isnot(None))
             .order_by(Interview.created_at.desc()))
    items, pagination = paginate(query)
    return success({"interviews": [i.to_dict() for i in items], "pagination": pagination})


@bp.post("/resume-analysis")
@login_required
def analyze_resume():
    form = ResumeAnalysisForm().validate_or_raise()
    analysis = resume.analyze_user_resume(current_user)
    match = None
    if form.roleDescription.data:
        match = resume.match_skills_to_role(analysis, form.roleDescription.data)
    if form.updateSkills.data and analysis["skills"]:
        known = {s.lower() for s in current_user.skills or []}
        current_user.skills = list(current_user.skills or []) + [s for s in analysis["skills"]
                                                                 if s.lower() not in known]
        db.session.commit()
    return success({"analysis": analysis, "skillMatch": match, "user": current_user.to_dict()},
                   "Resume analyzed successfully")
