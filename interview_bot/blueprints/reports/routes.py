from datetime import datetime, time
from io import BytesIO

from flask import current_app, request, send_file
from flask_login import current_user, login_required

from . import bp
from ...errors import NotFoundError, PermissionDeniedError, ValidationError
from ...extensions import db, rq
from ...jobs.reports import email_report
from ...models.interview import Interview
from ...models.report import REPORT_TYPES, Report
from ...services.reports import (delete_report, generate_interview_report,
                                 generate_performance_report, report_pdf_bytes)
from ...utils.decorators import plan_limit
from ...utils.http import json_body, paginate, success

STAFF_ROLES = ("admin", "recruiter")


def _can_view(candidate_id):
    return candidate_id == current_user.id or current_user.role in STAFF_ROLES


def _get_report(report_id):
    report = db.session.get(Report, report_id)
    if not report:
        raise NotFoundError("Report not found")
    if not _can_view(report.candidate_id):
        raise PermissionDeniedError("Access denied")
    return report


def _parse_date(payload, key, end_of_day=False):
    raw = payload.get(key)
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(str(raw).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise ValidationError("Validation failed", errors=[{"field": key, "message": f"{key} must be an ISO date"}])
    # a bare date as end bound covers the whole day
    if end_of_day and len(str(raw)) == 10:
        value = datetime.combine(value.date(), time.max)
    return value


@bp.get("")
@login_required
def list_reports():
    candidate_id = current_user.id
    if current_user.role in STAFF_ROLES and request.args.get("candidateId"):
        candidate_id = request.args.get("candidateId", type=int)
    query = Report.query.filter(Report.candidate_id == candidate_id)
    report_type = request.args.get("type")
    if report_type:
        if report_type not in REPORT_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(REPORT_TYPES)}")
        query = query.filter(Report.type == report_type)
    items, pagination = paginate(query.order_by(Report.generated_at.desc(), Report.id.desc()))
    return success({"reports": [r.to_dict() for r in items], "pagination": pagination})


@bp.get("/stats")
@login_required
def report_stats():
    return success({"stats": Report.summary_stats(current_user.id)})


@bp.post("/interview/<int:interview_id>")
@login_required
def create_interview_report(interview_id):
    interview = db.session.get(Interview, interview_id)
    if not interview:
        raise NotFoundError("Interview not found")
    if not _can_view(interview.candidate_id):
        raise PermissionDeniedError("Access denied")
    if interview.status != "completed":
        raise ValidationError("Interview must be completed before generating a report")

    existing = Report.query.filter_by(interview_id=interview.id, type="interview").first()
    if existing:
        return success({"report": existing.to_dict()}, "Report already generated")
    report = generate_interview_report(interview)
    db.session.commit()
    return success({"report": report.to_dict()}, "Report generated successfully", 201)


@bp.post("/performance")
@login_required
@plan_limit("reports")
def create_performance_report():
    payload = json_body()
    start = _parse_date(payload, "startDate")
    end = _parse_date(payload, "endDate", end_of_day=True)
    if start and end and start > end:
        raise ValidationError("startDate must be before endDate")
    report = generate_performance_report(current_user._get_current_object(), start, end)
    db.session.commit()
    return success({"report": report.to_dict()}, "Performance report generated successfully", 201)


@bp.get("/<int:report_id>")
@login_required
def get_report(report_id):
    return success({"report": _get_report(report_id).to_dict()})


@bp.get("/<int:report_id>/download")
@login_required
def download_report(report_id):
    report = _get_report(report_id)
    return send_file(BytesIO(report_pdf_bytes(report)), mimetype="application/pdf",
                     as_attachment=True, download_name=f"report_{report.id}.pdf")


@bp.post("/<int:report_id>/email")
@login_required
def send_report_email(report_id):
    report = _get_report(report_id)
    rq.enqueue(email_report, report.id)
    current_app.logger.info("Queued email for report %s", report.id)
    return success(message="Report will be sent to your email shortly")


@bp.delete("/<int:report_id>")
@login_required
def remove_report(report_id):
    report = _get_report(report_id)
    if report.candidate_id != current_user.id and current_user.role != "admin":
        raise PermissionDeniedError("Access denied")
    if report.interview is not None and report.type == "interview":
        report.interview.report_generated = False
        report.interview.report_url = None
    delete_report(report)
    db.session.commit()
    return success(message="Report deleted successfully")
