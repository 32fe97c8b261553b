from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models.interview import Interview
from ..models.notification import Notification
from ..models.report import Report
from ..services import mail
from ..services.reports import generate_interview_report, report_pdf_bytes
from . import run_in_app_context


def _generate_for_interview(interview_id):
    interview = db.session.get(Interview, interview_id)
    if not interview or interview.status != "completed":
        return None
    if interview.report_generated:
        existing = Report.query.filter_by(interview_id=interview.id, type="interview").first()
        if existing:
            return existing.id
    report = generate_interview_report(interview)
    db.session.commit()
    current_app.logger.info("Generated report %s for interview %s", report.id, interview.id)
    return report.id


def _email_report(report_id):
    report = db.session.get(Report, report_id)
    if not report:
        return None
    user = report.candidate
    status_code, message_id = mail.send_report(user, report, report_pdf_bytes(report))
    n = Notification(user_id=user.id, type="report", sent_to=user.email,
                     subject=f"Your Interview Report: {report.title}",
                     provider_message_id=message_id,
                     status="sent" if status_code else "skipped",
                     sent_at=datetime.utcnow())
    db.session.add(n)
    db.session.commit()
    return n.id


def generate_report_for_interview(interview_id: int):
    return run_in_app_context(_generate_for_interview, interview_id)


def email_report(report_id: int):
    return run_in_app_context(_email_report, report_id)
