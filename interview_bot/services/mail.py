import base64
import re

from flask import current_app, render_template
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (Attachment, Disposition, FileContent,
                                   FileName, FileType, Mail)

from ..models.report import grade_for


def html_to_text(html):
    text = re.sub(r"<(br|/p|/div|/h\d|/li)\s*/?>", "\n", html, flags=re.I)
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"[ \t]+", " ", text)
    return re.sub(r"\n\s*\n+", "\n\n", text).strip()


def _attachment(filename, content, mime="application/pdf"):
    return Attachment(FileContent(base64.b64encode(content).decode()),
                      FileName(filename), FileType(mime), Disposition("attachment"))


def send_email(to_email, subject, template, attachments=None, **context):
    """Render ``email/<template>.html`` and send it through SendGrid.

    Returns ``(status_code, message_id)``; ``(None, None)`` when mail is not
    configured, in which case the message is only logged.
    """
    context.setdefault("app_name", current_app.config["MAIL_FROM_NAME"])
    context.setdefault("frontend_url", current_app.config["FRONTEND_URL"])
    html = render_template(f"email/{template}.html", **context)

    api_key = current_app.config.get("SENDGRID_API_KEY")
    if not api_key:
        current_app.logger.info("SENDGRID_API_KEY not set; skipping %s email to %s", template, to_email)
        return None, None

    message = Mail(from_email=(current_app.config['MAIL_FROM'], current_app.config['MAIL_FROM_NAME']),
                   to_emails=to_email,
                   subject=subject,
                   html_content=html,
                   plain_text_content=html_to_text(html))
    for filename, content in attachments or []:
        message.add_attachment(_attachment(filename, content))

    resp = SendGridAPIClient(api_key=api_key).send(message)
    headers = getattr(resp, 'headers', None) or {}
    message_id = headers.get("X-Message-Id") if hasattr(headers, "get") else None
    current_app.logger.info("Sent %s email to %s (status %s)", template, to_email, resp.status_code)
    return resp.status_code, message_id


def send_welcome(user, verification_token=None):
    link = None
    if verification_token:
        link = f"{current_app.config['FRONTEND_URL']}/verify-email?token={verification_token}"
    return send_email(user.email, f"Welcome to {current_app.config['MAIL_FROM_NAME']}!", "welcome",
                      user=user, verification_link=link)


def send_password_reset(user, token):
    link = f"{current_app.config['FRONTEND_URL']}/reset-password?token={token}"
    return send_email(user.email, "Password Reset Request", "password_reset", user=user, reset_link=link)


def send_interview_scheduled(user, interview):
    return send_email(user.email, f"Interview Scheduled: {interview.title}", "interview_scheduled",
                      user=user, interview=interview)


def send_interview_completed(user, interview):
    score = interview.overall_score or 0
    return send_email(user.email, f"Interview Completed: {interview.title}", "interview_completed",
                      user=user, interview=interview, score=score, grade=grade_for(score))


def send_report(user, report, pdf_bytes=None):
    attachments = [(f"report-{report.id}.pdf", pdf_bytes)] if pdf_bytes else None
    return send_email(user.email, f"Your Interview Report: {report.title}", "report",
                      attachments=attachments, user=user, report=report)


def send_payment_confirmation(user, payment):
    return send_email(user.email, "Payment Confirmation", "payment_confirmation",
                      user=user, payment=payment)


def send_subscription_expiry(user, days_left):
    if days_left > 0:
        subject = f"Subscription Expiring in {days_left} Days"
    else:
        subject = "Your Subscription Has Expired"
    return send_email(user.email, subject, "subscription_expiry", user=user, days_left=days_left,
                      plan=user.subscription_plan.capitalize(),
                      renew_link=f"{current_app.config['FRONTEND_URL']}/subscription/renew")
