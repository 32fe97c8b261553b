from ..extensions import db
from .base import TimestampMixin


class Notification(db.Model, TimestampMixin):
    __tablename__ = "notifications"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True)
    type = db.Column(db.String(50))  # welcome/password_reset/interview_completed/...
    sent_to = db.Column(db.String(255))
    subject = db.Column(db.String(255))
    body = db.Column(db.Text)
    provider_message_id = db.Column(db.String(255))
    status = db.Column(db.String(20))  # sent/skipped
    sent_at = db.Column(db.DateTime)

    def __repr__(self) -> str:
        return f"<Notification id={self.id} type={self.type} sent_to={self.sent_to}>"
