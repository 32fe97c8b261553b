from ..extensions import db
from .base import TimestampMixin, isoformat


class Upload(db.Model, TimestampMixin):
    __tablename__ = "uploads"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    kind = db.Column(db.String(20), nullable=False)  # resume/avatar/audio/document
    storage_url = db.Column(db.String(500), nullable=False)
    file_metadata = db.Column(db.JSON)  # {"filename": "cv.pdf", "size": 123456, "content_type": "application/pdf"}

    def to_dict(self):
        return {
            "id": self.id,
            "kind": self.kind,
            "url": self.storage_url,
            "metadata": self.file_metadata or {},
            "createdAt": isoformat(self.created_at),
        }
