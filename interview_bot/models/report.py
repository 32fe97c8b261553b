from datetime import datetime

from sqlalchemy.orm import validates

from ..extensions import db
from .base import (TimestampMixin, check_choice, check_length,
                   check_required, isoformat)

REPORT_TYPES = ("interview", "performance", "analytics")

GRADE_BANDS = ((90, "A+"), (80, "A"), (70, "B"), (60, "C"), (50, "D"))


def grade_for(score):
    score = score or 0
    for floor, grade in GRADE_BANDS:
        if score >= floor:
            return grade
    return "F"


def format_seconds(total):
    total = int(total or 0)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def empty_data():
    return {
        "summary": {"totalQuestions": 0, "correctAnswers": 0, "averageScore": 0, "totalTime": 0},
        "sections": [],
        "recommendations": [],
        "nextSteps": [],
    }


class Report(db.Model, TimestampMixin):
    __tablename__ = "reports"

    id = db.Column(db.Integer, primary_key=True)
    interview_id = db.Column(db.Integer, db.ForeignKey("interviews.id", ondelete="SET NULL"), index=True)
    candidate_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    recruiter_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    type = db.Column(db.String(20), nullable=False, default="interview")
    title = db.Column(db.String(200), nullable=False)
    data = db.Column(db.JSON, default=empty_data)
    file_url = db.Column(db.String(500))
    generated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    interview = db.relationship("Interview")
    candidate = db.relationship("User", foreign_keys=[candidate_id])

    @validates("type")
    def _validate_type(self, key, value):
        return check_choice(key, value, REPORT_TYPES)

    @validates("title")
    def _validate_title(self, key, value):
        return check_length(key, check_required(key, value), 200)

    @validates("data")
    def _validate_data(self, key, value):
        merged = empty_data()
        merged.update(value or {})
        summary = {**empty_data()["summary"], **(merged.get("summary") or {})}
        # correct answers can never exceed the number of questions
        if summary["correctAnswers"] > summary["totalQuestions"]:
            summary["correctAnswers"] = summary["totalQuestions"]
        merged["summary"] = summary
        return merged

    # JSON columns only persist on reassignment, so every mutator copies

    def _set(self, key, value):
        data = dict(self.data or empty_data())
        data[key] = value
        self.data = data

    @property
    def summary(self):
        return (self.data or empty_data())["summary"]

    @property
    def sections(self):
        return (self.data or empty_data())["sections"]

    @property
    def performance_grade(self):
        return grade_for(self.summary.get("averageScore"))

    @property
    def formatted_total_time(self):
        return format_seconds(self.summary.get("totalTime"))

    @property
    def accuracy_percentage(self):
        total = self.summary.get("totalQuestions") or 0
        if not total:
            return 0
        return round(self.summary.get("correctAnswers", 0) / total * 100)

    def add_section(self, title, content, score=None, charts=None, tables=None):
        section = {"title": title, "content": content, "score": score,
                   "charts": charts or [], "tables": tables or []}
        self._set("sections", list(self.sections) + [section])

    def add_recommendation(self, text):
        self._set("recommendations", list((self.data or empty_data())["recommendations"]) + [text])

    def add_next_step(self, text):
        self._set("nextSteps", list((self.data or empty_data())["nextSteps"]) + [text])

    def sections_by_title(self, term):
        term = term.lower()
        return [s for s in self.sections if term in s.get("title", "").lower()]

    def overall_performance(self):
        scored = [s["score"] for s in self.sections if s.get("score") is not None]
        if scored:
            return round(sum(scored) / len(scored))
        return self.summary.get("averageScore", 0)

    @classmethod
    def summary_stats(cls, candidate_id):
        reports = (cls.query.filter_by(candidate_id=candidate_id)
                   .order_by(cls.generated_at.desc(), cls.id.desc()).all())
        if not reports:
            return {"totalReports": 0, "averageScore": 0, "improvement": 0, "lastReportDate": None}
        scores = [r.summary.get("averageScore", 0) for r in reports]
        improvement = scores[0] - scores[1] if len(scores) > 1 else 0
        return {
            "totalReports": len(reports),
            "averageScore": round(sum(scores) / len(scores)),
            "improvement": improvement,
            "lastReportDate": isoformat(reports[0].generated_at),
        }

    def to_dict(self):
        return {
            "id": self.id,
            "interviewId": self.interview_id,
            "candidateId": self.candidate_id,
            "recruiterId": self.recruiter_id,
            "type": self.type,
            "title": self.title,
            "data": self.data or empty_data(),
            "performanceGrade": self.performance_grade,
            "formattedTotalTime": self.formatted_total_time,
            "accuracyPercentage": self.accuracy_percentage,
            "fileUrl": self.file_url,
            "generatedAt": isoformat(self.generated_at),
            "createdAt": isoformat(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Report id={self.id} type={self.type} candidate_id={self.candidate_id}>"
