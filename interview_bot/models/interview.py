from datetime import datetime, timedelta

from sqlalchemy import event
from sqlalchemy.orm import Session, validates

from ..errors import ModelValidationError
from ..extensions import db
from .base import (TimestampMixin, check_choice, check_length, check_range,
                   check_required, isoformat)

DIFFICULTIES = ("easy", "medium", "hard")
INTERVIEW_TYPES = ("technical", "behavioral", "mixed")
QUESTION_TYPES = ("multiple_choice", "coding", "open_ended", "behavioral")
STATUSES = ("scheduled", "in_progress", "completed", "cancelled")

# allowed status moves; completion also happens implicitly in the flush hook below
TRANSITIONS = {
    "scheduled": ("in_progress", "cancelled"),
    "in_progress": ("completed", "cancelled"),
    "completed": (),
    "cancelled": (),
}

DEFAULT_SETTINGS = {
    "enableVideo": True,
    "enableAudio": True,
    "enableScreenShare": False,
    "timeLimit": 3600,
    "questionsCount": 10,
    "voice": None,
}

SETTING_RANGES = {
    "timeLimit": (300, 7200),
    "questionsCount": (1, 50),
}


class Interview(db.Model, TimestampMixin):
    __tablename__ = "interviews"

    id = db.Column(db.Integer, primary_key=True)
    candidate_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    recruiter_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(1000))
    position = db.Column(db.String(100), nullable=False)
    company = db.Column(db.String(100))
    role_description = db.Column(db.Text)
    difficulty = db.Column(db.String(10), nullable=False, default="medium")
    type = db.Column(db.String(20), nullable=False, default="mixed")
    status = db.Column(db.String(20), nullable=False, default="scheduled", index=True)

    duration = db.Column(db.Integer)  # seconds actually spent
    scheduled_at = db.Column(db.DateTime)
    started_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)

    overall_score = db.Column(db.Float)
    feedback = db.Column(db.String(2000))
    feedback_audio_url = db.Column(db.String(500))
    ai_analysis = db.Column(db.JSON)
    resume_analysis = db.Column(db.JSON)
    recording_url = db.Column(db.String(500))
    transcription = db.Column(db.Text)
    report_generated = db.Column(db.Boolean, nullable=False, default=False)
    report_url = db.Column(db.String(500))
    settings = db.Column(db.JSON, default=lambda: dict(DEFAULT_SETTINGS))

    candidate = db.relationship("User", foreign_keys=[candidate_id], back_populates="interviews")
    recruiter = db.relationship("User", foreign_keys=[recruiter_id])
    questions = db.relationship("InterviewQuestion", back_populates="interview",
                                order_by="InterviewQuestion.order",
                                cascade="all, delete-orphan")
    responses = db.relationship("InterviewResponse", back_populates="interview",
                                order_by="InterviewResponse.id",
                                cascade="all, delete-orphan")

    @validates("title")
    def _validate_title(self, key, value):
        return check_length(key, check_required(key, value), 200)

    @validates("position")
    def _validate_position(self, key, value):
        return check_length(key, check_required(key, value), 100)

    @validates("description")
    def _validate_description(self, key, value):
        return check_length(key, value, 1000)

    @validates("company")
    def _validate_company(self, key, value):
        return check_length(key, value, 100)

    @validates("feedback")
    def _validate_feedback(self, key, value):
        return check_length(key, value, 2000)

    @validates("role_description")
    def _validate_role_description(self, key, value):
        return check_length(key, value, 5000)

    @validates("difficulty")
    def _validate_difficulty(self, key, value):
        return check_choice(key, value, DIFFICULTIES)

    @validates("type")
    def _validate_type(self, key, value):
        return check_choice(key, value, INTERVIEW_TYPES)

    @validates("status")
    def _validate_status(self, key, value):
        return check_choice(key, value, STATUSES)

    @validates("overall_score")
    def _validate_score(self, key, value):
        return check_range(key, value, 0, 100)

    @validates("settings")
    def _validate_settings(self, key, value):
        merged = dict(DEFAULT_SETTINGS)
        merged.update({k: v for k, v in (value or {}).items() if v is not None})
        for name, (lo, hi) in SETTING_RANGES.items():
            try:
                merged[name] = int(merged[name])
            except (TypeError, ValueError):
                raise ModelValidationError(f"settings.{name}", f"settings.{name} must be a number")
            check_range(f"settings.{name}", merged[name], lo, hi)
        return merged

    # --- lifecycle -------------------------------------------------------

    def can_transition(self, target):
        return target in TRANSITIONS.get(self.status, ())

    def start(self, now=None):
        self.status = "in_progress"
        self.started_at = now or datetime.utcnow()

    def sync_completion(self):
        """Mark the interview completed once every question has a response."""
        if (self.status == "in_progress" and self.questions
                and len(self.responses) == len(self.questions)):
            self.status = "completed"
            self.completed_at = datetime.utcnow()
            self.overall_score = self.calculate_overall_score()
            return True
        return False

    # --- derived values --------------------------------------------------

    @property
    def time_limit(self):
        return (self.settings or DEFAULT_SETTINGS)["timeLimit"]

    @property
    def average_response_time(self):
        if not self.responses:
            return 0
        return round(sum(r.time_taken or 0 for r in self.responses) / len(self.responses))

    @property
    def completion_percentage(self):
        if not self.questions:
            return 0
        return round(len(self.responses) / len(self.questions) * 100)

    def calculate_overall_score(self):
        scored = [r.score for r in self.responses if r.score is not None]
        if not scored:
            return 0
        return round(sum(scored) / len(scored))

    def is_expired(self, now=None):
        if not self.scheduled_at:
            return False
        now = now or datetime.utcnow()
        return self.scheduled_at + timedelta(seconds=self.time_limit) < now

    def remaining_time(self, now=None):
        if not self.started_at:
            return self.time_limit
        now = now or datetime.utcnow()
        elapsed = int((now - self.started_at).total_seconds())
        return max(0, self.time_limit - elapsed)

    def question_by_id(self, question_id):
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    def response_for(self, question):
        for r in self.responses:
            if r.question is question or (r.question_id is not None and r.question_id == question.id):
                return r
        return None

    def next_question(self):
        for q in self.questions:
            if self.response_for(q) is None:
                return q
        return None

    def progress(self):
        total = len(self.questions)
        answered = len(self.responses)
        return {
            "answered": answered,
            "total": total,
            "percentage": round(answered / total * 100) if total else 0,
        }

    def to_dict(self, detail=False):
        data = {
            "id": self.id,
            "candidateId": self.candidate_id,
            "recruiterId": self.recruiter_id,
            "title": self.title,
            "description": self.description,
            "position": self.position,
            "company": self.company,
            "difficulty": self.difficulty,
            "type": self.type,
            "status": self.status,
            "duration": self.duration,
            "scheduledAt": isoformat(self.scheduled_at),
            "startedAt": isoformat(self.started_at),
            "completedAt": isoformat(self.completed_at),
            "overallScore": self.overall_score,
            "reportGenerated": bool(self.report_generated),
            "reportUrl": self.report_url,
            "settings": self.settings or dict(DEFAULT_SETTINGS),
            "questionsCount": len(self.questions),
            "completionPercentage": self.completion_percentage,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
        if detail:
            reveal = self.status == "completed"
            data.update({
                "feedback": self.feedback,
                "feedbackAudioUrl": self.feedback_audio_url,
                "aiAnalysis": self.ai_analysis,
                "roleDescription": self.role_description,
                "resumeAnalysis": self.resume_analysis,
                "recordingUrl": self.recording_url,
                "transcription": self.transcription,
                "averageResponseTime": self.average_response_time,
                "remainingTime": self.remaining_time(),
                "isExpired": self.is_expired(),
                "questions": [q.to_dict(reveal_answer=reveal) for q in self.questions],
                "responses": [r.to_dict() for r in self.responses],
            })
        return data

    def __repr__(self) -> str:
        return f"<Interview id={self.id} candidate_id={self.candidate_id} status={self.status}>"


class InterviewQuestion(db.Model):
    __tablename__ = "interview_questions"

    id = db.Column(db.Integer, primary_key=True)
    interview_id = db.Column(db.Integer, db.ForeignKey("interviews.id", ondelete="CASCADE"), nullable=False, index=True)
    bank_question_id = db.Column(db.Integer, db.ForeignKey("question_bank.id"))
    question = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), nullable=False, default="open_ended")
    difficulty = db.Column(db.String(10), nullable=False, default="medium")
    category = db.Column(db.String(100))
    expected_answer = db.Column(db.Text)
    options = db.Column(db.JSON)
    time_limit = db.Column(db.Integer, nullable=False, default=300)
    order = db.Column("sort_order", db.Integer, nullable=False, default=1)
    audio_url = db.Column(db.String(500))

    interview = db.relationship("Interview", back_populates="questions")

    @validates("question")
    def _validate_question(self, key, value):
        return check_required(key, value)

    @validates("type")
    def _validate_type(self, key, value):
        return check_choice(key, value, QUESTION_TYPES)

    @validates("difficulty")
    def _validate_difficulty(self, key, value):
        return check_choice(key, value, DIFFICULTIES)

    @validates("time_limit")
    def _validate_time_limit(self, key, value):
        return check_range(key, value, 30, 3600)

    @validates("order")
    def _validate_order(self, key, value):
        return check_range(key, value, 1)

    def to_dict(self, reveal_answer=False):
        data = {
            "id": self.id,
            "question": self.question,
            "type": self.type,
            "difficulty": self.difficulty,
            "category": self.category,
            "options": self.options or [],
            "timeLimit": self.time_limit,
            "order": self.order,
            "audioUrl": self.audio_url,
        }
        if reveal_answer:
            data["expectedAnswer"] = self.expected_answer
        return data


class InterviewResponse(db.Model):
    __tablename__ = "interview_responses"
    __table_args__ = (
        db.UniqueConstraint("interview_id", "question_id", name="uq_response_interview_question"),
    )

    id = db.Column(db.Integer, primary_key=True)
    interview_id = db.Column(db.Integer, db.ForeignKey("interviews.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey("interview_questions.id", ondelete="CASCADE"), nullable=False)
    answer = db.Column(db.Text, nullable=False)
    audio_url = db.Column(db.String(500))
    video_url = db.Column(db.String(500))
    transcription = db.Column(db.Text)
    time_taken = db.Column(db.Integer, nullable=False, default=0)  # seconds
    score = db.Column(db.Float)
    ai_evaluation = db.Column(db.JSON)
    submitted_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    interview = db.relationship("Interview", back_populates="responses")
    question = db.relationship("InterviewQuestion")

    @validates("answer")
    def _validate_answer(self, key, value):
        return check_required(key, value)

    @validates("time_taken")
    def _validate_time_taken(self, key, value):
        return check_range(key, value, 0)

    @validates("score")
    def _validate_score(self, key, value):
        return check_range(key, value, 0, 100)

    def to_dict(self):
        return {
            "id": self.id,
            "questionId": self.question_id if self.question_id is not None else getattr(self.question, "id", None),
            "answer": self.answer,
            "audioUrl": self.audio_url,
            "videoUrl": self.video_url,
            "transcription": self.transcription,
            "timeTaken": self.time_taken,
            "score": self.score,
            "aiEvaluation": self.ai_evaluation,
            "submittedAt": isoformat(self.submitted_at),
        }


@event.listens_for(Session, "before_flush")
def _complete_answered_interviews(session, flush_context, instances):
    touched = set()
    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, InterviewResponse) and obj.interview is not None:
            touched.add(obj.interview)
        elif isinstance(obj, Interview):
            touched.add(obj)
    for interview in touched:
        interview.sync_completion()
