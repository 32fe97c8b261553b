"""Interview assembly and completion shared by the candidate and admin routes."""

from datetime import datetime

from flask import current_app

from ..errors import ValidationError
from ..extensions import db, rq
from ..jobs import notify
from ..jobs.reports import generate_report_for_interview
from ..models.interview import Interview, InterviewQuestion
from ..models.question_bank import QuestionBank
from . import gemini, resume, tts


def _ai_questions(interview, count, skills=None, focus_areas=None):
    generated = gemini.generate_interview_questions(
        interview.position, interview.difficulty, interview.type, count,
        company=interview.company, skills=skills, focus_areas=focus_areas)
    return [InterviewQuestion(question=q["question"], type=q["type"], difficulty=q["difficulty"],
                              category=q["category"], expected_answer=q["expectedAnswer"],
                              options=q["options"], time_limit=q["timeLimit"])
            for q in generated]


def _resume_questions(interview, count, analysis):
    generated = resume.generate_role_specific_questions(analysis, interview.role_description, count,
                                                       interview.difficulty)
    return [InterviewQuestion(question=q["question"], type=q["type"], difficulty=q["difficulty"],
                              category=q["category"], expected_answer=q["expectedAnswer"],
                              time_limit=q["timeLimit"])
            for q in generated]


def _bank_questions(interview, count):
    category = "Behavioral" if interview.type == "behavioral" else None
    picked = QuestionBank.random_sample(count, category=category, difficulty=interview.difficulty)
    if len(picked) < count:
        # top up from the whole bank
        seen = {q.id for q in picked}
        extra = QuestionBank.random_sample(count * 2)
        picked += [q for q in extra if q.id not in seen][:count - len(picked)]
    out = []
    for bank in picked:
        bank.increment_usage()
        out.append(InterviewQuestion(bank_question_id=bank.id, question=bank.question, type=bank.type,
                                     difficulty=bank.difficulty, category=bank.category,
                                     expected_answer=bank.correct_answer, options=bank.options))
    return out


def build_interview(candidate, title, position, difficulty="medium", type="mixed", description=None,
                    company=None, scheduled_at=None, settings=None, recruiter=None,
                    use_ai=False, generate_audio=False, focus_areas=None, role_description=None,
                    resume_analysis=None):
    """Create a scheduled interview with its questions (not committed).

    Question sources, first non-empty wins: resume-specific questions (needs a
    resume analysis, a role description and Gemini), Gemini questions when
    ``use_ai`` is set, then the question bank.
    """
    interview = Interview(candidate=candidate, recruiter=recruiter, title=title, position=position,
                          difficulty=difficulty, type=type, description=description, company=company,
                          role_description=role_description, resume_analysis=resume_analysis,
                          scheduled_at=scheduled_at or datetime.utcnow(), settings=settings or {})
    count = interview.settings["questionsCount"]
    skills = list(candidate.skills or []) + list((resume_analysis or {}).get("skills") or [])

    questions = []
    if resume_analysis and role_description and gemini.is_configured():
        questions = _resume_questions(interview, count, resume_analysis)
    if not questions and use_ai and gemini.is_configured():
        questions = _ai_questions(interview, count, skills, focus_areas)
        if not questions:
            current_app.logger.warning("Gemini returned no questions; sampling the question bank")
    if not questions:
        questions = _bank_questions(interview, count)
    if not questions:
        raise ValidationError("No questions available for the selected criteria")

    for order, q in enumerate(questions, start=1):
        q.order = order
        interview.questions.append(q)

    if generate_audio:
        voice_settings = {"voice": interview.settings.get("voice")}
        for q, audio in zip(interview.questions, tts.batch_synthesize([q.question for q in questions],
                                                                       voice_settings)):
            if audio:
                q.audio_url = audio["audioUrl"]

    db.session.add(interview)
    return interview


def finalize_interview(interview):
    """Post-completion work: totals, AI analysis, feedback, then report and email jobs."""
    interview.completed_at = interview.completed_at or datetime.utcnow()
    interview.overall_score = interview.calculate_overall_score()
    interview.duration = sum(r.time_taken or 0 for r in interview.responses)
    interview.ai_analysis = gemini.generate_interview_analysis(interview)
    interview.feedback = gemini.generate_personalized_feedback(interview, interview.candidate)[:2000]
    db.session.commit()
    current_app.logger.info("Interview %s completed with score %s", interview.id, interview.overall_score)

    rq.enqueue(generate_report_for_interview, interview.id)
    rq.enqueue(notify.notify_interview_completed, interview.id)
    return interview
