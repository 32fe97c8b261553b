from flask import current_app, request
from flask_login import current_user, login_required

from . import bp
from .forms import FollowUpForm, InterviewForm, ResponseForm, VoiceTestForm
from ...errors import (ConflictError, NotFoundError, PermissionDeniedError,
                       ValidationError)
from ...extensions import db, rq
from ...jobs import notify
from ...models.interview import STATUSES, Interview, InterviewResponse
from ...models.upload import Upload
from ...services import gemini, resume, stt, tts
from ...services.interviews import build_interview, finalize_interview
from ...utils.decorators import plan_limit, subscription_required
from ...utils.http import json_body, paginate, success

STAFF_ROLES = ("admin", "recruiter")
VOICE_TEST_TEXT = "Hello! This is a preview of the voice your interviewer will use."


def _get_interview(interview_id, owner_only=False):
    interview = db.session.get(Interview, interview_id)
    if not interview:
        raise NotFoundError("Interview not found")
    is_owner = interview.candidate_id == current_user.id
    if owner_only and not is_owner:
        raise PermissionDeniedError("Access denied")
    if not is_owner and current_user.role not in STAFF_ROLES:
        raise PermissionDeniedError("Access denied")
    return interview


def _resolve_question(interview, form):
    if form.questionId.data is not None:
        question = interview.question_by_id(form.questionId.data)
    elif form.questionIndex.data is not None and 0 <= form.questionIndex.data < len(interview.questions):
        question = interview.questions[form.questionIndex.data]
    else:
        question = None
    if question is None:
        raise ValidationError("Invalid question")
    return question


@bp.get("")
@login_required
def list_interviews():
    candidate_id = current_user.id
    if current_user.role in STAFF_ROLES and request.args.get("candidateId"):
        candidate_id = request.args.get("candidateId", type=int)
    query = Interview.query.filter(Interview.candidate_id == candidate_id)
    status = request.args.get("status")
    if status:
        if status not in STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")
        query = query.filter(Interview.status == status)
    items, pagination = paginate(query.order_by(Interview.created_at.desc(), Interview.id.desc()))
    return success({"interviews": [i.to_dict() for i in items], "pagination": pagination})


@bp.post("")
@login_required
@subscription_required
@plan_limit("interviews")
def create_interview():
    payload = json_body()
    form = InterviewForm().validate_or_raise()
    settings = dict(payload.get("settings") or {}) if isinstance(payload.get("settings"), dict) else {}
    if form.questionsCount.data:
        settings["questionsCount"] = form.questionsCount.data
    focus_areas = payload.get("focusAreas") if isinstance(payload.get("focusAreas"), list) else None
    analysis = resume.analyze_user_resume(current_user) if form.useResume.data else None

    interview = build_interview(
        current_user._get_current_object(),
        title=form.title.data.strip(),
        position=form.position.data.strip(),
        difficulty=form.difficulty.data or "medium",
        type=form.type.data or "mixed",
        description=form.description.data or None,
        company=form.company.data or None,
        scheduled_at=form.scheduledAt.data,
        settings=settings,
        use_ai=form.useAI.data,
        generate_audio=form.generateAudio.data,
        focus_areas=focus_areas,
        role_description=form.roleDescription.data or None,
        resume_analysis=analysis,
    )
    db.session.commit()
    current_app.logger.info("User %s created interview %s with %d questions",
                            current_user.id, interview.id, len(interview.questions))
    rq.enqueue(notify.notify_interview_scheduled, interview.id)
    return success({"interview": interview.to_dict(detail=True)}, "Interview created successfully", 201)


@bp.get("/<int:interview_id>")
@login_required
def get_interview(interview_id):
    interview = _get_interview(interview_id)
    return success({"interview": interview.to_dict(detail=True)})


@bp.post("/<int:interview_id>/start")
@login_required
def start_interview(interview_id):
    interview = _get_interview(interview_id, owner_only=True)
    if interview.status != "scheduled":
        raise ValidationError("Interview cannot be started")
    interview.start()
    db.session.commit()
    first = interview.next_question()
    return success({
        "interview": interview.to_dict(),
        "currentQuestion": first.to_dict() if first else None,
        "progress": interview.progress(),
    }, "Interview started successfully")


@bp.post("/<int:interview_id>/responses")
@login_required
def submit_response(interview_id):
    interview = _get_interview(interview_id, owner_only=True)
    if interview.status != "in_progress":
        raise ValidationError("Interview is not in progress")
    form = ResponseForm().validate_or_raise()
    question = _resolve_question(interview, form)
    if interview.response_for(question) is not None:
        raise ConflictError("Question already answered")

    answer = (form.answer.data or "").strip()
    audio_url = form.audioUrl.data or None
    transcription = None
    if audio_url:
        upload = Upload.query.filter_by(user_id=current_user.id, storage_url=audio_url).first()
        if not upload:
            raise ValidationError("Unknown audio file")
        if not answer:
            result = stt.transcribe_url(audio_url, filename=(upload.file_metadata or {}).get("filename"))
            transcription = result["transcription"]
            answer = transcription
    if not answer:
        raise ValidationError("Answer is required")

    evaluation = gemini.evaluate_response(question.question, answer, interview.position,
                                          question.expected_answer)
    response = InterviewResponse(question=question, answer=answer, audio_url=audio_url,
                                 video_url=form.videoUrl.data or None, transcription=transcription,
                                 time_taken=form.timeTaken.data or 0, score=evaluation["score"],
                                 ai_evaluation=evaluation)
    interview.responses.append(response)
    db.session.commit()

    # the flush hook completes the interview when this was the last answer
    if interview.status == "completed":
        finalize_interview(interview)

    upcoming = interview.next_question()
    return success({
        "response": response.to_dict(),
        "evaluation": evaluation,
        "nextQuestion": upcoming.to_dict() if upcoming else None,
        "progress": interview.progress(),
        "isComplete": interview.status == "completed",
    }, "Response submitted successfully", 201)


@bp.post("/<int:interview_id>/follow-up")
@login_required
def follow_up(interview_id):
    interview = _get_interview(interview_id, owner_only=True)
    form = FollowUpForm().validate_or_raise()
    question = _resolve_question(interview, form)
    response = interview.response_for(question)
    if response is None:
        raise ValidationError("Question has not been answered yet")
    questions = gemini.generate_follow_up_questions(question.question, response.answer,
                                                    interview.position, form.count.data or 2)
    return success({"questionId": question.id, "followUpQuestions": questions})


@bp.post("/<int:interview_id>/complete")
@login_required
def complete_interview(interview_id):
    interview = _get_interview(interview_id, owner_only=True)
    if not interview.can_transition("completed"):
        raise ValidationError("Interview cannot be completed")
    interview.status = "completed"
    finalize_interview(interview)
    return success({"interview": interview.to_dict(detail=True)}, "Interview completed successfully")


@bp.post("/<int:interview_id>/cancel")
@login_required
def cancel_interview(interview_id):
    interview = _get_interview(interview_id)
    if not interview.can_transition("cancelled"):
        raise ValidationError("Interview cannot be cancelled")
    interview.status = "cancelled"
    db.session.commit()
    return success({"interview": interview.to_dict()}, "Interview cancelled")


@bp.get("/voices")
@login_required
def voices():
    return success({"voices": tts.list_voices(request.args.get("language"))})


@bp.post("/voice-test")
@login_required
def voice_test():
    form = VoiceTestForm().validate_or_raise()
    audio = tts.synthesize_speech(form.text.data or VOICE_TEST_TEXT,
                                  language=form.language.data or "en-US",
                                  voice=form.voice.data or None)
    return success({"audio": audio})


@bp.get("/voice-recommendations")
@login_required
def voice_recommendations():
    role = (request.args.get("role") or "").strip()
    if not role:
        raise ValidationError("Role parameter is required")
    return success({"recommendations": tts.voice_recommendations(role)})


@bp.post("/<int:interview_id>/feedback-audio")
@login_required
def feedback_audio(interview_id):
    interview = _get_interview(interview_id)
    if interview.status != "completed" or not interview.feedback:
        raise ValidationError("Interview feedback is not available yet")
    voice = (interview.settings or {}).get("voice")
    audio = tts.synthesize_feedback(interview.feedback, {"voice": voice} if voice else None)
    interview.feedback_audio_url = audio["audioUrl"]
    db.session.commit()
    current_app.logger.info("Generated feedback audio for interview %s", interview.id)
    return success({"audio": audio, "interview": interview.to_dict(detail=True)}, "Feedback audio generated")
