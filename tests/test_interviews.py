from datetime import datetime, timedelta

from interview_bot.extensions import db
from interview_bot.models.interview import Interview
from interview_bot.models.notification import Notification
from interview_bot.models.question_bank import QuestionBank
from interview_bot.models.report import Report
from interview_bot.models.user import User
from interview_bot.services.gemini import FOLLOW_UP_TEMPLATES

ANSWER = ("In my last role I led a migration of our billing service. I split the work into small "
          "milestones, kept stakeholders informed every week and we shipped two weeks early with no incidents.")


def test_create_interview_from_question_bank(client, app, new_interview):
    interview = new_interview()
    assert interview["status"] == "scheduled"
    assert interview["questionsCount"] == 3
    assert [q["order"] for q in interview["questions"]] == [1, 2, 3]
    assert all("expectedAnswer" not in q for q in interview["questions"])
    assert all(q["difficulty"] == "easy" for q in interview["questions"])

    with app.app_context():
        assert sum(q.usage for q in QuestionBank.query.all()) == 3
        assert Notification.query.filter_by(type="interview_scheduled").count() == 1


def test_create_interview_validation(client, candidate, question_bank):
    resp = client.post("/api/interviews", json={"title": "No position"}, headers=candidate.headers)
    assert resp.status_code == 400
    assert any(e["field"] == "position" for e in resp.get_json()["errors"])

    resp = client.post("/api/interviews", headers=candidate.headers,
                       json={"title": "T", "position": "P", "difficulty": "insane"})
    assert resp.status_code == 400


def test_create_interview_without_questions(client, candidate):
    resp = client.post("/api/interviews", json={"title": "T", "position": "P"}, headers=candidate.headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "No questions available for the selected criteria"


def test_full_interview_flow(client, app, candidate, make_user, new_interview):
    interview = new_interview()
    iid = interview["id"]

    other = make_user()
    assert client.post(f"/api/interviews/{iid}/start", headers=other.headers).status_code == 403

    resp = client.post(f"/api/interviews/{iid}/responses", headers=candidate.headers,
                       json={"questionIndex": 0, "answer": ANSWER})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Interview is not in progress"

    started = client.post(f"/api/interviews/{iid}/start", headers=candidate.headers)
    assert started.status_code == 200
    first = started.get_json()["data"]["currentQuestion"]
    assert first["id"] == interview["questions"][0]["id"]

    again = client.post(f"/api/interviews/{iid}/start", headers=candidate.headers)
    assert again.status_code == 400
    assert again.get_json()["message"] == "Interview cannot be started"

    bad = client.post(f"/api/interviews/{iid}/responses", headers=candidate.headers,
                      json={"questionIndex": 42, "answer": ANSWER})
    assert bad.status_code == 400
    assert bad.get_json()["message"] == "Invalid question"

    resp = client.post(f"/api/interviews/{iid}/responses", headers=candidate.headers,
                       json={"questionId": first["id"], "answer": ANSWER, "timeTaken": 45})
    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["evaluation"]["source"] == "heuristic"
    assert 0 <= data["evaluation"]["score"] <= 100
    assert data["progress"] == {"answered": 1, "total": 3, "percentage": 33}
    assert data["nextQuestion"]["id"] == interview["questions"][1]["id"]
    assert data["isComplete"] is False

    dup = client.post(f"/api/interviews/{iid}/responses", headers=candidate.headers,
                      json={"questionId": first["id"], "answer": ANSWER})
    assert dup.status_code == 409

    follow = client.post(f"/api/interviews/{iid}/follow-up", headers=candidate.headers,
                         json={"questionId": first["id"]})
    assert follow.status_code == 200
    assert follow.get_json()["data"]["followUpQuestions"] == FOLLOW_UP_TEMPLATES[:2]

    for index in (1, 2):
        resp = client.post(f"/api/interviews/{iid}/responses", headers=candidate.headers,
                           json={"questionIndex": index, "answer": ANSWER, "timeTaken": 90})
        assert resp.status_code == 201
    assert resp.get_json()["data"]["isComplete"] is True
    assert resp.get_json()["data"]["nextQuestion"] is None

    detail = client.get(f"/api/interviews/{iid}", headers=candidate.headers).get_json()["data"]["interview"]
    assert detail["status"] == "completed"
    assert detail["duration"] == 225
    assert detail["aiAnalysis"]["source"] == "heuristic"
    assert detail["feedback"]
    assert detail["reportGenerated"] is True
    assert all("expectedAnswer" in q for q in detail["questions"])

    with app.app_context():
        report = Report.query.filter_by(interview_id=iid).one()
        assert report.summary["totalQuestions"] == 3
        assert report.file_url and report.file_url.startswith("file://")
        assert Notification.query.filter_by(type="interview_completed").count() == 1

    done = client.post(f"/api/interviews/{iid}/complete", headers=candidate.headers)
    assert done.status_code == 400


def test_complete_with_partial_answers(client, candidate, new_interview):
    iid = new_interview()["id"]
    client.post(f"/api/interviews/{iid}/start", headers=candidate.headers)
    client.post(f"/api/interviews/{iid}/responses", headers=candidate.headers,
                json={"questionIndex": 0, "answer": ANSWER, "timeTaken": 30})

    resp = client.post(f"/api/interviews/{iid}/complete", headers=candidate.headers)
    assert resp.status_code == 200
    interview = resp.get_json()["data"]["interview"]
    assert interview["status"] == "completed"
    assert interview["completionPercentage"] == 33
    assert "Answer every question to get a complete assessment" in interview["aiAnalysis"]["improvements"]


def test_follow_up_requires_answer(client, candidate, new_interview):
    iid = new_interview()["id"]
    client.post(f"/api/interviews/{iid}/start", headers=candidate.headers)
    resp = client.post(f"/api/interviews/{iid}/follow-up", headers=candidate.headers, json={"questionIndex": 0})
    assert resp.status_code == 400


def test_cancel_interview(client, candidate, new_interview):
    iid = new_interview()["id"]
    resp = client.post(f"/api/interviews/{iid}/cancel", headers=candidate.headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["interview"]["status"] == "cancelled"
    assert client.post(f"/api/interviews/{iid}/cancel", headers=candidate.headers).status_code == 400
    assert client.post(f"/api/interviews/{iid}/start", headers=candidate.headers).status_code == 400


def test_access_control(client, candidate, make_user, new_interview):
    iid = new_interview()["id"]
    stranger = make_user()
    recruiter = make_user(role="recruiter")
    assert client.get(f"/api/interviews/{iid}", headers=stranger.headers).status_code == 403
    assert client.get(f"/api/interviews/{iid}", headers=recruiter.headers).status_code == 200
    assert client.get("/api/interviews/999999", headers=candidate.headers).status_code == 404


def test_list_interviews(client, candidate, make_user, new_interview):
    first = new_interview()
    new_interview(title="Second")
    client.post(f"/api/interviews/{first['id']}/cancel", headers=candidate.headers)

    resp = client.get("/api/interviews?limit=1", headers=candidate.headers)
    data = resp.get_json()["data"]
    assert len(data["interviews"]) == 1
    assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}

    cancelled = client.get("/api/interviews?status=cancelled", headers=candidate.headers).get_json()["data"]
    assert [i["id"] for i in cancelled["interviews"]] == [first["id"]]

    admin = make_user(role="admin")
    as_admin = client.get(f"/api/interviews?candidateId={candidate.id}", headers=admin.headers)
    assert as_admin.get_json()["data"]["pagination"]["total"] == 2


def test_monthly_interview_limit(client, app, candidate, new_interview):
    with app.app_context():
        db.session.get(User, candidate.id).subscription_plan = "free"
        db.session.commit()
    for _ in range(5):
        new_interview(questionsCount=1)
    resp = client.post("/api/interviews", headers=candidate.headers,
                       json={"title": "One more", "position": "P", "questionsCount": 1})
    assert resp.status_code == 402
    body = resp.get_json()
    assert body["message"] == "Monthly interview limit reached"
    assert body["data"] == {"limit": 5, "used": 5, "plan": "free"}


def test_expired_subscription_blocks_creation(client, app, candidate, question_bank):
    with app.app_context():
        user = db.session.get(User, candidate.id)
        user.subscription_plan = "basic"
        user.subscription_end = datetime.utcnow() - timedelta(days=1)
        db.session.commit()
    resp = client.post("/api/interviews", headers=candidate.headers, json={"title": "T", "position": "P"})
    assert resp.status_code == 402
    assert resp.get_json()["message"] == "Active subscription required"
    assert resp.get_json()["data"]["currentPlan"] == "basic"


def test_ai_questions_are_used_when_configured(client, app, candidate, monkeypatch):
    app.config["GEMINI_API_KEY"] = "test-key"
    reply = ('Here you go: [{"question": "How do you design a cache?", "type": "open_ended", '
             '"difficulty": "hard", "category": "System design", "expectedAnswer": "eviction, ttl", '
             '"timeLimit": 240}]')
    monkeypatch.setattr("interview_bot.services.gemini.generate_text", lambda *a, **k: reply)

    resp = client.post("/api/interviews", headers=candidate.headers,
                       json={"title": "AI", "position": "Backend Engineer", "useAI": True, "questionsCount": 1})
    assert resp.status_code == 201
    question = resp.get_json()["data"]["interview"]["questions"][0]
    assert question["question"] == "How do you design a cache?"
    assert question["timeLimit"] == 240
    with app.app_context():
        assert db.session.get(Interview, resp.get_json()["data"]["interview"]["id"]).questions[0].bank_question_id is None


def test_voices_and_voice_test(client, candidate):
    voices = client.get("/api/interviews/voices?language=en-US", headers=candidate.headers)
    assert voices.status_code == 200
    assert voices.get_json()["data"]["voices"]

    preview = client.post("/api/interviews/voice-test", headers=candidate.headers, json={})
    assert preview.status_code == 503


def test_voice_recommendations(client, candidate):
    missing = client.get("/api/interviews/voice-recommendations", headers=candidate.headers)
    assert missing.status_code == 400
    assert missing.get_json()["message"] == "Role parameter is required"

    resp = client.get("/api/interviews/voice-recommendations", query_string={"role": "Senior Software Engineer"},
                      headers=candidate.headers)
    voices = [r["voice"] for r in resp.get_json()["data"]["recommendations"]]
    assert voices == ["en-US-Studio-Q", "en-US-Neural2-I"]

    other = client.get("/api/interviews/voice-recommendations?role=Chef", headers=candidate.headers)
    assert other.get_json()["data"]["recommendations"] == [{
        "language": "en-US", "voice": "en-US-Neural2-D", "gender": "NEUTRAL", "speed": 1.0, "pitch": 0.0,
        "volumeGainDb": 0.0, "audioFormat": "MP3"}]


def test_feedback_audio(client, candidate, new_interview, monkeypatch):
    iid = new_interview()["id"]
    early = client.post(f"/api/interviews/{iid}/feedback-audio", headers=candidate.headers)
    assert early.status_code == 400
    assert early.get_json()["message"] == "Interview feedback is not available yet"

    client.post(f"/api/interviews/{iid}/start", headers=candidate.headers)
    client.post(f"/api/interviews/{iid}/responses", headers=candidate.headers,
                json={"questionIndex": 0, "answer": ANSWER, "timeTaken": 30})
    client.post(f"/api/interviews/{iid}/complete", headers=candidate.headers)

    # no Google Cloud key configured
    assert client.post(f"/api/interviews/{iid}/feedback-audio", headers=candidate.headers).status_code == 503

    spoken = []

    def synthesize(text, language="en-US", voice=None, speed=1.0, pitch=0.0, ssml=False):
        spoken.append((text, speed, ssml))
        return {"audioUrl": "file:///tmp/feedback.mp3", "duration": 12.5, "voice": voice or "en-US-Neural2-D"}

    monkeypatch.setattr("interview_bot.services.tts.synthesize_speech", synthesize)
    resp = client.post(f"/api/interviews/{iid}/feedback-audio", headers=candidate.headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["interview"]["feedbackAudioUrl"] == "file:///tmp/feedback.mp3"
    text, speed, ssml = spoken[0]
    assert text.startswith('<speak><prosody rate="medium" pitch="low">')
    assert (speed, ssml) == (0.95, True)
