from datetime import timedelta
from types import SimpleNamespace

import pytest

from config import _duration
from interview_bot.errors import ValidationError
from interview_bot.services import gemini, payments, reports, stt, tts
from interview_bot.services.scoring import clarity_score, heuristic_evaluation


# --- scoring ---------------------------------------------------------------

def test_clarity_bands():
    assert [clarity_score(n) for n in (0, 5, 20, 100, 400)] == [0, 40, 60, 80, 70]


def test_heuristic_evaluation_uses_expected_answer():
    result = heuristic_evaluation("Explain SQL joins", "joins combine rows from tables",
                                  expected_answer="joins combine rows")
    assert result["accuracy"] == 100
    assert result["relevance"] == 75
    assert result["clarity"] == 40
    assert result["feedback"].startswith("Structure the answer more clearly")
    assert result["source"] == "heuristic"


def test_heuristic_evaluation_of_empty_answer():
    result = heuristic_evaluation("Why this company?", "")
    assert result["clarity"] == 0
    assert result["relevance"] == 50


# --- gemini ----------------------------------------------------------------

def test_extract_json_helpers():
    assert gemini.extract_json_array('Sure! [{"question": "Q1?"}] Hope it helps') == [{"question": "Q1?"}]
    assert gemini.extract_json_array("no json here") is None
    assert gemini.extract_json_object('```json\n{"score": 80}\n```') == {"score": 80}
    assert gemini.extract_json_object("{broken") is None
    assert gemini.extract_json_object(None) is None


def test_fallback_question_parsing():
    text = "Here are some:\n1. What is a closure?\n- One more question about decorators\nThanks"
    parsed = gemini.fallback_question_parsing(text, "hard", "behavioral")
    assert [q["question"] for q in parsed] == ["What is a closure?", "One more question about decorators"]
    assert {q["type"] for q in parsed} == {"behavioral"}
    assert {q["difficulty"] for q in parsed} == {"hard"}


def test_gemini_is_optional(app):
    with app.app_context():
        assert gemini.generate_interview_questions("Engineer", "easy", "technical") == []
        assert gemini.generate_follow_up_questions("Q?", "A", "Engineer", 1) == gemini.FOLLOW_UP_TEMPLATES[:1]


def test_evaluate_response_clamps_model_output(app, monkeypatch):
    app.config["GEMINI_API_KEY"] = "test-key"
    monkeypatch.setattr(gemini, "generate_text",
                        lambda *a, **k: '{"score": 120, "accuracy": "n/a", "clarity": 55, "relevance": 60}')
    with app.app_context():
        result = gemini.evaluate_response("Q?", "answer", "Engineer")
    assert result["score"] == 100
    assert result["accuracy"] == 70
    assert result["feedback"] == "Unable to generate detailed feedback. Please review manually."
    assert result["source"] == "gemini"


def test_evaluate_response_falls_back_on_garbage(app, monkeypatch):
    app.config["GEMINI_API_KEY"] = "test-key"
    monkeypatch.setattr(gemini, "generate_text", lambda *a, **k: "I cannot help with that")
    with app.app_context():
        assert gemini.evaluate_response("Q?", "answer", "Engineer")["source"] == "heuristic"


# --- speech ----------------------------------------------------------------

def test_enhance_question_text():
    ssml = tts.enhance_question_text("How does it work? Explain, briefly & clearly.")
    assert ssml.startswith("<speak>") and ssml.endswith("</speak>")
    assert '<emphasis level="moderate">How</emphasis>' in ssml
    assert '? <break time="500ms"/>' in ssml
    assert ', <break time="250ms"/>' in ssml
    assert "&amp;" in ssml


def test_estimate_duration():
    text = " ".join(["word"] * 150)
    assert tts.estimate_duration(text) == 60
    assert tts.estimate_duration(text, speed=2.0) == 30
    assert tts.estimate_duration("") == 0


def test_default_voices_without_api_key(app):
    with app.app_context():
        voices = tts.list_voices("ja-JP")
    assert [v["name"] for v in voices] == ["ja-JP-Neural2-B"]
    assert tts.default_voice("xx-XX") == "en-US-Neural2-D"


def test_audio_quality_heuristic():
    small = stt.analyze_audio_quality(b"\x00" * 5000)
    assert (small["quality"], small["score"]) == ("fair", 75)
    assert small["recommendations"][-1] == "Audio file seems very short - ensure complete recording"

    large = stt.analyze_audio_quality(b"\x00" * 20000)
    assert (large["quality"], large["score"]) == ("excellent", 95)
    assert len(large["recommendations"]) == 1


def test_encoding_for():
    assert stt.encoding_for("answer.WAV") == "LINEAR16"
    assert stt.encoding_for("clip.mp3") == "MP3"
    assert stt.encoding_for("unknown") == "WEBM_OPUS"


# --- reports ---------------------------------------------------------------

def test_time_distribution():
    responses = [SimpleNamespace(time_taken=t) for t in (10, None, 45, 90, 300)]
    assert dict(reports.time_distribution(responses)) == {
        "Under 30s": 2, "30s - 1m": 1, "1m - 2m": 1, "Over 2m": 1}


def test_interview_recommendations():
    recs = reports.interview_recommendations({"averageScore": 50, "averageTimePerQuestion": 200},
                                             {"improvements": ["A", "B", "C", "D"]})
    assert recs[0] == "Focus on strengthening fundamental concepts"
    assert "Work on time management and quick decision making" in recs
    assert recs[-3:] == ["A", "B", "C"]

    fast = reports.interview_recommendations({"averageScore": 90, "averageTimePerQuestion": 10})
    assert fast[-1] == "Take more time to think through answers thoroughly"


def test_next_steps_by_score():
    assert reports.interview_next_steps({"averageScore": 85})[0] == "Apply for senior-level positions"
    assert reports.interview_next_steps({"averageScore": 65})[0] == "Apply for mid-level positions"
    assert len(reports.interview_next_steps({"averageScore": 10})) == 4


def test_performance_recommendations_flag_decline():
    recs = reports.performance_recommendations({"averageScore": 70, "improvement": -5})
    assert recs[-2:] == ["Review recent performance decline", "Consider additional practice sessions"]
    steps = reports.performance_next_steps({"averageScore": 75})
    assert "Start applying to target companies" in steps


def test_empty_performance_metrics():
    assert reports.calculate_performance_metrics([])["totalInterviews"] == 0


# --- payments / config -----------------------------------------------------

def test_price_for():
    assert payments.price_for("basic", "yearly") == 9999
    assert payments.price_for("premium", "monthly", coupon_code="SAVE") == 1799
    with pytest.raises(ValidationError):
        payments.price_for("platinum", "monthly")


def test_duration_parsing():
    assert _duration("12h", "7d") == timedelta(hours=12)
    assert _duration(None, "7d") == timedelta(days=7)
    assert _duration("90", "7d") == timedelta(seconds=90)
    with pytest.raises(ValueError):
        _duration("soon", "7d")
