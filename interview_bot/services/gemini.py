"""Gemini wrappers for question generation, answer evaluation and analysis.

The REST ``generateContent`` endpoint is called directly with ``requests``.
Every public function degrades gracefully: without ``GEMINI_API_KEY`` (or
when the call fails or returns something unparseable) the local heuristics
in ``services.scoring`` answer instead.
"""

import json
import random
import re
import time
from typing import Any, Dict, List, Optional

import requests
from flask import current_app

from ..models.interview import QUESTION_TYPES
from .scoring import heuristic_analysis, heuristic_evaluation

API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

FOLLOW_UP_TEMPLATES = [
    "Can you walk me through a specific example of that?",
    "What would you do differently if you faced the same situation again?",
    "How did you measure whether your approach worked?",
]


def is_configured() -> bool:
    return bool(current_app.config.get("GEMINI_API_KEY"))


def _response_text(payload: Dict[str, Any]) -> Optional[str]:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return None
    return "".join(p.get("text", "") for p in parts) or None


def generate_text(prompt: str, temperature: float = 0.7, max_attempts: int = 3) -> Optional[str]:
    """Send one prompt and return the model's text, or None on any failure."""
    api_key = current_app.config.get("GEMINI_API_KEY")
    if not api_key:
        return None

    url = API_URL.format(model=current_app.config.get("GEMINI_MODEL", "gemini-1.5-flash"))
    body = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {"temperature": temperature, "maxOutputTokens": 2048},
    }
    backoff = 1.0
    for attempt in range(1, max_attempts + 1):
        try:
            r = requests.post(url, params={"key": api_key}, json=body, timeout=60)
        except requests.RequestException:
            current_app.logger.warning("Gemini network error, attempt %s/%s", attempt, max_attempts)
        else:
            if r.status_code == 429 or 500 <= r.status_code < 600:
                current_app.logger.warning("Gemini returned %s, attempt %s/%s; body=%s",
                                           r.status_code, attempt, max_attempts, r.text[:500])
            elif not r.ok:
                current_app.logger.error("Gemini request rejected (%s): %s", r.status_code, r.text[:1000])
                return None
            else:
                return _response_text(r.json())
        if attempt < max_attempts:
            time.sleep(backoff + random.uniform(0, 0.5))
            backoff *= 2
    current_app.logger.error("Gemini request failed after %s attempts", max_attempts)
    return None


def extract_json_array(text: Optional[str]) -> Optional[list]:
    if not text:
        return None
    m = re.search(r"\[[\s\S]*\]", text)
    if not m:
        return None
    try:
        data = json.loads(m.group(0))
    except ValueError:
        return None
    return data if isinstance(data, list) else None


def extract_json_object(text: Optional[str]) -> Optional[dict]:
    if not text:
        return None
    m = re.search(r"\{[\s\S]*\}", text)
    if not m:
        return None
    try:
        data = json.loads(m.group(0))
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def fallback_question_parsing(text: str, difficulty: str, interview_type: str) -> List[Dict[str, Any]]:
    """Pull question-looking lines out of free text when no JSON came back."""
    out = []
    for line in (text or "").splitlines():
        line = line.strip()
        if not line or not ("?" in line or "question" in line.lower()):
            continue
        cleaned = re.sub(r"^\s*(\d+[.)]|[-*•])\s*", "", line).strip()
        if cleaned:
            out.append(_normalize_question({"question": cleaned}, difficulty, interview_type))
        if len(out) >= 10:
            break
    return out


def clamp_score(value, default=70):
    try:
        return max(0, min(100, round(float(value))))
    except (TypeError, ValueError):
        return default


def _normalize_question(raw: Dict[str, Any], difficulty: str, interview_type: str) -> Dict[str, Any]:
    qtype = raw.get("type")
    if qtype not in QUESTION_TYPES:
        qtype = "behavioral" if interview_type == "behavioral" else "open_ended"
    try:
        time_limit = max(30, min(3600, int(raw.get("timeLimit") or 300)))
    except (TypeError, ValueError):
        time_limit = 300
    return {
        "question": str(raw.get("question", "")).strip(),
        "type": qtype,
        "difficulty": raw.get("difficulty") if raw.get("difficulty") in ("easy", "medium", "hard") else difficulty,
        "category": raw.get("category") or interview_type,
        "expectedAnswer": raw.get("expectedAnswer"),
        "options": raw.get("options") if isinstance(raw.get("options"), list) else None,
        "timeLimit": time_limit,
    }


def generate_interview_questions(position: str, difficulty: str, interview_type: str, count: int = 10,
                                 company: Optional[str] = None, skills: Optional[List[str]] = None,
                                 focus_areas: Optional[List[str]] = None) -> List[Dict[str, Any]]:
    """Ask Gemini for ``count`` questions. Returns [] when the service is unavailable."""
    if not is_configured():
        return []
    prompt = (
        f"Generate {count} {difficulty} {interview_type} interview questions for a {position} role"
        + (f" at {company}" if company else "") + ".\n"
        + (f"Candidate skills: {', '.join(skills)}.\n" if skills else "")
        + (f"Focus areas: {', '.join(focus_areas)}.\n" if focus_areas else "")
        + "Return ONLY a JSON array. Each item must have: question, type "
          "(open_ended|behavioral|coding|multiple_choice), difficulty, category, "
          "expectedAnswer (key points of a strong answer) and timeLimit in seconds."
    )
    text = generate_text(prompt)
    items = extract_json_array(text)
    if items is None:
        questions = fallback_question_parsing(text or "", difficulty, interview_type)
    else:
        questions = [_normalize_question(i, difficulty, interview_type) for i in items if isinstance(i, dict)]
    return [q for q in questions if q["question"]][:count]


def evaluate_response(question: str, answer: str, position: str,
                      expected_answer: Optional[str] = None) -> Dict[str, Any]:
    if is_configured():
        prompt = (
            f"You are interviewing a candidate for a {position} role.\n"
            f"Question: {question}\n"
            + (f"Key points of a strong answer: {expected_answer}\n" if expected_answer else "")
            + f"Candidate answer: {answer}\n"
            "Evaluate the answer. Return ONLY a JSON object with integer fields score, accuracy, "
            "clarity, relevance (0-100) and a short feedback string."
        )
        data = extract_json_object(generate_text(prompt, temperature=0.2))
        if data and "score" in data:
            return {
                "score": clamp_score(data.get("score")),
                "accuracy": clamp_score(data.get("accuracy")),
                "clarity": clamp_score(data.get("clarity")),
                "relevance": clamp_score(data.get("relevance")),
                "feedback": str(data.get("feedback") or "").strip()
                or "Unable to generate detailed feedback. Please review manually.",
                "source": "gemini",
            }
        current_app.logger.warning("Gemini evaluation unusable; using heuristic scoring")
    return heuristic_evaluation(question, answer, expected_answer)


def generate_interview_analysis(interview) -> Dict[str, Any]:
    if is_configured() and interview.responses:
        transcript = "\n\n".join(
            f"Q: {r.question.question}\nA: {r.answer}\nScore: {r.score}" for r in interview.responses
        )
        prompt = (
            f"Analyse this {interview.type} interview for a {interview.position} role.\n\n{transcript}\n\n"
            "Return ONLY a JSON object with integer fields communication, technical, problemSolving, "
            "confidence, overall (0-100), lists strengths and improvements, and a detailedFeedback string."
        )
        data = extract_json_object(generate_text(prompt, temperature=0.3))
        if data and "overall" in data:
            return {
                "communication": clamp_score(data.get("communication")),
                "technical": clamp_score(data.get("technical")),
                "problemSolving": clamp_score(data.get("problemSolving")),
                "confidence": clamp_score(data.get("confidence")),
                "overall": clamp_score(data.get("overall")),
                "strengths": [str(s) for s in data.get("strengths") or []][:5],
                "improvements": [str(s) for s in data.get("improvements") or []][:5],
                "detailedFeedback": str(data.get("detailedFeedback") or ""),
                "source": "gemini",
            }
        current_app.logger.warning("Gemini analysis unusable for interview %s; using heuristic", interview.id)
    return heuristic_analysis(interview)


def generate_follow_up_questions(question: str, answer: str, position: str, count: int = 2) -> List[str]:
    if is_configured():
        prompt = (
            f"Interview for a {position} role.\nQuestion: {question}\nAnswer: {answer}\n"
            f"Write {count} short follow-up questions that dig deeper into the answer. "
            "Return ONLY a JSON array of strings."
        )
        items = extract_json_array(generate_text(prompt))
        if items:
            return [str(i).strip() for i in items if str(i).strip()][:count]
    return FOLLOW_UP_TEMPLATES[:count]


def generate_personalized_feedback(interview, candidate) -> str:
    analysis = interview.ai_analysis or {}
    if is_configured():
        prompt = (
            f"Write a short, encouraging paragraph of feedback for {candidate.first_name}, who scored "
            f"{interview.overall_score} in a {interview.position} practice interview.\n"
            f"Strengths: {', '.join(analysis.get('strengths', []))}\n"
            f"Improvements: {', '.join(analysis.get('improvements', []))}"
        )
        text = generate_text(prompt)
        if text:
            return text.strip()
    strengths = ", ".join(analysis.get("strengths", [])) or "your effort"
    improvements = ", ".join(analysis.get("improvements", [])) or "continued practice"
    return (
        f"Well done {candidate.first_name}, you scored {interview.overall_score or 0} on "
        f"{interview.title}. Build on {strengths.lower()} and focus next on {improvements.lower()}."
    )
