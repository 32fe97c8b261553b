"""Resume text extraction, analysis and role matching.

Text comes out of PDFs with PyMuPDF and out of Word files with python-docx.
Analysis and role-specific questions go through Gemini when it is configured;
otherwise a keyword scan of the resume answers instead.
"""

import io
import os
import re
from typing import Any, Dict, List, Optional

import docx
import fitz  # PyMuPDF
from flask import current_app

from ..errors import ValidationError
from ..models.interview import QUESTION_TYPES
from . import gemini
from .storage import download_bytes

MAX_RESUME_CHARS = 15000

SKILL_KEYWORDS = [
    "JavaScript", "Python", "React", "Node.js", "SQL", "MongoDB",
    "AWS", "Docker", "Git", "TypeScript", "HTML", "CSS", "Java",
    "Leadership", "Communication", "Problem-solving", "Teamwork",
]

FALLBACK_QUESTIONS = [
    {
        "question": "Tell me about your background and experience",
        "category": "Behavioral",
        "type": "open_ended",
        "expectedAnswer": "Should cover professional background and key experiences",
        "skillsFocused": ["Communication"],
        "relevanceScore": 8,
    },
    {
        "question": "What interests you about this role?",
        "category": "Behavioral",
        "type": "open_ended",
        "expectedAnswer": "Should show research about role and genuine interest",
        "skillsFocused": ["Motivation"],
        "relevanceScore": 7,
    },
    {
        "question": "Describe a challenging project you worked on",
        "category": "Experience-based",
        "type": "open_ended",
        "expectedAnswer": "Should use STAR method and demonstrate problem-solving",
        "skillsFocused": ["Problem-solving"],
        "relevanceScore": 8,
    },
]

# question styles the model may use, mapped onto interview question types
QUESTION_STYLE_TYPES = {
    "scenario_based": "open_ended",
    "technical_challenge": "coding",
}


def _pdf_text(data):
    with fitz.open(stream=data, filetype="pdf") as doc:
        return "".join(page.get_text() for page in doc)


def _docx_text(data):
    document = docx.Document(io.BytesIO(data))
    return "\n".join(p.text.strip() for p in document.paragraphs if p.text.strip())


def extract_text(data: bytes, filename: str) -> str:
    """Plain text of a resume file; raises ValidationError when it cannot be read."""
    ext = os.path.splitext(filename or "")[1].lower()
    try:
        if ext == ".pdf":
            text = _pdf_text(data)
        elif ext == ".docx":
            text = _docx_text(data)
        else:
            text = data.decode("utf-8", errors="ignore")
    except Exception as e:
        current_app.logger.warning("Could not extract text from %s: %s", filename, e)
        raise ValidationError("Could not read resume file") from e
    return re.sub(r"[ \t]+", " ", text).strip()[:MAX_RESUME_CHARS]


def _as_list(value):
    return value if isinstance(value, list) else []


def fallback_analysis(text: str) -> Dict[str, Any]:
    lowered = (text or "").lower()
    found = [s for s in SKILL_KEYWORDS if s.lower() in lowered]
    return {
        "skills": found,
        "experience": [],
        "education": [],
        "summary": "Resume analysis using fallback method",
        "keyStrengths": found[:3],
        "relevantExperience": [],
        "source": "heuristic",
    }


def analyze_resume(text: str) -> Dict[str, Any]:
    if gemini.is_configured() and text:
        prompt = (
            "Analyze the following resume and extract structured information.\n\n"
            f"Resume Text:\n{text}\n\n"
            "Return ONLY a JSON object with: skills (list of technical and soft skills), experience "
            "(list of {title, company, duration, description}), education (list of {degree, "
            "institution, year}), summary, keyStrengths (list) and relevantExperience (list). "
            'Use "Not specified" for anything the resume does not state.'
        )
        data = gemini.extract_json_object(gemini.generate_text(prompt, temperature=0.2))
        if data is not None:
            analysis = {
                "skills": [str(s) for s in _as_list(data.get("skills"))],
                "experience": [e for e in _as_list(data.get("experience")) if isinstance(e, dict)],
                "education": [e for e in _as_list(data.get("education")) if isinstance(e, dict)],
                "summary": str(data.get("summary") or ""),
                "keyStrengths": [str(s) for s in _as_list(data.get("keyStrengths"))],
                "relevantExperience": [str(s) for s in _as_list(data.get("relevantExperience"))],
                "source": "gemini",
            }
            current_app.logger.info("Resume analyzed: %d skills, %d roles, %d degrees",
                                    len(analysis["skills"]), len(analysis["experience"]),
                                    len(analysis["education"]))
            return analysis
        current_app.logger.warning("Failed to parse Gemini resume analysis, using fallback analysis")
    return fallback_analysis(text)


def _normalize_question(raw, difficulty):
    qtype = raw.get("type")
    qtype = QUESTION_STYLE_TYPES.get(qtype, qtype)
    return {
        "question": str(raw["question"]).strip(),
        "type": qtype if qtype in QUESTION_TYPES else "open_ended",
        "difficulty": difficulty,
        "category": str(raw["category"]),
        "expectedAnswer": str(raw["expectedAnswer"]),
        "skillsFocused": [str(s) for s in _as_list(raw.get("skillsFocused"))],
        "relevanceScore": raw.get("relevanceScore"),
        "timeLimit": 300,
    }


def generate_role_specific_questions(analysis: Dict[str, Any], role_description: str, count: int = 10,
                                     difficulty: str = "medium") -> List[Dict[str, Any]]:
    """Questions tailored to the resume and role; the fixed fallback set when the model output is unusable."""
    items = None
    if gemini.is_configured():
        prompt = (
            f"Based on the following resume analysis and role description, generate {count} "
            f"{difficulty} interview questions.\n\n"
            f"Skills: {', '.join(analysis.get('skills') or []) or 'None specified'}\n"
            f"Experience: {analysis.get('experience') or []}\n"
            f"Key Strengths: {', '.join(analysis.get('keyStrengths') or []) or 'None specified'}\n\n"
            f"Role Description:\n{role_description}\n\n"
            "Mix technical and behavioral questions and ask about tools the resume mentions. "
            "Return ONLY a JSON array; each item has question, category, type "
            "(open_ended|scenario_based|technical_challenge), expectedAnswer, skillsFocused (list) "
            "and relevanceScore (1-10)."
        )
        items = gemini.extract_json_array(gemini.generate_text(prompt))
    if items is None:
        current_app.logger.warning("Failed to parse role-specific questions, using fallback questions")
        items = FALLBACK_QUESTIONS
    valid = [i for i in items if isinstance(i, dict)
             and all(i.get(k) for k in ("question", "category", "type", "expectedAnswer"))]
    return [_normalize_question(i, difficulty) for i in valid][:count]


def _role_keywords(role_description):
    lowered = (role_description or "").lower()
    return [s for s in SKILL_KEYWORDS if s.lower() in lowered]


def heuristic_skill_match(analysis: Dict[str, Any], role_description: str) -> Dict[str, Any]:
    skills = analysis.get("skills") or []
    role_text = (role_description or "").lower()
    matched = [s for s in skills if s.lower() in role_text]
    held = {s.lower() for s in skills}
    missing = [s for s in _role_keywords(role_description) if s.lower() not in held]
    total = len(matched) + len(missing)
    overall = round(len(matched) / total * 100) if total else 0
    return {
        "matchedSkills": [{"skill": s, "proficiency": "intermediate", "relevance": 7} for s in matched],
        "missingSkills": missing,
        "overallMatch": overall,
        "recommendations": [f"Build experience with {s}" for s in missing[:5]],
        "source": "heuristic",
    }


def match_skills_to_role(analysis: Dict[str, Any], role_description: str) -> Dict[str, Any]:
    if gemini.is_configured():
        prompt = (
            "Analyze how well the candidate's skills match the role requirements.\n\n"
            f"Candidate Skills: {', '.join(analysis.get('skills') or []) or 'None specified'}\n"
            f"Candidate Experience: {analysis.get('experience') or []}\n\n"
            f"Role Description:\n{role_description}\n\n"
            "Return ONLY a JSON object with matchedSkills (list of {skill, proficiency "
            "beginner|intermediate|advanced, relevance 1-10}), missingSkills (list), overallMatch "
            "(1-100) and recommendations (list)."
        )
        data = gemini.extract_json_object(gemini.generate_text(prompt, temperature=0.2))
        if data is not None and "overallMatch" in data:
            return {
                "matchedSkills": [m for m in _as_list(data.get("matchedSkills")) if isinstance(m, dict)],
                "missingSkills": [str(s) for s in _as_list(data.get("missingSkills"))],
                "overallMatch": gemini.clamp_score(data.get("overallMatch"), default=0),
                "recommendations": [str(s) for s in _as_list(data.get("recommendations"))],
                "source": "gemini",
            }
        current_app.logger.warning("Gemini skill match unusable; using keyword match")
    return heuristic_skill_match(analysis, role_description)


def analysis_summary(analysis: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not analysis:
        return None
    return {
        "skills": analysis.get("skills") or [],
        "experience": len(analysis.get("experience") or []),
        "keyStrengths": analysis.get("keyStrengths") or [],
    }


def latest_resume(user):
    from ..models.upload import Upload
    upload = (Upload.query.filter_by(user_id=user.id, kind="resume")
              .order_by(Upload.created_at.desc(), Upload.id.desc()).first())
    if upload is None:
        raise ValidationError("No resume uploaded")
    return upload


def analyze_user_resume(user) -> Dict[str, Any]:
    """Analyse the user's most recent resume upload."""
    upload = latest_resume(user)
    filename = (upload.file_metadata or {}).get("filename") or upload.storage_url
    text = extract_text(download_bytes(upload.storage_url), filename)
    analysis = analyze_resume(text)
    analysis["uploadId"] = upload.id
    return analysis
