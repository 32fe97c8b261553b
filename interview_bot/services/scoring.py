"""Deterministic answer scoring used when the AI service is unavailable.

Scores are 0-100. They are rough on purpose: enough to give practice
sessions a usable signal without an API key.
"""

import re

STOPWORDS = {
    "the", "and", "for", "you", "your", "are", "was", "were", "with", "that", "this",
    "have", "has", "had", "but", "not", "what", "when", "where", "why", "how", "who",
    "which", "about", "into", "from", "they", "them", "their", "there", "would", "could",
    "should", "will", "can", "did", "does", "tell", "describe", "explain", "give",
}


def keywords(text):
    words = re.findall(r"[a-z0-9']+", (text or "").lower())
    return {w for w in words if len(w) >= 3 and w not in STOPWORDS}


def _overlap(reference, answer):
    if not reference:
        return None
    return len(reference & answer) / len(reference)


def _clamp(value, lo=0, hi=100):
    return max(lo, min(hi, value))


def clarity_score(word_count):
    if word_count == 0:
        return 0
    if word_count < 10:
        return 40
    if word_count < 40:
        return 60
    if word_count <= 250:
        return 80
    # very long answers tend to ramble
    return 70


def heuristic_evaluation(question, answer, expected_answer=None):
    answer_words = keywords(answer)
    clarity = clarity_score(len((answer or "").split()))

    q_overlap = _overlap(keywords(question), answer_words)
    relevance = 60 if q_overlap is None else round(_clamp(50 + 50 * q_overlap))

    e_overlap = _overlap(keywords(expected_answer), answer_words)
    if e_overlap is None:
        accuracy = round((relevance + clarity) / 2)
    else:
        accuracy = round(_clamp(40 + 60 * e_overlap))

    score = round(0.4 * accuracy + 0.3 * clarity + 0.3 * relevance)
    return {
        "score": score,
        "accuracy": accuracy,
        "clarity": clarity,
        "relevance": relevance,
        "feedback": _feedback(accuracy, clarity, relevance),
        "source": "heuristic",
    }


def _feedback(accuracy, clarity, relevance):
    weakest = min((accuracy, "accuracy"), (clarity, "clarity"), (relevance, "relevance"))
    if weakest[0] >= 75:
        return "Strong, well-structured answer. Keep it up."
    tips = {
        "accuracy": "Cover the key points more precisely and back them with concrete facts.",
        "clarity": "Structure the answer more clearly; aim for a few focused paragraphs.",
        "relevance": "Stay closer to what the question asks and address it directly.",
    }
    return tips[weakest[1]]


def _mean(values):
    values = [v for v in values if v is not None]
    return round(sum(values) / len(values)) if values else 0


DEFAULT_STRENGTHS = ["Shows potential", "Demonstrates effort"]
DEFAULT_IMPROVEMENTS = ["Continue practicing", "Enhance technical skills"]


def heuristic_analysis(interview):
    """Aggregate per-response evaluations into an interview-level analysis."""
    evals = [r.ai_evaluation or {} for r in interview.responses]
    communication = _mean([e.get("clarity") for e in evals])
    technical = _mean([e.get("accuracy") for e in evals])
    problem_solving = _mean([e.get("relevance") for e in evals])
    overall = interview.calculate_overall_score()
    confidence = round(overall * interview.completion_percentage / 100)

    dims = {
        "Communication": communication,
        "Technical knowledge": technical,
        "Problem solving": problem_solving,
    }
    strengths = [f"{name} is a strong area" for name, v in dims.items() if v >= 75]
    improvements = [f"Work on {name.lower()}" for name, v in dims.items() if v < 60]
    if interview.completion_percentage < 100:
        improvements.append("Answer every question to get a complete assessment")

    return {
        "communication": communication,
        "technical": technical,
        "problemSolving": problem_solving,
        "confidence": confidence,
        "overall": overall,
        "strengths": strengths or list(DEFAULT_STRENGTHS),
        "improvements": improvements or list(DEFAULT_IMPROVEMENTS),
        "detailedFeedback": (
            f"You answered {len(interview.responses)} of {len(interview.questions)} questions "
            f"with an overall score of {overall}."
        ),
        "source": "heuristic",
    }
