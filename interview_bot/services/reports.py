"""Builds interview and performance reports and renders them to PDF."""

import io
from collections import OrderedDict
from datetime import datetime

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..extensions import db
from ..models.interview import Interview
from ..models.report import Report, format_seconds
from . import storage

CORRECT_THRESHOLD = 70

TIME_BUCKETS = (
    ("Under 30s", 30),
    ("30s - 1m", 60),
    ("1m - 2m", 120),
    ("Over 2m", None),
)


def _mean(values):
    values = list(values)
    return round(sum(values) / len(values)) if values else 0


# --- interview report ----------------------------------------------------

def calculate_summary(interview):
    responses = interview.responses
    scored = [r.score for r in responses if r.score is not None]
    total_time = sum(r.time_taken or 0 for r in responses)
    total_questions = len(interview.questions)
    return {
        "totalQuestions": total_questions,
        "correctAnswers": sum(1 for s in scored if s >= CORRECT_THRESHOLD),
        "averageScore": _mean(scored),
        "totalTime": total_time,
        "completionRate": round(len(responses) / total_questions * 100) if total_questions else 0,
        "averageTimePerQuestion": round(total_time / len(responses)) if responses else 0,
    }


def time_distribution(responses):
    counts = OrderedDict((label, 0) for label, _ in TIME_BUCKETS)
    for r in responses:
        t = r.time_taken or 0
        for label, upper in TIME_BUCKETS:
            if upper is None or t < upper:
                counts[label] += 1
                break
    return counts


def _overview_section(interview):
    a = interview.ai_analysis
    if not a:
        return {"title": "Performance Overview", "content": "Performance analysis not available.", "score": None}
    lines = [
        f"Overall Performance: {a.get('overall')}%",
        f"Communication: {a.get('communication')}%",
        f"Technical Skills: {a.get('technical')}%",
        f"Problem Solving: {a.get('problemSolving')}%",
        f"Confidence: {a.get('confidence')}%",
        "Strengths: " + (", ".join(a.get("strengths") or []) or "None identified"),
        "Areas for Improvement: " + (", ".join(a.get("improvements") or []) or "None identified"),
    ]
    return {"title": "Performance Overview", "content": "\n".join(lines), "score": a.get("overall")}


def _question_section(interview):
    if not interview.responses:
        return {"title": "Question Analysis", "content": "No responses available for analysis.", "score": None}
    rows = [["#", "Question", "Score", "Time"]]
    lines = []
    for i, q in enumerate(interview.questions, start=1):
        r = interview.response_for(q)
        if r is None:
            continue
        score = r.score if r.score is not None else "Not scored"
        rows.append([i, q.question, score, f"{r.time_taken}s"])
        line = f"Question {i}: {q.question} | Score: {score} | Time: {r.time_taken}s"
        feedback = (r.ai_evaluation or {}).get("feedback")
        if feedback:
            line += f" | Feedback: {feedback}"
        lines.append(line)
    return {"title": "Question Analysis", "content": "\n".join(lines), "score": None, "tables": [rows]}


def _skills_section(interview):
    by_category = OrderedDict()
    for q in interview.questions:
        r = interview.response_for(q)
        if r is not None and r.score is not None:
            by_category.setdefault(q.category or "General", []).append(r.score)
    if not by_category:
        return {"title": "Skills Assessment", "content": "No scored responses yet.", "score": None}
    averages = {cat: _mean(scores) for cat, scores in by_category.items()}
    content = "\n".join(f"{cat}: {avg}% ({len(by_category[cat])} questions)" for cat, avg in averages.items())
    chart = {"type": "bar", "labels": list(averages), "values": list(averages.values())}
    return {"title": "Skills Assessment", "content": content, "score": _mean(averages.values()),
            "charts": [chart]}


def _time_section(interview):
    responses = interview.responses
    if not responses:
        return {"title": "Time Management", "content": "No timing data available.", "score": None}
    times = [r.time_taken or 0 for r in responses]
    dist = time_distribution(responses)
    lines = [
        f"Total Interview Time: {format_seconds(sum(times))}",
        f"Average Time per Question: {round(sum(times) / len(times))} seconds",
        f"Fastest Response: {min(times)} seconds",
        f"Slowest Response: {max(times)} seconds",
    ] + [f"{label}: {count} questions" for label, count in dist.items()]
    chart = {"type": "pie", "labels": list(dist), "values": list(dist.values())}
    return {"title": "Time Management", "content": "\n".join(lines), "score": None, "charts": [chart]}


def interview_sections(interview):
    return [_overview_section(interview), _question_section(interview),
            _skills_section(interview), _time_section(interview)]


def interview_recommendations(summary, analysis=None):
    score = summary["averageScore"]
    if score < 60:
        recs = ["Focus on strengthening fundamental concepts",
                "Practice more interview questions in weak areas"]
    elif score < 80:
        recs = ["Good foundation - work on advanced concepts",
                "Practice explaining solutions more clearly"]
    else:
        recs = ["Excellent performance - maintain current level",
                "Consider mentoring others or taking leadership roles"]

    avg_time = summary.get("averageTimePerQuestion", 0)
    if avg_time > 180:
        recs.append("Work on time management and quick decision making")
    elif avg_time < 30:
        recs.append("Take more time to think through answers thoroughly")

    if analysis and analysis.get("improvements"):
        recs.extend(analysis["improvements"][:3])
    return recs


def interview_next_steps(summary):
    score = summary["averageScore"]
    if score >= 80:
        steps = ["Apply for senior-level positions", "Prepare for technical leadership interviews"]
    elif score >= 60:
        steps = ["Apply for mid-level positions", "Continue practicing interview skills"]
    else:
        steps = ["Focus on skill development before applying", "Take online courses in weak areas"]
    return steps + ["Schedule follow-up practice sessions", "Review and implement feedback provided"]


def generate_interview_report(interview, store_pdf=True):
    """Create (and flush) the Report for a completed interview."""
    summary = calculate_summary(interview)
    report = Report(
        interview_id=interview.id,
        candidate_id=interview.candidate_id,
        recruiter_id=interview.recruiter_id,
        type="interview",
        title=f"Interview Report - {interview.position}",
        data={
            "summary": summary,
            "sections": interview_sections(interview),
            "recommendations": interview_recommendations(summary, interview.ai_analysis),
            "nextSteps": interview_next_steps(summary),
        },
        generated_at=datetime.utcnow(),
    )
    db.session.add(report)
    db.session.flush()
    if store_pdf:
        store_report_pdf(report)
    interview.report_generated = True
    interview.report_url = report.file_url
    return report


# --- performance report --------------------------------------------------

def completed_interviews(candidate_id, start=None, end=None):
    q = Interview.query.filter(Interview.candidate_id == candidate_id, Interview.status == "completed")
    if start:
        q = q.filter(Interview.created_at >= start)
    if end:
        q = q.filter(Interview.created_at <= end)
    return q.order_by(Interview.created_at.desc(), Interview.id.desc()).all()


def calculate_performance_metrics(interviews):
    """Aggregate over interviews ordered newest first."""
    if not interviews:
        return {"totalInterviews": 0, "totalQuestions": 0, "totalCorrect": 0,
                "averageScore": 0, "totalTime": 0, "improvement": 0}
    scores = [i.overall_score for i in interviews if i.overall_score]
    improvement = 0
    if len(interviews) >= 2:
        improvement = (interviews[0].overall_score or 0) - (interviews[-1].overall_score or 0)
    return {
        "totalInterviews": len(interviews),
        "totalQuestions": sum(len(i.questions) for i in interviews),
        "totalCorrect": sum(1 for i in interviews for r in i.responses
                            if (r.score or 0) >= CORRECT_THRESHOLD),
        "averageScore": _mean(scores),
        "totalTime": sum(r.time_taken or 0 for i in interviews for r in i.responses),
        "improvement": improvement,
    }


def _skill_development(interviews):
    progression = OrderedDict((k, []) for k in ("communication", "technical", "problemSolving", "confidence"))
    for interview in reversed(interviews):
        for key, values in progression.items():
            value = (interview.ai_analysis or {}).get(key)
            if value is not None:
                values.append(value)
    lines = []
    for key, values in progression.items():
        if values:
            trend = values[-1] - values[0] if len(values) > 1 else 0
            lines.append(f"{key}: {_mean(values)}% average ({'+' if trend >= 0 else ''}{trend}% trend)")
    return "\n".join(lines) or "No analysed interviews yet."


def performance_sections(metrics, interviews):
    accuracy = round(metrics["totalCorrect"] / metrics["totalQuestions"] * 100) if metrics["totalQuestions"] else 0
    trend = "Improving" if metrics["improvement"] >= 0 else "Declining"
    sign = "+" if metrics["improvement"] >= 0 else ""
    summary = "\n".join([
        f"Total Interviews: {metrics['totalInterviews']}",
        f"Average Score: {metrics['averageScore']}%",
        f"Total Questions Answered: {metrics['totalQuestions']}",
        f"Correct Answers: {metrics['totalCorrect']}",
        f"Accuracy Rate: {accuracy}%",
        f"Performance Trend: {trend} ({sign}{metrics['improvement']}%)",
    ])
    if interviews:
        history = "\n".join(
            f"{n}. {i.title} ({i.position}) | Score: {i.overall_score if i.overall_score is not None else 'Not scored'}"
            f" | Date: {i.completed_at.date().isoformat() if i.completed_at else 'N/A'}"
            for n, i in enumerate(interviews[:5], start=1)
        )
    else:
        history = "No interviews completed yet."
    return [
        {"title": "Performance Summary", "content": summary, "score": metrics["averageScore"]},
        {"title": "Interview History", "content": history, "score": None},
        {"title": "Skill Development", "content": _skill_development(interviews), "score": None},
    ]


def performance_recommendations(metrics):
    score = metrics["averageScore"]
    if score < 60:
        recs = ["Focus on fundamental skill building", "Take structured learning courses",
                "Practice basic interview questions daily"]
    elif score < 80:
        recs = ["Work on advanced problem-solving techniques", "Practice system design questions",
                "Improve communication clarity"]
    else:
        recs = ["Maintain current performance level", "Focus on leadership and soft skills",
                "Prepare for senior-level interviews"]
    if metrics["improvement"] < 0:
        recs += ["Review recent performance decline", "Consider additional practice sessions"]
    return recs


def performance_next_steps(metrics):
    steps = ["Set specific improvement goals", "Schedule regular practice sessions"]
    if metrics["averageScore"] >= 75:
        steps += ["Start applying to target companies", "Prepare for company-specific interviews"]
    else:
        steps += ["Continue skill development", "Focus on weak areas identified in reports"]
    return steps + ["Track progress with monthly assessments"]


def generate_performance_report(candidate, start=None, end=None, store_pdf=True):
    interviews = completed_interviews(candidate.id, start, end)
    metrics = calculate_performance_metrics(interviews)
    report = Report(
        candidate_id=candidate.id,
        type="performance",
        title=f"Performance Report - {candidate.full_name}",
        data={
            "summary": {
                "totalQuestions": metrics["totalQuestions"],
                "correctAnswers": metrics["totalCorrect"],
                "averageScore": metrics["averageScore"],
                "totalTime": metrics["totalTime"],
            },
            "metrics": metrics,
            "period": {"startDate": start.isoformat() if start else None,
                       "endDate": end.isoformat() if end else None},
            "sections": performance_sections(metrics, interviews),
            "recommendations": performance_recommendations(metrics),
            "nextSteps": performance_next_steps(metrics),
        },
        generated_at=datetime.utcnow(),
    )
    db.session.add(report)
    db.session.flush()
    if store_pdf:
        store_report_pdf(report)
    return report


# --- PDF -----------------------------------------------------------------

def _para(text, style):
    safe = str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    return Paragraph(safe.replace("\n", "<br/>"), style)


def render_pdf(report) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4, leftMargin=2 * cm, rightMargin=2 * cm,
                            topMargin=2 * cm, bottomMargin=2 * cm, title=report.title)
    styles = getSampleStyleSheet()
    summary = report.summary
    story = [
        _para(report.title, styles["Title"]),
        _para(f"Generated {report.generated_at:%Y-%m-%d %H:%M} UTC", styles["Normal"]),
        Spacer(1, 12),
    ]
    table = Table([
        ["Average score", f"{summary.get('averageScore', 0)}% ({report.performance_grade})"],
        ["Questions", summary.get("totalQuestions", 0)],
        ["Strong answers", f"{summary.get('correctAnswers', 0)} ({report.accuracy_percentage}%)"],
        ["Total time", report.formatted_total_time],
    ], colWidths=[5 * cm, 10 * cm])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#eef2ff")),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    story += [table, Spacer(1, 12)]

    for section in report.sections:
        story.append(_para(section.get("title", ""), styles["Heading2"]))
        story.append(_para(section.get("content", ""), styles["Normal"]))
        story.append(Spacer(1, 8))

    for heading, key in (("Recommendations", "recommendations"), ("Next Steps", "nextSteps")):
        items = (report.data or {}).get(key) or []
        if items:
            story.append(_para(heading, styles["Heading2"]))
            story.extend(_para(f"• {item}", styles["Normal"]) for item in items)
            story.append(Spacer(1, 8))

    doc.build(story)
    return buf.getvalue()


def store_report_pdf(report):
    """Render and store the PDF; a failure leaves ``file_url`` unset and is logged."""
    try:
        report.file_url = storage.save_bytes(render_pdf(report), f"reports/report_{report.id}.pdf")
    except Exception:
        current_app.logger.exception("Storing PDF for report %s failed", report.id)
        report.file_url = None
    return report.file_url


def report_pdf_bytes(report) -> bytes:
    if report.file_url:
        try:
            return storage.download_bytes(report.file_url)
        except (OSError, ValueError):
            current_app.logger.warning("Stored PDF for report %s missing; re-rendering", report.id)
    return render_pdf(report)


def delete_report(report):
    if report.file_url:
        try:
            storage.delete_file(report.file_url)
        except (OSError, ValueError):
            current_app.logger.warning("Could not delete stored file for report %s", report.id)
    db.session.delete(report)
