import pytest

from interview_bot.extensions import db
from interview_bot.models.interview import Interview
from interview_bot.models.notification import Notification
from interview_bot.models.report import Report

ANSWER = "I would profile the slow query, add a covering index and verify the plan before and after the change."


@pytest.fixture
def completed_interview(client, candidate, new_interview):
    interview = new_interview()
    client.post(f"/api/interviews/{interview['id']}/start", headers=candidate.headers)
    for index in range(interview["questionsCount"]):
        resp = client.post(f"/api/interviews/{interview['id']}/responses", headers=candidate.headers,
                           json={"questionIndex": index, "answer": ANSWER, "timeTaken": 20 + index * 60})
        assert resp.status_code == 201
    return interview["id"]


def _report_id(app, interview_id):
    with app.app_context():
        return Report.query.filter_by(interview_id=interview_id).one().id


def test_report_is_generated_on_completion(client, app, candidate, completed_interview):
    resp = client.get("/api/reports", headers=candidate.headers)
    reports = resp.get_json()["data"]["reports"]
    assert len(reports) == 1
    report = reports[0]
    assert report["type"] == "interview"
    assert report["title"] == "Interview Report - Backend Engineer"
    assert [s["title"] for s in report["data"]["sections"]] == [
        "Performance Overview", "Question Analysis", "Skills Assessment", "Time Management"]
    assert report["data"]["recommendations"]
    assert report["data"]["nextSteps"][-2:] == ["Schedule follow-up practice sessions",
                                                "Review and implement feedback provided"]

    again = client.post(f"/api/reports/interview/{completed_interview}", headers=candidate.headers)
    assert again.status_code == 200
    assert again.get_json()["message"] == "Report already generated"
    assert again.get_json()["data"]["report"]["id"] == report["id"]


def test_report_requires_completed_interview(client, candidate, new_interview):
    iid = new_interview()["id"]
    resp = client.post(f"/api/reports/interview/{iid}", headers=candidate.headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Interview must be completed before generating a report"
    assert client.post("/api/reports/interview/424242", headers=candidate.headers).status_code == 404


def test_delete_and_regenerate(client, app, candidate, completed_interview):
    report_id = _report_id(app, completed_interview)
    assert client.delete(f"/api/reports/{report_id}", headers=candidate.headers).status_code == 200
    with app.app_context():
        interview = db.session.get(Interview, completed_interview)
        assert interview.report_generated is False
        assert interview.report_url is None

    resp = client.post(f"/api/reports/interview/{completed_interview}", headers=candidate.headers)
    assert resp.status_code == 201
    assert resp.get_json()["data"]["report"]["data"]["summary"]["totalQuestions"] == 3


def test_report_access_control(client, app, make_user, completed_interview):
    report_id = _report_id(app, completed_interview)
    stranger = make_user()
    recruiter = make_user(role="recruiter")
    assert client.get(f"/api/reports/{report_id}", headers=stranger.headers).status_code == 403
    assert client.get(f"/api/reports/{report_id}", headers=recruiter.headers).status_code == 200
    assert client.delete(f"/api/reports/{report_id}", headers=recruiter.headers).status_code == 403
    assert client.get("/api/reports/999999", headers=recruiter.headers).status_code == 404


def test_download_pdf(client, app, candidate, completed_interview):
    report_id = _report_id(app, completed_interview)
    resp = client.get(f"/api/reports/{report_id}/download", headers=candidate.headers)
    assert resp.status_code == 200
    assert resp.mimetype == "application/pdf"
    assert resp.data.startswith(b"%PDF")
    assert f"report_{report_id}.pdf" in resp.headers["Content-Disposition"]


def test_email_report(client, app, candidate, completed_interview):
    report_id = _report_id(app, completed_interview)
    resp = client.post(f"/api/reports/{report_id}/email", headers=candidate.headers)
    assert resp.status_code == 200
    with app.app_context():
        n = Notification.query.filter_by(user_id=candidate.id, type="report").one()
        assert n.status == "skipped"


def test_performance_report(client, candidate, completed_interview):
    resp = client.post("/api/reports/performance", headers=candidate.headers, json={})
    assert resp.status_code == 201
    report = resp.get_json()["data"]["report"]
    assert report["type"] == "performance"
    assert report["data"]["metrics"]["totalInterviews"] == 1
    assert report["data"]["metrics"]["totalQuestions"] == 3
    assert report["data"]["nextSteps"][-1] == "Track progress with monthly assessments"

    performance = client.get("/api/reports?type=performance", headers=candidate.headers).get_json()["data"]
    assert [r["id"] for r in performance["reports"]] == [report["id"]]


def test_performance_report_date_window(client, candidate, completed_interview):
    resp = client.post("/api/reports/performance", headers=candidate.headers,
                       json={"startDate": "2001-01-01", "endDate": "2001-12-31"})
    assert resp.status_code == 201
    report = resp.get_json()["data"]["report"]
    assert report["data"]["metrics"]["totalInterviews"] == 0
    assert report["data"]["period"]["endDate"].startswith("2001-12-31T23:59:59")

    bad = client.post("/api/reports/performance", headers=candidate.headers, json={"startDate": "yesterday"})
    assert bad.status_code == 400
    backwards = client.post("/api/reports/performance", headers=candidate.headers,
                            json={"startDate": "2020-02-01", "endDate": "2020-01-01"})
    assert backwards.status_code == 400


def test_report_stats(client, candidate, completed_interview):
    stats = client.get("/api/reports/stats", headers=candidate.headers).get_json()["data"]["stats"]
    assert stats["totalReports"] == 1
    assert stats["improvement"] == 0
    assert stats["lastReportDate"] is not None


def test_invalid_report_type_filter(client, candidate):
    assert client.get("/api/reports?type=weekly", headers=candidate.headers).status_code == 400


def test_free_plan_report_limit(client, app, candidate):
    with app.app_context():
        for n in range(5):
            db.session.add(Report(candidate_id=candidate.id, type="performance", title=f"Performance {n}"))
        db.session.commit()

    resp = client.post("/api/reports/performance", headers=candidate.headers, json={})
    assert resp.status_code == 402
    body = resp.get_json()
    assert body["message"] == "Monthly report limit reached"
    assert body["data"] == {"limit": 5, "used": 5, "plan": "free"}
