from interview_bot.extensions import db
from interview_bot.models.question_bank import QuestionBank


def _question(**overrides):
    body = {"title": "Indexes", "category": "Databases", "difficulty": "medium", "type": "open_ended",
            "question": "When would you add an index?", "correctAnswer": "read heavy queries",
            "tags": ["SQL", "performance"]}
    body.update(overrides)
    return body


def test_candidates_cannot_create_questions(client, candidate):
    resp = client.post("/api/questions", json=_question(), headers=candidate.headers)
    assert resp.status_code == 403


def test_recruiter_creates_question(client, make_user):
    recruiter = make_user(role="recruiter")
    resp = client.post("/api/questions", json=_question(), headers=recruiter.headers)
    assert resp.status_code == 201
    question = resp.get_json()["data"]["question"]
    assert question["tags"] == ["sql", "performance"]
    assert question["createdBy"] == recruiter.id
    assert question["rating"] == 0


def test_create_question_validation(client, admin):
    resp = client.post("/api/questions", json=_question(difficulty="extreme", title=None), headers=admin.headers)
    assert resp.status_code == 400
    fields = {e["field"] for e in resp.get_json()["errors"]}
    assert {"difficulty", "title"} <= fields

    resp = client.post("/api/questions", json=_question(tags="sql"), headers=admin.headers)
    assert resp.status_code == 400


def test_list_filters_and_search(client, candidate, admin, question_bank):
    client.post("/api/questions", json=_question(), headers=admin.headers)

    all_rows = client.get("/api/questions", headers=candidate.headers).get_json()["data"]
    assert all_rows["pagination"]["total"] == question_bank + 1

    behavioral = client.get("/api/questions?category=behavioral&difficulty=medium",
                            headers=candidate.headers).get_json()["data"]
    assert behavioral["pagination"]["total"] == 2

    tagged = client.get("/api/questions?tags=performance,unknown", headers=candidate.headers).get_json()["data"]
    assert [q["title"] for q in tagged["questions"]] == ["Indexes"]

    found = client.get("/api/questions?q=index", headers=candidate.headers).get_json()["data"]
    assert [q["title"] for q in found["questions"]] == ["Indexes"]


def test_popular_and_random(client, app, candidate, question_bank):
    with app.app_context():
        q = QuestionBank.query.filter_by(title="Tell me about yourself").one()
        q.usage = 10
        db.session.commit()

    popular = client.get("/api/questions/popular?limit=2", headers=candidate.headers).get_json()["data"]
    assert len(popular["questions"]) == 2
    assert popular["questions"][0]["title"] == "Tell me about yourself"

    random_rows = client.get("/api/questions/random?count=3&difficulty=easy",
                             headers=candidate.headers).get_json()["data"]["questions"]
    assert len(random_rows) == 3
    assert {q["difficulty"] for q in random_rows} == {"easy"}


def test_update_permissions(client, make_user):
    recruiter = make_user(role="recruiter")
    qid = client.post("/api/questions", json=_question(), headers=recruiter.headers).get_json()["data"]["question"]["id"]

    candidate = make_user()
    assert client.put(f"/api/questions/{qid}", json={"title": "Mine"}, headers=candidate.headers).status_code == 403

    resp = client.put(f"/api/questions/{qid}", json={"title": "Composite indexes", "tags": ["Indexing"]},
                      headers=recruiter.headers)
    assert resp.status_code == 200
    question = resp.get_json()["data"]["question"]
    assert question["title"] == "Composite indexes"
    assert question["tags"] == ["indexing"]
    # untouched fields survive a partial update
    assert question["category"] == "Databases"


def test_delete_deactivates(client, candidate, admin, make_user):
    qid = client.post("/api/questions", json=_question(), headers=admin.headers).get_json()["data"]["question"]["id"]
    recruiter = make_user(role="recruiter")
    assert client.delete(f"/api/questions/{qid}", headers=recruiter.headers).status_code == 403

    assert client.delete(f"/api/questions/{qid}", headers=admin.headers).status_code == 200
    assert client.get(f"/api/questions/{qid}", headers=candidate.headers).status_code == 404

    staff_view = client.get(f"/api/questions/{qid}", headers=admin.headers).get_json()["data"]["question"]
    assert staff_view["isActive"] is False
    listed = client.get("/api/questions?includeInactive=true", headers=admin.headers).get_json()["data"]
    assert listed["pagination"]["total"] == 1


def test_rate_question(client, candidate, admin):
    qid = client.post("/api/questions", json=_question(), headers=admin.headers).get_json()["data"]["question"]["id"]
    resp = client.post(f"/api/questions/{qid}/rate", json={"rating": 4}, headers=candidate.headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"] == {"rating": 2.0, "displayRating": "2.0"}

    bad = client.post(f"/api/questions/{qid}/rate", json={"rating": 9}, headers=candidate.headers)
    assert bad.status_code == 400


def test_tags_add_and_remove(client, admin):
    qid = client.post("/api/questions", json=_question(), headers=admin.headers).get_json()["data"]["question"]["id"]
    added = client.post(f"/api/questions/{qid}/tags", json={"tag": " Caching "}, headers=admin.headers)
    assert added.get_json()["data"]["tags"] == ["sql", "performance", "caching"]

    removed = client.delete(f"/api/questions/{qid}/tags/SQL", headers=admin.headers)
    assert removed.get_json()["data"]["tags"] == ["performance", "caching"]
