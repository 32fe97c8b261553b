import io

from interview_bot.extensions import db
from interview_bot.models.interview import Interview
from interview_bot.models.user import User


def test_admin_routes_require_admin(client, candidate, make_user):
    assert client.get("/api/admin/users").status_code == 401
    assert client.get("/api/admin/users", headers=candidate.headers).status_code == 403
    recruiter = make_user(role="recruiter")
    resp = client.get("/api/admin/stats", headers=recruiter.headers)
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Admin access required"


def test_bulk_upload_json(client, app, admin, candidate):
    rows = [
        {"email": "Ada@Acme.io", "firstName": "Ada", "lastName": "Lovelace", "location": "London"},
        {"email": "ada@acme.io", "firstName": "Ada", "lastName": "Again"},
        {"email": candidate.email, "firstName": "Already", "lastName": "Here"},
        {"email": "nolast@acme.io", "firstName": "No"},
        {"email": "broken", "firstName": "Bad", "lastName": "Email"},
    ]
    resp = client.post("/api/admin/bulk-upload", json=rows, headers=admin.headers)
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["created"] == ["ada@acme.io"]
    assert data["skipped"] == ["ada@acme.io", candidate.email, "broken"]

    login = client.post("/api/auth/login", json={"email": "ada@acme.io", "password": "changeme123"})
    assert login.status_code == 200
    assert login.get_json()["data"]["user"]["location"] == "London"


def test_bulk_upload_csv(client, app, admin):
    body = "email,firstName,lastName,password\ngrace@acme.io,Grace,Hopper,Compiler1\n"
    resp = client.post("/api/admin/bulk-upload", data=body, content_type="text/csv", headers=admin.headers)
    assert resp.get_json()["data"]["created"] == ["grace@acme.io"]
    assert client.post("/api/auth/login",
                       json={"email": "grace@acme.io", "password": "Compiler1"}).status_code == 200

    upload = client.post("/api/admin/bulk-upload", headers=admin.headers, content_type="multipart/form-data",
                         data={"file": (io.BytesIO(b"email,firstName,lastName\nalan@acme.io,Alan,Turing\n"),
                                        "users.csv")})
    assert upload.get_json()["data"]["created"] == ["alan@acme.io"]

    with app.app_context():
        assert User.query.filter_by(email="alan@acme.io").one().role == "candidate"


def test_bulk_upload_rejects_other_content(client, admin):
    resp = client.post("/api/admin/bulk-upload", data="<users/>", content_type="application/xml",
                       headers=admin.headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Unsupported content type"
    assert client.post("/api/admin/bulk-upload", json={"email": "x"}, headers=admin.headers).status_code == 400


def test_bulk_upload_rejects_undecodable_csv(client, app, admin):
    garbage = b"email,firstName,lastName\n\xff\xfe\xfa@acme.io,\xc3\x28,X\n"
    resp = client.post("/api/admin/bulk-upload", headers=admin.headers, content_type="multipart/form-data",
                       data={"file": (io.BytesIO(garbage), "users.csv")})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Invalid CSV file"

    body = client.post("/api/admin/bulk-upload", data=garbage, content_type="text/csv", headers=admin.headers)
    assert body.status_code == 400
    with app.app_context():
        assert User.query.count() == 1


def test_assign_interview(client, app, admin, candidate, question_bank):
    body = {"candidateIds": [candidate.id, 987654],
            "interview": {"title": "Screening", "position": "Support Engineer", "difficulty": "easy",
                          "type": "behavioral", "settings": {"questionsCount": 2}}}
    resp = client.post("/api/admin/assign-interview", json=body, headers=admin.headers)
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert len(data["created"]) == 1
    assert data["missing"] == [987654]

    with app.app_context():
        interview = db.session.get(Interview, data["created"][0])
        assert interview.candidate_id == candidate.id
        assert interview.recruiter_id == admin.id
        assert len(interview.questions) == 2

    assigned = client.get("/api/users/assigned-interviews", headers=candidate.headers).get_json()["data"]
    assert [i["id"] for i in assigned["interviews"]] == data["created"]


def test_assign_interview_validation(client, admin, candidate):
    resp = client.post("/api/admin/assign-interview", json={"candidateIds": []}, headers=admin.headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "candidateIds and interview required"

    resp = client.post("/api/admin/assign-interview", headers=admin.headers,
                       json={"candidateIds": ["abc"], "interview": {"title": "T", "position": "P"}})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Invalid ID format"


def test_list_and_update_users(client, app, admin, candidate, make_user):
    make_user(role="recruiter", email="rita@acme.io")
    recruiters = client.get("/api/admin/users?role=recruiter", headers=admin.headers).get_json()["data"]
    assert [u["email"] for u in recruiters["users"]] == ["rita@acme.io"]

    found = client.get("/api/admin/users?search=rita", headers=admin.headers).get_json()["data"]
    assert found["pagination"]["total"] == 1
    assert client.get("/api/admin/users?role=owner", headers=admin.headers).status_code == 400

    resp = client.patch(f"/api/admin/users/{candidate.id}", headers=admin.headers, json={
        "role": "recruiter", "subscriptionPlan": "premium", "subscriptionEnd": "2030-01-01T00:00:00Z",
        "isEmailVerified": True})
    assert resp.status_code == 200
    user = resp.get_json()["data"]["user"]
    assert user["role"] == "recruiter"
    assert user["subscription"]["plan"] == "premium"
    assert user["subscription"]["endDate"].startswith("2030-01-01")
    assert user["isEmailVerified"] is True

    bad = client.patch(f"/api/admin/users/{candidate.id}", headers=admin.headers, json={"role": "owner"})
    assert bad.status_code == 400
    assert client.patch("/api/admin/users/999999", headers=admin.headers, json={}).status_code == 404


def test_stats(client, admin, candidate, new_interview):
    new_interview()
    data = client.get("/api/admin/stats", headers=admin.headers).get_json()["data"]
    assert data["users"]["total"] == 2
    assert data["users"]["byRole"] == {"admin": 1, "candidate": 1}
    assert data["interviews"]["byStatus"] == {"scheduled": 1}
    assert data["questions"] == {"total": 5, "active": 5}
    assert data["averageScore"] == 0
