from exambank.models.orm import ExamStatus, QuestionType


def test_health(client):
    r = client.get("/health"); assert r.status_code==200 and r.json()=={"status":"ok"}


def test_register_and_login(client, bank):
    r = client.post("/v1/auth/register", json={"username":"dave","password":"pw"})
    assert r.status_code==201 and r.json()["role"]=="student"
    assert client.post("/v1/auth/register", json={"username":"dave","password":"x"}).status_code==409
    r = client.post("/v1/auth/login", json={"username":"dave","password":"pw"})
    assert r.status_code==200 and r.json()["roles"]==["student"]
    bad = client.post("/v1/auth/login", json={"username":"dave","password":"nope"})
    assert bad.status_code==401 and bad.json()["error"]["type"]=="http_error"


def test_bad_token_is_rejected(client, bank):
    r = client.get("/v1/exams", headers={"Authorization":"Bearer not-a-jwt"})
    assert r.status_code==401 and r.json()["error"]["message"]=="Invalid or expired token"


def test_question_crud(client, admin_hdr, student_hdr, bank):
    payload={"type":QuestionType.SINGLE_CHOICE,"content":"2+2?","options":["3","4"],"answers":["4"],"category":"math"}
    r = client.post("/v1/questions", headers=admin_hdr, json=payload); assert r.status_code==201
    qid = r.json()["id"]
    assert [q["id"] for q in client.get("/v1/questions", headers=admin_hdr, params={"category":"math"}).json()]==[qid]
    assert len(client.get("/v1/questions", headers=admin_hdr, params={"keyword":"capital"}).json())==1
    assert len(client.get("/v1/questions", headers=admin_hdr, params={"type":int(QuestionType.PROGRAM)}).json())==1
    r = client.put(f"/v1/questions/{qid}", headers=admin_hdr, json=payload|{"content":"2+3?","answers":["5"]})
    assert r.status_code==200 and r.json()["answers"]==["5"]
    assert client.get("/v1/questions", headers=student_hdr(bank.u.alice)).status_code==403
    assert client.delete(f"/v1/questions/{qid}", headers=admin_hdr).status_code==204
    r = client.get(f"/v1/questions/{qid}", headers=admin_hdr)
    assert r.status_code==404 and r.json()["error"]["type"]=="not_found"


def test_question_validation(client, admin_hdr):
    r = client.post("/v1/questions", headers=admin_hdr, json={"type":42,"content":"x"})
    assert r.status_code==422 and r.json()["error"]["type"]=="validation_error"
    assert client.post("/v1/questions", headers=admin_hdr, json={"type":1,"content":""}).status_code==422


def test_exam_lifecycle(client, admin_hdr, student_hdr, bank):
    exam = {"title":"Weekly","questions":[{"question_id":bank.q.single,"order":1,"score":6},
                                          {"question_id":bank.q.short,"order":2,"score":4}]}
    r = client.post("/v1/exams", headers=admin_hdr, json=exam); assert r.status_code==201
    body = r.json(); eid = body["id"]
    assert body["status"]==ExamStatus.DRAFT and body["total_score"]==10

    alice, bob = student_hdr(bank.u.alice), student_hdr(bank.u.bob)
    assert client.get(f"/v1/exams/{eid}", headers=alice).status_code==403
    assert client.post(f"/v1/exams/{eid}/assign", headers=alice, json={"student_ids":[bank.u.alice]}).status_code==403

    r = client.post(f"/v1/exams/{eid}/assign", headers=admin_hdr, json={"student_ids":[bank.u.alice, bank.u.admin]})
    assert r.status_code==400 and r.json()["error"]["details"]["rejected_ids"]==[bank.u.admin]
    r = client.post(f"/v1/exams/{eid}/assign", headers=admin_hdr, json={"student_ids":[bank.u.alice, bank.u.bob]})
    assert r.status_code==200 and r.json()["status"]==ExamStatus.PUBLISHED

    assert [e["id"] for e in client.get("/v1/exams", headers=alice).json()]==[eid]
    assert client.get(f"/v1/exams/{eid}", headers=alice).status_code==200

    sub = {"answers":[{"question_id":bank.q.single,"answer":"b"},{"question_id":bank.q.short,"answer":"respiration"}],"completion_time":95}
    r = client.post(f"/v1/exams/{eid}/submit", headers=alice, json=sub)
    assert r.status_code==200
    assert (r.json()["score"], r.json()["correct_count"], r.json()["question_count"])==(6, 1, 2)
    r = client.post(f"/v1/exams/{eid}/submit", headers=alice, json=sub)
    assert r.status_code==409 and r.json()["error"]["type"]=="conflict"
    assert client.post(f"/v1/exams/{eid}/submit", headers=admin_hdr, json=sub).status_code==403

    client.post(f"/v1/exams/{eid}/submit", headers=bob, json={"answers":[]})
    mine = client.get(f"/v1/exams/{eid}/results", headers=alice).json()
    assert [x["student_name"] for x in mine]==["alice"]
    assert len(client.get(f"/v1/exams/{eid}/results", headers=admin_hdr).json())==2

    s = client.get(f"/v1/exams/{eid}/statistics", headers=admin_hdr).json()
    assert (s["student_count"], s["submitted_count"], s["pass_rate"])==(2, 2, 0.5)
    assert client.get(f"/v1/exams/{eid}/statistics", headers=alice).status_code==403

    assert client.delete(f"/v1/questions/{bank.q.single}", headers=admin_hdr).status_code==409
    assert client.delete(f"/v1/exams/{eid}", headers=admin_hdr).status_code==204
    assert client.get(f"/v1/exams/{eid}", headers=admin_hdr).status_code==404


def test_late_submission(client, admin_hdr, student_hdr, bank):
    exam = {"title":"Past","deadline":"2000-01-01T00:00:00Z","questions":[{"question_id":bank.q.tf,"order":1,"score":1}]}
    eid = client.post("/v1/exams", headers=admin_hdr, json=exam).json()["id"]
    client.post(f"/v1/exams/{eid}/assign", headers=admin_hdr, json={"student_ids":[bank.u.carol]})
    r = client.post(f"/v1/exams/{eid}/submit", headers=student_hdr(bank.u.carol), json={"answers":[]})
    assert r.status_code==403 and r.json()["error"]["type"]=="deadline_exceeded"


def test_students_listing(client, admin_hdr, bank):
    r = client.get("/v1/users/students", headers=admin_hdr)
    assert [u["username"] for u in r.json()]==["alice","bob","carol"]


def test_current_user(client, student_hdr, bank):
    r = client.get("/v1/auth/me", headers=student_hdr(bank.u.bob))
    assert r.status_code==200 and r.json()=={"user_id":bank.u.bob,"username":"bob","roles":["student"]}
