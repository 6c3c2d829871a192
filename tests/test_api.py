import pytest
from rest_framework.test import APIClient

from assessments import models
from cores.models import AuditLog
from exams.models import AssignedExam, Question

SESSION_URL = "/api/tests/session/"


@pytest.fixture
def bank(make_questions):
    return make_questions(30, correct="D")


def test_register_and_login(db):
    client = APIClient()
    resp = client.post("/api/auth/register/", {
        "email": "ada@example.com", "first_name": "Ada", "last_name": "Obi",
        "password": "long-enough-1", "role": "admin",
    }, format="json")
    assert resp.status_code == 201

    resp = client.post("/api/auth/login/", {"email": "ADA@example.com", "password": "long-enough-1"}, format="json")
    assert resp.status_code == 200
    assert resp.data["user"]["role"] == "candidate"
    assert resp.data["user"]["is_entitled"] is False
    assert "access" in resp.data


def test_errors_have_a_uniform_shape(make_user, client_for, bank):
    resp = client_for(make_user(entitled=False)).get(SESSION_URL)
    assert resp.status_code == 403
    assert resp.json() == {
        "error": "Your membership payment must be completed before you can take the test.",
        "code": "not_entitled",
    }


def test_validation_errors_list_fields(candidate, client_for, bank):
    client = client_for(candidate)
    client.get(SESSION_URL)
    client.post(SESSION_URL + "start/")

    resp = client.post(SESSION_URL + "answer/", {"question_id": bank[0].pk}, format="json")

    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "invalid"
    assert "answer" in body["fields"]


def test_candidate_flow(candidate, client_for, bank):
    client = client_for(candidate)

    lobby = client.get(SESSION_URL)
    assert lobby.status_code == 200
    assert lobby.data["status"] == "lobby"
    assert lobby.data["remaining_seconds"] == 3600
    session = lobby.data["session"]
    assert len(session["questions"]) == 30
    assert all("correct_answer" not in q for q in session["questions"])

    started = client.post(SESSION_URL + "start/")
    assert started.data["status"] == "running"

    first, second = session["questions"][0]["id"], session["questions"][1]["id"]
    resp = client.post(SESSION_URL + "answer/", {"question_id": first, "answer": "d", "current_question": 1},
                       format="json")
    assert resp.status_code == 200
    assert resp.data["session"]["answers"] == {str(first): "D"}

    resp = client.patch(SESSION_URL, {"answers": {str(first): "D", str(second): "D"}, "current_question": 2},
                        format="json")
    assert resp.status_code == 200
    assert resp.data["session"]["current_question"] == 2

    token = session["submission_token"]
    submitted = client.post(SESSION_URL + "submit/", {"submission_token": token}, format="json")
    assert submitted.status_code == 201
    assert submitted.data["duplicate"] is False
    assert submitted.data["attempt"]["correct_count"] == 2
    assert submitted.data["attempt"]["score"] == 7

    again = client.post(SESSION_URL + "submit/", {"submission_token": token}, format="json")
    assert again.status_code == 200
    assert again.data["duplicate"] is True
    assert again.data["attempt"]["id"] == submitted.data["attempt"]["id"]

    attempts = client.get("/api/tests/attempts/")
    assert len(attempts.data) == 1

    retake = client.get(SESSION_URL)
    assert retake.status_code == 409
    assert retake.data["code"] == "already_completed"


def test_answer_before_start_is_a_conflict(candidate, client_for, bank):
    client = client_for(candidate)
    client.get(SESSION_URL)
    resp = client.post(SESSION_URL + "answer/", {"question_id": bank[0].pk, "answer": "A"}, format="json")
    assert resp.status_code == 409
    assert resp.data["code"] == "session_conflict"


def test_certificate_status(candidate, client_for):
    resp = client_for(candidate).get("/api/certificates/status/")
    assert resp.status_code == 200
    assert resp.data["status"] == "not_eligible"


def test_candidates_cannot_manage_questions(candidate, client_for):
    resp = client_for(candidate).get("/api/questions/")
    assert resp.status_code == 403


def test_examiner_builds_and_assigns_an_exam(examiner, candidate, client_for, bank):
    client = client_for(examiner)

    resp = client.post("/api/questions/", {
        "question_text": "Which colour is the sky?",
        "category": "General",
        "correct_answer": "b",
        "options": {"a": "Green", "B": "Blue", "C": "Red", "D": "Yellow"},
    }, format="json")
    assert resp.status_code == 201
    assert resp.data["correct_answer"] == "B"
    new_id = resp.data["id"]

    resp = client.post("/api/exam-configurations/", {
        "name": "Colours", "question_ids": [new_id, bank[0].pk], "time_limit_seconds": 600, "passing_score": 50,
    }, format="json")
    assert resp.status_code == 201
    assert resp.data["questions"] == [new_id, bank[0].pk]

    resp = client.post("/api/user-exams/", {"user": candidate.pk, "exam_configuration": resp.data["id"]},
                       format="json")
    assert resp.status_code == 201
    assert AuditLog.objects.filter(action='ASSIGN').count() == 1

    duplicate = client.post("/api/user-exams/", {"user": candidate.pk, "exam_configuration": resp.data["exam_configuration"]},
                            format="json")
    assert duplicate.status_code == 400

    lobby = client_for(candidate).get(SESSION_URL)
    assert lobby.data["session"]["is_assigned_exam"] is True
    assert [q["id"] for q in lobby.data["session"]["questions"]] == [new_id, bank[0].pk]
    assert lobby.data["remaining_seconds"] == 600


def test_question_options_must_be_a_to_d(examiner, client_for):
    resp = client_for(examiner).post("/api/questions/", {
        "question_text": "Incomplete", "correct_answer": "A", "options": {"A": "x", "B": "y"},
    }, format="json")
    assert resp.status_code == 400
    assert "options" in resp.data["fields"]


def test_deleting_a_question_retires_it(examiner, client_for, bank):
    resp = client_for(examiner).delete(f"/api/questions/{bank[0].pk}/")
    assert resp.status_code == 204
    assert Question.objects.get(pk=bank[0].pk).is_active is False


def test_results_are_for_staff(examiner, candidate, client_for, bank):
    client = client_for(candidate)
    lobby = client.get(SESSION_URL)
    client.post(SESSION_URL + "start/")
    client.post(SESSION_URL + "submit/", {"submission_token": lobby.data["session"]["submission_token"]},
                format="json")
    assert models.TestAttempt.objects.count() == 1

    assert client.get("/api/admin/results/").status_code == 403
    resp = client_for(examiner).get("/api/admin/results/", {"email": candidate.email})
    assert resp.status_code == 200
    assert resp.data[0]["candidate_email"] == candidate.email


def test_completed_assignment_cannot_be_withdrawn(examiner, candidate, client_for, bank):
    client = client_for(examiner)
    config = client.post("/api/exam-configurations/", {"name": "One", "question_ids": [bank[0].pk]},
                         format="json").data
    assignment = AssignedExam.objects.create(user=candidate, exam_configuration_id=config["id"], is_completed=True)

    resp = client.delete(f"/api/user-exams/{assignment.pk}/")
    assert resp.status_code == 409
    assert resp.data["code"] == "already_completed"
