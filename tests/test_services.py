import random
import uuid
from datetime import timedelta

import pytest
from django.db import DatabaseError, OperationalError
from rest_framework.exceptions import ValidationError

from assessments import models, services, store
from assessments.exceptions import (
    AlreadyCompleted, NoActiveSession, NoQuestionsAvailable, NotEntitled, NotYetAvailable,
    SessionConflict, SubmissionFailed, TimeExpired,
)
from assessments.models import OngoingTestSession
from certificates import gate
from cores.models import AuditLog, PlatformSetting
from exams.models import AssignedExam, ExamConfiguration, ExamConfigurationQuestion, Question
from tests.conftest import T0


def _running(user, now=T0, rng=None):
    view = services.open_session(user, now=now, rng=rng or random.Random(1))
    services.start_session(user, now=now)
    return store.resume(user), view


def _assign(user, questions, **window):
    config = ExamConfiguration.objects.create(name="Assigned", time_limit_seconds=1200, passing_score=50)
    for position, q in enumerate(questions):
        ExamConfigurationQuestion.objects.create(configuration=config, question=q, position=position)
    return AssignedExam.objects.create(user=user, exam_configuration=config, **window)


def test_end_to_end_passing_attempt(candidate, make_questions):
    make_questions(50, correct="A")
    session, view = _running(candidate)
    assert view.session.question_count == 30

    ids = [q["id"] for q in session.questions_data]
    for i, qid in enumerate(ids):
        services.record_answer(candidate, qid, "a" if i < 21 else "b", now=T0 + timedelta(seconds=i))

    result = services.submit_session(candidate, submission_token=session.submission_token,
                                     now=T0 + timedelta(minutes=20))

    attempt = result.attempt
    assert result.created is True
    assert (attempt.correct_count, attempt.total_questions, attempt.score) == (21, 30, 70)
    assert attempt.passed is True
    assert attempt.time_expired is False
    assert not OngoingTestSession.objects.filter(user=candidate).exists()

    candidate.refresh_from_db()
    assert candidate.test_completed is True
    assert candidate.test_score == 70
    assert candidate.certificate_available_at == T0 + timedelta(minutes=20, hours=48)
    assert AuditLog.objects.filter(action='SUBMIT', target_object_id=str(attempt.pk)).exists()


def test_not_entitled_touches_nothing(make_user, make_questions):
    make_questions(5)
    user = make_user(entitled=False)
    with pytest.raises(NotEntitled):
        services.open_session(user, now=T0)
    assert not OngoingTestSession.objects.exists()


def test_empty_bank(candidate):
    with pytest.raises(NoQuestionsAvailable):
        services.open_session(candidate, now=T0)


def test_resume_is_verbatim_and_charges_time_away(candidate, make_questions):
    make_questions(30)
    session, _ = _running(candidate)
    qid = session.questions_data[4]["id"]
    services.record_answer(candidate, qid, "C", current_question=4, now=T0 + timedelta(seconds=100))

    view = services.open_session(candidate, now=T0 + timedelta(seconds=400))

    assert view.stale_session_discarded is False
    assert view.session.pk == session.pk
    assert view.session.questions_data == session.questions_data
    assert view.session.answers_data == {str(qid): "C"}
    assert view.session.current_question == 4
    assert view.remaining_seconds == 3600 - 400


def test_lobby_time_is_not_charged(candidate, make_questions):
    make_questions(30)
    services.open_session(candidate, now=T0)
    view = services.open_session(candidate, now=T0 + timedelta(hours=3))
    assert view.remaining_seconds == 3600

    started = services.start_session(candidate, now=T0 + timedelta(hours=3))
    assert started.remaining_seconds == 3600


def test_expired_while_away_is_auto_submitted(candidate, make_questions):
    make_questions(30)
    session, _ = _running(candidate)
    session.remaining_seconds = 600
    session.remaining_as_of = T0
    session.save()

    view = services.open_session(candidate, now=T0 + timedelta(seconds=900))

    assert view.session is None
    assert view.remaining_seconds == 0
    assert view.attempt.time_expired is True
    assert view.attempt.score == 0
    assert not OngoingTestSession.objects.filter(user=candidate).exists()


def test_stale_session_is_replaced(candidate, make_questions):
    questions = make_questions(30)
    store.replace(candidate, questions_data=[q.snapshot() for q in questions[:25]], sample_size=25,
                  time_limit_seconds=3600, passing_score=70, remaining_seconds=3600)

    view = services.open_session(candidate, now=T0, rng=random.Random(2))

    assert view.stale_session_discarded is True
    assert view.session.question_count == 30
    assert view.session.answers_data == {}
    assert OngoingTestSession.objects.filter(user=candidate).count() == 1


def test_retiring_questions_mid_test_keeps_the_running_session(candidate, make_questions):
    bank = make_questions(32)
    session, _ = _running(candidate)
    token = session.submission_token
    answered = [q["id"] for q in session.questions_data[:5]]
    for qid in answered:
        services.record_answer(candidate, qid, "A", now=T0 + timedelta(minutes=1))

    Question.objects.filter(pk__in=[q.pk for q in bank[:3]]).update(is_active=False)
    view = services.open_session(candidate, now=T0 + timedelta(minutes=25))

    assert view.stale_session_discarded is False
    assert view.session.submission_token == token
    assert view.session.test_started is True
    assert view.session.question_count == 30
    assert view.session.answers_data == {str(qid): "A" for qid in answered}
    assert view.remaining_seconds == 3600 - 25 * 60


def test_short_draw_survives_a_smaller_bank(candidate, make_questions):
    bank = make_questions(12)
    first = services.open_session(candidate, now=T0)
    assert first.session.question_count == 12
    assert first.session.sample_size == 30

    Question.objects.filter(pk=bank[0].pk).update(is_active=False)
    view = services.open_session(candidate, now=T0 + timedelta(minutes=5))

    assert view.stale_session_discarded is False
    assert view.session.submission_token == first.session.submission_token


def test_changed_draw_size_discards_the_session(candidate, make_questions):
    make_questions(30)
    first = services.open_session(candidate, now=T0)
    settings = PlatformSetting.load()
    settings.default_question_count = 20
    settings.save()

    view = services.open_session(candidate, now=T0)

    assert view.stale_session_discarded is True
    assert view.session.question_count == 20
    assert view.session.submission_token != first.session.submission_token


def test_new_assignment_replaces_a_random_draw_session(candidate, make_questions):
    questions = make_questions(30)
    services.open_session(candidate, now=T0)
    assignment = _assign(candidate, questions[:30])

    view = services.open_session(candidate, now=T0)

    # same count, different exam: still stale
    assert view.stale_session_discarded is True
    assert view.session.assigned_exam == assignment
    assert view.session.time_limit_seconds == 1200


def test_assigned_exam_not_open_yet(candidate, make_questions):
    _assign(candidate, make_questions(5), available_from=T0 + timedelta(days=1))
    with pytest.raises(NotYetAvailable):
        services.open_session(candidate, now=T0)
    assert not OngoingTestSession.objects.exists()


def test_answers_are_rejected_before_start_and_after_time(candidate, make_questions):
    make_questions(30)
    view = services.open_session(candidate, now=T0)
    qid = view.session.questions_data[0]["id"]
    with pytest.raises(SessionConflict):
        services.record_answer(candidate, qid, "A", now=T0)

    services.start_session(candidate, now=T0)
    with pytest.raises(TimeExpired):
        services.record_answer(candidate, qid, "A", now=T0 + timedelta(seconds=3601))

    attempt = models.TestAttempt.objects.get(user=candidate)
    assert attempt.time_expired is True


def test_submitting_from_the_lobby_is_a_conflict(candidate, make_questions):
    make_questions(30)
    services.open_session(candidate, now=T0)
    with pytest.raises(SessionConflict):
        services.submit_session(candidate, now=T0)


def test_submit_without_a_session(candidate):
    with pytest.raises(NoActiveSession):
        services.submit_session(candidate, submission_token=uuid.uuid4(), now=T0)


def test_duplicate_submission_returns_the_first_attempt(candidate, make_questions):
    make_questions(30)
    session, _ = _running(candidate)
    token = session.submission_token

    first = services.submit_session(candidate, submission_token=token, now=T0 + timedelta(minutes=5))
    second = services.submit_session(candidate, submission_token=token, now=T0 + timedelta(minutes=5))

    assert first.created is True
    assert second.created is False
    assert second.attempt.pk == first.attempt.pk
    assert models.TestAttempt.objects.filter(user=candidate).count() == 1


def test_assignment_is_completed_exactly_once(candidate, make_questions):
    assignment = _assign(candidate, make_questions(10))
    session, _ = _running(candidate)
    token = session.submission_token

    services.submit_session(candidate, submission_token=token, now=T0 + timedelta(minutes=5))
    services.submit_session(candidate, submission_token=token, now=T0 + timedelta(minutes=6))

    assignment.refresh_from_db()
    assert assignment.is_completed is True
    assert assignment.completed_at == T0 + timedelta(minutes=5)
    assert models.TestAttempt.objects.filter(assigned_exam=assignment).count() == 1


def test_completed_assignment_cannot_be_resubmitted(candidate, make_questions):
    assignment = _assign(candidate, make_questions(10))
    session, _ = _running(candidate)
    AssignedExam.objects.filter(pk=assignment.pk).update(is_completed=True, completed_at=T0)

    with pytest.raises(AlreadyCompleted):
        services.submit_session(candidate, submission_token=session.submission_token, now=T0)

    assert OngoingTestSession.objects.filter(user=candidate).exists()
    assert not models.TestAttempt.objects.exists()


def test_no_retake_without_a_new_assignment(candidate, make_questions):
    questions = make_questions(30)
    session, _ = _running(candidate)
    services.submit_session(candidate, submission_token=session.submission_token, now=T0)

    with pytest.raises(AlreadyCompleted):
        services.open_session(candidate, now=T0 + timedelta(days=1))

    _assign(candidate, questions[:10])
    view = services.open_session(candidate, now=T0 + timedelta(days=1))
    assert view.session.question_count == 10


def test_profile_failure_keeps_the_session(candidate, make_questions, monkeypatch):
    make_questions(30, correct="A")
    session, _ = _running(candidate)
    answers = {str(q["id"]): "A" for q in session.questions_data}
    services.checkpoint(candidate, answers=answers, now=T0 + timedelta(seconds=30))

    def broken(profile, now):
        raise DatabaseError("disk I/O error")

    monkeypatch.setattr(gate, "schedule_certificate", broken)

    with pytest.raises(SubmissionFailed):
        services.submit_session(candidate, submission_token=session.submission_token, now=T0 + timedelta(minutes=1))

    assert not models.TestAttempt.objects.exists()
    kept = store.resume(candidate)
    assert kept is not None
    assert kept.answers_data == answers
    candidate.refresh_from_db()
    assert candidate.test_completed is False


def test_transient_errors_are_retried(candidate, make_questions, monkeypatch):
    make_questions(30, correct="A")
    session, _ = _running(candidate)
    services.checkpoint(candidate, answers={str(q["id"]): "A" for q in session.questions_data}, now=T0)

    real = gate.schedule_certificate
    calls = []

    def flaky(profile, now):
        calls.append(now)
        if len(calls) == 1:
            raise OperationalError("database is locked")
        return real(profile, now)

    monkeypatch.setattr(gate, "schedule_certificate", flaky)

    result = services.submit_session(candidate, submission_token=session.submission_token, now=T0)

    assert len(calls) == 2
    assert result.created is True
    assert models.TestAttempt.objects.filter(user=candidate).count() == 1


def test_failed_attempt_schedules_no_certificate(candidate, make_questions):
    make_questions(30)
    session, _ = _running(candidate)
    result = services.submit_session(candidate, submission_token=session.submission_token, now=T0)

    assert result.attempt.passed is False
    candidate.refresh_from_db()
    assert candidate.test_completed is True
    assert candidate.certificate_available_at is None


def test_answers_sent_with_submission_within_grace(candidate, make_questions):
    make_questions(30, correct="B")
    session, _ = _running(candidate)
    answers = {str(q["id"]): "B" for q in session.questions_data}

    result = services.submit_session(candidate, submission_token=session.submission_token, answers=answers,
                                     now=T0 + timedelta(seconds=3605))

    assert result.attempt.score == 100
    assert result.attempt.time_expired is True


def test_late_answers_past_grace_are_ignored(candidate, make_questions):
    make_questions(30, correct="B")
    session, _ = _running(candidate)
    answers = {str(q["id"]): "B" for q in session.questions_data}

    result = services.submit_session(candidate, submission_token=session.submission_token, answers=answers,
                                     now=T0 + timedelta(hours=2))

    assert result.attempt.score == 0


def test_checkpoint_rejects_foreign_questions(candidate, make_questions):
    make_questions(30)
    _running(candidate)
    with pytest.raises(ValidationError):
        services.checkpoint(candidate, answers={"999999": "A"}, now=T0)
