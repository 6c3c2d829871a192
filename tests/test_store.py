from datetime import timedelta

import pytest

from assessments import store
from assessments.models import OngoingTestSession
from tests.conftest import T0


def _questions(n):
    return [{"id": i, "question": f"Q{i}", "options": {}, "correct_answer": "A"} for i in range(1, n + 1)]


def test_resume_without_a_session(candidate):
    assert store.resume(candidate) is None


def test_upsert_keeps_one_session_per_candidate(candidate):
    store.upsert(candidate, questions_data=_questions(3), remaining_seconds=600)
    store.upsert(candidate, questions_data=_questions(3), answers_data={"1": "B"}, remaining_seconds=600)

    assert OngoingTestSession.objects.filter(user=candidate).count() == 1
    assert store.resume(candidate).answers_data == {"1": "B"}


def test_upsert_rejects_unknown_fields(candidate):
    with pytest.raises(TypeError):
        store.upsert(candidate, score=100)


def test_replace_resets_progress_and_token(candidate):
    first = store.replace(candidate, questions_data=_questions(3), time_limit_seconds=600,
                          passing_score=70, remaining_seconds=600)
    first_token = first.submission_token
    store.save_progress(first, answers={"1": "C"}, current_question=2, now=T0)

    second = store.replace(candidate, questions_data=_questions(5), time_limit_seconds=600,
                           passing_score=70, remaining_seconds=600)

    assert second.pk == first.pk
    assert second.submission_token != first_token
    assert second.answers_data == {}
    assert second.current_question == 0
    assert second.test_started is False


def test_save_progress_remeasures_a_running_clock(candidate):
    session = store.replace(candidate, questions_data=_questions(3), time_limit_seconds=600,
                            passing_score=70, remaining_seconds=600)
    session.test_started = True
    session.started_at = T0
    session.remaining_as_of = T0
    session.save()

    store.save_progress(session, answers={"2": "D"}, current_question=9, now=T0 + timedelta(seconds=90))

    session.refresh_from_db()
    assert session.remaining_seconds == 510
    assert session.remaining_as_of == T0 + timedelta(seconds=90)
    assert session.current_question == 2  # clamped to the last question
    assert session.remaining_at(T0 + timedelta(seconds=100)) == 500


def test_remove(candidate):
    store.upsert(candidate, questions_data=_questions(1))
    assert store.remove(candidate) is True
    assert store.remove(candidate) is False
