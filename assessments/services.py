# assessments/services.py
"""
Test session operations used by the API views: open (lobby / resume), start,
answer, checkpoint and submit. Views stay thin; every rule of the session
lifecycle lives here.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, OperationalError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from certificates import gate
from cores.models import AuditLog
from exams import bank, resolver
from exams.models import AssignedExam
from . import scoring, store, timer
from .exceptions import (
    AlreadyCompleted, NoActiveSession, NoQuestionsAvailable, NotEntitled,
    SessionConflict, SubmissionFailed, TimeExpired,
)
from .machine import (
    InvalidAnswer, InvalidTransition, SessionState, TestSessionMachine, check_transition, normalize_choice,
)
from .models import OngoingTestSession, TestAttempt

logger = logging.getLogger(__name__)


@dataclass
class SessionView:
    session: Optional[OngoingTestSession]
    remaining_seconds: int
    context: object = None
    stale_session_discarded: bool = False
    attempt: Optional[TestAttempt] = None  # set when the timer ran out and we auto-submitted


@dataclass
class SubmitResult:
    attempt: TestAttempt
    created: bool


def require_entitled(user):
    if not user.is_entitled:
        raise NotEntitled()


def is_compatible(session, context):
    """
    Whether a stored session still belongs to the resolved draw. Random draws
    are judged by the sample size recorded when they were drawn, never by the
    current bank, so retiring questions cannot invalidate a session.
    """
    if context.is_assigned_exam:
        return (session.assigned_exam_id == context.assigned_exam.pk
                and session.question_count == context.question_count)
    return (session.assigned_exam_id is None
            and session.sample_size == context.question_count
            and 0 < session.question_count <= session.sample_size)


def _draw(context, rng=None):
    if context.is_assigned_exam:
        return bank.draw_assigned(context.configuration)
    return bank.draw_random(context.question_count, rng=rng)


def open_session(user, now=None, rng=None):
    """
    Lobby / resume. Restores a compatible session verbatim (with the remaining
    time recomputed), replaces an incompatible one with a fresh draw, or
    creates the first session. A running session whose time ran out while
    the candidate was away is submitted here.
    """
    now = now or timezone.now()
    require_entitled(user)

    session = store.resume(user)
    running = session is not None and session.test_started

    if running and session.remaining_at(now) == 0:
        logger.warning(f"Session for user {user.pk} expired while disconnected; auto-submitting")
        result = submit_session(user, now=now, time_expired=True)
        return SessionView(None, 0, attempt=result.attempt)

    # The availability window is only checked when a session starts
    context = resolver.resolve(user, now, enforce_window=not running)

    stale = False
    if session is not None:
        if is_compatible(session, context):
            return SessionView(session, session.remaining_at(now), context)
        stale = True
        logger.warning(
            f"Discarding stale session for user {user.pk}: {session.question_count} frozen questions "
            f"(drawn for {session.sample_size or 'an assignment'}), {context.question_count} expected"
        )
        if running and context.is_assigned_exam:
            resolver.check_window(context.assigned_exam, now)

    if not context.is_assigned_exam and user.test_completed:
        raise AlreadyCompleted()

    questions = _draw(context, rng=rng)
    if not questions:
        raise NoQuestionsAvailable()

    session = store.replace(
        user,
        assigned_exam=context.assigned_exam,
        questions_data=questions,
        sample_size=None if context.is_assigned_exam else context.question_count,
        time_limit_seconds=context.time_limit_seconds,
        passing_score=context.passing_score,
        remaining_seconds=context.time_limit_seconds,
    )
    return SessionView(session, session.remaining_seconds, context, stale_session_discarded=stale)


def start_session(user, now=None):
    """LOBBY -> RUNNING. Starting an already running session is a no-op."""
    now = now or timezone.now()
    require_entitled(user)

    with transaction.atomic():
        session = store.resume(user, for_update=True)
        if session is None:
            raise NoActiveSession()

        if not session.test_started:
            try:
                check_transition(session.state, SessionState.RUNNING)
            except InvalidTransition as exc:
                raise SessionConflict(str(exc))
            if session.assigned_exam_id:
                resolver.check_window(session.assigned_exam, now)

            session.test_started = True
            session.started_at = now
            session.remaining_as_of = now
            session.save(update_fields=['test_started', 'started_at', 'remaining_as_of', 'updated_at'])
            logger.info(f"User {user.pk} started a {session.question_count}-question test "
                        f"({session.remaining_seconds}s)")
            return SessionView(session, session.remaining_seconds)

    remaining = session.remaining_at(now)
    if remaining == 0:
        result = submit_session(user, now=now, time_expired=True)
        return SessionView(None, 0, attempt=result.attempt)
    return SessionView(session, remaining)


def _running_session(user, now):
    session = store.resume(user)
    if session is None:
        raise NoActiveSession()
    if not session.test_started:
        raise SessionConflict("Start the test before answering questions.")
    if session.remaining_at(now) == 0:
        submit_session(user, now=now, time_expired=True)
        raise TimeExpired()
    return session


def _machine_for(session, now):
    return TestSessionMachine(session.to_snapshot(), clock=lambda: now)


def record_answer(user, question_id, choice, current_question=None, now=None):
    now = now or timezone.now()
    require_entitled(user)
    session = _running_session(user, now)

    machine = _machine_for(session, now)
    try:
        machine.answer(question_id, choice)
        if current_question is not None:
            machine.navigate(current_question)
    except InvalidAnswer as exc:
        raise ValidationError({"answer": [str(exc)]})

    store.save_progress(session, answers=machine.snapshot.answers,
                        current_question=machine.snapshot.current_question, now=now)
    return SessionView(session, session.remaining_at(now))


def clean_answers(session, answers):
    """Validate a full answer map against the session's frozen questions."""
    known = {str(q["id"]) for q in session.questions_data}
    cleaned = {}
    errors = {}
    for qid, choice in (answers or {}).items():
        qid = str(qid)
        if qid not in known:
            errors[qid] = "not part of this test"
            continue
        if choice in (None, ""):
            continue
        try:
            cleaned[qid] = normalize_choice(choice)
        except InvalidAnswer as exc:
            errors[qid] = str(exc)
    if errors:
        raise ValidationError({"answers": errors})
    return cleaned


def checkpoint(user, answers=None, current_question=None, now=None):
    """Periodic / navigation checkpoint. Last write wins."""
    now = now or timezone.now()
    require_entitled(user)
    session = _running_session(user, now)
    cleaned = clean_answers(session, answers) if answers is not None else None
    store.save_progress(session, answers=cleaned, current_question=current_question, now=now)
    return SessionView(session, session.remaining_at(now))


def _existing_attempt(user, submission_token):
    if not submission_token:
        return None
    return TestAttempt.objects.filter(user=user, submission_token=submission_token).first()


def _accepts_late_answers(session, now):
    grace = timedelta(seconds=settings.TEST_ENGINE['SUBMISSION_GRACE_SECONDS'])
    return now <= timer.deadline(session.remaining_seconds, session.remaining_as_of or now) + grace


def _submit_once(user, submission_token, answers, now, time_expired):
    with transaction.atomic():
        session = store.resume(user, for_update=True)
        if session is None:
            existing = _existing_attempt(user, submission_token)
            if existing is not None:
                logger.info(f"Duplicate submission for user {user.pk} answered with attempt {existing.pk}")
                return SubmitResult(existing, False)
            raise NoActiveSession()

        if submission_token and str(session.submission_token) != str(submission_token):
            existing = _existing_attempt(user, submission_token)
            if existing is not None:
                return SubmitResult(existing, False)
            raise SessionConflict("This submission does not match your current test. Reload the page and try again.")

        try:
            check_transition(session.state, SessionState.SUBMITTING)
        except InvalidTransition:
            raise SessionConflict("The test has not been started yet.")

        time_expired = time_expired or session.remaining_at(now) == 0
        answer_map = dict(session.answers_data or {})
        if answers is not None and _accepts_late_answers(session, now):
            answer_map = clean_answers(session, answers)

        assignment = None
        if session.assigned_exam_id:
            assignment = AssignedExam.objects.select_for_update().get(pk=session.assigned_exam_id)
            if assignment.is_completed:
                raise AlreadyCompleted("This exam assignment has already been completed and cannot be resubmitted.")

        result = scoring.grade(session.questions_data, answer_map, session.passing_score)

        attempt = TestAttempt.objects.create(
            user=user,
            assigned_exam=assignment,
            submission_token=session.submission_token,
            questions_data=[
                {"id": q["id"], "question": q.get("question"), "correct_answer": q.get("correct_answer")}
                for q in session.questions_data
            ],
            answers_data=result.records,
            correct_count=result.correct_count,
            total_questions=result.total_questions,
            score=result.score,
            passing_score=result.passing_score,
            passed=result.passed,
            time_expired=time_expired,
            started_at=session.started_at,
            completed_at=now,
        )

        if assignment is not None:
            assignment.is_completed = True
            assignment.completed_at = now
            assignment.score = result.score
            assignment.passed = result.passed
            assignment.save(update_fields=['is_completed', 'completed_at', 'score', 'passed'])

        profile = get_user_model().objects.select_for_update().get(pk=user.pk)
        profile.test_completed = True
        profile.test_score = result.score
        update_fields = ['test_completed', 'test_score']
        if result.passed:
            gate.schedule_certificate(profile, now)
            update_fields += ['certificate_available_at', 'certificate_issued']
        profile.save(update_fields=update_fields)

        AuditLog.objects.create(
            actor=profile,
            action='SUBMIT',
            target_model='TestAttempt',
            target_object_id=str(attempt.pk),
            details=(f"{result.correct_count}/{result.total_questions} correct, score {result.score}% "
                     f"({'passed' if result.passed else 'failed'}){' - time expired' if time_expired else ''}"),
        )

        # Strictly last: a failure above leaves the session in place
        store.remove(user)

    for name in update_fields:
        setattr(user, name, getattr(profile, name))
    logger.info(f"User {user.pk} submitted attempt {attempt.pk}: {result.score}% "
                f"({'pass' if result.passed else 'fail'})")
    return SubmitResult(attempt, True)


def submit_session(user, submission_token=None, answers=None, now=None, time_expired=False):
    """
    Score and finalise the candidate's session exactly once. A repeated
    submission carrying the same token returns the original attempt.
    Transient database errors are retried; anything that still fails is
    reported as SubmissionFailed and the session is kept.
    """
    now = now or timezone.now()
    retries = max(1, settings.TEST_ENGINE['SUBMISSION_RETRIES'])

    for attempt_no in range(1, retries + 1):
        try:
            return _submit_once(user, submission_token, answers, now, time_expired)
        except IntegrityError as exc:
            # a concurrent request won the race for this token
            existing = _existing_attempt(user, submission_token) or _latest_attempt_for_session(user)
            if existing is not None:
                return SubmitResult(existing, False)
            logger.exception(f"Submission for user {user.pk} violated an integrity constraint")
            raise SubmissionFailed() from exc
        except OperationalError as exc:
            logger.warning(f"Submission attempt {attempt_no}/{retries} for user {user.pk} failed: {exc}")
            last_error = exc
        except DatabaseError as exc:
            logger.exception(f"Submission for user {user.pk} failed")
            raise SubmissionFailed() from exc

    logger.error(f"Giving up on submission for user {user.pk} after {retries} attempts")
    raise SubmissionFailed() from last_error


def _latest_attempt_for_session(user):
    session = store.resume(user)
    if session is None:
        return None
    return _existing_attempt(user, session.submission_token)
