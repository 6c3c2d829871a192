# assessments/store.py
"""
Session state store: resume / upsert / remove of a candidate's OngoingTestSession.

Writes are last-write-wins keyed by candidate; there is one active client per
candidate so no further locking is needed for checkpoints. remove() is only
called from the submission transaction.
"""
import logging
import uuid

from django.utils import timezone

from .models import OngoingTestSession

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = (
    'assigned_exam', 'questions_data', 'sample_size', 'answers_data', 'current_question',
    'time_limit_seconds', 'passing_score', 'remaining_seconds', 'remaining_as_of',
    'test_started', 'started_at', 'submission_token',
)


def resume(user, for_update=False):
    queryset = OngoingTestSession.objects.select_related('assigned_exam__exam_configuration')
    if for_update:
        queryset = queryset.select_for_update()
    return queryset.filter(user=user).first()


def upsert(user, **snapshot):
    unknown = set(snapshot) - set(SNAPSHOT_FIELDS)
    if unknown:
        raise TypeError(f"unknown session fields: {', '.join(sorted(unknown))}")

    session, created = OngoingTestSession.objects.update_or_create(user=user, defaults=snapshot)
    if created:
        logger.info(f"Created test session for user {user.pk} ({session.question_count} questions)")
    return session


def replace(user, **snapshot):
    """Overwrite whatever session exists with a brand new one (new draw wins)."""
    snapshot.setdefault('answers_data', {})
    snapshot.setdefault('current_question', 0)
    snapshot.setdefault('test_started', False)
    snapshot.setdefault('started_at', None)
    snapshot.setdefault('remaining_as_of', None)
    snapshot.setdefault('assigned_exam', None)
    snapshot.setdefault('sample_size', None)
    snapshot['submission_token'] = uuid.uuid4()
    return upsert(user, **snapshot)


def save_progress(session, answers=None, current_question=None, now=None):
    """Checkpoint: persist answers/cursor and re-measure the remaining budget."""
    now = now or timezone.now()
    if answers is not None:
        session.answers_data = answers
    if current_question is not None:
        last = max(0, session.question_count - 1)
        session.current_question = min(max(0, int(current_question)), last)
    if session.test_started:
        session.remaining_seconds = session.remaining_at(now)
        session.remaining_as_of = now
    session.save(update_fields=['answers_data', 'current_question', 'remaining_seconds',
                                'remaining_as_of', 'updated_at'])
    return session


def remove(user):
    deleted, _ = OngoingTestSession.objects.filter(user=user).delete()
    return deleted > 0
