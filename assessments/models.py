# assessments/models.py
import uuid

from django.conf import settings
from django.db import models

from exams.models import AssignedExam
from . import timer
from .machine import SessionSnapshot, SessionState


class OngoingTestSession(models.Model):
    """Resumable state of a test in progress. One per candidate at most."""
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='ongoing_test')
    assigned_exam = models.ForeignKey(AssignedExam, null=True, blank=True, on_delete=models.SET_NULL,
                                      related_name='ongoing_sessions')

    # Frozen at draw time: [{id, question, options, correct_answer, category}, ...]
    questions_data = models.JSONField(default=list)
    # Requested size of a random draw; null for assigned exams. The bank may
    # have held fewer questions than this when the draw was made.
    sample_size = models.PositiveSmallIntegerField(null=True, blank=True)
    # {question_id: letter}
    answers_data = models.JSONField(default=dict, blank=True)
    current_question = models.PositiveIntegerField(default=0)

    time_limit_seconds = models.PositiveIntegerField(default=3600)
    passing_score = models.PositiveSmallIntegerField(default=70)

    # Remaining budget as measured at remaining_as_of (not a live counter)
    remaining_seconds = models.PositiveIntegerField(default=3600)
    remaining_as_of = models.DateTimeField(null=True, blank=True)
    test_started = models.BooleanField(default=False)
    started_at = models.DateTimeField(null=True, blank=True)

    # Idempotency key carried into the TestAttempt on submission
    submission_token = models.UUIDField(default=uuid.uuid4, editable=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def question_count(self):
        return len(self.questions_data or [])

    @property
    def state(self):
        return SessionState.RUNNING if self.test_started else SessionState.LOBBY

    def remaining_at(self, now):
        return timer.remaining_seconds(self.remaining_seconds, self.remaining_as_of, now, started=self.test_started)

    def to_snapshot(self):
        return SessionSnapshot(
            questions=list(self.questions_data or []),
            answers=dict(self.answers_data or {}),
            current_question=self.current_question,
            remaining_seconds=self.remaining_seconds,
            remaining_as_of=self.remaining_as_of,
            started=self.test_started,
            started_at=self.started_at,
            submission_token=str(self.submission_token),
        )

    def __str__(self):
        return f"{self.user} - {self.state.value}"


class TestAttempt(models.Model):
    """Immutable record of a finished test."""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='test_attempts')
    # An assignment produces at most one attempt
    assigned_exam = models.OneToOneField(AssignedExam, null=True, blank=True, on_delete=models.SET_NULL,
                                         related_name='attempt')
    submission_token = models.UUIDField(unique=True)

    questions_data = models.JSONField(default=list)
    # [{question_id, selected_answer, correct_answer, is_correct}, ...]
    answers_data = models.JSONField(default=list)

    correct_count = models.PositiveIntegerField()
    total_questions = models.PositiveIntegerField()
    score = models.PositiveSmallIntegerField()
    passing_score = models.PositiveSmallIntegerField()
    passed = models.BooleanField()
    time_expired = models.BooleanField(default=False)  # auto-submitted by the timer

    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField()

    class Meta:
        ordering = ['-completed_at', '-id']
        get_latest_by = 'completed_at'

    def __str__(self):
        return f"{self.user} - {self.score}% ({'pass' if self.passed else 'fail'})"
