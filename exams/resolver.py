"""
Exam assignment resolution: a candidate either has an open AssignedExam, which
fixes the question set, time limit and pass mark, or falls back to a random
draw under the platform defaults.
"""
from dataclasses import dataclass
from typing import Optional

from django.utils import timezone

from assessments.exceptions import Expired, NotYetAvailable
from cores.models import PlatformSetting

from .models import AssignedExam


@dataclass(frozen=True)
class RandomDraw:
    question_count: int
    time_limit_seconds: int
    passing_score: int
    assigned_exam: Optional[AssignedExam] = None
    is_assigned_exam = False


@dataclass(frozen=True)
class AssignedExamContext:
    assigned_exam: AssignedExam
    question_count: int
    time_limit_seconds: int
    passing_score: int
    is_assigned_exam = True

    @property
    def configuration(self):
        return self.assigned_exam.exam_configuration


def open_assignment(user):
    return (AssignedExam.objects
            .select_related('exam_configuration')
            .filter(user=user, is_completed=False)
            .order_by('-assigned_at')
            .first())


def check_window(assignment, now):
    opens, closes = assignment.window
    if opens and now < opens:
        raise NotYetAvailable(f"Your assigned exam opens at {opens.isoformat()}.")
    if closes and now > closes:
        raise Expired(f"Your assigned exam closed at {closes.isoformat()}.")


def resolve(user, now=None, enforce_window=True):
    """
    Pure read. Raises NotYetAvailable / Expired when the assignment's window
    is closed; callers resuming a running session pass enforce_window=False
    because the window is only checked when a session starts.
    """
    now = now or timezone.now()
    assignment = open_assignment(user)

    if assignment is None:
        defaults = PlatformSetting.load()
        return RandomDraw(
            question_count=defaults.default_question_count,
            time_limit_seconds=defaults.default_time_limit_seconds,
            passing_score=defaults.default_pass_mark,
        )

    if enforce_window:
        check_window(assignment, now)

    config = assignment.exam_configuration
    return AssignedExamContext(
        assigned_exam=assignment,
        question_count=config.entries.count(),
        time_limit_seconds=config.time_limit_seconds,
        passing_score=config.passing_score,
    )
