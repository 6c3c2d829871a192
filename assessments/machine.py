"""
Lifecycle of a timed test session, independent of Django and of any UI.

    NONE -> LOBBY -> RUNNING -> SUBMITTING -> TERMINAL
                                    |
                                    +-> RUNNING   (submission failed, retry)

There is no pause and no way back from TERMINAL. Server views and the
candidate-side driver both go through this table.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from . import timer

VALID_CHOICES = ("A", "B", "C", "D")


class SessionState(str, Enum):
    NONE = "none"
    LOBBY = "lobby"
    RUNNING = "running"
    SUBMITTING = "submitting"
    TERMINAL = "terminal"


TRANSITIONS = {
    SessionState.NONE: {SessionState.LOBBY},
    SessionState.LOBBY: {SessionState.RUNNING},
    SessionState.RUNNING: {SessionState.SUBMITTING},
    SessionState.SUBMITTING: {SessionState.TERMINAL, SessionState.RUNNING},
    SessionState.TERMINAL: set(),
}


class InvalidTransition(ValueError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"cannot move a test session from {current.value} to {target.value}")


class InvalidAnswer(ValueError):
    pass


def check_transition(current, target):
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(current, target)
    return target


def normalize_choice(choice):
    letter = (choice or "").strip().upper()
    if letter not in VALID_CHOICES:
        raise InvalidAnswer(f"answer must be one of {', '.join(VALID_CHOICES)}, got {choice!r}")
    return letter


def _parse_dt(value):
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class SessionSnapshot:
    """Everything needed to restore a session after a reload."""
    questions: List[dict]
    answers: Dict[str, str] = field(default_factory=dict)
    current_question: int = 0
    remaining_seconds: int = 0
    remaining_as_of: Optional[datetime] = None
    started: bool = False
    started_at: Optional[datetime] = None
    submission_token: Optional[str] = None

    @property
    def question_ids(self):
        return [str(q["id"]) for q in self.questions]

    def to_payload(self):
        return {
            "questions": self.questions,
            "answers": dict(self.answers),
            "current_question": self.current_question,
            "remaining_seconds": self.remaining_seconds,
            "remaining_as_of": self.remaining_as_of.isoformat() if self.remaining_as_of else None,
            "started": self.started,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "submission_token": self.submission_token,
        }

    @classmethod
    def from_payload(cls, data):
        return cls(
            questions=list(data.get("questions") or []),
            answers={str(k): v for k, v in (data.get("answers") or {}).items()},
            current_question=int(data.get("current_question") or 0),
            remaining_seconds=int(data.get("remaining_seconds") or 0),
            remaining_as_of=_parse_dt(data.get("remaining_as_of")),
            started=bool(data.get("started")),
            started_at=_parse_dt(data.get("started_at")),
            submission_token=data.get("submission_token"),
        )


class TestSessionMachine:
    """Pure operations over a SessionSnapshot. The clock is injected."""

    def __init__(self, snapshot=None, clock=timer.utcnow):
        self.clock = clock
        self.snapshot = snapshot
        self.countdown = None
        if snapshot is None:
            self.state = SessionState.NONE
        elif snapshot.started:
            self.state = SessionState.RUNNING
            self._rearm()
        else:
            self.state = SessionState.LOBBY

    def _rearm(self):
        snap = self.snapshot
        self.countdown = timer.Countdown(snap.remaining_seconds, snap.remaining_as_of, clock=self.clock)

    def _move(self, target):
        self.state = check_transition(self.state, target)

    def open(self, snapshot):
        self._move(SessionState.LOBBY)
        self.snapshot = snapshot

    @property
    def remaining(self):
        if self.snapshot is None:
            return 0
        snap = self.snapshot
        return timer.remaining_seconds(snap.remaining_seconds, snap.remaining_as_of, self.clock(), started=snap.started)

    @property
    def expired(self):
        return self.state == SessionState.RUNNING and self.remaining == 0

    def start(self):
        """LOBBY -> RUNNING. The clock starts from the budget left in the lobby."""
        self._move(SessionState.RUNNING)
        now = self.clock()
        self.snapshot.started = True
        self.snapshot.started_at = now
        self.snapshot.remaining_as_of = now
        self._rearm()

    def _require_running(self):
        if self.state != SessionState.RUNNING:
            raise InvalidTransition(self.state, SessionState.RUNNING)

    def answer(self, question_id, choice):
        self._require_running()
        qid = str(question_id)
        if qid not in self.snapshot.question_ids:
            raise InvalidAnswer(f"question {qid} is not part of this test")
        self.snapshot.answers[qid] = normalize_choice(choice)

    def navigate(self, index):
        self._require_running()
        last = len(self.snapshot.questions) - 1
        self.snapshot.current_question = min(max(0, int(index)), max(0, last))

    def checkpoint(self):
        """Re-measure the remaining budget against the clock and record when."""
        if self.state == SessionState.RUNNING:
            now = self.clock()
            self.snapshot.remaining_seconds = self.remaining
            self.snapshot.remaining_as_of = now
            self._rearm()
        return self.snapshot

    def anchor(self, remaining_seconds):
        """Adopt an authoritative remaining budget, measured now."""
        self.snapshot.remaining_seconds = max(0, int(remaining_seconds))
        self.snapshot.remaining_as_of = self.clock()
        if self.state == SessionState.RUNNING:
            self._rearm()

    def tick(self):
        """
        Returns (remaining, just_expired). just_expired is True only on the
        first tick that sees zero after the budget was last measured.
        """
        if self.state != SessionState.RUNNING or self.countdown is None:
            return self.remaining, False
        return self.countdown.tick()

    def begin_submit(self):
        self._move(SessionState.SUBMITTING)

    def complete(self):
        self._move(SessionState.TERMINAL)

    def fail_submit(self):
        self._move(SessionState.RUNNING)
