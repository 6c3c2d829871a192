"""
Candidate-side driver for a timed test.

Owns the local state machine, the once-per-second tick, the write-ahead
buffer and the in-flight submission guard. The UI (or a script) only calls
load / start / answer / navigate / tick / submit and renders what comes back.
"""
import logging
import threading

from . import timer
from .client import TRANSIENT_ERRORS, ApiError
from .exceptions import SubmissionFailed
from .machine import SessionSnapshot, SessionState, TestSessionMachine

logger = logging.getLogger(__name__)


class SubmissionNotConfirmed(Exception):
    """The server did not acknowledge the submission; answers are still buffered."""

    def __init__(self, cause=None):
        self.cause = cause
        super().__init__(str(SubmissionFailed.default_detail))


class CandidateSessionDriver:
    def __init__(self, api, buffer, clock=timer.utcnow, checkpoint_interval=30):
        self.api = api
        self.buffer = buffer
        self.clock = clock
        self.checkpoint_interval = checkpoint_interval
        self.machine = TestSessionMachine(clock=clock)
        self.attempt = None
        self.notice = None
        self._last_sent = None
        self._submit_lock = threading.Lock()

    # --- state ---

    @property
    def state(self):
        if self.attempt is not None:
            return SessionState.TERMINAL
        return self.machine.state

    @property
    def snapshot(self):
        return self.machine.snapshot

    @property
    def remaining(self):
        return self.machine.remaining

    def _anchor(self, data):
        """Adopt the server's view of the remaining budget, measured now."""
        if data and "remaining_seconds" in data and self.machine.snapshot is not None:
            self.machine.anchor(data["remaining_seconds"])

    def _finish(self, data):
        self.attempt = data.get("attempt")
        if self.machine.state == SessionState.SUBMITTING:
            self.machine.complete()
        self.buffer.clear()
        return self.attempt

    # --- lifecycle ---

    def load(self):
        """Lobby / resume, then replay anything left in the buffer."""
        data = self.api.lobby()
        if data.get("status") == "submitted":
            self.buffer.clear()
            return self._finish(data)

        session = data["session"]
        now = self.clock()
        snapshot = SessionSnapshot(
            questions=session["questions"],
            answers={str(k): v for k, v in (session.get("answers") or {}).items()},
            current_question=session.get("current_question", 0),
            remaining_seconds=int(data["remaining_seconds"]),
            remaining_as_of=now,
            started=bool(session.get("test_started")),
            submission_token=str(session["submission_token"]),
        )
        self.machine = TestSessionMachine(snapshot, clock=self.clock)
        self.notice = data.get("notice")
        self._last_sent = now

        pending = self.buffer.pending()
        if pending is not None:
            buffered = SessionSnapshot.from_payload(pending)
            if buffered.submission_token == snapshot.submission_token and snapshot.started:
                # buffered writes are newer than the last acknowledged checkpoint
                snapshot.answers.update(buffered.answers)
                snapshot.current_question = buffered.current_question
                self.reconcile()
            else:
                logger.warning("Dropping buffered progress that belongs to a different test session")
                self.buffer.clear()
        return self.snapshot

    def start(self):
        data = self.api.start()
        if data.get("status") == "submitted":
            return self._finish(data)
        if self.machine.state == SessionState.LOBBY:
            self.machine.start()
        self._anchor(data)
        self._last_sent = self.clock()
        return self.snapshot

    def _send(self, call):
        """Run an API write; on network trouble keep the buffer for replay."""
        try:
            data = call()
        except TRANSIENT_ERRORS as exc:
            logger.warning(f"Checkpoint not delivered, kept in buffer: {exc}")
            return False
        except ApiError as exc:
            if exc.code == "time_expired":
                # the server already auto-submitted; fetch the attempt
                self.submit()
                return False
            if exc.transient:
                logger.warning(f"Checkpoint rejected by server ({exc.code}), kept in buffer")
                return False
            raise
        self._anchor(data)
        self._last_sent = self.clock()
        self.buffer.clear()
        return True

    def answer(self, question_id, choice):
        self.machine.answer(question_id, choice)
        snap = self.machine.snapshot
        self.buffer.write(snap.to_payload())
        return self._send(lambda: self.api.answer(question_id, snap.answers[str(question_id)],
                                                  current_question=snap.current_question))

    def navigate(self, index):
        self.machine.navigate(index)
        return self.checkpoint()

    def checkpoint(self):
        if self.machine.state != SessionState.RUNNING:
            return False
        snap = self.machine.checkpoint()
        self.buffer.write(snap.to_payload())
        return self._send(lambda: self.api.checkpoint(dict(snap.answers), snap.current_question))

    def reconcile(self):
        """Replay the buffered snapshot, if any."""
        if self.buffer.dirty and self.machine.state == SessionState.RUNNING:
            return self.checkpoint()
        return not self.buffer.dirty

    def tick(self):
        """
        Called about once per second. Returns the remaining seconds; at zero
        submits instead, at most one request in flight.
        """
        if self.state != SessionState.RUNNING:
            return self.remaining
        left, just_expired = self.machine.tick()
        if just_expired:
            logger.info("Time is up, submitting")
        if left == 0:
            # retried on every tick until the server confirms
            self.submit()
            return 0

        now = self.clock()
        due = self._last_sent is None or timer.elapsed_seconds(self._last_sent, now) >= self.checkpoint_interval
        if due or self.buffer.dirty:
            if due:
                self.checkpoint()
            else:
                self.reconcile()
        return left

    def submit(self):
        """
        Single in-flight submission shared by the timer and the submit button.
        Returns the attempt, or None when another submission is in flight.
        """
        if not self._submit_lock.acquire(blocking=False):
            return None
        try:
            if self.attempt is not None:
                return self.attempt
            self.machine.begin_submit()
            snap = self.machine.snapshot
            self.buffer.write(snap.to_payload())
            try:
                data = self.api.submit(snap.submission_token, answers=dict(snap.answers))
            except TRANSIENT_ERRORS as exc:
                self.machine.fail_submit()
                logger.error(f"Submission not confirmed: {exc}")
                raise SubmissionNotConfirmed(exc) from exc
            except ApiError as exc:
                self.machine.fail_submit()
                if exc.transient:
                    logger.error(f"Submission not confirmed: {exc}")
                    raise SubmissionNotConfirmed(exc) from exc
                raise
            return self._finish(data)
        finally:
            self._submit_lock.release()

    def run(self, ticker=None):
        """Tick until the attempt is recorded. Failed submissions are retried on the next tick."""
        if self.attempt is None and self.machine.state != SessionState.RUNNING:
            raise RuntimeError("start the test before running the countdown")
        for _ in ticker or timer.monotonic_ticker():
            try:
                self.tick()
            except SubmissionNotConfirmed:
                logger.warning("Retrying submission on the next tick")
            if self.attempt is not None:
                return self.attempt
