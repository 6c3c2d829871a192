# assessments/exceptions.py
from rest_framework import status
from rest_framework.exceptions import APIException


class TestEngineError(APIException):
    """Base for every error the test engine reports to the candidate."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The test could not be processed."
    default_code = "test_engine_error"


# --- Precondition errors (raised before any state is touched) ---

class NotEntitled(TestEngineError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Your membership payment must be completed before you can take the test."
    default_code = "not_entitled"


class NotYetAvailable(TestEngineError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Your assigned exam is not open yet."
    default_code = "not_yet_available"


class Expired(TestEngineError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "The availability window for your assigned exam has closed."
    default_code = "expired"


class AlreadyCompleted(TestEngineError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "You have already completed this test."
    default_code = "already_completed"


# --- Session state errors ---

class NoActiveSession(TestEngineError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "You have no test in progress."
    default_code = "no_active_session"


class SessionConflict(TestEngineError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "That action is not possible at this stage of the test."
    default_code = "session_conflict"


class TimeExpired(TestEngineError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Time is up. Your test has been submitted automatically."
    default_code = "time_expired"


class NoQuestionsAvailable(TestEngineError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "No questions are available for your test yet. Please contact support."
    default_code = "no_questions_available"


# --- I/O errors ---

class SubmissionFailed(TestEngineError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = ("Your submission could not be saved. Your answers are kept; do not retake the test. "
                      "Try submitting again, or contact support if this persists.")
    default_code = "submission_failed"


# Not an error: returned as a notice alongside a freshly drawn session.
STALE_SESSION_DISCARDED = {
    "code": "stale_session_discarded",
    "message": "Your previous in-progress test no longer matched your exam and was replaced with a new one.",
}
