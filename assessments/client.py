"""Small requests-based client for the candidate test-session endpoints."""
import logging

import requests

logger = logging.getLogger(__name__)

# Network problems worth buffering and retrying
TRANSIENT_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)


class ApiError(Exception):
    """An error answer from the server: {"error": ..., "code": ...}."""

    def __init__(self, status_code, code, message):
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{status_code} {code}: {message}")

    @property
    def transient(self):
        return self.status_code >= 500


class TestCenterClient:
    def __init__(self, base_url, access_token, session=None, timeout=20):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.http = session or requests.Session()
        self.http.headers.update({"Authorization": f"Bearer {access_token}"})

    def _call(self, method, path, payload=None):
        resp = self.http.request(method, f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            raise ApiError(resp.status_code, data.get("code", "error"), data.get("error", resp.reason))
        return data

    def lobby(self):
        return self._call("GET", "/api/tests/session/")

    def start(self):
        return self._call("POST", "/api/tests/session/start/")

    def answer(self, question_id, answer, current_question=None):
        payload = {"question_id": str(question_id), "answer": answer}
        if current_question is not None:
            payload["current_question"] = current_question
        return self._call("POST", "/api/tests/session/answer/", payload)

    def checkpoint(self, answers, current_question):
        return self._call("PATCH", "/api/tests/session/", {"answers": answers, "current_question": current_question})

    def submit(self, submission_token, answers=None):
        payload = {"submission_token": submission_token}
        if answers is not None:
            payload["answers"] = answers
        return self._call("POST", "/api/tests/session/submit/", payload)
