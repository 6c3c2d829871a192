from django.urls import path
from .views import (
    AnswerQuestionView, StartTestView, StudentResultsView, StudentTestAttemptsView,
    SubmitTestView, TestSessionView,
)

urlpatterns = [
    # Candidate test flow
    path('tests/session/', TestSessionView.as_view(), name='test-session'),
    path('tests/session/start/', StartTestView.as_view(), name='test-session-start'),
    path('tests/session/answer/', AnswerQuestionView.as_view(), name='test-session-answer'),
    path('tests/session/submit/', SubmitTestView.as_view(), name='test-session-submit'),
    path('tests/attempts/', StudentTestAttemptsView.as_view(), name='test-attempts'),

    # Examiner / admin
    path('admin/results/', StudentResultsView.as_view(), name='student-results'),
]
