from rest_framework import generics, permissions, status, views
from rest_framework.response import Response

from cores.models import PlatformSetting
from . import services
from .models import TestAttempt
from .permissions import IsExaminerOrAdmin
from .serializers import (
    AnswerSerializer, AttemptResultSerializer, CheckpointSerializer, SubmitSerializer,
    TestAttemptSerializer, session_payload,
)


def _payload(view):
    return session_payload(view, PlatformSetting.load().checkpoint_interval_seconds)


# --- STUDENT VIEWS ---

class TestSessionView(views.APIView):
    """
    GET: lobby / resume. Creates the candidate's session on first visit and
    restores it afterwards, with the remaining time recomputed.
    PATCH: periodic checkpoint of the answer map and cursor.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        view = services.open_session(request.user)
        return Response(_payload(view))

    def patch(self, request):
        serializer = CheckpointSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        view = services.checkpoint(
            request.user,
            answers=serializer.validated_data.get('answers'),
            current_question=serializer.validated_data.get('current_question'),
        )
        return Response(_payload(view))


class StartTestView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        view = services.start_session(request.user)
        return Response(_payload(view))


class AnswerQuestionView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = AnswerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        view = services.record_answer(
            request.user,
            data['question_id'],
            data['answer'],
            current_question=data.get('current_question'),
        )
        return Response(_payload(view))


class SubmitTestView(views.APIView):
    """
    Candidate submits (manually or on timer expiry).
    Replaying the same submission_token returns the original attempt.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = SubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.submit_session(
            request.user,
            submission_token=serializer.validated_data.get('submission_token'),
            answers=serializer.validated_data.get('answers'),
        )
        return Response(
            {
                "status": "submitted",
                "duplicate": not result.created,
                "attempt": TestAttemptSerializer(result.attempt).data,
            },
            status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        )


class StudentTestAttemptsView(generics.ListAPIView):
    """List all attempts of the logged-in candidate, newest first."""
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = TestAttemptSerializer

    def get_queryset(self):
        return (TestAttempt.objects
                .filter(user=self.request.user)
                .select_related('assigned_exam__exam_configuration')
                .order_by('-completed_at', '-id'))


# --- EXAMINER / ADMIN VIEWS ---

class StudentResultsView(generics.ListAPIView):
    """All attempts, optionally filtered by ?passed=true|false or ?email=."""
    permission_classes = [IsExaminerOrAdmin]
    serializer_class = AttemptResultSerializer

    def get_queryset(self):
        queryset = TestAttempt.objects.select_related('user', 'assigned_exam__exam_configuration')
        passed = self.request.query_params.get('passed')
        if passed in ('true', 'false'):
            queryset = queryset.filter(passed=(passed == 'true'))
        email = self.request.query_params.get('email')
        if email:
            queryset = queryset.filter(user__email__iexact=email)
        return queryset.order_by('-completed_at', '-id')
