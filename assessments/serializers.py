from rest_framework import serializers

from .exceptions import STALE_SESSION_DISCARDED
from .models import OngoingTestSession, TestAttempt


def public_questions(questions_data):
    """The frozen snapshot minus the answer key."""
    return [
        {
            "id": q["id"],
            "question": q.get("question"),
            "options": q.get("options") or {},
            "category": q.get("category", ""),
        }
        for q in questions_data or []
    ]


class OngoingTestSessionSerializer(serializers.ModelSerializer):
    """Session as the candidate sees it. Never includes correct answers."""
    questions = serializers.SerializerMethodField()
    total_questions = serializers.IntegerField(source='question_count', read_only=True)
    state = serializers.SerializerMethodField()
    is_assigned_exam = serializers.SerializerMethodField()
    answers = serializers.JSONField(source='answers_data', read_only=True)

    class Meta:
        model = OngoingTestSession
        fields = [
            'id', 'state', 'is_assigned_exam', 'questions', 'total_questions', 'answers',
            'current_question', 'time_limit_seconds', 'passing_score', 'test_started',
            'started_at', 'submission_token', 'updated_at',
        ]

    def get_questions(self, obj):
        return public_questions(obj.questions_data)

    def get_state(self, obj):
        return obj.state.value

    def get_is_assigned_exam(self, obj):
        return obj.assigned_exam_id is not None


class TestAttemptSerializer(serializers.ModelSerializer):
    exam_name = serializers.CharField(source='assigned_exam.exam_configuration.name', read_only=True, default=None)

    class Meta:
        model = TestAttempt
        fields = [
            'id', 'exam_name', 'score', 'passing_score', 'passed', 'correct_count', 'total_questions',
            'time_expired', 'started_at', 'completed_at', 'answers_data',
        ]
        read_only_fields = fields


class AttemptResultSerializer(TestAttemptSerializer):
    """Staff view: adds the candidate."""
    candidate_email = serializers.CharField(source='user.email', read_only=True)
    candidate_name = serializers.CharField(source='user.get_full_name', read_only=True)

    class Meta(TestAttemptSerializer.Meta):
        fields = ['candidate_email', 'candidate_name'] + TestAttemptSerializer.Meta.fields
        read_only_fields = fields


def session_payload(view, checkpoint_interval):
    """Body returned by every session endpoint."""
    if view.session is None:
        return {
            "status": "submitted",
            "remaining_seconds": 0,
            "attempt": TestAttemptSerializer(view.attempt).data if view.attempt else None,
        }

    data = {
        "status": view.session.state.value,
        "remaining_seconds": view.remaining_seconds,
        "checkpoint_interval_seconds": checkpoint_interval,
        "session": OngoingTestSessionSerializer(view.session).data,
    }
    if view.stale_session_discarded:
        data["notice"] = STALE_SESSION_DISCARDED
    return data


# --- Request bodies ---

class AnswerSerializer(serializers.Serializer):
    question_id = serializers.CharField()
    answer = serializers.CharField()
    current_question = serializers.IntegerField(min_value=0, required=False)


class CheckpointSerializer(serializers.Serializer):
    answers = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)
    current_question = serializers.IntegerField(min_value=0, required=False)


class SubmitSerializer(serializers.Serializer):
    submission_token = serializers.UUIDField(required=False)
    answers = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)
