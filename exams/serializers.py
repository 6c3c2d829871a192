# certitest_platform/exams/serializers.py
from django.db import transaction
from rest_framework import serializers

from .models import CHOICE_LETTERS, AssignedExam, ExamConfiguration, ExamConfigurationQuestion, Option, Question

# --- Helper Serializers ---

class OptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Option
        fields = ['label', 'text']

# --- Question Serializers ---

class QuestionSerializer(serializers.ModelSerializer):
    # Map frontend 'question_text' to backend 'text'
    question_text = serializers.CharField(source='text')
    # Frontend sends the four choices as {"A": "...", "B": "...", "C": "...", "D": "..."}
    options = serializers.DictField(child=serializers.CharField(max_length=255), write_only=True)
    options_data = OptionSerializer(source='options', many=True, read_only=True)
    correct_answer = serializers.CharField(max_length=1)

    class Meta:
        model = Question
        fields = [
            'id', 'question_text', 'category', 'correct_answer', 'is_active',
            'options', 'options_data', 'created_at'
        ]
        read_only_fields = ['created_at']

    def validate_options(self, value):
        labels = {k.strip().upper() for k in value}
        if labels != set(CHOICE_LETTERS):
            raise serializers.ValidationError(f"Exactly four options labelled {', '.join(CHOICE_LETTERS)} are required.")
        return {k.strip().upper(): v.strip() for k, v in value.items()}

    def validate_correct_answer(self, value):
        letter = value.strip().upper()
        if letter not in CHOICE_LETTERS:
            raise serializers.ValidationError(f"Must be one of {', '.join(CHOICE_LETTERS)}.")
        return letter

    @transaction.atomic
    def create(self, validated_data):
        options = validated_data.pop('options')
        question = Question.objects.create(**validated_data)
        Option.objects.bulk_create([Option(question=question, label=k, text=v) for k, v in sorted(options.items())])
        return question

    @transaction.atomic
    def update(self, instance, validated_data):
        options = validated_data.pop('options', None)
        instance = super().update(instance, validated_data)
        if options is not None:
            instance.options.all().delete()
            Option.objects.bulk_create([Option(question=instance, label=k, text=v) for k, v in sorted(options.items())])
        return instance

# --- Exam Configuration Serializers ---

class ExamConfigurationSerializer(serializers.ModelSerializer):
    # Ordered list of question ids; position follows list order
    question_ids = serializers.ListField(child=serializers.IntegerField(), write_only=True)
    questions = serializers.SerializerMethodField()
    total_questions = serializers.IntegerField(source='entries.count', read_only=True)

    class Meta:
        model = ExamConfiguration
        fields = [
            'id', 'name', 'description', 'question_ids', 'questions', 'total_questions',
            'time_limit_seconds', 'passing_score', 'available_from', 'available_until',
            'created_by', 'created_at'
        ]
        read_only_fields = ['created_by', 'created_at']

    def get_questions(self, obj):
        return list(obj.entries.order_by('position', 'question_id').values_list('question_id', flat=True))

    def validate_question_ids(self, value):
        if not value:
            raise serializers.ValidationError("An exam needs at least one question.")
        if len(set(value)) != len(value):
            raise serializers.ValidationError("Questions may only appear once.")
        found = set(Question.objects.filter(id__in=value).values_list('id', flat=True))
        missing = [pk for pk in value if pk not in found]
        if missing:
            raise serializers.ValidationError(f"Unknown question ids: {missing}")
        return value

    def validate_passing_score(self, value):
        if value > 100:
            raise serializers.ValidationError("Passing score is a percentage between 0 and 100.")
        return value

    def validate(self, attrs):
        opens = attrs.get('available_from', getattr(self.instance, 'available_from', None))
        closes = attrs.get('available_until', getattr(self.instance, 'available_until', None))
        if opens and closes and closes <= opens:
            raise serializers.ValidationError("available_until must be after available_from.")
        return attrs

    def _set_questions(self, config, question_ids):
        config.entries.all().delete()
        ExamConfigurationQuestion.objects.bulk_create([
            ExamConfigurationQuestion(configuration=config, question_id=pk, position=i)
            for i, pk in enumerate(question_ids)
        ])

    @transaction.atomic
    def create(self, validated_data):
        question_ids = validated_data.pop('question_ids')
        config = ExamConfiguration.objects.create(**validated_data)
        self._set_questions(config, question_ids)
        return config

    @transaction.atomic
    def update(self, instance, validated_data):
        question_ids = validated_data.pop('question_ids', None)
        instance = super().update(instance, validated_data)
        if question_ids is not None:
            self._set_questions(instance, question_ids)
        return instance

# --- Assignment Serializers ---

class AssignedExamSerializer(serializers.ModelSerializer):
    user_email = serializers.CharField(source='user.email', read_only=True)
    user_name = serializers.CharField(source='user.get_full_name', read_only=True)
    exam_name = serializers.CharField(source='exam_configuration.name', read_only=True)

    class Meta:
        model = AssignedExam
        fields = [
            'id', 'user', 'user_email', 'user_name', 'exam_configuration', 'exam_name',
            'assigned_at', 'available_from', 'available_until',
            'is_completed', 'completed_at', 'score', 'passed'
        ]
        read_only_fields = ['assigned_at', 'is_completed', 'completed_at', 'score', 'passed']

    def validate(self, attrs):
        user = attrs.get('user')
        if user and AssignedExam.objects.filter(user=user, is_completed=False).exists():
            raise serializers.ValidationError("This candidate already has an open exam assignment.")
        return attrs
