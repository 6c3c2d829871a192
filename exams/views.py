import csv
import io
import logging

from django.db import transaction
from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from assessments.permissions import IsExaminerOrAdmin
from cores.models import AuditLog
from .models import CHOICE_LETTERS, AssignedExam, ExamConfiguration, Option, Question
from .serializers import AssignedExamSerializer, ExamConfigurationSerializer, QuestionSerializer

logger = logging.getLogger(__name__)


class QuestionViewSet(viewsets.ModelViewSet):
    queryset = Question.objects.prefetch_related('options').order_by('-id')
    serializer_class = QuestionSerializer
    permission_classes = [IsExaminerOrAdmin]

    # Enable Search and Filtering for the Question Bank
    filter_backends = [filters.SearchFilter]
    search_fields = ['text', 'category']

    def get_queryset(self):
        queryset = super().get_queryset()
        active = self.request.query_params.get('is_active')
        if active in ('true', 'false'):
            queryset = queryset.filter(is_active=(active == 'true'))
        category = self.request.query_params.get('category')
        if category:
            queryset = queryset.filter(category__iexact=category)
        return queryset

    def perform_destroy(self, instance):
        # Questions are referenced by value in sessions and attempts; retiring
        # them keeps the bank history intact.
        instance.is_active = False
        instance.save(update_fields=['is_active'])

    @action(detail=False, methods=['post'], url_path='bulk-upload', parser_classes=[MultiPartParser, FormParser])
    def bulk_upload(self, request):
        """
        Upload questions via CSV.
        Expected CSV Header: question_text, option_a, option_b, option_c, option_d, correct_answer, category
        """
        file_obj = request.FILES.get('file')
        if not file_obj:
            return Response({"error": "No file uploaded", "code": "invalid"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            decoded_file = file_obj.read().decode('utf-8')
        except UnicodeDecodeError:
            return Response({"error": "The file must be UTF-8 encoded CSV", "code": "invalid"},
                            status=status.HTTP_400_BAD_REQUEST)

        reader = csv.DictReader(io.StringIO(decoded_file))
        errors = []
        rows = []
        for line_no, row in enumerate(reader, start=2):
            text = (row.get('question_text') or '').strip()
            options = {letter: (row.get(f'option_{letter.lower()}') or '').strip() for letter in CHOICE_LETTERS}
            correct = (row.get('correct_answer') or '').strip().upper()
            if not text or not all(options.values()):
                errors.append(f"line {line_no}: question text and all four options are required")
                continue
            if correct not in CHOICE_LETTERS:
                errors.append(f"line {line_no}: correct_answer must be one of {', '.join(CHOICE_LETTERS)}")
                continue
            rows.append((text, options, correct, (row.get('category') or 'General').strip()))

        if errors:
            return Response({"error": "Upload rejected", "code": "invalid", "fields": {"file": errors}},
                            status=status.HTTP_400_BAD_REQUEST)

        with transaction.atomic():
            for text, options, correct, category in rows:
                question = Question.objects.create(text=text, correct_answer=correct, category=category)
                Option.objects.bulk_create([Option(question=question, label=k, text=v) for k, v in options.items()])

        logger.info(f"User {request.user.pk} uploaded {len(rows)} questions")
        return Response({"status": f"Successfully uploaded {len(rows)} questions"}, status=status.HTTP_201_CREATED)


class ExamConfigurationViewSet(viewsets.ModelViewSet):
    queryset = ExamConfiguration.objects.all().order_by('-created_at')
    serializer_class = ExamConfigurationSerializer
    permission_classes = [IsExaminerOrAdmin]

    filter_backends = [filters.SearchFilter]
    search_fields = ['name']

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)


class AssignedExamViewSet(viewsets.ModelViewSet):
    """Examiners assign an exam configuration to a candidate."""
    serializer_class = AssignedExamSerializer
    permission_classes = [IsExaminerOrAdmin]
    http_method_names = ['get', 'post', 'delete', 'head', 'options']

    def get_queryset(self):
        queryset = AssignedExam.objects.select_related('user', 'exam_configuration').order_by('-assigned_at')
        completed = self.request.query_params.get('is_completed')
        if completed in ('true', 'false'):
            queryset = queryset.filter(is_completed=(completed == 'true'))
        return queryset

    def perform_create(self, serializer):
        assignment = serializer.save()
        AuditLog.objects.create(
            actor=self.request.user,
            action='ASSIGN',
            target_model='AssignedExam',
            target_object_id=str(assignment.id),
            details=f"Assigned '{assignment.exam_configuration.name}' to {assignment.user.email}"
        )

    def destroy(self, request, *args, **kwargs):
        assignment = self.get_object()
        if assignment.is_completed:
            return Response({"error": "Completed assignments cannot be removed", "code": "already_completed"},
                            status=status.HTTP_409_CONFLICT)
        AuditLog.objects.create(
            actor=request.user,
            action='DELETE',
            target_model='AssignedExam',
            target_object_id=str(assignment.id),
            details=f"Withdrew '{assignment.exam_configuration.name}' from {assignment.user.email}"
        )
        assignment.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
