# certitest_platform/exams/models.py
from django.conf import settings
from django.db import models
from django.db.models import Q

CHOICE_LETTERS = ("A", "B", "C", "D")


class Question(models.Model):
    class Choice(models.TextChoices):
        A = "A", "A"
        B = "B", "B"
        C = "C", "C"
        D = "D", "D"

    text = models.TextField()  # Frontend sends 'question_text'
    category = models.CharField(max_length=100, blank=True)  # Tagging questions
    correct_answer = models.CharField(max_length=1, choices=Choice.choices)

    # Inactive questions stay in the bank but are never drawn
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def snapshot(self):
        """Frozen copy stored on sessions and attempts; never a live reference."""
        return {
            "id": self.id,
            "question": self.text,
            "options": {opt.label: opt.text for opt in self.options.all()},
            "correct_answer": self.correct_answer,
            "category": self.category,
        }

    def __str__(self):
        return f"{self.text[:50]}..."


class Option(models.Model):
    question = models.ForeignKey(Question, related_name='options', on_delete=models.CASCADE)
    label = models.CharField(max_length=1, choices=Question.Choice.choices)
    text = models.CharField(max_length=255)

    class Meta:
        ordering = ['label']
        unique_together = ('question', 'label')

    def __str__(self):
        return f"{self.label}. {self.text}"


class ExamConfiguration(models.Model):
    """A fixed question set with its own time limit, pass mark and window."""
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    questions = models.ManyToManyField(Question, through='ExamConfigurationQuestion', related_name='exam_configurations')

    time_limit_seconds = models.PositiveIntegerField(default=3600)
    passing_score = models.PositiveSmallIntegerField(default=70)

    available_from = models.DateTimeField(null=True, blank=True)
    available_until = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='exam_configurations')
    created_at = models.DateTimeField(auto_now_add=True)

    def ordered_questions(self):
        return (Question.objects
                .filter(configuration_entries__configuration=self)
                .order_by('configuration_entries__position', 'id')
                .prefetch_related('options'))

    def __str__(self):
        return self.name


class ExamConfigurationQuestion(models.Model):
    configuration = models.ForeignKey(ExamConfiguration, on_delete=models.CASCADE, related_name='entries')
    question = models.ForeignKey(Question, on_delete=models.PROTECT, related_name='configuration_entries')
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['position', 'question_id']
        unique_together = ('configuration', 'question')


class AssignedExam(models.Model):
    """Links a candidate to an ExamConfiguration. Completed once, by scoring."""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='assigned_exams')
    exam_configuration = models.ForeignKey(ExamConfiguration, on_delete=models.CASCADE, related_name='assignments')
    assigned_at = models.DateTimeField(auto_now_add=True)

    # Per-candidate override of the configuration's availability window
    available_from = models.DateTimeField(null=True, blank=True)
    available_until = models.DateTimeField(null=True, blank=True)

    is_completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    score = models.PositiveSmallIntegerField(null=True, blank=True)
    passed = models.BooleanField(null=True)

    class Meta:
        ordering = ['-assigned_at']
        constraints = [
            models.UniqueConstraint(fields=['user'], condition=Q(is_completed=False),
                                    name='one_open_assignment_per_user'),
        ]

    @property
    def window(self):
        """(open, close) with the assignment's own values taking precedence."""
        config = self.exam_configuration
        return (self.available_from or config.available_from,
                self.available_until or config.available_until)

    def __str__(self):
        return f"{self.user} - {self.exam_configuration.name}"
