from django.db import models
from django.core.cache import cache
from django.conf import settings


class PlatformSetting(models.Model):
    # --- General & Branding ---
    site_name = models.CharField(max_length=100, default="CertiTest")
    support_email = models.EmailField(default="support@certitest.org")
    maintenance_mode = models.BooleanField(default=False)

    # --- Test Defaults (used when a candidate has no assigned exam) ---
    default_pass_mark = models.PositiveSmallIntegerField(default=70, help_text="Default pass mark percentage")
    default_time_limit_seconds = models.PositiveIntegerField(default=3600, help_text="Default time limit in seconds")
    default_question_count = models.PositiveSmallIntegerField(default=30, help_text="Questions drawn at random from the bank")

    # --- Session & Certificate Timing ---
    checkpoint_interval_seconds = models.PositiveSmallIntegerField(default=30, help_text="Client checkpoint period while a test is running")
    certificate_delay_hours = models.PositiveSmallIntegerField(default=48, help_text="Hours between a passing attempt and certificate issuance")

    certificate_signer_name = models.CharField(max_length=100, default="Director of Studies")
    certificate_signer_title = models.CharField(max_length=100, default="Registrar")

    def save(self, *args, **kwargs):
        self.pk = 1  # Singleton pattern
        super().save(*args, **kwargs)
        cache.set('platform_settings', self)

    def delete(self, *args, **kwargs):
        pass

    @classmethod
    def load(cls):
        obj = cache.get('platform_settings')
        if obj is None:
            obj, created = cls.objects.get_or_create(pk=1)
            cache.set('platform_settings', obj)
        return obj

    def __str__(self):
        return "Platform Settings"


class AuditLog(models.Model):
    ACTION_CHOICES = [
        ('CREATE', 'Create'),
        ('UPDATE', 'Update'),
        ('DELETE', 'Delete'),
        ('ASSIGN', 'Exam Assigned'),
        ('SUBMIT', 'Test Submitted'),
        ('CERTIFICATE', 'Certificate Issued'),
        ('SETTINGS', 'Settings Changed'),
    ]

    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    target_model = models.CharField(max_length=50, help_text="e.g., TestAttempt, User, Certificate")
    target_object_id = models.CharField(max_length=100, blank=True, null=True)
    details = models.TextField(blank=True, help_text="Description of changes")
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.actor} - {self.action} - {self.timestamp}"
