# certificates/models.py
import uuid

from django.conf import settings
from django.db import models

from assessments.models import TestAttempt


def _new_certificate_id():
    return uuid.uuid4().hex[:12].upper()


class Certificate(models.Model):
    # Unique ID for public verification
    certificate_id = models.CharField(max_length=50, unique=True, default=_new_certificate_id)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='certificates')
    attempt = models.OneToOneField(TestAttempt, on_delete=models.CASCADE, related_name='certificate')

    issued_at = models.DateTimeField()
    file_url = models.URLField(null=True, blank=True)  # Filled in by the PDF renderer

    class Meta:
        ordering = ['-issued_at']

    @property
    def verification_url(self):
        base = settings.TEST_ENGINE['CERTIFICATE_VERIFY_BASE_URL']
        return f"{base.rstrip('/')}/{self.certificate_id}"

    def __str__(self):
        return f"Cert {self.certificate_id} for {self.user}"
