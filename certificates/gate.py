"""
Certificate eligibility gate.

A passing attempt does not issue a certificate directly; it schedules one
`certificate_delay_hours` later. check_and_issue() is called on every
dashboard load and turns an elapsed schedule into an issued certificate.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from assessments.models import TestAttempt
from cores.models import AuditLog, PlatformSetting
from .models import Certificate

logger = logging.getLogger(__name__)

NOT_ELIGIBLE = "not_eligible"
PROCESSING = "processing"
ISSUED = "issued"


@dataclass(frozen=True)
class Eligibility:
    status: str
    available_at: Optional[object] = None
    certificate: Optional[Certificate] = None
    newly_issued: bool = False


def schedule_certificate(profile, now):
    """Called from submission for a passing attempt. Does not save."""
    delay = timedelta(hours=PlatformSetting.load().certificate_delay_hours)
    profile.certificate_available_at = now + delay
    profile.certificate_issued = False
    return profile.certificate_available_at


def _current_certificate(profile):
    return Certificate.objects.filter(user=profile).select_related('attempt').first()


def check_and_issue(user, now=None):
    """Idempotent; safe to call on every page load."""
    now = now or timezone.now()
    User = get_user_model()

    with transaction.atomic():
        profile = User.objects.select_for_update().get(pk=user.pk)

        if profile.certificate_available_at is None:
            return Eligibility(NOT_ELIGIBLE)

        if profile.certificate_issued:
            return Eligibility(ISSUED, profile.certificate_available_at, _current_certificate(profile))

        if now < profile.certificate_available_at:
            return Eligibility(PROCESSING, profile.certificate_available_at)

        attempt = (TestAttempt.objects
                   .filter(user=profile, passed=True, completed_at__lte=now)
                   .order_by('-completed_at', '-id')
                   .first())
        if attempt is None:
            logger.warning(f"User {profile.pk} has a certificate schedule but no passing attempt")
            return Eligibility(NOT_ELIGIBLE)

        certificate, created = Certificate.objects.get_or_create(
            attempt=attempt,
            defaults={'user': profile, 'issued_at': now},
        )
        profile.certificate_issued = True
        profile.certificate_url = certificate.verification_url
        profile.save(update_fields=['certificate_issued', 'certificate_url'])

        if created:
            AuditLog.objects.create(
                actor=profile,
                action='CERTIFICATE',
                target_model='Certificate',
                target_object_id=certificate.certificate_id,
                details=f"Certificate issued for attempt {attempt.pk} (score {attempt.score}%)",
            )
            logger.info(f"Issued certificate {certificate.certificate_id} to user {profile.pk}")

    # keep the caller's instance in step with the row
    user.certificate_issued = profile.certificate_issued
    user.certificate_url = profile.certificate_url
    return Eligibility(ISSUED, profile.certificate_available_at, certificate, newly_issued=created)
