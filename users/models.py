# certitest_platform/users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    class Role(models.TextChoices):
        CANDIDATE = "candidate", "Candidate"
        EXAMINER = "examiner", "Examiner"  # assigns exams and reviews results
        ADMIN = "admin", "Admin"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    # Enforce unique email for authentication
    email = models.EmailField(unique=True)

    role = models.CharField(max_length=20, choices=Role.choices, default=Role.CANDIDATE)
    phone_number = models.CharField(max_length=15, blank=True)
    bio = models.TextField(blank=True)

    # --- Entitlement (written by the payment callback, read by the test engine) ---
    membership_fee_paid = models.BooleanField(default=False)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)

    # --- Test / certificate projection ---
    test_completed = models.BooleanField(default=False)
    test_score = models.PositiveSmallIntegerField(null=True, blank=True)
    certificate_issued = models.BooleanField(default=False)
    certificate_available_at = models.DateTimeField(null=True, blank=True)
    certificate_url = models.URLField(blank=True)

    # Set email as the main field for authentication
    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username', 'first_name', 'last_name']

    @property
    def is_entitled(self):
        """Membership paid and the payment confirmed."""
        return self.membership_fee_paid and self.payment_status == self.PaymentStatus.COMPLETED

    @property
    def is_examiner(self):
        return self.is_staff or self.role in (self.Role.EXAMINER, self.Role.ADMIN)

    def __str__(self):
        return self.email
