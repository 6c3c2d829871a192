from datetime import datetime, timezone
from itertools import count

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from exams.models import Option, Question

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _fresh_cache():
    # PlatformSetting is cached; the database is rolled back between tests
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_user(db):
    User = get_user_model()
    numbers = count(1)

    def _make(entitled=True, role=User.Role.CANDIDATE, **extra):
        n = next(numbers)
        user = User.objects.create_user(
            username=f"user{n}",
            email=f"user{n}@example.com",
            password="s3cure-pass!",
            first_name="Test",
            last_name=f"User{n}",
            role=role,
            **extra,
        )
        if entitled:
            user.membership_fee_paid = True
            user.payment_status = User.PaymentStatus.COMPLETED
            user.save(update_fields=['membership_fee_paid', 'payment_status'])
        return user

    return _make


@pytest.fixture
def candidate(make_user):
    return make_user()


@pytest.fixture
def examiner(make_user):
    return make_user(entitled=False, role='examiner')


@pytest.fixture
def make_questions(db):
    def _make(n, correct="A", category="General", active=True):
        questions = []
        for i in range(n):
            q = Question.objects.create(text=f"{category} question {i}?", correct_answer=correct,
                                        category=category, is_active=active)
            Option.objects.bulk_create([Option(question=q, label=label, text=f"Choice {label}") for label in "ABCD"])
            questions.append(q)
        return questions
    return _make


@pytest.fixture
def client_for():
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client
