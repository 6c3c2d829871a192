from django.contrib import admin

from .models import OngoingTestSession, TestAttempt


@admin.register(OngoingTestSession)
class OngoingTestSessionAdmin(admin.ModelAdmin):
    list_display = ('user', 'test_started', 'current_question', 'remaining_seconds', 'updated_at')
    readonly_fields = ('questions_data', 'answers_data', 'submission_token')


@admin.register(TestAttempt)
class TestAttemptAdmin(admin.ModelAdmin):
    list_display = ('user', 'score', 'passed', 'time_expired', 'completed_at')
    list_filter = ('passed', 'time_expired')

    # Attempts are immutable records
    def has_change_permission(self, request, obj=None):
        return False
