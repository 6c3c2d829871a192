from django.contrib import admin

from .models import AssignedExam, ExamConfiguration, ExamConfigurationQuestion, Option, Question


class OptionInline(admin.TabularInline):
    model = Option
    extra = 0
    max_num = 4


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ('id', 'category', 'correct_answer', 'is_active')
    list_filter = ('is_active', 'category')
    search_fields = ('text',)
    inlines = [OptionInline]


class ExamConfigurationQuestionInline(admin.TabularInline):
    model = ExamConfigurationQuestion
    extra = 0
    raw_id_fields = ('question',)


@admin.register(ExamConfiguration)
class ExamConfigurationAdmin(admin.ModelAdmin):
    list_display = ('name', 'time_limit_seconds', 'passing_score', 'available_from', 'available_until')
    inlines = [ExamConfigurationQuestionInline]


admin.site.register(AssignedExam)
