from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import AssignedExamViewSet, ExamConfigurationViewSet, QuestionViewSet

router = DefaultRouter()
router.register(r'questions', QuestionViewSet, basename='questions')
router.register(r'exam-configurations', ExamConfigurationViewSet, basename='exam-configurations')
router.register(r'user-exams', AssignedExamViewSet, basename='user-exams')

urlpatterns = [
    path('', include(router.urls)),
]
