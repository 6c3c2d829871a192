from rest_framework import generics, permissions, viewsets
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView
from django.contrib.auth import get_user_model

# Import models from other apps
from exams.models import AssignedExam, Question
from assessments.models import OngoingTestSession, TestAttempt
from certificates.models import Certificate
from cores.models import AuditLog

from .serializers import (
    AdminUserSerializer,
    CandidateListSerializer,
    CustomTokenObtainPairSerializer,
    RegisterSerializer,
    StaffRegisterSerializer,
    UserSerializer,
)

User = get_user_model()


# --- User Management (CRUD for Admin) ---
class UserViewSet(viewsets.ModelViewSet):
    """
    Admin-only endpoint to manage all users, with audit logging.
    """
    queryset = User.objects.all().order_by('-date_joined')
    permission_classes = [permissions.IsAdminUser]

    def get_serializer_class(self):
        if self.action == 'create':
            return StaffRegisterSerializer
        return AdminUserSerializer

    def perform_create(self, serializer):
        user = serializer.save()

        AuditLog.objects.create(
            actor=self.request.user,
            action='CREATE',
            target_model='User',
            target_object_id=str(user.id),
            details=f"Created new user: {user.email} (Role: {user.role})"
        )

    def perform_update(self, serializer):
        user = serializer.save()
        # Handle password update if present
        if self.request.data.get('password'):
            user.set_password(self.request.data['password'])
            user.save(update_fields=['password'])

        AuditLog.objects.create(
            actor=self.request.user,
            action='UPDATE',
            target_model='User',
            target_object_id=str(user.id),
            details=f"Updated profile for: {user.email} ({', '.join(sorted(serializer.validated_data)) or 'no fields'})"
        )

    def perform_destroy(self, instance):
        AuditLog.objects.create(
            actor=self.request.user,
            action='DELETE',
            target_model='User',
            target_object_id=str(instance.id),
            details=f"Deleted user account: {instance.email}"
        )
        instance.delete()


# --- Authentication Views ---
class RegisterView(generics.CreateAPIView):
    serializer_class = RegisterSerializer
    permission_classes = [permissions.AllowAny]


class CustomLoginView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


# --- Dashboard Stats ---
class AdminStatsView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        stats = {
            "total_candidates": User.objects.filter(role=User.Role.CANDIDATE).count(),
            "active_questions": Question.objects.filter(is_active=True).count(),
            "open_assignments": AssignedExam.objects.filter(is_completed=False).count(),
            "tests_in_progress": OngoingTestSession.objects.filter(test_started=True).count(),
            "attempts": TestAttempt.objects.count(),
            "passed_attempts": TestAttempt.objects.filter(passed=True).count(),
            "issued_certificates": Certificate.objects.count(),
        }
        return Response(stats)


# --- Candidate List View ---
class CandidateListView(generics.ListAPIView):
    serializer_class = CandidateListSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_queryset(self):
        return User.objects.filter(role=User.Role.CANDIDATE).order_by('-date_joined')


class UserProfileView(generics.RetrieveUpdateAPIView):
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user
