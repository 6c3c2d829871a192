from rest_framework import serializers
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

# Import models for aggregation
from assessments.models import TestAttempt
from certificates.models import Certificate

User = get_user_model()

PROFILE_PROJECTION = [
    'test_completed', 'test_score', 'certificate_issued', 'certificate_available_at', 'certificate_url',
]


class UserSerializer(serializers.ModelSerializer):
    """Self-service profile. Entitlement and test fields are read-only here."""
    is_entitled = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'role', 'is_staff', 'phone_number', 'bio',
                  'membership_fee_paid', 'payment_status', 'is_entitled'] + PROFILE_PROJECTION
        read_only_fields = ['email', 'role', 'is_staff', 'membership_fee_paid', 'payment_status'] + PROFILE_PROJECTION


class AdminUserSerializer(UserSerializer):
    """Admin edits: role and entitlement (e.g. after an offline payment)."""
    class Meta(UserSerializer.Meta):
        read_only_fields = ['is_staff'] + PROFILE_PROJECTION


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = ['email', 'first_name', 'last_name', 'password']

    def create(self, validated_data):
        user = User.objects.create_user(
            username=validated_data['email'],
            email=validated_data['email'],
            password=validated_data['password'],
            first_name=validated_data['first_name'],
            last_name=validated_data['last_name'],
            role=User.Role.CANDIDATE,
        )
        return user


class StaffRegisterSerializer(RegisterSerializer):
    class Meta(RegisterSerializer.Meta):
        fields = RegisterSerializer.Meta.fields + ['role']

    def create(self, validated_data):
        role = validated_data.pop('role', User.Role.CANDIDATE)
        user = super().create(validated_data)
        user.role = role
        user.save(update_fields=['role'])
        return user


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = UserSerializer(self.user).data
        return data


class CandidateListSerializer(serializers.ModelSerializer):
    tests_taken = serializers.SerializerMethodField()
    certificates_earned = serializers.SerializerMethodField()
    last_activity = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'payment_status', 'test_score',
                  'certificate_issued', 'tests_taken', 'certificates_earned', 'last_activity']

    def get_tests_taken(self, obj):
        return TestAttempt.objects.filter(user=obj).count()

    def get_certificates_earned(self, obj):
        return Certificate.objects.filter(user=obj).count()

    def get_last_activity(self, obj):
        last_attempt = TestAttempt.objects.filter(user=obj).order_by('-completed_at').first()
        if last_attempt:
            return last_attempt.completed_at
        return obj.date_joined
