from rest_framework import serializers
from .models import PlatformSetting, AuditLog


class PlatformSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = PlatformSetting
        fields = '__all__'
        read_only_fields = ['id']

    def validate_default_pass_mark(self, value):
        if value > 100:
            raise serializers.ValidationError("Pass mark is a percentage between 0 and 100.")
        return value

    def validate_default_question_count(self, value):
        if value < 1:
            raise serializers.ValidationError("At least one question must be drawn.")
        return value


class AuditLogSerializer(serializers.ModelSerializer):
    # This field fetches the email from the related User model
    actor_email = serializers.CharField(source='actor.email', read_only=True)
    actor_role = serializers.CharField(source='actor.role', read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'actor', 'actor_email', 'actor_role', 'action', 'target_model', 'target_object_id', 'timestamp', 'details']
