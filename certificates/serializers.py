from rest_framework import serializers
from .models import Certificate


class CertificateSerializer(serializers.ModelSerializer):
    # Fetch details from the related attempt to show readable names
    candidate_name = serializers.CharField(source='user.get_full_name', read_only=True)
    candidate_email = serializers.CharField(source='user.email', read_only=True)
    exam_name = serializers.CharField(source='attempt.assigned_exam.exam_configuration.name', read_only=True, default=None)
    score = serializers.IntegerField(source='attempt.score', read_only=True)

    class Meta:
        model = Certificate
        fields = [
            'id',
            'certificate_id',
            'candidate_name',
            'candidate_email',
            'exam_name',
            'score',
            'issued_at',
            'file_url',
            'verification_url'
        ]


class PublicCertificateSerializer(serializers.ModelSerializer):
    """What anyone holding the certificate ID may see."""
    candidate_name = serializers.CharField(source='user.get_full_name', read_only=True)

    class Meta:
        model = Certificate
        fields = ['certificate_id', 'candidate_name', 'issued_at', 'verification_url']


def eligibility_payload(result):
    data = {
        "status": result.status,
        "available_at": result.available_at,
        "newly_issued": result.newly_issued,
        "certificate": None,
    }
    if result.certificate is not None:
        data["certificate"] = CertificateSerializer(result.certificate).data
    return data
