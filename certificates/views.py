# certificates/views.py
from django.shortcuts import get_object_or_404
from rest_framework import generics, permissions, views
from rest_framework.response import Response

from . import gate
from .models import Certificate
from .serializers import CertificateSerializer, PublicCertificateSerializer, eligibility_payload


class CertificateStatusView(views.APIView):
    """
    Called on every dashboard load: issues the certificate once the delay
    after a passing attempt has elapsed, otherwise reports
    'processing' (with the target time) or 'not_eligible'.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        result = gate.check_and_issue(request.user)
        return Response(eligibility_payload(result))


class StudentCertificateListView(generics.ListAPIView):
    """List all certificates owned by the logged-in student."""
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = CertificateSerializer

    def get_queryset(self):
        return Certificate.objects.filter(user=self.request.user).order_by('-issued_at')


class VerifyCertificateView(views.APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get(self, request, certificate_id):
        certificate = get_object_or_404(Certificate.objects.select_related('user'), certificate_id=certificate_id)
        return Response(PublicCertificateSerializer(certificate).data)


class CertificateInventoryView(generics.ListAPIView):
    permission_classes = [permissions.IsAdminUser]
    serializer_class = CertificateSerializer
    queryset = Certificate.objects.select_related('user', 'attempt').order_by('-issued_at')
