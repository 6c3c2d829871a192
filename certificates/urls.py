from django.urls import path
from .views import (
    CertificateInventoryView, CertificateStatusView, StudentCertificateListView, VerifyCertificateView,
)

urlpatterns = [
    path('certificates/', StudentCertificateListView.as_view(), name='student-certificates'),
    path('certificates/status/', CertificateStatusView.as_view(), name='certificate-status'),
    path('certificates/verify/<str:certificate_id>/', VerifyCertificateView.as_view(), name='certificate-verify'),
    path('admin/certificates/', CertificateInventoryView.as_view(), name='admin-certificates'),
]
