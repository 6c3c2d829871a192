from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # --- Auth, profile, user management, admin stats ---
    path('api/', include('users.urls')),

    # --- Question bank, exam configurations, assignments ---
    path('api/', include('exams.urls')),

    # --- Test session flow and results ---
    path('api/', include('assessments.urls')),

    # --- Certificates ---
    path('api/', include('certificates.urls')),

    # --- Platform settings & audit log ---
    path('api/', include('cores.urls')),
]
