from rest_framework import permissions


class IsExaminerOrAdmin(permissions.BasePermission):
    """
    Allows access to Admins and Examiners.
    Strictly blocks Candidates.
    """
    def has_permission(self, request, view):
        # 1. User must be logged in
        if not request.user or not request.user.is_authenticated:
            return False

        # 2. Check Role
        return (
            request.user.is_staff or
            getattr(request.user, 'role', '') in ['examiner', 'admin']
        )
