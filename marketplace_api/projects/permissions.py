from rest_framework.permissions import BasePermission, SAFE_METHODS
from .models import Project


class IsParticipantOrAdmin(BasePermission):
    """
    Participants (and staff) may read a project; only the owning client may change it.
    """
    def has_object_permission(self, request, view, obj):
        if request.user.is_staff:
            return True
        if request.method in SAFE_METHODS:
            return obj.is_participant(request.user)
        return obj.client_id == request.user.id


class IsClientOrAssignedFreelancer(BasePermission):
    """
    Allows access only to the client or the assigned freelancer of the project, or staff.
    Expects the view to have 'project_id' in kwargs.
    """

    def has_permission(self, request, view):
        project_id = view.kwargs.get('project_id')
        if not project_id:
            return False
        if request.user.is_staff:
            return True
        try:
            project = Project.objects.get(id=project_id)
        except Project.DoesNotExist:
            return False

        return project.is_participant(request.user)
