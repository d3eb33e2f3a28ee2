from rest_framework import generics, status, views
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.exceptions import PermissionDenied
from django.shortcuts import get_object_or_404
from drf_yasg.utils import swagger_auto_schema

from projects.models import Project
from projects.permissions import IsClientOrAssignedFreelancer
from .models import ProjectMessage
from .serializers import ProjectMessageSerializer

MESSAGE_HISTORY_LIMIT = 100


class ProjectMessageListCreateAPIView(generics.ListCreateAPIView):
    """
    GET: the latest messages of a project, oldest first.
    POST: send a message to the other participant of the project.
    """
    serializer_class = ProjectMessageSerializer
    permission_classes = [IsAuthenticated, IsClientOrAssignedFreelancer]
    pagination_class = None

    def get_project(self):
        return get_object_or_404(Project, id=self.kwargs['project_id'])

    def get_queryset(self):
        project = self.get_project()
        latest_ids = (
            ProjectMessage.objects.filter(project=project)
            .order_by('-created_at', '-id')
            .values_list('id', flat=True)[:MESSAGE_HISTORY_LIMIT]
        )
        return ProjectMessage.objects.filter(id__in=list(latest_ids)).select_related('sender')

    @swagger_auto_schema(
        operation_summary="Send a message on a project",
        request_body=ProjectMessageSerializer,
        responses={201: ProjectMessageSerializer(), 400: "Validation error", 403: "Forbidden"}
    )
    def post(self, request, *args, **kwargs):
        return super().post(request, *args, **kwargs)

    def perform_create(self, serializer):
        project = self.get_project()
        if not project.is_participant(self.request.user):
            raise PermissionDenied("Only project participants can send messages.")
        serializer.save(project=project, sender=self.request.user)


class MarkProjectMessagesReadAPIView(views.APIView):
    """Marks every message the other participant sent on this project as read."""
    permission_classes = [IsAuthenticated, IsClientOrAssignedFreelancer]

    def post(self, request, project_id):
        project = get_object_or_404(Project, id=project_id)
        updated = (
            ProjectMessage.objects.filter(project=project, is_read=False)
            .exclude(sender=request.user)
            .update(is_read=True)
        )
        return Response({'detail': "Messages marked as read.", 'updated': updated}, status=status.HTTP_200_OK)
