import logging

from rest_framework import views as drf_views, generics, status
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.filters import OrderingFilter
from django_filters.rest_framework import DjangoFilterBackend
from django.shortcuts import get_object_or_404
from django.db import transaction
from django.db.models import F, Q
from drf_yasg.utils import swagger_auto_schema


from accounts.models import FreelancerProfile
from accounts.permissions import IsClient, IsFreelancer
from . import serializers as my_serializers
from .permissions import IsParticipantOrAdmin
from .utils import send_project_request_email
from .models import Project

logger = logging.getLogger(__name__)


class ListCreateProjectAPIView(generics.ListCreateAPIView):
    """
    GET: projects the current user takes part in (all projects for staff).
        Filters: client, freelancer, status. Ordering: created_at, budget.
    POST: a client creates a project for a freelancer; it starts as pending.
    """
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_fields = ['client', 'freelancer', 'status', 'service_type']
    ordering_fields = ['created_at', 'budget']
    ordering = ['-created_at']

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return my_serializers.CreateProjectClientSerializer
        return my_serializers.ProjectSerializer

    def get_queryset(self):
        queryset = Project.objects.select_related('client', 'freelancer')
        user = self.request.user
        if user.is_staff:
            return queryset
        return queryset.filter(Q(client=user) | Q(freelancer=user))

    @swagger_auto_schema(
        operation_summary="Create a project (clients only)",
        request_body=my_serializers.CreateProjectClientSerializer,
        responses={201: my_serializers.CreateProjectClientSerializer, 400: "Invalid input", 403: "Forbidden"}
    )
    def post(self, request, *args, **kwargs):
        if not IsClient().has_permission(request, self):
            raise PermissionDenied("Only client accounts can create projects.")
        return super().post(request, *args, **kwargs)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            project = serializer.save()
            transaction.on_commit(lambda: send_project_request_email(project))

        logger.info("Project %s created by client %s for freelancer %s", project.id, project.client_id, project.freelancer_id)

        return Response({
            'detail': "Project created successfully.",
            'project': serializer.data
        }, status=status.HTTP_201_CREATED)


class RetrieveUpdateDeleteProjectAPIView(generics.RetrieveUpdateDestroyAPIView):
    permission_classes = [IsAuthenticated, IsParticipantOrAdmin]
    queryset = Project.objects.select_related('client', 'freelancer')
    lookup_field = 'id'
    http_method_names = ['get', 'patch', 'delete']

    def get_serializer_class(self):
        if self.request.method == 'PATCH':
            return my_serializers.UpdateProjectClientSerializer
        return my_serializers.ProjectSerializer

    def perform_destroy(self, instance):
        if instance.status == Project.PAID:
            raise ValidationError("Paid projects cannot be deleted.")
        if hasattr(instance, 'payment'):
            raise ValidationError("Projects with a settlement record cannot be deleted.")
        logger.info("Project %s deleted by %s", instance.id, self.request.user)
        instance.delete()


class ProjectStatusTransitionAPIView(drf_views.APIView):
    """Base view for the assigned freelancer moving a project through its lifecycle."""
    permission_classes = [IsAuthenticated, IsFreelancer]
    serializer_class = None
    detail = None

    def post(self, request, id):
        project = get_object_or_404(Project, id=id)
        if project.freelancer_id != request.user.id:
            raise PermissionDenied("You are not assigned to this project.")

        serializer = self.serializer_class(project, data={}, partial=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            project = serializer.save()
            self.after_transition(project)

        logger.info("Project %s moved to %s by %s", project.id, project.status, request.user)

        return Response({
            'detail': self.detail,
            'project': my_serializers.ProjectSerializer(project).data
        }, status=status.HTTP_200_OK)

    def after_transition(self, project):
        pass


class AcceptProjectFreelancerAPIView(ProjectStatusTransitionAPIView):
    serializer_class = my_serializers.AcceptProjectFreelancerSerializer
    detail = "Project accepted."


class RejectProjectFreelancerAPIView(ProjectStatusTransitionAPIView):
    serializer_class = my_serializers.RejectProjectFreelancerSerializer
    detail = "Project rejected."


class CompleteProjectFreelancerAPIView(ProjectStatusTransitionAPIView):
    serializer_class = my_serializers.CompleteProjectFreelancerSerializer
    detail = "Project marked as completed."

    def after_transition(self, project):
        FreelancerProfile.objects.filter(pk=project.freelancer_id).update(
            completed_projects=F('completed_projects') + 1
        )
