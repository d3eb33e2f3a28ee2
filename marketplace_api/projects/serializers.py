from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.utils import timezone


from .models import Project


User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for lightweight user references.

    Fields (all read-only): id, first_name, last_name, email.
    Used when embedding client/freelancer details in project payloads.
    """
    class Meta:
        model = User
        fields = ['id', 'first_name', 'last_name', 'email']


class ProjectSerializer(serializers.ModelSerializer):
    """
    Read serializer for project lists and details, with both participants embedded.
    """
    client = UserSerializer(read_only=True)
    freelancer = UserSerializer(read_only=True)

    class Meta:
        model = Project
        fields = [
            'id', 'client', 'freelancer', 'title', 'description', 'service_type', 'budget', 'status',
            'start_date', 'end_date', 'created_at', 'updated_at', 'completed_at', 'paid_at',
        ]
        read_only_fields = fields


class CreateProjectClientSerializer(serializers.ModelSerializer):
    """
    Serializer for clients to create new projects.

    Fields:
        - title, description, budget, freelancer (required inputs)
        - service_type, start_date, end_date (optional)
    Automatically attaches the authenticated client; new projects start as pending.
    """
    freelancer = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(user_type='freelancer', is_active=True))

    class Meta:
        model = Project
        fields = ['id', 'title', 'description', 'service_type', 'budget', 'freelancer', 'start_date', 'end_date', 'status']
        read_only_fields = ['id', 'status']

    def validate_budget(self, value):
        if value <= 0:
            raise serializers.ValidationError("Please enter a valid budget.")
        return value

    def validate(self, attrs):
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if start and end and end < start:
            raise serializers.ValidationError("End date cannot be before start date.")
        return attrs

    def create(self, validated_data):
        request = self.context.get('request')

        return Project.objects.create(
            client=request.user,
            **validated_data
        )


class UpdateProjectClientSerializer(serializers.ModelSerializer):
    """
    Serializer for clients editing their project.

    Scope and budget can only change while the freelancer has not accepted the project.
    """
    class Meta:
        model = Project
        fields = ['id', 'title', 'description', 'service_type', 'budget', 'start_date', 'end_date', 'status']
        read_only_fields = ['id', 'status']

    def validate_budget(self, value):
        if value <= 0:
            raise serializers.ValidationError("Please enter a valid budget.")
        return value

    def update(self, instance, validated_data):
        if instance.status != Project.PENDING:
            raise serializers.ValidationError("Only pending projects can be updated.")
        return super().update(instance, validated_data)


class ProjectStatusTransitionSerializer(serializers.ModelSerializer):
    """
    Base serializer for freelancer-driven status changes.

    Subclasses set ``from_status`` / ``to_status``; ``paid`` is never a target here,
    it is only reached through settlement.
    """
    from_status = None
    to_status = None
    error_message = None

    class Meta:
        model = Project
        fields = ['id', 'status', 'completed_at']
        read_only_fields = ['id', 'status', 'completed_at']

    def update(self, instance, validated_data):
        updated = Project.objects.filter(pk=instance.pk, status=self.from_status).update(
            status=self.to_status,
            updated_at=timezone.now(),
            **self.extra_updates(),
        )
        if not updated:
            raise serializers.ValidationError(self.error_message)
        instance.refresh_from_db()
        return instance

    def extra_updates(self):
        return {}


class AcceptProjectFreelancerSerializer(ProjectStatusTransitionSerializer):
    from_status = Project.PENDING
    to_status = Project.IN_PROGRESS
    error_message = "Only pending projects can be accepted."


class RejectProjectFreelancerSerializer(ProjectStatusTransitionSerializer):
    from_status = Project.PENDING
    to_status = Project.REJECTED
    error_message = "Only pending projects can be rejected."


class CompleteProjectFreelancerSerializer(ProjectStatusTransitionSerializer):
    from_status = Project.IN_PROGRESS
    to_status = Project.COMPLETED
    error_message = "Only projects in progress can be marked as completed."

    def extra_updates(self):
        return {'completed_at': timezone.now()}
