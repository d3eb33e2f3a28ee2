from rest_framework import serializers

from .models import ProjectMessage


class ProjectMessageSerializer(serializers.ModelSerializer):
    """
    Serializer for messages exchanged inside a project.

    ``is_current_user`` tells the requesting user which messages they sent.
    Sender and project come from the request, never from the payload.
    """
    sender_name = serializers.CharField(source='sender.get_full_name', read_only=True)
    is_current_user = serializers.SerializerMethodField()

    class Meta:
        model = ProjectMessage
        fields = ['id', 'project', 'sender', 'sender_name', 'content', 'is_read', 'created_at', 'is_current_user']
        read_only_fields = ['id', 'project', 'sender', 'sender_name', 'is_read', 'created_at', 'is_current_user']

    def get_is_current_user(self, obj):
        request = self.context.get('request')
        return bool(request and obj.sender_id == request.user.id)

    def validate_content(self, value):
        if not value.strip():
            raise serializers.ValidationError("Message content is required.")
        return value.strip()
