from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "type",
            "title",
            "message",
            "read",
            "related_event",
            "related_team",
            "related_user",
            "created_at",
        ]
        read_only_fields = fields
