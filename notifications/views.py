from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from .models import Notification
from .serializers import NotificationSerializer


class MyNotificationsView(APIView):
    """
    GET  /api/notifications/me/
    GET  /api/notifications/me/?unread=true
    POST /api/notifications/me/   mark as read
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        unread_only = request.query_params.get("unread")
        qs = Notification.objects.filter(user=request.user)

        if unread_only and unread_only.lower() in ("1", "true", "yes"):
            qs = qs.filter(read=False)

        serializer = NotificationSerializer(qs[:100], many=True)
        return Response({
            "unread_count": Notification.objects.filter(user=request.user, read=False).count(),
            "results": serializer.data,
        })

    def post(self, request):
        """
        Mark notifications as read.

        Body:
        {
          "ids": [1, 2, 3]   # or omit/empty to mark all as read
        }
        """
        ids = request.data.get("ids")
        qs = Notification.objects.filter(user=request.user, read=False)

        if ids:
            qs = qs.filter(id__in=ids)

        updated = qs.update(read=True)
        return Response({"marked_read": updated}, status=status.HTTP_200_OK)
