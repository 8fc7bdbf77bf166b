import logging
import os

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.permissions import IsAuthenticated
from rest_framework import status
from django.shortcuts import get_object_or_404
from django.db.models import Q

from core import supabase_client
from core.exceptions import ValidationError
from events import datetime_utils, membership, state_machine
from events.models import Event
from events.policies import CrewPolicy, enforce
from events.serializers import EventSerializer, EventStatusSerializer

logger = logging.getLogger("crew.events")

IMAGE_CONTENT_TYPES = ("image/jpeg", "image/png", "image/webp")
IMAGE_MAX_BYTES = 5 * 1024 * 1024

# Events everyone can see; drafts and cancelled events stay with their managers
PUBLIC_STATUSES = (Event.STATUS_PUBLISHED, Event.STATUS_IN_PROGRESS, Event.STATUS_COMPLETED)


class EventListCreateView(APIView):
    """
    GET  /api/events/?status=published&upcoming=true&mine=true&search=...
    POST /api/events/   (admins and captains; created as draft)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user
        qs = Event.objects.select_related("created_by")

        if not CrewPolicy.is_admin(user):
            qs = qs.filter(Q(status__in=PUBLIC_STATUSES) | Q(created_by=user))

        status_param = request.query_params.get("status")
        if status_param:
            qs = qs.filter(status=status_param)

        upcoming = request.query_params.get("upcoming")
        if upcoming and upcoming.lower() in ("1", "true", "yes"):
            qs = qs.filter(event_date__gte=datetime_utils.today())

        mine_param = request.query_params.get("mine")
        if mine_param and mine_param.lower() in ("1", "true", "yes"):
            qs = qs.filter(
                Q(created_by=user)
                | Q(registrations__user=user)
                | Q(teams__members__user=user)
            ).distinct()

        search = request.query_params.get("search")
        if search:
            qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))

        qs = qs.order_by("event_date", "start_time", "id")

        total_count = qs.count()

        limit = request.query_params.get("limit")
        offset = request.query_params.get("offset")
        try:
            limit_val = int(limit) if limit is not None else 50
            offset_val = int(offset) if offset is not None else 0
        except ValueError:
            raise ValidationError({"detail": "Invalid pagination params"})

        limit_val = max(1, min(limit_val, 100))
        offset_val = max(0, offset_val)

        page = list(qs[offset_val:offset_val + limit_val])
        # Past-dated events on this page are completed before they are shown;
        # the finalize_expired_events command sweeps the rest
        today = datetime_utils.today()
        for event in page:
            if not event.is_terminal and event.event_date < today:
                state_machine.finalize_if_expired(event.id)
                event.refresh_from_db(fields=["status", "updated_at"])

        serializer = EventSerializer(page, many=True, context={"request": request})
        return Response({
            "count": total_count,
            "results": serializer.data,
            "limit": limit_val,
            "offset": offset_val,
        })

    def post(self, request):
        enforce(CrewPolicy.can_create_event(request.user))

        serializer = EventSerializer(data=request.data, context={"request": request})
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)

        event = serializer.save(created_by=request.user, status=Event.STATUS_DRAFT)
        logger.info(f"Event created: event={event.id}, actor={request.user.id}")
        return Response(EventSerializer(event, context={"request": request}).data, status=status.HTTP_201_CREATED)


class EventDetailView(APIView):
    """
    GET    /api/events/<pk>/   (auto-completes the event if its date has passed)
    PATCH  /api/events/<pk>/   descriptive fields only
    DELETE /api/events/<pk>/   admins, before completion
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        state_machine.finalize_if_expired(pk)
        event = get_object_or_404(Event.objects.select_related("created_by"), pk=pk)

        if event.status not in PUBLIC_STATUSES:
            enforce(CrewPolicy.can_edit_event(request.user, event))

        return Response(EventSerializer(event, context={"request": request}).data)

    def patch(self, request, pk):
        event = get_object_or_404(Event, pk=pk)
        serializer = EventSerializer(event, data=request.data, partial=True, context={"request": request})
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)

        event = state_machine.edit_event(pk, request.user, serializer.validated_data)
        return Response(EventSerializer(event, context={"request": request}).data)

    def delete(self, request, pk):
        state_machine.delete_event(pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class EventStatusView(APIView):
    """
    POST /api/events/<pk>/status/
    Body: { "status": "published", "max_volunteers": 20 }
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        serializer = EventStatusSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)

        event = state_machine.advance(
            pk,
            serializer.validated_data["status"],
            request.user,
            max_volunteers=serializer.validated_data.get("max_volunteers"),
        )
        return Response(EventSerializer(event, context={"request": request}).data)


class EventOccupancyView(APIView):
    """
    GET /api/events/<pk>/occupancy/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        event = get_object_or_404(Event, pk=pk)
        current = membership.occupancy(event.id)
        return Response({
            "event_id": event.id,
            "occupancy": current,
            "max_volunteers": event.max_volunteers,
            "spots_left": max(0, event.max_volunteers - current) if event.max_volunteers else None,
        })


class EventImageUploadView(APIView):
    """
    POST /api/events/<pk>/image/   multipart "file"
    """
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request, pk):
        event = get_object_or_404(Event, pk=pk)
        enforce(CrewPolicy.can_edit_event(request.user, event))
        membership.ensure_not_finalized(event)

        upload = request.FILES.get("file")
        if upload is None:
            raise ValidationError({"file": "An image file is required."})
        if upload.content_type not in IMAGE_CONTENT_TYPES:
            raise ValidationError({"file": "Only JPEG, PNG or WebP images are accepted."})
        if upload.size > IMAGE_MAX_BYTES:
            raise ValidationError({"file": "Image must be 5 MB or smaller."})

        extension = os.path.splitext(upload.name)[1].lower() or ".jpg"
        url = supabase_client.put(
            f"events/{event.id}/cover{extension}",
            upload.read(),
            content_type=upload.content_type,
        )
        event = state_machine.edit_event(event.id, request.user, {"image_url": url})
        return Response(EventSerializer(event, context={"request": request}).data)
