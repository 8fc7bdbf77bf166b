from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status
from django.shortcuts import get_object_or_404

from core.exceptions import ValidationError
from events import membership
from events.models import Event, EventRegistration
from events.policies import CrewPolicy, enforce
from events.serializers import RegisterSerializer, RegistrationSerializer, SeatSerializer


def _target_user_id(request):
    serializer = SeatSerializer(data=request.data)
    if not serializer.is_valid():
        raise ValidationError(serializer.errors)
    return serializer.validated_data.get("user_id", request.user.id)


class RegisterEventView(APIView):
    """
    POST /api/events/<event_id>/register/
    Body: {
        "user_id"?: 12,              (admins)
        "terms_accepted"?: true,     (required when the event has active terms)
        "answers"?: [{ "question_id", "selected_options", "text_response" }]
    }
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, event_id):
        serializer = RegisterSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)
        data = serializer.validated_data

        reg = membership.register(
            event_id,
            data.get("user_id", request.user.id),
            actor=request.user,
            terms_accepted=data.get("terms_accepted", False),
            answers=[dict(answer) for answer in data.get("answers", [])],
        )
        return Response(RegistrationSerializer(reg).data, status=status.HTTP_201_CREATED)


class CancelRegistrationView(APIView):
    """
    POST /api/events/<event_id>/cancel/
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, event_id):
        reg = membership.cancel_registration(event_id, _target_user_id(request), actor=request.user)
        return Response(RegistrationSerializer(reg).data)


class EventRegistrationsView(APIView):
    """
    GET /api/events/<event_id>/registrations/?status=pending
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        event = get_object_or_404(Event, pk=event_id)
        enforce(CrewPolicy.can_edit_event(request.user, event))

        regs = (
            EventRegistration.objects
            .filter(event=event)
            .select_related("user", "event")
            .order_by("-created_at")
        )
        status_param = request.query_params.get("status")
        if status_param:
            regs = regs.filter(status=status_param)

        return Response(RegistrationSerializer(regs, many=True).data)


class ConfirmRegistrationView(APIView):
    """
    POST /api/events/registrations/<reg_id>/confirm/
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, reg_id):
        reg = membership.confirm_registration(reg_id, request.user)
        return Response(RegistrationSerializer(reg).data)
