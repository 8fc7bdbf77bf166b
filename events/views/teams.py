from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status
from django.shortcuts import get_object_or_404

from core.exceptions import ValidationError
from events import membership, roles
from events.models import Event, Team, TeamMember
from events.serializers import (
    SeatSerializer,
    TeamMemberSerializer,
    TeamSerializer,
    TeamWriteSerializer,
)
from events.state_machine import finalize_if_expired


def _include_inactive(request):
    value = request.query_params.get("include_inactive")
    return bool(value and value.lower() in ("1", "true", "yes"))


def _seat_user_id(request):
    serializer = SeatSerializer(data=request.data)
    if not serializer.is_valid():
        raise ValidationError(serializer.errors)
    return serializer.validated_data.get("user_id", request.user.id)


class EventTeamListCreateView(APIView):
    """
    GET  /api/events/<event_id>/teams/
    POST /api/events/<event_id>/teams/
    Body: { "name", "max_volunteers", "arrival_time"?, "captain_id"? }
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        finalize_if_expired(event_id)
        event = get_object_or_404(Event, pk=event_id)
        teams = (
            Team.objects.filter(event=event)
            .select_related("event", "captain")
            .order_by("name")
        )
        context = {"include_inactive": _include_inactive(request)}
        return Response(TeamSerializer(teams, many=True, context=context).data)

    def post(self, request, event_id):
        serializer = TeamWriteSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)
        data = serializer.validated_data

        team = membership.create_team(
            event_id,
            request.user,
            data["name"],
            data["max_volunteers"],
            captain_id=data.get("captain_id"),
            arrival_time=data.get("arrival_time"),
        )
        return Response(TeamSerializer(team).data, status=status.HTTP_201_CREATED)


class TeamDetailView(APIView):
    """
    GET    /api/events/teams/<team_id>/?include_inactive=true
    PATCH  /api/events/teams/<team_id>/
    DELETE /api/events/teams/<team_id>/

    The payload carries `consistency_warning` when the captain pointer and the
    roster disagree.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, team_id):
        team = get_object_or_404(Team, pk=team_id)
        finalize_if_expired(team.event_id)
        team.refresh_from_db()
        context = {"include_inactive": _include_inactive(request)}
        return Response(TeamSerializer(team, context=context).data)

    def patch(self, request, team_id):
        serializer = TeamWriteSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)
        changes = dict(serializer.validated_data)
        captain_id = changes.pop("captain_id", None)

        if not changes and captain_id is None:
            team = get_object_or_404(Team, pk=team_id)
        else:
            team = membership.update_team(team_id, request.user, captain_id=captain_id, **changes)
        return Response(TeamSerializer(team).data)

    def delete(self, request, team_id):
        membership.delete_team(team_id, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class JoinTeamView(APIView):
    """
    POST /api/events/teams/<team_id>/join/
    Body (optional, team managers): { "user_id": 12 }
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, team_id):
        member = membership.join_team(team_id, _seat_user_id(request), actor=request.user)
        return Response(TeamMemberSerializer(member).data, status=status.HTTP_201_CREATED)


class LeaveTeamView(APIView):
    """
    POST /api/events/teams/<team_id>/leave/
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, team_id):
        member = membership.leave_team(team_id, _seat_user_id(request), actor=request.user)
        return Response(TeamMemberSerializer(member).data)


class RemoveTeamMemberView(APIView):
    """
    DELETE /api/events/teams/members/<member_id>/
    """
    permission_classes = [IsAuthenticated]

    def delete(self, request, member_id):
        member = membership.remove_member(member_id, request.user)
        return Response(TeamMemberSerializer(member).data)


class SetTeamCaptainView(APIView):
    """
    POST /api/events/teams/<team_id>/captain/
    Body: { "user_id": 12 }
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, team_id):
        serializer = SeatSerializer(data=request.data)
        if not serializer.is_valid() or "user_id" not in serializer.validated_data:
            raise ValidationError({"user_id": "This field is required."})

        member = roles.set_team_captain(team_id, serializer.validated_data["user_id"], request.user)
        return Response(TeamMemberSerializer(member).data)


class MyTeamsView(APIView):
    """
    GET /api/events/teams/mine/   active seats of the caller
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        seats = (
            TeamMember.objects.filter(user=request.user, status=TeamMember.STATUS_ACTIVE)
            .select_related("team", "team__event")
            .order_by("team__event__event_date")
        )
        teams = [seat.team for seat in seats]
        return Response(TeamSerializer(teams, many=True).data)
