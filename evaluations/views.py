from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from core.exceptions import ValidationError
from . import aggregator
from .serializers import EvaluationSubmitSerializer


class SubmitEvaluationView(APIView):
    """
    POST /api/evaluations/
    Body: { "kind", "subject_id", "event_id", "team_id", "ratings": {...} }

    The rater is always the authenticated user.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = EvaluationSubmitSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)
        data = serializer.validated_data

        evaluation = aggregator.submit(
            data["kind"],
            data["subject_id"],
            request.user.id,
            data["event_id"],
            data["team_id"],
            data["ratings"],
            actor=request.user,
        )
        return Response(evaluation.as_dict(), status=status.HTTP_201_CREATED)


class EvaluationStatsView(APIView):
    """
    GET /api/evaluations/stats/me/
    GET /api/evaluations/stats/<user_id>/   (admins, or the user themselves)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, user_id=None):
        subject_id = request.user.id if user_id is None else user_id
        return Response(aggregator.stats_for(subject_id, actor=request.user))


class ReceivedEvaluationsView(APIView):
    """
    GET /api/evaluations/received/me/?kind=volunteer
    GET /api/evaluations/received/<user_id>/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, user_id=None):
        subject_id = request.user.id if user_id is None else user_id
        kind = request.query_params.get("kind") or None
        evaluations = aggregator.received(subject_id, kind=kind, actor=request.user)
        return Response([ev.as_dict() for ev in evaluations])
