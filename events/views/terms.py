from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status
from django.shortcuts import get_object_or_404

from core.exceptions import ValidationError
from events import terms
from events.models import Event
from events.serializers import (
    EventTermsSerializer,
    EventTermsWriteSerializer,
    TermsQuestionSerializer,
    TermsQuestionWriteSerializer,
    TermsResponseSerializer,
)


class EventTermsView(APIView):
    """
    GET /api/events/<event_id>/terms/
        -> { "terms": {...} | null, "questions": [...] }
    PUT /api/events/<event_id>/terms/
        Body: { "content", "is_required"?, "is_active"? }
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        event = get_object_or_404(Event, pk=event_id)
        current = terms.active_terms(event)
        return Response({
            "terms": EventTermsSerializer(current).data if current else None,
            "questions": TermsQuestionSerializer(terms.active_questions(event), many=True).data,
        })

    def put(self, request, event_id):
        serializer = EventTermsWriteSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)
        data = serializer.validated_data

        current = terms.set_terms(
            event_id,
            request.user,
            data["content"],
            is_required=data.get("is_required", True),
            is_active=data.get("is_active", True),
        )
        return Response(EventTermsSerializer(current).data)


class TermsQuestionCreateView(APIView):
    """
    POST /api/events/<event_id>/terms/questions/
    Body: { "text", "question_type", "is_required"?, "allow_multiple"?, "options"?: [{ "text", "value"? }] }
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, event_id):
        serializer = TermsQuestionWriteSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)
        data = serializer.validated_data

        question = terms.add_question(
            event_id,
            request.user,
            data["text"],
            question_type=data["question_type"],
            is_required=data.get("is_required", True),
            allow_multiple=data.get("allow_multiple", False),
            options=[dict(option) for option in data.get("options", [])],
        )
        return Response(TermsQuestionSerializer(question).data, status=status.HTTP_201_CREATED)


class TermsQuestionDetailView(APIView):
    """
    DELETE /api/events/terms/questions/<question_id>/   retires the question
    """
    permission_classes = [IsAuthenticated]

    def delete(self, request, question_id):
        terms.retire_question(question_id, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class MyTermsAnswersView(APIView):
    """
    GET /api/events/<event_id>/terms/answers/   the caller's answers
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        get_object_or_404(Event, pk=event_id)
        answers = terms.answers_for(event_id, request.user.id)
        return Response(TermsResponseSerializer(answers, many=True).data)
