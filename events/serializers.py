from rest_framework import serializers

from users.models import User
from . import datetime_utils
from .membership import occupancy
from .models import (
    Event,
    EventRegistration,
    EventTerms,
    Team,
    TeamMember,
    TermsQuestion,
    TermsQuestionOption,
    TermsResponse,
)
from .roles import check_captain_consistency
from .state_machine import get_allowed_transitions


# -----------------------------------------
# USER SUMMARY (nested in rosters)
# -----------------------------------------
class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username", "full_name", "role", "avatar_url", "is_active"]
        read_only_fields = fields


# -----------------------------------------
# EVENT SERIALIZER
# -----------------------------------------
class EventSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source="created_by.full_name", read_only=True)
    occupancy = serializers.SerializerMethodField()
    allowed_transitions = serializers.SerializerMethodField()
    days_until = serializers.SerializerMethodField()
    is_registered = serializers.SerializerMethodField()

    class Meta:
        model = Event
        fields = [
            "id",
            "title",
            "description",
            "location",
            "category",
            "requirements",
            "image_url",
            "event_date",
            "start_time",
            "end_time",
            "max_volunteers",
            "status",
            "created_by",
            "created_by_name",
            "created_at",
            "updated_at",
            "occupancy",
            "allowed_transitions",
            "days_until",
            "is_registered",
        ]
        read_only_fields = [
            "id",
            "image_url",
            "status",
            "created_by",
            "created_by_name",
            "created_at",
            "updated_at",
            "occupancy",
            "allowed_transitions",
            "days_until",
            "is_registered",
        ]

    def get_occupancy(self, obj) -> int:
        return occupancy(obj.id)

    def get_allowed_transitions(self, obj):
        return get_allowed_transitions(obj)

    def get_days_until(self, obj):
        return datetime_utils.days_until_event(obj)

    def get_is_registered(self, obj):
        request = self.context.get("request")
        if request and request.user.is_authenticated:
            return EventRegistration.objects.filter(
                event=obj,
                user=request.user,
                status__in=EventRegistration.OCCUPYING_STATUSES,
            ).exists()
        return False

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title is required.")
        return value

    def validate(self, attrs):
        """
        Cross-field validation:
        - end_time must be after start_time
        """
        start = attrs.get("start_time")
        end = attrs.get("end_time")

        # When updating, fall back to existing values if one is missing
        if self.instance is not None:
            if "start_time" not in attrs:
                start = self.instance.start_time
            if "end_time" not in attrs:
                end = self.instance.end_time

        if start and end and end <= start:
            raise serializers.ValidationError({"end_time": "Must be after the start time."})

        return attrs


class EventStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[choice for choice, _ in Event.STATUS_CHOICES])
    max_volunteers = serializers.IntegerField(required=False, min_value=0)


# -----------------------------------------
# REGISTRATIONS
# -----------------------------------------
class RegistrationSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    event_title = serializers.CharField(source="event.title", read_only=True)

    class Meta:
        model = EventRegistration
        fields = [
            "id",
            "event",
            "event_title",
            "user",
            "status",
            "notes",
            "terms_accepted",
            "terms_accepted_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TermsAnswerSerializer(serializers.Serializer):
    question_id = serializers.IntegerField()
    selected_options = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    text_response = serializers.CharField(required=False, allow_blank=True, default="")


class RegisterSerializer(serializers.Serializer):
    """Body of the register call; `user_id` defaults to the caller."""
    user_id = serializers.IntegerField(required=False)
    terms_accepted = serializers.BooleanField(required=False, default=False)
    answers = TermsAnswerSerializer(many=True, required=False)


# -----------------------------------------
# TEAMS
# -----------------------------------------
class TeamMemberSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = TeamMember
        fields = ["id", "team", "user", "role_in_team", "status", "joined_at", "left_at"]
        read_only_fields = fields


class TeamSerializer(serializers.ModelSerializer):
    captain = UserSummarySerializer(read_only=True)
    event_title = serializers.CharField(source="event.title", read_only=True)
    members = serializers.SerializerMethodField()
    active_member_count = serializers.SerializerMethodField()
    consistency_warning = serializers.SerializerMethodField()

    class Meta:
        model = Team
        fields = [
            "id",
            "event",
            "event_title",
            "name",
            "captain",
            "max_volunteers",
            "status",
            "arrival_time",
            "created_by",
            "created_at",
            "updated_at",
            "active_member_count",
            "members",
            "consistency_warning",
        ]
        read_only_fields = fields

    def get_members(self, obj):
        qs = obj.members.select_related("user").order_by("role_in_team", "joined_at")
        if not self.context.get("include_inactive"):
            qs = qs.filter(status=TeamMember.STATUS_ACTIVE)
        return TeamMemberSerializer(qs, many=True).data

    def get_active_member_count(self, obj) -> int:
        return obj.active_member_count

    def get_consistency_warning(self, obj):
        warning = check_captain_consistency(obj)
        return warning.as_dict() if warning else None


class TeamWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    max_volunteers = serializers.IntegerField(min_value=1)
    arrival_time = serializers.TimeField(required=False, allow_null=True)
    captain_id = serializers.IntegerField(required=False, allow_null=True)
    status = serializers.ChoiceField(
        choices=[Team.STATUS_FORMING, Team.STATUS_ACTIVE, Team.STATUS_COMPLETE],
        required=False,
    )


class SeatSerializer(serializers.Serializer):
    """Body of join/leave/captain calls; defaults to the caller."""
    user_id = serializers.IntegerField(required=False)


# -----------------------------------------
# TERMS
# -----------------------------------------
class TermsQuestionOptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = TermsQuestionOption
        fields = ["id", "text", "value", "order"]
        read_only_fields = fields


class TermsQuestionSerializer(serializers.ModelSerializer):
    options = serializers.SerializerMethodField()

    class Meta:
        model = TermsQuestion
        fields = [
            "id",
            "event",
            "text",
            "question_type",
            "is_required",
            "allow_multiple",
            "order",
            "is_active",
            "options",
        ]
        read_only_fields = fields

    def get_options(self, obj):
        options = [option for option in obj.options.all() if option.is_active]
        return TermsQuestionOptionSerializer(options, many=True).data


class EventTermsSerializer(serializers.ModelSerializer):
    class Meta:
        model = EventTerms
        fields = ["id", "event", "content", "is_required", "is_active", "created_at", "updated_at"]
        read_only_fields = fields


class EventTermsWriteSerializer(serializers.Serializer):
    content = serializers.CharField()
    is_required = serializers.BooleanField(required=False, default=True)
    is_active = serializers.BooleanField(required=False, default=True)


class TermsOptionWriteSerializer(serializers.Serializer):
    text = serializers.CharField(max_length=255)
    value = serializers.CharField(max_length=100, required=False, allow_blank=True)


class TermsQuestionWriteSerializer(serializers.Serializer):
    text = serializers.CharField()
    question_type = serializers.ChoiceField(
        choices=[choice for choice, _ in TermsQuestion.TYPE_CHOICES],
        default=TermsQuestion.TYPE_MULTIPLE_CHOICE,
    )
    is_required = serializers.BooleanField(required=False, default=True)
    allow_multiple = serializers.BooleanField(required=False, default=False)
    options = TermsOptionWriteSerializer(many=True, required=False)


class TermsResponseSerializer(serializers.ModelSerializer):
    question_text = serializers.CharField(source="question.text", read_only=True)

    class Meta:
        model = TermsResponse
        fields = ["id", "question", "question_text", "selected_options", "text_response", "responded_at"]
        read_only_fields = fields
