from rest_framework import serializers

from .normalize import KINDS


class EvaluationSubmitSerializer(serializers.Serializer):
    """Envelope of an evaluation submission; the ratings themselves are checked per kind."""
    kind = serializers.ChoiceField(choices=list(KINDS))
    subject_id = serializers.IntegerField()
    event_id = serializers.IntegerField()
    team_id = serializers.IntegerField()
    ratings = serializers.DictField()
