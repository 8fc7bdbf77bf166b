# evaluations/normalize.py
"""
The three evaluation tables share a shape but not their column names.

`KINDS` describes each table once (who is rated, who rates, which column is
the overall score, which sub-ratings and yes/no flags it carries) and
`normalize()` turns any row into a `NormalizedEvaluation`. Nothing past this
module reads evaluation columns by name.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

from core.exceptions import ValidationError
from .models import CaptainEvaluation, CaptainFeedback, VolunteerEvaluation

KIND_VOLUNTEER = "volunteer"
KIND_CAPTAIN_BY_ADMIN = "captain_by_admin"
KIND_CAPTAIN_BY_VOLUNTEER = "captain_by_volunteer"

RATING_MIN = 1
RATING_MAX = 5


@dataclass(frozen=True)
class EvaluationKind:
    """Column layout of one evaluation table."""
    name: str
    model: type
    subject_field: str
    rater_field: str
    overall_field: str
    sub_ratings: Tuple[str, ...]
    flags: Tuple[str, ...]
    text_fields: Tuple[str, ...]
    list_fields: Tuple[str, ...] = ()

    @property
    def rating_fields(self) -> Tuple[str, ...]:
        return (self.overall_field,) + self.sub_ratings


@dataclass(frozen=True)
class NormalizedEvaluation:
    """One evaluation row, whatever table it came from."""
    kind: str
    id: int
    subject_id: int
    rater_id: int
    event_id: int
    team_id: int
    overall: int
    sub_ratings: Dict[str, int] = field(default_factory=dict)
    flags: Dict[str, bool] = field(default_factory=dict)
    texts: Dict[str, object] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def as_dict(self) -> dict:
        return {
            "kind": self.kind,
            "id": self.id,
            "subject_id": self.subject_id,
            "rater_id": self.rater_id,
            "event_id": self.event_id,
            "team_id": self.team_id,
            "overall": self.overall,
            "sub_ratings": dict(self.sub_ratings),
            "flags": dict(self.flags),
            "texts": dict(self.texts),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


KINDS = {
    KIND_VOLUNTEER: EvaluationKind(
        name=KIND_VOLUNTEER,
        model=VolunteerEvaluation,
        subject_field="volunteer",
        rater_field="captain",
        overall_field="rating",
        sub_ratings=(
            "punctuality",
            "teamwork",
            "communication",
            "initiative",
            "quality_of_work",
            "reliability",
        ),
        flags=("would_work_again", "recommend_for_future"),
        text_fields=("positive_aspects", "improvement_suggestions", "comments"),
        list_fields=("skills_demonstrated",),
    ),
    KIND_CAPTAIN_BY_ADMIN: EvaluationKind(
        name=KIND_CAPTAIN_BY_ADMIN,
        model=CaptainEvaluation,
        subject_field="captain",
        rater_field="admin",
        overall_field="overall_rating",
        sub_ratings=("leadership", "team_management", "communication"),
        flags=("promotion_ready",),
        text_fields=("comments", "strengths", "areas_for_improvement"),
    ),
    KIND_CAPTAIN_BY_VOLUNTEER: EvaluationKind(
        name=KIND_CAPTAIN_BY_VOLUNTEER,
        model=CaptainFeedback,
        subject_field="captain",
        rater_field="volunteer",
        overall_field="overall_rating",
        sub_ratings=(
            "leadership",
            "communication",
            "support",
            "organization",
            "motivation",
            "problem_solving",
        ),
        flags=("felt_supported", "clear_instructions", "would_work_again", "recommend_captain"),
        text_fields=("positive_aspects", "improvement_suggestions", "comments"),
    ),
}


def get_kind(name) -> EvaluationKind:
    try:
        return KINDS[name]
    except KeyError:
        raise ValidationError({"kind": f"Unknown evaluation kind: {name}. Expected one of {', '.join(KINDS)}."})


def normalize(kind: EvaluationKind, row) -> NormalizedEvaluation:
    texts = {name: getattr(row, name) for name in kind.text_fields}
    for name in kind.list_fields:
        texts[name] = list(getattr(row, name) or [])

    return NormalizedEvaluation(
        kind=kind.name,
        id=row.pk,
        subject_id=getattr(row, f"{kind.subject_field}_id"),
        rater_id=getattr(row, f"{kind.rater_field}_id"),
        event_id=row.event_id,
        team_id=row.team_id,
        overall=getattr(row, kind.overall_field),
        sub_ratings={name: getattr(row, name) for name in kind.sub_ratings},
        flags={name: getattr(row, name) for name in kind.flags},
        texts=texts,
        created_at=row.created_at,
    )


def clean_ratings(kind: EvaluationKind, ratings) -> dict:
    """
    Validate a submitted payload against the kind's layout.

    Every rating field is required and must be an integer from 1 to 5
    (booleans are rejected). Flags default to False, texts to "".
    Returns the model field values.
    """
    if not isinstance(ratings, dict):
        raise ValidationError({"ratings": "Expected an object."})

    errors = {}
    values = {}

    for name in kind.rating_fields:
        value = ratings.get(name)
        if value is None:
            errors[name] = "This rating is required."
        elif isinstance(value, bool) or not isinstance(value, int):
            errors[name] = "Must be a whole number."
        elif not RATING_MIN <= value <= RATING_MAX:
            errors[name] = f"Must be between {RATING_MIN} and {RATING_MAX}."
        else:
            values[name] = value

    for name in kind.flags:
        value = ratings.get(name, False)
        if not isinstance(value, bool):
            errors[name] = "Must be true or false."
        else:
            values[name] = value

    for name in kind.text_fields:
        value = ratings.get(name) or ""
        if not isinstance(value, str):
            errors[name] = "Must be text."
        else:
            values[name] = value.strip()

    for name in kind.list_fields:
        value = ratings.get(name) or []
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            errors[name] = "Must be a list of strings."
        else:
            values[name] = value

    known = set(kind.rating_fields) | set(kind.flags) | set(kind.text_fields) | set(kind.list_fields)
    for name in sorted(set(ratings) - known):
        errors[name] = "Unknown field for this evaluation kind."

    if errors:
        raise ValidationError(errors)
    return values
