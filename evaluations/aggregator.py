# evaluations/aggregator.py
"""
Evaluation submission and statistics.

Statistics are computed from integer sums and counts per evaluation kind.
The database does the summing when it can; if the aggregate query fails, the
same sums are built from the individual rows in Python. Both paths feed the
same `_summarize()`, so callers cannot tell which one ran.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.shortcuts import get_object_or_404

from core.exceptions import DuplicateEvaluation, NotEligible
from events.models import Event, Team, TeamMember
from events.policies import CrewPolicy, enforce
from notifications.models import Notification
from notifications.services import notify
from .normalize import (
    KINDS,
    KIND_CAPTAIN_BY_ADMIN,
    KIND_CAPTAIN_BY_VOLUNTEER,
    KIND_VOLUNTEER,
    EvaluationKind,
    NormalizedEvaluation,
    clean_ratings,
    get_kind,
    normalize,
)

logger = logging.getLogger("crew.evaluations")

User = get_user_model()


# ─────────────────────────────────────────────────────────────
# Eligibility
# ─────────────────────────────────────────────────────────────

def _led_team(team: Team, user_id) -> bool:
    if team.captain_id == user_id:
        return True
    return (
        TeamMember.objects.filter(team=team, user_id=user_id, role_in_team=TeamMember.ROLE_CAPTAIN)
        .exclude(status=TeamMember.STATUS_REMOVED)
        .exists()
    )


def _served_as_volunteer(team: Team, user_id) -> bool:
    return (
        TeamMember.objects.filter(team=team, user_id=user_id, role_in_team=TeamMember.ROLE_VOLUNTEER)
        .exclude(status=TeamMember.STATUS_REMOVED)
        .exists()
    )


def _check_eligibility(kind: EvaluationKind, subject_id, rater_id, team: Team):
    if kind.name == KIND_VOLUNTEER:
        if not _led_team(team, rater_id):
            raise NotEligible("Only the team's captain can evaluate its volunteers")
        if not _served_as_volunteer(team, subject_id):
            raise NotEligible("This user did not serve as a volunteer in the team")

    elif kind.name == KIND_CAPTAIN_BY_VOLUNTEER:
        if not _served_as_volunteer(team, rater_id):
            raise NotEligible("Only volunteers of the team can evaluate its captain")
        if not _led_team(team, subject_id):
            raise NotEligible("This user did not captain the team")

    elif kind.name == KIND_CAPTAIN_BY_ADMIN:
        rater = User.objects.filter(pk=rater_id).first()
        if rater is None or not rater.is_admin:
            raise NotEligible("Only admins can evaluate captains")
        if not _led_team(team, subject_id):
            raise NotEligible("This user did not captain the team")


# ─────────────────────────────────────────────────────────────
# Submission
# ─────────────────────────────────────────────────────────────

def submit(kind, subject_id, rater_id, event_id, team_id, ratings, actor=None) -> NormalizedEvaluation:
    """
    Record one evaluation. Evaluations are write-once: a second submission for
    the same (subject, rater, event) is rejected, never merged.
    """
    layout = get_kind(kind)
    values = clean_ratings(layout, ratings)
    enforce(CrewPolicy.can_submit_evaluation(actor, rater_id))

    lookup = {
        f"{layout.subject_field}_id": subject_id,
        f"{layout.rater_field}_id": rater_id,
        "event_id": event_id,
    }

    with transaction.atomic():
        event = get_object_or_404(Event, pk=event_id)
        team = get_object_or_404(Team, pk=team_id)

        if layout.model.objects.filter(**lookup).exists():
            raise DuplicateEvaluation()

        if subject_id == rater_id:
            raise NotEligible("You cannot evaluate yourself")
        if event.status != Event.STATUS_COMPLETED:
            raise NotEligible("Evaluations open once the event is completed")
        if team.event_id != event.id:
            raise NotEligible("The team does not belong to this event")
        _check_eligibility(layout, subject_id, rater_id, team)

        try:
            with transaction.atomic():
                row = layout.model.objects.create(team=team, **lookup, **values)
        except IntegrityError:
            # Lost a race against an identical submission
            raise DuplicateEvaluation()

        logger.info(
            f"Evaluation submitted: kind={layout.name}, subject={subject_id}, "
            f"rater={rater_id}, event={event_id}, overall={values[layout.overall_field]}"
        )
        notify(
            subject_id,
            f"You received a new evaluation for '{event.title}'.",
            {
                "title": "New evaluation",
                "type": Notification.TYPE_EVALUATION,
                "event_id": event.id,
                "team_id": team.id,
                "related_user_id": rater_id,
            },
        )

    return normalize(layout, row)


def received(subject_id, kind=None, actor=None) -> List[NormalizedEvaluation]:
    """Evaluations received by `subject_id`, newest first."""
    enforce(CrewPolicy.can_view_stats(actor, subject_id))
    kinds = [get_kind(kind)] if kind else list(KINDS.values())

    results = []
    for layout in kinds:
        rows = layout.model.objects.filter(**{f"{layout.subject_field}_id": subject_id})
        results.extend(normalize(layout, row) for row in rows)
    results.sort(key=lambda ev: (ev.created_at, ev.id), reverse=True)
    return results


# ─────────────────────────────────────────────────────────────
# Statistics
# ─────────────────────────────────────────────────────────────

@dataclass
class _Totals:
    kind: str
    count: int = 0
    overall_sum: int = 0
    sub_sums: Dict[str, int] = field(default_factory=dict)
    flag_counts: Dict[str, int] = field(default_factory=dict)


def _aggregate_in_db(layout: EvaluationKind, subject_id) -> _Totals:
    aggregates = {
        "count": Count("pk"),
        "overall_sum": Sum(layout.overall_field),
    }
    for name in layout.sub_ratings:
        aggregates[f"{name}__sum"] = Sum(name)
    for name in layout.flags:
        aggregates[f"{name}__yes"] = Count("pk", filter=Q(**{name: True}))

    row = layout.model.objects.filter(**{f"{layout.subject_field}_id": subject_id}).aggregate(**aggregates)

    return _Totals(
        kind=layout.name,
        count=row["count"],
        overall_sum=row["overall_sum"] or 0,
        sub_sums={name: row[f"{name}__sum"] or 0 for name in layout.sub_ratings},
        flag_counts={name: row[f"{name}__yes"] for name in layout.flags},
    )


def _aggregate_in_python(layout: EvaluationKind, subject_id) -> _Totals:
    totals = _Totals(
        kind=layout.name,
        sub_sums={name: 0 for name in layout.sub_ratings},
        flag_counts={name: 0 for name in layout.flags},
    )
    rows = layout.model.objects.filter(**{f"{layout.subject_field}_id": subject_id})
    for ev in (normalize(layout, row) for row in rows):
        totals.count += 1
        totals.overall_sum += ev.overall
        for name, value in ev.sub_ratings.items():
            totals.sub_sums[name] += value
        for name, value in ev.flags.items():
            if value:
                totals.flag_counts[name] += 1
    return totals


def _average(total, count) -> Optional[float]:
    if not count:
        return None
    value = (Decimal(total) / Decimal(count)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(value)


def _percentage(part, whole) -> int:
    """Whole-number percentage, halves rounded up."""
    if not whole:
        return 0
    return (part * 200 + whole) // (whole * 2)


def _summarize(totals: _Totals) -> dict:
    return {
        "total_evaluations": totals.count,
        "avg_overall_rating": _average(totals.overall_sum, totals.count),
        "averages": {name: _average(total, totals.count) for name, total in totals.sub_sums.items()},
        "flags": {
            name: {"count": yes, "percentage": _percentage(yes, totals.count)}
            for name, yes in totals.flag_counts.items()
        },
    }


def stats_for(subject_id, actor=None) -> dict:
    """
    Evaluation statistics for one user.

    Each kind is summarized on its own; sub-ratings of different kinds are
    never merged. The top-level totals merge only the evaluation count and the
    overall score, weighted by count.
    """
    enforce(CrewPolicy.can_view_stats(actor, subject_id))

    try:
        with transaction.atomic():
            all_totals = [_aggregate_in_db(layout, subject_id) for layout in KINDS.values()]
    except DatabaseError as e:
        logger.warning(f"Aggregate query failed for user {subject_id}, computing per row: {e}")
        all_totals = [_aggregate_in_python(layout, subject_id) for layout in KINDS.values()]

    count = sum(t.count for t in all_totals)
    overall_sum = sum(t.overall_sum for t in all_totals)

    return {
        "subject_id": subject_id,
        "total_evaluations": count,
        "avg_overall_rating": _average(overall_sum, count),
        "by_kind": {t.kind: _summarize(t) for t in all_totals},
    }
