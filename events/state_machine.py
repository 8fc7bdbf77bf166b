# events/state_machine.py
"""
Event lifecycle controller.

Enforces valid state transitions for the event lifecycle:
draft → published → in_progress → completed
            └────────────────────→ completed
any non-terminal state → cancelled

completed and cancelled are terminal. Reaching completed, either by an explicit
transition or because the event date has passed, runs the finalization
cascade: active members become inactive, teams become finished and captains
return to the volunteer role.
"""
from typing import Tuple
import logging

from django.db import transaction
from django.shortcuts import get_object_or_404

from core.exceptions import EventFinalized, NotAllowed, ValidationError
from notifications.services import notify
from . import datetime_utils
from .membership import ensure_not_finalized, lock_event, occupant_ids
from .models import Event, EventRegistration, Team, TeamMember
from .policies import CrewPolicy, enforce
from .roles import demote_captains_after_event_finalize

logger = logging.getLogger('crew.events')


# Valid state transitions: from_status -> list of allowed to_statuses
VALID_TRANSITIONS = {
    Event.STATUS_DRAFT: [Event.STATUS_PUBLISHED, Event.STATUS_CANCELLED],
    Event.STATUS_PUBLISHED: [Event.STATUS_IN_PROGRESS, Event.STATUS_COMPLETED, Event.STATUS_CANCELLED],
    Event.STATUS_IN_PROGRESS: [Event.STATUS_COMPLETED, Event.STATUS_CANCELLED],
    Event.STATUS_COMPLETED: [],
    Event.STATUS_CANCELLED: [],
}

EDITABLE_FIELDS = (
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
)


def can_transition(event: Event, new_status: str) -> Tuple[bool, str]:
    """
    Check if an event can transition to a new status.

    Returns (can_transition: bool, reason: str)
    """
    current_status = event.status

    if new_status == current_status:
        return True, "Same status"

    if new_status not in dict(Event.STATUS_CHOICES):
        return False, f"Invalid status: {new_status}"

    allowed = VALID_TRANSITIONS.get(current_status, [])

    if new_status not in allowed:
        return False, f"Cannot transition from '{current_status}' to '{new_status}'"

    return True, ""


def get_allowed_transitions(event: Event) -> list:
    """
    Get list of allowed status transitions for an event.
    """
    return VALID_TRANSITIONS.get(event.status, [])


def is_terminal_status(status: str) -> bool:
    return len(VALID_TRANSITIONS.get(status, [])) == 0


def _validate_max_volunteers(event: Event, value) -> int:
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError({"max_volunteers": "Must be an integer."})
    if value < 0:
        raise ValidationError({"max_volunteers": "Cannot be negative."})
    if value:
        current = len(occupant_ids(event.id))
        if value < current:
            raise ValidationError(
                {"max_volunteers": f"Cannot be lower than the current occupancy ({current})."}
            )
    return value


def _run_finalization(event: Event) -> int:
    """Cascade for an event that just became completed. Caller holds the event lock."""
    now = datetime_utils.now()
    deactivated = TeamMember.objects.filter(
        team__event=event, status=TeamMember.STATUS_ACTIVE
    ).update(status=TeamMember.STATUS_INACTIVE, left_at=now)
    finished = Team.objects.filter(event=event).exclude(
        status=Team.STATUS_FINISHED
    ).update(status=Team.STATUS_FINISHED)
    demoted = demote_captains_after_event_finalize(event.id)

    logger.info(
        f"Event finalized: event={event.id}, members_deactivated={deactivated}, "
        f"teams_finished={finished}, captains_demoted={demoted}"
    )
    return demoted


def advance(event_id, new_status, actor, max_volunteers=None) -> Event:
    """
    Move an event to `new_status`, optionally changing its volunteer limit in
    the same write. Requesting the current status is a no-op.
    """
    with transaction.atomic():
        event = lock_event(event_id)
        enforce(CrewPolicy.can_edit_event(actor, event))

        if new_status not in dict(Event.STATUS_CHOICES):
            raise ValidationError({"status": f"Invalid status: {new_status}"})

        if event.status == Event.STATUS_COMPLETED and new_status != Event.STATUS_COMPLETED:
            logger.warning(
                f"Transition out of completed rejected: event={event.id}, "
                f"to={new_status}, actor={getattr(actor, 'id', 'system')}"
            )
            raise EventFinalized()

        can, reason = can_transition(event, new_status)
        if not can:
            logger.warning(
                f"Invalid state transition attempted: event={event.id}, "
                f"from={event.status}, to={new_status}, actor={getattr(actor, 'id', 'system')}. "
                f"Reason: {reason}"
            )
            raise NotAllowed(reason)

        update_fields = ["status", "updated_at"]
        if max_volunteers is not None:
            ensure_not_finalized(event)
            if event.status == Event.STATUS_CANCELLED:
                raise NotAllowed("Cancelled events cannot be edited")
            event.max_volunteers = _validate_max_volunteers(event, max_volunteers)
            update_fields.append("max_volunteers")

        old_status = event.status
        if old_status == new_status and max_volunteers is None:
            return event

        event.status = new_status
        event.save(update_fields=update_fields)

        logger.info(
            f"Event state transition: event={event.id}, "
            f"from={old_status}, to={new_status}, actor={getattr(actor, 'id', 'system')}"
        )

        if old_status != new_status:
            if new_status == Event.STATUS_COMPLETED:
                _run_finalization(event)
            elif new_status == Event.STATUS_CANCELLED:
                for user_id in occupant_ids(event.id):
                    notify(
                        user_id,
                        f"'{event.title}' was cancelled.",
                        {"title": "Event cancelled", "type": "warning", "event_id": event.id},
                    )

    return event


def finalize_if_expired(event_id) -> Tuple[bool, int]:
    """
    Complete an event whose date has passed.

    Safe to call on every read: an event that is not past, or is already
    completed or cancelled, is left alone. Returns (finalized, captains_demoted).
    """
    # Unlocked read first so ordinary reads never take the row lock
    candidate = Event.objects.filter(pk=event_id).values_list("status", "event_date").first()
    if candidate is None:
        get_object_or_404(Event, pk=event_id)
    status, event_date = candidate
    if status in Event.TERMINAL_STATUSES or event_date >= datetime_utils.today():
        return False, 0

    with transaction.atomic():
        event = lock_event(event_id)
        # Re-check under the lock; a concurrent read may have finalized it
        if event.is_terminal or not datetime_utils.is_event_past(event):
            return False, 0

        old_status = event.status
        event.status = Event.STATUS_COMPLETED
        event.save(update_fields=["status", "updated_at"])
        logger.info(
            f"Event auto-completed: event={event.id}, from={old_status}, date={event.event_date}"
        )
        demoted = _run_finalization(event)

    return True, demoted


def edit_event(event_id, actor, changes) -> Event:
    """Update descriptive fields. Status changes go through `advance`."""
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError({field: "This field cannot be changed here." for field in sorted(unknown)})

    with transaction.atomic():
        event = lock_event(event_id)
        enforce(CrewPolicy.can_edit_event(actor, event))
        ensure_not_finalized(event)
        if event.status == Event.STATUS_CANCELLED:
            raise NotAllowed("Cancelled events cannot be edited")

        for field, value in changes.items():
            if field == "max_volunteers":
                value = _validate_max_volunteers(event, value)
            setattr(event, field, value)

        if event.start_time and event.end_time and event.end_time <= event.start_time:
            raise ValidationError({"end_time": "Must be after the start time."})

        event.save()
        logger.info(f"Event edited: event={event.id}, fields={sorted(changes)}, actor={getattr(actor, 'id', 'system')}")

    return event


def delete_event(event_id, actor):
    """
    Physically delete an event that never completed.

    Memberships are marked removed and registrations cancelled before the
    cascade so the rows carry their final state up to the delete.
    """
    with transaction.atomic():
        event = lock_event(event_id)
        enforce(CrewPolicy.can_delete_event(actor, event))
        ensure_not_finalized(event)

        now = datetime_utils.now()
        removed = TeamMember.objects.filter(team__event=event).exclude(
            status=TeamMember.STATUS_REMOVED
        ).update(status=TeamMember.STATUS_REMOVED, left_at=now)
        cancelled = EventRegistration.objects.filter(event=event).exclude(
            status=EventRegistration.STATUS_CANCELLED
        ).update(status=EventRegistration.STATUS_CANCELLED)

        event_pk = event.pk
        event.delete()
        logger.info(
            f"Event deleted: event={event_pk}, members_removed={removed}, "
            f"registrations_cancelled={cancelled}, actor={getattr(actor, 'id', 'system')}"
        )


def finalize_all_expired() -> Tuple[int, int]:
    """Run `finalize_if_expired` over every past-dated open event. Returns (finalized, demoted)."""
    expired = (
        Event.objects.filter(event_date__lt=datetime_utils.today())
        .exclude(status__in=Event.TERMINAL_STATUSES)
        .values_list("id", flat=True)
    )

    finalized = 0
    demoted = 0
    for event_id in list(expired):
        done, count = finalize_if_expired(event_id)
        if done:
            finalized += 1
            demoted += count
    return finalized, demoted
