# events/membership.py
"""
Membership ledger: who holds a seat where.

Every write here runs in one transaction that locks the event row first and
the team row second (always in that order), re-reads the state it depends on,
and recomputes occupancy from the rows instead of keeping a counter. All
operations are safe to retry: repeating a join, leave or registration that
already took effect returns the existing row unchanged.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.shortcuts import get_object_or_404

from core.exceptions import CapacityExceeded, EventFinalized, NotAllowed, ValidationError
from notifications.services import notify
from . import datetime_utils
from .models import Event, EventRegistration, Team, TeamMember
from .policies import CrewPolicy, enforce

logger = logging.getLogger("crew.events")

User = get_user_model()

TEAM_EDITABLE_FIELDS = ("name", "max_volunteers", "arrival_time", "status")
TEAM_MANUAL_STATUSES = (Team.STATUS_FORMING, Team.STATUS_ACTIVE, Team.STATUS_COMPLETE)


# ─────────────────────────────────────────────────────────────
# Shared guards
# ─────────────────────────────────────────────────────────────

def ensure_not_finalized(event: Event):
    if event.status == Event.STATUS_COMPLETED:
        raise EventFinalized()


def ensure_open_for_seats(event: Event):
    ensure_not_finalized(event)
    if event.status == Event.STATUS_CANCELLED:
        raise NotAllowed("The event was cancelled")


def lock_event(event_id) -> Event:
    return get_object_or_404(Event.objects.select_for_update(), pk=event_id)


def lock_team(team_id):
    """Lock the team's event, then the team. Returns (event, team)."""
    event_id = (
        Team.objects.filter(pk=team_id).values_list("event_id", flat=True).first()
    )
    if event_id is None:
        get_object_or_404(Team, pk=team_id)
    event = lock_event(event_id)
    team = Team.objects.select_for_update().get(pk=team_id)
    return event, team


def get_active_user(user_id):
    user = get_object_or_404(User, pk=user_id)
    if not user.is_active:
        raise NotAllowed("This user account is deactivated")
    return user


def occupant_ids(event_id) -> set:
    """Distinct user ids holding a registration or an active team seat."""
    registered = EventRegistration.objects.filter(
        event_id=event_id,
        status__in=EventRegistration.OCCUPYING_STATUSES,
    ).values_list("user_id", flat=True)
    seated = TeamMember.objects.filter(
        team__event_id=event_id,
        status=TeamMember.STATUS_ACTIVE,
    ).values_list("user_id", flat=True)
    return set(registered) | set(seated)


def occupancy(event_id) -> int:
    """
    Number of distinct people associated with the event.

    A person who is both registered and seated in a team counts once.
    """
    return len(occupant_ids(event_id))


def check_event_capacity(event: Event, user_id):
    if not event.max_volunteers:
        return
    current = occupant_ids(event.id)
    if user_id in current:
        return
    if len(current) >= event.max_volunteers:
        logger.warning(
            f"Event capacity exceeded: event={event.id}, "
            f"occupancy={len(current)}, max={event.max_volunteers}, user={user_id}"
        )
        raise CapacityExceeded(
            f"Event is full ({len(current)}/{event.max_volunteers} volunteers)."
        )


def check_seat_available(team: Team, event: Event, user_id):
    """
    Rules for giving `user_id` an active seat in `team`:
    one active seat per person per event, the team's own limit, and the
    event-wide limit for people not yet counted.
    """
    other_seat = (
        TeamMember.objects.filter(
            team__event=event,
            user_id=user_id,
            status=TeamMember.STATUS_ACTIVE,
        )
        .exclude(team=team)
        .select_related("team")
        .first()
    )
    if other_seat is not None:
        raise NotAllowed(
            f"User already holds a seat in team '{other_seat.team.name}' for this event"
        )

    active_count = TeamMember.objects.filter(team=team, status=TeamMember.STATUS_ACTIVE).count()
    if active_count >= team.max_volunteers:
        logger.warning(
            f"Team capacity exceeded: team={team.id}, "
            f"active={active_count}, max={team.max_volunteers}, user={user_id}"
        )
        raise CapacityExceeded(f"Team is full ({active_count}/{team.max_volunteers} members).")

    check_event_capacity(event, user_id)


def _parse_max_volunteers(value, minimum):
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError({"max_volunteers": "Must be an integer."})
    if value < minimum:
        raise ValidationError({"max_volunteers": f"Must be at least {minimum}."})
    return value


# ─────────────────────────────────────────────────────────────
# Team seats
# ─────────────────────────────────────────────────────────────

def join_team(team_id, user_id, actor=None) -> TeamMember:
    """
    Seat `user_id` in the team as a volunteer.

    A previously removed or inactive row is reactivated instead of inserting
    a second one.
    """
    with transaction.atomic():
        event, team = lock_team(team_id)
        enforce(CrewPolicy.can_change_seat(actor, team, user_id))
        ensure_open_for_seats(event)
        get_active_user(user_id)

        member = (
            TeamMember.objects.select_for_update()
            .filter(team=team, user_id=user_id)
            .first()
        )
        if member is not None and member.status == TeamMember.STATUS_ACTIVE:
            return member

        check_seat_available(team, event, user_id)

        now = datetime_utils.now()
        if member is not None:
            member.status = TeamMember.STATUS_ACTIVE
            member.role_in_team = TeamMember.ROLE_VOLUNTEER
            member.joined_at = now
            member.left_at = None
            member.save(update_fields=["status", "role_in_team", "joined_at", "left_at"])
            logger.info(f"Team member reactivated: team={team.id}, user={user_id}")
        else:
            member = TeamMember.objects.create(
                team=team,
                user_id=user_id,
                role_in_team=TeamMember.ROLE_VOLUNTEER,
                status=TeamMember.STATUS_ACTIVE,
                joined_at=now,
            )
            logger.info(f"Team member added: team={team.id}, user={user_id}")

        notify(
            user_id,
            f"You were added to team '{team.name}' for '{event.title}'.",
            {"title": "Team assignment", "type": "success", "event_id": event.id, "team_id": team.id},
        )

    return member


def leave_team(team_id, user_id, actor=None) -> TeamMember:
    with transaction.atomic():
        event, team = lock_team(team_id)
        enforce(CrewPolicy.can_change_seat(actor, team, user_id))

        member = (
            TeamMember.objects.select_for_update()
            .filter(team=team, user_id=user_id)
            .first()
        )
        if member is None:
            raise NotAllowed("User is not a member of this team")

        ensure_not_finalized(event)

        if member.status != TeamMember.STATUS_ACTIVE:
            return member

        if member.role_in_team == TeamMember.ROLE_CAPTAIN:
            raise NotAllowed("The team captain cannot leave; assign another captain first")

        member.status = TeamMember.STATUS_INACTIVE
        member.left_at = datetime_utils.now()
        member.save(update_fields=["status", "left_at"])
        logger.info(f"Team member left: team={team.id}, user={user_id}")

    return member


def remove_member(member_id, actor) -> TeamMember:
    team_id = (
        TeamMember.objects.filter(pk=member_id).values_list("team_id", flat=True).first()
    )
    if team_id is None:
        get_object_or_404(TeamMember, pk=member_id)

    with transaction.atomic():
        event, team = lock_team(team_id)
        enforce(CrewPolicy.can_manage_team(actor, team))
        member = TeamMember.objects.select_for_update().get(pk=member_id)
        ensure_not_finalized(event)

        if member.role_in_team == TeamMember.ROLE_CAPTAIN:
            raise NotAllowed("The team captain cannot be removed; assign another captain first")

        if member.status == TeamMember.STATUS_REMOVED:
            return member

        member.status = TeamMember.STATUS_REMOVED
        member.left_at = datetime_utils.now()
        member.save(update_fields=["status", "left_at"])
        logger.info(
            f"Team member removed: team={team.id}, user={member.user_id}, "
            f"actor={getattr(actor, 'id', 'system')}"
        )

        notify(
            member.user_id,
            f"You were removed from team '{team.name}'.",
            {"title": "Team update", "type": "warning", "event_id": event.id, "team_id": team.id},
        )

    return member


# ─────────────────────────────────────────────────────────────
# Registrations
# ─────────────────────────────────────────────────────────────

def register(event_id, user_id, actor=None, terms_accepted=False, answers=None) -> EventRegistration:
    """
    Sign `user_id` up for the event. One logical registration per (event,
    user): a cancelled or transferred row is reopened as pending.

    When the event has active required terms, they must be accepted and the
    required questions answered; the acceptance time and answers are stored
    with the registration.
    """
    from .terms import active_terms, clean_answers, record_answers

    with transaction.atomic():
        event = lock_event(event_id)
        enforce(CrewPolicy.can_register(actor, event, user_id))
        ensure_not_finalized(event)
        if event.status not in (Event.STATUS_PUBLISHED, Event.STATUS_IN_PROGRESS):
            raise NotAllowed("Registration is only open for published events")
        get_active_user(user_id)

        reg = (
            EventRegistration.objects.select_for_update()
            .filter(event=event, user_id=user_id)
            .first()
        )
        if reg is not None and reg.status in EventRegistration.OCCUPYING_STATUSES:
            return reg

        terms = active_terms(event)
        if terms is not None and terms.is_required and not terms_accepted:
            raise NotAllowed("The event terms must be accepted before registering")
        accepted = terms is not None and bool(terms_accepted)
        cleaned = clean_answers(event, answers) if accepted else []

        check_event_capacity(event, user_id)

        accepted_at = datetime_utils.now() if accepted else None
        if reg is not None:
            reg.status = EventRegistration.STATUS_PENDING
            reg.terms_accepted = accepted
            reg.terms_accepted_at = accepted_at
            reg.save(update_fields=["status", "terms_accepted", "terms_accepted_at", "updated_at"])
        else:
            reg = EventRegistration.objects.create(
                event=event,
                user_id=user_id,
                status=EventRegistration.STATUS_PENDING,
                terms_accepted=accepted,
                terms_accepted_at=accepted_at,
            )
        record_answers(event, user_id, cleaned)
        logger.info(f"Registration created: user={user_id}, event={event.id}, terms_accepted={accepted}")

        notify(
            user_id,
            f"Your registration for '{event.title}' was received.",
            {"title": "Registration", "type": "info", "event_id": event.id},
        )

    return reg


def confirm_registration(registration_id, actor) -> EventRegistration:
    event_id = (
        EventRegistration.objects.filter(pk=registration_id)
        .values_list("event_id", flat=True)
        .first()
    )
    if event_id is None:
        get_object_or_404(EventRegistration, pk=registration_id)

    with transaction.atomic():
        event = lock_event(event_id)
        enforce(CrewPolicy.can_edit_event(actor, event))
        ensure_not_finalized(event)
        reg = EventRegistration.objects.select_for_update().get(pk=registration_id)

        if reg.status == EventRegistration.STATUS_CONFIRMED:
            return reg
        if reg.status != EventRegistration.STATUS_PENDING:
            raise NotAllowed(f"Cannot confirm a {reg.status} registration")

        reg.status = EventRegistration.STATUS_CONFIRMED
        reg.save(update_fields=["status", "updated_at"])
        logger.info(f"Registration confirmed: reg={reg.id}, event={event.id}")

        notify(
            reg.user_id,
            f"Your registration for '{event.title}' is confirmed.",
            {"title": "Registration confirmed", "type": "success", "event_id": event.id},
        )

    return reg


def cancel_registration(event_id, user_id, actor=None) -> EventRegistration:
    with transaction.atomic():
        event = lock_event(event_id)
        enforce(CrewPolicy.can_register(actor, event, user_id))
        ensure_not_finalized(event)

        reg = (
            EventRegistration.objects.select_for_update()
            .filter(event=event, user_id=user_id)
            .first()
        )
        if reg is None:
            raise NotAllowed("User is not registered for this event")
        if reg.status == EventRegistration.STATUS_CANCELLED:
            return reg

        reg.status = EventRegistration.STATUS_CANCELLED
        reg.terms_accepted = False
        reg.terms_accepted_at = None
        reg.save(update_fields=["status", "terms_accepted", "terms_accepted_at", "updated_at"])
        logger.info(f"Registration cancelled: user={user_id}, event={event.id}")

    return reg


# ─────────────────────────────────────────────────────────────
# Teams
# ─────────────────────────────────────────────────────────────

def create_team(event_id, actor, name, max_volunteers, captain_id=None, arrival_time=None) -> Team:
    from .roles import set_team_captain

    with transaction.atomic():
        event = lock_event(event_id)
        enforce(CrewPolicy.can_create_team(actor, event))
        ensure_open_for_seats(event)

        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": "Team name is required."})
        max_volunteers = _parse_max_volunteers(max_volunteers, 1)

        if Team.objects.filter(event=event, name__iexact=name).exists():
            raise ValidationError({"name": "A team with this name already exists for this event."})

        team = Team.objects.create(
            event=event,
            name=name,
            max_volunteers=max_volunteers,
            arrival_time=arrival_time,
            created_by=actor,
        )
        logger.info(f"Team created: team={team.id}, event={event.id}, actor={getattr(actor, 'id', 'system')}")

        if captain_id is not None:
            set_team_captain(team.id, captain_id, actor)
            team.refresh_from_db()

    return team


def update_team(team_id, actor, captain_id=None, **changes) -> Team:
    """
    Apply field changes and, when `captain_id` is given, the captain
    assignment in the same transaction; a rejected captain leaves the team
    untouched.
    """
    from .roles import set_team_captain

    unknown = set(changes) - set(TEAM_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError({field: "This field cannot be changed here." for field in sorted(unknown)})

    with transaction.atomic():
        event, team = lock_team(team_id)
        enforce(CrewPolicy.can_manage_team(actor, team))
        ensure_open_for_seats(event)

        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise ValidationError({"name": "Team name is required."})
            clash = Team.objects.filter(event=event, name__iexact=name).exclude(pk=team.pk)
            if clash.exists():
                raise ValidationError({"name": "A team with this name already exists for this event."})
            team.name = name

        if "max_volunteers" in changes:
            max_volunteers = _parse_max_volunteers(changes["max_volunteers"], 1)
            active_count = TeamMember.objects.filter(team=team, status=TeamMember.STATUS_ACTIVE).count()
            if max_volunteers < active_count:
                raise ValidationError(
                    {"max_volunteers": f"Cannot be lower than the current member count ({active_count})."}
                )
            team.max_volunteers = max_volunteers

        if "arrival_time" in changes:
            team.arrival_time = changes["arrival_time"]

        if "status" in changes:
            if changes["status"] not in TEAM_MANUAL_STATUSES:
                raise ValidationError({"status": f"Must be one of {', '.join(TEAM_MANUAL_STATUSES)}."})
            team.status = changes["status"]

        team.save()
        logger.info(f"Team updated: team={team.id}, fields={sorted(changes)}")

        if captain_id is not None:
            set_team_captain(team.id, captain_id, actor)
            team.refresh_from_db()

    return team


def delete_team(team_id, actor):
    with transaction.atomic():
        event, team = lock_team(team_id)
        enforce(CrewPolicy.can_create_team(actor, event))
        ensure_not_finalized(event)

        removed = TeamMember.objects.filter(team=team).exclude(
            status=TeamMember.STATUS_REMOVED
        ).update(status=TeamMember.STATUS_REMOVED, left_at=datetime_utils.now())
        team_pk = team.pk
        team.delete()
        logger.info(f"Team deleted: team={team_pk}, event={event.id}, members_removed={removed}")
