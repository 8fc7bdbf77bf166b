# events/roles.py
"""
Role consistency manager.

A user's global role (volunteer / captain / admin) and a team's leadership are
two separate records: `User.role` and the team's active captain `TeamMember`
row, with `Team.captain` as a denormalized pointer to the latter. Global role
changes never rewrite team rosters, and roster changes never grant a global
role. `set_team_captain` is the only writer of team leadership.
"""
import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.shortcuts import get_object_or_404

from core.exceptions import ConsistencyWarning, NotAllowed
from notifications.services import notify
from . import datetime_utils
from .membership import check_seat_available, ensure_open_for_seats, lock_team
from .models import Event, Team, TeamMember
from .policies import CrewPolicy, enforce

logger = logging.getLogger("crew.events")

User = get_user_model()


def _change_role(user_id, from_roles, to_role, actor):
    with transaction.atomic():
        user = get_object_or_404(User.objects.select_for_update(), pk=user_id)
        if user.role not in from_roles:
            raise NotAllowed(
                f"Cannot change role to {to_role}: user is currently {user.role}"
            )
        old_role = user.role
        user.role = to_role
        user.save(update_fields=["role"])

        logger.info(
            f"Role changed: user={user.id}, from={old_role}, to={to_role}, "
            f"actor={getattr(actor, 'id', 'system')}"
        )
        notify(
            user.id,
            f"Your role changed from {old_role} to {to_role}.",
            {"title": "Role update", "type": "info", "related_user_id": getattr(actor, "id", None)},
        )
    return user


def promote_to_captain(user_id, actor):
    enforce(CrewPolicy.can_manage_roles(actor))
    user = get_object_or_404(User, pk=user_id)
    if not user.is_active:
        raise NotAllowed("Deactivated users cannot be promoted")
    return _change_role(user_id, (User.ROLE_VOLUNTEER,), User.ROLE_CAPTAIN, actor)


def demote_to_volunteer(user_id, actor=None):
    enforce(CrewPolicy.can_manage_roles(actor))
    return _change_role(user_id, (User.ROLE_CAPTAIN,), User.ROLE_VOLUNTEER, actor)


def promote_to_admin(user_id, actor):
    enforce(CrewPolicy.can_manage_roles(actor))
    user = get_object_or_404(User, pk=user_id)
    if not user.is_active:
        raise NotAllowed("Deactivated users cannot be promoted")
    return _change_role(
        user_id, (User.ROLE_VOLUNTEER, User.ROLE_CAPTAIN), User.ROLE_ADMIN, actor
    )


def demote_from_admin(user_id, actor, to_role=User.ROLE_VOLUNTEER):
    enforce(CrewPolicy.can_manage_roles(actor))
    if actor is not None and actor.id == user_id:
        raise NotAllowed("Admins cannot remove their own admin role")
    if to_role not in (User.ROLE_VOLUNTEER, User.ROLE_CAPTAIN):
        raise NotAllowed(f"Cannot demote an admin to {to_role}")
    return _change_role(user_id, (User.ROLE_ADMIN,), to_role, actor)


def set_team_captain(team_id, user_id, actor) -> TeamMember:
    """
    Make `user_id` the one active captain of the team.

    Any other active captain row is rewritten to volunteer before the target
    row becomes captain, so the team never holds two active captains.
    """
    with transaction.atomic():
        event, team = lock_team(team_id)
        enforce(CrewPolicy.can_assign_captain(actor, team))
        ensure_open_for_seats(event)

        user = get_object_or_404(User, pk=user_id)
        if not user.is_active:
            raise NotAllowed("This user account is deactivated")
        if user.role != User.ROLE_CAPTAIN:
            raise NotAllowed("Only users with the captain role can lead a team; promote them first")

        member = (
            TeamMember.objects.select_for_update()
            .filter(team=team, user_id=user_id)
            .first()
        )
        if member is None or member.status != TeamMember.STATUS_ACTIVE:
            check_seat_available(team, event, user_id)

        previous = list(
            TeamMember.objects.select_for_update()
            .filter(team=team, role_in_team=TeamMember.ROLE_CAPTAIN, status=TeamMember.STATUS_ACTIVE)
            .exclude(user_id=user_id)
            .values_list("user_id", flat=True)
        )
        if previous:
            TeamMember.objects.filter(
                team=team, user_id__in=previous
            ).update(role_in_team=TeamMember.ROLE_VOLUNTEER)

        now = datetime_utils.now()
        if member is None:
            member = TeamMember.objects.create(
                team=team,
                user_id=user_id,
                role_in_team=TeamMember.ROLE_CAPTAIN,
                status=TeamMember.STATUS_ACTIVE,
                joined_at=now,
            )
        else:
            if member.status != TeamMember.STATUS_ACTIVE:
                member.joined_at = now
                member.left_at = None
            member.role_in_team = TeamMember.ROLE_CAPTAIN
            member.status = TeamMember.STATUS_ACTIVE
            member.save(update_fields=["role_in_team", "status", "joined_at", "left_at"])

        team.captain_id = user_id
        team.save(update_fields=["captain", "updated_at"])

        logger.info(
            f"Team captain set: team={team.id}, captain={user_id}, "
            f"previous={previous}, actor={getattr(actor, 'id', 'system')}"
        )

        notify(
            user_id,
            f"You are now the captain of team '{team.name}' for '{event.title}'.",
            {"title": "Team captain", "type": "success", "event_id": event.id, "team_id": team.id},
        )
        for old_id in previous:
            notify(
                old_id,
                f"You are no longer the captain of team '{team.name}'.",
                {"title": "Team captain", "type": "info", "event_id": event.id, "team_id": team.id},
            )

    return member


def demote_captains_after_event_finalize(event_id) -> int:
    """
    Return captains of a finished event to the volunteer role.

    A captain who still leads a forming or active team of another, still
    running event keeps the role. Admins are never touched, and users already
    back to volunteer are skipped, so a second call demotes nobody.
    """
    led_here = set(
        TeamMember.objects.filter(
            team__event_id=event_id, role_in_team=TeamMember.ROLE_CAPTAIN
        ).values_list("user_id", flat=True)
    ) | set(
        Team.objects.filter(event_id=event_id, captain__isnull=False).values_list("captain_id", flat=True)
    )
    if not led_here:
        return 0

    still_leading = set(
        TeamMember.objects.filter(
            user_id__in=led_here,
            role_in_team=TeamMember.ROLE_CAPTAIN,
            status=TeamMember.STATUS_ACTIVE,
            team__status__in=Team.OPEN_STATUSES,
        )
        .exclude(team__event_id=event_id)
        .exclude(team__event__status__in=Event.TERMINAL_STATUSES)
        .values_list("user_id", flat=True)
    )

    candidates = list(
        User.objects.filter(
            pk__in=led_here - still_leading, role=User.ROLE_CAPTAIN
        ).values_list("pk", flat=True)
    )

    demoted = 0
    for user_id in candidates:
        demote_to_volunteer(user_id, actor=None)
        demoted += 1

    if demoted or still_leading:
        logger.info(
            f"Captains demoted after event finalize: event={event_id}, "
            f"demoted={demoted}, kept={sorted(still_leading)}"
        )
    return demoted


def check_captain_consistency(team: Team) -> Optional[ConsistencyWarning]:
    """
    Compare the team's captain pointer with its active captain rows.

    Never repairs anything; a mismatch is logged and returned for display.
    A finished or complete team may keep its pointer after members go
    inactive, so only open teams are checked for a dangling pointer.
    """
    member_captain_ids = list(
        TeamMember.objects.filter(
            team=team,
            role_in_team=TeamMember.ROLE_CAPTAIN,
            status=TeamMember.STATUS_ACTIVE,
        ).values_list("user_id", flat=True)
    )

    if member_captain_ids == [team.captain_id]:
        return None
    if not member_captain_ids and (
        team.captain_id is None or team.status not in Team.OPEN_STATUSES
    ):
        return None

    warning = ConsistencyWarning(team.id, team.captain_id, member_captain_ids)
    logger.warning(warning.message)
    return warning
