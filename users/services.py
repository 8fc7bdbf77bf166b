# users/services.py
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.shortcuts import get_object_or_404

from core.exceptions import NotAllowed
from events import datetime_utils
from events.models import EventRegistration, Team, TeamMember
from events.policies import CrewPolicy, enforce

logger = logging.getLogger("crew.users")

User = get_user_model()


def deactivate_user(user_id, actor):
    """
    Soft-delete a user account.

    Open registrations are cancelled and active seats are marked removed in
    the same transaction that deactivates the account, so the person stops
    counting toward any event's occupancy. Captain seats are turned into
    volunteer rows and the team's captain pointer is cleared. The email is
    replaced with a tombstone address so it can be registered again.
    """
    enforce(CrewPolicy.can_manage_roles(actor))
    if actor is not None and actor.id == user_id:
        raise NotAllowed("You cannot deactivate your own account")

    with transaction.atomic():
        user = get_object_or_404(User.objects.select_for_update(), pk=user_id)
        if not user.is_active:
            return user

        now = datetime_utils.now()

        cancelled = EventRegistration.objects.filter(
            user=user, status__in=EventRegistration.OCCUPYING_STATUSES
        ).update(status=EventRegistration.STATUS_CANCELLED, updated_at=now)

        active_seats = TeamMember.objects.filter(user=user, status=TeamMember.STATUS_ACTIVE)
        led_team_ids = list(
            active_seats.filter(role_in_team=TeamMember.ROLE_CAPTAIN).values_list("team_id", flat=True)
        )
        removed = active_seats.update(
            status=TeamMember.STATUS_REMOVED,
            role_in_team=TeamMember.ROLE_VOLUNTEER,
            left_at=now,
        )
        if led_team_ids:
            Team.objects.filter(pk__in=led_team_ids, captain=user).update(captain=None, updated_at=now)

        user.is_active = False
        user.deactivated_at = now
        user.email = user.tombstone_email()
        user.save(update_fields=["is_active", "deactivated_at", "email"])

        logger.info(
            f"User deactivated: user={user.id}, registrations_cancelled={cancelled}, "
            f"seats_removed={removed}, teams_left_without_captain={led_team_ids}, "
            f"actor={getattr(actor, 'id', 'system')}"
        )

    return user
