# events/policies.py
"""
Centralized crew policy layer.

This is the authorization filter in front of the entity store: every engine
operation that acts on behalf of a caller asks this module first, and a
refusal surfaces as `Unauthorized`, never as a business-rule error.

All checks return (allowed: bool, reason: str). `enforce()` turns a refusal
into an exception. An actor of None is the engine itself (cascades, the
auto-finalization path) and is always allowed.
"""
from typing import Tuple

from core.exceptions import Unauthorized
from .models import Event, Team, TeamMember


def enforce(check: Tuple[bool, str]):
    allowed, reason = check
    if not allowed:
        raise Unauthorized(reason)


def _is_authenticated(user) -> bool:
    return bool(user) and getattr(user, "is_authenticated", False) and user.is_active


class CrewPolicy:
    """
    Centralized permission checks for events, teams, roles and evaluations.
    """

    @staticmethod
    def is_admin(user) -> bool:
        """Check if user is a system-level admin."""
        if not _is_authenticated(user):
            return False
        return user.is_superuser or user.role == "admin"

    @staticmethod
    def is_event_owner(user, event: Event) -> bool:
        if not _is_authenticated(user) or event is None:
            return False
        return event.created_by_id == user.id

    @staticmethod
    def is_team_leader(user, team: Team) -> bool:
        """Captain of the team, by pointer or by active captain membership."""
        if not _is_authenticated(user) or team is None:
            return False
        if team.captain_id == user.id:
            return True
        return TeamMember.objects.filter(
            team=team,
            user=user,
            role_in_team=TeamMember.ROLE_CAPTAIN,
            status=TeamMember.STATUS_ACTIVE,
        ).exists()

    # ─────────────────────────────────────────────────────────────
    # Events
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_create_event(user) -> Tuple[bool, str]:
        if user is None:
            return True, ""
        if not _is_authenticated(user):
            return False, "Authentication required"
        if CrewPolicy.is_admin(user) or user.role == "captain":
            return True, ""
        return False, "Only admins and captains can create events"

    @staticmethod
    def can_edit_event(user, event: Event) -> Tuple[bool, str]:
        """Admins, or the captain who created the event."""
        if user is None:
            return True, ""
        if not _is_authenticated(user):
            return False, "Authentication required"
        if CrewPolicy.is_admin(user):
            return True, ""
        if user.role == "captain" and CrewPolicy.is_event_owner(user, event):
            return True, ""
        return False, "You do not have permission to edit this event"

    @staticmethod
    def can_delete_event(user, event: Event) -> Tuple[bool, str]:
        if user is None:
            return True, ""
        if CrewPolicy.is_admin(user):
            return True, ""
        return False, "Only admins can delete events"

    # ─────────────────────────────────────────────────────────────
    # Teams & membership
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_manage_team(user, team: Team) -> Tuple[bool, str]:
        """Admins, the team's captain, or the captain who owns the event."""
        if user is None:
            return True, ""
        if not _is_authenticated(user):
            return False, "Authentication required"
        if CrewPolicy.is_admin(user):
            return True, ""
        if user.role == "captain" and (
            CrewPolicy.is_team_leader(user, team)
            or CrewPolicy.is_event_owner(user, team.event)
        ):
            return True, ""
        return False, "You do not have permission to manage this team"

    @staticmethod
    def can_create_team(user, event: Event) -> Tuple[bool, str]:
        return CrewPolicy.can_edit_event(user, event)

    @staticmethod
    def can_change_seat(actor, team: Team, user_id) -> Tuple[bool, str]:
        """Join/leave: the person themselves, or whoever manages the team."""
        if actor is None:
            return True, ""
        if not _is_authenticated(actor):
            return False, "Authentication required"
        if actor.id == user_id:
            return True, ""
        return CrewPolicy.can_manage_team(actor, team)

    @staticmethod
    def can_register(actor, event: Event, user_id) -> Tuple[bool, str]:
        if actor is None:
            return True, ""
        if not _is_authenticated(actor):
            return False, "Authentication required"
        if actor.id == user_id or CrewPolicy.is_admin(actor):
            return True, ""
        return False, "You can only manage your own registration"

    # ─────────────────────────────────────────────────────────────
    # Roles
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_manage_roles(user) -> Tuple[bool, str]:
        if user is None:
            return True, ""
        if CrewPolicy.is_admin(user):
            return True, ""
        return False, "Only admins can change user roles"

    @staticmethod
    def can_assign_captain(user, team: Team) -> Tuple[bool, str]:
        """Admins, or the captain who owns the event the team belongs to."""
        if user is None:
            return True, ""
        if CrewPolicy.is_admin(user):
            return True, ""
        if _is_authenticated(user) and user.role == "captain" and CrewPolicy.is_event_owner(user, team.event):
            return True, ""
        return False, "You do not have permission to assign this team's captain"

    # ─────────────────────────────────────────────────────────────
    # Evaluations
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_submit_evaluation(actor, rater_id) -> Tuple[bool, str]:
        if actor is None:
            return True, ""
        if not _is_authenticated(actor):
            return False, "Authentication required"
        if actor.id == rater_id:
            return True, ""
        return False, "You can only submit evaluations as yourself"

    @staticmethod
    def can_view_stats(actor, subject_id) -> Tuple[bool, str]:
        if actor is None:
            return True, ""
        if not _is_authenticated(actor):
            return False, "Authentication required"
        if actor.id == subject_id or CrewPolicy.is_admin(actor):
            return True, ""
        return False, "You can only view your own evaluation statistics"
