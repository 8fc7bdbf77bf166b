# events/tests/test_membership.py
from django.test import TestCase

from core.exceptions import (
    CapacityExceeded,
    EventFinalized,
    NotAllowed,
    Unauthorized,
    ValidationError,
)
from events import membership, roles
from events.models import Event, EventRegistration, Team, TeamMember
from notifications.models import Notification
from users.models import User
from .base import CrewTestMixin


class OccupancyTest(CrewTestMixin, TestCase):
    def setUp(self):
        self.make_users()
        self.event = self.make_event(max_volunteers=2)
        self.team = self.make_team(self.event)

    def test_registered_and_seated_person_counts_once(self):
        membership.register(self.event.id, self.v1.id)
        membership.join_team(self.team.id, self.v1.id)

        self.assertEqual(membership.occupancy(self.event.id), 1)

    def test_event_limit_rejects_third_person(self):
        reg = membership.register(self.event.id, self.v1.id)
        membership.confirm_registration(reg.id, self.admin)
        membership.join_team(self.team.id, self.v1.id)
        self.assertEqual(membership.occupancy(self.event.id), 1)

        membership.join_team(self.team.id, self.v2.id)
        self.assertEqual(membership.occupancy(self.event.id), 2)

        with self.assertRaises(CapacityExceeded):
            membership.register(self.event.id, self.v3.id)
        with self.assertRaises(CapacityExceeded):
            membership.join_team(self.team.id, self.v3.id)

        self.assertEqual(membership.occupancy(self.event.id), 2)

    def test_already_counted_person_can_take_a_seat_when_event_is_full(self):
        membership.register(self.event.id, self.v1.id)
        membership.register(self.event.id, self.v2.id)

        member = membership.join_team(self.team.id, self.v1.id)

        self.assertEqual(member.status, TeamMember.STATUS_ACTIVE)
        self.assertEqual(membership.occupancy(self.event.id), 2)

    def test_zero_limit_means_unlimited(self):
        Event.objects.filter(pk=self.event.pk).update(max_volunteers=0)
        for user in (self.v1, self.v2, self.v3):
            membership.register(self.event.id, user.id)

        self.assertEqual(membership.occupancy(self.event.id), 3)

    def test_cancelled_registration_frees_the_seat(self):
        membership.register(self.event.id, self.v1.id)
        membership.register(self.event.id, self.v2.id)
        membership.cancel_registration(self.event.id, self.v2.id)

        membership.register(self.event.id, self.v3.id)

        self.assertEqual(membership.occupant_ids(self.event.id), {self.v1.id, self.v3.id})


class TeamSeatTest(CrewTestMixin, TestCase):
    def setUp(self):
        self.make_users()
        self.event = self.make_event()
        self.team = self.make_team(self.event)

    def test_join_twice_returns_existing_row(self):
        first = membership.join_team(self.team.id, self.v1.id)
        second = membership.join_team(self.team.id, self.v1.id)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(TeamMember.objects.filter(team=self.team, user=self.v1).count(), 1)

    def test_rejoin_reactivates_the_same_row(self):
        first = membership.join_team(self.team.id, self.v1.id)
        left = membership.leave_team(self.team.id, self.v1.id)
        self.assertEqual(left.status, TeamMember.STATUS_INACTIVE)
        self.assertIsNotNone(left.left_at)

        again = membership.join_team(self.team.id, self.v1.id)

        self.assertEqual(again.pk, first.pk)
        self.assertEqual(again.status, TeamMember.STATUS_ACTIVE)
        self.assertIsNone(again.left_at)
        self.assertEqual(TeamMember.objects.filter(team=self.team, user=self.v1).count(), 1)

    def test_one_active_seat_per_event(self):
        other = self.make_team(self.event, name="Team B")
        membership.join_team(self.team.id, self.v1.id)

        with self.assertRaises(NotAllowed):
            membership.join_team(other.id, self.v1.id)

    def test_seats_in_different_events_are_independent(self):
        other_event = self.make_event(days_ahead=14, title="Park planting")
        other_team = self.make_team(other_event)

        membership.join_team(self.team.id, self.v1.id)
        member = membership.join_team(other_team.id, self.v1.id)

        self.assertEqual(member.status, TeamMember.STATUS_ACTIVE)

    def test_team_limit_counts_the_captain(self):
        Team.objects.filter(pk=self.team.pk).update(max_volunteers=1)
        roles.set_team_captain(self.team.id, self.captain.id, self.admin)

        with self.assertRaises(CapacityExceeded):
            membership.join_team(self.team.id, self.v1.id)

    def test_captain_cannot_leave(self):
        roles.set_team_captain(self.team.id, self.captain.id, self.admin)

        with self.assertRaises(NotAllowed):
            membership.leave_team(self.team.id, self.captain.id)

    def test_leave_without_membership_is_rejected(self):
        with self.assertRaises(NotAllowed):
            membership.leave_team(self.team.id, self.v1.id)

    def test_remove_member_frees_the_seat(self):
        member = membership.join_team(self.team.id, self.v1.id)

        removed = membership.remove_member(member.id, self.admin)

        self.assertEqual(removed.status, TeamMember.STATUS_REMOVED)
        self.assertEqual(membership.occupancy(self.event.id), 0)

    def test_captain_row_cannot_be_removed(self):
        captain_row = roles.set_team_captain(self.team.id, self.captain.id, self.admin)

        with self.assertRaises(NotAllowed):
            membership.remove_member(captain_row.id, self.admin)

    def test_volunteer_cannot_seat_someone_else(self):
        with self.assertRaises(Unauthorized):
            membership.join_team(self.team.id, self.v2.id, actor=self.v1)

    def test_volunteer_can_seat_themselves(self):
        member = membership.join_team(self.team.id, self.v1.id, actor=self.v1)
        self.assertEqual(member.user_id, self.v1.id)

    def test_deactivated_user_cannot_join(self):
        User.objects.filter(pk=self.v1.pk).update(is_active=False)

        with self.assertRaises(NotAllowed):
            membership.join_team(self.team.id, self.v1.id)

    def test_completed_event_is_read_only(self):
        member = membership.join_team(self.team.id, self.v1.id)
        Event.objects.filter(pk=self.event.pk).update(status=Event.STATUS_COMPLETED)

        with self.assertRaises(EventFinalized):
            membership.join_team(self.team.id, self.v2.id)
        with self.assertRaises(EventFinalized):
            membership.leave_team(self.team.id, self.v1.id)
        with self.assertRaises(EventFinalized):
            membership.remove_member(member.id, self.admin)

    def test_cancelled_event_rejects_new_seats(self):
        Event.objects.filter(pk=self.event.pk).update(status=Event.STATUS_CANCELLED)

        with self.assertRaises(NotAllowed):
            membership.join_team(self.team.id, self.v1.id)

    def test_join_notifies_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            membership.join_team(self.team.id, self.v1.id)

        notification = Notification.objects.get(user=self.v1)
        self.assertEqual(notification.type, Notification.TYPE_SUCCESS)
        self.assertEqual(notification.related_team_id, self.team.id)


class RegistrationTest(CrewTestMixin, TestCase):
    def setUp(self):
        self.make_users()
        self.event = self.make_event()

    def test_register_twice_returns_existing_row(self):
        first = membership.register(self.event.id, self.v1.id)
        second = membership.register(self.event.id, self.v1.id)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(EventRegistration.objects.filter(event=self.event).count(), 1)

    def test_cancelled_registration_is_reopened(self):
        first = membership.register(self.event.id, self.v1.id)
        membership.cancel_registration(self.event.id, self.v1.id)

        again = membership.register(self.event.id, self.v1.id)

        self.assertEqual(again.pk, first.pk)
        self.assertEqual(again.status, EventRegistration.STATUS_PENDING)

    def test_draft_event_is_not_open_for_registration(self):
        Event.objects.filter(pk=self.event.pk).update(status=Event.STATUS_DRAFT)

        with self.assertRaises(NotAllowed):
            membership.register(self.event.id, self.v1.id)

    def test_volunteer_cannot_register_someone_else(self):
        with self.assertRaises(Unauthorized):
            membership.register(self.event.id, self.v2.id, actor=self.v1)

    def test_confirm_registration(self):
        reg = membership.register(self.event.id, self.v1.id)

        confirmed = membership.confirm_registration(reg.id, self.admin)

        self.assertEqual(confirmed.status, EventRegistration.STATUS_CONFIRMED)

    def test_cancelled_registration_cannot_be_confirmed(self):
        reg = membership.register(self.event.id, self.v1.id)
        membership.cancel_registration(self.event.id, self.v1.id)

        with self.assertRaises(NotAllowed):
            membership.confirm_registration(reg.id, self.admin)


class TeamManagementTest(CrewTestMixin, TestCase):
    def setUp(self):
        self.make_users()
        self.event = self.make_event()

    def test_create_team_with_captain(self):
        team = membership.create_team(self.event.id, self.admin, "Team A", 4, captain_id=self.captain.id)

        self.assertEqual(team.captain_id, self.captain.id)
        self.assertTrue(
            TeamMember.objects.get(team=team, user=self.captain).is_active_captain
        )

    def test_team_names_are_unique_per_event(self):
        membership.create_team(self.event.id, self.admin, "Team A", 4)

        with self.assertRaises(ValidationError):
            membership.create_team(self.event.id, self.admin, "team a", 4)

    def test_volunteer_cannot_create_team(self):
        with self.assertRaises(Unauthorized):
            membership.create_team(self.event.id, self.v1, "Team A", 4)

    def test_limit_cannot_drop_below_active_members(self):
        team = membership.create_team(self.event.id, self.admin, "Team A", 4)
        membership.join_team(team.id, self.v1.id)
        membership.join_team(team.id, self.v2.id)

        with self.assertRaises(ValidationError):
            membership.update_team(team.id, self.admin, max_volunteers=1)

        updated = membership.update_team(team.id, self.admin, max_volunteers=2, name="Renamed")
        self.assertEqual(updated.max_volunteers, 2)
        self.assertEqual(updated.name, "Renamed")

    def test_finished_status_cannot_be_set_by_hand(self):
        team = membership.create_team(self.event.id, self.admin, "Team A", 4)

        with self.assertRaises(ValidationError):
            membership.update_team(team.id, self.admin, status=Team.STATUS_FINISHED)

    def test_delete_team_frees_its_seats(self):
        team = membership.create_team(self.event.id, self.admin, "Team A", 4)
        membership.join_team(team.id, self.v1.id)

        membership.delete_team(team.id, self.admin)

        self.assertFalse(Team.objects.filter(pk=team.pk).exists())
        self.assertEqual(membership.occupancy(self.event.id), 0)

    def test_update_with_rejected_captain_rolls_back(self):
        team = membership.create_team(self.event.id, self.admin, "Team A", 4)

        with self.assertRaises(NotAllowed):
            membership.update_team(team.id, self.admin, captain_id=self.v1.id, name="Renamed")

        team.refresh_from_db()
        self.assertEqual(team.name, "Team A")
        self.assertIsNone(team.captain_id)
