# events/tests/test_event_api.py
from datetime import timedelta

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from events import datetime_utils, membership, roles
from events.models import Event, Team, TeamMember
from .base import CrewTestMixin


class EventApiTestCase(CrewTestMixin, TestCase):
    def setUp(self):
        self.client = APIClient()
        self.make_users()
        self.event = self.make_event()

    def auth(self, user):
        self.client.force_authenticate(user=user)

    def test_unauthenticated_request_is_rejected(self):
        resp = self.client.get(reverse("event-list"))

        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(resp.json()["success"])

    def test_volunteer_cannot_create_event(self):
        self.auth(self.v1)
        resp = self.client.post(
            reverse("event-list"),
            {"title": "Dune restoration", "event_date": str(datetime_utils.today() + timedelta(days=10))},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        body = resp.json()
        self.assertEqual(body["code"], "unauthorized")
        self.assertEqual(body["status_code"], 403)

    def test_captain_creates_draft_event(self):
        self.auth(self.captain)
        resp = self.client.post(
            reverse("event-list"),
            {
                "title": "Dune restoration",
                "event_date": str(datetime_utils.today() + timedelta(days=10)),
                "max_volunteers": 12,
            },
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        data = resp.json()
        self.assertEqual(data["status"], Event.STATUS_DRAFT)
        self.assertEqual(data["created_by"], self.captain.id)
        self.assertEqual(data["allowed_transitions"], [Event.STATUS_PUBLISHED, Event.STATUS_CANCELLED])

    def test_end_before_start_is_rejected(self):
        self.auth(self.admin)
        resp = self.client.post(
            reverse("event-list"),
            {
                "title": "Night shift",
                "event_date": str(datetime_utils.today() + timedelta(days=10)),
                "start_time": "18:00",
                "end_time": "09:00",
            },
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.json()["code"], "validation_error")

    def test_volunteer_does_not_see_other_peoples_drafts(self):
        self.make_event(status=Event.STATUS_DRAFT, title="Secret plans")
        self.auth(self.v1)

        resp = self.client.get(reverse("event-list"))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        titles = [e["title"] for e in resp.json()["results"]]
        self.assertEqual(titles, ["Beach cleanup"])

    def test_missing_event_is_not_found(self):
        self.auth(self.v1)
        resp = self.client.get(reverse("event-detail", args=[999999]))

        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.json()["code"], "not_found")

    def test_reading_a_past_event_completes_it(self):
        past = self.make_event(days_ahead=-2, title="Last weekend")
        self.auth(self.v1)

        resp = self.client.get(reverse("event-detail", args=[past.id]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()["status"], Event.STATUS_COMPLETED)

    def test_listing_completes_only_past_events_on_the_page(self):
        older = self.make_event(days_ahead=-5, title="Two weekends ago")
        recent = self.make_event(days_ahead=-2, title="Last weekend")
        self.auth(self.admin)

        resp = self.client.get(reverse("event-list"), {"limit": 1})

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()["results"][0]["id"], older.id)
        self.assertEqual(resp.json()["results"][0]["status"], Event.STATUS_COMPLETED)
        recent.refresh_from_db()
        self.assertEqual(recent.status, Event.STATUS_PUBLISHED)

    def test_publish_through_status_endpoint(self):
        draft = self.make_event(status=Event.STATUS_DRAFT, title="Draft")
        self.auth(self.admin)

        resp = self.client.post(
            reverse("event-status", args=[draft.id]),
            {"status": Event.STATUS_PUBLISHED, "max_volunteers": 8},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()["status"], Event.STATUS_PUBLISHED)
        self.assertEqual(resp.json()["max_volunteers"], 8)

    def test_invalid_transition_returns_not_allowed(self):
        self.auth(self.admin)
        resp = self.client.post(
            reverse("event-status", args=[self.event.id]),
            {"status": Event.STATUS_DRAFT},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.json()["code"], "not_allowed")

    def test_register_and_occupancy(self):
        self.auth(self.v1)
        resp = self.client.post(reverse("event-register", args=[self.event.id]), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)

        resp = self.client.get(reverse("event-occupancy", args=[self.event.id]))
        self.assertEqual(resp.json()["occupancy"], 1)

    def test_registration_on_completed_event_is_finalized(self):
        Event.objects.filter(pk=self.event.pk).update(status=Event.STATUS_COMPLETED)
        self.auth(self.v1)

        resp = self.client.post(reverse("event-register", args=[self.event.id]), {}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.json()["code"], "event_finalized")


class TeamApiTestCase(CrewTestMixin, TestCase):
    def setUp(self):
        self.client = APIClient()
        self.make_users()
        self.event = self.make_event()
        self.team = self.make_team(self.event, max_volunteers=2)

    def auth(self, user):
        self.client.force_authenticate(user=user)

    def test_admin_creates_team_with_captain(self):
        self.auth(self.admin)
        resp = self.client.post(
            reverse("event-teams", args=[self.event.id]),
            {"name": "Team B", "max_volunteers": 4, "captain_id": self.captain.id},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        data = resp.json()
        self.assertEqual(data["captain"]["id"], self.captain.id)
        self.assertIsNone(data["consistency_warning"])

    def test_join_and_leave(self):
        self.auth(self.v1)
        resp = self.client.post(reverse("team-join", args=[self.team.id]), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.json()["user"]["id"], self.v1.id)

        resp = self.client.post(reverse("team-leave", args=[self.team.id]), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()["status"], TeamMember.STATUS_INACTIVE)

    def test_full_team_returns_capacity_exceeded(self):
        membership.join_team(self.team.id, self.v1.id)
        membership.join_team(self.team.id, self.v2.id)
        self.auth(self.v3)

        resp = self.client.post(reverse("team-join", args=[self.team.id]), {}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.json()["code"], "capacity_exceeded")

    def test_team_detail_hides_inactive_members_by_default(self):
        membership.join_team(self.team.id, self.v1.id)
        membership.join_team(self.team.id, self.v2.id)
        membership.leave_team(self.team.id, self.v2.id)
        self.auth(self.v1)

        resp = self.client.get(reverse("team-detail", args=[self.team.id]))
        self.assertEqual([m["user"]["id"] for m in resp.json()["members"]], [self.v1.id])

        resp = self.client.get(reverse("team-detail", args=[self.team.id]), {"include_inactive": "true"})
        self.assertEqual(len(resp.json()["members"]), 2)

    def test_team_detail_reports_captain_mismatch(self):
        Team.objects.filter(pk=self.team.pk).update(captain=self.captain)
        self.auth(self.admin)

        resp = self.client.get(reverse("team-detail", args=[self.team.id]))

        warning = resp.json()["consistency_warning"]
        self.assertEqual(warning["captain_id"], self.captain.id)
        self.assertEqual(warning["member_captain_ids"], [])

    def test_volunteer_cannot_set_captain(self):
        self.auth(self.v1)
        resp = self.client.post(
            reverse("team-set-captain", args=[self.team.id]),
            {"user_id": self.captain.id},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(resp.json()["code"], "unauthorized")

    def test_team_captain_removes_member(self):
        roles.set_team_captain(self.team.id, self.captain.id, self.admin)
        member = membership.join_team(self.team.id, self.v1.id)
        self.auth(self.captain)

        resp = self.client.delete(reverse("team-member-remove", args=[member.id]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()["status"], TeamMember.STATUS_REMOVED)

    def test_my_teams_lists_active_seats(self):
        membership.join_team(self.team.id, self.v1.id)
        self.auth(self.v1)

        resp = self.client.get(reverse("my-teams"))

        self.assertEqual([t["id"] for t in resp.json()], [self.team.id])

    def test_rejected_captain_leaves_team_unchanged(self):
        self.auth(self.admin)

        resp = self.client.patch(
            reverse("team-detail", args=[self.team.id]),
            {"name": "Renamed", "max_volunteers": 4, "captain_id": self.v1.id},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.json()["code"], "not_allowed")
        self.team.refresh_from_db()
        self.assertEqual(self.team.name, "Team A")
        self.assertEqual(self.team.max_volunteers, 2)

    def test_rename_and_assign_captain_together(self):
        self.auth(self.admin)

        resp = self.client.patch(
            reverse("team-detail", args=[self.team.id]),
            {"name": "Renamed", "captain_id": self.captain.id},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()["name"], "Renamed")
        self.assertEqual(resp.json()["captain"]["id"], self.captain.id)
