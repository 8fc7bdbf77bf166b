# evaluations/tests/test_evaluation_api.py
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from evaluations.normalize import KIND_VOLUNTEER
from .base import EvaluationFixtureMixin, volunteer_ratings


class EvaluationApiTestCase(EvaluationFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def auth(self, user):
        self.client.force_authenticate(user=user)

    def payload(self, subject, **overrides):
        return {
            "kind": KIND_VOLUNTEER,
            "subject_id": subject.id,
            "event_id": self.event.id,
            "team_id": self.team.id,
            "ratings": volunteer_ratings(**overrides),
        }

    def test_submit_then_duplicate(self):
        self.auth(self.captain)

        resp = self.client.post(reverse("evaluation-submit"), self.payload(self.v1), format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.json()["rater_id"], self.captain.id)

        resp = self.client.post(reverse("evaluation-submit"), self.payload(self.v1), format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.json()["code"], "duplicate_evaluation")

    def test_invalid_rating_is_a_validation_error(self):
        self.auth(self.captain)

        resp = self.client.post(
            reverse("evaluation-submit"), self.payload(self.v1, rating=9), format="json"
        )

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        body = resp.json()
        self.assertEqual(body["code"], "validation_error")
        self.assertIn("rating", body["errors"])

    def test_ineligible_rater(self):
        self.auth(self.v2)

        resp = self.client.post(reverse("evaluation-submit"), self.payload(self.v1), format="json")

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(resp.json()["code"], "not_eligible")

    def test_my_stats(self):
        self.auth(self.captain)
        self.client.post(reverse("evaluation-submit"), self.payload(self.v1), format="json")

        self.auth(self.v1)
        resp = self.client.get(reverse("evaluation-stats-me"))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        data = resp.json()
        self.assertEqual(data["subject_id"], self.v1.id)
        self.assertEqual(data["total_evaluations"], 1)
        self.assertEqual(data["by_kind"][KIND_VOLUNTEER]["avg_overall_rating"], 4.0)

    def test_stats_of_other_users_are_admin_only(self):
        self.auth(self.v2)
        resp = self.client.get(reverse("evaluation-stats", args=[self.v1.id]))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.auth(self.admin)
        resp = self.client.get(reverse("evaluation-stats", args=[self.v1.id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

    def test_received_filtered_by_kind(self):
        self.auth(self.captain)
        self.client.post(reverse("evaluation-submit"), self.payload(self.v1), format="json")

        self.auth(self.v1)
        resp = self.client.get(reverse("evaluation-received-me"), {"kind": KIND_VOLUNTEER})

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(len(resp.json()), 1)
        self.assertEqual(resp.json()[0]["kind"], KIND_VOLUNTEER)

    def test_unknown_kind_filter(self):
        self.auth(self.v1)

        resp = self.client.get(reverse("evaluation-received-me"), {"kind": "peer"})

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
