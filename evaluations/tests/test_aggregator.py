# evaluations/tests/test_aggregator.py
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from core.exceptions import DuplicateEvaluation, NotEligible, Unauthorized, ValidationError
from evaluations import aggregator
from evaluations.models import CaptainFeedback, VolunteerEvaluation
from evaluations.normalize import (
    KIND_CAPTAIN_BY_ADMIN,
    KIND_CAPTAIN_BY_VOLUNTEER,
    KIND_VOLUNTEER,
    KINDS,
    clean_ratings,
)
from events.models import Event, TeamMember
from notifications.models import Notification
from users.models import User
from .base import (
    EvaluationFixtureMixin,
    captain_eval_ratings,
    captain_feedback_ratings,
    volunteer_ratings,
)


class SubmitTest(EvaluationFixtureMixin, TestCase):
    def test_captain_evaluates_volunteer(self):
        evaluation = self.submit_volunteer_eval(self.v1)

        self.assertEqual(evaluation.kind, KIND_VOLUNTEER)
        self.assertEqual(evaluation.subject_id, self.v1.id)
        self.assertEqual(evaluation.rater_id, self.captain.id)
        self.assertEqual(evaluation.overall, 4)
        self.assertEqual(evaluation.sub_ratings["teamwork"], 5)
        self.assertTrue(evaluation.flags["would_work_again"])
        self.assertFalse(evaluation.flags["recommend_for_future"])
        self.assertEqual(evaluation.texts["skills_demonstrated"], ["first aid"])

    def test_second_submission_is_rejected(self):
        self.submit_volunteer_eval(self.v1)
        self.assertEqual(aggregator.stats_for(self.v1.id)["total_evaluations"], 1)

        with self.assertRaises(DuplicateEvaluation):
            self.submit_volunteer_eval(self.v1, rating=2)

        self.assertEqual(VolunteerEvaluation.objects.filter(volunteer=self.v1).count(), 1)
        self.assertEqual(VolunteerEvaluation.objects.get(volunteer=self.v1).rating, 4)
        self.assertEqual(aggregator.stats_for(self.v1.id)["total_evaluations"], 1)

    def test_volunteer_rates_captain(self):
        evaluation = aggregator.submit(
            KIND_CAPTAIN_BY_VOLUNTEER,
            self.captain.id,
            self.v1.id,
            self.event.id,
            self.team.id,
            captain_feedback_ratings(),
            actor=self.v1,
        )

        self.assertEqual(evaluation.subject_id, self.captain.id)
        self.assertEqual(CaptainFeedback.objects.count(), 1)

    def test_outsider_cannot_rate_captain(self):
        with self.assertRaises(NotEligible):
            aggregator.submit(
                KIND_CAPTAIN_BY_VOLUNTEER,
                self.captain.id,
                self.outsider.id,
                self.event.id,
                self.team.id,
                captain_feedback_ratings(),
            )

    def test_only_admins_submit_captain_evaluations(self):
        with self.assertRaises(NotEligible):
            aggregator.submit(
                KIND_CAPTAIN_BY_ADMIN,
                self.captain.id,
                self.v1.id,
                self.event.id,
                self.team.id,
                captain_eval_ratings(),
            )

        evaluation = aggregator.submit(
            KIND_CAPTAIN_BY_ADMIN,
            self.captain.id,
            self.admin.id,
            self.event.id,
            self.team.id,
            captain_eval_ratings(),
            actor=self.admin,
        )
        self.assertEqual(evaluation.overall, 4)

    def test_volunteer_cannot_rate_another_volunteer(self):
        with self.assertRaises(NotEligible):
            aggregator.submit(
                KIND_VOLUNTEER,
                self.v2.id,
                self.v1.id,
                self.event.id,
                self.team.id,
                volunteer_ratings(),
            )

    def test_removed_member_is_not_eligible(self):
        TeamMember.objects.filter(team=self.team, user=self.v1).update(status=TeamMember.STATUS_REMOVED)

        with self.assertRaises(NotEligible):
            self.submit_volunteer_eval(self.v1)

    def test_self_evaluation_is_rejected(self):
        with self.assertRaises(NotEligible):
            aggregator.submit(
                KIND_VOLUNTEER,
                self.captain.id,
                self.captain.id,
                self.event.id,
                self.team.id,
                volunteer_ratings(),
            )

    def test_event_must_be_completed(self):
        Event.objects.filter(pk=self.event.pk).update(status=Event.STATUS_IN_PROGRESS)

        with self.assertRaises(NotEligible):
            self.submit_volunteer_eval(self.v1)

    def test_rater_must_be_the_caller(self):
        with self.assertRaises(Unauthorized):
            aggregator.submit(
                KIND_VOLUNTEER,
                self.v1.id,
                self.captain.id,
                self.event.id,
                self.team.id,
                volunteer_ratings(),
                actor=self.v2,
            )

    def test_subject_is_notified_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.submit_volunteer_eval(self.v1)

        notification = Notification.objects.get(user=self.v1)
        self.assertEqual(notification.type, Notification.TYPE_EVALUATION)
        self.assertEqual(notification.related_user_id, self.captain.id)


class CleanRatingsTest(TestCase):
    def setUp(self):
        self.layout = KINDS[KIND_VOLUNTEER]

    def assertRejected(self, ratings, field):
        with self.assertRaises(ValidationError) as ctx:
            clean_ratings(self.layout, ratings)
        self.assertIn(field, ctx.exception.detail)

    def test_missing_rating(self):
        ratings = volunteer_ratings()
        del ratings["teamwork"]
        self.assertRejected(ratings, "teamwork")

    def test_out_of_range(self):
        self.assertRejected(volunteer_ratings(rating=6), "rating")
        self.assertRejected(volunteer_ratings(rating=0), "rating")

    def test_booleans_are_not_ratings(self):
        self.assertRejected(volunteer_ratings(rating=True), "rating")

    def test_unknown_field(self):
        self.assertRejected(volunteer_ratings(leadership=5), "leadership")

    def test_flags_default_to_false(self):
        values = clean_ratings(self.layout, volunteer_ratings())

        self.assertFalse(values["recommend_for_future"])
        self.assertEqual(values["comments"], "")


class StatsTest(EvaluationFixtureMixin, TestCase):
    def add_volunteer_row(self, captain, event, team, **overrides):
        values = volunteer_ratings(**overrides)
        values.pop("skills_demonstrated")
        return VolunteerEvaluation.objects.create(
            volunteer=self.v1, captain=captain, event=event, team=team, **values
        )

    def setUp(self):
        super().setUp()
        self.other_captain = User.objects.create_user(
            username="cap2", password="pass", role=User.ROLE_CAPTAIN
        )
        self.third_captain = User.objects.create_user(
            username="cap3", password="pass", role=User.ROLE_CAPTAIN
        )
        self.add_volunteer_row(self.captain, self.event, self.team, rating=5, punctuality=3)
        self.add_volunteer_row(
            self.other_captain, self.event, self.team,
            rating=4, punctuality=4, would_work_again=False,
        )
        self.add_volunteer_row(
            self.third_captain, self.event, self.team,
            rating=4, punctuality=4, would_work_again=False,
        )

    def test_stats_per_kind(self):
        stats = aggregator.stats_for(self.v1.id)

        self.assertEqual(stats["total_evaluations"], 3)
        self.assertEqual(stats["avg_overall_rating"], 4.33)

        volunteer = stats["by_kind"][KIND_VOLUNTEER]
        self.assertEqual(volunteer["total_evaluations"], 3)
        self.assertEqual(volunteer["averages"]["punctuality"], 3.67)
        self.assertEqual(volunteer["flags"]["would_work_again"], {"count": 1, "percentage": 33})
        self.assertEqual(volunteer["flags"]["recommend_for_future"], {"count": 0, "percentage": 0})

    def test_kinds_without_evaluations_are_empty(self):
        stats = aggregator.stats_for(self.v1.id)

        feedback = stats["by_kind"][KIND_CAPTAIN_BY_VOLUNTEER]
        self.assertEqual(feedback["total_evaluations"], 0)
        self.assertIsNone(feedback["avg_overall_rating"])
        self.assertIsNone(feedback["averages"]["leadership"])
        self.assertEqual(feedback["flags"]["felt_supported"], {"count": 0, "percentage": 0})

    def test_user_without_evaluations(self):
        stats = aggregator.stats_for(self.outsider.id)

        self.assertEqual(stats["total_evaluations"], 0)
        self.assertIsNone(stats["avg_overall_rating"])

    def test_row_by_row_fallback_matches_aggregate_query(self):
        expected = aggregator.stats_for(self.v1.id)

        with mock.patch(
            "evaluations.aggregator._aggregate_in_db",
            side_effect=DatabaseError("aggregate failed"),
        ):
            with self.assertLogs("crew.evaluations", level="WARNING"):
                fallback = aggregator.stats_for(self.v1.id)

        self.assertEqual(fallback, expected)

    def test_volunteer_cannot_read_someone_elses_stats(self):
        with self.assertRaises(Unauthorized):
            aggregator.stats_for(self.v1.id, actor=self.v2)

        self.assertEqual(aggregator.stats_for(self.v1.id, actor=self.admin)["total_evaluations"], 3)

    def test_received_lists_newest_first(self):
        received = aggregator.received(self.v1.id, actor=self.v1)

        self.assertEqual(len(received), 3)
        self.assertEqual(
            [ev.rater_id for ev in received],
            [self.third_captain.id, self.other_captain.id, self.captain.id],
        )
