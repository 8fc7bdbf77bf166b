# evaluations/tests/base.py
from datetime import timedelta

from evaluations import aggregator
from evaluations.normalize import KIND_VOLUNTEER
from events import datetime_utils
from events.models import Event, Team, TeamMember
from users.models import User


def volunteer_ratings(**overrides):
    ratings = {
        "rating": 4,
        "punctuality": 4,
        "teamwork": 5,
        "communication": 3,
        "initiative": 4,
        "quality_of_work": 4,
        "reliability": 5,
        "would_work_again": True,
        "skills_demonstrated": ["first aid"],
    }
    ratings.update(overrides)
    return ratings


def captain_feedback_ratings(**overrides):
    ratings = {
        "overall_rating": 5,
        "leadership": 5,
        "communication": 4,
        "support": 5,
        "organization": 4,
        "motivation": 5,
        "problem_solving": 4,
        "felt_supported": True,
    }
    ratings.update(overrides)
    return ratings


def captain_eval_ratings(**overrides):
    ratings = {
        "overall_rating": 4,
        "leadership": 4,
        "team_management": 3,
        "communication": 5,
        "promotion_ready": False,
    }
    ratings.update(overrides)
    return ratings


class EvaluationFixtureMixin:
    """A completed event whose team was led by `captain` with `v1` and `v2` serving."""

    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="pass", role=User.ROLE_ADMIN)
        self.captain = User.objects.create_user(username="cap", password="pass", role=User.ROLE_CAPTAIN)
        self.v1 = User.objects.create_user(username="v1", password="pass")
        self.v2 = User.objects.create_user(username="v2", password="pass")
        self.outsider = User.objects.create_user(username="outsider", password="pass")

        self.event = Event.objects.create(
            title="River cleanup",
            event_date=datetime_utils.today() - timedelta(days=1),
            status=Event.STATUS_COMPLETED,
            created_by=self.admin,
        )
        self.team = Team.objects.create(
            event=self.event,
            name="Team A",
            captain=self.captain,
            status=Team.STATUS_FINISHED,
            created_by=self.admin,
        )
        now = datetime_utils.now()
        for user, role in (
            (self.captain, TeamMember.ROLE_CAPTAIN),
            (self.v1, TeamMember.ROLE_VOLUNTEER),
            (self.v2, TeamMember.ROLE_VOLUNTEER),
        ):
            TeamMember.objects.create(
                team=self.team,
                user=user,
                role_in_team=role,
                status=TeamMember.STATUS_INACTIVE,
                joined_at=now,
                left_at=now,
            )

    def submit_volunteer_eval(self, volunteer, **overrides):
        return aggregator.submit(
            KIND_VOLUNTEER,
            volunteer.id,
            self.captain.id,
            self.event.id,
            self.team.id,
            volunteer_ratings(**overrides),
        )
