# evaluations/models.py
from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

RATING_VALIDATORS = [MinValueValidator(1), MaxValueValidator(5)]


def rating_field():
    return models.PositiveSmallIntegerField(validators=RATING_VALIDATORS)


class VolunteerEvaluation(models.Model):
    """A captain's evaluation of a volunteer who served in their team."""

    volunteer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="volunteer_evaluations_received",
    )
    captain = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="volunteer_evaluations_given",
    )
    event = models.ForeignKey("events.Event", on_delete=models.PROTECT, related_name="volunteer_evaluations")
    team = models.ForeignKey("events.Team", on_delete=models.PROTECT, related_name="volunteer_evaluations")

    # Overall score
    rating = rating_field()
    punctuality = rating_field()
    teamwork = rating_field()
    communication = rating_field()
    initiative = rating_field()
    quality_of_work = rating_field()
    reliability = rating_field()

    positive_aspects = models.TextField(blank=True)
    improvement_suggestions = models.TextField(blank=True)
    comments = models.TextField(blank=True)
    skills_demonstrated = models.JSONField(default=list, blank=True)

    would_work_again = models.BooleanField(default=False)
    recommend_for_future = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["volunteer", "captain", "event"],
                name="volunteer_eval_once_per_event",
            ),
        ]
        indexes = [
            models.Index(fields=["volunteer"], name="volunteer_eval_subject_idx"),
        ]

    def __str__(self):
        return f"{self.captain} → {self.volunteer} ({self.event})"


class CaptainEvaluation(models.Model):
    """An admin's evaluation of a captain's work on an event."""

    captain = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="captain_evaluations_received",
    )
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="captain_evaluations_given",
    )
    event = models.ForeignKey("events.Event", on_delete=models.PROTECT, related_name="captain_evaluations")
    team = models.ForeignKey("events.Team", on_delete=models.PROTECT, related_name="captain_evaluations")

    leadership = rating_field()
    team_management = rating_field()
    communication = rating_field()
    overall_rating = rating_field()

    comments = models.TextField(blank=True)
    strengths = models.TextField(blank=True)
    areas_for_improvement = models.TextField(blank=True)

    promotion_ready = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["captain", "admin", "event"],
                name="captain_eval_once_per_event",
            ),
        ]
        indexes = [
            models.Index(fields=["captain"], name="captain_eval_subject_idx"),
        ]

    def __str__(self):
        return f"{self.admin} → {self.captain} ({self.event})"


class CaptainFeedback(models.Model):
    """A volunteer's evaluation of the captain who led their team."""

    captain = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="captain_feedback_received",
    )
    volunteer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="captain_feedback_given",
    )
    event = models.ForeignKey("events.Event", on_delete=models.PROTECT, related_name="captain_feedback")
    team = models.ForeignKey("events.Team", on_delete=models.PROTECT, related_name="captain_feedback")

    leadership = rating_field()
    communication = rating_field()
    support = rating_field()
    organization = rating_field()
    motivation = rating_field()
    problem_solving = rating_field()
    overall_rating = rating_field()

    positive_aspects = models.TextField(blank=True)
    improvement_suggestions = models.TextField(blank=True)
    comments = models.TextField(blank=True)

    felt_supported = models.BooleanField(default=False)
    clear_instructions = models.BooleanField(default=False)
    would_work_again = models.BooleanField(default=False)
    recommend_captain = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["captain", "volunteer", "event"],
                name="captain_feedback_once_per_event",
            ),
        ]
        indexes = [
            models.Index(fields=["captain"], name="captain_feedback_subject_idx"),
        ]

    def __str__(self):
        return f"{self.volunteer} → {self.captain} ({self.event})"
