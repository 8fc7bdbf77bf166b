# events/models.py
from django.db import models
from django.db.models import Q
from django.conf import settings


class Event(models.Model):
    STATUS_DRAFT = "draft"
    STATUS_PUBLISHED = "published"
    STATUS_IN_PROGRESS = "in_progress"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_PUBLISHED, "Published"),
        (STATUS_IN_PROGRESS, "In progress"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    location = models.CharField(max_length=255, blank=True)
    category = models.CharField(max_length=64, blank=True)
    requirements = models.TextField(blank=True)
    image_url = models.CharField(max_length=1024, blank=True, null=True)

    event_date = models.DateField()
    start_time = models.TimeField(null=True, blank=True)
    end_time = models.TimeField(null=True, blank=True)

    # 0 means "no event-wide limit"; teams still enforce their own
    max_volunteers = models.PositiveIntegerField(default=0)

    status = models.CharField(
        max_length=32,
        choices=STATUS_CHOICES,
        default=STATUS_DRAFT,
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_events",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status", "event_date"], name="event_status_date_idx"),
            models.Index(fields=["event_date"], name="event_date_idx"),
        ]

    def __str__(self):
        return self.title

    @property
    def is_completed(self):
        return self.status == self.STATUS_COMPLETED

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES


class EventRegistration(models.Model):
    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_CANCELLED = "cancelled"
    STATUS_TRANSFERRED = "transferred"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_TRANSFERRED, "Transferred"),
    ]

    # Registrations in these states hold a seat at the event
    OCCUPYING_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="registrations")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="event_registrations",
    )
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=STATUS_PENDING)
    notes = models.TextField(blank=True)
    terms_accepted = models.BooleanField(default=False)
    terms_accepted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("event", "user")
        indexes = [
            models.Index(fields=["event", "status"], name="reg_event_status_idx"),
        ]

    def __str__(self):
        return f"{self.user} @ {self.event} ({self.status})"


class Team(models.Model):
    STATUS_FORMING = "forming"
    STATUS_ACTIVE = "active"
    STATUS_COMPLETE = "complete"
    STATUS_FINISHED = "finished"

    STATUS_CHOICES = [
        (STATUS_FORMING, "Forming"),
        (STATUS_ACTIVE, "Active"),
        (STATUS_COMPLETE, "Complete"),
        (STATUS_FINISHED, "Finished"),
    ]

    # A captain of a team in one of these states is still leading someone
    OPEN_STATUSES = (STATUS_FORMING, STATUS_ACTIVE)

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="teams")
    name = models.CharField(max_length=100)

    # Denormalized pointer; the authoritative record is the active captain TeamMember
    captain = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="captained_teams",
    )
    max_volunteers = models.PositiveIntegerField(default=5)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_FORMING)
    arrival_time = models.TimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_teams",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("event", "name")
        indexes = [
            models.Index(fields=["event", "status"], name="team_event_status_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.event})"

    @property
    def active_member_count(self):
        return self.members.filter(status=TeamMember.STATUS_ACTIVE).count()


class TeamMember(models.Model):
    ROLE_CAPTAIN = "captain"
    ROLE_VOLUNTEER = "volunteer"

    ROLE_CHOICES = [
        (ROLE_CAPTAIN, "Captain"),
        (ROLE_VOLUNTEER, "Volunteer"),
    ]

    STATUS_ACTIVE = "active"
    STATUS_INACTIVE = "inactive"
    STATUS_REMOVED = "removed"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_INACTIVE, "Inactive"),
        (STATUS_REMOVED, "Removed"),
    ]

    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="members")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="team_memberships",
    )
    # No default: callers always state the role explicitly
    role_in_team = models.CharField(max_length=20, choices=ROLE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    joined_at = models.DateTimeField()
    left_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["team", "user"], name="teammember_team_user_uniq"),
            models.UniqueConstraint(
                fields=["team"],
                condition=Q(role_in_team="captain", status="active"),
                name="teammember_one_active_captain",
            ),
        ]
        indexes = [
            models.Index(fields=["team", "status"], name="teammember_team_status_idx"),
            models.Index(fields=["user", "status"], name="teammember_user_status_idx"),
        ]

    def __str__(self):
        return f"{self.user} in {self.team.name} ({self.role_in_team}, {self.status})"

    @property
    def is_active_captain(self):
        return self.role_in_team == self.ROLE_CAPTAIN and self.status == self.STATUS_ACTIVE


class EventTerms(models.Model):
    """Participation terms a volunteer accepts when registering."""

    event = models.OneToOneField(Event, on_delete=models.CASCADE, related_name="terms")
    content = models.TextField()
    is_required = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "event terms"

    def __str__(self):
        return f"Terms for {self.event}"


class TermsQuestion(models.Model):
    TYPE_MULTIPLE_CHOICE = "multiple_choice"
    TYPE_SINGLE_CHOICE = "single_choice"
    TYPE_TEXT = "text"

    TYPE_CHOICES = [
        (TYPE_MULTIPLE_CHOICE, "Multiple choice"),
        (TYPE_SINGLE_CHOICE, "Single choice"),
        (TYPE_TEXT, "Text"),
    ]

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="terms_questions")
    text = models.TextField()
    question_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_MULTIPLE_CHOICE)
    is_required = models.BooleanField(default=True)
    # Only meaningful for multiple_choice
    allow_multiple = models.BooleanField(default=False)
    order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["order", "id"]

    def __str__(self):
        return self.text[:60]

    @property
    def takes_text(self):
        return self.question_type == self.TYPE_TEXT

    @property
    def accepts_many(self):
        return self.question_type == self.TYPE_MULTIPLE_CHOICE and self.allow_multiple


class TermsQuestionOption(models.Model):
    question = models.ForeignKey(TermsQuestion, on_delete=models.CASCADE, related_name="options")
    text = models.CharField(max_length=255)
    value = models.CharField(max_length=100)
    order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["order", "id"]

    def __str__(self):
        return self.text


class TermsResponse(models.Model):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="terms_responses")
    question = models.ForeignKey(TermsQuestion, on_delete=models.CASCADE, related_name="responses")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="terms_responses",
    )
    # Ids of the chosen TermsQuestionOption rows
    selected_options = models.JSONField(default=list, blank=True)
    text_response = models.TextField(blank=True)
    responded_at = models.DateTimeField()

    class Meta:
        unique_together = ("user", "question")
        indexes = [
            models.Index(fields=["event", "user"], name="terms_resp_event_user_idx"),
        ]

    def __str__(self):
        return f"{self.user} on {self.question_id}"
