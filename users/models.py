# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_VOLUNTEER = "volunteer"
    ROLE_CAPTAIN = "captain"
    ROLE_ADMIN = "admin"

    ROLE_CHOICES = (
        (ROLE_VOLUNTEER, "Volunteer"),
        (ROLE_CAPTAIN, "Captain"),
        (ROLE_ADMIN, "Admin"),
    )

    # Global permission level. Team leadership lives on TeamMember.role_in_team.
    role = models.CharField(
        max_length=30,
        choices=ROLE_CHOICES,
        default=ROLE_VOLUNTEER,
    )

    full_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    bio = models.TextField(blank=True, null=True)
    avatar_url = models.CharField(max_length=1024, blank=True, null=True)
    skills = models.JSONField(default=list, blank=True)
    availability = models.JSONField(default=list, blank=True)

    # Address (advisory; filled from postal-code lookup on the profile form)
    postal_code = models.CharField(max_length=16, blank=True)
    street = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=120, blank=True)
    region = models.CharField(max_length=60, blank=True)

    is_first_login = models.BooleanField(default=True)
    deactivated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["role", "is_active"], name="user_role_active_idx"),
        ]

    def __str__(self):
        return self.full_name or self.username

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN or self.is_superuser

    @property
    def is_captain(self):
        return self.role == self.ROLE_CAPTAIN

    def tombstone_email(self):
        return f"deleted-{self.pk}@tombstone.invalid"
