from datetime import timedelta

from django.core.management.base import BaseCommand
from django.contrib.auth import get_user_model
from django.db import transaction

from events import datetime_utils, membership
from events.models import Event

User = get_user_model()


class Command(BaseCommand):
    help = "Seeds the database with sample users, an upcoming event and two staffed teams"

    def handle(self, *args, **options):
        self.stdout.write("Seeding data...")

        with transaction.atomic():
            # 1. Ensure Users
            admin, _ = User.objects.get_or_create(
                username="admin",
                defaults={"email": "admin@example.com", "role": User.ROLE_ADMIN, "full_name": "Crew Admin"},
            )
            if not admin.check_password("admin"):
                admin.set_password("admin")
                admin.save()

            captains = []
            for name in ("carla", "diego"):
                user, _ = User.objects.get_or_create(
                    username=name,
                    defaults={"email": f"{name}@example.com", "role": User.ROLE_CAPTAIN, "full_name": name.title()},
                )
                user.set_password("password")
                user.save()
                captains.append(user)

            volunteers = []
            for name in ("ana", "bruno", "celia", "davi", "elisa", "fabio"):
                user, _ = User.objects.get_or_create(
                    username=name,
                    defaults={"email": f"{name}@example.com", "full_name": name.title()},
                )
                user.set_password("password")
                user.save()
                volunteers.append(user)

            # 2. Event
            event, created = Event.objects.get_or_create(
                title="Community Food Drive",
                defaults={
                    "description": "Sorting and distributing donations at the community center.",
                    "location": "Community Center",
                    "event_date": datetime_utils.today() + timedelta(days=14),
                    "max_volunteers": 12,
                    "status": Event.STATUS_PUBLISHED,
                    "created_by": admin,
                },
            )
            if not created:
                self.stdout.write("  Event already exists, skipping teams")
                return

            # 3. Teams, through the same engine calls the API uses
            for index, captain in enumerate(captains):
                team = membership.create_team(
                    event.id, admin, f"Team {index + 1}", 4, captain_id=captain.id
                )
                for volunteer in volunteers[index * 3:(index + 1) * 3]:
                    membership.join_team(team.id, volunteer.id, actor=admin)
                self.stdout.write(f"  Created {team.name} led by {captain.username}")

        self.stdout.write(self.style.SUCCESS("Done."))
