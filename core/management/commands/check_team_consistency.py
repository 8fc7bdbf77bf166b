from django.core.management.base import BaseCommand

from events.models import Team
from events.roles import check_captain_consistency


class Command(BaseCommand):
    help = "Lists teams whose captain pointer disagrees with their active captain roster row (report only, nothing is changed)"

    def add_arguments(self, parser):
        parser.add_argument("--event", type=int, help="Only check teams of this event id")

    def handle(self, *args, **options):
        teams = Team.objects.select_related("event").order_by("event_id", "name")
        if options.get("event"):
            teams = teams.filter(event_id=options["event"])

        checked = 0
        problems = 0
        for team in teams:
            checked += 1
            warning = check_captain_consistency(team)
            if warning is None:
                continue
            problems += 1
            self.stdout.write(
                self.style.WARNING(f"[{team.event.title}] {team.name}: {warning.message}")
            )

        if problems:
            self.stdout.write(self.style.ERROR(f"{problems} of {checked} teams are inconsistent."))
        else:
            self.stdout.write(self.style.SUCCESS(f"All {checked} teams are consistent."))
