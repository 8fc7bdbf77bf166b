from django.core.management.base import BaseCommand

from events.state_machine import finalize_all_expired


class Command(BaseCommand):
    help = "Completes every event whose date has passed (safe to run repeatedly, e.g. from cron)"

    def handle(self, *args, **options):
        finalized, demoted = finalize_all_expired()
        self.stdout.write(
            self.style.SUCCESS(f"Finalized {finalized} event(s), demoted {demoted} captain(s).")
        )
