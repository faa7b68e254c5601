from django.core.management.base import BaseCommand

from shopfloor_core.workflows.sla_scanner import scan_stalled_batches


class Command(BaseCommand):
    help = "Raise alerts for batches dwelling in a stage past its thresholds"

    def handle(self, *args, **options):
        created = scan_stalled_batches()
        self.stdout.write(f"{created} new stage alert(s)")
