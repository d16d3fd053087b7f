from django.core.management.base import BaseCommand

from apps.outlets.services import OutletService


class Command(BaseCommand):
    help = "Assigns outlets to orders that have none, using the location fields"

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=None)

    def handle(self, *args, **options):
        self.stdout.write("Starting outlet backfill...")
        result = OutletService.backfill_outlets(limit=options["limit"])

        for row in result["assignments"]:
            self.stdout.write(f"  {row['order_id']} -> {row['outlet_id']}")

        self.stdout.write(self.style.SUCCESS(
            f"Backfill complete. Processed {result['total_processed']}, "
            f"assigned {result['assigned']}, skipped {result['skipped']}."
        ))
