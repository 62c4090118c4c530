from __future__ import annotations

from django.core.management.base import BaseCommand

from facilities.seed import DEFAULT_FACILITIES, seed_default_facilities


class Command(BaseCommand):
    help = f"Create the {len(DEFAULT_FACILITIES)} default library facilities if they are missing."

    def add_arguments(self, parser):
        parser.add_argument(
            "--update-existing",
            action="store_true",
            help="Reset facilities whose name, capacity or closing days drifted from the defaults.",
        )

    def handle(self, *args, **options):
        result = seed_default_facilities(update_existing=options["update_existing"])
        self.stdout.write(self.style.SUCCESS(f"Facilities seeded: {result.summary()}"))
