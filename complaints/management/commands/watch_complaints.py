import json
import time

from django.core.management.base import BaseCommand, CommandError

from hosted import feed
from hosted.service import COMPLAINTS


class Command(BaseCommand):
    help = "Print change-feed events for a table until interrupted"

    def add_arguments(self, parser):
        parser.add_argument("--table", default=COMPLAINTS)
        parser.add_argument(
            "--events",
            default=feed.ALL_EVENTS,
            help="'*' or a comma separated list of INSERT, UPDATE, DELETE",
        )

    def handle(self, *args, **options):
        table = options["table"]
        mask = options["events"]
        if mask != feed.ALL_EVENTS:
            mask = [e.strip() for e in mask.split(",") if e.strip()]
        try:
            feed.event_types(mask)
        except ValueError as e:
            raise CommandError(str(e))

        def show(event):
            record = event.get("record") or {}
            label = record.get("ticket") or record.get("id") or ""
            self.stdout.write(f"{event['type']} {label} {json.dumps(record, default=str)}")

        with feed.subscription(table, mask, show):
            self.stdout.write(self.style.SUCCESS(f"Listening for {table} changes (Ctrl+C to stop)"))
            try:
                while True:
                    time.sleep(1)
            except KeyboardInterrupt:
                self.stdout.write("Stopped.")
