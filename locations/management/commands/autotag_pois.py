import time

from django.core.management.base import BaseCommand

from locations.models import POI
from locations.tagging import TaggingService


class Command(BaseCommand):
    help = "Tag POIs with an LLM, picking from the fixed tag vocabulary"

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, default=None, help="Maximum number of POIs to process")
        parser.add_argument('--delay', type=float, default=1.0, help="Seconds to wait between model calls")
        parser.add_argument('--retag', action='store_true', help="Also process POIs that already have tags")
        parser.add_argument('--dry-run', action='store_true', help="Print suggestions without saving them")

    def handle(self, *args, **options):
        queryset = POI.objects.order_by('created_at')
        if not options['retag']:
            queryset = queryset.filter(tags__isnull=True)
        if options['limit']:
            queryset = queryset[:options['limit']]

        pois = list(queryset)
        service = TaggingService()
        total = len(pois)
        self.stdout.write(f"Processing {total} POIs...")

        tagged = 0
        for index, poi in enumerate(pois, start=1):
            suggested = service.suggest_tags(poi)
            if suggested and not options['dry_run']:
                service.apply_tags(poi, suggested)
            if suggested:
                tagged += 1
            self.stdout.write(f"{index}/{total}: {poi.name} -> {', '.join(suggested) or '(none)'}")

            if options['delay'] and index < total:
                time.sleep(options['delay'])

        self.stdout.write(self.style.SUCCESS(f"Tagged {tagged} of {total} POIs"))
