import csv
from collections import Counter

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from locations.models import POI, Tag


class Command(BaseCommand):
    help = "Import POI tags from a CSV with columns poi_id,poi_name,poi_description,suggested_tags"

    def add_arguments(self, parser):
        parser.add_argument('csv_path')

    def handle(self, *args, **options):
        tag_lookup = {tag.name.lower(): tag for tag in Tag.objects.all()}
        links = POI.tags.through
        usage = Counter()
        processed = errors = created = 0

        try:
            handle = open(options['csv_path'], newline='', encoding='utf-8')
        except OSError as e:
            raise CommandError(f"Cannot read {options['csv_path']}: {e}")

        with handle:
            for row in csv.DictReader(handle):
                poi_id = (row.get('poi_id') or '').strip()
                try:
                    poi = POI.objects.filter(pk=poi_id).first() if poi_id else None
                except ValidationError:
                    poi = None
                if poi is None:
                    self.stderr.write(f"Skipping row with unknown POI id: {poi_id!r}")
                    errors += 1
                    continue

                for name in (row.get('suggested_tags') or '').split(','):
                    name = name.strip().lower()
                    if not name:
                        continue
                    tag = tag_lookup.get(name)
                    if tag is None:
                        self.stderr.write(f"Unknown tag: \"{name}\" for POI {poi.id}: {poi.name}")
                        continue
                    _, was_created = links.objects.get_or_create(poi_id=poi.id, tag_id=tag.id)
                    created += int(was_created)
                    usage[tag.name] += 1
                processed += 1

        self.stdout.write(f"Processed: {processed} POIs")
        self.stdout.write(f"Errors: {errors}")
        self.stdout.write(f"New tag links: {created}")
        for name, count in usage.most_common():
            self.stdout.write(f"  {name}: {count} POIs")
