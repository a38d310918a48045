import json

from django.core.management.base import BaseCommand, CommandError

from locations.services import POIImportService


class Command(BaseCommand):
    help = "Import POIs from data.gov.sg GeoJSON files (tourist attractions or parks)"

    def add_arguments(self, parser):
        parser.add_argument('paths', nargs='+', help="GeoJSON FeatureCollection files")

    def handle(self, *args, **options):
        service = POIImportService()
        for path in options['paths']:
            try:
                with open(path, encoding='utf-8') as handle:
                    data = json.load(handle)
            except (OSError, ValueError) as e:
                raise CommandError(f"Cannot load {path}: {e}")

            counts = service.import_features(data.get('features', []))
            self.stdout.write(self.style.SUCCESS(
                f"{path}: {counts['created']} created, {counts['updated']} updated, {counts['skipped']} skipped"
            ))
