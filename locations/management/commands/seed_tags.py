from django.core.management.base import BaseCommand

from locations.models import Tag
from locations.tagging import AVAILABLE_TAGS


class Command(BaseCommand):
    help = "Create the fixed POI tag vocabulary"

    def handle(self, *args, **options):
        created = 0
        for name in AVAILABLE_TAGS:
            _, was_created = Tag.objects.get_or_create(name=name)
            created += int(was_created)
        self.stdout.write(self.style.SUCCESS(f"{created} tags created, {len(AVAILABLE_TAGS) - created} already present"))
