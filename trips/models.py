import uuid

from django.db import models, transaction
from django.conf import settings
from django.core.validators import MinValueValidator


class Itinerary(models.Model):
    """
    Database entity representing a planned trip. It stores the trip name
    and maintains a relationship with the POIs included in the route through ItineraryItem.
    """

    # Primary Key
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Foreign Keys
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='itineraries',
        help_text="Reference to the owner of the itinerary"
    )

    name = models.CharField(
        max_length=128,
        help_text="User defined name for the trip"
    )

    # Timestamp
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Relationship to POIs through ItineraryItem
    stops = models.ManyToManyField(
        'locations.POI',
        through='ItineraryItem',
        related_name='itineraries',
        help_text="The places to visit, ordered through ItineraryItem.order_priority"
    )

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='itinerary_user_created_idx'),
        ]

    def __str__(self):
        return self.name

    def add_poi(self, poi) -> 'ItineraryItem':
        """
        Appends a POI at the end of the route.

        Raises:
            ValueError: if the POI is already part of this itinerary
        """
        with transaction.atomic():
            if self.items.filter(poi=poi).exists():
                raise ValueError("POI is already in this itinerary")
            last = self.items.aggregate(max_order=models.Max('order_priority'))['max_order'] or 0
            return ItineraryItem.objects.create(
                itinerary=self,
                poi=poi,
                order_priority=last + 1,
                checked=False,
            )

    def remove_poi(self, poi_id) -> bool:
        """
        Deletes the stop and shifts every later stop up by one so the
        priorities stay contiguous. Returns False if the POI was not in the itinerary.
        """
        with transaction.atomic():
            item = self.items.filter(poi_id=poi_id).first()
            if item is None:
                return False
            removed_priority = item.order_priority
            item.delete()

            # Ascending, one at a time, so each slot is free before it is taken
            for later in self.items.filter(order_priority__gt=removed_priority).order_by('order_priority'):
                later.order_priority -= 1
                later.save(update_fields=['order_priority'])
        return True

    def reorder(self, priorities) -> None:
        """
        Applies a {poi_id: order_priority} mapping atomically.

        Raises:
            ItineraryItem.DoesNotExist: if a POI is not part of this itinerary
        """
        with transaction.atomic():
            items = {str(item.poi_id): item for item in self.items.all()}
            updates = []
            for poi_id, order_priority in priorities.items():
                item = items.get(str(poi_id))
                if item is None:
                    raise ItineraryItem.DoesNotExist(f"POI {poi_id} is not in this itinerary")
                updates.append((item, order_priority))

            # 1. Move to temporary positions to avoid unique constraint collisions
            for item, order_priority in updates:
                item.order_priority = order_priority + 100000
                item.save(update_fields=['order_priority'])

            # 2. Move to final positions
            for item, order_priority in updates:
                item.order_priority = order_priority
                item.save(update_fields=['order_priority'])

    def set_checked(self, poi_id, checked: bool) -> 'ItineraryItem':
        item = self.items.get(poi_id=poi_id)
        item.checked = checked
        item.save(update_fields=['checked'])
        return item


class ItineraryItem(models.Model):
    """
    An intermediate table that links an Itinerary to a POI. It stores the
    position of the stop in the route and whether it has been visited.
    """

    # Foreign Keys
    itinerary = models.ForeignKey(
        Itinerary,
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Reference to the parent trip"
    )
    poi = models.ForeignKey(
        'locations.POI',
        on_delete=models.CASCADE,
        related_name='itinerary_items',
        help_text="Reference to the location being visited"
    )

    order_priority = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Position in the route, starting at 1"
    )
    checked = models.BooleanField(default=False, help_text="Marked as visited by the owner")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['itinerary', 'order_priority']
        unique_together = [['itinerary', 'poi'], ['itinerary', 'order_priority']]
        indexes = [
            models.Index(fields=['itinerary', 'order_priority'], name='item_itinerary_order_idx'),
        ]

    def __str__(self):
        return f"{self.itinerary.name} - Stop {self.order_priority}: {self.poi.name}"
