import uuid

from django.db import models
from django.conf import settings


class UserProfile(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile"
    )
    id = models.UUIDField(primary_key=True,default=uuid.uuid4,editable=False)
    avatar_url = models.URLField(max_length=500,blank=True,null=True)
    bio = models.TextField(editable=True,max_length=200,blank=True,default="")

    def __str__(self):
        return self.user.username

    @property
    def display_name(self):
        return self.user.first_name or self.user.username

    def itinerary_count(self):
        return self.user.itineraries.count()

    def review_count(self):
        return self.user.reviews.count()

    def visited_count(self):
        # distinct POIs checked in any of the user's itineraries
        from trips.models import ItineraryItem

        return (
            ItineraryItem.objects
            .filter(itinerary__user=self.user,checked=True)
            .values('poi_id')
            .distinct()
            .count()
        )
