import uuid
from django.db import models
from django.conf import settings


class Tag(models.Model):
    """
    Category label attached to POIs (e.g. "Museum", "Nature").
    Used for map filtering and for Surprise Me preference scoring.
    """
    name = models.CharField(max_length=128, unique=True)

    class Meta:
        db_table = 'locations_tag'
        ordering = ['name']

    def __str__(self):
        return self.name


class POI(models.Model):
    """
    Point of Interest (POI) - Primary database entity representing a physical location.
    Coordinates are stored as plain latitude/longitude floats; distances are
    computed with the haversine formula in GeoService.
    """

    # Primary Key
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Basic Information
    name = models.CharField(max_length=255, help_text="The official name of the place")
    description = models.TextField(blank=True, default="")
    address = models.CharField(max_length=255, blank=True, default="", help_text="Human readable physical address")
    opening_hours = models.TextField(blank=True, null=True)

    # Geospatial Data
    latitude = models.FloatField()
    longitude = models.FloatField()

    # Classification
    tags = models.ManyToManyField(Tag, related_name='pois', blank=True)

    # External Integration
    external_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Unique ID from the import source to prevent duplicates"
    )

    uploader = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='uploaded_pois',
        help_text="User who created the POI. Empty for imported data"
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'locations_poi'
        indexes = [
            models.Index(fields=['latitude', 'longitude'], name='poi_lat_lon_idx'),
            models.Index(fields=['external_id'], name='poi_external_id_idx'),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        """
        Overridden save method to ensure coordinates are valid.
        """
        if self.latitude is None or self.longitude is None:
            raise ValueError("Coordinates are required")
        if not (-90 <= self.latitude <= 90 and -180 <= self.longitude <= 180):
            raise ValueError("Invalid coordinates: latitude must be -90 to 90, longitude must be -180 to 180")

        super().save(*args, **kwargs)

    def distance_to(self, latitude: float, longitude: float):
        """
        Returns the great-circle distance in meters to another point.

        Args:
            latitude: Target latitude
            longitude: Target longitude

        Returns:
            Distance in meters, or None when coordinates are missing
        """
        if latitude is None or longitude is None:
            return None
        from .services import GeoService

        return GeoService.haversine_km(self.latitude, self.longitude, latitude, longitude) * 1000

    def get_lat_lon(self):
        """
        Helper method to return coordinates in a frontend-friendly format.

        Returns:
            Tuple of (latitude: float, longitude: float)
        """
        return (self.latitude, self.longitude)


class POIImage(models.Model):
    """
    Image attached to a POI. Only the URL is stored; blobs live in object storage.
    """
    poi = models.ForeignKey(POI, on_delete=models.CASCADE, related_name='images')
    image_url = models.CharField(max_length=255)
    uploader = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='uploaded_poi_images'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'locations_poi_image'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.poi.name} - {self.image_url}"

    @property
    def uploader_name(self) -> str:
        """Display name of the uploader; imported images are labelled 'database'."""
        if self.uploader is None:
            return "database"
        return self.uploader.first_name or self.uploader.username or "Unknown"
