"""
Domain services for the locations app implementing business logic
for geospatial operations, geocoding and bulk POI imports.
"""
import logging
import math
import re
import time
from typing import Dict, List, Optional, Tuple

import geohash2
import requests
from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.db.models import Exists, OuterRef, QuerySet

from .models import POI, POIImage, Tag

logger = logging.getLogger(__name__)


class GeocodingError(Exception):
    """Raised when the reverse geocoding provider cannot be reached or answers with an error."""


class OneMapError(Exception):
    """Raised when OneMap place search is not configured or authentication fails."""


class GeoService:
    """
    Domain Service that encapsulates all spatial business logic.
    Isolates direct database queries ensuring controllers/views interact
    with a clean API rather than raw ORM calls.
    """

    EARTH_RADIUS_KM = 6371.0

    # One degree in km used for the square search box around a recommendation origin
    KM_PER_DEGREE_SEARCH = 111.32
    # One degree in km used for the nearby prefilter box
    KM_PER_DEGREE_NEARBY = 111.0

    DEFAULT_SEARCH_RADIUS_KM = 5.0
    DEFAULT_NEARBY_RADIUS_KM = 2.0
    MIN_NEARBY_RADIUS_KM = 0.5
    MAX_NEARBY_RADIUS_KM = 10.0
    NEARBY_CANDIDATE_LIMIT = 10
    NEARBY_RESULT_LIMIT = 5

    @staticmethod
    def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """
        Great-circle distance between two coordinates in kilometers.
        """
        d_lat = math.radians(lat2 - lat1)
        d_lon = math.radians(lon2 - lon1)
        a = (
            math.sin(d_lat / 2) ** 2 +
            math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
            math.sin(d_lon / 2) ** 2
        )
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
        return GeoService.EARTH_RADIUS_KM * c

    @staticmethod
    def search(
        user=None,
        show_visited: bool = True,
        show_unvisited: bool = True,
        excluded_tags: Optional[List[int]] = None,
        recommend_from: Optional[Tuple[float, float]] = None,
        radius_km: float = DEFAULT_SEARCH_RADIUS_KM,
    ) -> QuerySet:
        """
        Map search used by the filter panel and as the candidate set of the
        recommendation engine.

        Args:
            user: Requesting user (anonymous users skip the visited filter)
            show_visited: Include POIs the user has checked in an itinerary
            show_unvisited: Include POIs the user has not checked yet
            excluded_tags: Tag ids to hide; a POI survives if it has at least one other tag
            recommend_from: Optional (latitude, longitude) origin of a square search box
            radius_km: Half side of the search box in kilometers

        Returns:
            QuerySet of matching POI objects
        """
        if not show_visited and not show_unvisited:
            return POI.objects.none()

        queryset = POI.objects.all()

        if excluded_tags:
            other_tags = POI.tags.through.objects.filter(
                poi_id=OuterRef('pk')
            ).exclude(tag_id__in=excluded_tags)
            queryset = queryset.filter(Exists(other_tags))

        if show_visited != show_unvisited and user is not None and user.is_authenticated:
            from trips.models import ItineraryItem

            visited = ItineraryItem.objects.filter(
                poi_id=OuterRef('pk'),
                checked=True,
                itinerary__user=user,
            )
            if show_visited:
                queryset = queryset.filter(Exists(visited))
            else:
                queryset = queryset.filter(~Exists(visited))

        if recommend_from is not None:
            lat, lon = recommend_from
            delta = radius_km / GeoService.KM_PER_DEGREE_SEARCH
            queryset = queryset.filter(
                latitude__lt=lat + delta,
                latitude__gt=lat - delta,
                longitude__lt=lon + delta,
                longitude__gt=lon - delta,
            )

        return queryset.order_by('created_at', 'id')

    @staticmethod
    def clamp_radius(radius_km: Optional[float]) -> float:
        """Clamp a nearby-search radius to the supported range."""
        if radius_km is None:
            return GeoService.DEFAULT_NEARBY_RADIUS_KM
        return max(GeoService.MIN_NEARBY_RADIUS_KM, min(GeoService.MAX_NEARBY_RADIUS_KM, float(radius_km)))

    @staticmethod
    def find_nearby(latitude: float, longitude: float, radius_km: float = DEFAULT_NEARBY_RADIUS_KM,
                    limit: int = NEARBY_RESULT_LIMIT) -> List[Dict]:
        """
        Retrieves the closest POIs around a point.

        A bounding box prefilter narrows the candidates, then the exact
        haversine distance decides which ones fall inside the radius.

        Args:
            latitude: Center latitude
            longitude: Center longitude
            radius_km: Search radius in kilometers (clamped to 0.5 - 10)
            limit: Maximum number of POIs returned

        Returns:
            List of dictionaries sorted by distance (km, 2 decimals)
        """
        radius_km = GeoService.clamp_radius(radius_km)
        logger.info(f"Querying POIs near {latitude}, {longitude} within {radius_km}km")

        lat_delta = radius_km / GeoService.KM_PER_DEGREE_NEARBY
        lon_delta = radius_km / (GeoService.KM_PER_DEGREE_NEARBY * math.cos(math.radians(latitude)))

        candidates = POI.objects.filter(
            latitude__gte=latitude - lat_delta,
            latitude__lte=latitude + lat_delta,
            longitude__gte=longitude - lon_delta,
            longitude__lte=longitude + lon_delta,
        ).prefetch_related('tags')[:GeoService.NEARBY_CANDIDATE_LIMIT]

        results = []
        for poi in candidates:
            distance = round(GeoService.haversine_km(latitude, longitude, poi.latitude, poi.longitude), 2)
            if distance > radius_km:
                continue
            results.append({
                'id': poi.id,
                'name': poi.name,
                'description': poi.description,
                'latitude': poi.latitude,
                'longitude': poi.longitude,
                'tags': [tag.name for tag in poi.tags.all()],
                'distance': distance,
            })

        results.sort(key=lambda item: item['distance'])
        results = results[:limit]
        logger.info(f"Found {len(results)} POIs near location")
        return results

    @staticmethod
    def find_near_place(latitude: Optional[float] = None, longitude: Optional[float] = None,
                        place_name: Optional[str] = None,
                        radius_km: float = DEFAULT_NEARBY_RADIUS_KM,
                        place_search: Optional['OneMapClient'] = None) -> List[Dict]:
        """
        Nearby search that accepts either coordinates or a free-text place name.
        Place names are resolved to coordinates through OneMap.

        Raises:
            OneMapError: when a place name is given but OneMap is not configured
        """
        if latitude is not None and longitude is not None:
            return GeoService.find_nearby(latitude, longitude, radius_km)

        if place_name:
            client = place_search or OneMapClient()
            result = client.search(place_name)
            if result is None:
                logger.info(f"Could not find coordinates for \"{place_name}\"")
                return []
            return GeoService.find_nearby(result['latitude'], result['longitude'], radius_km)

        logger.info("No coordinates or place name provided")
        return []

    @staticmethod
    def find_in_viewport(north: float, south: float, east: float, west: float) -> QuerySet:
        """
        Retrieves POIs contained within the visible map screen boundaries (Bounding Box).
        """
        return POI.objects.filter(
            latitude__lte=north,
            latitude__gte=south,
            longitude__lte=east,
            longitude__gte=west,
        )

    @staticmethod
    def encode_geohash(lat: float, lon: float, precision: int = 6) -> str:
        """
        Generates a Geohash string used as a cache key for geocoding lookups.
        """
        return geohash2.encode(lat, lon, precision)

    @staticmethod
    def is_location_valid(lat: float, lon: float) -> bool:
        """
        Validates if the coordinates fall within supported bounds.
        """
        return -90 <= lat <= 90 and -180 <= lon <= 180


class MapboxGeocoder:
    """
    Reverse geocoding through the Mapbox Geocoding v6 API.
    Answers are cached per geohash cell so panning around the map does not
    re-query the same block.
    """

    REVERSE_URL = "https://api.mapbox.com/search/geocode/v6/reverse"
    UNKNOWN_LOCATION = "Unknown location"
    CACHE_PRECISION = 8
    CACHE_TIMEOUT = 60 * 60 * 24

    def __init__(self, access_token: str = None, timeout: float = None):
        self.access_token = access_token or settings.MAPBOX_ACCESS_TOKEN
        self.timeout = timeout or settings.EXTERNAL_REQUEST_TIMEOUT

    def reverse(self, latitude: float, longitude: float) -> str:
        """
        Returns the preferred place name for a coordinate.

        Raises:
            GeocodingError: on transport errors or non-2xx responses
        """
        cache_key = f"reverse_geocode:{GeoService.encode_geohash(latitude, longitude, self.CACHE_PRECISION)}"
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        params = {
            'longitude': longitude,
            'latitude': latitude,
            'access_token': self.access_token,
        }
        try:
            response = requests.get(self.REVERSE_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Reverse geocoding error: {str(e)}")
            raise GeocodingError("Failed to fetch reverse geocode data") from e

        features = data.get('features') or []
        place = None
        if features:
            place = (features[0].get('properties') or {}).get('name_preferred')
        place = place or self.UNKNOWN_LOCATION

        cache.set(cache_key, place, self.CACHE_TIMEOUT)
        return place


class OneMapClient:
    """
    Place-name search through the Singapore OneMap API.
    The access token is shared across instances and refreshed when it expires.
    """

    TOKEN_URL = "https://www.onemap.gov.sg/api/auth/post/getToken"
    SEARCH_URL = "https://www.onemap.gov.sg/api/common/elastic/search"

    _token = None
    _token_expiry = None

    def __init__(self, email: str = None, password: str = None, timeout: float = None):
        self.email = email or settings.ONEMAP_EMAIL
        self.password = password or settings.ONEMAP_PASSWORD
        self.timeout = timeout or settings.EXTERNAL_REQUEST_TIMEOUT

    @property
    def is_configured(self) -> bool:
        return bool(self.email and self.password)

    @classmethod
    def reset_token(cls):
        cls._token = None
        cls._token_expiry = None

    def get_token(self) -> str:
        """
        Returns a valid OneMap access token, requesting a new one if needed.

        Raises:
            OneMapError: when credentials are missing or authentication fails
        """
        cls = type(self)
        if cls._token and cls._token_expiry and time.time() < cls._token_expiry:
            return cls._token

        if not self.is_configured:
            raise OneMapError("OneMap credentials not configured. Set ONEMAP_EMAIL and ONEMAP_PASSWORD")

        logger.info("Getting new OneMap authentication token...")
        response = requests.post(
            self.TOKEN_URL,
            json={'email': self.email, 'password': self.password},
            timeout=self.timeout,
        )
        if not response.ok:
            raise OneMapError(f"OneMap auth failed: {response.status_code}")

        data = response.json()
        cls._token = data['access_token']
        cls._token_expiry = int(data['expiry_timestamp'])
        logger.info(f"OneMap token obtained, expires at {cls._token_expiry}")
        return cls._token

    def search(self, place_name: str) -> Optional[Dict]:
        """
        Resolves a place name to coordinates using the most relevant OneMap hit.

        Returns:
            Dict with latitude, longitude and address, or None when nothing matched

        Raises:
            OneMapError: when OneMap credentials are not configured
        """
        if not self.is_configured:
            raise OneMapError("OneMap credentials not configured. Set ONEMAP_EMAIL and ONEMAP_PASSWORD")

        logger.info(f"Searching coordinates for: \"{place_name}\"")
        try:
            token = self.get_token()
            response = requests.get(
                self.SEARCH_URL,
                params={
                    'searchVal': place_name,
                    'returnGeom': 'Y',
                    'getAddrDetails': 'Y',
                    'pageNum': 1,
                },
                headers={'Authorization': token},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()

            results = data.get('results') or []
            if not data.get('found') or not results:
                logger.info(f"No results found for \"{place_name}\"")
                return None

            first = results[0]
            coordinates = {
                'latitude': float(first['LATITUDE']),
                'longitude': float(first['LONGITUDE']),
                'address': first.get('ADDRESS') or first.get('SEARCHVAL'),
            }
            logger.info(f"Found coordinates for \"{place_name}\": {coordinates}")
            return coordinates
        except (OneMapError, requests.RequestException, ValueError, KeyError) as e:
            logger.error(f"Error searching place coordinates: {str(e)}")
            return None


class ExternalPlaceDTO:
    """Data Transfer Object for place data read from an import file"""

    def __init__(
        self,
        external_id: str,
        name: str,
        lat: float,
        lon: float,
        description: str = "",
        opening_hours: str = None,
        image_urls: List[str] = None,
    ):
        self.external_id = external_id
        self.name = name
        self.lat = lat
        self.lon = lon
        self.description = description
        self.opening_hours = opening_hours
        self.image_urls = image_urls or []


class POIImportService:
    """
    Adapter between the data.gov.sg GeoJSON datasets and the internal POI model.
    Handles the tourist attraction dataset (HTML table in the Description
    property) and the parks dataset (NAME property with point geometry).
    """

    MAX_NAME_LENGTH = 128
    DEFAULT_DESCRIPTION = "No description available"

    def import_features(self, features: List[Dict]) -> Dict[str, int]:
        """
        Parses and upserts every feature of a GeoJSON FeatureCollection.

        Returns:
            Dictionary with created, updated and skipped counts
        """
        counts = {'created': 0, 'updated': 0, 'skipped': 0}
        for feature in features:
            dto = self.parse_feature(feature)
            if dto is None:
                counts['skipped'] += 1
                continue
            poi, created = self.upsert_poi(dto)
            if poi is None:
                counts['skipped'] += 1
            elif created:
                counts['created'] += 1
            else:
                counts['updated'] += 1
        return counts

    def parse_feature(self, feature: Dict) -> Optional[ExternalPlaceDTO]:
        """Dispatches to the attraction or park parser depending on the feature shape."""
        properties = feature.get('properties') or {}
        if properties.get('Description'):
            place = self._parse_attraction(feature)
            if place is not None:
                return place
        # park layers may carry a Description table without PAGETITLE
        if properties.get('NAME'):
            return self._parse_park(feature)
        return None

    def upsert_poi(self, data: ExternalPlaceDTO):
        """
        "Update or Insert" logic keyed on external_id.

        Returns:
            Tuple (POI or None, created flag)
        """
        try:
            with transaction.atomic():
                poi, created = POI.objects.update_or_create(
                    external_id=data.external_id,
                    defaults={
                        'name': data.name,
                        'description': data.description,
                        'latitude': data.lat,
                        'longitude': data.lon,
                        'opening_hours': data.opening_hours,
                    }
                )
                for url in data.image_urls:
                    POIImage.objects.get_or_create(poi=poi, image_url=url)
            return poi, created
        except ValueError as e:
            logger.warning(f"Skipping POI {data.external_id}: {str(e)}")
            return None, False

    @staticmethod
    def extract_table_value(description: str, field_name: str) -> Optional[str]:
        """Reads a <th>FIELD</th><td>value</td> cell out of an HTML description table."""
        pattern = re.compile(rf"<th>{re.escape(field_name)}</th>\s*<td>([^<]*)</td>", re.IGNORECASE)
        match = pattern.search(description)
        if match and match.group(1).strip():
            return match.group(1).strip()
        return None

    @staticmethod
    def fix_image_url(url: str) -> str:
        return url.replace('yoursingapore.com', 'visitsingapore.com') if url else url

    def _parse_attraction(self, feature: Dict) -> Optional[ExternalPlaceDTO]:
        properties = feature['properties']
        description = properties['Description']

        title = self.extract_table_value(description, 'PAGETITLE')
        latitude = self.extract_table_value(description, 'LATITUDE')
        # the dataset misspells the column
        longitude = self.extract_table_value(description, 'LONGTITUDE')
        if not title or not latitude or not longitude:
            return None

        try:
            lat, lon = float(latitude), float(longitude)
        except ValueError:
            return None

        image_path = self.extract_table_value(description, 'IMAGE_PATH')
        return ExternalPlaceDTO(
            external_id=self._external_id('attraction', feature, title, lat, lon),
            name=title[:self.MAX_NAME_LENGTH],
            lat=lat,
            lon=lon,
            description=self.extract_table_value(description, 'OVERVIEW') or self.DEFAULT_DESCRIPTION,
            opening_hours=self.extract_table_value(description, 'OPENING_HOURS'),
            image_urls=[self.fix_image_url(image_path)] if image_path else [],
        )

    def _parse_park(self, feature: Dict) -> Optional[ExternalPlaceDTO]:
        properties = feature['properties']
        geometry = feature.get('geometry') or {}
        coordinates = geometry.get('coordinates')
        if not coordinates or len(coordinates) < 2:
            return None

        name = properties['NAME']
        lon, lat = float(coordinates[0]), float(coordinates[1])
        return ExternalPlaceDTO(
            external_id=self._external_id('park', feature, name, lat, lon),
            name=name[:self.MAX_NAME_LENGTH],
            lat=lat,
            lon=lon,
            description=f"A park in Singapore: {name}",
        )

    @staticmethod
    def _external_id(source: str, feature: Dict, name: str, lat: float, lon: float) -> str:
        key = (feature.get('properties') or {}).get('Name') or feature.get('id')
        if not key:
            key = f"{name}@{lat:.6f},{lon:.6f}"
        return f"{source}:{key}"


def tags_with_counts() -> List[Dict]:
    """Every tag with the number of POIs carrying it."""
    from django.db.models import Count

    return [
        {'id': tag.id, 'name': tag.name, 'count': tag.poi_count}
        for tag in Tag.objects.annotate(poi_count=Count('pois')).order_by('id')
    ]
