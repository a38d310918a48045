"""
API views for locations app endpoints.
"""
import logging

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticatedOrReadOnly
from rest_framework.response import Response

from .models import POI, POIImage, Tag
from .serializers import (
    POISerializer,
    POIListSerializer,
    POIImageSerializer,
    TagCountSerializer,
)
from .services import (
    GeoService,
    GeocodingError,
    MapboxGeocoder,
    OneMapError,
    tags_with_counts,
)

logger = logging.getLogger(__name__)


def parse_bool(value, default: bool) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def parse_id_list(value):
    """'1,2,3' -> [1, 2, 3]; raises ValueError on garbage"""
    if not value:
        return []
    return [int(part) for part in str(value).split(',') if part.strip()]


class POIViewSet(viewsets.ModelViewSet):
    """
    ViewSet for POI CRUD operations and geospatial queries.
    Reads are public; creating requires a login and only the uploader
    may change or delete a POI.
    """
    queryset = POI.objects.all().prefetch_related('images', 'tags').order_by('-created_at')
    serializer_class = POISerializer
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get_serializer_class(self):
        """Use lightweight serializer for list views"""
        if self.action == 'list':
            return POIListSerializer
        return POISerializer

    def perform_create(self, serializer):
        poi = serializer.save(uploader=self.request.user)
        logger.info(f"POI {poi.id} created by {self.request.user.username}")

    def perform_update(self, serializer):
        if serializer.instance.uploader_id != self.request.user.id:
            raise PermissionDenied("Only the uploader can edit this POI.")
        serializer.save()

    def perform_destroy(self, instance):
        if instance.uploader_id != self.request.user.id:
            raise PermissionDenied("Only the uploader can delete this POI.")
        instance.delete()

    @action(detail=False, methods=['get'], permission_classes=[AllowAny])
    def search(self, request):
        """
        Map filter search.

        Query parameters:
        - show_visited: bool (default: true)
        - show_unvisited: bool (default: true)
        - excluded_tags: comma separated tag ids
        - latitude, longitude: optional origin of the search box
        - radius_km: float (default: 5)
        """
        params = request.query_params
        try:
            excluded_tags = parse_id_list(params.get('excluded_tags'))
            radius_km = float(params.get('radius_km', GeoService.DEFAULT_SEARCH_RADIUS_KM))
            recommend_from = None
            if params.get('latitude') is not None or params.get('longitude') is not None:
                recommend_from = (float(params.get('latitude')), float(params.get('longitude')))
        except (TypeError, ValueError):
            return Response(
                {'error': 'Invalid parameters. excluded_tags must be ids, latitude/longitude/radius_km floats'},
                status=status.HTTP_400_BAD_REQUEST
            )

        pois = GeoService.search(
            user=request.user,
            show_visited=parse_bool(params.get('show_visited'), True),
            show_unvisited=parse_bool(params.get('show_unvisited'), True),
            excluded_tags=excluded_tags,
            recommend_from=recommend_from,
            radius_km=radius_km,
        )
        serializer = POIListSerializer(pois, many=True)
        return Response({
            'count': len(serializer.data),
            'results': serializer.data
        })

    @action(detail=False, methods=['get'], permission_classes=[AllowAny])
    def nearby(self, request):
        """
        Find the closest POIs around a point or a named place.

        Query parameters:
        - latitude, longitude: float
        - place_name: str (used when no coordinates are given)
        - radius_km: float (default: 2, clamped to 0.5 - 10)
        """
        params = request.query_params
        try:
            lat = float(params['latitude']) if params.get('latitude') else None
            lon = float(params['longitude']) if params.get('longitude') else None
            radius_km = float(params.get('radius_km', GeoService.DEFAULT_NEARBY_RADIUS_KM))
        except (TypeError, ValueError):
            return Response(
                {'error': 'Invalid parameters. latitude, longitude and radius_km must be floats'},
                status=status.HTTP_400_BAD_REQUEST
            )

        place_name = params.get('place_name')
        if (lat is None or lon is None) and not place_name:
            return Response(
                {'error': 'Provide latitude and longitude or a place_name'},
                status=status.HTTP_400_BAD_REQUEST
            )

        if lat is not None and lon is not None and not GeoService.is_location_valid(lat, lon):
            return Response(
                {'error': 'Invalid coordinates'},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            results = GeoService.find_near_place(lat, lon, place_name, radius_km)
        except OneMapError as e:
            return Response({'error': str(e)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response({
            'count': len(results),
            'results': results
        })

    @action(detail=False, methods=['get'], permission_classes=[AllowAny])
    def viewport(self, request):
        """
        Find POIs within a viewport (bounding box).

        Query parameters:
        - north: float (required)
        - south: float (required)
        - east: float (required)
        - west: float (required)
        """
        try:
            north = float(request.query_params.get('north'))
            south = float(request.query_params.get('south'))
            east = float(request.query_params.get('east'))
            west = float(request.query_params.get('west'))
        except (TypeError, ValueError):
            return Response(
                {'error': 'Invalid parameters. Required: north, south, east, west (float)'},
                status=status.HTTP_400_BAD_REQUEST
            )

        pois = GeoService.find_in_viewport(north, south, east, west)
        serializer = POIListSerializer(pois, many=True)

        return Response({
            'count': len(serializer.data),
            'results': serializer.data
        })

    @action(detail=True, methods=['get'], permission_classes=[AllowAny])
    def distance(self, request, pk=None):
        """
        Calculate distance from a POI to another location.

        Query parameters:
        - latitude: float (required)
        - longitude: float (required)
        """
        poi = self.get_object()

        try:
            lat = float(request.query_params.get('latitude'))
            lon = float(request.query_params.get('longitude'))
        except (TypeError, ValueError):
            return Response(
                {'error': 'Invalid parameters. Required: latitude, longitude (float)'},
                status=status.HTTP_400_BAD_REQUEST
            )

        if not GeoService.is_location_valid(lat, lon):
            return Response({'error': 'Invalid coordinates'}, status=status.HTTP_400_BAD_REQUEST)

        distance = poi.distance_to(lat, lon)

        return Response({
            'poi_id': str(poi.id),
            'distance_meters': distance,
            'distance_km': distance / 1000,
        })

    @action(detail=True, methods=['get', 'post'])
    def images(self, request, pk=None):
        """
        GET: every image of the POI with its uploader.
        POST: append image URLs ({"image_urls": [...]}) attributed to the caller.
        """
        poi = self.get_object()

        if request.method == 'POST':
            image_urls = request.data.get('image_urls')
            if not isinstance(image_urls, list) or not image_urls:
                return Response(
                    {'error': 'image_urls must be a non-empty list'},
                    status=status.HTTP_400_BAD_REQUEST
                )
            if any(not isinstance(url, str) or not url or len(url) > 255 for url in image_urls):
                return Response(
                    {'error': 'Each image URL must be a string of at most 255 characters'},
                    status=status.HTTP_400_BAD_REQUEST
                )
            POIImage.objects.bulk_create([
                POIImage(poi=poi, image_url=url, uploader=request.user) for url in image_urls
            ])
            return Response({'success': True, 'added': len(image_urls)}, status=status.HTTP_201_CREATED)

        images = poi.images.select_related('uploader')
        return Response(POIImageSerializer(images, many=True).data)

    @action(detail=True, methods=['get'], permission_classes=[AllowAny])
    def tags(self, request, pk=None):
        poi = self.get_object()
        return Response([
            {'tag_id': tag.id, 'name': tag.name} for tag in poi.tags.all()
        ])

    @action(detail=False, methods=['get'], permission_classes=[AllowAny])
    def address(self, request):
        """
        Reverse geocode a coordinate to a place name.

        Query parameters:
        - latitude: float (required)
        - longitude: float (required)
        """
        try:
            lat = float(request.query_params.get('latitude'))
            lon = float(request.query_params.get('longitude'))
        except (TypeError, ValueError):
            return Response(
                {'error': 'Invalid parameters. Required: latitude, longitude (float)'},
                status=status.HTTP_400_BAD_REQUEST
            )

        if not GeoService.is_location_valid(lat, lon):
            return Response({'error': 'Invalid coordinates'}, status=status.HTTP_400_BAD_REQUEST)

        try:
            place = MapboxGeocoder().reverse(lat, lon)
        except GeocodingError as e:
            return Response({'error': str(e)}, status=status.HTTP_502_BAD_GATEWAY)

        return Response({'latitude': lat, 'longitude': lon, 'place': place})


class TagViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Tag vocabulary with the number of POIs carrying each tag.
    """
    queryset = Tag.objects.all()
    serializer_class = TagCountSerializer
    permission_classes = [AllowAny]
    pagination_class = None

    def list(self, request, *args, **kwargs):
        return Response(TagCountSerializer(tags_with_counts(), many=True).data)

    def retrieve(self, request, *args, **kwargs):
        tag = self.get_object()
        return Response({'id': tag.id, 'name': tag.name, 'count': tag.pois.count()})
