"""
API views for trips app endpoints.
"""
import logging

from django.db import IntegrityError
from django.shortcuts import get_object_or_404
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from locations.models import POI
from .models import Itinerary, ItineraryItem
from .serializers import (
    AddPOISerializer,
    CheckPOISerializer,
    ItineraryListSerializer,
    ItinerarySerializer,
    ReorderSerializer,
)

logger = logging.getLogger(__name__)


class ItineraryViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Itinerary CRUD operations and stop management.

    Only the owner ever sees an itinerary: other users' itineraries are
    filtered out of the queryset and therefore answer 404.
    """
    serializer_class = ItinerarySerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        return Itinerary.objects.filter(user=self.request.user).order_by('-created_at')

    def get_serializer_class(self):
        """Use lightweight serializer for list views"""
        if self.action == 'list':
            return ItineraryListSerializer
        return ItinerarySerializer

    def perform_create(self, serializer):
        """Automatically set the user to the current user"""
        itinerary = serializer.save(user=self.request.user)
        logger.info(f"Itinerary {itinerary.id} created by {self.request.user.username}")

    def _itinerary_response(self, itinerary, status_code=status.HTTP_200_OK):
        itinerary.refresh_from_db()
        serializer = ItinerarySerializer(itinerary, context={'request': self.request})
        return Response(serializer.data, status=status_code)

    @action(detail=True, methods=['post'])
    def add_poi(self, request, pk=None):
        """
        Append a POI at the end of the itinerary.

        Request body:
        {
            "poi_id": "uuid-of-poi"
        }
        """
        itinerary = self.get_object()
        serializer = AddPOISerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        poi = get_object_or_404(POI, id=serializer.validated_data['poi_id'])

        try:
            itinerary.add_poi(poi)
        except (ValueError, IntegrityError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return self._itinerary_response(itinerary, status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def remove_poi(self, request, pk=None):
        """
        Remove a POI and close the gap in the route order.

        Request body:
        {
            "poi_id": "uuid-of-poi"
        }
        """
        itinerary = self.get_object()
        serializer = AddPOISerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if not itinerary.remove_poi(serializer.validated_data['poi_id']):
            return Response(
                {'error': 'POI is not in this itinerary'},
                status=status.HTTP_404_NOT_FOUND
            )
        return self._itinerary_response(itinerary)

    @action(detail=True, methods=['post'])
    def reorder(self, request, pk=None):
        """
        Set new route positions.

        Request body:
        {
            "pois": [
                {"id": "poi-uuid-1", "order_priority": 1},
                {"id": "poi-uuid-2", "order_priority": 2},
                ...
            ]
        }

        Returns the itinerary with its stops in the new order.
        """
        itinerary = self.get_object()
        serializer = ReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        priorities = {
            entry['id']: entry['order_priority'] for entry in serializer.validated_data['pois']
        }
        try:
            itinerary.reorder(priorities)
        except ItineraryItem.DoesNotExist as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except IntegrityError:
            return Response(
                {'error': 'Order priorities collide with stops that were not reordered'},
                status=status.HTTP_400_BAD_REQUEST
            )

        return self._itinerary_response(itinerary)

    @action(detail=True, methods=['post'])
    def check_poi(self, request, pk=None):
        """
        Mark a stop as visited (or not) and return the caller's review of it.

        Request body:
        {
            "poi_id": "uuid-of-poi",
            "checked": true
        }
        """
        from recommendations.models import Review
        from recommendations.serializers import ReviewSerializer

        itinerary = self.get_object()
        serializer = CheckPOISerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        poi_id = serializer.validated_data['poi_id']

        try:
            item = itinerary.set_checked(poi_id, serializer.validated_data['checked'])
        except ItineraryItem.DoesNotExist:
            return Response(
                {'error': 'POI is not in this itinerary'},
                status=status.HTTP_404_NOT_FOUND
            )

        review = Review.objects.filter(user=request.user, poi_id=poi_id).prefetch_related('images').first()
        return Response({
            'poi_id': str(poi_id),
            'checked': item.checked,
            'review': ReviewSerializer(review).data if review else None,
        })
