"""
Views for the recommendations module.
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated, IsAuthenticatedOrReadOnly
from rest_framework.response import Response
from rest_framework.views import APIView

from locations.models import POI
from recommendations.dtos import ContextDTO, PointDTO
from recommendations.models import Review, ReviewImage
from recommendations.scoring_service import ScoringService
from recommendations.serializers import (
    ContextDTOSerializer,
    IndicatePreferenceSerializer,
    ReviewImagesUpdateSerializer,
    ReviewSerializer,
    ScoredPOISerializer,
    TagWeightsSerializer,
)
from recommendations.survey_service import SurveyService

logger = logging.getLogger(__name__)


def build_context(validated_data) -> ContextDTO:
    location_data = validated_data.get('user_location')
    return ContextDTO(
        user_location=PointDTO(
            latitude=location_data['latitude'],
            longitude=location_data['longitude']
        ) if location_data else None,
        radius_km=validated_data.get('radius_km', 5.0),
        show_visited=validated_data.get('show_visited', True),
        show_unvisited=validated_data.get('show_unvisited', True),
        excluded_tags=validated_data.get('excluded_tags', []),
        max_results=validated_data.get('max_results', 5),
    )


class ReviewViewSet(viewsets.ModelViewSet):
    """
    ViewSet for managing POI reviews.
    Anyone can read; authors alone can change or delete their review.
    """
    serializer_class = ReviewSerializer
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get_queryset(self):
        """Filter reviews by POI or user if provided"""
        poi_id = self.request.query_params.get('poi_id')
        user_id = self.request.query_params.get('user_id')

        queryset = Review.objects.select_related('user').prefetch_related('images')
        try:
            if poi_id:
                queryset = queryset.filter(poi_id=poi_id)
            if user_id:
                queryset = queryset.filter(user_id=int(user_id))
        except (TypeError, ValueError, DjangoValidationError):
            raise ValidationError({'error': 'Invalid poi_id or user_id'})

        return queryset

    def perform_create(self, serializer):
        poi = serializer.validated_data['poi']
        if Review.objects.filter(user=self.request.user, poi=poi).exists():
            raise ValidationError({'error': 'You have already reviewed this POI'})
        with transaction.atomic():
            review = serializer.save(user=self.request.user)
        logger.info(f"Review {review.id} created by {self.request.user.username} for POI {poi.id}")

    def perform_update(self, serializer):
        """Only allow owner to update"""
        if serializer.instance.user_id != self.request.user.id:
            raise PermissionDenied("You can only edit your own reviews")
        serializer.save()

    def perform_destroy(self, instance):
        """Only allow owner to delete"""
        if instance.user_id != self.request.user.id:
            raise PermissionDenied("You can only delete your own reviews")
        instance.delete()

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated])
    def mine(self, request):
        """
        The caller's review for a POI, or null.

        Query parameters:
        - poi_id: uuid (required)
        """
        poi_id = request.query_params.get('poi_id')
        if not poi_id:
            return Response({'error': 'poi_id is required'}, status=status.HTTP_400_BAD_REQUEST)

        review = self.get_queryset().filter(user=request.user).first()
        if review is None:
            return Response(None)
        return Response(self.get_serializer(review).data)

    @action(detail=True, methods=['post'])
    def images(self, request, pk=None):
        """
        Add and remove review images.

        Request body:
        {
            "images": ["https://...", ...],
            "delete_images": ["https://...", ...]
        }
        """
        review = self.get_object()
        if review.user_id != request.user.id:
            raise PermissionDenied("You can only edit your own reviews")

        serializer = ReviewImagesUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            delete_images = serializer.validated_data['delete_images']
            if delete_images:
                review.images.filter(image_url__in=delete_images).delete()
            ReviewImage.objects.bulk_create([
                ReviewImage(review=review, image_url=url) for url in serializer.validated_data['images']
            ])

        review = Review.objects.select_related('user').prefetch_related('images').get(pk=review.pk)
        return Response(self.get_serializer(review).data)


class SurveyPOIsView(APIView):
    """
    GET /api/recommendations/survey/
    Five random POIs (with an image) for the swipe survey.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        return Response(SurveyService().random_survey_pois())


class IndicatePreferenceView(APIView):
    """
    API endpoint for recording survey swipes.

    POST /api/recommendations/preferences/
    Body:
    {
        "preferences": [{"poi_id": "uuid", "liked": true}, ...],
        "remove_old": false
    }
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = IndicatePreferenceSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'error': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        preferences = serializer.validated_data['preferences']
        known = set(
            POI.objects.filter(id__in=[p['poi_id'] for p in preferences]).values_list('id', flat=True)
        )
        missing = [str(p['poi_id']) for p in preferences if p['poi_id'] not in known]
        if missing:
            return Response(
                {'error': f"Unknown POI ids: {', '.join(missing)}"},
                status=status.HTTP_400_BAD_REQUEST
            )

        stored = SurveyService.record_preferences(
            request.user,
            preferences,
            remove_old=serializer.validated_data['remove_old'],
        )
        return Response({'success': True, 'stored': stored})


class TagPreferencesView(APIView):
    """
    GET /api/recommendations/tag-preferences/
    Every tag with the caller's liked_score.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        return Response(ScoringService().tag_preference_list(request.user))


class SuggestView(APIView):
    """
    GET /api/recommendations/suggest/
    Surprise Me result based on the caller's liked survey POIs.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        return Response(SurveyService().suggest(request.user))


class TagWeightsRecommendationView(APIView):
    """
    POST /api/recommendations/tag-weights/
    Body:
    {
        "tag_weights": {"Museum": 0.8, "Food": 0.2}
    }
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = TagWeightsSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'error': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response(SurveyService().recommend_by_tag_weights(serializer.validated_data['tag_weights']))


class GenerateRecommendationsView(APIView):
    """
    API endpoint for generating personalized recommendations.

    POST /api/recommendations/generate/
    Body:
    {
        "context": {
            "user_location": {"latitude": 1.2868, "longitude": 103.8545},
            "radius_km": 5,
            "show_visited": true,
            "show_unvisited": true,
            "excluded_tags": [3, 7],
            "max_results": 5
        }
    }
    """
    permission_classes = [AllowAny]

    def post(self, request):
        """Generate recommendations for the caller"""
        context_data = request.data.get('context')

        if not context_data:
            return Response(
                {'error': 'context is required'},
                status=status.HTTP_400_BAD_REQUEST
            )

        # Validate context data
        context_serializer = ContextDTOSerializer(data=context_data)
        if not context_serializer.is_valid():
            return Response(
                {'error': context_serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        if not context_serializer.validated_data.get('user_location'):
            return Response(
                {'error': 'context.user_location is required'},
                status=status.HTTP_400_BAD_REQUEST
            )

        context = build_context(context_serializer.validated_data)
        recommendations = ScoringService().generate_recommendations(request.user, context)

        serializer = ScoredPOISerializer(recommendations, many=True)
        return Response(
            {'recommendations': serializer.data},
            status=status.HTTP_200_OK
        )


class PopularityView(APIView):
    """
    API endpoint ranking the map search results by community signals.

    POST /api/recommendations/popularity/
    Body:
    {
        "context": {"show_visited": true, "show_unvisited": true, "excluded_tags": []}
    }
    """
    permission_classes = [AllowAny]

    def post(self, request):
        context_serializer = ContextDTOSerializer(data=request.data.get('context') or {})
        if not context_serializer.is_valid():
            return Response(
                {'error': context_serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        context = build_context(context_serializer.validated_data)
        scored = ScoringService().popularity_scores(request.user, context)

        serializer = ScoredPOISerializer(scored, many=True)
        return Response({'results': serializer.data})
