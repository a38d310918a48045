"""
Surprise Me flow: survey cards, swipe recording and tag based suggestions.
"""
import logging
from typing import Dict, Iterable, List

from django.db import transaction
from django.db.models import Exists, OuterRef, Prefetch

from locations.models import POI, POIImage
from recommendations.models import SurveyPreference

logger = logging.getLogger(__name__)


class SurveyService:
    """
    Picks POIs for the swipe survey and turns the answers into suggestions.
    Only POIs with at least one image are ever shown.
    """

    SURVEY_SIZE = 5
    SUGGESTION_SIZE = 5
    TAG_WEIGHT_LIMIT = 10

    @staticmethod
    def pois_with_images():
        has_image = POIImage.objects.filter(poi_id=OuterRef('pk'))
        return POI.objects.filter(Exists(has_image)).prefetch_related(
            'tags',
            Prefetch('images', queryset=POIImage.objects.order_by('created_at', 'id')),
        )

    @staticmethod
    def to_card(poi: POI) -> Dict:
        """Survey card: the POI with one image and its tag names"""
        images = list(poi.images.all())
        return {
            'id': poi.id,
            'name': poi.name,
            'description': poi.description,
            'image_url': images[0].image_url if images else None,
            'latitude': poi.latitude,
            'longitude': poi.longitude,
            'tags': [tag.name for tag in poi.tags.all()],
        }

    @staticmethod
    def to_suggestion(poi: POI) -> Dict:
        return {
            'id': poi.id,
            'name': poi.name,
            'description': poi.description,
            'latitude': poi.latitude,
            'longitude': poi.longitude,
            'images': [image.image_url for image in poi.images.all()],
            'tags': [tag.name for tag in poi.tags.all()],
        }

    def random_survey_pois(self, count: int = SURVEY_SIZE) -> List[Dict]:
        pois = self.pois_with_images().order_by('?')[:count]
        return [self.to_card(poi) for poi in pois]

    @staticmethod
    def record_preferences(user, preferences: Iterable[Dict], remove_old: bool = False) -> int:
        """
        Stores swipe answers. With remove_old the user's earlier answers are
        wiped first; a repeated swipe on the same POI overwrites the old one.

        Args:
            user: Authenticated user
            preferences: Iterable of {'poi_id': UUID, 'liked': bool}
            remove_old: Delete previous answers before saving

        Returns:
            Number of answers stored
        """
        preferences = list(preferences)
        with transaction.atomic():
            if remove_old:
                deleted, _ = SurveyPreference.objects.filter(user=user).delete()
                logger.info(f"Cleared {deleted} survey preferences for {user.username}")

            for preference in preferences:
                SurveyPreference.objects.update_or_create(
                    user=user,
                    poi_id=preference['poi_id'],
                    defaults={'liked': preference['liked']},
                )
        return len(preferences)

    def suggest(self, user, count: int = SUGGESTION_SIZE) -> List[Dict]:
        """
        Surprise Me result. Without any liked POI this is a random pick;
        otherwise POIs sharing a tag with the liked ones, excluding the liked POIs themselves.
        """
        liked_ids = []
        if user is not None and user.is_authenticated:
            liked_ids = list(
                SurveyPreference.objects.filter(user=user, liked=True).values_list('poi_id', flat=True)
            )

        queryset = self.pois_with_images()
        if liked_ids:
            links = POI.tags.through.objects
            liked_tag_ids = links.filter(poi_id__in=liked_ids).values('tag_id')
            sharing_poi_ids = links.filter(tag_id__in=liked_tag_ids).values('poi_id')
            queryset = queryset.filter(id__in=sharing_poi_ids).exclude(id__in=liked_ids)

        pois = queryset.order_by('?')[:count]
        return [self.to_suggestion(poi) for poi in pois]

    def recommend_by_tag_weights(self, tag_weights: Dict[str, float], limit: int = TAG_WEIGHT_LIMIT) -> List[Dict]:
        """
        Up to `limit` random POIs carrying any of the named tags.
        Weights are accepted for the client contract but only the names select POIs.
        """
        names = [name for name in tag_weights.keys() if name]
        if not names:
            return []
        pois = (
            POI.objects
            .filter(id__in=POI.tags.through.objects.filter(tag__name__in=names).values('poi_id'))
            .prefetch_related('tags', Prefetch('images', queryset=POIImage.objects.order_by('created_at', 'id')))
            .order_by('?')[:limit]
        )
        return [self.to_card(poi) for poi in pois]
