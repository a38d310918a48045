"""
ScoringService: The core algorithmic engine for the recommendation system.
Implements a weighted hybrid of the user's tag preferences (content based)
and community signals (review volume and like ratio).
"""
import logging
import math
from collections import defaultdict
from typing import Dict, Iterable, List, Tuple

from django.db.models import Count, Q, Sum, Case, When, IntegerField

from locations.models import POI, Tag
from locations.services import GeoService
from recommendations.dtos import ContextDTO, ScoredPOI
from recommendations.models import Review, SurveyPreference

logger = logging.getLogger(__name__)


class ScoringService:
    """
    Algorithm Service: ranks the POIs of a map search using
    1. Preference: the user's survey tag scores summed over each POI's tags
    2. Review volume: log-normalised number of reviews
    3. Like ratio: share of reviews that liked the POI
    """

    # Default weights for the weighted scoring formula
    WEIGHT_PREFERENCE = 0.5
    WEIGHT_REVIEW_VOLUME = 0.3
    WEIGHT_LIKE_RATIO = 0.2

    # Popularity ranking ignores personal preference
    POPULARITY_WEIGHT_REVIEW_VOLUME = 0.5
    POPULARITY_WEIGHT_LIKE_RATIO = 0.3

    def __init__(self, weight_preference: float = 0.5, weight_review_volume: float = 0.3,
                 weight_like_ratio: float = 0.2):
        """Initialize scoring service with custom weights if provided"""
        self.WEIGHT_PREFERENCE = weight_preference
        self.WEIGHT_REVIEW_VOLUME = weight_review_volume
        self.WEIGHT_LIKE_RATIO = weight_like_ratio

        # Validate that weights sum to approximately 1.0
        total_weight = weight_preference + weight_review_volume + weight_like_ratio
        if abs(total_weight - 1.0) > 0.01:
            logger.warning(f"Weights sum to {total_weight}, consider normalizing")

    # Tag preferences

    @staticmethod
    def get_tag_preferences(user) -> Dict[int, int]:
        """
        Sum of +1 (liked) / -1 (disliked) survey answers per tag id.
        Tags the user never swiped on are absent.
        """
        if user is None or not user.is_authenticated:
            return {}

        rows = (
            SurveyPreference.objects
            .filter(user=user)
            .values('poi__tags')
            .annotate(score=Sum(Case(
                When(liked=True, then=1),
                default=-1,
                output_field=IntegerField(),
            )))
        )
        return {row['poi__tags']: row['score'] for row in rows if row['poi__tags'] is not None}

    def tag_preference_list(self, user) -> List[Dict]:
        """Every tag with the user's liked_score (0 when unknown or anonymous)"""
        scores = self.get_tag_preferences(user)
        return [
            {'tag_id': tag.id, 'name': tag.name, 'liked_score': scores.get(tag.id, 0)}
            for tag in Tag.objects.order_by('id')
        ]

    # Scoring

    def generate_recommendations(self, user, context: ContextDTO) -> List[ScoredPOI]:
        """
        Orchestrator method that generates top-k recommendations for a user.

        Steps:
        1. Fetch candidate POIs with the map search, boxed around the user
        2. Compute preference, review volume and like ratio components
        3. Combine them with the weights
        4. Return top-k sorted by score

        Returns:
            List[ScoredPOI]: Top-k sorted results by score (highest first)
        """
        candidates = self._candidates(user, context)
        if not candidates:
            return []

        preference_scores = self._preference_scores(user, candidates)
        volume_scores, like_ratios = self._review_scores(candidates)

        scored_pois: List[ScoredPOI] = []
        for poi in candidates:
            preference = preference_scores[poi.id]
            volume = volume_scores[poi.id]
            like_ratio = like_ratios[poi.id]
            final_score = (
                (preference * self.WEIGHT_PREFERENCE) +
                (volume * self.WEIGHT_REVIEW_VOLUME) +
                (like_ratio * self.WEIGHT_LIKE_RATIO)
            )
            scored_pois.append(ScoredPOI(
                poi_id=poi.id,
                latitude=poi.latitude,
                longitude=poi.longitude,
                final_score=final_score,
                preference_score=preference,
                review_volume_score=volume,
                like_ratio_score=like_ratio,
            ))

        # stable sort keeps search order between equal scores
        scored_pois.sort(key=lambda x: x.final_score, reverse=True)
        logger.info(f"Scored {len(scored_pois)} candidates, returning top {context.max_results}")
        return scored_pois[:context.max_results]

    def popularity_scores(self, user, context: ContextDTO) -> List[ScoredPOI]:
        """
        Scores every search candidate by community signals only:
        0.5 * review volume + 0.3 * like ratio, highest first.
        """
        candidates = self._candidates(user, context)
        volume_scores, like_ratios = self._review_scores(candidates)

        scored_pois = [
            ScoredPOI(
                poi_id=poi.id,
                latitude=poi.latitude,
                longitude=poi.longitude,
                final_score=(
                    volume_scores[poi.id] * self.POPULARITY_WEIGHT_REVIEW_VOLUME +
                    like_ratios[poi.id] * self.POPULARITY_WEIGHT_LIKE_RATIO
                ),
                review_volume_score=volume_scores[poi.id],
                like_ratio_score=like_ratios[poi.id],
            )
            for poi in candidates
        ]
        scored_pois.sort(key=lambda x: x.final_score, reverse=True)
        return scored_pois

    @staticmethod
    def normalize_min_max(values: Dict) -> Dict:
        """Min-max normalisation; all zeros when every value is the same"""
        if not values:
            return {}
        low, high = min(values.values()), max(values.values())
        delta = high - low
        if delta <= 0:
            return {key: 0.0 for key in values}
        return {key: (value - low) / delta for key, value in values.items()}

    @staticmethod
    def normalize_log_volume(counts: Dict) -> Dict:
        """log2(1 + n) / log2(1 + max n); all zeros when nobody has reviews"""
        if not counts:
            return {}
        max_log = math.log2(1 + max(counts.values()))
        if max_log <= 0:
            return {key: 0.0 for key in counts}
        return {key: math.log2(1 + count) / max_log for key, count in counts.items()}

    # Helper methods

    @staticmethod
    def _candidates(user, context: ContextDTO) -> List:
        recommend_from = None
        if context.user_location is not None:
            recommend_from = (context.user_location.latitude, context.user_location.longitude)
        return list(GeoService.search(
            user=user,
            show_visited=context.show_visited,
            show_unvisited=context.show_unvisited,
            excluded_tags=context.excluded_tags,
            recommend_from=recommend_from,
            radius_km=context.radius_km,
        ))

    def _preference_scores(self, user, candidates: Iterable) -> Dict:
        tag_scores = self.get_tag_preferences(user)
        raw = {poi.id: 0 for poi in candidates}
        if tag_scores:
            links = (
                POI.tags.through.objects
                .filter(poi_id__in=list(raw), tag_id__in=list(tag_scores))
                .values_list('poi_id', 'tag_id')
            )
            for poi_id, tag_id in links:
                raw[poi_id] += tag_scores[tag_id]
        return self.normalize_min_max(raw)

    def _review_scores(self, candidates: Iterable) -> Tuple[Dict, Dict]:
        ids = [poi.id for poi in candidates]
        counts = {poi_id: 0 for poi_id in ids}
        like_ratios = defaultdict(float)

        rows = (
            Review.objects
            .filter(poi_id__in=ids)
            .values('poi_id')
            .annotate(total=Count('id'), likes=Count('id', filter=Q(liked=True)))
        )
        for row in rows:
            counts[row['poi_id']] = row['total']
            like_ratios[row['poi_id']] = row['likes'] / row['total'] if row['total'] else 0.0

        return self.normalize_log_volume(counts), {poi_id: like_ratios[poi_id] for poi_id in ids}
