"""
Data Transfer Objects (DTOs) for context passing and results in the recommendation system.
"""
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID


@dataclass
class PointDTO:
    """Represents a geographic point (latitude, longitude)"""
    latitude: float
    longitude: float


@dataclass
class ContextDTO:
    """
    Context information passed to the recommendation engine.
    Mirrors the map filter panel plus the user's position.
    """
    user_location: Optional[PointDTO]
    radius_km: float = 5.0  # Half side of the search box
    show_visited: bool = True
    show_unvisited: bool = True
    excluded_tags: List[int] = field(default_factory=list)
    max_results: int = 5  # Number of recommendations to return


@dataclass
class ScoredPOI:
    """
    POI with its computed recommendation score.
    Returned by ScoringService.generate_recommendations().
    """
    poi_id: UUID
    latitude: float
    longitude: float
    final_score: float

    # Breakdown of score components
    preference_score: float = 0.0
    review_volume_score: float = 0.0
    like_ratio_score: float = 0.0
