"""
URL configuration for the recommendations module.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from recommendations.views import (
    ReviewViewSet,
    SurveyPOIsView, IndicatePreferenceView,
    TagPreferencesView, SuggestView,
    TagWeightsRecommendationView,
    GenerateRecommendationsView, PopularityView,
)

router = DefaultRouter()
router.register(r'reviews', ReviewViewSet, basename='review')

app_name = 'recommendations'

urlpatterns = [
    path('', include(router.urls)),
    path('survey/', SurveyPOIsView.as_view(), name='survey_pois'),
    path('preferences/', IndicatePreferenceView.as_view(), name='indicate_preference'),
    path('tag-preferences/', TagPreferencesView.as_view(), name='tag_preferences'),
    path('suggest/', SuggestView.as_view(), name='suggest'),
    path('tag-weights/', TagWeightsRecommendationView.as_view(), name='tag_weights'),
    path('generate/', GenerateRecommendationsView.as_view(), name='generate_recommendations'),
    path('popularity/', PopularityView.as_view(), name='popularity'),
]
