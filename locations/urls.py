"""
URL routing for locations app.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import POIViewSet, TagViewSet

router = DefaultRouter()
router.register(r'pois', POIViewSet, basename='poi')
router.register(r'tags', TagViewSet, basename='tag')

app_name = 'locations'

urlpatterns = [
    path('', include(router.urls)),
]
