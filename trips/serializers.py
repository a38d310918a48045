"""
DRF Serializers for Itinerary and ItineraryItem models.
"""
from rest_framework import serializers
from .models import Itinerary, ItineraryItem


class ItineraryItemSerializer(serializers.ModelSerializer):
    """A stop as shown in the itinerary side panel, keyed by POI id"""
    id = serializers.UUIDField(source='poi.id', read_only=True)
    name = serializers.CharField(source='poi.name', read_only=True)
    latitude = serializers.FloatField(source='poi.latitude', read_only=True)
    longitude = serializers.FloatField(source='poi.longitude', read_only=True)

    class Meta:
        model = ItineraryItem
        fields = [
            'id',
            'name',
            'checked',
            'order_priority',
            'latitude',
            'longitude',
        ]


class ItinerarySerializer(serializers.ModelSerializer):
    """Serializer for Itinerary model"""
    pois = serializers.SerializerMethodField()

    class Meta:
        model = Itinerary
        fields = [
            'id',
            'name',
            'pois',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'pois', 'created_at', 'updated_at']

    def get_pois(self, obj):
        items = obj.items.select_related('poi').order_by('order_priority')
        return ItineraryItemSerializer(items, many=True).data

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name is required")
        return value


class ItineraryListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list views"""

    class Meta:
        model = Itinerary
        fields = ['id', 'name']


class AddPOISerializer(serializers.Serializer):
    poi_id = serializers.UUIDField()


class ReorderEntrySerializer(serializers.Serializer):
    id = serializers.UUIDField()
    order_priority = serializers.IntegerField(min_value=1)


class ReorderSerializer(serializers.Serializer):
    pois = ReorderEntrySerializer(many=True)

    def validate_pois(self, value):
        ids = [entry['id'] for entry in value]
        priorities = [entry['order_priority'] for entry in value]
        if len(set(ids)) != len(ids):
            raise serializers.ValidationError("Duplicate POI ids")
        if len(set(priorities)) != len(priorities):
            raise serializers.ValidationError("Duplicate order priorities")
        return value


class CheckPOISerializer(serializers.Serializer):
    poi_id = serializers.UUIDField()
    checked = serializers.BooleanField()
