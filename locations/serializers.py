"""
DRF Serializers for POI model and related data.
"""
from django.db import transaction
from rest_framework import serializers

from .models import POI, POIImage, Tag


class TagSerializer(serializers.ModelSerializer):
    class Meta:
        model = Tag
        fields = ['id', 'name']


class POIImageSerializer(serializers.ModelSerializer):
    """Image row as shown in the POI gallery"""

    uploader_name = serializers.CharField(read_only=True)

    class Meta:
        model = POIImage
        fields = ['id', 'image_url', 'created_at', 'uploader_name']
        read_only_fields = ['id', 'created_at']


class POISerializer(serializers.ModelSerializer):
    """Serializer for POI model with images and tags"""

    images = serializers.SerializerMethodField()
    tags = TagSerializer(many=True, read_only=True)

    # Write-only inputs used on create
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    image_urls = serializers.ListField(
        child=serializers.CharField(max_length=255),
        write_only=True,
        required=False,
    )
    tag_ids = serializers.PrimaryKeyRelatedField(
        queryset=Tag.objects.all(),
        many=True,
        write_only=True,
        required=False,
    )

    class Meta:
        model = POI
        fields = [
            'id',
            'name',
            'description',
            'address',
            'latitude',
            'longitude',
            'opening_hours',
            'images',
            'tags',
            'image_urls',
            'tag_ids',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_images(self, obj):
        return [image.image_url for image in obj.images.all()]

    def validate(self, attrs):
        latitude = attrs.get('latitude', getattr(self.instance, 'latitude', None))
        longitude = attrs.get('longitude', getattr(self.instance, 'longitude', None))
        if latitude is not None and not -90 <= latitude <= 90:
            raise serializers.ValidationError({'latitude': 'Latitude must be between -90 and 90'})
        if longitude is not None and not -180 <= longitude <= 180:
            raise serializers.ValidationError({'longitude': 'Longitude must be between -180 and 180'})
        return attrs

    def create(self, validated_data):
        """Create the POI, its images and tag links in one transaction"""
        image_urls = validated_data.pop('image_urls', [])
        tags = validated_data.pop('tag_ids', [])
        uploader = validated_data.get('uploader')

        with transaction.atomic():
            poi = POI.objects.create(**validated_data)
            POIImage.objects.bulk_create([
                POIImage(poi=poi, image_url=url, uploader=uploader) for url in image_urls
            ])
            if tags:
                poi.tags.set(tags)
        return poi

    def update(self, instance, validated_data):
        validated_data.pop('image_urls', None)
        tags = validated_data.pop('tag_ids', None)
        instance = super().update(instance, validated_data)
        if tags is not None:
            instance.tags.set(tags)
        return instance


class POIListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for map markers"""

    class Meta:
        model = POI
        fields = ['id', 'latitude', 'longitude']


class TagCountSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    count = serializers.IntegerField()
