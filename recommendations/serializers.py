"""
Serializers for the recommendations module.
"""
from rest_framework import serializers
from recommendations.models import Review, ReviewImage


class ReviewSerializer(serializers.ModelSerializer):
    author_name = serializers.SerializerMethodField()
    images = serializers.SerializerMethodField()
    image_urls = serializers.ListField(
        child=serializers.CharField(max_length=255),
        write_only=True,
        required=False,
    )

    class Meta:
        model = Review
        fields = [
            'id', 'user', 'poi', 'author_name', 'liked', 'comment',
            'images', 'image_urls', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'user', 'created_at', 'updated_at']

    def get_author_name(self, obj):
        return obj.user.first_name or obj.user.username

    def get_images(self, obj):
        return [image.image_url for image in obj.images.all()]

    def create(self, validated_data):
        image_urls = validated_data.pop('image_urls', [])
        review = super().create(validated_data)
        ReviewImage.objects.bulk_create([ReviewImage(review=review, image_url=url) for url in image_urls])
        return review

    def update(self, instance, validated_data):
        # images go through the dedicated images endpoint; a review never moves to another POI
        validated_data.pop('image_urls', None)
        validated_data.pop('poi', None)
        return super().update(instance, validated_data)


class ReviewImagesUpdateSerializer(serializers.Serializer):
    images = serializers.ListField(child=serializers.CharField(max_length=255), required=False, default=list)
    delete_images = serializers.ListField(child=serializers.CharField(max_length=255), required=False, default=list)


class PreferenceSerializer(serializers.Serializer):
    poi_id = serializers.UUIDField()
    liked = serializers.BooleanField()


class IndicatePreferenceSerializer(serializers.Serializer):
    preferences = PreferenceSerializer(many=True)
    remove_old = serializers.BooleanField(required=False, default=False)


class TagWeightsSerializer(serializers.Serializer):
    tag_weights = serializers.DictField()

    def validate_tag_weights(self, value):
        for name, weight in value.items():
            if isinstance(weight, bool) or not isinstance(weight, (int, float)):
                raise serializers.ValidationError(f"Weight for {name} must be a number")
        return value


class PointDTOSerializer(serializers.Serializer):
    """Serializer for PointDTO"""
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)


class ContextDTOSerializer(serializers.Serializer):
    """Serializer for ContextDTO"""
    user_location = PointDTOSerializer(required=False, allow_null=True)
    radius_km = serializers.FloatField(required=False, default=5.0, min_value=0.1)
    show_visited = serializers.BooleanField(required=False, default=True)
    show_unvisited = serializers.BooleanField(required=False, default=True)
    excluded_tags = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    max_results = serializers.IntegerField(required=False, default=5, min_value=1, max_value=100)


class ScoredPOISerializer(serializers.Serializer):
    """Serializer for ScoredPOI DTO"""
    poi_id = serializers.UUIDField()
    latitude = serializers.FloatField()
    longitude = serializers.FloatField()
    final_score = serializers.FloatField()
    preference_score = serializers.FloatField()
    review_volume_score = serializers.FloatField()
    like_ratio_score = serializers.FloatField()
