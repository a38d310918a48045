from rest_framework import serializers
from .models import UserProfile


class UserProfileSerializer(serializers.ModelSerializer):
    username= serializers.CharField(source="user.username",read_only=True)
    display_name = serializers.CharField(read_only=True)
    itinerary_count = serializers.IntegerField(read_only=True)
    review_count = serializers.IntegerField(read_only=True)
    visited_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = UserProfile
        fields = [
            "id",
            "username",
            "display_name",
            "avatar_url",
            "bio",
            "itinerary_count",
            "review_count",
            "visited_count",
        ]
