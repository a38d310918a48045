import uuid
from django.db import models
from django.conf import settings
from locations.models import POI


class Review(models.Model):
    """
    A user's verdict on a POI: liked or not, with an optional short comment.
    Review counts and like ratios feed ScoringService.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='reviews')
    poi = models.ForeignKey(POI, on_delete=models.CASCADE, related_name='reviews')
    liked = models.BooleanField()
    comment = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'recommendations_review'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['poi', 'liked'], name='review_poi_liked_idx'),
            models.Index(fields=['created_at'], name='review_created_idx'),
        ]
        unique_together = ('user', 'poi')

    def __str__(self):
        verdict = "likes" if self.liked else "dislikes"
        return f"{self.user.username} {verdict} {self.poi.name}"


class ReviewImage(models.Model):
    review = models.ForeignKey(Review, on_delete=models.CASCADE, related_name='images')
    image_url = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'recommendations_review_image'
        ordering = ['created_at', 'id']

    def __str__(self):
        return self.image_url


class SurveyPreference(models.Model):
    """
    Like/dislike answer from the Surprise Me survey.
    Summed per tag to build the user's tag preference scores.
    """
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='survey_preferences')
    poi = models.ForeignKey(POI, on_delete=models.CASCADE, related_name='survey_preferences')
    liked = models.BooleanField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'recommendations_survey_preference'
        unique_together = ('user', 'poi')
        indexes = [
            models.Index(fields=['user', 'liked'], name='survey_user_liked_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.poi.name}: {'like' if self.liked else 'dislike'}"
