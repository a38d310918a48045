"""
Django admin configuration for recommendations models.
"""
from django.contrib import admin
from recommendations.models import Review, ReviewImage, SurveyPreference


class ReviewImageInline(admin.TabularInline):
    model = ReviewImage
    extra = 0


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'poi', 'liked', 'created_at']
    list_filter = ['liked', 'created_at']
    search_fields = ['user__username', 'poi__name', 'comment']
    readonly_fields = ['id', 'created_at', 'updated_at']
    inlines = [ReviewImageInline]


@admin.register(SurveyPreference)
class SurveyPreferenceAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'poi', 'liked', 'updated_at']
    list_filter = ['liked']
    search_fields = ['user__username', 'poi__name']
    readonly_fields = ['created_at', 'updated_at']
