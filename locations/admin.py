from django.contrib import admin
from .models import POI, POIImage, Tag


class POIImageInline(admin.TabularInline):
    model = POIImage
    extra = 0
    readonly_fields = ['created_at']


@admin.register(POI)
class POIAdmin(admin.ModelAdmin):
    """
    Admin interface for POI.
    """
    list_display = ['name', 'latitude', 'longitude', 'uploader', 'created_at']
    list_filter = ['tags', 'created_at']
    search_fields = ['name', 'address', 'external_id']
    readonly_fields = ['id', 'created_at', 'updated_at']
    filter_horizontal = ['tags']
    inlines = [POIImageInline]

    fieldsets = (
        ('Basic Information', {
            'fields': ('id', 'name', 'description', 'address', 'opening_hours')
        }),
        ('Location', {
            'fields': ('latitude', 'longitude')
        }),
        ('Classification', {
            'fields': ('tags', 'external_id', 'uploader')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    list_display = ['name']
    search_fields = ['name']
