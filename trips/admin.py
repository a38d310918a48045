from django.contrib import admin
from .models import Itinerary, ItineraryItem


class ItineraryItemInline(admin.TabularInline):
    model = ItineraryItem
    extra = 0
    ordering = ['order_priority']
    readonly_fields = ['created_at']


@admin.register(Itinerary)
class ItineraryAdmin(admin.ModelAdmin):
    """
    Admin interface for Itinerary model.
    """
    list_display = ['name', 'user', 'created_at']
    list_filter = ['created_at']
    search_fields = ['name', 'user__username']
    readonly_fields = ['id', 'created_at', 'updated_at']
    date_hierarchy = 'created_at'
    inlines = [ItineraryItemInline]

    def get_queryset(self, request):
        """Optimize queryset with select_related"""
        queryset = super().get_queryset(request)
        return queryset.select_related('user')


@admin.register(ItineraryItem)
class ItineraryItemAdmin(admin.ModelAdmin):
    list_display = ['itinerary', 'poi', 'order_priority', 'checked', 'created_at']
    list_filter = ['checked']
    search_fields = ['itinerary__name', 'poi__name']
    ordering = ['itinerary', 'order_priority']

    def get_queryset(self, request):
        queryset = super().get_queryset(request)
        return queryset.select_related('itinerary', 'poi')
