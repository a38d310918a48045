
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/user/', include('user.urls')),
    path('api/locations/', include('locations.urls')),
    path('api/trips/', include('trips.urls')),
    path('api/recommendations/', include('recommendations.urls')),
    path('api/chatbot/', include('chatbot.urls')),
]
