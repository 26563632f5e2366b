from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Account endpoints (at /api/auth/): profile, trust score, reviews
    path('api/auth/', include('accounts.urls')),

    # Rides endpoints (at /api/rides/): rides, booking requests, demands, offers, matching
    path('api/rides/', include('rides.urls')),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
