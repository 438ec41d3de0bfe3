# api/urls.py
from django.urls import include, path, re_path
from rest_framework.routers import DefaultRouter

from . import streams, views

router = DefaultRouter()
router.register(r'blood-requests', views.BloodRequestViewSet, basename='blood-request')
router.register(r'donations', views.DonationViewSet, basename='donation')

app_name = 'api'

urlpatterns = [
    path('', include(router.urls)),

    # Donor matching
    re_path(r'^matching/nearby-donors/?$', views.nearby_donors, name='nearby-donors'),
    re_path(r'^matching/donors-by-location/?$', views.donors_by_location, name='donors-by-location'),
    re_path(r'^matching/receivers-by-location/?$', views.receivers_by_location, name='receivers-by-location'),
    re_path(r'^matching/cache/stats/?$', views.cache_stats, name='cache-stats'),

    # Live alerts
    re_path(r'^alerts/stream/?$', streams.alert_stream, name='alert-stream'),
    re_path(r'^alerts/recent/?$', views.alerts_recent, name='alerts-recent'),
    re_path(r'^alerts/stats/?$', views.alert_stats, name='alert-stats'),
]

# Available endpoints:
# GET    /api/matching/nearby-donors                 - Eligible donors near a point
# GET    /api/matching/donors-by-location            - Eligible donors by city/area text
# GET    /api/matching/receivers-by-location         - Open requests by city/area text
# GET    /api/matching/cache/stats                   - Cache hit/miss counters
#
# GET    /api/alerts/stream                          - SSE emergency alerts
# GET    /api/alerts/recent                          - Recent alerts (polling)
# GET    /api/alerts/stats                           - Connected subscribers
#
# GET    /api/blood-requests/                        - List blood requests
# POST   /api/blood-requests/                        - Create (may broadcast)
# GET    /api/blood-requests/{id}/                   - Get specific request
# PATCH  /api/blood-requests/{id}/                   - Update request
# DELETE /api/blood-requests/{id}/                   - Delete request
# GET    /api/blood-requests/pending-verification/   - Requests awaiting approval
# POST   /api/blood-requests/{id}/verify-broadcast/  - Approve/reject and broadcast
#
# GET    /api/donations/                             - List donations (?donor=)
# POST   /api/donations/schedule/                    - Schedule a donation
# GET    /api/donations/{id}/                        - Get specific donation
# PUT    /api/donations/{id}/complete/               - Mark completed
# PUT    /api/donations/{id}/cancel/                 - Cancel
