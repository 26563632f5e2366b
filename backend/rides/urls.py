from django.urls import path
from . import views

app_name = 'rides'

urlpatterns = [
    # Rides
    path('', views.ride_collection, name='ride-list'),
    path('<int:ride_id>/', views.ride_detail, name='ride-detail'),

    # Booking requests
    path('<int:ride_id>/requests/', views.ride_requests, name='ride-requests'),
    path('requests/mine/', views.my_booking_requests, name='my-requests'),
    path('requests/<int:request_id>/cancel/', views.cancel_booking_request, name='cancel-request'),

    # Demands & offers
    path('demands/', views.demand_collection, name='demand-list'),
    path('demands/<int:demand_id>/', views.demand_detail, name='demand-detail'),
    path('demands/<int:demand_id>/offers/', views.demand_offers, name='demand-offers'),

    # Matching
    path('demands/<int:demand_id>/matches/', views.demand_matches, name='demand-matches'),
    path('recommendations/', views.ride_recommendations, name='recommendations'),
]
