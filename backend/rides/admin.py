"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import BookingRequest, Ride, RideDemand, RideOffer


@admin.register(Ride)
class RideAdmin(admin.ModelAdmin):
    """Published ride admin"""
    list_display = ['id', 'owner', 'departure_time', 'seats_available', 'seats_total', 'status']
    list_filter = ['status', 'departure_time']
    search_fields = ['owner__username', 'origin_address', 'destination_address']
    # Seat counts change only through the booking workflow
    readonly_fields = ['seats_available', 'version', 'created_at', 'updated_at']
    date_hierarchy = 'departure_time'


@admin.register(BookingRequest)
class BookingRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "ride", "passenger", "seats_requested", "status", "created_at", "decided_at")
    list_filter = ("status",)
    search_fields = ("ride__id", "passenger__username")


@admin.register(RideDemand)
class RideDemandAdmin(admin.ModelAdmin):
    list_display = ("id", "passenger", "desired_time", "seats_needed", "status")
    list_filter = ("status",)
    search_fields = ("passenger__username", "origin_address", "destination_address")
    readonly_fields = ("version", "created_at", "updated_at")


@admin.register(RideOffer)
class RideOfferAdmin(admin.ModelAdmin):
    list_display = ("demand", "driver", "carpool_ride", "status", "offered_at", "responded_at")
    list_filter = ("status",)
    search_fields = ("demand__id", "driver__username")
