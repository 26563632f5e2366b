from rest_framework import serializers
from django.contrib.auth import get_user_model

from .models import BookingRequest, Ride, RideDemand, RideOffer

User = get_user_model()


class UserBasicSerializer(serializers.ModelSerializer):
    """Public view of a ride member"""

    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name', 'is_verified']
        read_only_fields = fields


class RideSerializer(serializers.ModelSerializer):
    """Serializer for published rides"""
    owner = UserBasicSerializer(read_only=True)
    participants = serializers.PrimaryKeyRelatedField(many=True, read_only=True)

    class Meta:
        model = Ride
        fields = ['id', 'owner', 'title', 'origin_address', 'origin_latitude', 'origin_longitude',
                  'destination_address', 'destination_latitude', 'destination_longitude',
                  'route', 'stops', 'departure_time', 'seats_total', 'seats_available',
                  'price', 'notes', 'participants', 'status', 'version', 'created_at', 'updated_at']
        read_only_fields = fields


class RideCreateSerializer(serializers.Serializer):
    """Input for publishing a ride"""
    title = serializers.CharField(max_length=120, required=False, allow_blank=True, default='')
    origin_address = serializers.CharField(required=False, allow_blank=True, default='')
    origin_latitude = serializers.DecimalField(max_digits=9, decimal_places=6)
    origin_longitude = serializers.DecimalField(max_digits=9, decimal_places=6)
    destination_address = serializers.CharField(required=False, allow_blank=True, default='')
    destination_latitude = serializers.DecimalField(max_digits=9, decimal_places=6)
    destination_longitude = serializers.DecimalField(max_digits=9, decimal_places=6)
    route = serializers.ListField(
        child=serializers.ListField(child=serializers.FloatField(), min_length=2, max_length=2),
        required=False,
        default=list,
    )
    stops = serializers.ListField(child=serializers.DictField(), required=False, default=list)
    departure_time = serializers.DateTimeField()
    seats_total = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False, default=0)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class RideActionSerializer(serializers.Serializer):
    """Complete or cancel a ride"""
    action = serializers.ChoiceField(choices=['complete', 'cancel'])


class BookingRequestSerializer(serializers.ModelSerializer):
    """Serializer for booking requests"""
    passenger = UserBasicSerializer(read_only=True)

    class Meta:
        model = BookingRequest
        fields = ['id', 'ride', 'passenger', 'seats_requested', 'message', 'status',
                  'created_at', 'decided_at']
        read_only_fields = fields


class BookingRequestCreateSerializer(serializers.Serializer):
    seats_requested = serializers.IntegerField(default=1)
    message = serializers.CharField(required=False, allow_blank=True, default='')


class BookingDecisionSerializer(serializers.Serializer):
    request_id = serializers.IntegerField()
    action = serializers.CharField()


class RideOfferSerializer(serializers.ModelSerializer):
    """Serializer for driver offers on a demand"""
    driver = UserBasicSerializer(read_only=True)
    carpool_ride = RideSerializer(read_only=True)

    class Meta:
        model = RideOffer
        fields = ['id', 'demand', 'driver', 'carpool_ride', 'message', 'status',
                  'offered_at', 'responded_at']
        read_only_fields = fields


class RideDemandSerializer(serializers.ModelSerializer):
    """Serializer for ride demands with their offers"""
    passenger = UserBasicSerializer(read_only=True)
    offers = RideOfferSerializer(many=True, read_only=True)

    class Meta:
        model = RideDemand
        fields = ['id', 'passenger', 'title', 'origin_address', 'origin_latitude', 'origin_longitude',
                  'destination_address', 'destination_latitude', 'destination_longitude',
                  'desired_time', 'seats_needed', 'max_price', 'notes', 'status', 'version',
                  'offers', 'created_at', 'updated_at']
        read_only_fields = fields


class RideDemandCreateSerializer(serializers.Serializer):
    """Input for publishing a ride demand"""
    title = serializers.CharField(max_length=120, required=False, allow_blank=True, default='')
    origin_address = serializers.CharField()
    origin_latitude = serializers.DecimalField(max_digits=9, decimal_places=6)
    origin_longitude = serializers.DecimalField(max_digits=9, decimal_places=6)
    destination_address = serializers.CharField()
    destination_latitude = serializers.DecimalField(max_digits=9, decimal_places=6)
    destination_longitude = serializers.DecimalField(max_digits=9, decimal_places=6)
    desired_time = serializers.DateTimeField()
    seats_needed = serializers.IntegerField(default=1)
    max_price = serializers.DecimalField(max_digits=8, decimal_places=2, required=False, allow_null=True, default=None)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class RideOfferCreateSerializer(serializers.Serializer):
    ride_id = serializers.IntegerField()
    message = serializers.CharField(required=False, allow_blank=True, default='')


class OfferDecisionSerializer(serializers.Serializer):
    offer_id = serializers.IntegerField()
    action = serializers.CharField()


def serialize_match(match) -> dict:
    """Wire form of a ranked RideMatch"""
    route = match.route_match
    return {
        'ride': RideSerializer(match.candidate.ride).data,
        'match_score': match.match_score,
        'breakdown': match.breakdown,
        'route_match': {
            'score': route.score,
            'match_type': route.match_type,
            'origin_deviation': route.origin_deviation,
            'destination_deviation': route.destination_deviation,
            'route_deviation': route.route_deviation,
        },
        'time_difference_hours': match.time_match.time_difference_hours,
        'user_factors': match.user_match.factors,
        'recommendation': match.recommendation,
    }


def serialize_recommendation(recommendation) -> dict:
    return {
        'ride': RideSerializer(recommendation.candidate.ride).data,
        'recommendation_score': recommendation.recommendation_score,
        'factors': recommendation.factors,
    }
