from django.apps import apps
from django.conf import settings
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.utils.api import handles_engine_errors
from services.ride_management.exceptions import ForbiddenError
from services.ride_management.insights import match_rides_for_demand, recommend_rides_for_user
from .models import BookingRequest, Ride, RideDemand
from .serializers import (
    BookingDecisionSerializer,
    BookingRequestCreateSerializer,
    BookingRequestSerializer,
    OfferDecisionSerializer,
    RideActionSerializer,
    RideCreateSerializer,
    RideDemandCreateSerializer,
    RideDemandSerializer,
    RideOfferCreateSerializer,
    RideOfferSerializer,
    RideSerializer,
    serialize_match,
    serialize_recommendation,
)


def _rides():
    return apps.get_app_config('rides')


def _timeout():
    return getattr(settings, 'RIDE_STATEMENT_TIMEOUT', None)


def _invalid(serializer):
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# ==================== Rides ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@handles_engine_errors
def ride_collection(request):
    """GET: open upcoming rides. POST: publish a ride."""
    if request.method == 'GET':
        rides = (
            Ride.objects.filter(status=Ride.OPEN, departure_time__gt=timezone.now())
            .select_related('owner')
            .prefetch_related('participants')[:100]
        )
        return Response(RideSerializer(rides, many=True).data)

    serializer = RideCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)

    ride = _rides().inventory.open_ride(request.user, **serializer.validated_data)
    return Response(RideSerializer(ride).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
@handles_engine_errors
def ride_detail(request, ride_id: int):
    """GET: ride details. PATCH {"action": "complete"|"cancel"}: finish the ride."""
    config = _rides()
    ride = config.repository.get_ride(ride_id)

    if request.method == 'GET':
        return Response(RideSerializer(ride).data)

    serializer = RideActionSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)

    outcome = Ride.COMPLETED if serializer.validated_data['action'] == 'complete' else Ride.CANCELLED
    config.booking.close_ride(ride, request.user, outcome, timeout=_timeout())
    return Response({
        'message': f'Ride {ride.status}',
        'ride': RideSerializer(ride).data,
    })


# ==================== Booking Requests ====================

@api_view(['GET', 'POST', 'PATCH'])
@permission_classes([IsAuthenticated])
@handles_engine_errors
def ride_requests(request, ride_id: int):
    """
    GET: requests on the caller's ride (owner only).
    POST: ask for seats.
    PATCH {"request_id", "action": "accept"|"reject"}: owner decides.
    """
    config = _rides()
    ride = config.repository.get_ride(ride_id)

    if request.method == 'GET':
        if ride.owner_id != request.user.id:
            raise ForbiddenError("Only the ride owner can view its requests")
        booking_requests = ride.booking_requests.select_related('passenger')
        return Response(BookingRequestSerializer(booking_requests, many=True).data)

    if request.method == 'POST':
        serializer = BookingRequestCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        result = config.booking.create(
            ride,
            request.user,
            serializer.validated_data['seats_requested'],
            serializer.validated_data['message'],
            timeout=_timeout(),
        )
        return Response({
            **BookingRequestSerializer(result.request).data,
            'message': result.message,
        }, status=status.HTTP_201_CREATED)

    serializer = BookingDecisionSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)
    booking_request = config.repository.get_request(serializer.validated_data['request_id'])
    result = config.booking.decide(
        ride,
        booking_request,
        request.user,
        serializer.validated_data['action'],
        timeout=_timeout(),
    )
    return Response({
        'message': result.message,
        'request': BookingRequestSerializer(result.request).data,
        'seats_available': result.ride.seats_available,
        'ride_status': result.ride.status,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@handles_engine_errors
def cancel_booking_request(request, request_id: int):
    """Passenger withdraws a pending or accepted request."""
    config = _rides()
    booking_request = config.repository.get_request(request_id)
    result = config.booking.cancel(booking_request, request.user, timeout=_timeout())
    return Response({
        'message': result.message,
        'request': BookingRequestSerializer(result.request).data,
        'seats_available': result.ride.seats_available,
        'ride_status': result.ride.status,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_booking_requests(request):
    """The caller's own booking requests, newest first."""
    booking_requests = BookingRequest.objects.filter(passenger=request.user).select_related('passenger')
    return Response(BookingRequestSerializer(booking_requests, many=True).data)


# ==================== Demands & Offers ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@handles_engine_errors
def demand_collection(request):
    """GET: open demands drivers can answer. POST: publish a demand."""
    if request.method == 'GET':
        demands = (
            RideDemand.objects.filter(status=RideDemand.OPEN, desired_time__gt=timezone.now())
            .select_related('passenger')
            .prefetch_related('offers')[:100]
        )
        return Response(RideDemandSerializer(demands, many=True).data)

    serializer = RideDemandCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)

    demand = _rides().demands.create_demand(request.user, **serializer.validated_data)
    return Response(RideDemandSerializer(demand).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
@handles_engine_errors
def demand_detail(request, demand_id: int):
    """GET: demand with its offers. PATCH {"action": "cancel"}: withdraw it."""
    config = _rides()
    demand = config.repository.get_demand(demand_id)

    if request.method == 'PATCH':
        if request.data.get('action') != 'cancel':
            return Response({'error': "Action must be 'cancel'"}, status=status.HTTP_400_BAD_REQUEST)
        config.demands.cancel_demand(demand, request.user, timeout=_timeout())

    return Response(RideDemandSerializer(demand).data)


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
@handles_engine_errors
def demand_offers(request, demand_id: int):
    """
    POST {"ride_id", "message"}: driver offers one of their rides.
    PATCH {"offer_id", "action": "accept"|"decline"}: passenger decides.
    """
    config = _rides()
    demand = config.repository.get_demand(demand_id)

    if request.method == 'POST':
        serializer = RideOfferCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        ride = config.repository.get_ride(serializer.validated_data['ride_id'])
        offer = config.demands.make_offer(
            demand,
            request.user,
            ride,
            serializer.validated_data['message'],
            timeout=_timeout(),
        )
        return Response(RideOfferSerializer(offer).data, status=status.HTTP_201_CREATED)

    serializer = OfferDecisionSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)
    offer = config.repository.get_offer(serializer.validated_data['offer_id'])
    result = config.demands.decide(
        demand,
        offer,
        request.user,
        serializer.validated_data['action'],
        timeout=_timeout(),
    )
    return Response({
        'message': result.message,
        'demand': RideDemandSerializer(result.demand).data,
    })


# ==================== Matching ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated])
@handles_engine_errors
def demand_matches(request, demand_id: int):
    """Rides ranked by compatibility with the caller's demand."""
    config = _rides()
    demand = config.repository.get_demand(demand_id)
    if demand.passenger_id != request.user.id:
        raise ForbiddenError("Only the passenger who posted the demand can view its matches")

    matches = match_rides_for_demand(config.repository, demand)
    return Response({
        'demand_id': demand.pk,
        'count': len(matches),
        'matches': [serialize_match(m) for m in matches],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@handles_engine_errors
def ride_recommendations(request):
    """Upcoming rides similar to the caller's booking history."""
    recommendations = recommend_rides_for_user(_rides().repository, request.user)
    return Response({
        'count': len(recommendations),
        'recommendations': [serialize_recommendation(r) for r in recommendations],
    })
