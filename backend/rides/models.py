from django.db import models
from django.db.models import F, Q
from django.conf import settings


class Ride(models.Model):
    """A trip published by a driver with a fixed number of seats."""

    OPEN = 'open'
    FULL = 'full'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    TERMINAL_STATUSES = (COMPLETED, CANCELLED)

    STATUS_CHOICES = [
        (OPEN, 'Open'),
        (FULL, 'Full'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='rides_offered'
    )
    title = models.CharField(max_length=120, blank=True)

    # Origin
    origin_address = models.TextField(blank=True)
    origin_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    origin_longitude = models.DecimalField(max_digits=9, decimal_places=6)

    # Destination
    destination_address = models.TextField(blank=True)
    destination_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    destination_longitude = models.DecimalField(max_digits=9, decimal_places=6)

    # GeoJSON ordering: [[lng, lat], ...]
    route = models.JSONField(default=list, blank=True)
    stops = models.JSONField(default=list, blank=True)

    departure_time = models.DateTimeField()

    # Seat inventory (only RideInventory writes these)
    seats_total = models.PositiveIntegerField()
    seats_available = models.PositiveIntegerField()

    price = models.DecimalField(max_digits=8, decimal_places=2, default=0)
    notes = models.TextField(blank=True)

    participants = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name='joined_rides',
        blank=True
    )

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=OPEN)
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'rides'
        ordering = ['departure_time']
        indexes = [
            models.Index(fields=['status', 'departure_time'], name='ride_status_departure_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(seats_total__gte=1) & Q(seats_available__lte=F('seats_total')),
                name='ride_seats_within_total'
            ),
            models.CheckConstraint(
                condition=(
                    Q(status='open', seats_available__gt=0)
                    | Q(status='full', seats_available=0)
                    | Q(status__in=['completed', 'cancelled'])
                ),
                name='ride_status_matches_seats'
            ),
        ]

    def __str__(self):
        return f"Ride #{self.id} - {self.owner} - {self.status}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES


class BookingRequest(models.Model):
    """A passenger's bid for seats on a specific ride."""

    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'
    ACTIVE_STATUSES = (PENDING, ACCEPTED)

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (ACCEPTED, 'Accepted'),
        (REJECTED, 'Rejected'),
        (CANCELLED, 'Cancelled'),
    ]

    ride = models.ForeignKey(
        Ride,
        on_delete=models.CASCADE,
        related_name='booking_requests'
    )
    passenger = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='booking_requests'
    )

    seats_requested = models.PositiveIntegerField(default=1)
    message = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)

    created_at = models.DateTimeField(auto_now_add=True)
    decided_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'booking_requests'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['ride', 'passenger'],
                condition=Q(status__in=['pending', 'accepted']),
                name='unique_active_booking_request'
            ),
            models.CheckConstraint(
                condition=Q(seats_requested__gte=1),
                name='booking_request_seats_positive'
            ),
        ]

    def __str__(self):
        return f"Request #{self.id} - Ride {self.ride_id} - {self.passenger} - {self.status}"


class RideDemand(models.Model):
    """A passenger's standing request for a ride that drivers answer with offers."""

    OPEN = 'open'
    MATCHED = 'matched'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'

    STATUS_CHOICES = [
        (OPEN, 'Open'),
        (MATCHED, 'Matched'),
        (CANCELLED, 'Cancelled'),
        (COMPLETED, 'Completed'),
    ]

    passenger = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ride_demands'
    )
    title = models.CharField(max_length=120, blank=True)

    origin_address = models.TextField()
    origin_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    origin_longitude = models.DecimalField(max_digits=9, decimal_places=6)

    destination_address = models.TextField()
    destination_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    destination_longitude = models.DecimalField(max_digits=9, decimal_places=6)

    desired_time = models.DateTimeField()
    seats_needed = models.PositiveIntegerField(default=1)
    max_price = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=OPEN)
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'ride_demands'
        ordering = ['desired_time']
        indexes = [
            models.Index(fields=['status', 'desired_time'], name='demand_status_time_idx'),
        ]

    def __str__(self):
        return f"Demand #{self.id} - {self.passenger} - {self.status}"


class RideOffer(models.Model):
    """A driver's proposal to serve a RideDemand with one of their own rides."""

    PENDING = 'pending'
    ACCEPTED = 'accepted'
    DECLINED = 'declined'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (ACCEPTED, 'Accepted'),
        (DECLINED, 'Declined'),
    ]

    demand = models.ForeignKey(
        RideDemand,
        on_delete=models.CASCADE,
        related_name='offers'
    )
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ride_offers'
    )
    carpool_ride = models.ForeignKey(
        Ride,
        on_delete=models.CASCADE,
        related_name='offers'
    )

    message = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)

    offered_at = models.DateTimeField(auto_now_add=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'ride_offers'
        ordering = ['offered_at']
        constraints = [
            models.UniqueConstraint(
                fields=['demand', 'driver', 'carpool_ride'],
                condition=Q(status__in=['pending', 'accepted']),
                name='unique_open_offer_per_ride'
            ),
            models.UniqueConstraint(
                fields=['demand'],
                condition=Q(status='accepted'),
                name='one_accepted_offer_per_demand'
            ),
        ]

    def __str__(self):
        return f"Offer #{self.id} - Demand {self.demand_id} <- Driver {self.driver}"
