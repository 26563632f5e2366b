"""Rides app configuration."""

from django.apps import AppConfig


class RidesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'rides'

    def ready(self):
        # One repository per process, shared by every workflow
        from realtime.notifications import ChannelsNotifier
        from services.ride_management import (
            BookingRequestWorkflow,
            DemandOfferWorkflow,
            RideInventory,
            RideRepository,
        )

        self.repository = RideRepository()
        self.notifier = ChannelsNotifier()
        self.inventory = RideInventory(self.repository)
        self.booking = BookingRequestWorkflow(self.repository, self.inventory, self.notifier)
        self.demands = DemandOfferWorkflow(self.repository, self.notifier)
