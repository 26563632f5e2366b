from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, Mock, patch

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from app_backend.views import health_check
from realtime.notifications import ChannelsNotifier, send_user_event
from services.ride_management import (
	BookingRequestWorkflow,
	ConflictError,
	DemandOfferWorkflow,
	ForbiddenError,
	InternalError,
	NotFoundError,
	RideInventory,
	RideRepository,
	ValidationError,
	normalize_user_id,
)
from .models import BookingRequest, Ride, RideDemand, RideOffer
from .tasks import deliver_user_event_task
from .views import (
	cancel_booking_request,
	demand_collection,
	demand_matches,
	demand_offers,
	ride_collection,
	ride_detail,
	ride_requests,
)


def make_user(username):
	return User.objects.create_user(username=username, password='pass1234')


class WorkflowTestMixin:
	def setUp(self):
		self.repository = RideRepository()
		self.notifier = Mock()
		self.inventory = RideInventory(self.repository)
		self.booking = BookingRequestWorkflow(self.repository, self.inventory, self.notifier)
		self.demands = DemandOfferWorkflow(self.repository, self.notifier)

		self.driver = make_user('driver')
		self.alice = make_user('alice')
		self.bob = make_user('bob')

	def open_ride(self, owner=None, seats=4, departure=None, **fields):
		return self.inventory.open_ride(
			owner or self.driver,
			origin_latitude=Decimal('36.800000'),
			origin_longitude=Decimal('10.180000'),
			destination_latitude=Decimal('36.850000'),
			destination_longitude=Decimal('10.250000'),
			departure_time=departure or timezone.now() + timedelta(days=1),
			seats_total=seats,
			**fields
		)

	def open_demand(self, passenger=None, **overrides):
		data = dict(
			origin_address='Lac 1',
			origin_latitude=Decimal('36.810000'),
			origin_longitude=Decimal('10.190000'),
			destination_address='La Marsa',
			destination_latitude=Decimal('36.840000'),
			destination_longitude=Decimal('10.240000'),
			desired_time=timezone.now() + timedelta(days=1),
		)
		data.update(overrides)
		return self.demands.create_demand(passenger or self.alice, **data)


class RideInventoryTests(WorkflowTestMixin, TestCase):
	def test_open_ride_starts_with_every_seat(self):
		ride = self.open_ride(seats=3, title='Morning commute')

		self.assertEqual(ride.status, Ride.OPEN)
		self.assertEqual(ride.seats_available, 3)
		self.assertEqual(ride.version, 0)
		self.assertEqual(ride.title, 'Morning commute')

	def test_open_ride_validates_input(self):
		with self.assertRaises(ValidationError):
			self.open_ride(seats=0)
		with self.assertRaises(ValidationError):
			self.inventory.open_ride(
				self.driver,
				origin_latitude=95,
				origin_longitude=10,
				destination_latitude=36.85,
				destination_longitude=10.25,
				departure_time=timezone.now(),
				seats_total=2,
			)
		with self.assertRaises(ValidationError):
			self.open_ride(route=[[10.18, 36.80], [500, 36.8]])

	def test_reserving_the_last_seat_marks_ride_full(self):
		ride = self.open_ride(seats=2)
		self.inventory.reserve_if_open(ride, 2)

		ride.refresh_from_db()
		self.assertEqual(ride.seats_available, 0)
		self.assertEqual(ride.status, Ride.FULL)
		self.assertEqual(ride.version, 1)

	def test_reserve_more_than_available_is_a_conflict(self):
		ride = self.open_ride(seats=2)
		with self.assertRaises(ConflictError):
			self.inventory.reserve_if_open(ride, 3)

		ride.refresh_from_db()
		self.assertEqual(ride.seats_available, 2)
		self.assertEqual(ride.version, 0)

	def test_reserve_on_full_ride_is_a_conflict(self):
		ride = self.open_ride(seats=1)
		self.inventory.reserve_if_open(ride, 1)
		with self.assertRaises(ConflictError):
			self.inventory.reserve_if_open(ride, 1)

	def test_release_reopens_a_full_ride(self):
		ride = self.open_ride(seats=2)
		self.inventory.reserve_if_open(ride, 2)
		self.inventory.release(ride, 1)

		ride.refresh_from_db()
		self.assertEqual(ride.seats_available, 1)
		self.assertEqual(ride.status, Ride.OPEN)

	def test_release_cannot_exceed_total(self):
		ride = self.open_ride(seats=2)
		with self.assertRaises(ConflictError):
			self.inventory.release(ride, 1)

	def test_stale_instance_cannot_overbook(self):
		ride = self.open_ride(seats=4)
		first = Ride.objects.get(pk=ride.pk)
		second = Ride.objects.get(pk=ride.pk)

		self.inventory.reserve_if_open(first, 3)
		with self.assertRaises(ConflictError):
			self.inventory.reserve_if_open(second, 2)

		ride.refresh_from_db()
		self.assertEqual(ride.seats_available, 1)
		self.assertEqual(ride.status, Ride.OPEN)

	def test_stale_instance_retries_when_seats_remain(self):
		ride = self.open_ride(seats=4)
		first = Ride.objects.get(pk=ride.pk)
		second = Ride.objects.get(pk=ride.pk)

		self.inventory.reserve_if_open(first, 1)
		self.inventory.reserve_if_open(second, 1)

		ride.refresh_from_db()
		self.assertEqual(ride.seats_available, 2)
		self.assertEqual(ride.version, 2)

	def test_owner_can_cancel_before_departure(self):
		ride = self.open_ride()
		self.inventory.terminate(ride, Ride.CANCELLED, self.driver)
		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.CANCELLED)

	def test_only_owner_can_cancel(self):
		ride = self.open_ride()
		with self.assertRaises(ForbiddenError):
			self.inventory.terminate(ride, Ride.CANCELLED, self.alice)

	def test_complete_requires_departure_to_have_passed(self):
		ride = self.open_ride()
		with self.assertRaises(ConflictError):
			self.inventory.terminate(ride, Ride.COMPLETED, self.driver)

	def test_participant_can_complete_after_departure(self):
		ride = self.open_ride(departure=timezone.now() - timedelta(hours=1))
		ride.participants.add(self.alice)
		self.inventory.terminate(ride, Ride.COMPLETED, self.alice)
		self.assertEqual(ride.status, Ride.COMPLETED)

	def test_terminal_states_are_final(self):
		ride = self.open_ride()
		self.inventory.terminate(ride, Ride.CANCELLED, self.driver)
		with self.assertRaises(ConflictError):
			self.inventory.terminate(ride, Ride.CANCELLED, self.driver)
		with self.assertRaises(ConflictError):
			self.inventory.reserve_if_open(ride, 1)
		with self.assertRaises(ConflictError):
			self.inventory.release(ride, 1)

	def test_ensure_invariants_detects_inconsistent_state(self):
		ride = self.open_ride(seats=2)
		ride.seats_available = 0
		with self.assertRaises(InternalError):
			self.inventory.ensure_invariants(ride)


class BookingRequestWorkflowTests(WorkflowTestMixin, TestCase):
	def test_create_request_notifies_owner(self):
		ride = self.open_ride()
		result = self.booking.create(ride, self.alice, 2, 'Two of us')

		self.assertEqual(result.request.status, BookingRequest.PENDING)
		self.assertEqual(result.request.seats_requested, 2)
		self.notifier.notify.assert_called_once()
		user_id, event_type, payload = self.notifier.notify.call_args[0]
		self.assertEqual((user_id, event_type), (self.driver.id, 'booking_requested'))
		self.assertEqual(payload['request_id'], result.request.id)

	def test_request_more_seats_than_available_writes_nothing(self):
		ride = self.open_ride(seats=2)
		with self.assertRaises(ConflictError):
			self.booking.create(ride, self.alice, 3)

		self.assertFalse(BookingRequest.objects.exists())
		self.notifier.notify.assert_not_called()

	def test_request_validation(self):
		ride = self.open_ride()
		with self.assertRaises(ValidationError):
			self.booking.create(ride, self.alice, 0)
		with self.assertRaises(ConflictError):
			self.booking.create(ride, self.driver, 1)

	def test_only_one_active_request_per_passenger(self):
		ride = self.open_ride()
		self.booking.create(ride, self.alice, 1)
		with self.assertRaises(ConflictError):
			self.booking.create(ride, self.alice, 1)

	def test_passenger_can_request_again_after_cancelling(self):
		ride = self.open_ride()
		first = self.booking.create(ride, self.alice, 1).request
		self.booking.cancel(first, self.alice)
		second = self.booking.create(ride, self.alice, 1).request
		self.assertNotEqual(first.id, second.id)

	def test_accept_reserves_seats_and_adds_participant(self):
		ride = self.open_ride(seats=4)
		request = self.booking.create(ride, self.alice, 3).request
		self.notifier.reset_mock()

		result = self.booking.decide(ride, request, self.driver, 'accept')

		self.assertEqual(result.request.status, BookingRequest.ACCEPTED)
		self.assertIsNotNone(result.request.decided_at)
		ride.refresh_from_db()
		self.assertEqual(ride.seats_available, 1)
		self.assertTrue(ride.participants.filter(pk=self.alice.pk).exists())
		self.notifier.notify.assert_called_once()
		self.assertEqual(self.notifier.notify.call_args[0][:2], (self.alice.id, 'booking_accepted'))

	def test_second_acceptance_exceeding_seats_is_rejected(self):
		ride = self.open_ride(seats=4)
		first = self.booking.create(ride, self.alice, 3).request
		second = self.booking.create(ride, self.bob, 1).request
		second.seats_requested = 2
		second.save(update_fields=['seats_requested'])

		self.booking.decide(ride, first, self.driver, 'accept')
		with self.assertRaises(ConflictError):
			self.booking.decide(ride, second, self.driver, 'accept')

		second.refresh_from_db()
		ride.refresh_from_db()
		self.assertEqual(second.status, BookingRequest.PENDING)
		self.assertEqual(ride.seats_available, 1)
		self.assertFalse(ride.participants.filter(pk=self.bob.pk).exists())

	def test_reject_leaves_inventory_alone(self):
		ride = self.open_ride(seats=2)
		request = self.booking.create(ride, self.alice, 2).request
		self.booking.decide(ride, request, self.driver, 'reject')

		ride.refresh_from_db()
		request.refresh_from_db()
		self.assertEqual(request.status, BookingRequest.REJECTED)
		self.assertEqual(ride.seats_available, 2)
		self.assertEqual(ride.version, 0)

	def test_deciding_twice_is_a_conflict(self):
		ride = self.open_ride(seats=4)
		request = self.booking.create(ride, self.alice, 1).request
		self.booking.decide(ride, request, self.driver, 'accept')

		with self.assertRaises(ConflictError):
			self.booking.decide(ride, request, self.driver, 'accept')
		with self.assertRaises(ConflictError):
			self.booking.decide(ride, request, self.driver, 'reject')

		ride.refresh_from_db()
		self.assertEqual(ride.seats_available, 3)

	def test_stale_request_instance_cannot_be_decided_twice(self):
		ride = self.open_ride(seats=4)
		request = self.booking.create(ride, self.alice, 1).request
		stale = BookingRequest.objects.get(pk=request.pk)

		self.booking.decide(ride, request, self.driver, 'accept')
		with self.assertRaises(ConflictError):
			self.booking.decide(ride, stale, self.driver, 'accept')

		stale.refresh_from_db()
		ride.refresh_from_db()
		self.assertEqual(stale.status, BookingRequest.ACCEPTED)
		self.assertEqual(ride.seats_available, 3)

	def test_decide_checks_ownership_and_ride(self):
		ride = self.open_ride()
		other_ride = self.open_ride()
		request = self.booking.create(ride, self.alice, 1).request

		with self.assertRaises(ForbiddenError):
			self.booking.decide(ride, request, self.bob, 'accept')
		with self.assertRaises(NotFoundError):
			self.booking.decide(other_ride, request, self.driver, 'accept')
		with self.assertRaises(ValidationError):
			self.booking.decide(ride, request, self.driver, 'maybe')

	def test_cancel_accepted_booking_releases_seats(self):
		ride = self.open_ride(seats=2)
		request = self.booking.create(ride, self.alice, 2).request
		self.booking.decide(ride, request, self.driver, 'accept')
		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.FULL)

		request.refresh_from_db()
		self.booking.cancel(request, self.alice)

		ride.refresh_from_db()
		self.assertEqual(request.status, BookingRequest.CANCELLED)
		self.assertEqual(ride.seats_available, 2)
		self.assertEqual(ride.status, Ride.OPEN)
		self.assertFalse(ride.participants.filter(pk=self.alice.pk).exists())

	def test_cancel_accepted_booking_after_departure_is_refused(self):
		ride = self.open_ride(seats=2)
		request = self.booking.create(ride, self.alice, 1).request
		self.booking.decide(ride, request, self.driver, 'accept')
		request.refresh_from_db()

		with self.assertRaises(ConflictError):
			self.booking.cancel(request, self.alice, now=ride.departure_time + timedelta(minutes=1))

	def test_only_requester_can_cancel(self):
		ride = self.open_ride()
		request = self.booking.create(ride, self.alice, 1).request
		with self.assertRaises(ForbiddenError):
			self.booking.cancel(request, self.bob)

	def test_cancelling_ride_rejects_pending_requests(self):
		ride = self.open_ride(seats=4)
		accepted = self.booking.create(ride, self.alice, 1).request
		pending = self.booking.create(ride, self.bob, 1).request
		self.booking.decide(ride, accepted, self.driver, 'accept')
		self.notifier.reset_mock()

		self.booking.close_ride(ride, self.driver, Ride.CANCELLED)

		pending.refresh_from_db()
		self.assertEqual(pending.status, BookingRequest.REJECTED)
		notified = {c[0][0] for c in self.notifier.notify.call_args_list}
		self.assertEqual(notified, {self.alice.id, self.bob.id})


class DemandOfferWorkflowTests(WorkflowTestMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.other_driver = make_user('other_driver')
		self.demand = self.open_demand()
		self.ride = self.open_ride()
		self.other_ride = self.open_ride(owner=self.other_driver)

	def test_create_demand_validation(self):
		with self.assertRaises(ValidationError):
			self.open_demand(origin_address='  ')
		with self.assertRaises(ValidationError):
			self.open_demand(seats_needed=0)
		with self.assertRaises(ValidationError):
			self.open_demand(max_price=-5)
		with self.assertRaises(ValidationError):
			self.open_demand(destination_longitude=181)

	def test_make_offer_notifies_passenger(self):
		offer = self.demands.make_offer(self.demand, self.driver, self.ride, 'I pass by Lac 1')

		self.assertEqual(offer.status, RideOffer.PENDING)
		self.notifier.notify.assert_called_once()
		self.assertEqual(self.notifier.notify.call_args[0][:2], (self.alice.id, 'offer_received'))

	def test_offer_rules(self):
		with self.assertRaises(ForbiddenError):
			self.demands.make_offer(self.demand, self.driver, self.other_ride)

		own_ride = self.open_ride(owner=self.alice)
		with self.assertRaises(ConflictError):
			self.demands.make_offer(self.demand, self.alice, own_ride)

		self.demands.make_offer(self.demand, self.driver, self.ride)
		with self.assertRaises(ConflictError):
			self.demands.make_offer(self.demand, self.driver, self.ride)

	def test_cannot_offer_a_finished_ride(self):
		self.inventory.terminate(self.ride, Ride.CANCELLED, self.driver)
		with self.assertRaises(ConflictError):
			self.demands.make_offer(self.demand, self.driver, self.ride)

	def test_accepting_one_offer_declines_the_rest(self):
		chosen = self.demands.make_offer(self.demand, self.driver, self.ride)
		other = self.demands.make_offer(self.demand, self.other_driver, self.other_ride)
		self.notifier.reset_mock()

		result = self.demands.decide(self.demand, chosen, self.alice, 'accept')

		self.assertEqual(result.demand.status, RideDemand.MATCHED)
		other.refresh_from_db()
		self.assertEqual(other.status, RideOffer.DECLINED)
		self.assertEqual(RideOffer.objects.filter(demand=self.demand, status=RideOffer.ACCEPTED).count(), 1)
		events = [c[0][:2] for c in self.notifier.notify.call_args_list]
		self.assertIn((self.driver.id, 'offer_accepted'), events)
		self.assertIn((self.other_driver.id, 'offer_declined'), events)

	def test_accepting_an_offer_does_not_touch_seats(self):
		offer = self.demands.make_offer(self.demand, self.driver, self.ride)
		self.demands.decide(self.demand, offer, self.alice, 'accept')

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.seats_available, 4)

	def test_second_acceptance_on_same_demand_is_a_conflict(self):
		first = self.demands.make_offer(self.demand, self.driver, self.ride)
		second = self.demands.make_offer(self.demand, self.other_driver, self.other_ride)
		stale_demand = RideDemand.objects.get(pk=self.demand.pk)
		stale_second = RideOffer.objects.get(pk=second.pk)

		self.demands.decide(self.demand, first, self.alice, 'accept')
		with self.assertRaises(ConflictError):
			self.demands.decide(stale_demand, stale_second, self.alice, 'accept')

		first.refresh_from_db()
		self.assertEqual(first.status, RideOffer.ACCEPTED)
		self.assertEqual(RideOffer.objects.filter(status=RideOffer.ACCEPTED).count(), 1)

	def test_losing_acceptance_reloads_the_demand(self):
		first = self.demands.make_offer(self.demand, self.driver, self.ride)
		second = self.demands.make_offer(self.demand, self.other_driver, self.other_ride)
		stale_demand = RideDemand.objects.get(pk=self.demand.pk)
		stale_second = RideOffer.objects.get(pk=second.pk)

		self.demands.decide(self.demand, first, self.alice, 'accept')
		with self.assertRaises(ConflictError):
			self.demands.decide(stale_demand, stale_second, self.alice, 'accept')

		self.assertEqual(stale_demand.status, RideDemand.MATCHED)
		self.assertEqual(stale_demand.version, self.demand.version)
		self.assertEqual(stale_second.status, RideOffer.DECLINED)

	def test_no_offers_after_match(self):
		offer = self.demands.make_offer(self.demand, self.driver, self.ride)
		self.demands.decide(self.demand, offer, self.alice, 'accept')
		with self.assertRaises(ConflictError):
			self.demands.make_offer(self.demand, self.other_driver, self.other_ride)

	def test_decline_changes_only_the_target_offer(self):
		declined = self.demands.make_offer(self.demand, self.driver, self.ride)
		kept = self.demands.make_offer(self.demand, self.other_driver, self.other_ride)

		self.demands.decide(self.demand, declined, self.alice, 'decline')

		kept.refresh_from_db()
		self.demand.refresh_from_db()
		self.assertEqual(declined.status, RideOffer.DECLINED)
		self.assertEqual(kept.status, RideOffer.PENDING)
		self.assertEqual(self.demand.status, RideDemand.OPEN)

	def test_driver_can_offer_again_after_decline(self):
		offer = self.demands.make_offer(self.demand, self.driver, self.ride)
		self.demands.decide(self.demand, offer, self.alice, 'decline')
		again = self.demands.make_offer(self.demand, self.driver, self.ride)
		self.assertEqual(again.status, RideOffer.PENDING)

	def test_decide_checks_passenger_and_demand(self):
		offer = self.demands.make_offer(self.demand, self.driver, self.ride)
		other_demand = self.open_demand(passenger=self.bob)

		with self.assertRaises(ForbiddenError):
			self.demands.decide(self.demand, offer, self.bob, 'accept')
		with self.assertRaises(NotFoundError):
			self.demands.decide(other_demand, offer, self.bob, 'accept')

	def test_redeciding_an_offer_is_a_conflict(self):
		offer = self.demands.make_offer(self.demand, self.driver, self.ride)
		self.demands.decide(self.demand, offer, self.alice, 'decline')
		with self.assertRaises(ConflictError):
			self.demands.decide(self.demand, offer, self.alice, 'accept')

	def test_cancel_demand_declines_pending_offers(self):
		offer = self.demands.make_offer(self.demand, self.driver, self.ride)
		self.demands.cancel_demand(self.demand, self.alice)

		offer.refresh_from_db()
		self.assertEqual(self.demand.status, RideDemand.CANCELLED)
		self.assertEqual(offer.status, RideOffer.DECLINED)
		with self.assertRaises(ConflictError):
			self.demands.cancel_demand(self.demand, self.alice)

	def test_only_passenger_can_cancel_demand(self):
		with self.assertRaises(ForbiddenError):
			self.demands.cancel_demand(self.demand, self.driver)


class RepositoryTests(WorkflowTestMixin, TestCase):
	def test_normalize_user_id(self):
		self.assertEqual(normalize_user_id(self.alice), self.alice.id)
		self.assertEqual(normalize_user_id(str(self.alice.id)), self.alice.id)
		with self.assertRaises(ValidationError):
			normalize_user_id('abc')
		with self.assertRaises(ValidationError):
			normalize_user_id(0)

	def test_lookups_raise_not_found(self):
		with self.assertRaises(NotFoundError):
			self.repository.get_ride(9999)
		with self.assertRaises(NotFoundError):
			self.repository.get_demand(9999)
		with self.assertRaises(NotFoundError):
			self.repository.get_request(9999)
		with self.assertRaises(NotFoundError):
			self.repository.get_offer(9999)

	def test_constraint_violation_surfaces_as_conflict(self):
		ride = self.open_ride()
		self.repository.create_request(ride, self.alice.id, 1)
		with self.assertRaises(ConflictError):
			with self.repository.atomic():
				self.repository.create_request(ride, self.alice.id, 1)

	def finish_ride(self, owner, outcome, participants=()):
		ride = self.open_ride(owner=owner, departure=timezone.now() - timedelta(hours=1))
		ride.participants.add(*participants)
		self.inventory.terminate(ride, outcome, owner)
		return ride

	def test_ride_statuses_list_every_ride_once(self):
		for _ in range(3):
			self.finish_ride(self.driver, Ride.COMPLETED, [self.alice, self.bob])
		self.finish_ride(self.driver, Ride.CANCELLED, [self.alice, self.bob])
		for _ in range(2):
			self.finish_ride(self.alice, Ride.COMPLETED, [self.driver, self.bob])

		driver_statuses = self.repository.ride_statuses_for(self.driver.id)
		self.assertEqual(len(driver_statuses), 6)
		self.assertEqual(driver_statuses.count(Ride.COMPLETED), 5)
		self.assertEqual(driver_statuses.count(Ride.CANCELLED), 1)

		alice_statuses = self.repository.ride_statuses_for(self.alice.id)
		self.assertEqual(sorted(alice_statuses), [Ride.CANCELLED] + [Ride.COMPLETED] * 5)

		self.assertEqual(self.repository.ride_statuses_for(make_user('carol').id), [])

	def test_candidate_rides_respect_window_seats_and_owner(self):
		desired = timezone.now() + timedelta(days=2)
		in_window = self.open_ride(departure=desired + timedelta(hours=1))
		self.open_ride(departure=desired + timedelta(hours=3))
		self.open_ride(owner=self.alice, departure=desired)
		self.open_ride(seats=1, departure=desired)

		demand = self.open_demand(desired_time=desired, seats_needed=2)
		criteria = self.repository.criteria_for_demand(demand)
		candidates = self.repository.candidate_rides_for(criteria, 2)

		self.assertEqual([c.ride_id for c in candidates], [in_window.id])
		self.assertEqual(candidates[0].origin.lat, 36.8)


class NotifierTests(TestCase):
	@patch('rides.tasks.deliver_user_event_task.delay')
	def test_notification_is_queued_after_commit(self, mock_delay):
		with self.captureOnCommitCallbacks(execute=True) as callbacks:
			ChannelsNotifier().notify(7, 'booking_accepted', {'ride_id': 1})
			mock_delay.assert_not_called()

		self.assertEqual(len(callbacks), 1)
		mock_delay.assert_called_once_with(7, 'booking_accepted', {'ride_id': 1})

	@patch('rides.tasks.deliver_user_event_task.delay', side_effect=RuntimeError('broker down'))
	def test_queue_failure_is_logged_not_raised(self, mock_delay):
		with self.assertLogs('realtime.notifications', level='ERROR'):
			with self.captureOnCommitCallbacks(execute=True):
				ChannelsNotifier().notify(7, 'booking_accepted')

	@patch('realtime.notifications.get_channel_layer')
	def test_event_goes_to_personal_group(self, mock_get_layer):
		layer = Mock()
		layer.group_send = AsyncMock()
		mock_get_layer.return_value = layer

		self.assertTrue(send_user_event(7, 'offer_received', {'demand_id': 3}))
		layer.group_send.assert_awaited_once_with('user_7', {
			'type': 'user.event',
			'event': 'offer_received',
			'payload': {'demand_id': 3},
		})

	@patch('realtime.notifications.send_user_event', return_value=True)
	def test_delivery_task_sends_event(self, mock_send):
		self.assertTrue(deliver_user_event_task(7, 'ride_cancelled', {'ride_id': 2}))
		mock_send.assert_called_once_with(7, 'ride_cancelled', {'ride_id': 2})


class RideApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver = make_user('driver')
		self.alice = make_user('alice')
		self.bob = make_user('bob')
		self.departure = timezone.now() + timedelta(days=1)

	def create_ride(self, seats=4):
		request = self.factory.post('/api/rides/', {
			'origin_address': 'Lac 1',
			'origin_latitude': '36.800000',
			'origin_longitude': '10.180000',
			'destination_address': 'La Marsa',
			'destination_latitude': '36.850000',
			'destination_longitude': '10.250000',
			'route': [[10.18, 36.80], [10.215, 36.825], [10.25, 36.85]],
			'departure_time': self.departure.isoformat(),
			'seats_total': seats,
			'price': '7.50',
		}, format='json')
		force_authenticate(request, user=self.driver)
		return ride_collection(request)

	def request_seats(self, ride_id, user, seats):
		request = self.factory.post('/api/rides/%d/requests/' % ride_id, {'seats_requested': seats}, format='json')
		force_authenticate(request, user=user)
		return ride_requests(request, ride_id=ride_id)

	def decide(self, ride_id, request_id, action, user=None):
		request = self.factory.patch(
			'/api/rides/%d/requests/' % ride_id,
			{'request_id': request_id, 'action': action},
			format='json'
		)
		force_authenticate(request, user=user or self.driver)
		return ride_requests(request, ride_id=ride_id)

	def test_create_ride(self):
		response = self.create_ride(seats=3)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['seats_available'], 3)
		self.assertEqual(response.data['status'], 'open')
		self.assertEqual(response.data['owner']['id'], self.driver.id)

	def test_create_ride_rejects_bad_input(self):
		request = self.factory.post('/api/rides/', {'seats_total': 0}, format='json')
		force_authenticate(request, user=self.driver)
		self.assertEqual(ride_collection(request).status_code, 400)

	def test_booking_flow(self):
		ride_id = self.create_ride(seats=4).data['id']

		created = self.request_seats(ride_id, self.alice, 3)
		self.assertEqual(created.status_code, 201)
		duplicate = self.request_seats(ride_id, self.alice, 1)
		self.assertEqual(duplicate.status_code, 409)
		bob_request = self.request_seats(ride_id, self.bob, 1)

		forbidden = self.decide(ride_id, created.data['id'], 'accept', user=self.bob)
		self.assertEqual(forbidden.status_code, 403)

		accepted = self.decide(ride_id, created.data['id'], 'accept')
		self.assertEqual(accepted.status_code, 200)
		self.assertEqual(accepted.data['seats_available'], 1)
		self.assertEqual(accepted.data['request']['status'], 'accepted')

		again = self.decide(ride_id, created.data['id'], 'accept')
		self.assertEqual(again.status_code, 409)

		last_seat = self.decide(ride_id, bob_request.data['id'], 'accept')
		self.assertEqual(last_seat.data['ride_status'], 'full')

	def test_oversized_request_is_a_conflict(self):
		ride_id = self.create_ride(seats=2).data['id']
		response = self.request_seats(ride_id, self.alice, 3)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['code'], 'conflict')
		self.assertFalse(BookingRequest.objects.exists())

	def test_unknown_ride_is_not_found(self):
		response = self.request_seats(4040, self.alice, 1)
		self.assertEqual(response.status_code, 404)

	def test_cancel_request(self):
		ride_id = self.create_ride().data['id']
		request_id = self.request_seats(ride_id, self.alice, 2).data['id']
		self.decide(ride_id, request_id, 'accept')

		request = self.factory.post('/api/rides/requests/%d/cancel/' % request_id)
		force_authenticate(request, user=self.alice)
		response = cancel_booking_request(request, request_id=request_id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['request']['status'], 'cancelled')
		self.assertEqual(response.data['seats_available'], 4)

	def test_owner_cancels_ride(self):
		ride_id = self.create_ride().data['id']
		request = self.factory.patch('/api/rides/%d/' % ride_id, {'action': 'cancel'}, format='json')
		force_authenticate(request, user=self.driver)
		response = ride_detail(request, ride_id=ride_id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['status'], 'cancelled')

	def test_complete_before_departure_is_a_conflict(self):
		ride_id = self.create_ride().data['id']
		request = self.factory.patch('/api/rides/%d/' % ride_id, {'action': 'complete'}, format='json')
		force_authenticate(request, user=self.driver)
		self.assertEqual(ride_detail(request, ride_id=ride_id).status_code, 409)

	def test_demand_offer_and_matches(self):
		ride_id = self.create_ride().data['id']

		request = self.factory.post('/api/rides/demands/', {
			'origin_address': 'Lac 1',
			'origin_latitude': '36.810000',
			'origin_longitude': '10.190000',
			'destination_address': 'La Marsa',
			'destination_latitude': '36.840000',
			'destination_longitude': '10.240000',
			'desired_time': self.departure.isoformat(),
			'max_price': '10.00',
		}, format='json')
		force_authenticate(request, user=self.alice)
		demand = demand_collection(request)
		self.assertEqual(demand.status_code, 201)
		demand_id = demand.data['id']

		request = self.factory.post('/api/rides/demands/%d/offers/' % demand_id, {'ride_id': ride_id}, format='json')
		force_authenticate(request, user=self.driver)
		offer = demand_offers(request, demand_id=demand_id)
		self.assertEqual(offer.status_code, 201)

		request = self.factory.post('/api/rides/demands/%d/offers/' % demand_id, {'ride_id': ride_id}, format='json')
		force_authenticate(request, user=self.bob)
		self.assertEqual(demand_offers(request, demand_id=demand_id).status_code, 403)

		request = self.factory.get('/api/rides/demands/%d/matches/' % demand_id)
		force_authenticate(request, user=self.alice)
		matches = demand_matches(request, demand_id=demand_id)
		self.assertEqual(matches.status_code, 200)
		self.assertEqual(matches.data['count'], 1)
		self.assertEqual(matches.data['matches'][0]['ride']['id'], ride_id)
		self.assertEqual(matches.data['matches'][0]['route_match']['match_type'], 'on-route')

		request = self.factory.patch(
			'/api/rides/demands/%d/offers/' % demand_id,
			{'offer_id': offer.data['id'], 'action': 'accept'},
			format='json'
		)
		force_authenticate(request, user=self.alice)
		decided = demand_offers(request, demand_id=demand_id)
		self.assertEqual(decided.status_code, 200)
		self.assertEqual(decided.data['demand']['status'], 'matched')
		self.assertEqual(decided.data['demand']['offers'][0]['status'], 'accepted')

	def test_health_check(self):
		response = health_check(self.factory.get('/health/'))

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['services'], {
			'database': 'healthy',
			'channels': 'healthy',
			'celery': 'healthy',
		})

	@patch('app_backend.views.get_channel_layer', return_value=None)
	def test_health_check_reports_missing_channel_layer(self, mock_layer):
		response = health_check(self.factory.get('/health/'))

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['status'], 'unhealthy')
		self.assertEqual(response.data['services']['channels'], 'unhealthy: no channel layer')

	def test_matches_are_private_to_the_passenger(self):
		request = self.factory.post('/api/rides/demands/', {
			'origin_address': 'Lac 1',
			'origin_latitude': '36.810000',
			'origin_longitude': '10.190000',
			'destination_address': 'La Marsa',
			'destination_latitude': '36.840000',
			'destination_longitude': '10.240000',
			'desired_time': self.departure.isoformat(),
		}, format='json')
		force_authenticate(request, user=self.alice)
		demand_id = demand_collection(request).data['id']

		request = self.factory.get('/api/rides/demands/%d/matches/' % demand_id)
		force_authenticate(request, user=self.bob)
		self.assertEqual(demand_matches(request, demand_id=demand_id).status_code, 403)
