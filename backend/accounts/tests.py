from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from rides.models import Ride
from services.ride_management import RideInventory, RideRepository
from .models import Review, User
from .views import TrustScoreView, UserReviewsView


class TrustAndReviewApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver = User.objects.create_user(username='driver', password='pass1234')
		self.alice = User.objects.create_user(username='alice', password='pass1234')
		self.outsider = User.objects.create_user(username='outsider', password='pass1234')

		inventory = RideInventory(RideRepository())
		self.ride = inventory.open_ride(
			self.driver,
			origin_latitude=Decimal('36.800000'),
			origin_longitude=Decimal('10.180000'),
			destination_latitude=Decimal('36.850000'),
			destination_longitude=Decimal('10.250000'),
			departure_time=timezone.now() - timedelta(hours=2),
			seats_total=3,
		)
		self.ride.participants.add(self.alice)
		inventory.terminate(self.ride, Ride.COMPLETED, self.driver)

	def get_trust(self, user_id):
		request = self.factory.get('/api/auth/users/%s/trust-score/' % user_id)
		force_authenticate(request, user=self.alice)
		return TrustScoreView.as_view()(request, user_id=user_id)

	def post_review(self, author, subject_id, **data):
		body = {'ride_id': self.ride.id, 'rating': 5, 'comment': 'Smooth ride'}
		body.update(data)
		request = self.factory.post('/api/auth/users/%s/reviews/' % subject_id, body, format='json')
		force_authenticate(request, user=author)
		return UserReviewsView.as_view()(request, user_id=subject_id)

	def test_new_account_trust_score(self):
		response = self.get_trust(self.outsider.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['score'], 27)
		self.assertEqual(response.data['level'], 'new')
		self.assertEqual(response.data['breakdown']['reviews'], 12)
		self.assertEqual(response.data['risk']['score'], 50)
		self.assertEqual(response.data['risk']['level'], 'medium')
		self.assertIn('Verify your email to increase trust score', response.data['recommendations'])

	def test_trust_score_counts_completed_rides(self):
		response = self.get_trust(self.driver.id)

		self.assertEqual(response.data['breakdown']['activity'], 2)
		self.assertEqual(response.data['risk']['level'], 'low')

	def test_trust_score_uses_whole_ride_history(self):
		inventory = RideInventory(RideRepository())
		for outcome in [Ride.COMPLETED] * 4 + [Ride.CANCELLED]:
			ride = inventory.open_ride(
				self.driver,
				origin_latitude=Decimal('36.800000'),
				origin_longitude=Decimal('10.180000'),
				destination_latitude=Decimal('36.850000'),
				destination_longitude=Decimal('10.250000'),
				departure_time=timezone.now() - timedelta(days=1),
				seats_total=2,
			)
			ride.participants.add(self.alice, self.outsider)
			inventory.terminate(ride, outcome, self.driver)

		response = self.get_trust(self.driver.id)

		# 5 completed and 1 cancelled: 2 points per ride, 1/6 cancelled costs 5
		self.assertEqual(response.data['breakdown']['activity'], 10)
		self.assertEqual(response.data['breakdown']['behavior'], 10)
		self.assertEqual(response.data['score'], 32)
		self.assertEqual(response.data['risk']['score'], 0)
		self.assertEqual(response.data['risk']['level'], 'low')

		alice = self.get_trust(self.alice.id)
		self.assertEqual(alice.data['breakdown']['activity'], 10)

	def test_trust_score_for_unknown_user(self):
		response = self.get_trust(9999)
		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['code'], 'not_found')

	def test_participant_reviews_driver(self):
		response = self.post_review(self.alice, self.driver.id)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['rating'], 5)
		self.assertEqual(Review.objects.filter(subject=self.driver).count(), 1)

		trust = self.get_trust(self.driver.id)
		self.assertEqual(trust.data['breakdown']['reviews'], 40)

	def test_duplicate_review_is_a_conflict(self):
		self.post_review(self.alice, self.driver.id)
		response = self.post_review(self.alice, self.driver.id, rating=4)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(Review.objects.count(), 1)

	def test_self_review_is_rejected(self):
		response = self.post_review(self.alice, self.alice.id)
		self.assertEqual(response.status_code, 400)

	def test_rating_out_of_range_is_rejected(self):
		response = self.post_review(self.alice, self.driver.id, rating=6)
		self.assertEqual(response.status_code, 400)

	def test_outsider_cannot_review(self):
		response = self.post_review(self.outsider, self.driver.id)
		self.assertEqual(response.status_code, 409)

	def test_review_requires_completed_ride(self):
		self.ride.status = Ride.OPEN
		self.ride.save(update_fields=['status'])

		response = self.post_review(self.alice, self.driver.id)
		self.assertEqual(response.status_code, 409)

	def test_list_reviews(self):
		self.post_review(self.alice, self.driver.id)
		self.post_review(self.driver, self.alice.id, rating=4)

		request = self.factory.get('/api/auth/users/%s/reviews/' % self.driver.id)
		force_authenticate(request, user=self.outsider)
		response = UserReviewsView.as_view()(request, user_id=self.driver.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(len(response.data), 1)
		self.assertEqual(response.data[0]['author'], self.alice.id)
