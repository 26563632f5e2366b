from datetime import datetime, timedelta, timezone

from django.test import SimpleTestCase

from services.matching.compatibility import (
	MATCH_EXACT,
	MATCH_NEARBY,
	MATCH_ON_ROUTE,
	GeoPoint,
	calculate_overall_match_score,
	calculate_price_compatibility,
	calculate_route_compatibility,
	calculate_time_compatibility,
	calculate_user_compatibility,
	round_half_up,
)
from services.matching.config import MatchingConfig

RIDE_ORIGIN = GeoPoint(36.80, 10.18)
RIDE_DESTINATION = GeoPoint(36.85, 10.25)
ROUTE = [[10.18, 36.80], [10.215, 36.825], [10.25, 36.85]]


class RouteCompatibilityTests(SimpleTestCase):
	def test_no_polyline_weights_endpoints_equally(self):
		# Passenger a little over 1.4 km from both ride endpoints
		match = calculate_route_compatibility(
			RIDE_ORIGIN, RIDE_DESTINATION, None, GeoPoint(36.81, 10.19), GeoPoint(36.84, 10.24)
		)

		self.assertEqual(match.match_type, MATCH_NEARBY)
		self.assertIsNone(match.route_deviation)
		self.assertEqual(match.origin_deviation, 1.4)
		self.assertEqual(match.destination_deviation, 1.4)
		# 100 - 1.424 / 5 * 50 on both ends
		self.assertEqual(match.score, 86)

	def test_exact_match_when_both_endpoints_are_close(self):
		match = calculate_route_compatibility(
			RIDE_ORIGIN, RIDE_DESTINATION, ROUTE, GeoPoint(36.801, 10.181), GeoPoint(36.849, 10.249)
		)
		self.assertEqual(match.match_type, MATCH_EXACT)
		self.assertGreaterEqual(match.score, 98)

	def test_on_route_when_pickup_sits_on_the_polyline(self):
		match = calculate_route_compatibility(
			RIDE_ORIGIN, RIDE_DESTINATION, ROUTE, GeoPoint(36.825, 10.215), RIDE_DESTINATION
		)
		self.assertEqual(match.match_type, MATCH_ON_ROUTE)
		self.assertEqual(match.route_deviation, 0.0)

	def test_far_away_passenger_scores_zero(self):
		match = calculate_route_compatibility(
			RIDE_ORIGIN, RIDE_DESTINATION, ROUTE, GeoPoint(35.0, 9.0), GeoPoint(35.1, 9.1)
		)
		self.assertEqual(match.match_type, MATCH_NEARBY)
		self.assertEqual(match.score, 0)

	def test_deviation_threshold_is_configurable(self):
		strict = MatchingConfig(max_deviation_km=0.01)
		match = calculate_route_compatibility(
			RIDE_ORIGIN, RIDE_DESTINATION, ROUTE, GeoPoint(36.826, 10.216), RIDE_DESTINATION, strict
		)
		self.assertEqual(match.match_type, MATCH_NEARBY)

	def test_scoring_is_deterministic(self):
		args = (RIDE_ORIGIN, RIDE_DESTINATION, ROUTE, GeoPoint(36.81, 10.19), GeoPoint(36.84, 10.24))
		self.assertEqual(calculate_route_compatibility(*args), calculate_route_compatibility(*args))


class TimeCompatibilityTests(SimpleTestCase):
	def setUp(self):
		self.base = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)

	def test_same_time_is_perfect(self):
		self.assertEqual(calculate_time_compatibility(self.base, self.base).score, 100)

	def test_linear_decay_inside_window(self):
		self.assertEqual(calculate_time_compatibility(self.base, self.base + timedelta(minutes=30)).score, 75)
		match = calculate_time_compatibility(self.base + timedelta(hours=1), self.base)
		self.assertEqual(match.score, 50)
		self.assertEqual(match.time_difference_hours, 1.0)

	def test_outside_window_is_zero(self):
		self.assertEqual(calculate_time_compatibility(self.base, self.base + timedelta(hours=3)).score, 0)


class UserCompatibilityTests(SimpleTestCase):
	def test_users_without_reviews_are_neutral(self):
		match = calculate_user_compatibility([], [])
		self.assertEqual(match.score, 60)
		self.assertEqual(match.driver_rating, 3.0)
		self.assertEqual(match.factors, [])

	def test_experienced_highly_rated_driver_gets_bonuses(self):
		match = calculate_user_compatibility([5, 5, 5, 5, 5], [])
		self.assertEqual(match.score, 95)
		self.assertIn("Highly rated driver", match.factors)
		self.assertIn("Experienced driver", match.factors)

	def test_low_rated_driver_is_penalised(self):
		match = calculate_user_compatibility([2, 2], [])
		self.assertEqual(match.score, 35)
		self.assertIn("Driver has low ratings", match.factors)

	def test_score_is_clamped(self):
		match = calculate_user_compatibility([5] * 6, [5] * 6)
		self.assertEqual(match.score, 100)


class PriceAndOverallTests(SimpleTestCase):
	def test_price_without_cap_is_neutral(self):
		self.assertEqual(calculate_price_compatibility(25, None), 50)

	def test_price_savings_and_excess(self):
		self.assertEqual(calculate_price_compatibility(10, 20), 75)
		self.assertEqual(calculate_price_compatibility(0, 20), 100)
		self.assertEqual(calculate_price_compatibility(30, 20), 25)
		self.assertEqual(calculate_price_compatibility(60, 20), 0)

	def test_overall_uses_weighted_sum(self):
		overall = calculate_overall_match_score(80, 50, 60, 50)
		self.assertEqual(overall.total_score, 65)
		self.assertEqual(overall.breakdown, {"route": 80, "time": 50, "user": 60, "price": 50})

	def test_overall_weights_come_from_config(self):
		route_only = MatchingConfig(route_weight=1.0, time_weight=0, user_weight=0, price_weight=0)
		self.assertEqual(calculate_overall_match_score(42, 100, 100, 100, route_only).total_score, 42)

	def test_round_half_up(self):
		self.assertEqual(round_half_up(2.5), 3)
		self.assertEqual(round_half_up(0.25, 1), 0.3)

	def test_config_overrides_are_case_insensitive(self):
		config = MatchingConfig.from_dict({"MAX_DEVIATION_KM": 3, "unknown": 1})
		self.assertEqual(config.max_deviation_km, 3)
		self.assertEqual(config.route_weight, 0.4)
