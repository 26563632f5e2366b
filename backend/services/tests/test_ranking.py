from datetime import datetime, timedelta, timezone

from django.test import SimpleTestCase

from services.matching.compatibility import GeoPoint
from services.matching.config import MatchingConfig
from services.matching.preferences import UserPreferences
from services.matching.ranking import (
	CandidateRide,
	MatchCriteria,
	get_recommendation,
	rank_rides_for_demand,
	recommend_rides,
)

NOW = datetime(2025, 6, 1, 6, 0, tzinfo=timezone.utc)
DESIRED = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)
ORIGIN = GeoPoint(36.80, 10.18)
DESTINATION = GeoPoint(36.85, 10.25)


def candidate(ride_id, owner_id, origin=ORIGIN, destination=DESTINATION, departure=DESIRED, price=10.0):
	return CandidateRide(
		ride_id=ride_id,
		owner_id=owner_id,
		origin=origin,
		destination=destination,
		departure_time=departure,
		price=price,
		seats_available=3,
	)


class RankRidesTests(SimpleTestCase):
	def setUp(self):
		self.criteria = MatchCriteria(
			passenger_id=1,
			origin=ORIGIN,
			destination=DESTINATION,
			desired_time=DESIRED,
		)

	def test_best_match_first(self):
		perfect = candidate(10, owner_id=2)
		late = candidate(11, owner_id=3, departure=DESIRED + timedelta(hours=1, minutes=30))
		far = candidate(12, owner_id=4, origin=GeoPoint(36.82, 10.21))

		matches = rank_rides_for_demand(self.criteria, [late, far, perfect], {})

		self.assertEqual([m.candidate.ride_id for m in matches][0], 10)
		self.assertEqual(matches[0].route_match.match_type, "exact")
		scores = [m.match_score for m in matches]
		self.assertEqual(scores, sorted(scores, reverse=True))

	def test_driver_ratings_break_otherwise_equal_rides(self):
		unrated = candidate(20, owner_id=5)
		rated = candidate(21, owner_id=6)
		matches = rank_rides_for_demand(self.criteria, [unrated, rated], {6: [5, 5, 5, 5, 5]})
		self.assertEqual(matches[0].candidate.ride_id, 21)

	def test_results_are_limited(self):
		rides = [candidate(i, owner_id=100 + i) for i in range(15)]
		matches = rank_rides_for_demand(self.criteria, rides, {}, MatchingConfig(max_results=4))
		self.assertEqual(len(matches), 4)

	def test_equal_scores_keep_input_order(self):
		rides = [candidate(i, owner_id=50) for i in range(3)]
		matches = rank_rides_for_demand(self.criteria, rides, {})
		self.assertEqual([m.candidate.ride_id for m in matches], [0, 1, 2])

	def test_recommendation_sentences(self):
		self.assertTrue(get_recommendation(95).startswith("Perfect match"))
		self.assertTrue(get_recommendation(75).startswith("Great match"))
		self.assertTrue(get_recommendation(60).startswith("Good match"))
		self.assertTrue(get_recommendation(45).startswith("Moderate match"))
		self.assertTrue(get_recommendation(44).startswith("Low match"))


class RecommendRidesTests(SimpleTestCase):
	def test_familiar_ride_scores_highest(self):
		prefs = UserPreferences(
			preferred_hours=[8],
			common_origins=[ORIGIN],
			common_destinations=[DESTINATION],
			avg_price=10.0,
		)
		familiar = candidate(1, owner_id=7)
		unfamiliar = candidate(
			2,
			owner_id=8,
			origin=GeoPoint(35.0, 9.0),
			destination=GeoPoint(35.2, 9.2),
			departure=NOW + timedelta(days=20, hours=5),
			price=40.0,
		)

		results = recommend_rides(prefs, [unfamiliar, familiar], {7: [5, 5]}, NOW)

		self.assertEqual(results[0].candidate.ride_id, 1)
		# 20 hour + 30 route + 25 driver + 15 price + 10 soon
		self.assertEqual(results[0].recommendation_score, 100)
		self.assertIn("Highly rated driver", results[0].factors)
		self.assertEqual(results[1].recommendation_score, 0)

	def test_default_preferences_still_reward_upcoming_rides(self):
		results = recommend_rides(UserPreferences(), [candidate(3, owner_id=9)], {}, NOW)
		self.assertEqual(results[0].recommendation_score, 30)
		self.assertEqual(results[0].factors, ["Matches your preferred time", "Upcoming ride"])
