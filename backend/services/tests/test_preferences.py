from datetime import datetime, timezone

from django.test import SimpleTestCase

from services.matching.compatibility import GeoPoint
from services.matching.preferences import (
	DEFAULT_PREFERRED_HOURS,
	RideHistoryEntry,
	analyze_user_preferences,
	cluster_locations,
)


def entry(hour, origin=None, destination=None, price=None, day=1):
	return RideHistoryEntry(
		departure_time=datetime(2025, 3, day, hour, 15, tzinfo=timezone.utc),
		origin=origin,
		destination=destination,
		price=price,
	)


class PreferenceProfilerTests(SimpleTestCase):
	def test_empty_history_uses_defaults(self):
		prefs = analyze_user_preferences([])

		self.assertEqual(prefs.preferred_hours, DEFAULT_PREFERRED_HOURS)
		self.assertEqual(prefs.common_origins, [])
		self.assertEqual(prefs.avg_price, 0.0)
		self.assertFalse(prefs.has_route_history)

	def test_top_three_hours_with_earlier_hour_on_ties(self):
		history = [entry(17), entry(9), entry(17), entry(9), entry(8), entry(6)]
		self.assertEqual(analyze_user_preferences(history).preferred_hours, [9, 17, 6])

	def test_only_ten_most_recent_rides_count(self):
		history = [entry(7, day=d + 1) for d in range(10)] + [entry(22), entry(22), entry(22)]
		self.assertEqual(analyze_user_preferences(history).preferred_hours, [7])

	def test_average_price_ignores_missing_and_free_rides(self):
		history = [entry(8, price=10), entry(8, price=0), entry(8), entry(8, price=20)]
		self.assertEqual(analyze_user_preferences(history).avg_price, 15.0)

	def test_common_locations_are_clustered(self):
		home = GeoPoint(36.80, 10.18)
		near_home = GeoPoint(36.801, 10.181)
		work = GeoPoint(36.85, 10.25)
		history = [
			entry(8, origin=home, destination=work),
			entry(8, origin=near_home, destination=work),
		]
		prefs = analyze_user_preferences(history)

		self.assertEqual(len(prefs.common_origins), 1)
		self.assertAlmostEqual(prefs.common_origins[0].lat, 36.8005)
		self.assertAlmostEqual(prefs.common_origins[0].lng, 10.1805)
		self.assertEqual(prefs.common_destinations, [work])
		self.assertTrue(prefs.has_route_history)


class ClusterLocationsTests(SimpleTestCase):
	def test_largest_clusters_first_then_creation_order(self):
		a = GeoPoint(36.0, 10.0)
		b = GeoPoint(37.0, 10.0)
		c = GeoPoint(38.0, 10.0)
		d = GeoPoint(39.0, 10.0)
		centroids = cluster_locations([a, b, c, c, d])

		self.assertEqual(centroids, [c, a, b])

	def test_radius_is_strict(self):
		a = GeoPoint(0.0, 0.0)
		# ~5.56 km north
		b = GeoPoint(0.05, 0.0)
		self.assertEqual(len(cluster_locations([a, b], max_distance_km=5.0, top=5)), 2)
