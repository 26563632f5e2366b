from django.test import SimpleTestCase

from common.utils.geo import (
	calculate_distance,
	find_closest_point_on_route,
	invalid_route_vertices,
	is_valid_coordinate,
)


class GeoMathTests(SimpleTestCase):
	def test_distance_between_same_point_is_zero(self):
		self.assertEqual(calculate_distance(36.8, 10.18, 36.8, 10.18), 0.0)

	def test_one_degree_of_latitude_is_about_111_km(self):
		self.assertAlmostEqual(calculate_distance(0, 0, 1, 0), 111.19, places=1)

	def test_distance_is_symmetric(self):
		forward = calculate_distance(36.80, 10.18, 36.85, 10.25)
		backward = calculate_distance(36.85, 10.25, 36.80, 10.18)
		self.assertAlmostEqual(forward, backward, places=9)

	def test_closest_point_uses_lng_lat_vertices(self):
		route = [[10.18, 36.80], [10.20, 36.82], [10.25, 36.85]]
		closest = find_closest_point_on_route(route, 36.821, 10.201)

		self.assertEqual(closest.index, 1)
		self.assertEqual(closest.point, (10.20, 36.82))
		self.assertLess(closest.distance, 0.2)

	def test_closest_point_first_vertex_wins_ties(self):
		route = [[10.0, 36.0], [10.0, 36.0]]
		self.assertEqual(find_closest_point_on_route(route, 36.0, 10.0).index, 0)

	def test_closest_point_rejects_empty_route(self):
		with self.assertRaises(ValueError):
			find_closest_point_on_route([], 36.0, 10.0)

	def test_coordinate_validation(self):
		self.assertTrue(is_valid_coordinate(90, 180))
		self.assertTrue(is_valid_coordinate("36.8", "10.18"))
		self.assertFalse(is_valid_coordinate(90.1, 0))
		self.assertFalse(is_valid_coordinate(0, -180.5))
		self.assertFalse(is_valid_coordinate(None, 0))

	def test_invalid_route_vertices_reports_indexes(self):
		route = [[10.18, 36.80], [200, 36.8], [10.2], "x"]
		self.assertEqual(invalid_route_vertices(route), [1, 2, 3])
