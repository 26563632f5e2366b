from datetime import datetime, timedelta, timezone

from django.test import SimpleTestCase

from services.trust.scoring import (
	LEVEL_EXCELLENT,
	LEVEL_NEW,
	RISK_HIGH,
	RISK_LOW,
	RISK_MEDIUM,
	TrustConfig,
	TrustProfile,
	calculate_behavior_risk,
	calculate_user_trust_score,
	trust_level,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class TrustScoreTests(SimpleTestCase):
	def test_brand_new_account_uses_neutral_review_points(self):
		profile = TrustProfile(account_created_at=NOW - timedelta(days=10))
		result = calculate_user_trust_score(profile, [], [], NOW)

		self.assertEqual(result.score, 27)
		self.assertEqual(result.level, LEVEL_NEW)
		self.assertEqual(result.breakdown.as_dict(), {
			"reviews": 12,
			"activity": 0,
			"accountAge": 0,
			"verification": 0,
			"behavior": 15,
		})
		self.assertIn("No reviews yet", result.factors)
		self.assertIn("New account", result.factors)
		self.assertIn("Verify your email to increase trust score", result.recommendations)

	def test_established_verified_user(self):
		profile = TrustProfile(
			account_created_at=NOW - timedelta(days=400),
			is_verified=True,
			has_profile_photo=True,
		)
		statuses = ["completed"] * 6 + ["cancelled"]
		result = calculate_user_trust_score(profile, statuses, [5, 5, 4, 4], NOW)

		# 36 reviews + 12 activity + 10 age + 15 verification + 10 behavior
		self.assertEqual(result.score, 83)
		self.assertEqual(result.level, LEVEL_EXCELLENT)
		self.assertEqual(result.breakdown.behavior, 10)
		self.assertIn("Highly rated by other users", result.factors)
		self.assertIn("Some cancellations", result.factors)

	def test_components_are_capped(self):
		profile = TrustProfile(account_created_at=NOW - timedelta(days=3000), is_verified=True)
		result = calculate_user_trust_score(profile, ["completed"] * 40, [5] * 20, NOW)

		self.assertEqual(result.breakdown.activity, 20)
		self.assertEqual(result.breakdown.account_age, 10)
		self.assertEqual(result.breakdown.reviews, 40)
		self.assertLessEqual(result.score, 100)

	def test_high_cancellation_rate_costs_ten_points(self):
		profile = TrustProfile(account_created_at=NOW)
		result = calculate_user_trust_score(profile, ["cancelled", "completed"], [], NOW)
		self.assertEqual(result.breakdown.behavior, 5)

	def test_no_review_points_are_configurable(self):
		profile = TrustProfile(account_created_at=NOW)
		config = TrustConfig.from_dict({"NO_REVIEW_POINTS": 24})
		self.assertEqual(calculate_user_trust_score(profile, [], [], NOW, config).breakdown.reviews, 24)

	def test_level_thresholds(self):
		self.assertEqual(trust_level(80), "excellent")
		self.assertEqual(trust_level(65), "good")
		self.assertEqual(trust_level(50), "fair")
		self.assertEqual(trust_level(30), "poor")
		self.assertEqual(trust_level(29), "new")


class BehaviorRiskTests(SimpleTestCase):
	def test_no_history_is_medium(self):
		risk = calculate_behavior_risk([], [])
		self.assertEqual((risk.risk_score, risk.risk_level), (50, RISK_MEDIUM))

	def test_clean_history_is_low(self):
		risk = calculate_behavior_risk(["completed"] * 5, [5, 4])
		self.assertEqual((risk.risk_score, risk.risk_level), (0, RISK_LOW))

	def test_cancellations_and_low_ratings_add_up(self):
		risk = calculate_behavior_risk(["cancelled"] * 4 + ["completed"] * 2, [2, 2, 2])
		self.assertEqual(risk.risk_score, 70)
		self.assertEqual(risk.risk_level, RISK_HIGH)
		self.assertEqual(risk.indicators, ["Very high cancellation rate", "Consistently low ratings"])
