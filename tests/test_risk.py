"""
Tests for the rule-based risk model and the escalation notifier.
"""

import unittest

from fleet_fixtures import telemetry, vehicle

from dronefleet.events import EventBus
from dronefleet.models import WeatherInfo
from dronefleet.risk import (
    RiskChangeNotifier,
    evaluate_risk,
    is_escalation,
    risk_to_event_level,
    score_to_level,
)


def factor_ids(summary):
    return [f.id for f in summary.factors]


class TestRules(unittest.TestCase):
    """One rule at a time, everything else nominal."""

    def test_nominal_vehicle_is_low(self):
        s = evaluate_risk(vehicle(), telemetry())
        self.assertEqual(s.level, "low")
        self.assertEqual(s.score, 0)
        self.assertEqual(s.factors, [])
        self.assertIsNone(s.weather_risk)

    def test_battery_bands_are_exclusive(self):
        s = evaluate_risk(vehicle(), telemetry(battery=15))
        self.assertEqual(factor_ids(s), ["battery_critical"])
        self.assertEqual(s.score, 40)
        self.assertEqual(s.level, "medium")

        s = evaluate_risk(vehicle(), telemetry(battery=30))
        self.assertEqual(factor_ids(s), ["battery_low"])
        self.assertEqual(s.score, 25)
        self.assertEqual(s.level, "low")

        s = evaluate_risk(vehicle(), telemetry(battery=30.5))
        self.assertEqual(s.factors, [])

    def test_signal_bands_are_exclusive(self):
        s = evaluate_risk(vehicle(), telemetry(signal=30))
        self.assertEqual(factor_ids(s), ["signal_critical"])
        self.assertEqual(s.score, 35)

        s = evaluate_risk(vehicle(), telemetry(signal=60))
        self.assertEqual(factor_ids(s), ["signal_unstable"])
        self.assertEqual(s.score, 20)

    def test_error_status(self):
        s = evaluate_risk(vehicle(status="error"), telemetry())
        self.assertEqual(factor_ids(s), ["status_error"])
        self.assertEqual(s.score, 50)
        self.assertEqual(s.level, "medium")

    def test_returning_with_low_battery(self):
        s = evaluate_risk(vehicle(status="returning"), telemetry(battery=25))
        self.assertEqual(factor_ids(s), ["battery_low", "status_returning_low_battery"])
        self.assertEqual(s.score, 45)
        self.assertEqual(s.level, "medium")

        s = evaluate_risk(vehicle(status="on_mission"), telemetry(battery=25))
        self.assertEqual(factor_ids(s), ["battery_low"])

    def test_high_altitude(self):
        s = evaluate_risk(vehicle(), telemetry(altitude=130))
        self.assertEqual(factor_ids(s), ["high_altitude"])
        self.assertEqual(s.score, 10)

        s = evaluate_risk(vehicle(), telemetry(altitude=120))
        self.assertEqual(s.factors, [])

    def test_factor_order_follows_rule_order(self):
        s = evaluate_risk(
            vehicle(status="returning"),
            telemetry(battery=20, signal=50, altitude=125),
            "warning",
        )
        self.assertEqual(
            factor_ids(s),
            ["battery_low", "signal_unstable", "weather_warning", "status_returning_low_battery", "high_altitude"],
        )


class TestScoreAndLevel(unittest.TestCase):

    def test_score_is_clamped(self):
        s = evaluate_risk(vehicle(status="error"), telemetry(battery=5, signal=10), "no_fly")
        self.assertEqual(sum(f.weight for f in s.factors), 170)
        self.assertEqual(s.score, 100)
        self.assertEqual(s.level, "high")

    def test_thresholds(self):
        self.assertEqual(score_to_level(0), "low")
        self.assertEqual(score_to_level(29), "low")
        self.assertEqual(score_to_level(30), "medium")
        self.assertEqual(score_to_level(69), "medium")
        self.assertEqual(score_to_level(70), "high")
        self.assertEqual(score_to_level(100), "high")

    def test_high_from_score_alone(self):
        s = evaluate_risk(vehicle(), telemetry(battery=10, signal=20))
        self.assertEqual(s.score, 75)
        self.assertEqual(s.level, "high")


class TestWeatherOverride(unittest.TestCase):

    def test_no_fly_forces_high(self):
        s = evaluate_risk(vehicle(), telemetry(), "no_fly")
        self.assertEqual(s.score, 45)
        self.assertEqual(s.level, "high")
        self.assertEqual(s.weather_risk, "no_fly")

    def test_warning_lifts_low_to_medium(self):
        s = evaluate_risk(vehicle(), telemetry(), "warning")
        self.assertEqual(s.score, 25)
        self.assertEqual(s.level, "medium")

    def test_warning_never_lowers(self):
        s = evaluate_risk(vehicle(status="error"), telemetry(battery=10), "warning")
        self.assertEqual(s.level, "high")

    def test_ok_weather_adds_nothing(self):
        s = evaluate_risk(vehicle(), telemetry(), "ok")
        self.assertEqual(s.factors, [])
        self.assertEqual(s.weather_risk, "ok")

    def test_accepts_weather_info(self):
        info = WeatherInfo(wind_speed_ms=18.0, risk_level="no_fly")
        s = evaluate_risk(vehicle(), telemetry(), info)
        self.assertEqual(s.weather_risk, "no_fly")
        self.assertIn("weather_no_fly", factor_ids(s))


class TestMissingInputs(unittest.TestCase):

    def test_without_telemetry_uses_vehicle_battery(self):
        s = evaluate_risk(vehicle(battery=12.0))
        self.assertEqual(factor_ids(s), ["battery_critical"])

    def test_pure_and_repeatable(self):
        v = vehicle(status="returning", battery=20.0)
        t = telemetry(battery=20.0, signal=40)
        first = evaluate_risk(v, t, "warning")
        second = evaluate_risk(v, t, "warning")

        self.assertEqual(first, second)
        self.assertEqual(v.battery, 20.0)
        self.assertEqual(t.signal, 40)


class TestNotifier(unittest.TestCase):

    def setUp(self):
        self.bus = EventBus()
        self.notifier = RiskChangeNotifier(self.bus)

    def test_first_evaluation_sets_baseline(self):
        self.notifier.evaluate(vehicle(), telemetry(battery=10, signal=20))
        self.assertEqual(self.notifier.last_level("dr-1"), "high")
        self.assertEqual(len(self.bus), 0)

    def test_low_to_high_publishes_once(self):
        self.notifier.evaluate(vehicle(), telemetry())
        published = self.notifier.observe(evaluate_risk(vehicle(), telemetry(), "no_fly"))

        self.assertTrue(published)
        events = self.bus.recent()
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].level, "error")
        self.assertEqual(events[0].source, "monitoring")
        self.assertIn("DR-1", events[0].title)
        self.assertIn("No-fly weather", events[0].title)

    def test_high_to_high_is_silent(self):
        self.notifier.evaluate(vehicle(), telemetry(), "no_fly")
        self.notifier.evaluate(vehicle(), telemetry(), "no_fly")
        self.notifier.evaluate(vehicle(status="error"), telemetry(), "no_fly")
        self.assertEqual(len(self.bus), 0)

    def test_de_escalation_is_silent(self):
        self.notifier.evaluate(vehicle(), telemetry(), "no_fly")
        self.notifier.evaluate(vehicle(), telemetry())
        self.assertEqual(self.notifier.last_level("dr-1"), "low")
        self.assertEqual(len(self.bus), 0)

    def test_low_to_medium_is_a_warning(self):
        self.notifier.evaluate(vehicle(), telemetry())
        self.notifier.evaluate(vehicle(), telemetry(signal=50), "warning")

        events = self.bus.recent()
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].level, "warning")
        self.assertIn("Unstable link", events[0].title)

    def test_tracks_vehicles_separately(self):
        self.notifier.evaluate(vehicle("dr-1"), telemetry("dr-1"))
        self.notifier.evaluate(vehicle("dr-2"), telemetry("dr-2"), "no_fly")
        self.assertEqual(len(self.bus), 0)

        self.notifier.evaluate(vehicle("dr-1"), telemetry("dr-1"), "no_fly")
        self.assertEqual(len(self.bus), 1)

    def test_helpers(self):
        self.assertTrue(is_escalation("low", "medium"))
        self.assertFalse(is_escalation("high", "high"))
        self.assertFalse(is_escalation("high", "low"))
        self.assertEqual(risk_to_event_level("high"), "error")
        self.assertEqual(risk_to_event_level("medium"), "warning")
        self.assertEqual(risk_to_event_level("low"), "info")


if __name__ == "__main__":
    unittest.main()
