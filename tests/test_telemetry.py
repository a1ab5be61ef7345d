"""
Tests for the telemetry tick state machine.
"""

import unittest

from fleet_fixtures import Fleet, seed_fleet, station, vehicle

from dronefleet.models import GeoPoint
from dronefleet.registry import MISSION_CRITICAL_BATTERY
from dronefleet.telemetry import (
    ALTITUDE_MAX,
    CONTACT_STALE,
    INIT_OFFSET_DEG,
    planar_distance,
)

HOME = station()


class TestLazyInitialisation(unittest.TestCase):

    def test_first_tick_creates_records_near_attractor(self):
        fleet = Fleet([vehicle("dr-1"), vehicle("dr-2", status="on_mission")])
        self.assertEqual(fleet.simulator.snapshot(), [])

        snapshot = fleet.simulator.tick()
        self.assertEqual(len(snapshot), 2)

        idle = fleet.simulator.get("dr-1")
        self.assertLessEqual(abs(idle.lat - HOME.lat), INIT_OFFSET_DEG / 2)
        self.assertLessEqual(abs(idle.lon - HOME.lon), INIT_OFFSET_DEG / 2)
        self.assertEqual(idle.altitude, 0.0)
        self.assertEqual(idle.speed, 0.0)
        self.assertEqual(idle.battery, 80.0)

        flying = fleet.simulator.get("dr-2")
        self.assertGreater(flying.altitude, 0.0)
        self.assertGreaterEqual(flying.speed, 40.0)

    def test_get_unknown_vehicle(self):
        fleet = Fleet([vehicle("dr-1")])
        fleet.simulator.tick()
        self.assertIsNone(fleet.simulator.get("dr-404"))


class TestFrozenStatuses(unittest.TestCase):

    def test_grounded_vehicles_do_not_move(self):
        fleet = Fleet([
            vehicle("dr-1", status="idle"),
            vehicle("dr-2", status="offline"),
            vehicle("dr-3", status="error", battery=12.0),
        ])
        sim = fleet.simulator
        sim.tick()
        before = {t.vehicle_id: (t.lat, t.lon, t.altitude, t.battery) for t in sim.snapshot()}

        for _ in range(10):
            sim.tick()
        after = {t.vehicle_id: (t.lat, t.lon, t.altitude, t.battery) for t in sim.snapshot()}

        self.assertEqual(before, after)
        for vehicle_id in before:
            self.assertEqual(fleet.registry.get_vehicle(vehicle_id).last_contact, CONTACT_STALE)
        self.assertEqual(len(fleet.bus), 0)

    def test_frozen_record_follows_battery_changes(self):
        fleet = Fleet([vehicle("dr-1", battery=50.0)])
        fleet.simulator.tick()
        fleet.registry.apply_emergency_land("dr-1")
        fleet.simulator.tick()

        self.assertEqual(fleet.simulator.get("dr-1").battery, 45.0)

    def test_emergency_landing_grounds_telemetry(self):
        fleet = Fleet([vehicle("dr-1", status="on_mission", battery=90.0)])
        fleet.simulator.tick()
        airborne = fleet.simulator.get("dr-1")
        self.assertGreater(airborne.altitude, 0.0)
        self.assertGreater(airborne.speed, 0.0)

        fleet.registry.apply_emergency_land("dr-1")
        fleet.simulator.tick()

        landed = fleet.simulator.get("dr-1")
        self.assertEqual(landed.altitude, 0.0)
        self.assertEqual(landed.speed, 0.0)
        self.assertEqual((landed.lat, landed.lon), (airborne.lat, airborne.lon))


class TestMovement(unittest.TestCase):

    def test_bounds_hold_over_many_ticks(self):
        fleet = seed_fleet()
        reg = fleet.registry
        reg.apply_dispatch("dr-101")
        reg.apply_dispatch("dr-102")
        reg.apply_recall("dr-103")

        for _ in range(200):
            for t in fleet.simulator.tick():
                self.assertGreaterEqual(t.altitude, 0.0)
                self.assertLessEqual(t.altitude, ALTITUDE_MAX)
                self.assertGreaterEqual(t.signal, 0.0)
                self.assertLessEqual(t.signal, 100.0)
                self.assertGreaterEqual(t.battery, 0.0)
                self.assertLessEqual(t.battery, 100.0)

        for v in reg.list_vehicles():
            self.assertGreaterEqual(v.battery, 0.0)
            self.assertLessEqual(v.battery, 100.0)

    def test_mission_vehicle_moves_toward_target(self):
        fleet = Fleet([vehicle("dr-1", status="on_mission", battery=100.0)])
        sim = fleet.simulator
        sim.tick()  # initialised at the station (no target known yet)

        target = GeoPoint(lat=HOME.lat + 0.5, lon=HOME.lon + 0.5)
        sim.mission_targets["dr-1"] = target
        start = sim.get("dr-1")
        initial = planar_distance(start.lat, start.lon, target.lat, target.lon)

        for _ in range(40):
            sim.tick()

        t = sim.get("dr-1")
        v = fleet.registry.get_vehicle("dr-1")
        self.assertEqual(v.status, "on_mission")
        self.assertLess(planar_distance(t.lat, t.lon, target.lat, target.lon), initial * 0.5)
        self.assertLess(v.battery, 100.0)
        self.assertGreaterEqual(t.speed, 40.0)
        self.assertLessEqual(t.speed, 50.0)

    def test_dispatched_vehicle_ends_in_error_when_battery_runs_out(self):
        fleet = Fleet([vehicle("dr-1", battery=30.0)])
        fleet.simulator.tick()
        fleet.registry.apply_dispatch("dr-1")

        for _ in range(40):
            fleet.simulator.tick()

        v = fleet.registry.get_vehicle("dr-1")
        self.assertEqual(v.status, "error")
        self.assertEqual(v.mission, MISSION_CRITICAL_BATTERY)
        self.assertLessEqual(v.battery, 10.0)
        # the flight stays open until an operator resolves it
        self.assertIsNotNone(fleet.ledger.open_flight_for("dr-1"))


class TestReturnAndArrival(unittest.TestCase):

    def test_returning_vehicle_lands_once(self):
        fleet = Fleet([vehicle("dr-1", battery=100.0)])
        sim = fleet.simulator
        reg = fleet.registry

        sim.tick()
        reg.apply_dispatch("dr-1")
        reg.apply_recall("dr-1")
        flight = fleet.ledger.open_flight_for("dr-1")

        for _ in range(80):
            sim.tick()
            if reg.get_vehicle("dr-1").status == "idle":
                break

        self.assertEqual(reg.get_vehicle("dr-1").status, "idle")
        t = sim.get("dr-1")
        self.assertEqual((t.lat, t.lon), (HOME.lat, HOME.lon))
        self.assertEqual(t.altitude, 0.0)
        self.assertEqual(t.speed, 0.0)

        closed = fleet.ledger.get(flight.id)
        self.assertEqual(closed.status, "completed")
        end_time = closed.end_time

        completed = [e for e in fleet.events() if e.source == "monitoring"]
        self.assertEqual(len(completed), 1)

        sim.tick()
        self.assertEqual(fleet.ledger.get(flight.id).end_time, end_time)
        self.assertEqual(len([e for e in fleet.events() if e.source == "monitoring"]), 1)


class TestCriticalBattery(unittest.TestCase):

    def test_fires_once(self):
        fleet = Fleet([vehicle("dr-1", status="on_mission", battery=11.0)])
        fleet.simulator.tick()

        v = fleet.registry.get_vehicle("dr-1")
        self.assertEqual(v.status, "error")
        self.assertLessEqual(v.battery, 10.0)

        for _ in range(5):
            fleet.simulator.tick()

        errors = fleet.events("error")
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].source, "monitoring")

    def test_fires_again_after_return_to_service(self):
        fleet = Fleet([vehicle("dr-1", status="on_mission", battery=11.0)])
        reg = fleet.registry
        fleet.simulator.tick()
        self.assertEqual(reg.get_vehicle("dr-1").status, "error")

        reg.apply_recall("dr-1")
        reg.apply_dispatch("dr-1")
        self.assertFalse(reg.is_battery_latched("dr-1"))

        for _ in range(30):
            fleet.simulator.tick()

        v = reg.get_vehicle("dr-1")
        self.assertEqual(v.status, "error")
        self.assertEqual(v.mission, MISSION_CRITICAL_BATTERY)
        critical = [e for e in fleet.events("error") if e.source == "monitoring"]
        self.assertEqual(len(critical), 2)


class TestFailureIsolation(unittest.TestCase):

    def test_bad_vehicle_is_skipped(self):
        fleet = Fleet([
            vehicle("dr-1", status="on_mission"),
            vehicle("dr-bad", station_id="st-missing"),
        ])

        with self.assertLogs("dronefleet.telemetry", level="ERROR"):
            fleet.simulator.tick()
            fleet.simulator.tick()

        self.assertIsNotNone(fleet.simulator.get("dr-1"))
        self.assertIsNone(fleet.simulator.get("dr-bad"))
        self.assertEqual(fleet.simulator.tick_count, 2)

        errors = fleet.events("error")
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].source, "service")
        self.assertIn("dr-bad", errors[0].title)


class TestSnapshotListeners(unittest.TestCase):

    def test_one_snapshot_per_tick(self):
        fleet = Fleet([vehicle("dr-1"), vehicle("dr-2", status="on_mission")])
        seen = []
        sub = fleet.simulator.subscribe(seen.append)

        # current (empty) snapshot is delivered on subscribe
        self.assertEqual(seen, [[]])

        fleet.simulator.tick()
        fleet.simulator.tick()
        self.assertEqual(len(seen), 3)
        self.assertEqual(len(seen[-1]), 2)

        sub.unsubscribe()
        fleet.simulator.tick()
        self.assertEqual(len(seen), 3)
        self.assertFalse(fleet.simulator.running)


class TestTickTimer(unittest.IsolatedAsyncioTestCase):

    async def test_last_unsubscribe_stops_timer(self):
        fleet = Fleet([vehicle("dr-1")])
        sim = fleet.simulator

        first = sim.subscribe(lambda snapshot: None)
        second = sim.subscribe(lambda snapshot: None)
        self.assertTrue(sim.running)

        first.unsubscribe()
        self.assertTrue(sim.running)
        second.unsubscribe()
        self.assertFalse(sim.running)

    async def test_pinned_timer_survives_unsubscribe(self):
        fleet = Fleet([vehicle("dr-1")])
        sim = fleet.simulator
        sim.start()

        sub = sim.subscribe(lambda snapshot: None)
        sub.unsubscribe()
        self.assertTrue(sim.running)

        await sim.aclose()
        self.assertFalse(sim.running)


if __name__ == "__main__":
    unittest.main()
