import unittest
from unittest import mock

from fastapi.testclient import TestClient

from treeops import crew
from treeops.app import create_app
from treeops.crew import InMemoryCrewLocationStore
from treeops.dependencies import get_crew_location_store
from treeops.schemas import CrewLocationUpdate, CrewStatusUpdate

T0 = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000


def _update(crew_id="crew-1", lat=0.0, lng=0.0, **extra):
    return CrewLocationUpdate(crew_id=crew_id, coordinates={"lat": lat, "lng": lng}, **extra)


class CrewTrackingTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryCrewLocationStore()

    def test_haversine_one_degree_of_longitude_at_equator(self):
        self.assertAlmostEqual(crew.haversine_miles(0, 0, 0, 1), 69.1, places=1)
        self.assertEqual(crew.haversine_miles(30, -97, 30, -97), 0)

    def test_first_update_has_no_movement(self):
        with mock.patch("treeops.crew._now_ms", return_value=T0):
            location = crew.update_location(self.store, _update(accuracy=None))
        self.assertIsNone(location["movement"])
        self.assertEqual(location["crew_name"], "Crew crew-1")
        self.assertEqual(location["accuracy"], crew.DEFAULT_ACCURACY)
        self.assertEqual(location["status"], "active")

    def test_movement_and_speed_between_updates(self):
        with mock.patch("treeops.crew._now_ms", return_value=T0):
            crew.update_location(self.store, _update())
        with mock.patch("treeops.crew._now_ms", return_value=T0 + HOUR_MS):
            location = crew.update_location(self.store, _update(lng=1.0))

        movement = location["movement"]
        self.assertEqual(movement["time_since_last_update"], HOUR_MS)
        self.assertEqual(movement["estimated_speed"], 69)
        self.assertEqual(location["previous_coordinates"], {"lat": 0.0, "lng": 0.0})
        self.assertEqual(crew.movement_status(location), "highway_driving")
        self.assertEqual(crew.recommendations(location), ["Consider reducing speed for safety"])

    def test_rejects_missing_fields(self):
        with self.assertRaises(ValueError):
            crew.update_location(self.store, CrewLocationUpdate(coordinates={"lat": 1, "lng": 2}))
        with self.assertRaises(ValueError):
            crew.update_location(
                self.store, CrewLocationUpdate(crew_id="c", coordinates={"lat": "1", "lng": 2})
            )

    def test_list_filters(self):
        with mock.patch("treeops.crew._now_ms", return_value=T0):
            crew.update_location(self.store, _update("near", lat=0.0, lng=0.1))
            crew.update_location(self.store, _update("far", lat=0.0, lng=1.0))
            crew.update_location(self.store, _update("break", lat=0.0, lng=0.0, status="on_break"))

        with mock.patch("treeops.crew._now_ms", return_value=T0 + 60_000):
            everything = crew.list_locations(self.store)
            active = crew.list_locations(self.store, active_only=True)
            nearby = crew.list_locations(
                self.store, within_radius=10, center_lat=0.0, center_lng=0.0
            )
            one = crew.list_locations(self.store, crew_id="far")

        self.assertEqual(len(everything), 3)
        self.assertEqual({loc["crew_id"] for loc in active}, {"near", "far"})
        self.assertEqual({loc["crew_id"] for loc in nearby}, {"near", "break"})
        self.assertEqual([loc["crew_id"] for loc in one], ["far"])
        self.assertEqual(one[0]["time_since_update"], 1)
        self.assertTrue(one[0]["is_recent"])
        self.assertEqual(one[0]["accuracy_level"], "medium")
        self.assertEqual(one[0]["movement_status"], "unknown")

        with mock.patch("treeops.crew._now_ms", return_value=T0 + 11 * 60_000):
            self.assertEqual(crew.list_locations(self.store, active_only=True), [])

    def test_update_status_and_remove(self):
        self.assertIsNone(crew.update_status(self.store, CrewStatusUpdate(crew_id="ghost")))

        crew.update_location(self.store, _update(notes="start"))
        updated = crew.update_status(
            self.store,
            CrewStatusUpdate(crew_id="crew-1", status="on_break", assigned_jobs=["j1"]),
        )
        self.assertEqual(updated["status"], "on_break")
        self.assertEqual(updated["assigned_jobs"], ["j1"])
        self.assertEqual(updated["notes"], "start")
        self.assertIn("last_status_update", updated)

        self.assertTrue(crew.remove_crew(self.store, "crew-1"))
        self.assertFalse(crew.remove_crew(self.store, "crew-1"))

    def test_heavy_job_load_recommendation(self):
        location = crew.update_location(
            self.store, _update(assigned_jobs=["a", "b", "c", "d", "e"])
        )
        self.assertEqual(
            crew.recommendations(location), ["Heavy job load - consider route optimization"]
        )


class CrewApiTests(unittest.TestCase):
    def setUp(self):
        self.app = create_app()
        self.store = InMemoryCrewLocationStore()
        self.app.dependency_overrides[get_crew_location_store] = lambda: self.store
        self.client = TestClient(self.app)

    def test_location_endpoints(self):
        response = self.client.post(
            "/api/crew/location",
            json={"crew_id": "crew-1", "coordinates": {"lat": 30.27, "lng": -97.74}},
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["movement_detected"])

        listing = self.client.get("/api/crew/location", params={"active_only": "true"}).json()
        self.assertEqual(listing["total_crews"], 1)
        self.assertEqual(listing["active_crews"], 1)
        self.assertEqual(listing["recent_updates"], 1)

        status = self.client.put(
            "/api/crew/location", json={"crew_id": "crew-1", "status": "off_duty"}
        )
        self.assertTrue(status.json()["status_updated"])

        removed = self.client.delete("/api/crew/location", params={"crew_id": "crew-1"})
        self.assertTrue(removed.json()["was_tracking"])

    def test_validation_errors(self):
        bad = self.client.post("/api/crew/location", json={"crew_id": "crew-1"})
        self.assertEqual(bad.status_code, 400)
        self.assertEqual(
            self.client.put("/api/crew/location", json={"status": "x"}).status_code, 400
        )
        self.assertEqual(
            self.client.put("/api/crew/location", json={"crew_id": "ghost"}).status_code, 404
        )
        self.assertEqual(self.client.delete("/api/crew/location").status_code, 400)


if __name__ == "__main__":
    unittest.main()
