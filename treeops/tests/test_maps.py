import unittest
from unittest import mock

import requests
from fastapi.testclient import TestClient

from treeops import maps
from treeops.app import create_app
from treeops.dependencies import get_maps_client
from treeops.maps import GoogleMapsClient, MapsApiError, MapsNotConfiguredError


def _response(payload):
    response = mock.Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _client(payload=None):
    session = mock.Mock()
    session.get.return_value = _response(payload or {"status": "OK"})
    return GoogleMapsClient(api_key="test-key", session=session), session


DIRECTIONS = {
    "status": "OK",
    "routes": [
        {
            "summary": "I-35 N",
            "waypoint_order": [1, 0],
            "overview_polyline": {"points": "abc"},
            "legs": [
                {
                    "distance": {"text": "5 mi", "value": 8046.7},
                    "duration": {"text": "10 mins", "value": 600},
                    "duration_in_traffic": {"text": "12 mins", "value": 720},
                    "start_address": "Depot",
                    "end_address": "Job A",
                    "steps": [{}, {}],
                },
                {
                    "distance": {"text": "5 mi", "value": 8046.7},
                    "duration": {"text": "10 mins", "value": 600},
                    "start_address": "Job A",
                    "end_address": "Job B",
                    "steps": [{}],
                },
            ],
        }
    ],
}

GEOCODE = {
    "status": "OK",
    "results": [
        {
            "formatted_address": "12 Elm St, Austin, TX 78701, USA",
            "place_id": "place-1",
            "types": ["street_address"],
            "geometry": {
                "location": {"lat": 30.27, "lng": -97.74},
                "location_type": "ROOFTOP",
            },
            "address_components": [
                {"long_name": "78701", "short_name": "78701", "types": ["postal_code"]},
                {"long_name": "Austin", "short_name": "Austin", "types": ["locality"]},
                {"long_name": "Texas", "short_name": "TX", "types": ["administrative_area_level_1"]},
                {"long_name": "Travis County", "short_name": "Travis", "types": ["administrative_area_level_2"]},
                {"long_name": "United States", "short_name": "US", "types": ["country"]},
            ],
        }
    ],
}

DISTANCE_MATRIX = {
    "status": "OK",
    "origin_addresses": ["Depot"],
    "destination_addresses": ["Job A", "Nowhere"],
    "rows": [
        {
            "elements": [
                {
                    "status": "OK",
                    "distance": {"text": "10 mi", "value": 16093.4},
                    "duration": {"text": "20 mins", "value": 1200},
                    "duration_in_traffic": {"text": "25 mins", "value": 1500},
                },
                {"status": "NOT_FOUND"},
            ]
        }
    ],
}


def _element(meters, seconds):
    return {
        "status": "OK",
        "distance": {"value": meters},
        "duration": {"value": seconds},
    }


OPTIMIZE_MATRIX = {
    "status": "OK",
    "rows": [
        {
            "elements": [
                _element(0, 0),
                _element(3218.68, 600),
                _element(1609.34, 1200),
            ]
        }
    ],
}

WORK_ORDERS = [
    {"id": "wo-a", "address": "A", "priority": "urgent", "estimated_duration": 60},
    {"id": "wo-b", "address": "B", "priority": "high", "estimated_duration": None},
    {"id": "wo-c", "address": None, "priority": None, "estimated_duration": None},
]


class MapsClientTests(unittest.TestCase):
    def test_requires_api_key(self):
        client = GoogleMapsClient(api_key=None, session=mock.Mock())
        self.assertFalse(client.configured)
        with self.assertRaises(MapsNotConfiguredError):
            client.autocomplete("12 Elm")

    def test_autocomplete_params(self):
        client, session = _client({"predictions": [{"description": "12 Elm St"}], "status": "OK"})
        result = client.autocomplete("12 Elm", session_token="tok")
        self.assertEqual(result["predictions"], [{"description": "12 Elm St"}])

        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        self.assertTrue(url.endswith("/place/autocomplete/json"))
        self.assertEqual(params["types"], "address")
        self.assertEqual(params["sessiontoken"], "tok")
        self.assertEqual(params["key"], "test-key")

    def test_place_details_fields(self):
        client, session = _client({"result": {"name": "x"}, "status": "OK"})
        result = client.place_details("place-1")
        self.assertEqual(result, {"result": {"name": "x"}, "status": "OK"})
        params = session.get.call_args.kwargs["params"]
        self.assertEqual(params["fields"], maps.PLACE_DETAIL_FIELDS)
        self.assertNotIn("sessiontoken", params)

    def test_directions_request_and_metrics(self):
        client, session = _client(DIRECTIONS)
        result = client.directions(
            "Depot", "Yard", waypoints="A|B", avoid_tolls=True, avoid_highways=True, optimize=True
        )
        params = session.get.call_args.kwargs["params"]
        self.assertEqual(params["waypoints"], "optimize:true|A|B")
        self.assertEqual(params["avoid"], "tolls|highways")
        self.assertEqual(params["departure_time"], "now")

        route = result["routes"][0]
        self.assertEqual(route["duration"], 1200)
        self.assertEqual(route["duration_in_traffic"], 1320)
        self.assertEqual(route["start_address"], "Depot")
        self.assertEqual(route["end_address"], "Job B")
        self.assertEqual(route["legs"][0]["steps"], 2)
        self.assertEqual(route["polyline"], "abc")

        self.assertEqual(
            result["metrics"],
            {
                "total_distance_miles": 10.0,
                "total_duration_minutes": 20,
                "total_duration_with_traffic_minutes": 22,
                "traffic_delay_minutes": 2,
                "estimated_fuel_cost": 1.5,
                "crew_travel_time_minutes": 22,
                "jobs_in_route": 2,
            },
        )
        self.assertEqual(result["optimized_waypoints"], [1, 0])

    def test_directions_without_routes(self):
        result = maps.shape_directions({"status": "ZERO_RESULTS", "routes": []})
        self.assertEqual(result["routes"], [])
        self.assertIsNone(result["metrics"])
        self.assertEqual(result["optimized_waypoints"], [])

    def test_geocode_shaping(self):
        result = maps.shape_geocode(GEOCODE)
        best = result["results"][0]
        self.assertEqual(best["confidence"], "high")
        self.assertEqual(best["postal_code"], "78701")
        self.assertEqual(best["state"], "TX")
        self.assertEqual(best["county"], "Travis County")
        self.assertEqual(best["country"], "US")
        self.assertEqual(result["metrics"]["service_area"], "Austin, TX")
        self.assertTrue(result["metrics"]["is_residential"])
        self.assertFalse(result["metrics"]["is_commercial"])
        self.assertEqual(result["total_results"], 1)

    def test_geocode_batch_reports_each_address(self):
        session = mock.Mock()

        def fake_get(url, params, timeout):
            if params["address"] == "down":
                raise requests.ConnectionError("boom")
            if params["address"] == "nowhere":
                return _response({"status": "ZERO_RESULTS", "results": []})
            return _response(GEOCODE)

        client = GoogleMapsClient(api_key="test-key", session=session)
        with mock.patch("treeops.maps.requests.get", side_effect=fake_get) as http_get:
            result = client.geocode_batch(["12 Elm", "nowhere", "down"])

        self.assertEqual(http_get.call_count, 3)
        session.get.assert_not_called()

        statuses = [r["status"] for r in result["batch_results"]]
        self.assertEqual(statuses, ["success", "failed", "error"])
        self.assertEqual(result["batch_results"][0]["coordinates"], {"lat": 30.27, "lng": -97.74})
        self.assertEqual(result["batch_results"][1]["error"], "ZERO_RESULTS")
        self.assertEqual(result["successful"], 1)
        self.assertEqual(result["failed"], 2)

    def test_distance_matrix_shaping(self):
        result = maps.shape_distance_matrix(DISTANCE_MATRIX)
        ok, missing = result["rows"][0]["elements"]
        self.assertEqual(ok["distance"]["miles"], 10.0)
        self.assertEqual(ok["duration"]["minutes"], 20)
        self.assertEqual(ok["duration_in_traffic"]["minutes"], 25)
        self.assertEqual(ok["travel_metrics"]["traffic_delay"], 5)
        self.assertEqual(ok["travel_metrics"]["efficiency_score"], 30.0)
        self.assertFalse(ok["travel_metrics"]["is_efficient"])
        self.assertEqual(missing["error"], "Could not calculate route")
        self.assertEqual(missing["destination_address"], "Nowhere")

        summary = result["summary_metrics"]
        self.assertEqual(summary["total_routes"], 1)
        self.assertEqual(summary["total_travel_time_with_traffic"], 25)
        self.assertEqual(summary["routes_with_delays"], 0)
        self.assertEqual(summary["efficient_routes"], 0)

    def test_optimize_routes_by_time_and_distance(self):
        client, session = _client(OPTIMIZE_MATRIX)
        by_time = client.optimize_routes(WORK_ORDERS, crew_location="Depot")
        self.assertEqual(
            session.get.call_args.kwargs["params"]["origins"], "Depot|A|B"
        )
        ids = [r["work_order_id"] for r in by_time["optimized_routes"]]
        self.assertEqual(ids, ["wo-a", "wo-b"])
        self.assertEqual(by_time["optimized_routes"][1]["estimated_duration"], 120)

        summary = by_time["optimization_summary"]
        self.assertEqual(summary["total_jobs"], 2)
        self.assertEqual(summary["total_travel_time"], 30)
        self.assertEqual(summary["total_work_time"], 180)
        self.assertTrue(summary["within_time_limit"])

        by_distance = client.optimize_routes(
            WORK_ORDERS, crew_location="Depot", optimize_for="distance"
        )
        ids = [r["work_order_id"] for r in by_distance["optimized_routes"]]
        self.assertEqual(ids, ["wo-b", "wo-a"])

    def test_optimize_routes_rejects_bad_status(self):
        client, _ = _client({"status": "REQUEST_DENIED"})
        with self.assertRaises(MapsApiError):
            client.optimize_routes(WORK_ORDERS)

    def test_optimization_score_weights(self):
        # 10 minutes, 1 mile, urgent.
        score = maps.optimization_score(600, maps.METERS_PER_MILE, "urgent", "time")
        self.assertAlmostEqual(score, 90 * 0.7 + 50 * 0.3)
        balanced = maps.optimization_score(600, maps.METERS_PER_MILE, None, "balanced")
        self.assertAlmostEqual(balanced, (90 + 99) / 2)


class MapsApiTests(unittest.TestCase):
    def setUp(self):
        self.app = create_app()
        self.client = TestClient(self.app)

    def tearDown(self):
        self.app.dependency_overrides.clear()

    def _use(self, maps_client):
        self.app.dependency_overrides[get_maps_client] = lambda: maps_client

    def test_missing_api_key(self):
        self._use(GoogleMapsClient(api_key=None))
        for path in ("/api/maps/autocomplete", "/api/maps/geocode", "/api/maps/directions"):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 500)
            self.assertEqual(response.json()["detail"], "Google Maps API key not configured")

    def test_missing_parameters(self):
        self._use(_client()[0])
        cases = {
            "/api/maps/autocomplete": "Missing required parameter: input",
            "/api/maps/place-details": "Missing required parameter: place_id",
            "/api/maps/geocode": "Missing required parameter: address",
            "/api/maps/directions": "Missing required parameters: origin and destination",
            "/api/maps/distance-matrix": "Missing required parameters: origins and destinations",
        }
        for path, message in cases.items():
            response = self.client.get(path)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["detail"], message)

    def test_upstream_failure(self):
        client, session = _client()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        self._use(client)
        response = self.client.get("/api/maps/autocomplete", params={"input": "12 Elm"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Failed to fetch address suggestions")

    def test_directions_route(self):
        self._use(_client(DIRECTIONS)[0])
        response = self.client.get(
            "/api/maps/directions",
            params={"origin": "Depot", "destination": "Yard", "waypoints": "A|B"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["metrics"]["jobs_in_route"], 2)

    def test_batch_limits(self):
        self._use(_client()[0])
        empty = self.client.post("/api/maps/geocode/batch", json={"addresses": []})
        self.assertEqual(empty.status_code, 400)
        too_many = self.client.post(
            "/api/maps/geocode/batch", json={"addresses": [str(i) for i in range(11)]}
        )
        self.assertEqual(too_many.status_code, 400)

    def test_optimize_route_errors(self):
        self._use(_client({"status": "OVER_QUERY_LIMIT"})[0])
        no_address = self.client.post(
            "/api/maps/distance-matrix/optimize", json={"work_orders": [{"id": "wo-1"}]}
        )
        self.assertEqual(no_address.json()["detail"], "No valid addresses found in work orders")

        denied = self.client.post(
            "/api/maps/distance-matrix/optimize",
            json={"work_orders": [{"id": "wo-1", "address": "A"}]},
        )
        self.assertEqual(denied.status_code, 400)
        self.assertEqual(denied.json()["detail"], "Distance Matrix API returned: OVER_QUERY_LIMIT")

        too_many = self.client.post(
            "/api/maps/distance-matrix/optimize",
            json={"work_orders": [{"id": str(i), "address": "A"} for i in range(26)]},
        )
        self.assertEqual(too_many.status_code, 400)


if __name__ == "__main__":
    unittest.main()
