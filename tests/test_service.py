"""End-to-end tests for the registry HTTP API."""

from __future__ import annotations

import sqlite3
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

from roster.config import RosterConfig
from roster.database import Database
from roster.service import create_app
from roster.store import RecordStore


class RegistryServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tempdir.name) / "roster.sqlite3"
        self.config = RosterConfig(database_path=db_path)
        self.store = RecordStore.at_path(db_path)
        self.app = create_app(store=self.store, config=self.config)

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def _create(self, client: TestClient, name: str, email: str, age: int) -> dict:
        response = client.post("/v1/users", json={"name": name, "email": email, "age": age})
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_healthcheck(self) -> None:
        with TestClient(self.app) as client:
            response = client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_user_lifecycle(self) -> None:
        with TestClient(self.app) as client:
            ana = self._create(client, "Ana", "ana@example.com", 25)
            beto = self._create(client, "Beto", "beto@example.com", 30)
            self._create(client, "Carla", "carla@example.com", 20)
            self.assertNotEqual(ana["id"], beto["id"])
            self.assertIsNotNone(ana["created_at"])

            listing = client.get("/v1/users", params={"page_size": 10})
            self.assertEqual(listing.status_code, 200, listing.text)
            payload = listing.json()
            self.assertEqual([user["name"] for user in payload["users"]], ["Ana", "Beto", "Carla"])
            self.assertEqual(payload["total_pages"], 1)
            self.assertEqual(payload["page_size_options"], [5, 10, 15, 20])

            by_age = client.get("/v1/users", params={"page_size": 10, "age_order": "desc"})
            self.assertEqual([user["age"] for user in by_age.json()["users"]], [30, 25, 20])

            search = client.get("/v1/users", params={"search": "20"})
            self.assertEqual([user["name"] for user in search.json()["users"]], ["Carla"])
            self.assertEqual(search.json()["filtered_count"], 1)
            self.assertEqual(search.json()["total_count"], 3)

            deleted = client.delete(f"/v1/users/{beto['id']}")
            self.assertEqual(deleted.status_code, 204)

            remaining = client.get("/v1/users").json()
            self.assertEqual(remaining["filtered_count"], 2)
            self.assertEqual(sorted(user["name"] for user in remaining["users"]), ["Ana", "Carla"])

    def test_update_replaces_record_and_keeps_creation_time(self) -> None:
        with TestClient(self.app) as client:
            ana = self._create(client, "Ana", "ana@example.com", 25)

            updated = client.put(
                f"/v1/users/{ana['id']}",
                json={"name": "Ana Maria", "email": "am@example.com", "age": 26},
            )
            self.assertEqual(updated.status_code, 200, updated.text)
            body = updated.json()
            self.assertEqual(body["name"], "Ana Maria")
            self.assertEqual(body["created_at"], ana["created_at"])

            fetched = client.get(f"/v1/users/{ana['id']}")
            self.assertEqual(fetched.json(), body)

    def test_update_of_unknown_id_inserts(self) -> None:
        with TestClient(self.app) as client:
            response = client.put(
                "/v1/users/42",
                json={"name": "Dani", "email": "dani@example.com", "age": 33},
            )
            self.assertEqual(response.status_code, 200, response.text)
            self.assertEqual(response.json()["id"], 42)
            self.assertEqual(client.get("/v1/users/42").status_code, 200)

    def test_unknown_user_returns_404_and_delete_is_noop(self) -> None:
        with TestClient(self.app) as client:
            self.assertEqual(client.get("/v1/users/999").status_code, 404)
            self.assertEqual(client.delete("/v1/users/999").status_code, 204)

    def test_invalid_payloads_are_rejected(self) -> None:
        invalid = [
            {"name": "A", "email": "a@example.com", "age": 20},
            {"name": "x" * 21, "email": "a@example.com", "age": 20},
            {"name": "Ana", "email": "not-an-email", "age": 20},
            {"name": "Ana", "email": "a" * 25 + "@example.com", "age": 20},
            {"name": "Ana", "email": "ana@example.com", "age": -1},
            {"name": "Ana", "email": "ana@example.com", "age": 121},
        ]
        with TestClient(self.app) as client:
            for payload in invalid:
                response = client.post("/v1/users", json=payload)
                self.assertEqual(response.status_code, 422, payload)
            self.assertEqual(client.get("/v1/users").json()["total_count"], 0)

    def test_out_of_range_page_returns_empty_slice(self) -> None:
        with TestClient(self.app) as client:
            self._create(client, "Ana", "ana@example.com", 25)
            response = client.get("/v1/users", params={"page": 5})
            self.assertEqual(response.status_code, 200)
            payload = response.json()
            self.assertEqual(payload["users"], [])
            self.assertEqual(payload["total_pages"], 1)

            self.assertEqual(client.get("/v1/users", params={"page_size": 0}).status_code, 422)

    def test_storage_failure_maps_to_service_unavailable(self) -> None:
        with TestClient(self.app) as client:
            with mock.patch.object(
                Database,
                "insert_user",
                side_effect=sqlite3.OperationalError("database or disk is full"),
            ):
                response = client.post(
                    "/v1/users",
                    json={"name": "Ana", "email": "ana@example.com", "age": 25},
                )
        self.assertEqual(response.status_code, 503)
        self.assertIn("database or disk is full", response.json()["detail"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
