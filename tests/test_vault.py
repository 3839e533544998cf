"""
Vault API tests: admin add/delete/list and password verification.
"""

import hashlib

from fastapi.testclient import TestClient

from conftest import ADMIN_PASSWORD, TEST_CONFIG
from tempshare import vault

ITEMS = [
    {"label": "Wi-Fi", "content": "network: office\nkey: 1234"},
    {"label": "Door", "content": "4711"},
    {"label": "Alarm", "content": "0000"},
]


def add(client, password="correct horse battery", title="Office", items=ITEMS, admin=ADMIN_PASSWORD, **extra):
    return client.post("/api/admin/add", json={
        "adminPassword": admin,
        "password": password,
        "title": title,
        "items": items,
        **extra,
    })


def digest(password):
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class TestAddAndVerify:

    def test_verify_returns_record_in_order(self, vault_client):
        assert add(vault_client).json() == {"success": True}

        response = vault_client.post("/api/verify", json={"password": "correct horse battery"})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"]["title"] == "Office"
        assert data["data"]["items"] == ITEMS
        assert data["data"]["createdAt"] == "2023-11-14T22:13:20.000Z"
        assert data["data"]["expiresAt"] is None

    def test_record_keyed_by_hash_without_plaintext(self, vault_client, store):
        add(vault_client)
        key = digest("correct horse battery")
        assert key in store.data
        assert all("correct horse battery" not in value for value, _ in store.data.values())

    def test_wrong_password_is_unauthorized(self, vault_client):
        add(vault_client)
        response = vault_client.post("/api/verify", json={"password": "wrong"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid password"}

    def test_expired_record_is_unauthorized(self, vault_client, clock):
        add(vault_client, expiresAt="2023-11-15T00:00:00Z")
        assert vault_client.post("/api/verify", json={"password": "correct horse battery"}).status_code == 200

        clock.advance(86400)
        response = vault_client.post("/api/verify", json={"password": "correct horse battery"})
        assert response.status_code == 401

    def test_add_replaces_existing_record(self, vault_client):
        add(vault_client, title="First")
        add(vault_client, title="Second")
        data = vault_client.post("/api/verify", json={"password": "correct horse battery"}).json()
        assert data["data"]["title"] == "Second"

    def test_add_validation(self, vault_client, store):
        assert add(vault_client, password="").status_code == 400
        assert add(vault_client, title="   ").status_code == 400
        assert add(vault_client, items=[]).status_code == 400
        assert add(vault_client, items=[{"label": "", "content": "x"}]).status_code == 400
        assert add(vault_client, items=[{"label": "x"}]).status_code == 400
        assert add(vault_client, expiresAt="tomorrow").status_code == 400
        assert store.record_calls() == []

    def test_out_of_range_expiry_is_rejected(self, vault_client, store):
        # Valid ISO text whose UTC equivalent falls past year 9999
        response = add(vault_client, expiresAt="9999-12-31T23:59:59-01:00")
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert store.record_calls() == []

    def test_expiry_is_stored_in_utc(self, vault_client):
        add(vault_client, expiresAt="2030-01-01T02:00:00+02:00")
        data = vault_client.post("/api/verify", json={"password": "correct horse battery"}).json()
        assert data["data"]["expiresAt"] == "2030-01-01T00:00:00.000Z"

    def test_verify_requires_json(self, vault_client):
        response = vault_client.post("/api/verify", content="password=x",
                                     headers={"Content-Type": "application/x-www-form-urlencoded"})
        assert response.status_code == 400

    def test_verify_is_rate_limited(self, vault_client):
        for _ in range(10):
            vault_client.post("/api/verify", json={"password": "guess"})
        response = vault_client.post("/api/verify", json={"password": "guess"})
        assert response.status_code == 429


class TestAdminAuth:

    def test_wrong_secret_never_touches_store(self, vault_client, store):
        add(vault_client)
        store.calls.clear()
        snapshot = dict(store.data)

        assert add(vault_client, password="other", admin="nope").status_code == 401
        response = vault_client.post("/api/admin/delete", json={
            "adminPassword": "nope", "hash": digest("correct horse battery"),
        })
        assert response.status_code == 401
        response = vault_client.post("/api/admin/list", json={"adminPassword": "nope"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Unauthorized"}

        assert store.calls == []
        assert store.data == snapshot

    def test_missing_secret_field(self, vault_client):
        response = vault_client.post("/api/admin/list", json={})
        assert response.status_code == 401

    def test_secret_checked_before_body_schema(self, vault_client, store):
        add(vault_client)
        store.calls.clear()
        snapshot = dict(store.data)

        response = vault_client.post("/api/admin/add", json={
            "adminPassword": "nope", "password": "other", "title": "No items",
        })
        assert response.status_code == 401
        response = vault_client.post("/api/admin/list", json={"adminPassword": "nope", "extra": 1})
        assert response.status_code == 401
        response = vault_client.post("/api/admin/delete", json={"adminPassword": "nope"})
        assert response.status_code == 401
        response = vault_client.post("/api/admin/list", json={"adminPassword": 12345})
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Unauthorized"}

        assert store.calls == []
        assert store.data == snapshot

    def test_right_secret_still_gets_schema_errors(self, vault_client):
        response = vault_client.post("/api/admin/list", json={"adminPassword": ADMIN_PASSWORD, "extra": 1})
        assert response.status_code == 400
        response = vault_client.post("/api/admin/delete", json={"adminPassword": ADMIN_PASSWORD})
        assert response.status_code == 400

    def test_unconfigured_secret_rejects_everything(self, store, clock):
        config = {**TEST_CONFIG, "admin_password": None}
        client = TestClient(vault.create_app(config, store=store, clock=clock))
        response = client.post("/api/admin/list", json={"adminPassword": ""})
        assert response.status_code == 401


class TestListAndDelete:

    def test_list_summarizes_records(self, vault_client, clock):
        add(vault_client, password="first", title="One")
        clock.advance(10)
        add(vault_client, password="second", title="Two", items=ITEMS[:1], expiresAt="2030-01-01T00:00:00Z")
        # Leaves a rate-limit counter in the store
        vault_client.post("/api/verify", json={"password": "first"})

        response = vault_client.post("/api/admin/list", json={"adminPassword": ADMIN_PASSWORD})
        assert response.status_code == 200
        items = sorted(response.json()["items"], key=lambda item: item["title"])
        assert items == [
            {
                "hash": digest("first"),
                "title": "One",
                "itemCount": 3,
                "createdAt": "2023-11-14T22:13:20.000Z",
                "expiresAt": None,
            },
            {
                "hash": digest("second"),
                "title": "Two",
                "itemCount": 1,
                "createdAt": "2023-11-14T22:13:30.000Z",
                "expiresAt": "2030-01-01T00:00:00.000Z",
            },
        ]

    def test_delete_by_hash(self, vault_client):
        add(vault_client)
        response = vault_client.post("/api/admin/delete", json={
            "adminPassword": ADMIN_PASSWORD, "hash": digest("correct horse battery"),
        })
        assert response.json() == {"success": True}

        assert vault_client.post("/api/verify", json={"password": "correct horse battery"}).status_code == 401
        listed = vault_client.post("/api/admin/list", json={"adminPassword": ADMIN_PASSWORD}).json()
        assert listed["items"] == []

    def test_delete_rejects_malformed_hash(self, vault_client):
        response = vault_client.post("/api/admin/delete", json={"adminPassword": ADMIN_PASSWORD, "hash": "abc"})
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid hash"


class TestPages:

    def test_login_and_admin_pages(self, vault_client):
        login = vault_client.get("/")
        assert login.status_code == 200
        assert "/api/verify" in login.text
        assert login.headers["pragma"] == "no-cache"

        admin = vault_client.get("/admin")
        assert admin.status_code == 200
        assert "/api/admin/list" in admin.text
        assert "TempShare Vault" in admin.text
