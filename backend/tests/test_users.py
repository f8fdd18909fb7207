"""Tests for User CRUD endpoints."""
from tests.conftest import create_test_user


class TestUserCRUD:
    """User create / get / update / list."""

    def test_create_user(self, client):
        data = create_test_user(client, name="Alice", email="alice@example.com")
        assert data["name"] == "Alice"
        assert data["email"] == "alice@example.com"
        assert "user_id" in data

    def test_create_user_duplicate_email(self, client):
        create_test_user(client, name="Alice", email="alice@example.com")
        resp = client.post("/api/users/", json={"name": "Other Alice", "email": "alice@example.com"})
        assert resp.status_code == 409
        assert resp.json()["reason"] == "email_taken"

    def test_create_user_email_race_is_conflict(self, client, monkeypatch):
        """Both requests pass the lookup; the unique index decides the loser."""
        from eventhub.routers import users as users_router

        create_test_user(client, name="Alice", email="alice@example.com")
        monkeypatch.setattr(users_router, "_email_taken", lambda db, email: False)
        resp = client.post("/api/users/", json={"name": "Late Alice", "email": "alice@example.com"})
        assert resp.status_code == 409
        assert resp.json()["reason"] == "email_taken"
        assert len(client.get("/api/users/").json()) == 1

    def test_create_user_invalid_email(self, client):
        resp = client.post("/api/users/", json={"name": "Nobody", "email": "not-an-email"})
        assert resp.status_code == 422

    def test_get_user(self, client):
        user = create_test_user(client)
        resp = client.get(f"/api/users/{user['user_id']}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Test User"

    def test_get_user_not_found(self, client):
        resp = client.get("/api/users/00000000-0000-0000-0000-000000000000")
        assert resp.status_code == 404
        assert resp.json()["reason"] == "user_not_found"

    def test_update_user(self, client):
        user = create_test_user(client)
        resp = client.patch(f"/api/users/{user['user_id']}", json={
            "name": "Updated Name",
            "email": "updated@example.com",
        })
        assert resp.status_code == 200
        assert resp.json()["name"] == "Updated Name"
        assert resp.json()["email"] == "updated@example.com"

    def test_list_users(self, client):
        create_test_user(client, name="Alice")
        create_test_user(client, name="Bob")
        resp = client.get("/api/users/")
        assert resp.status_code == 200
        users = resp.json()
        assert len(users) >= 2
        names = [u["name"] for u in users]
        assert "Alice" in names
        assert "Bob" in names

    def test_update_user_rejects_null_fields(self, client):
        user = create_test_user(client, name="Alice")
        for field in ("name", "email"):
            resp = client.patch(f"/api/users/{user['user_id']}", json={field: None})
            assert resp.status_code == 422, field
        assert client.get(f"/api/users/{user['user_id']}").json()["name"] == "Alice"

    def test_update_user_email_taken(self, client):
        create_test_user(client, name="Alice", email="alice@example.com")
        bob = create_test_user(client, name="Bob", email="bob@example.com")
        resp = client.patch(f"/api/users/{bob['user_id']}", json={"email": "alice@example.com"})
        assert resp.status_code == 409
        assert resp.json()["reason"] == "email_taken"

    def test_update_user_not_found(self, client):
        resp = client.patch("/api/users/missing", json={"name": "Ghost"})
        assert resp.status_code == 404
        assert resp.json()["reason"] == "user_not_found"
