"""
Tests for POST /auth/register and POST /auth/login.
"""

from messagely.models import User
from messagely.security import resolve_identity


NEW_USER = {
    "username": "alice",
    "password": "secret",
    "first_name": "Alice",
    "last_name": "Smith",
    "phone": "+14155550000",
}


class TestRegister:

    def test_register_returns_usable_token(self, client):
        response = client.post("/auth/register", json=NEW_USER)

        assert response.status_code == 200
        token = response.json()["token"]
        assert resolve_identity(token).username == "alice"

        profile = client.get("/users/alice", params={"_token": token})
        assert profile.status_code == 200
        assert profile.json()["user"]["first_name"] == "Alice"

    def test_register_stores_hash_not_password(self, client, db):
        client.post("/auth/register", json=NEW_USER)

        stored = db.query(User).filter(User.username == "alice").one()
        assert stored.password != "secret"

    def test_register_duplicate_username(self, client):
        client.post("/auth/register", json=NEW_USER)
        response = client.post("/auth/register", json={**NEW_USER, "password": "other"})

        assert response.status_code == 409
        assert response.json()["status"] == 409

    def test_register_missing_fields(self, client):
        response = client.post("/auth/register", json={"username": "alice", "password": "secret"})

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == 400
        assert "first_name" in body["message"]

    def test_register_username_with_slash(self, client):
        response = client.post("/auth/register", json={**NEW_USER, "username": "a/b"})
        assert response.status_code == 400

    def test_register_response_has_no_password(self, client):
        response = client.post("/auth/register", json=NEW_USER)
        assert "password" not in response.text


class TestLogin:

    def test_login_round_trip(self, client):
        client.post("/auth/register", json=NEW_USER)

        response = client.post("/auth/login", json={"username": "alice", "password": "secret"})

        assert response.status_code == 200
        token = response.json()["token"]
        assert resolve_identity(token).username == "alice"
        assert client.get("/users", params={"_token": token}).status_code == 200

    def test_login_updates_last_login(self, client, db):
        client.post("/auth/register", json=NEW_USER)
        before = db.query(User).filter(User.username == "alice").one().last_login_at

        client.post("/auth/login", json={"username": "alice", "password": "secret"})

        db.expire_all()
        after = db.query(User).filter(User.username == "alice").one().last_login_at
        assert after >= before

    def test_login_wrong_password(self, client):
        client.post("/auth/register", json=NEW_USER)

        response = client.post("/auth/login", json={"username": "alice", "password": "wrong"})

        assert response.status_code == 400
        assert response.json() == {"status": 400, "message": "Invalid username/password"}

    def test_login_unknown_user_looks_the_same(self, client):
        client.post("/auth/register", json=NEW_USER)

        wrong_password = client.post("/auth/login", json={"username": "alice", "password": "wrong"})
        unknown_user = client.post("/auth/login", json={"username": "nobody", "password": "wrong"})

        assert unknown_user.status_code == wrong_password.status_code
        assert unknown_user.json() == wrong_password.json()

    def test_login_missing_password(self, client):
        response = client.post("/auth/login", json={"username": "alice"})
        assert response.status_code == 400
