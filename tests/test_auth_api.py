from datetime import timedelta

from fastapi import status

from rbac.core.security import create_access_token, decode_token
from rbac.models.activity import Activity, ActivityAction, ActivityStatus
from rbac.models.user_session import UserSession


class TestAuth:
    """Test authentication endpoints"""

    def test_register_user(self, client):
        user_data = {
            "email": "New.User@Example.com",
            "password": "StrongPass123",
            "full_name": "New User",
        }
        response = client.post("/api/auth/register", json=user_data)
        assert response.status_code == status.HTTP_201_CREATED

        data = response.json()
        assert data["email"] == "new.user@example.com"
        assert data["role"] == "guest"
        assert "hashed_password" not in data

    def test_register_duplicate_email(self, client):
        user_data = {"email": "admin@rbac.local", "password": "whatever1", "full_name": "Copy"}
        response = client.post("/api/auth/register", json=user_data)
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_login_success(self, client, admin_tokens):
        assert admin_tokens["token_type"] == "bearer"
        assert admin_tokens["user"]["role"] == "admin"

        access = decode_token(admin_tokens["access_token"])
        refresh = decode_token(admin_tokens["refresh_token"], token_type="refresh")
        assert access["sid"] == refresh["sid"]
        assert access["sub"] == str(admin_tokens["user"]["id"])

    def test_login_invalid_credentials(self, client, db):
        response = client.post(
            "/api/auth/login", json={"email": "admin@rbac.local", "password": "wrongpassword"},
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Invalid credentials"

        failed = db.query(Activity).filter(Activity.action == ActivityAction.FAILED_LOGIN).one()
        assert failed.status == ActivityStatus.failure
        assert failed.user_id is not None

    def test_login_unknown_email(self, client, db):
        response = client.post(
            "/api/auth/login", json={"email": "nobody@example.com", "password": "whatever"},
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        failed = db.query(Activity).filter(Activity.action == ActivityAction.FAILED_LOGIN).one()
        assert failed.user_id is None

    def test_login_inactive_account(self, client, auth_headers, make_user):
        user, _ = make_user("user")
        client.patch(f"/api/users/{user.id}/status", json={"status": "inactive"}, headers=auth_headers)

        response = client.post(
            "/api/auth/login", json={"email": user.email, "password": "secret123"},
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Account is inactive"

    def test_refresh_token_as_access_token(self, client, admin_tokens):
        headers = {"Authorization": f"Bearer {admin_tokens['refresh_token']}"}
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_get_current_user(self, client, auth_headers):
        response = client.get("/api/auth/me", headers=auth_headers)
        assert response.status_code == status.HTTP_200_OK

        data = response.json()
        assert data["user"]["email"] == "admin@rbac.local"
        assert len(data["permissions"]) == 19
        assert "system.backup" in data["permissions"]

    def test_me_lists_inherited_permissions(self, client, make_user):
        _, headers = make_user("user")
        data = client.get("/api/auth/me", headers=headers).json()
        assert data["permissions"] == ["activity.read", "role.read", "session.read", "user.read"]

    def test_refresh_token(self, client, admin_tokens):
        response = client.post(
            "/api/auth/refresh", json={"refresh_token": admin_tokens["refresh_token"]},
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert "access_token" in data

        headers = {"Authorization": f"Bearer {data['access_token']}"}
        assert client.get("/api/auth/me", headers=headers).status_code == 200

        # rotated: the old refresh token no longer matches the session
        again = client.post(
            "/api/auth/refresh", json={"refresh_token": admin_tokens["refresh_token"]},
        )
        assert again.status_code == status.HTTP_401_UNAUTHORIZED

    def test_refresh_with_garbage(self, client):
        response = client.post("/api/auth/refresh", json={"refresh_token": "not-a-jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout(self, client, db, auth_headers, admin_tokens):
        response = client.post("/api/auth/logout", headers=auth_headers)
        assert response.status_code == status.HTTP_200_OK

        assert client.get("/api/auth/me", headers=auth_headers).status_code == 401
        sid = decode_token(admin_tokens["access_token"])["sid"]
        assert db.get(UserSession, sid).is_active is False

    def test_token_for_unknown_session(self, client, admin_tokens):
        token = create_access_token({"sub": str(admin_tokens["user"]["id"]), "sid": 999})
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_expired_token(self, client, admin_tokens):
        payload = decode_token(admin_tokens["access_token"])
        token = create_access_token(
            {"sub": payload["sub"], "sid": payload["sid"]}, expires_delta=timedelta(seconds=-5),
        )
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestChangePassword:
    """Password change revokes other sessions and old tokens"""

    def test_change_password(self, client, login, bearer):
        client.post(
            "/api/auth/register",
            json={"email": "pw@example.com", "password": "oldpass1", "full_name": "Pw"},
        )
        first = bearer(login("pw@example.com", "oldpass1"))
        second = bearer(login("pw@example.com", "oldpass1"))

        response = client.post(
            "/api/auth/change-password",
            json={"current_password": "oldpass1", "new_password": "newpass1"},
            headers=first,
        )
        assert response.status_code == status.HTTP_200_OK
        fresh = bearer(response.json())

        assert client.get("/api/auth/me", headers=fresh).status_code == 200
        assert client.get("/api/auth/me", headers=second).status_code == 401
        assert client.get("/api/auth/me", headers=first).status_code == 401
        assert login("pw@example.com", "newpass1")["access_token"]

    def test_wrong_current_password(self, client, auth_headers):
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": "nope", "new_password": "newpass1"},
            headers=auth_headers,
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
