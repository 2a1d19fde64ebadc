from datetime import timedelta

from fastapi import status

from rbac.core.config import settings
from rbac.db.base import utcnow
from rbac.models.user_session import UserSession
from rbac.services.session_service import describe_device

CHROME_ON_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SAFARI_ON_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


class TestDescribeDevice:
    """User-Agent parsing for session records"""

    def test_desktop_chrome(self):
        assert describe_device(CHROME_ON_WINDOWS) == {
            "device_type": "desktop", "browser": "Chrome", "os": "Windows",
        }

    def test_mobile_safari(self):
        assert describe_device(SAFARI_ON_IPHONE) == {
            "device_type": "mobile", "browser": "Safari", "os": "iOS",
        }

    def test_missing_header(self):
        assert describe_device(None) == {"device_type": None, "browser": None, "os": None}


class TestSessionModel:
    """Expiry helpers"""

    def test_expiry(self):
        session = UserSession(expires_at=utcnow() - timedelta(seconds=1))
        assert session.is_expired()
        assert session.needs_refresh()

    def test_needs_refresh_threshold(self):
        session = UserSession(expires_at=utcnow() + timedelta(minutes=10))
        assert not session.is_expired()
        assert not session.needs_refresh()
        assert session.needs_refresh(threshold=timedelta(minutes=15))


class TestSessionsApi:
    """Test session endpoints"""

    def test_current_session(self, client, login, bearer):
        tokens = login(
            settings.SUPER_ADMIN_EMAIL,
            settings.SUPER_ADMIN_PASSWORD,
            headers={"User-Agent": CHROME_ON_WINDOWS},
        )
        response = client.get("/api/sessions/current", headers=bearer(tokens))
        assert response.status_code == status.HTTP_200_OK

        data = response.json()
        assert data["user_id"] == tokens["user"]["id"]
        assert data["browser"] == "Chrome"
        assert data["os"] == "Windows"
        assert data["ip_address"] == "testclient"

    def test_list_user_sessions(self, client, auth_headers, admin_tokens, login):
        login(settings.SUPER_ADMIN_EMAIL, settings.SUPER_ADMIN_PASSWORD)
        response = client.get(
            f"/api/sessions/user/{admin_tokens['user']['id']}", headers=auth_headers,
        )
        assert len(response.json()) == 2

    def test_terminate_all_except_current(self, client, auth_headers, admin_tokens, login, bearer):
        other = bearer(login(settings.SUPER_ADMIN_EMAIL, settings.SUPER_ADMIN_PASSWORD))
        current = client.get("/api/sessions/current", headers=auth_headers).json()

        response = client.delete(
            f"/api/sessions/user/{admin_tokens['user']['id']}",
            params={"exclude_session_id": current["id"]},
            headers=auth_headers,
        )
        assert response.json()["count"] == 1
        assert client.get("/api/auth/me", headers=other).status_code == 401
        assert client.get("/api/auth/me", headers=auth_headers).status_code == 200

    def test_user_can_end_own_session(self, client, make_user, login, bearer):
        user, headers = make_user("guest")
        spare = bearer(login(user.email))
        spare_session = client.get("/api/sessions/current", headers=spare).json()

        response = client.delete(f"/api/sessions/{spare_session['id']}", headers=headers)
        assert response.status_code == status.HTTP_200_OK
        assert client.get("/api/auth/me", headers=spare).status_code == 401

    def test_user_cannot_end_other_session(self, client, make_user, auth_headers):
        _, headers = make_user("guest")
        admin_session = client.get("/api/sessions/current", headers=auth_headers).json()

        response = client.delete(f"/api/sessions/{admin_session['id']}", headers=headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_can_end_other_session(self, client, make_user, auth_headers):
        _, headers = make_user("guest")
        guest_session = client.get("/api/sessions/current", headers=headers).json()

        response = client.delete(f"/api/sessions/{guest_session['id']}", headers=auth_headers)
        assert response.status_code == status.HTTP_200_OK
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_terminate_unknown_session(self, client, auth_headers):
        response = client.delete("/api/sessions/999", headers=auth_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_stats_and_cleanup(self, client, db, auth_headers, login, bearer):
        extra = bearer(login(settings.SUPER_ADMIN_EMAIL, settings.SUPER_ADMIN_PASSWORD))
        client.post("/api/auth/logout", headers=extra)

        stats = client.get("/api/sessions/stats", headers=auth_headers).json()
        assert stats == {"active_sessions": 1, "expired_sessions": 1, "total_sessions": 2}

        response = client.post("/api/sessions/cleanup", headers=auth_headers)
        assert response.json()["count"] == 1
        assert db.query(UserSession).count() == 1

    def test_near_expiry_session_is_extended(self, client, db, auth_headers, admin_tokens):
        current = client.get("/api/sessions/current", headers=auth_headers).json()
        session = db.get(UserSession, current["id"])
        session.expires_at = utcnow() + timedelta(minutes=1)
        db.commit()

        client.get("/api/sessions/current", headers=auth_headers)

        db.expire_all()
        assert db.get(UserSession, current["id"]).expires_at > utcnow() + timedelta(hours=1)

    def test_guest_cannot_read_stats(self, client, make_user):
        _, headers = make_user("guest")
        assert client.get("/api/sessions/stats", headers=headers).status_code == 403
