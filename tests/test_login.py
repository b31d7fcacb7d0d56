"""
Tests for login, logout, the admin dashboard and password changes
"""

from conftest import ADMIN_PASSWORD, ADMIN_USERNAME


def login(client, username=ADMIN_USERNAME, password=ADMIN_PASSWORD):
    return client.post("/login", data={"username": username, "password": password}, follow_redirects=False)


class TestLogin:
    """Tests for GET/POST /login."""

    def test_login_form_renders(self, client):
        response = client.get("/login")

        assert response.status_code == 200
        assert 'name="username"' in response.text
        assert 'name="password"' in response.text

    def test_successful_login_redirects_to_dashboard(self, client, admin_user_id):
        response = login(client)

        assert response.status_code == 303
        assert response.headers["location"] == "/admin/dashboard"

        dashboard = client.get("/admin/dashboard")
        assert dashboard.status_code == 200
        assert f"Welcome {ADMIN_USERNAME}" in dashboard.text

    def test_wrong_password_redirects_back_with_one_shot_message(self, client, admin_user_id):
        response = login(client, password="wrong-password")

        assert response.status_code == 303
        assert response.headers["location"] == "/login"

        assert "Authentication failed" in client.get("/login").text
        assert "Authentication failed" not in client.get("/login").text

    def test_unknown_username_is_rejected(self, client, admin_user_id):
        response = login(client, username="nobody")

        assert response.status_code == 303
        assert response.headers["location"] == "/login"
        assert client.get("/admin/dashboard", follow_redirects=False).status_code == 303


class TestAdminAccess:
    """Tests for session gating of /admin routes."""

    def test_dashboard_requires_login(self, client):
        response = client.get("/admin/dashboard", follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/login"

    def test_publish_requires_login(self, client):
        response = client.post(
            "/admin/newsletter",
            data={"title": "T", "text": "t", "html": "<p>h</p>", "idempotency_key": "k1"},
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/login"

    def test_logout_clears_session(self, admin_client):
        response = admin_client.post("/admin/logout", follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/login"
        assert "You have successfully logged out." in admin_client.get("/login").text
        assert admin_client.get("/admin/dashboard", follow_redirects=False).status_code == 303

    def test_allowlist_forbids_unknown_clients(self, settings, session_factory, email_sender, executor):
        from fastapi.testclient import TestClient
        from newsletter.main import create_app

        settings.admin_allowed_ips = ["10.0.0.1"]
        app = create_app(settings, session_factory=session_factory, email_sender=email_sender, executor=executor)

        with TestClient(app) as client:
            response = client.get("/admin/dashboard", follow_redirects=False)
            assert response.status_code == 403
            assert response.text == "Forbidden"
            assert client.get("/health_check").status_code == 200


class TestChangePassword:
    """Tests for GET/POST /admin/password."""

    def change_password(self, client, current, new, check):
        return client.post(
            "/admin/password",
            data={"current_password": current, "new_password": new, "new_password_check": check},
            follow_redirects=False,
        )

    def test_mismatched_new_passwords_are_rejected(self, admin_client):
        response = self.change_password(admin_client, ADMIN_PASSWORD, "new-password", "other-password")

        assert response.status_code == 303
        assert response.headers["location"] == "/admin/password"
        assert "two different new passwords" in admin_client.get("/admin/password").text

    def test_wrong_current_password_is_rejected(self, admin_client):
        self.change_password(admin_client, "wrong-password", "new-password", "new-password")

        assert "The current password is incorrect." in admin_client.get("/admin/password").text

    def test_changed_password_is_required_at_next_login(self, admin_client):
        self.change_password(admin_client, ADMIN_PASSWORD, "new-password", "new-password")
        assert "Your password has been changed." in admin_client.get("/admin/password").text

        admin_client.post("/admin/logout")

        assert login(admin_client).headers["location"] == "/login"
        assert login(admin_client, password="new-password").headers["location"] == "/admin/dashboard"
