"""Tests for the password reset flow."""

from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.exceptions import EmailDeliveryFailed
from app.models.session_token import SessionToken
from app.models.user import User
from app.services.email import EmailService
from conftest import PASSWORD


class TestPasswordResetRequest:
    """Tests for POST /api/1.0/user/password-reset."""

    def test_unknown_email(self, client: TestClient):
        response = client.post("/api/1.0/user/password-reset", json={"email": "nobody@mail.com"})
        assert response.status_code == 404
        assert response.json()["message"] == "Email not found"

    def test_invalid_email(self, client: TestClient):
        response = client.post("/api/1.0/user/password-reset", json={"email": "not-an-email"})
        assert response.status_code == 400
        assert response.json()["validationErrors"]["email"] == "Email is not valid"

    def test_missing_email(self, client: TestClient):
        response = client.post("/api/1.0/user/password-reset", json={})
        assert response.status_code == 400
        assert response.json()["validationErrors"]["email"] == "Email cannot be null"

    def test_known_email_sets_reset_token(self, client: TestClient, db_session: Session, test_user: User):
        response = client.post("/api/1.0/user/password-reset", json={"email": "user1@mail.com"})
        assert response.status_code == 200
        assert response.json() == {"message": "Check your email for steps on resetting your password"}

        db_session.refresh(test_user)
        assert test_user.password_reset_token

    def test_reset_email_carries_token(self, client: TestClient, db_session: Session, test_user: User):
        with patch.object(EmailService, "send_password_reset_token") as send:
            client.post("/api/1.0/user/password-reset", json={"email": "user1@mail.com"})

        db_session.refresh(test_user)
        send.assert_called_once_with("user1@mail.com", test_user.password_reset_token)

    def test_email_failure(self, client: TestClient, db_session: Session, test_user: User):
        """A delivery failure is reported and the token is not kept."""
        with patch.object(EmailService, "send_password_reset_token", side_effect=EmailDeliveryFailed()):
            response = client.post("/api/1.0/user/password-reset", json={"email": "user1@mail.com"})

        assert response.status_code == 502
        assert response.json()["message"] == "Failed to send email"
        db_session.refresh(test_user)
        assert test_user.password_reset_token is None


class TestPasswordUpdate:
    """Tests for PUT /api/1.0/user/password."""

    def test_invalid_reset_token(self, client: TestClient, make_user):
        make_user(password_reset_token="reset-token")
        response = client.put("/api/1.0/user/password", json={"password": "N3wPassword", "passwordResetToken": "wrong"})
        assert response.status_code == 403
        assert response.json()["message"] == "You are not authorized to update this password"

    def test_missing_reset_token(self, client: TestClient, make_user):
        make_user(password_reset_token="reset-token")
        response = client.put("/api/1.0/user/password", json={"password": "N3wPassword"})
        assert response.status_code == 403

    def test_invalid_token_checked_before_password(self, client: TestClient):
        """A bad token is refused before the new password is looked at."""
        response = client.put("/api/1.0/user/password", json={"password": "weak", "passwordResetToken": "wrong"})
        assert response.status_code == 403

    def test_invalid_new_password(self, client: TestClient, make_user):
        make_user(password_reset_token="reset-token")
        response = client.put(
            "/api/1.0/user/password", json={"password": "lowercase", "passwordResetToken": "reset-token"}
        )
        assert response.status_code == 400
        assert (
            response.json()["validationErrors"]["password"]
            == "Password must have at least 1 uppercase, 1 lowercase letter and 1 number"
        )

    def test_password_updated(self, client: TestClient, db_session: Session, make_user):
        """The new password works, the old one does not, and the reset token is spent."""
        user = make_user(password_reset_token="reset-token")
        response = client.put(
            "/api/1.0/user/password", json={"password": "N3wPassword", "passwordResetToken": "reset-token"}
        )
        assert response.status_code == 200
        assert response.json() == {"message": "Password updated"}

        db_session.refresh(user)
        assert user.password_reset_token is None

        new_login = client.post("/api/1.0/auth", json={"email": "user1@mail.com", "password": "N3wPassword"})
        assert new_login.status_code == 200
        old_login = client.post("/api/1.0/auth", json={"email": "user1@mail.com", "password": PASSWORD})
        assert old_login.status_code == 401

    def test_reset_token_is_single_use(self, client: TestClient, make_user):
        make_user(password_reset_token="reset-token")
        body = {"password": "N3wPassword", "passwordResetToken": "reset-token"}
        assert client.put("/api/1.0/user/password", json=body).status_code == 200
        assert client.put("/api/1.0/user/password", json=body).status_code == 403

    def test_password_update_revokes_all_sessions(self, client: TestClient, db_session: Session, make_user, login):
        """Every session issued before the reset stops working."""
        user = make_user(password_reset_token="reset-token")
        tokens = [login() for _ in range(3)]

        client.put("/api/1.0/user/password", json={"password": "N3wPassword", "passwordResetToken": "reset-token"})

        assert db_session.query(SessionToken).filter(SessionToken.user_id == user.id).count() == 0
        for token in tokens:
            response = client.put(
                f"/api/1.0/users/{user.id}", json={"username": "user1-new"}, headers={"Authorization": f"Bearer {token}"}
            )
            assert response.status_code == 403
