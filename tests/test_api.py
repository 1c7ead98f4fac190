from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api import contacts as contacts_api
from app.api import referral as referral_api
from app.main import app
from app.services import session_service, user_service

client = TestClient(app)

ADMIN = {"X-User-ID": "ADMIN1"}


@pytest.fixture
def role(monkeypatch):
    lookup = AsyncMock(return_value="user")
    monkeypatch.setattr(user_service, "get_user_role", lookup)
    return lookup


@pytest.fixture
def contact_service(monkeypatch):
    service = MagicMock()
    monkeypatch.setattr(contacts_api, "get_contact_service", lambda: service)
    return service


def test_liveness():
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_identity_header_is_required():
    response = client.get("/api/v1/security/sessions")
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_FAILED"


def test_sessions_receive_bearer_token(monkeypatch):
    listing = AsyncMock(return_value=[])
    monkeypatch.setattr(session_service, "list_sessions", listing)

    response = client.get(
        "/api/v1/security/sessions",
        headers={"X-User-ID": "USER1", "Authorization": "Bearer tok-123"},
    )

    assert response.status_code == 200
    assert response.json() == {"sessions": []}
    listing.assert_awaited_once_with("USER1", current_token="tok-123")


def test_logout_without_token_is_rejected():
    response = client.post("/api/v1/security/logout", headers={"X-User-ID": "USER1"})
    assert response.status_code == 422


def test_admin_routes_reject_regular_users(role, contact_service):
    response = client.get("/api/v1/contacts", headers={"X-User-ID": "USER1"})

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"
    contact_service.list_contacts.assert_not_called()


def test_admin_can_list_contacts(role, contact_service):
    role.return_value = "admin"
    contact_service.list_contacts = AsyncMock(
        return_value={"items": [], "total": 0, "page": 1, "total_pages": 0}
    )

    response = client.get("/api/v1/contacts?status=pending&limit=5", headers=ADMIN)

    assert response.status_code == 200
    kwargs = contact_service.list_contacts.call_args.kwargs
    assert kwargs["status"] == "pending"
    assert kwargs["limit"] == 5


def test_contact_listing_validates_filters(role, contact_service):
    role.return_value = "admin"
    response = client.get("/api/v1/contacts?status=archived", headers=ADMIN)
    assert response.status_code == 422


def test_contact_submission_is_public(contact_service):
    contact_service.create_contact = AsyncMock(return_value={"_id": "abc", "status": "pending"})

    response = client.post("/api/v1/contacts", json={
        "name": "Meera",
        "email": "meera@example.com",
        "issue_type": "Billing",
        "subject": "Refund",
        "message": "Charged twice for one order",
    })

    assert response.status_code == 201
    assert response.json()["data"]["_id"] == "abc"


def test_contact_submission_rejects_bad_email(contact_service):
    response = client.post("/api/v1/contacts", json={
        "name": "Meera",
        "email": "not-an-email",
        "issue_type": "Billing",
        "subject": "Refund",
        "message": "Charged twice for one order",
    })

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_referral_code_validation_is_public(monkeypatch):
    service = MagicMock()
    service.validate_referral_code = AsyncMock(
        return_value={"valid": True, "referrer_name": "Asha", "bonus": 50}
    )
    monkeypatch.setattr(referral_api, "get_referral_service", lambda: service)

    response = client.get("/api/v1/referrals/validate/FRIEND42")

    assert response.status_code == 200
    assert response.json()["valid"] is True
    service.validate_referral_code.assert_awaited_once_with("FRIEND42")


def test_signup_with_overlong_password_is_rejected(monkeypatch):
    create = AsyncMock()
    monkeypatch.setattr(user_service, "create_user", create)

    response = client.post("/api/v1/users", json={
        "fullname": "Asha Rao",
        "email": "asha@example.com",
        "phone": "9876543210",
        "password": "a1" * 50,
    })

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"
    create.assert_not_called()


def test_password_change_with_overlong_password_is_rejected(monkeypatch):
    from app.services import security_service

    change = AsyncMock()
    monkeypatch.setattr(security_service, "change_password", change)

    response = client.post(
        "/api/v1/security/password",
        headers={"X-User-ID": "USER1"},
        json={"current_password": "old-password", "new_password": "a1" * 50},
    )

    assert response.status_code == 422
    change.assert_not_called()


def test_add_favorites(monkeypatch):
    adding = AsyncMock(return_value=["65f0c0ffee0000000000beef"])
    monkeypatch.setattr(user_service, "add_favorites", adding)

    response = client.post(
        "/api/v1/users/me/favorites",
        headers={"X-User-ID": "USER1"},
        json={"kitchen_ids": ["65f0c0ffee0000000000beef"]},
    )

    assert response.status_code == 200
    assert response.json()["data"] == ["65f0c0ffee0000000000beef"]
    adding.assert_awaited_once_with("USER1", ["65f0c0ffee0000000000beef"])


def test_loyalty_points_update_is_admin_only(role, monkeypatch):
    adjusting = AsyncMock(return_value=70)
    monkeypatch.setattr(user_service, "adjust_loyalty_points", adjusting)

    response = client.patch("/api/v1/admin/users/USER1/loyalty-points", headers=ADMIN, json={"points": 20})
    assert response.status_code == 403
    adjusting.assert_not_called()

    role.return_value = "admin"
    response = client.patch(
        "/api/v1/admin/users/USER1/loyalty-points",
        headers=ADMIN,
        json={"points": 30, "operation": "subtract"},
    )
    assert response.status_code == 200
    assert response.json()["data"] == {"loyalty_points": 70}
    adjusting.assert_awaited_once_with("USER1", 30, "subtract")


def test_loyalty_points_must_not_be_negative(role, monkeypatch):
    role.return_value = "admin"
    adjusting = AsyncMock()
    monkeypatch.setattr(user_service, "adjust_loyalty_points", adjusting)

    response = client.patch("/api/v1/admin/users/USER1/loyalty-points", headers=ADMIN, json={"points": -1})

    assert response.status_code == 422
    adjusting.assert_not_called()
