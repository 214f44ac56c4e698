"""Integration tests for API endpoints"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from conftest import ADMIN_PHONE, auth_header
from digishe_ledger.domain.exceptions import GatewayUnreachable
from digishe_ledger.infrastructure.database.models import BusinessRow, Profile, TransactionRow
from mock_services.sms_gateway.main import CODES

PHONE = "0503088600"
CANONICAL = "233503088600"


def onboard(client: TestClient, token: str, name: str = "Ama's Kitchen") -> dict:
    response = client.post(
        "/v1/onboarding",
        json={"name": name, "category": "Food", "location": "Accra"},
        headers=auth_header(token),
    )
    assert response.status_code == 201, response.text
    return response.json()


def activate(client: TestClient, admin_token: str, business_id: str, is_active: bool = True) -> dict:
    response = client.post(
        f"/v1/admin/businesses/{business_id}/activation",
        json={"is_active": is_active},
        headers=auth_header(admin_token),
    )
    assert response.status_code == 200, response.text
    return response.json()


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Request-ID" in response.headers


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "digishe_otp_requests_total" in response.text


def test_request_code_normalizes_phone(client: TestClient):
    response = client.post("/v1/auth/request-code", json={"phone": "050 308 8600", "intent": "register"})

    assert response.status_code == 200
    assert response.json()["phone"] == CANONICAL
    assert CANONICAL in CODES


def test_request_code_invalid_phone(client: TestClient):
    response = client.post("/v1/auth/request-code", json={"phone": "12345", "intent": "register"})

    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


def test_login_unknown_phone_sends_no_sms(client: TestClient):
    response = client.post("/v1/auth/request-code", json={"phone": PHONE, "intent": "login"})

    assert response.status_code == 404
    assert response.json()["error"] == "account_not_found"
    assert CODES == {}


def test_register_known_phone_sends_no_sms(client: TestClient, sign_in):
    sign_in(PHONE)
    CODES.clear()

    response = client.post("/v1/auth/request-code", json={"phone": PHONE, "intent": "register"})

    assert response.status_code == 409
    assert response.json()["error"] == "account_already_exists"
    assert CODES == {}


def test_gateway_error_is_mapped(client: TestClient):
    # Mock gateway reports insufficient balance for this range
    response = client.post("/v1/auth/request-code", json={"phone": "233000012345", "intent": "register"})

    assert response.status_code == 502
    assert response.json()["detail"] == "System error: Insufficient SMS balance."


@patch("digishe_ledger.infrastructure.clients.sms.SmsGatewayClient.generate", new_callable=AsyncMock)
def test_gateway_unreachable(mock_generate: AsyncMock, client: TestClient):
    mock_generate.side_effect = GatewayUnreachable("Could not reach the SMS gateway")

    response = client.post("/v1/auth/request-code", json={"phone": PHONE, "intent": "register"})

    assert response.status_code == 503
    assert response.json()["error"] == "gateway_unreachable"


def test_verify_wrong_code(client: TestClient):
    client.post("/v1/auth/request-code", json={"phone": PHONE, "intent": "register"})
    wrong = "000000" if CODES[CANONICAL][0] != "000000" else "111111"

    response = client.post("/v1/auth/verify", json={"phone": PHONE, "code": wrong})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_code"


def test_verify_creates_identity(client: TestClient, db: Session):
    client.post("/v1/auth/request-code", json={"phone": PHONE, "intent": "register"})
    code = CODES[CANONICAL][0]

    response = client.post("/v1/auth/verify", json={"phone": PHONE, "code": code, "name": "Ama"})

    assert response.status_code == 200
    data = response.json()
    assert data["session_token"]
    assert data["identity"] == {
        "phone_number": CANONICAL,
        "display_name": "Ama",
        "is_admin": False,
        "has_completed_onboarding": False,
    }


def test_duplicate_verification_creates_one_identity(client: TestClient, db: Session):
    client.post("/v1/auth/request-code", json={"phone": PHONE, "intent": "register"})
    code = CODES[CANONICAL][0]

    first = client.post("/v1/auth/verify", json={"phone": PHONE, "code": code, "name": "Ama"})
    second = client.post("/v1/auth/verify", json={"phone": PHONE, "code": code, "name": "Ama"})

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["session_token"] != second.json()["session_token"]
    assert db.query(Profile).filter(Profile.phone == CANONICAL).count() == 1


def test_signing_in_again_replaces_earlier_session(client: TestClient, sign_in):
    first = sign_in(PHONE)
    second = sign_in(PHONE, intent="login")

    assert client.get("/v1/ledger", headers=auth_header(first)).status_code == 401
    assert client.get("/v1/ledger", headers=auth_header(second)).status_code == 200
    assert client.get("/health").json()["active_sessions"] == 1


def test_ledger_requires_session(client: TestClient):
    assert client.get("/v1/ledger").status_code == 401
    assert client.get("/v1/ledger", headers=auth_header("bogus")).status_code == 401


def test_entry_blocked_until_onboarded(client: TestClient, sign_in):
    token = sign_in(PHONE)

    response = client.post(
        "/v1/entries",
        json={"kind": "sale", "amount": "10", "category": "Retail"},
        headers=auth_header(token),
    )

    assert response.status_code == 409


def test_entry_blocked_for_inactive_business(client: TestClient, sign_in, db: Session):
    token = sign_in(PHONE)
    business = onboard(client, token)
    assert business["is_active"] is False

    response = client.post(
        "/v1/entries",
        json={"kind": "sale", "amount": "10", "category": "Retail"},
        headers=auth_header(token),
    )

    assert response.status_code == 403
    assert db.query(TransactionRow).count() == 0


def test_onboarding_flags_identity(client: TestClient, sign_in, db: Session):
    token = sign_in(PHONE, name="Ama")
    onboard(client, token)

    ledger = client.get("/v1/ledger", headers=auth_header(token)).json()

    assert ledger["identity"]["has_completed_onboarding"] is True
    assert ledger["business"]["name"] == "Ama's Kitchen"
    assert db.query(BusinessRow).count() == 1


def test_admin_endpoints_require_admin(client: TestClient, sign_in):
    token = sign_in(PHONE)

    assert client.get("/v1/admin/businesses", headers=auth_header(token)).status_code == 403


def test_record_entries_after_activation(client: TestClient, sign_in, db: Session):
    token = sign_in(PHONE, name="Ama")
    business = onboard(client, token)
    admin_token = sign_in(ADMIN_PHONE, name="Admin")

    listed = client.get("/v1/admin/businesses", headers=auth_header(admin_token)).json()
    assert listed["businesses"][0]["owner_name"] == "Ama"

    activate(client, admin_token, business["id"])

    offers = []
    for kind, amount in [("sale", "120.50"), ("expense", "20"), ("sale", "15")]:
        response = client.post(
            "/v1/entries",
            json={"kind": kind, "amount": amount, "category": "Other"},
            headers=auth_header(token),
        )
        assert response.status_code == 201, response.text
        offers.append(response.json()["offer_custom_category"])

    assert offers == [False, False, True]

    ledger = client.get("/v1/ledger", headers=auth_header(token)).json()
    assert len(ledger["entries"]) == 3
    assert float(ledger["stats"]["total_sales"]) == 135.5
    assert float(ledger["stats"]["profit"]) == 115.5
    assert len(ledger["weekly"]) == 7

    # Logout waits for background writes
    assert client.post("/v1/auth/logout", headers=auth_header(token)).status_code == 204
    assert db.query(TransactionRow).count() == 3
    assert client.get("/v1/ledger", headers=auth_header(token)).status_code == 401


@pytest.mark.parametrize("amount", ["0", "-3", "abc", None])
def test_record_entry_rejects_bad_amount(client: TestClient, sign_in, amount):
    token = sign_in(PHONE)
    business = onboard(client, token)
    activate(client, sign_in(ADMIN_PHONE), business["id"])

    response = client.post(
        "/v1/entries",
        json={"kind": "sale", "amount": amount, "category": "Retail"},
        headers=auth_header(token),
    )

    assert response.status_code == 422
    ledger = client.get("/v1/ledger", headers=auth_header(token)).json()
    assert ledger["entries"] == []


def test_record_saving(client: TestClient, sign_in):
    token = sign_in(PHONE)
    business = onboard(client, token)
    activate(client, sign_in(ADMIN_PHONE), business["id"])

    response = client.post(
        "/v1/savings",
        json={"amount": "50", "destination": "mobile_money"},
        headers=auth_header(token),
    )

    assert response.status_code == 201
    assert response.json()["saving"]["destination"] == "mobile_money"

    stats = client.get("/v1/ledger", headers=auth_header(token)).json()["stats"]
    assert float(stats["savings_by_destination"]["mobile_money"]) == 50


def test_deactivation_blocks_recording_again(client: TestClient, sign_in):
    token = sign_in(PHONE)
    business = onboard(client, token)
    admin_token = sign_in(ADMIN_PHONE)
    activate(client, admin_token, business["id"])
    activate(client, admin_token, business["id"], is_active=False)

    response = client.post(
        "/v1/savings",
        json={"amount": "50", "destination": "bank"},
        headers=auth_header(token),
    )

    assert response.status_code == 403


def test_activation_unknown_business(client: TestClient, sign_in):
    admin_token = sign_in(ADMIN_PHONE)

    bad = client.post("/v1/admin/businesses/not-a-uuid/activation", json={}, headers=auth_header(admin_token))
    missing = client.post(
        "/v1/admin/businesses/00000000-0000-0000-0000-000000000000/activation",
        json={},
        headers=auth_header(admin_token),
    )

    assert bad.status_code == 400
    assert missing.status_code == 404


def test_grant_admin(client: TestClient, sign_in):
    token = sign_in(PHONE)
    admin_token = sign_in(ADMIN_PHONE)

    response = client.post(
        f"/v1/admin/profiles/{PHONE}/admin",
        json={"is_admin": True},
        headers=auth_header(admin_token),
    )

    assert response.status_code == 200
    assert response.json()["is_admin"] is True
    # The open session picks up the grant
    assert client.get("/v1/admin/businesses", headers=auth_header(token)).status_code == 200


def test_categories(client: TestClient, sign_in):
    token = sign_in(PHONE)

    created = client.post(
        "/v1/categories",
        json={"kind": "expense", "name": "Packaging"},
        headers=auth_header(token),
    )
    listed = client.get("/v1/categories", headers=auth_header(token)).json()

    assert created.status_code == 201
    assert "Packaging" in listed["expense"]
    assert "Packaging" not in listed["sale"]
    assert "Retail" in listed["sale"]


def test_insight_falls_back_without_entries_or_key(client: TestClient, sign_in):
    token = sign_in(PHONE)

    response = client.get("/v1/insight", headers=auth_header(token))

    assert response.status_code == 200
    assert response.json()["tip"] == "Keep up the great work!"
