"""
prize_portal/tests/test_api_contracts.py
API contract tests

These tests verify:
1. Error responses follow the standard format
2. HTTP status codes are correct per error kind
3. Role and membership boundaries hold at the HTTP layer
4. The submit -> mark paid -> export path works end to end
"""
import io
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from openpyxl import load_workbook

from prize_portal.database import get_db
from prize_portal.errors import ErrorCode
from prize_portal.main import app
from prize_portal.orm.user import UserRole
from prize_portal.security.rbac import create_access_token
from prize_portal.services.auth_service import pwd_context
from prize_portal.services.email_service import get_email_service
from prize_portal.tests.conftest import TEST_PASSWORD, VALID_BANK_DETAILS, RecordingNotifier, add_user


@pytest_asyncio.fixture
async def api_notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def client(session_factory, api_notifier):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: api_notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def accounts(db_session):
    """One account per role plus two students, all with TEST_PASSWORD."""
    password_hash = pwd_context.hash(TEST_PASSWORD)
    return {
        "entity": await add_user(db_session, "club@school.edu", UserRole.entity, "Robotics Club", password_hash),
        "treasury": await add_user(db_session, "treasury@finance.org", UserRole.treasury, None, password_hash),
        "leader": await add_user(db_session, "a@school.edu", UserRole.student, "Asha", password_hash),
        "member": await add_user(db_session, "b@school.edu", UserRole.student, "Bilal", password_hash),
        "outsider": await add_user(db_session, "c@school.edu", UserRole.student, "Chen", password_hash),
    }


def auth(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


EVENT_BODY = {
    "event_name": "Hackathon 2024",
    "total_prize_pool": 5000,
    "teams": [{
        "prize_amount": 5000,
        "members": [
            {"email": "a@school.edu", "is_team_leader": True},
            {"email": "b@school.edu", "is_team_leader": False},
        ],
    }],
}


async def _create_event(client, accounts) -> int:
    response = await client.post("/api/events", json=EVENT_BODY, headers=auth(accounts["entity"]))
    assert response.status_code == 201
    return response.json()["eventId"]


async def _team_id(client, accounts) -> int:
    response = await client.get("/api/student/events", headers=auth(accounts["leader"]))
    return response.json()["events"][0]["team_id"]


def assert_error_shape(data: dict, code: str):
    assert data["success"] is False
    assert data["code"] == code
    assert "error" in data
    assert "message" in data


class TestHealthEndpoints:
    """Health endpoints return their documented structure"""

    async def test_main_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_errors_health(self, client):
        response = await client.get("/api/errors/health")
        assert response.status_code == 200
        data = response.json()
        assert "status_codes" in data
        assert "ALREADY_SUBMITTED" in data["error_codes"]

    async def test_error_body_is_documented(self, client):
        response = await client.get("/openapi.json")
        assert response.status_code == 200
        schema = response.json()
        assert set(schema["components"]["schemas"]["ErrorResponse"]["properties"]) == {
            "success", "error", "message", "code", "details"
        }
        responses = schema["paths"]["/api/student/bank-details"]["post"]["responses"]
        assert responses["409"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
        assert "503" in responses


class TestAuthEndpoints:
    """Login and token handling"""

    async def test_login_success(self, client, accounts):
        response = await client.post(
            "/api/auth/login", json={"email": "a@school.edu", "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "student"
        assert "password_hash" not in data["user"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "a@school.edu"

    async def test_login_wrong_password(self, client, accounts):
        response = await client.post(
            "/api/auth/login", json={"email": "a@school.edu", "password": "wrong-password"}
        )
        assert response.status_code == 401
        assert_error_shape(response.json(), ErrorCode.INVALID_CREDENTIALS)

    async def test_missing_token(self, client):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401
        assert_error_shape(response.json(), ErrorCode.AUTH_REQUIRED)

    async def test_garbage_token(self, client):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert_error_shape(response.json(), ErrorCode.AUTH_INVALID)

    async def test_validation_error_format(self, client):
        response = await client.post("/api/auth/login", json={"email": "not-an-email"})
        assert response.status_code == 422
        data = response.json()
        assert_error_shape(data, ErrorCode.VALIDATION_ERROR)
        assert data["details"]["errors"]

    async def test_change_password(self, client, accounts):
        response = await client.post(
            "/api/auth/change-password",
            json={"old_password": TEST_PASSWORD, "new_password": "another-long-pass"},
            headers=auth(accounts["member"]),
        )
        assert response.status_code == 200

        login = await client.post(
            "/api/auth/login", json={"email": "b@school.edu", "password": "another-long-pass"}
        )
        assert login.status_code == 200

    async def test_change_password_wrong_old(self, client, accounts):
        response = await client.post(
            "/api/auth/change-password",
            json={"old_password": "nope-nope", "new_password": "another-long-pass"},
            headers=auth(accounts["member"]),
        )
        assert response.status_code == 400
        assert_error_shape(response.json(), ErrorCode.INVALID_INPUT)


class TestEventEndpoints:
    """Event creation contract"""

    async def test_create_event_notifies_winners(self, client, accounts, api_notifier):
        event_id = await _create_event(client, accounts)

        assert isinstance(event_id, int)
        assert len(api_notifier.of_type("team_leader_notification")) == 1
        assert len(api_notifier.of_type("team_member_notification")) == 1

    async def test_two_leaders_is_400(self, client, accounts):
        body = {
            "event_name": "Quiz",
            "total_prize_pool": 100,
            "teams": [{
                "prize_amount": 100,
                "members": [
                    {"email": "a@school.edu", "is_team_leader": True},
                    {"email": "b@school.edu", "is_team_leader": True},
                ],
            }],
        }
        response = await client.post("/api/events", json=body, headers=auth(accounts["entity"]))
        assert response.status_code == 400
        assert_error_shape(response.json(), ErrorCode.INVALID_TEAM_COMPOSITION)

    async def test_students_cannot_create_events(self, client, accounts):
        response = await client.post("/api/events", json=EVENT_BODY, headers=auth(accounts["leader"]))
        assert response.status_code == 403
        assert_error_shape(response.json(), ErrorCode.FORBIDDEN)

    async def test_unknown_event_is_404(self, client, accounts):
        response = await client.get("/api/events/9999", headers=auth(accounts["treasury"]))
        assert response.status_code == 404
        assert_error_shape(response.json(), ErrorCode.NOT_FOUND)

    async def test_entity_lists_events(self, client, accounts):
        await _create_event(client, accounts)

        response = await client.get("/api/events", headers=auth(accounts["entity"]))
        assert response.status_code == 200
        events = response.json()["events"]
        assert len(events) == 1
        assert events[0]["teams"][0]["prize_amount"] == 5000.0


class TestDisbursementFlow:
    """Bank details lifecycle over HTTP"""

    async def test_submit_view_pay_export(self, client, accounts):
        await _create_event(client, accounts)
        team_id = await _team_id(client, accounts)

        submitted = await client.post(
            "/api/student/bank-details",
            json={**VALID_BANK_DETAILS, "team_id": team_id},
            headers=auth(accounts["leader"]),
        )
        assert submitted.status_code == 201
        bank_details = submitted.json()["bankDetails"]
        assert bank_details["account_number_masked"] == "********9012"

        viewed = await client.get(f"/api/student/bank-details/{team_id}", headers=auth(accounts["member"]))
        assert viewed.status_code == 200
        assert viewed.json()["bankDetails"]["amount"] == 5000.0

        paid = await client.patch(
            f"/api/treasury/bank-details/{bank_details['id']}/payment",
            json={"payment_date": "2024-03-01", "payment_reference": "NEFT-001"},
            headers=auth(accounts["treasury"]),
        )
        assert paid.status_code == 200
        assert paid.json()["bankDetails"]["payment_status"] == "completed"

        again = await client.patch(
            f"/api/treasury/bank-details/{bank_details['id']}/payment",
            json={"payment_date": "2024-03-02", "payment_reference": "NEFT-002"},
            headers=auth(accounts["treasury"]),
        )
        assert again.status_code == 409
        assert_error_shape(again.json(), ErrorCode.INVALID_TRANSITION)

        export = await client.get("/api/treasury/export", headers=auth(accounts["treasury"]))
        assert export.status_code == 200
        sheet = load_workbook(io.BytesIO(export.content)).active
        rows = list(sheet.iter_rows(values_only=True))
        assert rows[0][5] == "Account Number"
        assert rows[1][5] == "123456789012"
        assert rows[1][10] == "completed"

    async def test_member_cannot_submit(self, client, accounts):
        await _create_event(client, accounts)
        team_id = await _team_id(client, accounts)

        response = await client.post(
            "/api/student/bank-details",
            json={**VALID_BANK_DETAILS, "team_id": team_id},
            headers=auth(accounts["member"]),
        )
        assert response.status_code == 403
        assert_error_shape(response.json(), ErrorCode.FORBIDDEN)

    async def test_second_submit_is_409(self, client, accounts):
        await _create_event(client, accounts)
        team_id = await _team_id(client, accounts)
        body = {**VALID_BANK_DETAILS, "team_id": team_id}

        first = await client.post("/api/student/bank-details", json=body, headers=auth(accounts["leader"]))
        second = await client.post("/api/student/bank-details", json=body, headers=auth(accounts["leader"]))

        assert first.status_code == 201
        assert second.status_code == 409
        assert_error_shape(second.json(), ErrorCode.ALREADY_SUBMITTED)

    async def test_bad_fields_list_every_error(self, client, accounts):
        await _create_event(client, accounts)
        team_id = await _team_id(client, accounts)

        response = await client.post(
            "/api/student/bank-details",
            json={**VALID_BANK_DETAILS, "team_id": team_id, "account_number": "12", "ifsc_code": "bad"},
            headers=auth(accounts["leader"]),
        )
        assert response.status_code == 400
        data = response.json()
        assert_error_shape(data, ErrorCode.INVALID_INPUT)
        assert len(data["details"]["errors"]) == 2

    async def test_outsider_cannot_view(self, client, accounts):
        await _create_event(client, accounts)
        team_id = await _team_id(client, accounts)

        response = await client.get(f"/api/student/bank-details/{team_id}", headers=auth(accounts["outsider"]))
        assert response.status_code == 403

    async def test_students_cannot_export(self, client, accounts):
        response = await client.get("/api/treasury/export", headers=auth(accounts["leader"]))
        assert response.status_code == 403
        assert_error_shape(response.json(), ErrorCode.FORBIDDEN)


class TestTreasuryEndpoints:
    """Treasury views"""

    async def test_pending_reminders_and_statistics(self, client, accounts, api_notifier):
        await _create_event(client, accounts)

        pending = await client.get("/api/treasury/pending", headers=auth(accounts["treasury"]))
        assert pending.status_code == 200
        assert pending.json()["teams"][0]["leader_email"] == "a@school.edu"

        reminders = await client.post("/api/treasury/reminders", headers=auth(accounts["treasury"]))
        assert reminders.status_code == 200
        assert reminders.json()["sent"] == 1
        assert api_notifier.of_type("reminder")[0]["email"] == "a@school.edu"

        stats = await client.get("/api/treasury/statistics", headers=auth(accounts["treasury"]))
        assert stats.status_code == 200
        statistics = stats.json()["statistics"]
        assert statistics["total_events"] == 1
        assert statistics["total_prize_pool"] == 5000.0
        assert statistics["pending_bank_submissions"] == 1


class TestBankProfileEndpoints:
    """Saved bank profile"""

    async def test_profile_lifecycle(self, client, accounts):
        headers = auth(accounts["leader"])

        empty = await client.get("/api/student/bank-profile", headers=headers)
        assert empty.json()["profile"] is None

        saved = await client.put("/api/student/bank-profile", json=VALID_BANK_DETAILS, headers=headers)
        assert saved.status_code == 200
        assert saved.json()["profile"]["account_number_masked"] == "********9012"

        deleted = await client.delete("/api/student/bank-profile", headers=headers)
        assert deleted.status_code == 200

        missing = await client.delete("/api/student/bank-profile", headers=headers)
        assert missing.status_code == 404
