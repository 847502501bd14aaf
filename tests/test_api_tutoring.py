"""
API tests for /api/tutoring and /api/admin
"""
import pytest
from httpx import AsyncClient

from notemarket.db.models.account import Account, AccountRole


@pytest.mark.integration
async def test_tutoring_round_trip(test_client: AsyncClient, buyer, creator, paid_note, auth_headers):
    student_headers = auth_headers(buyer.id)
    tutor_headers = auth_headers(creator.id)

    created = await test_client.post(
        "/api/tutoring",
        json={"note_id": paid_note.id, "message": "Help with chapter 2", "proposed_price": 30},
        headers=student_headers,
    )
    assert created.status_code == 201
    tutoring_id = created.json()["id"]
    assert created.json()["status"] == "PENDING"

    inbox = await test_client.get("/api/tutoring/for-me", headers=tutor_headers)
    assert [r["id"] for r in inbox.json()] == [tutoring_id]

    answered = await test_client.post(
        f"/api/tutoring/{tutoring_id}/respond",
        json={
            "accept": True,
            "final_price": 40,
            "tutor_response": "Thursday 5pm",
            "session_details": {"scheduled_at": "2026-11-05T17:00:00", "duration_minutes": 60},
        },
        headers=tutor_headers,
    )
    assert answered.status_code == 200
    assert answered.json()["status"] == "ACCEPTED"
    assert answered.json()["final_price"] == 40
    session = answered.json()["session_details"]
    assert session["scheduled_at"] == "2026-11-05T17:00:00"
    assert session["duration_minutes"] == 60
    assert session["meeting_link"] is None

    paid = await test_client.post(f"/api/tutoring/{tutoring_id}/pay", headers=student_headers)
    assert paid.status_code == 200
    assert paid.json()["is_paid"] is True

    wallet = await test_client.get("/api/wallet", headers=tutor_headers)
    assert wallet.json()["balance"] == 40

    again = await test_client.post(f"/api/tutoring/{tutoring_id}/pay", headers=student_headers)
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "ERR_5002"


@pytest.mark.integration
async def test_tutoring_on_own_note(test_client: AsyncClient, creator, paid_note, auth_headers):
    response = await test_client.post(
        "/api/tutoring",
        json={"note_id": paid_note.id, "message": "hi", "proposed_price": 30},
        headers=auth_headers(creator.id),
    )
    assert response.status_code == 400


@pytest.mark.integration
@pytest.mark.parametrize("body", [
    {"note_id": 1, "message": "hi", "proposed_price": 0},
    {"note_id": 1, "message": "hi", "proposed_price": "30"},
    {"note_id": 1, "message": "", "proposed_price": 30},
])
async def test_create_body_validation(test_client: AsyncClient, buyer, auth_headers, body):
    response = await test_client.post("/api/tutoring", json=body, headers=auth_headers(buyer.id))
    assert response.status_code == 422


@pytest.mark.integration
@pytest.mark.parametrize("session_details", [
    {"duration_minutes": 0},
    {"meeting_link": "x" * 501},
    {"room": "B12"},
])
async def test_session_details_validation(
    test_client: AsyncClient, buyer, creator, paid_note, auth_headers, session_details
):
    student_headers = auth_headers(buyer.id)
    tutor_headers = auth_headers(creator.id)
    created = await test_client.post(
        "/api/tutoring",
        json={"note_id": paid_note.id, "message": "hello", "proposed_price": 30},
        headers=student_headers,
    )

    response = await test_client.post(
        f"/api/tutoring/{created.json()['id']}/respond",
        json={"accept": True, "session_details": session_details},
        headers=tutor_headers,
    )

    assert response.status_code == 422


@pytest.mark.integration
async def test_student_cannot_respond(test_client: AsyncClient, buyer, paid_note, auth_headers):
    headers = auth_headers(buyer.id)
    created = await test_client.post(
        "/api/tutoring",
        json={"note_id": paid_note.id, "message": "hello", "proposed_price": 30},
        headers=headers,
    )

    response = await test_client.post(
        f"/api/tutoring/{created.json()['id']}/respond", json={"accept": True}, headers=headers
    )

    assert response.status_code == 403


class TestAdmin:

    @pytest.fixture
    async def admin(self, account_factory) -> Account:
        return await account_factory(name="Ops", role=AccountRole.ADMIN)

    @pytest.mark.integration
    async def test_requires_admin(self, test_client: AsyncClient, buyer, auth_headers):
        response = await test_client.get("/api/admin/stats", headers=auth_headers(buyer.id))
        assert response.status_code == 403

    @pytest.mark.integration
    async def test_stats(self, test_client: AsyncClient, admin, buyer, paid_note, auth_headers):
        await test_client.post(f"/api/purchases/notes/{paid_note.id}", headers=auth_headers(buyer.id))

        response = await test_client.get("/api/admin/stats", headers=auth_headers(admin.id, role="ADMIN"))

        assert response.status_code == 200
        data = response.json()
        assert data["purchases"] == 1
        assert data["revenue"] == 100
        assert data["platform_fees"] == 15

    @pytest.mark.integration
    async def test_reconciliation(
        self, test_client: AsyncClient, db_session, admin, buyer, auth_headers
    ):
        buyer_id = buyer.id
        buyer.wallet_balance = 130
        await db_session.commit()

        response = await test_client.get(
            "/api/admin/reconciliation", headers=auth_headers(admin.id, role="ADMIN")
        )

        assert response.status_code == 200
        assert response.json()["anomalies"] == [{
            "account_id": buyer_id,
            "stored_balance": 130,
            "ledger_balance": 100,
            "difference": 30,
        }]
