"""
API tests for /api/purchases and /api/notes/{id}/access
"""
import pytest
from httpx import AsyncClient


class TestBuyNote:

    @pytest.mark.integration
    async def test_purchase(self, test_client: AsyncClient, buyer, paid_note, auth_headers):
        response = await test_client.post(
            f"/api/purchases/notes/{paid_note.id}", headers=auth_headers(buyer.id)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["note_id"] == paid_note.id
        assert data["price"] == 100
        assert data["buyer_new_balance"] == 0
        assert data["platform_fee"] == 15
        assert data["creator_amount"] == 85
        assert data["state"] == "SETTLED"

    @pytest.mark.integration
    async def test_second_purchase_conflicts(
        self, test_client: AsyncClient, account_factory, paid_note, auth_headers
    ):
        rich = await account_factory(balance=1000)
        headers = auth_headers(rich.id)

        first = await test_client.post(f"/api/purchases/notes/{paid_note.id}", headers=headers)
        second = await test_client.post(f"/api/purchases/notes/{paid_note.id}", headers=headers)

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "ERR_2002"

    @pytest.mark.integration
    async def test_insufficient_funds(
        self, test_client: AsyncClient, account_factory, paid_note, auth_headers
    ):
        poor = await account_factory(balance=40)
        headers = auth_headers(poor.id)
        note_id = paid_note.id

        response = await test_client.post(f"/api/purchases/notes/{note_id}", headers=headers)

        assert response.status_code == 402
        error = response.json()["error"]
        assert error["code"] == "ERR_4001"
        assert error["details"]["shortfall"] == 60

        wallet = await test_client.get("/api/wallet", headers=headers)
        assert wallet.json()["balance"] == 40

    @pytest.mark.integration
    async def test_unknown_note(self, test_client: AsyncClient, buyer, auth_headers):
        response = await test_client.post("/api/purchases/notes/31337", headers=auth_headers(buyer.id))
        assert response.status_code == 404


@pytest.mark.integration
async def test_subscription(test_client: AsyncClient, account_factory, auth_headers):
    account = await account_factory(balance=500)
    headers = auth_headers(account.id)

    response = await test_client.post("/api/purchases/subscription", headers=headers)

    assert response.status_code == 201
    data = response.json()
    assert data["buyer_new_balance"] == 21
    assert data["subscription"]["plan"] == "PLUS"
    assert data["subscription"]["is_active"] is True

    again = await test_client.post("/api/purchases/subscription", headers=headers)
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "ERR_3002"


@pytest.mark.integration
async def test_list_purchases(test_client: AsyncClient, buyer, free_note, paid_note, auth_headers):
    headers = auth_headers(buyer.id)
    await test_client.post(f"/api/purchases/notes/{free_note.id}", headers=headers)
    await test_client.post(f"/api/purchases/notes/{paid_note.id}", headers=headers)

    response = await test_client.get("/api/purchases", headers=headers)

    assert response.status_code == 200
    rows = response.json()
    assert [r["note_id"] for r in rows] == [paid_note.id, free_note.id]
    assert rows[1]["note"]["title"] == "Intro to Sets"
    assert rows[1]["price"] == 0


class TestPageNotes:

    @pytest.fixture
    async def purchase_id(self, test_client: AsyncClient, buyer, paid_note, auth_headers) -> int:
        response = await test_client.post(
            f"/api/purchases/notes/{paid_note.id}", headers=auth_headers(buyer.id)
        )
        return response.json()["purchase_id"]

    @pytest.mark.integration
    async def test_annotations(self, test_client: AsyncClient, buyer, purchase_id, auth_headers):
        headers = auth_headers(buyer.id)
        await test_client.post(
            f"/api/purchases/{purchase_id}/annotations",
            json={"page_number": 2, "content": "check this proof"},
            headers=headers,
        )
        response = await test_client.post(
            f"/api/purchases/{purchase_id}/annotations",
            json={"page_number": 4, "content": "nice diagram", "position_x": 0.3, "position_y": 0.75},
            headers=headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert [a["page_number"] for a in body] == [2, 4]
        assert body[1]["position_x"] == 0.3

    @pytest.mark.integration
    async def test_comments(self, test_client: AsyncClient, buyer, purchase_id, auth_headers):
        response = await test_client.post(
            f"/api/purchases/{purchase_id}/comments",
            json={"page_number": 1, "content": "typo in eq. 3"},
            headers=auth_headers(buyer.id),
        )

        assert response.status_code == 201
        assert [c["content"] for c in response.json()] == ["typo in eq. 3"]

    @pytest.mark.integration
    @pytest.mark.parametrize("body", [
        {"page_number": 0, "content": "x"},
        {"page_number": "1", "content": "x"},
        {"page_number": 1, "content": ""},
        {"page_number": 1, "content": "x" * 2001},
        {"page_number": 1, "content": "x", "pinned": True},
    ])
    async def test_comment_body_validation(
        self, test_client: AsyncClient, buyer, purchase_id, auth_headers, body
    ):
        response = await test_client.post(
            f"/api/purchases/{purchase_id}/comments", json=body, headers=auth_headers(buyer.id)
        )
        assert response.status_code == 422

    @pytest.mark.integration
    async def test_someone_elses_purchase(
        self, test_client: AsyncClient, account_factory, purchase_id, auth_headers
    ):
        stranger = await account_factory()
        response = await test_client.post(
            f"/api/purchases/{purchase_id}/comments",
            json={"page_number": 1, "content": "hello"},
            headers=auth_headers(stranger.id),
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ERR_2003"


class TestNoteAccess:

    @pytest.mark.integration
    async def test_anonymous(self, test_client: AsyncClient, paid_note, free_note):
        paid = (await test_client.get(f"/api/notes/{paid_note.id}/access")).json()
        free = (await test_client.get(f"/api/notes/{free_note.id}/access")).json()

        assert paid["can_access_content"] is False
        assert paid["can_access_ai_features"] is False
        assert free["can_access_content"] is True
        assert free["can_access_ai_features"] is False

    @pytest.mark.integration
    async def test_after_purchase(self, test_client: AsyncClient, buyer, paid_note, auth_headers):
        headers = auth_headers(buyer.id)
        await test_client.post(f"/api/purchases/notes/{paid_note.id}", headers=headers)

        response = await test_client.get(f"/api/notes/{paid_note.id}/access", headers=headers)

        assert response.json() == {
            "note_id": paid_note.id,
            "is_free": False,
            "has_purchased": True,
            "can_access_content": True,
            "can_access_ai_features": True,
        }

    @pytest.mark.integration
    async def test_deleted_note(self, test_client: AsyncClient, creator, note_factory):
        note = await note_factory(creator.id, is_deleted=True)
        response = await test_client.get(f"/api/notes/{note.id}/access")
        assert response.status_code == 404
