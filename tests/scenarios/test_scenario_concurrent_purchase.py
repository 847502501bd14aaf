"""
Scenario - purchases racing each other on separate connections

Covers:
- the same buyer buying the same note twice at once: one wins
- many buyers paying one creator at once: no credit is lost
- top-ups and purchases on one wallet at once: no update is lost
- more purchases than the balance covers: the wallet never goes negative
"""
import pytest
from sqlalchemy import func, select

from notemarket.core.exceptions import AlreadyPurchasedError, InsufficientFundsError
from notemarket.db.models.note import Note, NoteStatus
from notemarket.db.models.purchase import Purchase
from notemarket.domain.services.purchase_service import PurchaseResult


@pytest.mark.scenario
class TestConcurrentPurchase:

    async def test_double_click_settles_once(
        self, market, run_purchase, gather, balances, assert_ledger_reconciles, file_session_maker
    ):
        buyer_id = market.buyer_ids[0]
        note_id = market.note_ids[0]

        results = await gather(*(run_purchase(buyer_id, note_id) for _ in range(2)))

        settled = [r for r in results if isinstance(r, PurchaseResult)]
        rejected = [r for r in results if isinstance(r, AlreadyPurchasedError)]
        assert len(settled) == 1
        assert len(rejected) == 1

        assert await balances(buyer_id, market.creator_id, market.platform_id) == [900, 85, 15]
        async with file_session_maker() as session:
            count = await session.scalar(
                select(func.count(Purchase.id)).where(
                    Purchase.account_id == buyer_id, Purchase.note_id == note_id
                )
            )
        assert count == 1
        await assert_ledger_reconciles(buyer_id, market.creator_id, market.platform_id)

    async def test_many_buyers_one_creator(
        self, market, run_purchase, gather, balances, assert_ledger_reconciles, file_session_maker
    ):
        note_id = market.note_ids[1]

        results = await gather(*(run_purchase(b, note_id) for b in market.buyer_ids))

        assert all(isinstance(r, PurchaseResult) for r in results), results
        # 250 -> fee 37, creator 213
        assert await balances(market.creator_id, market.platform_id) == [5 * 213, 5 * 37]
        assert await balances(*market.buyer_ids) == [750] * 5
        async with file_session_maker() as session:
            note = await session.get(Note, note_id)
            assert note.purchases == 5
        await assert_ledger_reconciles(market.creator_id, market.platform_id, *market.buyer_ids)

    async def test_topups_and_purchases_on_one_wallet(
        self, market, run_purchase, run_topup, gather, balances, assert_ledger_reconciles
    ):
        buyer_id = market.buyer_ids[2]

        results = await gather(
            run_topup(buyer_id, 10),
            run_purchase(buyer_id, market.note_ids[0]),
            run_topup(buyer_id, 20),
            run_purchase(buyer_id, market.note_ids[1]),
            run_purchase(buyer_id, market.note_ids[2]),
            run_topup(buyer_id, 30),
        )

        assert not any(isinstance(r, Exception) for r in results), results
        assert await balances(buyer_id) == [1000 + 10 + 20 + 30 - 100 - 250]
        await assert_ledger_reconciles(buyer_id, market.creator_id, market.platform_id)

    async def test_racing_for_the_last_coins(
        self, market, run_purchase, gather, balances, assert_ledger_reconciles, file_session_maker
    ):
        buyer_id = market.buyer_ids[3]
        async with file_session_maker() as session:
            notes = [
                Note(title=f"Problem set {i}", subject="Physics", creator_id=market.creator_id,
                     price=100, status=NoteStatus.ACTIVE, is_deleted=False, purchases=0)
                for i in range(12)
            ]
            session.add_all(notes)
            await session.commit()
            note_ids = [n.id for n in notes]

        results = await gather(*(run_purchase(buyer_id, note_id) for note_id in note_ids))

        settled = [r for r in results if isinstance(r, PurchaseResult)]
        short = [r for r in results if isinstance(r, InsufficientFundsError)]
        assert len(settled) == 10
        assert len(short) == 2
        assert await balances(buyer_id) == [0]
        await assert_ledger_reconciles(buyer_id, market.creator_id, market.platform_id)
