"""
Fixtures for end-to-end marketplace scenarios.

Provides:
- a seeded market on a file-backed SQLite database, where every session has
  its own connection so settlements really run side by side
- helpers that open a fresh session per operation
- DB assertions (balances, ledger reconciliation)
"""
import asyncio
from dataclasses import dataclass

import pytest
from sqlalchemy import select

from notemarket.db.models.account import Account, AccountRole
from notemarket.db.models.note import Note, NoteStatus
from notemarket.domain.services.account_service import AccountService
from notemarket.domain.services.ledger_service import LedgerService
from notemarket.domain.services.purchase_service import PurchaseService
from notemarket.domain.services.wallet_service import WalletService


@dataclass
class Market:
    platform_id: int
    creator_id: int
    buyer_ids: list[int]
    note_ids: list[int]


@pytest.fixture
async def market(file_session_maker) -> Market:
    """A creator with three notes (100, 250, 0) and five buyers holding 1000 each"""
    async with file_session_maker() as session:
        platform = await AccountService(session).ensure_platform_account()

        creator = Account(email="maker@example.com", name="Maya Maker", role=AccountRole.NOTEMAKER)
        buyers = [
            Account(email=f"reader{i}@example.com", name=f"Reader {i}", role=AccountRole.USER)
            for i in range(5)
        ]
        session.add_all([creator, *buyers])
        await session.flush()

        notes = [
            Note(title=title, subject="Physics", creator_id=creator.id, price=price,
                 status=NoteStatus.ACTIVE, is_deleted=False, purchases=0)
            for title, price in (("Kinematics", 100), ("Thermodynamics", 250), ("Units", 0))
        ]
        session.add_all(notes)
        await session.commit()

        market = Market(
            platform_id=platform.id,
            creator_id=creator.id,
            buyer_ids=[b.id for b in buyers],
            note_ids=[n.id for n in notes],
        )

        wallets = WalletService(session)
        for buyer_id in market.buyer_ids:
            await wallets.topup(buyer_id, 1000)

    return market


@pytest.fixture
def run_purchase(file_session_maker):
    """Buy a note in its own session; errors are returned, not raised"""
    async def _run(buyer_id: int, note_id: int):
        async with file_session_maker() as session:
            try:
                return await PurchaseService(session).purchase_note(buyer_id, note_id)
            except Exception as e:
                return e

    return _run


@pytest.fixture
def run_topup(file_session_maker):
    async def _run(account_id: int, amount: int):
        async with file_session_maker() as session:
            entry = await WalletService(session).topup(account_id, amount)
            return entry.balance_after

    return _run


@pytest.fixture
def gather():
    async def _gather(*coros):
        return await asyncio.gather(*coros)

    return _gather


@pytest.fixture
def balances(file_session_maker):
    async def _balances(*account_ids: int) -> list[int]:
        async with file_session_maker() as session:
            result = await session.execute(
                select(Account.id, Account.wallet_balance).where(Account.id.in_(account_ids))
            )
            by_id = dict(result.all())
        return [by_id[account_id] for account_id in account_ids]

    return _balances


@pytest.fixture
def assert_ledger_reconciles(file_session_maker):
    """Every stored balance equals its ledger and every chain is consistent"""
    async def _assert(*account_ids: int) -> None:
        async with file_session_maker() as session:
            ledger = LedgerService(session)
            summary = await ledger.reconcile_all()
            assert summary["anomalies"] == []
            for account_id in account_ids:
                report = await ledger.reconcile_account(account_id)
                assert report["chain_consistent"], report

    return _assert
