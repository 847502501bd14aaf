"""
Per-account serialization for balance mutations.

Every settlement holds the locks of all accounts it touches for its whole
read-balance -> compute -> write -> commit sequence. Locks are taken in
ascending account id order so two settlements touching the same pair of
accounts can never deadlock. On PostgreSQL the services additionally read the
rows with SELECT ... FOR UPDATE, which extends the guarantee across processes.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional


class AccountLockRegistry:
    """asyncio.Lock per account id, dropped once nobody holds or waits on it"""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    def _checkout(self, account_id: int) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        self._users[account_id] = self._users.get(account_id, 0) + 1
        return lock

    def _release(self, account_id: int) -> None:
        remaining = self._users[account_id] - 1
        if remaining:
            self._users[account_id] = remaining
        else:
            del self._users[account_id]
            del self._locks[account_id]

    def is_locked(self, account_id: int) -> bool:
        lock = self._locks.get(account_id)
        return bool(lock and lock.locked())

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, *account_ids: Optional[int]) -> AsyncIterator[None]:
        ordered = sorted({aid for aid in account_ids if aid is not None})
        acquired: list[int] = []
        try:
            for account_id in ordered:
                lock = self._checkout(account_id)
                try:
                    await lock.acquire()
                except BaseException:
                    self._release(account_id)
                    raise
                acquired.append(account_id)
            yield
        finally:
            for account_id in reversed(acquired):
                self._locks[account_id].release()
                self._release(account_id)


account_locks = AccountLockRegistry()
