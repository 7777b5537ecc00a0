"""
Shared test data for the fscopy tests.

Usage:
    from tests.fixtures import seed_users, FailingBatchDatabase
"""

from __future__ import annotations

from fscopy.stores.in_memory import InMemoryDocumentDatabase, InMemoryWriteBatch
from fscopy.stores.interface import WriteOperation


def seed_users(
    db: InMemoryDocumentDatabase,
    count: int = 5,
    *,
    orders_per_user: int = 0,
    collection: str = "users",
) -> list[str]:
    """
    Create ``count`` user documents (``u00``, ``u01``, ...) with optional orders.

    Even-numbered users are ``active``, odd-numbered ``inactive``.

    Returns:
        The created user IDs
    """
    ids = []
    for i in range(count):
        user_id = f"u{i:02d}"
        ids.append(user_id)
        db.put(
            f"{collection}/{user_id}",
            {
                "name": f"User {i}",
                "age": 20 + i,
                "status": "active" if i % 2 == 0 else "inactive",
                "profile": {"city": "Paris", "tags": ["a", "b"]},
            },
        )
        for j in range(orders_per_user):
            db.put(
                f"{collection}/{user_id}/orders/o{j}",
                {"total": 10 * (j + 1), "status": "inactive"},
            )
    return ids


class _FailingBatch(InMemoryWriteBatch):
    def __init__(self, database: FailingBatchDatabase) -> None:
        super().__init__(database)
        self._failing = database

    async def _commit(self, operations: list[WriteOperation]) -> None:
        self._failing.commit_attempts += 1
        if self._failing.failures_remaining > 0:
            self._failing.failures_remaining -= 1
            raise ConnectionError("unavailable: connection reset")
        await super()._commit(operations)


class FailingBatchDatabase(InMemoryDocumentDatabase):
    """
    In-memory database whose first ``failures`` commits raise ``ConnectionError``.

    With ``failures=-1`` every commit fails.
    """

    def __init__(self, failures: int = 1, name: str = "failing") -> None:
        super().__init__(name)
        self.failures_remaining = failures if failures >= 0 else 10**9
        self.commit_attempts = 0

    def batch(self) -> _FailingBatch:
        return _FailingBatch(self)


__all__ = ["seed_users", "FailingBatchDatabase"]
