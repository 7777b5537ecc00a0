"""
Unit tests for CollectionWalker.

Tests cover:
- Subcollection traversal order, depth limits and exclude patterns
- Filter and limit scoping to the top-level collection
- Batch-size invariance of the destination content
- Query failures
"""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from fscopy.config import TransferConfig
from fscopy.exceptions import QueryError
from fscopy.observability import MockTracer
from fscopy.state import StateTracker, create_initial_state
from fscopy.stores.in_memory import InMemoryDocumentDatabase
from fscopy.transfer.context import TransferContext
from fscopy.transfer.walker import CollectionWalker
from tests.fixtures import seed_users


class TestTraversal:
    """Tests for collection traversal."""

    @pytest.mark.asyncio
    async def test_top_level_only_by_default(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
    ) -> None:
        seed_users(source_db, 2, orders_per_user=2)
        ctx = make_context()

        await CollectionWalker(ctx).walk("users")

        assert sorted(dest_db.dump()) == ["users/u00", "users/u01"]
        assert ctx.stats.collections_processed == 1
        assert ctx.stats.documents_transferred == 2

    @pytest.mark.asyncio
    async def test_includes_subcollections(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
    ) -> None:
        seed_users(source_db, 2, orders_per_user=2)
        ctx = make_context(include_subcollections=True)

        await CollectionWalker(ctx).walk("users")

        assert dest_db.dump() == source_db.dump()
        assert ctx.stats.collections_processed == 3
        assert ctx.stats.documents_transferred == 6

    @pytest.mark.asyncio
    async def test_visits_subcollections_depth_first_in_discovery_order(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
    ) -> None:
        source_db.put("users/a", {})
        source_db.put("users/b", {})
        source_db.put("users/a/orders/o1", {})
        source_db.put("users/a/orders/o1/items/i1", {})
        source_db.put("users/a/reviews/r1", {})
        source_db.put("users/b/orders/o1", {})
        tracer = MockTracer()
        ctx = make_context(include_subcollections=True, tracer=tracer)

        await CollectionWalker(ctx).walk("users")

        visited = [
            attributes["fscopy.collection.path"]
            for name, attributes in tracer.spans
            if name == "fscopy.walker.collection" and attributes
        ]
        assert visited == [
            "users",
            "users/a/orders",
            "users/a/orders/o1/items",
            "users/a/reviews",
            "users/b/orders",
        ]

    @pytest.mark.asyncio
    async def test_deep_hierarchy(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
    ) -> None:
        path = "level0"
        for depth in range(60):
            source_db.put(f"{path}/d", {"depth": depth})
            path = f"{path}/d/level{depth + 1}"
        ctx = make_context(collections=["level0"], include_subcollections=True)

        await CollectionWalker(ctx).walk("level0")

        assert ctx.stats.collections_processed == 60
        assert dest_db.dump() == source_db.dump()

    @pytest.mark.asyncio
    async def test_max_depth(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
    ) -> None:
        source_db.put("users/a", {})
        source_db.put("users/a/orders/o1", {})
        source_db.put("users/a/orders/o1/items/i1", {})
        ctx = make_context(include_subcollections=True, max_depth=1)

        await CollectionWalker(ctx).walk("users")

        assert sorted(dest_db.dump()) == ["users/a", "users/a/orders/o1"]

    @pytest.mark.asyncio
    async def test_exclude_patterns(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
    ) -> None:
        source_db.put("users/a", {})
        source_db.put("users/a/orders/o1", {})
        source_db.put("users/a/logs/l1", {})
        source_db.put("users/a/temp_cache/t1", {})
        ctx = make_context(include_subcollections=True, exclude=["logs", "temp*"])

        await CollectionWalker(ctx).walk("users")

        assert sorted(dest_db.dump()) == ["users/a", "users/a/orders/o1"]

    @pytest.mark.asyncio
    async def test_subcollections_follow_root_rename_and_id_prefix(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
    ) -> None:
        source_db.put("users/a", {"n": 1})
        source_db.put("users/a/orders/o1", {"n": 2})
        ctx = make_context(
            include_subcollections=True,
            rename_collection={"users": "members"},
            id_prefix="bk_",
        )

        await CollectionWalker(ctx).walk("users")

        assert dest_db.dump() == {
            "members/bk_a": {"n": 1},
            "members/a/orders/bk_o1": {"n": 2},
        }

    @pytest.mark.asyncio
    async def test_skipped_parent_subcollections_not_visited(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
    ) -> None:
        source_db.put("users/a", {"keep": False})
        source_db.put("users/a/orders/o1", {"keep": True})
        ctx = make_context(
            include_subcollections=True,
            transform=lambda data, meta: data if data["keep"] else None,
        )

        await CollectionWalker(ctx).walk("users")

        assert dest_db.dump() == {}

    @pytest.mark.asyncio
    async def test_completed_parent_subcollections_are_visited(
        self,
        make_context: Callable[..., TransferContext],
        make_config: Callable[..., TransferConfig],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
        state_file: Path,
    ) -> None:
        seed_users(source_db, 2, orders_per_user=2)
        state = create_initial_state(make_config())
        state.completed_docs = {"users": ["u00", "u01"], "users/u00/orders": ["o0", "o1"]}
        tracker = StateTracker(state_file, state)
        ctx = make_context(include_subcollections=True, tracker=tracker)

        await CollectionWalker(ctx).walk("users")

        assert sorted(dest_db.dump()) == ["users/u01/orders/o0", "users/u01/orders/o1"]
        assert ctx.stats.documents_transferred == 6
        assert tracker.completed_ids("users/u01/orders") == ["o0", "o1"]

    @pytest.mark.asyncio
    async def test_empty_collection(
        self,
        make_context: Callable[..., TransferContext],
        dest_db: InMemoryDocumentDatabase,
    ) -> None:
        ctx = make_context()

        await CollectionWalker(ctx).walk("users")

        assert ctx.stats.collections_processed == 0
        assert dest_db.commit_count == 0


class TestFilterScoping:
    """Filters and limits apply to the top-level collection only."""

    @pytest.mark.asyncio
    async def test_where_not_applied_to_subcollections(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
    ) -> None:
        # every order has status "inactive"
        seed_users(source_db, 4, orders_per_user=2)
        ctx = make_context(include_subcollections=True, where=["status == active"])

        await CollectionWalker(ctx).walk("users")

        assert dest_db.document_ids("users") == ["u00", "u02"]
        assert dest_db.document_ids("users/u00/orders") == ["o0", "o1"]
        assert dest_db.document_ids("users/u02/orders") == ["o0", "o1"]
        assert dest_db.document_ids("users/u01/orders") == []

    @pytest.mark.asyncio
    async def test_limit_not_applied_to_subcollections(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
    ) -> None:
        seed_users(source_db, 3, orders_per_user=3)
        ctx = make_context(include_subcollections=True, limit=1)

        await CollectionWalker(ctx).walk("users")

        assert dest_db.document_ids("users") == ["u00"]
        assert dest_db.document_ids("users/u00/orders") == ["o0", "o1", "o2"]


class TestBatching:
    """Tests for batch slicing."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("batch_size", [1, 2, 7, 500])
    async def test_destination_independent_of_batch_size(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
        batch_size: int,
    ) -> None:
        seed_users(source_db, 7, orders_per_user=2)
        ctx = make_context(include_subcollections=True, batch_size=batch_size)

        await CollectionWalker(ctx).walk("users")

        assert dest_db.dump() == source_db.dump()
        assert ctx.stats.documents_transferred == 21

    @pytest.mark.asyncio
    async def test_one_commit_per_batch(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        dest_db: InMemoryDocumentDatabase,
    ) -> None:
        seed_users(source_db, 5)
        ctx = make_context(batch_size=2)

        await CollectionWalker(ctx).walk("users")

        assert dest_db.commit_count == 3


class TestQueryFailures:
    """Tests for query retry and failure."""

    @pytest.mark.asyncio
    async def test_query_retried_then_raises(
        self,
        make_context: Callable[..., TransferContext],
        source_db: InMemoryDocumentDatabase,
        no_retry_sleep: AsyncMock,
    ) -> None:
        source_db.query = AsyncMock(side_effect=ConnectionError("unavailable"))  # type: ignore[method-assign]
        ctx = make_context(retries=2)

        with pytest.raises(QueryError) as exc_info:
            await CollectionWalker(ctx).walk("users")

        assert source_db.query.await_count == 3
        assert exc_info.value.collection_path == "users"
        assert "Service unavailable" in exc_info.value.message
