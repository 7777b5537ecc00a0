"""
Unit tests for the Firestore endpoint using a mocked AsyncClient.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core.datetime_helpers import DatetimeWithNanoseconds
from google.cloud import firestore

from fscopy.config import parse_where
from fscopy.documents import DocumentRef, GeoPoint, Timestamp
from fscopy.stores.firestore import FirestoreDocumentDatabase


def _sdk_snapshot(path: str, data: dict, exists: bool = True) -> MagicMock:
    snapshot = MagicMock()
    snapshot.exists = exists
    snapshot.id = path.rsplit("/", 1)[-1]
    snapshot.reference.path = path
    snapshot.to_dict.return_value = data
    snapshot.update_time = "t1"
    return snapshot


class TestValueConversion:
    """Tests for from_firestore/to_firestore."""

    def test_from_firestore(self) -> None:
        db = FirestoreDocumentDatabase("p", client=MagicMock())
        when = DatetimeWithNanoseconds(2024, 1, 1, 0, 0, 0, nanosecond=123_456_789, tzinfo=UTC)

        data = db.from_firestore(
            {
                "at": when,
                "plain_dt": datetime(1970, 1, 1, 0, 0, 2, tzinfo=UTC),
                "loc": firestore.GeoPoint(1.5, 2.5),
                "nested": {"list": [firestore.GeoPoint(0.0, 0.0), "x"]},
                "n": 3,
            }
        )

        assert data["at"] == Timestamp(int(when.timestamp()), 123_456_789)
        assert data["plain_dt"] == Timestamp(2, 0)
        assert data["loc"] == GeoPoint(1.5, 2.5)
        assert data["nested"] == {"list": [GeoPoint(0.0, 0.0), "x"]}
        assert data["n"] == 3

    def test_to_firestore(self) -> None:
        client = MagicMock()
        db = FirestoreDocumentDatabase("p", client=client)

        data = db.to_firestore(
            {
                "at": Timestamp(1_700_000_000, 42),
                "loc": GeoPoint(1.0, 2.0),
                "ref": DocumentRef("users/u1"),
                "list": [GeoPoint(3.0, 4.0)],
            }
        )

        assert isinstance(data["at"], DatetimeWithNanoseconds)
        assert data["at"].nanosecond == 42
        assert int(data["at"].timestamp()) == 1_700_000_000
        assert data["loc"] == firestore.GeoPoint(1.0, 2.0)
        client.document.assert_called_with("users/u1")
        assert data["ref"] is client.document.return_value
        assert data["list"] == [firestore.GeoPoint(3.0, 4.0)]


class TestQueries:
    """Tests for reads against a mocked client."""

    @pytest.mark.asyncio
    async def test_query_applies_filters_and_limit(self) -> None:
        client = MagicMock()
        collection = client.collection.return_value
        filtered = collection.where.return_value
        limited = filtered.limit.return_value
        limited.get = AsyncMock(return_value=[_sdk_snapshot("users/u1", {"a": 1})])
        db = FirestoreDocumentDatabase("p", client=client)

        docs = await db.query("users", [parse_where("a == 1")], limit=5)

        client.collection.assert_called_once_with("users")
        field_filter = collection.where.call_args.kwargs["filter"]
        assert field_filter.field_path == "a"
        assert field_filter.op_string == "=="
        assert field_filter.value == 1
        filtered.limit.assert_called_once_with(5)
        assert [d.path for d in docs] == ["users/u1"]
        assert docs[0].data == {"a": 1}
        assert docs[0].update_time == "t1"

    @pytest.mark.asyncio
    async def test_get_all_fills_missing(self) -> None:
        client = MagicMock()

        async def get_all(refs):
            yield _sdk_snapshot("users/u1", {"a": 1})
            yield _sdk_snapshot("users/u2", {}, exists=False)

        client.get_all = get_all
        db = FirestoreDocumentDatabase("p", client=client)

        docs = await db.get_all(["users/u2", "users/u1", "users/u3"])

        assert [d.id for d in docs] == ["u2", "u1", "u3"]
        assert [d.exists for d in docs] == [False, True, False]

    @pytest.mark.asyncio
    async def test_batch_replays_operations(self) -> None:
        client = MagicMock()
        sdk_batch = client.batch.return_value
        sdk_batch.commit = AsyncMock()
        db = FirestoreDocumentDatabase("p", client=client)

        batch = db.batch()
        batch.set("users/u1", {"a": 1}, merge=True)
        batch.delete("users/u2")
        await batch.commit()

        sdk_batch.set.assert_called_once_with(client.document.return_value, {"a": 1}, merge=True)
        sdk_batch.delete.assert_called_once_with(client.document.return_value)
        sdk_batch.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        client = MagicMock()
        client.close.return_value = None
        db = FirestoreDocumentDatabase("p", client=client)

        await db.close()
        await db.close()

        client.close.assert_called_once()
