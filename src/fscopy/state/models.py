"""
Persisted transfer state record.

The JSON form uses camelCase keys::

    {
      "version": 1,
      "sourceProject": "prod",
      "destProject": "staging",
      "collections": ["users"],
      "startedAt": "2024-01-01T00:00:00Z",
      "updatedAt": "2024-01-01T00:05:00Z",
      "completedDocs": {"users": ["u1", "u2"]},
      "stats": {"collectionsProcessed": 1, "documentsTransferred": 2, ...}
    }
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

STATE_VERSION = 1


class TransferState(BaseModel):
    """
    Resumable progress of a transfer.

    ``completed_docs`` maps each source collection path to the IDs already
    committed there, in the order they were completed.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: int = STATE_VERSION
    source_project: str
    dest_project: str
    collections: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_docs: dict[str, list[str]] = Field(default_factory=dict)
    stats: dict[str, int] = Field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize with camelCase keys."""
        return self.model_dump_json(by_alias=True, indent=2)


__all__ = ["STATE_VERSION", "TransferState"]
