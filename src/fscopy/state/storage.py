"""
State file protocol.

Saves are atomic: the record is written to ``<path>.tmp`` and renamed over the
real path. A failed save is logged and never raised, so a full disk cannot
abort a running transfer.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from fscopy.config import TransferConfig
from fscopy.models import TransferStats
from fscopy.state.models import STATE_VERSION, TransferState

logger = logging.getLogger(__name__)


def load_transfer_state(path: str | Path) -> TransferState | None:
    """
    Load a saved transfer state.

    Returns:
        The state, or None when the file is missing, unreadable, invalid or
        written by a different state version.
    """
    path = Path(path)
    if not path.exists():
        return None

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to load state file %s: %s", path, e, extra={"state_file": str(path)})
        return None

    version = raw.get("version") if isinstance(raw, dict) else None
    if version != STATE_VERSION:
        logger.warning(
            "State file version mismatch (expected %d, got %s)",
            STATE_VERSION,
            version,
            extra={"state_file": str(path)},
        )
        return None

    try:
        return TransferState.model_validate(raw)
    except ValidationError as e:
        logger.error("Invalid state file %s: %s", path, e, extra={"state_file": str(path)})
        return None


def save_transfer_state(path: str | Path, state: TransferState) -> bool:
    """
    Atomically write the state file.

    Sets ``updated_at`` before serializing.

    Returns:
        True if the file was written.
    """
    path = Path(path)
    temp_path = path.with_name(path.name + ".tmp")
    state.updated_at = datetime.now(UTC)

    try:
        temp_path.write_text(state.to_json(), encoding="utf-8")
        os.replace(temp_path, path)
    except OSError as e:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            logger.debug("Could not remove temp state file %s", temp_path)
        logger.error(
            "Failed to save state file %s: %s",
            path,
            e,
            extra={"state_file": str(path), "error_type": type(e).__name__},
        )
        return False
    return True


def delete_transfer_state(path: str | Path) -> None:
    """Remove the state file if present; failures are logged only."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Failed to delete state file %s: %s", path, e)


def create_initial_state(config: TransferConfig) -> TransferState:
    """Fresh state for a new run of ``config``."""
    now = datetime.now(UTC)
    return TransferState(
        source_project=config.source_project or "",
        dest_project=config.dest_project or "",
        collections=list(config.collections),
        started_at=now,
        updated_at=now,
        stats=TransferStats().to_dict(),
    )


def validate_state_for_resume(state: TransferState, config: TransferConfig) -> list[str]:
    """
    Check that a saved state belongs to the configured transfer.

    Returns:
        Error messages, empty when the state can be resumed.
    """
    errors = []
    if state.source_project != config.source_project:
        errors.append(
            f'Source project mismatch: state has "{state.source_project}", '
            f'config has "{config.source_project}"'
        )
    if state.dest_project != config.dest_project:
        errors.append(
            f'Destination project mismatch: state has "{state.dest_project}", '
            f'config has "{config.dest_project}"'
        )

    configured = set(config.collections)
    for collection in state.collections:
        if collection not in configured:
            errors.append(f'State contains collection "{collection}" not in current config')

    return errors


__all__ = [
    "load_transfer_state",
    "save_transfer_state",
    "delete_transfer_state",
    "create_initial_state",
    "validate_state_for_resume",
]
