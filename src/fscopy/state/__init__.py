"""
Resumable transfer state: the persisted record, its file protocol, and the
in-memory tracker used during a run.
"""

from fscopy.state.models import STATE_VERSION, TransferState
from fscopy.state.storage import (
    create_initial_state,
    delete_transfer_state,
    load_transfer_state,
    save_transfer_state,
    validate_state_for_resume,
)
from fscopy.state.tracker import StateTracker

__all__ = [
    "STATE_VERSION",
    "TransferState",
    "StateTracker",
    "create_initial_state",
    "delete_transfer_state",
    "load_transfer_state",
    "save_transfer_state",
    "validate_state_for_resume",
]
