"""issuetodo - GitHub Issues as a personal todo list.

High-level public API:

from issuetodo import SessionState, load_config

cfg = load_config('issuetodo.config.yaml')
session = SessionState.from_config(cfg)
await session.bootstrap()
edit = session.open_edit_session(session.my_issues[0])
edit.autosave.update(title='Buy oat milk')   # saved after the debounce window
await edit.add_blocked_by('42')
edit.close()

The package is the synchronization layer of an interactive client; rendering
and the OAuth login flow live elsewhere and only hand it a bearer token.
"""

from __future__ import annotations

from .autosave import AutosaveReconciler, IssueDraft
from .body_metadata import compose, display_string, parse
from .config import ClientConfig, load_config
from .errors import (
    DecodeError,
    IssueTodoError,
    PreconditionError,
    TransportError,
    ValidationError,
)
from .models import Issue, RelationshipRef, Repo
from .relationships import RelationshipManager, RelationshipSnapshot
from .session import EditSession, SessionState
from .sync_client import IssueSyncClient, create_sync_client

# Version constant (keep in sync with pyproject)
__version__ = "0.3.0"

__all__ = [
    "AutosaveReconciler",
    "IssueDraft",
    "compose",
    "parse",
    "display_string",
    "ClientConfig",
    "load_config",
    "IssueTodoError",
    "PreconditionError",
    "TransportError",
    "DecodeError",
    "ValidationError",
    "Issue",
    "Repo",
    "RelationshipRef",
    "RelationshipManager",
    "RelationshipSnapshot",
    "SessionState",
    "EditSession",
    "IssueSyncClient",
    "create_sync_client",
    "__version__",
]
