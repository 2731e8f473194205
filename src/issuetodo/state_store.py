from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

STATE_VERSION = 1


@dataclass
class SelectionState:
    """What survives a restart: the selected repository's full name."""

    selected_repo: str | None = None
    version: int = STATE_VERSION
    updated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class SelectionStore:
    """JSON file holding :class:`SelectionState`, written atomically."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> SelectionState:
        if not self.path.exists():
            return SelectionState()
        try:
            raw: Any = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable selection state %s: %s", self.path, exc)
            return SelectionState()
        if not isinstance(raw, dict):
            return SelectionState()
        selected = raw.get("selected_repo")
        return SelectionState(
            selected_repo=selected if isinstance(selected, str) and selected else None,
            version=int(raw.get("version") or STATE_VERSION),
            updated_at=str(raw.get("updated_at") or datetime.now(timezone.utc).isoformat()),
        )

    def save(self, state: SelectionState) -> None:
        state.updated_at = datetime.now(timezone.utc).isoformat()
        payload = {
            "version": state.version,
            "updated_at": state.updated_at,
            "selected_repo": state.selected_repo,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        tmp.replace(self.path)

    def load_selected_repo(self) -> str | None:
        return self.load().selected_repo

    def save_selected_repo(self, full_name: str) -> None:
        self.save(SelectionState(selected_repo=full_name))

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


class MemorySelectionStore(SelectionStore):
    """In-process store for tests and ephemeral sessions."""

    def __init__(self, selected_repo: str | None = None):
        super().__init__(Path("<memory>"))
        self._state = SelectionState(selected_repo=selected_repo)

    def load(self) -> SelectionState:
        return SelectionState(selected_repo=self._state.selected_repo)

    def save(self, state: SelectionState) -> None:
        self._state = SelectionState(selected_repo=state.selected_repo)

    def clear(self) -> None:
        self._state = SelectionState()


__all__ = ["SelectionState", "SelectionStore", "MemorySelectionStore"]
