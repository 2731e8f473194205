"""Debounced autosave for an issue being edited.

State machine per edit session::

    IDLE --edit--> PENDING --timer--> SAVING --done--> IDLE
                      ^   |
                      +---+  further edits re-arm the timer

Every edit invalidates the previous timer and arms a new one, so a burst of
edits inside the debounce window produces one save with the latest state.
When the timer fires, the draft fingerprint is compared with the fingerprint
of the last successful save; equal fingerprints mean no request at all.

Saves are serialized per issue. A timer that fires while a save is in flight
waits for it, then evaluates the fingerprint of whatever the draft holds at
that point. At most one save waits behind the running one.

Failures go to ``on_error`` and leave the last saved fingerprint alone, so
the next edit retries the write. Nothing is retried automatically.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import enum
import hashlib
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, fields
from typing import Any

from . import body_metadata
from .config import DEFAULT_DEBOUNCE_SECONDS, DEFAULT_SAVED_ACK_SECONDS
from .errors import ValidationError
from .logging import get_logger
from .models import ISSUE_STATES, Issue, IssueUpdateRequest, Label, Milestone, User

SAVED_STATUS = "Saved"


class SaveState(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"


@dataclass
class IssueDraft:
    """Editable copy of an issue's fields, seeded from the last fetch."""

    number: int
    title: str
    body_text: str
    state: str
    assignees: list[User] = field(default_factory=list)
    labels: list[Label] = field(default_factory=list)
    milestone: Milestone | None = None
    due_date: dt.date | None = None

    @classmethod
    def from_issue(cls, issue: Issue) -> IssueDraft:
        parsed = body_metadata.parse(issue.body)
        return cls(
            number=issue.number,
            title=issue.title,
            body_text=parsed.clean_body,
            state=issue.state,
            assignees=list(issue.assignees),
            labels=list(issue.labels),
            milestone=issue.milestone,
            due_date=parsed.due_date,
        )

    def composed_body(self) -> str:
        return body_metadata.compose(self.due_date, self.body_text.strip())

    def fingerprint(self) -> str:
        canonical = {
            "title": self.title.strip(),
            "body": self.composed_body(),
            "state": self.state,
            "assignees": sorted(u.login for u in self.assignees),
            "labels": sorted(lbl.name for lbl in self.labels),
            "milestone": self.milestone.number if self.milestone else 0,
        }
        payload = json.dumps(canonical, sort_keys=True, separators=(",", ":")).encode("utf-8")
        return hashlib.sha256(payload).hexdigest()

    def to_update_request(self) -> IssueUpdateRequest:
        body = self.composed_body()
        return IssueUpdateRequest(
            title=self.title.strip(),
            body=body if body.strip() else None,
            state=self.state,
            assignees=[u.login for u in self.assignees],
            labels=[lbl.name for lbl in self.labels],
            milestone=self.milestone.number if self.milestone else None,
        )


_EDITABLE_FIELDS = frozenset(f.name for f in fields(IssueDraft)) - {"number"}


class CancellationToken:
    """Marks one armed timer; cancelled tokens never lead to a save."""

    __slots__ = ("cancelled",)

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


SaveFunc = Callable[[IssueUpdateRequest], Awaitable[Any]]
SavedHook = Callable[[Any], Awaitable[None]]


class AutosaveReconciler:
    def __init__(
        self,
        draft: IssueDraft,
        save: SaveFunc,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        saved_ack_seconds: float = DEFAULT_SAVED_ACK_SECONDS,
        on_error: Callable[[BaseException], None] | None = None,
        on_saved: SavedHook | None = None,
        on_status: Callable[[str], None] | None = None,
    ):
        self.draft = draft
        self._save = save
        self.debounce_seconds = debounce_seconds
        self.saved_ack_seconds = saved_ack_seconds
        self._on_error = on_error
        self._on_saved = on_saved
        self._on_status = on_status
        self.logger = get_logger()

        self.last_saved_fingerprint = draft.fingerprint()
        self.state = SaveState.IDLE
        self.status = ""
        self.save_count = 0
        self._closed = False
        self._lock = asyncio.Lock()
        self._token: CancellationToken | None = None
        self._timer_task: asyncio.Task[None] | None = None
        self._save_task: asyncio.Task[None] | None = None
        self._save_waiting = False
        self._ack_task: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_dirty(self) -> bool:
        return self.draft.fingerprint() != self.last_saved_fingerprint

    # ---- edits ---------------------------------------------------------
    def update(self, **changes: Any) -> None:
        """Apply field changes to the draft and schedule an autosave."""
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown issue fields: {', '.join(sorted(unknown))}")
        if "state" in changes and changes["state"] not in ISSUE_STATES:
            raise ValidationError(f"Issue state must be open or closed, got {changes['state']!r}")
        for name, value in changes.items():
            setattr(self.draft, name, value)
        self.schedule()

    def toggle_assignee(self, user: User) -> None:
        current = [u for u in self.draft.assignees if u.login != user.login]
        if len(current) == len(self.draft.assignees):
            current.append(user)
        self.update(assignees=current)

    def toggle_label(self, label: Label) -> None:
        current = [lbl for lbl in self.draft.labels if lbl.name != label.name]
        if len(current) == len(self.draft.labels):
            current.append(label)
        self.update(labels=current)

    # ---- timer ---------------------------------------------------------
    def schedule(self) -> None:
        """Replace any armed timer with a fresh one.

        The old token is invalidated before the new task exists, with no
        await in between, so a stale timer can never reach the save path.
        """
        if self._closed:
            return
        self._cancel_timer()
        token = CancellationToken()
        self._token = token
        if self.state is SaveState.IDLE:
            self.state = SaveState.PENDING
        self._timer_task = asyncio.get_running_loop().create_task(self._debounce(token))

    def _cancel_timer(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        if self._timer_task is not None and not self._timer_task.done():
            self._timer_task.cancel()
        self._timer_task = None

    async def _debounce(self, token: CancellationToken) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if token.cancelled or self._closed:
            return
        if self._token is token:
            self._token = None
            self._timer_task = None
        self._spawn_save()

    def _spawn_save(self) -> None:
        # A save already queued behind the lock will read the latest draft.
        if self._save_waiting:
            return
        self._save_waiting = True
        self._save_task = asyncio.get_running_loop().create_task(self._save_if_changed())

    # ---- saving --------------------------------------------------------
    async def _save_if_changed(self) -> None:
        async with self._lock:
            self._save_waiting = False
            if self._closed:
                return
            fingerprint = self.draft.fingerprint()
            if fingerprint == self.last_saved_fingerprint:
                self.logger.debug("autosave skipped: no changes", issue_number=self.draft.number)
                self._settle()
                return
            request = self.draft.to_update_request()
            self.state = SaveState.SAVING
            self._set_status("")
            try:
                result = await self._save(request)
            except Exception as exc:
                self.logger.log_error(
                    "autosave failed", error=str(exc), issue_number=self.draft.number
                )
                self._settle()
                if not self._closed:
                    self._report(exc)
                return
            if self._closed:
                self.logger.debug("autosave result discarded after close", issue_number=self.draft.number)
                self.state = SaveState.IDLE
                return
            self.last_saved_fingerprint = fingerprint
            self.save_count += 1
            self._settle()
            self.logger.log_operation("autosave", issue_number=self.draft.number)
            self._acknowledge()
            if self._on_saved is not None:
                try:
                    await self._on_saved(result)
                except Exception as exc:
                    self._report(exc)

    def _settle(self) -> None:
        self.state = SaveState.PENDING if self._timer_task is not None else SaveState.IDLE

    def _report(self, exc: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(exc)

    def _set_status(self, status: str) -> None:
        self.status = status
        if self._on_status is not None:
            self._on_status(status)

    def _acknowledge(self) -> None:
        if self._ack_task is not None and not self._ack_task.done():
            self._ack_task.cancel()
        self._set_status(SAVED_STATUS)
        self._ack_task = asyncio.get_running_loop().create_task(self._clear_ack())

    async def _clear_ack(self) -> None:
        await asyncio.sleep(self.saved_ack_seconds)
        if self.status == SAVED_STATUS:
            self._set_status("")

    # ---- lifecycle -----------------------------------------------------
    async def flush(self) -> None:
        """Save now instead of waiting for the timer (same no-op rule)."""
        if self._closed:
            return
        self._cancel_timer()
        await self._save_if_changed()

    async def drain(self) -> None:
        """Wait until no timer is armed and no save is running."""
        while True:
            pending = [
                t for t in (self._timer_task, self._save_task) if t is not None and not t.done()
            ]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def close(self) -> None:
        """Stop autosaving; a save already on the wire finishes unobserved."""
        if self._closed:
            return
        self._closed = True
        self._cancel_timer()
        if self._ack_task is not None and not self._ack_task.done():
            self._ack_task.cancel()
        if self.state is SaveState.PENDING:
            self.state = SaveState.IDLE


__all__ = [
    "AutosaveReconciler",
    "CancellationToken",
    "IssueDraft",
    "SaveState",
    "SAVED_STATUS",
]
