"""Blocked-by and parent/sub-issue links for a single issue.

The dependency and sub-issue endpoints key on the immutable issue *id*, while
people type issue *numbers*. Every mutation therefore runs as a small
workflow: validate input, resolve number -> id when needed, mutate, then
reload blocked-by, parent and sub-issues wholesale. Local lists are never
patched in place, so concurrent edits made elsewhere show up after the next
mutation.

Nothing here retries. A failure in any step raises (``TransportError``,
``DecodeError`` or ``ValidationError``) and leaves the previous snapshot
untouched.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from .errors import ValidationError
from .logging import get_logger
from .models import Issue, RelationshipRef
from .sync_client import IssueSyncClient


@dataclass(frozen=True)
class RelationshipSnapshot:
    blocked_by: list[RelationshipRef] = field(default_factory=list)
    parent: RelationshipRef | None = None
    sub_issues: list[RelationshipRef] = field(default_factory=list)


def parse_issue_number(text: str | int | None) -> int:
    """Turn user input such as ``"42"`` or ``"#42"`` into an issue number."""
    if isinstance(text, bool):
        raise ValidationError(f"Not an issue number: {text!r}")
    if isinstance(text, int):
        number = text
    else:
        raw = (text or "").strip().removeprefix("#").strip()
        if not raw.isdigit():
            raise ValidationError(f"Not an issue number: {text!r}")
        number = int(raw)
    if number <= 0:
        raise ValidationError(f"Issue numbers start at 1, got {number}")
    return number


class RelationshipManager:
    """Reads and mutates the relationships of one issue in one repository."""

    def __init__(self, client: IssueSyncClient, owner: str, repo: str, issue: Issue):
        self.client = client
        self.owner = owner
        self.repo = repo
        self.issue_number = issue.number
        self.issue_id = issue.id
        self.snapshot: RelationshipSnapshot | None = None
        self.logger = get_logger()

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    # ---- reads ---------------------------------------------------------
    async def list_blocked_by(self) -> list[RelationshipRef]:
        return await self.client.list_blocked_by(self.owner, self.repo, self.issue_number)

    async def list_blocking(self) -> list[RelationshipRef]:
        return await self.client.list_blocking(self.owner, self.repo, self.issue_number)

    async def list_sub_issues(self) -> list[RelationshipRef]:
        return await self.client.list_sub_issues(self.owner, self.repo, self.issue_number)

    async def get_parent(self) -> RelationshipRef | None:
        return await self.client.fetch_parent_issue(self.owner, self.repo, self.issue_number)

    async def load(self) -> RelationshipSnapshot:
        blocked_by, parent, sub_issues = await asyncio.gather(
            self.list_blocked_by(), self.get_parent(), self.list_sub_issues()
        )
        self.snapshot = RelationshipSnapshot(
            blocked_by=blocked_by, parent=parent, sub_issues=sub_issues
        )
        return self.snapshot

    # ---- workflow plumbing ---------------------------------------------
    async def _resolve_issue_id(self, number: int) -> int:
        target = await self.client.fetch_issue(self.owner, self.repo, number)
        return target.id

    async def _run(
        self, action: str, mutate: Callable[[], Awaitable[None]], **details: int
    ) -> RelationshipSnapshot:
        with self.logger.timed_operation(
            f"relationship_{action}", repo=self.slug, issue_number=self.issue_number, **details
        ):
            await mutate()
        self.logger.log_issue_action(action, self.slug, self.issue_number, **details)
        return await self.load()

    def _reject_self(self, number: int) -> None:
        if number == self.issue_number:
            raise ValidationError(f"Issue #{number} cannot be related to itself")

    # ---- mutations -----------------------------------------------------
    async def add_blocked_by(self, target_number: str | int) -> RelationshipSnapshot:
        number = parse_issue_number(target_number)
        self._reject_self(number)

        async def _mutate() -> None:
            target_id = await self._resolve_issue_id(number)
            await self.client.add_blocked_by(self.owner, self.repo, self.issue_number, target_id)

        return await self._run("blocked_by_added", _mutate, target_number=number)

    async def remove_blocked_by(self, target_id: int) -> RelationshipSnapshot:
        async def _mutate() -> None:
            await self.client.remove_blocked_by(self.owner, self.repo, self.issue_number, target_id)

        return await self._run("blocked_by_removed", _mutate, target_id=target_id)

    async def add_sub_issue(self, parent_number: int, child_id: int) -> RelationshipSnapshot:
        async def _mutate() -> None:
            await self.client.add_sub_issue(self.owner, self.repo, parent_number, child_id)

        return await self._run(
            "sub_issue_added", _mutate, parent_number=parent_number, child_id=child_id
        )

    async def remove_sub_issue(self, parent_number: int, child_id: int) -> RelationshipSnapshot:
        async def _mutate() -> None:
            await self.client.remove_sub_issue(self.owner, self.repo, parent_number, child_id)

        return await self._run(
            "sub_issue_removed", _mutate, parent_number=parent_number, child_id=child_id
        )

    async def add_sub_issue_by_number(self, child_number: str | int) -> RelationshipSnapshot:
        """Attach issue ``child_number`` under this issue."""
        number = parse_issue_number(child_number)
        self._reject_self(number)

        async def _mutate() -> None:
            child_id = await self._resolve_issue_id(number)
            await self.client.add_sub_issue(self.owner, self.repo, self.issue_number, child_id)

        return await self._run("sub_issue_added", _mutate, child_number=number)

    async def remove_child(self, child: RelationshipRef) -> RelationshipSnapshot:
        return await self.remove_sub_issue(self.issue_number, child.id)

    async def set_parent(self, child_id: int, parent_number: str | int) -> RelationshipSnapshot:
        """Attach issue ``child_id`` under ``parent_number``."""
        number = parse_issue_number(parent_number)
        if child_id == self.issue_id:
            self._reject_self(number)

        async def _mutate() -> None:
            # Resolve first so a missing parent fails on the lookup
            await self._resolve_issue_id(number)
            await self.client.add_sub_issue(self.owner, self.repo, number, child_id)

        return await self._run("sub_issue_added", _mutate, parent_number=number, child_id=child_id)

    async def set_parent_by_number(self, parent_number: str | int) -> RelationshipSnapshot:
        """Make this issue a sub-issue of ``parent_number``."""
        return await self.set_parent(self.issue_id, parent_number)

    async def clear_parent(self) -> RelationshipSnapshot:
        """Detach this issue from its current parent; no-op without one."""
        parent = self.snapshot.parent if self.snapshot is not None else await self.get_parent()
        if parent is None:
            self.logger.debug("clear_parent: no parent", repo=self.slug, issue_number=self.issue_number)
            return self.snapshot or RelationshipSnapshot()
        return await self.remove_sub_issue(parent.number, self.issue_id)


__all__ = ["RelationshipManager", "RelationshipSnapshot", "parse_issue_number"]
