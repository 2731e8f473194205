"""Session and selection state shared by every screen.

:class:`SessionState` is an explicit context object: screens receive it,
read its fields, and ``subscribe`` to be told when one changes. Fields change
only through ``_publish``, which notifies observers with the field name and
the new value.

Network failures inside session operations land on a single error surface
(``error_message`` / ``last_error``) instead of propagating; a caller that
violates a precondition (no token, no repository selected) gets a
:class:`PreconditionError` raised at it directly.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from . import body_metadata
from .autosave import AutosaveReconciler, IssueDraft
from .config import ClientConfig
from .env_auth import EnvAuthConfig, create_env_auth_manager
from .errors import ErrorInfo, IssueTodoError, PreconditionError, ValidationError, classify_error
from .logging import get_logger
from .models import Issue, IssueCreateRequest, Label, Milestone, RelationshipRef, Repo, User
from .relationships import RelationshipManager, RelationshipSnapshot
from .state_store import SelectionStore
from .sync_client import IssueSyncClient, create_sync_client

T = TypeVar("T")

Observer = Callable[[str, Any], None]
ClientFactory = Callable[[str], IssueSyncClient]


@dataclass
class IssueOptions:
    """Choices offered while editing: who can be assigned, labels, milestones."""

    assignees: list[User] = field(default_factory=list)
    labels: list[Label] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)


class SessionState:
    def __init__(
        self,
        *,
        store: SelectionStore,
        token: str | None = None,
        config: ClientConfig | None = None,
        client_factory: ClientFactory | None = None,
    ):
        self.config = config or ClientConfig()
        self.store = store
        self._client_factory = client_factory or self._default_client_factory
        self._client: IssueSyncClient | None = None
        self._observers: list[Observer] = []
        self.logger = get_logger()

        self.token: str | None = token
        self.current_user: User | None = None
        self.repos: list[Repo] = []
        self.selected_repo: Repo | None = None
        self.my_issues: list[Issue] = []
        self.all_issues: list[Issue] = []
        self.issue_state = "open"
        self.is_loading = False
        self.error_message: str | None = None
        self.last_error: ErrorInfo | None = None

    @classmethod
    def from_config(cls, config: ClientConfig) -> SessionState:
        """Build a session whose token comes from the environment / .env."""
        auth = create_env_auth_manager(EnvAuthConfig.from_client_config(config))
        return cls(
            store=SelectionStore(config.state_file),
            token=auth.get_github_token(),
            config=config,
        )

    # ---- observation ---------------------------------------------------
    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _publish(self, name: str, value: Any) -> None:
        setattr(self, name, value)
        for observer in list(self._observers):
            observer(name, value)

    # ---- error surface -------------------------------------------------
    def report_error(self, exc: BaseException) -> None:
        info = classify_error(exc)
        self.logger.log_error("session error", error=info.message, category=info.category)
        self._publish("last_error", info)
        self._publish("error_message", info.message)

    def dismiss_error(self) -> None:
        self._publish("last_error", None)
        self._publish("error_message", None)

    async def _guarded(self, awaitable: Awaitable[T]) -> T | None:
        try:
            return await awaitable
        except IssueTodoError as exc:
            if isinstance(exc, PreconditionError):
                raise
            self.report_error(exc)
            return None

    # ---- clients -------------------------------------------------------
    def _default_client_factory(self, token: str) -> IssueSyncClient:
        return create_sync_client(
            token,
            base_url=self.config.api_url,
            page_size=self.config.page_size,
            timeout=self.config.request_timeout,
        )

    @property
    def client(self) -> IssueSyncClient | None:
        if not self.token:
            return None
        if self._client is None or self._client.token != self.token:
            self._client = self._client_factory(self.token)
        return self._client

    def require_client(self) -> IssueSyncClient:
        client = self.client
        if client is None:
            raise PreconditionError("Missing GitHub token.")
        return client

    def require_repo(self) -> Repo:
        if self.selected_repo is None:
            raise PreconditionError("No repository selected.")
        return self.selected_repo

    # ---- lifecycle -----------------------------------------------------
    async def bootstrap(self) -> None:
        """Restore a previous session: user, repos, selection, issues."""
        if not self.token:
            return
        await self.refresh_current_user()
        await self.load_repos()
        self.restore_selected_repo()
        if self.selected_repo is not None and self.current_user is not None:
            await self.refresh_issues()

    async def sign_in(self, token: str) -> None:
        """Adopt a credential obtained by the external login flow."""
        token = (token or "").strip()
        if not token:
            raise ValidationError("Empty GitHub token.")
        self.dismiss_error()
        self._publish("token", token)
        await self.refresh_current_user()
        await self.load_repos()

    def sign_out(self) -> None:
        self.store.clear()
        self._client = None
        self.dismiss_error()
        self._publish("is_loading", False)
        self._publish("issue_state", "open")
        self._publish("token", None)
        self._publish("current_user", None)
        self._publish("repos", [])
        self._publish("selected_repo", None)
        self._publish("my_issues", [])
        self._publish("all_issues", [])
        self.logger.log_operation("signed_out")

    # ---- repositories --------------------------------------------------
    def select_repo(self, repo: Repo) -> None:
        self._publish("selected_repo", repo)
        self.store.save_selected_repo(repo.full_name)
        self.logger.log_operation("repo_selected", repo=repo.full_name)

    def restore_selected_repo(self) -> Repo | None:
        """Match the persisted full name against the freshly loaded repos."""
        full_name = self.store.load_selected_repo()
        if not full_name:
            return None
        match = next((r for r in self.repos if r.full_name == full_name), None)
        if match is None:
            self.logger.info("persisted repository not found", repo=full_name)
            self._publish("selected_repo", None)
            return None
        self._publish("selected_repo", match)
        return match

    async def refresh_current_user(self) -> None:
        client = self.require_client()
        user = await self._guarded(client.fetch_current_user())
        if user is not None:
            self._publish("current_user", user)

    async def load_repos(self) -> None:
        client = self.require_client()
        self._publish("is_loading", True)
        try:
            repos = await self._guarded(client.list_repos())
            if repos is not None:
                self._publish("repos", repos)
        finally:
            self._publish("is_loading", False)

    # ---- issues --------------------------------------------------------
    async def refresh_issues(self, state: str = "open") -> None:
        """Fetch "mine" and "all" concurrently; each list lands on its own."""
        client = self.require_client()
        repo = self.require_repo()
        if self.current_user is None:
            raise PreconditionError("Current user is not loaded.")
        owner, name = repo.owner.login, repo.name
        self._publish("issue_state", state)
        self._publish("is_loading", True)

        async def _fetch_into(attr: str, assignee: str | None) -> None:
            issues = await self._guarded(
                client.list_issues(owner, name, state=state, assignee=assignee)
            )
            if issues is not None:
                self._publish(attr, issues)

        try:
            await asyncio.gather(
                _fetch_into("my_issues", self.current_user.login),
                _fetch_into("all_issues", None),
            )
        finally:
            self._publish("is_loading", False)

    async def create_issue(
        self, title: str, body: str = "", due_date: dt.date | None = None
    ) -> Issue | None:
        """Create a todo assigned to the current user, then refresh lists."""
        client = self.require_client()
        repo = self.require_repo()
        title = (title or "").strip()
        if not title:
            raise ValidationError("An issue needs a title.")
        composed = body_metadata.compose(due_date, body.strip())
        request = IssueCreateRequest(
            title=title,
            body=composed if composed.strip() else None,
            assignees=[self.current_user.login] if self.current_user else None,
        )
        issue = await self._guarded(client.create_issue(repo.owner.login, repo.name, request))
        if issue is not None and self.current_user is not None:
            await self.refresh_issues(self.issue_state)
        return issue

    async def load_issue_options(self) -> IssueOptions:
        """Assignees, labels and milestones, fetched together."""
        client = self.require_client()
        repo = self.require_repo()
        owner, name = repo.owner.login, repo.name
        results = await asyncio.gather(
            client.list_assignees(owner, name),
            client.list_labels(owner, name),
            client.list_milestones(owner, name),
            return_exceptions=True,
        )
        values: list[list[Any]] = []
        for result in results:
            if isinstance(result, IssueTodoError):
                self.report_error(result)
                values.append([])
            elif isinstance(result, BaseException):
                raise result
            else:
                values.append(result)
        return IssueOptions(assignees=values[0], labels=values[1], milestones=values[2])

    # ---- editing -------------------------------------------------------
    def open_edit_session(self, issue: Issue) -> EditSession:
        client = self.require_client()
        repo = self.require_repo()
        owner, name = repo.owner.login, repo.name

        async def _save(request: Any) -> Issue:
            return await client.update_issue(owner, name, issue.number, request)

        async def _saved(_: Any) -> None:
            if self.current_user is not None:
                await self.refresh_issues(self.issue_state)

        autosave = AutosaveReconciler(
            IssueDraft.from_issue(issue),
            _save,
            debounce_seconds=self.config.debounce_seconds,
            saved_ack_seconds=self.config.saved_ack_seconds,
            on_error=self.report_error,
            on_saved=_saved,
        )
        relationships = RelationshipManager(client, owner, name, issue)
        return EditSession(session=self, issue=issue, autosave=autosave, relationships=relationships)


@dataclass
class EditSession:
    """One open issue: its draft autosaver plus its relationship links."""

    session: SessionState
    issue: Issue
    autosave: AutosaveReconciler
    relationships: RelationshipManager
    options: IssueOptions = field(default_factory=IssueOptions)
    snapshot: RelationshipSnapshot = field(default_factory=RelationshipSnapshot)

    @property
    def draft(self) -> IssueDraft:
        return self.autosave.draft

    async def load(self) -> None:
        self.options = await self.session.load_issue_options()
        await self.reload_relationships()

    async def _apply(self, workflow: Awaitable[RelationshipSnapshot]) -> bool:
        try:
            self.snapshot = await workflow
        except IssueTodoError as exc:
            if isinstance(exc, PreconditionError):
                raise
            self.session.report_error(exc)
            return False
        return True

    async def reload_relationships(self) -> bool:
        return await self._apply(self.relationships.load())

    async def add_blocked_by(self, number_text: str | int) -> bool:
        return await self._apply(self.relationships.add_blocked_by(number_text))

    async def remove_blocked_by(self, ref: RelationshipRef) -> bool:
        return await self._apply(self.relationships.remove_blocked_by(ref.id))

    async def set_parent(self, number_text: str | int) -> bool:
        return await self._apply(self.relationships.set_parent_by_number(number_text))

    async def clear_parent(self) -> bool:
        return await self._apply(self.relationships.clear_parent())

    async def add_sub_issue(self, number_text: str | int) -> bool:
        return await self._apply(self.relationships.add_sub_issue_by_number(number_text))

    async def remove_sub_issue(self, ref: RelationshipRef) -> bool:
        return await self._apply(self.relationships.remove_child(ref))

    def close(self) -> None:
        self.autosave.close()


__all__ = ["SessionState", "EditSession", "IssueOptions"]
