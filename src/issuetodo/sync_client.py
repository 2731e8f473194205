"""Async GitHub Issues client.

Each coroutine maps to exactly one REST call. The blocking ``requests``
transport runs on an executor so the event loop stays responsive; callers
``await`` results the same way regardless of which executor is in use.

List endpoints request a single page of ``page_size`` (100 by default) and
never follow pagination links. That is a scale limit for personal
repositories, not an oversight.
"""

from __future__ import annotations

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType
from typing import Any

from .config import DEFAULT_PAGE_SIZE
from .github_rest import GitHubRestClient
from .logging import get_logger
from .models import (
    Issue,
    IssueCreateRequest,
    IssueUpdateRequest,
    Label,
    Milestone,
    RelationshipRef,
    Repo,
    User,
    decode,
)

REPO_AFFILIATION = "owner,collaborator,organization_member"
HTTP_NOT_FOUND = 404


class IssueSyncClient:
    """Typed async operations over the GitHub REST surface."""

    def __init__(
        self,
        rest: GitHubRestClient,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_workers: int | None = None,
    ):
        self.rest = rest
        self.page_size = page_size
        self.logger = get_logger()
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None

    @property
    def token(self) -> str | None:
        return self.rest.token

    async def __aenter__(self) -> IssueSyncClient:
        if self._max_workers:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            functools.partial(self.rest.request, method, path, **kwargs),
        )

    # ---- users & repositories -----------------------------------------
    async def fetch_current_user(self) -> User:
        return decode("user", await self._call("GET", "/user"))

    async def list_repos(self) -> list[Repo]:
        params = {
            "per_page": self.page_size,
            "sort": "updated",
            "affiliation": REPO_AFFILIATION,
        }
        return decode("repo_list", await self._call("GET", "/user/repos", params=params))

    # ---- issues --------------------------------------------------------
    async def list_issues(
        self,
        owner: str,
        repo: str,
        *,
        state: str = "open",
        assignee: str | None = None,
    ) -> list[Issue]:
        params: dict[str, Any] = {"per_page": self.page_size, "state": state}
        if assignee:
            params["assignee"] = assignee
        data = await self._call("GET", f"/repos/{owner}/{repo}/issues", params=params)
        entries: list[Issue] = decode("issue_list", data or [])
        # The issues endpoint also returns pull requests
        issues = [issue for issue in entries if not issue.is_pull_request]
        if len(issues) != len(entries):
            self.logger.debug(
                "filtered pull requests from issue listing",
                repo=f"{owner}/{repo}",
                dropped=len(entries) - len(issues),
            )
        return issues

    async def fetch_issue(self, owner: str, repo: str, number: int) -> Issue:
        return decode("issue", await self._call("GET", f"/repos/{owner}/{repo}/issues/{number}"))

    async def create_issue(self, owner: str, repo: str, request: IssueCreateRequest) -> Issue:
        data = await self._call(
            "POST", f"/repos/{owner}/{repo}/issues", json_body=request.to_payload()
        )
        issue: Issue = decode("issue", data)
        self.logger.log_issue_action("created", f"{owner}/{repo}", issue.number)
        return issue

    async def update_issue(
        self, owner: str, repo: str, number: int, request: IssueUpdateRequest
    ) -> Issue:
        data = await self._call(
            "PATCH", f"/repos/{owner}/{repo}/issues/{number}", json_body=request.to_payload()
        )
        issue: Issue = decode("issue", data)
        self.logger.log_issue_action("updated", f"{owner}/{repo}", number)
        return issue

    # ---- issue options -------------------------------------------------
    async def list_labels(self, owner: str, repo: str) -> list[Label]:
        data = await self._call(
            "GET", f"/repos/{owner}/{repo}/labels", params={"per_page": self.page_size}
        )
        return decode("label_list", data or [])

    async def list_milestones(self, owner: str, repo: str) -> list[Milestone]:
        params = {"per_page": self.page_size, "state": "all"}
        data = await self._call("GET", f"/repos/{owner}/{repo}/milestones", params=params)
        return decode("milestone_list", data or [])

    async def list_assignees(self, owner: str, repo: str) -> list[User]:
        data = await self._call(
            "GET", f"/repos/{owner}/{repo}/assignees", params={"per_page": self.page_size}
        )
        return decode("user_list", data or [])

    # ---- relationships -------------------------------------------------
    # Reads treat 404 / 204 / empty bodies as "no relation".
    async def _relationship_list(self, path: str) -> list[RelationshipRef]:
        data = await self._call("GET", path, empty_statuses=(HTTP_NOT_FOUND,))
        if data is None:
            return []
        return decode("issue_summary_list", data)

    async def list_blocked_by(self, owner: str, repo: str, number: int) -> list[RelationshipRef]:
        return await self._relationship_list(
            f"/repos/{owner}/{repo}/issues/{number}/dependencies/blocked_by"
        )

    async def list_blocking(self, owner: str, repo: str, number: int) -> list[RelationshipRef]:
        return await self._relationship_list(
            f"/repos/{owner}/{repo}/issues/{number}/dependencies/blocking"
        )

    async def list_sub_issues(self, owner: str, repo: str, number: int) -> list[RelationshipRef]:
        return await self._relationship_list(f"/repos/{owner}/{repo}/issues/{number}/sub_issues")

    async def fetch_parent_issue(
        self, owner: str, repo: str, number: int
    ) -> RelationshipRef | None:
        data = await self._call(
            "GET",
            f"/repos/{owner}/{repo}/issues/{number}/parent",
            empty_statuses=(HTTP_NOT_FOUND,),
        )
        if data is None:
            return None
        return decode("issue_summary", data)

    async def add_blocked_by(
        self, owner: str, repo: str, number: int, blocked_by_issue_id: int
    ) -> None:
        await self._call(
            "POST",
            f"/repos/{owner}/{repo}/issues/{number}/dependencies/blocked_by",
            json_body={"issue_id": blocked_by_issue_id},
        )

    async def remove_blocked_by(
        self, owner: str, repo: str, number: int, blocked_by_issue_id: int
    ) -> None:
        await self._call(
            "DELETE",
            f"/repos/{owner}/{repo}/issues/{number}/dependencies/blocked_by/{blocked_by_issue_id}",
        )

    async def add_sub_issue(
        self, owner: str, repo: str, parent_number: int, sub_issue_id: int
    ) -> None:
        await self._call(
            "POST",
            f"/repos/{owner}/{repo}/issues/{parent_number}/sub_issues",
            json_body={"sub_issue_id": sub_issue_id},
        )

    async def remove_sub_issue(
        self, owner: str, repo: str, parent_number: int, sub_issue_id: int
    ) -> None:
        await self._call(
            "DELETE",
            f"/repos/{owner}/{repo}/issues/{parent_number}/sub_issue",
            json_body={"sub_issue_id": sub_issue_id},
        )


def create_sync_client(
    token: str | None,
    *,
    base_url: str | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout: float = 30.0,
) -> IssueSyncClient:
    """Factory wiring a REST transport into an :class:`IssueSyncClient`."""
    rest = GitHubRestClient(token=token, timeout=timeout)
    if base_url:
        rest.base_url = base_url
    return IssueSyncClient(rest, page_size=page_size)


__all__ = ["IssueSyncClient", "create_sync_client", "REPO_AFFILIATION"]
