from __future__ import annotations

import time
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Any

import requests

from .config import DEFAULT_API_URL
from .errors import DecodeError, PreconditionError, TransportError
from .logging import get_logger

USER_AGENT = "issuetodo-rest/0.3.0"
API_VERSION = "2022-11-28"
HTTP_ERROR_STATUS = 400
HTTP_NO_CONTENT = 204


@dataclass
class GitHubRestClient:
    """Blocking REST transport for the GitHub API.

    Every call needs a bearer token; a missing token is a
    :class:`PreconditionError` raised before anything goes on the wire.
    Nothing is retried: failures surface as :class:`TransportError` and the
    user re-triggers the action.
    """

    token: str | None
    base_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("X-GitHub-Api-Version", API_VERSION)
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def _headers(self) -> dict[str, str]:
        headers = dict(self._session.headers)
        headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
        empty_statuses: Collection[int] = (),
    ) -> Any:
        """Perform one request and return the decoded JSON body.

        Returns ``None`` for 204, for an empty body, and for any status in
        ``empty_statuses`` (used by relationship reads where 404 means "no
        relation").
        """
        if not self.token:
            raise PreconditionError("Missing GitHub token.")
        url = self._url(path)
        logger = get_logger()
        start = time.perf_counter()
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"GitHub API {method} {url} failed: {exc}") from exc
        logger.log_performance(
            "github_request",
            (time.perf_counter() - start) * 1000,
            method=method,
            path=path,
            status=response.status_code,
        )
        if response.status_code in empty_statuses or response.status_code == HTTP_NO_CONTENT:
            return None
        if response.status_code >= HTTP_ERROR_STATUS:
            raise TransportError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if not response.text:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(f"GitHub API {method} {url} returned invalid JSON") from exc


__all__ = ["GitHubRestClient", "USER_AGENT", "API_VERSION"]
