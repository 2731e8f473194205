from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any

from . import body_metadata
from .schemas import validate_payload

ISSUE_STATES = ("open", "closed")


@dataclass(frozen=True)
class User:
    id: int
    login: str
    avatar_url: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> User:
        return cls(id=raw["id"], login=raw["login"], avatar_url=raw.get("avatar_url"))


@dataclass(frozen=True)
class Label:
    id: int
    name: str
    color: str = ""

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> Label:
        return cls(id=raw["id"], name=raw["name"], color=raw.get("color") or "")


@dataclass(frozen=True)
class Milestone:
    id: int
    number: int
    title: str
    state: str = "open"

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> Milestone:
        return cls(
            id=raw["id"],
            number=raw["number"],
            title=raw["title"],
            state=raw.get("state") or "open",
        )


@dataclass(frozen=True)
class Repo:
    id: int
    name: str
    full_name: str
    owner: User
    private: bool = False
    description: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> Repo:
        return cls(
            id=raw["id"],
            name=raw["name"],
            full_name=raw["full_name"],
            owner=User.from_api(raw["owner"]),
            private=bool(raw.get("private", False)),
            description=raw.get("description"),
        )


@dataclass(frozen=True)
class RelationshipRef:
    """Back-reference to another issue: enough to list and link it."""

    id: int
    number: int
    title: str
    url: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> RelationshipRef:
        return cls(id=raw["id"], number=raw["number"], title=raw["title"], url=raw.get("html_url"))


@dataclass
class Issue:
    id: int
    number: int
    title: str
    body: str | None = None
    state: str = "open"
    assignees: list[User] = field(default_factory=list)
    labels: list[Label] = field(default_factory=list)
    milestone: Milestone | None = None
    user: User | None = None
    pull_request: dict[str, Any] | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> Issue:
        milestone = raw.get("milestone")
        user = raw.get("user")
        return cls(
            id=raw["id"],
            number=raw["number"],
            title=raw["title"],
            body=raw.get("body"),
            state=raw["state"],
            assignees=[User.from_api(u) for u in raw.get("assignees") or []],
            labels=[Label.from_api(lbl) for lbl in raw.get("labels") or []],
            milestone=Milestone.from_api(milestone) if milestone else None,
            user=User.from_api(user) if user else None,
            pull_request=raw.get("pull_request"),
        )

    @property
    def is_pull_request(self) -> bool:
        return self.pull_request is not None

    @property
    def display_body(self) -> str:
        return body_metadata.parse(self.body).clean_body

    @property
    def due_date(self) -> dt.date | None:
        return body_metadata.parse(self.body).due_date


@dataclass
class IssueCreateRequest:
    title: str
    body: str | None = None
    assignees: list[str] | None = None
    labels: list[str] | None = None
    milestone: int | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": self.title}
        if self.body is not None:
            payload["body"] = self.body
        if self.assignees is not None:
            payload["assignees"] = list(self.assignees)
        if self.labels is not None:
            payload["labels"] = list(self.labels)
        if self.milestone is not None:
            payload["milestone"] = self.milestone
        return payload


@dataclass
class IssueUpdateRequest:
    """Full-replace PATCH body; every field is sent, ``None`` clears."""

    title: str
    body: str | None
    state: str
    assignees: list[str]
    labels: list[str]
    milestone: int | None

    def to_payload(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "state": self.state,
            "assignees": list(self.assignees),
            "labels": list(self.labels),
            "milestone": self.milestone,
        }


def decode(kind: str, payload: Any) -> Any:
    """Validate and convert a payload; ``kind`` may end in ``_list``."""
    validate_payload(kind, payload)
    factory = _FACTORIES[kind.removesuffix("_list")]
    if kind.endswith("_list"):
        return [factory(entry) for entry in payload]
    return factory(payload)


_FACTORIES: dict[str, Any] = {
    "user": User.from_api,
    "repo": Repo.from_api,
    "label": Label.from_api,
    "milestone": Milestone.from_api,
    "issue": Issue.from_api,
    "issue_summary": RelationshipRef.from_api,
}


__all__ = [
    "ISSUE_STATES",
    "User",
    "Label",
    "Milestone",
    "Repo",
    "RelationshipRef",
    "Issue",
    "IssueCreateRequest",
    "IssueUpdateRequest",
    "decode",
]
