"""Autosave tests (synchronous wrappers around asyncio.run)."""

from __future__ import annotations

import asyncio
import datetime as dt
from typing import Any

import pytest

from issuetodo.autosave import SAVED_STATUS, AutosaveReconciler, IssueDraft, SaveState
from issuetodo.errors import TransportError, ValidationError
from issuetodo.models import Issue, IssueUpdateRequest, Label, Milestone, User

DEBOUNCE = 0.02


def _issue(**overrides: Any) -> Issue:
    base: dict[str, Any] = {
        "id": 9001,
        "number": 1,
        "title": "Buy milk",
        "body": "Due: 2024-03-01\n\nsemi-skimmed",
        "state": "open",
        "assignees": [User(2, "zed"), User(1, "octo")],
        "labels": [Label(10, "home")],
        "milestone": Milestone(id=501, number=1, title="Week 1"),
    }
    base.update(overrides)
    return Issue(**base)


class _Recorder:
    def __init__(self, fail_times: int = 0, delay: float = 0.0):
        self.requests: list[IssueUpdateRequest] = []
        self.fail_times = fail_times
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, request: IssueUpdateRequest) -> str:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.requests.append(request)
            if self.fail_times:
                self.fail_times -= 1
                raise TransportError("GitHub API PATCH failed with 502", status=502)
            return "saved"
        finally:
            self.in_flight -= 1


def _reconciler(save: _Recorder, **kw: Any) -> AutosaveReconciler:
    kw.setdefault("debounce_seconds", DEBOUNCE)
    kw.setdefault("saved_ack_seconds", 0.05)
    return AutosaveReconciler(IssueDraft.from_issue(_issue()), save, **kw)


def test_draft_seeded_from_issue():
    draft = IssueDraft.from_issue(_issue())
    assert draft.body_text == "semi-skimmed"
    assert draft.due_date == dt.date(2024, 3, 1)
    assert draft.composed_body() == "Due: 2024-03-01\n\nsemi-skimmed"


def test_update_request_carries_full_field_set():
    draft = IssueDraft.from_issue(_issue(title="  Buy milk  "))
    request = draft.to_update_request()
    assert request.title == "Buy milk"
    assert request.body == "Due: 2024-03-01\n\nsemi-skimmed"
    assert request.assignees == ["zed", "octo"]
    assert request.labels == ["home"]
    assert request.milestone == 1


def test_update_request_empty_body_is_null():
    draft = IssueDraft.from_issue(_issue(body=None, milestone=None))
    request = draft.to_update_request()
    assert request.body is None
    assert request.milestone is None


def test_fingerprint_ignores_order_and_surrounding_whitespace():
    a = IssueDraft.from_issue(_issue())
    b = IssueDraft.from_issue(_issue(title="Buy milk ", assignees=[User(1, "octo"), User(2, "zed")]))
    assert a.fingerprint() == b.fingerprint()
    b.due_date = None
    assert a.fingerprint() != b.fingerprint()


def test_unchanged_session_never_writes():
    async def _run() -> _Recorder:
        save = _Recorder()
        autosave = _reconciler(save)
        autosave.schedule()
        await autosave.drain()
        await autosave.flush()
        return save

    assert _run_and_get(_run).requests == []


def test_edits_within_window_coalesce_into_one_save():
    async def _run() -> _Recorder:
        save = _Recorder()
        autosave = _reconciler(save)
        for i in range(5):
            autosave.update(title=f"Buy milk x{i}")
            await asyncio.sleep(0)
        await autosave.drain()
        assert autosave.state is SaveState.IDLE
        assert not autosave.is_dirty
        return save

    save = _run_and_get(_run)
    assert len(save.requests) == 1
    assert save.requests[0].title == "Buy milk x4"


def test_edit_then_revert_is_noop():
    async def _run() -> _Recorder:
        save = _Recorder()
        autosave = _reconciler(save)
        autosave.update(state="closed")
        autosave.update(state="open")
        await autosave.drain()
        return save

    assert _run_and_get(_run).requests == []


def test_failure_reports_and_next_edit_retries():
    errors: list[BaseException] = []

    async def _run() -> tuple[_Recorder, AutosaveReconciler, str]:
        save = _Recorder(fail_times=1)
        autosave = _reconciler(save, on_error=errors.append)
        seed = autosave.last_saved_fingerprint
        autosave.update(body_text="whole milk")
        await autosave.drain()
        assert autosave.last_saved_fingerprint == seed
        autosave.update(labels=[Label(10, "home"), Label(11, "errand")])
        await autosave.drain()
        return save, autosave, seed

    save, autosave, seed = _run_and_get(_run)
    assert len(errors) == 1 and isinstance(errors[0], TransportError)
    assert len(save.requests) == 2
    assert save.requests[1].body == "Due: 2024-03-01\n\nwhole milk"
    assert autosave.last_saved_fingerprint != seed


def test_saves_are_serialized_and_latest_state_wins():
    async def _run() -> _Recorder:
        save = _Recorder(delay=DEBOUNCE * 5)
        autosave = _reconciler(save)
        autosave.update(title="first")
        await asyncio.sleep(DEBOUNCE * 2)  # first save now in flight
        assert autosave.state is SaveState.SAVING
        for title in ("second", "third", "fourth"):
            autosave.update(title=title)
            await asyncio.sleep(DEBOUNCE * 1.5)  # each timer fires during the save
        await autosave.drain()
        return save

    save = _run_and_get(_run)
    assert save.max_in_flight == 1
    assert [r.title for r in save.requests] == ["first", "fourth"]


def test_saved_status_is_transient():
    statuses: list[str] = []

    async def _run() -> AutosaveReconciler:
        autosave = _reconciler(_Recorder(), on_status=statuses.append)
        autosave.update(title="new")
        await autosave.drain()
        assert autosave.status == SAVED_STATUS
        await asyncio.sleep(0.1)
        return autosave

    autosave = _run_and_get(_run)
    assert autosave.status == ""
    assert SAVED_STATUS in statuses and statuses[-1] == ""


def test_on_saved_receives_result():
    seen: list[Any] = []

    async def _hook(result: Any) -> None:
        seen.append(result)

    async def _run() -> None:
        autosave = _reconciler(_Recorder(), on_saved=_hook)
        autosave.update(milestone=None)
        await autosave.drain()

    asyncio.run(_run())
    assert seen == ["saved"]


def test_close_cancels_pending_timer():
    async def _run() -> _Recorder:
        save = _Recorder()
        autosave = _reconciler(save)
        autosave.update(title="never saved")
        autosave.close()
        await asyncio.sleep(DEBOUNCE * 3)
        autosave.update(title="ignored after close")
        await autosave.drain()
        return save

    assert _run_and_get(_run).requests == []


def test_close_during_save_discards_result():
    seen: list[Any] = []

    async def _hook(result: Any) -> None:
        seen.append(result)

    async def _run() -> tuple[_Recorder, AutosaveReconciler, str]:
        save = _Recorder(delay=DEBOUNCE * 3)
        autosave = _reconciler(save, on_saved=_hook)
        seed = autosave.last_saved_fingerprint
        autosave.update(title="in flight")
        await asyncio.sleep(DEBOUNCE * 2)
        autosave.close()
        await autosave.drain()
        return save, autosave, seed

    save, autosave, seed = _run_and_get(_run)
    assert len(save.requests) == 1  # the request itself completed
    assert autosave.last_saved_fingerprint == seed
    assert autosave.status == ""
    assert seen == []
    assert autosave.state is SaveState.IDLE


def test_flush_saves_immediately():
    async def _run() -> _Recorder:
        save = _Recorder()
        autosave = AutosaveReconciler(IssueDraft.from_issue(_issue()), save, debounce_seconds=10)
        autosave.update(due_date=dt.date(2024, 4, 2))
        await autosave.flush()
        return save

    save = _run_and_get(_run)
    assert len(save.requests) == 1
    assert save.requests[0].body == "Due: 2024-04-02\n\nsemi-skimmed"


def test_toggles():
    async def _run() -> AutosaveReconciler:
        autosave = _reconciler(_Recorder())
        autosave.toggle_assignee(User(1, "octo"))
        autosave.toggle_label(Label(11, "errand"))
        autosave.close()
        return autosave

    autosave = _run_and_get(_run)
    assert [u.login for u in autosave.draft.assignees] == ["zed"]
    assert [lbl.name for lbl in autosave.draft.labels] == ["home", "errand"]


def test_update_validation():
    async def _run() -> None:
        autosave = _reconciler(_Recorder())
        with pytest.raises(ValidationError):
            autosave.update(number=3)
        with pytest.raises(ValidationError):
            autosave.update(state="done")
        autosave.close()

    asyncio.run(_run())


def _run_and_get(factory):
    return asyncio.run(factory())
