from __future__ import annotations

import pytest

from preset_resizer.operation_flow import OperationScope, OperationScopeHooks


def _recording_scope(events: list, *, label: str = "変換中") -> OperationScope:
    return OperationScope(
        hooks=OperationScopeHooks(
            set_busy=lambda busy: events.append(("busy", busy)),
            on_begin=lambda: events.append(("begin",)),
            on_close=lambda: events.append(("close",)),
        ),
        label=label,
    )


def test_operation_scope_begin_and_close() -> None:
    events: list[tuple] = []
    scope = _recording_scope(events)

    scope.begin()
    assert scope.active is True
    scope.close()

    assert scope.active is False
    assert scope.label == "変換中"
    assert events == [
        ("busy", True),
        ("begin",),
        ("busy", False),
        ("close",),
    ]


def test_operation_scope_is_idempotent() -> None:
    events: list[tuple] = []
    scope = _recording_scope(events)

    scope.begin()
    scope.begin()
    scope.close()
    scope.close()

    assert events.count(("busy", True)) == 1
    assert events.count(("busy", False)) == 1
    assert events.count(("close",)) == 1


def test_operation_scope_context_manager_releases_on_error() -> None:
    events: list[tuple] = []

    with pytest.raises(RuntimeError):
        with _recording_scope(events):
            raise RuntimeError("boom")

    assert events[-2:] == [("busy", False), ("close",)]


def test_operation_scope_releases_when_begin_hook_fails() -> None:
    busy_states: list[bool] = []

    def failing_begin() -> None:
        raise ValueError("listener failed")

    scope = OperationScope(
        hooks=OperationScopeHooks(
            set_busy=busy_states.append,
            on_begin=failing_begin,
            on_close=lambda: None,
        ),
    )

    with pytest.raises(ValueError):
        with scope:
            pass

    assert busy_states == [True, False]
    assert scope.active is False
