"""Pytest configuration and fixtures."""

import itertools
import json
from pathlib import Path

import pytest

from agent_timeline.cursor import ReducerContext
from agent_timeline.events import parse_event
from agent_timeline.reducer import apply_event
from agent_timeline.store import TimelineStore


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def thinking_script(fixtures_dir: Path) -> Path:
    """Return path to thinking_then_answer.jsonl fixture."""
    return fixtures_dir / "thinking_then_answer.jsonl"


@pytest.fixture
def approval_script(fixtures_dir: Path) -> Path:
    """Return path to with_approval.json fixture."""
    return fixtures_dir / "with_approval.json"


@pytest.fixture
def session_log(fixtures_dir: Path) -> Path:
    """Return path to session_log.json fixture."""
    return fixtures_dir / "session_log.json"


@pytest.fixture
def ctx() -> ReducerContext:
    """Reducer context with sequential ids and a fixed clock."""
    counter = itertools.count(1)
    return ReducerContext(new_id=lambda prefix: f"{prefix}_{next(counter)}", now=lambda: 1000)


@pytest.fixture
def store() -> TimelineStore:
    """Live store bound to session s1."""
    counter = itertools.count(1)
    return TimelineStore(session_id="s1", id_factory=lambda prefix: f"{prefix}_{next(counter)}", clock=lambda: 1000)


def apply_all(ctx: ReducerContext, events: list[dict]) -> ReducerContext:
    """Parse and apply raw events in order."""
    for raw in events:
        apply_event(ctx, parse_event(raw))
    return ctx


def ui(record_id: str, event_type: str, payload: dict) -> dict:
    """Persisted ``__ui__`` record as stored by the backend."""
    return {
        "id": record_id,
        "role": "tool",
        "toolName": "__ui__",
        "toolOutput": json.dumps({"eventType": event_type, "payload": payload}),
    }
