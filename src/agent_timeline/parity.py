"""Parity harness: run one event script live and through its persisted log.

``encode_events`` produces the log the agent backend would have persisted
for a live script: streamed thinking becomes one ``thinkingBlock`` record
per section, streamed text one assistant record per text run, chrome is
dropped and every other event becomes a ``__ui__`` record.

A ``streamChunk`` arriving after ``finalMessage`` text in the same block
replaces merged content and has no persisted equivalent. Store-level kinds
(clearMessages, loadSessionMessages) act on the view, not the log, and are
not persisted either.
"""

import difflib
import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .events import (
    FILES_EVENTS,
    THREAD_EVENTS,
    AddMessage,
    BaseEvent,
    CollapseThinking,
    FinalMessage,
    StreamChunk,
    StreamThinking,
    ThinkingBlock,
    encode_ui_record,
    parse_event,
)
from .models import LogRecord
from .reducer import is_inert
from .renderer import strip_keys, timeline_to_dict
from .replay import build_timeline
from .store import TimelineStore


class LogEncoder:
    """Buffers streamed content until a boundary makes it final."""

    def __init__(self) -> None:
        self.records: list[LogRecord] = []
        # None means no thinking section is open
        self.thinking: str | None = None
        self.text: str | None = None
        self.model: str | None = None

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}{len(self.records) + 1}"

    def _emit_ui(self, event: BaseEvent) -> None:
        self.records.append(encode_ui_record(event, self._next_id("ui")))

    def _emit_text(self, role: str, content: str, model: str | None = None) -> None:
        self.records.append(LogRecord(id=self._next_id(role[0]), role=role, content=content, model=model))

    def flush_thinking(self, duration: float | None = None) -> None:
        if self.thinking is None:
            return
        self._emit_ui(ThinkingBlock(content=self.thinking, duration_seconds=duration))
        self.thinking = None

    def flush_text(self) -> None:
        if self.text is None:
            return
        self._emit_text("assistant", self.text, self.model)
        self.text = None
        self.model = None

    def flush(self) -> None:
        self.flush_thinking()
        self.flush_text()

    def feed(self, event: BaseEvent) -> None:
        if is_inert(event):
            return
        if isinstance(event, StreamThinking):
            self.flush_text()
            self.thinking = (self.thinking or "") + event.content
        elif isinstance(event, CollapseThinking):
            self.flush_text()
            if self.thinking is None:
                self._emit_ui(event)
            else:
                self.flush_thinking(event.duration_seconds)
        elif isinstance(event, StreamChunk):
            self.flush_thinking()
            self.text = event.content
            self.model = event.model or self.model
        elif isinstance(event, FinalMessage):
            self.flush()
            self._emit_text("assistant", event.content, event.model)
        elif isinstance(event, AddMessage):
            self.flush()
            message = event.message
            self.records.append(
                LogRecord(
                    id=self._next_id(message.role[0]),
                    role=message.role,
                    content=message.content,
                    model=message.model,
                    context_files=event.context_files,
                )
            )
        elif event.type in THREAD_EVENTS:
            self.flush()
            self._emit_ui(event)
        elif event.type in FILES_EVENTS:
            self._emit_ui(event)


def _parsed(events: Iterable[dict[str, Any] | BaseEvent]) -> list[BaseEvent]:
    parsed = (parse_event(raw) for raw in events)
    return [event for event in parsed if event is not None]


def encode_events(events: Iterable[dict[str, Any] | BaseEvent]) -> list[LogRecord]:
    """Persisted-log encoding of a live event script."""
    encoder = LogEncoder()
    for event in _parsed(events):
        encoder.feed(event)
    encoder.flush()
    return encoder.records


def run_live(events: Iterable[dict[str, Any] | BaseEvent], session_id: str | None = None) -> dict:
    store = TimelineStore(session_id=session_id)
    store.dispatch_all(events)
    store.close_turn()
    return store.snapshot()


def run_replay(records: Iterable[LogRecord | dict[str, Any]]) -> dict:
    result = build_timeline(records)
    return timeline_to_dict(result.items, result.files_changed)


def normalize(snapshot: Any) -> Any:
    """Strip ids and timestamps, the fields the two paths never agree on."""
    return strip_keys(snapshot)


@dataclass
class ParityReport:
    live: dict
    replayed: dict
    matches: bool
    diff: str = ""


def check_parity(
    events: Iterable[dict[str, Any] | BaseEvent], session_id: str | None = None
) -> ParityReport:
    """Compare the live timeline of ``events`` with the replay of their log.

    Events the live store would drop for ``session_id`` are never persisted.
    """
    store = TimelineStore(session_id=session_id)
    script = [event for event in _parsed(events) if store.accepts(event)]
    live = normalize(run_live(script, session_id))
    replayed = normalize(run_replay(encode_events(script)))
    matches = live == replayed
    diff = ""
    if not matches:
        diff = "".join(
            difflib.unified_diff(
                json.dumps(live, indent=2, ensure_ascii=False).splitlines(keepends=True),
                json.dumps(replayed, indent=2, ensure_ascii=False).splitlines(keepends=True),
                fromfile="live",
                tofile="replay",
            )
        )
    return ParityReport(live=live, replayed=replayed, matches=matches, diff=diff)
