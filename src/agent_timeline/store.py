"""Live timeline controller for one session view."""

from collections.abc import Iterable
from typing import Any

from .cursor import Clock, IdFactory, ReducerContext, RequestSink, end_turn, random_id, wall_clock_ms
from .events import (
    STORE_EVENTS,
    UNSCOPED_EVENTS,
    BaseEvent,
    GenerationStarted,
    GenerationStopped,
    HideThinking,
    LoadSessionMessages,
    ShowThinking,
    ShowWarningBanner,
    TokenUsageEvent,
    parse_event,
)
from .models import FilesChangedBlock, LogRecord, RequestFilesDiffStats, TimelineItem, TokenUsage
from .reducer import apply_event
from .renderer import timeline_to_dict
from .replay import build_timeline


class TimelineStore:
    """Applies live events to a timeline, one at a time.

    Events tagged with another session are dropped, except the chrome kinds
    shown regardless of session and the store-level kinds that open or
    restore a session. Outbound diff-stat requests go to
    ``request_sink``, or are collected in ``requests`` when none is given.
    """

    def __init__(
        self,
        session_id: str | None = None,
        request_sink: RequestSink | None = None,
        id_factory: IdFactory | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.session_id = session_id
        self.requests: list[RequestFilesDiffStats] = []
        self._sink = request_sink or self.requests.append
        self._id_factory = id_factory or random_id
        self._clock = clock or wall_clock_ms
        self.reset()

    def _new_context(self) -> ReducerContext:
        return ReducerContext(new_id=self._id_factory, now=self._clock, request_sink=self._sink)

    @property
    def timeline(self) -> list[TimelineItem]:
        return self._ctx.timeline

    @property
    def files_changed(self) -> FilesChangedBlock | None:
        return self._ctx.files_changed

    @property
    def context(self) -> ReducerContext:
        return self._ctx

    def reset(self) -> None:
        """Drop the timeline, the cursor and all chrome state together."""
        self._ctx = self._new_context()
        self.thinking_indicator: str | None = None
        self.warning_banner: str | None = None
        self.token_usage: TokenUsage | None = None
        self.generating = False

    def switch_session(self, session_id: str | None) -> None:
        self.reset()
        self.session_id = session_id

    def load_session(self, session_id: str | None, records: Iterable[LogRecord | dict[str, Any]]) -> None:
        """Replace the view with a session restored from its persisted log."""
        result = build_timeline(records)
        self.switch_session(session_id)
        self._ctx.timeline = result.items
        self._ctx.files_changed = result.files_changed
        for request in result.requests:
            self._ctx.post_request(request)

    def close_turn(self) -> None:
        end_turn(self._ctx, collapse=True)

    def accepts(self, event: BaseEvent) -> bool:
        if event.type in UNSCOPED_EVENTS or event.type in STORE_EVENTS:
            return True
        return event.session_id is None or event.session_id == self.session_id

    def dispatch(self, raw: dict[str, Any] | BaseEvent) -> bool:
        """Apply one event. Returns False when it was ignored."""
        event = parse_event(raw)
        if event is None or not self.accepts(event):
            return False

        if event.type in STORE_EVENTS:
            if isinstance(event, LoadSessionMessages):
                self.load_session(event.session_id or self.session_id, event.messages)
            else:
                self.switch_session(event.session_id or self.session_id)
            return True

        if isinstance(event, ShowThinking):
            self.thinking_indicator = event.message or ""
        elif isinstance(event, HideThinking):
            self.thinking_indicator = None
        elif isinstance(event, TokenUsageEvent):
            self.token_usage = TokenUsage(
                prompt_tokens=event.prompt_tokens,
                completion_tokens=event.completion_tokens,
                context_window=event.context_window,
                categories=event.categories,
            )
        elif isinstance(event, ShowWarningBanner):
            self.warning_banner = event.message or None
        elif isinstance(event, GenerationStarted):
            self.generating = True
        elif isinstance(event, GenerationStopped):
            self.generating = False

        apply_event(self._ctx, event)
        return True

    def dispatch_all(self, events: Iterable[dict[str, Any] | BaseEvent]) -> int:
        return sum(1 for raw in events if self.dispatch(raw))

    def snapshot(self) -> dict:
        """JSON-ready view of the timeline and the files-changed block."""
        return timeline_to_dict(self._ctx.timeline, self._ctx.files_changed)
