"""Batch replay: rebuild a timeline from a persisted record log."""

import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from .cursor import ReducerContext, end_turn
from .errors import MalformedRecordError
from .events import decode_record
from .models import FilesChangedBlock, LogRecord, RequestFilesDiffStats, TimelineItem
from .reducer import apply_event


@dataclass
class ReplayResult:
    """Everything a replay produced. Requests are collected, never sent."""

    items: list[TimelineItem]
    files_changed: FilesChangedBlock | None
    requests: list[RequestFilesDiffStats] = field(default_factory=list)
    applied: int = 0
    skipped: int = 0


class RecordIds:
    """Deterministic id factory: ids derive from the record being applied."""

    def __init__(self) -> None:
        self.record_id = ""
        self.counter = 0

    def __call__(self, prefix: str) -> str:
        self.counter += 1
        return f"{prefix}_{self.record_id}_{self.counter}"


def _no_clock() -> None:
    return None


def build_timeline(records: Iterable[LogRecord | dict[str, Any]]) -> ReplayResult:
    """Replay a persisted log in order.

    Each call owns a fresh context, so the same log always yields the same
    structure. Records that cannot be decoded are skipped with a warning.
    """
    ids = RecordIds()
    ctx = ReducerContext(new_id=ids, now=_no_clock)
    applied = skipped = 0

    for index, raw in enumerate(records):
        try:
            record = raw if isinstance(raw, LogRecord) else LogRecord.model_validate(raw)
        except ValidationError as e:
            print(f"Warning: Skipping invalid record at index {index}: {e}", file=sys.stderr)
            skipped += 1
            continue

        try:
            event = decode_record(record)
        except MalformedRecordError as e:
            print(f"Warning: Skipping malformed record at index {index}: {e}", file=sys.stderr)
            skipped += 1
            continue
        if event is None:
            continue

        ids.record_id = record.id or str(index)
        apply_event(ctx, event)
        applied += 1

    end_turn(ctx, collapse=True)
    return ReplayResult(
        items=ctx.timeline,
        files_changed=ctx.files_changed,
        requests=ctx.requests,
        applied=applied,
        skipped=skipped,
    )
