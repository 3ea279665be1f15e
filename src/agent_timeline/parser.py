"""Loaders for event scripts and persisted logs (JSON array or JSONL)."""

import json
import sys
from pathlib import Path

from pydantic import ValidationError

from .errors import MalformedEventError
from .events import BaseEvent, parse_event
from .models import LogRecord


def load_objects(path: Path) -> list[dict]:
    """Load a JSON array, or JSONL with one object per line.

    Malformed JSONL lines and non-object entries are skipped with a warning.
    """
    text = Path(path).read_text()
    if text.lstrip().startswith("["):
        data = json.loads(text)
        entries = list(enumerate(data, 1))
    else:
        entries = []
        for line_num, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            try:
                entries.append((line_num, json.loads(line)))
            except json.JSONDecodeError as e:
                print(f"Warning: Skipping malformed JSON at line {line_num}: {e}", file=sys.stderr)

    objects = []
    for position, entry in entries:
        if isinstance(entry, dict):
            objects.append(entry)
        else:
            print(f"Warning: Skipping non-object entry {position}", file=sys.stderr)
    return objects


def load_events(path: Path) -> list[BaseEvent]:
    """Load an event script, skipping unknown kinds and invalid events."""
    events = []
    for position, raw in enumerate(load_objects(path), 1):
        try:
            event = parse_event(raw)
        except MalformedEventError as e:
            print(f"Warning: Skipping event {position}: {e}", file=sys.stderr)
            continue
        if event is not None:
            events.append(event)
    return events


def load_records(path: Path) -> list[LogRecord]:
    """Load a persisted log, skipping entries that are not records."""
    records = []
    for position, raw in enumerate(load_objects(path), 1):
        try:
            records.append(LogRecord.model_validate(raw))
        except ValidationError as e:
            print(f"Warning: Skipping invalid record {position}: {e}", file=sys.stderr)
    return records
