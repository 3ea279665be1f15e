"""agent-timeline: Build agent conversation timelines live or from persisted logs."""

from .errors import MalformedEventError, MalformedRecordError, TimelineError
from .events import Event, decode_record, encode_ui_record, parse_event
from .models import AssistantThread, FilesChangedBlock, LogRecord, MessageItem, ProgressItem
from .parity import check_parity, encode_events, normalize
from .reducer import apply_event
from .replay import ReplayResult, build_timeline
from .store import TimelineStore

__all__ = [
    "AssistantThread",
    "Event",
    "FilesChangedBlock",
    "LogRecord",
    "MalformedEventError",
    "MalformedRecordError",
    "MessageItem",
    "ProgressItem",
    "ReplayResult",
    "TimelineError",
    "TimelineStore",
    "apply_event",
    "build_timeline",
    "check_parity",
    "decode_record",
    "encode_events",
    "encode_ui_record",
    "normalize",
    "parse_event",
]
