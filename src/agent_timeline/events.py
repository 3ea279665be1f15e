"""Event model: the wire contract shared by the live and replay paths.

Every event is a JSON object with a ``type`` discriminant and an optional
``sessionId``. Each kind is a pydantic model; ``Event`` is their
discriminated union. Persisted ``__ui__`` records carry the same kinds as
``{"eventType": ..., "payload": {...}}`` JSON strings.
"""

import json
from typing import Annotated, Any, Literal, Union, get_args

from pydantic import Field, TypeAdapter, ValidationError

from .errors import MalformedEventError, MalformedRecordError
from .models import (
    ActionStatus,
    CamelModel,
    ContextFileRef,
    LogRecord,
    Severity,
)

UI_TOOL_NAME = "__ui__"


class BaseEvent(CamelModel):
    type: str
    session_id: str | None = None


# Thinking


class StreamThinking(BaseEvent):
    type: Literal["streamThinking"] = "streamThinking"
    content: str = ""


class CollapseThinking(BaseEvent):
    type: Literal["collapseThinking"] = "collapseThinking"
    duration_seconds: float | None = None


class ThinkingBlock(BaseEvent):
    """A finished thinking round, as persisted by the agent after streaming it."""

    type: Literal["thinkingBlock"] = "thinkingBlock"
    content: str = ""
    duration_seconds: float | None = None


# Text


class StreamChunk(BaseEvent):
    type: Literal["streamChunk"] = "streamChunk"
    content: str = ""
    model: str | None = None


class FinalMessage(BaseEvent):
    type: Literal["finalMessage"] = "finalMessage"
    content: str = ""
    model: str | None = None


class ChatMessage(CamelModel):
    role: Literal["user", "assistant"] = "user"
    content: str = ""
    model: str | None = None


class AddMessage(BaseEvent):
    type: Literal["addMessage"] = "addMessage"
    message: ChatMessage
    context_files: list[ContextFileRef] | None = None


# Progress groups


class StartProgressGroup(BaseEvent):
    type: Literal["startProgressGroup"] = "startProgressGroup"
    title: str | None = None
    detail: str | None = None
    is_subagent: bool = False


class ShowToolAction(BaseEvent):
    type: Literal["showToolAction"] = "showToolAction"
    status: ActionStatus = "running"
    icon: str | None = None
    text: str = ""
    detail: str | None = None
    file_path: str | None = None
    checkpoint_id: str | None = None
    start_line: int | None = None


class FinishProgressGroup(BaseEvent):
    type: Literal["finishProgressGroup"] = "finishProgressGroup"


class SubagentThinking(BaseEvent):
    type: Literal["subagentThinking"] = "subagentThinking"
    content: str = ""
    duration_seconds: float | None = None


class ShowError(BaseEvent):
    type: Literal["showError"] = "showError"
    message: str | None = None


# Approvals


class CommandApprovalRequest(CamelModel):
    id: str
    command: str = ""
    cwd: str | None = None
    severity: Severity = "medium"
    reason: str | None = None
    timestamp: int | None = None


class RequestToolApproval(BaseEvent):
    type: Literal["requestToolApproval"] = "requestToolApproval"
    approval: CommandApprovalRequest | None = None


class ToolApprovalResult(BaseEvent):
    type: Literal["toolApprovalResult"] = "toolApprovalResult"
    approval_id: str | None = None
    status: Literal["pending", "running", "approved", "skipped", "error"] | None = None
    output: str | None = None
    command: str | None = None
    exit_code: int | None = None
    auto_approved: bool = False
    cwd: str | None = None
    severity: Severity | None = None
    reason: str | None = None


class FileEditApprovalRequest(CamelModel):
    id: str
    file_path: str = ""
    severity: Severity = "medium"
    reason: str | None = None
    timestamp: int | None = None
    diff_html: str | None = None


class RequestFileEditApproval(BaseEvent):
    type: Literal["requestFileEditApproval"] = "requestFileEditApproval"
    approval: FileEditApprovalRequest | None = None


class FileEditApprovalResult(BaseEvent):
    type: Literal["fileEditApprovalResult"] = "fileEditApprovalResult"
    approval_id: str | None = None
    status: Literal["pending", "approved", "skipped"] | None = None
    auto_approved: bool = False
    file_path: str | None = None
    severity: Severity | None = None
    reason: str | None = None
    diff_html: str | None = None


# Turn lifecycle


class GenerationStarted(BaseEvent):
    type: Literal["generationStarted"] = "generationStarted"


class GenerationStopped(BaseEvent):
    type: Literal["generationStopped"] = "generationStopped"


# Files changed


class ChangedFile(CamelModel):
    path: str
    action: str | None = None


class FilesChanged(BaseEvent):
    type: Literal["filesChanged"] = "filesChanged"
    checkpoint_id: str = ""
    files: list[ChangedFile] = []
    status: Literal["pending", "kept", "undone"] | None = None


class FileDiffStat(CamelModel):
    path: str
    additions: int = 0
    deletions: int = 0


class FilesDiffStats(BaseEvent):
    type: Literal["filesDiffStats"] = "filesDiffStats"
    checkpoint_id: str | None = None
    files: list[FileDiffStat] = []


class FileChangeResult(BaseEvent):
    type: Literal["fileChangeResult"] = "fileChangeResult"
    checkpoint_id: str = ""
    file_path: str = ""
    success: bool = False
    action: Literal["kept", "undone"] | None = None


class KeepUndoResult(BaseEvent):
    type: Literal["keepUndoResult"] = "keepUndoResult"
    checkpoint_id: str = ""
    success: bool = False
    action: Literal["kept", "undone"] | None = None


class ReviewChangePosition(BaseEvent):
    type: Literal["reviewChangePosition"] = "reviewChangePosition"
    current: int | None = None
    total: int | None = None
    file_path: str | None = None


# Chrome


class ShowThinking(BaseEvent):
    type: Literal["showThinking"] = "showThinking"
    message: str | None = None


class HideThinking(BaseEvent):
    type: Literal["hideThinking"] = "hideThinking"


class TokenUsageEvent(BaseEvent):
    type: Literal["tokenUsage"] = "tokenUsage"
    prompt_tokens: int = 0
    completion_tokens: int = 0
    context_window: int = 0
    categories: dict[str, int] | None = None


class ShowWarningBanner(BaseEvent):
    type: Literal["showWarningBanner"] = "showWarningBanner"
    message: str = ""


# Store level


class ClearMessages(BaseEvent):
    type: Literal["clearMessages"] = "clearMessages"


class LoadSessionMessages(BaseEvent):
    type: Literal["loadSessionMessages"] = "loadSessionMessages"
    messages: list[dict[str, Any]] = []


Event = Annotated[
    Union[
        StreamThinking,
        CollapseThinking,
        ThinkingBlock,
        StreamChunk,
        FinalMessage,
        AddMessage,
        StartProgressGroup,
        ShowToolAction,
        FinishProgressGroup,
        SubagentThinking,
        ShowError,
        RequestToolApproval,
        ToolApprovalResult,
        RequestFileEditApproval,
        FileEditApprovalResult,
        GenerationStarted,
        GenerationStopped,
        FilesChanged,
        FilesDiffStats,
        FileChangeResult,
        KeepUndoResult,
        ReviewChangePosition,
        ShowThinking,
        HideThinking,
        TokenUsageEvent,
        ShowWarningBanner,
        ClearMessages,
        LoadSessionMessages,
    ],
    Field(discriminator="type"),
]

EVENT_ADAPTER: TypeAdapter[Event] = TypeAdapter(Event)

EVENT_CLASSES: tuple[type[BaseEvent], ...] = get_args(get_args(Event)[0])
EVENT_TYPES: dict[str, type[BaseEvent]] = {
    cls.model_fields["type"].default: cls for cls in EVENT_CLASSES
}

# Categories drive both the reducer boundaries and the log encoder.
TEXT_EVENTS = frozenset({"streamChunk", "finalMessage", "addMessage"})
THINKING_EVENTS = frozenset({"streamThinking", "collapseThinking", "thinkingBlock"})
THREAD_EVENTS = TEXT_EVENTS | THINKING_EVENTS | frozenset(
    {
        "startProgressGroup",
        "showToolAction",
        "finishProgressGroup",
        "subagentThinking",
        "showError",
        "requestToolApproval",
        "toolApprovalResult",
        "requestFileEditApproval",
        "fileEditApprovalResult",
        "generationStarted",
        "generationStopped",
    }
)
FILES_EVENTS = frozenset(
    {"filesChanged", "filesDiffStats", "fileChangeResult", "keepUndoResult", "reviewChangePosition"}
)
CHROME_EVENTS = frozenset({"showThinking", "hideThinking", "tokenUsage", "showWarningBanner"})
STORE_EVENTS = frozenset({"clearMessages", "loadSessionMessages"})
# UI chrome that is shown regardless of which session is active
UNSCOPED_EVENTS = frozenset({"showThinking", "hideThinking", "tokenUsage"})

# Approval requests are persisted with the approval fields flat in the payload
WRAPPED_PAYLOADS = {"requestToolApproval": "approval", "requestFileEditApproval": "approval"}


def parse_event(raw: "dict[str, Any] | BaseEvent") -> Event | None:
    """Validate a raw event object.

    Returns None for an unknown ``type`` so the transport can add kinds freely.
    """
    if isinstance(raw, BaseEvent):
        return raw  # type: ignore[return-value]
    if not isinstance(raw, dict):
        raise MalformedEventError(f"Event must be an object, got {type(raw).__name__}")
    event_type = raw.get("type")
    if event_type not in EVENT_TYPES:
        return None
    try:
        return EVENT_ADAPTER.validate_python(raw)
    except ValidationError as e:
        raise MalformedEventError(f"Invalid {event_type} event: {e}") from e


def decode_record(record: LogRecord) -> Event | None:
    """Turn one persisted record into the event it stands for.

    User and assistant records become ``addMessage`` events; ``__ui__`` tool
    records decode their ``{eventType, payload}`` JSON. Raw tool outputs and
    unknown event types yield None.
    """
    if record.role in ("user", "assistant"):
        return AddMessage(
            message=ChatMessage(role=record.role, content=record.content or "", model=record.model),
            context_files=record.context_files,
        )
    if record.tool_name != UI_TOOL_NAME:
        return None

    try:
        data = json.loads(record.tool_output or record.content or "{}")
    except json.JSONDecodeError as e:
        raise MalformedRecordError(f"Record {record.id}: invalid JSON: {e}") from e
    if not isinstance(data, dict) or not data.get("eventType"):
        raise MalformedRecordError(f"Record {record.id}: missing eventType")

    event_type = data["eventType"]
    payload = data.get("payload") or {}
    if not isinstance(payload, dict):
        raise MalformedRecordError(f"Record {record.id}: payload is not an object")
    if event_type not in EVENT_TYPES:
        return None

    wrap_key = WRAPPED_PAYLOADS.get(event_type)
    if wrap_key and wrap_key not in payload:
        payload = {wrap_key: payload}
    try:
        return EVENT_ADAPTER.validate_python({**payload, "type": event_type})
    except ValidationError as e:
        raise MalformedRecordError(f"Record {record.id}: invalid {event_type} payload: {e}") from e


def encode_ui_record(event: BaseEvent, record_id: str) -> LogRecord:
    """Persist an event the way the agent backend does: a ``__ui__`` tool record."""
    event_type = event.type
    payload = event.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"type", "session_id"})
    wrap_key = WRAPPED_PAYLOADS.get(event_type)
    if wrap_key:
        payload = payload.get(wrap_key) or {}
    return LogRecord(
        id=record_id,
        role="tool",
        tool_name=UI_TOOL_NAME,
        tool_output=json.dumps({"eventType": event_type, "payload": payload}),
    )
