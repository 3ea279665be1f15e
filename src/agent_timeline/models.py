"""Domain models for agent-timeline."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ActionStatus = Literal["pending", "running", "success", "error"]
GroupStatus = Literal["running", "done", "error"]
Severity = Literal["critical", "high", "medium"]
FileStatus = Literal["pending", "kept", "undone"]

OPEN_ACTION_STATUSES = ("running", "pending")


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, the wire format of the webview."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActionItem(CamelModel):
    """One tool-call step inside a progress group."""

    id: str
    status: ActionStatus = "running"
    icon: str = "•"
    text: str = ""
    detail: str | None = None
    file_path: str | None = None
    checkpoint_id: str | None = None
    start_line: int | None = None
    # Sub-agent thinking rendered inline between tool steps
    is_thinking: bool = False
    thinking_content: str | None = None
    duration_seconds: float | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_ACTION_STATUSES


class ProgressItem(CamelModel):
    """One logical tool-invocation round."""

    id: str
    type: Literal["progress"] = "progress"
    title: str = "Working on task"
    detail: str | None = None
    status: GroupStatus = "running"
    collapsed: bool = False
    is_subagent: bool = False
    actions: list[ActionItem] = []
    last_action_status: ActionStatus | None = None

    def has_open_actions(self) -> bool:
        return any(a.is_open for a in self.actions)

    def has_errors(self) -> bool:
        return any(a.status == "error" for a in self.actions)


class CommandApprovalItem(CamelModel):
    """Approval card for a terminal command."""

    id: str
    type: Literal["commandApproval"] = "commandApproval"
    command: str = ""
    cwd: str | None = None
    severity: Severity = "medium"
    reason: str | None = None
    status: Literal["pending", "running", "approved", "skipped", "error"] = "pending"
    timestamp: int | None = None
    output: str | None = None
    exit_code: int | None = None
    auto_approved: bool = False


class FileEditApprovalItem(CamelModel):
    """Approval card for an edit to a sensitive file."""

    id: str
    type: Literal["fileEditApproval"] = "fileEditApproval"
    file_path: str = ""
    severity: Severity = "medium"
    reason: str | None = None
    status: Literal["pending", "approved", "skipped"] = "pending"
    timestamp: int | None = None
    diff_html: str | None = None
    auto_approved: bool = False


ToolItem = Annotated[
    Union[ProgressItem, CommandApprovalItem, FileEditApprovalItem],
    Field(discriminator="type"),
]


class ToolsBlock(CamelModel):
    """A container of progress groups and approval cards."""

    type: Literal["tools"] = "tools"
    items: list[ToolItem] = []


class TextBlock(CamelModel):
    """Thread-level assistant text."""

    type: Literal["text"] = "text"
    content: str = ""


class ThinkingContentSection(CamelModel):
    """One round of model reasoning inside a thinking group."""

    type: Literal["thinkingContent"] = "thinkingContent"
    content: str = ""
    duration_seconds: float | None = None


ThinkingGroupSection = Annotated[
    Union[ThinkingContentSection, ToolsBlock],
    Field(discriminator="type"),
]


class ThinkingGroupBlock(CamelModel):
    """Collapsible aggregation of consecutive thinking and tool rounds.

    Text is never placed inside a group; thread-level text closes it.
    """

    type: Literal["thinkingGroup"] = "thinkingGroup"
    sections: list[ThinkingGroupSection] = []
    collapsed: bool = False
    streaming: bool = True
    total_duration_seconds: float | None = None


Block = Annotated[
    Union[TextBlock, ThinkingGroupBlock, ToolsBlock],
    Field(discriminator="type"),
]


class ContextFileRef(CamelModel):
    """A file attached to a user message."""

    file_name: str
    kind: Literal["explicit", "implicit-file", "implicit-selection"] | None = None
    line_range: str | None = None


class MessageItem(CamelModel):
    """A user message (or a standalone message restored from history)."""

    id: str
    type: Literal["message"] = "message"
    role: Literal["user", "assistant"] = "user"
    content: str = ""
    model: str | None = None
    context_files: list[ContextFileRef] | None = None


class AssistantThread(CamelModel):
    """One continuous assistant turn."""

    id: str
    type: Literal["assistantThread"] = "assistantThread"
    role: Literal["assistant"] = "assistant"
    model: str | None = None
    blocks: list[Block] = []


TimelineItem = Annotated[
    Union[MessageItem, AssistantThread],
    Field(discriminator="type"),
]


class FileChangeFileItem(CamelModel):
    """One file edited by the agent and awaiting keep/undo."""

    path: str
    action: str = "modified"
    additions: int | None = None
    deletions: int | None = None
    status: FileStatus = "pending"
    checkpoint_id: str = ""


class FilesChangedBlock(CamelModel):
    """The single files-changed summary of a view, spanning checkpoints."""

    type: Literal["filesChanged"] = "filesChanged"
    checkpoint_ids: list[str] = []
    files: list[FileChangeFileItem] = []
    total_additions: int | None = None
    total_deletions: int | None = None
    status: Literal["pending", "kept", "undone", "partial"] = "pending"
    collapsed: bool = False
    stats_loading: bool = False
    current_change: int | None = None
    total_changes: int | None = None
    active_file_path: str | None = None


class LogRecord(CamelModel):
    """A persisted message record as handed over by the storage layer."""

    id: str = ""
    role: Literal["user", "assistant", "tool"]
    content: str | None = None
    model: str | None = None
    tool_name: str | None = None
    tool_output: str | None = None
    context_files: list[ContextFileRef] | None = None


class RequestFilesDiffStats(CamelModel):
    """Outbound request: compute fresh diff statistics for a checkpoint."""

    type: Literal["requestFilesDiffStats"] = "requestFilesDiffStats"
    checkpoint_id: str


class TokenUsage(CamelModel):
    """Token accounting shown in the chrome, not part of the timeline."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    context_window: int = 0
    categories: dict[str, int] | None = None
