"""Event handlers that apply one event to a ``ReducerContext``.

The same handlers serve the live store and the replay builder, so both
paths share every merge and identity rule.
"""

import re
from collections.abc import Callable
from typing import Any

from . import files_changed
from .cursor import (
    ReducerContext,
    action_group,
    add_group,
    close_thinking_group,
    current_group,
    end_turn,
    ensure_thread,
    iter_threads,
    iter_tools_blocks,
    thread_tools_block,
)
from .events import (
    TEXT_EVENTS,
    THINKING_EVENTS,
    THREAD_EVENTS,
    AddMessage,
    BaseEvent,
    ClearMessages,
    CollapseThinking,
    FileChangeResult,
    FileEditApprovalResult,
    FilesChanged,
    FilesDiffStats,
    FinalMessage,
    FinishProgressGroup,
    GenerationStarted,
    GenerationStopped,
    HideThinking,
    KeepUndoResult,
    LoadSessionMessages,
    RequestFileEditApproval,
    RequestToolApproval,
    ReviewChangePosition,
    ShowError,
    ShowThinking,
    ShowToolAction,
    ShowWarningBanner,
    StartProgressGroup,
    StreamChunk,
    StreamThinking,
    SubagentThinking,
    ThinkingBlock,
    TokenUsageEvent,
    ToolApprovalResult,
)
from .models import (
    ActionItem,
    CommandApprovalItem,
    FileEditApprovalItem,
    MessageItem,
    ProgressItem,
    TextBlock,
    ThinkingContentSection,
    ThinkingGroupBlock,
)

IMPLICIT_GROUP_TITLE = "Working on task"
# Write rounds render at thread level, outside the thinking group
WRITE_TITLE = re.compile(r"\b(writ|modif|creat)", re.IGNORECASE)
COMMAND_DETAIL_LIMIT = 60

Handler = Callable[[ReducerContext, Any], None]


def is_inert(event: BaseEvent) -> bool:
    """True for text events that carry nothing and therefore change nothing."""
    if isinstance(event, (StreamChunk, FinalMessage)):
        return not event.content
    if isinstance(event, AddMessage):
        return event.message.role == "assistant" and not event.message.content
    return False


def apply_event(ctx: ReducerContext, event: BaseEvent) -> None:
    """Apply one parsed event to the context."""
    if is_inert(event):
        return
    kind = event.type
    if kind in THREAD_EVENTS:
        if kind not in TEXT_EVENTS:
            ctx.cursor.text_block = None
        if kind not in THINKING_EVENTS:
            ctx.cursor.thinking_streaming = False
    HANDLERS[type(event)](ctx, event)


# Thinking


def _ensure_thinking_group(ctx: ReducerContext) -> ThinkingGroupBlock:
    group = ctx.cursor.thinking_group
    if group is None:
        group = ThinkingGroupBlock()
        ensure_thread(ctx).blocks.append(group)
        ctx.cursor.thinking_group = group
    return group


def stream_thinking(ctx: ReducerContext, event: StreamThinking) -> None:
    group = _ensure_thinking_group(ctx)
    last = group.sections[-1] if group.sections else None
    if ctx.cursor.thinking_streaming and isinstance(last, ThinkingContentSection):
        last.content += event.content
    else:
        group.sections.append(ThinkingContentSection(content=event.content))
    ctx.cursor.thinking_streaming = True


def collapse_thinking(ctx: ReducerContext, event: CollapseThinking) -> None:
    group = ctx.cursor.thinking_group
    if group is None or not ctx.cursor.thinking_streaming:
        return
    last = group.sections[-1] if group.sections else None
    if isinstance(last, ThinkingContentSection) and event.duration_seconds is not None:
        last.duration_seconds = event.duration_seconds
    ctx.cursor.thinking_streaming = False


def thinking_block(ctx: ReducerContext, event: ThinkingBlock) -> None:
    group = _ensure_thinking_group(ctx)
    group.sections.append(
        ThinkingContentSection(content=event.content, duration_seconds=event.duration_seconds)
    )
    ctx.cursor.thinking_streaming = False


# Text


def _active_text(ctx: ReducerContext) -> TextBlock | None:
    block = ctx.cursor.text_block
    thread = ctx.cursor.thread
    if block is not None and thread is not None and thread.blocks and thread.blocks[-1] is block:
        return block
    return None


def _new_text_block(ctx: ReducerContext, content: str, model: str | None) -> None:
    block = TextBlock(content=content)
    ensure_thread(ctx, model).blocks.append(block)
    ctx.cursor.text_block = block


def stream_chunk(ctx: ReducerContext, event: StreamChunk) -> None:
    close_thinking_group(ctx, collapse=True)
    ensure_thread(ctx, event.model)
    block = _active_text(ctx)
    if block is None:
        _new_text_block(ctx, event.content, event.model)
    else:
        block.content = event.content


def append_text(ctx: ReducerContext, content: str, model: str | None = None) -> None:
    """Append final text, merging into the active block with a blank line."""
    close_thinking_group(ctx, collapse=True)
    ensure_thread(ctx, model)
    block = _active_text(ctx)
    if block is None:
        _new_text_block(ctx, content, model)
    else:
        block.content = f"{block.content}\n\n{content}" if block.content else content


def final_message(ctx: ReducerContext, event: FinalMessage) -> None:
    append_text(ctx, event.content, event.model)


def add_message(ctx: ReducerContext, event: AddMessage) -> None:
    message = event.message
    if message.role == "assistant":
        append_text(ctx, message.content, message.model)
        return
    end_turn(ctx, collapse=True)
    ctx.timeline.append(
        MessageItem(
            id=ctx.new_id("msg"),
            role=message.role,
            content=message.content,
            model=message.model,
            context_files=event.context_files,
        )
    )


def generation_started(ctx: ReducerContext, event: GenerationStarted) -> None:
    end_turn(ctx, collapse=True)


def generation_stopped(ctx: ReducerContext, event: GenerationStopped) -> None:
    end_turn(ctx, collapse=False)


# Progress groups


def _implicit_group(ctx: ReducerContext) -> ProgressItem:
    return add_group(ctx, ProgressItem(id=ctx.new_id("progress"), title=IMPLICIT_GROUP_TITLE))


def start_progress_group(ctx: ReducerContext, event: StartProgressGroup) -> None:
    if ctx.cursor.thinking_group is not None and WRITE_TITLE.search(event.title or ""):
        close_thinking_group(ctx, collapse=True)
    add_group(
        ctx,
        ProgressItem(
            id=ctx.new_id("progress"),
            title=event.title or IMPLICIT_GROUP_TITLE,
            detail=event.detail,
            is_subagent=event.is_subagent,
        ),
    )


def _merge_action(action: ActionItem, event: ShowToolAction) -> None:
    action.status = event.status
    action.icon = event.icon or "•"
    action.text = event.text
    action.detail = event.detail
    if event.file_path:
        action.file_path = event.file_path
    if event.checkpoint_id:
        action.checkpoint_id = event.checkpoint_id
    if event.start_line is not None:
        action.start_line = event.start_line


def show_tool_action(ctx: ReducerContext, event: ShowToolAction) -> None:
    """Add or update one action.

    An open action with the same text is updated in place. A terminal
    update with no text match resolves the most recent open action.
    """
    group = action_group(ctx) or _implicit_group(ctx)

    open_actions = [a for a in group.actions if a.is_open]
    existing = next((a for a in open_actions if a.text == event.text), None)
    terminal = event.status in ("success", "error")
    target = existing
    if target is None and terminal and open_actions:
        target = open_actions[-1]

    if target is None:
        target = ActionItem(id=ctx.new_id("action"), text=event.text)
        group.actions.append(target)
    _merge_action(target, event)

    if terminal:
        if not group.has_open_actions():
            group.status = "error" if group.has_errors() else "done"
    else:
        group.status = "running"
    group.last_action_status = event.status


def finish_progress_group(ctx: ReducerContext, event: FinishProgressGroup) -> None:
    group = current_group(ctx)
    if group is not None:
        for action in group.actions:
            if action.is_open:
                action.status = "success"
        group.status = "error" if group.has_errors() else "done"
        # sub-agent groups stay expanded so their thinking remains visible
        group.collapsed = not group.is_subagent
        group.last_action_status = group.actions[-1].status if group.actions else "success"
    ctx.cursor.pop_progress()


def show_error(ctx: ReducerContext, event: ShowError) -> None:
    group = ctx.cursor.progress.group() if ctx.cursor.progress is not None else None
    if group is None:
        group = _implicit_group(ctx)
    group.actions.append(
        ActionItem(
            id=ctx.new_id("action"),
            status="error",
            icon="✗",
            text=event.message or "Error",
        )
    )
    group.last_action_status = "error"
    group.status = "error"
    group.collapsed = True
    ctx.cursor.pop_progress()


def _format_seconds(duration: float) -> str:
    return str(int(duration)) if duration.is_integer() else str(duration)


def subagent_thinking(ctx: ReducerContext, event: SubagentThinking) -> None:
    group = action_group(ctx)
    if group is None:
        return
    duration = event.duration_seconds
    group.actions.append(
        ActionItem(
            id=ctx.new_id("thinking"),
            status="success",
            icon="💭",
            text=f"Thought for {_format_seconds(duration)}s" if duration else "Thought",
            is_thinking=True,
            thinking_content=event.content,
            duration_seconds=duration,
        )
    )


# Approvals


def _find_card(
    ctx: ReducerContext, card_type: type, card_id: str | None
) -> CommandApprovalItem | FileEditApprovalItem | None:
    if card_id is None:
        return None
    for thread in iter_threads(ctx):
        for block in iter_tools_blocks(thread):
            for item in block.items:
                if isinstance(item, card_type) and item.id == card_id:
                    return item
    return None


def _find_action(ctx: ReducerContext, action_id: str) -> tuple[ProgressItem, ActionItem] | None:
    for thread in iter_threads(ctx):
        for block in iter_tools_blocks(thread):
            for item in block.items:
                if not isinstance(item, ProgressItem):
                    continue
                for action in item.actions:
                    if action.id == action_id:
                        return item, action
    return None


def request_tool_approval(ctx: ReducerContext, event: RequestToolApproval) -> None:
    approval = event.approval
    if approval is None:
        return
    group = current_group(ctx)
    if group is not None:
        group.actions.append(
            ActionItem(
                id=f"action_{approval.id}",
                status="running",
                icon="⚡",
                text="Run command",
                detail="Awaiting approval",
            )
        )
    thread_tools_block(ctx).items.append(
        CommandApprovalItem(
            id=approval.id,
            command=approval.command,
            cwd=approval.cwd,
            severity=approval.severity,
            reason=approval.reason,
            timestamp=approval.timestamp or ctx.now(),
        )
    )


def tool_approval_result(ctx: ReducerContext, event: ToolApprovalResult) -> None:
    found = _find_action(ctx, f"action_{event.approval_id}") if event.approval_id else None
    if found is not None:
        group, action = found
        if event.status == "running":
            action.status = "running"
        else:
            failed = event.status in ("skipped", "error")
            action.status = "error" if failed else "success"
            if event.command:
                action.detail = event.command[:COMMAND_DETAIL_LIMIT]
            if failed:
                group.status = "error"

    card = _find_card(ctx, CommandApprovalItem, event.approval_id)
    if card is not None:
        if event.status:
            card.status = event.status
        if event.output is not None:
            card.output = event.output
        card.auto_approved = event.auto_approved or card.auto_approved
        if event.command and event.command.strip():
            card.command = event.command
        if event.exit_code is not None:
            card.exit_code = event.exit_code
        return

    thread_tools_block(ctx).items.append(
        CommandApprovalItem(
            id=event.approval_id or ctx.new_id("approval"),
            command=event.command or "",
            cwd=event.cwd,
            severity=event.severity or "medium",
            reason=event.reason,
            status=event.status or "approved",
            timestamp=ctx.now(),
            output=event.output,
            exit_code=event.exit_code,
            auto_approved=event.auto_approved,
        )
    )


def request_file_edit_approval(ctx: ReducerContext, event: RequestFileEditApproval) -> None:
    approval = event.approval
    if approval is None:
        return
    thread_tools_block(ctx).items.append(
        FileEditApprovalItem(
            id=approval.id,
            file_path=approval.file_path,
            severity=approval.severity,
            reason=approval.reason,
            timestamp=approval.timestamp or ctx.now(),
            diff_html=approval.diff_html,
        )
    )


def file_edit_approval_result(ctx: ReducerContext, event: FileEditApprovalResult) -> None:
    # Completing the owning group is left to showToolAction and finishProgressGroup
    card = _find_card(ctx, FileEditApprovalItem, event.approval_id)
    if card is not None:
        if event.status:
            card.status = event.status
        card.auto_approved = event.auto_approved or card.auto_approved
        if event.diff_html is not None:
            card.diff_html = event.diff_html
        if event.file_path is not None:
            card.file_path = event.file_path
        if event.reason:
            card.reason = event.reason
        return

    thread_tools_block(ctx).items.append(
        FileEditApprovalItem(
            id=event.approval_id or ctx.new_id("approval"),
            file_path=event.file_path or "file",
            severity=event.severity or "medium",
            reason=event.reason,
            status=event.status or "approved",
            timestamp=ctx.now(),
            diff_html=event.diff_html,
            auto_approved=event.auto_approved,
        )
    )


def ignore_event(ctx: ReducerContext, event: BaseEvent) -> None:
    """Chrome and store-level kinds; ``TimelineStore`` handles them before the reducer."""


HANDLERS: dict[type[BaseEvent], Handler] = {
    StreamThinking: stream_thinking,
    CollapseThinking: collapse_thinking,
    ThinkingBlock: thinking_block,
    StreamChunk: stream_chunk,
    FinalMessage: final_message,
    AddMessage: add_message,
    StartProgressGroup: start_progress_group,
    ShowToolAction: show_tool_action,
    FinishProgressGroup: finish_progress_group,
    SubagentThinking: subagent_thinking,
    ShowError: show_error,
    RequestToolApproval: request_tool_approval,
    ToolApprovalResult: tool_approval_result,
    RequestFileEditApproval: request_file_edit_approval,
    FileEditApprovalResult: file_edit_approval_result,
    GenerationStarted: generation_started,
    GenerationStopped: generation_stopped,
    FilesChanged: files_changed.files_changed,
    FilesDiffStats: files_changed.files_diff_stats,
    FileChangeResult: files_changed.file_change_result,
    KeepUndoResult: files_changed.keep_undo_result,
    ReviewChangePosition: files_changed.review_change_position,
    ShowThinking: ignore_event,
    HideThinking: ignore_event,
    TokenUsageEvent: ignore_event,
    ShowWarningBanner: ignore_event,
    ClearMessages: ignore_event,
    LoadSessionMessages: ignore_event,
}
