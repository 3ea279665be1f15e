"""Cursor state and container navigation shared by the live and replay paths.

The cursor is the scoping context a reducer consults to decide where the next
block, section or action goes. It is owned by a ``ReducerContext``: the live
store keeps one for the lifetime of a session view, the replay builder creates
a fresh one per call. Nothing here is module level.
"""

import time
import uuid
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from .models import (
    AssistantThread,
    FilesChangedBlock,
    ProgressItem,
    RequestFilesDiffStats,
    TextBlock,
    ThinkingContentSection,
    ThinkingGroupBlock,
    TimelineItem,
    ToolsBlock,
)

IdFactory = Callable[[str], str]
Clock = Callable[[], int | None]
RequestSink = Callable[[RequestFilesDiffStats], None]


def random_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, eq=False)
class ProgressCursor:
    """Position of a progress group: the tools container and its index there.

    Holding the container itself keeps the cursor valid after the thinking
    group that owns the container has been closed.
    """

    block: ToolsBlock
    index: int

    def group(self) -> ProgressItem | None:
        if 0 <= self.index < len(self.block.items):
            item = self.block.items[self.index]
            if isinstance(item, ProgressItem):
                return item
        return None


@dataclass
class Cursor:
    """Where the current turn is being written."""

    thread: AssistantThread | None = None
    thinking_group: ThinkingGroupBlock | None = None
    # True while the last thinking section still receives streamed content
    thinking_streaming: bool = False
    # Text block that streamChunk replaces and finalMessage appends to
    text_block: TextBlock | None = None
    progress: ProgressCursor | None = None
    progress_stack: list[ProgressCursor] = field(default_factory=list)

    def reset(self) -> None:
        """Clear every field at once. The only way a turn's cursor is discarded."""
        self.thread = None
        self.thinking_group = None
        self.thinking_streaming = False
        self.text_block = None
        self.progress = None
        self.progress_stack = []

    def push_progress(self, position: ProgressCursor) -> None:
        if self.progress is not None:
            self.progress_stack.append(self.progress)
        self.progress = position

    def pop_progress(self) -> None:
        self.progress = self.progress_stack.pop() if self.progress_stack else None


@dataclass
class ReducerContext:
    """Everything a handler reads or mutates while applying one event."""

    timeline: list[TimelineItem] = field(default_factory=list)
    cursor: Cursor = field(default_factory=Cursor)
    files_changed: FilesChangedBlock | None = None
    new_id: IdFactory = random_id
    now: Clock = wall_clock_ms
    request_sink: RequestSink | None = None
    requests: list[RequestFilesDiffStats] = field(default_factory=list)

    def post_request(self, request: RequestFilesDiffStats) -> None:
        """Fire-and-forget outbound request; the answer arrives later as an event."""
        if self.request_sink is not None:
            self.request_sink(request)
        else:
            self.requests.append(request)


def ensure_thread(ctx: ReducerContext, model: str | None = None) -> AssistantThread:
    thread = ctx.cursor.thread
    if thread is None:
        thread = AssistantThread(id=ctx.new_id("thread"), model=model)
        ctx.timeline.append(thread)
        ctx.cursor.thread = thread
    if model:
        thread.model = model
    return thread


def thread_tools_block(ctx: ReducerContext) -> ToolsBlock:
    """Thread-level tools container: the last block if it is one, else a new one."""
    thread = ensure_thread(ctx)
    if thread.blocks and isinstance(thread.blocks[-1], ToolsBlock):
        return thread.blocks[-1]
    block = ToolsBlock()
    thread.blocks.append(block)
    return block


def resolve_tools_block(ctx: ReducerContext, create: bool = True) -> ToolsBlock | None:
    """The container new progress goes into.

    Inside the active thinking group when one is open, at thread level
    otherwise. With ``create=False`` only an existing trailing container is
    returned.
    """
    group = ctx.cursor.thinking_group
    if group is not None:
        if group.sections and isinstance(group.sections[-1], ToolsBlock):
            return group.sections[-1]
        if not create:
            return None
        block = ToolsBlock()
        group.sections.append(block)
        return block
    if create:
        return thread_tools_block(ctx)
    thread = ctx.cursor.thread
    if thread is not None and thread.blocks and isinstance(thread.blocks[-1], ToolsBlock):
        return thread.blocks[-1]
    return None


def iter_tools_blocks(thread: AssistantThread) -> Iterator[ToolsBlock]:
    """Every tools container of a thread in document order, closed groups included."""
    for block in thread.blocks:
        if isinstance(block, ToolsBlock):
            yield block
        elif isinstance(block, ThinkingGroupBlock):
            for section in block.sections:
                if isinstance(section, ToolsBlock):
                    yield section


def iter_threads(ctx: ReducerContext) -> Iterator[AssistantThread]:
    """Threads of the timeline, most recent first."""
    for item in reversed(ctx.timeline):
        if isinstance(item, AssistantThread):
            yield item


def last_running_group(block: ToolsBlock) -> ProgressItem | None:
    for item in reversed(block.items):
        if isinstance(item, ProgressItem) and item.status == "running":
            return item
    return None


def find_last_running_group(ctx: ReducerContext) -> ProgressItem | None:
    """Last running group: current container first, then the whole thread.

    Groups created inside a thinking group stay reachable after text has
    closed that group and moved the current container to thread level.
    """
    current = resolve_tools_block(ctx, create=False)
    if current is not None:
        group = last_running_group(current)
        if group is not None:
            return group
    thread = ctx.cursor.thread
    if thread is None:
        return None
    for block in reversed(list(iter_tools_blocks(thread))):
        group = last_running_group(block)
        if group is not None:
            return group
    return None


def current_group(ctx: ReducerContext) -> ProgressItem | None:
    if ctx.cursor.progress is not None:
        group = ctx.cursor.progress.group()
        if group is not None:
            return group
    return find_last_running_group(ctx)


def action_group(ctx: ReducerContext) -> ProgressItem | None:
    """Group that receives a tool action or sub-agent thought.

    The progress cursor wins. Otherwise the last group of the current
    container is reused whatever its status, so a late action reopens its
    own group. Only then is the thread searched for a running group.
    """
    if ctx.cursor.progress is not None:
        group = ctx.cursor.progress.group()
        if group is not None:
            return group
    current = resolve_tools_block(ctx, create=False)
    if current is not None:
        for item in reversed(current.items):
            if isinstance(item, ProgressItem):
                return item
    return find_last_running_group(ctx)


def add_group(ctx: ReducerContext, group: ProgressItem) -> ProgressItem:
    """Append a group to the resolved container and point the cursor at it."""
    block = resolve_tools_block(ctx)
    block.items.append(group)
    ctx.cursor.push_progress(ProgressCursor(block, len(block.items) - 1))
    return group


def close_thinking_group(ctx: ReducerContext, collapse: bool = True) -> None:
    group = ctx.cursor.thinking_group
    if group is None:
        return
    group.streaming = False
    group.collapsed = collapse
    durations = [
        s.duration_seconds
        for s in group.sections
        if isinstance(s, ThinkingContentSection) and s.duration_seconds is not None
    ]
    if durations:
        group.total_duration_seconds = sum(durations)
    ctx.cursor.thinking_group = None
    ctx.cursor.thinking_streaming = False


def end_turn(ctx: ReducerContext, collapse: bool = True) -> None:
    """Finish the current assistant turn and drop the whole cursor."""
    close_thinking_group(ctx, collapse=collapse)
    ctx.cursor.reset()
