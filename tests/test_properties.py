"""Property-based tests using Hypothesis."""

import itertools

from hypothesis import given, settings
from hypothesis import strategies as st

from agent_timeline.cursor import ReducerContext, iter_tools_blocks
from agent_timeline.models import AssistantThread, ProgressItem, ThinkingGroupBlock
from agent_timeline.parity import check_parity
from agent_timeline.store import TimelineStore

from conftest import apply_all

words = st.text(alphabet="abcdefghij ", min_size=1, max_size=12)
paths = st.sampled_from(["a.py", "b.py", "src/c.ts", "README.md"])
checkpoints = st.sampled_from(["cp1", "cp2", "cp3"])
titles = st.sampled_from(["Reading", "Searching", "Writing files", "Modifying config", "Running tests", ""])


# Custom strategies
@st.composite
def thinking_step(draw: st.DrawFn) -> list[dict]:
    """Streamed thinking, optionally collapsed."""
    events = [{"type": "streamThinking", "content": c} for c in draw(st.lists(words, min_size=1, max_size=3))]
    if draw(st.booleans()):
        duration = draw(st.one_of(st.none(), st.integers(min_value=1, max_value=30)))
        events.append({"type": "collapseThinking", "durationSeconds": duration})
    return events


@st.composite
def text_step(draw: st.DrawFn) -> list[dict]:
    """A text run streamed as growing prefixes."""
    text = draw(words)
    cuts = sorted(draw(st.lists(st.integers(min_value=1, max_value=len(text)), min_size=1, max_size=3)))
    model = draw(st.one_of(st.none(), st.sampled_from(["m1", "m2"])))
    return [{"type": "streamChunk", "content": text[:cut], "model": model} for cut in cuts]


@st.composite
def action_events(draw: st.DrawFn) -> list[dict]:
    """Tool actions: running then finished, or finished directly."""
    events = []
    for text in draw(st.lists(words, min_size=0, max_size=3)):
        if draw(st.booleans()):
            events.append({"type": "showToolAction", "status": "running", "text": text})
        if draw(st.booleans()):
            status = draw(st.sampled_from(["success", "success", "error"]))
            events.append({"type": "showToolAction", "status": status, "text": draw(st.sampled_from([text, "Done"]))})
    return events


@st.composite
def tool_round(draw: st.DrawFn, depth: int = 0) -> list[dict]:
    """A progress group with actions, maybe a nested sub-agent and approvals."""
    events = [
        {
            "type": "startProgressGroup",
            "title": draw(titles),
            "isSubagent": depth > 0,
        }
    ]
    events += draw(action_events())
    if depth > 0 and draw(st.booleans()):
        events.append({"type": "subagentThinking", "content": draw(words), "durationSeconds": draw(st.integers(1, 9))})
    if depth == 0 and draw(st.booleans()):
        events += draw(tool_round(depth=1))
    if draw(st.booleans()):
        approval_id = "ap"
        events.append({"type": "requestToolApproval", "approval": {"id": approval_id, "command": draw(words)}})
        if draw(st.booleans()):
            events += draw(text_step())
        events.append(
            {
                "type": "toolApprovalResult",
                "approvalId": approval_id,
                "status": draw(st.sampled_from(["approved", "skipped", "error"])),
                "exitCode": draw(st.integers(0, 2)),
            }
        )
    if draw(st.booleans()):
        # completion arriving after text closed the thinking group
        events += draw(text_step())
    if draw(st.integers(0, 5)) == 0:
        events.append({"type": "showError", "message": draw(words)})
    else:
        events.append({"type": "finishProgressGroup"})
    return events


@st.composite
def files_step(draw: st.DrawFn) -> list[dict]:
    """File edits with stats and resolutions."""
    cp = draw(checkpoints)
    files = draw(st.lists(paths, min_size=1, max_size=3, unique=True))
    events = [{"type": "filesChanged", "checkpointId": cp, "files": [{"path": p} for p in files]}]
    if draw(st.booleans()):
        events.append(
            {
                "type": "filesDiffStats",
                "checkpointId": cp,
                "files": [{"path": p, "additions": draw(st.integers(0, 50))} for p in files],
            }
        )
    if draw(st.booleans()):
        events.append(
            {
                "type": "fileChangeResult",
                "checkpointId": cp,
                "filePath": draw(st.sampled_from(files)),
                "success": draw(st.booleans()),
                "action": draw(st.sampled_from(["kept", "undone"])),
            }
        )
    if draw(st.integers(0, 4)) == 0:
        events.append({"type": "keepUndoResult", "checkpointId": cp, "success": True})
    return events


chrome_step = st.sampled_from(
    [
        [{"type": "showThinking", "message": "Thinking..."}],
        [{"type": "hideThinking"}],
        [{"type": "tokenUsage", "promptTokens": 10, "completionTokens": 2}],
    ]
)


@st.composite
def turn(draw: st.DrawFn) -> list[dict]:
    """One assistant turn; final text only ever closes the turn."""
    steps = draw(
        st.lists(
            st.one_of(thinking_step(), text_step(), tool_round(), files_step(), chrome_step),
            min_size=1,
            max_size=6,
        )
    )
    events = [event for step in steps for event in step]
    if draw(st.booleans()):
        events.append({"type": "finalMessage", "content": draw(words)})
    if draw(st.booleans()):
        events.append({"type": draw(st.sampled_from(["generationStopped", "generationStarted"]))})
    return events


@st.composite
def conversation(draw: st.DrawFn) -> list[dict]:
    """User messages each followed by an assistant turn."""
    events = []
    for index in range(draw(st.integers(1, 3))):
        if index or draw(st.booleans()):
            events.append({"type": "addMessage", "message": {"role": "user", "content": draw(words)}})
        events += draw(turn())
    # approval ids are unique per session
    approvals = itertools.count(1)
    approval_id = None
    for event in events:
        if event["type"] == "requestToolApproval":
            approval_id = f"ap{next(approvals)}"
            event["approval"]["id"] = approval_id
        elif event["type"] == "toolApprovalResult":
            event["approvalId"] = approval_id
    return events


def sequential_ctx() -> ReducerContext:
    counter = itertools.count(1)
    return ReducerContext(new_id=lambda prefix: f"{prefix}_{next(counter)}", now=lambda: 0)


def all_groups(items: list) -> list[ProgressItem]:
    groups = []
    for thread in items:
        if not isinstance(thread, AssistantThread):
            continue
        for block in iter_tools_blocks(thread):
            groups.extend(item for item in block.items if isinstance(item, ProgressItem))
    return groups


class TestParityProperties:
    """Live and replayed timelines agree."""

    @given(conversation())
    @settings(max_examples=150, deadline=None)
    def test_live_matches_replay(self, events: list[dict]) -> None:
        """Every realistic script yields the same timeline on both paths."""
        report = check_parity(events)
        assert report.matches, report.diff


class TestStructureProperties:
    """Structural invariants of the live timeline."""

    @given(conversation())
    @settings(max_examples=100, deadline=None)
    def test_no_text_inside_thinking_groups(self, events: list[dict]) -> None:
        """Thinking groups only hold thinking content and tools."""
        store = TimelineStore()
        store.dispatch_all(events)
        for item in store.timeline:
            if isinstance(item, AssistantThread):
                for block in item.blocks:
                    if isinstance(block, ThinkingGroupBlock):
                        assert {s.type for s in block.sections} <= {"thinkingContent", "tools"}

    @given(conversation())
    @settings(max_examples=100, deadline=None)
    def test_group_status_law(self, events: list[dict]) -> None:
        """A finished group is in error exactly when one of its actions is."""
        store = TimelineStore()
        store.dispatch_all(events)
        for group in all_groups(store.timeline):
            if group.status != "running":
                assert (group.status == "error") == group.has_errors()

    @given(action_events(), st.booleans())
    @settings(max_examples=100)
    def test_finish_leaves_no_open_actions(self, actions: list[dict], subagent: bool) -> None:
        """After finishing, every action is success or error."""
        ctx = apply_all(sequential_ctx(), [{"type": "startProgressGroup", "title": "Work", "isSubagent": subagent}])
        group = ctx.cursor.progress.group()
        apply_all(ctx, actions + [{"type": "finishProgressGroup"}])
        assert not group.has_open_actions()
        assert group.status in ("done", "error")
        assert group.collapsed is not subagent

    @given(st.integers(min_value=1, max_value=5), st.booleans(), st.data())
    @settings(max_examples=50)
    def test_nesting_symmetry(self, depth: int, with_parent: bool, data: st.DataObject) -> None:
        """N starts then N finishes restore the progress cursor."""
        ctx = sequential_ctx()
        if with_parent:
            apply_all(ctx, [{"type": "startProgressGroup", "title": "Parent"}])
        before = ctx.cursor.progress

        for level in range(depth):
            apply_all(ctx, [{"type": "startProgressGroup", "title": f"Level {level}", "isSubagent": True}])
            apply_all(ctx, data.draw(action_events()))
        for _ in range(depth):
            apply_all(ctx, [{"type": "finishProgressGroup"}])

        assert ctx.cursor.progress == before
        if before is None:
            assert ctx.cursor.progress_stack == []

    @given(
        st.lists(paths, min_size=1, max_size=4, unique=True),
        st.lists(paths, min_size=1, max_size=4, unique=True),
    )
    @settings(max_examples=50)
    def test_single_files_block(self, first: list[str], second: list[str]) -> None:
        """Two checkpoints merge into one block with unique paths."""
        ctx = apply_all(
            sequential_ctx(),
            [
                {"type": "filesChanged", "checkpointId": "cp1", "files": [{"path": p} for p in first]},
                {"type": "filesChanged", "checkpointId": "cp2", "files": [{"path": p} for p in second]},
            ],
        )
        block = ctx.files_changed
        assert block.checkpoint_ids == ["cp1", "cp2"]
        file_paths = [f.path for f in block.files]
        assert len(file_paths) == len(set(file_paths))
        assert set(file_paths) == set(first) | set(second)
