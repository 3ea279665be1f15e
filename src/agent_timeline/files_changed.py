"""Files-changed aggregation shared by the live and replay paths.

There is only ever one ``FilesChangedBlock`` per view. Edits from further
checkpoints merge into it by path, and it is discarded as soon as its last
file is resolved.
"""

from .cursor import ReducerContext
from .events import (
    FileChangeResult,
    FilesChanged,
    FilesDiffStats,
    KeepUndoResult,
    ReviewChangePosition,
)
from .models import FileChangeFileItem, FilesChangedBlock, RequestFilesDiffStats


def get_or_create_block(ctx: ReducerContext) -> FilesChangedBlock:
    if ctx.files_changed is None:
        ctx.files_changed = FilesChangedBlock()
    return ctx.files_changed


def recalc_totals(block: FilesChangedBlock) -> None:
    block.total_additions = sum(f.additions or 0 for f in block.files)
    block.total_deletions = sum(f.deletions or 0 for f in block.files)


def update_status(block: FilesChangedBlock) -> None:
    statuses = {f.status for f in block.files}
    if len(statuses) == 1:
        block.status = statuses.pop()
    elif statuses:
        block.status = "partial"


def _drop_checkpoint_if_unused(block: FilesChangedBlock, checkpoint_id: str) -> None:
    if not any(f.checkpoint_id == checkpoint_id for f in block.files):
        block.checkpoint_ids = [c for c in block.checkpoint_ids if c != checkpoint_id]


def _discard_if_empty(ctx: ReducerContext) -> bool:
    if ctx.files_changed is not None and not ctx.files_changed.files:
        ctx.files_changed = None
        return True
    return False


def files_changed(ctx: ReducerContext, event: FilesChanged) -> None:
    """Merge an edit batch into the singleton and ask for fresh diff stats.

    Stats are requested for the batch's checkpoint when a new path arrives
    or a known path is edited again (its stats are stale), and, when files
    were added, for any older checkpoint whose files still lack stats.
    """
    if event.status in ("kept", "undone"):
        return

    checkpoint_id = event.checkpoint_id
    block = get_or_create_block(ctx)
    if checkpoint_id and checkpoint_id not in block.checkpoint_ids:
        block.checkpoint_ids.append(checkpoint_id)

    known = {f.path: f for f in block.files}
    added = False
    re_edited: list[FileChangeFileItem] = []
    for incoming in event.files:
        existing = known.get(incoming.path)
        if existing is not None:
            if existing not in re_edited:
                re_edited.append(existing)
            continue
        item = FileChangeFileItem(
            path=incoming.path,
            action=incoming.action or "modified",
            checkpoint_id=checkpoint_id,
        )
        block.files.append(item)
        known[item.path] = item
        added = True

    requested: set[str] = set()

    def request(cid: str) -> None:
        if cid and cid not in requested:
            requested.add(cid)
            ctx.post_request(RequestFilesDiffStats(checkpoint_id=cid))

    if (added or re_edited) and checkpoint_id:
        block.stats_loading = True
        request(checkpoint_id)
    for item in re_edited:
        request(item.checkpoint_id)

    if added:
        for item in block.files:
            if item.additions is None:
                request(item.checkpoint_id)

    update_status(block)


def files_diff_stats(ctx: ReducerContext, event: FilesDiffStats) -> None:
    block = ctx.files_changed
    if block is None or not event.checkpoint_id:
        return
    for stat in event.files:
        for item in block.files:
            # resolved files keep their terminal stats
            if item.path == stat.path and item.checkpoint_id == event.checkpoint_id and item.status == "pending":
                item.additions = stat.additions
                item.deletions = stat.deletions
    recalc_totals(block)
    block.stats_loading = False


def file_change_result(ctx: ReducerContext, event: FileChangeResult) -> None:
    block = ctx.files_changed
    if block is None:
        return
    index = next(
        (
            i
            for i, f in enumerate(block.files)
            if f.path == event.file_path and f.checkpoint_id == event.checkpoint_id
        ),
        None,
    )
    if index is None:
        return

    if event.success:
        del block.files[index]
    else:
        block.files[index].status = "kept" if event.action == "kept" else "undone"

    _drop_checkpoint_if_unused(block, event.checkpoint_id)
    if _discard_if_empty(ctx):
        return
    recalc_totals(block)
    update_status(block)


def keep_undo_result(ctx: ReducerContext, event: KeepUndoResult) -> None:
    block = ctx.files_changed
    if block is None or not event.success:
        return
    block.files = [f for f in block.files if f.checkpoint_id != event.checkpoint_id]
    _drop_checkpoint_if_unused(block, event.checkpoint_id)
    if _discard_if_empty(ctx):
        return
    recalc_totals(block)
    update_status(block)


def review_change_position(ctx: ReducerContext, event: ReviewChangePosition) -> None:
    block = ctx.files_changed
    if block is None:
        return
    block.current_change = event.current
    block.total_changes = event.total
    if event.file_path:
        block.active_file_path = event.file_path
