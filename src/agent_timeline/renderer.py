"""JSON renderer for timelines."""

import json
from pathlib import Path
from typing import Any

from .cursor import iter_tools_blocks
from .models import AssistantThread, FilesChangedBlock, MessageItem, ProgressItem, TimelineItem

VOLATILE_KEYS = ("id", "timestamp")


def item_to_dict(item: TimelineItem | FilesChangedBlock) -> dict:
    return item.model_dump(mode="json", by_alias=True, exclude_none=True)


def timeline_to_dict(items: list[TimelineItem], files_changed: FilesChangedBlock | None) -> dict:
    """Convert a timeline and its files-changed block to a JSON-ready dict."""
    return {
        "timeline": [item_to_dict(item) for item in items],
        "filesChanged": item_to_dict(files_changed) if files_changed is not None else None,
    }


def strip_keys(data: Any, keys: tuple[str, ...] = VOLATILE_KEYS) -> Any:
    """Recursively drop the given keys from dicts nested in ``data``."""
    if isinstance(data, dict):
        return {k: strip_keys(v, keys) for k, v in data.items() if k not in keys}
    if isinstance(data, list):
        return [strip_keys(v, keys) for v in data]
    return data


def compute_metadata(
    items: list[TimelineItem], files_changed: FilesChangedBlock | None, source: Path | None = None
) -> dict:
    """Compute summary counts for a timeline."""
    threads = [item for item in items if isinstance(item, AssistantThread)]
    groups = [
        tool
        for thread in threads
        for block in iter_tools_blocks(thread)
        for tool in block.items
        if isinstance(tool, ProgressItem)
    ]
    pending_files = 0
    if files_changed is not None:
        pending_files = sum(1 for f in files_changed.files if f.status == "pending")

    return {
        "source": source.name if source else None,
        "messages": sum(1 for item in items if isinstance(item, MessageItem)),
        "threads": len(threads),
        "progress_groups": len(groups),
        "actions": sum(len(group.actions) for group in groups),
        "pending_files": pending_files,
    }


def render_json(
    items: list[TimelineItem],
    files_changed: FilesChangedBlock | None,
    source: Path | None = None,
    compact: bool = False,
    strip_ids: bool = False,
) -> str:
    """Render a timeline as a JSON string."""
    data = timeline_to_dict(items, files_changed)
    if strip_ids:
        data = strip_keys(data)
    metadata = compute_metadata(items, files_changed, source)

    # Put metadata first in output
    ordered = {"metadata": metadata, **data}

    return json.dumps(ordered, indent=None if compact else 2, ensure_ascii=False)
