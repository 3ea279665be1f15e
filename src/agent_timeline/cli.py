"""CLI entry point for agent-timeline."""

import json
from collections.abc import Callable
from pathlib import Path

import typer

APP_HELP = """
Build agent conversation timelines from live event scripts or persisted logs.

\b
Inputs are a JSON array or JSONL with one object per line:
  event script    {"type": "streamChunk", "content": "...", "sessionId": "..."}
  persisted log   {"id": "...", "role": "tool", "toolName": "__ui__", "toolOutput": "..."}
"""

REPLAY_HELP = """
Rebuild the timeline of a persisted log and print it as JSON.

Records that cannot be decoded are skipped with a warning on stderr.

\b
Examples:
  # Timeline of a stored session
  agent-timeline replay session.jsonl | jq '.timeline'

  # Pending file edits only
  agent-timeline replay session.jsonl | jq '.filesChanged.files'

\b
Output structure:
  {
    "metadata": {"source": "...", "messages": 2, "threads": 2, ...},
    "timeline": [...],       # messages and assistant threads in order
    "filesChanged": {...}    # the files-changed block, or null
  }
"""

LIVE_HELP = """
Apply an event script through the live store and print the timeline as JSON.

\b
Events tagged with another session than --session-id are dropped,
except showThinking, hideThinking and tokenUsage.
"""

PARITY_HELP = """
Check that an event script yields the same timeline live and replayed.

The script is encoded as the log the backend would persist, both timelines
are built, ids and timestamps are stripped and the results compared.
Exits with status 1 and prints a unified diff on mismatch.
"""

ENCODE_HELP = """
Print the persisted-log encoding of an event script.

\b
Examples:
  agent-timeline encode script.jsonl -o session.json
  agent-timeline replay session.json
"""

app = typer.Typer(add_completion=False, help=APP_HELP)


def _require(path: Path) -> None:
    if not path.exists():
        typer.echo(f"Error: File not found: {path}", err=True)
        raise typer.Exit(1)


def _write(json_str: str, output: Path | None) -> None:
    if output is None:
        typer.echo(json_str)
    else:
        output.write_text(json_str)
        typer.echo(f"Written to {output}", err=True)


def _load(loader: Callable[[Path], list], path: Path) -> list:
    _require(path)
    try:
        return loader(path)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: Invalid JSON in {path}: {e}", err=True)
        raise typer.Exit(1) from e


@app.command(help=REPLAY_HELP)
def replay(
    log_path: Path = typer.Argument(..., help="Path to persisted log (JSON or JSONL)"),
    output: Path | None = typer.Option(None, "-o", "--output", help="Output JSON file path"),
    compact: bool = typer.Option(False, "--compact", help="No indentation (for piping)"),
    strip_ids: bool = typer.Option(False, "--strip-ids", help="Drop ids and timestamps"),
) -> None:
    from .parser import load_records
    from .renderer import render_json
    from .replay import build_timeline

    records = _load(load_records, log_path)
    result = build_timeline(records)
    if result.skipped:
        typer.echo(f"Skipped {result.skipped} malformed record(s)", err=True)

    _write(
        render_json(result.items, result.files_changed, log_path, compact=compact, strip_ids=strip_ids),
        output,
    )


@app.command(help=LIVE_HELP)
def live(
    events_path: Path = typer.Argument(..., help="Path to event script (JSON or JSONL)"),
    session_id: str | None = typer.Option(None, "--session-id", help="Active session id"),
    output: Path | None = typer.Option(None, "-o", "--output", help="Output JSON file path"),
    compact: bool = typer.Option(False, "--compact", help="No indentation (for piping)"),
    strip_ids: bool = typer.Option(False, "--strip-ids", help="Drop ids and timestamps"),
) -> None:
    from .parser import load_events
    from .renderer import render_json
    from .store import TimelineStore

    events = _load(load_events, events_path)
    store = TimelineStore(session_id=session_id)
    store.dispatch_all(events)
    store.close_turn()

    _write(
        render_json(store.timeline, store.files_changed, events_path, compact=compact, strip_ids=strip_ids),
        output,
    )


@app.command(help=PARITY_HELP)
def parity(
    events_path: Path = typer.Argument(..., help="Path to event script (JSON or JSONL)"),
    session_id: str | None = typer.Option(None, "--session-id", help="Active session id"),
) -> None:
    from .parity import check_parity
    from .parser import load_events

    events = _load(load_events, events_path)
    report = check_parity(events, session_id=session_id)
    if not report.matches:
        typer.echo(report.diff)
        typer.echo("Error: live and replayed timelines differ", err=True)
        raise typer.Exit(1)
    typer.echo(f"OK: {len(events)} events, live and replayed timelines match")


@app.command(help=ENCODE_HELP)
def encode(
    events_path: Path = typer.Argument(..., help="Path to event script (JSON or JSONL)"),
    output: Path | None = typer.Option(None, "-o", "--output", help="Output JSON file path"),
    compact: bool = typer.Option(False, "--compact", help="No indentation (for piping)"),
) -> None:
    from .parity import encode_events
    from .parser import load_events

    events = _load(load_events, events_path)
    records = [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in encode_events(events)]
    _write(json.dumps(records, indent=None if compact else 2, ensure_ascii=False), output)


if __name__ == "__main__":
    app()
