"""Unit tests for the parser module."""

from pathlib import Path

import pytest

from agent_timeline.events import StreamChunk
from agent_timeline.parser import load_events, load_objects, load_records


class TestLoadObjects:
    """Tests for load_objects function."""

    def test_empty_file(self, tmp_path: Path) -> None:
        """Empty file returns empty list."""
        f = tmp_path / "empty.jsonl"
        f.write_text("")
        assert load_objects(f) == []

    def test_json_array(self, tmp_path: Path) -> None:
        """A JSON array is loaded as a whole."""
        f = tmp_path / "events.json"
        f.write_text('[{"type": "a"},\n {"type": "b"}]')
        assert [o["type"] for o in load_objects(f)] == ["a", "b"]

    def test_skips_malformed_json(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        """Malformed JSON lines are skipped with warning."""
        f = tmp_path / "test.jsonl"
        f.write_text('{"type": "a"}\nnot json\n\n{"type": "b"}\n')
        objects = load_objects(f)
        assert len(objects) == 2
        captured = capsys.readouterr()
        assert "Warning: Skipping malformed JSON at line 2" in captured.err

    def test_skips_non_objects(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        """Entries that are not objects are skipped with warning."""
        f = tmp_path / "test.json"
        f.write_text('[{"type": "a"}, 3, "x"]')
        assert len(load_objects(f)) == 1
        assert "Skipping non-object entry 2" in capsys.readouterr().err


class TestLoadEvents:
    """Tests for load_events function."""

    def test_fixture_script(self, thinking_script: Path) -> None:
        """The fixture script parses completely."""
        events = load_events(thinking_script)
        assert len(events) == 8
        assert isinstance(events[-1], StreamChunk)

    def test_unknown_and_invalid_skipped(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        """Unknown kinds are dropped silently, invalid ones with a warning."""
        f = tmp_path / "events.jsonl"
        f.write_text(
            '{"type": "updateSettings"}\n'
            '{"type": "showToolAction", "status": "exploded"}\n'
            '{"type": "streamChunk", "content": "x"}\n'
        )
        events = load_events(f)
        assert [e.type for e in events] == ["streamChunk"]
        assert "Warning: Skipping event 2" in capsys.readouterr().err


class TestLoadRecords:
    """Tests for load_records function."""

    def test_fixture_log(self, session_log: Path) -> None:
        """Every fixture record validates."""
        records = load_records(session_log)
        assert len(records) == 12
        assert records[0].role == "user"
        assert records[1].tool_name == "__ui__"

    def test_invalid_record_skipped(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        """Records with an unknown role are skipped with warning."""
        f = tmp_path / "log.jsonl"
        f.write_text('{"id": "1", "role": "narrator"}\n{"id": "2", "role": "user", "content": "hi"}\n')
        records = load_records(f)
        assert [r.id for r in records] == ["2"]
        assert "Warning: Skipping invalid record 1" in capsys.readouterr().err
