"""Tests for the renderer module."""

import json
from pathlib import Path

from agent_timeline.renderer import compute_metadata, render_json, strip_keys, timeline_to_dict
from agent_timeline.replay import ReplayResult, build_timeline


def replayed(session_log: Path) -> ReplayResult:
    return build_timeline(json.loads(session_log.read_text()))


class TestTimelineToDict:
    """Tests for timeline_to_dict function."""

    def test_camel_case_keys(self, session_log: Path) -> None:
        """Output uses the camelCase wire names."""
        result = replayed(session_log)
        data = timeline_to_dict(result.items, result.files_changed)
        thread = data["timeline"][1]
        assert thread["type"] == "assistantThread"
        assert "totalDurationSeconds" in thread["blocks"][0]
        assert data["filesChanged"]["checkpointIds"] == ["cp1"]

    def test_omits_none(self) -> None:
        """Unset optional fields are left out."""
        data = timeline_to_dict([], None)
        assert data == {"timeline": [], "filesChanged": None}


class TestStripKeys:
    """Tests for strip_keys function."""

    def test_nested(self) -> None:
        """Keys are removed from nested dicts and lists."""
        assert strip_keys([{"id": 1, "a": [{"timestamp": 2, "b": 3}]}]) == [{"a": [{"b": 3}]}]

    def test_scalars_unchanged(self) -> None:
        """Scalars pass through."""
        assert strip_keys("id") == "id"


class TestComputeMetadata:
    """Tests for compute_metadata function."""

    def test_session_log(self, session_log: Path) -> None:
        """Counts cover messages, threads, groups, actions and pending files."""
        result = replayed(session_log)
        metadata = compute_metadata(result.items, result.files_changed, session_log)

        assert metadata["source"] == "session_log.json"
        assert metadata["messages"] == 1
        assert metadata["threads"] == 1
        assert metadata["progress_groups"] == 2
        assert metadata["actions"] == 2
        assert metadata["pending_files"] == 1

    def test_empty_timeline(self) -> None:
        """Empty timeline has zero counts and no source."""
        metadata = compute_metadata([], None)
        assert metadata["source"] is None
        assert metadata["threads"] == 0
        assert metadata["pending_files"] == 0


class TestRenderJson:
    """Tests for render_json function."""

    def test_output_is_valid_json(self, session_log: Path) -> None:
        """Output parses as valid JSON."""
        result = replayed(session_log)
        data = json.loads(render_json(result.items, result.files_changed, session_log))
        assert "metadata" in data
        assert "timeline" in data
        assert "filesChanged" in data

    def test_metadata_first_in_output(self, session_log: Path) -> None:
        """Metadata key appears first in output."""
        result = replayed(session_log)
        output = render_json(result.items, result.files_changed, session_log)
        assert output.strip().startswith('{\n  "metadata"')

    def test_compact_mode(self, session_log: Path) -> None:
        """Compact mode produces single-line output."""
        result = replayed(session_log)
        output = render_json(result.items, result.files_changed, compact=True)
        assert len(output.strip().split("\n")) == 1

    def test_strip_ids(self, session_log: Path) -> None:
        """Ids are dropped from the payload on request."""
        result = replayed(session_log)
        data = json.loads(render_json(result.items, result.files_changed, strip_ids=True))
        assert "id" not in data["timeline"][0]
        assert "id" not in data["timeline"][1]

    def test_unicode_preserved(self, session_log: Path) -> None:
        """Icons are written as-is."""
        result = replayed(session_log)
        assert "📄" in render_json(result.items, result.files_changed)
