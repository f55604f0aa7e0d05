"""
CLI tests.

The CLI reads the same TRAVELWEB_* environment as the API; each test points
it at a temporary data directory and rules file.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from travelweb.app_shell.cli import build_parser, load_batch_file, main


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    rules_path = tmp_path / "rules.yaml"
    rules_path.write_text("storage:\n  backend: jsonl\n", encoding="utf-8")
    monkeypatch.setenv("TRAVELWEB_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("TRAVELWEB_RULES_PATH", str(rules_path))
    return tmp_path


def write_batch(tmp_path: Path, payload: object) -> Path:
    path = tmp_path / "batch.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def sample_batch() -> list[dict]:
    now = datetime.now(UTC)
    return [
        {
            "type": "click",
            "data": {
                "id": "c1",
                "videoId": "v1",
                "videoTitle": "Faroe cliffs",
                "platform": "youtube",
                "clickTime": (now - timedelta(minutes=5)).isoformat(),
                "sessionId": "s1",
            },
        },
        {
            "type": "return",
            "data": {
                "clickId": "c1",
                "returnTime": now.isoformat(),
                "timeSpent": 300000,
                "estimatedWatchPercentage": 0.95,
                "sessionId": "s1",
                "videoId": "v1",
            },
        },
    ]


class TestParser:
    def test_range_left_to_rules_when_omitted(self) -> None:
        args = build_parser().parse_args(["stats"])
        assert args.command == "stats"
        assert args.range is None

    def test_estimates_filters(self) -> None:
        args = build_parser().parse_args(
            ["estimates", "--range", "30d", "--video-id", "v1", "--platform", "tiktok"]
        )
        assert args.video_id == "v1"
        assert args.platform == "tiktok"

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestLoadBatchFile:
    def test_batch_list(self, tmp_path: Path) -> None:
        events = load_batch_file(write_batch(tmp_path, sample_batch()))
        assert [e.type for e in events] == ["click", "return"]

    def test_per_type_export(self, tmp_path: Path) -> None:
        path = write_batch(tmp_path, {"click": [{"videoId": "v1"}], "return": [{"clickId": "c1"}]})

        events = load_batch_file(path)

        assert [e.type for e in events] == ["click", "return"]
        assert events[0].data == {"videoId": "v1"}

    def test_scalar_payload_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            load_batch_file(write_batch(tmp_path, 42))


class TestCommands:
    """End-to-end through main()."""

    def test_ingest_then_stats(self, cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        batch = write_batch(cli_env, sample_batch())

        assert main(["ingest", str(batch)]) == 0
        ingested = json.loads(capsys.readouterr().out)
        assert ingested["accepted"] == 2
        assert ingested["rejected"] == 0

        assert main(["stats", "--range", "7d"]) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats["total_clicks"] == 1
        assert stats["total_returns"] == 1
        assert stats["return_rate"] == 100.0
        assert stats["estimated_completion_rate"] == 100.0

    def test_estimates_for_one_video(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        main(["ingest", str(write_batch(cli_env, sample_batch()))])
        capsys.readouterr()

        assert main(["estimates", "--video-id", "v1"]) == 0
        out = json.loads(capsys.readouterr().out)

        assert len(out["estimates"]) == 1
        assert out["estimates"][0]["platform"] == "long_form"
        assert out["estimates"][0]["confidence"] == "low"

    def test_ingest_reports_rejections(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        batch = write_batch(cli_env, [{"type": "view", "data": {}}])

        assert main(["ingest", str(batch)]) == 2
        out = json.loads(capsys.readouterr().out)
        assert out["rejected"] == 1
        assert out["results"][0]["success"] is False

    def test_ingest_missing_file(self, cli_env: Path) -> None:
        assert main(["ingest", str(cli_env / "nope.json")]) == 1

    def test_missing_rules_file_exits(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TRAVELWEB_RULES_PATH", str(tmp_path / "missing.yaml"))
        with pytest.raises(SystemExit):
            main(["stats"])

    def test_default_range_comes_from_rules(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        (cli_env / "rules.yaml").write_text(
            "storage:\n  backend: jsonl\naggregation:\n  default_range: 30d\n",
            encoding="utf-8",
        )

        assert main(["stats"]) == 0
        assert json.loads(capsys.readouterr().out)["time_range"] == "30d"

        assert main(["estimates", "--range", "90d"]) == 0
        assert json.loads(capsys.readouterr().out)["time_range"] == "90d"
