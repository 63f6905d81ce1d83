from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import cinecut.cli as cli
from cinecut.errors import DependencyError
from cinecut.models import CropWindow
from cinecut.render.pipeline import PipelineProgress, PipelineResult
from cinecut.render.reframe import ReframeResult

EVENTS = "\n".join(
    [
        json.dumps({"meta": {"name": "demo"}}),
        json.dumps({"ts": 0, "t": "step.start", "data": {"comment": "Open the dashboard"}}),
        json.dumps({"ts": 1000, "t": "caption.set", "text": "Welcome"}),
        json.dumps({"ts": 3000, "t": "caption.clear"}),
    ]
)


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CINECUT_CONFIG", raising=False)
    monkeypatch.setattr(cli, "configure_logging", lambda settings, verbose=False: None)


@pytest.fixture
def events_file(tmp_path: Path) -> Path:
    path = tmp_path / "demo.ndjson"
    path.write_text(EVENTS, encoding="utf-8")
    return path


def test_templates_lists_every_template() -> None:
    result = CliRunner().invoke(cli.app, ["templates"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert [item["name"] for item in payload] == ["trailer", "howto", "teaser"]


def test_aspects_lists_presets() -> None:
    result = CliRunner().invoke(cli.app, ["aspects"])

    assert result.exit_code == 0
    assert {item["name"] for item in json.loads(result.stdout)} >= {"16:9", "9:16", "1:1"}


def test_config_show_prints_resolved_settings(monkeypatch) -> None:
    monkeypatch.setenv("CINECUT_PIPELINE__DEFAULT_TEMPLATE", "teaser")

    result = CliRunner().invoke(cli.app, ["config", "show"])

    assert result.exit_code == 0
    assert json.loads(result.stdout)["pipeline"]["default_template"] == "teaser"


def test_config_show_reports_missing_explicit_file(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli.app, ["config", "show", "--config", str(tmp_path / "nope.yaml")])

    assert result.exit_code == 1
    assert "Error: Config file not found" in result.output
    assert "Traceback" not in result.output


def test_cut_builds_pipeline_options_from_settings(tmp_path: Path, events_file: Path, monkeypatch) -> None:
    captured = {}

    def fake_run(options):
        captured["options"] = options
        return PipelineResult(
            output_path=options.output_path,
            duration_seconds=1.5,
            stages=["Video probed", "Video encoded"],
        )

    monkeypatch.setattr(cli, "run_pipeline", fake_run)

    result = CliRunner().invoke(cli.app, ["cut", "demo.mp4", str(events_file), "--template", "howto", "--no-captions"])

    assert result.exit_code == 0
    options = captured["options"]
    assert options.output_path == Path("data/outputs/demo_howto.mp4")
    assert options.captions == "none"
    assert options.aspect == "16:9"
    assert options.redaction_style.kind == "blur"
    payload = json.loads(result.stdout)
    assert payload["status"] == "ok"
    assert payload["stages"] == ["Video probed", "Video encoded"]


def test_cut_prints_stage_progress(tmp_path: Path, events_file: Path, monkeypatch) -> None:
    def fake_run(options):
        options.on_progress(PipelineProgress("init", 0, "Initializing..."))
        options.on_progress(PipelineProgress("encode", 30, "Encoding video..."))
        options.on_progress(PipelineProgress("encode", 60, "Encoding: 50%"))
        return PipelineResult(output_path=options.output_path, duration_seconds=0.1)

    monkeypatch.setattr(cli, "run_pipeline", fake_run)

    result = CliRunner().invoke(cli.app, ["cut", "demo.mp4", str(events_file), "-o", str(tmp_path / "out.mp4")])

    assert result.exit_code == 0
    assert "[1/8] Initializing..." in result.output
    assert "[7/8] Encoding video..." in result.output
    assert "[7/8] Encoding: 50%" not in result.output


def test_cut_applies_settings_auto_detect_to_blur_map(tmp_path: Path, events_file: Path, monkeypatch) -> None:
    blur_map = tmp_path / "blur.yaml"
    blur_map.write_text(
        "regions:\n"
        "  - id: card\n"
        "    type: fixed\n"
        "    startTime: 0\n"
        "    endTime: 2\n"
        "    coords: {x: 0, y: 0, width: 10, height: 10}\n"
        "    style: {type: solid, color: black}\n",
        encoding="utf-8",
    )
    captured = {}

    def fake_run(options):
        captured["options"] = options
        return PipelineResult(output_path=options.output_path, duration_seconds=0.1)

    monkeypatch.setattr(cli, "run_pipeline", fake_run)

    result = CliRunner().invoke(cli.app, ["cut", "demo.mp4", str(events_file), "--blur-map", str(blur_map)])

    assert result.exit_code == 0
    config = captured["options"].blur_map
    assert [region.id for region in config.regions] == ["card"]
    assert config.auto_detect.passwords is True
    assert config.auto_detect.emails is False


def test_cut_prints_clean_dependency_error(events_file: Path, monkeypatch) -> None:
    def fake_run(options):
        raise DependencyError("ffmpeg")

    monkeypatch.setattr(cli, "run_pipeline", fake_run)

    result = CliRunner().invoke(cli.app, ["cut", "demo.mp4", str(events_file)])

    assert result.exit_code == 1
    assert "Error: Required dependency not found: ffmpeg" in result.output
    assert "FFmpeg 6.0+" in result.output
    assert "Traceback" not in result.output


def test_reframe_single_aspect(tmp_path: Path, monkeypatch) -> None:
    calls = []

    def fake_reframe(input_path, output_path, aspect, **kwargs):
        calls.append((output_path, aspect, kwargs["mode"]))
        return ReframeResult(
            output_path=output_path,
            aspect=aspect,
            input_size=(1920, 1080),
            output_size=(1080, 1920),
            crop=CropWindow(656, 0, 607, 1080),
            duration_seconds=0.2,
        )

    monkeypatch.setattr(cli, "reframe_video", fake_reframe)

    result = CliRunner().invoke(cli.app, ["reframe", "demo.mp4", "-a", "9:16", "-o", str(tmp_path / "out")])

    assert result.exit_code == 0
    assert calls == [(tmp_path / "out" / "demo_9x16.mp4", "9:16", "center")]
    payload = json.loads(result.stdout)
    assert payload[0]["crop"] == {"x": 656, "y": 0, "width": 607, "height": 1080}
    assert payload[0]["output_size"] == [1080, 1920]


def test_reframe_several_aspects_uses_batch(tmp_path: Path, monkeypatch) -> None:
    captured = {}

    def fake_batch(input_path, output_dir, aspects, **kwargs):
        captured.update(aspects=list(aspects), workers=kwargs["max_workers"], mode=kwargs["mode"])
        return [
            ReframeResult(Path(output_dir) / f"demo_{aspect.replace(':', 'x')}.mp4", aspect, (1920, 1080), (1080, 1080), None, 0.1)
            for aspect in aspects
        ]

    monkeypatch.setattr(cli, "batch_reframe", fake_batch)

    result = CliRunner().invoke(
        cli.app,
        ["reframe", "demo.mp4", "-a", "1:1", "-a", "4:5", "--mode", "smart", "--workers", "2"],
    )

    assert result.exit_code == 0
    assert captured == {"aspects": ["1:1", "4:5"], "workers": 2, "mode": "smart"}
    assert [item["aspect"] for item in json.loads(result.stdout)] == ["1:1", "4:5"]


def test_captions_export_writes_srt(tmp_path: Path, events_file: Path) -> None:
    output = tmp_path / "subs.srt"

    result = CliRunner().invoke(cli.app, ["captions", "export", str(events_file), "-o", str(output)])

    assert result.exit_code == 0
    text = output.read_text(encoding="utf-8")
    assert "00:00:01,000 --> 00:00:03,000" in text
    assert "Welcome" in text


def test_captions_export_all_formats_from_steps(tmp_path: Path, events_file: Path) -> None:
    result = CliRunner().invoke(
        cli.app,
        ["captions", "export", str(events_file), "-o", str(tmp_path / "steps.srt"), "--format", "all", "--from-steps"],
    )

    assert result.exit_code == 0
    for suffix in (".srt", ".vtt", ".ass"):
        assert "Open the dashboard" in (tmp_path / f"steps{suffix}").read_text(encoding="utf-8")


def test_captions_export_rejects_unknown_format(tmp_path: Path, events_file: Path) -> None:
    result = CliRunner().invoke(
        cli.app,
        ["captions", "export", str(events_file), "-o", str(tmp_path / "x"), "--format", "sbv"],
    )

    assert result.exit_code == 2
    assert not (tmp_path / "x.sbv").exists()


def test_captions_export_missing_events_file(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli.app, ["captions", "export", str(tmp_path / "gone.ndjson"), "-o", str(tmp_path / "x.srt")])

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_cut_rejects_unknown_aspect_mode(events_file: Path, monkeypatch) -> None:
    def fake_run(options):
        raise AssertionError("pipeline should not start")

    monkeypatch.setattr(cli, "run_pipeline", fake_run)

    result = CliRunner().invoke(cli.app, ["cut", "demo.mp4", str(events_file), "--aspect-mode", "stretch"])

    assert result.exit_code == 2


def test_cut_passes_aspect_mode_as_plain_string(events_file: Path, monkeypatch) -> None:
    captured = {}

    def fake_run(options):
        captured["aspect_mode"] = options.aspect_mode
        return PipelineResult(output_path=options.output_path, duration_seconds=0.1)

    monkeypatch.setattr(cli, "run_pipeline", fake_run)

    result = CliRunner().invoke(cli.app, ["cut", "demo.mp4", str(events_file), "--aspect-mode", "crop"])

    assert result.exit_code == 0
    assert captured["aspect_mode"] == "crop"
    assert type(captured["aspect_mode"]) is str


def test_reframe_rejects_unknown_mode_and_quality() -> None:
    runner = CliRunner()

    assert runner.invoke(cli.app, ["reframe", "demo.mp4", "-a", "9:16", "--mode", "zoomy"]).exit_code == 2
    assert runner.invoke(cli.app, ["reframe", "demo.mp4", "-a", "9:16", "--quality", "ultra"]).exit_code == 2


def test_captions_export_configures_logging(tmp_path: Path, events_file: Path, monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(cli, "configure_logging", lambda settings, verbose=False: calls.append(verbose))

    result = CliRunner().invoke(
        cli.app,
        ["captions", "export", str(events_file), "-o", str(tmp_path / "subs.vtt"), "-f", "vtt", "--verbose"],
    )

    assert result.exit_code == 0
    assert calls == [True]
    assert (tmp_path / "subs.vtt").read_text(encoding="utf-8").startswith("WEBVTT")
