"""Tests for the outcome runtime CLI."""

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from outcome_runtime import __version__
from outcome_runtime.cli.documents import (
    SignificanceDocument,
    load_document,
    parse_document,
)
from outcome_runtime.cli.main import cli
from outcome_runtime.core.exceptions import ConfigValidationError
from outcome_runtime.statistics import Variant

PLAN = {
    "min_sample_size": 3,
    "confidence_required": 0.95,
    "success_threshold": 0.5,
    "kill_threshold": 0.5,
}


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every CLI test from an empty directory with no config file."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _write(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


class TestDocuments:
    """Tests for input document parsing."""

    def test_value_lists_become_measurements(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "doc.yaml",
            {"plan": PLAN, "control": [1.0, 2.0], "treatment": [3.0]},
        )

        document = parse_document(path, SignificanceDocument)

        assert [m.variant for m in document.measurements] == [
            Variant.CONTROL,
            Variant.CONTROL,
            Variant.TREATMENT,
        ]
        assert document.values() == ([1.0, 2.0], [3.0])

    def test_records_and_lists_combine(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "doc.yaml",
            {
                "plan": PLAN,
                "measurements": [{"value": 5.0, "variant": "treatment"}],
                "control": [1.0],
            },
        )
        assert parse_document(path, SignificanceDocument).values() == ([1.0], [5.0])

    def test_json_documents(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.json"
        path.write_text(json.dumps({"plan": PLAN}))
        assert parse_document(path, SignificanceDocument).measurements == []

    def test_validation_errors_are_collected(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "doc.yaml", {"plan": {"min_sample_size": 0}})

        with pytest.raises(ConfigValidationError) as exc_info:
            parse_document(path, SignificanceDocument)

        errors = exc_info.value.errors
        assert "plan.min_sample_size" in errors
        assert "plan.confidence_required" in errors
        assert exc_info.value.file_path == str(path)

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigValidationError, match="must be a mapping"):
            load_document(path)

    def test_invalid_yaml_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("plan: [unclosed")
        with pytest.raises(ConfigValidationError, match="Invalid YAML"):
            load_document(path)


class TestCliGroup:
    """Tests for the top-level command group."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_without_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "significance" in result.output
        assert "portfolio" in result.output

    def test_missing_config_file(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--config", "nope.yaml", "config"])
        assert result.exit_code == 2


class TestConfigCommand:
    """Tests for the config command."""

    def test_prints_example(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["config"])
        assert result.exit_code == 0
        assert "default_sla_hours: 24" in result.output

    def test_writes_example(self, runner: CliRunner, tmp_path: Path) -> None:
        target = tmp_path / "outcome.config.yaml"
        result = runner.invoke(cli, ["config", "--output", str(target)])
        assert result.exit_code == 0
        assert target.exists()
        assert "written to" in result.output

    def test_show_effective_config(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test --show reflects the loaded config file."""
        config = _write(tmp_path / "custom.yaml", {"gates": {"default_sla_hours": 6}})

        result = runner.invoke(cli, ["--config", str(config), "config", "--show"])

        assert result.exit_code == 0
        shown = yaml.safe_load(result.stdout)
        assert shown["gates"]["default_sla_hours"] == 6
        assert shown["portfolio"]["max_concurrent"] == 3


class TestLoggingOptions:
    """Tests for logging set up by the CLI group."""

    def _run(self, runner: CliRunner, tmp_path: Path, *args: str) -> list[dict]:
        log_file = tmp_path / "cli.log"
        config = _write(
            tmp_path / "log.yaml",
            {"logging": {"file": str(log_file), "json_output": True}},
        )
        path = _write(
            tmp_path / "doc.yaml",
            {"plan": PLAN, "control": [1.0, 2.0, 3.0], "treatment": [2.0, 3.0, 4.0]},
        )

        result = runner.invoke(
            cli, ["--config", str(config), *args, "significance", str(path)]
        )

        assert result.exit_code == 0
        if not log_file.exists():
            return []
        return [json.loads(line) for line in log_file.read_text().splitlines()]

    def test_configured_level_hides_debug(
        self, runner: CliRunner, tmp_path: Path
    ) -> None:
        records = self._run(runner, tmp_path)
        assert all(r["event"] != "significance_evaluated" for r in records)

    def test_verbose_overrides_level(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test --verbose logs debug events tagged with a per-run correlation id."""
        records = self._run(runner, tmp_path, "--verbose")

        evaluated = [r for r in records if r["event"] == "significance_evaluated"]
        assert len(evaluated) == 1
        assert evaluated[0]["level"] == "debug"
        assert len(evaluated[0]["correlation_id"]) == 36


class TestSignificanceCommand:
    """Tests for the significance command."""

    def test_significant_lift(self, runner: CliRunner, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "lift.yaml",
            {
                "plan": PLAN,
                "control": [10.0, 10.2, 9.8, 10.1, 9.9] * 4,
                "treatment": [11.0, 11.2, 10.8, 11.1, 10.9] * 4,
            },
        )

        result = runner.invoke(cli, ["significance", str(path), "--output", "json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["significant"] is True
        assert payload["estimated_delta"] == pytest.approx(1.0)
        assert payload["threshold"] == pytest.approx(20.0)
        assert payload["relative_lift"]["point_estimate"] == pytest.approx(0.1)

    def test_kill_threshold_exit_code(self, runner: CliRunner, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "harm.yaml",
            {"plan": PLAN, "control": [10.0] * 3, "treatment": [9.0] * 3},
        )

        result = runner.invoke(cli, ["significance", str(path), "--output", "json"])

        assert result.exit_code == 1
        assert json.loads(result.stdout)["exceeds_kill_threshold"] is True

    def test_insufficient_sample(self, runner: CliRunner, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "small.yaml",
            {"plan": PLAN, "control": [1.0], "treatment": [2.0]},
        )

        result = runner.invoke(cli, ["significance", str(path), "--output", "json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["reason"] == "insufficient_sample"
        assert "relative_lift" not in payload

    def test_console_output(self, runner: CliRunner, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "flat.yaml",
            {"plan": PLAN, "control": [1.0, 2.0, 3.0], "treatment": [1.0, 2.0, 3.0]},
        )

        result = runner.invoke(cli, ["significance", str(path)])

        assert result.exit_code == 0
        assert "Sequential Test" in result.output
        assert "Threshold" in result.output

    def test_invalid_document(self, runner: CliRunner, tmp_path: Path) -> None:
        path = _write(tmp_path / "bad.yaml", {"control": [1.0]})

        result = runner.invoke(cli, ["significance", str(path)])

        assert result.exit_code == 2
        assert "Error:" in result.output

    def test_settings_z_score_applies(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test the configured z multiplier drives the reported interval."""
        config = _write(tmp_path / "cfg.yaml", {"statistics": {"ci_z_score": 1.0}})
        path = _write(
            tmp_path / "doc.yaml",
            {"plan": PLAN, "control": [1.0, 2.0, 3.0], "treatment": [2.0, 3.0, 4.0]},
        )

        result = runner.invoke(
            cli,
            ["--config", str(config), "significance", str(path), "--output", "json"],
        )

        lower, upper = json.loads(result.stdout)["confidence_interval"]
        se = (2 / 3) ** 0.5
        assert lower == pytest.approx(1.0 - se)
        assert upper == pytest.approx(1.0 + se)


class TestPortfolioCommand:
    """Tests for the portfolio command."""

    @pytest.fixture
    def candidates_file(self, tmp_path: Path) -> Path:
        def candidate(title: str, delta: float, files: list[str]) -> dict:
            return {
                "title": title,
                "prediction": {"expected_delta": delta, "confidence": 1.0},
                "risk_level": "low",
                "effort_hours": 4,
                "reversible": True,
                "affected_files": files,
            }

        return _write(
            tmp_path / "candidates.yaml",
            {
                "candidates": [
                    candidate("A", 0.9, ["x"]),
                    candidate("B", 0.8, ["x"]),
                    candidate("C", 0.7, ["y"]),
                ]
            },
        )

    def test_selects_non_conflicting(
        self, runner: CliRunner, candidates_file: Path
    ) -> None:
        result = runner.invoke(
            cli, ["portfolio", str(candidates_file), "-n", "2", "--output", "json"]
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["max_concurrent"] == 2
        assert [c["title"] for c in payload["selected"]] == ["A", "C"]
        assert [c["title"] for c in payload["candidates"]] == ["A", "B", "C"]
        assert all("score" in c for c in payload["candidates"])

    def test_default_limit_from_settings(
        self, runner: CliRunner, candidates_file: Path
    ) -> None:
        result = runner.invoke(
            cli, ["portfolio", str(candidates_file), "--output", "json"]
        )
        assert json.loads(result.stdout)["max_concurrent"] == 3

    def test_console_output(self, runner: CliRunner, candidates_file: Path) -> None:
        result = runner.invoke(cli, ["portfolio", str(candidates_file), "-n", "2"])
        assert result.exit_code == 0
        assert "2 of max 2 selected" in result.output

    def test_negative_limit_rejected(
        self, runner: CliRunner, candidates_file: Path
    ) -> None:
        result = runner.invoke(cli, ["portfolio", str(candidates_file), "-n", "-1"])
        assert result.exit_code == 2

    def test_invalid_candidates(self, runner: CliRunner, tmp_path: Path) -> None:
        path = _write(tmp_path / "bad.yaml", {"candidates": [{"title": "x"}]})
        result = runner.invoke(cli, ["portfolio", str(path)])
        assert result.exit_code == 2
        assert "Error:" in result.output
