"""
Tests for CLI output formatting.
"""

import json

import pytest

from mapsimplify.cli.output import LayerResult, OutputFormatter, RunResult
from mapsimplify.config import LayerConfig, MasterConfig


@pytest.fixture
def layer_result() -> LayerResult:
    return LayerResult(
        name="counties",
        features=10,
        rejected=1,
        dropped=0,
        vertices_before=1000,
        vertices_after=50,
        output_path="/out/counties.gpkg",
    )


class TestResultModels:
    """Tests for result dataclass validation."""

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError, match="vertices_after must be non-negative"):
            LayerResult(
                name="x", features=1, rejected=0, dropped=0, vertices_before=4, vertices_after=-1, output_path="x"
            )

    @pytest.mark.parametrize("status", ["done", "failure"])
    def test_invalid_status(self, layer_result, status):
        """Errors exit through print_error, so a run result is never a failure."""
        with pytest.raises(ValueError, match="status must be one of"):
            RunResult(status, 0, [layer_result], 10, 1, None)

    @pytest.mark.parametrize("exit_code", [2, 3])
    def test_invalid_exit_code(self, layer_result, exit_code):
        with pytest.raises(ValueError, match="exit_code must be one of"):
            RunResult("success", exit_code, [layer_result], 10, 1, None)


class TestOutputFormatter:
    """Tests for text and JSON output."""

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="output_format must be 'text' or 'json'"):
            OutputFormatter(output_format="xml")

    def test_json_result(self, layer_result, capsys):
        OutputFormatter(output_format="json").print_result(
            RunResult("partial_success", 1, [layer_result], 10, 1, "/out/REJECTED.csv")
        )

        payload = json.loads(capsys.readouterr().out)
        assert payload["status"] == "partial_success"
        assert payload["layers"][0]["vertices_after"] == 50
        assert payload["rejected_log"] == "/out/REJECTED.csv"

    def test_text_result(self, layer_result, capsys):
        OutputFormatter(output_format="text").print_result(RunResult("success", 0, [layer_result], 10, 1, None))

        out = capsys.readouterr().out
        assert "Complete!" in out
        assert "counties" in out
        assert "5.0%" in out

    def test_text_partial_success(self, layer_result, capsys):
        OutputFormatter(output_format="text").print_result(
            RunResult("partial_success", 1, [layer_result], 10, 1, "/out/REJECTED.csv")
        )

        assert "Partially Complete" in capsys.readouterr().out

    def test_json_error(self, capsys):
        OutputFormatter(output_format="json").print_error("Broken", hint="Fix it", details="trace")

        payload = json.loads(capsys.readouterr().out)
        assert payload == {"error": "Broken", "hint": "Fix it", "details": "trace"}

    def test_progress_suppressed_when_quiet(self, capsys):
        OutputFormatter(output_format="text", quiet=True).print_progress("working")
        OutputFormatter(output_format="json").print_progress("working")
        assert capsys.readouterr().out == ""

    def test_verbose_only_when_enabled(self, capsys):
        OutputFormatter(output_format="text").print_verbose("detail")
        assert capsys.readouterr().out == ""

        OutputFormatter(output_format="text", verbose=True).print_verbose("detail")
        assert "detail" in capsys.readouterr().out

    def test_json_dry_run(self, tmp_path, capsys):
        existing = tmp_path / "a.gpkg"
        existing.touch()
        config = MasterConfig(
            layers=[
                LayerConfig(name="a", input=str(existing), keep=0.5),
                LayerConfig(name="b", input=str(tmp_path / "missing.gpkg")),
            ]
        )

        OutputFormatter(output_format="json").print_dry_run(config)

        payload = json.loads(capsys.readouterr().out)
        assert payload["valid"] is False
        assert [layer["exists"] for layer in payload["layers"]] == [True, False]
        assert [layer["keep"] for layer in payload["layers"]] == [0.5, 0.05]

    def test_json_layer_info(self, capsys):
        OutputFormatter(output_format="json").print_layer_info("parcels", [("p1", 1, 2, 12)])

        payload = json.loads(capsys.readouterr().out)
        assert payload == {
            "layer": "parcels",
            "features": [{"feature_id": "p1", "polygons": 1, "rings": 2, "vertices": 12}],
        }
