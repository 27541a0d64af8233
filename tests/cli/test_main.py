"""
Tests for the mapsimplify Typer CLI.

Commands are invoked in-process with typer's CliRunner. Output is requested
as JSON so results can be parsed from stdout.
"""

import csv
import json
from pathlib import Path

import geopandas as gpd
from typer.testing import CliRunner

from mapsimplify.cli import app
from mapsimplify.config import ENV_OUTPUT_DIR

runner = CliRunner()


def _run(*args: str):
    return runner.invoke(app, [*args, "--output-format", "json"])


class TestRunCommand:
    """Tests for `mapsimplify run`."""

    def test_success(self, squares_gpkg: Path, write_config, tmp_path: Path):
        config = write_config({"squares": squares_gpkg.name}, keep=0.5)

        result = _run("run", str(config), "--quiet")

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["status"] == "success"
        assert payload["total_features"] == 3
        assert payload["total_rejected"] == 0
        assert payload["rejected_log"] is None

        layer = payload["layers"][0]
        assert layer["name"] == "squares"
        assert layer["vertices_before"] == 12
        assert layer["vertices_after"] == 9

        output = tmp_path / "out" / "squares.gpkg"
        assert Path(layer["output_path"]) == output.resolve()
        gdf = gpd.read_file(output, layer="squares")
        assert list(gdf["name"]) == ["west", "east", "island"]
        assert all(len(g.exterior.coords) == 4 for g in gdf.geometry)

    def test_dry_run(self, squares_gpkg: Path, write_config, tmp_path: Path):
        config = write_config({"squares": squares_gpkg.name})

        result = _run("run", str(config), "--dry-run", "--quiet")

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["valid"] is True
        assert payload["layers"][0]["name"] == "squares"
        assert payload["layers"][0]["keep"] == 0.05
        assert not (tmp_path / "out").exists()

    def test_keep_override(self, squares_gpkg: Path, write_config):
        config = write_config({"squares": squares_gpkg.name}, keep=0.5)

        result = _run("run", str(config), "--keep", "1.0", "--quiet")

        assert result.exit_code == 0, result.output
        layer = json.loads(result.stdout)["layers"][0]
        assert layer["vertices_after"] == layer["vertices_before"] == 12

    def test_output_override(self, squares_gpkg: Path, write_config, tmp_path: Path):
        config = write_config({"squares": squares_gpkg.name})
        override = tmp_path / "elsewhere"

        result = _run("run", str(config), "-o", str(override), "--quiet")

        assert result.exit_code == 0, result.output
        assert (override / "squares.gpkg").exists()

    def test_output_dir_from_environment(self, squares_gpkg: Path, write_config, tmp_path: Path, monkeypatch):
        config = write_config({"squares": squares_gpkg.name})
        monkeypatch.setenv(ENV_OUTPUT_DIR, str(tmp_path / "from_env"))

        result = _run("run", str(config), "--quiet")

        assert result.exit_code == 0, result.output
        assert (tmp_path / "from_env" / "squares.gpkg").exists()

    def test_shapefile_output(self, squares_gpkg: Path, write_config, tmp_path: Path):
        config = write_config({"squares": squares_gpkg.name}, file_format="shp")

        result = _run("run", str(config), "--quiet")

        assert result.exit_code == 0, result.output
        assert (tmp_path / "out" / "squares.shp").exists()

    def test_partial_success_writes_rejected_log(self, mixed_geojson: Path, write_config, tmp_path: Path):
        config = write_config({"mixed": mixed_geojson.name})

        result = _run("run", str(config), "--quiet")

        assert result.exit_code == 1, result.output
        payload = json.loads(result.stdout)
        assert payload["status"] == "partial_success"
        assert payload["total_rejected"] == 1

        with open(tmp_path / "out" / "REJECTED.csv", newline="") as f:
            rows = list(csv.DictReader(f))
        assert rows[0]["layer_name"] == "mixed"
        assert "Point" in rows[0]["error"]

    def test_on_invalid_raise_aborts(self, mixed_geojson: Path, write_config):
        config = write_config({"mixed": mixed_geojson.name}, on_invalid="raise")

        result = _run("run", str(config), "--quiet")

        assert result.exit_code == 2

    def test_existing_output_requires_force(self, squares_gpkg: Path, write_config):
        config = write_config({"squares": squares_gpkg.name})
        assert _run("run", str(config), "--quiet").exit_code == 0

        assert _run("run", str(config), "--quiet").exit_code == 2
        assert _run("run", str(config), "--force", "--quiet").exit_code == 0

    def test_missing_input(self, write_config):
        config = write_config({"squares": "does_not_exist.gpkg"})

        result = _run("run", str(config), "--quiet")

        assert result.exit_code == 2

    def test_invalid_config(self, squares_gpkg: Path, write_config):
        config = write_config({"squares": squares_gpkg.name}, keep=2.0)

        result = _run("run", str(config), "--quiet")

        assert result.exit_code == 2

    def test_invalid_output_format(self, squares_gpkg: Path, write_config):
        config = write_config({"squares": squares_gpkg.name})

        result = runner.invoke(app, ["run", str(config), "--output-format", "xml", "--quiet"])

        assert result.exit_code == 2


class TestSimplifyCommand:
    """Tests for `mapsimplify simplify`."""

    def test_simplify_to_geopackage(self, squares_gpkg: Path, tmp_path: Path):
        output = tmp_path / "result" / "simple.gpkg"

        result = _run("simplify", str(squares_gpkg), str(output), "--keep", "0.5", "--quiet")

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["layers"][0]["name"] == "simple"
        assert payload["layers"][0]["vertices_after"] == 9

        gdf = gpd.read_file(output, layer="simple")
        assert len(gdf) == 3
        assert gdf.crs.to_epsg() == 4326

    def test_simplify_with_options(self, squares_gpkg: Path, tmp_path: Path):
        output = tmp_path / "simple.shp"

        result = _run(
            "simplify",
            str(squares_gpkg),
            str(output),
            "--keep",
            "0.5",
            "--method",
            "dp",
            "--no-keep-shapes",
            "--target-crs",
            "EPSG:3857",
            "--workers",
            "2",
            "--quiet",
        )

        assert result.exit_code == 0, result.output
        assert gpd.read_file(output).crs.to_epsg() == 3857

    def test_unsupported_extension(self, squares_gpkg: Path, tmp_path: Path):
        result = _run("simplify", str(squares_gpkg), str(tmp_path / "out.geojson"), "--quiet")
        assert result.exit_code == 2

    def test_keep_zero_rejected(self, squares_gpkg: Path, tmp_path: Path):
        result = _run("simplify", str(squares_gpkg), str(tmp_path / "out.gpkg"), "--keep", "0", "--quiet")
        assert result.exit_code == 2

    def test_invalid_method(self, squares_gpkg: Path, tmp_path: Path):
        result = _run("simplify", str(squares_gpkg), str(tmp_path / "out.gpkg"), "--method", "rdp", "--quiet")
        assert result.exit_code == 2

    def test_missing_input(self, tmp_path: Path):
        result = _run("simplify", str(tmp_path / "missing.gpkg"), str(tmp_path / "out.gpkg"))
        assert result.exit_code == 2


class TestInfoCommand:
    """Tests for `mapsimplify info`."""

    def test_info(self, squares_gpkg: Path):
        result = _run("info", str(squares_gpkg))

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["layer"] == str(squares_gpkg)
        assert [f["vertices"] for f in payload["features"]] == [4, 4, 4]
        assert all(f["polygons"] == 1 and f["rings"] == 1 for f in payload["features"])
