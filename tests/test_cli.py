from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

from builders import rvo_feature, square_geojson


def _run_cli(args: list[str], *, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    repo_root = Path(__file__).resolve().parents[1]
    src_path = str(repo_root / "src")
    env = dict(env or os.environ)
    env["PYTHONPATH"] = src_path + (":" + env["PYTHONPATH"] if env.get("PYTHONPATH") else "")
    return subprocess.run(
        [sys.executable, "-m", "parcel_reconcile.cli", *args],
        check=False,
        text=True,
        capture_output=True,
        env=env,
    )


def _write_inputs(tmp_path: Path, *, catalogue_codes: tuple[str, ...] = ("nl_265",)) -> tuple[Path, Path]:
    farm = {
        "farm_id": "farm-1",
        "fields": [
            {
                "b_id": "local-1",
                "b_id_source": "rvo-1",
                "b_name": "Old",
                "b_geometry": square_geojson(5.0, 52.0, 0.001),
                "b_start": "2024-01-01",
                "b_acquiring_method": "owner",
            },
            {
                "b_id": "local-2",
                "b_name": "Sold",
                "b_geometry": square_geojson(5.02, 52.0, 0.001),
                "b_start": "2020-01-01",
            },
        ],
        "catalogue": [{"b_lu_catalogue": code, "b_lu_name": f"Crop {code}"} for code in catalogue_codes],
    }
    rvo = {
        "type": "FeatureCollection",
        "features": [
            rvo_feature(
                "rvo-1",
                geometry=square_geojson(5.0, 52.0, 0.001),
                CropFieldDesignator="New",
                CropTypeCode="265",
            ),
            rvo_feature(
                "rvo-2",
                geometry=square_geojson(5.01, 52.0, 0.001),
                CropFieldDesignator="Rented",
                BeginDate="2025-01-01",
                CropTypeCode="265",
            ),
        ],
    }
    farm_path = tmp_path / "farm.json"
    rvo_path = tmp_path / "rvo.geojson"
    farm_path.write_text(json.dumps(farm), encoding="utf-8")
    rvo_path.write_text(json.dumps(rvo), encoding="utf-8")
    return farm_path, rvo_path


def _common(farm: Path, rvo: Path) -> list[str]:
    return ["--farm", str(farm), "--rvo", str(rvo), "--year", "2025"]


def test_cli_help() -> None:
    proc = _run_cli(["--help"])
    assert proc.returncode == 0
    assert "Reconcile a farm's field parcels" in proc.stdout


def test_compare_prints_review_report(tmp_path: Path) -> None:
    farm, rvo = _write_inputs(tmp_path)

    proc = _run_cli(["compare", *_common(farm, rvo)])

    assert proc.returncode == 0, proc.stderr
    report = json.loads(proc.stdout)
    assert report["year"] == 2025
    assert [(i["id"], i["status"]) for i in report["items"]] == [
        ("local-1", "CONFLICT"),
        ("rvo-2", "NEW_REMOTE"),
        ("local-2", "EXPIRED_LOCAL"),
    ]
    assert report["items"][0]["diffs"] == ["b_name"]
    assert len(report["inputs"]["farm_sha256"]) == 64


def test_compare_writes_identical_reports(tmp_path: Path) -> None:
    farm, rvo = _write_inputs(tmp_path)
    out1, out2 = tmp_path / "r1.json", tmp_path / "r2.json"

    assert _run_cli(["compare", *_common(farm, rvo), "--out", str(out1)]).returncode == 0
    assert _run_cli(["compare", *_common(farm, rvo), "--out", str(out2)]).returncode == 0

    assert out1.read_bytes() == out2.read_bytes()


def test_apply_writes_updated_farm(tmp_path: Path) -> None:
    farm, rvo = _write_inputs(tmp_path)
    choices = tmp_path / "choices.json"
    choices.write_text(
        json.dumps({"local-1": "UPDATE_FROM_REMOTE", "rvo-2": "ADD_REMOTE", "local-2": "CLOSE_LOCAL"}),
        encoding="utf-8",
    )
    out = tmp_path / "farm.out.json"

    proc = _run_cli(["apply", *_common(farm, rvo), "--choices", str(choices), "--out", str(out)])

    assert proc.returncode == 0, proc.stderr
    summary = json.loads(proc.stdout)
    assert summary["applied"] == 3
    assert len(summary["added_field_ids"]) == 1

    fields = {f["b_id"]: f for f in json.loads(out.read_text(encoding="utf-8"))["fields"]}
    assert fields["local-1"]["b_name"] == "New"
    assert fields["local-1"]["b_acquiring_method"] == "rvo_import"
    assert fields["local-2"]["b_end"] == "2024-12-31"

    added = fields[summary["added_field_ids"][0]]
    assert added["b_id_source"] == "rvo-2"
    assert added["b_start"] == "2025-01-01"
    assert added["cultivations"][0]["b_lu_catalogue"] == "nl_265"
    assert added["cultivations"][0]["b_lu_start"] == "2025-03-15"
    assert added["cultivations"][0]["b_lu_end"] == "2025-09-15"


def _failing_apply(tmp_path: Path, *extra: str) -> tuple[subprocess.CompletedProcess[str], dict]:
    # nl_265 missing from the catalogue: adding rvo-2 fails after local-1 was updated.
    farm, rvo = _write_inputs(tmp_path, catalogue_codes=())
    choices = tmp_path / "choices.json"
    choices.write_text(json.dumps({"local-1": "UPDATE_FROM_REMOTE", "rvo-2": "ADD_REMOTE"}), encoding="utf-8")
    out = tmp_path / "farm.out.json"

    proc = _run_cli(["apply", *_common(farm, rvo), "--choices", str(choices), "--out", str(out), *extra])
    fields = {f["b_id"]: f for f in json.loads(out.read_text(encoding="utf-8"))["fields"]}
    return proc, fields


def test_apply_failure_keeps_earlier_changes(tmp_path: Path) -> None:
    proc, fields = _failing_apply(tmp_path)

    assert proc.returncode == 2
    assert "nl_265" in proc.stderr
    assert fields["local-1"]["b_name"] == "New"
    assert len(fields) == 3


def test_apply_atomic_failure_rolls_back(tmp_path: Path) -> None:
    proc, fields = _failing_apply(tmp_path, "--atomic")

    assert proc.returncode == 2
    assert fields["local-1"]["b_name"] == "Old"
    assert sorted(fields) == ["local-1", "local-2"]


def test_invalid_input_exits_2(tmp_path: Path) -> None:
    farm, rvo = _write_inputs(tmp_path)
    farm.write_text(json.dumps({"fields": []}), encoding="utf-8")

    proc = _run_cli(["compare", *_common(farm, rvo)])

    assert proc.returncode == 2
    assert "error:" in proc.stderr
    assert proc.stdout == ""


def test_invalid_config_exits_2(tmp_path: Path) -> None:
    farm, rvo = _write_inputs(tmp_path)
    env = dict(os.environ, PARCEL_RECONCILE_AREA_METHOD="mercator")

    proc = _run_cli(["compare", *_common(farm, rvo)], env=env)

    assert proc.returncode == 2
    assert "PARCEL_RECONCILE_AREA_METHOD" in proc.stderr
