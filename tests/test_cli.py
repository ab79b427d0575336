# tests/test_cli.py
import json
import logging

import pytest

from floorlink.config import settings
from floorlink.data.models import Feature, FeatureProperties, Map, Store, StoreCategory
from floorlink.presentation.cli import build_parser, main

OWNER = "user-1"


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """JSON collections with one unlinked store and one orphan feature link"""
    monkeypatch.setattr(settings.storage, "backend", "json")
    monkeypatch.setattr(settings.storage, "data_dir", tmp_path)
    monkeypatch.setattr(settings.logging, "console_enabled", False)
    monkeypatch.setattr(settings.logging, "file_enabled", False)

    map_ = Map(
        id="M1",
        owner_id=OWNER,
        name="Hall A",
        features=[
            Feature(id="F1", properties=FeatureProperties(type="local", name="Booth 1")),
            Feature(id="F2", properties=FeatureProperties(type="local", name="Booth 2", store_id="S-gone")),
        ]
    )
    store = Store(id="S1", name="Coffee Corner", category=StoreCategory.FOOD, map_id="M1", feature_id="F1", owner_id=OWNER)

    (tmp_path / "maps.json").write_text(json.dumps({map_.id: map_.to_dict()}))
    (tmp_path / "stores.json").write_text(json.dumps({store.id: store.to_dict()}))
    yield tmp_path

    package_logger = logging.getLogger("floorlink")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)


def run_json(capsys, *argv):
    code = main(["--json", *argv])
    return code, json.loads(capsys.readouterr().out)


def test_parser_requires_a_command():
    """Test that a subcommand is mandatory"""
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_audit_then_repair(data_dir, capsys):
    """Test the audit exit code before and after a repair"""
    code, report = run_json(capsys, "--data-dir", str(data_dir), "audit")
    assert code == 1
    assert (report["total"], report["needs_fix"], report["orphans"]) == (1, 1, 1)

    code, report = run_json(capsys, "--data-dir", str(data_dir), "repair")
    assert code == 0
    assert (report["fixed"], report["cleared"]) == (1, 1)

    stored = json.loads((data_dir / "maps.json").read_text())
    features = {f["id"]: f["properties"] for f in stored["M1"]["features"]}
    assert features["F1"]["storeId"] == "S1"
    assert "storeId" not in features["F2"]

    code, report = run_json(capsys, "--data-dir", str(data_dir), "audit")
    assert code == 0
    assert report["ok"] == 1


def test_repair_keep_orphans(data_dir, capsys):
    """Test that --keep-orphans leaves orphan links in place"""
    code, report = run_json(capsys, "--data-dir", str(data_dir), "repair", "--keep-orphans")

    assert code == 0
    assert report["cleared"] == 0
    stored = json.loads((data_dir / "maps.json").read_text())
    assert stored["M1"]["features"][1]["properties"]["storeId"] == "S-gone"


def test_audit_owner_scope(data_dir, capsys):
    """Test that --owner limits the stores audited"""
    code, report = run_json(capsys, "--data-dir", str(data_dir), "audit", "--owner", "user-2")

    assert code == 0
    assert report["total"] == 0


def test_stores_listing(data_dir, capsys):
    """Test the store listing in both output modes"""
    code, stores = run_json(capsys, "--data-dir", str(data_dir), "stores", "--owner", OWNER)
    assert code == 0
    assert [s["id"] for s in stores] == ["S1"]

    code = main(["--no-color", "--data-dir", str(data_dir), "stores", "--map", "M1"])
    out = capsys.readouterr().out
    assert code == 0
    assert "Coffee Corner" in out
    assert "1 stores" in out


def test_table_output(data_dir, capsys):
    """Test the plain-text audit report"""
    code = main(["--no-color", "--data-dir", str(data_dir), "audit"])
    out = capsys.readouterr().out

    assert code == 1
    assert "missing_link" in out
    assert "orphan_link" in out
    assert "store_not_found" in out


def test_debug_mode_sets_log_level(data_dir, capsys, monkeypatch):
    """Test that DEBUG_MODE turns on debug logging when no level is given"""
    monkeypatch.setattr(settings, "debug_mode", True)

    main(["--json", "--data-dir", str(data_dir), "stores"])
    capsys.readouterr()

    assert logging.getLogger("floorlink").level == logging.DEBUG


def test_log_level_option_overrides_debug_mode(data_dir, capsys, monkeypatch):
    """Test that --log-level wins over DEBUG_MODE"""
    monkeypatch.setattr(settings, "debug_mode", True)

    main(["--json", "--log-level", "WARNING", "--data-dir", str(data_dir), "stores"])
    capsys.readouterr()

    assert logging.getLogger("floorlink").level == logging.WARNING
