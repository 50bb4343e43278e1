import csv
import logging
from datetime import datetime
from pathlib import Path

import pytest

from asset_recovery import config
from asset_recovery.exceptions import ReportError
from asset_recovery.models import AssetInfo, BackupFile, DiscoveryResult, RunSummary, SearchResult, group_by_canvas
from asset_recovery.reporting import ReportGenerator, log_summary


def _asset(h, canvas_id, canvas_name, widget_id, filename="", widget_type="Image", name="Widget"):
    return AssetInfo(hash=h, widget_type=widget_type, original_filename=filename, canvas_id=canvas_id,
                     canvas_name=canvas_name, widget_id=widget_id, widget_name=name)


@pytest.fixture
def missing():
    return [
        _asset("BBBBBBBB", "c2", "Zeta", "w1", "deck.pdf", "Pdf", "Deck"),
        _asset("CCCCCCCC", "c1", "Alpha", "w2", "", "CanvasBackground", "Canvas Background"),
        _asset("BBBBBBBB", "c1", "Alpha", "w3", "deck.pdf", "Pdf", "Deck copy"),
    ]


@pytest.fixture
def search(tmp_path):
    found = BackupFile(path=tmp_path / "snap" / "BBBBBBBB.pdf", hash="BBBBBBBB", filename="BBBBBBBB.pdf",
                       extension=".pdf", size=42, modified_time=datetime(2025, 2, 1, 12, 30),
                       relative_path=Path("BBBBBBBB.pdf"))
    return SearchResult(found_files={"BBBBBBBB": [found]}, missing_hashes=["CCCCCCCC"], total_searched=1,
                        total_files=1)


def test_missing_asset_infos_keeps_every_occurrence():
    discovery = DiscoveryResult(start_time=datetime.now())
    discovery.add_assets([
        _asset("AAAAAAAA", "c1", "Alpha", "w1"),
        _asset("BBBBBBBB", "c1", "Alpha", "w2"),
        _asset("BBBBBBBB", "c2", "Zeta", "w3"),
    ])

    infos = ReportGenerator.missing_asset_infos(discovery, ["BBBBBBBB"])

    assert [(a.canvas_id, a.widget_id) for a in infos] == [("c1", "w2"), ("c2", "w3")]


def test_text_report_groups_by_canvas(tmp_path, missing, search):
    out = tmp_path / "out"
    out.mkdir()

    path = ReportGenerator(out).write_text_report(missing, search)
    text = path.read_text(encoding="utf-8")

    assert path.name == config.TEXT_REPORT_NAME
    assert text.startswith("Canvus Asset Recovery - Missing Assets Report")
    assert "Total Missing Assets: 2" in text
    # Canvases are listed alphabetically
    assert text.index("Canvas: Alpha (ID: c1)") < text.index("Canvas: Zeta (ID: c2)")
    assert text.count("Hash: BBBBBBBB") == 2
    assert "Original Filename: deck.pdf" in text
    assert "Backup Status: Found in backup" in text
    assert "Backup Size: 42 bytes" in text
    assert "Backup Modified: 2025-02-01 12:30:00" in text
    assert "Backup Status: Not found in any backup" in text


def test_text_report_without_search_omits_backup_status(tmp_path, missing):
    path = ReportGenerator(tmp_path).write_text_report(missing, None)

    assert "Backup Status" not in path.read_text(encoding="utf-8")


def test_csv_report_one_row_per_hash(tmp_path, missing, search):
    path = ReportGenerator(tmp_path).write_csv_report(missing, search)

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))

    assert rows[0] == config.CSV_HEADERS
    body = {r[0]: dict(zip(config.CSV_HEADERS, r)) for r in rows[1:]}
    assert len(rows) == 3
    assert body["BBBBBBBB"]["BackupStatus"] == "Found"
    assert body["BBBBBBBB"]["BackupSize"] == "42"
    assert body["BBBBBBBB"]["BackupModified"] == "2025-02-01 12:30:00"
    # Alpha sorts before Zeta, so its reference supplies the metadata
    assert body["BBBBBBBB"]["CanvasName"] == "Alpha"
    assert body["BBBBBBBB"]["WidgetID"] == "w3"
    assert body["CCCCCCCC"]["BackupStatus"] == "Not Found"
    assert body["CCCCCCCC"]["BackupPath"] == ""
    assert body["CCCCCCCC"]["WidgetType"] == "CanvasBackground"


def test_generate_reports_creates_output_dir(tmp_path, missing, search):
    out = tmp_path / "nested" / "output"

    paths = ReportGenerator(out).generate_reports(missing, search)

    assert [p.name for p in paths] == [config.TEXT_REPORT_NAME, config.CSV_REPORT_NAME]
    assert all(p.exists() for p in paths)


def test_generate_reports_wraps_os_errors(tmp_path, missing, search):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")

    with pytest.raises(ReportError):
        ReportGenerator(blocker / "out").generate_reports(missing, search)


def test_log_summary_mentions_restore_only_when_performed(caplog):
    caplog.set_level(logging.INFO)
    summary = RunSummary(canvases=2, missing=3, backup_found=1, still_missing=2)

    log_summary(summary)
    assert "Missing assets:        3" in caplog.text
    assert "Restored:" not in caplog.text

    caplog.clear()
    summary.restore_performed = True
    summary.restored = 1
    log_summary(summary)
    assert "Restored:              1" in caplog.text


def test_reports_do_not_depend_on_reference_order(tmp_path, missing, search):
    first = ReportGenerator(tmp_path / "a")
    second = ReportGenerator(tmp_path / "b")
    for gen, refs in ((first, missing), (second, list(reversed(missing)))):
        gen.output_dir.mkdir()
        gen.write_csv_report(refs, search)
        gen.write_text_report(refs, search)

    for name in (config.CSV_REPORT_NAME, config.TEXT_REPORT_NAME):
        a = (first.output_dir / name).read_text(encoding="utf-8").splitlines()
        b = (second.output_dir / name).read_text(encoding="utf-8").splitlines()
        # Skip the "Generated:" timestamp line
        assert [line for line in a if not line.startswith("Generated:")] == \
               [line for line in b if not line.startswith("Generated:")]


def test_group_by_canvas_matches_discovery_view():
    discovery = DiscoveryResult(start_time=datetime.now())
    discovery.add_assets([
        _asset("AAAAAAAA", "c1", "Alpha", "w1"),
        _asset("BBBBBBBB", "c2", "Zeta", "w2"),
        _asset("CCCCCCCC", "c1", "Alpha", "w3"),
    ])

    assert group_by_canvas(discovery.assets) == discovery.get_assets_by_canvas()
    assert [a.widget_id for a in group_by_canvas(discovery.assets)["Alpha"]] == ["w1", "w3"]
