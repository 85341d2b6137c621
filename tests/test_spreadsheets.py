"""Tests for vendor spreadsheet imports and the imports/ folder watcher."""

import pandas as pd
import pytest

from app.importers import detect_source, import_file
from app.importers.spreadsheets import cell, detect_columns, infer_source
from app.importers.watcher import PROCESSED_DIRNAME, ImportWatcher, pending_files
from app.models import Helmet, HelmetPrice

DENVER_FS = pd.DataFrame(
    [
        ["Patrick Mahomes", "Kansas City Chiefs", "Speed Authentic", "Eclipse", 1299.99],
        ["Mahomes, Patrick", "Kansas City Chiefs", "Speed Authentic", "Eclipse", 1250],
        ["Josh Allen", "Buffalo Bills", "Replica", "", None],
    ],
    columns=["Player", "Team", "Type", "Design", "Price"],
)
DENVER_MINI = pd.DataFrame(
    [["Josh Allen", "Buffalo Bills", "", "Mini", 129.99]],
    columns=["Player", "Team", "Notes", "Type", "Price"],
)


def write_workbook(path, sheets):
    with pd.ExcelWriter(path) as writer:
        for name, frame in sheets.items():
            frame.to_excel(writer, sheet_name=name, index=False)
    return path


@pytest.fixture
def denver_file(tmp_path):
    return write_workbook(
        tmp_path / "denver_inventory.xlsx",
        {
            "FS HELMET": DENVER_FS,
            "MINI & MIDI HELMET": DENVER_MINI,
            "Notes": pd.DataFrame([["ignore me"]], columns=["Text"]),
        },
    )


class TestSourceDetection:
    @pytest.mark.parametrize(
        "filename,source",
        [
            ("Denver_Autographs_March.xlsx", "denverautographs"),
            ("breakers-inventory.xls", "denverautographs"),
            ("fanatics_feb.xlsx", "fanatics"),
            ("ShopRSA.ods", "rsa"),
            ("radtke-list.xlsx", "radtke"),
            ("Signature Sports.xlsx", "signaturesports"),
            ("great_sports_minis.xlsx", "greatsports"),
            ("pristine.xlsx", "pristine"),
            ("acme_helmets.xlsx", None),
        ],
    )
    def test_detect(self, filename, source):
        assert detect_source(filename) == source

    def test_infer_from_first_token(self):
        assert infer_source("Acme_helmets-2024.xlsx") == "acme"
        assert infer_source("fanatics_feb.xlsx") == "fanatics"


class TestHelpers:
    def test_cell(self):
        row = pd.Series({"a": "  Josh ", "b": float("nan"), "c": 12})
        assert cell(row, "a") == "Josh"
        assert cell(row, "b") == ""
        assert cell(row, "c") == "12"
        assert cell(row, "missing") == ""

    def test_detect_columns(self):
        columns = detect_columns(["Player Name", "Team", "Helmet Type", "SRP"])
        assert columns == {"player": "Player Name", "team": "Team", "price": "SRP", "type": "Helmet Type"}


class TestImportFile:
    def test_skips_non_spreadsheets(self, db, tmp_path):
        assert import_file(db, tmp_path / "notes.txt") is None

    def test_denver(self, db, denver_file, exact_reconciler):
        result = import_file(db, denver_file, reconciler=exact_reconciler)

        assert result == {
            "status": "success",
            "file": "denver_inventory.xlsx",
            "source": "denverautographs",
            "added": 2,
            "updated": 1,
            "skipped": 1,
            "errors": 0,
        }
        fs = db.query(Helmet).filter(Helmet.helmet_type == "fullsize-authentic").one()
        assert (fs.player, fs.team, fs.design_type) == ("Patrick Mahomes", "Chiefs", "eclipse")
        assert fs.prices[0].source == "denverautographs"
        assert float(fs.prices[0].median_price) == 1250.0
        mini = db.query(Helmet).filter(Helmet.helmet_type == "mini").one()
        assert (mini.player, mini.team) == ("Josh Allen", "Bills")

    def test_fanatics(self, db, tmp_path, exact_reconciler):
        path = write_workbook(
            tmp_path / "fanatics_feb.xlsx",
            {
                "Sheet1": pd.DataFrame(
                    [
                        ["Josh", "Allen", "Buffalo Bills", "Mini", "Flash Mini Helmet", 149.99],
                        ["Joe", "Burrow", "Cincinnati Bengals", "Speed Authentic", "Authentic Helmet", None],
                    ],
                    columns=["PlayerFirst", "PlayerLast", "Team", "Type", "Item", "Retail"],
                )
            },
        )

        result = import_file(db, path, reconciler=exact_reconciler)

        assert (result["added"], result["skipped"]) == (1, 1)
        helmet = db.query(Helmet).one()
        assert (helmet.helmet_type, helmet.design_type, helmet.team) == ("mini", "flash", "Bills")
        assert helmet.name == "Josh Allen Bills Autographed Flash Mini Helmet"

    def test_greatsports_only_reads_known_tabs(self, db, tmp_path, exact_reconciler):
        frame = pd.DataFrame(
            [["Tom", "Brady", "Buccaneers", "Mini", "Mini Helmet", 199]],
            columns=["PlayerFirst", "PlayerLast", "Team", "Type", "Item", "Price"],
        )
        path = write_workbook(tmp_path / "greatsports.xlsx", {"Minis": frame, "Archive": frame})

        result = import_file(db, path, reconciler=exact_reconciler)

        assert result["source"] == "greatsports"
        assert result["added"] == 1
        assert db.query(HelmetPrice).count() == 1

    def test_signaturesports(self, db, tmp_path, exact_reconciler):
        path = write_workbook(
            tmp_path / "signature_sports.xlsx",
            {
                "Inventory": pd.DataFrame(
                    [["Patrick Mahomes", "Chiefs", "Mini", "Lunar Eclipse", 199]],
                    columns=["player", "team", "helmet_type", "design_type", "Price"],
                )
            },
        )

        import_file(db, path, reconciler=exact_reconciler)

        helmet = db.query(Helmet).one()
        assert (helmet.helmet_type, helmet.design_type) == ("mini", "lunar-eclipse")

    def test_generic_columns(self, db, tmp_path, exact_reconciler):
        path = write_workbook(
            tmp_path / "pristine_auction.xlsx",
            {
                "Lots": pd.DataFrame(
                    [["Justin Jefferson", "Vikings", "Speedflex Authentic", 899]],
                    columns=["Player Name", "Team", "Helmet Type", "SRP"],
                )
            },
        )

        result = import_file(db, path, reconciler=exact_reconciler)

        assert result["source"] == "pristine"
        assert result["added"] == 1
        helmet = db.query(Helmet).one()
        assert helmet.helmet_type == "fullsize-speedflex"
        assert helmet.prices[0].source == "pristine"

    def test_unknown_vendor_is_refused(self, db, tmp_path, exact_reconciler):
        path = write_workbook(
            tmp_path / "inventory_2025.xlsx",
            {
                "Sheet1": pd.DataFrame(
                    [["Justin Jefferson", "Vikings", "Mini", 199]],
                    columns=["Player", "Team", "Type", "Price"],
                )
            },
        )

        with pytest.raises(ValueError, match="inventory"):
            import_file(db, path, reconciler=exact_reconciler)
        assert db.query(Helmet).count() == 0


class TestImportWatcher:
    def test_pending_files_filters_extensions(self, tmp_path):
        (tmp_path / "b.xlsx").write_bytes(b"")
        (tmp_path / "a.ods").write_bytes(b"")
        (tmp_path / "readme.txt").write_text("hi")
        assert [p.name for p in pending_files(tmp_path)] == ["a.ods", "b.xlsx"]
        assert pending_files(tmp_path / "missing") == []

    def test_imports_and_moves_file(self, session_factory, tmp_path, denver_file):
        watcher = ImportWatcher(session_factory, imports_dir=tmp_path, poll_seconds=0)

        results = watcher.process_pending()

        assert len(results) == 1
        assert results[0]["source"] == "denverautographs"
        assert not denver_file.exists()
        moved = list((tmp_path / PROCESSED_DIRNAME).iterdir())
        assert len(moved) == 1
        assert moved[0].name.endswith("_denver_inventory.xlsx")

    def test_unreadable_file_stays_put(self, session_factory, tmp_path):
        broken = tmp_path / "fanatics_broken.xlsx"
        broken.write_text("not a workbook")

        results = ImportWatcher(session_factory, imports_dir=tmp_path).process_pending()

        assert results == []
        assert broken.exists()

    def test_unknown_vendor_file_stays_put(self, session_factory, tmp_path):
        stray = write_workbook(
            tmp_path / "inventory_2025.xlsx",
            {"Sheet1": pd.DataFrame([["Justin Jefferson", "Vikings", 199]], columns=["Player", "Team", "Price"])},
        )

        results = ImportWatcher(session_factory, imports_dir=tmp_path).process_pending()

        assert results == []
        assert stray.exists()

    def test_watch_stops_after_max_cycles(self, session_factory, tmp_path):
        watcher = ImportWatcher(session_factory, imports_dir=tmp_path, poll_seconds=0, settle_seconds=0)
        watcher.watch(max_cycles=2)
        assert not (tmp_path / PROCESSED_DIRNAME).exists()
