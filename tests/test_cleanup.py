"""Tests for the catalog cleanup jobs."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from app.database import make_engine
from app.models import Helmet, HelmetPrice
from app.services import cleanup
from app.services.prices import upsert_price
from app.tasks.cleanup import run_cleanup_jobs


@pytest.fixture
def legacy_helmet(db):
    """Insert a helmet with a hand-written natural key, as older imports did."""
    counter = iter(range(1, 1000))

    def _make(player, team="Chiefs", helmet_type="mini", design_type="regular", name=None):
        n = next(counter)
        helmet = Helmet(
            name=name or f"{player} {team} legacy helmet {n}",
            player=player,
            team=team,
            helmet_type=helmet_type,
            design_type=design_type,
            ebay_search_query=f"legacy query {n}",
            natural_key=f"legacy-{n}",
        )
        db.add(helmet)
        db.commit()
        return helmet

    return _make


class TestPriceCleanup:
    def test_orphaned_prices(self, engine, db, make_helmet):
        with engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
            conn.exec_driver_sql(
                "INSERT INTO helmet_prices (helmet_id, source, median_price, total_results, scraped_at) "
                "VALUES (999, 'ebay', 100, 1, '2024-01-01 00:00:00')"
            )
            conn.commit()
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        helmet = make_helmet()
        upsert_price(db, helmet.id, "ebay", 250)

        assert cleanup.remove_orphaned_prices(db) == {"orphaned_removed": 1}
        assert [p.helmet_id for p in db.query(HelmetPrice).all()] == [helmet.id]

    def test_no_orphans(self, db):
        assert cleanup.remove_orphaned_prices(db) == {"orphaned_removed": 0}

    def test_duplicate_prices_keep_newest(self):
        # databases created before the (helmet_id, source) constraint existed
        engine = make_engine("sqlite://")
        Helmet.__table__.create(engine)
        with engine.begin() as conn:
            conn.exec_driver_sql(
                "CREATE TABLE helmet_prices ("
                "id INTEGER PRIMARY KEY, helmet_id INTEGER NOT NULL REFERENCES helmets(id), "
                "source VARCHAR(50) NOT NULL, median_price NUMERIC(10, 2) NOT NULL, "
                "min_price NUMERIC(10, 2), max_price NUMERIC(10, 2), total_results INTEGER NOT NULL, "
                "ebay_url TEXT, scraped_at DATETIME)"
            )
        session = sessionmaker(bind=engine, autoflush=False)()
        try:
            helmet = Helmet(
                name="Josh Allen Bills Mini",
                player="Josh Allen",
                team="Bills",
                helmet_type="mini",
                design_type="regular",
                ebay_search_query="josh allen bills mini regular autographed helmet",
                natural_key="josh allen|bills|mini|regular",
            )
            for source, price, when in [
                ("ebay", "200", datetime(2024, 1, 1)),
                ("ebay", "250", datetime(2024, 3, 1)),
                ("ebay", "225", datetime(2024, 2, 1)),
                ("rsa", "300", datetime(2024, 1, 1)),
            ]:
                helmet.prices.append(
                    HelmetPrice(source=source, median_price=Decimal(price), total_results=1, scraped_at=when)
                )
            session.add(helmet)
            session.commit()

            result = cleanup.remove_duplicate_prices(session)

            assert result == {"duplicate_groups": 1, "deleted": 2}
            remaining = {p.source: p.median_price for p in session.query(HelmetPrice).all()}
            assert remaining == {"ebay": Decimal("250.00"), "rsa": Decimal("300.00")}
        finally:
            session.close()
            engine.dispose()

    def test_no_duplicate_prices_under_unique_constraint(self, db, make_helmet):
        helmet = make_helmet()
        upsert_price(db, helmet.id, "ebay", 250)
        upsert_price(db, helmet.id, "ebay", 275)
        assert cleanup.remove_duplicate_prices(db) == {"duplicate_groups": 0, "deleted": 0}


class TestNameCorrections:
    def test_rename_in_place(self, db, make_helmet):
        helmet = make_helmet(player="Cj Stroud", team="Texans", helmet_type="mini")

        result = cleanup.apply_name_corrections(db, {"Cj Stroud": "C.J. Stroud"})

        assert result == {"names_fixed": 1, "merged": 0}
        db.refresh(helmet)
        assert helmet.player == "C.J. Stroud"
        assert helmet.natural_key == "c.j. stroud|texans|mini|regular"
        assert helmet.ebay_search_query.startswith("c.j. stroud texans mini")

    def test_rename_onto_existing_variant_merges(self, db, make_helmet):
        good = make_helmet(helmet_type="mini")
        bad = make_helmet(player="Pat Mahomes", helmet_type="mini")
        upsert_price(db, good.id, "rsa", 300)
        upsert_price(db, bad.id, "ebay", 280)
        upsert_price(db, bad.id, "rsa", 310)

        result = cleanup.apply_name_corrections(db, {"Pat Mahomes": "Patrick Mahomes"})

        assert result == {"names_fixed": 1, "merged": 1}
        assert db.query(Helmet).count() == 1
        prices = {p.source: p for p in db.query(HelmetPrice).all()}
        assert set(prices) == {"ebay", "rsa"}
        assert all(p.helmet_id == good.id for p in prices.values())

    def test_null_corrections_are_skipped(self, db, make_helmet):
        make_helmet(player="DENVER BRONCOS", team="Broncos")
        assert cleanup.apply_name_corrections(db, {"DENVER BRONCOS": None}) == {"names_fixed": 0, "merged": 0}


class TestNonPlayers:
    @pytest.mark.parametrize("player", ["DENVER BRONCOS", "2019 Chiefs Team", "Kansas City", "Signed Mini"])
    def test_detected(self, player):
        assert cleanup.is_non_player(player)

    @pytest.mark.parametrize("player", ["Patrick Mahomes", "Jim Brown", "", None])
    def test_real_players(self, player):
        assert not cleanup.is_non_player(player)

    def test_delete_cascades_to_prices(self, db, make_helmet):
        keep = make_helmet()
        junk = make_helmet(player="2019 Chiefs Team")
        upsert_price(db, junk.id, "ebay", 100)
        junk_id = junk.id

        result = cleanup.delete_non_player_helmets(db)

        assert result == {"deleted": 1, "helmets": [{"id": junk_id, "player": "2019 Chiefs Team"}]}
        db.expire_all()
        assert [h.id for h in db.query(Helmet).all()] == [keep.id]
        assert db.query(HelmetPrice).count() == 0


class TestRekey:
    def test_search_phrase_collision_merges(self, db, make_helmet, legacy_helmet):
        existing = make_helmet(player="Joe Burrow", team="Bengals", helmet_type="mini")
        stray = legacy_helmet("Joe Burrow Bengals", team=None)
        upsert_price(db, stray.id, "radtke", 180)

        assert cleanup.rekey(db, stray) == "merged"
        db.commit()

        assert [h.id for h in db.query(Helmet).all()] == [existing.id]
        assert db.query(HelmetPrice).one().helmet_id == existing.id

    def test_unchanged(self, db, make_helmet):
        assert cleanup.rekey(db, make_helmet()) == "unchanged"


class TestMergeDuplicates:
    def test_group_key(self, legacy_helmet):
        helmet = legacy_helmet(" Josh Allen", team=None)
        assert cleanup.duplicate_group_key(helmet) == "josh allen|null|mini|regular"

    def test_keeps_member_with_most_prices(self, db, legacy_helmet):
        first = legacy_helmet("Josh Allen", team="Bills")
        second = legacy_helmet("josh allen", team="BILLS")
        legacy_helmet("Josh Allen", team="Bills", design_type="flash")
        upsert_price(db, first.id, "ebay", 200)
        upsert_price(db, second.id, "ebay", 210)
        upsert_price(db, second.id, "rsa", 220)
        second_id = second.id

        result = cleanup.merge_duplicate_helmets(db)

        assert result == {
            "duplicate_groups": 1,
            "helmets_removed": 1,
            "prices_moved": 0,
            "prices_dropped": 1,
        }
        remaining = db.query(Helmet).order_by(Helmet.id).all()
        assert len(remaining) == 2
        kept = db.get(Helmet, second_id)
        assert kept.natural_key == "josh allen|bills|mini|regular"
        assert {p.source for p in kept.prices} == {"ebay", "rsa"}

    def test_ties_keep_lowest_id(self, db, legacy_helmet):
        first = legacy_helmet("Josh Allen", team="Bills")
        legacy_helmet("Josh Allen", team="Bills")
        first_id = first.id

        result = cleanup.merge_duplicate_helmets(db)

        assert result["helmets_removed"] == 1
        assert db.query(Helmet).one().id == first_id

    def test_moves_prices_from_source_the_keeper_lacks(self, db, legacy_helmet):
        first = legacy_helmet("Joe Burrow", team="Bengals")
        second = legacy_helmet("Joe Burrow", team="Bengals")
        upsert_price(db, first.id, "ebay", 300)
        upsert_price(db, second.id, "fanatics", 320)
        first_id = first.id

        result = cleanup.merge_duplicate_helmets(db)

        assert result["prices_moved"] == 1
        assert result["prices_dropped"] == 0
        kept = db.query(Helmet).one()
        assert kept.id == first_id
        assert {p.source for p in kept.prices} == {"ebay", "fanatics"}


class TestFillMissing:
    def test_guess_player(self):
        assert cleanup.guess_player_from_name("Josh Allen Buffalo Bills Signed Mini Helmet") == "Josh Allen"
        assert cleanup.guess_player_from_name("NEW LISTING Derrick Henry Titans Mini Helmet") == "Derrick Henry"
        assert cleanup.guess_player_from_name("signed mini helmet 2023") is None
        assert cleanup.guess_player_from_name(None) is None

    def test_fills_player_and_team(self, db, legacy_helmet):
        helmet = legacy_helmet(None, team=None, name="Josh Allen Buffalo Bills Signed Mini Helmet")
        unparsed = legacy_helmet(None, team=None, name="signed mini helmet 2023")

        result = cleanup.fill_missing_fields(db)

        assert result["players_filled"] == 1
        assert result["teams_filled"] == 1
        assert result["unparsed"] == [unparsed.id]
        db.refresh(helmet)
        assert helmet.player == "Josh Allen"
        assert helmet.team == "Bills"
        assert helmet.natural_key == "josh allen|bills|mini|regular"


class TestMisfiledDesign:
    def test_fix_and_merge(self, db, make_helmet):
        regular = make_helmet(helmet_type="fullsize-authentic", design_type="regular")
        misfiled = make_helmet(helmet_type="fullsize-authentic", design_type="authentic")
        lone = make_helmet(player="Josh Allen", team="Bills", design_type="authentic")
        upsert_price(db, misfiled.id, "ebay", 500)

        result = cleanup.fix_misfiled_design(db)

        assert result == {"fixed": 2, "merged": 1}
        assert db.query(Helmet).count() == 2
        db.refresh(lone)
        assert lone.design_type == "regular"
        assert db.query(HelmetPrice).one().helmet_id == regular.id


class TestReports:
    def test_helmets_without_prices(self, db, make_helmet):
        priced = make_helmet()
        bare = make_helmet(player="Josh Allen", team="Bills")
        upsert_price(db, priced.id, "ebay", 300)

        rows = cleanup.helmets_without_prices(db)

        assert [r["id"] for r in rows] == [bare.id]
        assert rows[0]["player"] == "Josh Allen"


class TestRunCleanupJobs:
    def test_single_job(self, db):
        assert run_cleanup_jobs(db, "orphans") == {"orphans": {"orphaned_removed": 0}}

    def test_all_jobs(self, db, make_helmet):
        make_helmet()
        results = run_cleanup_jobs(db)
        assert set(results) == set(cleanup.CLEANUP_JOBS)

    def test_unknown_job(self, db):
        with pytest.raises(ValueError):
            run_cleanup_jobs(db, "everything")
