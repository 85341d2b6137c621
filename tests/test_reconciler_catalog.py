"""Tests for catalog writes, paginated scans and helmet reconciliation."""

from app.models import Helmet, make_natural_key
from app.services.catalog import (
    build_helmet_name,
    build_search_query,
    get_or_create_helmet,
    iter_helmets,
    iter_prices,
)
from app.services.prices import upsert_price


class TestNaturalKey:
    def test_lowercased_and_trimmed(self):
        assert make_natural_key(" Josh Allen", "BILLS ", "mini", "Eclipse") == "josh allen|bills|mini|eclipse"

    def test_missing_parts(self):
        assert make_natural_key("Tom Brady", None, "mini", None) == "tom brady||mini|regular"

    def test_inner_whitespace_collapsed(self):
        assert make_natural_key("Patrick  Mahomes", "Chiefs\t", "mini", "regular") == make_natural_key(
            "Patrick Mahomes", "Chiefs", "mini", "regular"
        )


class TestSearchQueryAndName:
    def test_search_query(self):
        query = build_search_query("Josh Allen", "Bills", "mini", "eclipse")
        assert query == "josh allen bills mini eclipse autographed helmet"

    def test_search_query_skips_missing_team(self):
        assert build_search_query("Tom Brady", None, "mini", "regular") == "tom brady mini regular autographed helmet"

    def test_regular_design_left_out_of_name(self):
        assert build_helmet_name("Josh Allen", "Bills", "mini") == "Josh Allen Bills Autographed mini Helmet"
        assert build_helmet_name("Josh Allen", "Bills", "mini", "flash") == "Josh Allen Bills flash Autographed mini Helmet"


class TestGetOrCreateHelmet:
    def test_second_call_returns_same_row(self, db):
        first, created_first = get_or_create_helmet(db, "Josh Allen", "Bills", "mini", "eclipse")
        second, created_second = get_or_create_helmet(db, "josh allen", "BILLS", "mini", "Eclipse")

        assert created_first is True
        assert created_second is False
        assert first.id == second.id
        assert db.query(Helmet).count() == 1

    def test_defaults(self, db):
        helmet, _ = get_or_create_helmet(db, "Tom Brady", None, "fullsize-authentic", None)
        assert helmet.design_type == "regular"
        assert helmet.team is None
        assert helmet.is_active is True
        assert helmet.natural_key == "tom brady||fullsize-authentic|regular"
        assert helmet.name == "Tom Brady Autographed fullsize-authentic Helmet"

    def test_explicit_name_kept(self, db):
        helmet, _ = get_or_create_helmet(
            db, "Tom Brady", "Buccaneers", "mini", name="Tom Brady Bucs Signed Mini Helmet", auth_company="Fanatics"
        )
        assert helmet.name == "Tom Brady Bucs Signed Mini Helmet"
        assert helmet.auth_company == "Fanatics"

    def test_variants_are_distinct(self, db):
        get_or_create_helmet(db, "Josh Allen", "Bills", "mini", "regular")
        get_or_create_helmet(db, "Josh Allen", "Bills", "mini", "flash")
        get_or_create_helmet(db, "Josh Allen", "Bills", "midi", "regular")
        assert db.query(Helmet).count() == 3

    def test_search_query_conflict_returns_existing_row(self, db):
        # "Joe Burrow" + team "Bengals" and player "Joe Burrow Bengals" share one search phrase
        first, _ = get_or_create_helmet(db, "Joe Burrow", "Bengals", "mini")
        second, created = get_or_create_helmet(db, "Joe Burrow Bengals", None, "mini")

        assert created is False
        assert second.id == first.id
        assert db.query(Helmet).count() == 1


class TestPagination:
    def test_iter_helmets_crosses_pages(self, db, make_helmet):
        ids = [make_helmet(player=f"Player Number{i}").id for i in range(7)]
        assert [h.id for h in iter_helmets(db, page_size=3)] == ids

    def test_iter_helmets_active_only(self, db, make_helmet):
        keep = make_helmet()
        hidden = make_helmet(player="Josh Allen", team="Bills")
        hidden.is_active = False
        db.commit()
        assert [h.id for h in iter_helmets(db, active_only=True)] == [keep.id]

    def test_iter_prices_exact_page_boundary(self, db, make_helmet):
        helmet = make_helmet()
        for source in ("ebay", "rsa", "radtke", "fanatics"):
            upsert_price(db, helmet.id, source, 100)
        assert len(list(iter_prices(db, page_size=2))) == 4

    def test_empty_tables(self, db):
        assert list(iter_helmets(db)) == []
        assert list(iter_prices(db)) == []


class TestReconciler:
    def test_exact_match(self, exact_reconciler, make_helmet):
        helmet = make_helmet(helmet_type="mini", design_type="eclipse")
        found = exact_reconciler.find("patrick mahomes", "chiefs", "mini", "eclipse")
        assert found.id == helmet.id

    def test_exact_mode_needs_every_field(self, exact_reconciler, make_helmet):
        make_helmet(helmet_type="mini", design_type="eclipse")
        assert exact_reconciler.find("Patrick Mahomes", "Chiefs", "mini", "regular") is None

    def test_relaxed_ignores_design(self, relaxed_reconciler, make_helmet):
        helmet = make_helmet(helmet_type="mini", design_type="eclipse")
        assert relaxed_reconciler.find("Patrick Mahomes", "Chiefs", "mini", "regular").id == helmet.id

    def test_relaxed_prefers_same_helmet_type(self, relaxed_reconciler, make_helmet):
        make_helmet(helmet_type="midi", design_type="regular")
        mini = make_helmet(helmet_type="mini", design_type="flash")
        assert relaxed_reconciler.find("Patrick Mahomes", "Chiefs", "mini", "regular").id == mini.id

    def test_relaxed_falls_back_to_player_and_team(self, relaxed_reconciler, make_helmet):
        first = make_helmet(helmet_type="midi")
        make_helmet(helmet_type="fullsize-replica")
        assert relaxed_reconciler.find("Patrick Mahomes", "Chiefs", "mini", "regular").id == first.id

    def test_relaxed_still_requires_team(self, relaxed_reconciler, make_helmet):
        make_helmet()
        assert relaxed_reconciler.find("Patrick Mahomes", "Bills", "mini", "regular") is None

    def test_missing_player(self, relaxed_reconciler):
        assert relaxed_reconciler.find(None, "Chiefs", "mini") is None
        assert relaxed_reconciler.find("", "Chiefs", "mini") is None

    def test_null_team_matches_empty_team(self, relaxed_reconciler, make_helmet):
        helmet = make_helmet(player="Tom Brady", team=None, helmet_type="midi")
        assert relaxed_reconciler.find("Tom Brady", "", "mini").id == helmet.id
