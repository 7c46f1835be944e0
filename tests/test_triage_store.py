"""Tests for the triage ledger store."""

import json

from conftest import make_item
from vrtriage.triage.store import TriageStore

PAIR = "main__feature-x"


class TestLoadSave:
    """Tests for ledger persistence."""

    def test_missing_file_is_empty(self, triage_store):
        """Test a fresh store starts empty without touching disk."""
        ledger = triage_store.load()
        assert ledger.acceptances == {}
        assert ledger.flags == {}
        assert ledger.deletions == {}
        assert not triage_store.ledger_path.exists()

    def test_corrupt_file_is_empty(self, triage_store, caplog):
        """Test unreadable JSON degrades to an empty ledger with a warning."""
        triage_store.ledger_path.parent.mkdir(parents=True)
        triage_store.ledger_path.write_text("{not json")
        with caplog.at_level("WARNING"):
            ledger = triage_store.load()
        assert ledger.acceptances == {}
        assert "Failed to load triage ledger" in caplog.text

    def test_wrong_shape_is_empty(self, triage_store):
        """Test a structurally invalid ledger degrades to empty."""
        triage_store.ledger_path.parent.mkdir(parents=True)
        triage_store.ledger_path.write_text(json.dumps({"acceptances": ["nope"]}))
        assert triage_store.load().acceptances == {}

    def test_file_layout(self, triage_store):
        """Test the on-disk JSON shape."""
        triage_store.accept(PAIR, "home__desktop", reason="font hinting")
        data = json.loads(triage_store.ledger_path.read_text())
        assert data["last_updated"].endswith("Z")
        record = data["acceptances"][PAIR]["home__desktop"]
        assert record["reason"] == "font hinting"
        assert "accepted_at" in record

    def test_reason_omitted_when_absent(self, triage_store):
        """Test empty optional fields are not written."""
        triage_store.flag(PAIR, "home__desktop")
        data = json.loads(triage_store.ledger_path.read_text())
        assert "reason" not in data["flags"][PAIR]["home__desktop"]

    def test_survives_new_instance(self, triage_store):
        """Test decisions persist across store instances."""
        triage_store.accept(PAIR, "home__desktop")
        assert "home__desktop" in TriageStore(triage_store.ledger_path).acceptances(PAIR)


class TestAcceptances:
    """Tests for accept and revoke."""

    def test_accept(self, triage_store):
        """Test an acceptance is recorded under the pair."""
        record = triage_store.accept(PAIR, "home__desktop", reason="expected")
        assert record.reason == "expected"
        assert set(triage_store.acceptances(PAIR)) == {"home__desktop"}

    def test_last_write_wins(self, triage_store):
        """Test re-accepting replaces the earlier record."""
        triage_store.accept(PAIR, "home__desktop", reason="first")
        triage_store.accept(PAIR, "home__desktop", reason="second")
        assert triage_store.acceptances(PAIR)["home__desktop"].reason == "second"

    def test_pairs_are_isolated(self, triage_store):
        """Test the same item key in another pair is independent."""
        triage_store.accept(PAIR, "home__desktop")
        assert triage_store.acceptances("main__other") == {}

    def test_revoke(self, triage_store):
        """Test revoking removes the item and prunes the empty pair."""
        triage_store.accept(PAIR, "home__desktop")
        assert triage_store.revoke_acceptance(PAIR, "home__desktop") is True
        assert PAIR not in triage_store.load().acceptances

    def test_revoke_unknown(self, triage_store):
        """Test revoking something never accepted is a no-op."""
        assert triage_store.revoke_acceptance(PAIR, "home__desktop") is False


class TestFlags:
    """Tests for flag and unflag."""

    def test_flag_and_unflag(self, triage_store):
        """Test a flag can be set and cleared."""
        triage_store.flag(PAIR, "home__mobile", reason="check spacing")
        assert triage_store.flags(PAIR)["home__mobile"].reason == "check spacing"
        assert triage_store.unflag(PAIR, "home__mobile") is True
        assert triage_store.flags(PAIR) == {}
        assert triage_store.unflag(PAIR, "home__mobile") is False

    def test_unflag_keeps_other_items(self, triage_store):
        """Test only the named item is removed."""
        triage_store.flag(PAIR, "a__desktop")
        triage_store.flag(PAIR, "b__desktop")
        triage_store.unflag(PAIR, "a__desktop")
        assert set(triage_store.flags(PAIR)) == {"b__desktop"}


class TestSoftDelete:
    """Tests for soft deletion and restore."""

    def test_delete_cascades(self, triage_store):
        """Test deleting an item drops its acceptance and flag."""
        triage_store.accept(PAIR, "home__desktop")
        triage_store.flag(PAIR, "home__desktop")
        triage_store.soft_delete(PAIR, "home__desktop")

        assert triage_store.is_deleted(PAIR, "home__desktop")
        assert triage_store.acceptances(PAIR) == {}
        assert triage_store.flags(PAIR) == {}

    def test_visible_items(self, triage_store):
        """Test deleted items are hidden from listings."""
        items = [make_item("home"), make_item("pricing"), make_item("about")]
        triage_store.soft_delete(PAIR, "pricing__desktop")
        visible = triage_store.visible_items(PAIR, items)
        assert [i.scenario for i in visible] == ["home", "about"]

    def test_visible_items_uses_explicit_key(self, triage_store):
        """Test an explicit item key takes precedence over scenario and viewport."""
        item = make_item("home").model_copy(update={"item_key": "custom-key"})
        triage_store.soft_delete(PAIR, "custom-key")
        assert triage_store.visible_items(PAIR, [item]) == []

    def test_restore(self, triage_store):
        """Test restoring brings items back."""
        triage_store.soft_delete(PAIR, "a__desktop")
        triage_store.soft_delete(PAIR, "b__desktop")
        assert triage_store.restore(PAIR, ["a__desktop", "missing__desktop"]) is True
        assert set(triage_store.deletions(PAIR)) == {"b__desktop"}
        assert triage_store.restore(PAIR, ["a__desktop"]) is False

    def test_restore_does_not_bring_back_acceptance(self, triage_store):
        """Test a restored item starts without its old acceptance."""
        triage_store.accept(PAIR, "home__desktop")
        triage_store.soft_delete(PAIR, "home__desktop")
        triage_store.restore(PAIR, ["home__desktop"])
        assert triage_store.acceptances(PAIR) == {}


class TestClearPair:
    """Tests for clear_pair."""

    def test_clear_pair(self, triage_store):
        """Test every section is cleared for one pair only."""
        triage_store.accept(PAIR, "a__desktop")
        triage_store.flag(PAIR, "b__desktop")
        triage_store.soft_delete(PAIR, "c__desktop")
        triage_store.accept("main__other", "a__desktop")

        triage_store.clear_pair(PAIR)

        ledger = triage_store.load()
        assert PAIR not in ledger.acceptances
        assert PAIR not in ledger.flags
        assert PAIR not in ledger.deletions
        assert "main__other" in ledger.acceptances
