"""Tests for the updates journal."""

from datetime import datetime, timezone

import pytest

from work_tracker.models import Update, UpdateType
from work_tracker.services import UpdatesJournal
from work_tracker.services.updates import parse_update, render_update


@pytest.fixture
def journal(store):
    return UpdatesJournal(store, default_author="bot")


class TestRenderAndParse:
    """Tests for single journal blocks."""

    def test_render_then_parse_keeps_fields(self):
        """Every rendered field is recovered when the block is parsed."""
        update = Update(
            work_id="w1",
            timestamp=datetime(2024, 5, 1, 14, 30, tzinfo=timezone.utc),
            author="alice",
            type=UpdateType.MANUAL,
            session="12",
            title="Login flow done",
            summary="Wired the callback.",
            tasks_completed=["Callback route"],
            tasks_added=["Refresh tokens"],
            progress_before=25,
            progress_after=50,
        )
        block = render_update(update)

        assert block.startswith("## Update 2024-05-01 14:30 (Session: 12)")
        assert parse_update(block, "w1") == update

    def test_partial_block_parses_leniently(self):
        """A block missing most fields still parses with empty defaults."""
        block = "## Update\n**Status**: Something happened\n\nFree text"

        update = parse_update(block, "w1")

        assert update.timestamp is None
        assert update.author == ""
        assert update.title == "Something happened"
        assert update.summary == "Free text"
        assert update.progress_before is None


class TestUpdatesJournal:
    """Tests for journal documents."""

    def test_missing_journal_is_empty(self, journal):
        """A Work item without a journal has no updates."""
        assert journal.get_updates("w1") == []
        assert journal.get_latest_update("w1") is None

    def test_updates_are_prepended(self, store, journal):
        """New entries go on top, so the latest update comes first."""
        journal.create_manual_update("w1", author="alice", title="First")
        journal.create_automatic_update("w1", title="Second", progress_before=0, progress_after=25)

        updates = journal.get_updates("w1")

        assert [u.title for u in updates] == ["Second", "First"]
        assert updates[0].author == "bot"
        assert updates[0].type == UpdateType.AUTOMATIC
        assert updates[0].progress_after == 25
        assert updates[1].author == "alice"
        assert journal.get_latest_update("w1").title == "Second"

    def test_journal_document_layout(self, store, journal):
        """The journal lives under updates/ with a work_id header."""
        journal.create_manual_update("w1", author="alice", title="First")

        text = journal.journal_path("w1").read_text()

        assert text.startswith("---\nwork_id: w1\n---\n")
        assert journal.journal_path("w1") == store.root / "updates" / "w1.md"
        assert UpdatesJournal.get_updates_ref("w1") == "updates/w1.md"

    def test_ids_survive_round_trip(self, journal):
        """An entry's id is read back unchanged."""
        created = journal.create_manual_update("w1", author="alice", title="Tracked")

        assert journal.get_updates("w1")[0].id == created.id

    def test_rule_lines_in_summary_stay_in_one_entry(self, journal):
        """A markdown rule inside a summary is not mistaken for a block separator."""
        created = journal.create_update(
            "w1", Update(title="One", summary="before\n---\nafter\n\\---\nend")
        )

        updates = journal.get_updates("w1")

        assert len(updates) == 1
        assert updates[0].id == created.id
        assert updates[0].title == "One"
        assert updates[0].summary == "before\n---\nafter\n\\---\nend"

    def test_hand_edited_blocks_are_tolerated(self, journal):
        """A hand-written block without a heading is kept as its own entry."""
        journal.create_manual_update("w1", author="alice", title="Kept")
        path = journal.journal_path("w1")
        text = path.read_text().rstrip() + "\n\n---\n\nscribbled note without a heading\n"
        path.write_text(text)

        updates = journal.get_updates("w1")

        assert len(updates) == 2
        assert updates[1].summary == "scribbled note without a heading"
        assert updates[1].timestamp is None
