import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from flashdeck.db import FlashdeckDatabase
from flashdeck.db import db_utils
from flashdeck.exceptions import (
    DatabaseConnectionError,
    MarshallingError,
)
from flashdeck.models import (
    Card,
    CardContent,
    Difficulty,
    ReviewSession,
    SessionKind,
    build_deck,
)
from flashdeck.scheduler import calculate_next_review

REVIEW_TIME = datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def baseline():
    return build_deck(
        [
            CardContent(front="Q1", back="A1"),
            CardContent(front="Q2", back="A2", favorite=True),
            CardContent(front="Q3", back="A3"),
        ]
    )


def _insert_raw_payload(db: FlashdeckDatabase, category_id: str, payload: str):
    db.get_connection().execute(
        "INSERT INTO deck_states VALUES ($1, $2, $3)",
        [category_id, payload, datetime(2024, 1, 1)],
    )


def _session(category="general", kind=SessionKind.DECK_PASS, **counts):
    session = ReviewSession(
        category=category, kind=kind, started_at=REVIEW_TIME, **counts
    )
    session.end_session(REVIEW_TIME + timedelta(minutes=2))
    return session


class TestConnectionAndSchema:
    def test_context_manager_initializes_new_file_db(self, db_path_file: Path):
        assert not db_path_file.exists()

        with FlashdeckDatabase(db_path_file) as db:
            assert db.get_category_ids() == []
            assert db.load_sessions() == []

        assert db_path_file.exists()

    def test_memory_path_is_case_insensitive(self):
        db = FlashdeckDatabase(":MEMORY:")
        assert str(db.db_path_resolved) == ":memory:"

    def test_unusable_path_raises_connection_error(self, tmp_path: Path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("plain file")

        db = FlashdeckDatabase(blocker / "flashdeck.db")
        with pytest.raises(DatabaseConnectionError) as exc_info:
            db.get_connection()
        assert exc_info.value.original_exception is not None

    def test_initialize_schema_is_idempotent(self, initialized_db_manager, baseline):
        initialized_db_manager.save_cards("general", baseline)

        initialized_db_manager.initialize_schema()

        assert initialized_db_manager.get_category_ids() == ["general"]

    def test_force_recreate_drops_data(self, initialized_db_manager, baseline):
        initialized_db_manager.save_cards("general", baseline)
        initialized_db_manager.append_session(_session(easy=1))

        initialized_db_manager.initialize_schema(force_recreate_tables=True)

        assert initialized_db_manager.get_category_ids() == []
        assert initialized_db_manager.load_sessions() == []

    def test_read_only_rejects_writes(self, db_path_file: Path, baseline):
        with FlashdeckDatabase(db_path_file) as db:
            db.save_cards("general", baseline)

        with FlashdeckDatabase(db_path_file, read_only=True) as ro:
            assert [c.front for c in ro.load_cards("general", baseline)] == [
                "Q1",
                "Q2",
                "Q3",
            ]
            with pytest.raises(DatabaseConnectionError, match="read-only"):
                ro.save_cards("general", baseline)
            with pytest.raises(DatabaseConnectionError):
                ro.append_session(_session(easy=1))
            with pytest.raises(DatabaseConnectionError):
                ro.initialize_schema(force_recreate_tables=True)


class TestDeckState:
    def test_missing_state_returns_baseline(self, initialized_db_manager, baseline):
        assert initialized_db_manager.load_cards("general", baseline) == baseline

    def test_save_and_load_round_trip(self, initialized_db_manager, baseline):
        rated = calculate_next_review(baseline[0], "easy", REVIEW_TIME)
        deck = [rated, baseline[1].model_copy(update={"favorite": False}), baseline[2]]

        initialized_db_manager.save_cards("general", deck)
        loaded = initialized_db_manager.load_cards("general", baseline)

        assert loaded == deck
        assert loaded[0].due_date == REVIEW_TIME + timedelta(days=1)
        assert loaded[0].due_date.tzinfo == timezone.utc

    def test_save_replaces_previous_state(self, initialized_db_manager, baseline):
        hard = calculate_next_review(baseline[0], "hard", REVIEW_TIME)
        initialized_db_manager.save_cards("general", [hard] + baseline[1:])

        initialized_db_manager.save_cards("general", baseline)

        loaded = initialized_db_manager.load_cards("general", baseline)
        assert loaded[0].is_new

    def test_baseline_text_wins_and_new_cards_stay_new(
        self, initialized_db_manager, baseline
    ):
        rated = calculate_next_review(baseline[1], "medium", REVIEW_TIME)
        initialized_db_manager.save_cards("general", [baseline[0], rated])

        edited = build_deck(
            [
                CardContent(front="Q1", back="A1"),
                CardContent(front="Q2 (edited)", back="A2 (edited)"),
                CardContent(front="Q3", back="A3"),
                CardContent(front="Q4", back="A4"),
            ]
        )
        loaded = initialized_db_manager.load_cards("general", edited)

        assert len(loaded) == 4
        assert loaded[1].front == "Q2 (edited)"
        assert loaded[1].difficulty is Difficulty.MEDIUM
        assert loaded[1].favorite is True
        assert loaded[3].is_new

    def test_persisted_cards_without_baseline_are_dropped(
        self, initialized_db_manager, baseline
    ):
        initialized_db_manager.save_cards("general", baseline)

        loaded = initialized_db_manager.load_cards("general", baseline[:2])

        assert [c.id for c in loaded] == [1, 2]

    @pytest.mark.parametrize(
        "payload",
        [
            "{not json",
            '{"id": 1}',
            '[{"id": 1, "front": "Q1", "back": "A1", "interval": 3}]',
            '[{"id": 0, "front": "Q1", "back": "A1"}]',
        ],
        ids=["bad-json", "not-a-list", "partial-schedule", "bad-id"],
    )
    def test_malformed_payload_falls_back_to_baseline(
        self, initialized_db_manager, baseline, payload, caplog
    ):
        _insert_raw_payload(initialized_db_manager, "general", payload)

        with caplog.at_level(logging.WARNING):
            loaded = initialized_db_manager.load_cards("general", baseline)

        assert loaded == baseline
        assert "malformed" in caplog.text

    def test_categories_are_independent(self, initialized_db_manager, baseline):
        rated = calculate_next_review(baseline[0], "easy", REVIEW_TIME)
        initialized_db_manager.save_cards("science", [rated])
        initialized_db_manager.save_cards("general", baseline)

        assert initialized_db_manager.get_category_ids() == ["general", "science"]
        assert initialized_db_manager.load_cards("general", baseline)[0].is_new

    def test_delete_deck_state(self, initialized_db_manager, baseline):
        initialized_db_manager.save_cards("general", baseline)
        initialized_db_manager.save_cards("science", baseline)

        initialized_db_manager.delete_deck_state("general")

        assert initialized_db_manager.get_category_ids() == ["science"]


class TestSessionLog:
    def test_append_assigns_increasing_ids(self, initialized_db_manager):
        first = initialized_db_manager.append_session(_session(easy=2))
        second = initialized_db_manager.append_session(
            _session(kind=SessionKind.HARD_REVIEW, hard=1)
        )

        assert first.session_id is not None
        assert second.session_id > first.session_id

    def test_load_sessions_in_append_order(self, initialized_db_manager):
        appended = [
            _session(easy=1),
            _session(category="science", medium=3),
            _session(kind=SessionKind.HARD_REVIEW, hard=2),
        ]
        for session in appended:
            initialized_db_manager.append_session(session)

        loaded = initialized_db_manager.load_sessions()

        assert [s.session_uuid for s in loaded] == [s.session_uuid for s in appended]
        assert loaded[1].category == "science"
        assert loaded[1].medium == 3
        assert loaded[2].kind is SessionKind.HARD_REVIEW
        assert loaded[0].started_at == REVIEW_TIME
        assert loaded[0].ended_at == REVIEW_TIME + timedelta(minutes=2)

    def test_load_sessions_by_category(self, initialized_db_manager):
        initialized_db_manager.append_session(_session(easy=1))
        initialized_db_manager.append_session(_session(category="science", hard=1))

        loaded = initialized_db_manager.load_sessions(category="science")

        assert [s.category for s in loaded] == ["science"]

    def test_clear_sessions_keeps_deck_state(self, initialized_db_manager, baseline):
        initialized_db_manager.save_cards("general", baseline)
        initialized_db_manager.append_session(_session(easy=1))

        initialized_db_manager.clear_sessions()

        assert initialized_db_manager.load_sessions() == []
        assert initialized_db_manager.get_category_ids() == ["general"]

    def test_clear_all(self, initialized_db_manager, baseline):
        initialized_db_manager.save_cards("general", baseline)
        initialized_db_manager.append_session(_session(easy=1))

        initialized_db_manager.clear_all()

        assert initialized_db_manager.get_category_ids() == []
        assert initialized_db_manager.load_sessions() == []


class TestDbUtils:
    def test_payload_to_cards_rejects_non_list(self):
        with pytest.raises(MarshallingError, match="must be a list"):
            db_utils.payload_to_cards('{"cards": []}')

    def test_merge_with_baseline_keeps_baseline_order(self, baseline):
        stored = [
            Card(id=3, front="old", back="old", favorite=True),
            Card(id=1, front="old", back="old"),
        ]

        merged = db_utils.merge_with_baseline(baseline, stored)

        assert [c.id for c in merged] == [1, 2, 3]
        assert [c.front for c in merged] == ["Q1", "Q2", "Q3"]
        assert merged[2].favorite is True

    def test_to_db_timestamp_is_naive_utc(self):
        plus_one = timezone(timedelta(hours=1))
        local = datetime(2024, 2, 1, 11, 0, tzinfo=plus_one)

        assert db_utils.to_db_timestamp(local) == datetime(2024, 2, 1, 10, 0)
        assert db_utils.to_db_timestamp(None) is None

    def test_backup_missing_database_returns_none(self, tmp_path: Path):
        assert db_utils.backup_database(tmp_path / "missing.db") is None

    def test_backup_and_find_latest(self, tmp_path: Path):
        db_path = tmp_path / "flashdeck.db"
        db_path.write_bytes(b"first")
        first = db_utils.backup_database(db_path)
        db_path.write_bytes(b"second")
        second = db_utils.backup_database(db_path)

        assert first.parent == tmp_path / "backups"
        assert first.read_bytes() == b"first"
        assert db_utils.find_latest_backup(db_path) == second

    def test_find_latest_backup_without_backups(self, tmp_path: Path):
        assert db_utils.find_latest_backup(tmp_path / "flashdeck.db") is None
