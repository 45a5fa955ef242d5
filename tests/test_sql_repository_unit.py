"""
Unit tests for the SQLAlchemy repositories and database manager.
"""

import pytest

from promosync.config.settings import DatabaseSettings
from promosync.database.connection import DatabaseManager
from promosync.database.models import Gender, Rivalry, Segment, Wrestler
from promosync.database.repositories import SqlAlchemyRepository, build_sql_repositories
from promosync.sync.connectors.base import RawPage
from promosync.sync.orchestrator import SyncOrchestrator


@pytest.fixture
def db_manager():
    manager = DatabaseManager(DatabaseSettings(database_url="sqlite://", echo=False))
    manager.initialize()
    manager.create_tables()
    yield manager
    manager.close()


@pytest.fixture
def wrestlers(db_manager):
    return SqlAlchemyRepository(Wrestler, db_manager)


class TestDatabaseManager:
    def test_connection(self, db_manager):
        assert db_manager.test_connection()

    def test_session_rolls_back_on_error(self, db_manager, wrestlers):
        with pytest.raises(RuntimeError):
            with db_manager.get_session() as session:
                session.add(Wrestler(name="Ghost", external_id="w-ghost", fans=0))
                session.flush()
                raise RuntimeError("boom")

        assert wrestlers.find_by_external_id("w-ghost") is None


class TestSqlAlchemyRepository:
    """Tests for SqlAlchemyRepository."""

    def test_save_assigns_id_and_timestamps(self, wrestlers):
        record = Wrestler(name="Ace", external_id="w-1", fans=100, gender=Gender.FEMALE)

        stored = wrestlers.save(record)

        assert stored.id is not None
        assert record.id == stored.id
        assert stored.created_at is not None
        assert stored.updated_at is not None

    def test_lookups(self, wrestlers):
        stored = wrestlers.save(Wrestler(name="Ace", external_id="w-1", fans=100))

        assert wrestlers.find_by_external_id("w-1").name == "Ace"
        assert wrestlers.find_by_natural_key(("Ace",)).id == stored.id
        assert wrestlers.find_by_id(stored.id).external_id == "w-1"

    def test_misses_return_none(self, wrestlers):
        assert wrestlers.find_by_external_id("missing") is None
        assert wrestlers.find_by_external_id("") is None
        assert wrestlers.find_by_natural_key(("Nobody",)) is None
        assert wrestlers.find_by_natural_key(None) is None
        assert wrestlers.find_by_id(999) is None

    def test_update_detached_record(self, wrestlers):
        stored = wrestlers.save(Wrestler(name="Ace", external_id="w-1", fans=100))
        created_at = stored.created_at

        found = wrestlers.find_by_external_id("w-1")
        found.fans = 250
        wrestlers.save(found)

        assert wrestlers.count() == 1
        reloaded = wrestlers.find_by_id(stored.id)
        assert reloaded.fans == 250
        # SQLite returns naive datetimes
        assert reloaded.created_at.replace(tzinfo=None) == created_at.replace(tzinfo=None)

    def test_count_and_list_all_ordered_by_id(self, wrestlers):
        for index, name in enumerate(["Comet", "Ace", "Bolt"]):
            wrestlers.save(Wrestler(name=name, external_id=f"w-{index}", fans=0))

        assert wrestlers.count() == 3
        assert [record.name for record in wrestlers.list_all()] == ["Comet", "Ace", "Bolt"]

    def test_unordered_natural_key_matches_either_order(self, db_manager):
        rivalries = SqlAlchemyRepository(Rivalry, db_manager)
        stored = rivalries.save(Rivalry(external_id="r-1", wrestler1_id=7, wrestler2_id=3, heat=10))

        assert rivalries.find_by_natural_key((3, 7)).id == stored.id
        assert rivalries.find_by_natural_key((7, 3)).id == stored.id
        assert rivalries.find_by_natural_key((3, 8)) is None

    def test_type_without_natural_key(self, db_manager):
        segments = SqlAlchemyRepository(Segment, db_manager)
        segments.save(Segment(external_id="s-1", show_id=1, segment_type="Singles"))

        assert segments.find_by_natural_key(("Singles",)) is None
        assert segments.find_by_external_id("s-1") is not None


class TestSqlBackedSync:
    """End-to-end runs against SQL repositories."""

    def test_full_run_persists_and_resyncs(self, db_manager, content_source, make_settings):
        content_source.set_pages("wrestlers", [
            RawPage("w-1", {"Name": "Ace", "Fans": 100}),
            RawPage("w-2", {"Name": "Bolt", "Fans": 50}),
        ])
        content_source.set_pages("rivalries", [
            RawPage("r-1", {"Wrestler 1": ["w-1"], "Wrestler 2": ["w-2"], "Heat": 12}),
        ])
        repositories = build_sql_repositories(db_manager)
        orchestrator = SyncOrchestrator.create(
            content_source,
            repositories,
            make_settings(sync={"max_workers": 1}),
            sleep=lambda seconds: None,
        )

        first = orchestrator.run_all()
        second = orchestrator.run_all()

        assert first.success
        assert first.result_for("wrestlers").created_count == 2
        assert second.result_for("wrestlers").updated_count == 2
        assert second.result_for("wrestlers").created_count == 0
        assert repositories.get("wrestlers").count() == 2
        assert repositories.get("rivalries").count() == 1

        ace = repositories.get("wrestlers").find_by_external_id("w-1")
        rivalry = repositories.get("rivalries").find_by_external_id("r-1")
        assert ace.fans == 100
        assert ace.id in (rivalry.wrestler1_id, rivalry.wrestler2_id)
