"""
Unit tests for the post-sync data integrity checker.
"""

from datetime import date

from promosync.database.models import Faction, Segment, Show, ShowType, Team, Wrestler
from promosync.database.repositories import RepositoryRegistry, build_memory_repositories
from promosync.sync.integrity import DataIntegrityChecker, IntegrityCheckResult


class BrokenRepository:
    def list_all(self):
        raise ConnectionError("database unreachable")


class TestDataIntegrityChecker:
    """Tests for DataIntegrityChecker."""

    def setup_method(self):
        self.repositories = build_memory_repositories()
        self.checker = DataIntegrityChecker(self.repositories, today=lambda: date(2024, 6, 1))

    def save(self, key, record):
        return self.repositories.get(key).save(record)

    def seed_roster(self):
        ace = self.save("wrestlers", Wrestler(name="Ace", external_id="w-1", fans=0))
        bolt = self.save("wrestlers", Wrestler(name="Bolt", external_id="w-2", fans=0))
        return ace, bolt

    def test_empty_database_is_valid(self):
        result = self.checker.check()

        assert result.valid
        assert result.errors == []
        assert result.warnings == []
        assert result.statistics["total_wrestlers"] == 0
        assert "check_duration_ms" in result.statistics

    def test_consistent_records_pass(self):
        ace, bolt = self.seed_roster()
        weekly = self.save("show_types", ShowType(name="Weekly", external_id="st-1"))
        show = self.save("shows", Show(name="Brawl", external_id="s-1", show_type_id=weekly.id,
                                       show_date=date(2024, 5, 1)))
        self.save("segments", Segment(external_id="g-1", show_id=show.id, segment_type="Singles",
                                      participant_ids=[ace.id, bolt.id]))
        self.save("teams", Team(name="Ace & Bolt", external_id="t-1", wrestler1_id=ace.id, wrestler2_id=bolt.id))
        self.save("factions", Faction(name="The Stable", external_id="f-1", leader_id=ace.id,
                                      member_ids=[ace.id, bolt.id]))

        result = self.checker.check()

        assert result.valid, result.errors
        assert result.warnings == []
        assert result.statistics["total_wrestlers"] == 2
        assert result.statistics["total_segments"] == 1
        assert result.summary() == "Data integrity check passed"

    def test_records_without_names(self):
        self.seed_roster()
        self.save("wrestlers", Wrestler(name="   ", external_id="w-3", fans=0))

        result = self.checker.check()

        assert not result.valid
        assert "Found 1 wrestlers without names" in result.errors
        assert result.statistics["wrestlers_without_name"] == 1

    def test_duplicate_external_ids_are_warnings(self):
        self.save("wrestlers", Wrestler(name="Ace", external_id="w-1", fans=0))
        self.save("wrestlers", Wrestler(name="Ace Again", external_id="w-1", fans=0))
        self.save("wrestlers", Wrestler(name="Local Only", external_id=None, fans=0))

        result = self.checker.check()

        assert result.valid
        assert "Found duplicate external IDs in wrestlers" in result.warnings
        assert result.statistics["duplicate_wrestlers_external_ids"] == 1

    def test_show_without_type_and_far_future_date(self):
        weekly = self.save("show_types", ShowType(name="Weekly", external_id="st-1"))
        self.save("shows", Show(name="Untyped", external_id="s-1", show_type_id=None))
        self.save("shows", Show(name="Typo", external_id="s-2", show_type_id=weekly.id,
                                show_date=date(2204, 6, 1)))
        self.save("shows", Show(name="Next Year", external_id="s-3", show_type_id=weekly.id,
                                show_date=date(2025, 6, 1)))

        result = self.checker.check()

        assert "Found 1 shows without show type" in result.errors
        assert "Found 1 shows with dates more than 10 years in the future" in result.warnings
        assert result.statistics["shows_with_future_dates"] == 1

    def test_teams_and_factions(self):
        ace, _ = self.seed_roster()
        self.save("teams", Team(name="Nobody", external_id="t-1"))
        self.save("teams", Team(name="Solo", external_id="t-2", wrestler2_id=ace.id))
        self.save("factions", Faction(name="Empty", external_id="f-1", member_ids=[]))

        result = self.checker.check()

        assert "Found 1 teams without any wrestlers" in result.errors
        assert "Found 1 teams with only one wrestler" in result.warnings
        assert "Found 1 factions without members" in result.warnings

    def test_dangling_references(self):
        ace, _ = self.seed_roster()
        self.save("segments", Segment(external_id="g-1", show_id=404, segment_type="Promo",
                                      participant_ids=[ace.id]))
        self.save("segments", Segment(external_id="g-2", show_id=405, segment_type="Promo",
                                      participant_ids=[ace.id, 999]))
        self.save("factions", Faction(name="Ghosts", external_id="f-1", member_ids=[ace.id, 998]))

        result = self.checker.check()

        assert not result.valid
        assert "Found 2 segments with references to missing records" in result.errors
        assert "Found 1 factions with references to missing records" in result.errors
        assert result.statistics["segments_with_dangling_references"] == 2

    def test_unreachable_repository_is_reported(self):
        registry = RepositoryRegistry({"wrestlers": BrokenRepository()})

        result = DataIntegrityChecker(registry).check()

        assert not result.valid
        assert result.errors == ["Integrity check failed: database unreachable"]


class TestIntegrityCheckResult:
    def test_summary_and_dict(self):
        result = IntegrityCheckResult(
            errors=["Found 1 teams without any wrestlers"],
            warnings=["Found 1 factions without members", "Found duplicate external IDs in npcs"],
            statistics={"total_teams": 1},
        )

        assert result.summary() == "Data integrity check failed (1 errors) (2 warnings)"
        assert result.to_dict() == {
            "valid": False,
            "summary": "Data integrity check failed (1 errors) (2 warnings)",
            "errors": ["Found 1 teams without any wrestlers"],
            "warnings": ["Found 1 factions without members", "Found duplicate external IDs in npcs"],
            "statistics": {"total_teams": 1},
        }
