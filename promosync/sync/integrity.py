"""
Post-sync data integrity checks.

Looks for problems a successful sync can still leave behind: records
without a name, duplicate external ids, dangling references between local
records and incomplete teams or factions.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Set

from promosync.database.repositories import RepositoryRegistry
from promosync.sync.models import SyncEntityType

logger = logging.getLogger(__name__)

E = SyncEntityType

# Shows dated further ahead than this are probably typos
FUTURE_DATE_LIMIT_DAYS = 365 * 10

# (entity type, attribute, referenced entity type, attribute holds a list of ids)
REFERENCES = [
    (E.SHOW_TEMPLATES.value, "show_type_id", E.SHOW_TYPES.value, False),
    (E.SHOWS.value, "show_type_id", E.SHOW_TYPES.value, False),
    (E.SHOWS.value, "season_id", E.SEASONS.value, False),
    (E.SHOWS.value, "template_id", E.SHOW_TEMPLATES.value, False),
    (E.SEGMENTS.value, "show_id", E.SHOWS.value, False),
    (E.SEGMENTS.value, "participant_ids", E.WRESTLERS.value, True),
    (E.FACTIONS.value, "leader_id", E.WRESTLERS.value, False),
    (E.FACTIONS.value, "member_ids", E.WRESTLERS.value, True),
    (E.TEAMS.value, "wrestler1_id", E.WRESTLERS.value, False),
    (E.TEAMS.value, "wrestler2_id", E.WRESTLERS.value, False),
    (E.TEAMS.value, "faction_id", E.FACTIONS.value, False),
    (E.TITLES.value, "champion_ids", E.WRESTLERS.value, True),
    (E.TITLE_REIGNS.value, "title_id", E.TITLES.value, False),
    (E.TITLE_REIGNS.value, "champion_ids", E.WRESTLERS.value, True),
    (E.RIVALRIES.value, "wrestler1_id", E.WRESTLERS.value, False),
    (E.RIVALRIES.value, "wrestler2_id", E.WRESTLERS.value, False),
    (E.FACTION_RIVALRIES.value, "faction1_id", E.FACTIONS.value, False),
    (E.FACTION_RIVALRIES.value, "faction2_id", E.FACTIONS.value, False),
]


@dataclass
class IntegrityCheckResult:
    """Errors, warnings and record statistics of one integrity check."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    statistics: Dict[str, Any] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        text = "Data integrity check passed" if self.valid else "Data integrity check failed"
        if self.errors:
            text += f" ({len(self.errors)} errors)"
        if self.warnings:
            text += f" ({len(self.warnings)} warnings)"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "summary": self.summary(),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "statistics": dict(self.statistics),
        }


class DataIntegrityChecker:
    """
    Checks the local records of every registered entity type.

    A check that cannot run (for example because the database is
    unreachable) is reported as an error on the result; ``check`` itself
    does not raise.
    """

    def __init__(
        self,
        repositories: RepositoryRegistry,
        today: Callable[[], date] = date.today
    ):
        self.repositories = repositories
        self._today = today

    def check(self) -> IntegrityCheckResult:
        """
        Run every check.

        Returns:
            IntegrityCheckResult; ``valid`` is False when any error was found
        """
        logger.info("Starting data integrity check")
        started = time.monotonic()
        result = IntegrityCheckResult()

        try:
            records = {key: self.repositories.get(key).list_all() for key in self.repositories}
        except Exception as e:
            logger.error(f"Data integrity check failed: {e}")
            result.errors.append(f"Integrity check failed: {e}")
            return result

        for key, items in sorted(records.items()):
            result.statistics[f"total_{key}"] = len(items)

        self._check_external_ids(records, result)
        self._check_names(records, result)
        self._check_shows(records.get(E.SHOWS.value, []), result)
        self._check_factions(records.get(E.FACTIONS.value, []), result)
        self._check_teams(records.get(E.TEAMS.value, []), result)
        self._check_references(records, result)

        duration_ms = (time.monotonic() - started) * 1000
        result.statistics["check_duration_ms"] = round(duration_ms, 2)
        logger.info(
            f"Data integrity check completed in {duration_ms:.0f}ms: "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result

    def _check_external_ids(self, records: Dict[str, List[Any]], result: IntegrityCheckResult) -> None:
        for key, items in sorted(records.items()):
            ids = [item.external_id for item in items if item.external_id and item.external_id.strip()]
            duplicates = len(ids) - len(set(ids))
            if duplicates:
                result.warnings.append(f"Found duplicate external IDs in {key}")
                result.statistics[f"duplicate_{key}_external_ids"] = duplicates

    def _check_names(self, records: Dict[str, List[Any]], result: IntegrityCheckResult) -> None:
        for key, items in sorted(records.items()):
            unnamed = sum(
                1 for item in items
                if hasattr(item, "name") and not (item.name or "").strip()
            )
            if unnamed:
                result.errors.append(f"Found {unnamed} {key} without names")
                result.statistics[f"{key}_without_name"] = unnamed

    def _check_shows(self, shows: List[Any], result: IntegrityCheckResult) -> None:
        without_type = sum(1 for show in shows if show.show_type_id is None)
        if without_type:
            result.errors.append(f"Found {without_type} shows without show type")
            result.statistics["shows_without_type"] = without_type

        limit = self._today() + timedelta(days=FUTURE_DATE_LIMIT_DAYS)
        far_future = sum(1 for show in shows if show.show_date is not None and show.show_date > limit)
        if far_future:
            result.warnings.append(f"Found {far_future} shows with dates more than 10 years in the future")
            result.statistics["shows_with_future_dates"] = far_future

    def _check_factions(self, factions: List[Any], result: IntegrityCheckResult) -> None:
        without_members = sum(1 for faction in factions if not faction.member_ids)
        if without_members:
            result.warnings.append(f"Found {without_members} factions without members")
            result.statistics["factions_without_members"] = without_members

    def _check_teams(self, teams: List[Any], result: IntegrityCheckResult) -> None:
        empty = sum(1 for team in teams if team.wrestler1_id is None and team.wrestler2_id is None)
        if empty:
            result.errors.append(f"Found {empty} teams without any wrestlers")
            result.statistics["teams_without_wrestlers"] = empty

        incomplete = sum(1 for team in teams if (team.wrestler1_id is None) != (team.wrestler2_id is None))
        if incomplete:
            result.warnings.append(f"Found {incomplete} teams with only one wrestler")
            result.statistics["teams_with_one_wrestler"] = incomplete

    def _check_references(self, records: Dict[str, List[Any]], result: IntegrityCheckResult) -> None:
        known: Dict[str, Set[int]] = {key: {item.id for item in items} for key, items in records.items()}
        dangling: Dict[str, int] = {}

        for key, attribute, target, is_list in REFERENCES:
            if key not in records or target not in known:
                continue
            for item in records[key]:
                value = getattr(item, attribute, None)
                refs = (value or []) if is_list else ([] if value is None else [value])
                missing = [ref for ref in refs if ref not in known[target]]
                if missing:
                    dangling[key] = dangling.get(key, 0) + 1
                    logger.debug(f"{key} record {item.id} has dangling {attribute}: {missing}")

        for key, count in sorted(dangling.items()):
            result.errors.append(f"Found {count} {key} with references to missing records")
            result.statistics[f"{key}_with_dangling_references"] = count


__all__ = ["IntegrityCheckResult", "DataIntegrityChecker", "REFERENCES"]
