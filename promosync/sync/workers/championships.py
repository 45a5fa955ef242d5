"""
Championship workers: titles and title reigns.
"""

from typing import Any, Dict, Optional

from promosync.database.models import Title, TitleReign
from promosync.sync.connectors.base import RawPage
from promosync.sync.models import SyncEntityType
from promosync.sync.workers.base import EntitySyncWorker
from promosync.sync.workers.dtos import TitleDTO, TitleReignDTO


class TitleSyncWorker(EntitySyncWorker):
    """Titles; the defense count is tracked locally."""

    entity_type = SyncEntityType.TITLES

    def convert(self, page: RawPage) -> TitleDTO:
        champions = page.relation_ids("Current Champion") or page.relation_ids("Champions")
        return TitleDTO(
            external_id=page.id,
            name=page.text("Name"),
            tier=self.tier(page),
            gender=self.gender(page, "Gender"),
            is_active=self.active(page),
            champion_refs=champions,
        )

    def resolve(self, dto: TitleDTO) -> Dict[str, Any]:
        return {"champion_ids": self.resolve_refs(SyncEntityType.WRESTLERS, dto.champion_refs)}

    def new_record(self) -> Title:
        return Title(champion_ids=[], defense_count=0)

    def apply(self, record: Title, dto: TitleDTO, refs: Dict[str, Any]) -> None:
        record.name = dto.name
        record.tier = dto.tier
        if dto.gender is not None:
            record.gender = dto.gender
        record.is_active = dto.is_active
        record.champion_ids = refs["champion_ids"]


class TitleReignSyncWorker(EntitySyncWorker):
    entity_type = SyncEntityType.TITLE_REIGNS

    def convert(self, page: RawPage) -> TitleReignDTO:
        return TitleReignDTO(
            external_id=page.id,
            title_ref=self.first_ref(page, "Title"),
            champion_refs=page.relation_ids("Champions") or page.relation_ids("Champion"),
            reign_number=page.integer("Reign Number"),
            start_date=page.date("Start Date") or page.date("Won Date"),
            end_date=page.date("End Date") or page.date("Lost Date"),
        )

    def resolve(self, dto: TitleReignDTO) -> Dict[str, Any]:
        return {
            "title_id": self.resolve_ref(SyncEntityType.TITLES, dto.title_ref),
            "champion_ids": self.resolve_refs(SyncEntityType.WRESTLERS, dto.champion_refs),
        }

    def natural_key(self, dto: TitleReignDTO, refs: Dict[str, Any]) -> Optional[tuple]:
        return None

    def new_record(self) -> TitleReign:
        return TitleReign(champion_ids=[])

    def apply(self, record: TitleReign, dto: TitleReignDTO, refs: Dict[str, Any]) -> None:
        record.title_id = refs["title_id"]
        record.champion_ids = refs["champion_ids"]
        record.reign_number = dto.reign_number
        record.start_date = dto.start_date
        record.end_date = dto.end_date


__all__ = ["TitleSyncWorker", "TitleReignSyncWorker"]
