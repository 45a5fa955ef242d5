"""
Storyline workers: injury types, rivalries and faction rivalries.
"""

from typing import Any, Dict, Optional

from promosync.database.models import FactionRivalry, InjuryType, Rivalry
from promosync.sync.connectors.base import RawPage
from promosync.sync.models import SyncEntityType
from promosync.sync.workers.base import EntitySyncWorker
from promosync.sync.workers.dtos import FactionRivalryDTO, InjuryTypeDTO, RivalryDTO, truncate_text


class InjurySyncWorker(EntitySyncWorker):
    entity_type = SyncEntityType.INJURIES

    def convert(self, page: RawPage) -> InjuryTypeDTO:
        return InjuryTypeDTO(
            external_id=page.id,
            name=page.text("Name") or page.text("Injury Name"),
            health_effect=page.integer("Health Effect"),
            stamina_effect=page.integer("Stamina Effect"),
            card_effect=page.integer("Card Effect"),
            special_effects=truncate_text(page.text("Special Effects")),
        )

    def new_record(self) -> InjuryType:
        return InjuryType()

    def apply(self, record: InjuryType, dto: InjuryTypeDTO, refs: Dict[str, Any]) -> None:
        record.name = dto.name
        record.health_effect = dto.health_effect
        record.stamina_effect = dto.stamina_effect
        record.card_effect = dto.card_effect
        record.special_effects = dto.special_effects


class RivalrySyncWorker(EntitySyncWorker):
    """
    One-on-one rivalries.

    The natural key is the unordered wrestler pair, so a rivalry entered as
    (A, B) in one place and (B, A) in another is the same record. The
    resolution date is local state.
    """

    entity_type = SyncEntityType.RIVALRIES

    def convert(self, page: RawPage) -> RivalryDTO:
        return RivalryDTO(
            external_id=page.id,
            wrestler1_ref=self.first_ref(page, "Wrestler 1"),
            wrestler2_ref=self.first_ref(page, "Wrestler 2"),
            heat=page.integer("Heat") or 0,
            is_active=self.active(page),
            storyline_notes=truncate_text(page.text("Storyline Notes")),
        )

    def resolve(self, dto: RivalryDTO) -> Dict[str, Any]:
        return {
            "wrestler1_id": self.resolve_ref(SyncEntityType.WRESTLERS, dto.wrestler1_ref),
            "wrestler2_id": self.resolve_ref(SyncEntityType.WRESTLERS, dto.wrestler2_ref),
        }

    def natural_key(self, dto: RivalryDTO, refs: Dict[str, Any]) -> Optional[tuple]:
        return tuple(sorted((refs["wrestler1_id"], refs["wrestler2_id"])))

    def new_record(self) -> Rivalry:
        return Rivalry()

    def apply(self, record: Rivalry, dto: RivalryDTO, refs: Dict[str, Any]) -> None:
        record.wrestler1_id = refs["wrestler1_id"]
        record.wrestler2_id = refs["wrestler2_id"]
        record.heat = dto.heat
        record.is_active = dto.is_active
        record.storyline_notes = dto.storyline_notes


class FactionRivalrySyncWorker(EntitySyncWorker):
    entity_type = SyncEntityType.FACTION_RIVALRIES

    def convert(self, page: RawPage) -> FactionRivalryDTO:
        return FactionRivalryDTO(
            external_id=page.id,
            faction1_ref=self.first_ref(page, "Faction 1"),
            faction2_ref=self.first_ref(page, "Faction 2"),
            heat=page.integer("Heat") or 0,
            is_active=self.active(page),
        )

    def resolve(self, dto: FactionRivalryDTO) -> Dict[str, Any]:
        return {
            "faction1_id": self.resolve_ref(SyncEntityType.FACTIONS, dto.faction1_ref),
            "faction2_id": self.resolve_ref(SyncEntityType.FACTIONS, dto.faction2_ref),
        }

    def natural_key(self, dto: FactionRivalryDTO, refs: Dict[str, Any]) -> Optional[tuple]:
        return tuple(sorted((refs["faction1_id"], refs["faction2_id"])))

    def new_record(self) -> FactionRivalry:
        return FactionRivalry()

    def apply(self, record: FactionRivalry, dto: FactionRivalryDTO, refs: Dict[str, Any]) -> None:
        record.faction1_id = refs["faction1_id"]
        record.faction2_id = refs["faction2_id"]
        record.heat = dto.heat
        record.is_active = dto.is_active


__all__ = ["InjurySyncWorker", "RivalrySyncWorker", "FactionRivalrySyncWorker"]
