"""
Roster workers: wrestlers, NPCs, factions and tag teams.
"""

from typing import Any, Dict

from promosync.database.models import Faction, Npc, Team, Wrestler
from promosync.sync.connectors.base import RawPage
from promosync.sync.models import SyncEntityType
from promosync.sync.workers.base import EntitySyncWorker
from promosync.sync.workers.dtos import FactionDTO, NpcDTO, TeamDTO, WrestlerDTO


class WrestlerSyncWorker(EntitySyncWorker):
    """
    Wrestlers are the root of most references.

    The fan count is only overwritten when the source provides one; bumps,
    wins, losses and current health belong to the simulation.
    """

    entity_type = SyncEntityType.WRESTLERS

    def convert(self, page: RawPage) -> WrestlerDTO:
        return WrestlerDTO(
            external_id=page.id,
            name=page.text("Name"),
            description=page.text("Description"),
            gender=self.gender(page, "Gender") or self.gender(page, "Sex"),
            fans=page.integer("Fans"),
            tier=self.tier(page),
        )

    def new_record(self) -> Wrestler:
        return Wrestler(fans=0, bumps=0, wins=0, losses=0)

    def apply(self, record: Wrestler, dto: WrestlerDTO, refs: Dict[str, Any]) -> None:
        record.name = dto.name
        record.description = dto.description
        if dto.gender is not None:
            record.gender = dto.gender
        if dto.fans is not None:
            record.fans = dto.fans
        if dto.tier is not None:
            record.tier = dto.tier


class NpcSyncWorker(EntitySyncWorker):
    entity_type = SyncEntityType.NPCS

    def convert(self, page: RawPage) -> NpcDTO:
        return NpcDTO(
            external_id=page.id,
            name=page.text("Name"),
            npc_type=page.text("Role") or page.text("Type"),
            description=page.text("Description"),
        )

    def new_record(self) -> Npc:
        return Npc()

    def apply(self, record: Npc, dto: NpcDTO, refs: Dict[str, Any]) -> None:
        record.name = dto.name
        record.npc_type = dto.npc_type
        record.description = dto.description


class FactionSyncWorker(EntitySyncWorker):
    entity_type = SyncEntityType.FACTIONS

    def convert(self, page: RawPage) -> FactionDTO:
        return FactionDTO(
            external_id=page.id,
            name=page.text("Name"),
            description=page.text("Description"),
            is_active=self.active(page),
            leader_ref=self.first_ref(page, "Leader"),
            member_refs=page.relation_ids("Members"),
        )

    def resolve(self, dto: FactionDTO) -> Dict[str, Any]:
        return {
            "leader_id": self.resolve_ref(SyncEntityType.WRESTLERS, dto.leader_ref),
            "member_ids": self.resolve_refs(SyncEntityType.WRESTLERS, dto.member_refs),
        }

    def new_record(self) -> Faction:
        return Faction(member_ids=[])

    def apply(self, record: Faction, dto: FactionDTO, refs: Dict[str, Any]) -> None:
        record.name = dto.name
        record.description = dto.description
        record.is_active = dto.is_active
        record.leader_id = refs["leader_id"]
        record.member_ids = refs["member_ids"]


class TeamSyncWorker(EntitySyncWorker):
    entity_type = SyncEntityType.TEAMS

    def convert(self, page: RawPage) -> TeamDTO:
        return TeamDTO(
            external_id=page.id,
            name=page.text("Name"),
            wrestler1_ref=self.first_ref(page, "Member 1"),
            wrestler2_ref=self.first_ref(page, "Member 2"),
            faction_ref=self.first_ref(page, "Faction"),
            is_active=self.active(page),
        )

    def resolve(self, dto: TeamDTO) -> Dict[str, Any]:
        return {
            "wrestler1_id": self.resolve_ref(SyncEntityType.WRESTLERS, dto.wrestler1_ref),
            "wrestler2_id": self.resolve_ref(SyncEntityType.WRESTLERS, dto.wrestler2_ref),
            "faction_id": self.resolve_ref(SyncEntityType.FACTIONS, dto.faction_ref),
        }

    def new_record(self) -> Team:
        return Team()

    def apply(self, record: Team, dto: TeamDTO, refs: Dict[str, Any]) -> None:
        record.name = dto.name
        record.wrestler1_id = refs["wrestler1_id"]
        record.wrestler2_id = refs["wrestler2_id"]
        record.faction_id = refs["faction_id"]
        record.is_active = dto.is_active


__all__ = ["WrestlerSyncWorker", "NpcSyncWorker", "FactionSyncWorker", "TeamSyncWorker"]
