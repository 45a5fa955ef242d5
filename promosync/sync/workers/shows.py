"""
Show structure workers: show types, templates, seasons, shows and segments.
"""

from typing import Any, Dict, Optional

from promosync.database.models import Season, Segment, Show, ShowTemplate, ShowType
from promosync.sync.connectors.base import RawPage
from promosync.sync.models import SyncEntityType
from promosync.sync.workers.base import EntitySyncWorker
from promosync.sync.workers.dtos import (
    SeasonDTO,
    SegmentDTO,
    ShowDTO,
    ShowTemplateDTO,
    ShowTypeDTO,
)


class ShowTypeSyncWorker(EntitySyncWorker):
    entity_type = SyncEntityType.SHOW_TYPES

    def convert(self, page: RawPage) -> ShowTypeDTO:
        return ShowTypeDTO(
            external_id=page.id,
            name=page.text("Name"),
            description=page.text("Description"),
        )

    def new_record(self) -> ShowType:
        return ShowType()

    def apply(self, record: ShowType, dto: ShowTypeDTO, refs: Dict[str, Any]) -> None:
        record.name = dto.name
        record.description = dto.description


class ShowTemplateSyncWorker(EntitySyncWorker):
    entity_type = SyncEntityType.SHOW_TEMPLATES

    def convert(self, page: RawPage) -> ShowTemplateDTO:
        return ShowTemplateDTO(
            external_id=page.id,
            name=page.text("Name"),
            description=page.text("Description"),
            show_type_ref=self.first_ref(page, "Show Type"),
            notion_url=page.url,
        )

    def resolve(self, dto: ShowTemplateDTO) -> Dict[str, Any]:
        return {"show_type_id": self.resolve_ref(SyncEntityType.SHOW_TYPES, dto.show_type_ref)}

    def new_record(self) -> ShowTemplate:
        return ShowTemplate()

    def apply(self, record: ShowTemplate, dto: ShowTemplateDTO, refs: Dict[str, Any]) -> None:
        record.name = dto.name
        record.description = dto.description
        record.show_type_id = refs["show_type_id"]
        record.notion_url = dto.notion_url


class SeasonSyncWorker(EntitySyncWorker):
    """Seasons; notes are kept locally and never overwritten."""

    entity_type = SyncEntityType.SEASONS

    def convert(self, page: RawPage) -> SeasonDTO:
        return SeasonDTO(
            external_id=page.id,
            name=page.text("Name"),
            start_date=page.date("Start Date"),
            end_date=page.date("End Date") or page.date("Ended Date"),
            is_active=self.active(page, default=False),
        )

    def new_record(self) -> Season:
        return Season()

    def apply(self, record: Season, dto: SeasonDTO, refs: Dict[str, Any]) -> None:
        record.name = dto.name
        record.start_date = dto.start_date
        record.end_date = dto.end_date
        record.is_active = dto.is_active


class ShowSyncWorker(EntitySyncWorker):
    """
    Shows require a show type. Season and template are optional, but a
    reference that is given must resolve. Weekly episodes share a name,
    so shows are matched by external id only.
    """

    entity_type = SyncEntityType.SHOWS

    def convert(self, page: RawPage) -> ShowDTO:
        return ShowDTO(
            external_id=page.id,
            name=page.text("Name"),
            show_date=page.date("Date"),
            description=page.text("Description"),
            show_type_ref=self.first_ref(page, "Show Type"),
            season_ref=self.first_ref(page, "Season"),
            template_ref=self.first_ref(page, "Template"),
        )

    def resolve(self, dto: ShowDTO) -> Dict[str, Any]:
        return {
            "show_type_id": self.resolve_ref(SyncEntityType.SHOW_TYPES, dto.show_type_ref),
            "season_id": self.resolve_ref(SyncEntityType.SEASONS, dto.season_ref),
            "template_id": self.resolve_ref(SyncEntityType.SHOW_TEMPLATES, dto.template_ref),
        }

    def natural_key(self, dto: ShowDTO, refs: Dict[str, Any]) -> Optional[tuple]:
        return None

    def new_record(self) -> Show:
        return Show()

    def apply(self, record: Show, dto: ShowDTO, refs: Dict[str, Any]) -> None:
        record.name = dto.name
        record.show_date = dto.show_date
        record.description = dto.description
        record.show_type_id = refs["show_type_id"]
        record.season_id = refs["season_id"]
        record.template_id = refs["template_id"]


class SegmentSyncWorker(EntitySyncWorker):
    """Segments are identified by external id only."""

    entity_type = SyncEntityType.SEGMENTS

    def convert(self, page: RawPage) -> SegmentDTO:
        participants = page.relation_ids("Participants") or page.relation_ids("Wrestlers")
        return SegmentDTO(
            external_id=page.id,
            show_ref=self.first_ref(page, "Show"),
            segment_type=page.text("Segment Type"),
            participant_refs=participants,
            winner_refs=page.relation_ids("Winners"),
            order=page.integer("Order"),
            narration=page.text("Narration"),
            is_title_segment=bool(page.boolean("Title Segment")),
        )

    def resolve(self, dto: SegmentDTO) -> Dict[str, Any]:
        return {
            "show_id": self.resolve_ref(SyncEntityType.SHOWS, dto.show_ref),
            "participant_ids": self.resolve_refs(SyncEntityType.WRESTLERS, dto.participant_refs),
            "winner_ids": self.resolve_refs(SyncEntityType.WRESTLERS, dto.winner_refs),
        }

    def natural_key(self, dto: SegmentDTO, refs: Dict[str, Any]) -> Optional[tuple]:
        return None

    def new_record(self) -> Segment:
        return Segment(participant_ids=[], winner_ids=[])

    def apply(self, record: Segment, dto: SegmentDTO, refs: Dict[str, Any]) -> None:
        record.show_id = refs["show_id"]
        record.segment_type = dto.segment_type
        record.participant_ids = refs["participant_ids"]
        record.winner_ids = refs["winner_ids"]
        record.segment_order = dto.order
        record.narration = dto.narration
        record.is_title_segment = dto.is_title_segment


__all__ = [
    "ShowTypeSyncWorker",
    "ShowTemplateSyncWorker",
    "SeasonSyncWorker",
    "ShowSyncWorker",
    "SegmentSyncWorker",
]
