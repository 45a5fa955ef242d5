"""
Transfer objects.

Typed view of a source page after conversion. References to other entities
are kept as external ids (``*_ref`` fields) and resolved to local ids during
reconciliation.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from promosync.database.models import Gender

MAX_DESCRIPTION_LENGTH = 1000


def truncate_text(value: Optional[str], limit: int = MAX_DESCRIPTION_LENGTH) -> Optional[str]:
    """Cut ``value`` to ``limit`` characters, marking the cut with an ellipsis."""
    if value is None or len(value) <= limit:
        return value
    return value[:limit - 3] + "..."


class EntityDTO(BaseModel):
    """Fields every transfer object carries."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    external_id: str = Field(..., min_length=1, description="Source page id")


class NamedEntityDTO(EntityDTO):
    name: str = Field(..., min_length=1, description="Display name; also the natural key")


class DescribedEntityDTO(NamedEntityDTO):
    description: Optional[str] = Field(None, description="Free text, at most 1000 characters")

    @field_validator('description')
    @classmethod
    def truncate_description(cls, v):
        """Clip long descriptions instead of rejecting the record."""
        return truncate_text(v)


class ShowTypeDTO(DescribedEntityDTO):
    pass


class ShowTemplateDTO(DescribedEntityDTO):
    show_type_ref: Optional[str] = None
    notion_url: Optional[str] = None


class SeasonDTO(NamedEntityDTO):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = False


class InjuryTypeDTO(NamedEntityDTO):
    health_effect: Optional[int] = None
    stamina_effect: Optional[int] = None
    card_effect: Optional[int] = None
    special_effects: Optional[str] = None


class NpcDTO(DescribedEntityDTO):
    npc_type: Optional[str] = None


class WrestlerDTO(DescribedEntityDTO):
    gender: Optional[Gender] = None
    # None means "not provided": the stored value is kept
    fans: Optional[int] = Field(None, ge=0)
    tier: Optional[str] = None


class FactionDTO(DescribedEntityDTO):
    is_active: bool = True
    leader_ref: Optional[str] = None
    member_refs: List[str] = Field(default_factory=list)


class TeamDTO(NamedEntityDTO):
    wrestler1_ref: Optional[str] = None
    wrestler2_ref: Optional[str] = None
    faction_ref: Optional[str] = None
    is_active: bool = True

    @model_validator(mode='after')
    def validate_members(self):
        """A team needs at least one wrestler."""
        if not self.wrestler1_ref and not self.wrestler2_ref:
            raise ValueError('team must reference at least one wrestler')
        return self


class TitleDTO(NamedEntityDTO):
    tier: Optional[str] = None
    gender: Optional[Gender] = None
    is_active: bool = True
    champion_refs: List[str] = Field(default_factory=list)


class TitleReignDTO(EntityDTO):
    title_ref: str = Field(..., min_length=1)
    champion_refs: List[str] = Field(..., min_length=1)
    reign_number: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError('reign cannot end before it starts')
        return self


class ShowDTO(DescribedEntityDTO):
    show_date: Optional[date] = None
    show_type_ref: str = Field(..., min_length=1)
    season_ref: Optional[str] = None
    template_ref: Optional[str] = None


class SegmentDTO(EntityDTO):
    show_ref: str = Field(..., min_length=1)
    segment_type: str = Field(..., min_length=1)
    participant_refs: List[str] = Field(default_factory=list)
    winner_refs: List[str] = Field(default_factory=list)
    order: Optional[int] = None
    narration: Optional[str] = None
    is_title_segment: bool = False

    @model_validator(mode='after')
    def validate_winners(self):
        """Winners must be among the participants."""
        outsiders = set(self.winner_refs) - set(self.participant_refs)
        if outsiders:
            raise ValueError(f'winners not among participants: {sorted(outsiders)}')
        return self


class RivalryDTO(EntityDTO):
    wrestler1_ref: str = Field(..., min_length=1)
    wrestler2_ref: str = Field(..., min_length=1)
    heat: int = 0
    is_active: bool = True
    storyline_notes: Optional[str] = None

    @model_validator(mode='after')
    def validate_pair(self):
        if self.wrestler1_ref == self.wrestler2_ref:
            raise ValueError('a wrestler cannot feud with themselves')
        return self


class FactionRivalryDTO(EntityDTO):
    faction1_ref: str = Field(..., min_length=1)
    faction2_ref: str = Field(..., min_length=1)
    heat: int = 0
    is_active: bool = True

    @model_validator(mode='after')
    def validate_pair(self):
        if self.faction1_ref == self.faction2_ref:
            raise ValueError('a faction cannot feud with itself')
        return self


__all__ = [
    "MAX_DESCRIPTION_LENGTH",
    "truncate_text",
    "EntityDTO",
    "NamedEntityDTO",
    "DescribedEntityDTO",
    "ShowTypeDTO",
    "ShowTemplateDTO",
    "SeasonDTO",
    "InjuryTypeDTO",
    "NpcDTO",
    "WrestlerDTO",
    "FactionDTO",
    "TeamDTO",
    "TitleDTO",
    "TitleReignDTO",
    "ShowDTO",
    "SegmentDTO",
    "RivalryDTO",
    "FactionRivalryDTO",
]
