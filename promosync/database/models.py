"""
SQLAlchemy ORM models for the promotion's local state.

Every synchronized table carries the external (Notion page) id of its source
record next to the local primary key. Columns marked local-only are owned by
the simulation and never written by the sync engine.
"""

from datetime import date, datetime
from sqlalchemy import (
    String, Text, Integer, Date, DateTime, Boolean, ForeignKey,
    Enum as SQLEnum, JSON
)
from sqlalchemy.orm import Mapped, mapped_column
import enum
from typing import ClassVar, List, Optional, Tuple

from promosync.database.connection import Base


# ============================================================================
# Enumerations
# ============================================================================

class Gender(str, enum.Enum):
    """Wrestler and title division gender."""
    MALE = "MALE"
    FEMALE = "FEMALE"


# ============================================================================
# Mixins
# ============================================================================

class SyncedEntityMixin:
    """Columns shared by every synchronized table."""

    # Columns identifying a record when it has no external id yet
    __natural_key__: ClassVar[Optional[Tuple[str, ...]]] = ("name",)
    # Natural key columns form an unordered pair
    __unordered_key__: ClassVar[bool] = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True, index=True, nullable=True)

    # Timestamps
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


def natural_key_of(record) -> Optional[tuple]:
    """Natural key value of a record, or ``None`` when its type has none."""
    columns = type(record).__natural_key__
    if not columns:
        return None
    values = tuple(getattr(record, column) for column in columns)
    if any(value is None for value in values):
        return None
    if type(record).__unordered_key__:
        return tuple(sorted(values))
    return values


# ============================================================================
# Show structure
# ============================================================================

class ShowType(SyncedEntityMixin, Base):
    """Show format such as weekly TV or premium live event."""
    __tablename__ = "show_types"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class ShowTemplate(SyncedEntityMixin, Base):
    """Reusable show blueprint."""
    __tablename__ = "show_templates"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    show_type_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("show_types.id"), nullable=True)
    notion_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)


class Season(SyncedEntityMixin, Base):
    __tablename__ = "seasons"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)

    # Local-only
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Show(SyncedEntityMixin, Base):
    """One episode or event, identified by its external id."""
    __tablename__ = "shows"
    __natural_key__ = None

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    show_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    show_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("show_types.id"), nullable=False)
    season_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("seasons.id"), nullable=True)
    template_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("show_templates.id"), nullable=True)

    # Local-only
    attendance: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class Segment(SyncedEntityMixin, Base):
    """A match or promo on a show's card."""
    __tablename__ = "segments"
    __natural_key__ = None

    show_id: Mapped[int] = mapped_column(Integer, ForeignKey("shows.id"), nullable=False, index=True)
    segment_type: Mapped[str] = mapped_column(String(100), nullable=False)
    participant_ids: Mapped[List[int]] = mapped_column(JSON, default=list)
    winner_ids: Mapped[List[int]] = mapped_column(JSON, default=list)
    segment_order: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    narration: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_title_segment: Mapped[bool] = mapped_column(Boolean, default=False)


# ============================================================================
# Roster
# ============================================================================

class InjuryType(SyncedEntityMixin, Base):
    __tablename__ = "injury_types"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    health_effect: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    stamina_effect: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    card_effect: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    special_effects: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Npc(SyncedEntityMixin, Base):
    """Non-wrestling character such as a referee or manager."""
    __tablename__ = "npcs"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    npc_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Wrestler(SyncedEntityMixin, Base):
    __tablename__ = "wrestlers"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gender: Mapped[Optional[Gender]] = mapped_column(SQLEnum(Gender), nullable=True)
    fans: Mapped[int] = mapped_column(Integer, default=0)
    tier: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Local-only
    bumps: Mapped[int] = mapped_column(Integer, default=0)
    wins: Mapped[int] = mapped_column(Integer, default=0)
    losses: Mapped[int] = mapped_column(Integer, default=0)
    current_health: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class Faction(SyncedEntityMixin, Base):
    __tablename__ = "factions"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    leader_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("wrestlers.id"), nullable=True)
    member_ids: Mapped[List[int]] = mapped_column(JSON, default=list)


class Team(SyncedEntityMixin, Base):
    """Tag team of one or two wrestlers."""
    __tablename__ = "teams"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    wrestler1_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("wrestlers.id"), nullable=True)
    wrestler2_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("wrestlers.id"), nullable=True)
    faction_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("factions.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


# ============================================================================
# Championships
# ============================================================================

class Title(SyncedEntityMixin, Base):
    __tablename__ = "titles"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    tier: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    gender: Mapped[Optional[Gender]] = mapped_column(SQLEnum(Gender), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    champion_ids: Mapped[List[int]] = mapped_column(JSON, default=list)

    # Local-only
    defense_count: Mapped[int] = mapped_column(Integer, default=0)


class TitleReign(SyncedEntityMixin, Base):
    __tablename__ = "title_reigns"
    __natural_key__ = None

    title_id: Mapped[int] = mapped_column(Integer, ForeignKey("titles.id"), nullable=False, index=True)
    champion_ids: Mapped[List[int]] = mapped_column(JSON, default=list)
    reign_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


# ============================================================================
# Storylines
# ============================================================================

class Rivalry(SyncedEntityMixin, Base):
    __tablename__ = "rivalries"
    __natural_key__ = ("wrestler1_id", "wrestler2_id")
    __unordered_key__ = True

    wrestler1_id: Mapped[int] = mapped_column(Integer, ForeignKey("wrestlers.id"), nullable=False)
    wrestler2_id: Mapped[int] = mapped_column(Integer, ForeignKey("wrestlers.id"), nullable=False)
    heat: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    storyline_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Local-only
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class FactionRivalry(SyncedEntityMixin, Base):
    __tablename__ = "faction_rivalries"
    __natural_key__ = ("faction1_id", "faction2_id")
    __unordered_key__ = True

    faction1_id: Mapped[int] = mapped_column(Integer, ForeignKey("factions.id"), nullable=False)
    faction2_id: Mapped[int] = mapped_column(Integer, ForeignKey("factions.id"), nullable=False)
    heat: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


__all__ = [
    "Gender",
    "SyncedEntityMixin",
    "natural_key_of",
    "ShowType",
    "ShowTemplate",
    "Season",
    "Show",
    "Segment",
    "InjuryType",
    "Npc",
    "Wrestler",
    "Faction",
    "Team",
    "Title",
    "TitleReign",
    "Rivalry",
    "FactionRivalry",
]
