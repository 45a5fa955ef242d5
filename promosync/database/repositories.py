"""
Entity repositories.

Workers read and write local records only through ``EntityRepository``.
Lookups return ``None`` when nothing matches; they never raise for a miss.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Dict, Generic, Iterator, List, Mapping, Optional, Type, TypeVar

from sqlalchemy import and_, func, or_, select

from promosync.database.connection import DatabaseManager
from promosync.database.models import (
    Faction,
    FactionRivalry,
    InjuryType,
    Npc,
    Rivalry,
    Season,
    Segment,
    Show,
    ShowTemplate,
    ShowType,
    SyncedEntityMixin,
    Team,
    Title,
    TitleReign,
    Wrestler,
    natural_key_of,
)
from promosync.sync.models import SyncEntityType

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=SyncedEntityMixin)

ENTITY_MODELS: Dict[str, Type[SyncedEntityMixin]] = {
    SyncEntityType.SHOW_TYPES.value: ShowType,
    SyncEntityType.SHOW_TEMPLATES.value: ShowTemplate,
    SyncEntityType.SEASONS.value: Season,
    SyncEntityType.INJURIES.value: InjuryType,
    SyncEntityType.NPCS.value: Npc,
    SyncEntityType.WRESTLERS.value: Wrestler,
    SyncEntityType.FACTIONS.value: Faction,
    SyncEntityType.TEAMS.value: Team,
    SyncEntityType.TITLES.value: Title,
    SyncEntityType.TITLE_REIGNS.value: TitleReign,
    SyncEntityType.SHOWS.value: Show,
    SyncEntityType.SEGMENTS.value: Segment,
    SyncEntityType.RIVALRIES.value: Rivalry,
    SyncEntityType.FACTION_RIVALRIES.value: FactionRivalry,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _stamp(record: SyncedEntityMixin) -> None:
    now = _utcnow()
    if record.created_at is None:
        record.created_at = now
    record.updated_at = now


class EntityRepository(ABC, Generic[M]):
    """Persistence interface for one entity type."""

    def __init__(self, model: Type[M]):
        self.model = model

    def natural_key(self, record: M) -> Optional[tuple]:
        return natural_key_of(record)

    @abstractmethod
    def find_by_external_id(self, external_id: str) -> Optional[M]:
        """Record synchronized from the given source id, if any."""

    @abstractmethod
    def find_by_natural_key(self, key: tuple) -> Optional[M]:
        """Record matching a natural key, if the type has one."""

    @abstractmethod
    def find_by_id(self, record_id: int) -> Optional[M]:
        """Record by local primary key."""

    @abstractmethod
    def save(self, record: M) -> M:
        """Insert or update a record; returns the stored record with its id set."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored records."""

    @abstractmethod
    def list_all(self) -> List[M]:
        """All stored records ordered by id."""


class InMemoryRepository(EntityRepository[M]):
    """Dictionary-backed repository used by tests and dry runs."""

    def __init__(self, model: Type[M]):
        super().__init__(model)
        self._records: Dict[int, M] = {}
        self._next_id = 1
        self._lock = threading.RLock()

    def find_by_external_id(self, external_id: str) -> Optional[M]:
        if not external_id:
            return None
        with self._lock:
            for record in self._records.values():
                if record.external_id == external_id:
                    return record
        return None

    def find_by_natural_key(self, key: tuple) -> Optional[M]:
        if key is None or not self.model.__natural_key__:
            return None
        with self._lock:
            for record in self._records.values():
                if self.natural_key(record) == key:
                    return record
        return None

    def find_by_id(self, record_id: int) -> Optional[M]:
        with self._lock:
            return self._records.get(record_id)

    def save(self, record: M) -> M:
        with self._lock:
            if record.id is None:
                record.id = self._next_id
                self._next_id += 1
            _stamp(record)
            self._records[record.id] = record
        return record

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def list_all(self) -> List[M]:
        with self._lock:
            return [self._records[key] for key in sorted(self._records)]


class SqlAlchemyRepository(EntityRepository[M]):
    """
    Repository over a SQLAlchemy table.

    Every call opens its own session; records come back detached with their
    attributes loaded, so workers can mutate them and hand them back to
    ``save``.
    """

    def __init__(self, model: Type[M], db_manager: DatabaseManager):
        super().__init__(model)
        self.db_manager = db_manager

    def _natural_key_clause(self, key: tuple):
        columns = [getattr(self.model, name) for name in self.model.__natural_key__]
        clause = and_(*[column == value for column, value in zip(columns, key)])
        if self.model.__unordered_key__ and len(key) == 2:
            swapped = and_(columns[0] == key[1], columns[1] == key[0])
            clause = or_(clause, swapped)
        return clause

    def find_by_external_id(self, external_id: str) -> Optional[M]:
        if not external_id:
            return None
        with self.db_manager.get_session() as session:
            stmt = select(self.model).where(self.model.external_id == external_id)
            return session.execute(stmt).scalars().first()

    def find_by_natural_key(self, key: tuple) -> Optional[M]:
        if key is None or not self.model.__natural_key__:
            return None
        with self.db_manager.get_session() as session:
            stmt = select(self.model).where(self._natural_key_clause(key)).order_by(self.model.id)
            return session.execute(stmt).scalars().first()

    def find_by_id(self, record_id: int) -> Optional[M]:
        with self.db_manager.get_session() as session:
            return session.get(self.model, record_id)

    def save(self, record: M) -> M:
        _stamp(record)
        with self.db_manager.get_session() as session:
            stored = session.merge(record)
            session.flush()
            record.id = stored.id
        return stored

    def count(self) -> int:
        with self.db_manager.get_session() as session:
            return session.execute(select(func.count()).select_from(self.model)).scalar_one()

    def list_all(self) -> List[M]:
        with self.db_manager.get_session() as session:
            return list(session.execute(select(self.model).order_by(self.model.id)).scalars())


class RepositoryRegistry:
    """Entity type key to repository map."""

    def __init__(self, repositories: Optional[Mapping[str, EntityRepository]] = None):
        self._repositories: Dict[str, EntityRepository] = dict(repositories or {})

    def register(self, entity_type: str, repository: EntityRepository) -> None:
        self._repositories[entity_type] = repository

    def get(self, entity_type: str) -> EntityRepository:
        try:
            return self._repositories[entity_type]
        except KeyError:
            raise KeyError(f"No repository registered for {entity_type}") from None

    def __contains__(self, entity_type: str) -> bool:
        return entity_type in self._repositories

    def __iter__(self) -> Iterator[str]:
        return iter(self._repositories)

    def counts(self) -> Dict[str, int]:
        return {name: repo.count() for name, repo in self._repositories.items()}


def _build(factory: Callable[[Type[SyncedEntityMixin]], EntityRepository]) -> RepositoryRegistry:
    return RepositoryRegistry({name: factory(model) for name, model in ENTITY_MODELS.items()})


def build_memory_repositories() -> RepositoryRegistry:
    """In-memory repositories for every entity type."""
    return _build(InMemoryRepository)


def build_sql_repositories(db_manager: DatabaseManager) -> RepositoryRegistry:
    """SQLAlchemy repositories for every entity type."""
    logger.info("Building SQL repositories")
    return _build(lambda model: SqlAlchemyRepository(model, db_manager))


__all__ = [
    "ENTITY_MODELS",
    "EntityRepository",
    "InMemoryRepository",
    "SqlAlchemyRepository",
    "RepositoryRegistry",
    "build_memory_repositories",
    "build_sql_repositories",
]
