"""SQLAlchemy declarative base and ORM models for entity evolution."""

from sqlalchemy import Float, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""


class EntityTraitModel(Base):
    """엔티티 특성 (active | removed)"""

    __tablename__ = "entity_traits"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    game_id: Mapped[str] = mapped_column(String, nullable=False)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    trait: Mapped[str] = mapped_column(String, nullable=False)
    acquired_turn: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    source_event_id: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    created_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        Index("idx_trait_entity", "game_id", "entity_type", "entity_id"),
        Index("idx_trait_name", "game_id", "trait"),
    )


class RelationshipModel(Base):
    """방향성 6축 관계 (from → to)"""

    __tablename__ = "relationships"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    game_id: Mapped[str] = mapped_column(String, nullable=False)
    from_type: Mapped[str] = mapped_column(String, nullable=False)
    from_id: Mapped[str] = mapped_column(String, nullable=False)
    to_type: Mapped[str] = mapped_column(String, nullable=False)
    to_id: Mapped[str] = mapped_column(String, nullable=False)

    trust: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    respect: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    affection: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    fear: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    resentment: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    debt: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    updated_turn: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "game_id",
            "from_type",
            "from_id",
            "to_type",
            "to_id",
            name="uq_rel_pair",
        ),
        Index("idx_rel_from", "game_id", "from_type", "from_id"),
        Index("idx_rel_to", "game_id", "to_type", "to_id"),
    )


class PendingEvolutionModel(Base):
    """DM 검토 대기/처리 기록. 하드 삭제 없음."""

    __tablename__ = "pending_evolutions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    game_id: Mapped[str] = mapped_column(String, nullable=False)
    turn: Mapped[int] = mapped_column(Integer, nullable=False)
    evolution_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)

    trait: Mapped[str | None] = mapped_column(String, nullable=True)

    target_type: Mapped[str | None] = mapped_column(String, nullable=True)
    target_id: Mapped[str | None] = mapped_column(String, nullable=True)
    dimension: Mapped[str | None] = mapped_column(String, nullable=True)
    old_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    new_value: Mapped[float | None] = mapped_column(Float, nullable=True)

    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    source_event_id: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    dm_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    resolved_at: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        Index("idx_evo_game_status", "game_id", "status"),
        Index("idx_evo_entity", "game_id", "entity_type", "entity_id"),
    )
