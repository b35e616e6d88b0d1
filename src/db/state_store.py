"""State Store — 특성/관계 데이터 접근

비즈니스 규칙 없음. 조회/쓰기 + ORM ↔ Core 변환만 담당.
쓰기는 flush까지만 하고 commit은 호출자(서비스)가 결정한다.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Mapping, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from src.core.evolution.calculations import merge_dimensions
from src.core.evolution.models import (
    DIMENSION_DEFAULTS,
    EntityRef,
    EntityType,
    Relationship,
    Trait,
    TraitStatus,
)
from src.core.logging import get_logger
from src.db.models import EntityTraitModel, RelationshipModel

logger = get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StateStore:
    """entity_traits / relationships 테이블 접근"""

    def __init__(self, db_session: Session) -> None:
        self._db = db_session

    # ── 특성 ─────────────────────────────────────────────────

    def find_active_traits(
        self, game_id: str, entity_type: EntityType, entity_id: str
    ) -> List[Trait]:
        rows = self._db.scalars(
            self._trait_query(game_id, entity_type, entity_id)
            .where(EntityTraitModel.status == TraitStatus.ACTIVE.value)
            .order_by(EntityTraitModel.acquired_turn, EntityTraitModel.created_at)
        ).all()
        return [self._trait_from_orm(r) for r in rows]

    def get_trait_history(
        self, game_id: str, entity_type: EntityType, entity_id: str
    ) -> List[Trait]:
        """removed 포함 전체 이력"""
        rows = self._db.scalars(
            self._trait_query(game_id, entity_type, entity_id).order_by(
                EntityTraitModel.acquired_turn, EntityTraitModel.created_at
            )
        ).all()
        return [self._trait_from_orm(r) for r in rows]

    def has_trait(
        self, game_id: str, entity_type: EntityType, entity_id: str, trait: str
    ) -> bool:
        return self._find_active_trait_row(game_id, entity_type, entity_id, trait) is not None

    def add_trait(
        self,
        game_id: str,
        entity_type: EntityType,
        entity_id: str,
        trait: str,
        turn: int,
        source_event_id: Optional[str] = None,
    ) -> Trait:
        """특성 추가. 같은 문자열이 이미 active면 기존 행을 그대로 반환 (no-op)."""
        existing = self._find_active_trait_row(game_id, entity_type, entity_id, trait)
        if existing is not None:
            logger.info(
                f"Trait already active, skipped: {EntityType(entity_type).value}:{entity_id} "
                f"'{trait}' (game={game_id})"
            )
            return self._trait_from_orm(existing)

        row = EntityTraitModel(
            id=str(uuid.uuid4()),
            game_id=game_id,
            entity_type=EntityType(entity_type).value,
            entity_id=entity_id,
            trait=trait,
            acquired_turn=turn,
            source_event_id=source_event_id,
            status=TraitStatus.ACTIVE.value,
            created_at=_now(),
        )
        self._db.add(row)
        self._db.flush()

        logger.info(
            f"Trait added: {EntityType(entity_type).value}:{entity_id} '{trait}' "
            f"(game={game_id}, turn={turn})"
        )
        return self._trait_from_orm(row)

    def remove_trait(
        self, game_id: str, entity_type: EntityType, entity_id: str, trait: str
    ) -> None:
        """일치하는 active 특성을 removed로. 없으면 no-op."""
        rows = self._db.scalars(
            self._trait_query(game_id, entity_type, entity_id).where(
                EntityTraitModel.trait == trait,
                EntityTraitModel.status == TraitStatus.ACTIVE.value,
            )
        ).all()
        for row in rows:
            row.status = TraitStatus.REMOVED.value
        if rows:
            self._db.flush()
            logger.info(
                f"Trait removed: {EntityType(entity_type).value}:{entity_id} '{trait}' "
                f"(game={game_id}, rows={len(rows)})"
            )

    # ── 관계 ─────────────────────────────────────────────────

    def get_relationship(
        self, game_id: str, from_ref: EntityRef, to_ref: EntityRef
    ) -> Relationship:
        """행이 없으면 기본값 Relationship (id="", 저장하지 않음)"""
        row = self._get_relationship_row(game_id, from_ref, to_ref)
        if row is None:
            return Relationship(
                id="",
                game_id=game_id,
                from_ref=from_ref,
                to_ref=to_ref,
                **{d.value: v for d, v in DIMENSION_DEFAULTS.items()},
            )
        return self._relationship_from_orm(row)

    def find_relationships_for(
        self, game_id: str, entity: EntityRef
    ) -> List[Relationship]:
        """from/to 어느 쪽이든 엔티티가 포함된 관계 전체"""
        entity_type = EntityType(entity.entity_type).value
        rows = self._db.scalars(
            select(RelationshipModel)
            .where(
                RelationshipModel.game_id == game_id,
                or_(
                    and_(
                        RelationshipModel.from_type == entity_type,
                        RelationshipModel.from_id == entity.entity_id,
                    ),
                    and_(
                        RelationshipModel.to_type == entity_type,
                        RelationshipModel.to_id == entity.entity_id,
                    ),
                ),
            )
            .order_by(RelationshipModel.created_at)
        ).all()
        return [self._relationship_from_orm(r) for r in rows]

    def upsert_relationship(
        self,
        game_id: str,
        from_ref: EntityRef,
        to_ref: EntityRef,
        turn: int,
        dimensions: Mapping[str, float],
    ) -> Relationship:
        """부분 갱신 병합 + 전 축 0~1 클램프. 첫 쓰기 시 행 생성."""
        updates = {str(getattr(k, "value", k)): v for k, v in dimensions.items()}
        row = self._get_relationship_row(game_id, from_ref, to_ref)
        now = _now()

        if row is None:
            merged = merge_dimensions({}, updates)
            row = RelationshipModel(
                id=str(uuid.uuid4()),
                game_id=game_id,
                from_type=EntityType(from_ref.entity_type).value,
                from_id=from_ref.entity_id,
                to_type=EntityType(to_ref.entity_type).value,
                to_id=to_ref.entity_id,
                updated_turn=turn,
                created_at=now,
                updated_at=now,
                **merged,
            )
            self._db.add(row)
            logger.info(
                f"Relationship created: {row.from_type}:{row.from_id} → "
                f"{row.to_type}:{row.to_id} ({row.id})"
            )
        else:
            current = {
                "trust": row.trust,
                "respect": row.respect,
                "affection": row.affection,
                "fear": row.fear,
                "resentment": row.resentment,
                "debt": row.debt,
            }
            for name, value in merge_dimensions(current, updates).items():
                setattr(row, name, value)
            row.updated_turn = turn
            row.updated_at = now

        self._db.flush()
        return self._relationship_from_orm(row)

    # ── ORM → Core 변환 ─────────────────────────────────────

    @staticmethod
    def _trait_from_orm(model: EntityTraitModel) -> Trait:
        return Trait(
            id=model.id,
            game_id=model.game_id,
            entity_type=EntityType(model.entity_type),
            entity_id=model.entity_id,
            trait=model.trait,
            acquired_turn=model.acquired_turn,
            status=TraitStatus(model.status),
            source_event_id=model.source_event_id,
            created_at=model.created_at or "",
        )

    @staticmethod
    def _relationship_from_orm(model: RelationshipModel) -> Relationship:
        return Relationship(
            id=model.id,
            game_id=model.game_id,
            from_ref=EntityRef(EntityType(model.from_type), model.from_id),
            to_ref=EntityRef(EntityType(model.to_type), model.to_id),
            trust=model.trust,
            respect=model.respect,
            affection=model.affection,
            fear=model.fear,
            resentment=model.resentment,
            debt=model.debt,
            updated_turn=model.updated_turn,
            created_at=model.created_at or "",
            updated_at=model.updated_at or "",
        )

    # ── 내부 헬퍼 ────────────────────────────────────────────

    @staticmethod
    def _trait_query(game_id: str, entity_type: EntityType, entity_id: str):
        return select(EntityTraitModel).where(
            EntityTraitModel.game_id == game_id,
            EntityTraitModel.entity_type == EntityType(entity_type).value,
            EntityTraitModel.entity_id == entity_id,
        )

    def _find_active_trait_row(
        self, game_id: str, entity_type: EntityType, entity_id: str, trait: str
    ) -> Optional[EntityTraitModel]:
        return self._db.scalars(
            self._trait_query(game_id, entity_type, entity_id).where(
                EntityTraitModel.trait == trait,
                EntityTraitModel.status == TraitStatus.ACTIVE.value,
            )
        ).first()

    def _get_relationship_row(
        self, game_id: str, from_ref: EntityRef, to_ref: EntityRef
    ) -> Optional[RelationshipModel]:
        return self._db.scalars(
            select(RelationshipModel).where(
                RelationshipModel.game_id == game_id,
                RelationshipModel.from_type == EntityType(from_ref.entity_type).value,
                RelationshipModel.from_id == from_ref.entity_id,
                RelationshipModel.to_type == EntityType(to_ref.entity_type).value,
                RelationshipModel.to_id == to_ref.entity_id,
            )
        ).first()
