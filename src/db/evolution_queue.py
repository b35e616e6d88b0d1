"""Pending Evolution Queue — DM 검토 대기열 저장소

CRUD + (entity, trait) 중복 조회. 레코드는 삭제하지 않는다.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.evolution.models import (
    CreateEvolutionInput,
    EntityType,
    EvolutionStatus,
    EvolutionType,
    PendingEvolution,
    RelationshipDimension,
)
from src.core.logging import get_logger
from src.db.models import PendingEvolutionModel

logger = get_logger(__name__)

# update()로 바꿀 수 있는 필드
_EDITABLE_FIELDS = (
    "trait",
    "target_type",
    "target_id",
    "dimension",
    "old_value",
    "new_value",
    "reason",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


class PendingEvolutionQueue:
    """pending_evolutions 테이블 접근"""

    def __init__(self, db_session: Session) -> None:
        self._db = db_session

    def create(self, data: CreateEvolutionInput) -> PendingEvolution:
        row = PendingEvolutionModel(
            id=str(uuid.uuid4()),
            game_id=data.game_id,
            turn=data.turn,
            evolution_type=EvolutionType(data.evolution_type).value,
            entity_type=EntityType(data.entity_type).value,
            entity_id=data.entity_id,
            trait=data.trait,
            target_type=_enum_value(data.target_type),
            target_id=data.target_id,
            dimension=_enum_value(data.dimension),
            old_value=data.old_value,
            new_value=data.new_value,
            reason=data.reason,
            source_event_id=data.source_event_id,
            status=EvolutionStatus.PENDING.value,
            created_at=_now(),
        )
        self._db.add(row)
        self._db.flush()
        return self._evolution_from_orm(row)

    def find_by_id(self, evolution_id: str) -> Optional[PendingEvolution]:
        row = self._db.get(PendingEvolutionModel, evolution_id)
        if row is None:
            return None
        return self._evolution_from_orm(row)

    def find_pending_by_entity_trait(
        self,
        game_id: str,
        entity_type: EntityType,
        entity_id: str,
        trait: str,
    ) -> Optional[PendingEvolution]:
        """중복 제안 판정용. 아직 pending인 trait_add 레코드."""
        row = self._db.scalars(
            select(PendingEvolutionModel).where(
                PendingEvolutionModel.game_id == game_id,
                PendingEvolutionModel.evolution_type == EvolutionType.TRAIT_ADD.value,
                PendingEvolutionModel.entity_type == EntityType(entity_type).value,
                PendingEvolutionModel.entity_id == entity_id,
                PendingEvolutionModel.trait == trait,
                PendingEvolutionModel.status == EvolutionStatus.PENDING.value,
            )
        ).first()
        if row is None:
            return None
        return self._evolution_from_orm(row)

    def list_pending(
        self, game_id: str, pending_only: bool = True
    ) -> List[PendingEvolution]:
        """게임의 진화 목록. pending_only=False면 처리된 기록 포함."""
        query = select(PendingEvolutionModel).where(
            PendingEvolutionModel.game_id == game_id
        )
        if pending_only:
            query = query.where(
                PendingEvolutionModel.status == EvolutionStatus.PENDING.value
            )
        rows = self._db.scalars(
            query.order_by(PendingEvolutionModel.turn, PendingEvolutionModel.created_at)
        ).all()
        return [self._evolution_from_orm(r) for r in rows]

    def find_by_entity(
        self, game_id: str, entity_type: EntityType, entity_id: str
    ) -> List[PendingEvolution]:
        rows = self._db.scalars(
            select(PendingEvolutionModel)
            .where(
                PendingEvolutionModel.game_id == game_id,
                PendingEvolutionModel.entity_type == EntityType(entity_type).value,
                PendingEvolutionModel.entity_id == entity_id,
            )
            .order_by(PendingEvolutionModel.turn, PendingEvolutionModel.created_at)
        ).all()
        return [self._evolution_from_orm(r) for r in rows]

    def update(
        self, evolution_id: str, changes: Mapping[str, Any]
    ) -> Optional[PendingEvolution]:
        """편집 가능 필드만 병합. None 값은 무시."""
        row = self._db.get(PendingEvolutionModel, evolution_id)
        if row is None:
            return None

        for name in _EDITABLE_FIELDS:
            value = changes.get(name)
            if value is not None:
                setattr(row, name, _enum_value(value))
        self._db.flush()
        return self._evolution_from_orm(row)

    def resolve(
        self,
        evolution_id: str,
        status: EvolutionStatus,
        dm_notes: Optional[str] = None,
    ) -> Optional[PendingEvolution]:
        """종결 상태 기록. 상태 전이 검증은 서비스 책임."""
        row = self._db.get(PendingEvolutionModel, evolution_id)
        if row is None:
            return None

        row.status = EvolutionStatus(status).value
        row.dm_notes = dm_notes
        row.resolved_at = _now()
        self._db.flush()

        logger.info(f"Evolution resolved: {evolution_id} → {row.status}")
        return self._evolution_from_orm(row)

    # ── ORM → Core 변환 ─────────────────────────────────────

    @staticmethod
    def _evolution_from_orm(model: PendingEvolutionModel) -> PendingEvolution:
        return PendingEvolution(
            id=model.id,
            game_id=model.game_id,
            turn=model.turn,
            evolution_type=EvolutionType(model.evolution_type),
            entity_type=EntityType(model.entity_type),
            entity_id=model.entity_id,
            reason=model.reason,
            status=EvolutionStatus(model.status),
            trait=model.trait,
            target_type=EntityType(model.target_type) if model.target_type else None,
            target_id=model.target_id,
            dimension=(
                RelationshipDimension(model.dimension) if model.dimension else None
            ),
            old_value=model.old_value,
            new_value=model.new_value,
            source_event_id=model.source_event_id,
            dm_notes=model.dm_notes,
            created_at=model.created_at or "",
            resolved_at=model.resolved_at,
        )
