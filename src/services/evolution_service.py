"""Evolution Service — 감지기/큐/State Store 조율

Service → Core, Service → DB 허용.
다른 서비스와는 EventBus로만 통신한다.
"""

from contextlib import contextmanager
from dataclasses import asdict
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Union

from sqlalchemy.orm import Session

from src.config import settings
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.evolution.calculations import clamp_dimension, rederive_value
from src.core.evolution.detector import (
    RelationshipDetection,
    TraitDetection,
    relationship_detection_to_evolution_input,
    relationship_detection_to_suggestion,
    trait_detection_to_evolution_input,
    trait_detection_to_suggestion,
)
from src.core.evolution.errors import (
    EvolutionNotFoundError,
    EvolutionValidationError,
    InvalidEvolutionStatusError,
)
from src.core.evolution.labels import RelationshipLabel, compute_labels
from src.core.evolution.models import (
    CreateEvolutionInput,
    EntityRef,
    EntitySummary,
    EntityType,
    EvolutionStatus,
    EvolutionType,
    GameEventRef,
    PendingEvolution,
    Relationship,
    RelationshipSummary,
)
from src.core.evolution.suggestions import (
    EvolutionEdit,
    RelationshipSuggestion,
    TraitSuggestion,
    parse_edit,
    parse_suggestions,
)
from src.core.logging import get_logger
from src.db.evolution_queue import PendingEvolutionQueue
from src.db.state_store import StateStore
from src.services.game_locks import GameLockRegistry

logger = get_logger(__name__)

_SOURCE = "evolution_service"

# evolution_type별 DM이 수정할 수 있는 필드
_EDITABLE_FIELDS = {
    EvolutionType.TRAIT_ADD: {"trait", "reason"},
    EvolutionType.TRAIT_REMOVE: {"trait", "reason"},
    EvolutionType.RELATIONSHIP_CHANGE: {
        "target_type",
        "target_id",
        "dimension",
        "old_value",
        "new_value",
        "reason",
    },
}


class EvolutionService:
    """진화 제안 큐잉 + DM 승인/수정/거절 처리

    담당:
    - AI/규칙 감지 제안 검증, 중복 제거, 큐 등록
    - 승인/수정 시 State Store 반영, 거절 시 기록만 종결
    - 관계 라벨 계산, 엔티티 요약
    - 생명주기 이벤트 발행 (evolution:created/approved/edited/refused)

    모든 쓰기 작업은 game_id 락 + 단일 트랜잭션 안에서 실행된다.
    이벤트는 커밋 이후에 발행한다.
    """

    def __init__(
        self,
        db_session: Session,
        event_bus: EventBus,
        locks: Optional[GameLockRegistry] = None,
        rederive_on_apply: Optional[bool] = None,
    ) -> None:
        self._db = db_session
        self._bus = event_bus
        self._locks = locks if locks is not None else GameLockRegistry()
        self._rederive_on_apply = (
            settings.EVOLUTION_REDERIVE_ON_APPLY
            if rederive_on_apply is None
            else rederive_on_apply
        )
        self._store = StateStore(db_session)
        self._queue = PendingEvolutionQueue(db_session)

    @property
    def store(self) -> StateStore:
        return self._store

    # ── 제안 큐잉 ────────────────────────────────────────────

    def detect_evolutions(
        self,
        game_id: str,
        event_ref: GameEventRef,
        suggestions: Sequence[Any],
    ) -> List[PendingEvolution]:
        """제안 검증 → 중복 제거 → pending 등록.

        하나라도 잘못된 제안이 있으면 아무것도 등록하지 않고
        EvolutionValidationError. 중복 스킵은 에러가 아니다.
        """
        if event_ref.game_id != game_id:
            raise EvolutionValidationError(
                f"Event {event_ref.id} belongs to game {event_ref.game_id}, not {game_id}"
            )
        parsed = parse_suggestions(suggestions)

        created: List[PendingEvolution] = []
        with self._transaction(game_id):
            for suggestion in parsed:
                data = self._build_input(game_id, event_ref, suggestion)
                if data is None:
                    continue
                created.append(self._queue.create(data))

        for pending in created:
            self._emit(EventTypes.EVOLUTION_CREATED, pending)

        logger.info(
            f"Evolutions queued: game={game_id} turn={event_ref.turn} "
            f"suggested={len(parsed)} queued={len(created)}"
        )
        return created

    def queue_detections(
        self,
        game_id: str,
        event_ref: GameEventRef,
        trait_detections: Sequence[TraitDetection] = (),
        relationship_detections: Sequence[RelationshipDetection] = (),
    ) -> List[PendingEvolution]:
        """규칙 감지 결과를 AI 제안과 같은 경로로 큐잉"""
        suggestions = [trait_detection_to_suggestion(d) for d in trait_detections]
        suggestions += [
            relationship_detection_to_suggestion(d) for d in relationship_detections
        ]
        if not suggestions:
            return []
        return self.detect_evolutions(game_id, event_ref, suggestions)

    # ── DM 처리 ──────────────────────────────────────────────

    def approve(
        self, evolution_id: str, dm_notes: Optional[str] = None
    ) -> PendingEvolution:
        """승인 → 적용 → approved"""
        game_id = self._require(evolution_id).game_id
        with self._transaction(game_id):
            pending = self._require_pending(evolution_id, "approve")
            self._apply(pending)
            resolved = self._resolve(evolution_id, EvolutionStatus.APPROVED, dm_notes)

        self._emit(EventTypes.EVOLUTION_APPROVED, resolved)
        return resolved

    def edit(
        self,
        evolution_id: str,
        changes: Union[EvolutionEdit, Mapping[str, Any]],
        dm_notes: Optional[str] = None,
    ) -> PendingEvolution:
        """DM 수정값 병합 → 수정된 값으로 적용 → edited"""
        edit = parse_edit(changes)
        game_id = self._require(evolution_id).game_id
        with self._transaction(game_id):
            pending = self._require_pending(evolution_id, "edit")
            merged = self._merge_edit(pending, edit)
            updated = self._queue.update(evolution_id, merged)
            if updated is None:
                raise EvolutionNotFoundError(evolution_id)
            self._apply(updated)
            resolved = self._resolve(evolution_id, EvolutionStatus.EDITED, dm_notes)

        self._emit(EventTypes.EVOLUTION_EDITED, resolved)
        return resolved

    def refuse(
        self, evolution_id: str, dm_notes: Optional[str] = None
    ) -> PendingEvolution:
        """거절. State Store는 건드리지 않는다."""
        game_id = self._require(evolution_id).game_id
        with self._transaction(game_id):
            self._require_pending(evolution_id, "refuse")
            resolved = self._resolve(evolution_id, EvolutionStatus.REFUSED, dm_notes)

        self._emit(EventTypes.EVOLUTION_REFUSED, resolved)
        return resolved

    # ── 조회 ─────────────────────────────────────────────────

    def get_pending_evolutions(
        self, game_id: str, pending_only: bool = True
    ) -> List[PendingEvolution]:
        return self._queue.list_pending(game_id, pending_only)

    def get_evolution(self, evolution_id: str) -> PendingEvolution:
        return self._require(evolution_id)

    def get_entity_summary(
        self, game_id: str, entity_type: EntityType, entity_id: str
    ) -> EntitySummary:
        """활성 특성 + 관계 라벨. AI 컨텍스트 조립용."""
        entity = EntityRef(EntityType(entity_type), entity_id)
        traits = self._store.find_active_traits(game_id, entity.entity_type, entity_id)

        summaries: List[RelationshipSummary] = []
        for rel in self._store.find_relationships_for(game_id, entity):
            outgoing = rel.from_ref == entity
            other = rel.to_ref if outgoing else rel.from_ref
            labels = compute_labels(rel)
            summaries.append(
                RelationshipSummary(
                    target_type=other.entity_type,
                    target_id=other.entity_id,
                    label=labels.primary.value,
                    summary=labels.summary,
                    dimensions=rel.dimensions(),
                    direction="outgoing" if outgoing else "incoming",
                )
            )

        return EntitySummary(
            entity_type=entity.entity_type,
            entity_id=entity_id,
            traits=[t.trait for t in traits],
            relationships=summaries,
        )

    def compute_aggregate_label(self, relationship: Relationship) -> RelationshipLabel:
        return compute_labels(relationship).primary

    # ── 내부: 큐 입력 ────────────────────────────────────────

    def _build_input(
        self,
        game_id: str,
        event_ref: GameEventRef,
        suggestion: Union[TraitSuggestion, RelationshipSuggestion],
    ) -> Optional[CreateEvolutionInput]:
        if isinstance(suggestion, TraitSuggestion):
            evolution_type = EvolutionType(suggestion.evolution_type)
            if evolution_type == EvolutionType.TRAIT_ADD and self._is_duplicate_trait(
                game_id, suggestion
            ):
                return None
            detection = TraitDetection(
                entity_type=suggestion.entity_type,
                entity_id=suggestion.entity_id,
                trait=suggestion.trait,
                reason=suggestion.reason,
            )
            return trait_detection_to_evolution_input(
                detection, game_id, event_ref.turn, event_ref.id, evolution_type
            )

        current = self._store.get_relationship(
            game_id,
            EntityRef(suggestion.entity_type, suggestion.entity_id),
            EntityRef(suggestion.target_type, suggestion.target_id),
        ).get(suggestion.dimension)
        detection = RelationshipDetection(
            from_type=suggestion.entity_type,
            from_id=suggestion.entity_id,
            to_type=suggestion.target_type,
            to_id=suggestion.target_id,
            dimension=suggestion.dimension,
            change=suggestion.change,
            reason=suggestion.reason,
        )
        return relationship_detection_to_evolution_input(
            detection, game_id, event_ref.turn, current, event_ref.id
        )

    def _is_duplicate_trait(self, game_id: str, suggestion: TraitSuggestion) -> bool:
        key = f"{suggestion.entity_type.value}:{suggestion.entity_id} '{suggestion.trait}'"
        if self._store.has_trait(
            game_id, suggestion.entity_type, suggestion.entity_id, suggestion.trait
        ):
            logger.info(f"Suggestion skipped, trait already active: {key}")
            return True
        if self._queue.find_pending_by_entity_trait(
            game_id, suggestion.entity_type, suggestion.entity_id, suggestion.trait
        ):
            logger.info(f"Suggestion skipped, already pending: {key}")
            return True
        return False

    # ── 내부: 적용 ───────────────────────────────────────────

    def _merge_edit(self, pending: PendingEvolution, edit: EvolutionEdit) -> dict:
        """수정값 병합.

        축만 바뀌고 값이 지정되지 않으면 제안 delta를 새 축의 현재 값에 옮겨 적용한다.
        """
        changes = edit.model_dump(exclude_none=True)
        foreign = sorted(set(changes) - _EDITABLE_FIELDS[pending.evolution_type])
        if foreign:
            raise EvolutionValidationError(
                f"Fields {foreign} cannot be edited on a "
                f"{pending.evolution_type.value} evolution"
            )
        if pending.evolution_type != EvolutionType.RELATIONSHIP_CHANGE:
            return changes

        dimension_changed = (
            "dimension" in changes and changes["dimension"] != pending.dimension
        )
        if dimension_changed and "new_value" not in changes and "old_value" not in changes:
            delta = (pending.new_value or 0.0) - (pending.old_value or 0.0)
            current = self._store.get_relationship(
                pending.game_id,
                EntityRef(pending.entity_type, pending.entity_id),
                EntityRef(
                    changes.get("target_type", pending.target_type),
                    changes.get("target_id", pending.target_id),
                ),
            ).get(changes["dimension"])
            changes["old_value"] = current
            changes["new_value"] = clamp_dimension(current + delta)
        return changes

    def _apply(self, pending: PendingEvolution) -> None:
        if pending.evolution_type == EvolutionType.TRAIT_ADD:
            self._store.add_trait(
                pending.game_id,
                pending.entity_type,
                pending.entity_id,
                self._required_trait(pending),
                pending.turn,
                pending.source_event_id,
            )
        elif pending.evolution_type == EvolutionType.TRAIT_REMOVE:
            self._store.remove_trait(
                pending.game_id,
                pending.entity_type,
                pending.entity_id,
                self._required_trait(pending),
            )
        elif pending.evolution_type == EvolutionType.RELATIONSHIP_CHANGE:
            self._apply_relationship(pending)
        else:
            raise EvolutionValidationError(
                f"Unknown evolution type: {pending.evolution_type}"
            )

    def _apply_relationship(self, pending: PendingEvolution) -> Relationship:
        if (
            pending.target_type is None
            or not pending.target_id
            or pending.dimension is None
            or pending.new_value is None
        ):
            raise EvolutionValidationError(
                "Target, dimension, and new_value are required for relationship_change"
            )

        from_ref = EntityRef(pending.entity_type, pending.entity_id)
        to_ref = EntityRef(pending.target_type, pending.target_id)

        if self._rederive_on_apply:
            current = self._store.get_relationship(pending.game_id, from_ref, to_ref)
            value = rederive_value(
                current.get(pending.dimension), pending.old_value, pending.new_value
            )
        else:
            value = clamp_dimension(pending.new_value)

        rel = self._store.upsert_relationship(
            pending.game_id,
            from_ref,
            to_ref,
            pending.turn,
            {pending.dimension.value: value},
        )
        logger.info(
            f"Relationship evolved: {from_ref.entity_type.value}:{from_ref.entity_id} → "
            f"{to_ref.entity_type.value}:{to_ref.entity_id} "
            f"{pending.dimension.value}={value:.2f} (evolution={pending.id})"
        )
        return rel

    @staticmethod
    def _required_trait(pending: PendingEvolution) -> str:
        if not pending.trait:
            raise EvolutionValidationError(
                f"Trait is required for {pending.evolution_type.value} evolution"
            )
        return pending.trait

    # ── 내부: 상태 ───────────────────────────────────────────

    def _require(self, evolution_id: str) -> PendingEvolution:
        pending = self._queue.find_by_id(evolution_id)
        if pending is None:
            raise EvolutionNotFoundError(evolution_id)
        return pending

    def _require_pending(self, evolution_id: str, action: str) -> PendingEvolution:
        pending = self._require(evolution_id)
        if not pending.is_pending:
            raise InvalidEvolutionStatusError(
                evolution_id, pending.status.value, action
            )
        return pending

    def _resolve(
        self,
        evolution_id: str,
        status: EvolutionStatus,
        dm_notes: Optional[str],
    ) -> PendingEvolution:
        resolved = self._queue.resolve(evolution_id, status, dm_notes)
        if resolved is None:
            raise EvolutionNotFoundError(evolution_id)
        return resolved

    @contextmanager
    def _transaction(self, game_id: str) -> Iterator[None]:
        """game_id 락 + commit/rollback"""
        with self._locks.hold(game_id):
            try:
                yield
                self._db.commit()
            except Exception:
                self._db.rollback()
                raise

    def _emit(self, event_type: str, pending: PendingEvolution) -> None:
        self._bus.emit(
            GameEvent(
                event_type=event_type,
                data={
                    "evolution_id": pending.id,
                    "game_id": pending.game_id,
                    "status": pending.status.value,
                    "evolution": asdict(pending),
                },
                source=_SOURCE,
                key=pending.id,
            )
        )
