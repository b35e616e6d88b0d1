"""EvolutionModule — GameModule 인터페이스 구현

EvolutionService를 래핑하여 ModuleManager 생명주기에 통합.
EventBus 구독: narrative_event.
"""

from __future__ import annotations

from collections import deque
from dataclasses import fields
from typing import Any, Deque, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from src.config import settings
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.evolution.detector import (
    TraitDetection,
    detect_relationships_from_event,
    detect_traits_from_event,
    detect_traits_from_patterns,
)
from src.core.evolution.models import (
    EntityType,
    GameEventRef,
    NarrativeEvent,
    PendingEvolution,
)
from src.core.logging import get_logger
from src.modules.base import GameContext, GameModule
from src.services.evolution_service import EvolutionService
from src.services.game_locks import GameLockRegistry

logger = get_logger(__name__)

_EVENT_FIELDS = {f.name for f in fields(NarrativeEvent)}

WindowKey = Tuple[str, EntityType, str]


class EvolutionModule(GameModule):
    """엔티티 진화 모듈

    담당:
    - narrative_event 수신 → 규칙 감지기 실행 → 서비스로 제안 큐잉
    - (game, actor)별 최근 이벤트 윈도우 유지 (반복 패턴 감지용)

    의존성: 없음
    """

    def __init__(
        self,
        db_session: Session,
        event_bus: EventBus,
        locks: Optional[GameLockRegistry] = None,
        pattern_threshold: Optional[int] = None,
        pattern_window: Optional[int] = None,
    ) -> None:
        super().__init__()
        self._db = db_session
        self._bus = event_bus
        self._locks = locks
        self._threshold = (
            settings.EVOLUTION_PATTERN_THRESHOLD
            if pattern_threshold is None
            else pattern_threshold
        )
        self._window_size = (
            settings.EVOLUTION_PATTERN_WINDOW if pattern_window is None else pattern_window
        )
        self._windows: Dict[WindowKey, Deque[NarrativeEvent]] = {}
        self._service: Optional[EvolutionService] = None

    @property
    def name(self) -> str:
        return "evolution"

    @property
    def service(self) -> Optional[EvolutionService]:
        return self._service

    def on_enable(self) -> None:
        """모듈 활성화: EvolutionService 생성 + EventBus 구독"""
        self._service = EvolutionService(self._db, self._bus, self._locks)
        self._bus.subscribe(EventTypes.NARRATIVE_EVENT, self._handle_narrative_event)
        logger.info("evolution 모듈 활성화")

    def on_disable(self) -> None:
        """모듈 비활성화: EventBus 구독 해제 + 윈도우 정리"""
        self._bus.unsubscribe(EventTypes.NARRATIVE_EVENT, self._handle_narrative_event)
        self._windows.clear()
        self._service = None
        logger.info("evolution 모듈 비활성화")

    def on_turn(self, context: GameContext) -> None:
        """턴 처리: 현재 패스 (감지는 이벤트 수신 시)"""
        pass

    # ── EventBus 핸들러 ────────────────────────────────────────

    def _handle_narrative_event(self, event: GameEvent) -> None:
        """확정 서술 이벤트 → 감지 → 큐잉"""
        if self._service is None:
            logger.warning("evolution: service 미초기화 상태에서 narrative_event 수신")
            return

        narrative = self._to_narrative_event(event.data["event"])
        actor_type = EntityType(event.data["actor_type"])
        actor_id: str = event.data["actor_id"]
        target_type = (
            EntityType(event.data["target_type"])
            if event.data.get("target_type")
            else None
        )
        target_id: Optional[str] = event.data.get("target_id")

        created = self.process_event(
            narrative, actor_type, actor_id, target_type, target_id
        )
        logger.info(
            f"evolution: narrative_event 처리 완료 event={narrative.id} "
            f"queued={len(created)}"
        )

    # ── 공개 API ──────────────────────────────────────────────

    def process_event(
        self,
        narrative: NarrativeEvent,
        actor_type: EntityType,
        actor_id: str,
        target_type: Optional[EntityType] = None,
        target_id: Optional[str] = None,
    ) -> List[PendingEvolution]:
        """단일 이벤트 + 윈도우 패턴 감지 결과를 큐잉"""
        if self._service is None:
            return []

        window = self._window_for(narrative.game_id, actor_type, actor_id)
        window.append(narrative)

        traits = self._merge_traits(
            detect_traits_from_event(narrative, actor_type, actor_id),
            detect_traits_from_patterns(
                list(window), actor_type, actor_id, self._threshold
            ),
        )
        relationships = detect_relationships_from_event(
            narrative, actor_type, actor_id, target_type, target_id
        )

        ref = GameEventRef(id=narrative.id, turn=narrative.turn, game_id=narrative.game_id)
        return self._service.queue_detections(
            narrative.game_id, ref, traits, relationships
        )

    def get_window(
        self, game_id: str, actor_type: EntityType, actor_id: str
    ) -> List[NarrativeEvent]:
        return list(self._windows.get((game_id, EntityType(actor_type), actor_id), ()))

    def clear_game(self, game_id: str) -> int:
        """게임 종료 시 해당 게임의 윈도우 제거. 제거한 윈도우 수 반환."""
        keys = [key for key in self._windows if key[0] == game_id]
        for key in keys:
            del self._windows[key]
        if keys:
            logger.info(f"evolution: 윈도우 정리 game={game_id} count={len(keys)}")
        return len(keys)

    # ── 내부 ──────────────────────────────────────────────────

    def _window_for(
        self, game_id: str, actor_type: EntityType, actor_id: str
    ) -> Deque[NarrativeEvent]:
        key = (game_id, EntityType(actor_type), actor_id)
        window = self._windows.get(key)
        if window is None:
            window = deque(maxlen=self._window_size)
            self._windows[key] = window
        return window

    @staticmethod
    def _merge_traits(
        single: List[TraitDetection], patterns: List[TraitDetection]
    ) -> List[TraitDetection]:
        """같은 특성은 패턴 감지 사유를 우선"""
        merged: Dict[str, TraitDetection] = {d.trait: d for d in single}
        for detection in patterns:
            merged[detection.trait] = detection
        return list(merged.values())

    @staticmethod
    def _to_narrative_event(data: Any) -> NarrativeEvent:
        if isinstance(data, NarrativeEvent):
            return data
        if not isinstance(data, Mapping):
            raise TypeError(f"narrative_event payload must be a mapping, got {type(data)}")
        kwargs = {k: v for k, v in data.items() if k in _EVENT_FIELDS}
        if "witnesses" in kwargs:
            kwargs["witnesses"] = list(kwargs["witnesses"] or [])
        return NarrativeEvent(**kwargs)
