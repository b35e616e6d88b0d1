"""규칙 기반 진화 감지기

AI 입력 없이 서술 이벤트 텍스트의 키워드만으로 특성/관계 변화를 제안한다.
전부 순수 함수. 매치가 없으면 빈 리스트, 예외 없음.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from src.core.evolution.calculations import apply_change
from src.core.evolution.catalog import RELATIONSHIP_KEYWORDS, TRAIT_KEYWORDS
from src.core.evolution.models import (
    CreateEvolutionInput,
    EntityType,
    EvolutionType,
    NarrativeEvent,
    RelationshipDimension,
)

WITNESS_FACTOR = 0.5  # 목격자는 절반 강도로 영향
SIGNIFICANCE_THRESHOLD = 0.1  # 누적 변화 최소 크기
_PATTERN_EXAMPLES = 3
_AGGREGATE_REASONS = 2
_EPSILON = 1e-9


@dataclass
class TraitDetection:
    entity_type: EntityType
    entity_id: str
    trait: str
    reason: str


@dataclass
class RelationshipDetection:
    """from이 to에게 갖는 감정의 변화 제안"""

    from_type: EntityType
    from_id: str
    to_type: EntityType
    to_id: str
    dimension: RelationshipDimension
    change: float
    reason: str


@dataclass
class _DimensionTotal:
    total: float = 0.0
    reasons: List[str] = field(default_factory=list)


def _first_trait_keyword(content_lower: str, keywords: List[str]) -> Optional[str]:
    """키워드 순서대로 검사, 첫 매치 반환."""
    for keyword in keywords:
        if keyword in content_lower:
            return keyword
    return None


# ── 특성 감지 ────────────────────────────────────────────────


def detect_traits_from_event(
    event: NarrativeEvent,
    actor_type: EntityType,
    actor_id: str,
) -> List[TraitDetection]:
    """단일 이벤트에서 특성 제안. 특성당 최대 1건."""
    content_lower = event.content.lower()
    detections: List[TraitDetection] = []

    for trait, keywords in TRAIT_KEYWORDS.items():
        keyword = _first_trait_keyword(content_lower, keywords)
        if keyword is None:
            continue
        detections.append(
            TraitDetection(
                entity_type=actor_type,
                entity_id=actor_id,
                trait=trait,
                reason=f'Event contains "{keyword}" suggesting {trait} behavior',
            )
        )

    return detections


def detect_traits_from_patterns(
    events: Sequence[NarrativeEvent],
    actor_type: EntityType,
    actor_id: str,
    threshold: int = 3,
) -> List[TraitDetection]:
    """이벤트 윈도우 전체에서 반복 패턴 감지.

    키워드 등장 횟수가 아니라 매치된 이벤트 수를 센다.
    count >= threshold 인 특성만 제안.
    """
    counts: Dict[str, List[str]] = {}

    for event in events:
        content_lower = event.content.lower()
        for trait, keywords in TRAIT_KEYWORDS.items():
            keyword = _first_trait_keyword(content_lower, keywords)
            if keyword is None:
                continue
            counts.setdefault(trait, []).append(f'Turn {event.turn}: "{keyword}"')

    detections: List[TraitDetection] = []
    for trait, examples in counts.items():
        count = len(examples)
        if count < threshold:
            continue
        shown = ", ".join(examples[:_PATTERN_EXAMPLES])
        suffix = "..." if count > _PATTERN_EXAMPLES else ""
        detections.append(
            TraitDetection(
                entity_type=actor_type,
                entity_id=actor_id,
                trait=trait,
                reason=f"Repeated {trait} actions ({count} occurrences): {shown}{suffix}",
            )
        )

    return detections


# ── 관계 감지 ────────────────────────────────────────────────


def detect_relationships_from_event(
    event: NarrativeEvent,
    actor_type: EntityType,
    actor_id: str,
    target_type: Optional[EntityType] = None,
    target_id: Optional[str] = None,
) -> List[RelationshipDetection]:
    """단일 이벤트에서 관계 변화 제안.

    대상이 있으면 대상 → 행위자 방향으로 모든 매치 키워드의 영향을 낸다.
    대상이 없으면 목격자 각각(npc로 간주)에게 절반 강도로 낸다.
    """
    if target_type is None or not target_id:
        return _detect_from_witnesses(event, actor_type, actor_id)

    content_lower = event.content.lower()
    detections: List[RelationshipDetection] = []

    for keyword, impacts in RELATIONSHIP_KEYWORDS.items():
        if keyword not in content_lower:
            continue
        for dimension, change in impacts:
            detections.append(
                RelationshipDetection(
                    from_type=target_type,
                    from_id=target_id,
                    to_type=actor_type,
                    to_id=actor_id,
                    dimension=dimension,
                    change=change,
                    reason=f'Event contains "{keyword}" affecting {dimension.value}',
                )
            )

    return detections


def _detect_from_witnesses(
    event: NarrativeEvent,
    actor_type: EntityType,
    actor_id: str,
) -> List[RelationshipDetection]:
    if not event.witnesses:
        return []

    content_lower = event.content.lower()
    detections: List[RelationshipDetection] = []

    for keyword, impacts in RELATIONSHIP_KEYWORDS.items():
        if keyword not in content_lower:
            continue
        for witness_id in event.witnesses:
            for dimension, change in impacts:
                detections.append(
                    RelationshipDetection(
                        from_type=EntityType.NPC,
                        from_id=witness_id,
                        to_type=actor_type,
                        to_id=actor_id,
                        dimension=dimension,
                        change=change * WITNESS_FACTOR,
                        reason=f'Witnessed event containing "{keyword}"',
                    )
                )

    return detections


def aggregate_relationship_changes(
    events: Sequence[NarrativeEvent],
    actor_type: EntityType,
    actor_id: str,
    target_type: EntityType,
    target_id: str,
) -> List[RelationshipDetection]:
    """특정 행위자/대상 쌍의 축별 delta 합산. |합| >= 0.1 인 축만."""
    totals: Dict[RelationshipDimension, _DimensionTotal] = {
        dim: _DimensionTotal() for dim in RelationshipDimension
    }

    for event in events:
        for detection in detect_relationships_from_event(
            event, actor_type, actor_id, target_type, target_id
        ):
            bucket = totals[detection.dimension]
            bucket.total += detection.change
            bucket.reasons.append(detection.reason)

    detections: List[RelationshipDetection] = []
    for dimension, bucket in totals.items():
        if abs(bucket.total) + _EPSILON < SIGNIFICANCE_THRESHOLD:
            continue
        shown = "; ".join(bucket.reasons[:_AGGREGATE_REASONS])
        suffix = "..." if len(bucket.reasons) > _AGGREGATE_REASONS else ""
        detections.append(
            RelationshipDetection(
                from_type=target_type,
                from_id=target_id,
                to_type=actor_type,
                to_id=actor_id,
                dimension=dimension,
                change=round(bucket.total, 6),
                reason=f"Cumulative {dimension.value} change: {shown}{suffix}",
            )
        )

    return detections


# ── 큐 입력 변환 ─────────────────────────────────────────────


def trait_detection_to_evolution_input(
    detection: TraitDetection,
    game_id: str,
    turn: int,
    source_event_id: Optional[str] = None,
    evolution_type: EvolutionType = EvolutionType.TRAIT_ADD,
) -> CreateEvolutionInput:
    return CreateEvolutionInput(
        game_id=game_id,
        turn=turn,
        evolution_type=evolution_type,
        entity_type=detection.entity_type,
        entity_id=detection.entity_id,
        trait=detection.trait,
        reason=detection.reason,
        source_event_id=source_event_id,
    )


def relationship_detection_to_evolution_input(
    detection: RelationshipDetection,
    game_id: str,
    turn: int,
    current_value: float,
    source_event_id: Optional[str] = None,
) -> CreateEvolutionInput:
    """new_value = clamp(current_value + change)"""
    return CreateEvolutionInput(
        game_id=game_id,
        turn=turn,
        evolution_type=EvolutionType.RELATIONSHIP_CHANGE,
        entity_type=detection.from_type,
        entity_id=detection.from_id,
        target_type=detection.to_type,
        target_id=detection.to_id,
        dimension=detection.dimension,
        old_value=current_value,
        new_value=apply_change(current_value, detection.change),
        reason=detection.reason,
        source_event_id=source_event_id,
    )


def trait_detection_to_suggestion(detection: TraitDetection) -> dict:
    """AI 파이프라인 제안과 같은 형태로 변환"""
    return {
        "evolution_type": EvolutionType.TRAIT_ADD.value,
        "entity_type": detection.entity_type.value,
        "entity_id": detection.entity_id,
        "trait": detection.trait,
        "reason": detection.reason,
    }


def relationship_detection_to_suggestion(detection: RelationshipDetection) -> dict:
    return {
        "evolution_type": EvolutionType.RELATIONSHIP_CHANGE.value,
        "entity_type": detection.from_type.value,
        "entity_id": detection.from_id,
        "target_type": detection.to_type.value,
        "target_id": detection.to_id,
        "dimension": detection.dimension.value,
        "change": detection.change,
        "reason": detection.reason,
    }
