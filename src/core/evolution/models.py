"""엔티티 진화 도메인 모델

DB 무관 순수 데이터 클래스.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class EntityType(str, Enum):
    """특성/관계를 가질 수 있는 엔티티 종류"""

    PLAYER = "player"
    CHARACTER = "character"
    NPC = "npc"
    LOCATION = "location"


class TraitStatus(str, Enum):
    ACTIVE = "active"
    REMOVED = "removed"


class RelationshipDimension(str, Enum):
    """관계 6축 (0.0 ~ 1.0)"""

    TRUST = "trust"
    RESPECT = "respect"
    AFFECTION = "affection"
    FEAR = "fear"
    RESENTMENT = "resentment"
    DEBT = "debt"


class EvolutionType(str, Enum):
    TRAIT_ADD = "trait_add"
    TRAIT_REMOVE = "trait_remove"
    RELATIONSHIP_CHANGE = "relationship_change"


class EvolutionStatus(str, Enum):
    """pending → approved | edited | refused (종결 상태, 재전이 없음)"""

    PENDING = "pending"
    APPROVED = "approved"
    EDITED = "edited"
    REFUSED = "refused"


# 축별 기본값. 행이 없을 때 이 값으로 간주한다.
DIMENSION_DEFAULTS: Dict[RelationshipDimension, float] = {
    RelationshipDimension.TRUST: 0.5,
    RelationshipDimension.RESPECT: 0.5,
    RelationshipDimension.AFFECTION: 0.5,
    RelationshipDimension.FEAR: 0.0,
    RelationshipDimension.RESENTMENT: 0.0,
    RelationshipDimension.DEBT: 0.0,
}


@dataclass(frozen=True)
class EntityRef:
    """엔티티 식별자 (type + id)"""

    entity_type: EntityType
    entity_id: str


@dataclass
class Trait:
    """엔티티 특성. 문자열은 원문 그대로 저장."""

    id: str
    game_id: str
    entity_type: EntityType
    entity_id: str
    trait: str
    acquired_turn: int
    status: TraitStatus = TraitStatus.ACTIVE
    source_event_id: Optional[str] = None
    created_at: str = ""


@dataclass
class Relationship:
    """from이 to에게 갖는 감정 (방향성 있음)"""

    id: str
    game_id: str
    from_ref: EntityRef
    to_ref: EntityRef

    # 6축 수치, 항상 0 ~ 1
    trust: float = 0.5
    respect: float = 0.5
    affection: float = 0.5
    fear: float = 0.0
    resentment: float = 0.0
    debt: float = 0.0

    updated_turn: int = 0
    created_at: str = ""
    updated_at: str = ""

    def get(self, dimension: RelationshipDimension) -> float:
        return getattr(self, RelationshipDimension(dimension).value)

    def dimensions(self) -> Dict[str, float]:
        return {d.value: getattr(self, d.value) for d in RelationshipDimension}


@dataclass
class PendingEvolution:
    """DM 검토 단위. 하드 삭제하지 않는다 (세션 검토 기록)."""

    id: str
    game_id: str
    turn: int
    evolution_type: EvolutionType
    entity_type: EntityType
    entity_id: str
    reason: str
    status: EvolutionStatus = EvolutionStatus.PENDING

    # trait_add / trait_remove
    trait: Optional[str] = None

    # relationship_change
    target_type: Optional[EntityType] = None
    target_id: Optional[str] = None
    dimension: Optional[RelationshipDimension] = None
    old_value: Optional[float] = None
    new_value: Optional[float] = None

    source_event_id: Optional[str] = None
    dm_notes: Optional[str] = None
    created_at: str = ""
    resolved_at: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == EvolutionStatus.PENDING


@dataclass
class CreateEvolutionInput:
    """큐 등록 입력. relationship_change는 target/dimension/old/new 필수."""

    game_id: str
    turn: int
    evolution_type: EvolutionType
    entity_type: EntityType
    entity_id: str
    reason: str
    trait: Optional[str] = None
    target_type: Optional[EntityType] = None
    target_id: Optional[str] = None
    dimension: Optional[RelationshipDimension] = None
    old_value: Optional[float] = None
    new_value: Optional[float] = None
    source_event_id: Optional[str] = None


@dataclass
class NarrativeEvent:
    """감지기가 읽는 확정 서술 이벤트의 최소 형태"""

    id: str
    game_id: str
    turn: int
    content: str
    event_type: str = "narration"
    speaker: Optional[str] = None
    location_id: Optional[str] = None
    witnesses: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class GameEventRef:
    """진화 제안의 출처 이벤트 참조"""

    id: str
    turn: int
    game_id: str


@dataclass
class RelationshipSummary:
    target_type: EntityType
    target_id: str
    label: str
    summary: str
    dimensions: Dict[str, float]
    direction: str = "outgoing"


@dataclass
class EntitySummary:
    """AI 컨텍스트/표시용 엔티티 요약"""

    entity_type: EntityType
    entity_id: str
    traits: List[str]
    relationships: List[RelationshipSummary]
