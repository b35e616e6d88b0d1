"""API request/response schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from src.core.evolution.models import (
    EntitySummary,
    PendingEvolution,
    Relationship,
    Trait,
)


# === Request Schemas ===


class SuggestionsRequest(BaseModel):
    """AI 파이프라인 제안 제출"""

    event_id: str = Field(..., min_length=1, description="출처 서술 이벤트 ID")
    turn: int = Field(..., ge=0, description="이벤트 발생 턴")
    suggestions: list[dict[str, Any]] = Field(
        default_factory=list, description="EvolutionSuggestion 목록 (camelCase 허용)"
    )


class ResolveRequest(BaseModel):
    """승인/거절 요청"""

    dm_notes: Optional[str] = Field(default=None, max_length=1000)


class EditRequest(BaseModel):
    """DM 수정 후 적용 요청"""

    changes: dict[str, Any] = Field(
        default_factory=dict,
        description="trait, target_type, target_id, dimension, old_value, new_value, reason",
    )
    dm_notes: Optional[str] = Field(default=None, max_length=1000)


# === Response Schemas ===


class EvolutionInfo(BaseModel):
    """진화 레코드"""

    id: str
    game_id: str
    turn: int
    evolution_type: str
    entity_type: str
    entity_id: str
    reason: str
    status: str
    trait: Optional[str] = None
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    dimension: Optional[str] = None
    old_value: Optional[float] = None
    new_value: Optional[float] = None
    source_event_id: Optional[str] = None
    dm_notes: Optional[str] = None
    created_at: str = ""
    resolved_at: Optional[str] = None

    @classmethod
    def from_core(cls, evolution: PendingEvolution) -> "EvolutionInfo":
        return cls(
            id=evolution.id,
            game_id=evolution.game_id,
            turn=evolution.turn,
            evolution_type=evolution.evolution_type.value,
            entity_type=evolution.entity_type.value,
            entity_id=evolution.entity_id,
            reason=evolution.reason,
            status=evolution.status.value,
            trait=evolution.trait,
            target_type=evolution.target_type.value if evolution.target_type else None,
            target_id=evolution.target_id,
            dimension=evolution.dimension.value if evolution.dimension else None,
            old_value=evolution.old_value,
            new_value=evolution.new_value,
            source_event_id=evolution.source_event_id,
            dm_notes=evolution.dm_notes,
            created_at=evolution.created_at,
            resolved_at=evolution.resolved_at,
        )


class EvolutionListResponse(BaseModel):
    game_id: str
    evolutions: list[EvolutionInfo] = []


class TraitInfo(BaseModel):
    trait: str
    acquired_turn: int
    status: str
    source_event_id: Optional[str] = None

    @classmethod
    def from_core(cls, trait: Trait) -> "TraitInfo":
        return cls(
            trait=trait.trait,
            acquired_turn=trait.acquired_turn,
            status=trait.status.value,
            source_event_id=trait.source_event_id,
        )


class TraitListResponse(BaseModel):
    entity_type: str
    entity_id: str
    traits: list[TraitInfo] = []


class RelationshipInfo(BaseModel):
    """관계 + 계산된 라벨"""

    from_type: str
    from_id: str
    to_type: str
    to_id: str
    dimensions: dict[str, float]
    label: str
    labels: list[str] = []
    summary: str
    updated_turn: int = 0

    @classmethod
    def from_core(
        cls, rel: Relationship, label: str, labels: list[str], summary: str
    ) -> "RelationshipInfo":
        return cls(
            from_type=rel.from_ref.entity_type.value,
            from_id=rel.from_ref.entity_id,
            to_type=rel.to_ref.entity_type.value,
            to_id=rel.to_ref.entity_id,
            dimensions=rel.dimensions(),
            label=label,
            labels=labels,
            summary=summary,
            updated_turn=rel.updated_turn,
        )


class RelationshipListResponse(BaseModel):
    entity_type: str
    entity_id: str
    relationships: list[RelationshipInfo] = []


class RelationshipSummaryInfo(BaseModel):
    target_type: str
    target_id: str
    label: str
    summary: str
    direction: str
    dimensions: dict[str, float] = {}


class EntitySummaryResponse(BaseModel):
    """AI 컨텍스트용 엔티티 요약"""

    entity_type: str
    entity_id: str
    traits: list[str] = []
    relationships: list[RelationshipSummaryInfo] = []

    @classmethod
    def from_core(cls, summary: EntitySummary) -> "EntitySummaryResponse":
        return cls(
            entity_type=summary.entity_type.value,
            entity_id=summary.entity_id,
            traits=summary.traits,
            relationships=[
                RelationshipSummaryInfo(
                    target_type=r.target_type.value,
                    target_id=r.target_id,
                    label=r.label,
                    summary=r.summary,
                    direction=r.direction,
                    dimensions=r.dimensions,
                )
                for r in summary.relationships
            ],
        )


class CatalogEntryInfo(BaseModel):
    trait: str
    category: str
    description: str
    opposites: list[str] = []


class ErrorResponse(BaseModel):
    """에러 응답"""

    success: bool = False
    error: str
    detail: Optional[str] = None
