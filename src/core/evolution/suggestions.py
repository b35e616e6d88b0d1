"""진화 제안 검증 — evolution_type 태그 유니언

AI 파이프라인은 느슨한 dict(camelCase/snake_case 혼용)를 보낸다.
서비스에 들어가기 전에 여기서 검증하고, 잘못된 입력은
EvolutionValidationError로 거부한다.
"""

from typing import Annotated, Any, List, Literal, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from src.core.evolution.errors import EvolutionValidationError
from src.core.evolution.models import EntityType, RelationshipDimension


class _SuggestionBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    entity_type: EntityType
    entity_id: str = Field(..., min_length=1)
    reason: str = ""


class TraitSuggestion(_SuggestionBase):
    """trait_add / trait_remove"""

    evolution_type: Literal["trait_add", "trait_remove"]
    trait: str = Field(..., min_length=1, max_length=100)


class RelationshipSuggestion(_SuggestionBase):
    """relationship_change. change는 현재 값에 더할 delta."""

    evolution_type: Literal["relationship_change"]
    target_type: EntityType
    target_id: str = Field(..., min_length=1)
    dimension: RelationshipDimension
    change: float  # new_value 계산 시 클램프


EvolutionSuggestion = Annotated[
    Union[TraitSuggestion, RelationshipSuggestion],
    Field(discriminator="evolution_type"),
]

_suggestion_adapter: TypeAdapter = TypeAdapter(EvolutionSuggestion)


class EvolutionEdit(BaseModel):
    """DM 수정 입력. 지정한 필드만 병합, 모르는 키는 거부."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    trait: Optional[str] = Field(default=None, min_length=1, max_length=100)
    target_type: Optional[EntityType] = None
    target_id: Optional[str] = Field(default=None, min_length=1, max_length=100)
    dimension: Optional[RelationshipDimension] = None
    old_value: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    new_value: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    reason: Optional[str] = Field(default=None, max_length=500)


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def parse_suggestion(raw: Any) -> Union[TraitSuggestion, RelationshipSuggestion]:
    """dict 또는 이미 검증된 모델 → 태그 유니언 모델"""
    if isinstance(raw, (TraitSuggestion, RelationshipSuggestion)):
        return raw
    if not isinstance(raw, Mapping):
        raise EvolutionValidationError(
            f"Suggestion must be an object, got {type(raw).__name__}"
        )
    try:
        return _suggestion_adapter.validate_python(dict(raw))
    except ValidationError as exc:
        raise EvolutionValidationError(f"Invalid suggestion: {_describe(exc)}") from exc


def parse_suggestions(
    raws: Sequence[Any],
) -> List[Union[TraitSuggestion, RelationshipSuggestion]]:
    """전부 검증 후 반환. 하나라도 잘못되면 인덱스와 함께 실패."""
    parsed = []
    for index, raw in enumerate(raws):
        try:
            parsed.append(parse_suggestion(raw))
        except EvolutionValidationError as exc:
            raise EvolutionValidationError(f"suggestions[{index}]: {exc}") from exc
    return parsed


def parse_edit(raw: Any) -> EvolutionEdit:
    if isinstance(raw, EvolutionEdit):
        return raw
    if not isinstance(raw, Mapping):
        raise EvolutionValidationError(
            f"Edit changes must be an object, got {type(raw).__name__}"
        )
    try:
        return EvolutionEdit.model_validate(dict(raw))
    except ValidationError as exc:
        raise EvolutionValidationError(f"Invalid edit: {_describe(exc)}") from exc
