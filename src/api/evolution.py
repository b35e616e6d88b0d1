"""Evolution API endpoints (DM 검토 화면, AI 파이프라인 입구)."""

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from src.api.schemas import (
    CatalogEntryInfo,
    EditRequest,
    EntitySummaryResponse,
    ErrorResponse,
    EvolutionInfo,
    EvolutionListResponse,
    RelationshipInfo,
    RelationshipListResponse,
    ResolveRequest,
    SuggestionsRequest,
    TraitInfo,
    TraitListResponse,
)
from src.core.evolution.catalog import get_trait_catalog
from src.core.evolution.errors import (
    EvolutionError,
    EvolutionNotFoundError,
    EvolutionValidationError,
    InvalidEvolutionStatusError,
)
from src.core.evolution.labels import compute_labels
from src.core.evolution.models import EntityRef, EntityType, GameEventRef
from src.core.logging import get_logger
from src.db.database import get_db
from src.services.evolution_service import EvolutionService

logger = get_logger(__name__)

router = APIRouter(prefix="/evolution", tags=["evolution"])


def get_evolution_service(
    request: Request, db: Session = Depends(get_db)
) -> EvolutionService:
    """요청 세션 + 앱 공용 EventBus/락으로 EvolutionService 생성 (의존성 주입)"""
    return EvolutionService(
        db,
        request.app.state.event_bus,
        request.app.state.evolution_locks,
    )


def _raise_http(exc: EvolutionError) -> NoReturn:
    """서비스 예외 → HTTP 에러"""
    if isinstance(exc, EvolutionNotFoundError):
        status_code, code = 404, "EVOLUTION_NOT_FOUND"
    elif isinstance(exc, InvalidEvolutionStatusError):
        status_code, code = 409, "INVALID_STATUS"
    elif isinstance(exc, EvolutionValidationError):
        status_code, code = 422, "VALIDATION_ERROR"
    else:
        status_code, code = 400, "INVALID_EVOLUTION"
    raise HTTPException(
        status_code=status_code,
        detail=ErrorResponse(error=code, detail=str(exc)).model_dump(),
    ) from exc


def _check_game(service: EvolutionService, game_id: str, evolution_id: str) -> None:
    """다른 게임의 evolution id로 처리하는 요청 차단"""
    evolution = service.get_evolution(evolution_id)
    if evolution.game_id != game_id:
        raise HTTPException(
            status_code=400,
            detail=ErrorResponse(
                error="INVALID_EVOLUTION",
                detail=f"Evolution {evolution_id} does not belong to game {game_id}",
            ).model_dump(),
        )


# ── 카탈로그 ────────────────────────────────────────────────
# /{game_id}/{evolution_id} 보다 먼저 등록해야 한다


@router.get("/catalog/traits", response_model=list[CatalogEntryInfo])
def list_trait_catalog() -> list[CatalogEntryInfo]:
    """사전 정의 특성 목록 (DM 편집기 자동완성용)"""
    return [
        CatalogEntryInfo(
            trait=entry.trait,
            category=entry.category.value,
            description=entry.description,
            opposites=list(entry.opposites),
        )
        for entry in get_trait_catalog()
    ]


# ── 진화 큐 ─────────────────────────────────────────────────


@router.get("/{game_id}", response_model=EvolutionListResponse)
def list_evolutions(
    game_id: str,
    all: bool = False,
    service: EvolutionService = Depends(get_evolution_service),
) -> EvolutionListResponse:
    """게임의 진화 목록. 기본은 pending만, all=true면 처리 기록 포함."""
    evolutions = service.get_pending_evolutions(game_id, pending_only=not all)
    return EvolutionListResponse(
        game_id=game_id,
        evolutions=[EvolutionInfo.from_core(e) for e in evolutions],
    )


@router.post("/{game_id}/suggestions", response_model=EvolutionListResponse)
def submit_suggestions(
    game_id: str,
    body: SuggestionsRequest,
    service: EvolutionService = Depends(get_evolution_service),
) -> EvolutionListResponse:
    """AI 제안 큐잉. 중복은 건너뛰고 새로 등록된 것만 반환."""
    ref = GameEventRef(id=body.event_id, turn=body.turn, game_id=game_id)
    try:
        created = service.detect_evolutions(game_id, ref, body.suggestions)
    except EvolutionError as e:
        _raise_http(e)
    return EvolutionListResponse(
        game_id=game_id,
        evolutions=[EvolutionInfo.from_core(e) for e in created],
    )


@router.get("/{game_id}/{evolution_id}", response_model=EvolutionInfo)
def get_evolution(
    game_id: str,
    evolution_id: str,
    service: EvolutionService = Depends(get_evolution_service),
) -> EvolutionInfo:
    try:
        _check_game(service, game_id, evolution_id)
        return EvolutionInfo.from_core(service.get_evolution(evolution_id))
    except EvolutionError as e:
        _raise_http(e)


@router.post("/{game_id}/{evolution_id}/approve", response_model=EvolutionInfo)
def approve_evolution(
    game_id: str,
    evolution_id: str,
    body: ResolveRequest | None = None,
    service: EvolutionService = Depends(get_evolution_service),
) -> EvolutionInfo:
    """승인 → State Store 반영"""
    dm_notes = body.dm_notes if body else None
    try:
        _check_game(service, game_id, evolution_id)
        resolved = service.approve(evolution_id, dm_notes)
    except EvolutionError as e:
        _raise_http(e)
    logger.info(f"Evolution approved via API: {evolution_id} (game={game_id})")
    return EvolutionInfo.from_core(resolved)


@router.post("/{game_id}/{evolution_id}/edit", response_model=EvolutionInfo)
def edit_evolution(
    game_id: str,
    evolution_id: str,
    body: EditRequest,
    service: EvolutionService = Depends(get_evolution_service),
) -> EvolutionInfo:
    """DM 수정값으로 적용"""
    try:
        _check_game(service, game_id, evolution_id)
        resolved = service.edit(evolution_id, body.changes, body.dm_notes)
    except EvolutionError as e:
        _raise_http(e)
    logger.info(f"Evolution edited via API: {evolution_id} (game={game_id})")
    return EvolutionInfo.from_core(resolved)


@router.post("/{game_id}/{evolution_id}/refuse", response_model=EvolutionInfo)
def refuse_evolution(
    game_id: str,
    evolution_id: str,
    body: ResolveRequest | None = None,
    service: EvolutionService = Depends(get_evolution_service),
) -> EvolutionInfo:
    """거절. State Store 변경 없음."""
    dm_notes = body.dm_notes if body else None
    try:
        _check_game(service, game_id, evolution_id)
        resolved = service.refuse(evolution_id, dm_notes)
    except EvolutionError as e:
        _raise_http(e)
    logger.info(f"Evolution refused via API: {evolution_id} (game={game_id})")
    return EvolutionInfo.from_core(resolved)


# ── 엔티티 상태 ──────────────────────────────────────────────


@router.get(
    "/{game_id}/traits/{entity_type}/{entity_id}", response_model=TraitListResponse
)
def list_traits(
    game_id: str,
    entity_type: EntityType,
    entity_id: str,
    history: bool = False,
    service: EvolutionService = Depends(get_evolution_service),
) -> TraitListResponse:
    """활성 특성. history=true면 removed 포함."""
    if history:
        traits = service.store.get_trait_history(game_id, entity_type, entity_id)
    else:
        traits = service.store.find_active_traits(game_id, entity_type, entity_id)
    return TraitListResponse(
        entity_type=entity_type.value,
        entity_id=entity_id,
        traits=[TraitInfo.from_core(t) for t in traits],
    )


@router.get(
    "/{game_id}/relationships/{entity_type}/{entity_id}",
    response_model=RelationshipListResponse,
)
def list_relationships(
    game_id: str,
    entity_type: EntityType,
    entity_id: str,
    service: EvolutionService = Depends(get_evolution_service),
) -> RelationshipListResponse:
    """엔티티가 포함된 모든 관계 + 라벨"""
    relationships = service.store.find_relationships_for(
        game_id, EntityRef(entity_type, entity_id)
    )
    infos = []
    for rel in relationships:
        computed = compute_labels(rel)
        infos.append(
            RelationshipInfo.from_core(
                rel,
                label=computed.primary.value,
                labels=[s.label.value for s in computed.labels],
                summary=computed.summary,
            )
        )
    return RelationshipListResponse(
        entity_type=entity_type.value, entity_id=entity_id, relationships=infos
    )


@router.get(
    "/{game_id}/summary/{entity_type}/{entity_id}",
    response_model=EntitySummaryResponse,
)
def get_entity_summary(
    game_id: str,
    entity_type: EntityType,
    entity_id: str,
    service: EvolutionService = Depends(get_evolution_service),
) -> EntitySummaryResponse:
    summary = service.get_entity_summary(game_id, entity_type, entity_id)
    return EntitySummaryResponse.from_core(summary)
