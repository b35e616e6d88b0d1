"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.api.evolution import router as evolution_router
from src.api.health import router as health_router
from src.config import settings
from src.core.event_bus import EventBus
from src.core.logging import get_logger, setup_logging
from src.db.database import SessionLocal, init_db
from src.modules.evolution.module import EvolutionModule
from src.modules.module_manager import ModuleManager
from src.services.game_locks import GameLockRegistry

setup_logging(settings.LOG_LEVEL, sql_echo=settings.DEBUG)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # DB 테이블 생성
    logger.info("Creating database tables...")
    init_db()
    logger.info("Database tables created.")

    # EventBus + 게임별 락은 요청 간 공유
    event_bus = EventBus()
    locks = GameLockRegistry()
    app.state.event_bus = event_bus
    app.state.evolution_locks = locks

    # EvolutionModule: narrative_event 구독용 전용 세션
    logger.info("Enabling evolution module...")
    db_session = SessionLocal()
    manager = ModuleManager(event_bus)
    manager.register(EvolutionModule(db_session, event_bus, locks))
    manager.enable("evolution")
    app.state.module_manager = manager
    logger.info("Evolution module enabled.")

    yield

    # 종료 시 정리
    logger.info("Shutting down...")
    manager.disable_all()
    db_session.close()


app = FastAPI(title="Entity Evolution", lifespan=lifespan)

app.include_router(health_router)
app.include_router(evolution_router)
